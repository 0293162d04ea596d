"""Tests for the command line front-end."""

from __future__ import annotations

import json

import pytest

from abac_credentials import cli
from abac_credentials.provider import CredentialProvider
from abac_credentials.tests.fakes import FakeSecretsManager, FakeSessionFactory, FakeSts

ENVIRON = {
    "default": "postgres://jdbc:postgresql://host:5432/db?${db-secret}",
    "default_assume_role_arn": "arn:aws:iam::1:role/query",
    "sales_connection_string": "postgres://jdbc:postgresql://sales:5432/db?user=bob&password=%s",
    "PATH": "/usr/bin",
}


def test_catalogs_lists_and_exports_json(tmp_path, capsys) -> None:
    """``catalogs`` prints a table and writes JSON records."""

    out_path = tmp_path / "catalogs.json"

    assert cli.main(["catalogs", "--json", str(out_path)], environ=ENVIRON) == 0

    output = capsys.readouterr().out
    assert "default" in output and "sales" in output
    records = json.loads(out_path.read_text(encoding="utf-8"))
    assert [r["catalog"] for r in records] == ["default", "sales"]
    assert records[0]["strategy"] == "secret"
    assert records[1]["credential_source"] == "bob@sales:5432"


def test_catalogs_reports_configuration_errors(capsys) -> None:
    """Configuration errors are reported on stderr with exit code 1."""

    assert cli.main(["catalogs"], environ={"PATH": "/usr/bin"}) == 1
    assert "Default connection string" in capsys.readouterr().err


def test_property_overrides_environment(capsys) -> None:
    """``--property`` entries take precedence over the environment."""

    argv = ["--property", "default=mysql://jdbc:mysql://other:3306/db", "catalogs"]

    assert cli.main(argv, environ=ENVIRON) == 0
    assert "mysql" in capsys.readouterr().out


def test_resolve_renders_connection_string(monkeypatch, capsys) -> None:
    """``resolve`` prints the connection string with the caller's credentials."""

    sts = FakeSts()
    factory = FakeSessionFactory(
        secretsmanager=FakeSecretsManager({"db-secret": '{"username": "app", "password": "pw"}'})
    )
    monkeypatch.setattr(cli.boto3, "Session", lambda **kwargs: object())
    monkeypatch.setattr(
        CredentialProvider,
        "from_session",
        classmethod(lambda cls, session, **kwargs: cls(sts, session_factory=factory)),
    )

    argv = [
        "resolve",
        "unknown-catalog",
        "--arn",
        "arn:aws:sts::1:assumed-role/analyst/jane.doe@example.com",
        "--tag",
        "team=x",
    ]
    assert cli.main(argv, environ=ENVIRON) == 0

    assert capsys.readouterr().out.strip() == "jdbc:postgresql://host:5432/db?user=app&password=pw"
    assert sts.calls[0]["RoleSessionName"] == "jane.doe@example.com"


def test_tag_arguments_require_key_value() -> None:
    """Malformed ``--tag`` values are rejected by argparse."""

    with pytest.raises(SystemExit):
        cli.parse_args(["resolve", "c", "--arn", "a", "--tag", "novalue"])


def test_catalogs_exports_excel_workbook(tmp_path, capsys) -> None:
    """``catalogs --excel`` writes query and metadata sheets."""

    import openpyxl
    environ = dict(ENVIRON)
    environ["sales_meta_connection_string"] = "postgres://jdbc:postgresql://sales:5432/db?${sales-meta}"
    out_path = tmp_path / "catalogs.xlsx"

    assert cli.main(["catalogs", "--excel", str(out_path)], environ=environ) == 0
    assert f"Excel report written to {out_path}" in capsys.readouterr().out

    workbook = openpyxl.load_workbook(out_path)
    assert workbook.sheetnames == ["Catalogs", "Metadata"]

    query_rows = list(workbook["Catalogs"].iter_rows(values_only=True))
    assert query_rows[0] == (
        "Catalog",
        "Engine",
        "Strategy",
        "Role",
        "Credential source",
        "Connection string",
    )
    assert [row[0] for row in query_rows[1:]] == ["default", "sales", "sales_meta"]
    default_row, sales_row = query_rows[1], query_rows[2]
    assert default_row[2:5] == ("secret", "arn:aws:iam::1:role/query", "db-secret")
    assert sales_row[2] == "iam"
    assert sales_row[4] == "bob@sales:5432"

    metadata_rows = list(workbook["Metadata"].iter_rows(values_only=True))
    assert metadata_rows[0][-1] == "Overridden"
    by_catalog = {row[0]: row for row in metadata_rows[1:]}
    assert by_catalog["sales"][2] == "secret"
    assert by_catalog["sales"][4] == "sales-meta"
    assert by_catalog["sales"][-1] == "yes"
    assert by_catalog["default"][-1] == "no"


def test_resolve_rejects_blank_arn(capsys) -> None:
    """The caller identity is validated before any AWS call."""

    assert cli.main(["resolve", "default", "--arn", " ", "--tag", "team=x"], environ=ENVIRON) == 1
    assert "ARN must be a non-empty string" in capsys.readouterr().err
