"""Command line interface for inspecting catalogs and resolving credentials."""
from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from typing import Dict, List, Mapping, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .connection import (
    DEFAULT_CONNECTION_STRING_PROPERTY,
    ConnectionDescriptor,
    ConnectionDescriptorPair,
    build_from_environ,
)
from .identity import CallerIdentity
from .provider import CredentialProvider
from .report import catalog_records, export_catalogs_to_excel, print_catalogs


def _key_value(text: str) -> tuple[str, str]:
    key, sep, value = text.partition("=")
    if not sep or not key:
        raise argparse.ArgumentTypeError(f"Expected KEY=VALUE, got '{text}'")
    return key, value


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Return parsed command line arguments."""

    parser = argparse.ArgumentParser(
        description="Inspect catalog connections and resolve identity-scoped database credentials."
    )
    parser.add_argument("--profile", help="AWS CLI profile to use", default=None)
    parser.add_argument("--region", help="AWS region for STS and Secrets Manager", default=None)
    parser.add_argument(
        "--property",
        dest="properties",
        action="append",
        type=_key_value,
        default=[],
        metavar="KEY=VALUE",
        help="Connector property overriding the environment (repeatable)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log resolver activity")

    commands = parser.add_subparsers(dest="command", required=True)

    catalogs = commands.add_parser("catalogs", help="List catalogs discovered from configuration")
    catalogs.add_argument("--json", dest="json_path", help="Optional path to export catalogs as JSON")
    catalogs.add_argument(
        "--excel",
        dest="excel_path",
        help="Optional path to export catalogs as an Excel workbook (.xlsx)",
    )

    resolve = commands.add_parser(
        "resolve", help="Resolve a catalog's connection string on behalf of an identity"
    )
    resolve.add_argument("catalog", help="Catalog name; unknown catalogs use the default connection")
    resolve.add_argument("--arn", required=True, help="ARN of the calling principal")
    resolve.add_argument(
        "--tag",
        dest="tags",
        action="append",
        type=_key_value,
        default=[],
        metavar="KEY=VALUE",
        help="Principal tag of the caller (repeatable, order is preserved)",
    )
    resolve.add_argument(
        "--signing-region",
        default=None,
        help="Region used to sign IAM database tokens",
    )
    resolve.add_argument(
        "--meta",
        action="store_true",
        help="Use the metadata connection instead of the query connection",
    )
    return parser.parse_args(argv)


def _properties(overrides: List[tuple[str, str]], environ: Mapping[str, str]) -> Dict[str, str]:
    properties = dict(environ)
    properties.update(overrides)
    return properties


def select_descriptor(
    pairs: List[ConnectionDescriptorPair], catalog: str, *, metadata: bool = False
) -> ConnectionDescriptor:
    """Return the descriptor serving *catalog*, falling back to ``default``."""

    by_name = {primary.catalog: (primary, meta) for primary, meta in pairs}
    pair = by_name.get(catalog) or by_name[DEFAULT_CONNECTION_STRING_PROPERTY]
    return pair[1] if metadata else pair[0]


def main(argv: Optional[List[str]] = None, environ: Optional[Mapping[str, str]] = None) -> int:
    """CLI entry point used by ``python -m abac_credentials``."""

    args = parse_args(argv)
    if args.verbose:
        logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    properties = _properties(args.properties, os.environ if environ is None else environ)
    try:
        pairs = build_from_environ(properties)
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    if args.command == "catalogs":
        print_catalogs(pairs)
        if args.json_path:
            with open(args.json_path, "w", encoding="utf-8") as fh:
                json.dump(catalog_records(pairs), fh, indent=2)
            print(f"Catalogs exported to {args.json_path}")
        if args.excel_path:
            try:
                path = export_catalogs_to_excel(pairs, args.excel_path)
            except RuntimeError as exc:
                print(f"Failed to export Excel report: {exc}", file=sys.stderr)
            else:
                print(f"Excel report written to {path}")
        return 0

    try:
        identity = CallerIdentity.from_dict({"arn": args.arn, "tags": dict(args.tags)})
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    descriptor = select_descriptor(pairs, args.catalog, metadata=args.meta)
    session = boto3.Session(profile_name=args.profile, region_name=args.region)
    provider_options = {}
    if args.signing_region:
        provider_options["signing_region"] = args.signing_region
    provider = CredentialProvider.from_session(session, **provider_options)
    try:
        connection_string = provider.render_connection_string(descriptor, identity)
    except (ValueError, RuntimeError, ClientError, BotoCoreError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    print(connection_string)
    return 0


__all__ = ["main", "parse_args", "select_descriptor"]
