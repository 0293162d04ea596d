"""Tabular views of configured catalogs for the command line."""
from __future__ import annotations

from typing import Dict, Iterable, List

from .connection import ConnectionDescriptor, ConnectionDescriptorPair

CATALOG_HEADERS = ("Catalog", "Use", "Engine", "Strategy", "Role", "Credential source")


def _credential_source(descriptor: ConnectionDescriptor) -> str:
    if descriptor.secret_name:
        return descriptor.secret_name
    if descriptor.iam_auth:
        return f"{descriptor.username}@{descriptor.endpoint}:{descriptor.port}"
    return ""


def catalog_rows(pairs: Iterable[ConnectionDescriptorPair]) -> List[tuple[str, ...]]:
    """Return one row per descriptor; metadata rows only when they differ."""

    rows: List[tuple[str, ...]] = []
    for primary, metadata in sorted(pairs, key=lambda pair: pair[0].catalog):
        labelled = [("query", primary)]
        if metadata is not primary:
            labelled.append(("metadata", metadata))
        for use, descriptor in labelled:
            rows.append(
                (
                    descriptor.catalog,
                    use,
                    descriptor.engine.value,
                    descriptor.credential_strategy,
                    descriptor.assume_role_arn or "",
                    _credential_source(descriptor),
                )
            )
    return rows


def catalog_records(pairs: Iterable[ConnectionDescriptorPair]) -> List[Dict[str, str]]:
    """Return :func:`catalog_rows` as dictionaries, e.g. for JSON export."""

    keys = [header.lower().replace(" ", "_") for header in CATALOG_HEADERS]
    return [dict(zip(keys, row)) for row in catalog_rows(pairs)]


def print_catalogs(pairs: Iterable[ConnectionDescriptorPair]) -> None:
    """Pretty-print configured catalogs to stdout."""

    rows = catalog_rows(pairs)
    if not rows:
        print("No catalogs configured.")
        return

    header = f"{'Catalog':<20} {'Use':<8} {'Engine':<9} {'Strategy':<8} Credential source"
    print(header)
    print("-" * len(header))
    for catalog, use, engine, strategy, _role, source in rows:
        name = (catalog[:17] + "...") if len(catalog) > 20 else catalog
        print(f"{name:<20} {use:<8} {engine:<9} {strategy:<8} {source}")


EXCEL_HEADERS = ("Catalog", "Engine", "Strategy", "Role", "Credential source", "Connection string")
METADATA_EXCEL_HEADERS = EXCEL_HEADERS + ("Overridden",)


def _descriptor_cells(descriptor: ConnectionDescriptor) -> List[str]:
    return [
        descriptor.catalog,
        descriptor.engine.value,
        descriptor.credential_strategy,
        descriptor.assume_role_arn or "",
        _credential_source(descriptor),
        descriptor.connection_string,
    ]


def export_catalogs_to_excel(pairs: Iterable[ConnectionDescriptorPair], path: str) -> str:
    """Write configured catalogs to an Excel workbook located at *path*.

    The ``Catalogs`` sheet lists the query connection of every catalog; the
    ``Metadata`` sheet lists the connection used for metadata discovery and
    whether it overrides the query connection.
    """

    try:
        from openpyxl import Workbook
        from openpyxl.styles import Font
    except ImportError as exc:  # pragma: no cover - dependency missing during tests
        raise RuntimeError(
            "The 'openpyxl' package is required to export catalogs to Excel. "
            "Install it with 'pip install abac-credentials[excel]'."
        ) from exc

    ordered = sorted(pairs, key=lambda pair: pair[0].catalog)

    workbook = Workbook()
    query_sheet = workbook.active
    query_sheet.title = "Catalogs"
    metadata_sheet = workbook.create_sheet("Metadata")

    query_sheet.append(list(EXCEL_HEADERS))
    metadata_sheet.append(list(METADATA_EXCEL_HEADERS))
    for primary, metadata in ordered:
        query_sheet.append(_descriptor_cells(primary))
        metadata_sheet.append(
            _descriptor_cells(metadata) + ["yes" if metadata is not primary else "no"]
        )

    for sheet in (query_sheet, metadata_sheet):
        for cell in sheet[1]:
            cell.font = Font(bold=True)
        sheet.freeze_panes = "A2"
        for column in sheet.columns:
            longest = max(len(str(cell.value or "")) for cell in column)
            sheet.column_dimensions[column[0].column_letter].width = min(longest + 2, 80)

    workbook.save(path)
    return path


__all__ = [
    "CATALOG_HEADERS",
    "EXCEL_HEADERS",
    "METADATA_EXCEL_HEADERS",
    "catalog_records",
    "catalog_rows",
    "export_catalogs_to_excel",
    "print_catalogs",
]
