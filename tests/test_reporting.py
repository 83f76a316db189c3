from __future__ import annotations

from datetime import date
from decimal import Decimal
from pathlib import Path

from openpyxl import load_workbook

from tnfiscal.documents import Document
from tnfiscal.models import DocumentModifiers, LineItem
from tnfiscal.reporting import (
    aggregate_documents,
    default_report_destination,
    write_excel_report,
)


def _documents() -> list[Document]:
    return [
        Document(
            tenant_id="acme",
            kind="invoice",
            number="FAC-1",
            issued_on=date(2025, 1, 10),
            party="Client A",
            lines=[
                LineItem(quantity=1, unit_price_excl_tax=100, tax_rate_pct=19, tax_code="TN19"),
                LineItem(quantity=1, unit_price_excl_tax=50, tax_rate_pct=7, tax_code="TN7"),
            ],
            modifiers=DocumentModifiers(fiscal_stamp_enabled=True),
        ),
        Document(
            tenant_id="acme",
            kind="credit-note",
            number="AVR-1",
            issued_on=date(2025, 1, 12),
            lines=[LineItem(quantity=-1, unit_price_excl_tax=20, tax_rate_pct=19, tax_code="TN19")],
            modifiers=DocumentModifiers(tracks_net_payable=False),
        ),
        Document(
            tenant_id="acme",
            kind="invoice",
            number="FAC-2",
            lines=[LineItem(quantity=2, unit_price_excl_tax=10, tax_rate_pct=19, tax_code="TN19")],
        ),
    ]


def test_aggregate_documents_totals() -> None:
    data = aggregate_documents(_documents())

    invoices = data.totals_by_kind["invoice"]
    assert invoices.count == 2
    assert invoices.total_excl_tax == Decimal("170.000")
    assert invoices.total_tax == Decimal("26.300")
    assert invoices.fiscal_stamp_amount == Decimal("1.000")
    assert invoices.total_incl_tax == Decimal("197.300")

    credits = data.totals_by_kind["credit-note"]
    assert credits.count == 1
    assert credits.total_incl_tax == Decimal("-23.800")

    assert data.overall_totals.count == 3
    assert data.overall_totals.total_incl_tax == Decimal("173.500")

    tn19 = data.tax_summary["TN19"]
    assert tn19.base == Decimal("100.000")
    assert tn19.amount == Decimal("19.000")
    assert data.tax_summary["TN7"].amount == Decimal("3.500")


def test_write_excel_report(tmp_path: Path) -> None:
    destination = tmp_path / "rapports" / "totaux.xlsx"

    write_excel_report(aggregate_documents(_documents()), destination)

    workbook = load_workbook(destination)
    assert workbook.sheetnames == ["Synthèse", "TVA", "Documents"]

    summary = list(workbook["Synthèse"].iter_rows(values_only=True))
    assert summary[0][:3] == ("Type", "Documents", "Total HT")
    labels = [row[0] for row in summary[1:] if row and row[0]]
    assert labels == ["Avoir", "Facture", "Totaux généraux"]
    assert summary[-1][1] == 3

    tax_rows = list(workbook["TVA"].iter_rows(values_only=True))
    assert [row[0] for row in tax_rows[1:]] == ["TN19", "TN7"]

    document_rows = list(workbook["Documents"].iter_rows(values_only=True))
    assert len(document_rows) == 4
    assert document_rows[1][2] == "FAC-1"
    assert document_rows[1][3] == "2025-01-10"


def test_default_report_destination() -> None:
    assert default_report_destination(Path("/data/export.json")) == Path(
        "/data/export_totaux.xlsx"
    )
