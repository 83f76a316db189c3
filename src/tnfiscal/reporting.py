"""Helpers to aggregate fiscal documents and build Excel reports."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Iterable

from openpyxl import Workbook

from .documents import Document, recalculate
from .kinds import KIND_INDEX
from .models import DocumentTotals
from .utils import ZERO


@dataclass
class Totals:
    """Aggregate of monetary values for a set of documents."""

    total_excl_tax: Decimal = field(default_factory=lambda: Decimal("0"))
    special_tax_amount: Decimal = field(default_factory=lambda: Decimal("0"))
    total_tax: Decimal = field(default_factory=lambda: Decimal("0"))
    fiscal_stamp_amount: Decimal = field(default_factory=lambda: Decimal("0"))
    total_incl_tax: Decimal = field(default_factory=lambda: Decimal("0"))
    withholding_amount: Decimal = field(default_factory=lambda: Decimal("0"))
    count: int = 0

    def add(self, totals: DocumentTotals) -> None:
        """Add the values of one document to the aggregate."""

        self.total_excl_tax += totals.total_excl_tax
        self.special_tax_amount += totals.special_tax_amount
        self.total_tax += totals.total_tax
        self.fiscal_stamp_amount += totals.fiscal_stamp_amount
        self.total_incl_tax += totals.total_incl_tax
        self.withholding_amount += totals.withholding_amount
        self.count += 1

    def as_row(self) -> list[Decimal | int]:
        return [
            self.count,
            self.total_excl_tax,
            self.special_tax_amount,
            self.total_tax,
            self.fiscal_stamp_amount,
            self.total_incl_tax,
            self.withholding_amount,
        ]


@dataclass
class TaxSummary:
    """VAT base and amount accumulated for one tax code."""

    code: str
    rate_pct: Decimal
    base: Decimal = ZERO
    amount: Decimal = ZERO


@dataclass
class ReportData:
    """Container for the aggregated data of a batch of documents."""

    totals_by_kind: dict[str, Totals]
    overall_totals: Totals
    tax_summary: dict[str, TaxSummary]
    documents: list[tuple[Document, DocumentTotals]]


def aggregate_documents(documents: Iterable[Document]) -> ReportData:
    """Recompute and aggregate ``documents`` by kind and by tax code."""

    totals_by_kind: dict[str, Totals] = {}
    overall = Totals()
    tax_summary: dict[str, TaxSummary] = {}
    rows: list[tuple[Document, DocumentTotals]] = []

    for document in documents:
        computed = recalculate(document)
        rows.append((document, computed))

        if document.kind not in totals_by_kind:
            totals_by_kind[document.kind] = Totals()
        totals_by_kind[document.kind].add(computed)
        overall.add(computed)

        for group in computed.tax_groups:
            summary = tax_summary.setdefault(
                group.code, TaxSummary(code=group.code, rate_pct=group.rate_pct)
            )
            summary.base += group.base
            summary.amount += group.amount

    return ReportData(
        totals_by_kind=totals_by_kind,
        overall_totals=overall,
        tax_summary=tax_summary,
        documents=rows,
    )


_TOTAL_HEADERS = ["Documents", "Total HT", "FODEC", "TVA", "Timbre", "Total TTC", "Retenue"]


def write_excel_report(data: ReportData, destination: Path) -> None:
    """Generate an Excel workbook with totals per kind, VAT and documents."""

    destination.parent.mkdir(parents=True, exist_ok=True)

    workbook = Workbook()
    summary_ws = workbook.active
    summary_ws.title = "Synthèse"
    summary_ws.append(["Type", *_TOTAL_HEADERS])

    for kind in sorted(data.totals_by_kind):
        label = KIND_INDEX[kind].label if kind in KIND_INDEX else kind
        summary_ws.append([label, *data.totals_by_kind[kind].as_row()])

    summary_ws.append([])
    summary_ws.append(["Totaux généraux", *data.overall_totals.as_row()])

    tax_ws = workbook.create_sheet(title="TVA")
    tax_ws.append(["Code", "Taux (%)", "Base TVA", "Montant TVA"])
    for code in sorted(data.tax_summary):
        summary = data.tax_summary[code]
        tax_ws.append([summary.code, summary.rate_pct, summary.base, summary.amount])

    documents_ws = workbook.create_sheet(title="Documents")
    documents_ws.append(
        ["Tenant", "Type", "Numéro", "Date", "Tiers", "Total HT", "TVA", "Total TTC", "Net à payer"]
    )
    for document, computed in data.documents:
        documents_ws.append(
            [
                document.tenant_id,
                document.kind,
                document.number or "",
                document.issued_on.isoformat() if document.issued_on else "",
                document.party,
                computed.total_excl_tax,
                computed.total_tax,
                computed.total_incl_tax,
                computed.net_payable,
            ]
        )

    workbook.save(destination)


def default_report_destination(source: Path) -> Path:
    """Return the report path placed next to ``source``."""

    return source.with_name(f"{source.stem}_totaux.xlsx")


__all__ = [
    "ReportData",
    "TaxSummary",
    "Totals",
    "aggregate_documents",
    "default_report_destination",
    "write_excel_report",
]
