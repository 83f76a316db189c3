from __future__ import annotations

from openpyxl import load_workbook

from tnfiscal.documents import Document, document_from_mapping
from tnfiscal.models import DocumentModifiers, LineItem
from tnfiscal.totals import compute_totals
from tnfiscal.validator import ValidationIssue, audit_documents, export_report


def _invoice(number: str, **stored) -> Document:
    lines = [LineItem(quantity=2, unit_price_excl_tax=100, tax_rate_pct=19)]
    modifiers = DocumentModifiers(fiscal_stamp_enabled=True)
    totals = compute_totals(lines, modifiers).as_dict()
    totals.update(stored)
    return Document(
        tenant_id="acme",
        kind="invoice",
        number=number,
        lines=lines,
        modifiers=modifiers,
        stored_totals=totals,
    )


def test_consistent_documents_have_no_issue() -> None:
    assert audit_documents([_invoice("FAC-1"), _invoice("FAC-2")]) == []


def test_drifted_totals_are_reported() -> None:
    issues = audit_documents([_invoice("FAC-1", total_tax="40.000", total_incl_tax="241.000")])

    assert len(issues) == 1
    issue = issues[0]
    assert issue.code == "TOTALS_MISMATCH"
    assert issue.details["fields"] == "total_tax, total_incl_tax"
    assert issue.as_cells()[:3] == ["TOTALS_MISMATCH", "acme", "FAC-1"]


def test_duplicate_numbers_are_reported_once() -> None:
    issues = audit_documents([_invoice("FAC-1"), _invoice("FAC-1"), _invoice("FAC-1")])

    assert [issue.code for issue in issues] == ["DUPLICATE_NUMBER"]


def test_same_number_in_another_tenant_is_not_a_duplicate() -> None:
    other = _invoice("FAC-1")
    other.tenant_id = "globex"

    assert audit_documents([_invoice("FAC-1"), other]) == []


def test_malformed_document_is_reported() -> None:
    document = document_from_mapping(
        {
            "tenant_id": "acme",
            "kind": "quote",
            "number": "DEV-1",
            "lines": [{"quantity": "abc", "unit_price_excl_tax": "10", "tax_rate_pct": "19"}],
        }
    )

    issues = audit_documents([document])

    assert [issue.code for issue in issues] == ["INVALID_DOCUMENT"]
    assert issues[0].details["field"] == "quantity"


def test_unknown_kind_is_reported() -> None:
    document = _invoice("X-1")
    document.kind = "proforma"

    assert [issue.code for issue in audit_documents([document])] == ["UNKNOWN_KIND"]


def test_export_report_writes_one_row_per_issue(tmp_path) -> None:
    destination = tmp_path / "out" / "audit.xlsx"
    issues = [
        ValidationIssue("Écart", code="TOTALS_MISMATCH", details={"tenant_id": "acme", "number": "FAC-1"}),
        ValidationIssue("Doublon", code="DUPLICATE_NUMBER"),
    ]

    path = export_report(issues, destination=destination)

    assert path == destination
    sheet = load_workbook(path)["Anomalies"]
    rows = list(sheet.iter_rows(values_only=True))
    assert rows[0] == ("code", "tenant", "numéro", "message")
    assert rows[1] == ("TOTALS_MISMATCH", "acme", "FAC-1", "Écart")
    assert rows[2][0] == "DUPLICATE_NUMBER"
