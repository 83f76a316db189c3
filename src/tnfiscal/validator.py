"""Audit of persisted documents against freshly recomputed totals."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable

from .documents import Document, recalculate, totals_differ
from .errors import ValidationError

LOGGER = logging.getLogger("tnfiscal.validator")


class ValidationIssue:
    """Representation of a problem detected during an audit."""

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        details: dict[str, str] | None = None,
    ) -> None:
        self.message = message
        self.code = code or "GENERIC"
        self.details = details or {}

    def as_cells(self) -> list[str]:
        """Serialise the issue for tabular export."""

        return [
            self.code,
            self.details.get("tenant_id", ""),
            self.details.get("number", ""),
            self.message,
        ]

    def __repr__(self) -> str:
        return f"ValidationIssue(code={self.code!r}, message={self.message!r})"


def audit_documents(documents: Iterable[Document]) -> list[ValidationIssue]:
    """Run every audit check against ``documents``."""

    documents = list(documents)
    issues: list[ValidationIssue] = []
    issues.extend(_check_duplicate_numbers(documents))
    for document in documents:
        issues.extend(_check_totals(document))
    LOGGER.info("%d document(s) audités, %d anomalie(s)", len(documents), len(issues))
    return issues


def export_report(issues: Iterable[ValidationIssue], *, destination: Path) -> Path:
    """Export audit issues to an Excel report."""

    from .logging import ExcelLogger, ExcelLoggerConfig

    logger = ExcelLogger(
        ExcelLoggerConfig(
            columns=("code", "tenant", "numéro", "message"),
            filename=str(destination),
            sheet_title="Anomalies",
        )
    )
    return logger.write_rows(issues)


def _describe(document: Document) -> dict[str, str]:
    return {
        "tenant_id": document.tenant_id,
        "kind": document.kind,
        "number": document.number or "(sans numéro)",
    }


def _check_duplicate_numbers(documents: list[Document]) -> list[ValidationIssue]:
    seen: dict[tuple[str, str, str], int] = {}
    issues: list[ValidationIssue] = []

    for document in documents:
        if not document.number:
            continue
        key = (document.tenant_id, document.kind, document.number)
        seen[key] = seen.get(key, 0) + 1
        if seen[key] == 2:
            issues.append(
                ValidationIssue(
                    f"Le numéro '{document.number}' est attribué à plusieurs documents.",
                    code="DUPLICATE_NUMBER",
                    details=_describe(document),
                )
            )
    return issues


def _check_totals(document: Document) -> list[ValidationIssue]:
    try:
        computed = recalculate(document)
    except ValidationError as exc:
        details = _describe(document)
        details["field"] = exc.field or ""
        return [
            ValidationIssue(
                f"Document invalide: {exc}",
                code="INVALID_DOCUMENT",
                details=details,
            )
        ]
    except KeyError:
        return [
            ValidationIssue(
                f"Type de document inconnu: {document.kind!r}",
                code="UNKNOWN_KIND",
                details=_describe(document),
            )
        ]

    if not document.stored_totals:
        return []

    drifted = totals_differ(document.stored_totals, computed)
    if not drifted:
        return []

    details = _describe(document)
    details["fields"] = ", ".join(drifted)
    return [
        ValidationIssue(
            "Totaux enregistrés différents des totaux recalculés: " + ", ".join(drifted),
            code="TOTALS_MISMATCH",
            details=details,
        )
    ]


__all__ = ["ValidationIssue", "audit_documents", "export_report"]
