"""Document records and the create/update flow around the totals engine."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Any, Callable, Iterable, Mapping, Sequence

from .kinds import DocumentKind, get_kind
from .models import DocumentModifiers, DocumentTotals, LineItem
from .numbering import NumberingService
from .settings import SettingsIndex, TaxSettings, load_settings_index
from .totals import compute_totals
from .utils import parse_decimal

LOGGER = logging.getLogger("tnfiscal.documents")

_MODIFIER_KEYS = frozenset(DocumentModifiers().as_dict())


@dataclass
class Document:
    """A numbered fiscal document together with its computed totals."""

    tenant_id: str
    kind: str
    lines: list[LineItem]
    modifiers: DocumentModifiers = field(default_factory=DocumentModifiers)
    number: str | None = None
    issued_on: date | None = None
    party: str = ""
    totals: DocumentTotals | None = None
    stored_totals: Mapping[str, Any] | None = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "tenant_id": self.tenant_id,
            "kind": self.kind,
            "number": self.number,
            "issued_on": self.issued_on.isoformat() if self.issued_on else None,
            "party": self.party,
            "lines": [line.as_dict() for line in self.lines],
            "modifiers": self.modifiers.as_dict(),
            "totals": self.totals.as_dict() if self.totals else None,
        }


def document_from_mapping(payload: Mapping[str, Any]) -> Document:
    """Rebuild a :class:`Document` from its persisted JSON shape.

    Persisted ``totals`` are kept aside in ``stored_totals``; they are never
    trusted and are only used to audit legacy records.
    """

    issued_on = payload.get("issued_on")
    return Document(
        tenant_id=str(payload.get("tenant_id", "")),
        kind=str(payload.get("kind", "")),
        number=payload.get("number"),
        issued_on=date.fromisoformat(issued_on) if issued_on else None,
        party=payload.get("party", "") or "",
        lines=[LineItem.from_mapping(item) for item in payload.get("lines", [])],
        modifiers=DocumentModifiers.from_mapping(payload.get("modifiers")),
        stored_totals=payload.get("totals"),
    )


def build_modifiers(
    kind: DocumentKind | str,
    tax: TaxSettings | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> DocumentModifiers:
    """Return the modifiers for a new document of ``kind``.

    Tenant tax defaults come first, then per-document ``overrides``; finally
    every switch the kind does not support is turned off.
    """

    if isinstance(kind, str):
        kind = get_kind(kind)
    tax = tax or TaxSettings()
    values: dict[str, Any] = {
        "global_discount_pct": 0,
        "special_tax_enabled": tax.special_tax_enabled,
        "special_tax_rate_pct": tax.special_tax_rate_pct,
        "fiscal_stamp_enabled": tax.fiscal_stamp_enabled,
        "fiscal_stamp_amount": tax.fiscal_stamp_amount,
        "withholding_tax_enabled": tax.withholding_tax_enabled,
        "withholding_tax_rate_pct": tax.withholding_tax_rate_pct,
    }
    for key, value in (overrides or {}).items():
        if key not in _MODIFIER_KEYS:
            raise KeyError(f"Modificateur inconnu: {key}")
        values[key] = value

    if not kind.special_tax:
        values["special_tax_enabled"] = False
    if not kind.fiscal_stamp:
        values["fiscal_stamp_enabled"] = False
    if not kind.withholding_tax:
        values["withholding_tax_enabled"] = False
    values["tracks_net_payable"] = kind.net_payable
    return DocumentModifiers(**values)


def apply_default_tax(lines: Iterable[LineItem], tax: TaxSettings) -> list[LineItem]:
    """Fill the VAT rate and code of lines that carry none with tenant defaults."""

    completed: list[LineItem] = []
    for line in lines:
        if line.tax_rate_pct is None:
            line = replace(
                line,
                tax_rate_pct=tax.default_vat_rate_pct,
                tax_code=line.tax_code or tax.default_tax_code,
            )
        completed.append(line)
    return completed


def mirror_lines(lines: Iterable[LineItem]) -> list[LineItem]:
    """Return ``lines`` with negated quantities, as used for credit notes."""

    return [line.negated() for line in lines]


def recalculate(document: Document) -> DocumentTotals:
    """Recompute the totals of ``document`` from its lines and modifiers."""

    kind = get_kind(document.kind)
    return compute_totals(
        document.lines,
        document.modifiers,
        allow_negative_quantities=kind.negative_quantities,
    )


def totals_differ(
    stored: Mapping[str, Any], computed: DocumentTotals, *, tolerance: str = "0.001"
) -> list[str]:
    """Return the names of the totals that drift from ``computed``."""

    limit = parse_decimal(tolerance)
    drifted: list[str] = []
    for name in DocumentTotals.MONETARY_FIELDS:
        if name not in stored:
            continue
        expected = getattr(computed, name)
        raw = stored[name]
        if expected is None or raw is None:
            if (expected is None) != (raw is None):
                drifted.append(name)
            continue
        if abs(parse_decimal(raw) - expected) > limit:
            drifted.append(name)
    return drifted


class DocumentService:
    """Create and update documents: number once, recompute totals always."""

    def __init__(
        self,
        numbering: NumberingService,
        settings: SettingsIndex | None = None,
        *,
        today: Callable[[], date] = date.today,
    ) -> None:
        self.numbering = numbering
        self._settings = settings
        self._today = today

    def _tax_settings(self, tenant_id: str) -> TaxSettings:
        settings = self._settings if self._settings is not None else load_settings_index()
        return settings.get(tenant_id).tax

    def create(
        self,
        tenant_id: str,
        kind: str,
        lines: Sequence[LineItem],
        overrides: Mapping[str, Any] | None = None,
        *,
        party: str = "",
    ) -> Document:
        """Build a new numbered document.

        Totals are validated before the number is reserved so that malformed
        input does not consume a sequence value.
        """

        document_kind = get_kind(kind)
        tax = self._tax_settings(tenant_id)
        modifiers = build_modifiers(document_kind, tax, overrides)
        document = Document(
            tenant_id=tenant_id,
            kind=kind,
            lines=apply_default_tax(lines, tax),
            modifiers=modifiers,
            party=party,
            issued_on=self._today(),
        )
        document.totals = recalculate(document)
        document.number = self.numbering.next_number(tenant_id, kind)
        LOGGER.info("Document %s créé (%s)", document.number, document_kind.label)
        return document

    def update(
        self,
        document: Document,
        *,
        lines: Sequence[LineItem] | None = None,
        overrides: Mapping[str, Any] | None = None,
    ) -> Document:
        """Return ``document`` with new lines/modifiers and fresh totals.

        The document number is never changed on edit.
        """

        modifiers = document.modifiers
        if overrides:
            unknown = set(overrides) - _MODIFIER_KEYS
            if unknown:
                raise KeyError(f"Modificateur inconnu: {sorted(unknown)[0]}")
            merged = {**modifiers.as_dict(), **overrides}
            merged.pop("tracks_net_payable")
            modifiers = build_modifiers(document.kind, overrides=merged)

        updated = replace(
            document,
            lines=(
                apply_default_tax(lines, self._tax_settings(document.tenant_id))
                if lines is not None
                else list(document.lines)
            ),
            modifiers=modifiers,
        )
        updated.totals = recalculate(updated)
        LOGGER.debug("Totaux recalculés pour %s", updated.number)
        return updated

    def credit_note_for(self, invoice: Document) -> Document:
        """Create a credit note mirroring every line of ``invoice``."""

        kind = "purchase-credit-note" if invoice.kind == "purchase-invoice" else "credit-note"
        overrides = {
            key: value
            for key, value in invoice.modifiers.as_dict().items()
            if key not in {"tracks_net_payable", "withholding_tax_enabled", "withholding_tax_rate_pct"}
        }
        return self.create(
            invoice.tenant_id,
            kind,
            mirror_lines(invoice.lines),
            overrides,
            party=invoice.party,
        )


__all__ = [
    "Document",
    "apply_default_tax",
    "DocumentService",
    "build_modifiers",
    "document_from_mapping",
    "mirror_lines",
    "recalculate",
    "totals_differ",
]
