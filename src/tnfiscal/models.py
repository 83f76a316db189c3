"""Data structures exchanged with the fiscal totals engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Mapping

from .utils import ZERO, fmt3, require_bool

DEFAULT_TAX_CODE = "DEFAULT"


@dataclass(frozen=True)
class LineItem:
    """One priced row of a document.

    Numeric fields accept ``Decimal``, ``int``, ``float`` or numeric strings;
    they are checked by :func:`tnfiscal.totals.compute_totals`, which knows the
    position of the line in the document.
    """

    quantity: Decimal | int | float | str
    unit_price_excl_tax: Decimal | int | float | str
    tax_rate_pct: Decimal | int | float | str | None
    line_discount_pct: Decimal | int | float | str = 0
    tax_code: str | None = None
    description: str = ""
    reference: str | None = None

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> "LineItem":
        """Build a line from a persisted or request payload."""

        return cls(
            quantity=payload.get("quantity"),  # type: ignore[arg-type]
            unit_price_excl_tax=payload.get("unit_price_excl_tax"),  # type: ignore[arg-type]
            tax_rate_pct=payload.get("tax_rate_pct"),  # type: ignore[arg-type]
            line_discount_pct=payload.get("line_discount_pct", 0),
            tax_code=payload.get("tax_code"),
            description=payload.get("description", "") or "",
            reference=payload.get("reference"),
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            "quantity": str(self.quantity),
            "unit_price_excl_tax": str(self.unit_price_excl_tax),
            "line_discount_pct": str(self.line_discount_pct),
            "tax_rate_pct": None if self.tax_rate_pct is None else str(self.tax_rate_pct),
            "tax_code": self.tax_code,
            "description": self.description,
            "reference": self.reference,
        }

    def negated(self) -> "LineItem":
        """Return a copy with the quantity sign flipped."""

        quantity = self.quantity
        if isinstance(quantity, str):
            quantity = Decimal(quantity.strip())
        return LineItem(
            quantity=-quantity,
            unit_price_excl_tax=self.unit_price_excl_tax,
            tax_rate_pct=self.tax_rate_pct,
            line_discount_pct=self.line_discount_pct,
            tax_code=self.tax_code,
            description=self.description,
            reference=self.reference,
        )


@dataclass(frozen=True)
class DocumentModifiers:
    """Document-level adjustments applied after line aggregation."""

    global_discount_pct: Decimal | int | float | str = 0
    special_tax_enabled: bool = False
    special_tax_rate_pct: Decimal | int | float | str = 1
    fiscal_stamp_enabled: bool = False
    fiscal_stamp_amount: Decimal | int | float | str = Decimal("1.000")
    withholding_tax_enabled: bool = False
    withholding_tax_rate_pct: Decimal | int | float | str = 0
    tracks_net_payable: bool = True

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any] | None) -> "DocumentModifiers":
        """Read modifiers back from JSON; switches must be real booleans."""

        if not payload:
            return cls()
        defaults = cls()
        return cls(
            global_discount_pct=payload.get(
                "global_discount_pct", defaults.global_discount_pct
            ),
            special_tax_enabled=require_bool(
                payload.get("special_tax_enabled"),
                field="special_tax_enabled",
                default=defaults.special_tax_enabled,
            ),
            special_tax_rate_pct=payload.get(
                "special_tax_rate_pct", defaults.special_tax_rate_pct
            ),
            fiscal_stamp_enabled=require_bool(
                payload.get("fiscal_stamp_enabled"),
                field="fiscal_stamp_enabled",
                default=defaults.fiscal_stamp_enabled,
            ),
            fiscal_stamp_amount=payload.get(
                "fiscal_stamp_amount", defaults.fiscal_stamp_amount
            ),
            withholding_tax_enabled=require_bool(
                payload.get("withholding_tax_enabled"),
                field="withholding_tax_enabled",
                default=defaults.withholding_tax_enabled,
            ),
            withholding_tax_rate_pct=payload.get(
                "withholding_tax_rate_pct", defaults.withholding_tax_rate_pct
            ),
            tracks_net_payable=require_bool(
                payload.get("tracks_net_payable"),
                field="tracks_net_payable",
                default=defaults.tracks_net_payable,
            ),
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            "global_discount_pct": str(self.global_discount_pct),
            "special_tax_enabled": self.special_tax_enabled,
            "special_tax_rate_pct": str(self.special_tax_rate_pct),
            "fiscal_stamp_enabled": self.fiscal_stamp_enabled,
            "fiscal_stamp_amount": str(self.fiscal_stamp_amount),
            "withholding_tax_enabled": self.withholding_tax_enabled,
            "withholding_tax_rate_pct": str(self.withholding_tax_rate_pct),
            "tracks_net_payable": self.tracks_net_payable,
        }


@dataclass(frozen=True)
class TaxGroup:
    """VAT summary for every line sharing the same tax code."""

    code: str
    rate_pct: Decimal
    base: Decimal
    amount: Decimal

    def as_dict(self) -> dict[str, str]:
        return {
            "code": self.code,
            "rate_pct": str(self.rate_pct),
            "base": fmt3(self.base),
            "amount": fmt3(self.amount),
        }


@dataclass(frozen=True)
class DocumentTotals:
    """Computed totals, persisted alongside the document."""

    total_excl_tax: Decimal = ZERO
    special_tax_amount: Decimal = ZERO
    total_tax: Decimal = ZERO
    fiscal_stamp_amount: Decimal = ZERO
    total_incl_tax: Decimal = ZERO
    net_payable: Decimal | None = ZERO
    total_excl_tax_before_discount: Decimal = ZERO
    global_discount_amount: Decimal = ZERO
    withholding_amount: Decimal = ZERO
    tax_groups: tuple[TaxGroup, ...] = field(default_factory=tuple)

    MONETARY_FIELDS = (
        "total_excl_tax_before_discount",
        "global_discount_amount",
        "total_excl_tax",
        "special_tax_amount",
        "total_tax",
        "fiscal_stamp_amount",
        "total_incl_tax",
        "withholding_amount",
        "net_payable",
    )

    def as_dict(self) -> dict[str, Any]:
        """Serialise the totals for storage as a nested document object."""

        payload: dict[str, Any] = {}
        for name in self.MONETARY_FIELDS:
            value = getattr(self, name)
            payload[name] = None if value is None else fmt3(value)
        payload["tax_groups"] = [group.as_dict() for group in self.tax_groups]
        return payload


__all__ = [
    "DEFAULT_TAX_CODE",
    "DocumentModifiers",
    "DocumentTotals",
    "LineItem",
    "TaxGroup",
]
