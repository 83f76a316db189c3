"""Fiscal totals engine: HT, remise, FODEC, TVA, timbre, retenue and TTC.

Every document kind (devis, facture, bon de livraison, avoir, facture
fournisseur, bon de réception) goes through :func:`compute_totals`; kinds only
differ by the :class:`~tnfiscal.models.DocumentModifiers` they enable.

Order of operations::

    line HT  = qty x unit price x (1 - line discount)
    HT       = sum(line HT) x (1 - global discount)
    FODEC    = sum(line share x FODEC rate)
    TVA      = sum((line share + line FODEC) x line VAT rate)
    TTC      = HT + FODEC + TVA + timbre
    net      = TTC - HT x withholding rate

Rounding to the millime happens once per finalized total, never on the
running accumulators.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, Overflow, localcontext
from typing import Iterable, Sequence

from .errors import ValidationError
from .models import DEFAULT_TAX_CODE, DocumentModifiers, DocumentTotals, LineItem, TaxGroup
from .utils import HUNDRED, ZERO, q3, require_decimal, require_percentage

LOGGER = logging.getLogger("tnfiscal.totals")

# working precision; the default 28 digits cannot quantize totals from 1e25 up
_PRECISION = 80


@dataclass(frozen=True)
class _CheckedLine:
    quantity: Decimal
    unit_price: Decimal
    discount_pct: Decimal
    tax_rate_pct: Decimal
    tax_code: str

    @property
    def total_excl_tax(self) -> Decimal:
        return self.quantity * self.unit_price * (1 - self.discount_pct / HUNDRED)


@dataclass(frozen=True)
class _CheckedModifiers:
    global_discount_pct: Decimal
    special_tax_rate_pct: Decimal | None
    fiscal_stamp_amount: Decimal | None
    withholding_tax_rate_pct: Decimal | None
    tracks_net_payable: bool


def _check_line(line: LineItem, index: int, *, allow_negative_quantities: bool) -> _CheckedLine:
    quantity = require_decimal(line.quantity, field="quantity", line_index=index)
    if quantity < ZERO and not allow_negative_quantities:
        raise ValidationError(
            "La quantité ne peut pas être négative", line_index=index, field="quantity"
        )
    unit_price = require_decimal(
        line.unit_price_excl_tax, field="unit_price_excl_tax", line_index=index
    )
    if unit_price < ZERO:
        raise ValidationError(
            "Le prix unitaire HT ne peut pas être négatif",
            line_index=index,
            field="unit_price_excl_tax",
        )
    discount = require_percentage(
        line.line_discount_pct, field="line_discount_pct", line_index=index
    )
    tax_rate = require_percentage(line.tax_rate_pct, field="tax_rate_pct", line_index=index)
    code = (line.tax_code or "").strip().upper() or DEFAULT_TAX_CODE
    return _CheckedLine(quantity, unit_price, discount, tax_rate, code)


def _check_modifiers(modifiers: DocumentModifiers) -> _CheckedModifiers:
    global_discount = require_percentage(
        modifiers.global_discount_pct, field="global_discount_pct"
    )

    special_rate = None
    if modifiers.special_tax_enabled:
        special_rate = require_percentage(
            modifiers.special_tax_rate_pct, field="special_tax_rate_pct"
        )

    stamp = None
    if modifiers.fiscal_stamp_enabled:
        stamp = require_decimal(modifiers.fiscal_stamp_amount, field="fiscal_stamp_amount")
        if stamp < ZERO:
            raise ValidationError(
                "Le timbre fiscal ne peut pas être négatif", field="fiscal_stamp_amount"
            )

    withholding_rate = None
    if modifiers.withholding_tax_enabled:
        withholding_rate = require_percentage(
            modifiers.withholding_tax_rate_pct, field="withholding_tax_rate_pct"
        )

    return _CheckedModifiers(
        global_discount_pct=global_discount,
        special_tax_rate_pct=special_rate,
        fiscal_stamp_amount=stamp,
        withholding_tax_rate_pct=withholding_rate,
        tracks_net_payable=modifiers.tracks_net_payable,
    )


def check_lines(
    lines: Iterable[LineItem], *, allow_negative_quantities: bool = False
) -> list[_CheckedLine]:
    """Validate every line, failing on the first offending field."""

    return [
        _check_line(line, index, allow_negative_quantities=allow_negative_quantities)
        for index, line in enumerate(lines)
    ]


def _line_total(line: _CheckedLine, index: int) -> Decimal:
    try:
        return line.total_excl_tax
    except (InvalidOperation, Overflow):
        raise ValidationError(
            "Montant de ligne hors des limites de calcul", line_index=index
        ) from None


def compute_totals(
    lines: Sequence[LineItem],
    modifiers: DocumentModifiers | None = None,
    *,
    allow_negative_quantities: bool = False,
) -> DocumentTotals:
    """Return the :class:`DocumentTotals` for ``lines`` and ``modifiers``.

    Parameters
    ----------
    lines:
        Document lines. Negative quantities are only accepted when
        ``allow_negative_quantities`` is set (credit notes mirror invoice
        lines with negated quantities); the resulting totals are never
        clamped to zero.
    modifiers:
        Document-level switches. ``None`` means no discount, FODEC, stamp or
        withholding. Withholding only applies to documents that track a net
        payable amount; otherwise ``withholding_amount`` stays at zero.

    Raises
    ------
    ValidationError
        When any line or modifier is malformed, or when an amount is too large
        to be computed. No partial totals are returned.
    """

    checked_modifiers = _check_modifiers(modifiers or DocumentModifiers())
    checked_lines = check_lines(lines, allow_negative_quantities=allow_negative_quantities)

    if not checked_lines:
        return DocumentTotals(
            net_payable=ZERO if checked_modifiers.tracks_net_payable else None
        )

    with localcontext() as ctx:
        ctx.prec = _PRECISION
        try:
            totals = _accumulate(checked_lines, checked_modifiers)
        except (InvalidOperation, Overflow):
            raise ValidationError(
                "Total hors des limites de calcul", field="total_excl_tax"
            ) from None

    LOGGER.debug(
        "Totaux calculés pour %d ligne(s): HT=%s TVA=%s TTC=%s",
        len(checked_lines),
        totals.total_excl_tax,
        totals.total_tax,
        totals.total_incl_tax,
    )
    return totals


def _accumulate(
    checked_lines: list[_CheckedLine], checked_modifiers: _CheckedModifiers
) -> DocumentTotals:
    factor = 1 - checked_modifiers.global_discount_pct / HUNDRED
    special_rate = checked_modifiers.special_tax_rate_pct

    before_discount = ZERO
    special_tax = ZERO
    total_tax = ZERO
    groups: dict[str, list[Decimal]] = {}

    for index, line in enumerate(checked_lines):
        line_total = _line_total(line, index)
        before_discount += line_total

        share = line_total * factor
        line_special = share * special_rate / HUNDRED if special_rate is not None else ZERO
        special_tax += line_special

        vat_base = share + line_special
        line_tax = vat_base * line.tax_rate_pct / HUNDRED
        total_tax += line_tax

        group = groups.setdefault(line.tax_code, [line.tax_rate_pct, ZERO, ZERO])
        group[1] += vat_base
        group[2] += line_tax

    total_excl_tax = before_discount * factor

    rounded_excl = q3(total_excl_tax)
    rounded_special = q3(special_tax)
    rounded_tax = q3(total_tax)
    stamp = q3(checked_modifiers.fiscal_stamp_amount or ZERO)
    total_incl_tax = rounded_excl + rounded_special + rounded_tax + stamp

    withholding = ZERO
    net_payable: Decimal | None = None
    if checked_modifiers.tracks_net_payable:
        if checked_modifiers.withholding_tax_rate_pct is not None:
            withholding = q3(
                total_excl_tax * checked_modifiers.withholding_tax_rate_pct / HUNDRED
            )
        net_payable = total_incl_tax - withholding

    rounded_before = q3(before_discount)
    return DocumentTotals(
        total_excl_tax=rounded_excl,
        special_tax_amount=rounded_special,
        total_tax=rounded_tax,
        fiscal_stamp_amount=stamp,
        total_incl_tax=total_incl_tax,
        net_payable=net_payable,
        total_excl_tax_before_discount=rounded_before,
        global_discount_amount=rounded_before - rounded_excl,
        withholding_amount=withholding,
        tax_groups=tuple(
            TaxGroup(code=code, rate_pct=rate, base=q3(base), amount=q3(amount))
            for code, (rate, base, amount) in groups.items()
        ),
    )


__all__ = ["check_lines", "compute_totals"]
