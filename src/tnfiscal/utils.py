"""Utility helpers shared across the fiscal modules."""

from __future__ import annotations

import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from .errors import ValidationError

AMT3 = Decimal("0.001")
ZERO = Decimal("0")
HUNDRED = Decimal("100")

SEQ_TOKEN = re.compile(r"\{\{SEQ(?::(\d+))?\}\}")


def q3(value: Decimal) -> Decimal:
    """Round ``value`` to the millime (3 decimal places, half up)."""

    return value.quantize(AMT3, rounding=ROUND_HALF_UP)


def parse_decimal(value: str | Decimal | None, *, default: Decimal = ZERO) -> Decimal:
    """Convert the provided value to :class:`~decimal.Decimal`.

    Empty strings or invalid values return the given ``default``. Use
    :func:`require_decimal` when bad input must be rejected instead.
    """

    if value is None:
        return default
    if isinstance(value, Decimal):
        return value

    text = str(value).strip()
    if not text:
        return default

    try:
        return Decimal(text)
    except (InvalidOperation, ValueError):
        return default


def require_decimal(
    value: object,
    *,
    field: str,
    line_index: int | None = None,
) -> Decimal:
    """Return ``value`` as a finite :class:`~decimal.Decimal` or raise.

    Floats go through ``str`` so that ``0.1`` stays ``Decimal("0.1")``.
    """

    if isinstance(value, bool) or value is None:
        raise ValidationError(
            "Valeur numérique attendue", line_index=line_index, field=field
        )
    if isinstance(value, Decimal):
        number = value
    elif isinstance(value, (int, float, str)):
        text = str(value).strip()
        try:
            number = Decimal(text)
        except (InvalidOperation, ValueError):
            raise ValidationError(
                f"Valeur numérique invalide: {value!r}",
                line_index=line_index,
                field=field,
            ) from None
    else:
        raise ValidationError(
            f"Type non numérique: {type(value).__name__}",
            line_index=line_index,
            field=field,
        )

    if not number.is_finite():
        raise ValidationError(
            "Valeur non finie (NaN ou infini)", line_index=line_index, field=field
        )
    return number


def require_percentage(
    value: object,
    *,
    field: str,
    line_index: int | None = None,
) -> Decimal:
    """Return ``value`` as a percentage in ``[0, 100]`` or raise."""

    number = require_decimal(value, field=field, line_index=line_index)
    if number < ZERO or number > HUNDRED:
        raise ValidationError(
            f"Pourcentage hors de l'intervalle [0, 100]: {number}",
            line_index=line_index,
            field=field,
        )
    return number


def require_bool(value: object, *, field: str, default: bool) -> bool:
    """Return ``value`` when it is a real boolean; ``None`` means ``default``.

    Strings such as ``"false"`` are rejected rather than read as truthy.
    """

    if value is None:
        return default
    if isinstance(value, bool):
        return value
    raise ValidationError(f"Booléen attendu: {value!r}", field=field)


def fmt3(value: Decimal) -> str:
    return f"{value:.3f}"


__all__ = [
    "AMT3",
    "HUNDRED",
    "SEQ_TOKEN",
    "ZERO",
    "fmt3",
    "parse_decimal",
    "q3",
    "require_bool",
    "require_decimal",
    "require_percentage",
]
