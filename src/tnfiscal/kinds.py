"""Catalogue of document kinds and the modifiers each one supports."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Mapping


@dataclass(frozen=True)
class DocumentKind:
    """Metadata describing how a document kind is numbered and totalled."""

    code: str
    label: str
    default_template: str
    special_tax: bool = True
    fiscal_stamp: bool = True
    withholding_tax: bool = False
    net_payable: bool = False
    negative_quantities: bool = False


_KINDS: tuple[DocumentKind, ...] = (
    DocumentKind("quote", "Devis", "DEV-{{YYYY}}-{{SEQ:5}}"),
    DocumentKind("sales-order", "Bon de commande", "BC-{{YYYY}}-{{SEQ:5}}"),
    DocumentKind(
        "delivery-note",
        "Bon de livraison",
        "BL-{{YY}}{{MM}}-{{SEQ:4}}",
        fiscal_stamp=False,
    ),
    DocumentKind(
        "invoice",
        "Facture",
        "FAC-{{YYYY}}-{{SEQ:5}}",
        withholding_tax=True,
        net_payable=True,
    ),
    DocumentKind(
        "credit-note",
        "Avoir",
        "AVR-{{YYYY}}-{{SEQ:5}}",
        negative_quantities=True,
    ),
    DocumentKind(
        "purchase-order",
        "Commande d'achat",
        "CA-{{YYYY}}-{{SEQ:5}}",
        fiscal_stamp=False,
    ),
    DocumentKind("goods-receipt", "Bon de réception", "BR-{{YYYY}}-{{SEQ:5}}"),
    DocumentKind(
        "purchase-invoice",
        "Facture fournisseur",
        "FACFO-{{YYYY}}-{{SEQ:5}}",
        withholding_tax=True,
        net_payable=True,
    ),
    DocumentKind(
        "purchase-credit-note",
        "Avoir fournisseur",
        "AVOIRFO-{{YYYY}}-{{SEQ:5}}",
        negative_quantities=True,
    ),
    DocumentKind(
        "internal-invoice",
        "Facture interne",
        "{{SEQ:4}}",
        net_payable=True,
    ),
    DocumentKind(
        "return",
        "Retour client",
        "RET-{{YYYY}}-{{SEQ:4}}",
        special_tax=False,
        fiscal_stamp=False,
    ),
    DocumentKind(
        "purchase-return",
        "Retour fournisseur",
        "RETA-{{YYYY}}-{{SEQ:4}}",
        special_tax=False,
        fiscal_stamp=False,
    ),
)

KIND_INDEX: Mapping[str, DocumentKind] = {kind.code: kind for kind in _KINDS}


def available_kinds() -> Iterable[DocumentKind]:
    return _KINDS


def get_kind(code: str) -> DocumentKind:
    """Return the :class:`DocumentKind` registered under ``code``."""

    kind = KIND_INDEX.get(code)
    if kind is None:
        raise KeyError(f"Type de document inconnu: {code}")
    return kind


def default_template(code: str) -> str:
    """Return the built-in numbering template for ``code``.

    Unknown kinds get ``<CODE>-{{YYYY}}-{{SEQ:5}}``.
    """

    kind = KIND_INDEX.get(code)
    if kind is not None:
        return kind.default_template
    prefix = code.upper().replace("_", "-")
    return f"{prefix}-{{{{YYYY}}}}-{{{{SEQ:5}}}}"


__all__ = [
    "DocumentKind",
    "KIND_INDEX",
    "available_kinds",
    "default_template",
    "get_kind",
]
