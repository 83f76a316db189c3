"""Command implementations exposed through :mod:`tnfiscal.cli`."""

from __future__ import annotations

import json
from decimal import Decimal
from pathlib import Path
from typing import Any

from ..documents import Document, document_from_mapping

EXIT_INVALID_INPUT = 1
EXIT_PERSISTENCE_FAILURE = 2


def load_documents(path: Path) -> list[Document]:
    """Read a JSON file holding one document, a list, or ``{"documents": [...]}``.

    Malformed documents (bad date, non-object entries, wrong field types) are
    reported as :class:`ValueError` naming the offending position.
    """

    with path.open("r", encoding="utf-8") as handle:
        payload = json.load(handle, parse_float=Decimal)

    if isinstance(payload, dict) and "documents" in payload:
        payload = payload["documents"]
    if isinstance(payload, dict):
        payload = [payload]
    if not isinstance(payload, list):
        raise ValueError("Le fichier doit contenir un document ou une liste de documents")

    documents: list[Document] = []
    for index, item in enumerate(payload):
        try:
            documents.append(document_from_mapping(item))
        except (ValueError, TypeError, AttributeError) as exc:
            raise ValueError(f"Document {index} illisible: {exc}") from exc
    return documents


def dump_json(payload: Any) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False, default=str)


__all__ = [
    "EXIT_INVALID_INPUT",
    "EXIT_PERSISTENCE_FAILURE",
    "dump_json",
    "load_documents",
]
