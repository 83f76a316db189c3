"""Compute and print the totals of a document stored as JSON."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Sequence

from ..documents import recalculate
from ..errors import ValidationError
from . import EXIT_INVALID_INPUT, dump_json, load_documents


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Calcule les totaux (HT, FODEC, TVA, timbre, TTC) d'un document JSON."
    )
    parser.add_argument("document", type=Path, help="Chemin du document JSON")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        documents = load_documents(args.document)
    except (OSError, ValueError) as exc:
        print(f"Lecture impossible de {args.document}: {exc}", file=sys.stderr)
        return EXIT_INVALID_INPUT

    results = []
    for document in documents:
        try:
            totals = recalculate(document)
        except (ValidationError, KeyError) as exc:
            label = document.number or document.kind
            print(f"Document {label} invalide: {exc}", file=sys.stderr)
            return EXIT_INVALID_INPUT
        results.append({"number": document.number, "kind": document.kind, **totals.as_dict()})

    print(dump_json(results[0] if len(results) == 1 else results))
    return 0


if __name__ == "__main__":  # pragma: no cover - exécution directe
    raise SystemExit(main())
