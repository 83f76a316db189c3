"""Audit stored documents and export the anomalies to Excel."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Sequence

from ..validator import audit_documents, export_report
from . import EXIT_INVALID_INPUT, load_documents


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description=(
            "Recalcule les totaux des documents enregistrés et signale les "
            "écarts et les numéros en double."
        )
    )
    parser.add_argument("documents", type=Path, help="Fichier JSON des documents")
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Classeur Excel de destination (par défaut à côté du fichier source)",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        documents = load_documents(args.documents)
    except (OSError, ValueError) as exc:
        print(f"Lecture impossible de {args.documents}: {exc}", file=sys.stderr)
        return EXIT_INVALID_INPUT

    issues = audit_documents(documents)
    destination = args.output or args.documents.with_name(f"{args.documents.stem}_audit.xlsx")
    export_report(issues, destination=destination)
    print(f"{len(issues)} anomalie(s) enregistrée(s) dans: {destination}")

    return EXIT_INVALID_INPUT if issues else 0


if __name__ == "__main__":  # pragma: no cover - exécution directe
    raise SystemExit(main())
