"""Generate Excel reports with totals recomputed from stored documents."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Sequence

from ..reporting import aggregate_documents, default_report_destination, write_excel_report
from . import EXIT_INVALID_INPUT, load_documents


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description=(
            "Génère un rapport Excel avec les totaux par type de document, "
            "la synthèse TVA et la liste des documents."
        )
    )
    parser.add_argument("documents", type=Path, help="Fichier JSON des documents")
    parser.add_argument("--output", type=Path, default=None, help="Classeur de destination")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        documents = load_documents(args.documents)
        data = aggregate_documents(documents)
    except (OSError, ValueError, KeyError) as exc:
        print(f"Rapport impossible: {exc}", file=sys.stderr)
        return EXIT_INVALID_INPUT

    destination = args.output or default_report_destination(args.documents)
    write_excel_report(data, destination)
    print(f"Rapport des totaux enregistré dans: {destination}")

    return 0


if __name__ == "__main__":  # pragma: no cover - exécution directe
    raise SystemExit(main())
