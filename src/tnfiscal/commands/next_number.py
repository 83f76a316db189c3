"""Issue one document number from the atomic counter store."""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path
from typing import Sequence

from ..counters import SqlCounterStore
from ..errors import SequencePersistenceError, SettingsError
from ..numbering import NumberingService
from ..settings import load_settings_file, load_settings_index
from . import EXIT_INVALID_INPUT, EXIT_PERSISTENCE_FAILURE

_DATABASE_ENV_VAR = "TNFISCAL_DATABASE_URL"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Attribue le prochain numéro de document pour un tenant."
    )
    parser.add_argument("--tenant", required=True, help="Identifiant du tenant")
    parser.add_argument("--kind", required=True, help="Type de document (ex.: invoice)")
    parser.add_argument(
        "--database-url",
        default=os.getenv(_DATABASE_ENV_VAR, "sqlite:///tnfiscal-counters.db"),
        help="URL SQLAlchemy de la base des compteurs",
    )
    parser.add_argument(
        "--settings",
        type=Path,
        default=None,
        help="Fichier JSON des paramètres tenants (remplace TNFISCAL_SETTINGS_PATH)",
    )
    parser.add_argument(
        "--preview",
        action="store_true",
        help="Affiche le prochain numéro sans le réserver",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        if args.settings is not None:
            settings = load_settings_file(args.settings)
        else:
            settings = load_settings_index()
        store = SqlCounterStore.from_url(args.database_url)
        service = NumberingService(store, settings)
        if args.preview:
            number = service.preview(args.tenant, args.kind)
        else:
            number = service.next_number(args.tenant, args.kind)
    except ValueError as exc:
        print(str(exc), file=sys.stderr)
        return EXIT_INVALID_INPUT
    except (SequencePersistenceError, SettingsError) as exc:
        print(f"Numérotation impossible: {exc}", file=sys.stderr)
        return EXIT_PERSISTENCE_FAILURE

    print(number)
    return 0


if __name__ == "__main__":  # pragma: no cover - exécution directe
    raise SystemExit(main())
