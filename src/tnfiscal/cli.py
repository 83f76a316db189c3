"""Command line entry points for the fiscal core utilities."""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import dataclass
from typing import Callable, Iterable, Mapping, Sequence

from .commands import audit, next_number, report, totals

CommandCallable = Callable[[list[str] | None], int | None]


@dataclass(frozen=True)
class CommandSpec:
    """Metadata describing a CLI command exposed by :mod:`tnfiscal.cli`."""

    name: str
    summary: str
    handler: CommandCallable
    module: str

    def run(self, argv: list[str] | None) -> int:
        """Execute the command and normalise the resulting exit code."""

        try:
            result = self.handler(argv)
        except SystemExit as exc:  # argparse signals errors through sys.exit
            code = exc.code
            if code is None:
                return 0
            if isinstance(code, int):
                return code
            print(str(code), file=sys.stderr)
            return 1
        if result is None:
            return 0
        return int(result)


_COMMANDS: tuple[CommandSpec, ...] = (
    CommandSpec(
        name="totals",
        summary="Calcul des totaux HT, FODEC, TVA, timbre et TTC d'un document.",
        handler=totals.main,
        module="tnfiscal.commands.totals",
    ),
    CommandSpec(
        name="audit",
        summary="Contrôle des totaux enregistrés et des numéros en double.",
        handler=audit.main,
        module="tnfiscal.commands.audit",
    ),
    CommandSpec(
        name="report",
        summary="Rapport Excel des totaux par type de document et par taux de TVA.",
        handler=report.main,
        module="tnfiscal.commands.report",
    ),
    CommandSpec(
        name="next-number",
        summary="Attribution du prochain numéro de document d'un tenant.",
        handler=next_number.main,
        module="tnfiscal.commands.next_number",
    ),
)

_COMMAND_INDEX: Mapping[str, CommandSpec] = {spec.name: spec for spec in _COMMANDS}


def available_commands() -> Iterable[CommandSpec]:
    """Return the commands registered in the CLI."""

    return _COMMANDS


def configure_logging(verbosity: int = 0) -> logging.Logger:
    """Configure the root handler and the level of the ``tnfiscal`` logger."""

    logging.basicConfig(format="[%(levelname)s] %(name)s: %(message)s")
    logger = logging.getLogger("tnfiscal")
    if verbosity > 1:
        logger.setLevel(logging.DEBUG)
    elif verbosity:
        logger.setLevel(logging.INFO)
    else:
        logger.setLevel(logging.WARNING)
    return logger


def build_parser() -> argparse.ArgumentParser:
    """Return the base argument parser shared across commands."""

    parser = argparse.ArgumentParser(description="Outils fiscaux (TVA, FODEC, timbre, numérotation)")
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Augmente la verbosité du journal (-v, -vv)",
    )
    subparsers = parser.add_subparsers(dest="command", metavar="commande")
    subparsers.required = True

    for spec in _COMMANDS:
        subparser = subparsers.add_parser(
            spec.name,
            help=spec.summary,
            description=spec.summary,
            add_help=False,
        )
        subparser.add_argument("args", nargs=argparse.REMAINDER, help=argparse.SUPPRESS)

    return parser


def run(command: str, argv: Sequence[str] | None = None) -> int:
    """Execute *command* forwarding ``argv`` to the underlying handler."""

    spec = _COMMAND_INDEX.get(command)
    if spec is None:
        raise ValueError(f"Commande inconnue: {command}")
    return spec.run(list(argv or []))


def main(argv: Sequence[str] | None = None) -> int:
    """Execute the command line interface."""

    parser = build_parser()
    namespace, extras = parser.parse_known_args(argv)
    configure_logging(namespace.verbose)

    forwarded = list(namespace.args) + extras
    if forwarded and forwarded[0] in {"-h", "--help"}:
        return run(namespace.command, ["--help"])

    return run(namespace.command, forwarded)


if __name__ == "__main__":  # pragma: no cover - exécution directe
    raise SystemExit(main())
