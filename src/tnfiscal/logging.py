"""Journalisation tabulaire en Excel.

Les anomalies détectées lors des audits sont remises aux équipes comptables
sous forme de classeur. :class:`ExcelLogger` écrit une feuille par appel,
avec un en-tête figé et des colonnes dimensionnées sur leur contenu.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Protocol, Sequence

_MAX_COLUMN_WIDTH = 80


class RowLike(Protocol):
    """Objet exportable en une ligne de tableau (ex.: ``ValidationIssue``)."""

    def as_cells(self) -> Iterable[str]:
        ...


@dataclass(slots=True)
class ExcelLoggerConfig:
    """Colonnes, fichier et nom de feuille du journal Excel."""

    columns: Sequence[str]
    filename: str = "tnfiscal-audit.xlsx"
    sheet_title: str = "Journal"


class ExcelLogger:
    def __init__(self, config: ExcelLoggerConfig) -> None:
        self.config = config

    def write_rows(self, rows: Iterable[RowLike | Iterable[str]]) -> Path:
        """Crée le classeur, y écrit ``rows`` et renvoie le chemin du fichier.

        Un fichier existant au même emplacement est remplacé.
        """

        from openpyxl import Workbook
        from openpyxl.styles import Font
        from openpyxl.utils import get_column_letter

        target = Path(self.config.filename)
        target.parent.mkdir(parents=True, exist_ok=True)

        workbook = Workbook()
        sheet = workbook.active
        sheet.title = self.config.sheet_title

        widths = [len(str(name)) for name in self.config.columns]
        if self.config.columns:
            sheet.append(list(self.config.columns))
            for cell in sheet[1]:
                cell.font = Font(bold=True)
            sheet.freeze_panes = "A2"

        for row in rows:
            values = list(row.as_cells()) if hasattr(row, "as_cells") else list(row)  # type: ignore[union-attr, arg-type]
            sheet.append(values)
            for position, value in enumerate(values):
                size = len(str(value)) if value is not None else 0
                if position < len(widths):
                    widths[position] = max(widths[position], size)
                else:
                    widths.append(size)

        for position, width in enumerate(widths, start=1):
            sheet.column_dimensions[get_column_letter(position)].width = min(
                width + 2, _MAX_COLUMN_WIDTH
            )

        workbook.save(target)
        return target


__all__ = ["ExcelLogger", "ExcelLoggerConfig", "RowLike"]
