"""Sequential, gap-tolerant document numbering per tenant and document kind.

Numbers are issued from an atomic counter (see :mod:`tnfiscal.counters`) and
formatted against a template such as ``FAC-{{YYYY}}-{{SEQ:5}}``. A reserved
value whose document later fails to save is never reused.
"""

from __future__ import annotations

import logging
import re
from datetime import date
from typing import Callable, Mapping

from .counters import CounterStore
from .kinds import available_kinds, default_template
from .settings import SettingsIndex, TenantSettings, load_settings_index
from .utils import SEQ_TOKEN

LOGGER = logging.getLogger("tnfiscal.numbering")

_KIND_PATTERN = re.compile(r"^[a-z0-9][a-z0-9_-]*$")


def format_number(template: str, value: int, *, today: date | None = None) -> str:
    """Render ``template`` for sequence ``value``.

    Supported tokens: ``{{YYYY}}``, ``{{YY}}``, ``{{MM}}``, ``{{DD}}``,
    ``{{SEQ}}`` and ``{{SEQ:n}}`` (zero padded to ``n`` digits).
    """

    current = today or date.today()
    result = template
    result = result.replace("{{YYYY}}", f"{current.year:04d}")
    result = result.replace("{{YY}}", f"{current.year % 100:02d}")
    result = result.replace("{{MM}}", f"{current.month:02d}")
    result = result.replace("{{DD}}", f"{current.day:02d}")

    def _sequence(match: re.Match[str]) -> str:
        width = match.group(1)
        if width is None:
            return str(value)
        return str(value).zfill(int(width))

    return SEQ_TOKEN.sub(_sequence, result)


def _check_kind(kind: str) -> str:
    if not _KIND_PATTERN.match(kind or ""):
        raise ValueError(f"Nom de séquence invalide: {kind!r}")
    return kind


class NumberingService:
    """Issue formatted document numbers from per-tenant counters."""

    def __init__(
        self,
        store: CounterStore,
        settings: SettingsIndex | None = None,
        *,
        today: Callable[[], date] = date.today,
    ) -> None:
        self.store = store
        self._settings = settings
        self._today = today

    def _tenant_settings(self, tenant_id: str) -> TenantSettings:
        index = self._settings if self._settings is not None else load_settings_index()
        return index.get(tenant_id)

    def _resolve(self, tenant_id: str, kind: str) -> tuple[str, int]:
        numbering = self._tenant_settings(tenant_id).numbering
        template = numbering.template_for(kind) or default_template(kind)
        if not SEQ_TOKEN.search(template):
            raise ValueError(
                f"Le modèle '{template}' de '{kind}' ne contient pas de jeton {{{{SEQ}}}}"
            )
        return template, numbering.starting_number_for(kind)

    def template_for(self, tenant_id: str, kind: str) -> str:
        """Return the tenant template for ``kind`` or the built-in default."""

        template, _ = self._resolve(tenant_id, _check_kind(kind))
        return template

    def next_number(self, tenant_id: str, kind: str) -> str:
        """Reserve the next value for ``(tenant_id, kind)`` and format it.

        Raises :class:`~tnfiscal.errors.SequencePersistenceError` when the
        increment cannot be stored; no number is returned in that case.
        """

        template, base = self._resolve(tenant_id, _check_kind(kind))

        value = self.store.increment(tenant_id, kind, base=base)
        number = format_number(template, value, today=self._today())
        LOGGER.info("Numéro %s attribué (%s/%s, valeur %d)", number, tenant_id, kind, value)
        return number

    def preview(self, tenant_id: str, kind: str) -> str:
        """Return the number the next call would issue, without reserving it."""

        template, base = self._resolve(tenant_id, _check_kind(kind))
        current = max(self.store.current(tenant_id, kind) or 0, base)
        return format_number(template, current + 1, today=self._today())

    def current_value(self, tenant_id: str, kind: str) -> int:
        return self.store.current(tenant_id, _check_kind(kind)) or 0

    def reset(self, tenant_id: str, kind: str) -> None:
        self.store.set_value(tenant_id, _check_kind(kind), 0)
        LOGGER.warning("Compteur %s/%s remis à zéro", tenant_id, kind)

    def reset_all(self, tenant_id: str) -> None:
        """Zero the counter of every known document kind for ``tenant_id``."""

        for kind in available_kinds():
            self.store.set_value(tenant_id, kind.code, 0)
        LOGGER.warning("Tous les compteurs du tenant %s remis à zéro", tenant_id)

    def ensure_sequence_ahead(self, tenant_id: str, kind: str, minimum: int) -> int:
        """Raise the counter to at least ``minimum``; never lowers it."""

        if minimum < 0:
            raise ValueError("La valeur minimale doit être positive")
        return self.store.raise_to(tenant_id, _check_kind(kind), minimum)

    def apply_starting_numbers(
        self, tenant_id: str, starting_numbers: Mapping[str, int]
    ) -> dict[str, int]:
        """Raise each listed counter to its starting number.

        Returns the resulting counter values keyed by kind.
        """

        for kind, value in starting_numbers.items():
            _check_kind(kind)
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise ValueError(f"Numéro de départ invalide pour '{kind}': {value!r}")

        return {
            kind: self.store.raise_to(tenant_id, kind, value)
            for kind, value in starting_numbers.items()
        }


__all__ = ["NumberingService", "format_number"]
