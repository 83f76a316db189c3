"""Atomic per-tenant sequence counters backed by SQLAlchemy.

Each counter is one row of ``sequence_counters`` keyed by ``(tenant_id,
kind)``. Every mutation is a single ``INSERT ... ON CONFLICT DO UPDATE``
statement, so concurrent requests are serialised by the database itself.
"""

from __future__ import annotations

import logging
from typing import Protocol

from sqlalchemy import (
    Column,
    Integer,
    MetaData,
    String,
    Table,
    UniqueConstraint,
    case,
    create_engine,
    select,
)
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from .errors import SequencePersistenceError

LOGGER = logging.getLogger("tnfiscal.counters")

metadata = MetaData()

sequence_counters = Table(
    "sequence_counters",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("tenant_id", String(64), nullable=False),
    Column("kind", String(64), nullable=False),
    Column("value", Integer, nullable=False, default=0),
    UniqueConstraint("tenant_id", "kind", name="uq_sequence_counters_tenant_kind"),
)

_INSERT_BUILDERS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


class CounterStore(Protocol):
    """Storage contract consumed by :class:`~tnfiscal.numbering.NumberingService`."""

    def increment(self, tenant_id: str, kind: str, *, base: int = 0) -> int:
        """Atomically bump the counter (at least to ``base``) and return it."""

    def current(self, tenant_id: str, kind: str) -> int | None:
        """Return the current value or ``None`` when the counter is absent."""

    def set_value(self, tenant_id: str, kind: str, value: int) -> None:
        """Force the counter to ``value``."""

    def raise_to(self, tenant_id: str, kind: str, minimum: int) -> int:
        """Atomically raise the counter to at least ``minimum``."""


class SqlCounterStore:
    """:class:`CounterStore` implementation for SQLite and PostgreSQL."""

    def __init__(self, engine: Engine) -> None:
        dialect = engine.dialect.name
        if dialect not in _INSERT_BUILDERS:
            raise ValueError(f"Unsupported database dialect for counters: {dialect}")
        self.engine = engine
        self._insert = _INSERT_BUILDERS[dialect]

    @classmethod
    def from_url(cls, url: str, *, create_schema: bool = True) -> "SqlCounterStore":
        try:
            engine = create_engine(url)
        except SQLAlchemyError as exc:
            raise SequencePersistenceError(f"URL de base invalide: {url}") from exc
        store = cls(engine)
        if create_schema:
            store.create_schema()
        return store

    def create_schema(self) -> None:
        try:
            metadata.create_all(self.engine)
        except SQLAlchemyError as exc:
            raise SequencePersistenceError("Impossible de créer la table des compteurs") from exc

    def _upsert(self, tenant_id: str, kind: str, initial: int, on_conflict) -> int:
        stmt = self._insert(sequence_counters).values(
            tenant_id=tenant_id, kind=kind, value=initial
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[sequence_counters.c.tenant_id, sequence_counters.c.kind],
            set_={"value": on_conflict(stmt.excluded)},
        ).returning(sequence_counters.c.value)

        try:
            with self.engine.begin() as conn:
                return int(conn.execute(stmt).scalar_one())
        except SQLAlchemyError as exc:
            LOGGER.error(
                "Échec de mise à jour du compteur %s/%s: %s", tenant_id, kind, exc
            )
            raise SequencePersistenceError(
                f"Compteur '{kind}' du tenant '{tenant_id}' non enregistré"
            ) from exc

    def increment(self, tenant_id: str, kind: str, *, base: int = 0) -> int:
        value = sequence_counters.c.value
        floor = max(base, 0)
        return self._upsert(
            tenant_id,
            kind,
            floor + 1,
            lambda excluded: case((value < floor, floor), else_=value) + 1,
        )

    def raise_to(self, tenant_id: str, kind: str, minimum: int) -> int:
        value = sequence_counters.c.value
        return self._upsert(
            tenant_id,
            kind,
            minimum,
            lambda excluded: case(
                (value < excluded.value, excluded.value), else_=value
            ),
        )

    def set_value(self, tenant_id: str, kind: str, value: int) -> None:
        self._upsert(tenant_id, kind, value, lambda excluded: excluded.value)

    def current(self, tenant_id: str, kind: str) -> int | None:
        stmt = select(sequence_counters.c.value).where(
            sequence_counters.c.tenant_id == tenant_id,
            sequence_counters.c.kind == kind,
        )
        try:
            with self.engine.connect() as conn:
                found = conn.execute(stmt).scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise SequencePersistenceError(
                f"Lecture du compteur '{kind}' du tenant '{tenant_id}' impossible"
            ) from exc
        return None if found is None else int(found)


__all__ = ["CounterStore", "SqlCounterStore", "metadata", "sequence_counters"]
