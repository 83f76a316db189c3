from __future__ import annotations

import sys
import threading
from datetime import date
from pathlib import Path

import pytest
from sqlalchemy import create_engine

PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from tnfiscal.counters import SqlCounterStore  # noqa: E402


class MemoryCounterStore:
    """In-process store used to observe how the services drive the counters."""

    def __init__(self) -> None:
        self.values: dict[tuple[str, str], int] = {}
        self.increments: list[tuple[str, str]] = []
        self._lock = threading.Lock()

    def increment(self, tenant_id: str, kind: str, *, base: int = 0) -> int:
        with self._lock:
            key = (tenant_id, kind)
            value = max(self.values.get(key, 0), base) + 1
            self.values[key] = value
            self.increments.append(key)
            return value

    def current(self, tenant_id: str, kind: str) -> int | None:
        return self.values.get((tenant_id, kind))

    def set_value(self, tenant_id: str, kind: str, value: int) -> None:
        self.values[(tenant_id, kind)] = value

    def raise_to(self, tenant_id: str, kind: str, minimum: int) -> int:
        with self._lock:
            key = (tenant_id, kind)
            self.values[key] = max(self.values.get(key, minimum), minimum)
            return self.values[key]


@pytest.fixture
def memory_store() -> MemoryCounterStore:
    return MemoryCounterStore()


@pytest.fixture
def sql_store(tmp_path: Path) -> SqlCounterStore:
    engine = create_engine(
        f"sqlite:///{tmp_path / 'counters.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    store = SqlCounterStore(engine)
    store.create_schema()
    yield store
    engine.dispose()


@pytest.fixture
def fixed_today():
    return lambda: date(2025, 3, 14)
