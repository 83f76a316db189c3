from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import date

import pytest

from tnfiscal.errors import SequencePersistenceError
from tnfiscal.numbering import NumberingService, format_number
from tnfiscal.settings import (
    NumberingSettings,
    SettingsIndex,
    TenantSettings,
    parse_settings,
)


def _settings(**numbering):
    return parse_settings({"tenants": {"acme": {"numbering": numbering}}})


@pytest.mark.parametrize(
    ("template", "value", "expected"),
    [
        ("INV-{{YYYY}}-{{SEQ:5}}", 7, "INV-2025-00007"),
        ("BL-{{YY}}{{MM}}-{{SEQ:4}}", 42, "BL-2503-0042"),
        ("{{DD}}/{{MM}}/{{SEQ}}", 3, "14/03/3"),
        ("{{SEQ:2}}", 1234, "1234"),
        ("FIXE", 9, "FIXE"),
    ],
)
def test_format_number(template, value, expected) -> None:
    assert format_number(template, value, today=date(2025, 3, 14)) == expected


def test_next_number_uses_the_tenant_template(memory_store, fixed_today) -> None:
    settings = _settings(templates={"invoice": "INV-{{YYYY}}-{{SEQ:5}}"})
    memory_store.set_value("acme", "invoice", 6)
    service = NumberingService(memory_store, settings, today=fixed_today)

    assert service.next_number("acme", "invoice") == "INV-2025-00007"


def test_next_number_falls_back_to_the_kind_default(memory_store, fixed_today) -> None:
    service = NumberingService(memory_store, _settings(), today=fixed_today)

    assert service.next_number("acme", "invoice") == "FAC-2025-00001"
    assert service.next_number("acme", "delivery-note") == "BL-2503-0001"


def test_blank_template_falls_back_to_the_default(memory_store, fixed_today) -> None:
    service = NumberingService(
        memory_store, _settings(templates={"quote": "   "}), today=fixed_today
    )

    assert service.next_number("acme", "quote") == "DEV-2025-00001"


def test_unknown_kind_gets_a_generic_template(memory_store, fixed_today) -> None:
    service = NumberingService(memory_store, _settings(), today=fixed_today)

    assert service.next_number("acme", "proforma_export") == "PROFORMA-EXPORT-2025-00001"


def test_unconfigured_tenant_uses_defaults(memory_store, fixed_today) -> None:
    service = NumberingService(memory_store, _settings(), today=fixed_today)

    assert service.next_number("unknown", "quote") == "DEV-2025-00001"


def test_consecutive_calls_increase_by_one(memory_store, fixed_today) -> None:
    service = NumberingService(memory_store, _settings(), today=fixed_today)

    numbers = [service.next_number("acme", "quote") for _ in range(3)]

    assert numbers == ["DEV-2025-00001", "DEV-2025-00002", "DEV-2025-00003"]


def test_starting_number_is_the_floor(memory_store, fixed_today) -> None:
    service = NumberingService(
        memory_store, _settings(starting_numbers={"invoice": 500}), today=fixed_today
    )

    assert service.next_number("acme", "invoice") == "FAC-2025-00501"
    assert service.next_number("acme", "invoice") == "FAC-2025-00502"


@pytest.mark.parametrize("kind", ["", "Invoice", "../etc", "-invoice", "fac ture"])
def test_invalid_kind_is_rejected_without_consuming(memory_store, kind) -> None:
    service = NumberingService(memory_store, _settings())

    with pytest.raises(ValueError):
        service.next_number("acme", kind)
    assert memory_store.increments == []


def test_concurrent_requests_get_distinct_numbers(sql_store, fixed_today) -> None:
    service = NumberingService(sql_store, _settings(), today=fixed_today)

    with ThreadPoolExecutor(max_workers=8) as pool:
        numbers = list(pool.map(lambda _: service.next_number("acme", "invoice"), range(30)))

    assert len(set(numbers)) == 30
    assert sorted(numbers) == [f"FAC-2025-{value:05d}" for value in range(1, 31)]


def test_store_failure_returns_no_number(fixed_today) -> None:
    class BrokenStore:
        def increment(self, tenant_id, kind, *, base=0):
            raise SequencePersistenceError("disque plein")

    service = NumberingService(BrokenStore(), _settings(), today=fixed_today)

    with pytest.raises(SequencePersistenceError):
        service.next_number("acme", "invoice")


def test_issued_numbers_are_logged(memory_store, fixed_today, caplog) -> None:
    service = NumberingService(memory_store, _settings(), today=fixed_today)

    with caplog.at_level(logging.INFO, logger="tnfiscal.numbering"):
        service.next_number("acme", "quote")

    assert "DEV-2025-00001" in caplog.text


def test_preview_does_not_consume(memory_store, fixed_today) -> None:
    service = NumberingService(
        memory_store, _settings(starting_numbers={"quote": 10}), today=fixed_today
    )

    assert service.preview("acme", "quote") == "DEV-2025-00011"
    assert service.preview("acme", "quote") == "DEV-2025-00011"
    assert memory_store.increments == []
    assert service.next_number("acme", "quote") == "DEV-2025-00011"


def test_current_value_and_reset(memory_store) -> None:
    service = NumberingService(memory_store, _settings())
    assert service.current_value("acme", "invoice") == 0

    service.next_number("acme", "invoice")
    service.next_number("acme", "invoice")
    assert service.current_value("acme", "invoice") == 2

    service.reset("acme", "invoice")
    assert service.current_value("acme", "invoice") == 0


def test_reset_all_zeroes_every_known_kind(memory_store) -> None:
    service = NumberingService(memory_store, _settings())
    service.next_number("acme", "invoice")
    service.next_number("acme", "quote")
    service.next_number("globex", "quote")

    service.reset_all("acme")

    assert service.current_value("acme", "invoice") == 0
    assert service.current_value("acme", "quote") == 0
    assert service.current_value("globex", "quote") == 1


def test_ensure_sequence_ahead(memory_store) -> None:
    service = NumberingService(memory_store, _settings())

    assert service.ensure_sequence_ahead("acme", "invoice", 40) == 40
    assert service.ensure_sequence_ahead("acme", "invoice", 5) == 40
    with pytest.raises(ValueError):
        service.ensure_sequence_ahead("acme", "invoice", -1)


def test_apply_starting_numbers(sql_store, fixed_today) -> None:
    service = NumberingService(sql_store, _settings(), today=fixed_today)
    sql_store.set_value("acme", "quote", 90)

    result = service.apply_starting_numbers("acme", {"invoice": 100, "quote": 20})

    assert result == {"invoice": 100, "quote": 90}
    assert service.next_number("acme", "invoice") == "FAC-2025-00101"


@pytest.mark.parametrize("value", [-1, "10", 2.5, True])
def test_apply_starting_numbers_validates_before_writing(memory_store, value) -> None:
    service = NumberingService(memory_store, _settings())

    with pytest.raises(ValueError):
        service.apply_starting_numbers("acme", {"invoice": 5, "quote": value})
    assert memory_store.values == {}


def test_template_without_sequence_token_is_refused(memory_store, fixed_today) -> None:
    tenant = TenantSettings(
        tenant_id="acme",
        numbering=NumberingSettings(templates={"invoice": "FAC-{{YYYY}}"}),
    )
    service = NumberingService(
        memory_store, SettingsIndex(tenants={"acme": tenant}), today=fixed_today
    )

    with pytest.raises(ValueError, match="SEQ"):
        service.next_number("acme", "invoice")
    with pytest.raises(ValueError):
        service.preview("acme", "invoice")
    assert memory_store.increments == []
