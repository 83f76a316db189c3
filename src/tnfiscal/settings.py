"""Runtime loader for per-tenant fiscal and numbering settings."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Any, Mapping

from .errors import SettingsError, ValidationError
from .utils import SEQ_TOKEN, require_bool, require_decimal, require_percentage

_SETTINGS_ENV_VAR = "TNFISCAL_SETTINGS_PATH"
_DEFAULT_SETTINGS_PATH = Path(__file__).resolve().parents[2] / "settings" / "tenants.json"


@dataclass(frozen=True)
class TaxSettings:
    """Tenant defaults for the document-level modifiers."""

    default_vat_rate_pct: Decimal = Decimal("19")
    default_tax_code: str = "TN19"
    fiscal_stamp_enabled: bool = False
    fiscal_stamp_amount: Decimal = Decimal("1.000")
    special_tax_enabled: bool = False
    special_tax_rate_pct: Decimal = Decimal("1")
    withholding_tax_enabled: bool = False
    withholding_tax_rate_pct: Decimal = Decimal("0")


@dataclass(frozen=True)
class NumberingSettings:
    """Numbering templates and starting numbers, keyed by document kind."""

    templates: Mapping[str, str] = field(default_factory=dict)
    starting_numbers: Mapping[str, int] = field(default_factory=dict)

    def template_for(self, kind: str) -> str | None:
        template = self.templates.get(kind)
        if template and template.strip():
            return template
        return None

    def starting_number_for(self, kind: str) -> int:
        return self.starting_numbers.get(kind, 0)


@dataclass(frozen=True)
class TenantSettings:
    tenant_id: str
    tax: TaxSettings = field(default_factory=TaxSettings)
    numbering: NumberingSettings = field(default_factory=NumberingSettings)


@dataclass(frozen=True)
class SettingsIndex:
    """Every tenant configured in the settings file."""

    tenants: Mapping[str, TenantSettings]

    def get(self, tenant_id: str) -> TenantSettings:
        """Return the settings for ``tenant_id`` or built-in defaults."""

        found = self.tenants.get(tenant_id)
        if found is not None:
            return found
        return TenantSettings(tenant_id=tenant_id)


_CACHED_INDEX: tuple[Path, float, SettingsIndex] | None = None


def _resolve_settings_path() -> Path:
    candidate = os.getenv(_SETTINGS_ENV_VAR)
    if candidate:
        return Path(candidate)
    return _DEFAULT_SETTINGS_PATH


def _parse_tax(payload: Mapping[str, Any]) -> TaxSettings:
    defaults = TaxSettings()
    stamp = payload.get("fiscal_stamp", {})
    special = payload.get("special_tax", {})
    withholding = payload.get("withholding_tax", {})
    return TaxSettings(
        default_vat_rate_pct=require_percentage(
            payload.get("default_vat_rate_pct", defaults.default_vat_rate_pct),
            field="tax.default_vat_rate_pct",
        ),
        default_tax_code=str(payload.get("default_tax_code", defaults.default_tax_code)),
        fiscal_stamp_enabled=require_bool(
            stamp.get("enabled"),
            field="tax.fiscal_stamp.enabled",
            default=defaults.fiscal_stamp_enabled,
        ),
        fiscal_stamp_amount=require_decimal(
            stamp.get("amount", defaults.fiscal_stamp_amount),
            field="tax.fiscal_stamp.amount",
        ),
        special_tax_enabled=require_bool(
            special.get("enabled"),
            field="tax.special_tax.enabled",
            default=defaults.special_tax_enabled,
        ),
        special_tax_rate_pct=require_percentage(
            special.get("rate_pct", defaults.special_tax_rate_pct),
            field="tax.special_tax.rate_pct",
        ),
        withholding_tax_enabled=require_bool(
            withholding.get("enabled"),
            field="tax.withholding_tax.enabled",
            default=defaults.withholding_tax_enabled,
        ),
        withholding_tax_rate_pct=require_percentage(
            withholding.get("rate_pct", defaults.withholding_tax_rate_pct),
            field="tax.withholding_tax.rate_pct",
        ),
    )


def _parse_numbering(payload: Mapping[str, Any]) -> NumberingSettings:
    templates = {str(kind): str(value) for kind, value in payload.get("templates", {}).items()}
    for kind, template in templates.items():
        # blank templates fall back to the kind default
        if template.strip() and not SEQ_TOKEN.search(template):
            raise SettingsError(
                f"Template for '{kind}' has no {{{{SEQ}}}} token: {template!r}"
            )
    starting: dict[str, int] = {}
    for kind, value in payload.get("starting_numbers", {}).items():
        number = int(value)
        if number < 0:
            raise SettingsError(f"Starting number for '{kind}' must not be negative")
        starting[str(kind)] = number
    return NumberingSettings(templates=templates, starting_numbers=starting)


def parse_settings(payload: Mapping[str, Any]) -> SettingsIndex:
    """Build a :class:`SettingsIndex` from the decoded JSON ``payload``."""

    try:
        raw_tenants = payload["tenants"]
    except KeyError as exc:
        raise SettingsError("Settings file is missing the 'tenants' key") from exc

    tenants: dict[str, TenantSettings] = {}
    for tenant_id, item in raw_tenants.items():
        try:
            tenants[tenant_id] = TenantSettings(
                tenant_id=tenant_id,
                tax=_parse_tax(item.get("tax", {})),
                numbering=_parse_numbering(item.get("numbering", {})),
            )
        except (ValidationError, TypeError, ValueError, AttributeError) as exc:
            msg = f"Invalid settings for tenant '{tenant_id}': {exc}"
            raise SettingsError(msg) from exc
    return SettingsIndex(tenants=tenants)


def load_settings_file(path: Path) -> SettingsIndex:
    """Parse ``path`` without touching the cache; missing files mean defaults."""

    if not path.exists():
        return SettingsIndex(tenants={})

    with path.open("r", encoding="utf-8") as handle:
        try:
            payload = json.load(handle)
        except json.JSONDecodeError as exc:
            msg = f"Settings file '{path}' is not valid JSON"
            raise SettingsError(msg) from exc

    return parse_settings(payload)


def load_settings_index(force_reload: bool = False) -> SettingsIndex:
    """Load the tenant settings file with caching on path and mtime."""

    global _CACHED_INDEX

    settings_path = _resolve_settings_path()
    mtime = settings_path.stat().st_mtime if settings_path.exists() else 0.0

    if not force_reload and _CACHED_INDEX:
        cached_path, cached_mtime, cached_index = _CACHED_INDEX
        if cached_path == settings_path and cached_mtime == mtime:
            return cached_index

    index = load_settings_file(settings_path)
    _CACHED_INDEX = (settings_path, mtime, index)
    return index


def get_tenant_settings(tenant_id: str) -> TenantSettings:
    """Return the settings for ``tenant_id`` from the cached index."""

    return load_settings_index().get(tenant_id)


__all__ = [
    "NumberingSettings",
    "SettingsIndex",
    "TaxSettings",
    "TenantSettings",
    "get_tenant_settings",
    "load_settings_file",
    "load_settings_index",
    "parse_settings",
]
