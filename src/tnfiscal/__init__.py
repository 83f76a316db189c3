"""Fiscal core of the ERP: document totals and sequential numbering.

The most used entry points are re-exported here; the submodules hold the
details.
"""

from .errors import SequencePersistenceError, SettingsError, ValidationError
from .models import DocumentModifiers, DocumentTotals, LineItem, TaxGroup
from .totals import compute_totals

__all__ = [
    "cli",
    "commands",
    "counters",
    "documents",
    "errors",
    "kinds",
    "logging",
    "models",
    "numbering",
    "reporting",
    "settings",
    "totals",
    "utils",
    "validator",
    "DocumentModifiers",
    "DocumentTotals",
    "LineItem",
    "SequencePersistenceError",
    "SettingsError",
    "TaxGroup",
    "ValidationError",
    "compute_totals",
]
