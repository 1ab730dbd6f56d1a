"""userprefs.

Key/value preferences persisted in a JSON file, with blocking, awaitable and
callback variants of every operation.
"""

from __future__ import annotations

from .api import Preferences, get_defaults, reset_defaults
from .config import PreferenceConfig
from .errors import (
    IllegalArgumentError,
    IllegalStateError,
    InitializationError,
    PreferenceError,
    UnModifiableStateError,
)

__all__ = [
    "IllegalArgumentError",
    "IllegalStateError",
    "InitializationError",
    "PreferenceConfig",
    "PreferenceError",
    "Preferences",
    "UnModifiableStateError",
    "get_defaults",
    "reset_defaults",
]
