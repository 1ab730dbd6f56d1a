"""Public error types for userprefs."""

from __future__ import annotations


class PreferenceError(Exception):
    """Base class for all userprefs errors."""


class InitializationError(PreferenceError):
    """Raised when a preference file path is requested before one could be derived."""


class UnModifiableStateError(PreferenceError):
    """Raised when re-setting a default preference file path that is already sealed."""


class IllegalStateError(PreferenceError):
    """Raised when a path given to seal does not point to an existing regular file."""


class IllegalArgumentError(PreferenceError, ValueError):
    """Raised when arguments have the wrong shape (keys, key lists, maps, callbacks)."""
