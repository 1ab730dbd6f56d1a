"""Argument-shape checks shared by every calling convention.

The checks run before any I/O is scheduled so that programmer errors surface
immediately as :class:`~userprefs.errors.IllegalArgumentError`, even when the
caller asked for an awaitable or a callback.
"""

from __future__ import annotations

import os
from typing import Any, Callable, Dict, List, Optional

from pydantic import StrictBool, StrictStr, TypeAdapter, ValidationError

from .errors import IllegalArgumentError

_KEY = TypeAdapter(StrictStr)
_KEYS = TypeAdapter(List[StrictStr])
_STATES = TypeAdapter(Dict[StrictStr, Any])
_FLAG = TypeAdapter(StrictBool)


def _validate(adapter: TypeAdapter, value: Any, message: str) -> Any:
    try:
        return adapter.validate_python(value)
    except ValidationError as exc:
        detail = exc.errors()[0]["msg"]
        raise IllegalArgumentError(f"{message} ({detail})") from exc


def check_key(key: Any) -> str:
    return _validate(_KEY, key, f"{key!r} must be a str")


def check_keys(keys: Any) -> List[str]:
    # A bare string is a sequence of str too, but never what the caller meant.
    if isinstance(keys, (str, bytes)):
        raise IllegalArgumentError(
            "states must be a list of str keys, not a single string"
        )
    return _validate(_KEYS, keys, "states must be a list of str keys")


def check_states(states: Any) -> Dict[str, Any]:
    """Validate a key/value mapping and return a plain dict copy in the same order."""
    return _validate(_STATES, states, "states must be a mapping with str keys")


def check_flag(flag: Any) -> bool:
    return _validate(_FLAG, flag, f"{flag!r} must be a bool")


def check_path(path: Any) -> str:
    if isinstance(path, os.PathLike):
        path = os.fspath(path)
    if not isinstance(path, str) or not path:
        raise IllegalArgumentError(
            f"{path!r} must be a non-empty str or path-like object"
        )
    return path


def check_optional_file_name(optional_file_name: Any) -> Optional[str]:
    """Return ``None`` for "no override", otherwise the override as a str."""
    if optional_file_name is None or optional_file_name == "":
        return None
    return check_path(optional_file_name)


def check_callback(callback: Any) -> Callable[[Optional[BaseException], Any], Any]:
    if not callable(callback):
        raise IllegalArgumentError("a callable callback(error, value) is required")
    return callback
