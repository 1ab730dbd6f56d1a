"""Public preference API: get/set/has/delete over a JSON preference file."""

from __future__ import annotations

import asyncio
from concurrent.futures import Future
from typing import Any, Awaitable, Dict, List, Mapping, Optional, Union

from pydantic import ValidationError

from .config import UNDEFINED, PreferenceConfig
from .errors import IllegalArgumentError
from .paths import PathResolver, UserDataDirProvider, platform_user_data_dir
from .storage import Callback, FileStore, encode, stringify
from .validation import (
    check_callback,
    check_flag,
    check_key,
    check_keys,
    check_optional_file_name,
    check_path,
    check_states,
)

# Default for ``default_value`` when the caller gives none.
_MISSING: Any = object()


def _validate_options(options: Mapping[str, Any]) -> PreferenceConfig:
    try:
        return PreferenceConfig.model_validate(dict(options))
    except ValidationError as exc:
        raise IllegalArgumentError(f"Invalid preference options: {exc}") from exc


def _build_config(
    config: Union[PreferenceConfig, Mapping[str, Any], None],
    options: Dict[str, Any],
) -> PreferenceConfig:
    if isinstance(config, PreferenceConfig):
        base = config
    elif config is None:
        base = PreferenceConfig()
    elif isinstance(config, Mapping):
        base = _validate_options(config)
    else:
        raise IllegalArgumentError(
            "config must be a PreferenceConfig or a mapping of options"
        )
    if not options:
        return base
    # Options may use aliases; dump them by field name before merging.
    overrides = _validate_options(options).model_dump(exclude_unset=True)
    return _validate_options({**base.model_dump(), **overrides})


def _lookup(document: Mapping[str, Any], key: str, default_value: Any) -> str:
    if key in document:
        return stringify(document[key])
    if default_value is _MISSING:
        return UNDEFINED
    return stringify(default_value)


def _lookup_many(document: Mapping[str, Any], keys: List[str]) -> List[str]:
    return [_lookup(document, key, _MISSING) for key in keys]


class Preferences:
    """Key/value preferences persisted in a JSON file.

    Every operation comes in three calling conventions:

    * blocking, e.g. :meth:`get_state`;
    * awaitable, e.g. :meth:`get_state_async`;
    * callback, e.g. :meth:`get_state_c`, which delivers ``callback(error, value)``
      from a worker thread and returns a :class:`~concurrent.futures.Future`.

    Argument and path errors are raised at call time in all three conventions.
    I/O errors are never raised; they turn into ``False``, ``{}`` or ``[]``.
    """

    def __init__(
        self,
        config: Union[PreferenceConfig, Mapping[str, Any], None] = None,
        /,
        *,
        user_data_dir: Optional[UserDataDirProvider] = None,
        **options: Any,
    ) -> None:
        self.config = _build_config(config, options)
        self._paths = PathResolver(self.config, user_data_dir)
        self._store = FileStore()

    def __enter__(self) -> "Preferences":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        """Shut down the worker threads used by the callback variants."""
        self._store.close()

    # ------------------------------------------------------------------ #
    # Paths
    # ------------------------------------------------------------------ #

    def get_default_preference_file_path(self) -> str:
        return self._paths.get_default_path()

    def set_default_preference_file_path(self, file_path: Any) -> str:
        """Seal ``file_path`` as the default preference file; allowed only once."""
        return self._paths.set_default_path(check_path(file_path))

    def get_temp_preference_optional_file_path(self) -> Optional[str]:
        """Path of the most recent per-call override, for diagnostics only."""
        return self._paths.get_temp_optional_path()

    def is_using_embedding_storage(self) -> bool:
        return self._paths.is_using_embedding_storage()

    def set_use_embedding_storage(self, flag: Any) -> None:
        self._paths.set_use_embedding_storage(check_flag(flag))

    def get_embedding_file_path(self) -> str:
        return self._paths.get_embedding_file_path()

    def set_embedding_file_path(self, file_path: Any) -> str:
        return self._paths.set_embedding_file_path(check_path(file_path))

    def set_user_data_dir(self, provider: UserDataDirProvider) -> None:
        """Set the host data directory lookup used by embedding storage.

        Only allowed until the default path is sealed.
        """
        if not callable(provider):
            raise IllegalArgumentError("user_data_dir must be a zero-argument callable")
        self._paths.set_user_data_dir(provider)

    def _resolve(self, optional_file_name: Any) -> str:
        return self._paths.resolve_path(check_optional_file_name(optional_file_name))

    # ------------------------------------------------------------------ #
    # Document operations on a resolved path (blocking)
    # ------------------------------------------------------------------ #

    def _has_key(self, path: str, key: str) -> bool:
        return key in self._store.read(path)

    def _get_state(self, path: str, key: str, default_value: Any) -> str:
        return _lookup(self._store.read(path), key, default_value)

    def _get_states(self, path: str, keys: List[str]) -> List[str]:
        return _lookup_many(self._store.read(path), keys)

    def _set_state(self, path: str, key: str, value: Any) -> bool:
        with self._store.locks.lock_for(path):
            document = self._store.read(path)
            document[key] = stringify(value)
            return self._store.write(path, document)

    def _set_states(self, path: str, states: Dict[str, Any]) -> List[str]:
        with self._store.locks.lock_for(path):
            document = self._store.read(path)
            inserted = []
            for key, value in states.items():
                document[key] = stringify(value)
                inserted.append(document[key])
            return inserted if self._store.write(path, document) else []

    def _delete_key(self, path: str, key: str) -> bool:
        with self._store.locks.lock_for(path):
            document = self._store.read(path)
            if key not in document:
                return True
            del document[key]
            return self._store.write(path, document)

    def _deserialize(self, path: str) -> str:
        return encode(self._store.read(path))

    @staticmethod
    def _prepare_document(document: Any) -> Dict[str, str]:
        return {key: stringify(value) for key, value in check_states(document).items()}

    # ------------------------------------------------------------------ #
    # Blocking API
    # ------------------------------------------------------------------ #

    def has_key(self, key: Any, optional_file_name: Any = None) -> bool:
        key = check_key(key)
        return self._has_key(self._resolve(optional_file_name), key)

    def get_state(
        self, key: Any, default_value: Any = _MISSING, optional_file_name: Any = None
    ) -> str:
        """Return the stored value of ``key``, or ``default_value`` if it is absent.

        Without a default an absent key reads as ``"undefined"``. A stored
        ``null`` reads as ``"null"``.
        """
        key = check_key(key)
        return self._get_state(self._resolve(optional_file_name), key, default_value)

    def get_states(self, keys: Any, optional_file_name: Any = None) -> List[str]:
        keys = check_keys(keys)
        return self._get_states(self._resolve(optional_file_name), keys)

    def set_state(self, key: Any, value: Any, optional_file_name: Any = None) -> bool:
        key = check_key(key)
        return self._set_state(self._resolve(optional_file_name), key, value)

    def set_states(self, states: Any, optional_file_name: Any = None) -> List[str]:
        states = check_states(states)
        return self._set_states(self._resolve(optional_file_name), states)

    def delete_key(self, key: Any, optional_file_name: Any = None) -> bool:
        key = check_key(key)
        return self._delete_key(self._resolve(optional_file_name), key)

    def serialize(self, document: Any, optional_file_name: Any = None) -> bool:
        """Replace the whole preference file with ``document``."""
        document = self._prepare_document(document)
        return self._store.write(self._resolve(optional_file_name), document)

    def deserialize(self, optional_file_name: Any = None) -> str:
        """Return the whole preference file as a JSON string."""
        return self._deserialize(self._resolve(optional_file_name))

    def delete_file(self, optional_file_name: Any = None) -> bool:
        return self._store.delete(self._resolve(optional_file_name))

    # ------------------------------------------------------------------ #
    # Awaitable API
    #
    # These are plain methods returning a coroutine so that argument and path
    # errors are raised before the caller awaits anything.
    # ------------------------------------------------------------------ #

    def has_key_async(
        self, key: Any, optional_file_name: Any = None
    ) -> Awaitable[bool]:
        key = check_key(key)
        path = self._resolve(optional_file_name)

        async def _run() -> bool:
            return key in await self._store.read_async(path)

        return _run()

    def get_state_async(
        self, key: Any, default_value: Any = _MISSING, optional_file_name: Any = None
    ) -> Awaitable[str]:
        key = check_key(key)
        path = self._resolve(optional_file_name)

        async def _run() -> str:
            return _lookup(await self._store.read_async(path), key, default_value)

        return _run()

    def get_states_async(
        self, keys: Any, optional_file_name: Any = None
    ) -> Awaitable[List[str]]:
        keys = check_keys(keys)
        path = self._resolve(optional_file_name)

        async def _run() -> List[str]:
            return _lookup_many(await self._store.read_async(path), keys)

        return _run()

    def set_state_async(
        self, key: Any, value: Any, optional_file_name: Any = None
    ) -> Awaitable[bool]:
        key = check_key(key)
        path = self._resolve(optional_file_name)
        return asyncio.to_thread(self._set_state, path, key, value)

    def set_states_async(
        self, states: Any, optional_file_name: Any = None
    ) -> Awaitable[List[str]]:
        states = check_states(states)
        path = self._resolve(optional_file_name)
        return asyncio.to_thread(self._set_states, path, states)

    def delete_key_async(
        self, key: Any, optional_file_name: Any = None
    ) -> Awaitable[bool]:
        key = check_key(key)
        path = self._resolve(optional_file_name)
        return asyncio.to_thread(self._delete_key, path, key)

    def serialize_async(
        self, document: Any, optional_file_name: Any = None
    ) -> Awaitable[bool]:
        document = self._prepare_document(document)
        return self._store.write_async(self._resolve(optional_file_name), document)

    def deserialize_async(self, optional_file_name: Any = None) -> Awaitable[str]:
        path = self._resolve(optional_file_name)

        async def _run() -> str:
            return encode(await self._store.read_async(path))

        return _run()

    def delete_file_async(self, optional_file_name: Any = None) -> Awaitable[bool]:
        return self._store.delete_async(self._resolve(optional_file_name))

    # ------------------------------------------------------------------ #
    # Callback API
    # ------------------------------------------------------------------ #

    def has_key_c(
        self,
        key: Any,
        optional_file_name: Any = None,
        callback: Optional[Callback] = None,
    ) -> Future:
        key = check_key(key)
        callback = check_callback(callback)
        path = self._resolve(optional_file_name)
        return self._store.submit(self._has_key, path, key, callback=callback)

    def get_state_c(
        self,
        key: Any,
        default_value: Any = _MISSING,
        optional_file_name: Any = None,
        callback: Optional[Callback] = None,
    ) -> Future:
        key = check_key(key)
        callback = check_callback(callback)
        path = self._resolve(optional_file_name)
        return self._store.submit(
            self._get_state, path, key, default_value, callback=callback
        )

    def get_states_c(
        self,
        keys: Any,
        optional_file_name: Any = None,
        callback: Optional[Callback] = None,
    ) -> Future:
        keys = check_keys(keys)
        callback = check_callback(callback)
        path = self._resolve(optional_file_name)
        return self._store.submit(self._get_states, path, keys, callback=callback)

    def set_state_c(
        self,
        key: Any,
        value: Any,
        optional_file_name: Any = None,
        callback: Optional[Callback] = None,
    ) -> Future:
        key = check_key(key)
        callback = check_callback(callback)
        path = self._resolve(optional_file_name)
        return self._store.submit(self._set_state, path, key, value, callback=callback)

    def set_states_c(
        self,
        states: Any,
        optional_file_name: Any = None,
        callback: Optional[Callback] = None,
    ) -> Future:
        states = check_states(states)
        callback = check_callback(callback)
        path = self._resolve(optional_file_name)
        return self._store.submit(self._set_states, path, states, callback=callback)

    def delete_key_c(
        self,
        key: Any,
        optional_file_name: Any = None,
        callback: Optional[Callback] = None,
    ) -> Future:
        key = check_key(key)
        callback = check_callback(callback)
        path = self._resolve(optional_file_name)
        return self._store.submit(self._delete_key, path, key, callback=callback)

    def serialize_c(
        self,
        document: Any,
        optional_file_name: Any = None,
        callback: Optional[Callback] = None,
    ) -> Future:
        document = self._prepare_document(document)
        callback = check_callback(callback)
        path = self._resolve(optional_file_name)
        return self._store.write_c(path, document, callback)

    def deserialize_c(
        self,
        optional_file_name: Any = None,
        callback: Optional[Callback] = None,
    ) -> Future:
        callback = check_callback(callback)
        path = self._resolve(optional_file_name)
        return self._store.submit(self._deserialize, path, callback=callback)

    def delete_file_c(
        self,
        optional_file_name: Any = None,
        callback: Optional[Callback] = None,
    ) -> Future:
        callback = check_callback(callback)
        return self._store.delete_c(self._resolve(optional_file_name), callback)


# Process-wide instance used by callers that never configure one.
_defaults_instance: Optional[Preferences] = None


def get_defaults(
    app_name: Optional[str] = None,
    user_data_dir: Optional[UserDataDirProvider] = None,
) -> Preferences:
    """Get the shared preferences instance, which uses embedding storage.

    ``user_data_dir`` (a zero-argument callable) or ``app_name`` (looked up
    with platformdirs) says where the host keeps per-user data. Either may
    be passed on any call until the shared instance has resolved its path;
    after that :class:`~userprefs.errors.UnModifiableStateError` is raised.
    """
    global _defaults_instance
    if _defaults_instance is None:
        _defaults_instance = Preferences(use_embedding_storage=True)
    if user_data_dir is None and app_name:
        user_data_dir = platform_user_data_dir(app_name)
    if user_data_dir is not None:
        _defaults_instance.set_user_data_dir(user_data_dir)
    return _defaults_instance


def reset_defaults() -> None:
    """Discard the shared preferences instance (for testing)."""
    global _defaults_instance
    if _defaults_instance is not None:
        _defaults_instance.close()
    _defaults_instance = None
