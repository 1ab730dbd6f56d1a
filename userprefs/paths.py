"""Resolution of the preference file a call should read or write."""

from __future__ import annotations

import logging
import os
import warnings
from typing import Callable, Optional, Union

from platformdirs import user_data_dir

from .config import DEFAULT_EMBEDDING_FILE_PATH, PreferenceConfig
from .errors import IllegalStateError, InitializationError, UnModifiableStateError

logger = logging.getLogger(__name__)

UserDataDirProvider = Callable[[], Union[str, "os.PathLike[str]"]]

_SEPARATORS = os.sep + (os.altsep or "")


def platform_user_data_dir(app_name: str) -> UserDataDirProvider:
    """Return a provider for the per-user data directory of ``app_name``."""

    def _provider() -> str:
        return user_data_dir(appname=app_name, appauthor=False)

    return _provider


class PathResolver:
    """Owns the sealed default path and resolves per-call overrides.

    The default path is computed from the configuration (or, in embedding
    storage mode, from the host's user data directory on first use) and is
    sealed from then on: it never changes for the lifetime of the resolver.
    """

    def __init__(
        self,
        config: PreferenceConfig,
        user_data_dir: Optional[UserDataDirProvider] = None,
    ) -> None:
        self._directory: Optional[str] = config.preference_file_dir
        self._basename: Optional[str] = config.file_name
        self._extension: str = config.file_ext
        self._use_embedding_storage = config.use_embedding_storage
        self._embedding_file_path = (
            config.embedding_file_path or DEFAULT_EMBEDDING_FILE_PATH
        )
        self._user_data_dir = user_data_dir
        if self._user_data_dir is None and config.app_name:
            self._user_data_dir = platform_user_data_dir(config.app_name)

        self._default_path: Optional[str] = None
        self._optional_path: Optional[str] = None

        if config.preference_file_name:
            warnings.warn(
                "preference_file_name is deprecated, "
                "use file_name and file_ext instead",
                DeprecationWarning,
                stacklevel=3,
            )

        path = self._derive_from_config(config)
        if path is not None:
            self._seal(path, config.preference_file_dir)

    # ------------------------------------------------------------------ #
    # Derivation
    # ------------------------------------------------------------------ #

    @staticmethod
    def _derive_from_config(config: PreferenceConfig) -> Optional[str]:
        directory = config.preference_file_dir
        if config.preference_file_name:
            if directory:
                return os.path.join(directory, config.preference_file_name)
            return config.preference_file_name
        if directory and config.file_name:
            return os.path.join(directory, f"{config.file_name}.{config.file_ext}")
        return None

    def _derive_from_host(self) -> str:
        if self._user_data_dir is None:
            raise InitializationError(
                "Embedding storage is enabled but no user data directory is available; "
                "pass user_data_dir or app_name, or disable embedding storage"
            )
        try:
            base = os.fspath(self._user_data_dir())
        except Exception as exc:
            raise InitializationError(
                f"Could not determine the user data directory: {exc}"
            ) from exc
        return os.path.join(base, self._embedding_file_path.lstrip(_SEPARATORS))

    def _seal(self, path: str, directory: Optional[str] = None) -> None:
        stem, extension = os.path.splitext(os.path.basename(path))
        self._default_path = path
        self._directory = directory or os.path.dirname(path) or os.curdir
        self._basename = stem
        self._extension = extension.lstrip(".")
        logger.debug("default preference file path sealed at %s", path)

    def _ensure_unsealed(self) -> None:
        if self._default_path is not None:
            raise UnModifiableStateError(
                "Default preference file path has already been set "
                "and cannot be changed"
            )

    # ------------------------------------------------------------------ #
    # Default path
    # ------------------------------------------------------------------ #

    @property
    def is_sealed(self) -> bool:
        return self._default_path is not None

    @property
    def directory(self) -> Optional[str]:
        return self._directory

    @property
    def basename(self) -> Optional[str]:
        return self._basename

    @property
    def extension(self) -> str:
        return self._extension

    def get_default_path(self) -> str:
        if self._default_path is None and self._use_embedding_storage:
            self._seal(self._derive_from_host())
        if self._default_path is None:
            raise InitializationError(
                "The preference store was not initialized, "
                "no proper file path was found"
            )
        return os.path.normpath(self._default_path)

    def set_default_path(self, path: str) -> str:
        self._ensure_unsealed()
        if not os.path.isfile(path):
            raise IllegalStateError(f"{path} is an invalid path to a file")
        self._seal(path)
        return path

    # ------------------------------------------------------------------ #
    # Per-call resolution
    # ------------------------------------------------------------------ #

    def resolve_path(self, optional_file_name: Optional[str] = None) -> str:
        default_path = self.get_default_path()
        if not optional_file_name:
            return default_path
        directory = self._directory or os.curdir
        joined = os.path.normpath(os.path.join(directory, optional_file_name))
        self._optional_path = joined
        return joined

    def get_temp_optional_path(self) -> Optional[str]:
        return self._optional_path

    # ------------------------------------------------------------------ #
    # Embedding storage
    # ------------------------------------------------------------------ #

    def is_using_embedding_storage(self) -> bool:
        return self._use_embedding_storage

    def set_use_embedding_storage(self, flag: bool) -> None:
        # Only consulted while the default path is still unsealed.
        self._use_embedding_storage = flag

    def get_embedding_file_path(self) -> str:
        return os.path.normpath(self._embedding_file_path)

    def set_embedding_file_path(self, path: str) -> str:
        self._ensure_unsealed()
        self._embedding_file_path = path
        return self.get_embedding_file_path()

    def set_user_data_dir(self, provider: UserDataDirProvider) -> None:
        """Replace the host data directory provider before the path is sealed."""
        self._ensure_unsealed()
        self._user_data_dir = provider
