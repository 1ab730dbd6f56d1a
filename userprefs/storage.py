"""JSON file storage for preference documents.

Every read and write goes straight to disk; nothing is cached between calls.
I/O failures are never raised from here: reads degrade to an empty document
and writes/deletes report ``False``.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
import threading
import weakref
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple

from .config import NULL

logger = logging.getLogger(__name__)

Callback = Callable[[Optional[BaseException], Any], Any]

EMPTY_DOCUMENT = "{}"


def stringify(value: Any) -> str:
    """Coerce a preference value to the string form it is stored as."""
    if value is None:
        return NULL
    if isinstance(value, str):
        return value
    return str(value)


def encode(document: Dict[str, Any]) -> str:
    return json.dumps(document, ensure_ascii=False, separators=(",", ":"))


class PathLock:
    """Reentrant lock for one preference file."""

    __slots__ = ("_lock", "__weakref__")

    def __init__(self) -> None:
        self._lock = threading.RLock()

    def __enter__(self) -> "PathLock":
        self._lock.acquire()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self._lock.release()


class PathLocks:
    """One in-process lock per preference file, keyed by absolute path.

    Entries are held weakly: a lock lives only as long as someone holds it.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: "weakref.WeakValueDictionary[str, PathLock]" = (
            weakref.WeakValueDictionary()
        )

    def __len__(self) -> int:
        return len(self._locks)

    def lock_for(self, path: str) -> PathLock:
        key = os.path.normcase(os.path.abspath(path))
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = PathLock()
            return lock


class FileStore:
    """Reads, writes and deletes preference documents.

    Public API, each in three calling conventions:

    * :meth:`read` / :meth:`read_async` / :meth:`read_c`
    * :meth:`write` / :meth:`write_async` / :meth:`write_c`
    * :meth:`delete` / :meth:`delete_async` / :meth:`delete_c`

    The ``*_c`` variants run on the store's thread pool, deliver
    ``callback(error, value)`` and return the :class:`~concurrent.futures.Future`
    of the call. The future completes only after the callback has returned.

    Each blocking call holds the file's :class:`PathLock` from :attr:`locks`.
    Callers that read, modify and write back a document hold the same lock
    around the whole sequence. Writes go to a temporary file in the target's
    directory which then replaces the target.
    """

    def __init__(self, max_workers: Optional[int] = None) -> None:
        self._max_workers = max_workers
        self._executor: Optional[ThreadPoolExecutor] = None
        self._executor_lock = threading.Lock()
        self.locks = PathLocks()

    # --------------------------------------------------------------------- #
    # Blocking
    # --------------------------------------------------------------------- #

    def read(self, path: str) -> Dict[str, Any]:
        with self.locks.lock_for(path):
            return self._read(Path(path))

    def write(self, path: str, document: Dict[str, Any]) -> bool:
        target = Path(path)
        payload = encode(document)
        with self.locks.lock_for(path):
            try:
                target.parent.mkdir(parents=True, exist_ok=True)
                self._replace(target, payload)
            except OSError as exc:
                logger.debug("could not write preference file %s: %s", target, exc)
                return False
        return True

    def delete(self, path: str) -> bool:
        with self.locks.lock_for(path):
            try:
                Path(path).unlink()
            except OSError as exc:
                logger.debug("could not delete preference file %s: %s", path, exc)
                return False
        return True

    def _read(self, target: Path) -> Dict[str, Any]:
        try:
            raw = target.read_bytes()
        except FileNotFoundError:
            return self._create(target)
        except OSError as exc:
            logger.debug("could not read preference file %s: %s", target, exc)
            return {}

        try:
            document = json.loads(raw)
        except ValueError:
            document = None
        if not isinstance(document, dict):
            self._discard_corrupt(target)
            return {}
        return document

    @staticmethod
    def _replace(target: Path, payload: str) -> None:
        # The target is swapped in one step, so it is never seen half written.
        fd, temp_name = tempfile.mkstemp(
            prefix=f".{target.name}.", suffix=".tmp", dir=target.parent
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(payload)
            os.replace(temp_name, target)
        except OSError:
            Path(temp_name).unlink(missing_ok=True)
            raise

    def _create(self, target: Path) -> Dict[str, Any]:
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with target.open("x", encoding="utf-8") as fh:
                fh.write(EMPTY_DOCUMENT)
        except FileExistsError:
            # Someone else created it between our read and now.
            pass
        except OSError as exc:
            logger.debug("could not create preference file %s: %s", target, exc)
        return {}

    def _discard_corrupt(self, target: Path) -> None:
        logger.warning("preference file %s is not a JSON object, removing it", target)
        try:
            target.unlink()
        except OSError as exc:
            logger.debug("could not remove corrupt preference file %s: %s", target, exc)

    # --------------------------------------------------------------------- #
    # Awaitable
    # --------------------------------------------------------------------- #

    async def read_async(self, path: str) -> Dict[str, Any]:
        return await asyncio.to_thread(self.read, path)

    async def write_async(self, path: str, document: Dict[str, Any]) -> bool:
        return await asyncio.to_thread(self.write, path, document)

    async def delete_async(self, path: str) -> bool:
        return await asyncio.to_thread(self.delete, path)

    # --------------------------------------------------------------------- #
    # Callback
    # --------------------------------------------------------------------- #

    def read_c(self, path: str, callback: Callback) -> Future:
        return self.submit(self.read, path, callback=callback)

    def write_c(
        self, path: str, document: Dict[str, Any], callback: Callback
    ) -> Future:
        return self.submit(self.write, path, document, callback=callback)

    def delete_c(self, path: str, callback: Callback) -> Future:
        return self.submit(self.delete, path, callback=callback)

    def submit(self, fn: Callable[..., Any], *args: Any, callback: Callback) -> Future:
        """Run ``fn(*args)`` on the pool and report the outcome to ``callback``."""
        return self._get_executor().submit(self._notify, fn, args, callback)

    @staticmethod
    def _notify(
        fn: Callable[..., Any], args: Tuple[Any, ...], callback: Callback
    ) -> Any:
        try:
            value = fn(*args)
        except Exception as exc:
            callback(exc, None)
            raise
        callback(None, value)
        return value

    def _get_executor(self) -> ThreadPoolExecutor:
        with self._executor_lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self._max_workers,
                    thread_name_prefix="userprefs",
                )
            return self._executor

    def close(self) -> None:
        with self._executor_lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=True)
