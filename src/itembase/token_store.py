"""Token stores backing TokenHandlers.loader / TokenHandlers.saver.

- MemoryTokenStore: process-local dict, thread-safe
- FileTokenStore: one JSON object ``{user_id: token}`` on disk

FileTokenStore holds an exclusive fcntl.flock for every load and save and
rewrites the file in place while holding it, so concurrent threads and
processes sharing the file see whole records only. File permissions: 0700
directory (when the store creates it), 0600 file.
"""

import fcntl
import json
import logging
import os
import threading
import time
from pathlib import Path
from typing import Optional

from .errors import ItembaseDecodeError
from .models import Token
from .oauth import PermissionHandler
from .tokens import TokenHandlers

__all__ = [
    "LOCK_TIMEOUT_SECONDS",
    "FileTokenStore",
    "LockTimeoutError",
    "MemoryTokenStore",
]

logger = logging.getLogger("itembase.token_store")

LOCK_TIMEOUT_SECONDS = 5.0


class LockTimeoutError(Exception):
    """Raised when the token file lock cannot be acquired in time."""


def _acquire_lock_with_timeout(fd: int, timeout_seconds: float = LOCK_TIMEOUT_SECONDS) -> bool:
    """Acquire an exclusive lock, retrying every 100ms until the timeout.

    Returns:
        bool: True if lock acquired, False on timeout
    """
    start = time.monotonic()
    while True:
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
            return True
        except BlockingIOError:
            elapsed = time.monotonic() - start
            if elapsed >= timeout_seconds:
                logger.warning(
                    "token_store_lock_timeout",
                    extra={"timeout_seconds": timeout_seconds, "elapsed": round(elapsed, 2)},
                )
                return False
            time.sleep(0.1)


class MemoryTokenStore:
    """In-memory token store. Tokens are lost when the process exits."""

    def __init__(self):
        self._tokens: dict[str, Token] = {}
        self._lock = threading.Lock()

    def load(self, user_id: str) -> Optional[Token]:
        with self._lock:
            return self._tokens.get(user_id)

    def save(self, user_id: str, token: Token) -> None:
        with self._lock:
            self._tokens[user_id] = token

    def handlers(self, permissions: Optional[PermissionHandler] = None) -> TokenHandlers:
        return TokenHandlers(loader=self.load, saver=self.save, permissions=permissions)


class _LockedTokenFile:
    """Context manager yielding (records, write_fn) under an exclusive lock.

    Example:
        with _LockedTokenFile(path) as (records, write):
            records["user"] = token.to_dict()
            write(records)
    """

    def __init__(self, path: Path, timeout_seconds: float):
        self.path = path
        self.timeout_seconds = timeout_seconds
        self.file = None

    def __enter__(self):
        if not self.path.exists():
            self.path.touch()
            os.chmod(self.path, 0o600)

        self.file = open(self.path, "r+")
        if not _acquire_lock_with_timeout(self.file.fileno(), self.timeout_seconds):
            self.file.close()
            self.file = None
            raise LockTimeoutError(
                f"Failed to acquire lock on {self.path} within {self.timeout_seconds}s"
            )

        content = self.file.read()
        records: dict = {}
        if content.strip():
            try:
                records = json.loads(content)
            except json.JSONDecodeError as e:
                logger.error("token_store_corrupt", extra={"path": str(self.path), "error": str(e)})
                self.__exit__(None, None, None)
                raise ItembaseDecodeError(f"token file {self.path} is not valid JSON") from e
        return records, self._write

    def _write(self, records: dict) -> None:
        self.file.seek(0)
        self.file.truncate()
        self.file.write(json.dumps(records, indent=2, sort_keys=True))
        self.file.flush()
        os.fsync(self.file.fileno())

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.file:
            fcntl.flock(self.file.fileno(), fcntl.LOCK_UN)
            self.file.close()
            self.file = None


class FileTokenStore:
    """JSON file token store, safe across threads and processes.

    Example:
        store = FileTokenStore("~/.itembase/tokens.json")
        client = ItembaseClient(config, handlers=store.handlers(my_handler))
    """

    def __init__(self, path, lock_timeout: float = LOCK_TIMEOUT_SECONDS):
        self.path = Path(os.path.expanduser(str(path)))
        self.lock_timeout = lock_timeout
        # Existing directories keep their mode
        if not self.path.parent.exists():
            self.path.parent.mkdir(parents=True, exist_ok=True)
            os.chmod(self.path.parent, 0o700)

    def load(self, user_id: str) -> Optional[Token]:
        """Return the stored token for ``user_id``, or None.

        Raises:
            ItembaseDecodeError: The stored record is not a token.
            LockTimeoutError: The file stayed locked past the timeout.
        """
        with _LockedTokenFile(self.path, self.lock_timeout) as (records, _write):
            record = records.get(user_id)
        if record is None:
            return None
        return Token.from_dict(record)

    def save(self, user_id: str, token: Token) -> None:
        with _LockedTokenFile(self.path, self.lock_timeout) as (records, write):
            records[user_id] = token.to_dict()
            write(records)
        logger.debug("token_store_saved", extra={"user_id": user_id, "path": str(self.path)})

    def delete(self, user_id: str) -> bool:
        """Remove a user's token. Returns True if one was stored."""
        with _LockedTokenFile(self.path, self.lock_timeout) as (records, write):
            if user_id not in records:
                return False
            del records[user_id]
            write(records)
        return True

    def handlers(self, permissions: Optional[PermissionHandler] = None) -> TokenHandlers:
        return TokenHandlers(loader=self.load, saver=self.save, permissions=permissions)
