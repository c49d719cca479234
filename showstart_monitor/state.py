"""
Durable record of which activities have already been notified.
"""
import json
import logging
import os
import threading
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterable, Iterator, Optional, Set, Tuple

from .exceptions import StateError
from .models import DEFAULT_STATE_DIR

logger = logging.getLogger(__name__)

SEEN_FILE = "seen_events.json"
TIMED_FILE = "timed_purchase.json"
INITIALIZED_FILE = "initialized.flag"


class ReadWriteLock:
    """Many concurrent readers or a single writer."""

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if not self._readers:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._readers:
                self._cond.wait()
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class DeduplicationStore:
    """Tracks "seen" and "timed" activity ids plus the bootstrap flag.

    Every mutation is persisted before it returns. Membership checks take the
    shared side of the lock, mutations the exclusive side, so the store can be
    used from several threads at once. Two processes sharing one state
    directory are not coordinated.

    Raises:
        StateError: if the state directory cannot be created or a state file
            is not a JSON array.
    """

    def __init__(self, state_dir: Optional[str] = None):
        self.state_dir = Path(state_dir or DEFAULT_STATE_DIR)
        try:
            self.state_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StateError(f"Could not create state directory {self.state_dir}: {e}") from e
        if not os.access(self.state_dir, os.W_OK):
            raise StateError(f"State directory {self.state_dir} is not writable")

        self.seen_path = self.state_dir / SEEN_FILE
        self.timed_path = self.state_dir / TIMED_FILE
        self.initialized_path = self.state_dir / INITIALIZED_FILE

        self._lock = ReadWriteLock()
        self._seen = self._read_ids(self.seen_path)
        self._timed = self._read_ids(self.timed_path)
        self._initialized = self.initialized_path.exists()

        logger.debug(
            f"Loaded state from {self.state_dir}: {len(self._seen)} seen, "
            f"{len(self._timed)} timed, initialized={self._initialized}"
        )

    def is_initialized(self) -> bool:
        with self._lock.read():
            return self._initialized

    def mark_initialized(self) -> None:
        with self._lock.write():
            if self._initialized:
                return
            try:
                self.initialized_path.write_text(datetime.now().astimezone().isoformat(), encoding="utf-8")
            except OSError as e:
                logger.error(f"Failed to write initialization flag {self.initialized_path}: {e}")
                return
            self._initialized = True

    def has_seen(self, activity_id: str) -> bool:
        with self._lock.read():
            return activity_id in self._seen

    def has_timed(self, activity_id: str) -> bool:
        with self._lock.read():
            return activity_id in self._timed

    def mark_seen(self, activity_id: str) -> None:
        self.batch_mark([activity_id], [])

    def mark_timed(self, activity_id: str) -> None:
        self.batch_mark([], [activity_id])

    def batch_mark(self, seen_ids: Iterable[str], timed_ids: Iterable[str]) -> None:
        """Add ids to both sets and persist once. Empty ids are ignored."""
        with self._lock.write():
            self._seen.update(i for i in seen_ids if i)
            self._timed.update(i for i in timed_ids if i)
            self._persist()

    def snapshot(self) -> Tuple[Set[str], Set[str]]:
        """Copies of the seen and timed sets."""
        with self._lock.read():
            return set(self._seen), set(self._timed)

    def _persist(self) -> None:
        for path, ids in ((self.seen_path, self._seen), (self.timed_path, self._timed)):
            try:
                self._write_ids(path, ids)
            except OSError as e:
                logger.error(f"Failed to persist state to {path}: {e}")

    @staticmethod
    def _read_ids(path: Path) -> Set[str]:
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return set()
        except OSError as e:
            raise StateError(f"Could not read state file {path}: {e}") from e

        try:
            data = json.loads(raw)
        except ValueError as e:
            raise StateError(f"Malformed state file {path}: {e}") from e
        if not isinstance(data, list):
            raise StateError(f"Malformed state file {path}: expected a JSON array")
        return {str(item) for item in data}

    @staticmethod
    def _write_ids(path: Path, ids: Set[str]) -> None:
        tmp_path = path.with_name(path.name + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(sorted(ids), f, ensure_ascii=False, indent=2)
        os.replace(tmp_path, path)
