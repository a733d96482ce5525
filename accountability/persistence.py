"""
Persistence collaborator: key/value document stores and the snapshot writer.

The engine only ever writes whole-account snapshots. Writes are
fire-and-forget; a failure is logged and never touches in-memory state.
"""
import asyncio
import copy
import json
import os
from pathlib import Path
from typing import Any, Dict, Optional, Protocol, Set

from accountability.exceptions import PersistenceError
from accountability.logger import get_logger
from accountability.paths import DATA_DIR

logger = get_logger("persistence")


class DocumentStore(Protocol):
    """Async key/value document store."""

    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        ...

    async def set(self, key: str, value: Dict[str, Any]) -> None:
        ...


class MemoryDocumentStore:
    """In-process store; values are deep-copied so callers cannot alias them."""

    def __init__(self, initial: Optional[Dict[str, Dict[str, Any]]] = None):
        self._data: Dict[str, Dict[str, Any]] = copy.deepcopy(initial or {})

    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        value = self._data.get(key)
        return copy.deepcopy(value) if value is not None else None

    async def set(self, key: str, value: Dict[str, Any]) -> None:
        self._data[key] = copy.deepcopy(value)


class JsonFileDocumentStore:
    """One JSON file per key under ``data_dir`` (default: data/)."""

    def __init__(self, data_dir: Optional[Path] = None):
        self.data_dir = data_dir or DATA_DIR

    def _path(self, key: str) -> Path:
        return self.data_dir / f"{key}.json"

    def _read(self, key: str) -> Optional[Dict[str, Any]]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            raise PersistenceError(f"Failed to read {path}: {e}", key=key)

    def _write(self, key: str, value: Dict[str, Any]) -> None:
        path = self._path(key)
        tmp_path = path.with_suffix(".json.tmp")
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(value, f, ensure_ascii=False, indent=2)
            os.replace(tmp_path, path)
        except (OSError, TypeError, ValueError) as e:
            raise PersistenceError(f"Failed to write {path}: {e}", key=key)

    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        return await asyncio.to_thread(self._read, key)

    async def set(self, key: str, value: Dict[str, Any]) -> None:
        await asyncio.to_thread(self._write, key, value)


class SnapshotWriter:
    """
    Fire-and-forget, last-write-wins snapshot writes for one document key.

    Each scheduled write is tagged with an increasing sequence number. Writes
    run one at a time; a write older than the last persisted one is dropped,
    so the most recently scheduled snapshot is what ends up stored.
    """

    def __init__(self, store: DocumentStore, key: str):
        self.store = store
        self.key = key
        self._seq = 0
        self._last_written = 0
        self._lock = asyncio.Lock()
        self._pending: Set[asyncio.Task] = set()

    async def load(self) -> Optional[Dict[str, Any]]:
        try:
            return await self.store.get(self.key)
        except PersistenceError as e:
            logger.warning("Load of '%s' failed: %s", self.key, e.message)
        except Exception:
            logger.exception("Unexpected error loading '%s'", self.key)
        return None

    def schedule(self, document: Dict[str, Any]) -> None:
        self._seq += 1
        seq = self._seq
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No event loop (plain synchronous caller): write inline.
            asyncio.run(self._write(seq, document))
            return
        task = loop.create_task(self._write(seq, document))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _write(self, seq: int, document: Dict[str, Any]) -> None:
        async with self._lock:
            if seq < self._last_written:
                logger.debug("Dropping stale snapshot %s (last written %s)", seq, self._last_written)
                return
            try:
                await self.store.set(self.key, document)
                self._last_written = seq
            except PersistenceError as e:
                logger.warning("Snapshot %s of '%s' not persisted: %s", seq, self.key, e.message)
            except Exception:
                logger.exception("Unexpected error persisting snapshot %s of '%s'", seq, self.key)

    async def flush(self) -> None:
        """Wait for every write scheduled so far."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    @property
    def pending_count(self) -> int:
        return len(self._pending)
