from __future__ import annotations

import json
import logging
import os
import tempfile
import time
from pathlib import Path
from typing import Any, Callable, Iterable, Optional, Protocol

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[str]:  # pragma: no cover - interface
        ...

    def set(self, key: str, value: str) -> None:  # pragma: no cover - interface
        ...

    def delete(self, key: str) -> None:  # pragma: no cover - interface
        ...

    def keys(self) -> Iterable[str]:  # pragma: no cover - interface
        ...


class MemoryStore:
    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data)


class JsonFileStore:
    """String key-value store persisted as one JSON object on disk.

    Every write rewrites the whole file through a temp file + rename, so a
    reader never sees a half-written document.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._data = self._load()

    def _load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                raw = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning("cache file %s unreadable, starting empty: %s", self.path, e)
            return {}
        if not isinstance(raw, dict):
            return {}
        return {str(k): str(v) for k, v in raw.items()}

    def _flush(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=self.path.name, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(self._data, f, ensure_ascii=False)
            os.replace(tmp, self.path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value
        self._flush()

    def delete(self, key: str) -> None:
        if self._data.pop(key, None) is not None:
            self._flush()

    def keys(self) -> list[str]:
        return list(self._data)


class TtlCache:
    """Per-category time-boxed cache on top of a KeyValueStore.

    Keys look like ``<namespace>-v<version>-<category>``. Entries written by any
    other version of the same namespace are purged on construction, so bumping
    the version invalidates old payloads without manual cleanup.
    """

    def __init__(
        self,
        store: KeyValueStore,
        ttl_seconds: float = 30 * 60,
        namespace: str = "trending-reads",
        version: int = 1,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._ttl = ttl_seconds
        self._namespace = namespace
        self._version = version
        self._clock = clock
        self.purge_old_versions()

    @property
    def prefix(self) -> str:
        return f"{self._namespace}-v{self._version}-"

    def key(self, category: str) -> str:
        return f"{self.prefix}{category}"

    def purge_old_versions(self) -> int:
        stale = [
            k for k in self._store.keys()
            if k.startswith(f"{self._namespace}-") and not k.startswith(self.prefix)
        ]
        for k in stale:
            self._store.delete(k)
        if stale:
            logger.info("purged %d cache entries from older versions", len(stale))
        return len(stale)

    def _read_entry(self, category: str) -> Optional[dict[str, Any]]:
        raw = self._store.get(self.key(category))
        if not raw:
            return None
        try:
            entry = json.loads(raw)
        except ValueError:
            return None
        if not isinstance(entry, dict) or "data" not in entry:
            return None
        return entry

    def _is_entry_fresh(self, entry: dict[str, Any]) -> bool:
        try:
            ts = float(entry.get("timestamp"))
        except (TypeError, ValueError):
            return False
        return self._clock() - ts < self._ttl

    def get_cached(self, category: str) -> Any:
        """Data if written less than ``ttl`` ago, else None."""
        entry = self._read_entry(category)
        if entry is None or not self._is_entry_fresh(entry):
            return None
        return entry["data"]

    def get_stale(self, category: str) -> Any:
        """Data regardless of age, else None."""
        entry = self._read_entry(category)
        return None if entry is None else entry["data"]

    def set_cache(self, category: str, data: Any) -> None:
        entry = {"data": data, "timestamp": self._clock()}
        self._store.set(self.key(category), json.dumps(entry, ensure_ascii=False))

    def is_fresh(self, category: str) -> bool:
        entry = self._read_entry(category)
        return entry is not None and self._is_entry_fresh(entry)
