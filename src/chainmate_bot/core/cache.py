from __future__ import annotations

import hashlib
import json
import time
from pathlib import Path
from typing import Any


class JsonDiskCache:
    """
    TTL cache for explorer responses, one JSON file per key:

      <root>/<sha256(namespace:key)>.json -> {"expires_at": float | null, "value": ...}

    Unreadable or expired entries behave like a miss and are removed.
    """

    def __init__(self, root_dir: Path, namespace: str = ""):
        self.root_dir = root_dir
        self.namespace = namespace
        self.root_dir.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        full = f"{self.namespace}:{key}" if self.namespace else key
        return self.root_dir / f"{hashlib.sha256(full.encode('utf-8')).hexdigest()}.json"

    def _drop(self, path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError:
            pass

    def get(self, key: str) -> Any | None:
        path = self._path(key)
        if not path.exists():
            return None

        try:
            entry = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            self._drop(path)
            return None

        if not isinstance(entry, dict):
            self._drop(path)
            return None

        expires_at = entry.get("expires_at")
        if expires_at is not None and time.time() >= float(expires_at):
            self._drop(path)
            return None
        return entry.get("value")

    def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> None:
        path = self._path(key)
        expires_at = None if ttl_seconds is None else time.time() + ttl_seconds
        tmp = path.with_suffix(".json.tmp")
        tmp.write_text(
            json.dumps({"expires_at": expires_at, "value": value}, ensure_ascii=False),
            encoding="utf-8",
        )
        tmp.replace(path)

    def delete(self, key: str) -> None:
        self._drop(self._path(key))
