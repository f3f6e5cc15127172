"""Optional cache of rendered digests keyed by snapshot fingerprint."""

from __future__ import annotations

import json
import threading
from pathlib import Path
from typing import Dict, Optional

from ..logging import get_logger
from ..models import utc_now

logger = get_logger("stores.digest_cache")

_CACHE_VERSION = 1


class DigestCache:
    """Stores rendered digests keyed by snapshot fingerprint and render settings.

    Entries are an optimisation only: a miss always falls back to assembling
    the digest from the snapshot, and a corrupt cache file is ignored.
    """

    def __init__(self, path: Path | None = None, *, max_entries: int = 64) -> None:
        self._path = path
        self._max_entries = max_entries
        self._entries: Dict[str, Dict[str, str]] = {}
        self._dirty = False
        self._lock = threading.Lock()
        if self._path is not None:
            self._load(self._path)

    def get(self, fingerprint: str, *, signature: str) -> Optional[str]:
        with self._lock:
            entry = self._entries.get(fingerprint)
        if not entry or entry.get("signature") != signature:
            return None
        document = entry.get("document")
        return document if isinstance(document, str) else None

    def store(self, fingerprint: str, *, signature: str, document: str) -> None:
        with self._lock:
            self._entries.pop(fingerprint, None)
            self._entries[fingerprint] = {
                "signature": signature,
                "document": document,
                "updated_at": utc_now(),
            }
            while len(self._entries) > self._max_entries:
                oldest = next(iter(self._entries))
                self._entries.pop(oldest)
            self._dirty = True

    def __len__(self) -> int:
        return len(self._entries)

    def persist(self) -> None:
        if not self._dirty or self._path is None:
            return
        with self._lock:
            payload = {"version": _CACHE_VERSION, "entries": dict(self._entries)}
            self._dirty = False
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._dirty = True

    # ------------------------------------------------------------------
    # Internal helpers

    def _load(self, path: Path) -> None:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return
        except (OSError, json.JSONDecodeError) as exc:
            logger.debug("Ignoring unreadable digest cache %s: %s", path, exc)
            return
        if not isinstance(data, dict) or data.get("version") != _CACHE_VERSION:
            return
        entries = data.get("entries")
        if not isinstance(entries, dict):
            return
        self._entries = {
            key: raw
            for key, raw in entries.items()
            if isinstance(key, str)
            and isinstance(raw, dict)
            and isinstance(raw.get("signature"), str)
            and isinstance(raw.get("document"), str)
        }


__all__ = ["DigestCache"]
