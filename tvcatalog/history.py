"""
Recently accessed channels.

Deutsch:
    Zuletzt aufgerufene Sender, optional in einer JSON-Datei gespeichert.
"""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional

log = logging.getLogger(__name__)

DEFAULT_CAPACITY = 12


class AccessHistory:
    """
    Bounded, deduplicated list of fingerprints, most recent first.

    Deutsch:
        Begrenzte Liste ohne Duplikate, neuester Eintrag zuerst.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY, path: Optional[Path] = None) -> None:
        if capacity < 1:
            raise ValueError("history capacity must be positive")
        self.capacity = capacity
        self.path = Path(path) if path else None
        self._items: List[str] = []
        self._lock = threading.Lock()
        if self.path:
            self._items = _load_history(self.path)[: self.capacity]

    def touch(self, fingerprint: str) -> None:
        with self._lock:
            items = [item for item in self._items if item != fingerprint]
            items.insert(0, fingerprint)
            self._items = items[: self.capacity]
            snapshot = list(self._items)
            if self.path:
                _write_history(self.path, snapshot, self.capacity)

    def list(self) -> List[str]:
        with self._lock:
            return list(self._items)

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)


def _load_history(path: Path) -> List[str]:
    if not path.exists():
        return []
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        log.warning("ignoring unreadable history file %s: %s", path, exc)
        return []
    items = payload.get("history") if isinstance(payload, dict) else None
    if not isinstance(items, list):
        log.warning("ignoring malformed history file %s", path)
        return []
    result: List[str] = []
    for item in items:
        if isinstance(item, str) and item and item not in result:
            result.append(item)
    return result


def _write_history(path: Path, items: List[str], capacity: int) -> None:
    payload: Dict[str, Any] = {"capacity": capacity, "history": items}
    try:
        _write_json_atomic(path, payload)
    except OSError as exc:
        log.warning("failed to persist history to %s: %s", path, exc)


def _write_json_atomic(path: Path, payload: Dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    tmp_path.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
    tmp_path.replace(path)
