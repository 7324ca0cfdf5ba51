"""
Key-value record storage for profiles and templates.

Each collection is kept in memory and, when a base directory is given,
mirrored to `records/<collection>.json` after every write. Ids are
auto-assigned integers. Callers can subscribe to a collection and receive
the current snapshot immediately plus a fresh snapshot after each mutation.
"""

from __future__ import annotations

import copy
import json
import logging
from pathlib import Path
from typing import Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

PROFILES = "profiles"
TEMPLATES = "templates"

Snapshot = List[Dict]
Listener = Callable[[Snapshot], None]


class Subscription:
    """Handle returned by `RecordStore.subscribe`."""

    def __init__(self, store: "RecordStore", collection: str, listener: Listener):
        self._store = store
        self.collection = collection
        self.listener = listener
        self.active = True

    def unsubscribe(self) -> None:
        if self.active:
            self._store._remove_listener(self.collection, self.listener)
            self.active = False


class RecordStore:
    def __init__(self, base_dir: Optional[Path] = None):
        self.base_dir = Path(base_dir) if base_dir else None
        self.records_dir: Optional[Path] = None
        if self.base_dir is not None:
            self.records_dir = self.base_dir / "records"
            self.records_dir.mkdir(parents=True, exist_ok=True)

        self._collections: Dict[str, Dict] = {}
        self._listeners: Dict[str, List[Listener]] = {}

    # ------------------------------------------------------------------
    # Point operations
    # ------------------------------------------------------------------
    def add(self, collection: str, record: Dict) -> int:
        data = self._load(collection)
        record_id = data["next_id"]
        data["next_id"] = record_id + 1
        stored = copy.deepcopy(record)
        stored["id"] = record_id
        data["records"][record_id] = stored
        self._commit(collection)
        return record_id

    def get(self, collection: str, record_id: int) -> Optional[Dict]:
        record = self._load(collection)["records"].get(record_id)
        return copy.deepcopy(record) if record is not None else None

    def update(self, collection: str, record_id: int, changes: Dict) -> bool:
        record = self._load(collection)["records"].get(record_id)
        if record is None:
            return False
        record.update(copy.deepcopy(changes))
        record["id"] = record_id
        self._commit(collection)
        return True

    def delete(self, collection: str, record_id: int) -> bool:
        records = self._load(collection)["records"]
        if record_id not in records:
            return False
        del records[record_id]
        self._commit(collection)
        return True

    def all(self, collection: str) -> Snapshot:
        records = self._load(collection)["records"]
        return [copy.deepcopy(records[key]) for key in sorted(records)]

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------
    def subscribe(self, collection: str, listener: Listener) -> Subscription:
        self._listeners.setdefault(collection, []).append(listener)
        listener(self.all(collection))
        return Subscription(self, collection, listener)

    def _remove_listener(self, collection: str, listener: Listener) -> None:
        listeners = self._listeners.get(collection, [])
        if listener in listeners:
            listeners.remove(listener)

    def _notify(self, collection: str) -> None:
        listeners = list(self._listeners.get(collection, []))
        if not listeners:
            return
        snapshot = self.all(collection)
        for listener in listeners:
            try:
                listener(copy.deepcopy(snapshot))
            except Exception:
                logger.exception("Listener on '%s' failed", collection)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _collection_file(self, collection: str) -> Optional[Path]:
        if self.records_dir is None:
            return None
        return self.records_dir / f"{collection}.json"

    def _load(self, collection: str) -> Dict:
        data = self._collections.get(collection)
        if data is not None:
            return data

        data = {"next_id": 1, "records": {}}
        path = self._collection_file(collection)
        if path is not None and path.exists():
            try:
                with path.open("r", encoding="utf-8") as f:
                    raw = json.load(f)
            except json.JSONDecodeError as exc:
                raise ValueError(f"Invalid record store JSON: {path}") from exc
            data["next_id"] = int(raw.get("next_id", 1))
            data["records"] = {int(key): value for key, value in raw.get("records", {}).items()}
            logger.debug("Loaded %d records from %s", len(data["records"]), path)

        self._collections[collection] = data
        return data

    def _commit(self, collection: str) -> None:
        path = self._collection_file(collection)
        if path is not None:
            data = self._collections[collection]
            payload = {
                "next_id": data["next_id"],
                "records": {str(key): data["records"][key] for key in sorted(data["records"])},
            }
            temp_path = path.with_suffix(".json.tmp")
            with temp_path.open("w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2)
            temp_path.replace(path)
        self._notify(collection)
