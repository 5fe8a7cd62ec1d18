"""
JSON-file record store used when the database is unreachable.

Records live in an in-process dict and the whole collection is rewritten to
``inventory.json`` after every mutation. Ids come from this store's own counter
and are unrelated to the database sequence.
"""

import json
import logging
import os
import tempfile
import threading
from typing import Any, Dict, List

from exceptions import BackendUnavailable, NotFound
from models.audit_mixin import next_timestamp, utc_now
from schemas.inventory_items import InventoryItem, InventoryItemCreate, validate_changes, validate_new_item

logger = logging.getLogger(__name__)


class CacheBackend:
    name = "cache"

    def __init__(self, cache_file: str):
        self.cache_file = cache_file
        self._items: Dict[int, InventoryItem] = {}
        self._next_id = 1
        # Guards the read-modify-write-save cycle; handlers run in a thread pool.
        self._lock = threading.RLock()

    @property
    def next_id(self) -> int:
        return self._next_id

    def load(self):
        """Read the cache file into memory. A missing or unreadable file leaves the store empty."""
        with self._lock:
            self._items = {}
            self._next_id = 1
            if not os.path.exists(self.cache_file):
                logger.info(f"No cache file at {self.cache_file}, starting with empty inventory")
                return
            try:
                with open(self.cache_file, "r", encoding="utf-8") as f:
                    data = json.load(f)
                if not isinstance(data, list):
                    raise ValueError("cache file must hold a JSON array")
                items = [InventoryItem.model_validate(entry) for entry in data]
            except (OSError, ValueError) as e:
                logger.error(f"Error loading cache, starting with empty inventory: {e}")
                return
            self._items = {item.id: item for item in items}
            self._next_id = max(self._items, default=0) + 1
            logger.info(f"Loaded {len(self._items)} items from cache")

    def save(self, items: Dict[int, InventoryItem] = None):
        """
        Rewrite the cache file with the full collection.

        Writes a temporary file next to the target and renames it into place, so a
        crash mid-write leaves the previous file intact.
        """
        if items is None:
            items = self._items
        payload = [items[record_id].to_cache_dict() for record_id in sorted(items)]
        directory = os.path.dirname(os.path.abspath(self.cache_file))
        try:
            fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".inventory-", suffix=".json")
        except OSError as e:
            logger.error(f"Error saving cache: {e}")
            raise BackendUnavailable("Cache file could not be written") from e
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2, ensure_ascii=False)
            os.replace(tmp_path, self.cache_file)
        except OSError as e:
            logger.error(f"Error saving cache: {e}")
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise BackendUnavailable("Cache file could not be written") from e

    def _commit(self, items: Dict[int, InventoryItem]):
        # Persist first: in-memory state only changes once the file is on disk.
        self.save(items)
        self._items = items

    def _get(self, record_id: int) -> InventoryItem:
        item = self._items.get(record_id)
        if item is None:
            raise NotFound(f"Device with id {record_id} not found")
        return item

    def create(self, item: InventoryItemCreate) -> InventoryItem:
        fields = validate_new_item(item)
        with self._lock:
            now = utc_now()
            new_item = InventoryItem(id=self._next_id, created_at=now, updated_at=now, **fields)
            items = dict(self._items)
            items[new_item.id] = new_item
            self._commit(items)
            self._next_id += 1
        return new_item

    def list_items(self) -> List[InventoryItem]:
        with self._lock:
            return [self._items[record_id] for record_id in sorted(self._items)]

    def get_by_id(self, record_id: int) -> InventoryItem:
        with self._lock:
            return self._get(record_id)

    def update(self, record_id: int, changes: Dict[str, Any]) -> InventoryItem:
        update_data = validate_changes(changes)
        with self._lock:
            current = self._get(record_id)
            update_data["updated_at"] = next_timestamp(current.updated_at)
            updated = current.model_copy(update=update_data)
            items = dict(self._items)
            items[record_id] = updated
            self._commit(items)
        return updated

    def delete(self, record_id: int) -> InventoryItem:
        with self._lock:
            deleted = self._get(record_id)
            items = dict(self._items)
            del items[record_id]
            self._commit(items)
        return deleted

    def search(self, record_id: int, has_photo: bool = False) -> InventoryItem:
        item = self.get_by_id(record_id)
        return item.with_photo_reference() if has_photo else item
