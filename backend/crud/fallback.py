"""
Routing between the relational store and the JSON cache store.

Every operation is decided fresh: it runs against the relational store first and,
only if that store raises BackendUnavailable, the identical operation is retried
against the cache store. Results served by the cache are marked degraded.
Multi-step writes only fall back on their first step; the remaining steps stay
on the backend that served it.
ValidationError and NotFound from the relational store propagate unchanged.

The two stores keep independent id sequences and are never reconciled; a record
written to the cache during an outage stays in the cache once the database is back.
"""

import logging
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, Optional

from exceptions import BackendUnavailable, InventoryError, NotFound
from schemas.inventory_items import InventoryItemCreate
from utils.photo_assets import PhotoAssetManager

logger = logging.getLogger(__name__)

DEGRADED_READ_MESSAGE = "Using cached data (database unavailable)"
DEGRADED_WRITE_MESSAGE = "Saved to cache (database unavailable)"


@dataclass
class PhotoUpload:
    filename: str
    data: bytes


@dataclass
class StoreResult:
    data: Any
    source: str
    degraded: bool = False
    message: Optional[str] = None


class FallbackRouter:
    def __init__(self, primary, fallback, photos: PhotoAssetManager):
        self.primary = primary
        self.fallback = fallback
        self.photos = photos

    def _run(self, operation: str, action: Callable[[Any], Any], degraded_message: str) -> StoreResult:
        try:
            return StoreResult(data=action(self.primary), source=self.primary.name)
        except BackendUnavailable as e:
            logger.warning(
                f"{operation}: {self.primary.name} unavailable ({e.message}), falling back to {self.fallback.name}"
            )

        try:
            data = action(self.fallback)
        except InventoryError as e:
            e.degraded = True
            raise
        return StoreResult(data=data, source=self.fallback.name, degraded=True, message=degraded_message)

    def _backend_for(self, result: StoreResult):
        """The backend that served ``result``. Follow-up steps stay on it and never fall back."""
        return self.primary if result.source == self.primary.name else self.fallback

    @staticmethod
    def _mark(error: Exception, result: StoreResult):
        if isinstance(error, InventoryError):
            error.degraded = result.degraded

    def _undo_register(self, backend, record_id: int, filename: Optional[str]):
        """Best-effort removal of a record whose photo step failed, and of its photo file."""
        try:
            backend.delete(record_id)
        except InventoryError as e:
            logger.error(f"register: could not remove record {record_id} from {backend.name}: {e.message}")
        try:
            self.photos.remove(filename)
        except InventoryError as e:
            logger.error(f"register: could not remove photo {filename}: {e.message}")

    def register(self, item: InventoryItemCreate, photo: Optional[PhotoUpload] = None) -> StoreResult:
        """
        Create a record and, when a photo is given, store it under a name derived from the new id.

        Only the create falls back. The photo steps run on the backend that created the
        record; if one of them fails the record and its file are removed again and the
        error is raised.
        """
        created = self._run("register", lambda backend: backend.create(item), DEGRADED_WRITE_MESSAGE)
        if photo is None:
            return created

        backend = self._backend_for(created)
        record_id = created.data.id
        filename = None
        with self.photos.lock_for(record_id):
            try:
                filename = self.photos.store(record_id, photo.filename, photo.data)
                record = backend.update(record_id, {"photo_filename": filename})
            except Exception as e:
                logger.error(f"register: photo step failed for record {record_id} in {backend.name}, rolling back")
                self._undo_register(backend, record_id, filename)
                self.photos.forget(record_id)
                self._mark(e, created)
                raise
        return replace(created, data=record)

    def list_items(self) -> StoreResult:
        return self._run("list", lambda backend: backend.list_items(), DEGRADED_READ_MESSAGE)

    def get(self, record_id: int) -> StoreResult:
        return self._run("get", lambda backend: backend.get_by_id(record_id), DEGRADED_READ_MESSAGE)

    def search(self, record_id: int, has_photo: bool = False) -> StoreResult:
        return self._run(
            "search", lambda backend: backend.search(record_id, has_photo=has_photo), DEGRADED_READ_MESSAGE
        )

    def update(self, record_id: int, changes: Dict[str, Any]) -> StoreResult:
        return self._run("update", lambda backend: backend.update(record_id, changes), DEGRADED_WRITE_MESSAGE)

    def delete(self, record_id: int) -> StoreResult:
        """
        Delete a record and its photo file.

        The lookup falls back; the delete itself runs on the backend that holds the
        record. The photo is set aside first and put back if the delete fails.
        """
        found = self._run("delete", lambda backend: backend.get_by_id(record_id), DEGRADED_WRITE_MESSAGE)
        backend = self._backend_for(found)
        filename = found.data.photo_filename

        with self.photos.lock_for(record_id):
            pending = self.photos.set_aside(filename)
            try:
                record = backend.delete(record_id)
            except Exception as e:
                self.photos.restore(filename, pending)
                self._mark(e, found)
                raise
            self.photos.discard(filename, pending)
        self.photos.forget(record_id)
        return replace(found, data=record)

    def get_photo(self, record_id: int) -> StoreResult:
        """Return ``(filename, bytes)`` for the record's photo."""
        def action(backend):
            record = backend.get_by_id(record_id)
            if not record.photo_filename:
                raise NotFound("No photo for this device")
            return record.photo_filename, self.photos.read(record.photo_filename)

        return self._run("get_photo", action, DEGRADED_READ_MESSAGE)

    def replace_photo(self, record_id: int, photo: PhotoUpload) -> StoreResult:
        """Swap a record's photo. The old file comes back if the record update fails."""
        found = self._run("replace_photo", lambda backend: backend.get_by_id(record_id), DEGRADED_WRITE_MESSAGE)
        backend = self._backend_for(found)
        old_filename = found.data.photo_filename

        with self.photos.lock_for(record_id):
            pending = self.photos.set_aside(old_filename)
            filename = None
            try:
                filename = self.photos.store(record_id, photo.filename, photo.data)
                record = backend.update(record_id, {"photo_filename": filename})
            except Exception as e:
                try:
                    self.photos.remove(filename)
                except InventoryError as cleanup_error:
                    logger.error(f"replace_photo: could not remove new photo {filename}: {cleanup_error.message}")
                self.photos.restore(old_filename, pending)
                self._mark(e, found)
                raise
            self.photos.discard(old_filename, pending)
        return replace(found, data=record)
