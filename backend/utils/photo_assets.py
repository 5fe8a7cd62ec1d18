import os
import logging
import threading
import time
import uuid
from typing import Optional

from exceptions import InternalError, NotFound, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_EXTENSION = ".jpg"

EXT_TO_CONTENT_TYPE = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
    "heic": "image/heic",
    "heif": "image/heif",
    "svg": "image/svg+xml",
    "bmp": "image/bmp",
}


class PhotoAssetManager:
    """
    Stores photo files for inventory records in one flat directory.

    The directory is shared by both record stores. Files are named either
    ``<id><ext>`` (the default) or ``<epoch-millis>-<original name>`` when
    ``naming`` is ``"timestamp"``.
    """

    def __init__(self, photo_dir: str, naming: str = "id"):
        if naming not in ("id", "timestamp"):
            raise ValueError(f"Unknown photo naming scheme: {naming}")
        self.photo_dir = photo_dir
        self.naming = naming
        self._locks = {}
        self._locks_guard = threading.Lock()

    def ensure_directories(self):
        """Create the photo directory. Raises OSError; startup treats that as fatal."""
        if not os.path.isdir(self.photo_dir):
            os.makedirs(self.photo_dir, exist_ok=True)
            logger.info(f"Created photos directory: {self.photo_dir}")

    def lock_for(self, record_id: int) -> threading.Lock:
        """Per-record lock serialising changes to that record's photo."""
        with self._locks_guard:
            lock = self._locks.get(record_id)
            if lock is None:
                lock = self._locks[record_id] = threading.Lock()
            return lock

    def forget(self, record_id: int):
        """Drop the lock of a deleted record."""
        with self._locks_guard:
            self._locks.pop(record_id, None)

    def filename_for(self, record_id: int, original_filename: str = None) -> str:
        base = os.path.basename((original_filename or "").replace("\\", "/"))
        extension = os.path.splitext(base)[1].lower() or DEFAULT_EXTENSION
        if self.naming == "timestamp":
            stem = os.path.splitext(base)[0] or "photo"
            return f"{int(time.time() * 1000)}-{stem}{extension}"
        return f"{record_id}{extension}"

    def path_for(self, filename: str) -> str:
        if not filename or os.path.basename(filename) != filename or filename in (".", ".."):
            raise ValidationError("Invalid photo filename")
        return os.path.join(self.photo_dir, filename)

    def content_type(self, filename: str) -> str:
        ext = os.path.splitext(filename)[1].lower().lstrip(".")
        return EXT_TO_CONTENT_TYPE.get(ext, "application/octet-stream")

    def store(self, record_id: int, original_filename: str, data: bytes) -> str:
        """Write the photo and return the stored filename. An existing file of that name is overwritten."""
        filename = self.filename_for(record_id, original_filename)
        path = self.path_for(filename)
        try:
            with open(path, "wb") as f:
                f.write(data)
        except OSError as e:
            logger.exception(f"Failed to write photo {filename} for record {record_id}")
            raise InternalError("Photo could not be stored") from e
        logger.info(f"Stored photo {filename} ({len(data)} bytes) for record {record_id}")
        return filename

    def set_aside(self, filename: str) -> Optional[str]:
        """
        Move a photo to a hidden pending name so its removal can still be undone.

        Returns the pending path, or None when there is no such file. Follow up
        with ``discard`` once the record change is committed, or ``restore``
        if it failed.
        """
        if not filename:
            return None
        path = self.path_for(filename)
        pending = os.path.join(self.photo_dir, f".{filename}.{uuid.uuid4().hex}.pending")
        try:
            os.replace(path, pending)
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.exception(f"Failed to set photo {filename} aside")
            raise InternalError("Photo could not be removed") from e
        return pending

    def restore(self, filename: str, pending: Optional[str]):
        if pending is None:
            return
        try:
            os.replace(pending, self.path_for(filename))
        except OSError as e:
            logger.exception(f"Failed to restore photo {filename} from {pending}")
            raise InternalError("Photo could not be restored") from e
        logger.info(f"Restored photo {filename}")

    def discard(self, filename: str, pending: Optional[str]):
        if pending is None:
            return
        try:
            os.remove(pending)
        except FileNotFoundError:
            return
        except OSError as e:
            logger.exception(f"Failed to remove photo {filename}")
            raise InternalError("Photo could not be removed") from e
        logger.info(f"Removed photo {filename}")

    def remove(self, filename: str) -> bool:
        """Delete a photo file. Returns False if it was already gone."""
        if not filename:
            return False
        try:
            os.remove(self.path_for(filename))
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.exception(f"Failed to remove photo {filename}")
            raise InternalError("Photo could not be removed") from e
        logger.info(f"Removed photo {filename}")
        return True

    def read(self, filename: str) -> bytes:
        try:
            with open(self.path_for(filename), "rb") as f:
                return f.read()
        except FileNotFoundError:
            raise NotFound("Photo file not found")
        except ValidationError:
            raise NotFound("Photo file not found")
