"""Error kinds shared by both record stores, the photo manager and the HTTP layer."""

from fastapi import status


class InventoryError(Exception):
    code = "internal_error"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Internal server error"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        # Set by the fallback router when the failure came from the cache backend.
        self.degraded = False
        super().__init__(self.message)


class ValidationError(InventoryError):
    """Bad or missing client input. Never triggers a fallback."""
    code = "validation_error"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request"


class NotFound(InventoryError):
    code = "not_found"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Device not found"


class BackendUnavailable(InventoryError):
    """Infrastructure failure of a record store. The fallback router retries on the cache."""
    code = "backend_unavailable"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = "Storage backend unavailable"


class InternalError(InventoryError):
    pass
