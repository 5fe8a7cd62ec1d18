from fastapi import APIRouter, Depends, File, Form, Request, UploadFile, status
from fastapi.responses import Response
from pydantic import ValidationError as PydanticValidationError
from typing import List, Optional
import logging

from config import Settings
from crud.fallback import FallbackRouter, PhotoUpload, StoreResult
from exceptions import ValidationError
from schemas.inventory_items import (
    InventoryItemCreate,
    InventoryItemResponse,
    InventoryItemUpdate,
    InventoryListResponse,
    MessageResponse,
    PhotoUpdateResponse,
)

router = APIRouter(tags=["Inventory"])
logger = logging.getLogger("inventory_items")

FORM_CONTENT_TYPES = ("multipart/form-data", "application/x-www-form-urlencoded")
TRUE_VALUES = ("true", "1", "yes", "on")


def get_inventory_store(request: Request) -> FallbackRouter:
    return request.app.state.inventory_store


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def _require_content_type(request: Request, allowed=FORM_CONTENT_TYPES):
    content_type = request.headers.get("content-type", "").lower()
    if not content_type.startswith(allowed):
        raise ValidationError(f"Expected {' or '.join(allowed)}")


def _read_photo(photo: Optional[UploadFile], settings: Settings) -> Optional[PhotoUpload]:
    """Read an uploaded photo. An empty file field counts as no photo."""
    if photo is None or not photo.filename:
        return None
    data = photo.file.read()
    if not data:
        return None
    if len(data) > settings.max_photo_bytes:
        raise ValidationError(f"Photo must be smaller than {settings.max_photo_bytes} bytes")
    return PhotoUpload(filename=photo.filename, data=data)


def _item_response(result: StoreResult, message: str) -> InventoryItemResponse:
    return InventoryItemResponse(
        data=result.data,
        message=result.message or message,
        degraded=result.degraded,
        source=result.source,
    )


@router.post("/register", response_model=InventoryItemResponse, status_code=status.HTTP_201_CREATED)
def register_device(
    request: Request,
    name: Optional[str] = Form(None),
    inventory_name: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    price: Optional[str] = Form(None),
    stock_quantity: Optional[str] = Form(None),
    photo: Optional[UploadFile] = File(None),
    store: FallbackRouter = Depends(get_inventory_store),
    settings: Settings = Depends(get_settings),
):
    """Register a new device from a form, optionally with a photo."""
    _require_content_type(request)
    try:
        item = InventoryItemCreate(
            name=name or inventory_name or "",
            description=description or "",
            price=price or 0,
            stock_quantity=stock_quantity or 0,
        )
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid field value: {e.errors()[0]['loc'][-1]}")

    result = store.register(item, photo=_read_photo(photo, settings))
    logger.info(f"Device '{result.data.name}' (ID: {result.data.id}) registered in {result.source}")
    return _item_response(result, "Device registered successfully")


@router.get("/inventory", response_model=InventoryListResponse)
def read_inventory(store: FallbackRouter = Depends(get_inventory_store)):
    """Retrieve every registered device ordered by id."""
    result = store.list_items()
    return InventoryListResponse(
        count=len(result.data),
        data=result.data,
        message=result.message,
        degraded=result.degraded,
        source=result.source,
    )


@router.get("/products", response_model=List[dict])
def read_products_raw(store: FallbackRouter = Depends(get_inventory_store)):
    """Raw rows of the products table. Database only, no cache fallback."""
    return [item.to_cache_dict() for item in store.primary.list_items()]


@router.get("/inventory/{item_id}", response_model=InventoryItemResponse)
def read_inventory_item(item_id: int, store: FallbackRouter = Depends(get_inventory_store)):
    return _item_response(store.get(item_id), "Device found")


@router.put("/inventory/{item_id}", response_model=InventoryItemResponse)
def update_inventory_item(
    item_id: int,
    item: InventoryItemUpdate,
    store: FallbackRouter = Depends(get_inventory_store),
):
    """Update any subset of name, description, price and stock quantity."""
    result = store.update(item_id, item.model_dump(exclude_unset=True))
    logger.info(f"Device ID {item_id} updated in {result.source}")
    return _item_response(result, "Device updated successfully")


@router.delete("/inventory/{item_id}", response_model=MessageResponse)
def delete_inventory_item(item_id: int, store: FallbackRouter = Depends(get_inventory_store)):
    """Delete a device and its photo file."""
    result = store.delete(item_id)
    logger.info(f"Device '{result.data.name}' (ID: {item_id}) deleted from {result.source}")
    return MessageResponse(
        message=result.message or "Device deleted successfully",
        degraded=result.degraded,
        source=result.source,
    )


@router.get("/inventory/{item_id}/photo", response_class=Response)
def read_inventory_photo(item_id: int, store: FallbackRouter = Depends(get_inventory_store)):
    result = store.get_photo(item_id)
    filename, data = result.data
    return Response(
        content=data,
        media_type=store.photos.content_type(filename),
        headers={"X-Inventory-Source": result.source, "X-Degraded": str(result.degraded).lower()},
    )


@router.put("/inventory/{item_id}/photo", response_model=PhotoUpdateResponse)
def replace_inventory_photo(
    item_id: int,
    request: Request,
    photo: Optional[UploadFile] = File(None),
    store: FallbackRouter = Depends(get_inventory_store),
    settings: Settings = Depends(get_settings),
):
    """Replace a device's photo. The old file is deleted first."""
    _require_content_type(request, allowed=("multipart/form-data",))
    upload = _read_photo(photo, settings)
    if upload is None:
        raise ValidationError("Photo not provided")

    result = store.replace_photo(item_id, upload)
    logger.info(f"Photo for device ID {item_id} replaced with {result.data.photo_filename} in {result.source}")
    return PhotoUpdateResponse(
        message=result.message or "Photo updated successfully",
        photo_url=result.data.photo_url,
        degraded=result.degraded,
        source=result.source,
    )


@router.post("/search", response_model=InventoryItemResponse)
def search_device(
    id: Optional[str] = Form(None),
    has_photo: Optional[str] = Form(None),
    store: FallbackRouter = Depends(get_inventory_store),
):
    """Look a device up by id; with has_photo=true its description carries the photo reference."""
    try:
        item_id = int(str(id).strip())
    except (TypeError, ValueError):
        item_id = 0
    if item_id <= 0:
        raise ValidationError("ID is required")

    with_photo = (has_photo or "").strip().lower() in TRUE_VALUES
    return _item_response(store.search(item_id, has_photo=with_photo), "Device found")
