from pydantic import BaseModel, ConfigDict, Field, AliasChoices, computed_field
from typing import Any, Dict, List, Optional
from decimal import Decimal, InvalidOperation
from datetime import datetime

from exceptions import ValidationError

# Fields a client (or the photo manager) may change after creation.
MUTABLE_FIELDS = ("name", "description", "price", "stock_quantity", "photo_filename")


def photo_url_for(record_id: int, photo_filename: Optional[str]) -> Optional[str]:
    if not photo_filename:
        return None
    return f"/inventory/{record_id}/photo"


class InventoryItemBase(BaseModel):
    name: str = ""
    description: Optional[str] = ""
    price: Decimal = Decimal("0")
    stock_quantity: int = 0


class InventoryItemCreate(InventoryItemBase):
    photo_filename: Optional[str] = None


class InventoryItemUpdate(BaseModel):
    """Partial update body. Only fields present in the request are applied."""
    name: Optional[str] = Field(None, validation_alias=AliasChoices("name", "inventory_name"))
    description: Optional[str] = None
    price: Optional[Decimal] = Field(None, ge=0)
    stock_quantity: Optional[int] = Field(None, ge=0)


class InventoryItem(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: int
    # Older cache files written by the cache-only service used "inventory_name".
    name: str = Field(validation_alias=AliasChoices("name", "inventory_name"))
    description: Optional[str] = ""
    price: Optional[Decimal] = None
    stock_quantity: Optional[int] = None
    photo_filename: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @computed_field
    @property
    def photo_url(self) -> Optional[str]:
        return photo_url_for(self.id, self.photo_filename)

    def with_photo_reference(self) -> "InventoryItem":
        """Copy of the record with its photo reference appended to the description."""
        if not self.photo_filename:
            return self
        description = f"{self.description or ''} [Photo: {self.photo_url}]".strip()
        return self.model_copy(update={"description": description})

    def to_cache_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude={"photo_url"})


class InventoryItemResponse(BaseModel):
    success: bool = True
    data: InventoryItem
    message: Optional[str] = None
    degraded: bool = False
    source: str


class InventoryListResponse(BaseModel):
    success: bool = True
    count: int
    data: List[InventoryItem]
    message: Optional[str] = None
    degraded: bool = False
    source: str


class PhotoUpdateResponse(BaseModel):
    success: bool = True
    message: str
    photo_url: str
    degraded: bool = False
    source: str


class MessageResponse(BaseModel):
    success: bool = True
    message: str
    degraded: bool = False
    source: str


def _check_name(value):
    if value is None or not str(value).strip():
        raise ValidationError("Name is required")
    return str(value).strip()


def _check_price(value):
    try:
        price = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError("Price must be a number")
    if not price.is_finite() or price < 0:
        raise ValidationError("Price must be a non-negative number")
    return price


def _check_stock(value):
    if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
        raise ValidationError("Stock quantity must be a non-negative integer")
    try:
        stock = int(value)
    except (TypeError, ValueError):
        raise ValidationError("Stock quantity must be a non-negative integer")
    if stock < 0:
        raise ValidationError("Stock quantity must be a non-negative integer")
    return stock


def validate_new_item(item: InventoryItemCreate) -> Dict[str, Any]:
    """Field values for a new record, raising ValidationError on bad input."""
    return {
        "name": _check_name(item.name),
        "description": item.description or "",
        "price": _check_price(item.price),
        "stock_quantity": _check_stock(item.stock_quantity),
        "photo_filename": item.photo_filename,
    }


def validate_changes(changes: Dict[str, Any]) -> Dict[str, Any]:
    """Validate a partial update. Keys absent from ``changes`` are left untouched by the stores."""
    unknown = set(changes) - set(MUTABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown field(s): {', '.join(sorted(unknown))}")

    cleaned = {}
    for key, value in changes.items():
        if key == "name":
            cleaned[key] = _check_name(value)
        elif key == "description":
            cleaned[key] = value or ""
        elif key == "price":
            if value is None:
                raise ValidationError("Price must be a non-negative number")
            cleaned[key] = _check_price(value)
        elif key == "stock_quantity":
            if value is None:
                raise ValidationError("Stock quantity must be a non-negative integer")
            cleaned[key] = _check_stock(value)
        else:
            cleaned[key] = value
    return cleaned
