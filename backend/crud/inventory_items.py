"""
Relational record store.

Wraps the ``products`` table behind the create/list/get/update/delete/search
operations shared with the cache store. SQLAlchemy exceptions are classified by
type: constraint and data errors are the client's problem (ValidationError),
everything else is an infrastructure failure (BackendUnavailable) that the
fallback router may retry against the cache.

This store never touches the photo directory; callers clean up photo files.
"""

import logging
import threading
from contextlib import contextmanager
from decimal import Decimal
from typing import Any, Dict, List

from sqlalchemy import inspect, select
from sqlalchemy.exc import DataError, IntegrityError, SQLAlchemyError

from database import create_session_factory
from exceptions import BackendUnavailable, NotFound, ValidationError
from models.audit_mixin import next_timestamp, utc_now
from models.inventory_items import Product
from schemas.inventory_items import InventoryItem, InventoryItemCreate, validate_changes, validate_new_item

logger = logging.getLogger(__name__)

SEED_PRODUCTS = [
    {"name": "Network Module", "description": "High-performance network module",
     "price": Decimal("120.50"), "stock_quantity": 50},
    {"name": "Express Pro License", "description": "License for commercial use of the web framework",
     "price": Decimal("999.00"), "stock_quantity": 10},
]


class RelationalBackend:
    name = "database"

    def __init__(self, engine):
        self.engine = engine
        self.SessionLocal = create_session_factory(engine)
        self._schema_ready = False
        self._schema_lock = threading.Lock()

    def ensure_schema(self):
        """
        Create and seed the products table if it does not exist yet.

        Runs on the first successful connection. The lock only covers this process:
        two instances booting against an empty database at the same moment can both
        see the table missing and race on CREATE TABLE.
        """
        if self._schema_ready:
            return
        with self._schema_lock:
            if self._schema_ready:
                return
            try:
                if inspect(self.engine).has_table(Product.__tablename__):
                    logger.info("Products table already exists")
                else:
                    logger.info("Creating products table...")
                    Product.__table__.create(bind=self.engine)
                    self._seed()
                    logger.info("Products table created and sample data inserted")
            except SQLAlchemyError as e:
                raise BackendUnavailable(f"Database unavailable: {e.__class__.__name__}") from e
            self._schema_ready = True

    def _seed(self):
        now = utc_now()
        with self.SessionLocal() as db:
            db.add_all([Product(**fields, created_at=now, updated_at=now) for fields in SEED_PRODUCTS])
            db.commit()

    @contextmanager
    def _session(self):
        self.ensure_schema()
        db = self.SessionLocal()
        try:
            yield db
        except (IntegrityError, DataError) as e:
            raise ValidationError(f"Rejected by database: {e.orig}") from e
        except SQLAlchemyError as e:
            logger.error(f"Database error: {e}")
            raise BackendUnavailable(f"Database unavailable: {e.__class__.__name__}") from e
        finally:
            db.close()

    def _get_row(self, db, record_id: int) -> Product:
        row = db.get(Product, record_id)
        if row is None:
            raise NotFound(f"Device with id {record_id} not found")
        return row

    def create(self, item: InventoryItemCreate) -> InventoryItem:
        fields = validate_new_item(item)
        with self._session() as db:
            now = utc_now()
            db_item = Product(**fields, created_at=now, updated_at=now)
            db.add(db_item)
            db.commit()
            db.refresh(db_item)
            return InventoryItem.model_validate(db_item)

    def list_items(self) -> List[InventoryItem]:
        with self._session() as db:
            rows = db.execute(select(Product).order_by(Product.id)).scalars().all()
            return [InventoryItem.model_validate(row) for row in rows]

    def get_by_id(self, record_id: int) -> InventoryItem:
        with self._session() as db:
            return InventoryItem.model_validate(self._get_row(db, record_id))

    def update(self, record_id: int, changes: Dict[str, Any]) -> InventoryItem:
        update_data = validate_changes(changes)
        with self._session() as db:
            db_item = self._get_row(db, record_id)
            for key, value in update_data.items():
                setattr(db_item, key, value)
            db_item.updated_at = next_timestamp(db_item.updated_at)
            db.commit()
            db.refresh(db_item)
            return InventoryItem.model_validate(db_item)

    def delete(self, record_id: int) -> InventoryItem:
        with self._session() as db:
            db_item = self._get_row(db, record_id)
            deleted = InventoryItem.model_validate(db_item)
            db.delete(db_item)
            db.commit()
            return deleted

    def search(self, record_id: int, has_photo: bool = False) -> InventoryItem:
        item = self.get_by_id(record_id)
        return item.with_photo_reference() if has_photo else item
