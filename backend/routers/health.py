from fastapi import APIRouter, Request
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from datetime import datetime
import logging
import os
import pytz

from database import check_db_connection, get_database_info
from exceptions import BackendUnavailable
from models.inventory_items import Product

router = APIRouter(tags=["Health"])
logger = logging.getLogger(__name__)


@router.get("/health")
def health_check(request: Request):
    """Service status and whether the database currently answers."""
    settings = request.app.state.settings
    db_connected = check_db_connection(request.app.state.engine)
    return {
        "status": "ok",
        "service": "device-inventory",
        "timestamp": datetime.now(pytz.utc).isoformat(),
        "environment": os.getenv("APP_ENV", "development"),
        "database": "connected" if db_connected else "disconnected",
        "server": {
            "host": settings.host,
            "port": settings.port,
            "cache": settings.cache_dir,
        },
    }


@router.get("/test-db")
def test_database(request: Request):
    """Database diagnostics: server version, database name, tables and product count."""
    engine = request.app.state.engine
    backend = request.app.state.inventory_store.primary
    try:
        backend.ensure_schema()
        info = get_database_info(engine)
        with engine.connect() as conn:
            info["products_count"] = conn.execute(select(func.count()).select_from(Product.__table__)).scalar()
    except SQLAlchemyError as e:
        logger.error(f"Database diagnostics failed: {e}")
        raise BackendUnavailable("Database unavailable") from e
    return {"success": True, "data": info}
