from fastapi import FastAPI
from dotenv import load_dotenv

load_dotenv()
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from contextlib import asynccontextmanager
from sqlalchemy.exc import SQLAlchemyError
from datetime import datetime
import argparse
import logging
import os
import uvicorn

from config import Settings, settings as default_settings
from crud.fallback import FallbackRouter
from crud.inventory_cache import CacheBackend
from crud.inventory_items import RelationalBackend
from database import check_db_connection, create_db_engine, get_database_info
from exceptions import BackendUnavailable, InventoryError
from middleware.error import (
    inventory_exception_handler,
    not_found_handler,
    request_validation_exception_handler,
    unhandled_exception_handler,
)
from utils.photo_assets import PhotoAssetManager
import routers.health as health
import routers.inventory_items as inventory_items

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
_logging_configured = False

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings):
    """Log to a timestamped file under LOG_DIR and to the console."""
    global _logging_configured
    if _logging_configured:
        return
    root_logger = logging.getLogger()
    root_logger.setLevel(settings.log_level)

    if settings.log_to_file:
        os.makedirs(settings.log_dir, exist_ok=True) # Create the log directory if it doesn't exist
        # Create a unique log file name based on current date/time
        current_time_str = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
        file_handler = logging.FileHandler(os.path.join(settings.log_dir, f"app_{current_time_str}.log"), mode='a')
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root_logger.addHandler(file_handler)

    # Also output logs to the console
    console_handler = logging.StreamHandler()
    console_handler.setLevel(settings.log_level)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root_logger.addHandler(console_handler)
    _logging_configured = True


def prepare_storage(app: FastAPI):
    """Create the cache and photo directories and load the cache file.

    Directory creation failures propagate: without a photo directory no record can
    ever carry a usable photo reference, so startup aborts.
    """
    settings = app.state.settings
    store = app.state.inventory_store
    if not os.path.isdir(settings.cache_dir):
        os.makedirs(settings.cache_dir, exist_ok=True)
        logger.info(f"Created cache directory: {settings.cache_dir}")
    store.photos.ensure_directories()
    store.fallback.load()


def prepare_database(app: FastAPI):
    """Probe the database and bootstrap the schema. An unreachable database is not fatal."""
    engine = app.state.engine
    if not check_db_connection(engine):
        logger.warning("Database unavailable. Serving from the cache until it comes back.")
        return
    try:
        app.state.inventory_store.primary.ensure_schema()
        info = get_database_info(engine)
        logger.info(f"Database: {info['database']} ({info['version']}), tables: {', '.join(info['tables']) or 'none'}")
    except (BackendUnavailable, SQLAlchemyError) as e:
        logger.warning(f"Database initialization failed, continuing in cache mode: {e}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = app.state.settings
    logger.info(f"Starting device inventory service: host={settings.host} port={settings.port} cache={settings.cache_dir}")
    prepare_storage(app)
    prepare_database(app)
    yield
    app.state.engine.dispose()
    logger.info("Database connections closed")


def create_app(settings: Settings = None, engine=None) -> FastAPI:
    """Build the application. Serve it with `python main.py` or `uvicorn main:create_app --factory`."""
    settings = settings or default_settings
    engine = engine if engine is not None else create_db_engine(settings)

    app = FastAPI(
        title="Device Inventory API",
        description="Register, list, update, delete and search inventory devices",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.engine = engine
    app.state.inventory_store = FallbackRouter(
        primary=RelationalBackend(engine),
        fallback=CacheBackend(settings.cache_file),
        photos=PhotoAssetManager(settings.photo_dir, naming=settings.photo_naming),
    )

    # Enable CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(InventoryError, inventory_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
    app.add_exception_handler(404, not_found_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    app.include_router(health.router)
    app.include_router(inventory_items.router)
    app.mount("/photos", StaticFiles(directory=settings.photo_dir, check_dir=False), name="photos")

    @app.get("/")
    async def index():
        return {
            "message": "Device inventory service",
            "docs": "/docs",
            "health": "/health",
            "inventory": "/inventory",
        }

    return app


configure_logging(default_settings)


def main():
    parser = argparse.ArgumentParser(description="Device inventory REST service")
    parser.add_argument("--host", type=str, default=None, help="server host (default: HOST or 0.0.0.0)")
    parser.add_argument("-p", "--port", type=int, default=None, help="server port (default: PORT or 3000)")
    parser.add_argument("-c", "--cache", type=str, default=None, help="cache directory (default: CACHE_DIR or ./cache)")
    args = parser.parse_args()

    settings = Settings(host=args.host, port=args.port, cache_dir=args.cache)
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
