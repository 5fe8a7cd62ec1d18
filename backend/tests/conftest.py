import os

os.environ["LOG_TO_FILE"] = "false"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine

from config import Settings
from crud.inventory_cache import CacheBackend
from crud.inventory_items import RelationalBackend
from main import create_app
from utils.photo_assets import PhotoAssetManager


def _sqlite_engine(path):
    return create_engine(f"sqlite:///{path}", connect_args={"check_same_thread": False})


@pytest.fixture
def settings(tmp_path):
    return Settings(cache_dir=str(tmp_path / "cache"), database_url=f"sqlite:///{tmp_path / 'inventory.db'}")


@pytest.fixture
def db_engine(tmp_path):
    engine = _sqlite_engine(tmp_path / "inventory.db")
    yield engine
    engine.dispose()


@pytest.fixture
def down_engine(tmp_path):
    """An engine whose every connection attempt fails with OperationalError."""
    engine = _sqlite_engine(tmp_path / "no-such-dir" / "inventory.db")
    yield engine
    engine.dispose()


@pytest.fixture
def relational(db_engine):
    return RelationalBackend(db_engine)


@pytest.fixture
def cache(tmp_path):
    cache_dir = tmp_path / "cache"
    cache_dir.mkdir(exist_ok=True)
    backend = CacheBackend(str(cache_dir / "inventory.json"))
    backend.load()
    return backend


@pytest.fixture
def photos(tmp_path):
    manager = PhotoAssetManager(str(tmp_path / "cache" / "photos"))
    manager.ensure_directories()
    return manager


@pytest.fixture
def client(settings, db_engine):
    app = create_app(settings, engine=db_engine)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def degraded_client(settings, down_engine):
    app = create_app(settings, engine=down_engine)
    with TestClient(app) as test_client:
        yield test_client
