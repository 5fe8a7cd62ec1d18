"""
Database Configuration Module

This module handles the database configuration and connection setup for the
device inventory service. It uses SQLAlchemy for ORM (Object-Relational Mapping)
with PostgreSQL as the database.

The module includes:
- Engine and connection pool setup
- Session factory creation
- Base model class definition
- Connection probe and diagnostics helpers
"""

import logging
from datetime import datetime

import pytz
from sqlalchemy import create_engine, inspect, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker

from config import Settings

logger = logging.getLogger(__name__)

# Create Base class
# Base is the declarative base class that our ORM models will inherit from
Base = declarative_base()


def create_db_engine(settings: Settings):
    """
    Create the SQLAlchemy engine for the relational store.

    The pool is bounded (pool_size + max_overflow connections), validates
    connections before use, and recycles them after DB_POOL_RECYCLE seconds.
    connect_timeout makes an unreachable server fail fast instead of stalling
    every request.
    """
    connect_args = {}
    if settings.database_url.startswith("postgresql"):
        connect_args["connect_timeout"] = settings.db_connect_timeout

    logger.info(
        "Database configuration: server=%s port=%s database=%s user=%s",
        settings.postgres_server, settings.postgres_port, settings.postgres_db, settings.postgres_user,
    )
    return create_engine(
        settings.database_url,
        echo=settings.database_echo,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_timeout=settings.db_pool_timeout,
        pool_recycle=settings.db_pool_recycle,
        pool_pre_ping=True,
        connect_args=connect_args,
    )


def create_session_factory(engine):
    # autocommit=False means we need to explicitly commit transactions
    # expire_on_commit=False keeps returned rows readable after the session closes
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def check_db_connection(engine) -> bool:
    """
    Probe the database with a trivial query.

    Returns:
        bool: True if a connection could be opened and queried
    """
    try:
        logger.info("Testing database connection...")
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        logger.info("Database connection successful")
        return True
    except SQLAlchemyError as e:
        logger.error(f"Database connection failed: {e}")
        return False


def get_database_info(engine) -> dict:
    """
    Collect server version, database name and table list for diagnostics.

    Raises:
        SQLAlchemyError: if the database cannot be reached
    """
    with engine.connect() as conn:
        if engine.dialect.name == "postgresql":
            version = conn.execute(text("SELECT version()")).scalar().split(",")[0]
            database = conn.execute(text("SELECT current_database()")).scalar()
        else:
            version = f"{engine.dialect.name} {engine.dialect.server_version_info}"
            database = engine.url.database
        tables = sorted(inspect(conn).get_table_names())
    return {
        "version": version,
        "database": database,
        "tables": tables,
        "timestamp": datetime.now(pytz.utc).isoformat(),
    }
