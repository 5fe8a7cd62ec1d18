"""
Configuration Module

Reads the service settings from environment variables (optionally loaded from a
.env file). A single Settings instance is built at process start; the command
line in main.py can override host, port and cache directory.
"""

import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Settings:
    def __init__(self, host=None, port=None, cache_dir=None, database_url=None):
        # Database connection settings
        self.postgres_user = os.getenv("POSTGRES_USER", "postgres")
        self.postgres_password = os.getenv("POSTGRES_PASSWORD", "postgres")
        self.postgres_server = os.getenv("POSTGRES_SERVER", "localhost")
        self.postgres_port = os.getenv("POSTGRES_PORT", "5432")
        self.postgres_db = os.getenv("POSTGRES_DB", "course_db")
        self.database_url = database_url or os.getenv(
            "DATABASE_URL",
            f"postgresql+psycopg2://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_server}:{self.postgres_port}/{self.postgres_db}",
        )
        self.database_echo = _env_bool("DATABASE_ECHO", "False")

        # Pool limits. connect_timeout keeps an unreachable database from stalling requests.
        self.db_connect_timeout = int(os.getenv("DB_CONNECT_TIMEOUT", "5"))
        self.db_pool_size = int(os.getenv("DB_POOL_SIZE", "10"))
        self.db_max_overflow = int(os.getenv("DB_MAX_OVERFLOW", "10"))
        self.db_pool_timeout = int(os.getenv("DB_POOL_TIMEOUT", "5"))
        self.db_pool_recycle = int(os.getenv("DB_POOL_RECYCLE", "30"))

        # Cache and photo storage
        self.cache_dir = cache_dir or os.getenv("CACHE_DIR", "./cache")
        self.photo_naming = os.getenv("PHOTO_NAMING", "id").strip().lower()
        self.max_photo_bytes = int(os.getenv("MAX_PHOTO_BYTES", str(5 * 1024 * 1024)))

        # Server
        self.host = host or os.getenv("HOST", "0.0.0.0")
        self.port = int(port or os.getenv("PORT", "3000"))
        self.cors_allowed_origins = [
            origin.strip()
            for origin in os.getenv("CORS_ALLOWED_ORIGINS", "*").split(",")
            if origin.strip()
        ]

        # Logging
        self.log_dir = os.getenv("LOG_DIR", "logs")
        self.log_level = os.getenv("LOG_LEVEL", "INFO").upper()
        self.log_to_file = _env_bool("LOG_TO_FILE", "True")

    @property
    def cache_file(self) -> str:
        return os.path.join(self.cache_dir, "inventory.json")

    @property
    def photo_dir(self) -> str:
        return os.path.join(self.cache_dir, "photos")


settings = Settings()
