# alapio/config.py

import os
from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _database_url() -> str:
    url = os.getenv("DATABASE_URL")
    if url:
        return url

    # Fall back to discrete PostgreSQL settings when a host is given
    if os.getenv("DB_HOST"):
        user = os.getenv("DB_USER", "alapio")
        password = os.getenv("DB_PASS", "")
        host = os.getenv("DB_HOST")
        port = os.getenv("DB_PORT", "5432")
        name = os.getenv("DB_NAME", "alapio")
        return f"postgresql://{user}:{password}@{host}:{port}/{name}"

    return "sqlite:///./alapio.db"


class Settings:
    """Server configuration, read once from the environment."""

    def __init__(self):
        self.database_url = _database_url()
        self.sql_echo = _env_bool("SQL_ECHO", False)

        self.host = os.getenv("HOST", "0.0.0.0")
        self.port = int(os.getenv("PORT", "3000"))
        self.cors_origins = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

        self.log_level = os.getenv("LOG_LEVEL", "INFO").upper()

        # Attachments travel inline as data URLs
        self.max_message_bytes = int(os.getenv("MAX_MESSAGE_BYTES", str(100_000_000)))
        self.idle_timeout_seconds = float(os.getenv("IDLE_TIMEOUT_SECONDS", "120"))

        self.login_rate_limit = os.getenv("LOGIN_RATE_LIMIT", "60/minute")
        self.rate_limit_enabled = _env_bool("RATE_LIMIT_ENABLED", True)


settings = Settings()
