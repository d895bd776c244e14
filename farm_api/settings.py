from __future__ import annotations

from dataclasses import dataclass
import os


def _parse_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    app_env: str
    database_url: str
    sql_echo: bool
    create_tables: bool


def load_settings() -> Settings:
    app_env = os.getenv("APP_ENV", "development")
    return Settings(
        app_env=app_env,
        database_url=os.getenv("DATABASE_URL", "sqlite:///./farm_ledger.db"),
        sql_echo=_parse_bool(os.getenv("SQL_ECHO"), False),
        create_tables=_parse_bool(os.getenv("CREATE_TABLES"), app_env != "production"),
    )
