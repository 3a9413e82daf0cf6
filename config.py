import os
from dataclasses import dataclass
from typing import Mapping, Optional


@dataclass(frozen=True)
class Settings:
    database_url: str = "sqlite+pysqlite:///orders.sqlite"
    span_name: str = "create order"
    log_level: str = "INFO"
    sql_echo: bool = False

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ
        defaults = cls()
        return cls(
            database_url=env.get("ORDERS_DATABASE_URL", defaults.database_url),
            span_name=env.get("ORDERS_SPAN_NAME", defaults.span_name),
            log_level=env.get("ORDERS_LOG_LEVEL", defaults.log_level).upper(),
            sql_echo=env.get("ORDERS_SQL_ECHO", "false").lower() in ("1", "true", "yes"),
        )
