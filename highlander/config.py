# highlander/config.py
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    database_url: str
    secret_key: str
    env: Literal["dev", "stage", "prod"]
    debug: bool = False
    log_level: str = "INFO"
    access_log: bool = True
    sql_echo: bool = True
    auto_init_db: bool = True

    # Deadline monitor
    deadline_monitor_enabled: bool = True
    deadline_check_interval_seconds: float = 30.0

    # Storage retry policy
    db_retry_attempts: int = 3
    db_retry_base_delay_seconds: float = 0.1

    # Engine pool, Postgres only
    db_pool_size: int = 5
    db_max_overflow: int = 10
    db_lock_timeout_ms: int = 10_000

    user_cache_ttl_seconds: float = 60.0
    max_tickets_per_assignment: int = 10

    @property
    def is_dev(self) -> bool:
        return self.env == "dev" or self.debug is True

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="",
        case_sensitive=False,
        extra="ignore",
    )


settings = Settings()  # type: ignore[call-arg]
