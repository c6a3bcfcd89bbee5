from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Central configuration loaded from environment / .env file."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    # Site definitions (YAML, relative to CWD unless absolute)
    sites_file: str = "sites.yaml"

    # Time-series store directory
    data_path: str = "./data"

    # Fallbacks for site entries that omit a field
    default_timeout_seconds: float = 5.0
    default_warning_threshold_seconds: float = 2.0
    default_interval_ms: int = 10_000

    # Synthetic test server
    testserver_host: str = "127.0.0.1"
    testserver_port: int = 8080

    # Logging
    log_level: str = "INFO"


settings = Settings()
