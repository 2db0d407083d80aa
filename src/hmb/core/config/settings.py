"""Application settings loaded from environment variables."""

from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Health Metric Bank server configuration."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    # Server
    # Loopback by default: there is no auth layer in front of the tools.
    hmb_host: str = "127.0.0.1"
    hmb_port: int = 8010
    hmb_log_level: str = "info"
    # Binding to a non-loopback host is refused unless this is set true.
    hmb_allow_insecure_bind: bool = False

    # Storage (metric bank)
    db_path: str = "~/.hmb/metrics.db"

    # Per-operation bound on blocking storage calls, in seconds
    storage_timeout_seconds: float = 30.0

    # Encryption of stored field maps (empty = plaintext JSON)
    encryption_key: str = ""


def get_settings() -> Settings:
    """Create and return a Settings instance."""
    return Settings()
