"""
Catalog Feed Sync - Configuration Settings
Pydantic Settings for type-safe configuration from .env
"""

from pathlib import Path
from typing import Optional
from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # WooCommerce API
    woo_url: str = Field(default="")
    woo_consumer_key: str = Field(default="")
    woo_consumer_secret: str = Field(default="")
    woo_timeout: int = Field(default=60)

    # Paths
    db_path: Path = Field(default=Path("./items.db"))
    feed_path: Path = Field(default=Path("./data/input/feed.csv"))
    stats_path: Path = Field(default=Path("./last_run_stats.json"))

    # Processing
    batch_size: int = Field(default=25, ge=1)
    batch_pause_seconds: float = Field(default=2.0, ge=0)

    # Safety
    max_failed_items: int = Field(default=10, ge=0)  # Operator failure ceiling per run
    max_to_delete_count: int = Field(default=50, ge=0)  # 0 disables the mass-deletion guard

    # Logging
    log_level: str = Field(default="INFO")
    log_json_format: bool = Field(default=False)  # Enable JSON logs for production
    log_file: Optional[Path] = Field(default=None)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"

    @property
    def woo_configured(self) -> bool:
        """Check if WooCommerce credentials are configured."""
        return bool(self.woo_url and self.woo_consumer_key and self.woo_consumer_secret)


# Singleton instance
settings = Settings()
