"""
Configuration management using Pydantic Settings
"""
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve to the project root (one level up from agrotrade/)
BASE_DIR = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    """Application settings"""

    model_config = SettingsConfigDict(
        env_prefix="AGROTRADE_",
        env_file=".env",
        extra="ignore",
    )

    app_name: str = "AgroTrade Crop Auctions"
    log_level: str = Field(default="INFO", description="Logging level")

    # Storage
    storage_backend: str = Field(
        default="memory",
        pattern="^(memory|kv|file)$",
        description="Crop repository: 'memory', 'kv' (SQL key/value table) or 'file' (JSON)",
    )
    crops_file: Path = Field(
        default=BASE_DIR / "data" / "crops.json",
        description="JSON file used by the 'file' backend",
    )
    database_url: str = Field(
        default=f"sqlite:///{(BASE_DIR / 'agrotrade.db').as_posix()}",
        description="SQLAlchemy URL used by the 'kv' backend",
    )
    kv_key: str = Field(default="agrotrade:crops", description="Key holding the crop collection")

    # Server
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=3001, ge=1, le=65535, description="API port")
    allowed_origins: str = Field(default="*", description="Allowed CORS origins (comma-separated)")

    @field_validator("log_level")
    @classmethod
    def upper_log_level(cls, v: str) -> str:
        return v.upper()

    @property
    def origins(self) -> list[str]:
        return [o.strip() for o in self.allowed_origins.split(",") if o.strip()]


@lru_cache
def get_settings() -> Settings:
    return Settings()
