"""Application configuration."""

from pydantic_settings import BaseSettings
from typing import Optional
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # App info
    app_name: str = "NLU Server"
    version: str = "0.1.0"
    debug: bool = False

    # Model storage
    storage_backend: str = "filesystem"  # Options: filesystem, supabase
    models_dir: str = "./data/models"
    models_to_keep: int = 2

    # Training data
    definitions_dir: str = "./data/bots"
    default_seed: int = 42
    auto_train_on_mount: bool = False
    mount_on_startup: bool = True

    # Supabase (only when storage_backend == "supabase")
    supabase_url: Optional[str] = None
    supabase_anon_key: Optional[str] = None
    supabase_service_role_key: Optional[str] = None
    supabase_models_table: str = "nlu_models"

    # API settings
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    class Config:
        env_prefix = "NLU_"
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
