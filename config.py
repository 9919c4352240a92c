import os
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Literal
from functools import lru_cache


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="PAYMENTS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application settings
    app_name: str = "payments-engine"

    # Logging settings, written to stderr
    log_level: str = "WARNING"
    log_format: Literal["json", "text"] = "json"

    # Input settings
    amount_scale: int = 4  # fractional digits kept on parsed amounts
    input_encoding: str = "utf-8"


# Environment-specific configurations
class DevelopmentSettings(Settings):
    log_level: str = "DEBUG"
    log_format: Literal["json", "text"] = "text"


class ProductionSettings(Settings):
    log_level: str = "WARNING"
    log_format: Literal["json", "text"] = "json"


class TestingSettings(Settings):
    log_level: str = "CRITICAL"  # Keep test output clean


def get_settings_for_environment(env: str = "development") -> Settings:
    """Get settings for specific environment."""
    settings_map = {
        "development": DevelopmentSettings,
        "production": ProductionSettings,
        "testing": TestingSettings,
    }

    settings_class = settings_map.get(env.lower(), Settings)
    return settings_class()


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings, honouring PAYMENTS_ENV when it names a profile."""
    env = os.environ.get("PAYMENTS_ENV")
    if env:
        return get_settings_for_environment(env)
    return Settings()
