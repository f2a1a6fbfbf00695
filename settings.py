from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    company_name: str = "Logi6 Battery Storage"
    quote_validity_days: int = 30
    default_installation_cost: float = 1200
    default_import_rate: float = 0.28
    default_export_rate: float = 0.15
    default_standing_charge: float = 0.50
    default_peak_rate: float = 0.35
    default_off_peak_rate: float = 0.10
    default_peak_hours_start: str = "16:00"
    default_peak_hours_end: str = "19:00"
    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_prefix="QUOTE_", env_file=".env", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    return Settings()
