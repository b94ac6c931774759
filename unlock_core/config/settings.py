from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


def find_env_file() -> str:
    env_file = ".env" if Path("/.dockerenv").exists() else ".env.local"

    current_path = Path.cwd()

    for path in [current_path] + list(current_path.parents):
        env_path = path / env_file
        if env_path.exists():
            return str(env_path)

    return env_file


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=find_env_file(),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Database: orders + payments
    database_url: str = "postgresql+psycopg2://app:app@db:5432/rental"

    # Logging
    log_level: str = "INFO"

    # Payment provider (hosted form + payment lookup)
    provider_base: str = "https://api.moyasar.com/v1"
    provider_secret_key: str = ""
    currency: str = "SAR"

    # Hardware vendor
    vendor_base: str = "http://vendor-gateway:8090"
    vendor_app_key: str = ""
    vendor_success_code: str = "00000"

    http_timeout_sec: float = 5.0
    vendor_timeout_sec: float = 10.0

    # Circuit Breaker settings
    cb_provider_fail_max: int = 5
    cb_provider_reset_timeout: int = 30
    cb_vendor_fail_max: int = 3
    cb_vendor_reset_timeout: int = 60

    # Order listing
    orders_page_limit: int = 200
