from pathlib import Path
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


def find_env_file() -> str:
    env_file = ".env" if Path("/.dockerenv").exists() else ".env.local"

    current_path = Path.cwd()

    for path in [current_path] + list(current_path.parents):
        env_path = path / env_file
        if env_path.exists():
            return str(env_path)

    return env_file


class ConsoleSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=find_env_file(),
        env_file_encoding="utf-8",
        env_prefix="CONSOLE_",
        extra="ignore",
    )

    log_level: str = "INFO"

    # Orchestrator API
    api_base: str = "http://localhost:8000/api"
    confirm_timeout_sec: float = 20.0

    # Intent store: "file" survives restarts, "memory" is per-process, "redis" is shared
    intent_backend: str = "file"
    intent_dir: Path = Path("var/intents")
    intent_ttl_sec: int = 3600
    redis_url: str = "redis://localhost:6379/0"
    session_cookie: str = "console_session"

    # Hosted payment form
    public_base_url: str = "http://localhost:8080"
    return_path: str = "/pay/return"
    publishable_api_key: str = ""
    currency: str = "SAR"
    supported_networks: List[str] = ["visa", "mastercard", "mada"]
    payment_methods: List[str] = ["creditcard", "applepay"]
