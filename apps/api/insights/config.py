from __future__ import annotations

from pathlib import Path
from typing import Optional
import os

from pydantic_settings import BaseSettings


ROOT_DIR = Path(__file__).resolve().parents[3]


def _default_data_dir() -> Path:
    if (
        os.getenv("VERCEL")
        or os.getenv("VERCEL_ENV")
        or os.getenv("VERCEL_URL")
        or os.getenv("AWS_LAMBDA_FUNCTION_NAME")
    ):
        return Path("/tmp/web3insights/data")
    return ROOT_DIR / "data"


class Settings(BaseSettings):
    app_name: str = "Web3 Insights API"
    environment: str = "development"
    log_level: str = "INFO"

    data_dir: Path = _default_data_dir()
    cache_key: str = "web3Blog"
    cache_path: Optional[Path] = None

    llm_provider: str = "mock"
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o-mini"
    openai_base_url: str = "https://api.openai.com/v1"
    openai_timeout_seconds: float = 60.0
    proxy_url: str = "http://localhost:5000/api/web3data"
    http_timeout: float = 60.0

    retry_attempts: int = 3
    retry_delay_seconds: float = 30.0
    request_delay_seconds: float = 30.0
    topic_count: int = 5

    class Config:
        env_file = (
            ".env",
            str(ROOT_DIR / ".env"),
            str(ROOT_DIR / "apps" / "api" / ".env"),
        )
        env_prefix = ""


def _clean_openai_key(value: str) -> str:
    cleaned = value.strip().strip('"').strip("'")
    if cleaned.lower().startswith("bearer "):
        cleaned = cleaned.split(" ", 1)[1].strip()
    return cleaned


settings = Settings()
if settings.openai_api_key:
    settings.openai_api_key = _clean_openai_key(settings.openai_api_key)

if settings.cache_path is None:
    settings.cache_path = settings.data_dir / f"{settings.cache_key}.json"

try:
    settings.cache_path.parent.mkdir(parents=True, exist_ok=True)
except OSError:
    settings.data_dir = Path("/tmp/web3insights/data")
    settings.cache_path = settings.data_dir / f"{settings.cache_key}.json"
    settings.cache_path.parent.mkdir(parents=True, exist_ok=True)
