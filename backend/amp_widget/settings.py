from pydantic import BaseModel
from dotenv import load_dotenv
import os

load_dotenv()


def _split_csv(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings(BaseModel):
    app_url: str = os.getenv("APP_URL", "").rstrip("/")
    host: str = os.getenv("BACKEND_HOST", "0.0.0.0")
    port: int = os.getenv("BACKEND_PORT", "8000")
    cors_origins: list[str] = _split_csv(os.getenv("CORS_ORIGINS", "*"))

    # Config store
    config_store_path: str = os.getenv("CONFIG_STORE_PATH", "")
    encryption_key: str | None = os.getenv("ENCRYPTION_KEY")

    # Widget runtime
    lookup_timeout_ms: int = int(os.getenv("LOOKUP_TIMEOUT_MS", "3000"))
    widget_cache_max_age: int = int(os.getenv("WIDGET_CACHE_MAX_AGE", "3600"))

    # Profile API
    profile_api_base_domain: str = os.getenv(
        "PROFILE_API_BASE_DOMAIN", "amperity.com")
    profile_api_timeout: float = float(os.getenv("PROFILE_API_TIMEOUT", "5.0"))

    # Stock image search
    unsplash_access_key: str | None = os.getenv("UNSPLASH_ACCESS_KEY")
    image_search_timeout: float = float(os.getenv("IMAGE_SEARCH_TIMEOUT", "10.0"))

    # LLM config
    openai_api_key: str | None = os.getenv("OPENAI_API_KEY")
    llm_model: str = os.getenv("LLM_MODEL", "gpt-4o-mini")
    llm_temperature: float = float(os.getenv("LLM_TEMPERATURE", "0.7"))
    llm_max_tokens: int = int(os.getenv("LLM_MAX_TOKENS", "1024"))


settings = Settings()
