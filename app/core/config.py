from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from typing import Optional
import os
from pathlib import Path


class Settings(BaseSettings):
    # Database
    database_url: str = "sqlite:///./campaigns.db"

    # App
    app_name: str = "Campaign Moderation Service API"
    debug: bool = False
    service_name: str = "campaign-moderation-service"

    # Redis
    redis_url: str = "redis://localhost:6379/0"
    analysis_cache_backend: str = "memory"  # memory | redis
    analysis_cache_ttl_seconds: int = 24 * 60 * 60

    # Identity provider tokens
    jwt_secret: str = "change-me-in-production"
    jwt_algorithm: str = "HS256"

    # External AI completion service (OpenAI-compatible chat completions)
    ai_api_url: str = "https://api.groq.com/openai/v1/chat/completions"
    ai_api_key: Optional[str] = None
    ai_model: str = "llama-3.1-8b-instant"
    ai_timeout_seconds: float = 10.0
    ai_temperature: float = 0.3
    ai_max_tokens: int = 500
    ai_circuit_failure_threshold: int = 5
    ai_circuit_recovery_seconds: int = 60

    # Tracing
    tracing_enabled: bool = True
    otlp_endpoint: str = "http://jaeger:4318/v1/traces"

    model_config = SettingsConfigDict(
        # Look for .env.local file in the project root
        env_file=os.path.join(Path(__file__).parent.parent.parent, ".env.local"),
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def ai_configured(self) -> bool:
        return bool(self.ai_api_key)


@lru_cache()
def get_settings():
    return Settings()
