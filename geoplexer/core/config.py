# geoplexer/core/config.py

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Local search (Serper maps)
    SERPER_API_KEY: str | None = None
    SERPER_TIMEOUT_MS: int = 10_000
    SERPER_MAPS_ZOOM: int = 16

    # AI summaries (Perplexity chat completions)
    PERPLEXITY_API_URL: str = "https://api.perplexity.ai/chat/completions"
    PERPLEXITY_API_KEY: str | None = None
    PERPLEXITY_MODEL: str = "sonar-reasoning-pro"
    PERPLEXITY_TIMEOUT_MS: int = 25_000
    PERPLEXITY_MAX_TOKENS: int = 2000

    WEATHER_TIMEOUT_MS: int = 10_000
    IMAGE_PROXY_TIMEOUT_MS: int = 8000

    # Comma separated list, "*" when empty
    CORS_ORIGIN: str = ""
    FRONTEND_ORIGIN: str = ""

    # Client side: map token, API location and where saved places live
    MAPBOX_TOKEN: str | None = None
    API_BASE_URL: str = "http://localhost:3000"
    STORAGE_DIR: str = ".geoplexer"

    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"

    @property
    def cors_origins(self) -> list[str]:
        raw = self.CORS_ORIGIN or self.FRONTEND_ORIGIN or ""
        return [item.strip() for item in raw.split(",") if item.strip()]


settings = Settings()
