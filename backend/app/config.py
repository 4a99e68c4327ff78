from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API metadata (served by /api/api-info)
    api_title: str = "Movie Catalog API"
    api_version: str = "1.0.0"

    # Database
    database_url: str = "sqlite:///./movies.db"

    # Logging
    log_level: str = "INFO"

    # Comma separated list of allowed CORS origins
    cors_origins: str = "http://localhost:3000"

    # API keys
    api_key_header: str = "X-API-Key"
    # Requests per rolling window for newly issued keys
    default_rate_limit: int = 1000
    rate_limit_window_seconds: int = 3600

    model_config = {"env_file": ".env"}

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


settings = Settings()
