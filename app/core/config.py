# app/core/config.py
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,  # Environment vars are uppercase
        extra="ignore",      # Ignore unexpected vars instead of raising
    )

    # Core application settings
    DATABASE_URL: str
    HOST: str = "0.0.0.0"
    PORT: int = 8101
    DEBUG: bool = False
    ENVIRONMENT: str = "development"
    LOG_FILE: str | None = "app.log"

    # Connection pool (ignored for SQLite)
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 10

    # CORS settings
    ALLOWED_ORIGINS: list[str] = ["*"]  # In production, specify actual origins
    ALLOW_CREDENTIALS: bool = True
    ALLOWED_METHODS: list[str] = ["*"]
    ALLOWED_HEADERS: list[str] = ["*"]

    # Supabase auth (tokens are issued by Supabase, we only verify them)
    SUPABASE_JWT_SECRET: str
    SUPABASE_JWT_AUDIENCE: str = "authenticated"
    JWT_ALGORITHM: str = "HS256"

    # OpenRouter settings
    OPENROUTER_API_KEY: str | None = None
    OPENROUTER_API_URL: str = "https://openrouter.ai/api/v1"
    OPENROUTER_TIMEOUT_SECONDS: float = 60.0
    OPENROUTER_MAX_RETRIES: int = 3

    # Generation rate limiting
    GENERATIONS_PER_HOUR: int = 10
    RATE_LIMIT_WINDOW_MINUTES: int = 60

    @property
    def async_database_url(self) -> str:
        """DATABASE_URL with the asyncpg driver, as Supabase hands out plain postgres:// URLs."""
        url = self.DATABASE_URL
        for prefix in ("postgres://", "postgresql://"):
            if url.startswith(prefix):
                return "postgresql+asyncpg://" + url[len(prefix):]
        return url


def _validate_settings(settings: Settings) -> None:
    """Validate critical application settings."""
    if not settings.DATABASE_URL:
        raise ValueError("DATABASE_URL is required")
    if not settings.SUPABASE_JWT_SECRET:
        raise ValueError("SUPABASE_JWT_SECRET is required")
    if settings.GENERATIONS_PER_HOUR < 1:
        raise ValueError("GENERATIONS_PER_HOUR must be at least 1")
    if settings.OPENROUTER_MAX_RETRIES < 1:
        raise ValueError("OPENROUTER_MAX_RETRIES must be at least 1")

    # Environment-specific validations
    if settings.ENVIRONMENT == "production" and settings.DEBUG:
        print("WARNING: DEBUG is enabled in production. Consider setting DEBUG=False.")
    if settings.ENVIRONMENT == "production" and not settings.OPENROUTER_API_KEY:
        raise ValueError("OPENROUTER_API_KEY is required in production")


# Initialize settings with error handling
try:
    settings = Settings()
    _validate_settings(settings)
except Exception as e:
    print(f"Error initializing settings: {e}")
    raise
