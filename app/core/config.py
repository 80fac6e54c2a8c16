from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    APP_NAME: str = "Butik Payment Service"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    API_V1_PREFIX: str = "/api/v1"
    HOST: str = "0.0.0.0"
    PORT: int = 3002

    DATABASE_URL: str
    DB_POOL_SIZE: int = 3
    DB_MAX_OVERFLOW: int = 2
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 300
    DB_ECHO: bool = False

    # Used to verify session tokens issued by the auth service
    SECRET_KEY: str
    CORS_ORIGINS: str = "*"
    CORS_CREDENTIALS: bool = True

    # ── iyzico payment gateway settings ──
    # Required, no embedded fallbacks
    IYZICO_API_KEY: str
    IYZICO_SECRET_KEY: str
    IYZICO_BASE_URL: str = "https://sandbox-api.iyzipay.com"
    IYZICO_TIMEOUT: float = 30.0
    IYZICO_CLIENT_VERSION: str = "iyzipay-python-manual-1.0.3"
    IYZICO_AUDIT_LOG_PATH: str = "iyzico_manual.log"

    FRONTEND_URL: str = "http://localhost:3001"
    BACKEND_URL: str = "http://localhost:3002"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    @property
    def cors_origins_list(self) -> list[str]:
        if self.CORS_ORIGINS == "*":
            return ["*"]
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",")]

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    @property
    def callback_url(self) -> str:
        return f"{self.BACKEND_URL.rstrip('/')}{self.API_V1_PREFIX}/payment/callback"

    @field_validator(
        "SECRET_KEY",
        "IYZICO_API_KEY",
        "IYZICO_SECRET_KEY",
        "IYZICO_BASE_URL",
        "FRONTEND_URL",
        "BACKEND_URL",
        mode="before",
    )
    @classmethod
    def strip_quotes(cls, v):
        # .env files in the wild often carry quoted values
        if isinstance(v, str):
            return v.strip().strip("\"'").strip()
        return v

    @field_validator("SECRET_KEY", "IYZICO_API_KEY", "IYZICO_SECRET_KEY")
    @classmethod
    def validate_not_empty(cls, v: str) -> str:
        if not v:
            raise ValueError("must be set to a non-empty value")
        return v

    @field_validator("IYZICO_BASE_URL", "FRONTEND_URL", "BACKEND_URL")
    @classmethod
    def validate_url(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("DATABASE_URL")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        if "+asyncpg" not in v and "+aiosqlite" not in v:
            raise ValueError("DATABASE_URL must use an async driver (asyncpg or aiosqlite)")
        return v

    @field_validator("ENVIRONMENT")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        allowed = ["development", "staging", "production"]
        if v.lower() not in allowed:
            raise ValueError(f"ENVIRONMENT must be one of: {allowed}")
        return v.lower()

settings = Settings()
