import structlog
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = structlog.get_logger()


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        case_sensitive=True,
        extra="ignore",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )

    # App Settings
    ENVIRONMENT: str = "local"
    PROJECT_NAME: str = "SchoolData"

    # Backend selection: False talks to the hosted BaaS, True to the self-hosted API
    USE_SELF_HOSTED_API: bool = False
    API_URL: str = "http://localhost:3001/api"
    BAAS_URL: str = ""
    BAAS_ANON_KEY: str = ""
    HTTP_TIMEOUT: float = 30.0

    # Client-side persisted state (selected school / year, auth token)
    STATE_FILE: str = ".schooldata/state.json"
    QUERY_STALE_SECONDS: float = 30.0

    # API Settings
    API_PREFIX: str = "/api"
    SECRET_KEY: str = ""
    LEARNER_EMAIL_DOMAIN: str = "learners.schooldata.org"
    CORS_ORIGINS: list[str] = ["http://localhost:5173"]
    MAX_QUERY_LIMIT: int = 1000

    # JWT Settings
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_DAYS: int = 7

    # PostgreSQL Settings
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_DB: str = "schooldata"
    POSTGRES_PORT: str = "5432"
    DB_ECHO_QUERIES: bool = False

    @property
    def DATABASE_URI(self) -> str:
        """Builds database URI dynamically."""
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@"
            f"{self.POSTGRES_SERVER}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    @property
    def BAAS_REST_URL(self) -> str:
        return f"{self.BAAS_URL.rstrip('/')}/rest/v1"

    @classmethod
    def load_from_env_file(cls):
        """Load settings from .env file in local development."""
        from pathlib import Path

        from dotenv import load_dotenv

        env_file = Path(".env")
        if env_file.exists():
            load_dotenv(env_file, override=True)

        instance = cls()
        if instance.ENVIRONMENT == "prod" and not instance.SECRET_KEY:
            logger.warning("SECRET_KEY is not set; token issuance will fail")
        return instance


settings = Settings.load_from_env_file()
