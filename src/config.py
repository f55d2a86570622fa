from typing import List, Optional
from pydantic import PostgresDsn, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    PROJECT_NAME: str = "Daylight Capture"
    VERSION: str = "0.1.0"
    API_V1_STR: str = "/v1"
    LOG_LEVEL: str = "INFO"

    # CORS
    BACKEND_CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    # Database
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_DB: str = "daylight"
    POSTGRES_PORT: int = 5432
    DATABASE_URL: Optional[str] = None  # overrides the POSTGRES_* parts when set

    # Auth (tokens are issued by the identity layer, we only verify them)
    SECRET_KEY: str = "change-me"  # openssl rand -hex 32
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24

    @computed_field
    @property
    def SQLALCHEMY_DATABASE_URI(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return str(PostgresDsn.build(
            scheme="postgresql+asyncpg",
            username=self.POSTGRES_USER,
            password=self.POSTGRES_PASSWORD,
            host=self.POSTGRES_SERVER,
            port=self.POSTGRES_PORT,
            path=self.POSTGRES_DB,
        ))

    # LLM providers per role: "ollama" | "openai" | "anthropic"
    LLM_PROVIDER_EXTRACTION: str = "openai"
    LLM_PROVIDER_EVIDENCE: str = "openai"
    EXTRACTION_TIMEOUT_SECONDS: float = 120.0

    # Ollama
    OLLAMA_BASE_URL: str = "http://localhost:11434"
    OLLAMA_MODEL_EXTRACTION: str = "gpt-oss:20b"
    OLLAMA_MODEL_EVIDENCE: str = "granite3.2-vision"

    # OpenAI
    OPENAI_API_KEY: Optional[str] = None
    OPENAI_MODEL_EXTRACTION: str = "gpt-5-mini"
    OPENAI_MODEL_EVIDENCE: str = "gpt-5-mini"

    # Anthropic
    ANTHROPIC_API_KEY: Optional[str] = None
    ANTHROPIC_MODEL_EXTRACTION: str = "claude-sonnet-4-5"
    ANTHROPIC_MODEL_EVIDENCE: str = "claude-sonnet-4-5"

    # Blob storage (S3 or any S3-compatible endpoint such as MinIO)
    STORAGE_BUCKET: str = "daylight-files"
    STORAGE_ENDPOINT_URL: Optional[str] = None
    STORAGE_ACCESS_KEY: Optional[str] = None
    STORAGE_SECRET_KEY: Optional[str] = None
    STORAGE_REGION: str = "us-east-1"
    SIGNED_URL_TTL_SECONDS: int = 60 * 15

    # Capture pipeline
    EVIDENCE_CONCURRENCY: int = 1
    EVIDENCE_TEXT_CHAR_LIMIT: int = 12000
    EVIDENCE_LINK_POLICY: str = "session"  # "session" | "mentioned"
    DEFAULT_TIMEZONE: str = "UTC"

    model_config = SettingsConfigDict(case_sensitive=True, env_file=".env")

settings = Settings()
