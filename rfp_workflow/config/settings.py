"""Application settings using Pydantic Settings."""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # AI provider credentials
    openai_api_key: SecretStr = Field(..., description="OpenAI API Key")
    anthropic_api_key: SecretStr | None = Field(default=None, description="Anthropic API Key")

    # Model defaults
    default_provider: Literal["anthropic", "openai"] = Field(default="anthropic")
    anthropic_model: str = Field(default="claude-3-5-sonnet-20241022")
    openai_model: str = Field(default="gpt-4o", description="OpenAI model name")
    openai_embedding_model: str = Field(
        default="text-embedding-3-large", description="OpenAI embedding model"
    )
    temperature: float = Field(default=0.2, ge=0.0, le=2.0)
    max_tokens: int = Field(default=8000, ge=1)

    # LangSmith Configuration
    langchain_tracing_v2: bool = Field(default=False)
    langchain_api_key: SecretStr | None = Field(default=None)
    langchain_project: str = Field(default="rfp-workflow")

    # Application Settings
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(default="INFO")
    environment: Literal["development", "staging", "production", "test"] = Field(
        default="development"
    )
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])

    # Persistence
    database_url: str = Field(default="sqlite:///./data/rfp_workflow.db")
    upload_directory: Path = Field(default=Path("./data/uploads"))
    max_upload_bytes: int = Field(default=50 * 1024 * 1024, ge=1)

    # Vector Store Settings
    chroma_persist_directory: Path = Field(default=Path("./data/chroma_db"))
    collection_name: str = Field(default="project_documents")
    top_k_results: int = Field(default=10, ge=1, le=100)
    similarity_threshold: float = Field(default=0.3, ge=0.0, le=1.0)

    # Chunking
    chunk_size: int = Field(default=1000, ge=100, le=4000)
    chunk_overlap: int = Field(default=200, ge=0, le=1000)
    embedding_batch_size: int = Field(default=10, ge=1, le=100)

    # Text extraction
    extraction_timeout_seconds: float = Field(default=30.0, gt=0)
    ocr_language: str = Field(default="eng+kor")
    ocr_max_pages: int = Field(default=20, ge=1)
    max_analysis_chars: int = Field(default=80000, ge=1000)

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
