"""Runtime configuration for the card pipeline."""

from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class PipelineSettings(BaseSettings):
    """Settings read from EPIGRAM_* environment variables or a .env file."""

    model_config = SettingsConfigDict(
        env_prefix="EPIGRAM_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Completion service
    model: str = Field(default="claude-sonnet-4-20250514", description="Claude model used for every tier")
    api_key: Optional[str] = Field(
        default=None, description="Anthropic API key (falls back to ANTHROPIC_API_KEY)"
    )
    completion_timeout: float = Field(default=60.0, gt=0, description="Seconds per completion attempt")
    completion_max_retries: int = Field(
        default=0,
        ge=0,
        description="SDK retries per call; a call may take (retries + 1) x completion_timeout",
    )
    max_workers: int = Field(default=4, ge=1, description="Concurrent completion calls per run")

    # Storage
    storage_dir: Path = Field(default=Path("storage"))
    cache_ttl_days: float = Field(default=7, gt=0, description="Age after which cached cards expire")

    # Chunking
    chunk_size: int = Field(default=3500, ge=200, description="Target characters per chunk")
    chunk_overlap: int = Field(default=300, ge=0, description="Characters carried into the next chunk")

    # Related chunks
    related_chunks_k: int = Field(default=3, ge=0)
    use_embeddings: bool = Field(default=False, description="Score related chunks with sentence embeddings")
    embedding_model: str = Field(default="all-MiniLM-L6-v2")

    # Grouping
    application_window: int = Field(default=3, ge=2, description="Flashcards per application call")
    synthesis_window: int = Field(default=8, ge=1, description="Chunks per group when there are no chapters")
    book_overview: bool = Field(
        default=True, description="Add one book overview card when there are several groups"
    )

    # Validation gate
    min_cards: int = Field(default=5, ge=1)
    max_invalid_ratio: float = Field(default=0.3, ge=0, le=1)

    log_level: str = Field(default="INFO")

    @property
    def chunks_dir(self) -> Path:
        return self.storage_dir / "chunks"

    @property
    def cache_dir(self) -> Path:
        return self.storage_dir / "cache"
