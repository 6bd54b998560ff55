"""
Configuration Module - Load and validate application settings.
==============================================================

Loads configuration from:
1. config/settings.yaml (defaults)
2. Environment variables from .env file
3. Environment variables from system

Top-level environment overrides (GEMINI_API_KEY, EMBEDDING_PROVIDER,
CONTENT_ROOT, INDEX_DIR, TOP_K, LOG_LEVEL) take precedence over YAML values
through the ``get_effective_*`` accessors.
"""

from functools import lru_cache
from pathlib import Path
from typing import Any, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env file early
load_dotenv()


# Find project root (where pyproject.toml is located)
def _find_project_root() -> Path:
    """Find the project root directory by looking for pyproject.toml."""
    current = Path(__file__).resolve()
    for parent in [current] + list(current.parents):
        if (parent / "pyproject.toml").exists():
            return parent
    # Fallback to current working directory
    return Path.cwd()


PROJECT_ROOT = _find_project_root()
CONFIG_DIR = PROJECT_ROOT / "config"
DEFAULT_CONFIG_FILE = CONFIG_DIR / "settings.yaml"


# ─────────────────────────────────────────────────────────────────────────────
# Nested Configuration Models
# ─────────────────────────────────────────────────────────────────────────────


class ContentConfig(BaseModel):
    """Course content discovery settings."""

    root_dir: str = "content"
    index_filename: str = "__init__.py"
    manifest_filenames: list[str] = Field(
        default_factory=lambda: ["course.yaml", "course.yml", "course.json"]
    )


class ChunkingConfig(BaseModel):
    """Text chunking settings."""

    chunk_size: int = 1000
    chunk_overlap: int = 200
    separators: list[str] = Field(default_factory=lambda: ["\n\n", "\n", " ", ""])

    @model_validator(mode="after")
    def check_overlap(self) -> "ChunkingConfig":
        if self.chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        if self.chunk_overlap < 0 or self.chunk_overlap >= self.chunk_size:
            raise ValueError(
                f"chunk_overlap ({self.chunk_overlap}) must be smaller than "
                f"chunk_size ({self.chunk_size})"
            )
        return self


class SBERTConfig(BaseModel):
    """SBERT embeddings settings."""

    model_name: str = "all-MiniLM-L6-v2"
    dimensions: int = 384
    device: str = "auto"
    batch_size: int = 32


class GeminiEmbeddingConfig(BaseModel):
    """Gemini embeddings settings."""

    model_name: str = "text-embedding-004"
    dimensions: int = 768
    task_type: str = "RETRIEVAL_DOCUMENT"


class EmbeddingsConfig(BaseModel):
    """Embedding provider and pipeline settings."""

    provider: str = "gemini"
    batch_size: int = 100
    max_retries: int = 3
    retry_min_wait: float = 1.0
    retry_max_wait: float = 10.0
    batch_delay: float = 0.1
    sbert: SBERTConfig = Field(default_factory=SBERTConfig)
    gemini: GeminiEmbeddingConfig = Field(default_factory=GeminiEmbeddingConfig)


class RetrievalConfig(BaseModel):
    """Search settings."""

    top_k: int = 5
    preview_length: int = 150


class PathsConfig(BaseModel):
    """Index storage paths."""

    index_dir: str = ".course-index"
    snapshot_file: str = "index.json"
    metadata_file: str = "metadata.json"
    stats_file: str = "stats.json"
    run_log_file: str = "indexing.log"
    run_log_limit: int = 100


class LoggingConfig(BaseModel):
    """Logging settings."""

    level: str = "INFO"
    format: str = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
    rich_console: bool = True
    file: str = ""


# ─────────────────────────────────────────────────────────────────────────────
# Main Settings Class
# ─────────────────────────────────────────────────────────────────────────────


class Settings(BaseSettings):
    """
    Main application settings.

    Loads from:
    1. config/settings.yaml (defaults)
    2. Environment variables

    Environment variables override YAML settings.
    """

    model_config = SettingsConfigDict(
        env_prefix="",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    # API Keys (from environment only)
    gemini_api_key: str = Field(default="", validation_alias="GEMINI_API_KEY")

    # Top-level environment overrides
    embedding_provider: Optional[str] = Field(default=None, validation_alias="EMBEDDING_PROVIDER")
    content_root: Optional[str] = Field(default=None, validation_alias="CONTENT_ROOT")
    index_dir: Optional[str] = Field(default=None, validation_alias="INDEX_DIR")
    top_k: Optional[int] = Field(default=None, validation_alias="TOP_K")
    log_level: Optional[str] = Field(default=None, validation_alias="LOG_LEVEL")

    # Nested configurations (from YAML)
    content: ContentConfig = Field(default_factory=ContentConfig)
    chunking: ChunkingConfig = Field(default_factory=ChunkingConfig)
    embeddings: EmbeddingsConfig = Field(default_factory=EmbeddingsConfig)
    retrieval: RetrievalConfig = Field(default_factory=RetrievalConfig)
    paths: PathsConfig = Field(default_factory=PathsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    _project_root: Path = PROJECT_ROOT

    @field_validator("gemini_api_key", mode="before")
    @classmethod
    def validate_api_key(cls, v: Any) -> str:
        """Allow an empty API key; providers that need one check it at startup."""
        if v is None:
            return ""
        return str(v).strip()

    @property
    def project_root(self) -> Path:
        """Get the project root directory."""
        return self._project_root

    def get_effective_embedding_provider(self) -> str:
        """Get the effective embedding provider (env override or config)."""
        if self.embedding_provider:
            return self.embedding_provider.lower()
        return self.embeddings.provider.lower()

    def get_effective_content_root(self) -> Path:
        """Get the course content root (env override or config)."""
        return self._project_root / (self.content_root or self.content.root_dir)

    def get_effective_index_dir(self) -> Path:
        """Get the directory holding snapshot files (env override or config)."""
        return self._project_root / (self.index_dir or self.paths.index_dir)

    def get_effective_top_k(self) -> int:
        """Get the effective top-k value (env override or config)."""
        if self.top_k is not None:
            return self.top_k
        return self.retrieval.top_k

    def get_effective_log_level(self) -> str:
        """Get the effective log level (env override or config)."""
        if self.log_level:
            return self.log_level.upper()
        return self.logging.level.upper()


def _load_yaml_config(config_path: Path) -> dict[str, Any]:
    """Load configuration from YAML file."""
    if not config_path.exists():
        return {}

    with open(config_path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
        return data if data else {}


def _create_settings(config_path: Optional[Path] = None) -> Settings:
    """Create settings instance by merging YAML defaults with environment."""
    if config_path is None:
        config_path = DEFAULT_CONFIG_FILE

    yaml_config = _load_yaml_config(config_path)
    return Settings(**yaml_config)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Get the singleton settings instance.

    Returns:
        Settings instance with merged configuration

    Example:
        >>> settings = get_settings()
        >>> print(settings.chunking.chunk_size)
        1000
    """
    return _create_settings()


def reload_settings() -> Settings:
    """
    Force reload of settings (clears cache).

    Returns:
        Fresh Settings instance
    """
    get_settings.cache_clear()
    return get_settings()
