"""
Exceptions Module - Error taxonomy for indexing and retrieval.
==============================================================

Fatal errors (credentials, corrupt snapshots) abort a CLI command.
Unit-level errors (content loading, embedding batches) are caught at the
course/module/lesson boundary and recorded as IndexingError entries.
"""

from typing import Optional


class CourseIndexerError(Exception):
    """Base class for all application errors."""


class MissingCredentialsError(CourseIndexerError):
    """The embedding provider needs an API key that is not configured."""

    def __init__(self, provider: str, env_var: str):
        self.provider = provider
        self.env_var = env_var
        super().__init__(
            f"{env_var} environment variable is not set "
            f"(required by the '{provider}' embedding provider)"
        )


class ContentLoadError(CourseIndexerError):
    """A course unit could not be read or parsed."""

    def __init__(self, unit_id: str, message: str):
        self.unit_id = unit_id
        super().__init__(f"Failed to load course unit '{unit_id}': {message}")


class MissingExportError(ContentLoadError):
    """No export of a course unit matched the resolution order."""

    def __init__(self, unit_id: str, tried: Optional[list[str]] = None):
        self.tried = tried or []
        detail = "no course export found"
        if self.tried:
            detail += f" (tried: {', '.join(self.tried)})"
        super().__init__(unit_id, detail)


class EmbeddingConfigError(CourseIndexerError):
    """Vectors from different models or dimensions would be mixed in one index."""


class EmbeddingBatchError(CourseIndexerError):
    """An embedding batch failed after exhausting its retries."""

    def __init__(self, batch_number: int, attempts: int, cause: BaseException):
        self.batch_number = batch_number
        self.attempts = attempts
        self.cause = cause
        super().__init__(
            f"Embedding batch {batch_number} failed after {attempts} attempts: {cause}"
        )


class SnapshotError(CourseIndexerError):
    """A persisted snapshot, metadata or stats file is missing or corrupt."""
