"""
Shared Module - Common utilities, configuration, schemas, and logging.
======================================================================

This module provides foundational components used across all other modules:

- config: Configuration loading and management
- logging: Structured logging setup
- schemas: Pydantic data models
- exceptions: Error taxonomy
- utils: Utility functions (file I/O, formatting)
"""

from course_indexer.shared.config import get_settings, reload_settings, Settings
from course_indexer.shared.logging import get_logger, setup_logging
from course_indexer.shared.exceptions import (
    ContentLoadError,
    CourseIndexerError,
    EmbeddingBatchError,
    EmbeddingConfigError,
    MissingCredentialsError,
    MissingExportError,
    SnapshotError,
)
from course_indexer.shared.schemas import (
    Assignment,
    Chunk,
    ChunkMetadata,
    ChunkType,
    CodeExample,
    Course,
    IndexEntry,
    IndexingError,
    IndexingProgress,
    IndexingStats,
    IndexMetadata,
    Lesson,
    Module,
    Resource,
    SearchResult,
)
from course_indexer.shared.utils import (
    ensure_directory,
    format_duration,
    load_json,
    save_json,
)

__all__ = [
    # Config
    "get_settings",
    "reload_settings",
    "Settings",
    # Logging
    "get_logger",
    "setup_logging",
    # Exceptions
    "ContentLoadError",
    "CourseIndexerError",
    "EmbeddingBatchError",
    "EmbeddingConfigError",
    "MissingCredentialsError",
    "MissingExportError",
    "SnapshotError",
    # Schemas
    "Assignment",
    "Chunk",
    "ChunkMetadata",
    "ChunkType",
    "CodeExample",
    "Course",
    "IndexEntry",
    "IndexingError",
    "IndexingProgress",
    "IndexingStats",
    "IndexMetadata",
    "Lesson",
    "Module",
    "Resource",
    "SearchResult",
    # Utils
    "ensure_directory",
    "format_duration",
    "load_json",
    "save_json",
]
