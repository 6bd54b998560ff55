"""
Ingestion Module - Load course units and chunk lessons.
=======================================================

This module turns the content root into chunks:

- loader: Discover course units and resolve their exported course definition
- chunker: Type-specific chunking of lesson content, code examples,
  assignments and resources

Pipeline flow:
    Content root → ContentLoader → Course trees → Chunker → Chunks
"""

from course_indexer.ingestion.loader import (
    EXPORT_STRATEGIES,
    ContentLoader,
    looks_like_course,
    resolve_course_export,
)
from course_indexer.ingestion.chunker import (
    Chunker,
    ChunkerConfig,
    RecursiveTextSplitter,
    format_assignment,
    format_code_example,
    format_resources,
)

__all__ = [
    # Loader
    "EXPORT_STRATEGIES",
    "ContentLoader",
    "looks_like_course",
    "resolve_course_export",
    # Chunker
    "Chunker",
    "ChunkerConfig",
    "RecursiveTextSplitter",
    "format_assignment",
    "format_code_example",
    "format_resources",
]
