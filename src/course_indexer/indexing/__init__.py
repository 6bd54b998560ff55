"""
Indexing Module - Embeddings, vector index and persistence.
===========================================================

This module turns chunks into a searchable index:

- embeddings_base: Abstract interface for embedding providers
- embeddings_gemini: Gemini API embeddings (default)
- embeddings_sbert: SBERT (sentence-transformers) local embeddings
- pipeline: Batched embedding with retries and failure isolation
- vector_store: In-memory cosine-similarity index with metadata filters
- progress: Progress events and run statistics
- snapshot: Snapshot export/import, metadata, stats and run log files
- indexer: Orchestrates a run from content root to index

Provider abstraction allows switching between Gemini and SBERT
without changing indexing or retrieval logic.
"""

from course_indexer.indexing.embeddings_base import (
    EmbeddingProvider,
    check_credentials,
    clear_provider_cache,
    get_embedding_provider,
)
from course_indexer.indexing.embeddings_gemini import GeminiEmbeddingProvider
from course_indexer.indexing.embeddings_sbert import SBERTEmbeddingProvider
from course_indexer.indexing.pipeline import BatchFailure, EmbeddingPipeline, EmbeddingResult
from course_indexer.indexing.vector_store import VectorIndex, build_where_clause, matches_filter
from course_indexer.indexing.progress import ProgressObserver, StatsReporter
from course_indexer.indexing.snapshot import (
    SCHEMA_VERSION,
    SnapshotStore,
    export_snapshot,
    import_snapshot,
)
from course_indexer.indexing.indexer import CourseIndexer

__all__ = [
    # Base
    "EmbeddingProvider",
    "check_credentials",
    "clear_provider_cache",
    "get_embedding_provider",
    # Providers
    "GeminiEmbeddingProvider",
    "SBERTEmbeddingProvider",
    # Pipeline
    "BatchFailure",
    "EmbeddingPipeline",
    "EmbeddingResult",
    # Vector Index
    "VectorIndex",
    "build_where_clause",
    "matches_filter",
    # Progress
    "ProgressObserver",
    "StatsReporter",
    # Snapshot
    "SCHEMA_VERSION",
    "SnapshotStore",
    "export_snapshot",
    "import_snapshot",
    # Indexer
    "CourseIndexer",
]
