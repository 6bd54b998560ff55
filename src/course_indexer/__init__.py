"""
Course Indexer - Semantic indexing and retrieval for course content
===================================================================

Turns a directory of course units (course → module → lesson, with code
examples, assignments and resources) into a searchable semantic index:

- ingestion: discover and load course units, chunk lessons by content type
- indexing: batched embeddings, in-memory vector index, progress and
  statistics, snapshot persistence
- cli: index, incremental, stats, clear, search and help commands

Indexed snapshots are written to ``.course-index/`` and reloaded for
offline search without recomputing embeddings.
"""

__version__ = "0.1.0"
__author__ = "Course Indexer Team"
__license__ = "MIT"

# Public API - lazy imports to avoid circular dependencies and speed up startup
__all__ = [
    # Version info
    "__version__",
    "__author__",
    "__license__",
    # Main modules (imported on demand)
    "shared",
    "ingestion",
    "indexing",
    "cli",
]
