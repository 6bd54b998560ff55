"""
Snapshot Module - Index persistence and run metadata.
=====================================================

Persists an indexing run under the index directory:
- index.json: full snapshot (every entry's text, metadata and vector,
  the run stats and a timestamp)
- metadata.json: compact counters used for incremental-run decisions
- stats.json: the run's IndexingStats, errors included
- indexing.log: JSON array of recent run summaries (bounded)

Importing a snapshot never recomputes embeddings, so an imported index
ranks queries exactly like the index that was exported.
"""

import json
import shutil
from pathlib import Path
from typing import Any, Optional, TypeVar, Union

from pydantic import BaseModel, ValidationError

from course_indexer.indexing.embeddings_base import EmbeddingProvider
from course_indexer.indexing.vector_store import VectorIndex
from course_indexer.shared.config import get_settings
from course_indexer.shared.exceptions import SnapshotError
from course_indexer.shared.logging import get_logger
from course_indexer.shared.schemas import (
    Chunk,
    IndexEntry,
    IndexingStats,
    IndexMetadata,
    IndexSnapshot,
    RunLogEntry,
    SnapshotDocument,
)
from course_indexer.shared.utils import (
    ensure_directory,
    format_duration,
    load_json,
    save_json,
    write_text_atomic,
)

logger = get_logger(__name__)

SCHEMA_VERSION = "1.0.0"

ModelT = TypeVar("ModelT", bound=BaseModel)


# ─────────────────────────────────────────────────────────────────────────────
# Serialization
# ─────────────────────────────────────────────────────────────────────────────


def export_snapshot(index: VectorIndex, stats: IndexingStats) -> str:
    """
    Serialize an index and its run stats to a JSON document.

    Args:
        index: Index to export
        stats: Stats of the run that built the index

    Returns:
        JSON text of an IndexSnapshot
    """
    snapshot = IndexSnapshot(
        version=SCHEMA_VERSION,
        embedding_provider=index.embedding_provider.provider_name,
        embedding_model=index.model_name,
        embedding_dimensions=index.dimensions,
        documents=[
            SnapshotDocument(
                content=entry.chunk.content,
                metadata=entry.chunk.metadata,
                embedding=entry.embedding,
            )
            for entry in index.entries
        ],
        stats=stats,
    )
    return json.dumps(snapshot.model_dump(mode="json"), ensure_ascii=False)


def import_snapshot(
    data: Union[str, bytes],
    embedding_provider: EmbeddingProvider,
) -> tuple[VectorIndex, IndexingStats]:
    """
    Rebuild an index from a serialized snapshot.

    Args:
        data: JSON text produced by export_snapshot()
        embedding_provider: Provider used for query embeddings; must use the
            snapshot's model and dimensions

    Returns:
        Tuple of (index, stats)

    Raises:
        SnapshotError: If the document is not a valid snapshot
        EmbeddingConfigError: If the provider does not match the snapshot
    """
    try:
        snapshot = IndexSnapshot.model_validate(json.loads(data))
    except (json.JSONDecodeError, UnicodeDecodeError, ValidationError) as e:
        raise SnapshotError(f"Invalid index snapshot: {e}") from e

    if snapshot.version != SCHEMA_VERSION:
        logger.warning(
            f"Snapshot schema version {snapshot.version} differs from {SCHEMA_VERSION}"
        )

    index = VectorIndex(
        embedding_provider,
        model_name=snapshot.embedding_model,
        dimensions=snapshot.embedding_dimensions,
    )
    index.add(
        [
            IndexEntry(
                chunk=Chunk(content=doc.content, metadata=doc.metadata),
                embedding=doc.embedding,
            )
            for doc in snapshot.documents
        ]
    )

    logger.debug(f"Imported snapshot with {index.count} entries from {snapshot.timestamp}")
    return index, snapshot.stats


# ─────────────────────────────────────────────────────────────────────────────
# Snapshot Store
# ─────────────────────────────────────────────────────────────────────────────


class SnapshotStore:
    """
    Reads and writes snapshot files in the index directory.

    Missing files read as None; unreadable or invalid files raise
    SnapshotError.

    Example:
        >>> store = SnapshotStore()
        >>> store.save_snapshot(index, stats)
        >>> index, stats = store.load_snapshot(provider)
    """

    def __init__(self, index_dir: Optional[Path] = None):
        """
        Initialize the store.

        Args:
            index_dir: Directory for snapshot files (default from config)
        """
        settings = get_settings()
        paths = settings.paths

        self.index_dir = Path(index_dir) if index_dir else settings.get_effective_index_dir()
        self.snapshot_path = self.index_dir / paths.snapshot_file
        self.metadata_path = self.index_dir / paths.metadata_file
        self.stats_path = self.index_dir / paths.stats_file
        self.run_log_path = self.index_dir / paths.run_log_file
        self.run_log_limit = paths.run_log_limit

    def has_snapshot(self) -> bool:
        return self.snapshot_path.exists()

    def save_snapshot(self, index: VectorIndex, stats: IndexingStats) -> IndexMetadata:
        """
        Write the snapshot, metadata and stats files.

        Returns:
            The IndexMetadata record that was written
        """
        ensure_directory(self.index_dir)

        write_text_atomic(self.snapshot_path, export_snapshot(index, stats))

        metadata = IndexMetadata(
            version=SCHEMA_VERSION,
            total_chunks=stats.total_chunks,
            total_courses=stats.total_courses,
            total_modules=stats.total_modules,
            total_lessons=stats.total_lessons,
        )
        save_json(self.metadata_path, metadata.model_dump(mode="json"))
        save_json(self.stats_path, stats.model_dump(mode="json"))

        logger.info(f"Saved index snapshot: {index.count} entries -> {self.snapshot_path}")
        return metadata

    def load_snapshot(self, embedding_provider: EmbeddingProvider) -> Optional[tuple[VectorIndex, IndexingStats]]:
        """
        Load the full snapshot into a fresh index.

        Returns:
            Tuple of (index, stats), or None if no snapshot exists

        Raises:
            SnapshotError: If the snapshot file is unreadable or corrupt
        """
        if not self.snapshot_path.exists():
            return None

        try:
            data = self.snapshot_path.read_text(encoding="utf-8")
        except OSError as e:
            raise SnapshotError(f"Cannot read {self.snapshot_path}: {e}") from e

        return import_snapshot(data, embedding_provider)

    def load_metadata(self) -> Optional[IndexMetadata]:
        """Load metadata.json, or None if it does not exist."""
        return self._load_model(self.metadata_path, IndexMetadata)

    def load_stats(self) -> Optional[IndexingStats]:
        """Load stats.json, or None if it does not exist."""
        return self._load_model(self.stats_path, IndexingStats)

    def _load_model(self, path: Path, model: type[ModelT]) -> Optional[ModelT]:
        if not path.exists():
            return None

        try:
            return model.model_validate(load_json(path))
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            raise SnapshotError(f"Corrupt or unreadable file {path}: {e}") from e

    # ─────────────────────────────────────────────────────────────────────────
    # Run Log
    # ─────────────────────────────────────────────────────────────────────────

    def append_run_log(self, stats: IndexingStats) -> Optional[RunLogEntry]:
        """
        Append a run summary to the run log, keeping the newest entries.

        Failures are logged and ignored; the run log is informational.

        Returns:
            The appended entry, or None if the log could not be written
        """
        entry = RunLogEntry(
            duration=format_duration(stats.indexing_time),
            courses=stats.total_courses,
            modules=stats.total_modules,
            lessons=stats.total_lessons,
            chunks=stats.total_chunks,
            code_examples=stats.total_code_examples,
            errors=len(stats.errors),
        )

        try:
            entries: list[Any] = []
            if self.run_log_path.exists():
                loaded = load_json(self.run_log_path)
                if isinstance(loaded, list):
                    entries = loaded

            entries.append(entry.model_dump(mode="json"))
            save_json(self.run_log_path, entries[-self.run_log_limit :])
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Could not update run log {self.run_log_path}: {e}")
            return None

        return entry

    def load_run_log(self, limit: Optional[int] = None) -> list[RunLogEntry]:
        """
        Load run log entries, oldest first.

        Args:
            limit: Only return this many of the most recent entries

        Raises:
            SnapshotError: If the log is corrupt
        """
        if not self.run_log_path.exists():
            return []

        try:
            data = load_json(self.run_log_path)
            entries = [RunLogEntry.model_validate(item) for item in data]
        except (OSError, json.JSONDecodeError, TypeError, ValidationError) as e:
            raise SnapshotError(f"Corrupt run log {self.run_log_path}: {e}") from e

        if limit is not None:
            entries = entries[-limit:] if limit > 0 else []
        return entries

    def clear(self) -> bool:
        """
        Delete the index directory and everything in it.

        Returns:
            True if something was deleted
        """
        if not self.index_dir.exists():
            return False

        shutil.rmtree(self.index_dir)
        logger.info(f"Deleted index directory: {self.index_dir}")
        return True
