"""
Vector Store Module - In-memory vector index with metadata filtering.
=====================================================================

Stores (vector, chunk) entries and answers nearest-neighbour queries:
- Cosine similarity by linear scan over a numpy matrix
- Metadata filters evaluated before ranking
- Stable ranking: equal scores keep insertion order
- One embedding model and dimensionality per index, checked on
  construction and on every add

Filters use a small where-clause language over chunk metadata:
- ``{"chunk_type": "code"}``: equality
- ``{"course_id": ["intro", "rag"]}``: membership
- several keys in one dict: all must hold
- ``{"$and": [...]}`` / ``{"$or": [...]}``: explicit conjunction/disjunction
- a callable taking ChunkMetadata and returning bool
"""

from collections import Counter
from collections.abc import Mapping
from typing import Any, Callable, Optional, Sequence, Union

import numpy as np

from course_indexer.indexing.embeddings_base import EmbeddingProvider
from course_indexer.shared.exceptions import EmbeddingConfigError
from course_indexer.shared.logging import get_logger
from course_indexer.shared.schemas import ChunkMetadata, IndexEntry, SearchResult

logger = get_logger(__name__)

MetadataFilter = Union[Mapping[str, Any], Callable[[ChunkMetadata], bool]]


# ─────────────────────────────────────────────────────────────────────────────
# Metadata Filters
# ─────────────────────────────────────────────────────────────────────────────


def build_where_clause(**filters: Any) -> dict[str, Any]:
    """
    Build a where clause from keyword filters.

    None values are skipped, lists become membership tests.

    Example:
        >>> build_where_clause(chunk_type="code", course_id=None)
        {'chunk_type': 'code'}
    """
    conditions = []

    for key, value in filters.items():
        if value is None:
            continue

        if isinstance(value, (list, tuple, set)):
            if value:
                conditions.append({key: list(value)})
        else:
            conditions.append({key: value})

    if not conditions:
        return {}
    elif len(conditions) == 1:
        return conditions[0]
    else:
        return {"$and": conditions}


def matches_filter(metadata: ChunkMetadata, where: Optional[MetadataFilter]) -> bool:
    """
    Evaluate a metadata filter against one chunk's metadata.

    Raises:
        ValueError: If the clause uses an unknown operator
    """
    if where is None:
        return True
    if callable(where):
        return bool(where(metadata))
    return _match_clause(metadata.to_filter_dict(), where)


def _match_clause(fields: dict[str, Any], clause: Mapping[str, Any]) -> bool:
    for key, expected in clause.items():
        if key == "$and":
            if not all(_match_clause(fields, sub) for sub in expected):
                return False
        elif key == "$or":
            if not any(_match_clause(fields, sub) for sub in expected):
                return False
        elif key.startswith("$"):
            raise ValueError(f"Unsupported filter operator: {key}")
        elif isinstance(expected, (list, tuple, set)):
            if fields.get(key) not in expected:
                return False
        elif fields.get(key) != expected:
            return False
    return True


# ─────────────────────────────────────────────────────────────────────────────
# Vector Index Class
# ─────────────────────────────────────────────────────────────────────────────


class VectorIndex:
    """
    In-memory similarity index over embedded chunks.

    Features:
    - Append-only adds (no deduplication at this layer)
    - Cosine-similarity top-k queries with optional metadata filters
    - Query embeddings computed with the same provider as the entries

    Example:
        >>> index = VectorIndex(provider)
        >>> index.add(entries)
        >>> hits = index.query("neural networks", k=3, filters={"chunk_type": "content"})
        >>> for hit in hits:
        ...     print(hit.score, hit.content[:50])
    """

    def __init__(
        self,
        embedding_provider: EmbeddingProvider,
        model_name: Optional[str] = None,
        dimensions: Optional[int] = None,
    ):
        """
        Initialize an empty index.

        Args:
            embedding_provider: Provider used to embed query text
            model_name: Expected model of stored vectors (defaults to provider's)
            dimensions: Expected vector length (defaults to provider's)

        Raises:
            EmbeddingConfigError: If the expected model or dimensions differ
                from the provider's
        """
        self._embedding_provider = embedding_provider
        self.model_name = model_name or embedding_provider.model_name
        self.dimensions = dimensions or embedding_provider.dimensions

        if self.model_name != embedding_provider.model_name:
            raise EmbeddingConfigError(
                f"Index model '{self.model_name}' does not match provider model "
                f"'{embedding_provider.model_name}'"
            )
        if self.dimensions != embedding_provider.dimensions:
            raise EmbeddingConfigError(
                f"Index dimensions ({self.dimensions}) do not match provider "
                f"dimensions ({embedding_provider.dimensions})"
            )

        self._entries: list[IndexEntry] = []
        self._matrix: Optional[np.ndarray] = None

    @property
    def embedding_provider(self) -> EmbeddingProvider:
        """Get the embedding provider."""
        return self._embedding_provider

    @property
    def entries(self) -> tuple[IndexEntry, ...]:
        """Stored entries in insertion order."""
        return tuple(self._entries)

    @property
    def count(self) -> int:
        """Get the number of entries in the index."""
        return len(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def add(self, entries: Sequence[IndexEntry]) -> int:
        """
        Append entries to the index.

        Args:
            entries: Embedded chunks to store

        Returns:
            Number of entries added

        Raises:
            EmbeddingConfigError: If any vector has the wrong dimensionality;
                nothing is added in that case
        """
        for entry in entries:
            if len(entry.embedding) != self.dimensions:
                raise EmbeddingConfigError(
                    f"Cannot add a {len(entry.embedding)}-dim vector to an index of "
                    f"{self.dimensions}-dim '{self.model_name}' vectors"
                )

        self._entries.extend(entries)
        self._matrix = None
        return len(entries)

    def clear(self) -> None:
        """Discard all entries."""
        self._entries = []
        self._matrix = None
        logger.debug("Cleared vector index")

    def query(
        self,
        query_text: str,
        k: int = 5,
        filters: Optional[MetadataFilter] = None,
    ) -> list[SearchResult]:
        """
        Query the index for chunks similar to a text.

        Args:
            query_text: Query text to search for
            k: Maximum number of results to return
            filters: Optional metadata filter applied before ranking

        Returns:
            At most k results ordered by descending similarity; an empty
            list for an empty index or blank query
        """
        if not self._entries or k <= 0 or not query_text or not query_text.strip():
            return []

        query_vector = self._embedding_provider.embed_query(query_text)
        return self.query_by_vector(query_vector, k=k, filters=filters)

    def query_by_vector(
        self,
        query_vector: Sequence[float],
        k: int = 5,
        filters: Optional[MetadataFilter] = None,
    ) -> list[SearchResult]:
        """Rank stored entries against an already computed query vector."""
        if not self._entries or k <= 0:
            return []

        if len(query_vector) != self.dimensions:
            raise EmbeddingConfigError(
                f"Query vector has {len(query_vector)} dimensions, index has {self.dimensions}"
            )

        candidates = np.array(
            [i for i, entry in enumerate(self._entries) if matches_filter(entry.chunk.metadata, filters)],
            dtype=np.int64,
        )
        if candidates.size == 0:
            return []

        scores = self._cosine_scores(np.asarray(query_vector, dtype=np.float64), candidates)

        # Stable sort keeps insertion order among equal scores
        order = np.argsort(-scores, kind="stable")[:k]

        return [
            SearchResult(chunk=self._entries[candidates[i]].chunk, score=float(scores[i]))
            for i in order
        ]

    def _cosine_scores(self, query: np.ndarray, candidates: np.ndarray) -> np.ndarray:
        matrix = self._get_matrix()[candidates]
        norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
        dots = matrix @ query

        scores = np.zeros(len(candidates), dtype=np.float64)
        nonzero = norms > 0
        scores[nonzero] = dots[nonzero] / norms[nonzero]
        return scores

    def _get_matrix(self) -> np.ndarray:
        if self._matrix is None:
            self._matrix = np.array([entry.embedding for entry in self._entries], dtype=np.float64)
        return self._matrix

    def get_stats(self) -> dict[str, Any]:
        """Get statistics about the index contents."""
        by_type: Counter[str] = Counter()
        by_course: Counter[str] = Counter()

        for entry in self._entries:
            metadata = entry.chunk.metadata
            by_type[metadata.chunk_type.value] += 1
            by_course[metadata.course_id] += 1

        return {
            "total_chunks": self.count,
            "total_courses": len(by_course),
            "chunks_by_type": dict(by_type),
            "chunks_by_course": dict(by_course),
            "embedding_provider": self._embedding_provider.provider_name,
            "embedding_model": self.model_name,
            "embedding_dimensions": self.dimensions,
        }
