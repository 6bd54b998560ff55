"""
Pipeline Module - Batched embedding of chunks.
==============================================

Turns chunks into index entries by calling the embedding provider in
batches:
- Batches never exceed the provider's maximum batch size
- A failing batch is retried with exponential backoff
- A batch that exhausts its retries is reported as a failure for its own
  chunks only; the remaining batches still run
- A short fixed delay before every provider call after the first one of
  a run acts as simple rate limiting, across embed() calls as well
"""

import time
from dataclasses import dataclass, field
from typing import Optional

from tenacity import (
    RetryError,
    Retrying,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)
from tqdm import tqdm

from course_indexer.indexing.embeddings_base import EmbeddingProvider
from course_indexer.shared.config import get_settings
from course_indexer.shared.exceptions import EmbeddingBatchError, EmbeddingConfigError
from course_indexer.shared.logging import get_logger
from course_indexer.shared.schemas import Chunk, IndexEntry

logger = get_logger(__name__)


@dataclass
class BatchFailure:
    """Chunks of one batch that could not be embedded."""

    chunks: list[Chunk]
    error: EmbeddingBatchError


@dataclass
class EmbeddingResult:
    """Outcome of embedding a sequence of chunks."""

    entries: list[IndexEntry] = field(default_factory=list)
    failures: list[BatchFailure] = field(default_factory=list)

    @property
    def failed_chunks(self) -> list[Chunk]:
        return [chunk for failure in self.failures for chunk in failure.chunks]


class EmbeddingPipeline:
    """
    Embeds chunks in provider-sized batches with bounded retries.

    Example:
        >>> pipeline = EmbeddingPipeline(provider)
        >>> result = pipeline.embed(chunks)
        >>> index.add(result.entries)
    """

    def __init__(
        self,
        embedding_provider: EmbeddingProvider,
        batch_size: Optional[int] = None,
        max_retries: Optional[int] = None,
        retry_min_wait: Optional[float] = None,
        retry_max_wait: Optional[float] = None,
        batch_delay: Optional[float] = None,
    ):
        """
        Initialize the pipeline.

        Args:
            embedding_provider: Provider used for every batch
            batch_size: Chunks per provider call (capped by the provider limit)
            max_retries: Attempts per batch before it is given up
            retry_min_wait: Minimum backoff between attempts, in seconds
            retry_max_wait: Maximum backoff between attempts, in seconds
            batch_delay: Pause between consecutive batches, in seconds
        """
        config = get_settings().embeddings

        self.provider = embedding_provider
        requested = batch_size or config.batch_size
        self.batch_size = max(1, min(requested, embedding_provider.max_batch_size))
        self.max_retries = max(1, max_retries if max_retries is not None else config.max_retries)
        self.retry_min_wait = retry_min_wait if retry_min_wait is not None else config.retry_min_wait
        self.retry_max_wait = retry_max_wait if retry_max_wait is not None else config.retry_max_wait
        self.batch_delay = batch_delay if batch_delay is not None else config.batch_delay
        self._calls_made = 0

    @property
    def model_name(self) -> str:
        return self.provider.model_name

    @property
    def dimensions(self) -> int:
        return self.provider.dimensions

    def embed(self, chunks: list[Chunk], show_progress: bool = False) -> EmbeddingResult:
        """
        Embed chunks, preserving their order.

        Args:
            chunks: Chunks to embed
            show_progress: Whether to show a progress bar over batches

        Returns:
            EmbeddingResult with the embedded entries and any failed batches

        Raises:
            EmbeddingConfigError: If the provider returns vectors of the
                wrong dimensionality
        """
        result = EmbeddingResult()
        if not chunks:
            return result

        starts = range(0, len(chunks), self.batch_size)
        iterator = tqdm(starts, desc="Embedding", unit="batch") if show_progress else starts

        for batch_number, start in enumerate(iterator, start=1):
            batch = chunks[start : start + self.batch_size]

            try:
                vectors = self._embed_with_retry([chunk.content for chunk in batch], batch_number)
            except EmbeddingBatchError as e:
                logger.warning(str(e))
                result.failures.append(BatchFailure(chunks=list(batch), error=e))
                continue

            for chunk, vector in zip(batch, vectors):
                result.entries.append(IndexEntry(chunk=chunk, embedding=vector))

        logger.debug(
            f"Embedded {len(result.entries)}/{len(chunks)} chunks "
            f"({len(result.failures)} failed batches)"
        )
        return result

    def reset_rate_limit(self) -> None:
        """Start a new run: the next provider call is not delayed."""
        self._calls_made = 0

    def _wait_for_rate_limit(self) -> None:
        if self._calls_made > 0 and self.batch_delay > 0:
            time.sleep(self.batch_delay)
        self._calls_made += 1

    def _embed_with_retry(self, texts: list[str], batch_number: int) -> list[list[float]]:
        retrying = Retrying(
            retry=retry_if_not_exception_type(EmbeddingConfigError),
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(min=self.retry_min_wait, max=self.retry_max_wait),
            before_sleep=lambda retry_state: logger.warning(
                f"Retry {retry_state.attempt_number}/{self.max_retries} for embedding "
                f"batch {batch_number}: {retry_state.outcome.exception()}"
            ),
        )

        try:
            return retrying(self._embed_batch, texts)
        except RetryError as e:
            cause = e.last_attempt.exception()
            raise EmbeddingBatchError(batch_number, self.max_retries, cause) from cause

    def _embed_batch(self, texts: list[str]) -> list[list[float]]:
        self._wait_for_rate_limit()
        vectors = self.provider.embed_batch(texts)

        if len(vectors) != len(texts):
            raise RuntimeError(f"Provider returned {len(vectors)} vectors for {len(texts)} texts")

        for vector in vectors:
            if len(vector) != self.dimensions:
                raise EmbeddingConfigError(
                    f"Model {self.model_name} returned a {len(vector)}-dim vector, "
                    f"expected {self.dimensions}"
                )

        return [[float(x) for x in vector] for vector in vectors]
