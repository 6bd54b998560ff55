"""
Indexer Module - Course indexing run orchestration.
===================================================

Drives one indexing run over the content root:

    ContentLoader -> Chunker -> EmbeddingPipeline -> VectorIndex

Courses, modules and lessons are processed sequentially. Each of them is
an error boundary: a failure is recorded as an IndexingError against the
narrowest unit and the run continues with the next sibling. Chunks that
were already indexed stay in the index.
"""

from pathlib import Path
from typing import Optional

from course_indexer.indexing.embeddings_base import EmbeddingProvider, get_embedding_provider
from course_indexer.indexing.pipeline import EmbeddingPipeline
from course_indexer.indexing.progress import ProgressObserver, StatsReporter
from course_indexer.indexing.snapshot import export_snapshot, import_snapshot
from course_indexer.indexing.vector_store import MetadataFilter, VectorIndex
from course_indexer.ingestion.chunker import Chunker
from course_indexer.ingestion.loader import ContentLoader
from course_indexer.shared.config import get_settings
from course_indexer.shared.exceptions import EmbeddingConfigError
from course_indexer.shared.logging import get_logger
from course_indexer.shared.schemas import Course, IndexingStats, Lesson, Module, SearchResult

logger = get_logger(__name__)


class CourseIndexer:
    """
    Builds and queries a vector index of course content.

    Example:
        >>> indexer = CourseIndexer(observer=my_observer)
        >>> stats = indexer.index_all_courses()
        >>> print(f"Indexed {stats.total_chunks} chunks")
        >>> results = indexer.search("langchain memory", k=3)
    """

    def __init__(
        self,
        embedding_provider: Optional[EmbeddingProvider] = None,
        content_root: Optional[Path] = None,
        loader: Optional[ContentLoader] = None,
        chunker: Optional[Chunker] = None,
        pipeline: Optional[EmbeddingPipeline] = None,
        index: Optional[VectorIndex] = None,
        observer: Optional[ProgressObserver] = None,
    ):
        """
        Initialize the indexer.

        Args:
            embedding_provider: Provider for documents and queries (default from config)
            content_root: Directory of course units (ignored if loader is given)
            loader: Custom content loader
            chunker: Custom chunker
            pipeline: Custom embedding pipeline
            index: Existing index to add to
            observer: Receives progress records during runs

        Raises:
            EmbeddingConfigError: If the pipeline and index disagree on the
                embedding model or dimensions
        """
        self.embedding_provider = embedding_provider or get_embedding_provider()
        self.loader = loader or ContentLoader(content_root)
        self.chunker = chunker or Chunker()
        self.pipeline = pipeline or EmbeddingPipeline(self.embedding_provider)
        self.index = index if index is not None else VectorIndex(self.embedding_provider)
        self.reporter = StatsReporter(observer)

        self._check_compatible(self.index)

    def _check_compatible(self, index: VectorIndex) -> None:
        if (
            self.pipeline.model_name != index.model_name
            or self.pipeline.dimensions != index.dimensions
        ):
            raise EmbeddingConfigError(
                f"Pipeline embeds with {self.pipeline.model_name} "
                f"({self.pipeline.dimensions} dims) but the index holds "
                f"{index.model_name} ({index.dimensions} dims) vectors"
            )

    @property
    def stats(self) -> IndexingStats:
        """Copy of the current run's stats."""
        return self.reporter.stats.model_copy(deep=True)

    # ─────────────────────────────────────────────────────────────────────────
    # Indexing
    # ─────────────────────────────────────────────────────────────────────────

    def index_all_courses(self) -> IndexingStats:
        """
        Rebuild the index from every course unit under the content root.

        Returns:
            Final stats of the run
        """
        self.index.clear()
        self.pipeline.reset_rate_limit()

        try:
            unit_ids = self.loader.list_course_units()
        except Exception as e:
            self.reporter.start_run(total_courses=0)
            self.reporter.record_error(e)
            return self.reporter.finish()

        self.reporter.start_run(total_courses=len(unit_ids))
        logger.info(f"Indexing {len(unit_ids)} course units from {self.loader.content_root}")

        for unit_id in unit_ids:
            self.reporter.course_started(unit_id)
            try:
                course = self.loader.load_course(unit_id)
                self.index_course(course)
            except Exception as e:
                self.reporter.record_error(e, course_id=unit_id)
            finally:
                self.reporter.course_completed()

        stats = self.reporter.finish()
        logger.info(
            f"Indexing finished: {stats.total_courses} courses, {stats.total_chunks} chunks, "
            f"{len(stats.errors)} errors in {stats.indexing_time} ms"
        )
        return stats

    def index_course(self, course: Course) -> int:
        """
        Index every module of a loaded course.

        The course counts as indexed when at least one of its modules
        completed, or when it has no modules.

        Returns:
            Number of chunks added to the index
        """
        added = 0
        completed_modules = 0
        for module in course.modules:
            try:
                added += self.index_module(course, module)
                completed_modules += 1
            except Exception as e:
                self.reporter.record_error(e, course_id=course.id, module_id=module.id)

        if course.modules and not completed_modules:
            logger.warning(f"Every module of course '{course.id}' failed")
            return added

        self.reporter.add_course()
        logger.info(f"Indexed course '{course.id}': {added} chunks")
        return added

    def index_module(self, course: Course, module: Module) -> int:
        """
        Index every lesson of a module.

        Returns:
            Number of chunks added to the index
        """
        self.reporter.module_started(module.id)

        added = 0
        for lesson in module.lessons:
            try:
                added += self.index_lesson(course, module, lesson)
            except Exception as e:
                self.reporter.record_error(
                    e, course_id=course.id, module_id=module.id, lesson_id=lesson.id
                )

        self.reporter.add_module()
        return added

    def index_lesson(self, course: Course, module: Module, lesson: Lesson) -> int:
        """
        Chunk, embed and index one lesson.

        Chunks of a batch that failed to embed are left out of the index and
        recorded as an error on this lesson.

        Returns:
            Number of chunks added to the index
        """
        self.reporter.lesson_started(lesson.id)

        chunks = self.chunker.chunk_lesson(course, module, lesson)
        self.reporter.add_code_examples(len(lesson.code_examples))

        result = self.pipeline.embed(chunks)
        self.index.add(result.entries)
        self.reporter.add_chunks(len(result.entries))

        for failure in result.failures:
            self.reporter.record_error(
                f"{len(failure.chunks)} chunks not indexed: {failure.error}",
                course_id=course.id,
                module_id=module.id,
                lesson_id=lesson.id,
            )

        self.reporter.add_lesson()
        return len(result.entries)

    # ─────────────────────────────────────────────────────────────────────────
    # Retrieval & Maintenance
    # ─────────────────────────────────────────────────────────────────────────

    def search(
        self,
        query: str,
        k: Optional[int] = None,
        filters: Optional[MetadataFilter] = None,
    ) -> list[SearchResult]:
        """
        Search the index.

        Args:
            query: Query text
            k: Number of results (default from config)
            filters: Optional metadata filter

        Returns:
            Ranked search results
        """
        if k is None:
            k = get_settings().get_effective_top_k()
        return self.index.query(query, k=k, filters=filters)

    def clear_index(self) -> None:
        """Empty the in-memory index and reset run stats."""
        self.index.clear()
        self.reporter.reset()

    def export_index(self) -> str:
        """Serialize the index and current stats."""
        return export_snapshot(self.index, self.reporter.stats)

    def import_index(self, data: str) -> IndexingStats:
        """
        Replace the in-memory index and stats with a serialized snapshot.

        Returns:
            Stats stored in the snapshot
        """
        index, stats = import_snapshot(data, self.embedding_provider)
        self._check_compatible(index)
        self.index = index
        self.reporter.load(stats)
        return stats
