"""
Progress Module - Progress events and run statistics.
=====================================================

Tracks an indexing run as it walks courses, modules and lessons:
- Accumulates IndexingStats counters and per-unit IndexingError records
- Emits an IndexingProgress record to an optional observer before each
  course, module and lesson, and after each completed course
- Observer failures are logged and ignored; they never abort a run
"""

import time
import traceback
from typing import Optional, Protocol, Union, runtime_checkable

from course_indexer.shared.logging import get_logger
from course_indexer.shared.schemas import IndexingError, IndexingProgress, IndexingStats

logger = get_logger(__name__)


@runtime_checkable
class ProgressObserver(Protocol):
    """Receives progress records synchronously during a run."""

    def on_progress(self, progress: IndexingProgress) -> None: ...


class StatsReporter:
    """
    Accumulates run statistics and notifies a progress observer.

    Stats are collected whether or not an observer is registered.

    Example:
        >>> reporter = StatsReporter(observer)
        >>> reporter.start_run(total_courses=3)
        >>> reporter.course_started("intro")
        >>> reporter.add_chunks(7)
        >>> reporter.course_completed()
        >>> stats = reporter.finish()
    """

    def __init__(self, observer: Optional[ProgressObserver] = None):
        self.observer = observer
        self.reset()

    def reset(self) -> None:
        """Zero all counters, errors and progress state."""
        self._stats = IndexingStats()
        self._progress = IndexingProgress()
        self._started_at: Optional[float] = None

    def load(self, stats: IndexingStats) -> None:
        """Adopt the stats of a previous run, e.g. from an imported snapshot."""
        self.reset()
        self._stats = stats.model_copy(deep=True)

    @property
    def stats(self) -> IndexingStats:
        """Live stats for the current run."""
        return self._stats

    @property
    def progress(self) -> IndexingProgress:
        return self._progress.model_copy()

    # ─────────────────────────────────────────────────────────────────────────
    # Run Lifecycle
    # ─────────────────────────────────────────────────────────────────────────

    def start_run(self, total_courses: int) -> None:
        self.reset()
        self._started_at = time.perf_counter()
        self._progress.total_courses = total_courses

    def finish(self) -> IndexingStats:
        """
        Close the run and return an immutable copy of its stats.

        Returns:
            Deep copy of the accumulated IndexingStats with indexing_time set
        """
        if self._started_at is not None:
            elapsed = time.perf_counter() - self._started_at
            self._stats.indexing_time = int(elapsed * 1000)
        return self._stats.model_copy(deep=True)

    # ─────────────────────────────────────────────────────────────────────────
    # Progress Events
    # ─────────────────────────────────────────────────────────────────────────

    def course_started(self, course_id: str) -> None:
        self._progress.current_course = course_id
        self._progress.current_module = None
        self._progress.current_lesson = None
        self._emit()

    def module_started(self, module_id: str) -> None:
        self._progress.current_module = module_id
        self._progress.current_lesson = None
        self._emit()

    def lesson_started(self, lesson_id: str) -> None:
        self._progress.current_lesson = lesson_id
        self._emit()

    def course_completed(self) -> None:
        """Mark one course as processed, whether it succeeded or failed."""
        self._progress.processed_courses += 1
        total = self._progress.total_courses
        if total > 0:
            self._progress.progress = round(100 * self._progress.processed_courses / total, 2)
        self._emit()

    def _emit(self) -> None:
        if self.observer is None:
            return
        try:
            self.observer.on_progress(self._progress.model_copy())
        except Exception as e:
            logger.warning(f"Progress observer failed: {e}")

    # ─────────────────────────────────────────────────────────────────────────
    # Counters
    # ─────────────────────────────────────────────────────────────────────────

    def add_course(self) -> None:
        self._stats.total_courses += 1

    def add_module(self) -> None:
        self._stats.total_modules += 1
        self._progress.processed_modules += 1

    def add_lesson(self) -> None:
        self._stats.total_lessons += 1
        self._progress.processed_lessons += 1

    def add_chunks(self, count: int) -> None:
        self._stats.total_chunks += count
        self._progress.processed_chunks += count

    def add_code_examples(self, count: int) -> None:
        self._stats.total_code_examples += count

    # ─────────────────────────────────────────────────────────────────────────
    # Errors
    # ─────────────────────────────────────────────────────────────────────────

    def record_error(
        self,
        error: Union[BaseException, str],
        course_id: Optional[str] = None,
        module_id: Optional[str] = None,
        lesson_id: Optional[str] = None,
    ) -> IndexingError:
        """
        Record an error against the narrowest unit it belongs to.

        Args:
            error: The exception raised, or a plain message
            course_id: Failing course, if any
            module_id: Failing module, if any
            lesson_id: Failing lesson, if any

        Returns:
            The recorded IndexingError
        """
        if isinstance(error, BaseException):
            message = str(error) or type(error).__name__
            stack = "".join(traceback.format_exception(type(error), error, error.__traceback__))
        else:
            message = error
            stack = None

        record = IndexingError(
            course_id=course_id,
            module_id=module_id,
            lesson_id=lesson_id,
            error=message,
            stack=stack,
        )
        self._stats.errors.append(record)
        logger.warning(f"Error indexing {record.unit_label}: {message}")
        return record
