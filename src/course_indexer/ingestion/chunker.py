"""
Chunker Module - Hierarchical lesson chunking for vector storage.
=================================================================

Converts each lesson's heterogeneous content into retrieval chunks:
- Prose content is split recursively, preferring paragraph, then line,
  then word boundaries, with a configurable size and overlap
- Each code example becomes one labeled chunk (never split)
- Each assignment becomes one chunk
- All resources of a lesson are merged into a single chunk

Emission order within a lesson: content (by chunk index), code,
assignments, resources. Empty or absent fields produce no chunk.
"""

from collections import deque
from dataclasses import dataclass, field
from typing import Iterator, Optional

from course_indexer.shared.config import get_settings
from course_indexer.shared.logging import get_logger
from course_indexer.shared.schemas import (
    Assignment,
    Chunk,
    ChunkMetadata,
    ChunkType,
    CodeExample,
    Course,
    Lesson,
    Module,
    Resource,
)

logger = get_logger(__name__)


# ─────────────────────────────────────────────────────────────────────────────
# Chunking Configuration
# ─────────────────────────────────────────────────────────────────────────────


@dataclass
class ChunkerConfig:
    """Configuration for text chunking."""

    # Chunk size limits (in characters)
    chunk_size: int = 1000
    chunk_overlap: int = 200

    # Boundaries tried in order; "" means a hard cut between characters
    separators: list[str] = field(default_factory=lambda: ["\n\n", "\n", " ", ""])

    def __post_init__(self) -> None:
        if self.chunk_overlap >= self.chunk_size:
            raise ValueError(
                f"chunk_overlap ({self.chunk_overlap}) must be smaller than "
                f"chunk_size ({self.chunk_size})"
            )
        # The hard cut is always the last resort, so no chunk exceeds chunk_size
        if "" not in self.separators:
            self.separators = [*self.separators, ""]


# ─────────────────────────────────────────────────────────────────────────────
# Text Splitter
# ─────────────────────────────────────────────────────────────────────────────


class RecursiveTextSplitter:
    """
    Splits text into overlapping chunks respecting boundaries.

    The first separator present in the text is used to cut it into pieces.
    Pieces shorter than the chunk size are merged back together up to the
    chunk size, carrying up to ``chunk_overlap`` characters of trailing
    pieces into the next chunk. Pieces that are still too long are split
    again with the remaining separators. With no whitespace at all, text is
    hard-cut so that a text of length L yields ceil((L - O) / (S - O))
    chunks for L > S.
    """

    def __init__(self, config: ChunkerConfig):
        """Initialize the splitter with configuration."""
        self.config = config

    def split(self, text: str) -> list[str]:
        """
        Split text into chunks.

        Args:
            text: Text to split

        Returns:
            List of non-empty, whitespace-stripped chunks
        """
        if not text or not text.strip():
            return []
        return self._split(text, self.config.separators)

    def _split(self, text: str, separators: list[str]) -> list[str]:
        # Pick the first separator that occurs in the text
        separator = separators[-1]
        remaining: list[str] = []
        for i, candidate in enumerate(separators):
            if candidate == "":
                separator = candidate
                break
            if candidate in text:
                separator = candidate
                remaining = separators[i + 1 :]
                break

        pieces = text.split(separator) if separator else list(text)
        pieces = [p for p in pieces if p]

        chunks: list[str] = []
        short_pieces: list[str] = []

        for piece in pieces:
            if len(piece) < self.config.chunk_size:
                short_pieces.append(piece)
                continue

            if short_pieces:
                chunks.extend(self._merge(short_pieces, separator))
                short_pieces = []

            if remaining:
                chunks.extend(self._split(piece, remaining))
            else:
                chunks.append(piece)

        if short_pieces:
            chunks.extend(self._merge(short_pieces, separator))

        return chunks

    def _merge(self, pieces: list[str], separator: str) -> list[str]:
        """Merge short pieces into chunks of at most chunk_size with overlap."""
        size = self.config.chunk_size
        overlap = self.config.chunk_overlap
        sep_len = len(separator)

        merged: list[str] = []
        window: deque[str] = deque()
        total = 0

        for piece in pieces:
            piece_len = len(piece)
            joined_len = total + piece_len + (sep_len if window else 0)

            if joined_len > size and window:
                chunk = self._join(window, separator)
                if chunk:
                    merged.append(chunk)

                # Drop leading pieces until only the overlap remains
                while total > overlap or (
                    total + piece_len + (sep_len if window else 0) > size and total > 0
                ):
                    total -= len(window[0]) + (sep_len if len(window) > 1 else 0)
                    window.popleft()

            window.append(piece)
            total += piece_len + (sep_len if len(window) > 1 else 0)

        chunk = self._join(window, separator)
        if chunk:
            merged.append(chunk)

        return merged

    @staticmethod
    def _join(pieces: deque[str], separator: str) -> str:
        return separator.join(pieces).strip()


# ─────────────────────────────────────────────────────────────────────────────
# Formatting
# ─────────────────────────────────────────────────────────────────────────────


def format_code_example(example: CodeExample) -> str:
    """Format a code example as a labeled, fenced block."""
    parts = [
        f"Code Example: {example.title}",
        f"Language: {example.language}",
        "",
        f"```{example.language}",
        example.code,
        "```",
    ]

    if example.explanation:
        parts.extend(["", "Explanation:", example.explanation])

    return "\n".join(parts)


def format_assignment(assignment: Assignment) -> str:
    """Format an assignment with its optional starter code and hints."""
    parts = [
        f"Assignment: {assignment.title}",
        f"Difficulty: {assignment.difficulty}",
        f"Type: {assignment.type}",
        "",
        assignment.description,
    ]

    if assignment.initial_code:
        parts.extend(["", "Initial Code:", "```", assignment.initial_code, "```"])

    if assignment.hints:
        parts.extend(["", "Hints:"])
        parts.extend(f"- {hint}" for hint in assignment.hints)

    return "\n".join(parts)


def format_resources(resources: list[Resource]) -> str:
    """Merge a lesson's resources into one listing; empty if there are none."""
    if not resources:
        return ""

    lines = ["Resources:"]
    lines.extend(f"- {r.title} ({r.type}): {r.url}" for r in resources)
    return "\n".join(lines)


# ─────────────────────────────────────────────────────────────────────────────
# Chunker Class
# ─────────────────────────────────────────────────────────────────────────────


class Chunker:
    """
    Chunks lessons into typed retrieval units.

    Every chunk carries the full Course/Module/Lesson path in its metadata.

    Example:
        >>> chunker = Chunker()
        >>> chunks = chunker.chunk_lesson(course, module, lesson)
        >>> for chunk in chunks:
        ...     print(chunk.metadata.chunk_type, len(chunk.content))
    """

    def __init__(self, config: Optional[ChunkerConfig] = None):
        """
        Initialize the chunker.

        Args:
            config: Custom configuration (loads from settings if None)
        """
        if config is None:
            settings = get_settings()
            config = ChunkerConfig(
                chunk_size=settings.chunking.chunk_size,
                chunk_overlap=settings.chunking.chunk_overlap,
                separators=list(settings.chunking.separators),
            )

        self.config = config
        self.splitter = RecursiveTextSplitter(config)

    def chunk_lesson(self, course: Course, module: Module, lesson: Lesson) -> list[Chunk]:
        """
        Chunk a single lesson.

        Args:
            course: Owning course
            module: Owning module
            lesson: Lesson to chunk

        Returns:
            Chunks in emission order: content, code, assignments, resources
        """
        chunks: list[Chunk] = []

        for index, text in enumerate(self.splitter.split(lesson.content)):
            chunks.append(self._make_chunk(course, module, lesson, text, ChunkType.CONTENT, index))

        for example in lesson.code_examples:
            chunks.append(
                self._make_chunk(
                    course,
                    module,
                    lesson,
                    format_code_example(example),
                    ChunkType.CODE,
                    code_language=example.language,
                    code_title=example.title,
                )
            )

        for assignment in lesson.assignments:
            chunks.append(
                self._make_chunk(
                    course, module, lesson, format_assignment(assignment), ChunkType.ASSIGNMENT
                )
            )

        resources_text = format_resources(lesson.resources)
        if resources_text:
            chunks.append(
                self._make_chunk(course, module, lesson, resources_text, ChunkType.RESOURCE)
            )

        logger.debug(f"Created {len(chunks)} chunks for lesson {course.id}/{module.id}/{lesson.id}")
        return chunks

    def chunk_course(self, course: Course) -> Iterator[Chunk]:
        """
        Chunk every lesson of a course.

        Yields:
            Chunks in course order
        """
        for module in course.modules:
            for lesson in module.lessons:
                yield from self.chunk_lesson(course, module, lesson)

    @staticmethod
    def _make_chunk(
        course: Course,
        module: Module,
        lesson: Lesson,
        content: str,
        chunk_type: ChunkType,
        chunk_index: int = 0,
        code_language: Optional[str] = None,
        code_title: Optional[str] = None,
    ) -> Chunk:
        metadata = ChunkMetadata(
            course_id=course.id,
            course_title=course.title,
            module_id=module.id,
            module_title=module.title,
            lesson_id=lesson.id,
            lesson_title=lesson.title,
            lesson_duration=lesson.duration,
            chunk_type=chunk_type,
            chunk_index=chunk_index,
            code_language=code_language,
            code_title=code_title,
        )
        return Chunk(content=content, metadata=metadata)
