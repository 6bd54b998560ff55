"""
Schemas Module - Pydantic data models for the application.
==========================================================

Defines all data contracts used across the application:
- Course tree models (Course → Module → Lesson and lesson attachments)
- Chunk and index entry models
- Search result models
- Indexing statistics, progress records and persisted index metadata
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


# ─────────────────────────────────────────────────────────────────────────────
# Enums
# ─────────────────────────────────────────────────────────────────────────────


class ChunkType(str, Enum):
    """Category of a chunk, governing its formatting and splitting policy."""

    CONTENT = "content"
    CODE = "code"
    ASSIGNMENT = "assignment"
    RESOURCE = "resource"


class EmbeddingProviderName(str, Enum):
    """Embedding provider options."""

    GEMINI = "gemini"
    SBERT = "sbert"


# ─────────────────────────────────────────────────────────────────────────────
# Course Tree Models
# ─────────────────────────────────────────────────────────────────────────────


class CourseNode(BaseModel):
    """
    Base for course tree models.

    Accepts both snake_case and camelCase keys so that course definitions
    written as Python dicts or YAML manifests load alike. Instances are
    frozen: a loaded tree never changes during a run.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )


class CodeExample(CourseNode):
    """A code sample attached to a lesson."""

    id: str
    title: str
    language: str = ""
    code: str
    explanation: Optional[str] = None


class Assignment(CourseNode):
    """An exercise attached to a lesson."""

    id: str
    title: str
    difficulty: str = ""
    type: str = ""
    description: str = ""
    initial_code: Optional[str] = None
    hints: list[str] = Field(default_factory=list)


class Resource(CourseNode):
    """An external reading or reference linked from a lesson."""

    title: str
    type: str = ""
    url: str


class Lesson(CourseNode):
    """A single lesson with free-text content and optional attachments."""

    id: str
    title: str
    duration: str = ""
    content: str = ""
    code_examples: list[CodeExample] = Field(default_factory=list)
    assignments: list[Assignment] = Field(default_factory=list)
    resources: list[Resource] = Field(default_factory=list)


class Module(CourseNode):
    """An ordered group of lessons inside a course."""

    id: str
    title: str
    description: str = ""
    lessons: list[Lesson] = Field(default_factory=list)


class Course(CourseNode):
    """A course unit loaded from the content root."""

    id: str
    title: str
    modules: list[Module] = Field(default_factory=list)

    @property
    def lesson_count(self) -> int:
        return sum(len(module.lessons) for module in self.modules)


# ─────────────────────────────────────────────────────────────────────────────
# Chunk Models
# ─────────────────────────────────────────────────────────────────────────────


class ChunkMetadata(BaseModel):
    """
    Metadata that fully identifies where a chunk came from.

    ``chunk_index`` is dense and 0-based within one lesson's content split;
    code, assignment and resource chunks always use 0.
    """

    model_config = ConfigDict(frozen=True)

    course_id: str = Field(..., description="Parent course ID")
    course_title: str = Field(..., description="Parent course title")
    module_id: str = Field(..., description="Parent module ID")
    module_title: str = Field(..., description="Parent module title")
    lesson_id: str = Field(..., description="Parent lesson ID")
    lesson_title: str = Field(..., description="Parent lesson title")
    lesson_duration: str = Field(default="", description="Lesson display duration")
    chunk_type: ChunkType = Field(..., description="Chunk category")
    chunk_index: int = Field(default=0, ge=0, description="Sequence number within the split")
    code_language: Optional[str] = Field(default=None, description="Language of a code chunk")
    code_title: Optional[str] = Field(default=None, description="Title of a code chunk")

    def to_filter_dict(self) -> dict[str, Any]:
        """Convert to a flat dict for metadata filtering (None values dropped)."""
        data = self.model_dump(mode="json", exclude_none=True)
        return data


class Chunk(BaseModel):
    """The retrieval unit stored in the vector index."""

    model_config = ConfigDict(frozen=True)

    content: str = Field(..., description="Text passed to the embedding model")
    metadata: ChunkMetadata


class IndexEntry(BaseModel):
    """A chunk together with its embedding vector."""

    model_config = ConfigDict(frozen=True)

    chunk: Chunk
    embedding: list[float]


# ─────────────────────────────────────────────────────────────────────────────
# Search Models
# ─────────────────────────────────────────────────────────────────────────────


class SearchResult(BaseModel):
    """A single ranked hit returned by the vector index."""

    chunk: Chunk
    score: float = Field(..., description="Cosine similarity to the query")

    @property
    def content(self) -> str:
        return self.chunk.content

    @property
    def metadata(self) -> ChunkMetadata:
        return self.chunk.metadata

    @property
    def chunk_type(self) -> ChunkType:
        return self.chunk.metadata.chunk_type


# ─────────────────────────────────────────────────────────────────────────────
# Indexing Run Models
# ─────────────────────────────────────────────────────────────────────────────


class IndexingError(BaseModel):
    """An error recorded for the narrowest unit it belongs to."""

    course_id: Optional[str] = None
    module_id: Optional[str] = None
    lesson_id: Optional[str] = None
    error: str
    stack: Optional[str] = None

    @property
    def unit_label(self) -> str:
        """Path of the failing unit, or 'General' for run-level errors."""
        parts = [p for p in (self.course_id, self.module_id, self.lesson_id) if p]
        return "/".join(parts) if parts else "General"


class IndexingStats(BaseModel):
    """Counters and errors accumulated over one indexing run."""

    total_courses: int = 0
    total_modules: int = 0
    total_lessons: int = 0
    total_chunks: int = 0
    total_code_examples: int = 0
    indexing_time: int = Field(default=0, description="Run duration in milliseconds")
    errors: list[IndexingError] = Field(default_factory=list)

    @property
    def chunks_per_second(self) -> float:
        if self.indexing_time <= 0:
            return 0.0
        return self.total_chunks / (self.indexing_time / 1000)


class IndexingProgress(BaseModel):
    """Structured payload delivered to progress observers."""

    current_course: Optional[str] = None
    current_module: Optional[str] = None
    current_lesson: Optional[str] = None
    processed_courses: int = 0
    processed_modules: int = 0
    processed_lessons: int = 0
    processed_chunks: int = 0
    total_courses: int = 0
    progress: float = Field(default=0.0, description="Percentage of courses processed")


# ─────────────────────────────────────────────────────────────────────────────
# Persisted Models
# ─────────────────────────────────────────────────────────────────────────────


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class IndexMetadata(BaseModel):
    """Compact record used to decide whether a full run is needed."""

    last_indexed: datetime = Field(default_factory=_utcnow)
    version: str = Field(..., description="Snapshot schema version")
    total_chunks: int = 0
    total_courses: int = 0
    total_modules: int = 0
    total_lessons: int = 0


class SnapshotDocument(BaseModel):
    """One serialized index entry."""

    content: str
    metadata: ChunkMetadata
    embedding: list[float]


class IndexSnapshot(BaseModel):
    """Full serialized index: every entry, the run stats and a timestamp."""

    version: str
    timestamp: datetime = Field(default_factory=_utcnow)
    embedding_provider: str
    embedding_model: str
    embedding_dimensions: int
    documents: list[SnapshotDocument] = Field(default_factory=list)
    stats: IndexingStats = Field(default_factory=IndexingStats)


class RunLogEntry(BaseModel):
    """Summary of one indexing run, kept in the bounded run log."""

    timestamp: datetime = Field(default_factory=_utcnow)
    duration: str
    courses: int = 0
    modules: int = 0
    lessons: int = 0
    chunks: int = 0
    code_examples: int = 0
    errors: int = 0
