"""
Tests for Ingestion Module.
===========================

Tests for:
- Export resolution: camel-case, default and course-shaped exports
- ContentLoader: unit discovery, Python packages and manifests
- RecursiveTextSplitter: boundary preference and chunk counts
- Chunker: per-type formatting, ordering and metadata
"""

import math
import sys

import pytest

from tests.conftest import scenario_content, write_manifest_unit, write_package_unit


def _course_dict(course_id: str, title: str = "A course") -> dict:
    return {
        "id": course_id,
        "title": title,
        "modules": [{"id": "m", "title": "M", "lessons": []}],
    }


# ─────────────────────────────────────────────────────────────────────────────
# Export Resolution Tests
# ─────────────────────────────────────────────────────────────────────────────


class TestExportResolution:
    """Tests for resolve_course_export and its strategy order."""

    def test_camel_case_export_wins(self):
        """Test that the camel-cased export is preferred over default."""
        from course_indexer.ingestion.loader import resolve_course_export

        exports = {
            "default": _course_dict("from-default"),
            "ragKnowledgeBase": _course_dict("from-camel"),
        }
        course = resolve_course_export(exports, "rag-knowledge-base")

        assert course.id == "from-camel"

    def test_default_export_before_structural(self):
        """Test that default is used when there is no camel-case export."""
        from course_indexer.ingestion.loader import resolve_course_export

        exports = {
            "otherCourse": _course_dict("structural"),
            "default": _course_dict("from-default"),
        }
        course = resolve_course_export(exports, "rag-knowledge-base")

        assert course.id == "from-default"

    def test_first_course_shaped_export(self):
        """Test that the first structurally matching export is used last."""
        from course_indexer.ingestion.loader import resolve_course_export

        exports = {
            "version": 2,
            "helpers": {"id": "no-modules"},
            "first": _course_dict("first"),
            "second": _course_dict("second"),
        }
        course = resolve_course_export(exports, "unit")

        assert course.id == "first"

    def test_missing_export_names_unit(self):
        """Test that MissingExportError names the unit."""
        from course_indexer.ingestion.loader import resolve_course_export
        from course_indexer.shared.exceptions import MissingExportError

        with pytest.raises(MissingExportError) as exc_info:
            resolve_course_export({"VERSION": 1}, "lonely-unit")

        assert exc_info.value.unit_id == "lonely-unit"
        assert "lonely-unit" in str(exc_info.value)

    def test_invalid_course_shape_is_load_error(self):
        """Test that a course-shaped but invalid definition fails validation."""
        from course_indexer.ingestion.loader import resolve_course_export
        from course_indexer.shared.exceptions import ContentLoadError, MissingExportError

        exports = {"default": {"id": "bad", "title": "Bad", "modules": [{"lessons": []}]}}

        with pytest.raises(ContentLoadError) as exc_info:
            resolve_course_export(exports, "bad")

        assert not isinstance(exc_info.value, MissingExportError)

    def test_looks_like_course(self, sample_course):
        """Test structural course detection."""
        from course_indexer.ingestion.loader import looks_like_course

        assert looks_like_course(sample_course)
        assert looks_like_course({"id": "x", "modules": []})
        assert not looks_like_course({"id": "x"})
        assert not looks_like_course({"id": "x", "modules": "nope"})
        assert not looks_like_course(None)
        assert not looks_like_course(dict)


# ─────────────────────────────────────────────────────────────────────────────
# Content Loader Tests
# ─────────────────────────────────────────────────────────────────────────────


class TestContentLoader:
    """Tests for the ContentLoader class."""

    def test_list_units_skips_hidden_and_files(self, content_root):
        """Test that only visible directories are units."""
        from course_indexer.ingestion.loader import ContentLoader

        loader = ContentLoader(content_root)

        assert loader.list_course_units() == ["broken-unit", "intro-to-ai", "rag-basics"]

    def test_list_units_missing_root(self, tmp_path):
        """Test that a missing content root is a load error."""
        from course_indexer.ingestion.loader import ContentLoader
        from course_indexer.shared.exceptions import ContentLoadError

        loader = ContentLoader(tmp_path / "does-not-exist")

        with pytest.raises(ContentLoadError):
            loader.list_course_units()

    def test_load_package_unit(self, content_root):
        """Test loading a Python package unit by its camel-case export."""
        from course_indexer.ingestion.loader import ContentLoader

        course = ContentLoader(content_root).load_course("intro-to-ai")

        assert course.id == "intro-to-ai"
        assert course.lesson_count == 2
        lesson = course.modules[0].lessons[0]
        assert lesson.code_examples[0].language == "python"
        assert lesson.assignments[0].hints == ["Think about your phone"]

    def test_load_package_unit_cleans_sys_modules(self, content_root):
        """Test that unit packages are not left registered."""
        from course_indexer.ingestion.loader import UNIT_MODULE_PREFIX, ContentLoader

        ContentLoader(content_root).load_course("intro-to-ai")

        assert not [name for name in sys.modules if name.startswith(UNIT_MODULE_PREFIX + ".")]

    def test_load_yaml_manifest_unit(self, content_root):
        """Test loading a YAML manifest whose document is the course."""
        from course_indexer.ingestion.loader import ContentLoader

        course = ContentLoader(content_root).load_course("rag-basics")

        assert course.title == "RAG Basics"
        assert course.modules[0].lessons[0].code_examples[0].id == "cosine"

    def test_load_json_manifest_named_exports(self, tmp_path):
        """Test that manifest keys act as named exports."""
        from course_indexer.ingestion.loader import ContentLoader

        write_manifest_unit(
            tmp_path,
            "data-science",
            {"dataScience": _course_dict("data-science"), "default": _course_dict("other")},
        )

        course = ContentLoader(tmp_path).load_course("data-science")

        assert course.id == "data-science"

    def test_package_unit_with_relative_import(self, tmp_path):
        """Test that a unit package can import its own submodules."""
        from course_indexer.ingestion.loader import ContentLoader

        unit_dir = write_package_unit(
            tmp_path,
            "split-unit",
            """
            from .course_data import splitUnit
            """,
        )
        (unit_dir / "course_data.py").write_text(
            f"splitUnit = {_course_dict('split-unit')!r}\n", encoding="utf-8"
        )

        course = ContentLoader(tmp_path).load_course("split-unit")

        assert course.id == "split-unit"

    def test_broken_unit_missing_export(self, content_root):
        """Test that a unit without a course export raises MissingExportError."""
        from course_indexer.ingestion.loader import ContentLoader
        from course_indexer.shared.exceptions import MissingExportError

        with pytest.raises(MissingExportError, match="broken-unit"):
            ContentLoader(content_root).load_course("broken-unit")

    def test_unit_raising_on_import(self, tmp_path):
        """Test that import-time failures become ContentLoadError."""
        from course_indexer.ingestion.loader import ContentLoader
        from course_indexer.shared.exceptions import ContentLoadError

        write_package_unit(tmp_path, "explodes", "raise RuntimeError('boom')\n")

        with pytest.raises(ContentLoadError, match="boom"):
            ContentLoader(tmp_path).load_course("explodes")

    def test_unit_without_definition_file(self, tmp_path):
        """Test that an empty unit directory is a load error."""
        from course_indexer.ingestion.loader import ContentLoader
        from course_indexer.shared.exceptions import ContentLoadError

        (tmp_path / "empty").mkdir()

        with pytest.raises(ContentLoadError, match="no course definition"):
            ContentLoader(tmp_path).load_course("empty")

    def test_malformed_manifest(self, tmp_path):
        """Test that an unparsable manifest is a load error."""
        from course_indexer.ingestion.loader import ContentLoader
        from course_indexer.shared.exceptions import ContentLoadError

        unit_dir = tmp_path / "bad-json"
        unit_dir.mkdir()
        (unit_dir / "course.json").write_text("{not json", encoding="utf-8")

        with pytest.raises(ContentLoadError):
            ContentLoader(tmp_path).load_course("bad-json")


# ─────────────────────────────────────────────────────────────────────────────
# Text Splitter Tests
# ─────────────────────────────────────────────────────────────────────────────


class TestRecursiveTextSplitter:
    """Tests for the RecursiveTextSplitter class."""

    @pytest.mark.parametrize("length", [1, 999, 1000, 1001, 1800, 2500, 5000])
    def test_chunk_count_without_boundaries(self, length: int):
        """Test that unbroken text yields ceil((L - O) / (S - O)) chunks."""
        from course_indexer.ingestion.chunker import ChunkerConfig, RecursiveTextSplitter

        splitter = RecursiveTextSplitter(ChunkerConfig(chunk_size=1000, chunk_overlap=200))
        chunks = splitter.split("a" * length)

        expected = max(1, math.ceil((length - 200) / 800))
        assert len(chunks) == expected
        assert all(len(chunk) <= 1000 for chunk in chunks)

    def test_chunks_overlap(self):
        """Test that consecutive hard-cut chunks share the overlap."""
        from course_indexer.ingestion.chunker import ChunkerConfig, RecursiveTextSplitter

        text = "".join(chr(ord("a") + i % 26) for i in range(2500))
        chunks = RecursiveTextSplitter(ChunkerConfig(chunk_size=1000, chunk_overlap=200)).split(text)

        assert chunks[0][-200:] == chunks[1][:200]
        assert chunks[0] == text[:1000]

    def test_empty_text(self):
        """Test that empty or blank text yields no chunks."""
        from course_indexer.ingestion.chunker import ChunkerConfig, RecursiveTextSplitter

        splitter = RecursiveTextSplitter(ChunkerConfig())

        assert splitter.split("") == []
        assert splitter.split("   \n\n  ") == []

    def test_prefers_paragraph_boundaries(self):
        """Test that paragraphs are kept whole when they fit."""
        from course_indexer.ingestion.chunker import ChunkerConfig, RecursiveTextSplitter

        splitter = RecursiveTextSplitter(ChunkerConfig(chunk_size=20, chunk_overlap=0))
        chunks = splitter.split("aaaa bbbb\n\ncccc dddd eeee ffff")

        assert chunks == ["aaaa bbbb", "cccc dddd eeee ffff"]

    def test_falls_back_to_words(self):
        """Test that an oversized paragraph is split on spaces."""
        from course_indexer.ingestion.chunker import ChunkerConfig, RecursiveTextSplitter

        splitter = RecursiveTextSplitter(ChunkerConfig(chunk_size=10, chunk_overlap=0))
        chunks = splitter.split("one two three four")

        assert chunks == ["one two", "three four"]

    def test_scenario_paragraphs(self):
        """Test that the four-paragraph 2500-char text yields four chunks."""
        from course_indexer.ingestion.chunker import ChunkerConfig, RecursiveTextSplitter

        chunks = RecursiveTextSplitter(ChunkerConfig()).split(scenario_content())

        assert len(chunks) == 4

    def test_config_rejects_overlap_not_smaller_than_size(self):
        """Test that overlap >= size is rejected."""
        from course_indexer.ingestion.chunker import ChunkerConfig

        with pytest.raises(ValueError):
            ChunkerConfig(chunk_size=100, chunk_overlap=100)

    def test_separators_without_hard_cut_still_bound_size(self):
        """Test that separators lacking "" get a hard cut appended."""
        from course_indexer.ingestion.chunker import ChunkerConfig, RecursiveTextSplitter

        separators = ["\n\n"]
        config = ChunkerConfig(chunk_size=10, chunk_overlap=0, separators=separators)
        chunks = RecursiveTextSplitter(config).split("a" * 25)

        assert config.separators == ["\n\n", ""]
        assert separators == ["\n\n"]
        assert chunks == ["a" * 10, "a" * 10, "a" * 5]


# ─────────────────────────────────────────────────────────────────────────────
# Chunker Tests
# ─────────────────────────────────────────────────────────────────────────────


class TestChunker:
    """Tests for the Chunker class."""

    def _lesson_chunks(self, course, lesson_index: int = 0):
        from course_indexer.ingestion.chunker import Chunker

        module = course.modules[0]
        return Chunker().chunk_lesson(course, module, module.lessons[lesson_index])

    def test_emission_order(self, sample_course):
        """Test that chunks come out as content, code, assignment, resource."""
        chunks = self._lesson_chunks(sample_course)

        assert [c.metadata.chunk_type.value for c in chunks] == [
            "content",
            "code",
            "assignment",
            "resource",
        ]

    def test_metadata_identifies_path(self, sample_course):
        """Test that every chunk carries the full course/module/lesson path."""
        for chunk in self._lesson_chunks(sample_course):
            metadata = chunk.metadata
            assert metadata.course_id == "intro-to-ai"
            assert metadata.course_title == "Introduction to AI"
            assert metadata.module_id == "foundations"
            assert metadata.lesson_id == "what-is-ai"
            assert metadata.lesson_duration == "20 min"
            assert metadata.chunk_index == 0

    def test_code_chunk_format(self, sample_course):
        """Test the labeled code block format."""
        code_chunk = self._lesson_chunks(sample_course)[1]

        assert code_chunk.content == (
            "Code Example: Hello Agent\n"
            "Language: python\n"
            "\n"
            "```python\n"
            "print('hello agent')\n"
            "```\n"
            "\n"
            "Explanation:\n"
            "Prints a greeting."
        )
        assert code_chunk.metadata.code_language == "python"
        assert code_chunk.metadata.code_title == "Hello Agent"

    def test_code_only_metadata_on_code_chunks(self, sample_course):
        """Test that code fields are absent on other chunk types."""
        for chunk in self._lesson_chunks(sample_course):
            if chunk.metadata.chunk_type.value != "code":
                assert chunk.metadata.code_language is None
                assert chunk.metadata.code_title is None
                assert "code_language" not in chunk.metadata.to_filter_dict()

    def test_assignment_chunk_format(self):
        """Test the assignment format with starter code and hints."""
        from course_indexer.ingestion.chunker import format_assignment
        from course_indexer.shared.schemas import Assignment

        assignment = Assignment(
            id="a",
            title="Build a chain",
            difficulty="hard",
            type="coding",
            description="Chain two prompts.",
            initial_code="chain = None",
            hints=["Use a pipe", "Test it"],
        )

        assert format_assignment(assignment) == (
            "Assignment: Build a chain\n"
            "Difficulty: hard\n"
            "Type: coding\n"
            "\n"
            "Chain two prompts.\n"
            "\n"
            "Initial Code:\n"
            "```\n"
            "chain = None\n"
            "```\n"
            "\n"
            "Hints:\n"
            "- Use a pipe\n"
            "- Test it"
        )

    def test_resources_merged_into_one_chunk(self, sample_course):
        """Test that all resources share a single chunk."""
        resource_chunk = self._lesson_chunks(sample_course)[-1]

        assert resource_chunk.content == (
            "Resources:\n"
            "- AIMA (book): https://aima.cs.berkeley.edu\n"
            "- Intro video (video): https://example.com/v"
        )

    def test_lesson_without_attachments(self, sample_course):
        """Test that absent fields produce no chunks."""
        chunks = self._lesson_chunks(sample_course, lesson_index=1)

        assert len(chunks) == 1
        assert chunks[0].metadata.chunk_type.value == "content"

    def test_empty_lesson_produces_nothing(self):
        """Test that a lesson with no content and no attachments is skipped."""
        from course_indexer.ingestion.chunker import Chunker
        from course_indexer.shared.schemas import Course

        course = Course.model_validate(
            {
                "id": "c",
                "title": "C",
                "modules": [{"id": "m", "title": "M", "lessons": [{"id": "l", "title": "L"}]}],
            }
        )
        module = course.modules[0]

        assert Chunker().chunk_lesson(course, module, module.lessons[0]) == []

    def test_scenario_type_completeness(self, scenario_course_data):
        """Test content + code + assignment + resource chunk totals."""
        from course_indexer.shared.schemas import Course

        course = Course.model_validate(scenario_course_data)
        chunks = self._lesson_chunks(course)
        content_chunks = [c for c in chunks if c.metadata.chunk_type.value == "content"]

        assert len(content_chunks) == 4
        assert [c.metadata.chunk_index for c in content_chunks] == [0, 1, 2, 3]
        assert len(chunks) == 4 + 2 + 1 + 0

    def test_chunk_course_walks_all_lessons(self, sample_course):
        """Test that chunk_course yields chunks of every lesson in order."""
        from course_indexer.ingestion.chunker import Chunker

        chunks = list(Chunker().chunk_course(sample_course))

        assert len(chunks) == 5
        assert chunks[-1].metadata.lesson_id == "neural-nets"


# ─────────────────────────────────────────────────────────────────────────────
# Utility Tests
# ─────────────────────────────────────────────────────────────────────────────


class TestUtils:
    """Tests for shared text and time helpers."""

    @pytest.mark.parametrize(
        "unit_id,expected",
        [
            ("rag-knowledge-base", "ragKnowledgeBase"),
            ("intro-to-ai", "introToAi"),
            ("langchain", "langchain"),
        ],
    )
    def test_to_camel_case(self, unit_id, expected):
        """Test export names derived from unit ids."""
        from course_indexer.shared.utils import to_camel_case

        assert to_camel_case(unit_id) == expected

    @pytest.mark.parametrize(
        "milliseconds,expected",
        [(0, "0s"), (59_999, "59s"), (60_000, "1m 0s"), (75_000, "1m 15s")],
    )
    def test_format_duration(self, milliseconds, expected):
        """Test duration formatting."""
        from course_indexer.shared.utils import format_duration

        assert format_duration(milliseconds) == expected

    def test_preview_text(self):
        """Test that previews are single-line and bounded."""
        from course_indexer.shared.utils import preview_text

        preview = preview_text("Line one\n\n  line two\n" + "x" * 300, 150)

        assert "\n" not in preview
        assert preview.startswith("Line one line two")
        assert len(preview) == 150
        assert preview.endswith("...")
