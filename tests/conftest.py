"""
Pytest Configuration and Fixtures.
===================================

Shared fixtures for all test modules:
- Sample course trees
- A deterministic in-process embedding provider
- Course content directories written to disk
- Configuration and cache resets
"""

import hashlib
import json
import math
import re
import textwrap
from pathlib import Path

import pytest

from course_indexer.indexing.embeddings_base import EmbeddingProvider


# ─────────────────────────────────────────────────────────────────────────────
# Fake Embedding Provider
# ─────────────────────────────────────────────────────────────────────────────


class HashingEmbeddingProvider(EmbeddingProvider):
    """
    Deterministic bag-of-words embeddings.

    Every lower-cased word and adjacent word pair is hashed into one of
    ``dimensions`` buckets. Texts sharing words get positive cosine
    similarity; no network or model download is involved.
    """

    def __init__(self, dimensions: int = 256, model_name: str = "hashing-test", max_batch: int = 100):
        self._dimensions = dimensions
        self._model_name = model_name
        self._max_batch = max_batch
        self.batch_calls: list[list[str]] = []
        self.query_calls: list[str] = []

    @property
    def provider_name(self) -> str:
        return "hashing"

    @property
    def model_name(self) -> str:
        return self._model_name

    @property
    def dimensions(self) -> int:
        return self._dimensions

    @property
    def max_batch_size(self) -> int:
        return self._max_batch

    def _bucket(self, token: str) -> int:
        digest = hashlib.md5(token.encode("utf-8")).hexdigest()
        return int(digest, 16) % self._dimensions

    def embed_text(self, text: str) -> list[float]:
        vector = [0.0] * self._dimensions
        words = re.findall(r"\w+", text.lower())
        for word in words:
            vector[self._bucket(word)] += 1.0
        for first, second in zip(words, words[1:]):
            vector[self._bucket(f"{first} {second}")] += 1.0

        norm = math.sqrt(sum(x * x for x in vector))
        if norm == 0:
            return vector
        return [x / norm for x in vector]

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        self.batch_calls.append(list(texts))
        return [self.embed_text(text) for text in texts]

    def embed_query(self, query: str) -> list[float]:
        self.query_calls.append(query)
        return self.embed_text(query)


@pytest.fixture
def fake_provider() -> HashingEmbeddingProvider:
    """Deterministic embedding provider."""
    return HashingEmbeddingProvider()


@pytest.fixture
def make_pipeline(fake_provider):
    """Build an EmbeddingPipeline with no retry waits or batch delay."""
    from course_indexer.indexing.pipeline import EmbeddingPipeline

    def _make(provider=None, **kwargs):
        options = {"max_retries": 3, "retry_min_wait": 0, "retry_max_wait": 0, "batch_delay": 0}
        options.update(kwargs)
        return EmbeddingPipeline(provider or fake_provider, **options)

    return _make


# ─────────────────────────────────────────────────────────────────────────────
# Sample Data Fixtures
# ─────────────────────────────────────────────────────────────────────────────


NEURAL_NETWORKS_TEXT = (
    "Neural networks are layered models that learn representations from data. "
    "Training neural networks uses backpropagation and gradient descent."
)


@pytest.fixture
def sample_course_data() -> dict:
    """Course definition as it appears in a unit (camelCase keys)."""
    return {
        "id": "intro-to-ai",
        "title": "Introduction to AI",
        "modules": [
            {
                "id": "foundations",
                "title": "Foundations",
                "lessons": [
                    {
                        "id": "what-is-ai",
                        "title": "What is AI?",
                        "duration": "20 min",
                        "content": "Artificial intelligence studies agents that perceive and act.",
                        "codeExamples": [
                            {
                                "id": "hello-agent",
                                "title": "Hello Agent",
                                "language": "python",
                                "code": "print('hello agent')",
                                "explanation": "Prints a greeting.",
                            }
                        ],
                        "assignments": [
                            {
                                "id": "reflect",
                                "title": "Reflection",
                                "difficulty": "easy",
                                "type": "essay",
                                "description": "Describe an intelligent agent you use daily.",
                                "hints": ["Think about your phone"],
                            }
                        ],
                        "resources": [
                            {"title": "AIMA", "type": "book", "url": "https://aima.cs.berkeley.edu"},
                            {"title": "Intro video", "type": "video", "url": "https://example.com/v"},
                        ],
                    },
                    {
                        "id": "neural-nets",
                        "title": "Neural Networks",
                        "duration": "30 min",
                        "content": NEURAL_NETWORKS_TEXT,
                    },
                ],
            }
        ],
    }


@pytest.fixture
def sample_course(sample_course_data):
    """Validated Course instance."""
    from course_indexer.shared.schemas import Course

    return Course.model_validate(sample_course_data)


def scenario_content() -> str:
    """2500 characters in four paragraphs that split into four content chunks."""
    paragraphs = [
        ("Agents perceive their environment. " * 20)[:624],
        ("Search explores state spaces. " * 25)[:624],
        ("Planning sequences actions toward goals. " * 20)[:624],
        ("Learning improves behaviour from experience. " * 20)[:622],
    ]
    content = "\n\n".join(paragraphs)
    assert len(content) == 2500
    return content


@pytest.fixture
def scenario_course_data() -> dict:
    """Course 'intro': one lesson with 2500 chars, 2 code examples, 1 assignment."""
    return {
        "id": "intro",
        "title": "Intro",
        "modules": [
            {
                "id": "m1",
                "title": "Module 1",
                "lessons": [
                    {
                        "id": "l1",
                        "title": "Lesson 1",
                        "duration": "45 min",
                        "content": scenario_content(),
                        "codeExamples": [
                            {"id": "c1", "title": "First", "language": "python", "code": "x = 1"},
                            {"id": "c2", "title": "Second", "language": "python", "code": "y = 2"},
                        ],
                        "assignments": [
                            {
                                "id": "a1",
                                "title": "Practice",
                                "difficulty": "medium",
                                "type": "coding",
                                "description": "Write an agent loop.",
                            }
                        ],
                        "resources": [],
                    }
                ],
            }
        ],
    }


# ─────────────────────────────────────────────────────────────────────────────
# Content Root Fixtures
# ─────────────────────────────────────────────────────────────────────────────


def write_package_unit(root: Path, unit_id: str, source: str) -> Path:
    """Write a course unit as a Python package."""
    unit_dir = root / unit_id
    unit_dir.mkdir(parents=True, exist_ok=True)
    (unit_dir / "__init__.py").write_text(textwrap.dedent(source), encoding="utf-8")
    return unit_dir


def write_manifest_unit(root: Path, unit_id: str, document: dict, filename: str = "course.json") -> Path:
    """Write a course unit as a JSON or YAML manifest."""
    import yaml

    unit_dir = root / unit_id
    unit_dir.mkdir(parents=True, exist_ok=True)
    if filename.endswith(".json"):
        text = json.dumps(document, indent=2)
    else:
        text = yaml.safe_dump(document, sort_keys=False)
    (unit_dir / filename).write_text(text, encoding="utf-8")
    return unit_dir


@pytest.fixture
def content_root(tmp_path: Path, sample_course_data: dict) -> Path:
    """
    Content root with three units plus entries that must be skipped.

    - intro-to-ai: Python package exporting ``introToAi``
    - rag-basics: YAML manifest whose document is the course
    - broken-unit: Python package without any course export
    """
    root = tmp_path / "content"
    root.mkdir()

    write_package_unit(
        root,
        "intro-to-ai",
        f"""
        introToAi = {sample_course_data!r}
        """,
    )

    write_manifest_unit(
        root,
        "rag-basics",
        {
            "id": "rag-basics",
            "title": "RAG Basics",
            "modules": [
                {
                    "id": "retrieval",
                    "title": "Retrieval",
                    "lessons": [
                        {
                            "id": "vector-search",
                            "title": "Vector Search",
                            "content": "Vector stores rank documents by cosine similarity.",
                            "codeExamples": [
                                {
                                    "id": "cosine",
                                    "title": "Cosine similarity",
                                    "language": "python",
                                    "code": "def cosine(a, b):\n    return a @ b",
                                }
                            ],
                        }
                    ],
                }
            ],
        },
        filename="course.yaml",
    )

    write_package_unit(
        root,
        "broken-unit",
        """
        VERSION = 3
        notes = {"title": "not a course"}
        """,
    )

    (root / ".hidden").mkdir()
    (root / "README.md").write_text("not a unit", encoding="utf-8")

    return root


# ─────────────────────────────────────────────────────────────────────────────
# Configuration Resets
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture(autouse=True)
def reset_singletons(monkeypatch):
    """Reset cached settings and providers between tests."""
    from course_indexer.indexing.embeddings_base import clear_provider_cache
    from course_indexer.shared.config import get_settings

    for var in ("EMBEDDING_PROVIDER", "CONTENT_ROOT", "INDEX_DIR", "TOP_K", "LOG_LEVEL"):
        monkeypatch.delenv(var, raising=False)

    get_settings.cache_clear()
    clear_provider_cache()

    yield

    get_settings.cache_clear()
    clear_provider_cache()


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "requires_api: marks tests that require API keys"
    )
