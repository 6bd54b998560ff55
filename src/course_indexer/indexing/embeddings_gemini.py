"""
Gemini Embeddings Module - Google GenAI embeddings API.
=======================================================

Provides embeddings through Google's Gemini API.
Requires a GEMINI_API_KEY from Google AI Studio.

Available models:
- text-embedding-004: Latest model, 768 dimensions (recommended)
- embedding-001: Legacy model
"""

from typing import Optional

from course_indexer.indexing.embeddings_base import EmbeddingProvider
from course_indexer.shared.config import get_settings
from course_indexer.shared.exceptions import MissingCredentialsError
from course_indexer.shared.logging import get_logger

logger = get_logger(__name__)


# Model dimension mapping
GEMINI_MODEL_DIMENSIONS = {
    "text-embedding-004": 768,
    "embedding-001": 768,
}

# The batchEmbedContents endpoint accepts at most 100 requests per call
GEMINI_MAX_BATCH_SIZE = 100

QUERY_TASK_TYPE = "RETRIEVAL_QUERY"


class GeminiEmbeddingProvider(EmbeddingProvider):
    """
    Gemini embedding provider using Google GenAI SDK.

    Features:
    - Task-specific embeddings (document vs query)
    - One API call per batch; retries are owned by the embedding pipeline

    Requires:
    - GEMINI_API_KEY environment variable

    Example:
        >>> provider = GeminiEmbeddingProvider()
        >>> embedding = provider.embed_text("Hello world")
        >>> print(len(embedding))  # 768
    """

    def __init__(
        self,
        model_name: Optional[str] = None,
        api_key: Optional[str] = None,
        task_type: Optional[str] = None,
    ):
        """
        Initialize the Gemini provider.

        Args:
            model_name: Embedding model name
            api_key: Gemini API key (defaults to GEMINI_API_KEY env var)
            task_type: Task type for document embeddings

        Raises:
            MissingCredentialsError: If no API key is available
        """
        settings = get_settings()
        gemini_config = settings.embeddings.gemini

        self._model_name = model_name or gemini_config.model_name
        self._api_key = api_key or settings.gemini_api_key
        self._task_type = task_type or gemini_config.task_type

        self._dimensions = GEMINI_MODEL_DIMENSIONS.get(
            self._model_name,
            gemini_config.dimensions,
        )

        if not self._api_key:
            raise MissingCredentialsError(self.provider_name, "GEMINI_API_KEY")

        # Initialize client lazily
        self._client = None

        logger.debug(
            f"Gemini provider configured: model={self._model_name}, task_type={self._task_type}"
        )

    @property
    def provider_name(self) -> str:
        """Get the provider name."""
        return "gemini"

    @property
    def model_name(self) -> str:
        """Get the model name."""
        return self._model_name

    @property
    def dimensions(self) -> int:
        """Get embedding dimensions."""
        return self._dimensions

    @property
    def max_batch_size(self) -> int:
        return GEMINI_MAX_BATCH_SIZE

    @property
    def client(self):
        """Lazy load and return the Gemini client."""
        if self._client is None:
            self._initialize_client()
        return self._client

    def _initialize_client(self) -> None:
        """Initialize the Google GenAI client."""
        from google import genai

        self._client = genai.Client(api_key=self._api_key)
        logger.info(f"Gemini client initialized for model: {self._model_name}")

    def _embed(self, contents: list[str], task_type: str) -> list[list[float]]:
        response = self.client.models.embed_content(
            model=self._model_name,
            contents=contents,
            config={"task_type": task_type},
        )
        vectors = [list(embedding.values) for embedding in response.embeddings]

        if len(vectors) != len(contents):
            raise RuntimeError(
                f"Gemini returned {len(vectors)} embeddings for {len(contents)} texts"
            )
        return vectors

    def embed_text(self, text: str) -> list[float]:
        """
        Embed a single document text.

        Args:
            text: Text to embed

        Returns:
            Embedding vector as list of floats
        """
        if not text or not text.strip():
            return [0.0] * self._dimensions
        return self._embed([text], self._task_type)[0]

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """
        Embed one batch of document texts in a single API call.

        Empty texts get zero vectors without being sent to the API.

        Args:
            texts: Texts to embed (at most max_batch_size)

        Returns:
            List of embedding vectors
        """
        if not texts:
            return []

        if len(texts) > GEMINI_MAX_BATCH_SIZE:
            raise ValueError(
                f"Batch of {len(texts)} exceeds the Gemini limit of {GEMINI_MAX_BATCH_SIZE}"
            )

        non_empty_indices = [i for i, text in enumerate(texts) if text and text.strip()]
        result = [[0.0] * self._dimensions for _ in range(len(texts))]

        if not non_empty_indices:
            return result

        vectors = self._embed([texts[i] for i in non_empty_indices], self._task_type)
        for orig_idx, vector in zip(non_empty_indices, vectors):
            result[orig_idx] = vector

        return result

    def embed_query(self, query: str) -> list[float]:
        """
        Embed a query text using the RETRIEVAL_QUERY task type.
        """
        if not query or not query.strip():
            return [0.0] * self._dimensions
        return self._embed([query], QUERY_TASK_TYPE)[0]
