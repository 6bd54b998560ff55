"""
SBERT Embeddings Module - Local embeddings via sentence-transformers.
====================================================================

Provides free, local embeddings using pre-trained SBERT models.
No API key required - runs entirely on local hardware. Install with the
``sbert`` extra.

Recommended models:
- all-MiniLM-L6-v2: Fast, 384 dimensions (default)
- all-mpnet-base-v2: Better quality, 768 dimensions
- multi-qa-MiniLM-L6-cos-v1: Optimized for Q&A
"""

from typing import Optional

from course_indexer.indexing.embeddings_base import EmbeddingProvider
from course_indexer.shared.config import get_settings
from course_indexer.shared.logging import get_logger

logger = get_logger(__name__)


# Model dimension mapping for common models
MODEL_DIMENSIONS = {
    "all-MiniLM-L6-v2": 384,
    "all-MiniLM-L12-v2": 384,
    "all-mpnet-base-v2": 768,
    "multi-qa-MiniLM-L6-cos-v1": 384,
    "multi-qa-mpnet-base-cos-v1": 768,
    "paraphrase-MiniLM-L6-v2": 384,
    "paraphrase-mpnet-base-v2": 768,
}


class SBERTEmbeddingProvider(EmbeddingProvider):
    """
    SBERT embedding provider using sentence-transformers.

    Features:
    - Free, local embeddings (no API key needed)
    - Automatic device selection (CPU/GPU)

    Example:
        >>> provider = SBERTEmbeddingProvider()
        >>> embedding = provider.embed_text("Hello world")
        >>> print(len(embedding))  # 384 for default model
    """

    def __init__(
        self,
        model_name: Optional[str] = None,
        device: Optional[str] = None,
        batch_size: Optional[int] = None,
    ):
        """
        Initialize the SBERT provider.

        Args:
            model_name: Model name from Hugging Face (default from config)
            device: Device to use ("cpu", "cuda", "auto")
            batch_size: Encoding batch size
        """
        settings = get_settings()
        sbert_config = settings.embeddings.sbert

        self._model_name = model_name or sbert_config.model_name
        self._device = device or sbert_config.device
        self._batch_size = batch_size or sbert_config.batch_size

        # Dimensions are fixed up front so an index can be built before the
        # model is loaded
        self._dimensions = MODEL_DIMENSIONS.get(
            self._model_name,
            sbert_config.dimensions,
        )

        self._model = None

        logger.debug(
            f"SBERT provider configured: model={self._model_name}, "
            f"device={self._device}, batch_size={self._batch_size}"
        )

    @property
    def provider_name(self) -> str:
        """Get the provider name."""
        return "sbert"

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
        return self._batch_size

    @property
    def model(self):
        """Lazy load and return the sentence transformer model."""
        if self._model is None:
            self._load_model()
        return self._model

    def _load_model(self) -> None:
        """Load the sentence transformer model."""
        try:
            from sentence_transformers import SentenceTransformer
        except ImportError as e:
            raise RuntimeError(
                "sentence-transformers is required for SBERT embeddings. "
                "Install with: pip install 'course-indexer[sbert]'"
            ) from e

        logger.info(f"Loading SBERT model: {self._model_name}")

        device = self._device
        if device == "auto":
            import torch
            device = "cuda" if torch.cuda.is_available() else "cpu"

        self._model = SentenceTransformer(self._model_name, device=device)

        actual = self._model.get_sentence_embedding_dimension()
        if actual != self._dimensions:
            logger.warning(
                f"SBERT model {self._model_name} produces {actual}-dim vectors, "
                f"configured {self._dimensions}"
            )
            self._dimensions = actual

        logger.info(f"SBERT model loaded: {self._model_name} (dims={actual}, device={device})")

    def embed_text(self, text: str) -> list[float]:
        """
        Embed a single text string.

        Args:
            text: Text to embed

        Returns:
            Embedding vector as list of floats
        """
        if not text or not text.strip():
            return [0.0] * self._dimensions

        embedding = self.model.encode(
            text,
            convert_to_numpy=True,
            show_progress_bar=False,
        )
        return embedding.tolist()

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """
        Embed one batch of texts.

        Args:
            texts: List of texts to embed

        Returns:
            List of embedding vectors
        """
        if not texts:
            return []

        non_empty_indices = [i for i, text in enumerate(texts) if text and text.strip()]
        result = [[0.0] * self._dimensions for _ in range(len(texts))]

        if non_empty_indices:
            embeddings = self.model.encode(
                [texts[i] for i in non_empty_indices],
                batch_size=self._batch_size,
                convert_to_numpy=True,
                show_progress_bar=False,
            )
            for i, emb in zip(non_empty_indices, embeddings):
                result[i] = emb.tolist()

        return result
