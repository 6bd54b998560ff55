"""
Embeddings Base Module - Abstract interface for embedding providers.
===================================================================

Defines the abstract base class for embedding providers, enabling
provider-agnostic embedding operations. The embedding pipeline and the
vector index only talk to this interface, so switching between Gemini
and SBERT doesn't require changes to indexing or retrieval logic.
"""

from abc import ABC, abstractmethod
from typing import Optional

from course_indexer.shared.config import Settings, get_settings
from course_indexer.shared.exceptions import MissingCredentialsError
from course_indexer.shared.logging import get_logger
from course_indexer.shared.schemas import EmbeddingProviderName

logger = get_logger(__name__)

# Providers that call an external service, and the variable holding their key
PROVIDER_API_KEYS: dict[str, str] = {
    EmbeddingProviderName.GEMINI.value: "GEMINI_API_KEY",
}


# ─────────────────────────────────────────────────────────────────────────────
# Abstract Base Class
# ─────────────────────────────────────────────────────────────────────────────


class EmbeddingProvider(ABC):
    """
    Abstract base class for embedding providers.

    Implementations must provide:
    - embed_text(): Embed a single text string
    - embed_batch(): Embed one batch of texts in a single provider call

    Properties:
    - provider_name: Provider identifier (gemini, sbert)
    - model_name: Name of the embedding model
    - dimensions: Embedding vector dimensions
    - max_batch_size: Largest batch the provider accepts per call
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Get the provider name identifier."""
        pass

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Get the model name being used."""
        pass

    @property
    @abstractmethod
    def dimensions(self) -> int:
        """Get the embedding vector dimensions."""
        pass

    @property
    def max_batch_size(self) -> int:
        """Largest number of texts accepted by one embed_batch() call."""
        return 100

    @property
    def requires_api_key(self) -> bool:
        """Whether the provider calls a service that needs credentials."""
        return self.provider_name in PROVIDER_API_KEYS

    @abstractmethod
    def embed_text(self, text: str) -> list[float]:
        """
        Embed a single text string.

        Args:
            text: Text to embed

        Returns:
            Embedding vector as list of floats
        """
        pass

    @abstractmethod
    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """
        Embed one batch of texts.

        The batch must not exceed max_batch_size. Provider errors are
        raised to the caller, which owns retrying.

        Args:
            texts: List of texts to embed

        Returns:
            One embedding vector per text, in order
        """
        pass

    def embed_query(self, query: str) -> list[float]:
        """
        Embed a query text.

        Some providers may use different embeddings for queries vs documents.
        Default implementation just calls embed_text().
        """
        return self.embed_text(query)


# ─────────────────────────────────────────────────────────────────────────────
# Credentials
# ─────────────────────────────────────────────────────────────────────────────


def check_credentials(settings: Optional[Settings] = None) -> None:
    """
    Verify that the configured provider has the credentials it needs.

    Raises:
        MissingCredentialsError: If the provider's API key is not set
    """
    settings = settings or get_settings()
    provider_name = settings.get_effective_embedding_provider()

    env_var = PROVIDER_API_KEYS.get(provider_name)
    if env_var and not settings.gemini_api_key:
        raise MissingCredentialsError(provider_name, env_var)


# ─────────────────────────────────────────────────────────────────────────────
# Provider Factory
# ─────────────────────────────────────────────────────────────────────────────


_provider_cache: dict[str, EmbeddingProvider] = {}


def get_embedding_provider(
    provider_name: Optional[str] = None,
    use_cache: bool = True,
) -> EmbeddingProvider:
    """
    Get an embedding provider instance.

    Factory function that returns the appropriate provider based on
    configuration or explicit name.

    Args:
        provider_name: Provider name ("gemini" or "sbert"). If None, uses config.
        use_cache: Whether to cache and reuse provider instances

    Returns:
        EmbeddingProvider instance

    Raises:
        ValueError: If provider name is invalid
        MissingCredentialsError: If the provider needs an API key that is unset

    Example:
        >>> provider = get_embedding_provider()  # Uses config default
        >>> vectors = provider.embed_batch(["text1", "text2"])
    """
    if provider_name is None:
        settings = get_settings()
        provider_name = settings.get_effective_embedding_provider()

    provider_name = provider_name.lower().strip()

    if use_cache and provider_name in _provider_cache:
        return _provider_cache[provider_name]

    provider: EmbeddingProvider

    if provider_name == EmbeddingProviderName.GEMINI.value:
        from course_indexer.indexing.embeddings_gemini import GeminiEmbeddingProvider
        provider = GeminiEmbeddingProvider()

    elif provider_name == EmbeddingProviderName.SBERT.value:
        from course_indexer.indexing.embeddings_sbert import SBERTEmbeddingProvider
        provider = SBERTEmbeddingProvider()

    else:
        valid = ", ".join(p.value for p in EmbeddingProviderName)
        raise ValueError(f"Unknown embedding provider: {provider_name}. Valid options: {valid}")

    if use_cache:
        _provider_cache[provider_name] = provider

    logger.info(
        f"Initialized embedding provider: {provider.provider_name} "
        f"(model={provider.model_name}, dims={provider.dimensions})"
    )

    return provider


def clear_provider_cache() -> None:
    """Clear the provider cache."""
    _provider_cache.clear()
