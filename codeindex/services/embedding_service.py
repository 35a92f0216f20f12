"""
Embedding service with support for multiple embedding providers
"""
import logging
from abc import ABC, abstractmethod
from typing import List

import requests

from codeindex.config import Settings
from codeindex.exceptions import ConfigurationError, DimensionMismatchError, EmbeddingError

# Set up logging
logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

DEFAULT_MODELS = {
    "ollama": "nomic-embed-text",
    "jina": "jina-embeddings-v3",
}


class BaseEmbedder(ABC):
    """Abstract base class for embedding providers"""

    @abstractmethod
    def embed_texts(self, texts: List[str]) -> List[List[float]]:
        """
        Embed a list of texts into vectors.

        Args:
            texts: List of text strings to embed

        Returns:
            List of embedding vectors (each vector is a list of floats)
        """
        pass

    @abstractmethod
    def get_embedding_dimension(self) -> int:
        """
        Get the dimension of embeddings produced by this model.

        Returns:
            Dimension size (e.g., 768)
        """
        pass


class OllamaEmbedder(BaseEmbedder):
    """Ollama embedding provider using the local REST API"""

    def __init__(self, base_url: str = "http://127.0.0.1:11434", model: str = "nomic-embed-text",
                 dimensions: int = 768, timeout: float = 60.0):
        """
        Initialize Ollama embedder.

        Args:
            base_url: Ollama server URL
            model: Name of the embedding model (default: nomic-embed-text)
            dimensions: Expected embedding dimensions (default: 768)
            timeout: Request timeout in seconds
        """
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.dimensions = dimensions
        self.timeout = timeout
        self.api_url = f"{self.base_url}/api/embed"

    def embed_texts(self, texts: List[str]) -> List[List[float]]:
        """Embed texts using the Ollama /api/embed endpoint"""
        logger.debug(f"[OllamaEmbedder] Embedding {len(texts)} text(s) with model {self.model}")

        payload = {"model": self.model, "input": texts}

        try:
            response = requests.post(self.api_url, json=payload, timeout=self.timeout)
            response.raise_for_status()
        except requests.exceptions.Timeout as e:
            logger.error(f"[OllamaEmbedder] API timeout: {str(e)}")
            raise EmbeddingError(f"Ollama API timeout: {str(e)}") from e
        except requests.exceptions.RequestException as e:
            logger.error(f"[OllamaEmbedder] API request error: {str(e)}")
            raise EmbeddingError(f"Error calling Ollama API: {str(e)}") from e

        result = response.json()
        if "embeddings" not in result:
            logger.error(f"[OllamaEmbedder] Unexpected response format: {list(result.keys())}")
            raise EmbeddingError(f"Unexpected response format from Ollama API: {result}")

        embeddings = result["embeddings"]
        if len(embeddings) != len(texts):
            raise EmbeddingError(
                f"Ollama returned {len(embeddings)} embedding(s) for {len(texts)} text(s)"
            )
        return embeddings

    def get_embedding_dimension(self) -> int:
        return self.dimensions


class JinaEmbedder(BaseEmbedder):
    """Jina AI embedding provider using API"""

    def __init__(self, api_key: str = None, model: str = "jina-embeddings-v3", task: str = "text-matching",
                 dimensions: int = 768, timeout: float = 30.0):
        """
        Initialize Jina embedder.

        Args:
            api_key: Jina AI API key
            model: Name of the Jina model (default: jina-embeddings-v3)
            task: Task type for embeddings (default: text-matching)
            dimensions: Embedding dimensions (default: 768)
            timeout: Request timeout in seconds
        """
        if not api_key:
            raise ConfigurationError("JINA_API_KEY is required for Jina embeddings")

        self.api_key = api_key
        self.model = model
        self.task = task
        self.dimensions = dimensions
        self.timeout = timeout
        self.api_url = "https://api.jina.ai/v1/embeddings"

    def embed_texts(self, texts: List[str]) -> List[List[float]]:
        """Embed texts using Jina AI API"""
        logger.debug(f"[JinaEmbedder] Model: {self.model}, Task: {self.task}, Dimensions: {self.dimensions}")

        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}"
        }
        payload = {
            "model": self.model,
            "task": self.task,
            "dimensions": self.dimensions,
            "input": texts
        }

        try:
            response = requests.post(self.api_url, json=payload, headers=headers, timeout=self.timeout)
            response.raise_for_status()
        except requests.exceptions.Timeout as e:
            logger.error(f"[JinaEmbedder] API timeout: {str(e)}")
            raise EmbeddingError(f"Jina API timeout: {str(e)}") from e
        except requests.exceptions.RequestException as e:
            logger.error(f"[JinaEmbedder] API request error: {str(e)}")
            logger.error(f"[JinaEmbedder] Response status: {getattr(e.response, 'status_code', 'N/A')}")
            raise EmbeddingError(f"Error calling Jina API: {str(e)}") from e

        result = response.json()
        # The API returns data in the format: {"data": [{"embedding": [...], ...}, ...]}
        if "data" not in result:
            logger.error(f"[JinaEmbedder] Unexpected response format: {result}")
            raise EmbeddingError(f"Unexpected response format from Jina API: {result}")
        embeddings = [item["embedding"] for item in result["data"]]
        if len(embeddings) != len(texts):
            raise EmbeddingError(
                f"Jina returned {len(embeddings)} embedding(s) for {len(texts)} text(s)"
            )
        return embeddings

    def get_embedding_dimension(self) -> int:
        return self.dimensions


class EmbeddingService:
    """Service class that provides embedding functionality with provider selection"""

    def __init__(self, embedder: BaseEmbedder, batch_size: int = 32):
        if batch_size < 1:
            raise ConfigurationError("Embedding batch size must be at least 1")
        self.embedder = embedder
        self.batch_size = batch_size

    @classmethod
    def from_settings(cls, settings: Settings) -> "EmbeddingService":
        """
        Build the service for the provider named in settings.

        Raises:
            ConfigurationError: For an unknown provider
        """
        provider = settings.embedding_provider
        if provider not in DEFAULT_MODELS:
            raise ConfigurationError(
                f"Unknown embedding provider: {provider}. "
                "Supported providers: 'ollama', 'jina'"
            )
        model = settings.embedding_model or DEFAULT_MODELS[provider]

        if provider == "ollama":
            embedder = OllamaEmbedder(
                base_url=settings.ollama_base_url,
                model=model,
                dimensions=settings.embedding_dimension,
                timeout=settings.embedding_timeout,
            )
        else:
            embedder = JinaEmbedder(
                api_key=settings.jina_api_key,
                model=model,
                dimensions=settings.embedding_dimension,
                timeout=settings.embedding_timeout,
            )
        logger.info(f"[EmbeddingService] Using provider {provider} with model {model}")
        return cls(embedder, batch_size=settings.embedding_batch_size)

    def embed(self, text: str) -> List[float]:
        """Embed a single text"""
        return self.embed_batch([text])[0]

    def embed_batch(self, texts: List[str]) -> List[List[float]]:
        """
        Embed a list of texts, calling the provider in sub-batches.

        Args:
            texts: List of text strings

        Returns:
            List of embedding vectors, in input order

        Raises:
            EmbeddingError: If the provider fails or returns the wrong number of vectors
            DimensionMismatchError: If a vector has the wrong length
        """
        if not texts:
            return []

        expected = self.get_embedding_dimension()
        vectors: List[List[float]] = []
        logger.info(f"[EmbeddingService] Embedding {len(texts)} text(s)")
        for start in range(0, len(texts), self.batch_size):
            batch = texts[start:start + self.batch_size]
            embeddings = self.embedder.embed_texts(batch)
            if len(embeddings) != len(batch):
                raise EmbeddingError(
                    f"Provider returned {len(embeddings)} embedding(s) for {len(batch)} text(s)"
                )
            for vector in embeddings:
                if len(vector) != expected:
                    raise DimensionMismatchError(expected, len(vector))
            vectors.extend([float(x) for x in vector] for vector in embeddings)
        return vectors

    def get_embedding_dimension(self) -> int:
        """Get the dimension of embeddings"""
        return self.embedder.get_embedding_dimension()
