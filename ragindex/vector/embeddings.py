"""
Embedding providers. The core only depends on IEmbeddingProvider; concrete
providers wrap a local hash model, sentence-transformers, or an HTTP API.
"""

from abc import ABC, abstractmethod
import hashlib
from typing import List, Optional

import numpy as np
import requests
from sentence_transformers import SentenceTransformer

from ..core.errors import EmbeddingProviderError
from .lexical import tokenize


class IEmbeddingProvider(ABC):
    """Abstract interface for embedding providers."""

    @abstractmethod
    def embed_text(self, text: str) -> list[float]:
        """Generate embedding vector for given text."""
        pass

    @abstractmethod
    def get_dimension(self) -> int:
        """Get the dimension of the embedding vectors."""
        pass

    def embed_texts(self, texts: List[str]) -> np.ndarray:
        """Embed multiple texts into a ``(len(texts), dimension)`` array."""
        return np.array([self.embed_text(text) for text in texts], dtype=np.float32)


class DeterministicHashEmbedding(IEmbeddingProvider):
    """Deterministic hash-based embedding provider for tests and offline runs.

    Each token (and each adjacent token pair) is hashed into one of
    ``dimension`` buckets with a hash-derived sign, so texts sharing vocabulary
    land close together without any model download.
    """

    def __init__(self, dimension: int = 512):
        self.dimension = dimension

    def _bucket(self, feature: str) -> tuple[int, float]:
        digest = hashlib.blake2b(feature.encode("utf-8"), digest_size=8).digest()
        value = int.from_bytes(digest, "little")
        sign = 1.0 if value & 1 else -1.0
        return (value >> 1) % self.dimension, sign

    def embed_text(self, text: str) -> list[float]:
        """Generate deterministic embedding vector using feature hashing."""
        vector = np.zeros(self.dimension, dtype=np.float64)
        tokens = tokenize(text)
        features = tokens + [f"{a} {b}" for a, b in zip(tokens, tokens[1:])]
        for feature in features:
            bucket, sign = self._bucket(feature)
            vector[bucket] += sign

        norm = np.linalg.norm(vector)
        if norm > 0:
            vector /= norm
        return vector.tolist()

    def get_dimension(self) -> int:
        """Get the dimension of the embedding vectors."""
        return self.dimension


class SentenceTransformerEmbedding(IEmbeddingProvider):
    """Sentence transformers embedding provider using pre-trained models.

    The default model produces 512-dimensional vectors, matching the index schema.
    """

    def __init__(self, model_name: Optional[str] = None):
        from ..core.config import EMBED_MODEL_NAME
        self.model_name = model_name or EMBED_MODEL_NAME
        self._model = None
        self._dimension = None

    @property
    def model(self):
        if self._model is None:
            self._model = SentenceTransformer(self.model_name)
        return self._model

    def embed_text(self, text: str) -> list[float]:
        """Generate embedding vector using sentence transformers."""
        embedding = self.model.encode(text, convert_to_tensor=False)
        return embedding.tolist()

    def embed_texts(self, texts: List[str]) -> np.ndarray:
        return np.asarray(self.model.encode(texts, convert_to_tensor=False), dtype=np.float32)

    def get_dimension(self) -> int:
        """Get the dimension of the embedding vectors."""
        if self._dimension is None:
            self._dimension = self.model.get_sentence_embedding_dimension()
        return self._dimension


class OpenRouterEmbedding(IEmbeddingProvider):
    """Embeddings from an OpenAI-compatible ``/embeddings`` HTTP endpoint."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model_id: Optional[str] = None,
        dimension: Optional[int] = None,
        url: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ):
        from ..core import config
        self.api_key = api_key if api_key is not None else config.OPENROUTER_API_KEY
        self.model_id = model_id or config.OPENROUTER_EMBEDDINGS_MODEL
        self.dimension = dimension or config.EMBED_DIM
        self.url = url or config.OPENROUTER_EMBEDDINGS_URL
        self.timeout = timeout or config.OPENROUTER_TIMEOUT_SEC
        self.session = session or requests.Session()

    def _post(self, payload_input) -> list:
        if not self.api_key:
            raise EmbeddingProviderError("Missing OpenRouter API key (set OPENROUTER_API_KEY)")

        try:
            response = self.session.post(
                self.url,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                json={"model": self.model_id, "input": payload_input},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise EmbeddingProviderError(f"Embeddings request failed: {e}") from e

        if not response.ok:
            raise EmbeddingProviderError(f"OpenRouter embeddings error: {response.status_code} {response.text[:200]}")

        try:
            data = response.json().get("data") or []
        except ValueError as e:
            raise EmbeddingProviderError("Embeddings response is not valid JSON") from e
        if not data:
            raise EmbeddingProviderError("OpenRouter embeddings response is empty")

        vectors = []
        for item in data:
            embedding = item.get("embedding") if isinstance(item, dict) else None
            if not isinstance(embedding, list):
                raise EmbeddingProviderError("Invalid embedding response from OpenRouter")
            if len(embedding) != self.dimension:
                raise EmbeddingProviderError(
                    f"Embedding dimension mismatch: expected {self.dimension}, got {len(embedding)}"
                )
            vectors.append(embedding)
        return vectors

    def embed_text(self, text: str) -> list[float]:
        return self._post(text)[0]

    def embed_texts(self, texts: List[str]) -> np.ndarray:
        if not texts:
            return np.zeros((0, self.dimension), dtype=np.float32)
        return np.asarray(self._post(list(texts)), dtype=np.float32)

    def get_dimension(self) -> int:
        return self.dimension
