"""
Tests for the embedding providers.
"""

from unittest.mock import MagicMock, patch

import numpy as np
import pytest
import requests

from ragindex.core.errors import EmbeddingProviderError
from ragindex.vector.embeddings import (
    DeterministicHashEmbedding,
    IEmbeddingProvider,
    OpenRouterEmbedding,
    SentenceTransformerEmbedding,
)


def _cosine(a, b):
    return float(np.dot(a, b) / (np.linalg.norm(a) * np.linalg.norm(b)))


def test_hash_embedding_interface():
    """Test that the hash provider implements the interface with the configured dimension."""
    embedder = DeterministicHashEmbedding(dimension=512)

    assert isinstance(embedder, IEmbeddingProvider)
    assert embedder.get_dimension() == 512
    assert len(embedder.embed_text("hello world")) == 512


def test_hash_embedding_is_deterministic_across_instances():
    """Test that separate instances produce identical vectors for the same text."""
    first = DeterministicHashEmbedding(dimension=512).embed_text("Keep your face to the sunshine")
    second = DeterministicHashEmbedding(dimension=512).embed_text("Keep your face to the sunshine")

    assert first == second


def test_hash_embedding_is_unit_length():
    """Test that non-empty texts are L2-normalised."""
    vector = DeterministicHashEmbedding().embed_text("Boards are containers for designs")

    assert np.linalg.norm(vector) == pytest.approx(1.0, abs=1e-9)


def test_hash_embedding_empty_text_is_zero_vector():
    """Test that text without tokens embeds to the zero vector."""
    vector = DeterministicHashEmbedding(dimension=16).embed_text("  ... !!")

    assert vector == [0.0] * 16


def test_hash_embedding_shared_vocabulary_is_closer():
    """Test that texts sharing words score higher than unrelated texts."""
    embedder = DeterministicHashEmbedding()
    anchor = embedder.embed_text("flex layout rows and columns")
    related = embedder.embed_text("flex layout with rows and columns and gap")
    unrelated = embedder.embed_text("export a pdf document")

    assert _cosine(anchor, related) > _cosine(anchor, unrelated)


def test_embed_texts_stacks_rows():
    """Test the batch helper returns one float32 row per text."""
    matrix = DeterministicHashEmbedding(dimension=32).embed_texts(["a b", "c d", "e"])

    assert matrix.shape == (3, 32)
    assert matrix.dtype == np.float32


def test_sentence_transformer_loads_model_lazily():
    """Test that the model is only loaded on first use and reused afterwards."""
    with patch("ragindex.vector.embeddings.SentenceTransformer") as mock_cls:
        model = mock_cls.return_value
        model.encode.return_value = np.ones(512, dtype=np.float32)
        model.get_sentence_embedding_dimension.return_value = 512

        embedder = SentenceTransformerEmbedding("some-model")
        mock_cls.assert_not_called()

        assert embedder.embed_text("hello") == [1.0] * 512
        assert embedder.get_dimension() == 512
        embedder.embed_text("again")

        mock_cls.assert_called_once_with("some-model")


def _response(status=200, payload=None, ok=None):
    response = MagicMock()
    response.status_code = status
    response.ok = ok if ok is not None else status < 400
    response.text = "error body"
    response.json.return_value = payload
    return response


def test_openrouter_posts_model_and_input():
    """Test a successful embeddings call returns the vector from the response."""
    session = MagicMock()
    session.post.return_value = _response(payload={"data": [{"embedding": [0.5] * 4}]})
    embedder = OpenRouterEmbedding(api_key="key", model_id="m", dimension=4, url="https://x/embeddings", session=session)

    assert embedder.embed_text("hello") == [0.5] * 4

    _, kwargs = session.post.call_args
    assert kwargs["json"] == {"model": "m", "input": "hello"}
    assert kwargs["headers"]["Authorization"] == "Bearer key"


def test_openrouter_requires_api_key():
    """Test that a missing API key fails before any request is made."""
    session = MagicMock()
    embedder = OpenRouterEmbedding(api_key="", dimension=4, session=session)

    with pytest.raises(EmbeddingProviderError, match="API key"):
        embedder.embed_text("hello")
    session.post.assert_not_called()


def test_openrouter_http_error():
    """Test that a non-2xx response raises EmbeddingProviderError with the status."""
    session = MagicMock()
    session.post.return_value = _response(status=429)
    embedder = OpenRouterEmbedding(api_key="key", dimension=4, session=session)

    with pytest.raises(EmbeddingProviderError, match="429"):
        embedder.embed_text("hello")


def test_openrouter_network_error():
    """Test that transport failures are wrapped."""
    session = MagicMock()
    session.post.side_effect = requests.ConnectionError("refused")
    embedder = OpenRouterEmbedding(api_key="key", dimension=4, session=session)

    with pytest.raises(EmbeddingProviderError, match="refused"):
        embedder.embed_text("hello")


@pytest.mark.parametrize("payload", [{"data": []}, {"data": [{"embedding": "nope"}]}, {}])
def test_openrouter_malformed_payload(payload):
    """Test that empty or malformed payloads are rejected."""
    session = MagicMock()
    session.post.return_value = _response(payload=payload)
    embedder = OpenRouterEmbedding(api_key="key", dimension=4, session=session)

    with pytest.raises(EmbeddingProviderError):
        embedder.embed_text("hello")


def test_openrouter_dimension_mismatch():
    """Test that vectors of the wrong size are rejected."""
    session = MagicMock()
    session.post.return_value = _response(payload={"data": [{"embedding": [0.1] * 3}]})
    embedder = OpenRouterEmbedding(api_key="key", dimension=4, session=session)

    with pytest.raises(EmbeddingProviderError, match="dimension mismatch"):
        embedder.embed_text("hello")
