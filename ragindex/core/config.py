"""
Environment-driven configuration for index builds, restores and validation runs.
"""

import os

from .errors import ConfigurationError

# Embedding configuration
EMBED_PROVIDER = os.getenv("EMBED_PROVIDER", "hash")  # hash|sentence-transformers|openrouter
EMBED_MODEL_NAME = os.getenv("EMBED_MODEL_NAME", "distiluse-base-multilingual-cased-v2")
EMBED_DIM = int(os.getenv("EMBED_DIM", "512"))

# OpenRouter embeddings (EMBED_PROVIDER=openrouter)
OPENROUTER_API_KEY = os.getenv("OPENROUTER_API_KEY")
OPENROUTER_EMBEDDINGS_MODEL = os.getenv("OPENROUTER_EMBEDDINGS_MODEL", "openai/text-embedding-3-small")
OPENROUTER_EMBEDDINGS_URL = os.getenv("OPENROUTER_EMBEDDINGS_URL", "https://openrouter.ai/api/v1/embeddings")
OPENROUTER_TIMEOUT_SEC = float(os.getenv("OPENROUTER_TIMEOUT_SEC", "30"))

# Document store configuration
VECTOR_PROVIDER = os.getenv("VECTOR_PROVIDER", "memory")  # memory|faiss

# Archive configuration
ARCHIVE_CODEC = os.getenv("ARCHIVE_CODEC", "sync")  # sync|streaming
ARCHIVE_CHUNK_SIZE = int(os.getenv("ARCHIVE_CHUNK_SIZE", "65536"))
PERSIST_FORMAT = os.getenv("PERSIST_FORMAT", "binary")  # binary|json

# Build configuration
BUILD_CONCURRENCY = int(os.getenv("BUILD_CONCURRENCY", "1"))

# Interactive validation runner
VALIDATION_CONFIG_DIR = os.getenv("VALIDATION_CONFIG_DIR", "./config/validation")

VERSION = "1.0.0"


def get_embed_provider_name():
    return os.getenv("EMBED_PROVIDER", EMBED_PROVIDER).lower()


def get_vector_provider_name():
    return os.getenv("VECTOR_PROVIDER", VECTOR_PROVIDER).lower()


def get_archive_codec_name():
    return os.getenv("ARCHIVE_CODEC", ARCHIVE_CODEC).lower()


def get_vector_store(dimension: int = EMBED_DIM):
    """Get configured vector backend implementation."""
    provider = get_vector_provider_name()
    if provider == "faiss":
        from ragindex.vector.faiss_store import FaissVectorStore
        return FaissVectorStore(dimension)
    if provider == "memory":
        from ragindex.vector.index import SimpleInMemoryVectorStore
        return SimpleInMemoryVectorStore(dimension)

    raise ConfigurationError(f"Invalid VECTOR_PROVIDER: {provider}")


def get_embedding_provider():
    """Get configured embedding provider implementation."""
    provider = get_embed_provider_name()
    if provider == "hash":
        from ragindex.vector.embeddings import DeterministicHashEmbedding
        return DeterministicHashEmbedding(EMBED_DIM)
    if provider == "sentence-transformers":
        from ragindex.vector.embeddings import SentenceTransformerEmbedding
        return SentenceTransformerEmbedding(EMBED_MODEL_NAME)
    if provider == "openrouter":
        from ragindex.vector.embeddings import OpenRouterEmbedding
        return OpenRouterEmbedding()

    raise ConfigurationError(f"Invalid EMBED_PROVIDER: {provider}")


def get_archive_codec():
    """Get configured archive codec (streaming or synchronous decompression)."""
    name = get_archive_codec_name()
    from .archive import StreamingArchiveCodec, SyncArchiveCodec
    if name == "streaming":
        return StreamingArchiveCodec(chunk_size=ARCHIVE_CHUNK_SIZE)
    if name == "sync":
        return SyncArchiveCodec()

    raise ConfigurationError(f"Invalid ARCHIVE_CODEC: {name}")


def debug_enabled():
    """Check if debug mode is enabled."""
    return os.getenv("DEBUG", "false").lower() == "true"


def validate_config():
    """Validate configuration and return any issues."""
    issues = []

    if get_embed_provider_name() not in ["hash", "sentence-transformers", "openrouter"]:
        issues.append(f"Invalid EMBED_PROVIDER: {get_embed_provider_name()}")

    if get_embed_provider_name() == "openrouter" and not os.getenv("OPENROUTER_API_KEY", OPENROUTER_API_KEY):
        issues.append("EMBED_PROVIDER=openrouter requires OPENROUTER_API_KEY")

    if get_vector_provider_name() not in ["memory", "faiss"]:
        issues.append(f"Invalid VECTOR_PROVIDER: {get_vector_provider_name()}")

    if get_archive_codec_name() not in ["sync", "streaming"]:
        issues.append(f"Invalid ARCHIVE_CODEC: {get_archive_codec_name()}")

    if PERSIST_FORMAT not in ["binary", "json"]:
        issues.append(f"Invalid PERSIST_FORMAT: {PERSIST_FORMAT}")

    if EMBED_DIM < 1:
        issues.append("EMBED_DIM must be >= 1")

    if ARCHIVE_CHUNK_SIZE < 1:
        issues.append("ARCHIVE_CHUNK_SIZE must be >= 1")

    if BUILD_CONCURRENCY < 1:
        issues.append("BUILD_CONCURRENCY must be >= 1")

    return issues
