# Package initialization for vector module
from .index import IVectorStore, SimpleInMemoryVectorStore
from .faiss_store import FaissVectorStore
from .types import (
    DEFAULT_SCHEMA,
    IndexSchema,
    SearchableDocument,
    SearchHit,
    SearchMode,
    SearchParams,
    SearchResults,
)
from .embeddings import IEmbeddingProvider, DeterministicHashEmbedding, SentenceTransformerEmbedding, OpenRouterEmbedding
from .hooks import EmbeddingHook, EmbeddingMode
from .store import DocumentStore

__all__ = [
    'IVectorStore',
    'SimpleInMemoryVectorStore',
    'FaissVectorStore',
    'DEFAULT_SCHEMA',
    'IndexSchema',
    'SearchableDocument',
    'SearchHit',
    'SearchMode',
    'SearchParams',
    'SearchResults',
    'IEmbeddingProvider',
    'DeterministicHashEmbedding',
    'SentenceTransformerEmbedding',
    'OpenRouterEmbedding',
    'EmbeddingHook',
    'EmbeddingMode',
    'DocumentStore',
]
