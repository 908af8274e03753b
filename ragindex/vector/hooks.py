"""
Embedding hook: the two lifecycle callbacks the document store runs on every
insert and every search.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

import numpy as np

from ..core.errors import EmbeddingProviderError
from .embeddings import IEmbeddingProvider
from .types import IndexSchema, SearchableDocument, SearchMode, SearchParams


class EmbeddingMode(str, Enum):
    GENERATE = "generate"
    PASS_THROUGH = "pass-through"


@dataclass(frozen=True)
class EmbeddingHook:
    """Per-index embedding policy.

    ``properties`` names the document fields concatenated (space separated)
    into the text that is embedded on insert.
    """

    provider: Optional[IEmbeddingProvider] = None
    on_insert: EmbeddingMode = EmbeddingMode.PASS_THROUGH
    on_search: EmbeddingMode = EmbeddingMode.PASS_THROUGH
    properties: Tuple[str, ...] = ("text",)

    def __post_init__(self):
        needs_provider = EmbeddingMode.GENERATE in (self.on_insert, self.on_search)
        if needs_provider and self.provider is None:
            raise ValueError("An embedding provider is required when a hook generates vectors")

    @classmethod
    def for_build(cls, provider: IEmbeddingProvider, properties=("text",)) -> "EmbeddingHook":
        return cls(provider, EmbeddingMode.GENERATE, EmbeddingMode.GENERATE, tuple(properties))

    @classmethod
    def for_restore(cls, provider: IEmbeddingProvider) -> "EmbeddingHook":
        return cls(provider, EmbeddingMode.PASS_THROUGH, EmbeddingMode.GENERATE)

    async def _embed(self, text: str, document_id: Optional[str] = None) -> np.ndarray:
        try:
            vector = await asyncio.to_thread(self.provider.embed_text, text)
        except EmbeddingProviderError as e:
            if document_id is not None and e.document_id is None:
                raise EmbeddingProviderError(str(e), document_id=document_id) from e
            raise
        except Exception as e:
            raise EmbeddingProviderError(f"Embedding generation failed: {e}", document_id=document_id) from e
        return np.asarray(vector, dtype=np.float32)

    def insert_text(self, document: SearchableDocument) -> str:
        parts = [document.get(name) for name in self.properties]
        return " ".join(part for part in parts if part)

    async def before_insert(self, document: SearchableDocument) -> SearchableDocument:
        if self.on_insert is EmbeddingMode.PASS_THROUGH:
            return document
        vector = await self._embed(self.insert_text(document), document_id=document.id)
        return document.with_embedding(vector)

    async def before_search(self, params: SearchParams, schema: IndexSchema) -> SearchParams:
        if params.mode is SearchMode.FULLTEXT or params.vector is not None:
            if params.mode is None:
                params.mode = SearchMode.VECTOR
            return params
        if self.on_search is EmbeddingMode.PASS_THROUGH:
            return params

        vector = await self._embed(params.term)
        if vector.shape[0] != schema.dimension:
            raise EmbeddingProviderError(
                f"Query embedding has {vector.shape[0]} dimensions, index requires {schema.dimension}"
            )
        params.vector = vector
        if params.property is None:
            params.property = schema.vector_property
        if params.mode is None:
            params.mode = SearchMode.VECTOR
        return params
