"""
In-memory document store with lexical, vector and hybrid search.

The store owns the ordered document list, a BM25 index over the schema's
string fields and a vector backend over the schema's vector field. Its
EmbeddingHook runs automatically before every insert and every search.
"""

import asyncio
import time
from typing import Dict, Iterable, List, Optional, Tuple

import numpy as np

from ..core.errors import DocumentValidationError
from ..util.logging import logger
from .hooks import EmbeddingHook
from .index import IVectorStore, SimpleInMemoryVectorStore
from .lexical import LexicalIndex
from .types import (
    DEFAULT_SCHEMA,
    IndexSchema,
    SearchableDocument,
    SearchHit,
    SearchMode,
    SearchParams,
    SearchResults,
)

# Absorbs float32 rounding when comparing against tolerance/similarity cutoffs
SCORE_EPSILON = 1e-6


class DocumentStore:
    """Ordered collection of SearchableDocuments bound to one IndexSchema."""

    def __init__(
        self,
        schema: IndexSchema = DEFAULT_SCHEMA,
        hook: Optional[EmbeddingHook] = None,
        vector_store: Optional[IVectorStore] = None,
    ):
        self.schema = schema
        self.hook = hook or EmbeddingHook()
        self.vector_store = vector_store if vector_store is not None else SimpleInMemoryVectorStore(schema.dimension)
        if self.vector_store.dimension != schema.dimension:
            raise ValueError(
                f"Vector backend dimension {self.vector_store.dimension} does not match schema dimension {schema.dimension}"
            )
        if len(self.vector_store):
            raise ValueError("Vector backend must be empty")

        self._documents: List[SearchableDocument] = []
        self._positions: Dict[str, int] = {}
        self._lexical = LexicalIndex()

    def __len__(self) -> int:
        return len(self._documents)

    def __contains__(self, document_id: str) -> bool:
        return document_id in self._positions

    @property
    def documents(self) -> Tuple[SearchableDocument, ...]:
        return tuple(self._documents)

    def get(self, document_id: str) -> Optional[SearchableDocument]:
        position = self._positions.get(document_id)
        return self._documents[position] if position is not None else None

    # ------------------------------------------------------------------
    # Insert
    # ------------------------------------------------------------------

    def _validate(self, document: SearchableDocument, pending: Iterable[str] = ()) -> np.ndarray:
        try:
            return self._check(document, pending)
        except DocumentValidationError as e:
            logger.log_index_operation("insert", document.id, {"error": str(e)}, status="rejected")
            raise

    def _check(self, document: SearchableDocument, pending: Iterable[str]) -> np.ndarray:
        if document.id in self._positions or document.id in pending:
            raise DocumentValidationError(f"Duplicate document id '{document.id}'")

        unknown = [name for name in document.field_names() if name not in self.schema.fields]
        if unknown:
            raise DocumentValidationError(
                f"Document '{document.id}' has fields not declared in the schema: {', '.join(unknown)}"
            )

        if document.embedding is None:
            raise DocumentValidationError(f"Document '{document.id}' has no '{self.schema.vector_property}' vector")
        vector = np.asarray(document.embedding, dtype=np.float32).reshape(-1)
        if vector.shape[0] != self.schema.dimension:
            raise DocumentValidationError(
                f"Document '{document.id}' vector has {vector.shape[0]} dimensions, schema requires {self.schema.dimension}"
            )
        return vector

    def _commit(self, document: SearchableDocument, vector: np.ndarray) -> None:
        self._positions[document.id] = len(self._documents)
        self._documents.append(document.with_embedding(vector))
        self._lexical.add(document.get(name) or "" for name in self.schema.lexical_fields)
        self.vector_store.add(document.id, vector)

    async def insert(self, document: SearchableDocument) -> str:
        """Run the insert hook, validate the document and append it."""
        prepared = await self.hook.before_insert(document)
        vector = self._validate(prepared)
        self._commit(prepared, vector)
        return prepared.id

    async def insert_many(self, documents: Iterable[SearchableDocument], max_concurrency: int = 1) -> List[str]:
        """Insert documents in order.

        With ``max_concurrency > 1`` the insert hooks run concurrently (bounded)
        and nothing is committed unless every document prepares and validates.
        """
        documents = list(documents)
        if max_concurrency <= 1:
            return [await self.insert(document) for document in documents]

        semaphore = asyncio.Semaphore(max_concurrency)

        async def prepare(document: SearchableDocument) -> SearchableDocument:
            async with semaphore:
                return await self.hook.before_insert(document)

        prepared = await asyncio.gather(*(prepare(document) for document in documents))

        seen: set = set()
        vectors = []
        for document in prepared:
            vectors.append(self._validate(document, seen))
            seen.add(document.id)
        for document, vector in zip(prepared, vectors):
            self._commit(document, vector)
        return [document.id for document in prepared]

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def _lexical_scores(self, term: str) -> np.ndarray:
        return self._lexical.scores(term)

    def _vector_scores(self, params: SearchParams) -> np.ndarray:
        if params.property not in (None, self.schema.vector_property):
            raise ValueError(f"Unknown vector property '{params.property}'")
        if params.vector is None:
            raise ValueError(f"A query vector is required for {params.mode.value} search")
        return np.asarray(self.vector_store.similarities(params.vector), dtype=np.float64)

    def _score(self, params: SearchParams) -> Tuple[np.ndarray, np.ndarray]:
        """Return ``(scores, keep_mask)`` for every document in insertion order."""
        if params.mode is SearchMode.FULLTEXT:
            scores = self._lexical_scores(params.term)
            return scores, scores > 0

        if params.mode is SearchMode.VECTOR:
            scores = self._vector_scores(params)
            positive = scores > 0
            if not positive.any():
                return scores, positive
            # Dissimilarity is measured from the nearest stored vector
            best = scores.max()
            return scores, positive & ((best - scores) <= params.tolerance + SCORE_EPSILON)

        lexical = self._lexical_scores(params.term)
        top = lexical.max() if lexical.size else 0.0
        lexical = lexical / top if top > 0 else np.zeros_like(lexical)
        vector = np.clip(self._vector_scores(params), 0.0, 1.0)

        total_weight = params.text_weight + params.vector_weight
        if total_weight <= 0:
            raise ValueError("Hybrid weights must sum to a positive value")
        scores = (params.text_weight * lexical + params.vector_weight * vector) / total_weight
        return scores, (scores > 0) & (scores >= params.similarity - SCORE_EPSILON)

    async def search(self, params: SearchParams) -> SearchResults:
        """Run the search hook, score every document and return ranked hits."""
        started = time.perf_counter()
        params = await self.hook.before_search(params, self.schema)
        if params.mode is None:
            params.mode = SearchMode.FULLTEXT

        hits: List[SearchHit] = []
        count = 0
        if self._documents:
            scores, keep = self._score(params)
            count = int(keep.sum())
            masked = np.where(keep, scores, -np.inf)
            order = np.argsort(-masked, kind="stable")[: min(max(params.limit, 0), count)]
            for position in order:
                document = self._documents[int(position)]
                hits.append(SearchHit(id=document.id, score=float(scores[position]), document=document))

        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.log_search(params.mode.value, params.term, len(hits), elapsed_ms)
        return SearchResults(hits=hits, count=count, elapsed_ms=elapsed_ms)
