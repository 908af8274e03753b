"""
Vector backends for the document store.

Backends keep vectors in insertion order and report cosine similarities in that
same order, so rankings built on top of them break ties deterministically.
"""

from abc import ABC, abstractmethod
from typing import List, Sequence, Tuple

import numpy as np


def normalize_vector(vector) -> np.ndarray:
    """Return a float32 unit vector; zero vectors are returned unchanged."""
    array = np.asarray(vector, dtype=np.float32).reshape(-1)
    norm = np.linalg.norm(array)
    if norm == 0:
        return array
    return (array / norm).astype(np.float32)


def rank_scores(scores: np.ndarray, top_k: int) -> List[int]:
    """Positions of the ``top_k`` best scores, ties kept in insertion order."""
    if top_k <= 0 or scores.size == 0:
        return []
    order = np.argsort(-scores, kind="stable")
    return [int(position) for position in order[:top_k]]


class IVectorStore(ABC):
    """Abstract interface for vector storage operations."""

    def __init__(self, dimension: int):
        self.dimension = dimension
        self._ids: List[str] = []

    @property
    def ids(self) -> Tuple[str, ...]:
        return tuple(self._ids)

    def __len__(self) -> int:
        return len(self._ids)

    def _check_dimension(self, vector: np.ndarray) -> None:
        if vector.shape[0] != self.dimension:
            raise ValueError(f"Vector dimension {vector.shape[0]} does not match expected dimension {self.dimension}")

    @abstractmethod
    def add(self, record_id: str, vector) -> None:
        """Append a single vector to the store."""
        pass

    def batch_add(self, records: Sequence[Tuple[str, object]]) -> None:
        """Append multiple vectors, preserving the given order."""
        for record_id, vector in records:
            self.add(record_id, vector)

    @abstractmethod
    def similarities(self, query_vector) -> np.ndarray:
        """Cosine similarity of the query against every stored vector, in insertion order."""
        pass

    def search(self, query_vector, top_k: int = 5) -> List[Tuple[str, float]]:
        """Search for similar vectors and return ranked ``(id, score)`` pairs."""
        scores = self.similarities(query_vector)
        return [(self._ids[position], float(scores[position])) for position in rank_scores(scores, top_k)]

    @abstractmethod
    def clear(self) -> None:
        """Clear all records from the store."""
        pass


class SimpleInMemoryVectorStore(IVectorStore):
    """In-memory implementation of IVectorStore using numpy cosine similarity."""

    def __init__(self, dimension: int = 512):
        super().__init__(dimension)
        self._rows: List[np.ndarray] = []
        self._matrix = None  # stacked lazily on first search

    def add(self, record_id: str, vector) -> None:
        normalized = normalize_vector(vector)
        self._check_dimension(normalized)
        self._rows.append(normalized)
        self._ids.append(record_id)
        self._matrix = None

    def similarities(self, query_vector) -> np.ndarray:
        if not self._rows:
            return np.zeros(0, dtype=np.float32)

        query = normalize_vector(query_vector)
        self._check_dimension(query)
        if self._matrix is None:
            self._matrix = np.vstack(self._rows)
        return self._matrix @ query

    def clear(self) -> None:
        self._rows.clear()
        self._ids.clear()
        self._matrix = None
