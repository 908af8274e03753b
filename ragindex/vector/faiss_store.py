"""
FAISS-backed vector backend.
"""

import faiss
import numpy as np

from .index import IVectorStore, normalize_vector


class FaissVectorStore(IVectorStore):
    """FAISS-backed implementation of IVectorStore."""

    def __init__(self, dimension: int = 512):
        """
        Initialize FAISS vector store.

        Args:
            dimension: Dimension of the vectors (default: 512)
        """
        super().__init__(dimension)
        # Flat inner-product index over unit vectors gives cosine similarity
        self.index = faiss.IndexFlatIP(dimension)

    def add(self, record_id: str, vector) -> None:
        normalized = normalize_vector(vector)
        self._check_dimension(normalized)
        self.index.add(normalized.reshape(1, -1))
        self._ids.append(record_id)

    def batch_add(self, records) -> None:
        if not records:
            return

        vectors = []
        for _, vector in records:
            normalized = normalize_vector(vector)
            self._check_dimension(normalized)
            vectors.append(normalized)

        self.index.add(np.vstack(vectors).astype(np.float32))
        self._ids.extend(record_id for record_id, _ in records)

    def similarities(self, query_vector) -> np.ndarray:
        total = self.index.ntotal
        if not total:
            return np.zeros(0, dtype=np.float32)

        query = normalize_vector(query_vector)
        self._check_dimension(query)
        scores, positions = self.index.search(query.reshape(1, -1), total)

        # FAISS orders by score; scatter back into insertion order
        ordered = np.zeros(total, dtype=np.float32)
        for score, position in zip(scores[0], positions[0]):
            if position >= 0:
                ordered[position] = score
        return ordered

    def clear(self) -> None:
        self.index = faiss.IndexFlatIP(self.dimension)
        self._ids.clear()
