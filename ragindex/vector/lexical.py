"""
BM25 lexical index over the string fields of stored documents.
"""

import math
import re
from typing import Dict, Iterable, List, Tuple

import numpy as np

TOKEN_RE = re.compile(r"[A-Za-z0-9_]+")

# BM25 parameters
K1 = 1.5
B = 0.75


def tokenize(text: str, min_token_len: int = 1) -> List[str]:
    tokens = [t.lower() for t in TOKEN_RE.findall(text or "")]
    if min_token_len > 1:
        tokens = [t for t in tokens if len(t) >= min_token_len]
    return tokens


def _bm25_idf(n: int, df: int) -> float:
    # Robertson/Sparck Jones IDF with +1 smoothing keeps scores positive
    return math.log(1 + (n - df + 0.5) / (df + 0.5)) if df > 0 else 0.0


def _bm25_score(tf: int, dl: int, avgdl: float, idf: float, k1: float = K1, b: float = B) -> float:
    denom = tf + k1 * (1 - b + b * (dl / (avgdl if avgdl > 0 else 1.0)))
    return idf * (tf * (k1 + 1)) / (denom if denom > 0 else 1e-9)


class LexicalIndex:
    """Inverted index keyed by document position (insertion order)."""

    def __init__(self, min_token_len: int = 1):
        self.min_token_len = min_token_len
        # term -> list[(position, tf)]
        self.postings: Dict[str, List[Tuple[int, int]]] = {}
        self.doc_len: List[int] = []
        self._total_len = 0

    def __len__(self) -> int:
        return len(self.doc_len)

    @property
    def avgdl(self) -> float:
        return self._total_len / len(self.doc_len) if self.doc_len else 0.0

    def add(self, texts: Iterable[str]) -> int:
        """Index one document given its field texts; returns its position."""
        position = len(self.doc_len)
        tokens: List[str] = []
        for text in texts:
            tokens.extend(tokenize(text, self.min_token_len))

        tf: Dict[str, int] = {}
        for token in tokens:
            tf[token] = tf.get(token, 0) + 1
        for term, count in tf.items():
            self.postings.setdefault(term, []).append((position, count))

        self.doc_len.append(len(tokens))
        self._total_len += len(tokens)
        return position

    def scores(self, query: str) -> np.ndarray:
        """BM25 score of every document for ``query``, in insertion order."""
        scores = np.zeros(len(self.doc_len), dtype=np.float64)
        n = len(self.doc_len)
        if not n:
            return scores

        avgdl = self.avgdl
        for term in dict.fromkeys(tokenize(query, self.min_token_len)):
            plist = self.postings.get(term)
            if not plist:
                continue
            idf = _bm25_idf(n, len(plist))
            for position, tf in plist:
                scores[position] += _bm25_score(tf, self.doc_len[position], avgdl, idf)
        return scores

    def clear(self) -> None:
        self.postings.clear()
        self.doc_len.clear()
        self._total_len = 0
