"""Brute-force cosine-similarity ranking over stored chunk vectors."""

from typing import Sequence

import numpy as np

from docrag.errors import IntegrityError
from docrag.models import Match, StoredChunk


def cosine_similarity(a: np.ndarray, b: np.ndarray) -> float:
    """Compute cosine similarity between two vectors.

    Zero-magnitude vectors score 0.0 against everything.
    """
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    if a.shape != b.shape:
        raise IntegrityError(f"Cannot compare vectors of shape {a.shape} and {b.shape}")

    norm_a = np.linalg.norm(a)
    norm_b = np.linalg.norm(b)
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return float(np.clip(np.dot(a, b) / (norm_a * norm_b), -1.0, 1.0))


class CosineRanker:
    """Scores every candidate against the query; O(N·D) per search, no index."""

    def score(self, query_vector: np.ndarray, candidates: Sequence[StoredChunk]) -> np.ndarray:
        """Return the similarity of each candidate, in candidate order."""
        if not candidates:
            return np.empty(0, dtype=np.float64)

        query = np.asarray(query_vector, dtype=np.float64)
        if query.ndim != 1 or any(len(c.vector) != len(query) for c in candidates):
            raise IntegrityError("Stored vectors and query vector differ in dimension")
        matrix = np.vstack([np.asarray(c.vector, dtype=np.float64) for c in candidates])

        norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
        dots = matrix @ query
        scores = np.zeros(len(candidates), dtype=np.float64)
        nonzero = norms > 0
        scores[nonzero] = dots[nonzero] / norms[nonzero]
        return np.clip(scores, -1.0, 1.0)

    def search(
        self,
        query_vector: np.ndarray,
        candidates: Sequence[StoredChunk],
        k: int,
    ) -> list[Match]:
        """Top-k candidates by descending similarity.

        Ties keep their scan order.
        """
        if k < 1:
            raise ValueError("k must be at least 1")

        scores = self.score(query_vector, candidates)
        order = np.argsort(-scores, kind="stable")[:k]

        return [
            Match(
                document_id=candidates[i].document_id,
                document_name=candidates[i].document_name,
                content=candidates[i].content,
                similarity=float(scores[i]),
                chunk_id=candidates[i].id,
            )
            for i in order
        ]
