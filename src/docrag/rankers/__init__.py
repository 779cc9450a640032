"""Similarity ranking over stored vectors."""

from docrag.rankers.cosine import CosineRanker, cosine_similarity

__all__ = ["CosineRanker", "cosine_similarity"]
