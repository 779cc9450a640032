"""docrag - document retrieval store for grounding chat turns."""

from docrag.service import RetrievalService

__all__ = ["RetrievalService"]

__version__ = "0.1.0"
