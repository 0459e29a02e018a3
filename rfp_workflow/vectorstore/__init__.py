"""Vector store modules."""

from rfp_workflow.vectorstore.chroma_store import ChromaVectorStore
from rfp_workflow.vectorstore.embeddings import EmbeddingService

__all__ = ["ChromaVectorStore", "EmbeddingService"]

