"""Text chunking."""

from rfp_workflow.chunking.sentence_chunker import SentenceChunker

__all__ = ["SentenceChunker"]
