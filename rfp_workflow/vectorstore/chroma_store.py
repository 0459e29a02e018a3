"""ChromaDB store for project document chunks."""

from pathlib import Path
from typing import Any

from langchain_chroma import Chroma
from langchain_core.documents import Document

from rfp_workflow.config import get_settings
from rfp_workflow.models.documents import SearchHit, TextChunk
from rfp_workflow.vectorstore.embeddings import EmbeddingService
from rfp_workflow.utils.logging import LoggerMixin


class ChromaVectorStore(LoggerMixin):
    """Vector store using ChromaDB with LangChain integration."""

    def __init__(
        self,
        collection_name: str | None = None,
        persist_directory: Path | None = None,
        embedding_service: EmbeddingService | None = None,
    ):
        """Initialize ChromaDB vector store.

        Args:
            collection_name: Name of the collection.
            persist_directory: Directory for persistence.
            embedding_service: Optional embedding service instance.
        """
        settings = get_settings()

        self._collection_name = collection_name or settings.collection_name
        self._persist_directory = Path(persist_directory or settings.chroma_persist_directory)
        self._embedding_service = embedding_service or EmbeddingService()
        self._batch_size = settings.embedding_batch_size

        self._persist_directory.mkdir(parents=True, exist_ok=True)

        self._vectorstore = Chroma(
            collection_name=self._collection_name,
            embedding_function=self._embedding_service.embeddings,
            persist_directory=str(self._persist_directory),
        )

        self.log_info(
            "ChromaDB initialized",
            collection=self._collection_name,
            persist_dir=str(self._persist_directory),
        )

    def add_chunks(
        self,
        document_id: str,
        project_id: str | None,
        chunks: list[TextChunk],
        extra_metadata: dict[str, Any] | None = None,
    ) -> list[str]:
        """Embed and store the chunks of one document.

        Chunks are written in batches of ``embedding_batch_size``.

        Args:
            document_id: Owning document ID.
            project_id: Owning project ID, used as a search filter.
            chunks: Chunks produced by the chunker.
            extra_metadata: Extra scalar metadata stored on every chunk.

        Returns:
            List of stored chunk IDs.
        """
        if not chunks:
            return []

        ids: list[str] = []
        for offset in range(0, len(chunks), self._batch_size):
            batch = chunks[offset:offset + self._batch_size]
            documents = []
            batch_ids = []
            for chunk in batch:
                metadata = {
                    "document_id": document_id,
                    "project_id": project_id,
                    "chunk_index": chunk.chunk_index,
                    "total_chunks": chunk.total_chunks,
                    "start_position": chunk.start_position,
                    "end_position": chunk.end_position,
                    **(extra_metadata or {}),
                }
                documents.append(
                    Document(page_content=chunk.content, metadata=self._prepare_metadata(metadata))
                )
                batch_ids.append(f"{document_id}:{chunk.chunk_index}")

            self._vectorstore.add_documents(documents, ids=batch_ids)
            ids.extend(batch_ids)
            self.log_debug("Stored chunk batch", document_id=document_id, count=len(batch))

        self.log_info("Added chunks to vector store", document_id=document_id, count=len(ids))
        return ids

    def _prepare_metadata(self, metadata: dict[str, Any]) -> dict[str, Any]:
        """Flatten metadata to the scalar types Chroma accepts."""
        prepared = {}
        for key, value in metadata.items():
            if isinstance(value, (str, int, float, bool)):
                prepared[key] = value
            elif isinstance(value, list):
                prepared[key] = ",".join(str(v) for v in value) if value else ""
            elif value is None:
                prepared[key] = ""
            else:
                prepared[key] = str(value)
        return prepared

    def similarity_search(
        self,
        query: str,
        k: int | None = None,
        project_id: str | None = None,
        score_threshold: float | None = None,
    ) -> list[SearchHit]:
        """Search stored chunks.

        Args:
            query: Search query.
            k: Number of results, defaults to ``top_k_results``.
            project_id: Restrict results to one project.
            score_threshold: Minimum similarity score (0-1).

        Returns:
            Hits with similarity scores in the 0-1 range, best first.
        """
        k = k or get_settings().top_k_results
        self.log_debug("Similarity search", query=query[:50], k=k, project_id=project_id)

        results = self._vectorstore.similarity_search_with_score(
            query=query,
            k=k,
            filter={"project_id": project_id} if project_id else None,
        )

        hits = []
        for doc, distance in results:
            # Chroma returns L2 distance; map it onto (0, 1]
            similarity = 1 / (1 + distance)
            if score_threshold is not None and similarity < score_threshold:
                continue
            hits.append(self._to_hit(doc, similarity))

        return sorted(hits, key=lambda h: h.score, reverse=True)

    @staticmethod
    def _to_hit(doc: Document, score: float) -> SearchHit:
        metadata = doc.metadata or {}
        chunk_index = metadata.get("chunk_index")
        return SearchHit(
            content=doc.page_content,
            score=score,
            document_id=metadata.get("document_id") or None,
            project_id=metadata.get("project_id") or None,
            chunk_index=int(chunk_index) if chunk_index not in (None, "") else None,
            file_name=metadata.get("file_name") or None,
        )

    def delete_by_document_id(self, document_id: str) -> int:
        """Delete all chunks for a document and return how many were removed."""
        results = self._vectorstore.get(where={"document_id": document_id})
        ids = (results or {}).get("ids") or []
        if ids:
            self._vectorstore.delete(ids=ids)
            self.log_info("Deleted chunks for document", document_id=document_id, count=len(ids))
        return len(ids)

    def get_collection_stats(self) -> dict[str, Any]:
        collection = self._vectorstore._collection
        return {
            "collection_name": self._collection_name,
            "document_count": collection.count(),
            "persist_directory": str(self._persist_directory),
        }
