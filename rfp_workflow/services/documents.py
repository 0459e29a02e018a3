"""RFP uploads and the project knowledge base."""

import secrets
import tempfile
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from sqlalchemy.orm import Session, sessionmaker

from rfp_workflow.chunking import SentenceChunker
from rfp_workflow.config import get_settings
from rfp_workflow.db.base import utcnow
from rfp_workflow.db.session import session_scope
from rfp_workflow.db.tables import ProjectDocument, RFPDocument
from rfp_workflow.errors import NotFoundError, PermissionDeniedError, ValidationFailedError
from rfp_workflow.loaders import LoaderFactory, extract_text
from rfp_workflow.loaders.docx_loader import DOC_MIME, DOCX_MIME
from rfp_workflow.models.documents import (
    DocumentUploadResponse,
    DocumentUploadResult,
    ExtractionQuality,
    ExtractionResult,
    RFPUploadResponse,
    SearchResponse,
)
from rfp_workflow.services.projects import ProjectService
from rfp_workflow.utils.logging import LoggerMixin
from rfp_workflow.vectorstore import ChromaVectorStore


EXTRACTION_FAILED_TEXT = "[Text extraction failed]"

ALLOWED_RFP_TYPES = {
    "application/pdf": "pdf",
    DOC_MIME: "doc",
    DOCX_MIME: "docx",
    "text/plain": "txt",
    "text/markdown": "md",
    "application/rtf": "rtf",
}

MIME_ALIASES = {"text/rtf": "application/rtf", "text/x-markdown": "text/markdown"}


@dataclass
class UploadedFile:
    """A file received from a client, held in memory."""

    file_name: str
    content_type: str | None
    data: bytes


def storage_name(extension: str, prefix: str = "rfp") -> str:
    """Build a collision-resistant stored file name."""
    stamp = utcnow().isoformat().replace(":", "-").replace(".", "-")
    return f"{prefix}-{stamp}-{secrets.token_hex(4)}.{extension}"


class DocumentService(LoggerMixin):
    """Stores uploaded documents and records them in the database."""

    def __init__(self, session: Session, upload_directory: Path | None = None):
        settings = get_settings()
        self._session = session
        self._upload_directory = Path(upload_directory or settings.upload_directory)
        self._max_bytes = settings.max_upload_bytes

    def _check_size(self, upload: UploadedFile) -> None:
        if not upload.data:
            raise ValidationFailedError("File is empty", code="FILE_REQUIRED", file_name=upload.file_name)
        if len(upload.data) > self._max_bytes:
            raise ValidationFailedError(
                f"File exceeds the {self._max_bytes // (1024 * 1024)}MB upload limit",
                code="FILE_TOO_LARGE",
                file_name=upload.file_name,
            )

    def _store(self, subdirectory: str, name: str, data: bytes) -> Path:
        directory = self._upload_directory / subdirectory
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / name
        path.write_bytes(data)
        return path

    def upload_rfp(
        self,
        upload: UploadedFile | None,
        title: str,
        user_id: str,
        description: str | None = None,
        project_id: str | None = None,
    ) -> RFPUploadResponse:
        """Store an RFP file, extract its text and record it.

        Extraction problems do not fail the upload; the document is stored
        with a placeholder text and the error in its metadata.

        Raises:
            ValidationFailedError: Missing title or file, oversized file or unsupported type.
        """
        if not title or not title.strip():
            raise ValidationFailedError("Title is required", code="TITLE_REQUIRED")
        if upload is None:
            raise ValidationFailedError("File is required", code="FILE_REQUIRED")
        self._check_size(upload)

        mime_type = LoaderFactory.resolve_mime_type(upload.file_name, upload.content_type)
        mime_type = MIME_ALIASES.get(mime_type, mime_type)
        if mime_type not in ALLOWED_RFP_TYPES:
            raise ValidationFailedError(
                f"Unsupported file type: {mime_type}",
                code="UNSUPPORTED_FILE_TYPE",
                allowed_types=sorted(ALLOWED_RFP_TYPES),
            )

        extension = Path(upload.file_name).suffix.lstrip(".").lower() or ALLOWED_RFP_TYPES[mime_type]
        stored_name = storage_name(extension)
        path = self._store("rfp", stored_name, upload.data)

        metadata = {
            "original_file_name": upload.file_name,
            "file_size": len(upload.data),
            "mime_type": mime_type,
        }
        try:
            extraction = extract_text(path, mime_type)
            content = extraction.text
            metadata.update(
                extraction_method=extraction.method,
                extraction_quality=extraction.quality.value,
                extraction_warnings=extraction.warnings,
                word_count=extraction.word_count,
                page_count=extraction.page_count,
            )
        except Exception as e:
            self.log_error("Text extraction failed", file_name=upload.file_name, error=str(e))
            content = EXTRACTION_FAILED_TEXT
            metadata.update(
                extraction_method=None,
                extraction_quality=ExtractionQuality.FAILED.value,
                extraction_error=str(e),
            )

        document = RFPDocument(
            title=title.strip(),
            description=description,
            file_path=str(path),
            content=content,
            phase_type="proposal",
            file_size=len(upload.data),
            mime_type=mime_type,
            doc_metadata=metadata,
            project_id=project_id,
            uploaded_by=user_id,
            status="uploaded",
        )
        try:
            self._session.add(document)
            self._session.flush()
        except Exception:
            # Do not leave orphaned files behind
            path.unlink(missing_ok=True)
            raise

        self.log_info(
            "RFP uploaded",
            rfp_document_id=document.id,
            mime_type=mime_type,
            size=len(upload.data),
            extraction_quality=metadata["extraction_quality"],
        )
        return RFPUploadResponse(
            rfp_document_id=document.id,
            file_url=f"/uploads/rfp/{stored_name}",
            message="RFP uploaded successfully",
            extraction_method=metadata.get("extraction_method"),
            extraction_quality=metadata["extraction_quality"],
        )

    def upload_project_documents(
        self, project_id: str, user_id: str, uploads: list[UploadedFile]
    ) -> tuple[DocumentUploadResponse, list[str]]:
        """Store knowledge-base documents for a project.

        Each file is accepted or rejected on its own.

        Returns:
            The per-file results and the IDs of documents still to be indexed.
        """
        ProjectService(self._session).require_member(project_id, user_id)

        results: list[DocumentUploadResult] = []
        pending: list[str] = []
        for upload in uploads:
            try:
                self._check_size(upload)
                mime_type = LoaderFactory.resolve_mime_type(upload.file_name, upload.content_type)
                if not LoaderFactory.is_supported(mime_type):
                    raise ValidationFailedError(f"Unsupported file type: {mime_type}")

                extension = Path(upload.file_name).suffix.lstrip(".").lower() or "bin"
                path = self._store(f"projects/{project_id}", storage_name(extension, prefix="doc"), upload.data)
                document = ProjectDocument(
                    project_id=project_id,
                    file_name=upload.file_name,
                    file_path=str(path),
                    mime_type=mime_type,
                    file_size=len(upload.data),
                    doc_metadata={"processing_status": "pending"},
                    uploaded_by=user_id,
                )
                self._session.add(document)
                self._session.flush()
            except ValidationFailedError as e:
                results.append(DocumentUploadResult(file_name=upload.file_name, success=False, error=e.message))
                continue

            pending.append(document.id)
            results.append(DocumentUploadResult(file_name=upload.file_name, success=True, document_id=document.id))

        uploaded = sum(1 for r in results if r.success)
        self.log_info("Project documents uploaded", project_id=project_id, uploaded=uploaded, failed=len(results) - uploaded)
        return (
            DocumentUploadResponse(results=results, uploaded=uploaded, failed=len(results) - uploaded),
            pending,
        )

    def delete_project_document(
        self, project_id: str, document_id: str, user_id: str, vector_store: ChromaVectorStore
    ) -> int:
        """Remove a knowledge-base document, its file and its chunks.

        Returns:
            Number of chunks removed from the vector store.
        """
        member = ProjectService(self._session).require_member(project_id, user_id)
        if not (member.permissions or {}).get("write"):
            raise PermissionDeniedError("You do not have write access to this project")

        document = self._session.get(ProjectDocument, document_id)
        if document is None or document.project_id != project_id:
            raise NotFoundError(f"Document not found: {document_id}", code="DOCUMENT_NOT_FOUND")

        removed = vector_store.delete_by_document_id(document_id)
        Path(document.file_path).unlink(missing_ok=True)
        self._session.delete(document)
        self._session.flush()
        self.log_info("Project document deleted", document_id=document_id, chunks_removed=removed)
        return removed


class DocumentIndexer(LoggerMixin):
    """Extracts, chunks and embeds stored project documents.

    Runs outside the request, so it opens its own session.
    """

    def __init__(
        self,
        vector_store_factory: Callable[[], ChromaVectorStore],
        session_factory: sessionmaker[Session] | None = None,
        chunker: SentenceChunker | None = None,
    ):
        self._vector_store_factory = vector_store_factory
        self._session_factory = session_factory
        self._chunker = chunker or SentenceChunker()

    def process(self, document_id: str) -> None:
        with session_scope(self._session_factory) as session:
            document = session.get(ProjectDocument, document_id)
            if document is None:
                self.log_warning("Document vanished before processing", document_id=document_id)
                return

            metadata = dict(document.doc_metadata or {})
            try:
                extraction = extract_text(Path(document.file_path), document.mime_type)
                chunks = self._chunker.split(extraction.text)
                self._vector_store_factory().add_chunks(
                    document.id,
                    document.project_id,
                    chunks,
                    extra_metadata={"file_name": document.file_name},
                )
            except Exception as e:
                self.log_error("Document processing failed", document_id=document_id, error=str(e))
                metadata.update(processing_status="failed", processing_error=str(e))
            else:
                document.content = extraction.text
                metadata.update(
                    processing_status="completed",
                    chunk_count=len(chunks),
                    extraction_method=extraction.method,
                    extraction_quality=extraction.quality.value,
                )
                self.log_info("Document indexed", document_id=document_id, chunks=len(chunks))
            document.doc_metadata = metadata


def search_documents(
    vector_store: ChromaVectorStore, query: str, project_id: str | None = None, k: int | None = None
) -> SearchResponse:
    """Similarity search over the project knowledge base."""
    if not query or not query.strip():
        raise ValidationFailedError("Query is required", code="QUERY_REQUIRED")
    hits = vector_store.similarity_search(
        query.strip(),
        k=k,
        project_id=project_id,
        score_threshold=get_settings().similarity_threshold,
    )
    return SearchResponse(query=query, results=hits)


def extract_upload(upload: UploadedFile) -> ExtractionResult:
    """Extract text from an in-memory upload without storing it.

    Raises:
        ValidationFailedError: Empty or unsupported file.
        ExtractionError: Every extraction strategy failed.
    """
    if not upload.data:
        raise ValidationFailedError("File is empty", code="FILE_REQUIRED")
    mime_type = LoaderFactory.resolve_mime_type(upload.file_name, upload.content_type)
    if not LoaderFactory.is_supported(mime_type):
        raise ValidationFailedError(f"Unsupported file type: {mime_type}", code="UNSUPPORTED_FILE_TYPE")

    with tempfile.TemporaryDirectory() as tmp:
        path = Path(tmp) / f"upload{Path(upload.file_name).suffix.lower()}"
        path.write_bytes(upload.data)
        return extract_text(path, mime_type)
