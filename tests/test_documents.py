"""Tests for RFP uploads and the project knowledge base."""

from pathlib import Path

import pytest

from rfp_workflow.db.session import get_session_factory
from rfp_workflow.db.tables import ProjectDocument, RFPDocument
from rfp_workflow.errors import NotFoundError, PermissionDeniedError, ValidationFailedError
from rfp_workflow.models.documents import ExtractionQuality, SearchHit
from rfp_workflow.models.projects import MemberCreate
from rfp_workflow.models.usage import UserTier
from rfp_workflow.services.documents import (
    EXTRACTION_FAILED_TEXT,
    DocumentIndexer,
    DocumentService,
    UploadedFile,
    extract_upload,
    search_documents,
    storage_name,
)
from rfp_workflow.services.projects import ProjectService


@pytest.fixture
def service(session, tmp_path) -> DocumentService:
    return DocumentService(session, upload_directory=tmp_path)


@pytest.fixture
def rfp_file(sample_rfp_content) -> UploadedFile:
    return UploadedFile("citizen_portal-rfp.txt", "text/plain", sample_rfp_content.encode())


def test_storage_name():
    name = storage_name("pdf")
    assert name.startswith("rfp-")
    assert name.endswith(".pdf")
    assert ":" not in name
    assert storage_name("pdf") != name


class TestUploadRfp:
    """Tests for DocumentService.upload_rfp."""

    def test_upload_text_rfp(self, session, service, rfp_file, user_id, tmp_path, sample_rfp_content):
        response = service.upload_rfp(rfp_file, "  Citizen Portal  ", user_id, description="City tender")

        assert response.extraction_method == "text"
        assert response.extraction_quality == ExtractionQuality.GOOD
        assert response.file_url.startswith("/uploads/rfp/rfp-")

        document = session.get(RFPDocument, response.rfp_document_id)
        assert document.title == "Citizen Portal"
        assert document.content == sample_rfp_content.strip()
        assert document.mime_type == "text/plain"
        assert document.doc_metadata["original_file_name"] == "citizen_portal-rfp.txt"
        assert Path(document.file_path).parent == tmp_path / "rfp"
        assert Path(document.file_path).read_text() == sample_rfp_content

    def test_generic_content_type_resolved_from_extension(self, service, user_id):
        upload = UploadedFile("brief.md", "application/octet-stream", b"# Brief\n\nShort")

        response = service.upload_rfp(upload, "Brief", user_id)

        assert response.extraction_quality == ExtractionQuality.POOR

    def test_failed_extraction_still_stored(self, session, service, user_id):
        upload = UploadedFile("scan.pdf", "application/pdf", b"%PDF-1.4 not really a pdf")

        response = service.upload_rfp(upload, "Scan", user_id)

        assert response.extraction_quality == ExtractionQuality.FAILED
        assert response.extraction_method is None
        document = session.get(RFPDocument, response.rfp_document_id)
        assert document.content == EXTRACTION_FAILED_TEXT
        assert document.doc_metadata["extraction_error"]

    @pytest.mark.parametrize(
        "upload, title, code",
        [
            (UploadedFile("a.txt", "text/plain", b"x"), "   ", "TITLE_REQUIRED"),
            (None, "RFP", "FILE_REQUIRED"),
            (UploadedFile("a.txt", "text/plain", b""), "RFP", "FILE_REQUIRED"),
            (UploadedFile("a.png", "image/png", b"\x89PNG"), "RFP", "UNSUPPORTED_FILE_TYPE"),
        ],
    )
    def test_rejections(self, service, user_id, upload, title, code):
        with pytest.raises(ValidationFailedError) as exc_info:
            service.upload_rfp(upload, title, user_id)
        assert exc_info.value.code == code


class TestProjectDocuments:
    """Tests for knowledge-base uploads, indexing and deletion."""

    def test_upload_reports_each_file(self, service, user_id, project_id, rfp_file):
        uploads = [
            rfp_file,
            UploadedFile("empty.txt", "text/plain", b""),
            UploadedFile("archive.zip", "application/zip", b"PK"),
        ]

        response, pending = service.upload_project_documents(project_id, user_id, uploads)

        assert (response.uploaded, response.failed) == (1, 2)
        assert [r.success for r in response.results] == [True, False, False]
        assert response.results[1].error == "File is empty"
        assert "Unsupported file type" in response.results[2].error
        assert pending == [response.results[0].document_id]

    def test_file_name_kept_as_uploaded(self, session, service, user_id, project_id):
        upload = UploadedFile("city_rfp-v2.txt", "text/plain", b"Scope of work for the city portal")

        _, pending = service.upload_project_documents(project_id, user_id, [upload])

        assert session.get(ProjectDocument, pending[0]).file_name == "city_rfp-v2.txt"

    def test_upload_requires_membership(self, service, project_id, create_user, rfp_file):
        outsider = create_user(email="outsider@example.com", tier=UserTier.BASIC)
        with pytest.raises(PermissionDeniedError):
            service.upload_project_documents(project_id, outsider, [rfp_file])

    def test_indexer_chunks_and_embeds(self, session, service, user_id, project_id, rfp_file, mock_vector_store):
        _, pending = service.upload_project_documents(project_id, user_id, [rfp_file])
        session.commit()

        DocumentIndexer(lambda: mock_vector_store, session_factory=get_session_factory()).process(pending[0])

        document_id, chunk_project_id, chunks = mock_vector_store.add_chunks.call_args.args
        assert (document_id, chunk_project_id) == (pending[0], project_id)
        assert chunks and "REQ-001" in chunks[0].content
        assert mock_vector_store.add_chunks.call_args.kwargs["extra_metadata"] == {"file_name": "citizen_portal-rfp.txt"}

        session.expire_all()
        document = session.get(ProjectDocument, pending[0])
        assert document.doc_metadata["processing_status"] == "completed"
        assert document.doc_metadata["chunk_count"] == len(chunks)
        assert "REQ-001" in document.content

    def test_indexer_records_failure(self, session, service, user_id, project_id, rfp_file, mock_vector_store):
        _, pending = service.upload_project_documents(project_id, user_id, [rfp_file])
        session.commit()
        mock_vector_store.add_chunks.side_effect = RuntimeError("embedding service down")

        DocumentIndexer(lambda: mock_vector_store, session_factory=get_session_factory()).process(pending[0])

        session.expire_all()
        metadata = session.get(ProjectDocument, pending[0]).doc_metadata
        assert metadata["processing_status"] == "failed"
        assert metadata["processing_error"] == "embedding service down"

    def test_indexer_ignores_missing_document(self, mock_vector_store):
        DocumentIndexer(lambda: mock_vector_store, session_factory=get_session_factory()).process("missing")
        mock_vector_store.add_chunks.assert_not_called()

    def test_delete(self, session, service, user_id, project_id, rfp_file, mock_vector_store):
        response, _ = service.upload_project_documents(project_id, user_id, [rfp_file])
        document_id = response.results[0].document_id
        file_path = Path(session.get(ProjectDocument, document_id).file_path)

        removed = service.delete_project_document(project_id, document_id, user_id, mock_vector_store)

        assert removed == 2
        mock_vector_store.delete_by_document_id.assert_called_once_with(document_id)
        assert not file_path.exists()
        assert session.get(ProjectDocument, document_id) is None

    def test_delete_unknown(self, service, user_id, project_id, mock_vector_store):
        with pytest.raises(NotFoundError) as exc_info:
            service.delete_project_document(project_id, "missing", user_id, mock_vector_store)
        assert exc_info.value.code == "DOCUMENT_NOT_FOUND"

    def test_viewer_cannot_delete(self, session, service, user_id, project_id, rfp_file, create_user, mock_vector_store):
        viewer = create_user(email="viewer@example.com", tier=UserTier.BASIC)
        ProjectService(session).add_member(project_id, user_id, MemberCreate(email="viewer@example.com", role="viewer"))
        response, _ = service.upload_project_documents(project_id, user_id, [rfp_file])

        with pytest.raises(PermissionDeniedError):
            service.delete_project_document(project_id, response.results[0].document_id, viewer, mock_vector_store)
        mock_vector_store.delete_by_document_id.assert_not_called()


class TestSearchAndExtract:
    """Tests for knowledge-base search and ad-hoc extraction."""

    def test_search(self, mock_vector_store):
        hit = SearchHit(content="Citizens shall sign in", score=0.8, document_id="doc-1")
        mock_vector_store.similarity_search.return_value = [hit]

        response = search_documents(mock_vector_store, "  sign in ", project_id="p-1", k=3)

        assert response.results == [hit]
        mock_vector_store.similarity_search.assert_called_once_with(
            "sign in", k=3, project_id="p-1", score_threshold=0.3
        )

    @pytest.mark.parametrize("query", ["", "   "])
    def test_search_requires_query(self, mock_vector_store, query):
        with pytest.raises(ValidationFailedError) as exc_info:
            search_documents(mock_vector_store, query)
        assert exc_info.value.code == "QUERY_REQUIRED"

    def test_extract_upload(self, rfp_file):
        result = extract_upload(rfp_file)
        assert result.method == "text"
        assert "REQ-002" in result.text

    @pytest.mark.parametrize(
        "upload, code",
        [
            (UploadedFile("a.txt", "text/plain", b""), "FILE_REQUIRED"),
            (UploadedFile("a.zip", "application/zip", b"PK"), "UNSUPPORTED_FILE_TYPE"),
        ],
    )
    def test_extract_upload_rejections(self, upload, code):
        with pytest.raises(ValidationFailedError) as exc_info:
            extract_upload(upload)
        assert exc_info.value.code == code
