"""Health, RFP upload, extraction, knowledge base and analysis routes."""

from fastapi import APIRouter, BackgroundTasks, File, Form, HTTPException, Query, Response, UploadFile
from pydantic import BaseModel

from rfp_workflow.api.dependencies import SessionDep, UserIdDep, VectorStoreDep
from rfp_workflow.errors import RFPWorkflowError
from rfp_workflow.graph import AnalysisPipeline
from rfp_workflow.models.analysis import AnalysisRecord, AnalyzeRequest, AnalyzeResponse, KeywordGroups
from rfp_workflow.models.documents import (
    DocumentUploadResponse,
    ExtractionResult,
    RFPUploadResponse,
    SearchResponse,
)
from rfp_workflow.services.analyses import AnalysisService
from rfp_workflow.services.documents import (
    DocumentIndexer,
    DocumentService,
    UploadedFile,
    extract_upload,
    search_documents,
)
from rfp_workflow.utils.logging import get_logger


logger = get_logger(__name__)

router = APIRouter(tags=["RFP Analysis"])


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str = "1.0.0"


class StatsResponse(BaseModel):
    """Vector store statistics response."""
    collection_name: str
    document_count: int
    persist_directory: str


async def _read_upload(file: UploadFile) -> UploadedFile:
    return UploadedFile(file_name=file.filename or "upload", content_type=file.content_type, data=await file.read())


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(status="healthy")


@router.post("/rfp/upload", response_model=RFPUploadResponse, status_code=201)
async def upload_rfp(
    session: SessionDep,
    user_id: UserIdDep,
    file: UploadFile | None = File(default=None),
    title: str = Form(default=""),
    description: str | None = Form(default=None),
    project_id: str | None = Form(default=None),
) -> RFPUploadResponse:
    """Upload an RFP document and extract its text."""
    upload = await _read_upload(file) if file is not None else None
    try:
        return DocumentService(session).upload_rfp(
            upload, title, user_id, description=description, project_id=project_id or None
        )
    except RFPWorkflowError:
        raise
    except Exception as e:
        logger.error("RFP upload failed", error=str(e))
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/documents/extract", response_model=ExtractionResult)
async def extract_document(file: UploadFile = File(...)) -> ExtractionResult:
    """Extract text from a document without storing it."""
    return extract_upload(await _read_upload(file))


@router.post("/projects/{project_id}/documents", response_model=DocumentUploadResponse, status_code=201)
async def upload_project_documents(
    project_id: str,
    session: SessionDep,
    user_id: UserIdDep,
    vector_store: VectorStoreDep,
    background_tasks: BackgroundTasks,
    files: list[UploadFile] = File(...),
) -> DocumentUploadResponse:
    """Store knowledge-base documents; indexing continues in the background."""
    uploads = [await _read_upload(f) for f in files]
    response, pending = DocumentService(session).upload_project_documents(project_id, user_id, uploads)

    # Indexing opens its own session, so the rows must be visible first
    session.commit()
    indexer = DocumentIndexer(vector_store_factory=lambda: vector_store)
    for document_id in pending:
        background_tasks.add_task(indexer.process, document_id)
    return response


@router.delete("/projects/{project_id}/documents/{document_id}", status_code=204)
def delete_project_document(
    project_id: str,
    document_id: str,
    session: SessionDep,
    user_id: UserIdDep,
    vector_store: VectorStoreDep,
) -> Response:
    """Remove a knowledge-base document and its indexed chunks."""
    DocumentService(session).delete_project_document(project_id, document_id, user_id, vector_store)
    return Response(status_code=204)


@router.get("/documents/stats", response_model=StatsResponse)
async def get_stats(vector_store: VectorStoreDep) -> StatsResponse:
    """Get vector store statistics."""
    stats = vector_store.get_collection_stats()
    return StatsResponse(**stats)


@router.get("/documents/search", response_model=SearchResponse)
async def search_project_documents(
    vector_store: VectorStoreDep,
    user_id: UserIdDep,
    query: str = Query(default=""),
    project_id: str | None = Query(default=None),
    k: int | None = Query(default=None, ge=1, le=100),
) -> SearchResponse:
    """Similarity search over the project knowledge base."""
    return search_documents(vector_store, query, project_id=project_id, k=k)


@router.post("/rfp/analyze", response_model=AnalyzeResponse)
def analyze_rfp(request: AnalyzeRequest, session: SessionDep, user_id: UserIdDep) -> AnalyzeResponse:
    """Analyze an uploaded RFP document.

    Args:
        request: Document ID and analysis options.
        session: Injected database session.
        user_id: Caller.

    Returns:
        The stored analysis, freshly run or cached.
    """
    try:
        return AnalysisPipeline(session).run(request.rfp_document_id, user_id, request.analysis_options)
    except RFPWorkflowError:
        raise
    except Exception as e:
        logger.error("RFP analysis failed", rfp_document_id=request.rfp_document_id, error=str(e))
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/rfp/analyses", response_model=list[AnalysisRecord])
def list_analyses(
    session: SessionDep,
    user_id: UserIdDep,
    project_id: str | None = Query(default=None),
    status: str | None = Query(default=None),
) -> list[AnalysisRecord]:
    return AnalysisService(session).list_analyses(user_id, project_id=project_id, status=status)


@router.get("/rfp/analyses/{analysis_id}", response_model=AnalysisRecord)
def get_analysis(analysis_id: str, session: SessionDep, user_id: UserIdDep) -> AnalysisRecord:
    return AnalysisService(session).get_analysis(analysis_id)


@router.get("/rfp/analyses/{analysis_id}/keywords", response_model=KeywordGroups)
def get_keywords(analysis_id: str, session: SessionDep, user_id: UserIdDep) -> KeywordGroups:
    """Keywords of an analysis grouped by category."""
    return AnalysisService(session).get_keywords(analysis_id)
