"""Pytest configuration and fixtures."""

import json
import os
import tempfile
from unittest.mock import MagicMock

import pytest

# Set test environment variables before importing modules
os.environ["OPENAI_API_KEY"] = "test-api-key"
os.environ["ANTHROPIC_API_KEY"] = ""
os.environ["ENVIRONMENT"] = "test"
os.environ["LANGCHAIN_TRACING_V2"] = "false"
os.environ["LANGSMITH_TRACING"] = "false"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["UPLOAD_DIRECTORY"] = tempfile.mkdtemp(prefix="rfp-uploads-")
os.environ["CHROMA_PERSIST_DIRECTORY"] = tempfile.mkdtemp(prefix="rfp-chroma-")

from rfp_workflow.db import tables  # noqa: E402,F401
from rfp_workflow.db.base import Base  # noqa: E402
from rfp_workflow.db.session import get_engine, get_session_factory, init_db  # noqa: E402
from rfp_workflow.db.tables import RFPAnalysis, RFPDocument  # noqa: E402
from rfp_workflow.models.ai import AIResponse, AIUsage  # noqa: E402
from rfp_workflow.models.analysis import (  # noqa: E402
    BusinessRequirements,
    Keyword,
    ProjectOverview,
    Requirement,
    RFPAnalysisResult,
    RiskFactor,
    TechnicalSpecifications,
)
from rfp_workflow.models.projects import ProjectCreate  # noqa: E402
from rfp_workflow.models.questions import RespondRequest  # noqa: E402
from rfp_workflow.models.usage import UserCreate, UserTier  # noqa: E402
from rfp_workflow.questions import QuestionService, ResponseService  # noqa: E402
from rfp_workflow.services.projects import ProjectService  # noqa: E402
from rfp_workflow.services.users import UserService  # noqa: E402


SAMPLE_RFP_TEXT = """
REQUEST FOR PROPOSAL
Project: Citizen Portal Renewal

1. Background
The city wants to rebuild its citizen services portal so residents can file requests online.

2. Functional Requirements
REQ-001: Citizens shall sign in with multi-factor authentication.
REQ-002: Citizens shall track the status of every request they file.
REQ-003: Officials shall manage requests from an administration console.

3. Non-Functional Requirements
The portal must support 10,000 concurrent users with responses under 200ms.

4. Budget and Timeline
Total budget: USD 200k-300k. Delivery within 6 months.
"""


@pytest.fixture(autouse=True)
def database():
    """Fresh schema in the shared in-memory database for every test."""
    engine = get_engine()
    Base.metadata.drop_all(engine)
    init_db(engine)
    yield engine


@pytest.fixture
def session(database):
    """Database session, rolled back after the test."""
    session = get_session_factory()()
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def sample_rfp_content() -> str:
    """Sample RFP document content for testing."""
    return SAMPLE_RFP_TEXT


@pytest.fixture
def sample_analysis() -> RFPAnalysisResult:
    """A parsed analysis of the sample RFP."""
    return RFPAnalysisResult(
        project_overview=ProjectOverview(
            title="Citizen Portal Renewal",
            description="Rebuild the citizen services portal",
            scope="Web portal and administration console",
            objectives=["Online requests", "Status tracking"],
        ),
        functional_requirements=[
            Requirement(id="REQ-001", title="Multi-factor sign-in", priority="high", category="security"),
            Requirement(id="REQ-002", title="Request tracking", priority="medium", category="feature"),
        ],
        non_functional_requirements=[
            Requirement(id="NFR-001", title="10,000 concurrent users", priority="high", category="performance"),
        ],
        technical_specifications=TechnicalSpecifications(
            platform=["web"],
            technologies=["React", "Node.js", "PostgreSQL"],
        ),
        business_requirements=BusinessRequirements(
            budget_range="USD 200k-300k",
            timeline="6 months",
            target_users=["Citizens", "Public officials"],
        ),
        keywords=[
            Keyword(term="portal", importance=0.9, category="domain"),
            Keyword(term="React", importance=0.7, category="technical"),
            Keyword(term="budget", importance=0.4, category="business"),
            Keyword(term="MFA", importance=0.8, category="technical"),
        ],
        risk_factors=[RiskFactor(factor="Tight timeline", level="high", mitigation="Phase delivery")],
        confidence_score=0.8,
    )


@pytest.fixture
def create_user(session):
    """Factory for registered users; returns the new user ID."""

    def _create(email: str = "analyst@example.com", tier: UserTier = UserTier.ADMIN, name: str = "Analyst") -> str:
        return UserService(session).create_user(UserCreate(email=email, name=name, tier=tier)).id

    return _create


@pytest.fixture
def user_id(create_user) -> str:
    return create_user()


@pytest.fixture
def project_id(session, user_id) -> str:
    return ProjectService(session).create_project(user_id, ProjectCreate(name="Citizen Portal")).id


@pytest.fixture
def create_document(session, user_id):
    """Factory for stored RFP documents with extracted text."""

    def _create(content: str = SAMPLE_RFP_TEXT, project_id: str | None = None) -> str:
        document = RFPDocument(
            title="Citizen Portal RFP",
            file_path="/tmp/citizen-portal.txt",
            content=content,
            file_size=len(content.encode()),
            mime_type="text/plain",
            doc_metadata={},
            project_id=project_id,
            uploaded_by=user_id,
        )
        session.add(document)
        session.flush()
        return document.id

    return _create


@pytest.fixture
def analysis_id(session, user_id, project_id, create_document, sample_analysis) -> str:
    """A completed analysis attached to a project."""
    row = RFPAnalysis(
        rfp_document_id=create_document(project_id=project_id),
        project_id=project_id,
        created_by=user_id,
        status="completed",
        analysis=sample_analysis.model_dump(mode="json"),
        confidence_score=sample_analysis.confidence_score,
        model_used="claude-test",
    )
    session.add(row)
    session.flush()
    return row.id


def ai_response(payload, model: str = "claude-test", tokens: int = 120) -> AIResponse:
    """Provider reply carrying ``payload`` (JSON-encoded unless already a string)."""
    content = payload if isinstance(payload, str) else json.dumps(payload)
    return AIResponse(
        content=content,
        usage=AIUsage(input_tokens=tokens - 20, output_tokens=20, total_tokens=tokens),
        model=model,
    )


@pytest.fixture
def mock_provider():
    """Mock AI provider; set ``send_messages.return_value`` per test."""
    mock = MagicMock()
    mock.name = "anthropic"
    mock.send_messages.return_value = ai_response({})
    return mock


@pytest.fixture
def mock_vector_store():
    """Mock vector store for testing."""
    mock = MagicMock()
    mock.similarity_search.return_value = []
    mock.add_chunks.return_value = ["chunk-1", "chunk-2"]
    mock.delete_by_document_id.return_value = 2
    mock.get_collection_stats.return_value = {
        "collection_name": "project_documents",
        "document_count": 2,
        "persist_directory": "/tmp/chroma",
    }
    return mock


@pytest.fixture
def answer_questions(session, user_id, analysis_id):
    """Create the rule-based questions and answer the first ``count`` of them."""

    def _answer(count: int = 5, confidence: float = 0.8) -> list[str]:
        questions = QuestionService(session).generate_rule_based(analysis_id, user_id).questions
        service = ResponseService(session)
        for question in questions[:count]:
            service.respond(
                analysis_id,
                user_id,
                RespondRequest(
                    question_id=question.id,
                    response_type="mixed",
                    final_answer=f"Answer to {question.question_text}",
                    confidence_level=confidence,
                ),
            )
        return [q.id for q in questions[:count]]

    return _answer
