"""Question, response, consolidation and guidance routes."""

from fastapi import APIRouter, HTTPException

from rfp_workflow.api.dependencies import SessionDep, UserIdDep
from rfp_workflow.errors import RFPWorkflowError
from rfp_workflow.models.questions import (
    BatchRespondRequest,
    BatchRespondResult,
    ConsolidateRequest,
    ConsolidateResponse,
    GenerateQuestionsRequest,
    GenerateQuestionsResponse,
    NextStepGuidanceResponse,
    QuestionOut,
    RespondRequest,
    RespondResult,
    RuleBasedQuestionsResponse,
)
from rfp_workflow.questions import QuestionService, ResponseService
from rfp_workflow.services.consolidation import ConsolidationService
from rfp_workflow.services.guidance import GuidanceService
from rfp_workflow.utils.logging import get_logger


logger = get_logger(__name__)

router = APIRouter(prefix="/rfp/analyses/{analysis_id}", tags=["Questions"])


def _response_service(session) -> ResponseService:
    def consolidate(analysis_id: str, user_id: str) -> ConsolidateResponse:
        return ConsolidationService(session).consolidate(
            analysis_id, user_id, ConsolidateRequest(auto_triggered=True)
        )

    return ResponseService(session, consolidate=consolidate)


@router.post("/questions/market-research", response_model=RuleBasedQuestionsResponse)
def market_research_questions(
    analysis_id: str, session: SessionDep, user_id: UserIdDep
) -> RuleBasedQuestionsResponse:
    """Rule-based market research questions for an analysis."""
    return QuestionService(session).generate_rule_based(analysis_id, user_id)


@router.post("/questions/generate", response_model=GenerateQuestionsResponse)
def generate_questions(
    analysis_id: str,
    session: SessionDep,
    user_id: UserIdDep,
    request: GenerateQuestionsRequest | None = None,
) -> GenerateQuestionsResponse:
    """Generate questions with an LLM, falling back to templates for small requests."""
    try:
        return QuestionService(session).generate(analysis_id, user_id, request or GenerateQuestionsRequest())
    except RFPWorkflowError:
        raise
    except Exception as e:
        logger.error("Question generation failed", analysis_id=analysis_id, error=str(e))
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/questions", response_model=list[QuestionOut])
def list_questions(analysis_id: str, session: SessionDep, user_id: UserIdDep) -> list[QuestionOut]:
    return QuestionService(session).list_questions(analysis_id, user_id)


@router.post("/questions/respond", response_model=RespondResult)
def respond(analysis_id: str, payload: RespondRequest, session: SessionDep, user_id: UserIdDep) -> RespondResult:
    """Save one answer."""
    return _response_service(session).respond(analysis_id, user_id, payload)


@router.patch("/questions/respond", response_model=BatchRespondResult)
def respond_batch(
    analysis_id: str, request: BatchRespondRequest, session: SessionDep, user_id: UserIdDep
) -> BatchRespondResult:
    """Save many answers at once, optionally consolidating when enough are in."""
    return _response_service(session).respond_batch(analysis_id, user_id, request)


@router.post("/consolidate", response_model=ConsolidateResponse)
def consolidate(
    analysis_id: str,
    session: SessionDep,
    user_id: UserIdDep,
    request: ConsolidateRequest | None = None,
) -> ConsolidateResponse:
    """Consolidate answered questions into insights and readiness flags."""
    try:
        return ConsolidationService(session).consolidate(analysis_id, user_id, request or ConsolidateRequest())
    except RFPWorkflowError:
        raise
    except Exception as e:
        logger.error("Consolidation failed", analysis_id=analysis_id, error=str(e))
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/next-step-guidance", response_model=NextStepGuidanceResponse)
def get_guidance(analysis_id: str, session: SessionDep, user_id: UserIdDep) -> NextStepGuidanceResponse:
    return GuidanceService(session).get_guidance(analysis_id)


@router.post("/next-step-guidance", response_model=NextStepGuidanceResponse)
def generate_guidance(analysis_id: str, session: SessionDep, user_id: UserIdDep) -> NextStepGuidanceResponse:
    return GuidanceService(session).generate_guidance(analysis_id)
