"""AI model catalogue, chat, usage, user administration and market research routes."""

from typing import Any

from fastapi import APIRouter, HTTPException, Query, Response

from rfp_workflow.api.dependencies import SessionDep, UserIdDep
from rfp_workflow.errors import RFPWorkflowError
from rfp_workflow.models.ai import (
    AIModel,
    AIModelUpdate,
    AIResponse,
    ChatMessageCreate,
    ChatMessageOut,
    ChatRequest,
    ChatSessionCreate,
    ChatSessionOut,
)
from rfp_workflow.models.market_research import MarketResearchOut, MarketResearchRequest, PersonaQuestion
from rfp_workflow.models.usage import SystemStats, TierUpdateRequest, UsageStats, UserCreate, UserOut
from rfp_workflow.providers import ModelRegistry, ProviderFactory
from rfp_workflow.services.chat import ChatService
from rfp_workflow.services.market_research import MarketResearchService
from rfp_workflow.services.usage import UsageLimiter
from rfp_workflow.services.users import UserService
from rfp_workflow.utils.logging import get_logger


logger = get_logger(__name__)

router = APIRouter(tags=["AI"])


@router.get("/ai/models", response_model=list[AIModel])
def list_models(
    session: SessionDep,
    user_id: UserIdDep,
    include_inactive: bool = Query(default=False),
) -> list[AIModel]:
    return ModelRegistry(session).list_models(active_only=not include_inactive)


@router.post("/admin/ai-models", response_model=AIModel, status_code=201)
def create_model(model: AIModel, session: SessionDep, user_id: UserIdDep) -> AIModel:
    UsageLimiter(session).require_admin(user_id)
    return ModelRegistry(session).create(model)


@router.patch("/admin/ai-models/{model_id}", response_model=AIModel)
def update_model(model_id: str, update: AIModelUpdate, session: SessionDep, user_id: UserIdDep) -> AIModel:
    UsageLimiter(session).require_admin(user_id)
    return ModelRegistry(session).update(model_id, update)


@router.post("/admin/providers/{provider}/validate")
def validate_provider_key(provider: str, session: SessionDep, user_id: UserIdDep) -> dict[str, Any]:
    """Check that the configured API key of a provider is accepted."""
    UsageLimiter(session).require_admin(user_id)
    return {"provider": provider, "valid": ProviderFactory.create(provider).validate_api_key()}


@router.post("/ai/chat", response_model=AIResponse)
def chat(request: ChatRequest, session: SessionDep, user_id: UserIdDep) -> AIResponse:
    """Stateless completion from either a single prompt or a message list."""
    try:
        return ChatService(session).chat(user_id, request)
    except RFPWorkflowError:
        raise
    except Exception as e:
        logger.error("Chat failed", model=request.model, error=str(e))
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/chat/sessions", response_model=list[ChatSessionOut])
def list_chat_sessions(session: SessionDep, user_id: UserIdDep) -> list[ChatSessionOut]:
    return ChatService(session).list_sessions(user_id)


@router.post("/chat/sessions", response_model=ChatSessionOut, status_code=201)
def create_chat_session(payload: ChatSessionCreate, session: SessionDep, user_id: UserIdDep) -> ChatSessionOut:
    return ChatService(session).create_session(user_id, payload)


@router.get("/chat/sessions/{session_id}", response_model=ChatSessionOut)
def get_chat_session(session_id: str, session: SessionDep, user_id: UserIdDep) -> ChatSessionOut:
    return ChatService(session).get_session(session_id, user_id)


@router.delete("/chat/sessions/{session_id}", status_code=204)
def delete_chat_session(session_id: str, session: SessionDep, user_id: UserIdDep) -> Response:
    ChatService(session).delete_session(session_id, user_id)
    return Response(status_code=204)


@router.post("/chat/sessions/{session_id}/messages", response_model=ChatMessageOut)
def send_chat_message(
    session_id: str, payload: ChatMessageCreate, session: SessionDep, user_id: UserIdDep
) -> ChatMessageOut:
    """Send a message with the full session history and store the reply."""
    return ChatService(session).send_message(session_id, user_id, payload)


@router.post("/users", response_model=UserOut, status_code=201)
def create_user(payload: UserCreate, session: SessionDep) -> UserOut:
    return UserService(session).create_user(payload)


@router.get("/users/{target_user_id}", response_model=UserOut)
def get_user(target_user_id: str, session: SessionDep, user_id: UserIdDep) -> UserOut:
    return UserService(session).get_user(target_user_id)


@router.get("/ai/usage", response_model=UsageStats)
def get_usage(
    session: SessionDep,
    user_id: UserIdDep,
    days: int = Query(default=30, ge=1, le=365),
) -> UsageStats:
    """Usage statistics of the caller over the last ``days`` days."""
    return UsageLimiter(session).get_usage_stats(user_id, days=days)


@router.get("/ai/features/{feature}")
def get_feature_access(feature: str, session: SessionDep, user_id: UserIdDep) -> dict[str, Any]:
    return {"feature": feature, "allowed": UsageLimiter(session).check_feature_access(user_id, feature)}


@router.put("/admin/users/{target_user_id}/tier", response_model=UserOut)
def update_user_tier(
    target_user_id: str, request: TierUpdateRequest, session: SessionDep, user_id: UserIdDep
) -> UserOut:
    limiter = UsageLimiter(session)
    limiter.require_admin(user_id)
    return limiter.update_user_tier(target_user_id, request.tier, changed_by=user_id, reason=request.reason)


@router.get("/admin/usage", response_model=SystemStats)
def get_system_usage(session: SessionDep, user_id: UserIdDep) -> SystemStats:
    limiter = UsageLimiter(session)
    limiter.require_admin(user_id)
    return limiter.get_system_stats()


@router.post("/market-research/analyze", response_model=MarketResearchOut)
def analyze_market(request: MarketResearchRequest, session: SessionDep, user_id: UserIdDep) -> MarketResearchOut:
    """Run LLM market research for an analysis and its answered questions."""
    try:
        return MarketResearchService(session).analyze(request, user_id)
    except RFPWorkflowError:
        raise
    except Exception as e:
        logger.error("Market research failed", rfp_analysis_id=request.rfp_analysis_id, error=str(e))
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/market-research/{research_id}", response_model=MarketResearchOut)
def get_market_research(research_id: str, session: SessionDep, user_id: UserIdDep) -> MarketResearchOut:
    return MarketResearchService(session).get(research_id)


@router.post("/market-research/{research_id}/persona-questions", response_model=list[PersonaQuestion])
def persona_questions(research_id: str, session: SessionDep, user_id: UserIdDep) -> list[PersonaQuestion]:
    """Persona questions derived from a completed market research."""
    return MarketResearchService(session).persona_questions(research_id)
