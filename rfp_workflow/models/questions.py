"""Question, response and guidance models."""

from datetime import datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field

from rfp_workflow.models.analysis import AnalysisDepth


class QuestionType(str, Enum):
    SINGLE_CHOICE = "single_choice"
    MULTIPLE_CHOICE = "multiple_choice"
    TEXT_SHORT = "text_short"
    TEXT_LONG = "text_long"
    NUMBER = "number"
    RATING = "rating"
    YES_NO = "yes_no"
    DATE = "date"
    CHECKLIST = "checklist"


class QuestionCategory(str, Enum):
    MARKET_CONTEXT = "market_context"
    TARGET_AUDIENCE = "target_audience"
    COMPETITOR_FOCUS = "competitor_focus"
    TECHNOLOGY_PREFERENCE = "technology_preference"
    BUSINESS_MODEL = "business_model"
    PROJECT_CONSTRAINTS = "project_constraints"
    SUCCESS_DEFINITION = "success_definition"
    TECHNICAL_REQUIREMENTS = "technical_requirements"
    BUSINESS_GOALS = "business_goals"


DEFAULT_QUESTION_CATEGORIES: list[str] = [
    QuestionCategory.MARKET_CONTEXT.value,
    QuestionCategory.TECHNICAL_REQUIREMENTS.value,
    QuestionCategory.BUSINESS_GOALS.value,
    QuestionCategory.TARGET_AUDIENCE.value,
]


class AnalysisQuestion(BaseModel):
    """A question put to the client or team about an analysed RFP."""

    id: str
    rfp_analysis_id: str | None = None
    question_text: str
    question_type: QuestionType
    category: QuestionCategory
    priority: Literal["low", "medium", "high"] = "medium"
    context: str | None = None
    options: list[str] = Field(default_factory=list)
    next_step_impact: str | None = None
    order_index: int = Field(..., ge=1)
    created_at: datetime


class QuestionResponse(BaseModel):
    """An answer to an AnalysisQuestion."""

    analysis_question_id: str
    response_value: str | list[str] | float | int | bool | None = None
    response_text: str | None = None


class MarketResearchGuidance(BaseModel):
    research_scope: str
    priority_areas: list[Any] = Field(default_factory=list)
    recommended_tools: list[Any] = Field(default_factory=list)
    estimated_duration: str
    next_phase_preparation: str


class GenerateQuestionsRequest(BaseModel):
    max_questions: int = Field(default=10, ge=1, le=30)
    categories: list[str] = Field(default_factory=lambda: list(DEFAULT_QUESTION_CATEGORIES))
    generate_ai_answers: bool = Field(default=True)
    selected_model_id: str = Field(default="claude-3-5-sonnet-20241022")
    provider: str = Field(default="anthropic")
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    force_regenerate: bool = Field(default=False)


class AIAnswerOut(BaseModel):
    id: str
    answer_text: str
    confidence: float
    model_used: str | None = None


class UserResponseOut(BaseModel):
    id: str
    response_type: str
    final_answer: str
    confidence_level: float
    quality_score: float
    notes: str | None = None


class QuestionOut(BaseModel):
    id: str
    question_text: str
    question_type: str
    category: str
    priority: str
    context: str | None = None
    options: list[str] = Field(default_factory=list)
    next_step_impact: str | None = None
    order_index: int
    source: str
    ai_answers: list[AIAnswerOut] = Field(default_factory=list)
    user_response: UserResponseOut | None = None


class GenerateQuestionsResponse(BaseModel):
    questions: list[QuestionOut]
    used_fallback: bool = False
    message: str


ResponseType = Literal["ai_selected", "user_input", "mixed"]


class RespondRequest(BaseModel):
    """A single answer submission."""

    question_id: str = Field(default="")
    response_type: ResponseType | None = None
    final_answer: str = Field(default="")
    ai_answer_id: str | None = None
    user_input_text: str | None = None
    response_value: Any = None
    confidence_level: float = Field(default=0.7, ge=0.0, le=1.0)
    notes: str | None = None
    priority_override: Literal["low", "medium", "high"] | None = None


class NextSteps(BaseModel):
    remaining_questions: int
    ready_for_consolidation: bool


class SummaryStats(BaseModel):
    total_questions: int = 0
    answered_questions: int = 0
    ai_answers_used: int = 0
    user_answers_used: int = 0
    completion_percentage: float = 0.0


class RespondResult(BaseModel):
    response: UserResponseOut
    summary: SummaryStats
    next_steps: NextSteps


class BatchRespondRequest(BaseModel):
    responses: list[RespondRequest] = Field(..., min_length=1)
    auto_consolidate: bool = Field(default=False)


class BatchStatistics(BaseModel):
    saved: int = 0
    failed: int = 0
    average_confidence: float = 0.0
    followup_required: int = 0
    priority_updates: int = 0


class BatchRespondResult(BaseModel):
    statistics: BatchStatistics
    errors: list[dict[str, str]] = Field(default_factory=list)
    summary: SummaryStats
    consolidation_triggered: bool = False


class ConsolidateRequest(BaseModel):
    force_regenerate: bool = False
    selected_model_id: str = "claude-3-5-sonnet-20241022"
    provider: str = "anthropic"
    temperature: float = Field(default=0.4, ge=0.0, le=2.0)
    focus_areas: list[str] = Field(default_factory=list)
    analysis_depth: AnalysisDepth = AnalysisDepth.DETAILED
    include_recommendations: bool = True
    auto_triggered: bool = False


class ReadinessScores(BaseModel):
    market_research_readiness: bool
    persona_analysis_readiness: bool
    proposal_writing_readiness: bool
    quality_scores: dict[str, float]


class ConsolidateResponse(BaseModel):
    summary: SummaryStats
    consolidated_insights: dict[str, Any]
    readiness: ReadinessScores | None = None
    analysis_completeness: float = 0.0
    was_cached: bool = False


class PriorityArea(BaseModel):
    area: str
    importance: float = Field(ge=0.0, le=1.0)
    rationale: str


class RecommendedTool(BaseModel):
    tool: str
    purpose: str
    cost_estimate: str


class RecommendedAction(BaseModel):
    action: str
    priority: int
    estimated_effort: str
    expected_outcome: str


class NextStepGuidance(BaseModel):
    research_scope: str
    priority_areas: list[PriorityArea]
    recommended_tools: list[RecommendedTool]
    estimated_duration_days: int
    generated_insights: dict[str, Any] = Field(default_factory=dict)
    next_phase_preparation: str


class NextStepGuidanceResponse(BaseModel):
    guidance: NextStepGuidance
    recommended_actions: list[RecommendedAction]


class RuleBasedQuestionsResponse(BaseModel):
    questions: list[QuestionOut]
    guidance_preview: MarketResearchGuidance | None = None
