"""RFP analysis Pydantic models."""

from datetime import datetime
from enum import Enum
from typing import Any, Literal
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator


Priority = Literal["low", "medium", "high", "critical"]


class AnalysisStatus(str, Enum):
    """Lifecycle of an RFP analysis."""

    UPLOADING = "uploading"
    PROCESSING = "processing"
    ANALYZING = "analyzing"
    GENERATING_QUESTIONS = "generating_questions"
    AWAITING_RESPONSES = "awaiting_responses"
    COMPLETED = "completed"
    ERROR = "error"


class AnalysisDepth(str, Enum):
    BASIC = "basic"
    DETAILED = "detailed"
    COMPREHENSIVE = "comprehensive"


class Requirement(BaseModel):
    """A single functional or non-functional requirement."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    title: str = Field(..., description="Short requirement title")
    description: str = Field(default="", description="Full requirement text")
    priority: Priority = Field(default="medium")
    category: str = Field(default="general")
    acceptance_criteria: list[str] = Field(default_factory=list)
    estimated_effort: str | None = Field(default=None)


class ProjectOverview(BaseModel):
    title: str = Field(default="")
    description: str = Field(default="")
    scope: str = Field(default="")
    objectives: list[str] = Field(default_factory=list)


class TechnicalSpecifications(BaseModel):
    platform: list[str] = Field(default_factory=list)
    technologies: list[str] = Field(default_factory=list)
    integrations: list[str] = Field(default_factory=list)
    performance_requirements: dict[str, Any] = Field(default_factory=dict)


class BusinessRequirements(BaseModel):
    budget_range: str | None = Field(default=None)
    timeline: str | None = Field(default=None)
    target_users: list[str] = Field(default_factory=list)
    success_metrics: list[str] = Field(default_factory=list)


class Keyword(BaseModel):
    term: str
    importance: float = Field(default=0.5, ge=0.0, le=1.0)
    category: str = Field(default="domain", description="technical, business or domain")


class RiskFactor(BaseModel):
    factor: str
    level: Literal["low", "medium", "high"] = Field(default="medium")
    mitigation: str = Field(default="")


class RFPAnalysisResult(BaseModel):
    """Structured result of an LLM pass over an RFP document."""

    project_overview: ProjectOverview = Field(default_factory=ProjectOverview)
    functional_requirements: list[Requirement] = Field(default_factory=list)
    non_functional_requirements: list[Requirement] = Field(default_factory=list)
    technical_specifications: TechnicalSpecifications = Field(
        default_factory=TechnicalSpecifications
    )
    business_requirements: BusinessRequirements = Field(default_factory=BusinessRequirements)
    keywords: list[Keyword] = Field(default_factory=list)
    risk_factors: list[RiskFactor] = Field(default_factory=list)
    questions_for_client: list[str] = Field(default_factory=list)

    # Discipline-specific breakdowns are free-form
    planning_analysis: dict[str, Any] | None = Field(default=None)
    design_analysis: dict[str, Any] | None = Field(default=None)
    publishing_analysis: dict[str, Any] | None = Field(default=None)
    development_analysis: dict[str, Any] | None = Field(default=None)
    project_feasibility: dict[str, Any] | None = Field(default=None)
    resource_requirements: dict[str, Any] | None = Field(default=None)
    timeline_analysis: dict[str, Any] | None = Field(default=None)

    confidence_score: float = Field(default=0.0, ge=0.0, le=1.0)

    model_config = {"frozen": False}


class AnalysisOptions(BaseModel):
    include_questions: bool = Field(default=True)
    depth: AnalysisDepth = Field(default=AnalysisDepth.DETAILED)
    focus_areas: list[str] = Field(default_factory=list)
    selected_model_id: str | None = Field(default=None)


class AnalyzeRequest(BaseModel):
    """Request to analyze an uploaded RFP document."""

    rfp_document_id: str = Field(..., min_length=1)
    analysis_options: AnalysisOptions = Field(default_factory=AnalysisOptions)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "rfp_document_id": "0b7c1d0e-3f1f-4b8e-9d57-3a3b5f0d2c11",
                    "analysis_options": {"include_questions": True, "depth": "detailed"},
                }
            ]
        }
    }


class AnalysisRecord(BaseModel):
    """A persisted analysis as returned by the API."""

    id: str
    rfp_document_id: str
    project_id: str | None = None
    status: AnalysisStatus
    analysis: RFPAnalysisResult
    model_used: str | None = None
    error_message: str | None = None
    created_at: datetime


class AnalyzeResponse(BaseModel):
    analysis: AnalysisRecord
    questions_generated: int = Field(default=0, ge=0)
    estimated_duration_seconds: int = Field(default=0, ge=0)
    was_cached: bool = Field(default=False)


class KeywordGroups(BaseModel):
    """Keywords partitioned by category, most important first."""

    technical_keywords: list[Keyword] = Field(default_factory=list)
    business_keywords: list[Keyword] = Field(default_factory=list)
    domain_keywords: list[Keyword] = Field(default_factory=list)

    @field_validator("technical_keywords", "business_keywords", "domain_keywords")
    @classmethod
    def _sort_by_importance(cls, value: list[Keyword]) -> list[Keyword]:
        return sorted(value, key=lambda k: k.importance, reverse=True)
