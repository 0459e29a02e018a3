"""Market research and persona question models."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class MarketResearchRequest(BaseModel):
    project_id: str = Field(default="")
    rfp_analysis_id: str = Field(default="")
    question_responses: list[dict[str, Any]] = Field(default_factory=list)
    selected_model_id: str | None = None


class MarketResearchOut(BaseModel):
    id: str
    project_id: str
    rfp_analysis_id: str
    status: str
    research_data: dict[str, Any]
    error_message: str | None = None
    created_at: datetime
    completed_at: datetime | None = None


class PersonaQuestion(BaseModel):
    id: str
    question_text: str
    question_type: str
    category: str
    options: list[str] = Field(default_factory=list)
    order_index: int = Field(..., ge=1)
