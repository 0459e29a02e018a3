"""Graph state for the RFP analysis pipeline."""

from typing import Any

from pydantic import BaseModel, Field

from rfp_workflow.models.analysis import AnalysisOptions, RFPAnalysisResult


class PipelineState(BaseModel):
    """State passed between the nodes of the analysis graph."""

    # Input
    rfp_document_id: str = Field(..., description="Document being analysed")
    user_id: str = Field(..., description="Caller, for ownership and usage accounting")
    options: AnalysisOptions = Field(default_factory=AnalysisOptions)

    # Loaded document
    document_text: str = Field(default="")
    project_id: str | None = Field(default=None)
    file_size: int = Field(default=0)

    # Analysis
    analysis_id: str | None = Field(default=None, description="Row created by load_document")
    result: RFPAnalysisResult | None = Field(default=None)
    model_used: str | None = Field(default=None)
    tokens_used: int = Field(default=0)

    questions_generated: int = Field(default=0)

    # Workflow control
    error: str | None = Field(default=None)
    error_code: str | None = Field(default=None)
    error_status: int = Field(default=500)
    current_step: str = Field(default="start")

    metadata: dict[str, Any] = Field(default_factory=dict)
