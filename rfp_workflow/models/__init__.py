"""Data models for the RFP workflow service."""

from rfp_workflow.models.analysis import (
    AnalysisDepth,
    AnalysisOptions,
    AnalysisStatus,
    Keyword,
    Requirement,
    RFPAnalysisResult,
)
from rfp_workflow.models.documents import ExtractionQuality, ExtractionResult, TextChunk
from rfp_workflow.models.questions import (
    AnalysisQuestion,
    MarketResearchGuidance,
    QuestionCategory,
    QuestionResponse,
    QuestionType,
)
from rfp_workflow.models.usage import UserTier

__all__ = [
    "AnalysisDepth",
    "AnalysisOptions",
    "AnalysisStatus",
    "Keyword",
    "Requirement",
    "RFPAnalysisResult",
    "ExtractionQuality",
    "ExtractionResult",
    "TextChunk",
    "AnalysisQuestion",
    "MarketResearchGuidance",
    "QuestionCategory",
    "QuestionResponse",
    "QuestionType",
    "UserTier",
]
