"""Document-related Pydantic models."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class ExtractionQuality(str, Enum):
    GOOD = "good"
    POOR = "poor"
    FAILED = "failed"


class ExtractionResult(BaseModel):
    """Text pulled from a document, with how it was obtained."""

    text: str = Field(default="", description="Extracted plain text")
    method: str = Field(..., description="Strategy that produced the text")
    page_count: int = Field(default=0, ge=0)
    quality: ExtractionQuality = Field(default=ExtractionQuality.GOOD)
    word_count: int = Field(default=0, ge=0)
    line_count: int = Field(default=0, ge=0)
    warnings: list[str] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_text(cls, text: str, method: str, **kwargs: Any) -> "ExtractionResult":
        """Build a result and fill the word/line counters from ``text``."""
        return cls(
            text=text,
            method=method,
            word_count=len(text.split()),
            line_count=len([line for line in text.splitlines() if line.strip()]),
            **kwargs,
        )


class TextChunk(BaseModel):
    """A chunk of document text with position metadata."""

    content: str
    chunk_index: int = Field(..., ge=0)
    total_chunks: int = Field(..., ge=1)
    start_position: int = Field(..., ge=0)
    end_position: int = Field(..., ge=0)


class RFPUploadResponse(BaseModel):
    rfp_document_id: str
    file_url: str
    message: str
    extraction_method: str | None = None
    extraction_quality: ExtractionQuality | None = None


class DocumentUploadResult(BaseModel):
    file_name: str
    success: bool
    document_id: str | None = None
    error: str | None = None


class DocumentUploadResponse(BaseModel):
    results: list[DocumentUploadResult]
    uploaded: int
    failed: int


class SearchHit(BaseModel):
    content: str
    score: float = Field(..., ge=0.0, le=1.0)
    document_id: str | None = None
    project_id: str | None = None
    chunk_index: int | None = None
    file_name: str | None = None


class SearchResponse(BaseModel):
    query: str
    results: list[SearchHit]
