"""Graph nodes for the RFP analysis pipeline."""

from collections.abc import Callable
from typing import Any

from langsmith import traceable
from sqlalchemy.orm import Session

from rfp_workflow.db.tables import RFPAnalysis, RFPDocument
from rfp_workflow.errors import ExtractionError, NotFoundError, RFPWorkflowError
from rfp_workflow.graph.state import PipelineState
from rfp_workflow.llm.analyzer import RFPAnalyzer
from rfp_workflow.models.analysis import AnalysisStatus
from rfp_workflow.questions import RFPQuestionGenerator, store
from rfp_workflow.services.documents import EXTRACTION_FAILED_TEXT
from rfp_workflow.utils.logging import LoggerMixin


def _failure(error: RFPWorkflowError) -> dict[str, Any]:
    return {
        "error": error.message,
        "error_code": error.code,
        "error_status": error.status_code,
        "current_step": "error",
    }


class PipelineNodes(LoggerMixin):
    """Collection of nodes for the analysis graph."""

    def __init__(
        self,
        session: Session,
        analyzer_factory: Callable[[str | None], RFPAnalyzer],
        question_generator: RFPQuestionGenerator | None = None,
    ):
        """Initialize pipeline nodes.

        Args:
            session: Database session shared by all nodes.
            analyzer_factory: Builds an analyzer for a model ID (``None`` means the default model).
            question_generator: Rule-based question generator.
        """
        self._session = session
        self._analyzer_factory = analyzer_factory
        self._generator = question_generator or RFPQuestionGenerator()

    def _analysis_row(self, state: PipelineState) -> RFPAnalysis:
        return self._session.get(RFPAnalysis, state.analysis_id)

    def _set_status(self, state: PipelineState, status: AnalysisStatus) -> None:
        self._analysis_row(state).status = status.value
        self._session.flush()

    @traceable(name="load_document")
    def load_document(self, state: PipelineState) -> dict[str, Any]:
        """Load the document text and open an analysis row for it."""
        self.log_info("Loading document", rfp_document_id=state.rfp_document_id)

        document = self._session.get(RFPDocument, state.rfp_document_id)
        if document is None:
            return _failure(
                NotFoundError(
                    f"RFP document not found: {state.rfp_document_id}", code="RFP_DOCUMENT_NOT_FOUND"
                )
            )
        if not document.content.strip() or document.content == EXTRACTION_FAILED_TEXT:
            return _failure(ExtractionError("The document has no extracted text to analyse"))

        row = RFPAnalysis(
            rfp_document_id=document.id,
            project_id=document.project_id,
            created_by=state.user_id,
            status=AnalysisStatus.PROCESSING.value,
            analysis={},
        )
        self._session.add(row)
        self._session.flush()

        return {
            "document_text": document.content,
            "project_id": document.project_id,
            "file_size": document.file_size,
            "analysis_id": row.id,
            "current_step": "document_loaded",
        }

    @traceable(name="analyze")
    def analyze(self, state: PipelineState) -> dict[str, Any]:
        """Run the LLM analysis over the document text."""
        self._set_status(state, AnalysisStatus.ANALYZING)
        options = state.options

        try:
            analyzer = self._analyzer_factory(options.selected_model_id)
            result = analyzer.analyze(
                state.document_text,
                model_id=options.selected_model_id,
                depth=options.depth,
                focus_areas=options.focus_areas,
            )
        except RFPWorkflowError as e:
            self.log_error("Analysis failed", analysis_id=state.analysis_id, error=e.message)
            return _failure(e)

        return {
            "result": result,
            "model_used": analyzer.last_model,
            "tokens_used": analyzer.last_usage.total_tokens if analyzer.last_usage else 0,
            "current_step": "analyzed",
        }

    @traceable(name="save_analysis")
    def save_analysis(self, state: PipelineState) -> dict[str, Any]:
        row = self._analysis_row(state)
        row.analysis = state.result.model_dump(mode="json")
        row.confidence_score = state.result.confidence_score
        row.model_used = state.model_used
        row.status = (
            AnalysisStatus.GENERATING_QUESTIONS if state.options.include_questions else AnalysisStatus.COMPLETED
        ).value
        self._session.flush()

        self.log_info("Analysis saved", analysis_id=row.id, status=row.status)
        return {"current_step": "saved"}

    @traceable(name="generate_questions")
    def generate_questions(self, state: PipelineState) -> dict[str, Any]:
        """Attach rule-based questions; a failure here leaves the analysis completed."""
        row = self._analysis_row(state)
        try:
            questions = self._generator.generate_market_research_questions(state.result, row.id)
            store.save_questions(self._session, row.id, questions, source="rule")
            store.refresh_summary(self._session, row)
        except Exception as e:
            self.log_error("Question generation failed", analysis_id=row.id, error=str(e))
            row.status = AnalysisStatus.COMPLETED.value
            self._session.flush()
            return {"questions_generated": 0, "current_step": "questions_failed"}

        row.status = (AnalysisStatus.AWAITING_RESPONSES if questions else AnalysisStatus.COMPLETED).value
        self._session.flush()
        return {"questions_generated": len(questions), "current_step": "questions_generated"}

    def handle_error(self, state: PipelineState) -> dict[str, Any]:
        """Mark the analysis as failed."""
        self.log_error("Pipeline error", step=state.current_step, error=state.error, code=state.error_code)
        if state.analysis_id:
            row = self._analysis_row(state)
            row.status = AnalysisStatus.ERROR.value
            row.error_message = state.error
            self._session.flush()
        return {"current_step": "error"}
