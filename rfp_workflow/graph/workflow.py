"""LangGraph pipeline that analyses an uploaded RFP."""

import math
from collections.abc import Callable
from typing import Literal

from langgraph.graph import END, StateGraph
from langsmith import traceable
from sqlalchemy import select
from sqlalchemy.orm import Session

from rfp_workflow.db.tables import RFPAnalysis
from rfp_workflow.errors import RFPWorkflowError
from rfp_workflow.graph.nodes import PipelineNodes
from rfp_workflow.graph.state import PipelineState
from rfp_workflow.llm.analyzer import RFPAnalyzer
from rfp_workflow.models.analysis import AnalysisOptions, AnalysisStatus, AnalyzeResponse
from rfp_workflow.providers import ModelRegistry, ProviderFactory
from rfp_workflow.questions import RFPQuestionGenerator
from rfp_workflow.services.analyses import analysis_record
from rfp_workflow.services.usage import UsageLimiter
from rfp_workflow.utils.logging import LoggerMixin


BYTES_PER_ESTIMATED_SECOND = 1024 * 100

ERRORS_BY_STATUS = {cls.status_code: cls for cls in RFPWorkflowError.__subclasses__()}


def estimate_duration_seconds(file_size: int) -> int:
    return math.ceil(file_size / BYTES_PER_ESTIMATED_SECOND)


class AnalysisPipeline(LoggerMixin):
    """Load, analyse, save and optionally seed questions for an RFP document."""

    def __init__(
        self,
        session: Session,
        limiter: UsageLimiter | None = None,
        analyzer_factory: Callable[[str | None], RFPAnalyzer] | None = None,
        question_generator: RFPQuestionGenerator | None = None,
    ):
        """Initialize the pipeline.

        Args:
            session: Database session.
            limiter: Usage limiter for quota checks and accounting.
            analyzer_factory: Builds an analyzer for a model ID; defaults to the model registry.
            question_generator: Rule-based question generator.
        """
        self._session = session
        self._limiter = limiter or UsageLimiter(session)
        self._nodes = PipelineNodes(
            session=session,
            analyzer_factory=analyzer_factory or self._default_analyzer,
            question_generator=question_generator,
        )
        self._graph = self._build_graph()

    def _default_analyzer(self, model_id: str | None) -> RFPAnalyzer:
        model = ModelRegistry(self._session).resolve(model_id)
        return RFPAnalyzer(provider=ProviderFactory.create_for_model(model))

    def _build_graph(self):
        graph = StateGraph(PipelineState)

        graph.add_node("load_document", self._nodes.load_document)
        graph.add_node("analyze", self._nodes.analyze)
        graph.add_node("save_analysis", self._nodes.save_analysis)
        graph.add_node("generate_questions", self._nodes.generate_questions)
        graph.add_node("handle_error", self._nodes.handle_error)

        graph.set_entry_point("load_document")

        graph.add_conditional_edges(
            "load_document",
            self._route_on_error,
            {"next": "analyze", "error": "handle_error"},
        )
        graph.add_conditional_edges(
            "analyze",
            self._route_on_error,
            {"next": "save_analysis", "error": "handle_error"},
        )
        graph.add_conditional_edges(
            "save_analysis",
            self._route_after_save,
            {"questions": "generate_questions", "end": END},
        )
        graph.add_edge("generate_questions", END)
        graph.add_edge("handle_error", END)

        return graph.compile()

    @staticmethod
    def _route_on_error(state: PipelineState) -> Literal["next", "error"]:
        return "error" if state.error else "next"

    @staticmethod
    def _route_after_save(state: PipelineState) -> Literal["questions", "end"]:
        return "questions" if state.options.include_questions else "end"

    @traceable(name="run_rfp_analysis")
    def run(self, rfp_document_id: str, user_id: str, options: AnalysisOptions | None = None) -> AnalyzeResponse:
        """Analyse a document, or return its existing analysis.

        An analysis that ended in error is not reused; the document is analysed again.

        Raises:
            NotFoundError: Unknown document.
            QuotaExceededError: The caller is over their daily quota.
            AIProviderError: The LLM call or its parsing failed.
        """
        options = options or AnalysisOptions()

        existing = self._session.scalar(
            select(RFPAnalysis)
            .where(
                RFPAnalysis.rfp_document_id == rfp_document_id,
                RFPAnalysis.status != AnalysisStatus.ERROR.value,
            )
            .order_by(RFPAnalysis.created_at.desc())
        )
        if existing is not None:
            self.log_info("Returning existing analysis", analysis_id=existing.id)
            return AnalyzeResponse(
                analysis=analysis_record(existing),
                questions_generated=len(existing.questions),
                was_cached=True,
            )

        self._limiter.enforce(user_id)
        self.log_info("Starting analysis pipeline", rfp_document_id=rfp_document_id, depth=options.depth.value)

        final = self._graph.invoke(
            PipelineState(rfp_document_id=rfp_document_id, user_id=user_id, options=options)
        )
        state = final if isinstance(final, PipelineState) else PipelineState.model_validate(final)

        if state.analysis_id:
            self._limiter.increment_usage(
                user_id,
                "rfp_analysis",
                "/rfp/analyze",
                tokens_used=state.tokens_used,
                success=state.error is None,
                model=state.model_used or options.selected_model_id,
            )
        if state.error:
            # Keep the error status and usage row even though the request fails
            self._session.commit()
            error_cls = ERRORS_BY_STATUS.get(state.error_status, RFPWorkflowError)
            raise error_cls(state.error, code=state.error_code)

        row = self._session.get(RFPAnalysis, state.analysis_id)
        self.log_info(
            "Analysis pipeline complete",
            analysis_id=row.id,
            status=row.status,
            questions=state.questions_generated,
        )
        return AnalyzeResponse(
            analysis=analysis_record(row),
            questions_generated=state.questions_generated,
            estimated_duration_seconds=estimate_duration_seconds(state.file_size),
            was_cached=False,
        )
