"""Saving answers to analysis questions."""

from collections.abc import Callable

from sqlalchemy import select
from sqlalchemy.orm import Session

from rfp_workflow.db.tables import AnalysisQuestion as QuestionRow
from rfp_workflow.db.tables import QuestionAIAnswer, QuestionUserResponse
from rfp_workflow.errors import NotFoundError, RFPWorkflowError, ValidationFailedError
from rfp_workflow.models.questions import (
    BatchRespondRequest,
    BatchRespondResult,
    BatchStatistics,
    NextSteps,
    RespondRequest,
    RespondResult,
)
from rfp_workflow.questions import store
from rfp_workflow.utils.logging import LoggerMixin


CONSOLIDATION_READY_PERCENT = 60.0
FOLLOWUP_CONFIDENCE = 0.5


def calculate_response_quality(
    answer: str, response_type: str, confidence: float, notes: str | None = None
) -> float:
    """Score an answer from 0 to 1 by length, provenance, confidence and notes."""
    score = 0.5
    length = len(answer or "")
    if length > 100:
        score += 0.2
    if length > 300:
        score += 0.1
    if response_type == "user_input":
        score += 0.15
    elif response_type == "mixed":
        score += 0.1
    score += (confidence - 0.5) * 0.2
    if notes and len(notes) > 20:
        score += 0.1
    return round(max(0.0, min(1.0, score)), 4)


class ResponseService(LoggerMixin):
    """Validates and upserts user answers, keeping the analysis summary current."""

    def __init__(self, session: Session, consolidate: Callable[[str, str], object] | None = None):
        """
        Args:
            session: Database session.
            consolidate: Called as ``consolidate(analysis_id, user_id)`` when a
                batch asks for automatic consolidation.
        """
        self._session = session
        self._consolidate = consolidate

    def _validate(self, analysis_id: str, payload: RespondRequest) -> QuestionRow:
        if not payload.question_id or not payload.response_type or not payload.final_answer.strip():
            raise ValidationFailedError(
                "question_id, response_type and final_answer are required",
                code="MISSING_REQUIRED_FIELDS",
            )

        question = self._session.get(QuestionRow, payload.question_id)
        if question is None or question.rfp_analysis_id != analysis_id:
            raise NotFoundError(
                f"Question {payload.question_id} not found for this analysis", code="QUESTION_NOT_FOUND"
            )

        if payload.response_type == "ai_selected":
            if not payload.ai_answer_id:
                raise ValidationFailedError("ai_answer_id is required for ai_selected responses")
            ai_answer = self._session.get(QuestionAIAnswer, payload.ai_answer_id)
            if ai_answer is None or ai_answer.question_id != question.id:
                raise NotFoundError("AI answer not found for this question", code="AI_ANSWER_NOT_FOUND")
        elif payload.response_type == "user_input" and not (payload.user_input_text or "").strip():
            raise ValidationFailedError("user_input_text is required for user_input responses")

        return question

    def _save(self, analysis_id: str, user_id: str, payload: RespondRequest) -> tuple[QuestionUserResponse, bool]:
        question = self._validate(analysis_id, payload)

        priority_updated = False
        if payload.priority_override and payload.priority_override != question.priority:
            question.priority = payload.priority_override
            priority_updated = True

        response = self._session.scalar(
            select(QuestionUserResponse).where(
                QuestionUserResponse.question_id == question.id,
                QuestionUserResponse.user_id == user_id,
            )
        )
        if response is None:
            response = QuestionUserResponse(rfp_analysis_id=analysis_id, question=question, user_id=user_id)
            self._session.add(response)

        response.response_type = payload.response_type
        response.final_answer = payload.final_answer.strip()
        response.response_value = payload.response_value
        response.ai_answer_id = payload.ai_answer_id
        response.user_input_text = payload.user_input_text
        response.confidence_level = payload.confidence_level
        response.notes = payload.notes
        response.quality_score = calculate_response_quality(
            response.final_answer, payload.response_type, payload.confidence_level, payload.notes
        )
        self._session.flush()
        return response, priority_updated

    def respond(self, analysis_id: str, user_id: str, payload: RespondRequest) -> RespondResult:
        """Save one answer and return the refreshed summary."""
        analysis = store.get_analysis(self._session, analysis_id)
        response, _ = self._save(analysis_id, user_id, payload)
        summary = store.refresh_summary(self._session, analysis)

        self.log_info(
            "Response saved",
            analysis_id=analysis_id,
            question_id=payload.question_id,
            response_type=payload.response_type,
            quality=response.quality_score,
        )
        return RespondResult(
            response=store.response_out(response),
            summary=store.summary_stats(summary),
            next_steps=NextSteps(
                remaining_questions=summary.total_questions - summary.answered_questions,
                ready_for_consolidation=summary.completion_percentage >= CONSOLIDATION_READY_PERCENT,
            ),
        )

    def respond_batch(self, analysis_id: str, user_id: str, request: BatchRespondRequest) -> BatchRespondResult:
        """Save many answers; invalid ones are reported without aborting the batch."""
        analysis = store.get_analysis(self._session, analysis_id)

        stats = BatchStatistics()
        errors: list[dict[str, str]] = []
        confidences: list[float] = []
        for payload in request.responses:
            # _save validates fully before writing, so a rejected answer leaves no partial state
            try:
                _, priority_updated = self._save(analysis_id, user_id, payload)
            except RFPWorkflowError as e:
                stats.failed += 1
                errors.append({"question_id": payload.question_id, "error": e.message, "code": e.code})
                continue

            stats.saved += 1
            stats.priority_updates += int(priority_updated)
            confidences.append(payload.confidence_level)
            if payload.confidence_level < FOLLOWUP_CONFIDENCE:
                stats.followup_required += 1

        stats.average_confidence = round(sum(confidences) / len(confidences), 4) if confidences else 0.0
        summary = store.refresh_summary(self._session, analysis)

        triggered = False
        if (
            request.auto_consolidate
            and self._consolidate is not None
            and summary.completion_percentage >= CONSOLIDATION_READY_PERCENT
        ):
            try:
                self._consolidate(analysis_id, user_id)
                triggered = True
            except RFPWorkflowError as e:
                self.log_warning("Automatic consolidation skipped", analysis_id=analysis_id, error=e.message)

        self.log_info(
            "Batch responses saved",
            analysis_id=analysis_id,
            saved=stats.saved,
            failed=stats.failed,
            consolidation_triggered=triggered,
        )
        return BatchRespondResult(
            statistics=stats,
            errors=errors,
            summary=store.summary_stats(summary),
            consolidation_triggered=triggered,
        )
