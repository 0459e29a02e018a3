"""Persistence helpers shared by the question services."""

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from rfp_workflow.db.base import utcnow
from rfp_workflow.db.tables import (
    AnalysisQuestion as QuestionRow,
    AnalysisSummary,
    QuestionAIAnswer,
    QuestionUserResponse,
    RFPAnalysis,
)
from rfp_workflow.errors import NotFoundError
from rfp_workflow.models.questions import (
    AIAnswerOut,
    AnalysisQuestion,
    QuestionOut,
    SummaryStats,
    UserResponseOut,
)


def get_analysis(session: Session, analysis_id: str) -> RFPAnalysis:
    analysis = session.get(RFPAnalysis, analysis_id)
    if analysis is None:
        raise NotFoundError(f"RFP analysis not found: {analysis_id}", code="ANALYSIS_NOT_FOUND")
    return analysis


def save_questions(
    session: Session,
    analysis_id: str,
    questions: list[AnalysisQuestion],
    source: str,
    ai_answers: dict[str, tuple[str, float, str | None]] | None = None,
) -> list[QuestionRow]:
    """Insert questions and optional AI answers keyed by question ID.

    Order indexes continue after the questions already saved for the analysis.
    """
    offset = session.scalar(
        select(func.coalesce(func.max(QuestionRow.order_index), 0)).where(QuestionRow.rfp_analysis_id == analysis_id)
    )
    rows = []
    for question in questions:
        row = QuestionRow(
            id=question.id,
            rfp_analysis_id=analysis_id,
            question_text=question.question_text,
            question_type=question.question_type.value,
            category=question.category.value,
            priority=question.priority,
            context=question.context,
            options=list(question.options),
            next_step_impact=question.next_step_impact,
            order_index=offset + question.order_index,
            source=source,
            created_at=question.created_at,
        )
        answer = (ai_answers or {}).get(question.id)
        if answer:
            text, confidence, model = answer
            row.ai_answers.append(QuestionAIAnswer(answer_text=text, confidence=confidence, model_used=model))
        session.add(row)
        rows.append(row)
    session.flush()
    return rows


def delete_questions(session: Session, analysis_id: str) -> None:
    for row in session.scalars(select(QuestionRow).where(QuestionRow.rfp_analysis_id == analysis_id)):
        session.delete(row)
    session.flush()


def refresh_summary(session: Session, analysis: RFPAnalysis) -> AnalysisSummary:
    """Recompute question and answer totals for an analysis."""
    question_ids = set(
        session.scalars(select(QuestionRow.id).where(QuestionRow.rfp_analysis_id == analysis.id))
    )
    responses = session.scalars(
        select(QuestionUserResponse).where(QuestionUserResponse.rfp_analysis_id == analysis.id)
    ).all()

    answered = {r.question_id for r in responses if r.question_id in question_ids and r.final_answer}
    total = len(question_ids)

    summary = session.scalar(select(AnalysisSummary).where(AnalysisSummary.rfp_analysis_id == analysis.id))
    if summary is None:
        summary = AnalysisSummary(rfp_analysis_id=analysis.id, project_id=analysis.project_id)
        session.add(summary)

    summary.total_questions = total
    summary.answered_questions = len(answered)
    summary.ai_answers_used = sum(1 for r in responses if r.response_type in ("ai_selected", "mixed"))
    summary.user_answers_used = sum(1 for r in responses if r.response_type in ("user_input", "mixed"))
    summary.completion_percentage = round(len(answered) / total * 100, 1) if total else 0.0
    summary.last_updated_at = utcnow()
    session.flush()
    return summary


def summary_stats(summary: AnalysisSummary | None) -> SummaryStats:
    if summary is None:
        return SummaryStats()
    return SummaryStats(
        total_questions=summary.total_questions,
        answered_questions=summary.answered_questions,
        ai_answers_used=summary.ai_answers_used,
        user_answers_used=summary.user_answers_used,
        completion_percentage=summary.completion_percentage,
    )


def response_out(response: QuestionUserResponse) -> UserResponseOut:
    return UserResponseOut(
        id=response.id,
        response_type=response.response_type,
        final_answer=response.final_answer,
        confidence_level=response.confidence_level,
        quality_score=response.quality_score,
        notes=response.notes,
    )


def question_out(row: QuestionRow, user_id: str | None = None) -> QuestionOut:
    user_response = next((r for r in row.responses if r.user_id == user_id), None) if user_id else None
    return QuestionOut(
        id=row.id,
        question_text=row.question_text,
        question_type=row.question_type,
        category=row.category,
        priority=row.priority,
        context=row.context,
        options=row.options or [],
        next_step_impact=row.next_step_impact,
        order_index=row.order_index,
        source=row.source,
        ai_answers=[
            AIAnswerOut(id=a.id, answer_text=a.answer_text, confidence=a.confidence, model_used=a.model_used)
            for a in row.ai_answers
        ],
        user_response=response_out(user_response) if user_response else None,
    )
