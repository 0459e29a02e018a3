"""LLM-generated analysis questions with template fallback."""

import json
import math
from datetime import datetime
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from rfp_workflow.db.base import new_id, utcnow
from rfp_workflow.db.tables import AnalysisQuestion as QuestionRow
from rfp_workflow.errors import AIProviderError, ConflictError, ValidationFailedError
from rfp_workflow.llm.output_parser import extract_json, normalize_confidence
from rfp_workflow.llm.prompts import PromptTemplates
from rfp_workflow.models.ai import AIUsage
from rfp_workflow.models.analysis import RFPAnalysisResult
from rfp_workflow.models.questions import (
    AnalysisQuestion,
    GenerateQuestionsRequest,
    GenerateQuestionsResponse,
    QuestionCategory,
    QuestionOut,
    QuestionResponse,
    QuestionType,
    RuleBasedQuestionsResponse,
)
from rfp_workflow.providers import ProviderFactory
from rfp_workflow.questions import store
from rfp_workflow.questions.generator import RFPQuestionGenerator
from rfp_workflow.services.usage import UsageLimiter
from rfp_workflow.utils.logging import LoggerMixin


MAX_FALLBACK_QUESTIONS = 5
AI_ANSWER_CONFIDENCE = 0.7
FALLBACK_ANSWER_CONFIDENCE = 0.5

# (question, type, options, suggested answer); {title} is the project title
FALLBACK_TEMPLATES: dict[str, list[tuple[str, QuestionType, list[str], str]]] = {
    "market_context": [
        (
            "What market conditions make {title} necessary right now?",
            QuestionType.TEXT_LONG,
            [],
            "Review the RFP background section and recent industry reports for the driving need.",
        ),
        (
            "How mature is the market that {title} will enter?",
            QuestionType.SINGLE_CHOICE,
            ["Emerging", "Growing", "Mature", "Declining"],
            "Growing",
        ),
    ],
    "technical_requirements": [
        (
            "Which existing systems must {title} integrate with?",
            QuestionType.TEXT_LONG,
            [],
            "List the systems named in the RFP and confirm any unstated integrations with the client.",
        ),
        (
            "Are there mandated technologies or hosting constraints for {title}?",
            QuestionType.YES_NO,
            [],
            "Check the technical specification section for mandated platforms.",
        ),
    ],
    "business_goals": [
        (
            "What is the single most important business outcome for {title}?",
            QuestionType.TEXT_SHORT,
            [],
            "Align on one measurable outcome stated in the RFP objectives.",
        ),
        (
            "How will the client measure the success of {title}?",
            QuestionType.TEXT_LONG,
            [],
            "Use the success metrics in the RFP and propose baseline values.",
        ),
    ],
    "target_audience": [
        (
            "Who are the primary users of {title}?",
            QuestionType.TEXT_LONG,
            [],
            "Start from the target users listed in the RFP and split them into segments.",
        ),
        (
            "How digitally experienced are the target users of {title}?",
            QuestionType.RATING,
            [],
            "3",
        ),
    ],
}


def _category(value: Any) -> QuestionCategory:
    try:
        return QuestionCategory(value)
    except ValueError:
        return QuestionCategory.BUSINESS_GOALS


def _question_type(value: Any) -> QuestionType:
    try:
        return QuestionType(value)
    except ValueError:
        return QuestionType.TEXT_LONG


def _priority(value: Any) -> str:
    return value if value in ("low", "medium", "high") else "medium"


def build_fallback_questions(
    project_title: str, categories: list[str], max_questions: int, created_at: datetime
) -> tuple[list[AnalysisQuestion], dict[str, tuple[str, float, str | None]]]:
    """Build template questions spread evenly across ``categories``."""
    per_category = math.ceil(max_questions / max(len(categories), 1))
    title = project_title or "this project"

    questions: list[AnalysisQuestion] = []
    answers: dict[str, tuple[str, float, str | None]] = {}
    for category in categories:
        templates = FALLBACK_TEMPLATES.get(category, FALLBACK_TEMPLATES["business_goals"])
        for index in range(per_category):
            text, question_type, options, answer = templates[index % len(templates)]
            question = AnalysisQuestion(
                id=new_id(),
                question_text=text.format(title=title),
                question_type=question_type,
                category=_category(category),
                priority="medium",
                options=options,
                order_index=len(questions) + 1,
                created_at=created_at,
            )
            questions.append(question)
            answers[question.id] = (answer, FALLBACK_ANSWER_CONFIDENCE, "template")

    questions = questions[:max_questions]
    kept = {q.id for q in questions}
    return questions, {qid: a for qid, a in answers.items() if qid in kept}


class QuestionService(LoggerMixin):
    """Generates and lists the questions attached to an analysis."""

    def __init__(self, session: Session, limiter: UsageLimiter | None = None):
        self._session = session
        self._limiter = limiter or UsageLimiter(session)

    def generate(
        self, analysis_id: str, user_id: str, request: GenerateQuestionsRequest
    ) -> GenerateQuestionsResponse:
        """Generate questions for an analysis with the chosen model.

        Raises:
            NotFoundError: Unknown analysis.
            ValidationFailedError: The analysis is not attached to a project.
            ConflictError: Questions exist and ``force_regenerate`` is off.
            QuotaExceededError: The caller is over their daily quota.
            AIProviderError: The LLM failed and no fallback applies.
        """
        analysis = store.get_analysis(self._session, analysis_id)
        if not analysis.project_id:
            raise ValidationFailedError(
                "Analysis must belong to a project before generating questions",
                code="PROJECT_ID_REQUIRED",
            )

        existing = self._session.scalar(
            select(func.count(QuestionRow.id)).where(QuestionRow.rfp_analysis_id == analysis_id)
        )
        if existing and not request.force_regenerate:
            raise ConflictError(
                "Questions already exist for this analysis",
                code="QUESTIONS_ALREADY_EXIST",
                existing_count=existing,
            )

        self._limiter.enforce(user_id)

        categories = request.categories or ["business_goals"]
        result = RFPAnalysisResult.model_validate(analysis.analysis or {})
        project_title = result.project_overview.title
        created_at = utcnow()
        used_fallback = False
        usage = AIUsage()

        try:
            questions, answers, usage = self._generate_with_llm(result, categories, request, created_at)
        except (AIProviderError, ValueError) as e:
            self._limiter.increment_usage(
                user_id, "question_generation", "/questions/generate", success=False, model=request.selected_model_id
            )
            if request.max_questions > MAX_FALLBACK_QUESTIONS:
                if isinstance(e, AIProviderError):
                    raise
                raise AIProviderError(f"Question generation failed: {e}") from e
            self.log_warning("LLM question generation failed, using templates", error=str(e))
            questions, answers = build_fallback_questions(
                project_title, categories, request.max_questions, created_at
            )
            used_fallback = True
        else:
            self._limiter.increment_usage(
                user_id,
                "question_generation",
                "/questions/generate",
                tokens_used=usage.total_tokens,
                model=request.selected_model_id,
            )

        if existing:
            store.delete_questions(self._session, analysis_id)
        if not request.generate_ai_answers:
            answers = {}
        rows = store.save_questions(
            self._session, analysis_id, questions, source="template" if used_fallback else "ai", ai_answers=answers
        )
        store.refresh_summary(self._session, analysis)

        self.log_info(
            "Questions generated",
            analysis_id=analysis_id,
            count=len(rows),
            used_fallback=used_fallback,
            tokens=usage.total_tokens,
        )
        return GenerateQuestionsResponse(
            questions=[store.question_out(row, user_id) for row in rows],
            used_fallback=used_fallback,
            message=(
                f"Generated {len(rows)} template questions (AI generation unavailable)"
                if used_fallback
                else f"Generated {len(rows)} questions"
            ),
        )

    def _generate_with_llm(
        self,
        analysis: RFPAnalysisResult,
        categories: list[str],
        request: GenerateQuestionsRequest,
        created_at: datetime,
    ) -> tuple[list[AnalysisQuestion], dict[str, tuple[str, float, str | None]], AIUsage]:
        provider = ProviderFactory.create(request.provider, default_model=request.selected_model_id)
        turns = PromptTemplates.render(
            "question_generation",
            max_questions=request.max_questions,
            project_title=analysis.project_overview.title or "Untitled project",
            analysis_summary=summarize_analysis(analysis),
            categories=", ".join(categories),
            answers_instruction=(
                "For each question include an ai_answer with a suggested answer and your confidence (0-1)."
                if request.generate_ai_answers
                else "Do not include ai_answer fields."
            ),
        )
        response = provider.send_messages(turns, temperature=request.temperature)
        data = extract_json(response.content)

        questions: list[AnalysisQuestion] = []
        answers: dict[str, tuple[str, float, str | None]] = {}
        for item in data.get("questions") or []:
            if not isinstance(item, dict) or not item.get("question_text"):
                continue
            question = AnalysisQuestion(
                id=new_id(),
                question_text=str(item["question_text"]),
                question_type=_question_type(item.get("question_type")),
                category=_category(item.get("category")),
                priority=_priority(item.get("priority")),
                context=item.get("context"),
                options=[str(o) for o in item.get("options") or []],
                next_step_impact=item.get("next_step_impact"),
                order_index=len(questions) + 1,
                created_at=created_at,
            )
            questions.append(question)

            ai_answer = item.get("ai_answer")
            if isinstance(ai_answer, dict) and ai_answer.get("answer_text"):
                answers[question.id] = (
                    str(ai_answer["answer_text"]),
                    normalize_confidence(ai_answer.get("confidence"), default=AI_ANSWER_CONFIDENCE),
                    response.model,
                )
            if len(questions) >= request.max_questions:
                break

        if not questions:
            raise ValueError("AI response contained no questions")
        return questions, answers, response.usage

    def generate_rule_based(self, analysis_id: str, user_id: str) -> RuleBasedQuestionsResponse:
        """Create the fixed-slot market research questions once and preview guidance from their answers."""
        analysis = store.get_analysis(self._session, analysis_id)
        rows = self._session.scalars(
            select(QuestionRow)
            .where(QuestionRow.rfp_analysis_id == analysis_id, QuestionRow.source == "rule")
            .order_by(QuestionRow.order_index)
        ).all()

        generator = RFPQuestionGenerator()
        if not rows:
            questions = generator.generate_market_research_questions(
                RFPAnalysisResult.model_validate(analysis.analysis or {}), analysis_id
            )
            rows = store.save_questions(self._session, analysis_id, questions, source="rule")
            store.refresh_summary(self._session, analysis)
            self.log_info("Rule-based questions saved", analysis_id=analysis_id, count=len(rows))

        answers = [
            QuestionResponse(
                analysis_question_id=row.id,
                response_value=(
                    response.response_value if response.response_value is not None else response.final_answer
                ),
                response_text=response.final_answer,
            )
            for row in rows
            for response in row.responses
            if response.user_id == user_id
        ]
        return RuleBasedQuestionsResponse(
            questions=[store.question_out(row, user_id) for row in rows],
            guidance_preview=generator.analyze_question_responses(answers) if answers else None,
        )

    def list_questions(self, analysis_id: str, user_id: str | None = None) -> list[QuestionOut]:
        store.get_analysis(self._session, analysis_id)
        rows = self._session.scalars(
            select(QuestionRow)
            .where(QuestionRow.rfp_analysis_id == analysis_id)
            .order_by(QuestionRow.order_index)
        )
        return [store.question_out(row, user_id) for row in rows]


def summarize_analysis(analysis: RFPAnalysisResult, max_chars: int = 6000) -> str:
    """Compact JSON view of an analysis for follow-up prompts."""
    payload = {
        "project_overview": analysis.project_overview.model_dump(),
        "functional_requirements": [r.title for r in analysis.functional_requirements[:20]],
        "non_functional_requirements": [r.title for r in analysis.non_functional_requirements[:10]],
        "technical_specifications": analysis.technical_specifications.model_dump(),
        "business_requirements": analysis.business_requirements.model_dump(),
        "keywords": [k.term for k in analysis.keywords[:20]],
        "risk_factors": [r.factor for r in analysis.risk_factors[:10]],
    }
    return json.dumps(payload, ensure_ascii=False, indent=2)[:max_chars]
