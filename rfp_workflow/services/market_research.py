"""LLM market research over an analysis and its answers, plus persona questions."""

import json
from typing import Any

from sqlalchemy.orm import Session

from rfp_workflow.db.base import new_id, utcnow
from rfp_workflow.db.tables import MarketResearch
from rfp_workflow.errors import AIProviderError, NotFoundError, RFPWorkflowError, ValidationFailedError
from rfp_workflow.llm.output_parser import extract_json
from rfp_workflow.llm.prompts import PromptTemplates
from rfp_workflow.models.analysis import RFPAnalysisResult
from rfp_workflow.models.market_research import MarketResearchOut, MarketResearchRequest, PersonaQuestion
from rfp_workflow.models.questions import QuestionType
from rfp_workflow.providers import ModelRegistry, ProviderFactory
from rfp_workflow.questions import store
from rfp_workflow.questions.ai import summarize_analysis
from rfp_workflow.services.usage import UsageLimiter
from rfp_workflow.utils.logging import LoggerMixin


RESEARCH_SECTIONS = (
    "market_overview",
    "target_market",
    "competitive_landscape",
    "market_trends",
    "opportunities_threats",
    "recommendations",
    "next_steps",
)

MARKET_RESEARCH_TEMPERATURE = 0.3
MAX_SEGMENT_QUESTIONS = 3


def _research_out(row: MarketResearch) -> MarketResearchOut:
    return MarketResearchOut(
        id=row.id,
        project_id=row.project_id,
        rfp_analysis_id=row.rfp_analysis_id,
        status=row.status,
        research_data=row.research_data or {},
        error_message=row.error_message,
        created_at=row.created_at,
        completed_at=row.completed_at,
    )


class MarketResearchService(LoggerMixin):
    """Runs and stores LLM market research for a project."""

    def __init__(self, session: Session, limiter: UsageLimiter | None = None):
        self._session = session
        self._limiter = limiter or UsageLimiter(session)

    def analyze(self, request: MarketResearchRequest, user_id: str) -> MarketResearchOut:
        """Run market research for an analysis and its question responses.

        The record is committed with status ``error`` before a failure is re-raised.

        Raises:
            ValidationFailedError: A required input is missing.
            NotFoundError: Unknown analysis.
            AIProviderError: The LLM call or its parsing failed.
        """
        if not request.project_id or not request.rfp_analysis_id or not request.question_responses:
            raise ValidationFailedError(
                "project_id, rfp_analysis_id and question_responses are required",
                code="MISSING_REQUIRED_FIELDS",
            )

        analysis = store.get_analysis(self._session, request.rfp_analysis_id)
        self._limiter.enforce(user_id)

        record = MarketResearch(
            id=new_id(),
            project_id=request.project_id,
            rfp_analysis_id=analysis.id,
            created_by=user_id,
            status="processing",
        )
        self._session.add(record)
        self._session.flush()

        model = ModelRegistry(self._session).resolve(request.selected_model_id)
        try:
            provider = ProviderFactory.create_for_model(model)
            turns = PromptTemplates.render(
                "market_research",
                analysis_summary=summarize_analysis(RFPAnalysisResult.model_validate(analysis.analysis or {})),
                responses=json.dumps(request.question_responses, ensure_ascii=False, indent=2),
            )
            response = provider.send_messages(turns, temperature=MARKET_RESEARCH_TEMPERATURE)
            data = extract_json(response.content)
        except (RFPWorkflowError, ValueError) as e:
            message = e.message if isinstance(e, RFPWorkflowError) else str(e)
            self.log_error("Market research failed", research_id=record.id, error=message)
            record.status = "error"
            record.error_message = message
            self._limiter.increment_usage(
                user_id, "market_research", "/market-research/analyze", success=False, model=model.model_id
            )
            self._session.commit()
            if isinstance(e, RFPWorkflowError):
                raise
            raise AIProviderError(f"Market research response could not be parsed: {message}") from e

        record.research_data = {
            **{section: data.get(section, {}) for section in RESEARCH_SECTIONS},
            "question_responses": request.question_responses,
            "model_used": response.model,
        }
        record.status = "completed"
        record.completed_at = utcnow()
        self._limiter.increment_usage(
            user_id,
            "market_research",
            "/market-research/analyze",
            tokens_used=response.usage.total_tokens,
            model=model.model_id,
        )
        self._session.flush()

        self.log_info("Market research completed", research_id=record.id, model=response.model)
        return _research_out(record)

    def get(self, research_id: str) -> MarketResearchOut:
        row = self._session.get(MarketResearch, research_id)
        if row is None:
            raise NotFoundError(f"Market research {research_id} not found", code="MARKET_RESEARCH_NOT_FOUND")
        return _research_out(row)

    def persona_questions(self, research_id: str) -> list[PersonaQuestion]:
        """Persona questions for a completed research record."""
        research = self.get(research_id)
        if research.status != "completed":
            raise ValidationFailedError(
                "Market research has not completed", code="RESEARCH_NOT_COMPLETED", status=research.status
            )
        return PersonaQuestionGenerator().generate(research.research_data)


class PersonaQuestionGenerator(LoggerMixin):
    """Derives persona research questions from completed market research."""

    @staticmethod
    def _segments(target_market: dict[str, Any]) -> list[str]:
        segments: list[str] = []
        primary = target_market.get("primary_segment")
        if isinstance(primary, str) and primary:
            segments.append(primary)
        for key in ("secondary_segments", "primary_segments"):
            segments.extend(s for s in target_market.get(key) or [] if isinstance(s, str) and s)
        return list(dict.fromkeys(segments))

    def generate(self, research: dict[str, Any]) -> list[PersonaQuestion]:
        """Build persona questions conditioned on what the research found."""
        target_market = research.get("target_market") or {}
        landscape = research.get("competitive_landscape") or {}
        trends = research.get("market_trends") or {}
        overview = research.get("market_overview") or {}

        drafts: list[tuple[str, QuestionType, str, list[str]]] = []

        for segment in self._segments(target_market)[:MAX_SEGMENT_QUESTIONS]:
            drafts.append((
                f"What does a typical working day look like for users in the '{segment}' segment?",
                QuestionType.TEXT_LONG,
                "demographics",
                [],
            ))

        competitors = landscape.get("direct_competitors") or landscape.get("competitors") or []
        if competitors:
            names = [c.get("name") for c in competitors if isinstance(c, dict) and c.get("name")]
            drafts.append((
                "Which of these competing products do your target users already use?",
                QuestionType.MULTIPLE_CHOICE,
                "decision_making",
                names[:6] + ["None of these"],
            ))

        tech_trends = [t for t in trends.get("technology_trends") or [] if isinstance(t, str)]
        if tech_trends:
            drafts.append((
                "Which of these technologies are your target users comfortable with?",
                QuestionType.CHECKLIST,
                "technology_usage",
                tech_trends[:6],
            ))

        if overview.get("market_size"):
            drafts.append((
                f"Given a market of {overview['market_size']}, which user group should the first persona represent?",
                QuestionType.TEXT_SHORT,
                "demographics",
                [],
            ))

        drafts.append((
            "What are the primary goals users want to achieve with this service?",
            QuestionType.TEXT_LONG,
            "goals_motivations",
            [],
        ))
        drafts.append((
            "What are the biggest pain points users face with their current solution?",
            QuestionType.TEXT_LONG,
            "pain_points_challenges",
            [],
        ))

        questions = [
            PersonaQuestion(
                id=f"persona_{index}",
                question_text=text,
                question_type=question_type.value,
                category=category,
                options=options,
                order_index=index,
            )
            for index, (text, question_type, category, options) in enumerate(drafts, start=1)
        ]
        self.log_info("Persona questions generated", count=len(questions))
        return questions
