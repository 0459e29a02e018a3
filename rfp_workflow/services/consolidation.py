"""Synthesis of answered questions into consolidated insights and readiness flags."""

import json
from dataclasses import dataclass
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from rfp_workflow.db.base import utcnow
from rfp_workflow.db.tables import AnalysisQuestion as QuestionRow
from rfp_workflow.db.tables import AnalysisSummary, QuestionUserResponse
from rfp_workflow.errors import AIProviderError, ValidationFailedError
from rfp_workflow.llm.output_parser import extract_json, normalize_confidence
from rfp_workflow.llm.prompts import PromptTemplates
from rfp_workflow.models.analysis import AnalysisDepth, RFPAnalysisResult
from rfp_workflow.models.questions import (
    DEFAULT_QUESTION_CATEGORIES,
    ConsolidateRequest,
    ConsolidateResponse,
    ReadinessScores,
)
from rfp_workflow.providers import ProviderFactory
from rfp_workflow.questions import store
from rfp_workflow.questions.ai import summarize_analysis
from rfp_workflow.services.usage import UsageLimiter
from rfp_workflow.utils.logging import LoggerMixin


MINIMUM_ANSWERS = {
    AnalysisDepth.BASIC: 3,
    AnalysisDepth.DETAILED: 5,
    AnalysisDepth.COMPREHENSIVE: 7,
}

EXPECTED_ANSWERS = {
    AnalysisDepth.BASIC: 5,
    AnalysisDepth.DETAILED: 8,
    AnalysisDepth.COMPREHENSIVE: 12,
}

DEFAULT_CONFIDENCE = 0.7
FALLBACK_CONFIDENCE = 0.5


@dataclass
class AnsweredQuestion:
    category: str
    question_text: str
    answer: str
    confidence_level: float
    response_type: str


def evaluate_readiness(
    answered: list[AnsweredQuestion], insights: dict[str, Any], depth: AnalysisDepth | str
) -> ReadinessScores:
    """Judge whether the answers support the next workflow phases."""
    depth = AnalysisDepth(depth)
    count = len(answered)
    completion_rate = count / EXPECTED_ANSWERS[depth]

    answered_categories = {a.category for a in answered}
    category_completeness = (
        sum(1 for c in DEFAULT_QUESTION_CATEGORIES if c in answered_categories) / len(DEFAULT_QUESTION_CATEGORIES)
    )

    if count:
        avg_confidence = sum(a.confidence_level or DEFAULT_CONFIDENCE for a in answered) / count
        user_input_rate = sum(1 for a in answered if a.response_type == "user_input") / count
    else:
        avg_confidence = DEFAULT_CONFIDENCE
        user_input_rate = 0.0

    insight_quality = normalize_confidence(insights.get("confidence_score"), default=DEFAULT_CONFIDENCE)
    base = completion_rate >= 0.6 and category_completeness >= 0.5 and avg_confidence >= 0.6

    return ReadinessScores(
        market_research_readiness=base and "market_context" in answered_categories and insight_quality > 0.6,
        persona_analysis_readiness=base and "target_audience" in answered_categories and avg_confidence > 0.65,
        proposal_writing_readiness=(
            completion_rate >= 0.7 and category_completeness >= 0.75 and insight_quality > 0.7
        ),
        quality_scores={
            "completion_rate": round(completion_rate, 4),
            "category_completeness": round(category_completeness, 4),
            "average_confidence": round(avg_confidence, 4),
            "user_input_rate": round(user_input_rate, 4),
            "insight_quality": round(insight_quality, 4),
        },
    )


def analysis_completeness(insights: dict[str, Any]) -> float:
    """Weighted share of insight sections that are present."""
    weights = [
        (bool(insights.get("executive_summary")), 0.1),
        (bool(insights.get("key_insights")), 0.1),
        (bool(insights.get("market_context")), 0.1),
        (bool(insights.get("technical_requirements")), 0.1),
        (bool(insights.get("business_implications")), 0.15),
        (bool(insights.get("recommended_approach")), 0.15),
        (bool((insights.get("next_steps") or {}).get("immediate_actions")), 0.15),
        (bool(insights.get("gap_analysis")), 0.1),
        (bool(insights.get("success_metrics")), 0.05),
    ]
    return round(min(1.0, sum(weight for present, weight in weights if present)), 4)


def fallback_insights(analysis: RFPAnalysisResult, answered: list[AnsweredQuestion]) -> dict[str, Any]:
    """Deterministic insights used when the LLM is unavailable."""
    title = analysis.project_overview.title or "the project"
    categories = list(dict.fromkeys(a.category for a in answered))
    return {
        "executive_summary": (
            f"Baseline analysis of {title} built from {len(answered)} answered questions. "
            f"Areas covered: {', '.join(categories)}."
        ),
        "confidence_score": FALLBACK_CONFIDENCE,
        "analysis_quality": "basic",
        "key_insights": [
            {
                "category": category,
                "insight": f"Baseline insight from the answers collected for {category}",
                "impact": "medium",
                "evidence": "User answers",
                "priority_score": 0.6,
                "actionable_steps": ["Run a more detailed analysis"],
            }
            for category in categories
        ],
        "market_context": {
            "target_audience": "Further user research needed",
            "market_opportunity": "Market opportunity still to be assessed",
            "competitive_landscape": "Competitive landscape still to be analysed",
        },
        "technical_requirements": {
            "core_technologies": ["Detailed technical requirements analysis needed"],
            "integration_needs": ["Integration requirements to be defined"],
        },
        "business_implications": {
            "success_factors": ["Success factors need detailed analysis"],
            "risk_factors": ["Risk factors need assessment"],
        },
        "gap_analysis": {
            "missing_information": ["Additional detailed questions needed"],
            "additional_questions_needed": [
                "Detailed user requirements",
                "Technical constraints",
                "Business goals",
            ],
        },
        "next_steps": {
            "immediate_actions": [
                {
                    "action": "Collect additional answers and data",
                    "priority": "high",
                    "timeline": "1-2 weeks",
                }
            ],
        },
        "success_metrics": {
            "key_performance_indicators": [
                {"metric": "Data coverage", "target_value": "80% or more", "measurement_method": "Answer rate"}
            ]
        },
        "generation_metadata": {"model_used": "fallback", "questions_analyzed": len(answered)},
    }


class ConsolidationService(LoggerMixin):
    """Builds and caches the consolidated view of an analysis."""

    def __init__(self, session: Session, limiter: UsageLimiter | None = None):
        self._session = session
        self._limiter = limiter or UsageLimiter(session)

    def _answered_questions(self, analysis_id: str) -> list[AnsweredQuestion]:
        rows = self._session.execute(
            select(QuestionRow, QuestionUserResponse)
            .join(QuestionUserResponse, QuestionUserResponse.question_id == QuestionRow.id)
            .where(QuestionRow.rfp_analysis_id == analysis_id)
            .order_by(QuestionRow.order_index, QuestionUserResponse.updated_at.desc())
        ).all()

        answered: dict[str, AnsweredQuestion] = {}
        for question, response in rows:
            # Latest answer per question wins
            if question.id in answered or not response.final_answer:
                continue
            answered[question.id] = AnsweredQuestion(
                category=question.category,
                question_text=question.question_text,
                answer=response.final_answer,
                confidence_level=response.confidence_level,
                response_type=response.response_type,
            )
        return list(answered.values())

    def consolidate(self, analysis_id: str, user_id: str, request: ConsolidateRequest) -> ConsolidateResponse:
        """Consolidate the answers of an analysis.

        Raises:
            NotFoundError: Unknown analysis.
            ValidationFailedError: No answers, or fewer than the depth requires.
            QuotaExceededError: The caller is over their daily quota.
        """
        analysis = store.get_analysis(self._session, analysis_id)
        summary = self._session.scalar(
            select(AnalysisSummary).where(AnalysisSummary.rfp_analysis_id == analysis_id)
        )

        if (
            summary is not None
            and summary.consolidated_insights
            and summary.summary_generated_at
            and not request.force_regenerate
        ):
            self.log_info("Returning cached consolidation", analysis_id=analysis_id)
            insights = summary.consolidated_insights
            return ConsolidateResponse(
                summary=store.summary_stats(summary),
                consolidated_insights=insights,
                readiness=ReadinessScores(
                    market_research_readiness=summary.market_research_readiness,
                    persona_analysis_readiness=summary.persona_analysis_readiness,
                    proposal_writing_readiness=summary.proposal_writing_readiness,
                    quality_scores=insights.get("quality_scores", {}),
                ),
                analysis_completeness=analysis_completeness(insights),
                was_cached=True,
            )

        answered = self._answered_questions(analysis_id)
        if not answered:
            raise ValidationFailedError(
                "No answered questions found. Answer some questions first.", code="NO_ANSWERS_FOUND"
            )

        depth = AnalysisDepth(request.analysis_depth)
        required = MINIMUM_ANSWERS[depth]
        if len(answered) < required:
            raise ValidationFailedError(
                f"A {depth.value} consolidation needs at least {required} answers",
                code="INSUFFICIENT_ANSWERS",
                current_answers=len(answered),
                required_answers=required,
            )

        self._limiter.enforce(user_id)
        result = RFPAnalysisResult.model_validate(analysis.analysis or {})

        try:
            insights, tokens = self._generate_insights(result, answered, request)
            self._limiter.increment_usage(
                user_id, "consolidation", "/consolidate", tokens_used=tokens, model=request.selected_model_id
            )
        except (AIProviderError, ValueError) as e:
            self.log_warning("LLM consolidation failed, using fallback insights", error=str(e))
            self._limiter.increment_usage(
                user_id, "consolidation", "/consolidate", success=False, model=request.selected_model_id
            )
            insights = fallback_insights(result, answered)

        readiness = evaluate_readiness(answered, insights, depth)
        insights["quality_scores"] = readiness.quality_scores

        summary = store.refresh_summary(self._session, analysis)
        summary.consolidated_insights = insights
        summary.market_research_readiness = readiness.market_research_readiness
        summary.persona_analysis_readiness = readiness.persona_analysis_readiness
        summary.proposal_writing_readiness = readiness.proposal_writing_readiness
        summary.summary_generated_at = utcnow()
        self._session.flush()

        completeness = analysis_completeness(insights)
        self.log_info(
            "Consolidation complete",
            analysis_id=analysis_id,
            answers=len(answered),
            depth=depth.value,
            completeness=completeness,
        )
        return ConsolidateResponse(
            summary=store.summary_stats(summary),
            consolidated_insights=insights,
            readiness=readiness,
            analysis_completeness=completeness,
            was_cached=False,
        )

    def _generate_insights(
        self, analysis: RFPAnalysisResult, answered: list[AnsweredQuestion], request: ConsolidateRequest
    ) -> tuple[dict[str, Any], int]:
        provider = ProviderFactory.create(request.provider, default_model=request.selected_model_id)
        answers = [
            {
                "category": a.category,
                "question": a.question_text,
                "answer": a.answer,
                "confidence": a.confidence_level,
                "source": a.response_type,
            }
            for a in answered
        ]
        turns = PromptTemplates.render(
            "consolidation",
            depth=AnalysisDepth(request.analysis_depth).value,
            focus_areas=f"Focus areas: {', '.join(request.focus_areas)}" if request.focus_areas else "",
            analysis_summary=summarize_analysis(analysis),
            answers=json.dumps(answers, ensure_ascii=False, indent=2),
        )
        response = provider.send_messages(turns, temperature=request.temperature)
        insights = extract_json(response.content)
        if not request.include_recommendations:
            insights.pop("recommended_approach", None)
        insights["generation_metadata"] = {
            "model_used": response.model,
            "provider_used": provider.name,
            "analysis_depth": AnalysisDepth(request.analysis_depth).value,
            "focus_areas": request.focus_areas,
            "temperature": request.temperature,
            "questions_analyzed": len(answered),
        }
        return insights, response.usage.total_tokens
