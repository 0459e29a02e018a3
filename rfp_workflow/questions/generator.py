"""Rule-based market research questions derived from an RFP analysis."""

from datetime import datetime, timezone
from typing import Any

from rfp_workflow.models.analysis import RFPAnalysisResult
from rfp_workflow.models.questions import (
    AnalysisQuestion,
    MarketResearchGuidance,
    QuestionCategory,
    QuestionResponse,
    QuestionType,
)
from rfp_workflow.utils.logging import LoggerMixin


MARKET_SIZE_SLOT = 1
COMPETITOR_SLOT = 2
GEOGRAPHY_SLOT = 3
TECH_STACK_SLOT = 4
DIFFERENTIATION_SLOT = 5

MARKET_SIZE_LARGE = "Large (over 1M users)"
MARKET_SIZE_MID = "Mid-size (100k-1M users)"
MARKET_SIZE_OPTIONS = [
    "Small (under 10k users)",
    "Small-to-mid (10k-100k users)",
    MARKET_SIZE_MID,
    MARKET_SIZE_LARGE,
    "Not sure",
]

COMPETITOR_OPTIONS = [
    "Basic landscape overview only",
    "Detailed analysis of 3-5 key competitors",
    "Comprehensive analysis including industry trends",
    "No competitor analysis needed",
]

GEOGRAPHY_OPTIONS = [
    "Nationwide",
    "Capital region",
    "Specific metropolitan area",
    "Asia-Pacific",
    "North America",
    "Europe",
    "Global",
]

GEOGRAPHIC_MARKERS = ("domestic", "overseas", "global", "international", "국내", "해외", "글로벌")

RECOMMENDED_TOOLS = [
    "Google Trends analysis",
    "Statista market data",
    "SimilarWeb competitor traffic analysis",
    "Social media trend analysis",
    "Surveys (SurveyMonkey)",
    "Interviews (users and domain experts)",
]

PERSONA_PREPARATION = (
    "Once market research is complete, develop personas for each target user segment. "
    "Group the main users into 3-5 segments based on the findings and define each "
    "group's characteristics and needs."
)


def mentions_geography(target_users: list[str]) -> bool:
    return any(marker in user.lower() for user in target_users for marker in GEOGRAPHIC_MARKERS)


class RFPQuestionGenerator(LoggerMixin):
    """Generates up to five fixed-slot questions and turns answers into guidance."""

    def generate_market_research_questions(
        self, analysis: RFPAnalysisResult, rfp_analysis_id: str | None = None
    ) -> list[AnalysisQuestion]:
        """Build market research questions from an analysis.

        Question IDs are ``mq_{epoch_ms}_{slot}`` where the slot identifies
        the question kind regardless of which questions were emitted.
        """
        now = datetime.now(timezone.utc)
        epoch_ms = int(now.timestamp() * 1000)
        created_at = now.replace(tzinfo=None)
        business = analysis.business_requirements
        technologies = analysis.technical_specifications.technologies

        candidates: list[tuple[int, dict[str, Any]]] = []

        if business.target_users:
            candidates.append((MARKET_SIZE_SLOT, {
                "question_text": "How large a target market do you expect?",
                "question_type": QuestionType.SINGLE_CHOICE,
                "category": QuestionCategory.MARKET_CONTEXT,
                "priority": "high",
                "context": "Sizes the market from the target users named in the RFP",
                "options": MARKET_SIZE_OPTIONS,
                "next_step_impact": "Determines the scope and depth of market research",
            }))

        candidates.append((COMPETITOR_SLOT, {
            "question_text": "How deep should the competitor analysis go?",
            "question_type": QuestionType.SINGLE_CHOICE,
            "category": QuestionCategory.COMPETITOR_FOCUS,
            "priority": "medium",
            "context": "Gauges how much competitor analysis matters for this project",
            "options": COMPETITOR_OPTIONS,
            "next_step_impact": "Sets the scope of competitor analysis in market research",
        }))

        if not mentions_geography(business.target_users):
            candidates.append((GEOGRAPHY_SLOT, {
                "question_text": "What is the geographic scope of the target market?",
                "question_type": QuestionType.MULTIPLE_CHOICE,
                "category": QuestionCategory.MARKET_CONTEXT,
                "priority": "high",
                "context": "The RFP does not state a region, so the research scope needs one",
                "options": GEOGRAPHY_OPTIONS,
                "next_step_impact": "Shapes regional market research and localisation strategy",
            }))

        if technologies:
            candidates.append((TECH_STACK_SLOT, {
                "question_text": "How important is user acceptance of the proposed technology stack?",
                "question_type": QuestionType.RATING,
                "category": QuestionCategory.TECHNOLOGY_PREFERENCE,
                "priority": "medium",
                "context": f"Evaluates how user-friendly the stack is: {', '.join(technologies[:5])}",
                "options": [],
                "next_step_impact": "Affects technology choices and user experience design",
            }))

        if business.budget_range:
            candidates.append((DIFFERENTIATION_SLOT, {
                "question_text": "Given the budget, what should set this product apart in the market?",
                "question_type": QuestionType.TEXT_LONG,
                "category": QuestionCategory.BUSINESS_MODEL,
                "priority": "high",
                "context": f"Differentiation strategy within the budget range ({business.budget_range})",
                "options": [],
                "next_step_impact": "Feeds persona development and product strategy",
            }))

        questions = [
            AnalysisQuestion(
                id=f"mq_{epoch_ms}_{slot}",
                rfp_analysis_id=rfp_analysis_id,
                order_index=order_index,
                created_at=created_at,
                **fields,
            )
            for order_index, (slot, fields) in enumerate(candidates, start=1)
        ]

        self.log_info(
            "Market research questions generated",
            count=len(questions),
            slots=[slot for slot, _ in candidates],
        )
        return questions

    @staticmethod
    def _find(
        responses: list[QuestionResponse], slot: int, value_type: type | None = None
    ) -> QuestionResponse | None:
        suffix = f"_{slot}"
        for response in responses:
            if value_type is not None and not isinstance(response.response_value, value_type):
                continue
            if response.analysis_question_id.endswith(suffix):
                return response
        return None

    def analyze_question_responses(self, responses: list[QuestionResponse]) -> MarketResearchGuidance:
        """Turn answers to the slot questions into market research guidance."""
        market_size = self._find(responses, MARKET_SIZE_SLOT)
        size_value = market_size.response_value if market_size else None

        if size_value == MARKET_SIZE_LARGE:
            scope = "Comprehensive market research (quantitative and qualitative)"
            duration = "3-4 weeks (in-depth research required)"
        elif size_value == MARKET_SIZE_MID:
            scope = "Focused market research (core areas)"
            duration = "2-3 weeks (standard research)"
        else:
            scope = "Basic market research (essentials)"
            duration = "1-2 weeks (basic research)"

        priority_areas = []
        competitor = self._find(responses, COMPETITOR_SLOT)
        competitor_value = competitor.response_value if competitor else None
        if isinstance(competitor_value, str):
            if "Comprehensive" in competitor_value:
                priority_areas += ["In-depth competitor analysis", "Industry trend research"]
            elif "Detailed" in competitor_value:
                priority_areas.append("Key competitor analysis")

        geography = self._find(responses, GEOGRAPHY_SLOT, value_type=list)
        if geography is not None:
            if len(geography.response_value) > 3:
                priority_areas.append("Multi-region market research")
            else:
                priority_areas.append("Region-specific research")

        return MarketResearchGuidance(
            research_scope=scope,
            priority_areas=priority_areas,
            recommended_tools=list(RECOMMENDED_TOOLS),
            estimated_duration=duration,
            next_phase_preparation=PERSONA_PREPARATION,
        )
