"""Next-step guidance for the market research phase."""

import math
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from rfp_workflow.db.tables import AnalysisQuestion as QuestionRow
from rfp_workflow.db.tables import MarketResearchGuidance as GuidanceRow
from rfp_workflow.db.tables import QuestionUserResponse
from rfp_workflow.errors import NotFoundError
from rfp_workflow.models.analysis import RFPAnalysisResult
from rfp_workflow.models.questions import (
    NextStepGuidance,
    NextStepGuidanceResponse,
    PriorityArea,
    RecommendedAction,
    RecommendedTool,
)
from rfp_workflow.questions import store
from rfp_workflow.utils.logging import LoggerMixin


RESEARCH_SCOPE = "Market research and competitor analysis to sharpen the proposal"
NEXT_PHASE_PREPARATION = "Use the market research findings to run persona analysis"
BASE_DURATION_DAYS = 14

PRIORITY_AREAS = [
    PriorityArea(
        area="Target market analysis",
        importance=0.9,
        rationale="The answers show gaps in market understanding, so market research comes first.",
    ),
    PriorityArea(
        area="Technical competitiveness analysis",
        importance=0.8,
        rationale="Technology preferences call for a differentiated technical strategy.",
    ),
    PriorityArea(
        area="Cost optimisation",
        importance=0.75,
        rationale="Budget constraints require a cost-efficient solution design.",
    ),
    PriorityArea(
        area="User experience design",
        importance=0.85,
        rationale="User proficiency makes intuitive UX a key success factor.",
    ),
]

RESEARCH_TOOLS = [
    RecommendedTool(
        tool="Market research platforms (Statista, IBISWorld)",
        purpose="Industry trends and market sizing",
        cost_estimate="USD 400-800 per month",
    ),
    RecommendedTool(
        tool="Competitor analysis tools (SimilarWeb, SEMrush)",
        purpose="Competitor traffic and marketing strategy",
        cost_estimate="USD 250-650 per month",
    ),
    RecommendedTool(
        tool="User research platforms (UserTesting, Maze)",
        purpose="Target user interviews and usability testing",
        cost_estimate="USD 1,500-4,000 per project",
    ),
    RecommendedTool(
        tool="Technology trend analysis (Gartner, Forrester)",
        purpose="Technology roadmap and future trends",
        cost_estimate="USD 8,000-25,000 per year",
    ),
]

BASE_INSIGHTS = {
    "key_assumptions": [
        "The market is expected to grow 15-20% a year.",
        "Users prefer intuitive interfaces.",
        "Demand for cloud-based solutions is rising.",
        "Security and compliance drive purchasing decisions.",
    ],
    "critical_questions": [
        "How do the main competitors price and differentiate?",
        "What actually drives the target customer's buying decision?",
        "How do technical constraints affect the user experience?",
        "What market share is realistic within a year of launch?",
    ],
    "success_factors": [
        "A clear value proposition with differentiated features",
        "User-centred interface design",
        "A stable and scalable technical architecture",
        "Continuous feedback collection and improvement",
    ],
}

# (action, base priority, effort, outcome)
BASE_ACTIONS = [
    ("Run market research", 1, "2-3 weeks",
     "Market size, growth and key trends inform the go-to-market approach"),
    ("Benchmark competitors", 2, "1-2 weeks",
     "Competitor strengths and weaknesses reveal differentiation and positioning"),
    ("Conduct user research", 3, "2-4 weeks",
     "Real user needs refine the product requirements and UX direction"),
    ("Design technical architecture", 4, "1-2 weeks",
     "A scalable, stable architecture improves delivery efficiency and quality"),
    ("Build a prototype", 5, "3-4 weeks",
     "Core features are validated early with user feedback"),
]


def recommended_actions(guidance: NextStepGuidance) -> list[RecommendedAction]:
    """Fixed research actions, reprioritised by the guidance's priority areas."""
    actions = [
        RecommendedAction(action=a, priority=p, estimated_effort=e, expected_outcome=o)
        for a, p, e, o in BASE_ACTIONS
    ]
    areas = [area.area.lower() for area in guidance.priority_areas]
    if any("user" in area for area in areas):
        actions[2].priority = 1
    if any("technical" in area for area in areas):
        actions[3].priority = 2
    return sorted(actions, key=lambda action: action.priority)


def response_insights(pairs: list[tuple[QuestionRow, QuestionUserResponse]]) -> dict[str, dict[str, Any]]:
    """Group answered questions into user, technical, business and market insights."""
    insights: dict[str, dict[str, Any]] = {
        "user_preferences": {},
        "technical_requirements": {},
        "business_constraints": {},
        "market_understanding": {},
    }
    for question, response in pairs:
        value = response.response_value if response.response_value is not None else response.final_answer
        text = question.question_text.lower()
        if question.category == "target_audience":
            if "proficien" in text or "skill" in text or "experienced" in text:
                insights["user_preferences"]["skill_level"] = value
            if "number of users" in text or "how many users" in text:
                insights["user_preferences"]["expected_users"] = value
        elif question.category in ("technology_preference", "technical_requirements"):
            insights["technical_requirements"][question.question_text] = value
        elif question.category == "project_constraints":
            if "budget" in text:
                insights["business_constraints"]["budget"] = value
            if "deadline" in text or "complet" in text or "timeline" in text:
                insights["business_constraints"]["timeline"] = value
        elif question.category == "market_context":
            insights["market_understanding"][question.question_text] = value
    return insights


class GuidanceService(LoggerMixin):
    """Stores and serves market research guidance for an analysis."""

    def __init__(self, session: Session):
        self._session = session

    def _to_guidance(self, row: GuidanceRow) -> NextStepGuidance:
        return NextStepGuidance(
            research_scope=row.research_scope or RESEARCH_SCOPE,
            priority_areas=[PriorityArea.model_validate(a) for a in row.priority_areas or []],
            recommended_tools=[RecommendedTool.model_validate(t) for t in row.recommended_tools or []],
            estimated_duration_days=row.estimated_duration_days,
            generated_insights=row.generated_insights or {},
            next_phase_preparation=NEXT_PHASE_PREPARATION,
        )

    def get_guidance(self, analysis_id: str) -> NextStepGuidanceResponse:
        row = self._session.scalar(select(GuidanceRow).where(GuidanceRow.rfp_analysis_id == analysis_id))
        if row is None:
            raise NotFoundError(
                "No guidance has been generated yet. Answer the questions first.",
                code="GUIDANCE_NOT_FOUND",
            )
        guidance = self._to_guidance(row)
        return NextStepGuidanceResponse(guidance=guidance, recommended_actions=recommended_actions(guidance))

    def generate_guidance(self, analysis_id: str) -> NextStepGuidanceResponse:
        """Build guidance from the analysis and its answers, replacing any stored guidance."""
        analysis = store.get_analysis(self._session, analysis_id)
        result = RFPAnalysisResult.model_validate(analysis.analysis or {})

        pairs = self._session.execute(
            select(QuestionRow, QuestionUserResponse)
            .join(QuestionUserResponse, QuestionUserResponse.question_id == QuestionRow.id)
            .where(QuestionRow.rfp_analysis_id == analysis_id)
            .order_by(QuestionRow.order_index)
        ).all()
        insights = {**BASE_INSIGHTS, "response_insights": response_insights(list(pairs))}

        self._session.execute(delete(GuidanceRow).where(GuidanceRow.rfp_analysis_id == analysis_id))
        row = GuidanceRow(
            rfp_analysis_id=analysis_id,
            research_scope=RESEARCH_SCOPE,
            priority_areas=[a.model_dump() for a in PRIORITY_AREAS],
            recommended_tools=[t.model_dump() for t in RESEARCH_TOOLS],
            estimated_duration_days=math.ceil(len(result.keywords) * 0.5 + BASE_DURATION_DAYS),
            generated_insights=insights,
        )
        self._session.add(row)
        self._session.flush()

        self.log_info(
            "Guidance generated",
            analysis_id=analysis_id,
            answered=len(pairs),
            duration_days=row.estimated_duration_days,
        )
        guidance = self._to_guidance(row)
        return NextStepGuidanceResponse(guidance=guidance, recommended_actions=recommended_actions(guidance))
