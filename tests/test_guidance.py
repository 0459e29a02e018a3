"""Tests for market research guidance."""

from types import SimpleNamespace

import pytest

from rfp_workflow.db.tables import MarketResearchGuidance as GuidanceRow
from rfp_workflow.errors import NotFoundError
from rfp_workflow.models.questions import NextStepGuidance, PriorityArea
from rfp_workflow.services.guidance import GuidanceService, recommended_actions, response_insights


def _pair(category: str, text: str, answer: str, value=None):
    question = SimpleNamespace(category=category, question_text=text)
    response = SimpleNamespace(final_answer=answer, response_value=value)
    return question, response


class TestRecommendedActions:
    """Tests for action reprioritisation."""

    @staticmethod
    def _guidance(*areas: str) -> NextStepGuidance:
        return NextStepGuidance(
            research_scope="scope",
            priority_areas=[PriorityArea(area=a, importance=0.5, rationale="r") for a in areas],
            recommended_tools=[],
            estimated_duration_days=14,
            next_phase_preparation="next",
        )

    def test_base_order(self):
        actions = recommended_actions(self._guidance("Cost optimisation"))
        assert [a.priority for a in actions] == [1, 2, 3, 4, 5]

    def test_user_and_technical_areas_promote_actions(self):
        actions = recommended_actions(self._guidance("User experience design", "Technical competitiveness"))

        assert [a.action for a in actions] == [
            "Run market research",
            "Conduct user research",
            "Benchmark competitors",
            "Design technical architecture",
            "Build a prototype",
        ]


class TestResponseInsights:
    """Tests for grouping answers into insight buckets."""

    def test_grouping(self):
        insights = response_insights([
            _pair("target_audience", "How experienced are the users?", "Beginners"),
            _pair("target_audience", "What number of users do you expect?", "5000", value=5000),
            _pair("technical_requirements", "Which cloud?", "AWS"),
            _pair("project_constraints", "What is the budget?", "USD 250k"),
            _pair("project_constraints", "When is the deadline?", "Q3"),
            _pair("market_context", "Who competes?", "Vendor A"),
            _pair("business_model", "How is it funded?", "Grants"),
        ])

        assert insights["user_preferences"] == {"skill_level": "Beginners", "expected_users": 5000}
        assert insights["technical_requirements"] == {"Which cloud?": "AWS"}
        assert insights["business_constraints"] == {"budget": "USD 250k", "timeline": "Q3"}
        assert insights["market_understanding"] == {"Who competes?": "Vendor A"}

    def test_empty(self):
        assert all(bucket == {} for bucket in response_insights([]).values())


class TestGuidanceService:
    """Tests for storing and reading guidance."""

    def test_missing_guidance(self, session, analysis_id):
        with pytest.raises(NotFoundError) as exc_info:
            GuidanceService(session).get_guidance(analysis_id)
        assert exc_info.value.code == "GUIDANCE_NOT_FOUND"

    def test_generate_guidance(self, session, analysis_id, answer_questions):
        answer_questions(4)

        result = GuidanceService(session).generate_guidance(analysis_id)

        guidance = result.guidance
        # 4 keywords in the analysis: ceil(4 * 0.5 + 14)
        assert guidance.estimated_duration_days == 16
        assert len(guidance.priority_areas) == 4
        assert len(guidance.recommended_tools) == 4
        assert "key_assumptions" in guidance.generated_insights
        market = guidance.generated_insights["response_insights"]["market_understanding"]
        assert len(market) == 2
        assert [a.priority for a in result.recommended_actions] == [1, 1, 2, 2, 5]

    def test_regenerate_replaces_stored_guidance(self, session, analysis_id):
        service = GuidanceService(session)
        service.generate_guidance(analysis_id)
        service.generate_guidance(analysis_id)

        assert session.query(GuidanceRow).count() == 1
        assert service.get_guidance(analysis_id).guidance.estimated_duration_days == 16

    def test_unknown_analysis(self, session):
        with pytest.raises(NotFoundError):
            GuidanceService(session).generate_guidance("missing")
