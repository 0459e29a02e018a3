"""Tests for question generation and answers."""

from datetime import datetime
from unittest.mock import patch

import pytest

from conftest import ai_response
from rfp_workflow.db.tables import AnalysisQuestion as QuestionRow
from rfp_workflow.db.tables import RFPAnalysis
from rfp_workflow.errors import AIProviderError, ConflictError, NotFoundError, ValidationFailedError
from rfp_workflow.models.analysis import BusinessRequirements, RFPAnalysisResult, TechnicalSpecifications
from rfp_workflow.models.questions import (
    BatchRespondRequest,
    GenerateQuestionsRequest,
    QuestionCategory,
    QuestionResponse,
    QuestionType,
    RespondRequest,
)
from rfp_workflow.questions import QuestionService, RFPQuestionGenerator, ResponseService, calculate_response_quality
from rfp_workflow.questions.ai import build_fallback_questions
from rfp_workflow.questions.generator import MARKET_SIZE_LARGE, MARKET_SIZE_MID


LLM_QUESTIONS = {
    "questions": [
        {
            "question_text": "Which channels do citizens use today?",
            "question_type": "multiple_choice",
            "category": "market_context",
            "priority": "high",
            "options": ["Web", "Mobile", "Counter"],
            "ai_answer": {"answer_text": "Mostly web", "confidence": 80},
        },
        {
            "question_text": "Is single sign-on with the national ID required?",
            "question_type": "yes_no",
            "category": "technical_requirements",
            "priority": "urgent",
        },
        {"question_type": "text_long"},
    ]
}


def _slots(questions) -> list[str]:
    return [q.id.rsplit("_", 1)[1] for q in questions]


class TestRFPQuestionGenerator:
    """Tests for the rule-based market research questions."""

    def test_all_slots(self, sample_analysis):
        questions = RFPQuestionGenerator().generate_market_research_questions(sample_analysis, "analysis-1")

        assert _slots(questions) == ["1", "2", "3", "4", "5"]
        assert [q.order_index for q in questions] == [1, 2, 3, 4, 5]
        assert all(q.id.startswith("mq_") for q in questions)
        assert all(q.rfp_analysis_id == "analysis-1" for q in questions)
        assert questions[0].question_type == QuestionType.SINGLE_CHOICE
        assert questions[2].question_type == QuestionType.MULTIPLE_CHOICE
        assert "React" in questions[3].context

    def test_empty_analysis_only_competitor_and_geography(self):
        questions = RFPQuestionGenerator().generate_market_research_questions(RFPAnalysisResult())

        assert _slots(questions) == ["2", "3"]
        assert questions[0].category == QuestionCategory.COMPETITOR_FOCUS
        assert [q.order_index for q in questions] == [1, 2]

    def test_geography_skipped_when_region_known(self):
        analysis = RFPAnalysisResult(
            business_requirements=BusinessRequirements(target_users=["Global enterprise buyers"]),
            technical_specifications=TechnicalSpecifications(technologies=["Go"]),
        )

        questions = RFPQuestionGenerator().generate_market_research_questions(analysis)

        assert _slots(questions) == ["1", "2", "4"]

    def test_guidance_for_large_market(self):
        responses = [
            QuestionResponse(analysis_question_id="mq_1_1", response_value=MARKET_SIZE_LARGE),
            QuestionResponse(
                analysis_question_id="mq_1_2",
                response_value="Comprehensive analysis including industry trends",
            ),
            QuestionResponse(
                analysis_question_id="mq_1_3",
                response_value=["Nationwide", "Europe", "North America", "Global"],
            ),
        ]

        guidance = RFPQuestionGenerator().analyze_question_responses(responses)

        assert guidance.research_scope.startswith("Comprehensive")
        assert guidance.estimated_duration.startswith("3-4 weeks")
        assert guidance.priority_areas == [
            "In-depth competitor analysis",
            "Industry trend research",
            "Multi-region market research",
        ]
        assert guidance.recommended_tools

    def test_guidance_for_mid_market(self):
        responses = [
            QuestionResponse(analysis_question_id="mq_1_1", response_value=MARKET_SIZE_MID),
            QuestionResponse(analysis_question_id="mq_1_3", response_value=["Europe"]),
        ]

        guidance = RFPQuestionGenerator().analyze_question_responses(responses)

        assert guidance.estimated_duration.startswith("2-3 weeks")
        assert guidance.priority_areas == ["Region-specific research"]

    def test_guidance_without_answers(self):
        guidance = RFPQuestionGenerator().analyze_question_responses([])
        assert guidance.research_scope.startswith("Basic")
        assert guidance.priority_areas == []

    def test_geography_skips_text_answer(self):
        """A free-text slot 3 answer does not hide a later multi-select one."""
        responses = [
            QuestionResponse(analysis_question_id="mq_1_3", response_value="Europe and Asia"),
            QuestionResponse(
                analysis_question_id="mq_2_3",
                response_value=["Europe", "Asia", "Africa", "North America"],
            ),
        ]

        guidance = RFPQuestionGenerator().analyze_question_responses(responses)

        assert guidance.priority_areas == ["Multi-region market research"]


class TestResponseQuality:
    """Tests for calculate_response_quality."""

    def test_short_ai_answer(self):
        assert calculate_response_quality("Yes", "ai_selected", 0.5) == 0.5

    def test_long_user_answer_with_notes(self):
        score = calculate_response_quality("x" * 350, "user_input", 1.0, notes="Confirmed with the client on site")
        assert score == 1.0

    def test_mixed_answer(self):
        assert calculate_response_quality("x" * 150, "mixed", 0.7) == pytest.approx(0.84)

    def test_low_confidence_clamped(self):
        assert calculate_response_quality("", "ai_selected", 0.0) == pytest.approx(0.4)


class TestFallbackQuestions:
    """Tests for template questions used when the LLM is unavailable."""

    def test_spread_across_categories(self):
        questions, answers = build_fallback_questions(
            "Portal", ["market_context", "business_goals"], 3, datetime(2024, 1, 1)
        )

        assert len(questions) == 3
        assert [q.category.value for q in questions] == ["market_context", "market_context", "business_goals"]
        assert "Portal" in questions[0].question_text
        assert set(answers) == {q.id for q in questions}
        assert all(confidence == 0.5 for _, confidence, _ in answers.values())

    def test_single_category_reaches_max(self):
        questions, answers = build_fallback_questions("Portal", ["market_context"], 5, datetime(2024, 1, 1))

        assert len(questions) == 5
        assert len({q.id for q in questions}) == 5
        assert [q.order_index for q in questions] == [1, 2, 3, 4, 5]
        assert {q.category.value for q in questions} == {"market_context"}
        assert set(answers) == {q.id for q in questions}


class TestQuestionService:
    """Tests for LLM question generation."""

    def test_generate_with_llm(self, session, user_id, analysis_id, mock_provider):
        mock_provider.send_messages.return_value = ai_response(LLM_QUESTIONS)
        with patch("rfp_workflow.questions.ai.ProviderFactory.create", return_value=mock_provider):
            response = QuestionService(session).generate(analysis_id, user_id, GenerateQuestionsRequest())

        assert response.used_fallback is False
        assert len(response.questions) == 2
        first, second = response.questions
        assert first.source == "ai"
        assert first.options == ["Web", "Mobile", "Counter"]
        assert first.ai_answers[0].answer_text == "Mostly web"
        assert first.ai_answers[0].confidence == pytest.approx(0.8)
        assert second.priority == "medium"
        assert second.ai_answers == []

    def test_generate_without_ai_answers(self, session, user_id, analysis_id, mock_provider):
        mock_provider.send_messages.return_value = ai_response(LLM_QUESTIONS)
        request = GenerateQuestionsRequest(generate_ai_answers=False)
        with patch("rfp_workflow.questions.ai.ProviderFactory.create", return_value=mock_provider):
            response = QuestionService(session).generate(analysis_id, user_id, request)

        assert all(q.ai_answers == [] for q in response.questions)

    def test_falls_back_to_templates(self, session, user_id, analysis_id):
        request = GenerateQuestionsRequest(max_questions=4)
        with patch(
            "rfp_workflow.questions.ai.ProviderFactory.create", side_effect=AIProviderError("provider down")
        ):
            response = QuestionService(session).generate(analysis_id, user_id, request)

        assert response.used_fallback is True
        assert len(response.questions) == 4
        assert {q.source for q in response.questions} == {"template"}
        assert all(q.ai_answers for q in response.questions)

    def test_no_fallback_for_large_requests(self, session, user_id, analysis_id):
        request = GenerateQuestionsRequest(max_questions=10)
        with patch(
            "rfp_workflow.questions.ai.ProviderFactory.create", side_effect=AIProviderError("provider down")
        ):
            with pytest.raises(AIProviderError):
                QuestionService(session).generate(analysis_id, user_id, request)

    def test_unparseable_reply_uses_fallback(self, session, user_id, analysis_id, mock_provider):
        mock_provider.send_messages.return_value = ai_response("I cannot help with that.")
        request = GenerateQuestionsRequest(max_questions=2)
        with patch("rfp_workflow.questions.ai.ProviderFactory.create", return_value=mock_provider):
            response = QuestionService(session).generate(analysis_id, user_id, request)

        assert response.used_fallback is True
        assert len(response.questions) == 2

    def test_existing_questions_conflict(self, session, user_id, analysis_id, mock_provider):
        mock_provider.send_messages.return_value = ai_response(LLM_QUESTIONS)
        service = QuestionService(session)
        with patch("rfp_workflow.questions.ai.ProviderFactory.create", return_value=mock_provider):
            service.generate(analysis_id, user_id, GenerateQuestionsRequest())

            with pytest.raises(ConflictError) as exc_info:
                service.generate(analysis_id, user_id, GenerateQuestionsRequest())
            assert exc_info.value.code == "QUESTIONS_ALREADY_EXIST"

            regenerated = service.generate(analysis_id, user_id, GenerateQuestionsRequest(force_regenerate=True))

        assert len(regenerated.questions) == 2
        assert session.query(QuestionRow).count() == 2

    def test_requires_project(self, session, user_id, analysis_id):
        session.get(RFPAnalysis, analysis_id).project_id = None
        with pytest.raises(ValidationFailedError) as exc_info:
            QuestionService(session).generate(analysis_id, user_id, GenerateQuestionsRequest())
        assert exc_info.value.code == "PROJECT_ID_REQUIRED"

    def test_unknown_analysis(self, session, user_id):
        with pytest.raises(NotFoundError):
            QuestionService(session).generate("missing", user_id, GenerateQuestionsRequest())

    def test_rule_based_questions_created_once(self, session, user_id, analysis_id):
        service = QuestionService(session)
        first = service.generate_rule_based(analysis_id, user_id)
        second = service.generate_rule_based(analysis_id, user_id)

        assert len(first.questions) == 5
        assert [q.id for q in first.questions] == [q.id for q in second.questions]
        assert first.guidance_preview is None
        assert {q.source for q in first.questions} == {"rule"}

    def test_rule_questions_follow_ai_questions(self, session, user_id, analysis_id, mock_provider):
        mock_provider.send_messages.return_value = ai_response(LLM_QUESTIONS)
        service = QuestionService(session)
        with patch("rfp_workflow.questions.ai.ProviderFactory.create", return_value=mock_provider):
            service.generate(analysis_id, user_id, GenerateQuestionsRequest())

        rule = service.generate_rule_based(analysis_id, user_id).questions
        listed = service.list_questions(analysis_id)

        assert [q.order_index for q in rule] == [3, 4, 5, 6, 7]
        assert [q.order_index for q in listed] == [1, 2, 3, 4, 5, 6, 7]
        assert [q.source for q in listed] == ["ai", "ai"] + ["rule"] * 5


@pytest.fixture
def rule_questions(session, user_id, analysis_id):
    """The five rule-based questions of the sample analysis."""
    return QuestionService(session).generate_rule_based(analysis_id, user_id).questions


class TestResponseService:
    """Tests for saving answers."""

    def test_respond_updates_summary(self, session, user_id, analysis_id, rule_questions):
        result = ResponseService(session).respond(
            analysis_id,
            user_id,
            RespondRequest(
                question_id=rule_questions[0].id,
                response_type="user_input",
                final_answer=MARKET_SIZE_LARGE,
                user_input_text=MARKET_SIZE_LARGE,
                response_value=MARKET_SIZE_LARGE,
            ),
        )

        assert result.summary.total_questions == 5
        assert result.summary.answered_questions == 1
        assert result.summary.completion_percentage == 20.0
        assert result.next_steps.remaining_questions == 4
        assert result.next_steps.ready_for_consolidation is False

        preview = QuestionService(session).generate_rule_based(analysis_id, user_id).guidance_preview
        assert preview is not None
        assert preview.research_scope.startswith("Comprehensive")

    def test_answer_is_upserted(self, session, user_id, analysis_id, rule_questions):
        service = ResponseService(session)
        payload = dict(question_id=rule_questions[1].id, response_type="user_input", user_input_text="Detailed")
        service.respond(analysis_id, user_id, RespondRequest(final_answer="First", **payload))
        result = service.respond(analysis_id, user_id, RespondRequest(final_answer="Second", **payload))

        assert result.response.final_answer == "Second"
        assert result.summary.answered_questions == 1

    @pytest.mark.parametrize(
        "payload, code",
        [
            (dict(question_id="", response_type="user_input", final_answer="x"), "MISSING_REQUIRED_FIELDS"),
            (dict(question_id="q", response_type=None, final_answer="x"), "MISSING_REQUIRED_FIELDS"),
            (dict(question_id="q", response_type="mixed", final_answer="   "), "MISSING_REQUIRED_FIELDS"),
            (dict(question_id="missing", response_type="mixed", final_answer="x"), "QUESTION_NOT_FOUND"),
        ],
    )
    def test_validation(self, session, user_id, analysis_id, payload, code):
        with pytest.raises((ValidationFailedError, NotFoundError)) as exc_info:
            ResponseService(session).respond(analysis_id, user_id, RespondRequest(**payload))
        assert exc_info.value.code == code

    def test_user_input_requires_text(self, session, user_id, analysis_id, rule_questions):
        with pytest.raises(ValidationFailedError):
            ResponseService(session).respond(
                analysis_id,
                user_id,
                RespondRequest(question_id=rule_questions[0].id, response_type="user_input", final_answer="x"),
            )

    def test_ai_selected_requires_matching_answer(self, session, user_id, analysis_id, rule_questions):
        service = ResponseService(session)
        base = dict(question_id=rule_questions[0].id, response_type="ai_selected", final_answer="x")

        with pytest.raises(ValidationFailedError):
            service.respond(analysis_id, user_id, RespondRequest(**base))
        with pytest.raises(NotFoundError) as exc_info:
            service.respond(analysis_id, user_id, RespondRequest(ai_answer_id="nope", **base))
        assert exc_info.value.code == "AI_ANSWER_NOT_FOUND"

    def test_priority_override(self, session, user_id, analysis_id, rule_questions):
        ResponseService(session).respond(
            analysis_id,
            user_id,
            RespondRequest(
                question_id=rule_questions[1].id,
                response_type="mixed",
                final_answer="Key competitors only",
                priority_override="low",
            ),
        )
        assert session.get(QuestionRow, rule_questions[1].id).priority == "low"

    def test_batch_reports_errors_and_continues(self, session, user_id, analysis_id, rule_questions):
        responses = [
            RespondRequest(question_id=q.id, response_type="mixed", final_answer=f"Answer {i}", confidence_level=conf)
            for i, (q, conf) in enumerate(zip(rule_questions[:3], [0.9, 0.3, 0.6]))
        ]
        responses.append(RespondRequest(question_id="missing", response_type="mixed", final_answer="x"))

        result = ResponseService(session).respond_batch(
            analysis_id, user_id, BatchRespondRequest(responses=responses)
        )

        assert result.statistics.saved == 3
        assert result.statistics.failed == 1
        assert result.statistics.followup_required == 1
        assert result.statistics.average_confidence == pytest.approx(0.6)
        assert result.errors[0]["code"] == "QUESTION_NOT_FOUND"
        assert result.summary.completion_percentage == 60.0
        assert result.consolidation_triggered is False

    def test_batch_auto_consolidation(self, session, user_id, analysis_id, rule_questions):
        calls = []
        service = ResponseService(session, consolidate=lambda a, u: calls.append((a, u)))
        responses = [
            RespondRequest(question_id=q.id, response_type="mixed", final_answer="Answer")
            for q in rule_questions[:3]
        ]

        result = service.respond_batch(
            analysis_id, user_id, BatchRespondRequest(responses=responses, auto_consolidate=True)
        )

        assert result.consolidation_triggered is True
        assert calls == [(analysis_id, user_id)]
