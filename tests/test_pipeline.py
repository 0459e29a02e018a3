"""Tests for the RFP analysis pipeline."""

import pytest

from rfp_workflow.db.tables import APIUsageLog, RFPAnalysis
from rfp_workflow.errors import AIProviderError, ExtractionError, NotFoundError
from rfp_workflow.graph.workflow import AnalysisPipeline, estimate_duration_seconds
from rfp_workflow.models.ai import AIUsage
from rfp_workflow.models.analysis import AnalysisDepth, AnalysisOptions, AnalysisStatus


class FakeAnalyzer:
    """Stands in for RFPAnalyzer and records its calls."""

    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.calls = []
        self.last_model = None
        self.last_usage = None

    def analyze(self, text, *, model_id=None, depth=AnalysisDepth.DETAILED, focus_areas=None):
        self.calls.append({"text": text, "model_id": model_id, "depth": depth, "focus_areas": focus_areas})
        if self.error is not None:
            raise self.error
        self.last_model = model_id or "claude-test"
        self.last_usage = AIUsage(input_tokens=400, output_tokens=100, total_tokens=500)
        return self.result


@pytest.fixture
def analyzer(sample_analysis):
    return FakeAnalyzer(result=sample_analysis)


@pytest.fixture
def pipeline(session, analyzer):
    return AnalysisPipeline(session, analyzer_factory=lambda model_id: analyzer)


def test_estimate_duration_seconds():
    assert estimate_duration_seconds(0) == 0
    assert estimate_duration_seconds(1) == 1
    assert estimate_duration_seconds(102400) == 1
    assert estimate_duration_seconds(102401) == 2


class TestAnalysisPipeline:
    """Tests for AnalysisPipeline.run."""

    def test_run_with_questions(self, session, user_id, project_id, create_document, pipeline, analyzer):
        document_id = create_document(project_id=project_id)

        response = pipeline.run(
            document_id,
            user_id,
            AnalysisOptions(depth=AnalysisDepth.COMPREHENSIVE, focus_areas=["security"]),
        )

        assert response.was_cached is False
        assert response.questions_generated == 5
        assert response.estimated_duration_seconds == 1
        assert response.analysis.status == AnalysisStatus.AWAITING_RESPONSES
        assert response.analysis.project_id == project_id
        assert response.analysis.model_used == "claude-test"
        assert response.analysis.analysis.project_overview.title == "Citizen Portal Renewal"

        call = analyzer.calls[0]
        assert "REQ-001" in call["text"]
        assert call["depth"] == AnalysisDepth.COMPREHENSIVE
        assert call["focus_areas"] == ["security"]

        row = session.get(RFPAnalysis, response.analysis.id)
        assert {q.source for q in row.questions} == {"rule"}
        assert session.query(APIUsageLog).one().tokens_used == 500

    def test_run_without_questions(self, session, user_id, create_document, pipeline):
        response = pipeline.run(create_document(), user_id, AnalysisOptions(include_questions=False))

        assert response.analysis.status == AnalysisStatus.COMPLETED
        assert response.questions_generated == 0

    def test_selected_model_is_recorded(self, user_id, create_document, pipeline, analyzer):
        response = pipeline.run(
            create_document(), user_id, AnalysisOptions(selected_model_id="gpt-4o", include_questions=False)
        )

        assert analyzer.calls[0]["model_id"] == "gpt-4o"
        assert response.analysis.model_used == "gpt-4o"

    def test_existing_analysis_returned(self, user_id, create_document, pipeline, analyzer):
        document_id = create_document()
        first = pipeline.run(document_id, user_id)

        second = pipeline.run(document_id, user_id)

        assert second.was_cached is True
        assert second.analysis.id == first.analysis.id
        assert second.questions_generated == 5
        assert len(analyzer.calls) == 1

    def test_unknown_document(self, user_id, pipeline):
        with pytest.raises(NotFoundError) as exc_info:
            pipeline.run("missing", user_id)
        assert exc_info.value.code == "RFP_DOCUMENT_NOT_FOUND"

    @pytest.mark.parametrize("content", ["   ", "[Text extraction failed]"])
    def test_document_without_text(self, session, user_id, create_document, pipeline, analyzer, content):
        with pytest.raises(ExtractionError) as exc_info:
            pipeline.run(create_document(content=content), user_id)

        assert exc_info.value.status_code == 422
        assert analyzer.calls == []
        assert session.query(RFPAnalysis).count() == 0

    def test_analyzer_failure_marks_error(self, session, user_id, create_document):
        failing = FakeAnalyzer(error=AIProviderError("AI response could not be parsed", code="UNPARSEABLE_AI_RESPONSE"))
        pipeline = AnalysisPipeline(session, analyzer_factory=lambda model_id: failing)

        with pytest.raises(AIProviderError) as exc_info:
            pipeline.run(create_document(), user_id)

        assert exc_info.value.code == "UNPARSEABLE_AI_RESPONSE"
        row = session.query(RFPAnalysis).one()
        assert row.status == AnalysisStatus.ERROR.value
        assert row.error_message == "AI response could not be parsed"
        assert session.query(APIUsageLog).one().status == "error"

    def test_failed_analysis_is_retried(self, session, user_id, create_document, sample_analysis):
        """A document whose last analysis failed is analysed again on the next run."""
        document_id = create_document()
        failing = FakeAnalyzer(error=AIProviderError("Provider timed out", code="AI_PROVIDER_ERROR"))
        with pytest.raises(AIProviderError):
            AnalysisPipeline(session, analyzer_factory=lambda model_id: failing).run(document_id, user_id)

        working = FakeAnalyzer(result=sample_analysis)
        response = AnalysisPipeline(session, analyzer_factory=lambda model_id: working).run(document_id, user_id)

        assert response.was_cached is False
        assert len(working.calls) == 1
        assert response.analysis.status != AnalysisStatus.ERROR
        assert session.query(RFPAnalysis).count() == 2

        again = AnalysisPipeline(session, analyzer_factory=lambda model_id: working).run(document_id, user_id)
        assert again.was_cached is True
        assert again.analysis.id == response.analysis.id
        assert len(working.calls) == 1
