"""Analysis questions: rule-based, LLM-generated, and their answers."""

from rfp_workflow.questions.ai import QuestionService
from rfp_workflow.questions.generator import RFPQuestionGenerator
from rfp_workflow.questions.responses import ResponseService, calculate_response_quality

__all__ = [
    "QuestionService",
    "RFPQuestionGenerator",
    "ResponseService",
    "calculate_response_quality",
]
