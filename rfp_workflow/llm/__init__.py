"""LLM integration modules."""

from rfp_workflow.llm.analyzer import RFPAnalyzer, extract_keywords, truncate_document
from rfp_workflow.llm.output_parser import AnalysisOutputParser, extract_json
from rfp_workflow.llm.prompts import PromptTemplates

__all__ = [
    "AnalysisOutputParser",
    "PromptTemplates",
    "RFPAnalyzer",
    "extract_json",
    "extract_keywords",
    "truncate_document",
]
