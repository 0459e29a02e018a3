"""RFP Workflow - RFP analysis, discovery questions and market research with LLMs."""

__version__ = "1.0.0"

from rfp_workflow.errors import RFPWorkflowError
from rfp_workflow.graph import AnalysisPipeline
from rfp_workflow.models.analysis import AnalysisOptions, RFPAnalysisResult

__all__ = [
    "AnalysisPipeline",
    "AnalysisOptions",
    "RFPAnalysisResult",
    "RFPWorkflowError",
]
