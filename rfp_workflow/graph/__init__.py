"""LangGraph analysis pipeline."""

from rfp_workflow.graph.nodes import PipelineNodes
from rfp_workflow.graph.state import PipelineState
from rfp_workflow.graph.workflow import AnalysisPipeline, estimate_duration_seconds

__all__ = ["AnalysisPipeline", "PipelineNodes", "PipelineState", "estimate_duration_seconds"]
