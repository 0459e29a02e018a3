"""API modules."""

from rfp_workflow.api.app import create_app
from rfp_workflow.api.routes import router

__all__ = ["create_app", "router"]

