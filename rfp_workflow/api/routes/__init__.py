"""API routes for the RFP workflow service."""

from fastapi import APIRouter

from rfp_workflow.api.routes import ai, projects, questions, rfp


router = APIRouter(prefix="/api/v1")
router.include_router(rfp.router)
router.include_router(questions.router)
router.include_router(projects.router)
router.include_router(ai.router)

__all__ = ["router"]
