"""Project, membership and workflow-step routes."""

from fastapi import APIRouter, Query, Response

from rfp_workflow.api.dependencies import SessionDep, UserIdDep
from rfp_workflow.models.projects import (
    MemberCreate,
    MemberOut,
    MemberUpdate,
    ProjectCreate,
    ProjectOut,
    ProjectUpdate,
    ReorderRequest,
    WorkflowStepCreate,
    WorkflowStepOut,
    WorkflowStepUpdate,
)
from rfp_workflow.services.projects import ProjectService
from rfp_workflow.services.workflows import WorkflowService


router = APIRouter(tags=["Projects"])


@router.get("/projects", response_model=list[ProjectOut])
def list_projects(
    session: SessionDep,
    user_id: UserIdDep,
    status: str | None = Query(default=None),
    priority: str | None = Query(default=None),
    category: str | None = Query(default=None),
) -> list[ProjectOut]:
    """Projects the caller is a member of."""
    return ProjectService(session).list_projects(user_id, status=status, priority=priority, category=category)


@router.post("/projects", response_model=ProjectOut, status_code=201)
def create_project(payload: ProjectCreate, session: SessionDep, user_id: UserIdDep) -> ProjectOut:
    return ProjectService(session).create_project(user_id, payload)


@router.get("/projects/{project_id}", response_model=ProjectOut)
def get_project(project_id: str, session: SessionDep, user_id: UserIdDep) -> ProjectOut:
    return ProjectService(session).get_project(project_id, user_id)


@router.patch("/projects/{project_id}", response_model=ProjectOut)
def update_project(project_id: str, payload: ProjectUpdate, session: SessionDep, user_id: UserIdDep) -> ProjectOut:
    return ProjectService(session).update_project(project_id, user_id, payload)


@router.delete("/projects/{project_id}", status_code=204)
def delete_project(project_id: str, session: SessionDep, user_id: UserIdDep) -> Response:
    ProjectService(session).delete_project(project_id, user_id)
    return Response(status_code=204)


@router.get("/projects/{project_id}/members", response_model=list[MemberOut])
def list_members(project_id: str, session: SessionDep, user_id: UserIdDep) -> list[MemberOut]:
    return ProjectService(session).list_members(project_id, user_id)


@router.post("/projects/{project_id}/members", response_model=MemberOut, status_code=201)
def add_member(project_id: str, payload: MemberCreate, session: SessionDep, user_id: UserIdDep) -> MemberOut:
    """Add an existing user to the project by email."""
    return ProjectService(session).add_member(project_id, user_id, payload)


@router.patch("/projects/{project_id}/members/{member_id}", response_model=MemberOut)
def update_member(
    project_id: str, member_id: str, payload: MemberUpdate, session: SessionDep, user_id: UserIdDep
) -> MemberOut:
    return ProjectService(session).update_member_role(project_id, user_id, member_id, payload.role)


@router.delete("/projects/{project_id}/members/{member_id}", status_code=204)
def remove_member(project_id: str, member_id: str, session: SessionDep, user_id: UserIdDep) -> Response:
    ProjectService(session).remove_member(project_id, user_id, member_id)
    return Response(status_code=204)


@router.get("/projects/{project_id}/workflow-steps", response_model=list[WorkflowStepOut])
def list_workflow_steps(
    project_id: str,
    session: SessionDep,
    user_id: UserIdDep,
    workflow_type: str | None = Query(default=None),
) -> list[WorkflowStepOut]:
    return WorkflowService(session).list_steps(project_id, user_id, workflow_type=workflow_type)


@router.post("/projects/{project_id}/workflow-steps", response_model=WorkflowStepOut, status_code=201)
def create_workflow_step(
    project_id: str, payload: WorkflowStepCreate, session: SessionDep, user_id: UserIdDep
) -> WorkflowStepOut:
    return WorkflowService(session).create_step(project_id, user_id, payload)


@router.post("/projects/{project_id}/workflow-steps/reorder", response_model=list[WorkflowStepOut])
def reorder_workflow_steps(
    project_id: str, payload: ReorderRequest, session: SessionDep, user_id: UserIdDep
) -> list[WorkflowStepOut]:
    return WorkflowService(session).reorder_steps(project_id, user_id, payload.ordered_ids)


@router.patch("/workflow-steps/{step_id}", response_model=WorkflowStepOut)
def update_workflow_step(
    step_id: str, payload: WorkflowStepUpdate, session: SessionDep, user_id: UserIdDep
) -> WorkflowStepOut:
    """Update a step; starting it requires its dependencies to be completed."""
    return WorkflowService(session).update_step(step_id, user_id, payload)


@router.delete("/workflow-steps/{step_id}", status_code=204)
def delete_workflow_step(step_id: str, session: SessionDep, user_id: UserIdDep) -> Response:
    WorkflowService(session).delete_step(step_id, user_id)
    return Response(status_code=204)
