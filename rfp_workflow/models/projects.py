"""Project, membership and workflow-step models."""

from datetime import date, datetime
from typing import Any, Literal

from pydantic import BaseModel, Field


ProjectStatus = Literal["draft", "active", "on_hold", "completed", "cancelled"]
ProjectPriority = Literal["low", "medium", "high", "urgent"]
MemberRole = Literal["owner", "admin", "member", "viewer"]
StepStatus = Literal["pending", "in_progress", "completed", "blocked"]


class ProjectCreate(BaseModel):
    name: str = Field(default="", max_length=255)
    description: str | None = None
    category: str = Field(default="general")
    status: ProjectStatus = Field(default="draft")
    priority: ProjectPriority = Field(default="medium")
    start_date: date | None = None
    end_date: date | None = None
    client_name: str | None = None
    budget: float | None = Field(default=None, ge=0)
    tags: list[str] = Field(default_factory=list)


class ProjectUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    category: str | None = None
    status: ProjectStatus | None = None
    priority: ProjectPriority | None = None
    progress: int | None = Field(default=None, ge=0, le=100)
    client_name: str | None = None
    budget: float | None = Field(default=None, ge=0)
    tags: list[str] | None = None


class ProjectOut(BaseModel):
    id: str
    name: str
    description: str | None = None
    category: str
    status: str
    metadata: dict[str, Any]
    owner_id: str
    role: str | None = Field(default=None, description="Caller's role in the project")
    created_at: datetime


class MemberCreate(BaseModel):
    email: str = Field(default="")
    role: MemberRole = Field(default="member")


class MemberUpdate(BaseModel):
    role: MemberRole


class MemberOut(BaseModel):
    id: str
    user_id: str
    email: str
    name: str | None = None
    role: str
    permissions: dict[str, Any]
    joined_at: datetime


class WorkflowStepCreate(BaseModel):
    workflow_type: str = Field(..., min_length=1)
    stage: str = Field(..., min_length=1)
    step: str = Field(..., min_length=1)
    title: str | None = None
    description: str | None = None
    priority: Literal["low", "medium", "high"] = "medium"
    step_order: int | None = Field(default=None, ge=0)
    estimated_hours: float | None = Field(default=None, ge=0)
    dependencies: list[str] = Field(default_factory=list)
    assigned_to: str | None = None
    due_date: date | None = None


class WorkflowStepUpdate(BaseModel):
    title: str | None = None
    description: str | None = None
    status: StepStatus | None = None
    priority: Literal["low", "medium", "high"] | None = None
    progress_percentage: int | None = Field(default=None, ge=0, le=100)
    actual_hours: float | None = Field(default=None, ge=0)
    dependencies: list[str] | None = None
    assigned_to: str | None = None
    due_date: date | None = None


class WorkflowStepOut(BaseModel):
    id: str
    project_id: str
    workflow_type: str
    stage: str
    step: str
    title: str | None = None
    description: str | None = None
    status: str
    priority: str
    step_order: int
    progress_percentage: int
    estimated_hours: float | None = None
    actual_hours: float | None = None
    dependencies: list[str]
    assigned_to: str | None = None
    due_date: date | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None

    model_config = {"from_attributes": True}


class ReorderRequest(BaseModel):
    ordered_ids: list[str] = Field(..., min_length=1)
