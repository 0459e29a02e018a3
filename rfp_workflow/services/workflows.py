"""Per-project workflow steps."""

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from rfp_workflow.db.base import utcnow
from rfp_workflow.db.tables import WorkflowStep
from rfp_workflow.errors import ConflictError, NotFoundError, ValidationFailedError
from rfp_workflow.models.projects import WorkflowStepCreate, WorkflowStepOut, WorkflowStepUpdate
from rfp_workflow.services.projects import ProjectService
from rfp_workflow.utils.logging import LoggerMixin


class WorkflowService(LoggerMixin):
    """Ordered workflow steps with dependency-gated status changes."""

    def __init__(self, session: Session):
        self._session = session
        self._projects = ProjectService(session)

    def _get_step(self, step_id: str) -> WorkflowStep:
        step = self._session.get(WorkflowStep, step_id)
        if step is None:
            raise NotFoundError(f"Workflow step not found: {step_id}", code="STEP_NOT_FOUND")
        return step

    def create_step(self, project_id: str, user_id: str, payload: WorkflowStepCreate) -> WorkflowStepOut:
        self._projects.require_member(project_id, user_id)

        step_order = payload.step_order
        if step_order is None:
            current = self._session.scalar(
                select(func.max(WorkflowStep.step_order)).where(WorkflowStep.project_id == project_id)
            )
            step_order = 0 if current is None else current + 1

        step = WorkflowStep(
            project_id=project_id,
            **payload.model_dump(exclude={"step_order"}),
            step_order=step_order,
            status="pending",
            progress_percentage=0,
        )
        self._session.add(step)
        self._session.flush()
        self.log_info("Workflow step created", project_id=project_id, step_id=step.id, step=step.step)
        return WorkflowStepOut.model_validate(step)

    def list_steps(self, project_id: str, user_id: str, workflow_type: str | None = None) -> list[WorkflowStepOut]:
        self._projects.require_member(project_id, user_id)
        query = select(WorkflowStep).where(WorkflowStep.project_id == project_id)
        if workflow_type:
            query = query.where(WorkflowStep.workflow_type == workflow_type)
        steps = self._session.scalars(query.order_by(WorkflowStep.step_order, WorkflowStep.created_at))
        return [WorkflowStepOut.model_validate(s) for s in steps]

    def _check_dependencies(self, step: WorkflowStep) -> None:
        if not step.dependencies:
            return
        statuses = dict(
            self._session.execute(
                select(WorkflowStep.id, WorkflowStep.status).where(WorkflowStep.id.in_(step.dependencies))
            ).all()
        )
        pending = [dep for dep in step.dependencies if statuses.get(dep) != "completed"]
        if pending:
            raise ConflictError(
                "Step cannot start before its dependencies are completed",
                code="DEPENDENCIES_INCOMPLETE",
                pending_dependencies=pending,
            )

    def update_step(self, step_id: str, user_id: str, payload: WorkflowStepUpdate) -> WorkflowStepOut:
        """Apply changes to a step.

        Raises:
            NotFoundError: Unknown step.
            ConflictError: Starting a step whose dependencies are not completed.
        """
        step = self._get_step(step_id)
        self._projects.require_member(step.project_id, user_id)

        changes = payload.model_dump(exclude_unset=True)
        if "dependencies" in changes and step.id in (changes["dependencies"] or []):
            raise ValidationFailedError("A step cannot depend on itself", code="INVALID_DEPENDENCY")

        status = changes.pop("status", None)
        for field, value in changes.items():
            setattr(step, field, value)

        if status and status != step.status:
            if status == "in_progress":
                self._check_dependencies(step)
                step.started_at = step.started_at or utcnow()
            elif status == "completed":
                step.completed_at = utcnow()
                step.progress_percentage = 100
            step.status = status

        self._session.flush()
        self.log_info("Workflow step updated", step_id=step_id, status=step.status)
        return WorkflowStepOut.model_validate(step)

    def delete_step(self, step_id: str, user_id: str) -> None:
        step = self._get_step(step_id)
        self._projects.require_member(step.project_id, user_id)
        self._session.delete(step)
        self._session.flush()
        self.log_info("Workflow step deleted", step_id=step_id)

    def reorder_steps(self, project_id: str, user_id: str, ordered_ids: list[str]) -> list[WorkflowStepOut]:
        """Assign ``step_order`` by position in ``ordered_ids``."""
        self._projects.require_member(project_id, user_id)
        steps = {
            s.id: s
            for s in self._session.scalars(select(WorkflowStep).where(WorkflowStep.project_id == project_id))
        }
        unknown = [step_id for step_id in ordered_ids if step_id not in steps]
        if unknown:
            raise ValidationFailedError(
                "Some steps do not belong to this project", code="UNKNOWN_STEPS", step_ids=unknown
            )

        for position, step_id in enumerate(ordered_ids):
            steps[step_id].step_order = position
        self._session.flush()
        return self.list_steps(project_id, user_id)
