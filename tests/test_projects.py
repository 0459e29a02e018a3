"""Tests for projects, membership and workflow steps."""

import pytest

from rfp_workflow.errors import ConflictError, NotFoundError, PermissionDeniedError, ValidationFailedError
from rfp_workflow.models.projects import (
    MemberCreate,
    ProjectCreate,
    ProjectUpdate,
    WorkflowStepCreate,
    WorkflowStepUpdate,
)
from rfp_workflow.models.usage import UserTier
from rfp_workflow.services.projects import ProjectService, permissions_for
from rfp_workflow.services.workflows import WorkflowService


@pytest.fixture
def colleague_id(create_user) -> str:
    return create_user(email="colleague@example.com", tier=UserTier.BASIC, name="Colleague")


class TestProjectService:
    """Tests for project CRUD."""

    def test_create_makes_owner(self, session, user_id):
        project = ProjectService(session).create_project(
            user_id, ProjectCreate(name="  Portal  ", priority="high", tags=["gov"])
        )

        assert project.name == "Portal"
        assert project.role == "owner"
        assert project.metadata["priority"] == "high"
        assert project.metadata["progress"] == 0

        members = ProjectService(session).list_members(project.id, user_id)
        assert len(members) == 1
        assert members[0].permissions == {"read": True, "write": True, "admin": True, "delete": True}

    def test_create_requires_name(self, session, user_id):
        with pytest.raises(ValidationFailedError) as exc_info:
            ProjectService(session).create_project(user_id, ProjectCreate(name="   "))
        assert exc_info.value.code == "NAME_REQUIRED"

    def test_create_requires_registered_user(self, session):
        with pytest.raises(NotFoundError):
            ProjectService(session).create_project("ghost", ProjectCreate(name="Portal"))

    def test_list_filters(self, session, user_id):
        service = ProjectService(session)
        service.create_project(user_id, ProjectCreate(name="A", status="active", priority="high"))
        service.create_project(user_id, ProjectCreate(name="B", status="draft", priority="low"))

        assert [p.name for p in service.list_projects(user_id, status="active")] == ["A"]
        assert [p.name for p in service.list_projects(user_id, priority="low")] == ["B"]
        assert len(service.list_projects(user_id)) == 2

    def test_list_only_member_projects(self, session, user_id, colleague_id, project_id):
        assert ProjectService(session).list_projects(colleague_id) == []

    def test_get_requires_membership(self, session, colleague_id, project_id):
        with pytest.raises(PermissionDeniedError):
            ProjectService(session).get_project(project_id, colleague_id)

    def test_get_unknown_project(self, session, user_id):
        with pytest.raises(NotFoundError):
            ProjectService(session).get_project("missing", user_id)

    def test_update_core_and_metadata_fields(self, session, user_id, project_id):
        updated = ProjectService(session).update_project(
            project_id, user_id, ProjectUpdate(name="Renamed", progress=40, client_name="City Hall")
        )

        assert updated.name == "Renamed"
        assert updated.metadata["progress"] == 40
        assert updated.metadata["client_name"] == "City Hall"
        assert updated.metadata["priority"] == "medium"

    def test_viewer_cannot_update(self, session, user_id, colleague_id, project_id):
        service = ProjectService(session)
        service.add_member(project_id, user_id, MemberCreate(email="colleague@example.com", role="viewer"))

        with pytest.raises(PermissionDeniedError):
            service.update_project(project_id, colleague_id, ProjectUpdate(name="Nope"))

    def test_only_owner_deletes(self, session, user_id, colleague_id, project_id):
        service = ProjectService(session)
        service.add_member(project_id, user_id, MemberCreate(email="colleague@example.com", role="admin"))

        with pytest.raises(PermissionDeniedError):
            service.delete_project(project_id, colleague_id)

        service.delete_project(project_id, user_id)
        with pytest.raises(NotFoundError):
            service.get_project(project_id, user_id)


class TestMembership:
    """Tests for project membership management."""

    def test_permissions_for_roles(self):
        assert permissions_for("viewer") == {"read": True, "write": False, "admin": False}
        assert permissions_for("member")["write"] is True
        assert permissions_for("admin")["admin"] is True

    def test_add_member(self, session, user_id, colleague_id, project_id):
        member = ProjectService(session).add_member(
            project_id, user_id, MemberCreate(email="Colleague@Example.com", role="member")
        )

        assert member.user_id == colleague_id
        assert member.email == "colleague@example.com"
        assert member.role == "member"

    @pytest.mark.parametrize(
        "payload, error_type, code",
        [
            (MemberCreate(email=""), ValidationFailedError, "EMAIL_REQUIRED"),
            (MemberCreate(email="colleague@example.com", role="owner"), ValidationFailedError, "INVALID_ROLE"),
            (MemberCreate(email="nobody@example.com"), NotFoundError, "USER_NOT_FOUND"),
        ],
    )
    def test_add_member_rejections(self, session, user_id, colleague_id, project_id, payload, error_type, code):
        with pytest.raises(error_type) as exc_info:
            ProjectService(session).add_member(project_id, user_id, payload)
        assert exc_info.value.code == code

    def test_add_existing_member(self, session, user_id, colleague_id, project_id):
        service = ProjectService(session)
        service.add_member(project_id, user_id, MemberCreate(email="colleague@example.com"))

        with pytest.raises(ValidationFailedError) as exc_info:
            service.add_member(project_id, user_id, MemberCreate(email="colleague@example.com"))
        assert exc_info.value.code == "ALREADY_MEMBER"

    def test_member_cannot_invite(self, session, user_id, colleague_id, project_id, create_user):
        create_user(email="third@example.com", tier=UserTier.GUEST)
        service = ProjectService(session)
        service.add_member(project_id, user_id, MemberCreate(email="colleague@example.com", role="member"))

        with pytest.raises(PermissionDeniedError):
            service.add_member(project_id, colleague_id, MemberCreate(email="third@example.com"))

    def test_update_member_role(self, session, user_id, colleague_id, project_id):
        service = ProjectService(session)
        member = service.add_member(project_id, user_id, MemberCreate(email="colleague@example.com"))

        updated = service.update_member_role(project_id, user_id, member.id, "viewer")

        assert updated.role == "viewer"
        assert updated.permissions["write"] is False

    def test_owner_cannot_be_removed(self, session, user_id, project_id):
        service = ProjectService(session)
        owner = service.list_members(project_id, user_id)[0]

        with pytest.raises(ValidationFailedError) as exc_info:
            service.remove_member(project_id, user_id, owner.id)
        assert exc_info.value.code == "CANNOT_REMOVE_OWNER"

    def test_remove_member(self, session, user_id, colleague_id, project_id):
        service = ProjectService(session)
        member = service.add_member(project_id, user_id, MemberCreate(email="colleague@example.com"))

        service.remove_member(project_id, user_id, member.id)

        assert [m.user_id for m in service.list_members(project_id, user_id)] == [user_id]


class TestWorkflowService:
    """Tests for workflow steps."""

    @staticmethod
    def _step(name: str, **kwargs) -> WorkflowStepCreate:
        return WorkflowStepCreate(workflow_type="proposal", stage="discovery", step=name, **kwargs)

    def test_step_order_auto_increments(self, session, user_id, project_id):
        service = WorkflowService(session)
        first = service.create_step(project_id, user_id, self._step("kickoff"))
        second = service.create_step(project_id, user_id, self._step("research"))

        assert (first.step_order, second.step_order) == (0, 1)
        assert first.status == "pending"
        assert first.progress_percentage == 0

    def test_list_filters_by_type(self, session, user_id, project_id):
        service = WorkflowService(session)
        service.create_step(project_id, user_id, self._step("kickoff"))
        service.create_step(
            project_id, user_id, WorkflowStepCreate(workflow_type="design", stage="ux", step="wireframes")
        )

        steps = service.list_steps(project_id, user_id, workflow_type="design")
        assert [s.step for s in steps] == ["wireframes"]

    def test_dependencies_gate_start(self, session, user_id, project_id):
        service = WorkflowService(session)
        research = service.create_step(project_id, user_id, self._step("research"))
        personas = service.create_step(project_id, user_id, self._step("personas", dependencies=[research.id]))

        with pytest.raises(ConflictError) as exc_info:
            service.update_step(personas.id, user_id, WorkflowStepUpdate(status="in_progress"))
        assert exc_info.value.code == "DEPENDENCIES_INCOMPLETE"
        assert exc_info.value.extra["pending_dependencies"] == [research.id]

        completed = service.update_step(research.id, user_id, WorkflowStepUpdate(status="completed"))
        assert completed.progress_percentage == 100
        assert completed.completed_at is not None

        started = service.update_step(personas.id, user_id, WorkflowStepUpdate(status="in_progress"))
        assert started.status == "in_progress"
        assert started.started_at is not None

    def test_self_dependency_rejected(self, session, user_id, project_id):
        service = WorkflowService(session)
        step = service.create_step(project_id, user_id, self._step("kickoff"))

        with pytest.raises(ValidationFailedError) as exc_info:
            service.update_step(step.id, user_id, WorkflowStepUpdate(dependencies=[step.id]))
        assert exc_info.value.code == "INVALID_DEPENDENCY"

    def test_reorder(self, session, user_id, project_id):
        service = WorkflowService(session)
        a = service.create_step(project_id, user_id, self._step("a"))
        b = service.create_step(project_id, user_id, self._step("b"))
        c = service.create_step(project_id, user_id, self._step("c"))

        steps = service.reorder_steps(project_id, user_id, [c.id, a.id, b.id])

        assert [s.step for s in steps] == ["c", "a", "b"]

    def test_reorder_unknown_steps(self, session, user_id, project_id):
        with pytest.raises(ValidationFailedError) as exc_info:
            WorkflowService(session).reorder_steps(project_id, user_id, ["missing"])
        assert exc_info.value.code == "UNKNOWN_STEPS"

    def test_delete_step(self, session, user_id, project_id):
        service = WorkflowService(session)
        step = service.create_step(project_id, user_id, self._step("kickoff"))

        service.delete_step(step.id, user_id)

        assert service.list_steps(project_id, user_id) == []
        with pytest.raises(NotFoundError):
            service.delete_step(step.id, user_id)

    def test_non_member_cannot_add_steps(self, session, colleague_id, project_id):
        with pytest.raises(PermissionDeniedError):
            WorkflowService(session).create_step(project_id, colleague_id, self._step("kickoff"))
