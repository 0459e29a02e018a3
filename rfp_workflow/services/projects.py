"""Projects and project membership."""

from sqlalchemy import select
from sqlalchemy.orm import Session

from rfp_workflow.db.tables import Project, ProjectMember, User
from rfp_workflow.errors import NotFoundError, PermissionDeniedError, ValidationFailedError
from rfp_workflow.models.projects import (
    MemberCreate,
    MemberOut,
    ProjectCreate,
    ProjectOut,
    ProjectUpdate,
)
from rfp_workflow.utils.logging import LoggerMixin


OWNER_PERMISSIONS = {"read": True, "write": True, "admin": True, "delete": True}
MANAGER_ROLES = ("owner", "admin")


def permissions_for(role: str) -> dict[str, bool]:
    if role == "owner":
        return dict(OWNER_PERMISSIONS)
    return {"read": True, "write": role != "viewer", "admin": role == "admin"}


class ProjectService(LoggerMixin):
    """CRUD for projects with role-based access checks."""

    def __init__(self, session: Session):
        self._session = session

    def _get_project(self, project_id: str) -> Project:
        project = self._session.get(Project, project_id)
        if project is None:
            raise NotFoundError(f"Project not found: {project_id}")
        return project

    def _membership(self, project_id: str, user_id: str) -> ProjectMember | None:
        return self._session.scalar(
            select(ProjectMember).where(
                ProjectMember.project_id == project_id, ProjectMember.user_id == user_id
            )
        )

    def require_member(
        self, project_id: str, user_id: str, roles: tuple[str, ...] | None = None
    ) -> ProjectMember:
        """Return the caller's membership, raising 404/403 if missing or under-privileged."""
        self._get_project(project_id)
        member = self._membership(project_id, user_id)
        if member is None:
            raise PermissionDeniedError("You are not a member of this project")
        if roles and member.role not in roles:
            raise PermissionDeniedError(f"This action requires one of the roles: {', '.join(roles)}")
        return member

    @staticmethod
    def _to_out(project: Project, role: str | None = None) -> ProjectOut:
        return ProjectOut(
            id=project.id,
            name=project.name,
            description=project.description,
            category=project.category,
            status=project.status,
            metadata=project.project_metadata or {},
            owner_id=project.owner_id,
            role=role,
            created_at=project.created_at,
        )

    def create_project(self, user_id: str, payload: ProjectCreate) -> ProjectOut:
        """Create a project and make the caller its owner.

        Raises:
            ValidationFailedError: If the name is blank.
            NotFoundError: If the caller is not a registered user.
        """
        name = payload.name.strip()
        if not name:
            raise ValidationFailedError("Project name is required", code="NAME_REQUIRED")
        if self._session.get(User, user_id) is None:
            raise NotFoundError(f"User not found: {user_id}")

        project = Project(
            name=name,
            description=payload.description,
            category=payload.category or "general",
            status=payload.status,
            owner_id=user_id,
            project_metadata={
                "priority": payload.priority,
                "progress": 0,
                "start_date": payload.start_date.isoformat() if payload.start_date else None,
                "end_date": payload.end_date.isoformat() if payload.end_date else None,
                "client_name": payload.client_name,
                "budget": payload.budget,
                "tags": payload.tags,
            },
        )
        project.members.append(
            ProjectMember(user_id=user_id, role="owner", permissions=permissions_for("owner"))
        )
        self._session.add(project)
        self._session.flush()

        self.log_info("Project created", project_id=project.id, owner_id=user_id)
        return self._to_out(project, role="owner")

    def list_projects(
        self,
        user_id: str,
        status: str | None = None,
        priority: str | None = None,
        category: str | None = None,
    ) -> list[ProjectOut]:
        query = (
            select(Project, ProjectMember.role)
            .join(ProjectMember, ProjectMember.project_id == Project.id)
            .where(ProjectMember.user_id == user_id)
            .order_by(Project.created_at.desc())
        )
        if status:
            query = query.where(Project.status == status)
        if category:
            query = query.where(Project.category == category)

        projects = []
        for project, role in self._session.execute(query):
            # Priority lives in the JSON metadata column
            if priority and (project.project_metadata or {}).get("priority") != priority:
                continue
            projects.append(self._to_out(project, role))
        return projects

    def get_project(self, project_id: str, user_id: str) -> ProjectOut:
        member = self.require_member(project_id, user_id)
        return self._to_out(self._get_project(project_id), member.role)

    def update_project(self, project_id: str, user_id: str, payload: ProjectUpdate) -> ProjectOut:
        member = self.require_member(project_id, user_id)
        if not (member.permissions or {}).get("write"):
            raise PermissionDeniedError("You do not have write access to this project")

        project = self._get_project(project_id)
        changes = payload.model_dump(exclude_unset=True)
        for field in ("name", "description", "category", "status"):
            value = changes.pop(field, None)
            if value is not None:
                setattr(project, field, value)

        # Remaining fields live in metadata; reassign so the JSON column is marked dirty
        metadata = dict(project.project_metadata or {})
        metadata.update({k: v for k, v in changes.items() if k in metadata or v is not None})
        project.project_metadata = metadata
        self._session.flush()

        self.log_info("Project updated", project_id=project_id, fields=sorted(payload.model_fields_set))
        return self._to_out(project, member.role)

    def delete_project(self, project_id: str, user_id: str) -> None:
        project = self._get_project(project_id)
        if project.owner_id != user_id:
            raise PermissionDeniedError("Only the project owner can delete the project")
        self._session.delete(project)
        self._session.flush()
        self.log_info("Project deleted", project_id=project_id)

    @staticmethod
    def _member_out(member: ProjectMember) -> MemberOut:
        return MemberOut(
            id=member.id,
            user_id=member.user_id,
            email=member.user.email,
            name=member.user.name,
            role=member.role,
            permissions=member.permissions or {},
            joined_at=member.joined_at,
        )

    def list_members(self, project_id: str, user_id: str) -> list[MemberOut]:
        self.require_member(project_id, user_id)
        members = self._session.scalars(
            select(ProjectMember)
            .where(ProjectMember.project_id == project_id)
            .order_by(ProjectMember.joined_at)
        )
        return [self._member_out(m) for m in members]

    def add_member(self, project_id: str, user_id: str, payload: MemberCreate) -> MemberOut:
        """Invite an existing user to a project.

        Raises:
            ValidationFailedError: Missing email, owner role requested, or already a member.
            PermissionDeniedError: Caller is not an owner or admin.
            NotFoundError: No user with that email.
        """
        email = payload.email.strip().lower()
        if not email:
            raise ValidationFailedError("Email is required", code="EMAIL_REQUIRED")
        self.require_member(project_id, user_id, roles=MANAGER_ROLES)
        if payload.role == "owner":
            raise ValidationFailedError("A project can only have one owner", code="INVALID_ROLE")

        invitee = self._session.scalar(select(User).where(User.email == email))
        if invitee is None:
            raise NotFoundError(f"No user registered with email {email}", code="USER_NOT_FOUND")
        if self._membership(project_id, invitee.id) is not None:
            raise ValidationFailedError("User is already a member of this project", code="ALREADY_MEMBER")

        member = ProjectMember(
            project_id=project_id,
            user_id=invitee.id,
            role=payload.role,
            permissions=permissions_for(payload.role),
        )
        self._session.add(member)
        self._session.flush()
        self.log_info("Member added", project_id=project_id, member_user_id=invitee.id, role=payload.role)
        return self._member_out(member)

    def _get_member(self, project_id: str, member_id: str) -> ProjectMember:
        member = self._session.get(ProjectMember, member_id)
        if member is None or member.project_id != project_id:
            raise NotFoundError(f"Member not found: {member_id}")
        return member

    def update_member_role(self, project_id: str, user_id: str, member_id: str, role: str) -> MemberOut:
        self.require_member(project_id, user_id, roles=MANAGER_ROLES)
        member = self._get_member(project_id, member_id)
        if member.role == "owner" or role == "owner":
            raise ValidationFailedError("The owner role cannot be changed", code="INVALID_ROLE")
        member.role = role
        member.permissions = permissions_for(role)
        self._session.flush()
        return self._member_out(member)

    def remove_member(self, project_id: str, user_id: str, member_id: str) -> None:
        self.require_member(project_id, user_id, roles=MANAGER_ROLES)
        member = self._get_member(project_id, member_id)
        if member.role == "owner":
            raise ValidationFailedError("The project owner cannot be removed", code="CANNOT_REMOVE_OWNER")
        self._session.delete(member)
        self._session.flush()
        self.log_info("Member removed", project_id=project_id, member_id=member_id)
