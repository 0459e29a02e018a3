"""Minimal user registry backing membership and quotas."""

from sqlalchemy import select
from sqlalchemy.orm import Session

from rfp_workflow.db.tables import User
from rfp_workflow.errors import ConflictError, NotFoundError
from rfp_workflow.models.usage import UserCreate, UserOut
from rfp_workflow.services.usage import TIER_LIMITS
from rfp_workflow.utils.logging import LoggerMixin


class UserService(LoggerMixin):
    def __init__(self, session: Session):
        self._session = session

    def create_user(self, payload: UserCreate) -> UserOut:
        email = payload.email.strip().lower()
        if self._session.scalar(select(User.id).where(User.email == email)):
            raise ConflictError(f"User already exists: {email}", code="USER_EXISTS")

        user = User(
            email=email,
            name=payload.name,
            user_tier=int(payload.tier),
            daily_api_used=0,
            daily_api_limit=TIER_LIMITS[payload.tier].daily_requests,
            is_active=True,
        )
        self._session.add(user)
        self._session.flush()
        self.log_info("User created", user_id=user.id, tier=payload.tier.name)
        return UserOut.model_validate(user)

    def get_user(self, user_id: str) -> UserOut:
        user = self._session.get(User, user_id)
        if user is None:
            raise NotFoundError(f"User not found: {user_id}")
        return UserOut.model_validate(user)

    def find_by_email(self, email: str) -> User | None:
        return self._session.scalar(select(User).where(User.email == email.strip().lower()))
