"""Tiered daily API quota, usage logging and cost accounting."""

from datetime import date, datetime, time, timedelta

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from rfp_workflow.db.base import utcnow
from rfp_workflow.db.tables import APIUsageLog, User, UserTierHistory
from rfp_workflow.errors import NotFoundError, PermissionDeniedError, QuotaExceededError
from rfp_workflow.models.usage import (
    APILimits,
    APIUsageBreakdown,
    RateLimitResult,
    SystemStats,
    UsageStats,
    UserOut,
    UserTier,
)
from rfp_workflow.utils.logging import LoggerMixin


UNLIMITED = -1

_FEATURE_LADDER = [
    (UserTier.STARTER, "basic_analysis"),
    (UserTier.BASIC, "rfp_analysis"),
    (UserTier.STANDARD, "market_research"),
    (UserTier.PROFESSIONAL, "persona_analysis"),
    (UserTier.BUSINESS, "proposal_generation"),
    (UserTier.ENTERPRISE, "advanced_analytics"),
    (UserTier.PREMIUM, "priority_support"),
    (UserTier.VIP, "custom_features"),
]


def _features_for(tier: UserTier) -> list[str]:
    if tier == UserTier.ADMIN:
        return ["*"]
    return [feature for required, feature in _FEATURE_LADDER if tier >= required]


_QUOTAS = {
    UserTier.GUEST: (10, 1000, 1),
    UserTier.STARTER: (50, 2000, 2),
    UserTier.BASIC: (100, 4000, 3),
    UserTier.STANDARD: (300, 6000, 5),
    UserTier.PROFESSIONAL: (500, 8000, 8),
    UserTier.BUSINESS: (1000, 10000, 10),
    UserTier.ENTERPRISE: (2000, 15000, 15),
    UserTier.PREMIUM: (5000, 20000, 20),
    UserTier.VIP: (10000, 30000, 30),
    UserTier.ADMIN: (UNLIMITED, UNLIMITED, UNLIMITED),
}

TIER_LIMITS: dict[UserTier, APILimits] = {
    tier: APILimits(
        daily_requests=daily,
        max_tokens_per_request=max_tokens,
        concurrent_requests=concurrent,
        premium_features=_features_for(tier),
    )
    for tier, (daily, max_tokens, concurrent) in _QUOTAS.items()
}

# USD per 1K tokens
API_COSTS: dict[str, dict[str, float]] = {
    "claude-3-5-sonnet": {"input": 0.003, "output": 0.015},
    "claude-3-sonnet": {"input": 0.003, "output": 0.015},
    "claude-3-haiku": {"input": 0.00025, "output": 0.00125},
    "claude-3-opus": {"input": 0.015, "output": 0.075},
    "openai-gpt-4": {"input": 0.01, "output": 0.03},
    "openai-gpt-3.5": {"input": 0.0005, "output": 0.0015},
    "rfp_analysis": {"input": 0.003, "output": 0.015},
    "market_research": {"input": 0.003, "output": 0.015},
    "persona_analysis": {"input": 0.003, "output": 0.015},
}

DEFAULT_COST_KEY = "claude-3-haiku"


def cost_key_for(name: str | None) -> str:
    """Map a model ID or API type onto an ``API_COSTS`` key."""
    if not name:
        return DEFAULT_COST_KEY
    name = name.lower()
    if name in API_COSTS:
        return name
    if name.startswith("gpt-"):
        name = f"openai-{name}"
    for key in sorted(API_COSTS, key=len, reverse=True):
        if name.startswith(key):
            return key
    return DEFAULT_COST_KEY


def next_midnight(now: datetime | None = None) -> datetime:
    now = now or utcnow()
    return datetime.combine(now.date() + timedelta(days=1), time.min)


class UsageLimiter(LoggerMixin):
    """Enforces per-tier daily quotas and records API usage."""

    def __init__(self, session: Session):
        self._session = session

    def _reset_if_needed(self, user: User, today: date | None = None) -> None:
        today = today or utcnow().date()
        if user.api_reset_date != today:
            user.daily_api_used = 0
            user.api_reset_date = today
            self._session.flush()

    def check_rate_limit(self, user_id: str, tokens_requested: int = 0) -> RateLimitResult:
        """Decide whether ``user_id`` may make another request now.

        Args:
            user_id: Caller ID.
            tokens_requested: Tokens the request expects to consume.

        Returns:
            The decision, with remaining requests (-1 for unlimited).
        """
        reset_time = next_midnight()
        user = self._session.get(User, user_id)
        if user is None:
            return RateLimitResult(allowed=False, remaining=0, reset_time=reset_time, message="User not found")

        self._reset_if_needed(user)

        if not user.is_active:
            return RateLimitResult(
                allowed=False, remaining=0, reset_time=reset_time, message="Account is deactivated"
            )

        tier = UserTier(user.user_tier)
        if tier == UserTier.ADMIN:
            return RateLimitResult(allowed=True, remaining=UNLIMITED, reset_time=reset_time)

        remaining = user.daily_api_limit - user.daily_api_used
        if remaining <= 0:
            return RateLimitResult(
                allowed=False,
                remaining=0,
                reset_time=reset_time,
                message=f"Daily limit of {user.daily_api_limit} requests reached for tier {tier.name}",
            )

        max_tokens = TIER_LIMITS[tier].max_tokens_per_request
        if max_tokens != UNLIMITED and tokens_requested > max_tokens:
            return RateLimitResult(
                allowed=False,
                remaining=remaining,
                reset_time=reset_time,
                message=f"Request of {tokens_requested} tokens exceeds the {max_tokens} token limit for tier {tier.name}",
            )

        return RateLimitResult(allowed=True, remaining=remaining, reset_time=reset_time)

    def enforce(self, user_id: str, tokens_requested: int = 0) -> RateLimitResult:
        """Like ``check_rate_limit`` but raises when the request is denied.

        Raises:
            QuotaExceededError: With ``remaining`` and ``reset_time`` attached.
        """
        result = self.check_rate_limit(user_id, tokens_requested)
        if not result.allowed:
            self.log_warning("Rate limit denied", user_id=user_id, reason=result.message)
            raise QuotaExceededError(
                result.message or "API limit exceeded",
                remaining=result.remaining,
                reset_time=result.reset_time.isoformat(),
            )
        return result

    def increment_usage(
        self,
        user_id: str,
        api_type: str,
        endpoint: str,
        tokens_used: int = 0,
        response_time_ms: int = 0,
        success: bool = True,
        model: str | None = None,
        ip_address: str | None = None,
    ) -> float:
        """Record one API call and return its estimated cost in USD.

        The daily counter moves only for successful, non-admin calls; the
        usage log row is written either way.
        """
        user = self._session.get(User, user_id)
        if user is None:
            self.log_warning("Usage for unknown user not recorded", user_id=user_id, api_type=api_type)
            return 0.0

        self._reset_if_needed(user)
        tier = UserTier(user.user_tier)
        if success and tier != UserTier.ADMIN:
            user.daily_api_used += 1

        rate = API_COSTS[cost_key_for(model or api_type)]["input"]
        cost = round(tokens_used / 1000 * rate, 6)

        self._session.add(
            APIUsageLog(
                user_id=user_id,
                api_type=api_type,
                endpoint=endpoint,
                tokens_used=tokens_used,
                cost_usd=cost,
                response_time_ms=response_time_ms,
                status="success" if success else "error",
                ip_address=ip_address,
                user_tier=int(tier),
            )
        )
        self._session.flush()
        self.log_info(
            "API usage recorded",
            user_id=user_id,
            api_type=api_type,
            tokens=tokens_used,
            cost_usd=cost,
            success=success,
        )
        return cost

    def update_user_tier(self, user_id: str, new_tier: UserTier, changed_by: str, reason: str = "") -> UserOut:
        user = self._session.get(User, user_id)
        if user is None:
            raise NotFoundError(f"User not found: {user_id}")

        old_tier = user.user_tier
        user.user_tier = int(new_tier)
        user.daily_api_limit = TIER_LIMITS[new_tier].daily_requests
        user.tier_upgraded_at = utcnow()
        self._session.add(
            UserTierHistory(
                user_id=user_id,
                old_tier=old_tier,
                new_tier=int(new_tier),
                changed_by=changed_by,
                reason=reason or None,
            )
        )
        self._session.flush()
        self.log_info("User tier updated", user_id=user_id, old_tier=old_tier, new_tier=int(new_tier))
        return UserOut.model_validate(user)

    def check_feature_access(self, user_id: str, feature: str) -> bool:
        user = self._session.get(User, user_id)
        if user is None or not user.is_active:
            return False
        features = TIER_LIMITS[UserTier(user.user_tier)].premium_features
        return "*" in features or feature in features

    def require_admin(self, user_id: str) -> None:
        """Raise unless ``user_id`` is an active ADMIN."""
        user = self._session.get(User, user_id)
        if user is None or not user.is_active or user.user_tier != UserTier.ADMIN:
            raise PermissionDeniedError("Administrator access required", code="ADMIN_REQUIRED")

    def get_usage_stats(self, user_id: str, days: int = 30) -> UsageStats:
        user = self._session.get(User, user_id)
        if user is None:
            raise NotFoundError(f"User not found: {user_id}")
        self._reset_if_needed(user)

        since = utcnow() - timedelta(days=days)
        logs = self._session.scalars(
            select(APIUsageLog).where(APIUsageLog.user_id == user_id, APIUsageLog.request_time >= since)
        ).all()

        by_api: dict[str, APIUsageBreakdown] = {}
        for log in logs:
            entry = by_api.setdefault(log.api_type, APIUsageBreakdown())
            entry.requests += 1
            entry.tokens += log.tokens_used
            entry.cost_usd = round(entry.cost_usd + log.cost_usd, 6)

        successful = sum(1 for log in logs if log.status == "success")
        return UsageStats(
            user_id=user_id,
            user_tier=UserTier(user.user_tier),
            daily_api_used=user.daily_api_used,
            daily_api_limit=user.daily_api_limit,
            period_days=days,
            total_requests=len(logs),
            successful_requests=successful,
            success_rate=round(successful / len(logs), 4) if logs else 0.0,
            total_tokens=sum(log.tokens_used for log in logs),
            total_cost_usd=round(sum(log.cost_usd for log in logs), 6),
            by_api_type=by_api,
        )

    def get_system_stats(self) -> SystemStats:
        start_of_day = datetime.combine(utcnow().date(), time.min)
        tier_counts = self._session.execute(
            select(User.user_tier, func.count(User.id)).group_by(User.user_tier)
        ).all()
        requests, tokens, cost = self._session.execute(
            select(
                func.count(APIUsageLog.id),
                func.coalesce(func.sum(APIUsageLog.tokens_used), 0),
                func.coalesce(func.sum(APIUsageLog.cost_usd), 0.0),
            ).where(APIUsageLog.request_time >= start_of_day)
        ).one()

        return SystemStats(
            total_users=self._session.scalar(select(func.count(User.id))) or 0,
            active_users=self._session.scalar(select(func.count(User.id)).where(User.is_active)) or 0,
            users_by_tier={UserTier(tier).name: count for tier, count in tier_counts},
            requests_today=requests,
            tokens_today=int(tokens),
            cost_today_usd=round(float(cost), 6),
        )
