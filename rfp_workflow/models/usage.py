"""User tiers, quota and usage statistics models."""

from datetime import datetime
from enum import IntEnum

from pydantic import BaseModel, Field


class UserTier(IntEnum):
    GUEST = 0
    STARTER = 1
    BASIC = 2
    STANDARD = 3
    PROFESSIONAL = 4
    BUSINESS = 5
    ENTERPRISE = 6
    PREMIUM = 7
    VIP = 8
    ADMIN = 9


class APILimits(BaseModel):
    """Quota for one tier; -1 means unlimited."""

    daily_requests: int
    max_tokens_per_request: int
    concurrent_requests: int
    premium_features: list[str] = Field(default_factory=list)


class RateLimitResult(BaseModel):
    allowed: bool
    remaining: int
    reset_time: datetime
    message: str | None = None


class APIUsageBreakdown(BaseModel):
    requests: int = 0
    tokens: int = 0
    cost_usd: float = 0.0


class UsageStats(BaseModel):
    user_id: str
    user_tier: UserTier
    daily_api_used: int
    daily_api_limit: int
    period_days: int
    total_requests: int = 0
    successful_requests: int = 0
    success_rate: float = 0.0
    total_tokens: int = 0
    total_cost_usd: float = 0.0
    by_api_type: dict[str, APIUsageBreakdown] = Field(default_factory=dict)


class SystemStats(BaseModel):
    total_users: int
    active_users: int
    users_by_tier: dict[str, int]
    requests_today: int
    tokens_today: int
    cost_today_usd: float


class TierUpdateRequest(BaseModel):
    tier: UserTier
    reason: str = Field(default="", max_length=500)


class UserCreate(BaseModel):
    email: str = Field(..., min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")
    name: str | None = None
    tier: UserTier = UserTier.GUEST


class UserOut(BaseModel):
    id: str
    email: str
    name: str | None = None
    user_tier: UserTier
    daily_api_used: int
    daily_api_limit: int
    is_active: bool

    model_config = {"from_attributes": True}
