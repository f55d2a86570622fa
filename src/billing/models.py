from enum import Enum
from sqlalchemy import Column, Integer, ForeignKey, Uuid, Enum as SAEnum
from src.database import Base
from src.shared.models import AuditMixin, OwnedMixin, TimestampMixin


class PlanTier(str, Enum):
    FREE = "free"
    STARTER = "starter"
    ALPHA = "alpha"
    PRO = "pro"
    ENTERPRISE = "enterprise"


class SubscriptionStatus(str, Enum):
    ACTIVE = "active"
    TRIALING = "trialing"
    PAST_DUE = "past_due"
    CANCELED = "canceled"


class Subscription(Base, AuditMixin, OwnedMixin):
    """Written by the billing integration; read-only here."""
    __tablename__ = "subscriptions"

    plan_tier = Column(SAEnum(PlanTier), default=PlanTier.FREE, nullable=False)
    status = Column(SAEnum(SubscriptionStatus), default=SubscriptionStatus.ACTIVE, nullable=False)


class UsageCounter(Base, TimestampMixin):
    __tablename__ = "usage_counters"

    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    captures_committed = Column(Integer, default=0, nullable=False)
