"""Trust tier and premium/emergency eligibility, in Python and as SQL twins."""
import math
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

from sqlalchemy import DateTime, and_, case, exists, func, literal, or_, select

from .db import as_utc
from .models import (
    ActivityEvent,
    EMERGENCY_READY,
    ENGINE_EVENTS,
    GOV_APPROVED,
    PLAN_PREMIUM,
    Provider,
    ProviderBadge,
    SOURCE_TRIAL,
    VERIFIED,
)

TIER_GOV_APPROVED = 3
TIER_VERIFIED = 2
TIER_DEFAULT = 1
TRUST_TIERS = (TIER_DEFAULT, TIER_VERIFIED, TIER_GOV_APPROVED)

# Sorts below any real activity timestamp
NEVER_ACTIVE = datetime(1970, 1, 1, tzinfo=timezone.utc)


def resolve_trust_tier(badges: Iterable[str]) -> int:
    badges = set(badges)
    if GOV_APPROVED in badges:
        return TIER_GOV_APPROVED
    if VERIFIED in badges:
        return TIER_VERIFIED
    return TIER_DEFAULT


def is_premium_active(plan: str, plan_source: Optional[str], trial_end_at: Optional[datetime], now: datetime) -> bool:
    if plan != PLAN_PREMIUM:
        return False
    if plan_source != SOURCE_TRIAL:
        return True
    return trial_end_at is not None and as_utc(trial_end_at) > now


def trial_days_left(trial_end_at: Optional[datetime], now: datetime) -> int:
    if trial_end_at is None or as_utc(trial_end_at) <= now:
        return 0
    return math.ceil((as_utc(trial_end_at) - now) / timedelta(days=1))


def is_emergency_boost_eligible(premium_active: bool, badges: Iterable[str]) -> bool:
    return premium_active and EMERGENCY_READY in set(badges)


# --- SQL twins (correlated to Provider) ---

def has_badge(badge: str):
    return exists().where(ProviderBadge.provider_id == Provider.id, ProviderBadge.badge == badge)


def trust_tier_expr():
    return case(
        (has_badge(GOV_APPROVED), TIER_GOV_APPROVED),
        (has_badge(VERIFIED), TIER_VERIFIED),
        else_=TIER_DEFAULT,
    )


def premium_active_clause(now: datetime):
    # a TRIAL with a NULL end date compares as NULL and so falls through to 0
    return and_(
        Provider.plan == PLAN_PREMIUM,
        or_(Provider.plan_source != SOURCE_TRIAL, Provider.trial_end_at > now),
    )


def premium_active_expr(now: datetime):
    return case((premium_active_clause(now), 1), else_=0)


def emergency_eligible_expr(now: datetime):
    return case((and_(premium_active_clause(now), has_badge(EMERGENCY_READY)), 1), else_=0)


def last_active_expr():
    latest = (
        select(func.max(ActivityEvent.created_at))
        .where(ActivityEvent.provider_id == Provider.id, ActivityEvent.event_type.not_in(ENGINE_EVENTS))
        .scalar_subquery()
    )
    return func.coalesce(latest, literal(NEVER_ACTIVE, DateTime(timezone=True)))
