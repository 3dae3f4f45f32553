"""Behaviour-based verification bar. Four rules, all required, checked cheapest first."""
import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import distinct, exists, func, select
from sqlalchemy.orm import Session

from .config import VERIFICATION_MIN_ACCOUNT_AGE_DAYS, VERIFICATION_MIN_ACTIVE_DAYS
from .db import as_utc
from .models import (
    ActivityEvent,
    CUSTOMER_INTERACTION_EVENTS,
    EVENT_STATUS_OPEN_FOR_WORK,
    Provider,
    ProviderArea,
    ProviderCategory,
    USAGE_EVENTS,
)

logger = logging.getLogger(__name__)


def _old_enough(db: Session, provider: Provider, now: datetime) -> bool:
    return now - as_utc(provider.created_at) >= timedelta(days=VERIFICATION_MIN_ACCOUNT_AGE_DAYS)


def _active_days(db: Session, provider: Provider, now: datetime) -> bool:
    days = db.scalar(
        select(func.count(distinct(func.date(ActivityEvent.created_at))))
        .where(ActivityEvent.provider_id == provider.id, ActivityEvent.event_type.in_(USAGE_EVENTS))
    )
    return (days or 0) >= VERIFICATION_MIN_ACTIVE_DAYS


def _served_customers(db: Session, provider: Provider, now: datetime) -> bool:
    return bool(db.scalar(select(exists().where(
        ActivityEvent.provider_id == provider.id,
        ActivityEvent.event_type.in_(CUSTOMER_INTERACTION_EVENTS + (EVENT_STATUS_OPEN_FOR_WORK,)),
    ))))


def _profile_complete(db: Session, provider: Provider, now: datetime) -> bool:
    if not (provider.phone or "").strip() or not (provider.description or "").strip():
        return False
    has_category = db.scalar(select(exists().where(ProviderCategory.provider_id == provider.id)))
    has_area = db.scalar(select(exists().where(ProviderArea.provider_id == provider.id)))
    return bool(has_category and has_area)


RULES = (
    ("account_age", _old_enough),
    ("active_days", _active_days),
    ("customer_interaction", _served_customers),
    ("profile_complete", _profile_complete),
)


def meets_verification_bar(db: Session, provider_id: int, now: datetime, provider: Optional[Provider] = None) -> bool:
    if provider is None:
        provider = db.get(Provider, provider_id)
    if provider is None:
        return False
    for name, rule in RULES:
        if not rule(db, provider, now):
            logger.debug("provider %s fails verification rule %s", provider_id, name)
            return False
    return True
