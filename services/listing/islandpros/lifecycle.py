"""Lifecycle recompute: ACTIVE, INACTIVE or ARCHIVED from how recently a provider was seen."""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List

from sqlalchemy import select
from sqlalchemy.orm import Session

from .config import LIFECYCLE_ACTIVE_DAYS, LIFECYCLE_INACTIVE_DAYS
from .db import as_utc
from .models import ACTIVE, ARCHIVED, ActivityEvent, EVENT_ARCHIVED, INACTIVE, Provider
from .trust import last_active_expr

logger = logging.getLogger(__name__)


@dataclass
class LifecycleResult:
    activated: int = 0
    deactivated: int = 0
    archived: int = 0
    failed: List[int] = field(default_factory=list)

    @property
    def changed(self) -> int:
        return self.activated + self.deactivated + self.archived


def lifecycle_for(last_seen: datetime, now: datetime) -> str:
    if last_seen >= now - timedelta(days=LIFECYCLE_ACTIVE_DAYS):
        return ACTIVE
    if last_seen >= now - timedelta(days=LIFECYCLE_INACTIVE_DAYS):
        return INACTIVE
    return ARCHIVED


def recompute_lifecycle(db: Session, now: datetime) -> LifecycleResult:
    """Move every non-archived provider to the lifecycle its last sighting implies.

    A provider is last seen at its latest genuine activity, or at signup if
    that is later. Archived providers stay archived.
    """
    result = LifecycleResult()
    rows = db.execute(
        select(Provider.id, Provider.lifecycle_status, Provider.created_at, last_active_expr().label("last_active_at"))
        .where(Provider.lifecycle_status != ARCHIVED)
        .order_by(Provider.id)
    ).all()

    for provider_id, current, created_at, last_active_at in rows:
        target = lifecycle_for(max(as_utc(created_at), as_utc(last_active_at)), now)
        if target == current:
            continue
        try:
            provider = db.get(Provider, provider_id)
            provider.lifecycle_status = target
            provider.status_last_updated_at = now
            if target == ARCHIVED:
                db.add(ActivityEvent(provider_id=provider_id, event_type=EVENT_ARCHIVED, created_at=now))
            db.commit()
        except Exception:
            db.rollback()
            logger.exception("lifecycle update failed for provider %s; skipping", provider_id)
            result.failed.append(provider_id)
            continue
        logger.info("provider %s lifecycle %s -> %s", provider_id, current, target)
        if target == ACTIVE:
            result.activated += 1
        elif target == INACTIVE:
            result.deactivated += 1
        else:
            result.archived += 1

    return result
