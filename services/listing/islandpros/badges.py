"""VERIFIED badge lifecycle plus the admin-managed badges."""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import DateTime, bindparam, delete, exists, select, text, update
from sqlalchemy.orm import Session

from .config import DECAY_WINDOW_DAYS
from .errors import ProviderNotFound
from .models import (
    ACTIVE,
    ActivityEvent,
    EMERGENCY_READY,
    ENGINE_EVENTS,
    EVENT_VERIFIED,
    GOV_APPROVED,
    Provider,
    ProviderBadge,
    VERIFIED,
)
from .verification import meets_verification_bar

logger = logging.getLogger(__name__)

ADMIN_BADGES = (GOV_APPROVED, EMERGENCY_READY)

_GRANT = text("""
    INSERT INTO provider_badges (provider_id, badge, created_at)
    VALUES (:pid, :badge, :ts)
    ON CONFLICT (provider_id, badge) DO NOTHING
""").bindparams(bindparam("ts", type_=DateTime(timezone=True)))


@dataclass
class BadgeChange:
    provider_id: int
    badge: str
    changed: bool
    present: bool


@dataclass
class SweepResult:
    reconciled: int = 0
    granted: int = 0
    revoked: int = 0
    decayed: int = 0
    skipped: int = 0
    failed: List[int] = field(default_factory=list)
    lifecycle_changed: int = 0


def _touch(db: Session, provider_id: int, now: datetime) -> None:
    db.execute(update(Provider).where(Provider.id == provider_id).values(status_last_updated_at=now))


def _grant(db: Session, provider_id: int, badge: str, now: datetime) -> bool:
    inserted = db.execute(_GRANT, {"pid": provider_id, "badge": badge, "ts": now}).rowcount == 1
    if inserted:
        _touch(db, provider_id, now)
    return inserted


def _revoke(db: Session, provider_id: int, badge: str, now: datetime) -> bool:
    deleted = db.execute(
        delete(ProviderBadge).where(ProviderBadge.provider_id == provider_id, ProviderBadge.badge == badge)
    ).rowcount > 0
    if deleted:
        _touch(db, provider_id, now)
    return deleted


def has_badge(db: Session, provider_id: int, badge: str) -> bool:
    return bool(db.scalar(select(exists().where(
        ProviderBadge.provider_id == provider_id, ProviderBadge.badge == badge,
    ))))


def reconcile_provider(db: Session, provider_id: int, now: datetime, provider: Optional[Provider] = None) -> BadgeChange:
    """Make VERIFIED match the verification bar. Caller commits."""
    qualifies = meets_verification_bar(db, provider_id, now, provider=provider)
    present = has_badge(db, provider_id, VERIFIED)
    changed = False
    if qualifies and not present:
        changed = _grant(db, provider_id, VERIFIED, now)
        if changed:
            db.add(ActivityEvent(provider_id=provider_id, event_type=EVENT_VERIFIED, created_at=now))
    elif present and not qualifies:
        changed = _revoke(db, provider_id, VERIFIED, now)
    if changed:
        logger.info("provider %s %s VERIFIED", provider_id, "granted" if qualifies else "lost")
    return BadgeChange(provider_id, VERIFIED, changed, qualifies)


def _recently_active(cutoff: datetime):
    return exists().where(
        ActivityEvent.provider_id == Provider.id,
        ActivityEvent.created_at >= cutoff,
        ActivityEvent.event_type.not_in(ENGINE_EVENTS),
    )


def decay_inactive(db: Session, now: datetime) -> List[int]:
    """Revoke VERIFIED from ACTIVE providers with no activity inside the decay window."""
    cutoff = now - timedelta(days=DECAY_WINDOW_DAYS)
    stale = db.scalars(
        select(Provider.id)
        .where(
            Provider.lifecycle_status == ACTIVE,
            ~_recently_active(cutoff),
            exists().where(ProviderBadge.provider_id == Provider.id, ProviderBadge.badge == VERIFIED),
        )
        .order_by(Provider.id)
    ).all()

    decayed = []
    for provider_id in stale:
        try:
            if _revoke(db, provider_id, VERIFIED, now):
                decayed.append(provider_id)
            db.commit()
        except Exception:
            db.rollback()
            logger.exception("decay failed for provider %s; skipping", provider_id)
    if decayed:
        logger.info("decayed VERIFIED from %d inactive providers", len(decayed))
    return decayed


def sweep_all(db: Session, now: datetime) -> SweepResult:
    """Reconcile every ACTIVE provider, then apply decay.

    Providers already past the decay window are left to the decay step so a
    sweep never grants VERIFIED only to take it away again.
    """
    result = SweepResult()
    cutoff = now - timedelta(days=DECAY_WINDOW_DAYS)
    active_ids = db.scalars(
        select(Provider.id).where(Provider.lifecycle_status == ACTIVE).order_by(Provider.id)
    ).all()
    stale_ids = set(db.scalars(
        select(Provider.id).where(Provider.lifecycle_status == ACTIVE, ~_recently_active(cutoff))
    ).all())
    logger.info("sweep started: %d active providers, %d past decay window", len(active_ids), len(stale_ids))

    for provider_id in active_ids:
        if provider_id in stale_ids:
            continue
        try:
            provider = db.get(Provider, provider_id)
            if provider is None or provider.lifecycle_status != ACTIVE:
                # left ACTIVE since the snapshot; no longer swept
                result.skipped += 1
                continue
            change = reconcile_provider(db, provider_id, now, provider=provider)
            db.commit()
        except Exception:
            db.rollback()
            logger.exception("reconcile failed for provider %s; skipping", provider_id)
            result.failed.append(provider_id)
            continue
        result.reconciled += 1
        if change.changed:
            if change.present:
                result.granted += 1
            else:
                result.revoked += 1

    result.decayed = len(decay_inactive(db, now))
    logger.info("sweep finished: %s", result)
    return result


def _require_provider(db: Session, provider_id: int) -> None:
    if db.get(Provider, provider_id) is None:
        raise ProviderNotFound(provider_id)


def grant_badge(db: Session, provider_id: int, badge: str, now: datetime) -> BadgeChange:
    if badge not in ADMIN_BADGES:
        raise ValueError(f"{badge} is not admin-managed")
    _require_provider(db, provider_id)
    return BadgeChange(provider_id, badge, _grant(db, provider_id, badge, now), True)


def revoke_badge(db: Session, provider_id: int, badge: str, now: datetime) -> BadgeChange:
    if badge not in ADMIN_BADGES:
        raise ValueError(f"{badge} is not admin-managed")
    _require_provider(db, provider_id)
    return BadgeChange(provider_id, badge, _revoke(db, provider_id, badge, now), False)
