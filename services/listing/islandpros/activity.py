"""Writes that feed the trust engine. Updates reconcile VERIFIED before returning."""
import logging
from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from .badges import BadgeChange, reconcile_provider
from .config import TRIAL_DAYS
from .errors import ListingValidationError, ProviderNotFound
from .models import (
    ActivityEvent,
    Area,
    Category,
    EVENT_CUSTOMER_CALL,
    EVENT_CUSTOMER_SMS,
    EVENT_CUSTOMER_WHATSAPP,
    EVENT_PROFILE_UPDATED,
    EVENT_STATUS_OPEN_FOR_WORK,
    EVENT_STATUS_UPDATED,
    OPEN_NOW,
    PLAN_PREMIUM,
    Provider,
    ProviderArea,
    ProviderCategory,
    SOURCE_TRIAL,
)

logger = logging.getLogger(__name__)

INTERACTION_EVENTS = {
    "CALL": EVENT_CUSTOMER_CALL,
    "SMS": EVENT_CUSTOMER_SMS,
    "WHATSAPP": EVENT_CUSTOMER_WHATSAPP,
}


def _provider(db: Session, provider_id: int) -> Provider:
    provider = db.get(Provider, provider_id)
    if provider is None:
        raise ProviderNotFound(provider_id)
    return provider


def _reconcile_after_write(db: Session, provider_id: int, now: datetime) -> Optional[BadgeChange]:
    try:
        change = reconcile_provider(db, provider_id, now)
        db.commit()
        return change
    except Exception:
        db.rollback()
        logger.exception("reconcile after write failed for provider %s", provider_id)
        return None


def log_event(db: Session, provider_id: int, event_type: str, now: datetime) -> None:
    db.add(ActivityEvent(provider_id=provider_id, event_type=event_type, created_at=now))


def record_activity(db: Session, provider_id: int, event_type: str, now: datetime) -> Optional[BadgeChange]:
    """Append one event (login, profile view, customer interaction, ...) and reconcile."""
    _provider(db, provider_id)
    log_event(db, provider_id, event_type, now)
    db.commit()
    return _reconcile_after_write(db, provider_id, now)


def record_interaction(db: Session, provider_id: int, channel: str, now: datetime) -> Optional[BadgeChange]:
    return record_activity(db, provider_id, INTERACTION_EVENTS[channel], now)


def change_status(db: Session, provider_id: int, status: str, now: datetime) -> Optional[BadgeChange]:
    provider = _provider(db, provider_id)
    provider.status = status
    provider.status_last_updated_at = now
    log_event(db, provider_id, EVENT_STATUS_UPDATED, now)
    if status == OPEN_NOW:
        log_event(db, provider_id, EVENT_STATUS_OPEN_FOR_WORK, now)
    db.commit()
    return _reconcile_after_write(db, provider_id, now)

def _replace_links(db: Session, model, provider_id: int, column: str, ids: Iterable[int]) -> None:
    db.execute(delete(model).where(model.provider_id == provider_id))
    for linked_id in dict.fromkeys(ids):
        db.add(model(provider_id=provider_id, **{column: linked_id}))


def _known_categories(db: Session, ids: List[int]) -> List[int]:
    known = set(db.scalars(select(Category.id).where(Category.id.in_(ids))).all())
    return [c for c in ids if c in known]


def _areas_on_island(db: Session, ids: List[int], island: str) -> List[int]:
    on_island = set(db.scalars(select(Area.id).where(Area.id.in_(ids), Area.island == island)).all())
    return [a for a in ids if a in on_island]


def register_provider(db: Session, fields: dict, now: datetime) -> Provider:
    """Create a provider on a PREMIUM trial. Unknown categories and off-island areas are dropped."""
    categories = _known_categories(db, fields.pop("categories", []))
    areas = _areas_on_island(db, fields.pop("areas", []), fields["island"])
    if not areas:
        raise ListingValidationError("INVALID_AREA", "At least one area on the provider's island is required", "areas")

    provider = Provider(
        **fields,
        plan=PLAN_PREMIUM,
        plan_source=SOURCE_TRIAL,
        trial_end_at=now + timedelta(days=TRIAL_DAYS),
        created_at=now,
        status_last_updated_at=now,
    )
    db.add(provider)
    db.flush()
    _replace_links(db, ProviderCategory, provider.id, "category_id", categories)
    _replace_links(db, ProviderArea, provider.id, "area_id", areas)
    db.commit()
    logger.info("provider %s registered on %s, trial ends %s", provider.id, provider.island, provider.trial_end_at)
    return provider


def update_profile(db: Session, provider_id: int, changes: dict, now: datetime) -> Optional[BadgeChange]:
    """Apply a partial profile update. Areas off the provider's island are dropped."""
    provider = _provider(db, provider_id)
    categories = changes.pop("categories", None)
    areas = changes.pop("areas", None)
    for name, value in changes.items():
        setattr(provider, name, value)

    if categories is not None:
        _replace_links(db, ProviderCategory, provider_id, "category_id", _known_categories(db, categories))
    if areas is not None:
        _replace_links(db, ProviderArea, provider_id, "area_id", _areas_on_island(db, areas, provider.island))

    log_event(db, provider_id, EVENT_PROFILE_UPDATED, now)
    db.commit()
    return _reconcile_after_write(db, provider_id, now)
