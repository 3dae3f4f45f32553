import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException
from sqlalchemy.orm import Session

from ..db import get_db, utcnow
from .. import badges, lifecycle, schemas
from ..activity import log_event
from ..app_settings import set_emergency_mode
from ..config import ADMIN_KEY
from ..errors import ProviderNotFound
from ..models import ARCHIVED, EVENT_ARCHIVED, Provider

logger = logging.getLogger(__name__)


def admin_required(x_admin_key: Optional[str] = Header(None)):
    if not x_admin_key or x_admin_key != ADMIN_KEY:
        raise HTTPException(status_code=401, detail="Unauthorized")
    # last 8 chars identify the actor in logs; never log the key
    return x_admin_key[-8:]


router = APIRouter(prefix="/admin", tags=["admin"])


@router.patch("/settings/emergency-mode", response_model=schemas.EmergencyMode)
def toggle_emergency_mode(
    payload: schemas.EmergencyModeUpdate,
    db: Session = Depends(get_db),
    actor: str = Depends(admin_required),
):
    set_emergency_mode(db, payload.enabled, utcnow())
    logger.info("emergency mode %s by admin ...%s", "enabled" if payload.enabled else "disabled", actor)
    return schemas.EmergencyMode(enabled=payload.enabled)


def _admin_badge(badge: str) -> str:
    if badge not in badges.ADMIN_BADGES:
        raise HTTPException(status_code=400, detail=f"Badge must be one of {', '.join(badges.ADMIN_BADGES)}")
    return badge


@router.put("/providers/{provider_id}/badges/{badge}", response_model=schemas.BadgeChangeOut)
def grant_badge(provider_id: int, badge: str, db: Session = Depends(get_db), actor: str = Depends(admin_required)):
    change = badges.grant_badge(db, provider_id, _admin_badge(badge), utcnow())
    db.commit()
    return change


@router.delete("/providers/{provider_id}/badges/{badge}", response_model=schemas.BadgeChangeOut)
def revoke_badge(provider_id: int, badge: str, db: Session = Depends(get_db), actor: str = Depends(admin_required)):
    change = badges.revoke_badge(db, provider_id, _admin_badge(badge), utcnow())
    db.commit()
    return change


@router.put("/providers/{provider_id}/lifecycle")
def set_lifecycle(
    provider_id: int,
    payload: schemas.LifecycleUpdate,
    db: Session = Depends(get_db),
    actor: str = Depends(admin_required),
):
    provider = db.get(Provider, provider_id)
    if provider is None:
        raise ProviderNotFound(provider_id)
    now = utcnow()
    if provider.lifecycle_status != payload.lifecycle_status:
        provider.lifecycle_status = payload.lifecycle_status
        provider.status_last_updated_at = now
        if payload.lifecycle_status == ARCHIVED:
            log_event(db, provider_id, EVENT_ARCHIVED, now)
    db.commit()
    return {"id": provider_id, "lifecycle_status": provider.lifecycle_status}


@router.post("/jobs/recompute-lifecycle")
def recompute_lifecycle(db: Session = Depends(get_db), actor: str = Depends(admin_required)):
    result = lifecycle.recompute_lifecycle(db, utcnow())
    logger.info("lifecycle recompute by admin ...%s: %d changed", actor, result.changed)
    return {
        "activated": result.activated,
        "deactivated": result.deactivated,
        "archived": result.archived,
        "failed": result.failed,
    }
