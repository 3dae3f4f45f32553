from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from ..db import get_db, utcnow
from .. import activity, listing, schemas
from ..app_settings import current_ranking_mode, emergency_mode_enabled
from ..models import EVENT_LOGIN, EVENT_PROFILE_VIEW

router = APIRouter(tags=["providers"])


def _ack(change) -> dict:
    if change is None:
        return {"ok": True, "verified": None}
    return {"ok": True, "verified": change.present}


@router.get("/providers")
def list_providers(
    status: Optional[str] = None,
    island: Optional[str] = None,
    category_id: Optional[str] = Query(default=None, alias="categoryId"),
    area_id: Optional[str] = Query(default=None, alias="areaId"),
    limit: Optional[str] = None,
    cursor: Optional[str] = None,
    db: Session = Depends(get_db),
):
    mode = current_ranking_mode(db)
    request = listing.parse_listing_request(
        mode,
        status=status,
        island=island,
        category_id=category_id,
        area_id=area_id,
        limit=limit,
        cursor=cursor,
    )
    return listing.list_providers(db, request, mode, utcnow()).to_response()


@router.get("/providers/{provider_id}", response_model=schemas.ProviderDetail)
def get_provider(provider_id: int, db: Session = Depends(get_db)):
    return listing.provider_detail(db, provider_id, current_ranking_mode(db), utcnow())


@router.post("/providers", status_code=201)
def register_provider(payload: schemas.ProviderCreate, db: Session = Depends(get_db)):
    provider = activity.register_provider(db, payload.model_dump(), utcnow())
    return {"id": provider.id, "trial_end_at": provider.trial_end_at}


@router.get("/areas", response_model=List[schemas.AreaOut])
def list_areas(island: Optional[str] = None, db: Session = Depends(get_db)):
    return listing.areas_for_island(db, island)


@router.get("/settings/emergency-mode", response_model=schemas.EmergencyMode)
def get_emergency_mode(db: Session = Depends(get_db)):
    return schemas.EmergencyMode(enabled=emergency_mode_enabled(db))


# --- provider self-service; each write reconciles the VERIFIED badge ---

@router.put("/providers/{provider_id}")
def update_profile(provider_id: int, payload: schemas.ProfileUpdate, db: Session = Depends(get_db)):
    change = activity.update_profile(db, provider_id, payload.model_dump(exclude_unset=True), utcnow())
    return _ack(change)


@router.put("/providers/{provider_id}/status")
def update_status(provider_id: int, payload: schemas.StatusUpdate, db: Session = Depends(get_db)):
    return _ack(activity.change_status(db, provider_id, payload.status, utcnow()))


@router.post("/providers/{provider_id}/interactions", status_code=201)
def log_interaction(provider_id: int, payload: schemas.InteractionLog, db: Session = Depends(get_db)):
    return _ack(activity.record_interaction(db, provider_id, payload.channel, utcnow()))


@router.post("/providers/{provider_id}/login")
def log_login(provider_id: int, db: Session = Depends(get_db)):
    return _ack(activity.record_activity(db, provider_id, EVENT_LOGIN, utcnow()))


@router.post("/providers/{provider_id}/views", status_code=201)
def log_profile_view(provider_id: int, db: Session = Depends(get_db)):
    return _ack(activity.record_activity(db, provider_id, EVENT_PROFILE_VIEW, utcnow()))
