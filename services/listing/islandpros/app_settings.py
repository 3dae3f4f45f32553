from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .config import EMERGENCY_MODE_DEFAULT
from .errors import StoreError
from .models import AppSetting
from .ranking import RankingMode, ranking_mode

EMERGENCY_MODE_KEY = "emergency_mode"


def emergency_mode_enabled(db: Session) -> bool:
    try:
        row = db.get(AppSetting, EMERGENCY_MODE_KEY)
    except SQLAlchemyError as exc:
        db.rollback()
        raise StoreError() from exc
    if row is None:
        return EMERGENCY_MODE_DEFAULT
    return bool((row.value or {}).get("enabled", False))


def set_emergency_mode(db: Session, enabled: bool, now: datetime) -> None:
    row = db.get(AppSetting, EMERGENCY_MODE_KEY)
    if row is None:
        db.add(AppSetting(key=EMERGENCY_MODE_KEY, value={"enabled": enabled}, updated_at=now))
    else:
        row.value = {"enabled": enabled}
        row.updated_at = now
    db.commit()


def current_ranking_mode(db: Session) -> RankingMode:
    """Read the flag once; the request uses this mode for query and cursor alike."""
    return ranking_mode(emergency_mode_enabled(db))
