"""Public provider listing: validation, ranked keyset query, page assembly."""
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional, Sequence

from sqlalchemy import exists, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .config import LISTING_DEFAULT_LIMIT, LISTING_MAX_LIMIT
from .cursor import decode_cursor, encode_cursor
from .db import as_utc
from .errors import ListingValidationError, ProviderNotFound, StoreError
from .models import (
    ARCHIVED,
    Area,
    AVAILABILITY_STATUSES,
    BUSY_LIMITED,
    Category,
    ISLANDS,
    MAX_ID,
    NOT_TAKING_WORK,
    OPEN_NOW,
    Provider,
    ProviderArea,
    ProviderBadge,
    ProviderCategory,
)
from .ranking import KeyTuple, RankingMode
from .schemas import AreaOut, ProviderCard, ProviderDetail, Suggestion
from .trust import NEVER_ACTIVE, trial_days_left

logger = logging.getLogger(__name__)

DISPLAY_COLUMNS = (
    Provider.name,
    Provider.phone,
    Provider.whatsapp,
    Provider.island,
    Provider.status,
    Provider.lifecycle_status,
    Provider.plan,
)


@dataclass
class ListingRequest:
    status: Optional[str] = None
    island: Optional[str] = None
    category_id: Optional[int] = None
    area_id: Optional[int] = None
    limit: int = LISTING_DEFAULT_LIMIT
    cursor: Optional[KeyTuple] = None


@dataclass
class ListingPage:
    providers: List[ProviderCard]
    next_cursor: Optional[str]
    suggestions: List[Suggestion] = field(default_factory=list)

    def to_response(self) -> dict:
        body = {
            "providers": [p.model_dump(mode="json") for p in self.providers],
            "nextCursor": self.next_cursor,
        }
        if self.suggestions:
            body["suggestions"] = [s.model_dump(mode="json") for s in self.suggestions]
        return body


# --- validation ---

def _blank(raw) -> bool:
    return raw is None or (isinstance(raw, str) and raw.strip() == "")


def _enum(raw, allowed: Sequence[str], code: str, name: str) -> Optional[str]:
    if _blank(raw):
        return None
    if raw not in allowed:
        raise ListingValidationError(code, f"{name} must be one of {', '.join(allowed)}", name)
    return raw


def _positive_int(raw, code: str, name: str) -> Optional[int]:
    if _blank(raw):
        return None
    try:
        value = int(str(raw).strip())
    except ValueError:
        raise ListingValidationError(code, f"{name} must be a positive integer", name)
    if not 1 <= value <= MAX_ID:
        raise ListingValidationError(code, f"{name} must be a positive integer", name)
    return value


def _limit(raw) -> int:
    if _blank(raw):
        return LISTING_DEFAULT_LIMIT
    message = f"Limit must be between 1 and {LISTING_MAX_LIMIT}"
    try:
        value = int(str(raw).strip())
    except ValueError:
        raise ListingValidationError("INVALID_LIMIT", message, "limit")
    if value < 1:
        raise ListingValidationError("INVALID_LIMIT", message, "limit")
    return min(value, LISTING_MAX_LIMIT)


def parse_listing_request(
    mode: RankingMode,
    status=None,
    island=None,
    category_id=None,
    area_id=None,
    limit=None,
    cursor=None,
) -> ListingRequest:
    """Validate raw query values. Each filter is checked on its own; the first bad one wins."""
    return ListingRequest(
        status=_enum(status, AVAILABILITY_STATUSES, "INVALID_STATUS", "status"),
        island=_enum(island, ISLANDS, "INVALID_ISLAND", "island"),
        category_id=_positive_int(category_id, "INVALID_CATEGORY", "categoryId"),
        area_id=_positive_int(area_id, "INVALID_AREA", "areaId"),
        limit=_limit(limit),
        cursor=None if _blank(cursor) else decode_cursor(mode, cursor),
    )


# --- query ---

def build_listing_query(request: ListingRequest, mode: RankingMode, now: datetime):
    filters = [Provider.lifecycle_status != ARCHIVED]
    if request.status:
        filters.append(Provider.status == request.status)
    if request.island:
        filters.append(Provider.island == request.island)
    if request.category_id is not None:
        filters.append(exists().where(
            ProviderCategory.provider_id == Provider.id,
            ProviderCategory.category_id == request.category_id,
        ))
    if request.area_id is not None:
        filters.append(exists().where(
            ProviderArea.provider_id == Provider.id,
            ProviderArea.area_id == request.area_id,
        ))

    ranked = select(*DISPLAY_COLUMNS, *mode.columns(now)).where(*filters).subquery("ranked")

    stmt = select(ranked)
    if request.cursor is not None:
        stmt = stmt.where(mode.after_cursor(ranked.c, request.cursor))
    # one extra row tells us whether another page exists
    return stmt.order_by(*mode.order_by(ranked.c)).limit(request.limit + 1)


def _badges_for(db: Session, provider_ids: List[int]) -> Dict[int, List[str]]:
    found = defaultdict(list)
    if not provider_ids:
        return found
    rows = db.execute(
        select(ProviderBadge.provider_id, ProviderBadge.badge)
        .where(ProviderBadge.provider_id.in_(provider_ids))
        .order_by(ProviderBadge.badge)
    )
    for provider_id, badge in rows:
        found[provider_id].append(badge)
    return found


def _card(row, badges: List[str], mode: RankingMode) -> ProviderCard:
    last_active = as_utc(row["last_active_at"])
    return ProviderCard(
        id=row["id"],
        name=row["name"],
        phone=row["phone"],
        whatsapp=row["whatsapp"],
        island=row["island"],
        status=row["status"],
        lifecycle_status=row["lifecycle_status"],
        plan=row["plan"],
        badges=badges,
        trust_tier=row["trust_tier"],
        is_premium_active=bool(row["is_premium_active"]),
        emergency_boost_eligible=bool(row["emergency_boost_eligible"]) if mode.emergency else None,
        last_active_at=None if last_active == NEVER_ACTIVE else last_active,
        status_last_updated_at=as_utc(row["status_last_updated_at"]),
    )


def list_providers(db: Session, request: ListingRequest, mode: RankingMode, now: datetime) -> ListingPage:
    try:
        rows = db.execute(build_listing_query(request, mode, now)).mappings().all()
        page = rows[:request.limit]
        badges = _badges_for(db, [row["id"] for row in page])
    except SQLAlchemyError as exc:
        db.rollback()
        raise StoreError() from exc

    next_cursor = None
    if len(rows) > request.limit and page:
        next_cursor = encode_cursor(mode, mode.key_tuple(page[-1]))

    suggestions = []
    if not page and request.cursor is None:
        suggestions = suggest_relaxations(request)
        logger.debug("empty listing for %s; %d suggestions", request, len(suggestions))

    return ListingPage(
        providers=[_card(row, badges.get(row["id"], []), mode) for row in page],
        next_cursor=next_cursor,
        suggestions=suggestions,
    )


# --- single provider and lookups ---

def provider_detail(db: Session, provider_id: int, mode: RankingMode, now: datetime) -> ProviderDetail:
    """Card fields plus profile extras. Archived providers are not found."""
    try:
        row = db.execute(
            select(
                *DISPLAY_COLUMNS,
                Provider.description,
                Provider.emergency_calls_accepted,
                Provider.trial_end_at,
                *mode.columns(now),
            ).where(Provider.id == provider_id, Provider.lifecycle_status != ARCHIVED)
        ).mappings().first()
        if row is None:
            raise ProviderNotFound(provider_id)
        badges = _badges_for(db, [provider_id]).get(provider_id, [])
        categories = db.scalars(
            select(Category.name)
            .join(ProviderCategory, ProviderCategory.category_id == Category.id)
            .where(ProviderCategory.provider_id == provider_id)
            .order_by(Category.name)
        ).all()
        areas = db.execute(
            select(Area.id, Area.name, Area.island)
            .join(ProviderArea, ProviderArea.area_id == Area.id)
            .where(ProviderArea.provider_id == provider_id)
            .order_by(Area.name)
        ).all()
    except SQLAlchemyError as exc:
        db.rollback()
        raise StoreError() from exc

    card = _card(row, badges, mode)
    trial_end_at = as_utc(row["trial_end_at"])
    return ProviderDetail(
        **card.model_dump(),
        description=row["description"],
        emergency_calls_accepted=bool(row["emergency_calls_accepted"]),
        trial_end_at=trial_end_at,
        trial_days_left=trial_days_left(trial_end_at, now),
        categories=list(categories),
        areas=[AreaOut(id=a.id, name=a.name, island=a.island) for a in areas],
    )


def areas_for_island(db: Session, island) -> List[AreaOut]:
    if _blank(island):
        raise ListingValidationError("INVALID_ISLAND", "island is required", "island")
    island = _enum(island, ISLANDS, "INVALID_ISLAND", "island")
    try:
        rows = db.execute(select(Area.id, Area.name, Area.island).where(Area.island == island).order_by(Area.name))
        return [AreaOut(id=r.id, name=r.name, island=r.island) for r in rows]
    except SQLAlchemyError as exc:
        db.rollback()
        raise StoreError() from exc


# --- suggestions ---

@dataclass(frozen=True)
class RelaxationRule:
    id: str
    applies: Callable[[ListingRequest], bool]
    patch: Dict[str, Optional[str]]
    label: str
    description: str


RELAXATION_RULES = (
    RelaxationRule(
        "include_busy", lambda r: r.status == OPEN_NOW, {"status": BUSY_LIMITED},
        "Include busy providers", "Also show providers with limited availability",
    ),
    RelaxationRule(
        "any_status", lambda r: r.status in (BUSY_LIMITED, NOT_TAKING_WORK), {"status": None},
        "Any availability", "Show providers regardless of availability",
    ),
    RelaxationRule(
        "all_areas", lambda r: r.area_id is not None, {"areaId": None},
        "All areas", "Remove the area filter to see the whole island",
    ),
    RelaxationRule(
        "any_category", lambda r: r.category_id is not None, {"categoryId": None},
        "Other services", "Remove the category filter",
    ),
    RelaxationRule(
        "nearby_islands", lambda r: r.island is not None, {"island": None},
        "Check nearby islands", "Remove island filter to see providers on other islands",
    ),
)


def suggest_relaxations(request: ListingRequest) -> List[Suggestion]:
    return [
        Suggestion(id=rule.id, label=rule.label, description=rule.description, patch=rule.patch)
        for rule in RELAXATION_RULES
        if rule.applies(request)
    ]
