"""Listing order: one lexicographic key list per ranking mode."""
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterable, List, Mapping, Sequence, Tuple

from sqlalchemy import and_, case, or_

from .db import as_utc
from .models import ACTIVE, Provider
from .trust import (
    NEVER_ACTIVE,
    emergency_eligible_expr,
    is_emergency_boost_eligible,
    is_premium_active,
    last_active_expr,
    premium_active_expr,
    resolve_trust_tier,
    trust_tier_expr,
)

TIER = "tier"
FLAG = "flag"
TIMESTAMP = "timestamp"
IDENTITY = "id"

KeyTuple = Tuple[Any, ...]


@dataclass(frozen=True)
class RankKey:
    name: str
    kind: str
    descending: bool
    build: Callable[[datetime], Any]

    def normalize(self, value: Any) -> Any:
        if self.kind == FLAG:
            return bool(value)
        if self.kind == TIMESTAMP:
            return NEVER_ACTIVE if value is None else as_utc(value)
        return int(value)

    def to_sql(self, value: Any) -> Any:
        # flags are 0/1 CASE expressions in SQL
        return int(value) if self.kind == FLAG else value

    def sortable(self, value: Any) -> Any:
        if self.kind == TIMESTAMP:
            value = (value - NEVER_ACTIVE) // timedelta(microseconds=1)
        elif self.kind == FLAG:
            value = int(value)
        return -value if self.descending else value


TRUST_TIER = RankKey("trust_tier", TIER, True, lambda now: trust_tier_expr())
PREMIUM_ACTIVE = RankKey("is_premium_active", FLAG, True, premium_active_expr)
EMERGENCY_BOOST = RankKey("emergency_boost_eligible", FLAG, True, emergency_eligible_expr)
LIFECYCLE_ACTIVE = RankKey(
    "lifecycle_active", FLAG, True,
    lambda now: case((Provider.lifecycle_status == ACTIVE, 1), else_=0),
)
LAST_ACTIVE = RankKey("last_active_at", TIMESTAMP, True, lambda now: last_active_expr())
STATUS_UPDATED = RankKey("status_last_updated_at", TIMESTAMP, True, lambda now: Provider.status_last_updated_at)
PROVIDER_ID = RankKey("id", IDENTITY, False, lambda now: Provider.id)


@dataclass(frozen=True)
class RankingMode:
    name: str
    keys: Tuple[RankKey, ...]

    @property
    def emergency(self) -> bool:
        return EMERGENCY_BOOST in self.keys

    @property
    def key_names(self) -> Tuple[str, ...]:
        return tuple(key.name for key in self.keys)

    def key_tuple(self, record: Mapping[str, Any]) -> KeyTuple:
        return tuple(key.normalize(record[key.name]) for key in self.keys)

    def sort_key(self, key_tuple: KeyTuple) -> tuple:
        return tuple(key.sortable(value) for key, value in zip(self.keys, key_tuple))

    def compare(self, a: KeyTuple, b: KeyTuple) -> int:
        left, right = self.sort_key(a), self.sort_key(b)
        return (left > right) - (left < right)

    def is_after(self, candidate: KeyTuple, cursor: KeyTuple) -> bool:
        return self.compare(candidate, cursor) > 0

    def rank(self, records: Iterable[Mapping[str, Any]]) -> List[Mapping[str, Any]]:
        return sorted(records, key=lambda record: self.sort_key(self.key_tuple(record)))

    # --- SQL ---

    def columns(self, now: datetime) -> list:
        return [key.build(now).label(key.name) for key in self.keys]

    def order_by(self, cols: Mapping[str, Any]) -> list:
        return [cols[key.name].desc() if key.descending else cols[key.name].asc() for key in self.keys]

    def after_cursor(self, cols: Mapping[str, Any], cursor: Sequence[Any]):
        """Rows strictly after ``cursor`` in this order: one conjunction per prefix length."""
        values = [key.to_sql(value) for key, value in zip(self.keys, cursor)]
        branches = []
        for i, key in enumerate(self.keys):
            column = cols[key.name]
            beyond = column < values[i] if key.descending else column > values[i]
            ties = [cols[k.name] == v for k, v in zip(self.keys[:i], values[:i])]
            branches.append(and_(*ties, beyond))
        return or_(*branches)


STANDARD = RankingMode(
    "standard",
    (TRUST_TIER, PREMIUM_ACTIVE, LIFECYCLE_ACTIVE, LAST_ACTIVE, STATUS_UPDATED, PROVIDER_ID),
)
EMERGENCY = RankingMode(
    "emergency",
    (TRUST_TIER, PREMIUM_ACTIVE, EMERGENCY_BOOST, LIFECYCLE_ACTIVE, LAST_ACTIVE, STATUS_UPDATED, PROVIDER_ID),
)


def ranking_mode(emergency: bool) -> RankingMode:
    return EMERGENCY if emergency else STANDARD


def ranking_record(provider: Provider, badges: Iterable[str], last_active_at, now: datetime) -> Dict[str, Any]:
    """Key values for a loaded provider, computed in Python."""
    badges = set(badges)
    premium = is_premium_active(provider.plan, provider.plan_source, provider.trial_end_at, now)
    return {
        "id": provider.id,
        "trust_tier": resolve_trust_tier(badges),
        "is_premium_active": premium,
        "emergency_boost_eligible": is_emergency_boost_eligible(premium, badges),
        "lifecycle_active": provider.lifecycle_status == ACTIVE,
        "last_active_at": last_active_at,
        "status_last_updated_at": provider.status_last_updated_at,
    }
