import os

# must be set before islandpros.config is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SWEEP_ENABLED"] = "false"

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from islandpros.db import SessionLocal, engine
from islandpros.main import app
from islandpros.models import (
    ACTIVE,
    ActivityEvent,
    Area,
    Base,
    Category,
    OPEN_NOW,
    PLAN_FREE,
    Provider,
    ProviderArea,
    ProviderBadge,
    ProviderCategory,
    SOURCE_FREE,
)

NOW = datetime(2026, 3, 2, 15, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def db():
    Base.metadata.create_all(engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(engine)


@pytest.fixture
def client(db):
    return TestClient(app)


@pytest.fixture
def catalog(db):
    """One category and one area per island."""
    plumbing = Category(name="Plumbing")
    cleaning = Category(name="Cleaning")
    areas = {island: Area(island=island, name=f"{island} Town") for island in ("STT", "STX", "STJ")}
    db.add_all([plumbing, cleaning, *areas.values()])
    db.commit()
    return {"plumbing": plumbing.id, "cleaning": cleaning.id, **{k: v.id for k, v in areas.items()}}


@pytest.fixture
def make_provider(db):
    def _make(
        name="Provider",
        *,
        island="STT",
        status=OPEN_NOW,
        lifecycle_status=ACTIVE,
        plan=PLAN_FREE,
        plan_source=SOURCE_FREE,
        trial_end_at=None,
        badges=(),
        phone="340-555-0101",
        description="Reliable and insured",
        created_at=None,
        status_last_updated_at=None,
        activity=(),
        category_ids=(),
        area_ids=(),
        now=NOW,
    ) -> Provider:
        provider = Provider(
            name=name,
            island=island,
            status=status,
            lifecycle_status=lifecycle_status,
            plan=plan,
            plan_source=plan_source,
            trial_end_at=trial_end_at,
            phone=phone,
            description=description,
            created_at=created_at or now - timedelta(days=60),
            status_last_updated_at=status_last_updated_at or now - timedelta(days=1),
        )
        db.add(provider)
        db.flush()
        for badge in badges:
            db.add(ProviderBadge(provider_id=provider.id, badge=badge, created_at=now))
        for event_type, at in activity:
            db.add(ActivityEvent(provider_id=provider.id, event_type=event_type, created_at=at))
        for category_id in category_ids:
            db.add(ProviderCategory(provider_id=provider.id, category_id=category_id))
        for area_id in area_ids:
            db.add(ProviderArea(provider_id=provider.id, area_id=area_id))
        db.commit()
        return provider

    return _make


def days_ago(n: float, now: datetime = NOW) -> datetime:
    return now - timedelta(days=n)
