import importlib.util
from pathlib import Path

import pytest
from alembic.migration import MigrationContext
from alembic.operations import Operations
from sqlalchemy import create_engine, inspect

from islandpros import seed
from islandpros.app_settings import current_ranking_mode
from islandpros.db import utcnow
from islandpros.listing import ListingRequest, list_providers
from islandpros.models import Base

VERSIONS = Path(__file__).resolve().parents[1] / "islandpros" / "migrations" / "versions"


def _load(name):
    spec = importlib.util.spec_from_file_location(name, VERSIONS / f"{name}.py")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.fixture
def conn():
    engine = create_engine("sqlite://")
    with engine.begin() as connection:
        yield connection
    engine.dispose()


def _run(conn, step):
    ctx = MigrationContext.configure(conn)
    with Operations.context(ctx):
        step()


def test_initial_migration_matches_models(conn):
    migration = _load("0001_create_listing_schema")
    _run(conn, migration.upgrade)

    inspector = inspect(conn)
    assert set(inspector.get_table_names()) == set(Base.metadata.tables)
    for name, table in Base.metadata.tables.items():
        assert {c["name"] for c in inspector.get_columns(name)} == set(table.columns.keys())

    uniques = inspector.get_unique_constraints("provider_badges")
    assert [u["column_names"] for u in uniques] == [["provider_id", "badge"]]


def test_downgrade_drops_everything(conn):
    migration = _load("0001_create_listing_schema")
    _run(conn, migration.upgrade)
    _run(conn, migration.downgrade)
    assert inspect(conn).get_table_names() == []


def test_seed_is_idempotent_and_listable(db):
    seed.run(db)
    seed.run(db)

    page = list_providers(db, ListingRequest(), current_ranking_mode(db), utcnow())
    assert [card.name for card in page.providers] == ["Island Pipe Pros"]
    card = page.providers[0]
    assert card.is_premium_active is True
    assert card.trust_tier == 1
