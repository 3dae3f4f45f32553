from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0001_create_listing_schema"
down_revision = None
branch_labels = None
depends_on = None

NOW = sa.text("CURRENT_TIMESTAMP")


def upgrade() -> None:
    op.create_table(
        "providers",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("phone", sa.String(length=32), nullable=True),
        sa.Column("whatsapp", sa.String(length=32), nullable=True),
        sa.Column("island", sa.String(length=3), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="OPEN_NOW"),
        sa.Column("lifecycle_status", sa.String(length=16), nullable=False, server_default="ACTIVE"),
        sa.Column("plan", sa.String(length=16), nullable=False, server_default="FREE"),
        sa.Column("plan_source", sa.String(length=16), nullable=False, server_default="FREE"),
        sa.Column("trial_end_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("emergency_calls_accepted", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=NOW),
        sa.Column("status_last_updated_at", sa.DateTime(timezone=True), nullable=False, server_default=NOW),
    )
    op.create_index("ix_providers_lifecycle_status", "providers", ["lifecycle_status"])
    op.create_index("ix_providers_island_status", "providers", ["island", "status"])

    op.create_table(
        "categories",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(length=80), nullable=False, unique=True),
    )
    op.create_table(
        "areas",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("island", sa.String(length=3), nullable=False),
        sa.Column("name", sa.String(length=80), nullable=False),
        sa.UniqueConstraint("island", "name", name="uq_areas_island_name"),
    )
    op.create_table(
        "provider_categories",
        sa.Column("provider_id", sa.Integer, sa.ForeignKey("providers.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("category_id", sa.Integer, sa.ForeignKey("categories.id", ondelete="CASCADE"), primary_key=True),
    )
    op.create_table(
        "provider_areas",
        sa.Column("provider_id", sa.Integer, sa.ForeignKey("providers.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("area_id", sa.Integer, sa.ForeignKey("areas.id", ondelete="CASCADE"), primary_key=True),
    )
    op.create_table(
        "provider_badges",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("provider_id", sa.Integer, sa.ForeignKey("providers.id", ondelete="CASCADE"), nullable=False),
        sa.Column("badge", sa.String(length=32), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=NOW),
        sa.UniqueConstraint("provider_id", "badge", name="uq_provider_badges_provider_badge"),
    )
    op.create_table(
        "activity_events",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("provider_id", sa.Integer, sa.ForeignKey("providers.id", ondelete="CASCADE"), nullable=False),
        sa.Column("event_type", sa.String(length=32), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=NOW),
    )
    op.create_index("ix_activity_events_provider_created", "activity_events", ["provider_id", "created_at"])

    op.create_table(
        "app_settings",
        sa.Column("key", sa.String(length=64), primary_key=True),
        sa.Column("value", sa.JSON, nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=NOW),
    )


def downgrade() -> None:
    op.drop_table("app_settings")
    op.drop_index("ix_activity_events_provider_created", table_name="activity_events")
    op.drop_table("activity_events")
    op.drop_table("provider_badges")
    op.drop_table("provider_areas")
    op.drop_table("provider_categories")
    op.drop_table("areas")
    op.drop_table("categories")
    op.drop_index("ix_providers_island_status", table_name="providers")
    op.drop_index("ix_providers_lifecycle_status", table_name="providers")
    op.drop_table("providers")
