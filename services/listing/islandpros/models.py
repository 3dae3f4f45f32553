from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy import Integer, String, Boolean, Text, DateTime, ForeignKey, JSON, UniqueConstraint, Index
from datetime import datetime
from typing import Optional

from .db import utcnow

# Availability status shown on the listing
OPEN_NOW = "OPEN_NOW"
BUSY_LIMITED = "BUSY_LIMITED"
NOT_TAKING_WORK = "NOT_TAKING_WORK"
AVAILABILITY_STATUSES = (OPEN_NOW, BUSY_LIMITED, NOT_TAKING_WORK)

ISLANDS = ("STT", "STX", "STJ")

# Lifecycle
ACTIVE = "ACTIVE"
INACTIVE = "INACTIVE"
ARCHIVED = "ARCHIVED"
LIFECYCLE_STATUSES = (ACTIVE, INACTIVE, ARCHIVED)

# Plans
PLAN_FREE = "FREE"
PLAN_PREMIUM = "PREMIUM"
SOURCE_FREE = "FREE"
SOURCE_TRIAL = "TRIAL"
SOURCE_ADMIN = "ADMIN"

# Badges
VERIFIED = "VERIFIED"
GOV_APPROVED = "GOV_APPROVED"
EMERGENCY_READY = "EMERGENCY_READY"
BADGES = (VERIFIED, GOV_APPROVED, EMERGENCY_READY)

# Activity event types
EVENT_LOGIN = "LOGIN"
EVENT_PROFILE_VIEW = "PROFILE_VIEW"
EVENT_STATUS_UPDATED = "STATUS_UPDATED"
EVENT_PROFILE_UPDATED = "PROFILE_UPDATED"
EVENT_STATUS_OPEN_FOR_WORK = "STATUS_OPEN_FOR_WORK"
EVENT_CUSTOMER_CALL = "CUSTOMER_CALL"
EVENT_CUSTOMER_SMS = "CUSTOMER_SMS"
EVENT_CUSTOMER_WHATSAPP = "CUSTOMER_WHATSAPP"
EVENT_VERIFIED = "VERIFIED"
EVENT_ARCHIVED = "ARCHIVED"

# Genuine usage; counted as active days for verification
USAGE_EVENTS = (EVENT_LOGIN, EVENT_PROFILE_VIEW, EVENT_STATUS_UPDATED)
CUSTOMER_INTERACTION_EVENTS = (EVENT_CUSTOMER_CALL, EVENT_CUSTOMER_SMS, EVENT_CUSTOMER_WHATSAPP)
# Written by the engine itself; never evidence that the provider was active
ENGINE_EVENTS = (EVENT_VERIFIED, EVENT_ARCHIVED)

# Largest value an INTEGER id column holds
MAX_ID = 2**31 - 1


class Base(DeclarativeBase):
    pass


class Provider(Base):
    __tablename__ = "providers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    whatsapp: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    island: Mapped[str] = mapped_column(String(3), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(32), default=OPEN_NOW, nullable=False)
    lifecycle_status: Mapped[str] = mapped_column(String(16), default=ACTIVE, nullable=False)
    plan: Mapped[str] = mapped_column(String(16), default=PLAN_FREE, nullable=False)
    plan_source: Mapped[str] = mapped_column(String(16), default=SOURCE_FREE, nullable=False)
    trial_end_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    emergency_calls_accepted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    status_last_updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)


class Category(Base):
    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(80), unique=True, nullable=False)


class Area(Base):
    __tablename__ = "areas"
    __table_args__ = (UniqueConstraint("island", "name", name="uq_areas_island_name"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    island: Mapped[str] = mapped_column(String(3), nullable=False)
    name: Mapped[str] = mapped_column(String(80), nullable=False)


class ProviderCategory(Base):
    __tablename__ = "provider_categories"

    provider_id: Mapped[int] = mapped_column(ForeignKey("providers.id", ondelete="CASCADE"), primary_key=True)
    category_id: Mapped[int] = mapped_column(ForeignKey("categories.id", ondelete="CASCADE"), primary_key=True)


class ProviderArea(Base):
    __tablename__ = "provider_areas"

    provider_id: Mapped[int] = mapped_column(ForeignKey("providers.id", ondelete="CASCADE"), primary_key=True)
    area_id: Mapped[int] = mapped_column(ForeignKey("areas.id", ondelete="CASCADE"), primary_key=True)


class ProviderBadge(Base):
    __tablename__ = "provider_badges"
    __table_args__ = (UniqueConstraint("provider_id", "badge", name="uq_provider_badges_provider_badge"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    provider_id: Mapped[int] = mapped_column(ForeignKey("providers.id", ondelete="CASCADE"), nullable=False)
    badge: Mapped[str] = mapped_column(String(32), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)


class ActivityEvent(Base):
    __tablename__ = "activity_events"
    __table_args__ = (Index("ix_activity_events_provider_created", "provider_id", "created_at"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    provider_id: Mapped[int] = mapped_column(ForeignKey("providers.id", ondelete="CASCADE"), nullable=False)
    event_type: Mapped[str] = mapped_column(String(32), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)


class AppSetting(Base):
    __tablename__ = "app_settings"

    key: Mapped[str] = mapped_column(String(64), primary_key=True)
    value: Mapped[dict] = mapped_column(JSON, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
