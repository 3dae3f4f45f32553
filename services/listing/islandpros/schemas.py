from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Dict, List, Literal, Optional, Union
from datetime import datetime


class ProviderCard(BaseModel):
    """One row of the public listing."""

    id: int
    name: str
    phone: Optional[str]
    whatsapp: Optional[str]
    island: str
    status: str
    lifecycle_status: str
    plan: str
    badges: List[str]
    trust_tier: int
    is_premium_active: bool
    emergency_boost_eligible: Optional[bool] = None  # emergency mode only
    last_active_at: Optional[datetime]  # None when the provider was never active
    status_last_updated_at: datetime


class Suggestion(BaseModel):
    id: str
    label: str
    description: str
    patch: Dict[str, Union[str, int, None]]


class EmergencyMode(BaseModel):
    enabled: bool


class EmergencyModeUpdate(BaseModel):
    enabled: bool
    notes: Optional[str] = None


class ProfileUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=2, max_length=120)
    phone: Optional[str] = None
    whatsapp: Optional[str] = None
    description: Optional[str] = None
    emergency_calls_accepted: Optional[bool] = None
    categories: Optional[List[int]] = None  # category ids
    areas: Optional[List[int]] = None  # area ids; must be on the provider's island

    @field_validator("name", "emergency_calls_accepted")
    @classmethod
    def not_null(cls, value):
        # omit the field to leave it unchanged
        if value is None:
            raise ValueError("may not be null")
        return value


class StatusUpdate(BaseModel):
    status: Literal["OPEN_NOW", "BUSY_LIMITED", "NOT_TAKING_WORK"]


class InteractionLog(BaseModel):
    channel: Literal["CALL", "SMS", "WHATSAPP"]


class LifecycleUpdate(BaseModel):
    lifecycle_status: Literal["ACTIVE", "INACTIVE", "ARCHIVED"]


class BadgeChangeOut(BaseModel):
    provider_id: int
    badge: str
    changed: bool
    present: bool

    model_config = ConfigDict(from_attributes=True)


class ProviderCreate(BaseModel):
    name: str = Field(min_length=2, max_length=120)
    phone: str = Field(min_length=7, max_length=32)
    whatsapp: Optional[str] = None
    island: Literal["STT", "STX", "STJ"]
    description: Optional[str] = None
    emergency_calls_accepted: bool = False
    categories: List[int] = []
    areas: List[int] = Field(min_length=1)


class AreaOut(BaseModel):
    id: int
    name: str
    island: str


class ProviderDetail(ProviderCard):
    description: Optional[str]
    emergency_calls_accepted: bool
    trial_end_at: Optional[datetime]
    trial_days_left: int
    categories: List[str]
    areas: List[AreaOut]
