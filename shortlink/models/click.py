"""
Click event tracking data models.

This module defines the ClickEvent model for recording and analyzing
resolutions of short links.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field as PydanticField, ValidationInfo, field_validator
from sqlalchemy import DateTime, Index
from sqlmodel import Field, SQLModel

from shortlink.models.link import utcnow, to_naive_utc

UNKNOWN = "Unknown"

# Column widths for free-text fields; longer values are clipped on the way in
TEXT_LIMITS = {
    "referrer": 2048,
    "user_agent": 1024,
    "browser": 64,
    "os": 64,
    "device_type": 32,
    "geo_country": 64,
    "geo_region": 128,
    "geo_city": 128,
}


class ClickDimension(str, Enum):
    """Click event columns analytics can group by."""
    REFERRER = "referrer"
    BROWSER = "browser"
    OS = "os"
    DEVICE = "device_type"
    COUNTRY = "geo_country"


class ClickEventBase(SQLModel):
    """Base model for click event data."""

    code: str = Field(
        description="Short code that was resolved; the link may since have been deleted",
        index=True,
        max_length=64,
    )
    source_ip: str = Field(
        description="IP address of the visitor",
        max_length=45  # Support both IPv4 and IPv6 addresses
    )
    referrer: Optional[str] = Field(default=None, max_length=TEXT_LIMITS["referrer"])
    user_agent: Optional[str] = Field(default=None, max_length=TEXT_LIMITS["user_agent"])

    # Derived fields default to a sentinel so GROUP BY stays stable
    browser: str = Field(default=UNKNOWN, max_length=TEXT_LIMITS["browser"])
    os: str = Field(default=UNKNOWN, max_length=TEXT_LIMITS["os"])
    device_type: str = Field(default=UNKNOWN, max_length=TEXT_LIMITS["device_type"])
    geo_country: str = Field(default=UNKNOWN, max_length=TEXT_LIMITS["geo_country"])
    geo_region: str = Field(default=UNKNOWN, max_length=TEXT_LIMITS["geo_region"])
    geo_city: str = Field(default=UNKNOWN, max_length=TEXT_LIMITS["geo_city"])
    latitude: Optional[float] = Field(default=None)
    longitude: Optional[float] = Field(default=None)

    occurred_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)


class ClickEvent(ClickEventBase, table=True):
    """
    Click event model, one row per resolution.

    Rows are immutable once written. They are appended off the redirect
    path by the click recorder, so they may lag the resolution slightly.
    """

    __tablename__ = "click_events"

    id: Optional[int] = Field(default=None, primary_key=True)

    __table_args__ = (
        Index("ix_click_events_code_occurred_at", "code", "occurred_at"),
    )


class ClickEventCreate(ClickEventBase):
    """Schema for creating a new click event record."""

    @field_validator("code", "source_ip")
    def require_value(cls, v: str) -> str:
        if not v:
            raise ValueError("must not be empty")
        return v

    @field_validator(*TEXT_LIMITS, mode="before")
    def clip_text(cls, v, info: ValidationInfo):
        if isinstance(v, str):
            return v[:TEXT_LIMITS[info.field_name]]
        return v

    @field_validator("occurred_at")
    def normalize_time(cls, v: datetime) -> datetime:
        return to_naive_utc(v)


class DeviceInfo(BaseModel):
    browser: str = UNKNOWN
    os: str = UNKNOWN
    form_factor: str = UNKNOWN


class Coordinates(BaseModel):
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class GeoInfo(BaseModel):
    country: str = UNKNOWN
    region: str = UNKNOWN
    city: str = UNKNOWN
    coordinates: Coordinates = PydanticField(default_factory=Coordinates)


class ClickEventRead(BaseModel):
    """Schema for reading a click event, derived fields grouped."""
    id: int
    code: str
    source_ip: str
    referrer: Optional[str] = None
    user_agent: Optional[str] = None
    device: DeviceInfo
    geo: GeoInfo
    occurred_at: datetime

    @classmethod
    def from_event(cls, event: ClickEvent) -> "ClickEventRead":
        return cls(
            id=event.id,
            code=event.code,
            source_ip=event.source_ip,
            referrer=event.referrer,
            user_agent=event.user_agent,
            device=DeviceInfo(
                browser=event.browser,
                os=event.os,
                form_factor=event.device_type,
            ),
            geo=GeoInfo(
                country=event.geo_country,
                region=event.geo_region,
                city=event.geo_city,
                coordinates=Coordinates(latitude=event.latitude, longitude=event.longitude),
            ),
            occurred_at=event.occurred_at,
        )


class ClickEventFilter(BaseModel):
    """Time window and paging for click event queries; bounds are inclusive."""
    since: Optional[datetime] = None
    until: Optional[datetime] = None
    limit: Optional[int] = None
    skip: int = 0

    @field_validator("since", "until")
    def normalize_bounds(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(v)
