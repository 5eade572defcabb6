"""Short link data models.

This module defines the Link model for storing short-code mappings in the database.
"""
from datetime import datetime, timezone
from typing import List, Optional

from pydantic import field_validator
from sqlalchemy import DateTime, Index
from sqlmodel import Field, SQLModel


def utcnow() -> datetime:
    """Current time as a naive UTC datetime, the form stored in the database."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Convert an aware datetime to naive UTC; naive values are assumed UTC."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class LinkBase(SQLModel):
    """Base model for link data."""

    original_url: str = Field(
        description="The normalized destination URL",
        unique=True,
        index=True,
    )
    code: str = Field(
        description="Short code used in the redirect path",
        unique=True,
        index=True,
        max_length=64,
    )
    custom_alias: Optional[str] = Field(
        default=None,
        description="User supplied alias; equal to code when present",
        unique=True,
        max_length=64,
    )
    owner_id: Optional[str] = Field(
        default=None,
        description="Owner of the link, None for anonymous links",
        index=True,
    )
    expires_at: Optional[datetime] = Field(
        default=None,
        description="When this link expires (null means no expiration)",
        sa_type=DateTime,
    )
    is_active: bool = Field(default=True)


class Link(LinkBase, table=True):
    """
    Link model storing the mapping between a short code and its destination.

    click_count and last_accessed_at are denormalized counters kept
    eventually consistent with the click_events table.
    """

    __tablename__ = "links"

    id: Optional[int] = Field(default=None, primary_key=True)
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)
    click_count: int = Field(default=0)
    last_accessed_at: Optional[datetime] = Field(default=None, sa_type=DateTime)

    __table_args__ = (
        Index("ix_links_code_expiry", "code", "expires_at"),
    )

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """Check whether the link's expiry has been reached."""
        if self.expires_at is None:
            return False
        return self.expires_at <= (now or utcnow())

    def is_resolvable(self, now: Optional[datetime] = None) -> bool:
        """A link resolves only while it is active and not expired."""
        return self.is_active and not self.is_expired(now)

    def seconds_until_expiry(self, now: Optional[datetime] = None) -> Optional[int]:
        """Whole seconds left before expiry, or None for links that never expire."""
        if self.expires_at is None:
            return None
        remaining = (self.expires_at - (now or utcnow())).total_seconds()
        return max(int(remaining), 0)


class LinkCreate(LinkBase):
    """Schema for creating a new link."""

    @field_validator("expires_at")
    def normalize_expiry(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(v)


class LinkRead(LinkBase):
    """Schema for reading a link."""
    id: int
    created_at: datetime
    click_count: int
    last_accessed_at: Optional[datetime] = None


class LinkPage(SQLModel):
    """One page of a link listing, newest first."""
    links: List[LinkRead]
    total_count: int
    page: int
    total_pages: int


class LinkUpdate(SQLModel):
    """Schema for the fields an external update may change."""
    is_active: Optional[bool] = None
    expires_at: Optional[datetime] = None

    @field_validator("expires_at")
    def normalize_expiry(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(v)
