"""Test utilities for short-link engine tests."""

import random
import string
from datetime import datetime
from typing import Any, Dict, Optional

from shortlink.models.click import ClickEvent
from shortlink.models.link import Link, utcnow


def random_string(length: int = 10) -> str:
    """Generate a random alphanumeric string."""
    return ''.join(random.choice(string.ascii_letters + string.digits) for _ in range(length))


def random_url() -> str:
    """Generate a random normalized URL for testing."""
    domain = f"{random_string(8).lower()}.com"
    path = random_string(12)
    return f"https://{domain}/{path}"


def create_test_link_data(
    original_url: Optional[str] = None,
    code: Optional[str] = None,
    custom_alias: Optional[str] = None,
    expires_at: Optional[datetime] = None,
    is_active: bool = True,
    click_count: int = 0,
    owner_id: Optional[str] = None,
    created_at: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Create test data dict for a Link."""
    return {
        "original_url": original_url or random_url(),
        "code": code or custom_alias or random_string(7),
        "custom_alias": custom_alias,
        "expires_at": expires_at,
        "is_active": is_active,
        "click_count": click_count,
        "owner_id": owner_id,
        "created_at": created_at or utcnow(),
    }


async def create_test_link(db, **kwargs) -> Link:
    """Create and persist a test Link in the database."""
    link = Link(**create_test_link_data(**kwargs))
    db.add(link)
    await db.flush()
    await db.refresh(link)
    return link


def create_test_click_data(
    code: str,
    occurred_at: Optional[datetime] = None,
    referrer: Optional[str] = None,
    browser: str = "Chrome",
    os: str = "Windows",
    device_type: str = "desktop",
    geo_country: str = "US",
    source_ip: str = "8.8.8.8",
) -> Dict[str, Any]:
    """Create test data dict for a ClickEvent."""
    return {
        "code": code,
        "source_ip": source_ip,
        "referrer": referrer,
        "user_agent": "Mozilla/5.0",
        "browser": browser,
        "os": os,
        "device_type": device_type,
        "geo_country": geo_country,
        "occurred_at": occurred_at or utcnow(),
    }


async def create_test_click(db, code: str, **kwargs) -> ClickEvent:
    """Create and persist a test ClickEvent in the database."""
    event = ClickEvent(**create_test_click_data(code, **kwargs))
    db.add(event)
    await db.flush()
    await db.refresh(event)
    return event
