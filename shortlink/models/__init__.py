"""
Data models for the short-link engine.

This module imports and exports all SQLModel models used by the engine.
"""

from sqlmodel import SQLModel

from shortlink.models.link import (
    Link,
    LinkBase,
    LinkCreate,
    LinkPage,
    LinkRead,
    LinkUpdate,
    utcnow,
    to_naive_utc,
)
from shortlink.models.click import (
    UNKNOWN,
    ClickDimension,
    ClickEvent,
    ClickEventBase,
    ClickEventCreate,
    ClickEventFilter,
    ClickEventRead,
    Coordinates,
    DeviceInfo,
    GeoInfo,
)

__all__ = [
    "SQLModel",

    # Link models
    "Link",
    "LinkBase",
    "LinkCreate",
    "LinkPage",
    "LinkRead",
    "LinkUpdate",
    "utcnow",
    "to_naive_utc",

    # Click event models
    "UNKNOWN",
    "ClickDimension",
    "ClickEvent",
    "ClickEventBase",
    "ClickEventCreate",
    "ClickEventFilter",
    "ClickEventRead",
    "Coordinates",
    "DeviceInfo",
    "GeoInfo",
]
