"""Click analytics aggregation.

Results are memoized in the cache per (code, view, options fingerprint) and are
always JSON-safe, so a cached answer is indistinguishable from a fresh one.
"""

import asyncio
import hashlib
import json
import logging
from collections import Counter
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from shortlink.cache.base import CacheBackend
from shortlink.cache.keys import analytics_key, dashboard_key
from shortlink.core.config import settings
from shortlink.models.click import UNKNOWN, ClickDimension, ClickEventFilter, ClickEventRead
from shortlink.models.link import Link, LinkRead, to_naive_utc, utcnow
from shortlink.repositories.base import RepositoryError
from shortlink.repositories.store import RecordStore
from shortlink.services.exceptions import (
    AggregationFailedError,
    AnalyticsDisabledError,
    AnalyticsError,
    LinkNotFoundError,
)

logger = logging.getLogger(__name__)

DIRECT = "Direct/None"

AnalyticsResult = Union[Dict[str, Any], List[Dict[str, Any]]]


class AnalyticsView(str, Enum):
    SUMMARY = "summary"
    CLICKS = "clicks"
    REFERRERS = "referrers"
    BROWSERS = "browsers"
    DEVICES = "devices"
    OS = "os"
    LOCATIONS = "locations"
    TIME_SERIES = "timeSeries"


class AnalyticsInterval(str, Enum):
    DAY = "day"
    HOUR = "hour"


BUCKET_FORMATS = {
    AnalyticsInterval.DAY: "%Y-%m-%d",
    AnalyticsInterval.HOUR: "%Y-%m-%d %H:00",
}


class AnalyticsOptions(BaseModel):
    """Query options for an analytics view; ``from``/``to`` are inclusive."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    since: Optional[datetime] = Field(default=None, alias="from")
    until: Optional[datetime] = Field(default=None, alias="to")
    interval: AnalyticsInterval = AnalyticsInterval.DAY
    limit: int = Field(default=100, ge=1, le=1000)
    skip: int = Field(default=0, ge=0)

    @field_validator("since", "until")
    def normalize_bounds(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(v)

    @model_validator(mode="after")
    def check_range(self) -> "AnalyticsOptions":
        if self.since is not None and self.until is not None and self.since > self.until:
            raise ValueError("'from' must not be after 'to'")
        return self

    def fingerprint(self) -> str:
        """Stable digest of the default-filled options."""
        payload = json.dumps(self.model_dump(mode="json"), sort_keys=True)
        return hashlib.sha256(payload.encode()).hexdigest()[:16]

    def window(self, paged: bool = False) -> ClickEventFilter:
        if paged:
            return ClickEventFilter(since=self.since, until=self.until, limit=self.limit, skip=self.skip)
        return ClickEventFilter(since=self.since, until=self.until)


# view -> (grouped column, output key, sentinel for missing values)
DIMENSIONS = {
    AnalyticsView.REFERRERS: (ClickDimension.REFERRER, "referrer", DIRECT),
    AnalyticsView.BROWSERS: (ClickDimension.BROWSER, "browser", UNKNOWN),
    AnalyticsView.DEVICES: (ClickDimension.DEVICE, "device", UNKNOWN),
    AnalyticsView.OS: (ClickDimension.OS, "os", UNKNOWN),
    AnalyticsView.LOCATIONS: (ClickDimension.COUNTRY, "country", UNKNOWN),
}


def rank_counts(rows, key: str, sentinel: str) -> List[Dict[str, Any]]:
    """
    Merge raw (value, count) rows into display rows.

    None and blank values collapse into the sentinel. Rows are ordered by
    count descending, ties broken by value.
    """
    totals: Counter = Counter()
    for value, count in rows:
        label = value.strip() if isinstance(value, str) else value
        totals[label or sentinel] += count
    ranked = sorted(totals.items(), key=lambda item: (-item[1], item[0]))
    return [{key: value, "count": count} for value, count in ranked]


def bucket_timestamps(timestamps: List[datetime], interval: AnalyticsInterval) -> List[Dict[str, Any]]:
    """Count timestamps per day or hour; only buckets with clicks are returned."""
    fmt = BUCKET_FORMATS[interval]
    counts: Counter = Counter(ts.strftime(fmt) for ts in timestamps)
    return [{"date": label, "count": counts[label]} for label in sorted(counts)]


class AnalyticsService:
    """
    Computes per-link click statistics and the engine-wide dashboard.

    One handler per AnalyticsView. Record store failures surface as
    AggregationFailedError; cache failures only cost a recomputation.
    """

    def __init__(
        self,
        store: RecordStore,
        cache: CacheBackend,
        enabled: Optional[bool] = None,
        cache_ttl: Optional[int] = None,
        cache_max_items: Optional[int] = None,
        dashboard_window_days: Optional[int] = None,
        dashboard_top_links: Optional[int] = None,
    ):
        self.store = store
        self.cache = cache
        self.enabled = settings.ANALYTICS_ENABLED if enabled is None else enabled
        self.cache_ttl = cache_ttl or settings.ANALYTICS_CACHE_TTL
        self.cache_max_items = settings.ANALYTICS_CACHE_MAX_ITEMS if cache_max_items is None else cache_max_items
        self.dashboard_window_days = dashboard_window_days or settings.DASHBOARD_WINDOW_DAYS
        self.dashboard_top_links = dashboard_top_links or settings.DASHBOARD_TOP_LINKS
        self._handlers: Dict[AnalyticsView, Callable[[Link, AnalyticsOptions], Awaitable[AnalyticsResult]]] = {
            AnalyticsView.SUMMARY: self._summary,
            AnalyticsView.CLICKS: self._clicks,
            AnalyticsView.REFERRERS: self._dimension_handler(AnalyticsView.REFERRERS),
            AnalyticsView.BROWSERS: self._dimension_handler(AnalyticsView.BROWSERS),
            AnalyticsView.DEVICES: self._dimension_handler(AnalyticsView.DEVICES),
            AnalyticsView.OS: self._dimension_handler(AnalyticsView.OS),
            AnalyticsView.LOCATIONS: self._dimension_handler(AnalyticsView.LOCATIONS),
            AnalyticsView.TIME_SERIES: self._time_series,
        }

    async def get_analytics(
        self,
        code: str,
        view: Union[AnalyticsView, str] = AnalyticsView.SUMMARY,
        options: Optional[Union[AnalyticsOptions, Dict[str, Any]]] = None,
    ) -> AnalyticsResult:
        """
        Get one analytics view for a link.

        Args:
            code: Short code of the link
            view: Which statistics to compute
            options: Time window, bucket interval and paging

        Returns:
            A JSON-safe list (dimension, clicks and timeSeries views) or dict (summary)

        Raises:
            AnalyticsDisabledError: If analytics are switched off
            AnalyticsError: If the view is unknown or the options are invalid
            LinkNotFoundError: If no link has this code
            AggregationFailedError: If the record store fails
        """
        if not self.enabled:
            raise AnalyticsDisabledError("Analytics are disabled")

        try:
            view = AnalyticsView(view)
        except ValueError:
            raise AnalyticsError(f"Unknown analytics view: {view}") from None

        if options is None:
            options = AnalyticsOptions()
        elif isinstance(options, dict):
            try:
                options = AnalyticsOptions.model_validate(options)
            except ValidationError as e:
                raise AnalyticsError(f"Invalid analytics options: {e}") from e

        link = await self._get_link(code)

        cache_key = analytics_key(code, view.value, options.fingerprint())
        cached = await self.cache.get(cache_key)
        if cached is not None:
            logger.debug(f"Analytics cache hit for {cache_key}")
            return cached

        try:
            result = await self._handlers[view](link, options)
        except RepositoryError as e:
            logger.error(f"Error computing {view.value} analytics for {code}: {e}")
            raise AggregationFailedError(f"Failed to compute {view.value} analytics for '{code}'") from e

        if view is AnalyticsView.CLICKS and len(result) > self.cache_max_items:
            logger.debug(f"Not caching {len(result)} click events for {code}")
        else:
            await self.cache.set(cache_key, result, self.cache_ttl)
        return result

    async def get_dashboard(self) -> Dict[str, Any]:
        """
        Get engine-wide statistics.

        Reports the number of links, clicks over the last DASHBOARD_WINDOW_DAYS
        days and the most clicked links. The result is cached for cache_ttl
        seconds and is not evicted by link mutations.

        Raises:
            AnalyticsDisabledError: If analytics are switched off
            AggregationFailedError: If the record store fails
        """
        if not self.enabled:
            raise AnalyticsDisabledError("Analytics are disabled")

        cache_key = dashboard_key()
        cached = await self.cache.get(cache_key)
        if cached is not None:
            return cached

        now = utcnow()
        try:
            total_links, recent_clicks, top = await asyncio.gather(
                self.store.count_links(),
                self.store.count_recent_click_events(now - timedelta(days=self.dashboard_window_days)),
                self.store.top_links(self.dashboard_top_links),
            )
        except RepositoryError as e:
            logger.error(f"Error computing dashboard analytics: {e}")
            raise AggregationFailedError("Failed to compute dashboard analytics") from e

        result = {
            "total_links": total_links,
            "recent_clicks": recent_clicks,
            "top_links": [
                {"code": link.code, "original_url": link.original_url, "total_clicks": link.click_count}
                for link in top
            ],
            "last_updated": now.isoformat(),
        }
        await self.cache.set(cache_key, result, self.cache_ttl)
        return result

    async def _get_link(self, code: str) -> Link:
        try:
            link = await self.store.find_by_code(code)
        except RepositoryError as e:
            logger.error(f"Error retrieving link {code} for analytics: {e}")
            raise AggregationFailedError(f"Failed to retrieve link '{code}'") from e
        if link is None:
            raise LinkNotFoundError(f"Link with code '{code}' not found")
        return link

    async def _clicks(self, link: Link, options: AnalyticsOptions) -> List[Dict[str, Any]]:
        events = await self.store.list_click_events(link.code, options.window(paged=True))
        return [ClickEventRead.from_event(event).model_dump(mode="json") for event in events]

    def _dimension_handler(self, view: AnalyticsView):
        async def handler(link: Link, options: AnalyticsOptions) -> List[Dict[str, Any]]:
            return await self._dimension(link.code, view, options)
        return handler

    async def _dimension(self, code: str, view: AnalyticsView, options: AnalyticsOptions) -> List[Dict[str, Any]]:
        dimension, key, sentinel = DIMENSIONS[view]
        rows = await self.store.count_click_events_by(code, dimension, options.window())
        return rank_counts(rows, key, sentinel)

    async def _time_series(self, link: Link, options: AnalyticsOptions) -> List[Dict[str, Any]]:
        timestamps = await self.store.list_click_timestamps(link.code, options.window())
        return bucket_timestamps(timestamps, options.interval)

    async def _summary(self, link: Link, options: AnalyticsOptions) -> Dict[str, Any]:
        code = link.code
        total, referrers, browsers, devices, locations, series = await asyncio.gather(
            self.store.count_click_events(code, options.window()),
            self._dimension(code, AnalyticsView.REFERRERS, options),
            self._dimension(code, AnalyticsView.BROWSERS, options),
            self._dimension(code, AnalyticsView.DEVICES, options),
            self._dimension(code, AnalyticsView.LOCATIONS, options),
            self._time_series(link, options),
        )
        return {
            "link": LinkRead(**link.model_dump()).model_dump(mode="json"),
            "analytics": {
                "total_clicks": total,
                "referrers": referrers[:5],
                "browsers": browsers[:5],
                "devices": devices[:3],
                "locations": locations[:5],
                "clicks_over_time": series[-14:],
            },
        }
