"""Click tracking.

Resolutions hand clicks to a ClickRecorder, a bounded queue drained by a few
worker tasks. The redirect path only ever does a non-blocking put; when the
queue is full the click is dropped. Nothing queued survives a crash.
"""

import asyncio
import ipaddress
import logging
from typing import List, Mapping, Optional, Tuple

from pydantic import BaseModel, ValidationError

from shortlink.cache.base import CacheBackend
from shortlink.cache.keys import clicks_counter_key
from shortlink.core.config import settings
from shortlink.models.click import ClickEvent, ClickEventCreate
from shortlink.repositories.base import RepositoryError
from shortlink.repositories.store import RecordStore
from shortlink.services.devices import parse_user_agent
from shortlink.services.exceptions import ClickTrackingError
from shortlink.services.geo import GeoResolver, NullGeoResolver

logger = logging.getLogger(__name__)


class RequestMetadata(BaseModel):
    """Request details recorded with a click."""
    ip: Optional[str] = None
    user_agent: Optional[str] = None
    referrer: Optional[str] = None

    @classmethod
    def from_headers(cls, headers: Mapping[str, str], remote_addr: Optional[str] = None) -> "RequestMetadata":
        """
        Build metadata from HTTP request headers.

        The first X-Forwarded-For entry wins over the socket address.
        """
        lowered = {key.lower(): value for key, value in headers.items()}
        ip = remote_addr
        forwarded_for = lowered.get("x-forwarded-for")
        if forwarded_for:
            ip = forwarded_for.split(",")[0].strip() or remote_addr
        return cls(
            ip=ip,
            user_agent=lowered.get("user-agent"),
            referrer=lowered.get("referer") or lowered.get("referrer"),
        )


class ClickTrackingService:
    """
    Turns a resolution into a stored ClickEvent.

    Derives device and location details, appends the event (which also bumps
    the link's click counter) and increments the realtime counter in the cache.
    """

    def __init__(
        self,
        store: RecordStore,
        cache: CacheBackend,
        geo: Optional[GeoResolver] = None,
        enabled: Optional[bool] = None,
    ):
        self.store = store
        self.cache = cache
        self.geo = geo or NullGeoResolver()
        self.enabled = settings.ANALYTICS_ENABLED if enabled is None else enabled

    async def record_click(self, code: str, metadata: RequestMetadata) -> Optional[ClickEvent]:
        """
        Record a click for a code.

        Returns:
            The stored event, or None when tracking is disabled or the
            request carried no usable IP address

        Raises:
            ClickTrackingError: If the event cannot be built or the store rejects it
        """
        if not self.enabled:
            return None
        if not metadata.ip:
            logger.warning(f"Skipping click for {code}: no source IP")
            return None
        try:
            source_ip = str(ipaddress.ip_address(metadata.ip.strip()))
        except ValueError:
            logger.warning(f"Skipping click for {code}: malformed source IP {metadata.ip[:64]!r}")
            return None

        device = parse_user_agent(metadata.user_agent)
        location = await self.geo.locate(source_ip)

        try:
            event = ClickEventCreate(
                code=code,
                source_ip=source_ip,
                referrer=metadata.referrer,
                user_agent=metadata.user_agent,
                browser=device.browser,
                os=device.os,
                device_type=device.form_factor,
                geo_country=location.country,
                geo_region=location.region,
                geo_city=location.city,
                latitude=location.coordinates.latitude,
                longitude=location.coordinates.longitude,
            )
        except ValidationError as e:
            logger.error(f"Invalid click event for {code}: {e}")
            raise ClickTrackingError(f"Invalid click event for '{code}'") from e

        try:
            stored = await self.store.append_click_event(event)
        except RepositoryError as e:
            logger.error(f"Error recording click for {code}: {e}")
            raise ClickTrackingError(f"Failed to record click for '{code}'") from e

        await self.cache.increment(clicks_counter_key(code))
        return stored


class ClickRecorder:
    """
    Bounded hand-off between resolutions and click tracking.

    Call start() inside a running event loop and stop() on shutdown. The
    queue is created on first use, so a recorder built outside the loop
    binds to the loop that actually runs it. Clicks submitted before
    start() wait in the queue.
    """

    def __init__(
        self,
        tracker: ClickTrackingService,
        maxsize: Optional[int] = None,
        workers: Optional[int] = None,
        drain_timeout: Optional[float] = None,
    ):
        self.tracker = tracker
        self.worker_count = workers or settings.CLICK_WORKERS
        self.drain_timeout = settings.CLICK_DRAIN_TIMEOUT if drain_timeout is None else drain_timeout
        self.maxsize = maxsize or settings.CLICK_QUEUE_MAXSIZE
        self._queue: Optional[asyncio.Queue] = None
        self._workers: List[asyncio.Task] = []
        self._accepting = True
        self.dropped = 0

    @property
    def pending(self) -> int:
        return self._queue.qsize() if self._queue is not None else 0

    def _get_queue(self) -> asyncio.Queue:
        if self._queue is None:
            self._queue = asyncio.Queue(maxsize=self.maxsize)
        return self._queue

    @property
    def running(self) -> bool:
        return bool(self._workers)

    def start(self) -> None:
        if self._workers:
            return
        self._accepting = True
        queue = self._get_queue()
        self._workers = [
            asyncio.create_task(self._worker(queue), name=f"click-recorder-{i}")
            for i in range(self.worker_count)
        ]
        logger.info(f"Click recorder started with {self.worker_count} workers")

    def submit(self, code: str, metadata: RequestMetadata) -> bool:
        """Queue a click without waiting; returns False if it was dropped."""
        if not self._accepting:
            logger.warning(f"Click recorder stopped, dropping click for {code}")
            self.dropped += 1
            return False
        try:
            self._get_queue().put_nowait((code, metadata))
        except asyncio.QueueFull:
            logger.warning(f"Click queue full, dropping click for {code}")
            self.dropped += 1
            return False
        return True

    async def _worker(self, queue: asyncio.Queue) -> None:
        while True:
            item: Tuple[str, RequestMetadata] = await queue.get()
            code, metadata = item
            try:
                await self.tracker.record_click(code, metadata)
            except Exception:
                logger.exception(f"Click recording failed for {code}")
            finally:
                queue.task_done()

    async def join(self) -> None:
        """Wait until every queued click has been processed."""
        if self._queue is not None:
            await self._queue.join()

    async def stop(self, drain: bool = True) -> None:
        """
        Stop accepting clicks and shut the workers down.

        With drain, queued clicks get up to drain_timeout seconds to finish;
        whatever is left afterwards is discarded.
        """
        self._accepting = False
        if drain and self._workers and self._queue is not None:
            try:
                await asyncio.wait_for(self._queue.join(), timeout=self.drain_timeout)
            except asyncio.TimeoutError:
                logger.warning(f"Click recorder drain timed out, {self.pending} clicks discarded")

        for task in self._workers:
            task.cancel()
        if self._workers:
            await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        self._queue = None
        logger.info("Click recorder stopped")
