"""IP geolocation for click analytics.

Lookups are best effort: every failure path yields GeoInfo() with the
"Unknown" sentinel, never an exception.
"""

import ipaddress
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import httpx
from pydantic import ValidationError

from shortlink.cache.base import CacheBackend
from shortlink.cache.keys import location_key
from shortlink.core.config import settings
from shortlink.models.click import UNKNOWN, Coordinates, GeoInfo

logger = logging.getLogger(__name__)

LOCAL = "Local"


def local_geo() -> GeoInfo:
    return GeoInfo(
        country=LOCAL,
        region=LOCAL,
        city=LOCAL,
        coordinates=Coordinates(latitude=0.0, longitude=0.0),
    )


def is_local_ip(ip: str) -> bool:
    """True for loopback, private and link-local addresses."""
    if ip == "localhost":
        return True
    try:
        address = ipaddress.ip_address(ip)
    except ValueError:
        return False
    return address.is_loopback or address.is_private or address.is_link_local


def parse_ipinfo(data: Dict[str, Any]) -> GeoInfo:
    """Build GeoInfo from an ipinfo.io JSON body."""
    coordinates = Coordinates()
    loc = data.get("loc")
    if loc:
        try:
            latitude, longitude = (float(part) for part in loc.split(","))
            coordinates = Coordinates(latitude=latitude, longitude=longitude)
        except ValueError:
            logger.debug(f"Ignoring malformed coordinates {loc!r}")

    return GeoInfo(
        country=data.get("country") or UNKNOWN,
        region=data.get("region") or UNKNOWN,
        city=data.get("city") or UNKNOWN,
        coordinates=coordinates,
    )


class GeoResolver(ABC):
    """Maps a visitor IP to a location."""

    @abstractmethod
    async def locate(self, ip: str) -> GeoInfo:
        pass

    async def close(self) -> None:
        pass


class NullGeoResolver(GeoResolver):
    """Resolver used when no lookup service is configured."""

    async def locate(self, ip: str) -> GeoInfo:
        if ip and is_local_ip(ip):
            return local_geo()
        return GeoInfo()


class IpInfoGeoResolver(GeoResolver):
    """
    Geolocation through the ipinfo.io JSON API.

    Results are cached under ``location:<ip>`` since an IP's location rarely
    changes. Local addresses are answered without a request.
    """

    def __init__(
        self,
        cache: CacheBackend,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        cache_ttl: Optional[int] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.cache = cache
        self.api_key = api_key if api_key is not None else settings.IPINFO_API_KEY
        self.base_url = (base_url or settings.IPINFO_BASE_URL).rstrip("/")
        self.timeout = timeout or settings.IPINFO_TIMEOUT
        self.cache_ttl = cache_ttl or settings.GEO_CACHE_TTL
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def locate(self, ip: str) -> GeoInfo:
        if not ip:
            return GeoInfo()
        if is_local_ip(ip):
            return local_geo()
        if not self.api_key:
            logger.debug("No API key configured for IP geolocation")
            return GeoInfo()

        cache_key = location_key(ip)
        cached = await self.cache.get(cache_key)
        if cached:
            try:
                return GeoInfo.model_validate(cached)
            except ValidationError:
                logger.warning(f"Discarding malformed cached location for {ip}")

        try:
            response = await self._get_client().get(
                f"{self.base_url}/{ip}/json",
                params={"token": self.api_key},
            )
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Error getting location for IP {ip}: {e}")
            return GeoInfo()

        if not isinstance(payload, dict):
            logger.warning(f"Unexpected geolocation payload for IP {ip}")
            return GeoInfo()
        location = parse_ipinfo(payload)

        await self.cache.set(cache_key, location.model_dump(), self.cache_ttl)
        return location

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
