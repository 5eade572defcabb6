"""Cache key formats.

These formats are shared with anything that evicts entries from outside the
engine, so they must not change without migrating existing keys.
"""

RESOLUTION_PREFIX = "resolution"
ANALYTICS_PREFIX = "analytics"
LOCATION_PREFIX = "location"
CLICKS_PREFIX = "clicks"


def resolution_key(code: str) -> str:
    return f"{RESOLUTION_PREFIX}:{code}"


def analytics_key(code: str, view: str, fingerprint: str) -> str:
    return f"{ANALYTICS_PREFIX}:{code}:{view}:{fingerprint}"


def analytics_pattern(code: str) -> str:
    """Glob matching every memoized analytics result of one code."""
    return f"{ANALYTICS_PREFIX}:{code}:*"


def location_key(ip: str) -> str:
    return f"{LOCATION_PREFIX}:{ip}"


def clicks_counter_key(code: str) -> str:
    return f"{CLICKS_PREFIX}:{code}"


def dashboard_key() -> str:
    """Cross-link dashboard; outside every per-code analytics pattern."""
    return f"{ANALYTICS_PREFIX}:dashboard"
