"""URL normalization."""

import re
from urllib.parse import urlsplit, urlunsplit

from shortlink.services.exceptions import InvalidUrlError

ALLOWED_SCHEMES = ("http", "https")

# Any explicit scheme, e.g. "ftp://" or "javascript://"
SCHEME_PREFIX = re.compile(r"^[A-Za-z][A-Za-z0-9+.-]*://")


def _has_http_prefix(url: str) -> bool:
    lowered = url.lower()
    return lowered.startswith("http://") or lowered.startswith("https://")


def normalize_url(raw: str) -> str:
    """
    Canonicalize a submitted URL.

    Surrounding whitespace is dropped, ``https://`` is prepended when the
    string has no http(s) prefix, and exactly one trailing slash is removed
    from the path. Query and fragment are left as submitted.
    Applying it twice gives the same result as applying it once.

    Args:
        raw: URL as submitted by the caller

    Returns:
        str: The normalized URL

    Raises:
        InvalidUrlError: If the result is not an absolute http(s) URL with a host
    """
    if not isinstance(raw, str):
        raise InvalidUrlError(f"URL must be a string, got {type(raw).__name__}")

    url = raw.strip()
    if not url:
        raise InvalidUrlError("URL must not be empty")

    if not _has_http_prefix(url):
        if SCHEME_PREFIX.match(url):
            raise InvalidUrlError(f"Unsupported URL scheme: {raw}")
        url = f"https://{url}"

    try:
        parts = urlsplit(url)
        # Accessing port validates it
        parts.port
    except ValueError as e:
        raise InvalidUrlError(f"Invalid URL format: {raw}") from e

    if parts.scheme.lower() not in ALLOWED_SCHEMES or not parts.hostname:
        raise InvalidUrlError(f"Invalid URL format: {raw}")
    if any(c.isspace() for c in parts.netloc):
        raise InvalidUrlError(f"Invalid URL format: {raw}")

    path = parts.path
    # A bare "/" before a query or fragment stays so the URL keeps its shape
    if path.endswith("/") and (path != "/" or not (parts.query or parts.fragment)):
        path = path[:-1]

    # urlunsplit drops an empty "?" or "#", so the result is already canonical
    return urlunsplit((parts.scheme, parts.netloc, path, parts.query, parts.fragment))
