"""Short-link generation and cache-aside resolution engine."""

from shortlink.engine import ShortLinkEngine

__all__ = ["ShortLinkEngine"]
