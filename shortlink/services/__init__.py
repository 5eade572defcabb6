"""Service layer for the short-link engine.

This package contains service classes implementing the business logic of the engine.
Services orchestrate interactions between the record store and the cache and
provide domain-specific operations.
"""

from shortlink.services.analytics import AnalyticsOptions, AnalyticsService, AnalyticsView
from shortlink.services.clicks import ClickRecorder, ClickTrackingService, RequestMetadata
from shortlink.services.management import LinkManagementService
from shortlink.services.resolver import ResolutionService
from shortlink.services.shortener import LinkCreationService

__all__ = [
    "AnalyticsOptions",
    "AnalyticsService",
    "AnalyticsView",
    "ClickRecorder",
    "ClickTrackingService",
    "LinkCreationService",
    "LinkManagementService",
    "RequestMetadata",
    "ResolutionService",
]
