"""Exceptions for the short-link service layer.

This module contains the exception hierarchy for the service layer,
providing domain-specific exceptions that abstract underlying implementation details.
"""


class ServiceError(Exception):
    """Base exception for all service-level errors."""
    pass


class LinkError(ServiceError):
    """Base exception for link-related errors."""
    pass


class LinkCreationError(LinkError):
    """Error occurred during link creation."""
    pass


class InvalidUrlError(LinkCreationError):
    """The URL is not an absolute http(s) URL."""
    pass


class InvalidAliasFormatError(LinkCreationError):
    """The requested alias doesn't meet the format requirements."""
    pass


class AliasTakenError(LinkCreationError):
    """The requested alias is already in use."""
    pass


class ExpirationInPastError(LinkCreationError):
    """The requested expiry is not in the future."""
    pass


class CreationConflictError(LinkCreationError):
    """A uniqueness conflict persisted after the permitted retries."""
    pass


class ShortCodeGenerationError(CreationConflictError):
    """Failed to generate a unique short code."""
    pass


class LinkResolutionError(LinkError):
    """Base exception for links that cannot be resolved."""
    pass


class LinkNotFoundError(LinkResolutionError):
    """Link with the specified code was not found."""
    pass


class LinkDeactivatedError(LinkResolutionError):
    """Link exists but has been deactivated."""
    pass


class LinkExpiredError(LinkResolutionError):
    """Link has expired and is no longer valid."""
    pass


class LinkUpdateError(LinkError):
    """Error occurred while updating or deleting a link."""
    pass


class LinkStoreError(LinkError):
    """The record store failed while creating or resolving a link."""
    pass


class InvalidListingError(LinkError):
    """Page or page size of a link listing is out of range."""
    pass


class AnalyticsError(ServiceError):
    """Base exception for analytics-related errors."""
    pass


class AggregationFailedError(AnalyticsError):
    """The record store failed while computing statistics."""
    pass


class AnalyticsDisabledError(AnalyticsError):
    """Analytics are switched off in the settings."""
    pass


class ClickTrackingError(AnalyticsError):
    """Error occurred while recording a click."""
    pass
