# backend/bullion/services/exceptions.py
"""
Service layer exceptions.

These exceptions represent domain-specific errors and contain NO HTTP knowledge.
The router layer is responsible for mapping these to appropriate HTTP responses.

Exception Hierarchy:
    ServiceError (base)
    ├── ValidationError
    ├── NotFoundError
    │   └── AssetNotFoundError
    ├── PriceSourceError
    │   ├── SourceUnavailableError
    │   │   └── MalformedPayloadError
    │   ├── SourceRejectedError
    │   └── NoQuoteForKeyError
    └── BackupError
        ├── InvalidBackupError
        └── UnsupportedBackupVersionError

A failed asset inside a sync cycle is never raised: the sync service records
it in SyncReport.failed and moves on to the next asset.
"""


class ServiceError(Exception):
    """
    Base exception for all service layer errors.

    Attributes:
        message: Human-readable error description
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message


# =============================================================================
# VALIDATION ERRORS
# =============================================================================


class ValidationError(ServiceError):
    """
    Raised when input validation fails.

    This is for programmatic validation errors, NOT for request body
    validation which is handled by Pydantic.

    Attributes:
        field: The field that failed validation (optional)
    """

    def __init__(self, message: str, field: str | None = None) -> None:
        self.field = field
        super().__init__(message)


# =============================================================================
# NOT FOUND ERRORS
# =============================================================================


class NotFoundError(ServiceError):
    """
    Base exception for resource not found errors.

    Attributes:
        resource_type: Type of resource (e.g., "Asset")
        resource_id: Identifier of the resource
    """

    def __init__(
            self,
            message: str,
            resource_type: str | None = None,
            resource_id: int | str | None = None,
    ) -> None:
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(message)


class AssetNotFoundError(NotFoundError):
    """Raised when an asset id does not exist in the store."""

    def __init__(self, asset_id: int) -> None:
        self.asset_id = asset_id
        super().__init__(
            f"Asset {asset_id} not found",
            resource_type="Asset",
            resource_id=asset_id,
        )


# =============================================================================
# PRICE SOURCE ERRORS
# =============================================================================


class PriceSourceError(ServiceError):
    """
    Base exception for price source failures.

    Attributes:
        source: Name of the source that failed ("goldapi", "retailer")
    """

    def __init__(self, message: str, source: str | None = None) -> None:
        self.source = source
        super().__init__(message)


class SourceUnavailableError(PriceSourceError):
    """
    Raised when a price source cannot be reached or answers with a server error.

    Examples:
    - Network timeout
    - Server errors (500, 502, 503)
    - Connection refused

    Retryable: the next sync cycle will try again.
    """

    def __init__(self, source: str, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Source '{source}' is unavailable: {reason}", source=source)


class MalformedPayloadError(SourceUnavailableError):
    """
    Raised when a source answers but the payload cannot be interpreted.

    Usually a transient upstream glitch; if it persists the retailer site
    structure or API contract has changed.
    """

    def __init__(self, source: str, reason: str) -> None:
        super().__init__(source, f"malformed payload ({reason})")


class SourceRejectedError(PriceSourceError):
    """
    Raised when a source refuses the request.

    Examples:
    - Missing or invalid API key (401, 403)
    - Quota exhausted (429)

    NOT retryable without operator action.

    Attributes:
        status_code: HTTP status returned by the source, if any
    """

    def __init__(self, source: str, reason: str, status_code: int | None = None) -> None:
        self.reason = reason
        self.status_code = status_code
        super().__init__(f"Source '{source}' rejected the request: {reason}", source=source)


class NoQuoteForKeyError(PriceSourceError):
    """
    Raised when a response lacks the key an asset needs.

    Benign: the asset is reported as missing for this cycle.

    Attributes:
        key: The retailer id or quote field that was absent
    """

    def __init__(self, source: str, key: str) -> None:
        self.key = key
        super().__init__(f"Source '{source}' has no quote for '{key}'", source=source)


# =============================================================================
# BACKUP ERRORS
# =============================================================================


class BackupError(ServiceError):
    """Base exception for backup export/restore failures."""
    pass


class InvalidBackupError(BackupError):
    """Raised when a backup bundle cannot be parsed or is internally inconsistent."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Invalid backup: {reason}")


class UnsupportedBackupVersionError(BackupError):
    """
    Raised for backup bundles written by an unknown format version.

    Such bundles are rejected before any of their content is interpreted.

    Attributes:
        version: Version found in the bundle
        supported: Highest version this build can read
    """

    def __init__(self, version: object, supported: int) -> None:
        self.version = version
        self.supported = supported
        super().__init__(
            f"Unsupported backup format version {version!r} "
            f"(this build reads versions 1..{supported})"
        )


__all__ = [
    "ServiceError",
    "ValidationError",
    "NotFoundError",
    "AssetNotFoundError",
    "PriceSourceError",
    "SourceUnavailableError",
    "MalformedPayloadError",
    "SourceRejectedError",
    "NoQuoteForKeyError",
    "BackupError",
    "InvalidBackupError",
    "UnsupportedBackupVersionError",
]
