"""Error taxonomy for the assessment platform.

Every failure the core can report carries an ``ErrorKind``. Input errors
abort a request before anything is written, directory errors degrade a
single data category, and store errors get one re-initialize-and-retry
before they are surfaced.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Stable, wire-visible error identifiers."""

    # Input errors
    CUSTOMER_ID_REQUIRED = "CustomerIdRequired"
    CUSTOMER_NOT_FOUND = "CustomerNotFound"
    CREDENTIALS_INCOMPLETE = "CredentialsIncomplete"
    INVALID_DOMAIN_FORMAT = "InvalidDomainFormat"
    ASSESSMENT_NOT_FOUND = "AssessmentNotFound"
    TENANT_ID_REQUIRED = "TenantIdRequired"
    ALREADY_EXISTS = "AlreadyExists"

    # Upstream directory errors (per category, non-fatal)
    AUTHENTICATION_FAILED = "AuthenticationFailed"
    INSUFFICIENT_PERMISSIONS = "InsufficientPermissions"
    NOT_AVAILABLE = "NotAvailable"
    UPSTREAM_ERROR = "UpstreamError"

    # Storage errors
    NOT_INITIALIZED = "NotInitialized"
    STORE_TABLE_MISSING = "StoreTableMissing"
    STORE_UNAVAILABLE = "StoreUnavailable"


# HTTP status used when an error kind reaches the API boundary
ERROR_STATUS_CODES: dict[ErrorKind, int] = {
    ErrorKind.CUSTOMER_ID_REQUIRED: 400,
    ErrorKind.CREDENTIALS_INCOMPLETE: 400,
    ErrorKind.INVALID_DOMAIN_FORMAT: 400,
    ErrorKind.TENANT_ID_REQUIRED: 400,
    ErrorKind.CUSTOMER_NOT_FOUND: 404,
    ErrorKind.ASSESSMENT_NOT_FOUND: 404,
    ErrorKind.ALREADY_EXISTS: 409,
    ErrorKind.AUTHENTICATION_FAILED: 502,
    ErrorKind.INSUFFICIENT_PERMISSIONS: 502,
    ErrorKind.NOT_AVAILABLE: 502,
    ErrorKind.UPSTREAM_ERROR: 502,
    ErrorKind.NOT_INITIALIZED: 500,
    ErrorKind.STORE_TABLE_MISSING: 500,
    ErrorKind.STORE_UNAVAILABLE: 500,
}


class AssessmentPlatformError(Exception):
    """Base class for all platform errors."""

    kind: ErrorKind = ErrorKind.UPSTREAM_ERROR

    def __init__(self, message: str = ""):
        super().__init__(message or self.kind.value)
        self.message = message or self.kind.value


# =============================================================================
# Directory API
# =============================================================================


class DirectoryError(AssessmentPlatformError):
    """Raised when a directory (Microsoft Graph) fetch fails."""

    kind = ErrorKind.UPSTREAM_ERROR


class AuthenticationFailed(DirectoryError):
    kind = ErrorKind.AUTHENTICATION_FAILED


class InsufficientPermissions(DirectoryError):
    kind = ErrorKind.INSUFFICIENT_PERMISSIONS


class NotAvailable(DirectoryError):
    kind = ErrorKind.NOT_AVAILABLE


class UpstreamError(DirectoryError):
    kind = ErrorKind.UPSTREAM_ERROR


# =============================================================================
# Backing store
# =============================================================================


class StoreError(AssessmentPlatformError):
    """Raised when the backing store cannot serve a request."""

    kind = ErrorKind.STORE_UNAVAILABLE


class NotInitialized(StoreError):
    kind = ErrorKind.NOT_INITIALIZED


class StoreTableMissing(StoreError):
    kind = ErrorKind.STORE_TABLE_MISSING


class StoreUnavailable(StoreError):
    kind = ErrorKind.STORE_UNAVAILABLE


class RecordExists(AssessmentPlatformError):
    """Raised when an insert collides with an existing primary or unique key."""

    kind = ErrorKind.ALREADY_EXISTS


# Store errors the orchestrator recovers from with one re-initialize
RECOVERABLE_STORE_ERRORS = (NotInitialized, StoreTableMissing)


class InvalidDomainFormat(AssessmentPlatformError):
    kind = ErrorKind.INVALID_DOMAIN_FORMAT


class SecretResolutionError(AssessmentPlatformError):
    """Raised when a customer's client secret reference cannot be resolved."""

    kind = ErrorKind.AUTHENTICATION_FAILED
