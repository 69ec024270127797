"""
Custom exceptions for the pipeline engine with structured error context.

Exception Hierarchy:
    ETLException (base)
    ├── ConfigurationError
    │   ├── InvalidPipelineError
    │   ├── AdapterNotFoundError
    │   │   └── TargetAdapterNotFoundError
    │   ├── CredentialsNotFoundError
    │   ├── UploadNotSupportedError
    │   ├── EndpointNotFoundError
    │   └── MissingConfigError
    ├── AuthenticationError
    │   ├── AuthorizationRequiredError
    │   └── TokenRefreshError
    └── ExtractionError
        └── DownloadTimeoutError

Configuration and authentication errors are raised by the engine itself and
always propagate. Errors raised by adapters during download/upload are never
wrapped: once the retry policy gives up they surface unchanged.
"""

from typing import Optional, Dict, Any
from datetime import datetime, timezone


class ETLException(Exception):
    """
    Base exception for all engine errors.

    Attributes:
        message: Human-readable error message
        context: Additional context information (adapter id, credential id, etc.)
        original_exception: The original exception that was caught (if any)
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None
    ):
        self.message = message
        self.context = context or {}
        self.original_exception = original_exception
        self.timestamp = datetime.now(timezone.utc)

        super().__init__(message)
        if original_exception:
            self.__cause__ = original_exception

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "original_error": str(self.original_exception) if self.original_exception else None
        }


# ============================================================================
# Configuration Errors
# ============================================================================

class ConfigurationError(ETLException):
    """Base exception for invalid pipeline or connector configuration."""
    pass


class InvalidPipelineError(ConfigurationError):
    """Pipeline has neither a source connector nor inline data."""
    pass


class AdapterNotFoundError(ConfigurationError):
    """
    No adapter factory is registered for a connector's adapter_id.

    Context should include:
        - adapter_id: The id that was looked up
    """
    pass


class TargetAdapterNotFoundError(AdapterNotFoundError):
    """No adapter factory is registered for the target connector."""
    pass


class CredentialsNotFoundError(ConfigurationError):
    """
    The vault holds no entry for a connector's credential_id.

    Context should include:
        - credential_id: The id that was looked up
    """
    pass


class UploadNotSupportedError(ConfigurationError):
    """The target adapter has no upload capability."""
    pass


class EndpointNotFoundError(ConfigurationError):
    """An adapter does not recognise the connector's endpoint_id."""
    pass


class MissingConfigError(ConfigurationError):
    """A required adapter config key is missing from the connector."""
    pass


# ============================================================================
# Authentication Errors
# ============================================================================

class AuthenticationError(ETLException):
    """Base exception for credential resolution failures."""
    pass


class AuthorizationRequiredError(AuthenticationError):
    """OAuth2 credentials carry no usable token material; initial authorization is required."""
    pass


class TokenRefreshError(AuthenticationError):
    """
    The OAuth2 token endpoint rejected a refresh or client_credentials grant.

    Context should include:
        - credential_id: Credential being refreshed
        - grant_type: Grant that was attempted
        - status_code: HTTP status code (if applicable)
    """
    pass


# ============================================================================
# Extraction Errors
# ============================================================================

class ExtractionError(ETLException):
    """Base exception for data extraction failures."""
    pass


class DownloadTimeoutError(ExtractionError):
    """
    Extraction wall-clock budget exhausted before a page fetch attempt.

    Raised inside the fetch loop only; the loop turns it into a graceful
    truncation of the extracted data.
    """
    pass
