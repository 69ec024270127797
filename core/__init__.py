"""
Core utilities and configuration for the pipeline engine.

This package provides foundational components used throughout the engine:

Modules:
    config: Engine configuration and environment variable management
    exceptions: Custom exception hierarchy for error handling
    logging: Logging configuration

Usage:
    from core.config import settings
    from core.exceptions import AdapterNotFoundError, CredentialsNotFoundError
    from core.logging import setup_logging

Example:
    # Initialize logging
    setup_logging()
"""

__all__ = [
    "settings",
    "setup_logging",
    # Exceptions
    "ETLException",
    "ConfigurationError",
    "InvalidPipelineError",
    "AdapterNotFoundError",
    "TargetAdapterNotFoundError",
    "CredentialsNotFoundError",
    "UploadNotSupportedError",
    "EndpointNotFoundError",
    "MissingConfigError",
    "AuthenticationError",
    "AuthorizationRequiredError",
    "TokenRefreshError",
    "ExtractionError",
    "DownloadTimeoutError",
]
