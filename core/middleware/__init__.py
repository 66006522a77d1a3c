"""
Core middleware package.

This package provides:
- Error handling with sensitive data sanitization and reason-coded denials
- Structured logging with PII masking
- Company-scoped authorization with subscription gating
"""

from core.middleware.error_handling import (
    ErrorHandlingMiddleware,
    setup_error_handlers,
    sanitize_error_message,
)

from core.middleware.logging import (
    StructuredLoggingMiddleware,
    setup_logging,
    get_logger,
)

from core.middleware.authorization import (
    Capability,
    CapabilitySet,
    PermissionEvaluator,
    RoleResolver,
    require_capability,
    AccessError,
    AuthorizationDenied,
    SubscriptionRequired,
    NotFound,
    DenialReason,
)

__all__ = [
    # Error handling
    "ErrorHandlingMiddleware",
    "setup_error_handlers",
    "sanitize_error_message",
    # Logging
    "StructuredLoggingMiddleware",
    "setup_logging",
    "get_logger",
    # Authorization
    "Capability",
    "CapabilitySet",
    "PermissionEvaluator",
    "RoleResolver",
    "require_capability",
    "AccessError",
    "AuthorizationDenied",
    "SubscriptionRequired",
    "NotFound",
    "DenialReason",
]
