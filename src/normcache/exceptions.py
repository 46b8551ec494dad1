"""
Custom exception hierarchy for the normalized response cache.

All exceptions inherit from NormCacheError, which provides optional context
for structured error handling and logging.

Errors raised by the caller's fetch function are never wrapped: they propagate
to the caller of ``NormalizedCache.get`` unchanged.
"""

from __future__ import annotations

from typing import Any


class NormCacheError(Exception):
    """Base exception for all cache errors.

    Attributes:
        message: Human-readable error message.
        context: Optional structured context for logging/debugging.
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            ctx_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} ({ctx_str})"
        return self.message

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, context={self.context!r})"


class ConfigurationError(NormCacheError):
    """Raised when configuration is invalid or missing."""

    pass


class MissingCapacityConfigError(ConfigurationError):
    """Raised when a tier map must be created but no capacity config is available.

    Context should include:
        - request_key: The request key being written, or
        - data_type: The entity type being written
    """

    pass


class MissingKeyError(NormCacheError):
    """Raised when a request key cannot be resolved for a read.

    Happens when no ``name`` option is given and the fetch function is anonymous
    (a lambda or a callable without ``__name__``).
    """

    pass


class FingerprintError(NormCacheError):
    """Raised when call parameters cannot be serialized for fingerprinting.

    Context should include:
        - error: The serializer's message
    """

    pass
