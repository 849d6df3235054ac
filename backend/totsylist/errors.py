"""Typed failures of the generate-list pipeline.

Each class fixes the error code, HTTP status and retryability reported to the
caller, so the route never decides status codes on its own.
"""

from __future__ import annotations


class ShoppingListError(Exception):
    """Base class for every failure that ends in a fallback response."""

    code: str = "generation_failed"
    status_code: int = 502
    retryable: bool = True

    def __init__(self, message: str, *, retryable: bool | None = None) -> None:
        super().__init__(message)
        self.message = message
        if retryable is not None:
            self.retryable = retryable


class ConfigurationError(ShoppingListError):
    """A required setting (the Gemini API key) is missing."""

    code = "configuration_error"
    status_code = 503
    retryable = False


class ProviderError(ShoppingListError):
    """The Gemini call failed: transport, timeout, HTTP status, or empty reply."""

    code = "provider_error"

    def __init__(
        self,
        message: str,
        *,
        provider_status: int | None = None,
        retryable: bool | None = None,
    ) -> None:
        if retryable is None and provider_status is not None:
            # 429 is throttling; other 4xx are client errors that will not fix themselves
            retryable = not (400 <= provider_status < 500 and provider_status != 429)
        super().__init__(message, retryable=retryable)
        self.provider_status = provider_status


class MalformedOutputError(ShoppingListError):
    """The model reply is not parseable as JSON after fence stripping."""

    code = "malformed_output"


class SchemaMismatchError(ShoppingListError):
    """The model reply is valid JSON but not a shopping list."""

    code = "schema_mismatch"
