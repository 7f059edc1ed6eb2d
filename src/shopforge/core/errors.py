"""
Error types for the shopforge publish pipeline.

Every fatal pipeline failure is a PublishError subclass. Each class carries a
fixed HTTP status and a public message so the API layer can report failures
without echoing provider payloads or toolchain output to clients.
"""

from __future__ import annotations

from typing import Any


class PublishError(Exception):
    """Base exception for all publish pipeline errors."""

    http_status: int = 500
    public_message: str = "Failed to publish store"
    retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        stage: str | None = None,
        detail: Any = None,
    ):
        self.message = message
        self.stage = stage
        self.detail = detail
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format error message with the stage if known."""
        if self.stage:
            return f"[{self.stage}] {self.message}"
        return self.message

    def with_stage(self, stage: str) -> PublishError:
        """Attach the pipeline stage if none was recorded yet."""
        if self.stage is None:
            self.stage = stage
            self.args = (self._format_message(),)
        return self

    def to_dict(self, include_detail: bool = False) -> dict[str, Any]:
        """Client-safe representation."""
        data: dict[str, Any] = {
            "error": type(self).__name__,
            "message": self.public_message,
            "retryable": self.retryable,
        }
        if self.stage:
            data["stage"] = self.stage
        if include_detail:
            data["details"] = self.message
        return data


class LayoutError(PublishError):
    """
    Raised when a layout document cannot be parsed or repaired.

    Examples:
    - Absent layout
    - Text that stays unparsable after every repair step
    - A document whose shape cannot be coerced into pages
    """

    http_status = 400
    public_message = "Invalid store layout. Please check your store design."


class ScaffoldError(PublishError):
    """Raised when the build workspace cannot be created or written."""

    public_message = "Failed to prepare your store for building."


class BuildError(PublishError):
    """
    Raised when the install or build step fails.

    ``detail`` carries the tail of the toolchain's stderr.
    """

    http_status = 400
    public_message = "Failed to build your store. Please check your store configuration."


class DeploymentError(PublishError):
    """Raised when the hosting provider rejects or fails a deployment."""

    public_message = "Deployment to the hosting provider failed."


class ProviderConfigError(DeploymentError):
    """Raised when the hosting provider is not configured (missing token)."""

    http_status = 503
    public_message = "Hosting provider configuration error. Please contact support."


class ProviderRequestError(DeploymentError):
    """
    Raised for a failed call to the hosting provider REST API.

    Attributes:
        status_code: HTTP status returned by the provider, None for transport errors
        code: Provider error code, if the response body carried one
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        code: str | None = None,
        stage: str | None = None,
        detail: Any = None,
    ):
        self.status_code = status_code
        self.code = code
        super().__init__(message, stage=stage, detail=detail)

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404

    @property
    def is_conflict(self) -> bool:
        return self.status_code in (403, 409)

    @property
    def is_transient(self) -> bool:
        """Transport failures, rate limits and server errors are worth retrying."""
        return self.status_code is None or self.status_code == 429 or self.status_code >= 500


class PublishTimeoutError(PublishError):
    """Raised when the provider never reached a terminal state within budget."""

    public_message = "Publishing timed out. Please try again."
    retryable = True


class PublishCancelledError(PublishError):
    """Raised when a caller-supplied cancellation token aborts a publish."""

    public_message = "Publishing was cancelled."
    retryable = True


class AliasError(PublishError):
    """
    Raised when a custom domain cannot be registered or bound.

    Never fatal: the publisher logs it and falls back to the stable alias.
    """

    public_message = "Custom domain could not be assigned."


class PublishInProgressError(PublishError):
    """Raised when a second publish starts for a store that is already publishing."""

    http_status = 409
    public_message = "A publish is already in progress for this store."
    retryable = True

    def __init__(self, store_id: str):
        self.store_id = store_id
        super().__init__(f"publish already in progress for store {store_id}")


__all__ = [
    "PublishError",
    "LayoutError",
    "ScaffoldError",
    "BuildError",
    "DeploymentError",
    "ProviderConfigError",
    "ProviderRequestError",
    "PublishTimeoutError",
    "PublishCancelledError",
    "AliasError",
    "PublishInProgressError",
]
