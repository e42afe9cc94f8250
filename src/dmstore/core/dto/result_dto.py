"""Base result types for DMStore registry operations.

Expected states (unknown kind, duplicate registration, empty search) are
returned as Result objects, while store and backend failures raise the
exceptions in ``dmstore.core.exceptions``.
"""

from typing import Any, Final, Literal, Self

from pydantic import BaseModel, Field


class StatusDetail(BaseModel):
    """Structured status information for operation results.

    Attributes:
        code: Machine-readable status code (e.g., "not_found", "duplicate").
        message: Human-readable status description.
        context: Additional diagnostic data (safe to log/serialize).
    """

    code: str = Field(description="Status code: 'invalid', 'duplicate', 'not_found', etc.")
    message: str = Field(description="Human-readable status description")
    context: dict[str, Any] = Field(default_factory=dict, description="Diagnostic context")


class BaseResult(BaseModel):
    """Base class for all DMStore operation results.

    Pattern:
    - status="success" → operation succeeded, specific fields populated
    - status="error" → expected failure, detail contains the reason

    Example:
        >>> result = dewey.execute_get("users")
        >>> if result.is_ok() and result.store is not None:
        ...     result.store.list_ids()
        >>> else:
        ...     print(f"[{result.detail.code}] {result.detail.message}")
    """

    status: Literal["success", "error"] = Field(default="success", description="Operation status")
    detail: StatusDetail | None = Field(
        default=None, description="Status details (present for error or informational success)"
    )

    model_config = {"extra": "forbid"}

    def is_ok(self) -> bool:
        """Check if operation succeeded."""
        return self.status == "success"

    def is_error(self) -> bool:
        """Check if operation failed with expected error."""
        return self.status == "error"

    @classmethod
    def success(cls, *, detail: StatusDetail | None = None, **kwargs: Any) -> Self:
        """Factory method for successful result.

        Args:
            detail: Optional informational status.
            **kwargs: Subclass-specific fields.
        """
        return cls(status="success", detail=detail, **kwargs)

    @classmethod
    def fail(cls, detail: StatusDetail, **kwargs: Any) -> Self:
        """Factory method for expected failure result.

        Args:
            detail: Required status details describing the failure.
            **kwargs: Subclass-specific fields.
        """
        return cls(status="error", detail=detail, **kwargs)


# =============================================================================
# STATUS CODE REGISTRY
# =============================================================================


class StatusCode:
    """Centralized registry of status codes used across DMStore.

    Example:
        >>> if result.detail and result.detail.code == StatusCode.NOT_FOUND:
        ...     bootstrap_kind()
    """

    INVALID: Final = "invalid"
    """Invalid id, store, or configuration."""

    NOT_FOUND: Final = "not_found"
    """Requested kind is not registered (expected state, not error)."""

    DUPLICATE: Final = "duplicate"
    """Same store instance already registered under this id (skipped)."""

    ALREADY_EXISTS: Final = "already_exists"
    """A different store is registered under this id."""

    NO_RESULTS: Final = "no_results"
    """Search matched no registered kinds."""


__all__ = ["BaseResult", "StatusDetail", "StatusCode"]
