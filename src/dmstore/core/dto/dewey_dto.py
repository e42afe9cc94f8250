"""Dewey result DTOs.

Typed results for kind registry operations.
"""

from typing import Any

from pydantic import Field

from dmstore.core.dto.result_dto import BaseResult


class GetResult(BaseResult):
    """Result of getting a store by kind id.

    [Result Pattern] Check result.store before using it.

    Status codes:
        - success: Store found
        - success + detail(NOT_FOUND): Kind not registered (expected state)
    """

    store: Any = Field(default=None, description="EntityStore if found")
    id: str = Field(default="", description="Requested kind id")


class RegisterResult(BaseResult):
    """Result of registering a store.

    Status codes:
        - success: Store registered
        - success + detail(DUPLICATE): Same instance already registered (skipped)
        - error + detail(ALREADY_EXISTS): Different store with same id exists
        - error + detail(INVALID): Invalid id or store
    """

    id: str = Field(default="", description="Kind id")
    created: bool = Field(default=True, description="True if newly created, False if skipped")


class SearchKindResult(BaseResult):
    """Result of searching registered kinds.

    Status codes:
        - success: Search completed
        - success + detail(NO_RESULTS): Nothing matched (informational)
    """

    stores: list[Any] = Field(default_factory=list, description="Matching EntityStores")
    ids: list[str] = Field(default_factory=list, description="Matching kind ids")


__all__ = ["GetResult", "RegisterResult", "SearchKindResult"]
