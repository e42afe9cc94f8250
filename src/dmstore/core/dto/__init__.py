"""DTO package for dmstore core.

Provides the BaseResult pattern for registry operations.
"""

from .dewey_dto import GetResult, RegisterResult, SearchKindResult
from .result_dto import BaseResult, StatusCode, StatusDetail

__all__ = [
    "BaseResult",
    "StatusDetail",
    "StatusCode",
    "GetResult",
    "RegisterResult",
    "SearchKindResult",
]
