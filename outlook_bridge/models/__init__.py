"""Domain model exports."""

from .graph import AggregatedResult, PageResult
from .tokens import AccountRegistry, AccountStatus, TokenResponse, TokenSet

__all__ = [
    "AccountRegistry",
    "AccountStatus",
    "AggregatedResult",
    "PageResult",
    "TokenResponse",
    "TokenSet",
]
