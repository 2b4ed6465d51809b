"""Tagged outcome of one AI resolution attempt.

The search service pattern-matches on these instead of relying on empty
lists or swallowed exceptions::

    match result:
        case Ok(books):
            ...
        case ParseError() | ProviderError() | EmptyResult():
            ...
"""

from dataclasses import dataclass, field
from typing import Union

from pageturner.core.errors import ErrorCategory
from pageturner.domain.entities import Book


@dataclass(frozen=True)
class Ok:
    books: list[Book]
    from_cache: bool = False


@dataclass(frozen=True)
class ParseError:
    message: str
    raw: str = field(default="", repr=False)


@dataclass(frozen=True)
class ProviderError:
    category: ErrorCategory
    message: str
    code: str = "api/error"


@dataclass(frozen=True)
class EmptyResult:
    reason: str = "Provider returned no books"


ResolutionResult = Union[Ok, ParseError, ProviderError, EmptyResult]
