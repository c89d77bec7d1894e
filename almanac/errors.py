from __future__ import annotations


class AlmanacError(ValueError):
    """Base error. `stage` names where a failed search stopped."""

    stage = "search"


class ParseError(AlmanacError):
    stage = "parse"


class ChainError(AlmanacError):
    # malformed chain detected while building the source index
    stage = "parse"


class ChainResolutionError(AlmanacError):
    stage = "resolve"


class EmptyDomainError(AlmanacError):
    stage = "domain"


class SearchError(AlmanacError):
    stage = "search"


class SearchCancelled(SearchError):
    pass


class SearchTimeout(SearchError):
    pass
