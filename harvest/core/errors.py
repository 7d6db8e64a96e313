from __future__ import annotations

from typing import Optional


class HarvestError(Exception):
    """Base class for pipeline errors."""


class FetchFailure(HarvestError):
    """A single (source, page) retrieval failed.

    reason is one of "timeout", "network", "status" or "browser".
    """

    def __init__(self, url: str, reason: str, status: Optional[int] = None, detail: str = ""):
        self.url = url
        self.reason = reason
        self.status = status
        self.detail = detail
        msg = f"{reason} fetching {url}"
        if status is not None:
            msg += f" (status={status})"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)


class PersistenceFailure(HarvestError):
    pass


class QueueUnavailable(HarvestError):
    pass


class StoreUnavailable(HarvestError):
    pass


class InvalidRequest(HarvestError):
    """A queue payload that does not decode into a SearchRequest."""
