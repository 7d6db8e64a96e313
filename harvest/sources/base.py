from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Iterator, Optional

from harvest.core.document import Document
from harvest.core.models import ALL_EXPERIENCE, RawListing


class SourceAdapter(ABC):
    """One external job board.

    build_url is pure and deterministic; extract is pure given a document and
    yields nothing (rather than raising) when the expected markup is absent.
    requires_scripting selects the browser fetch mode. min_results and
    page_cap override the paginator defaults for this source when set.
    """

    name: str
    requires_scripting: bool = False
    min_results: Optional[int] = None
    page_cap: Optional[int] = None

    @abstractmethod
    def build_url(self, role: str, location: str, page: int, experience: str = ALL_EXPERIENCE) -> str:
        ...

    @abstractmethod
    def extract(self, document: Document, observed_at: Optional[datetime] = None) -> Iterator[RawListing]:
        ...

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        mode = "scripted" if self.requires_scripting else "direct"
        return f"<{type(self).__name__} name={self.name!r} mode={mode}>"
