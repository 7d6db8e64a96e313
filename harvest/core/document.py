from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from bs4 import BeautifulSoup


def _soup(html: str) -> BeautifulSoup:
    """
    Parse HTML into a BeautifulSoup object, preferring 'html.parser' but falling back to 'lxml'.
    """
    try:
        return BeautifulSoup(html, "html.parser")
    except Exception:
        return BeautifulSoup(html, "lxml")


@dataclass
class Document:
    """Snapshot of one fetched page, as handed to an adapter's extractor."""

    url: str
    html: str
    status: int = 200
    _parsed: Optional[BeautifulSoup] = field(default=None, init=False, repr=False, compare=False)

    @property
    def soup(self) -> BeautifulSoup:
        if self._parsed is None:
            self._parsed = _soup(self.html or "")
        return self._parsed

    def title(self) -> str:
        t = self.soup.title
        if t is not None and t.string:
            return str(t.string).strip()
        return ""

    def text(self) -> str:
        return self.soup.get_text(" ", strip=True)
