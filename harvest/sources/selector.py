from __future__ import annotations

import re
from datetime import datetime
from typing import Any, Iterator, Mapping, Optional
from urllib.parse import parse_qs, quote, urljoin, urlsplit

from bs4.element import Tag

from harvest.core.document import Document
from harvest.core.models import ALL_EXPERIENCE, RawListing, utcnow
from harvest.core.normalize import normalize_title, slugify
from harvest.sources.base import SourceAdapter


def _encode(value: str) -> str:
    # same escaping as a browser's encodeURIComponent
    return quote(value or "", safe="-_.!~*'()")


class SelectorAdapter(SourceAdapter):
    """Adapter driven entirely by a row of the source table.

    url_template placeholders: {role} {location} {role_slug} {location_slug}
    {experience} {start} {page}. {start} is page * page_step; {page} is the
    page index plus page_offset (most boards count from 1).
    """

    def __init__(
        self,
        name: str,
        url_template: str,
        link_selector: str,
        *,
        base_url: str = "",
        title_selector: Optional[str] = None,
        page_step: int = 1,
        page_offset: int = 1,
        requires_scripting: bool = False,
        min_results: Optional[int] = None,
        page_cap: Optional[int] = None,
        max_results: Optional[int] = None,
    ):
        if not name:
            raise ValueError("source entry requires a name")
        self.name = name
        self.url_template = url_template
        self.link_selector = link_selector
        self.base_url = base_url
        self.title_selector = title_selector
        self.page_step = page_step
        self.page_offset = page_offset
        self.requires_scripting = requires_scripting
        self.min_results = min_results
        self.page_cap = page_cap
        self.max_results = max_results

    @classmethod
    def from_entry(cls, entry: Mapping[str, Any]) -> "SelectorAdapter":
        known = {
            "base_url", "title_selector", "page_step", "page_offset",
            "requires_scripting", "min_results", "page_cap", "max_results",
        }
        kwargs = {k: entry[k] for k in known if entry.get(k) is not None}
        return cls(entry.get("name", ""), entry["url"], entry["link_selector"], **kwargs)

    def build_url(self, role: str, location: str, page: int, experience: str = ALL_EXPERIENCE) -> str:
        return self.url_template.format(
            role=_encode(role),
            location=_encode(location),
            role_slug=_encode(slugify(role)),
            location_slug=_encode(slugify(location)),
            experience=_encode(experience),
            start=page * self.page_step,
            page=page + self.page_offset,
        )

    def resolve_href(self, href: str) -> Optional[str]:
        href = (href or "").strip()
        if not href or href.startswith(("javascript:", "mailto:", "#")):
            return None
        if href.startswith("http"):
            return href
        return urljoin(self.base_url or "", href) if self.base_url else None

    def _title_for(self, el: Tag) -> str:
        if self.title_selector:
            parts = [t.get_text(" ", strip=True) for t in el.select(self.title_selector)]
            title = normalize_title(" ".join(p for p in parts if p))
            if title:
                return title
        return normalize_title(el.get_text(" ", strip=True))

    def extract(self, document: Document, observed_at: Optional[datetime] = None) -> Iterator[RawListing]:
        seen_at = observed_at or utcnow()
        emitted = 0
        for el in document.soup.select(self.link_selector):
            if not isinstance(el, Tag):
                continue
            href = el.get("href")
            if not isinstance(href, str):
                continue
            url = self.resolve_href(href)
            if not url:
                continue
            yield RawListing(url=url, title=self._title_for(el), source_name=self.name, observed_at=seen_at)
            emitted += 1
            if self.max_results is not None and emitted >= self.max_results:
                return


JOBISH_URL = re.compile(r"(job|career|hiring|position)", re.I)


class GoogleJobsAdapter(SelectorAdapter):
    """Google search results page: links arrive wrapped as /url?q=<target>."""

    def __init__(self, name: str = "Google Jobs", **kwargs):
        kwargs.setdefault("base_url", "https://www.google.com")
        kwargs.setdefault("title_selector", "h3, h4")
        kwargs.setdefault("page_cap", 1)
        kwargs.setdefault("max_results", 20)
        url_template = kwargs.pop(
            "url_template",
            "https://www.google.com/search?q={role}+jobs+{location}+{experience}&tbm=job&tbs=qdr:d",
        )
        link_selector = kwargs.pop("link_selector", 'a[href*="/url?q="], a[data-ved]')
        super().__init__(name, url_template, link_selector, **kwargs)

    @classmethod
    def from_entry(cls, entry: Mapping[str, Any]) -> "GoogleJobsAdapter":
        kwargs = {k: v for k, v in entry.items() if k not in {"name", "kind", "url", "enabled"} and v is not None}
        if entry.get("url"):
            kwargs["url_template"] = entry["url"]
        return cls(entry.get("name") or "Google Jobs", **kwargs)

    def resolve_href(self, href: str) -> Optional[str]:
        href = (href or "").strip()
        if "/url?q=" in href:
            target = parse_qs(urlsplit(href).query).get("q")
            if target:
                href = target[0]
        url = super().resolve_href(href)
        if not url or not JOBISH_URL.search(url):
            return None
        return url
