from __future__ import annotations

import re
from typing import List
from urllib.parse import urlsplit

_NON_ALNUM = re.compile(r"[^a-z0-9\s]")


def normalize_url(url: str) -> str:
    """Dedup key for a listing URL: scheme + host + path, lower-cased.

    Query string and fragment are dropped, so tracking parameters never make
    two sightings of the same posting look different.
    """
    raw = (url or "").strip()
    try:
        parts = urlsplit(raw)
    except ValueError:
        return raw.split("?", 1)[0].split("#", 1)[0].lower()
    if not parts.netloc:
        return raw.split("?", 1)[0].split("#", 1)[0].lower()
    return f"{parts.scheme}://{parts.netloc}{parts.path}".lower()


def normalize_title(title: str) -> str:
    return " ".join((title or "").split()).strip()


def tokenize(text: str) -> List[str]:
    text = (text or "").lower()
    text = _NON_ALNUM.sub("", text)
    return text.split()


def slugify(text: str) -> str:
    s = (text or "").strip().lower()
    s = re.sub(r"\s+", "-", s)
    return s
