from __future__ import annotations

from typing import Optional

TITLE_MARKERS = (
    "just a moment",
    "attention required",
    "access denied",
    "security check",
    "are you a robot",
)

BODY_MARKERS = (
    "captcha",
    "verify you are human",
    "unusual traffic",
    "access denied",
    "additional verification required",
    "cf-challenge",
    "px-captcha",
)


def detect_block(title: str, text: str) -> Optional[str]:
    """Return a marker label when a page looks like an anti-bot wall.

    Diagnostic only: callers log the result and otherwise treat the page as
    an ordinary empty page.
    """
    t = (title or "").lower()
    for marker in TITLE_MARKERS:
        if marker in t:
            return f"title:{marker}"
    body = (text or "").lower()
    for marker in BODY_MARKERS:
        if marker in body:
            return f"body:{marker}"
    return None
