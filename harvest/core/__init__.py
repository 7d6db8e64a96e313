from .models import (
    BatchResult,
    CanonicalListing,
    DedupPolicy,
    RawListing,
    SearchOutcome,
    SearchRequest,
)
from .normalize import normalize_url, normalize_title, tokenize
from .relevance import is_relevant
from .dedupe import Deduplicator, deduplicate_jobs

__all__ = [
    "BatchResult",
    "CanonicalListing",
    "DedupPolicy",
    "RawListing",
    "SearchOutcome",
    "SearchRequest",
    "normalize_url",
    "normalize_title",
    "tokenize",
    "is_relevant",
    "Deduplicator",
    "deduplicate_jobs",
]
