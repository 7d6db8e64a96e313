from __future__ import annotations

from typing import Iterable, List, Set, Tuple

from .models import CanonicalListing, DedupPolicy


class Deduplicator:
    """Seen-set of normalized URLs, scoped to one search pass.

    First occurrence wins. With the per-source policy the key also carries
    the source name, so different boards may each keep their copy of a job.
    """

    def __init__(self, policy: DedupPolicy = DedupPolicy.CROSS_SOURCE):
        self.policy = DedupPolicy(policy)
        self._seen: Set[Tuple[str, str]] = set()

    def _key(self, job: CanonicalListing) -> Tuple[str, str]:
        if self.policy is DedupPolicy.PER_SOURCE:
            return (job.source_name, job.normalized_url)
        return ("", job.normalized_url)

    def admit(self, job: CanonicalListing) -> bool:
        key = self._key(job)
        if key in self._seen:
            return False
        self._seen.add(key)
        return True

    def apply(self, jobs: Iterable[CanonicalListing]) -> List[CanonicalListing]:
        return [j for j in jobs if self.admit(j)]


def deduplicate_jobs(
    jobs: Iterable[CanonicalListing], policy: DedupPolicy = DedupPolicy.CROSS_SOURCE
) -> List[CanonicalListing]:
    return Deduplicator(policy).apply(jobs)
