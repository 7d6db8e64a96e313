from __future__ import annotations

import os
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

FORCED_LOCATION = os.getenv("HARVEST_FORCED_LOCATION", "United States")

EXPERIENCE_LEVELS = ("Entry Level", "Mid Level", "Senior Level")
ALL_EXPERIENCE = "all"

# Short forms and a few spellings seen in queue payloads
_EXPERIENCE_ALIASES = {
    "entry": "Entry Level",
    "entry level": "Entry Level",
    "entry-level": "Entry Level",
    "mid": "Mid Level",
    "mid level": "Mid Level",
    "mid-level": "Mid Level",
    "senior": "Senior Level",
    "senior level": "Senior Level",
    "senior-level": "Senior Level",
    "all": ALL_EXPERIENCE,
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def canonical_experience(value: str) -> str:
    key = " ".join((value or "").split()).lower()
    if key not in _EXPERIENCE_ALIASES:
        raise ValueError(f"unknown experience level: {value!r}")
    return _EXPERIENCE_ALIASES[key]


class DedupPolicy(str, Enum):
    CROSS_SOURCE = "cross-source"
    PER_SOURCE = "per-source"


class SearchRequest(BaseModel):
    """One (role, experience) search pulled from the work queue.

    The location is not negotiable: whatever the requester sent is replaced
    by FORCED_LOCATION.
    """

    model_config = ConfigDict(populate_by_name=True)

    role: str
    experience: str = ALL_EXPERIENCE
    location: str = FORCED_LOCATION
    user_id: Optional[str] = Field(default=None, alias="userId")
    requested_at: datetime = Field(default_factory=utcnow, alias="requestedAt")

    @field_validator("role")
    @classmethod
    def _role_not_blank(cls, v: str) -> str:
        v = " ".join((v or "").split())
        if not v:
            raise ValueError("role must not be empty")
        return v

    @field_validator("experience", mode="before")
    @classmethod
    def _experience(cls, v) -> str:
        if v is None:
            return ALL_EXPERIENCE
        return canonical_experience(str(v))

    @field_validator("location", mode="before")
    @classmethod
    def _force_location(cls, v) -> str:
        return FORCED_LOCATION

    def to_payload(self) -> str:
        return self.model_dump_json(by_alias=True)


class RawListing(BaseModel):
    url: str
    title: str
    source_name: str
    observed_at: datetime = Field(default_factory=utcnow)


class CanonicalListing(RawListing):
    normalized_url: str
    role: str
    experience: str
    country: str


class SearchOutcome(BaseModel):
    jobs: List[CanonicalListing] = []
    per_source_count: Dict[str, int] = {}
    total_jobs: int = 0
    # pre-filter total and per-source failure messages, for logs and the run log
    raw_count: int = 0
    source_errors: Dict[str, str] = {}


class BatchResult(BaseModel):
    inserted: int = 0
    updated: int = 0
    matched: int = 0
    failed: int = 0

    def merge(self, other: "BatchResult") -> "BatchResult":
        return BatchResult(
            inserted=self.inserted + other.inserted,
            updated=self.updated + other.updated,
            matched=self.matched + other.matched,
            failed=self.failed + other.failed,
        )
