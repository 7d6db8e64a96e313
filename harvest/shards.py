"""Role catalog and the shard split used by `harvest launch`."""
from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from typing import Optional, Sequence

from harvest.core.models import EXPERIENCE_LEVELS

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class Shard:
    name: str
    roles: tuple[str, ...]


SHARDS: tuple[Shard, ...] = (
    Shard("core-engineering", (
        "Backend Engineer", "Frontend Engineer", "Full Stack Engineer", "Mobile Engineer",
        "Software Engineer", "Platform Engineer", "Systems Engineer", "Embedded Systems Engineer", "UI UX",
    )),
    Shard("cloud-devops", (
        "Cloud Engineer", "Cloud Architect", "DevOps Engineer", "Site Reliability Engineer (SRE)",
        "Infrastructure Engineer", "Cloud Strategy Consultant", "Network Cloud Engineer",
    )),
    Shard("security-risk", (
        "Security Engineer", "Cloud Security Engineer", "Application Security Engineer",
        "Network Security Engineer", "Cyber Security Analyst", "GRC / Compliance Engineer",
        "IT Auditor", "FedRAMP / ATO Engineer", "Technology Risk Manager",
    )),
    Shard("data-ai", (
        "Data Engineer", "Data Scientist", "Analytics Engineer", "Business Intelligence Engineer",
        "Machine Learning Engineer", "AI Engineer", "Financial Analyst",
    )),
    Shard("qa-testing", (
        "QA Engineer", "Automation Test Engineer", "Performance Test Engineer",
        "Security Test Engineer", "Test Lead / QA Lead",
    )),
    Shard("it-operations", (
        "IT Infrastructure Engineer", "IT Operations Engineer", "Linux / Unix Administrator",
        "Monitoring / SIEM Engineer", "Observability Engineer", "Release / Configuration Manager",
        "Network Engineer",
    )),
    Shard("enterprise-apps", (
        "SAP Analyst", "ERP Consultant", "CRM Consultant", "ServiceNow Developer / Admin",
        "IT Asset / ITOM Engineer", "Workday Analyst", "Salesforce Developer",
    )),
    Shard("architecture-leadership", (
        "Enterprise Architect", "Solutions Architect", "IT Manager", "CTO / CIO",
        "Product Manager", "Technical Product Manager", "Project Manager", "Program Manager",
    )),
    Shard("emerging-tech", (
        "Blockchain Engineer", "IoT Engineer", "Robotics Engineer", "AR / VR Engineer",
        "AML KYC", "Business Analyst",
    )),
)

# Every role the search front end offers, in shard order
SUPPORTED_ROLES: tuple[str, ...] = tuple(role for shard in SHARDS for role in shard.roles)

# Used by `once`/`enqueue` when neither --roles nor ROLES is given
DEFAULT_ROLES: tuple[str, ...] = (
    "Frontend Developer",
    "Backend Developer",
    "Full Stack Developer",
    "DevOps Engineer",
    "Data Scientist",
    "Product Manager",
)

DEFAULT_EXPERIENCES: tuple[str, ...] = EXPERIENCE_LEVELS


def find_shard(name: str) -> Shard:
    for shard in SHARDS:
        if shard.name == name:
            return shard
    raise KeyError(f"unknown shard {name!r}; known: {', '.join(s.name for s in SHARDS)}")


def parse_roles(raw: Optional[str]) -> list[str]:
    """Accepts a JSON list (as the launcher writes it) or a comma-separated list."""
    if raw is None or not raw.strip():
        return []
    text = raw.strip()
    if text.startswith("["):
        try:
            data = json.loads(text)
        except ValueError:
            LOGGER.warning("ROLES is not valid JSON, falling back to comma split")
        else:
            return [str(r).strip() for r in data if str(r).strip()]
    return [r.strip() for r in text.split(",") if r.strip()]


def resolve_roles(explicit: Optional[Sequence[str]] = None) -> list[str]:
    if explicit:
        return [r for r in explicit if r.strip()]
    from_env = parse_roles(os.getenv("ROLES"))
    if from_env:
        return from_env
    return list(DEFAULT_ROLES)


def suggest_roles(query: Optional[str], limit: int = 10) -> list[str]:
    """Catalog roles containing `query` (case-insensitive), prefix matches first."""
    if not query:
        return []
    q = query.lower()
    matches = [r for r in SUPPORTED_ROLES if q in r.lower()]
    matches.sort(key=lambda r: not r.lower().startswith(q))
    return matches[:limit]
