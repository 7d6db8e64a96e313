from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Mapping, Optional

from harvest.config import load_source_table

from .base import SourceAdapter
from .boards import DEFAULT_SOURCES
from .selector import GoogleJobsAdapter, SelectorAdapter

LOGGER = logging.getLogger(__name__)

# Source registry, in table order (populated by load_sources)
REGISTRY: Dict[str, SourceAdapter] = {}


def register(adapter: SourceAdapter) -> None:
    if adapter.name in REGISTRY:
        raise ValueError(f"duplicate source name: {adapter.name!r}")
    REGISTRY[adapter.name] = adapter


def get(name: str) -> SourceAdapter:
    return REGISTRY[name]


def all_sources() -> List[SourceAdapter]:
    return list(REGISTRY.values())


def adapter_from_entry(entry: Mapping) -> SourceAdapter:
    kind = (entry.get("kind") or "selector").lower()
    if kind == "google":
        return GoogleJobsAdapter.from_entry(entry)
    if kind == "selector":
        return SelectorAdapter.from_entry(entry)
    raise ValueError(f"unknown source kind {kind!r} for {entry.get('name')!r}")


def build_sources(table: Iterable[Mapping]) -> List[SourceAdapter]:
    adapters: List[SourceAdapter] = []
    names: set[str] = set()
    for entry in table:
        if entry.get("enabled") is False:
            continue
        adapter = adapter_from_entry(entry)
        if adapter.name in names:
            raise ValueError(f"duplicate source name: {adapter.name!r}")
        names.add(adapter.name)
        adapters.append(adapter)
    return adapters


def load_sources(path: Optional[str] = None) -> List[SourceAdapter]:
    """(Re)build the registry from a YAML table, or from the built-in boards."""
    if path:
        table = load_source_table(path)
        LOGGER.info("sources loaded path=%s entries=%s", path, len(table))
    else:
        table = DEFAULT_SOURCES
    adapters = build_sources(table)
    REGISTRY.clear()
    for a in adapters:
        register(a)
    return all_sources()


__all__ = [
    "SourceAdapter",
    "SelectorAdapter",
    "GoogleJobsAdapter",
    "DEFAULT_SOURCES",
    "REGISTRY",
    "register",
    "get",
    "all_sources",
    "build_sources",
    "load_sources",
]
