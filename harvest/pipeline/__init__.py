from .paginator import BoardWalk, walk_board, limits_for
from .orchestrator import SearchOrchestrator, batched, canonicalize

__all__ = [
    "BoardWalk",
    "walk_board",
    "limits_for",
    "SearchOrchestrator",
    "batched",
    "canonicalize",
]
