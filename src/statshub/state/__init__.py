"""State/store layer.

This package is the single source of truth for how incoming snapshots are
merged into the aggregated state.
"""

from statshub.state.merge import merge
from statshub.state.store import StateStore

__all__ = ["StateStore", "merge"]
