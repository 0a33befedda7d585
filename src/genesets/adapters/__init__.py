"""Input adapters for reconciliation sources."""

from .base import SourceAdapter
from .common import build_source_table, expand_input_paths
from .tabular import FrameSourceAdapter, TabularSourceAdapter

__all__ = [
    "SourceAdapter",
    "FrameSourceAdapter",
    "TabularSourceAdapter",
    "build_source_table",
    "expand_input_paths",
]
