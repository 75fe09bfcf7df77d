"""Statistical utilities for scharmonize."""

from scharmonize.stats.preservation import (
    cluster_preservation_score,
    transform_neighbor_index,
)

__all__ = [
    "cluster_preservation_score",
    "transform_neighbor_index",
]
