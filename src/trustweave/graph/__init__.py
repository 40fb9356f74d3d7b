"""Sponsor graph and connectedness.

C(A,B) and C(A,S) with 1/3-per-hop responsibility decay and path diversity.
"""

from .connectedness import (
    DEFAULT_CONNECTEDNESS_OPTIONS,
    ConnectednessOptions,
    ConnectednessResult,
    batch_connectedness,
    connectedness_map,
    find_paths,
    independent_union_connectedness,
    pairwise_connectedness,
    path_confidence,
    path_diversity,
    path_weight,
    union_connectedness,
)
from .sponsors import (
    SponsorGraph,
    add_sponsorship,
    build_sponsor_graph,
    edge_count,
    neighbors,
)

__all__ = [
    # Sponsors
    "SponsorGraph",
    "build_sponsor_graph",
    "add_sponsorship",
    "neighbors",
    "edge_count",
    # Connectedness
    "ConnectednessOptions",
    "ConnectednessResult",
    "DEFAULT_CONNECTEDNESS_OPTIONS",
    "find_paths",
    "path_weight",
    "path_diversity",
    "path_confidence",
    "pairwise_connectedness",
    "union_connectedness",
    "independent_union_connectedness",
    "batch_connectedness",
    "connectedness_map",
]
