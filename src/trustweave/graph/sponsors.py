"""Sponsor graph construction.

Turns raw attestation records (participant -> declared sponsors) into the
undirected adjacency mapping every traversal in Trustweave runs on.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

SponsorGraph = dict[str, frozenset[str]]


def build_sponsor_graph(sponsorships: Mapping[str, Iterable[str]] | None) -> SponsorGraph:
    """Build a symmetric adjacency mapping from sponsorship declarations.

    Each sponsor<->sponsored edge is added once, however many times it was
    declared. Self-sponsorship is dropped so the graph never has self-edges.

    Args:
        sponsorships: Mapping from participant id to its sponsor ids.

    Returns:
        Mapping from participant id to the frozenset of its neighbours.
    """
    adjacency: dict[str, set[str]] = {}
    if not sponsorships:
        return {}

    for participant, sponsors in sponsorships.items():
        for sponsor in sponsors:
            if sponsor == participant:
                continue
            adjacency.setdefault(sponsor, set()).add(participant)
            adjacency.setdefault(participant, set()).add(sponsor)

    return {node: frozenset(edges) for node, edges in adjacency.items()}


def add_sponsorship(graph: Mapping[str, Iterable[str]], sponsor: str, sponsored: str) -> SponsorGraph:
    """Return a copy of *graph* with one more sponsor edge."""
    updated = {node: set(edges) for node, edges in graph.items()}
    if sponsor != sponsored:
        updated.setdefault(sponsor, set()).add(sponsored)
        updated.setdefault(sponsored, set()).add(sponsor)
    return {node: frozenset(edges) for node, edges in updated.items()}


def neighbors(graph: Mapping[str, Iterable[str]], node: str) -> frozenset[str]:
    """Neighbours of *node* (empty for unknown nodes)."""
    return frozenset(graph.get(node, ()))


def edge_count(graph: Mapping[str, Iterable[str]]) -> int:
    """Number of undirected edges."""
    return sum(len(frozenset(edges)) for edges in graph.values()) // 2
