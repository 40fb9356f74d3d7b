"""Connectedness over the sponsor graph.

C(A,B): pairwise connectedness between two participants.
C(A,S): connectedness between a participant and a set, in two flavours:

- ``union_connectedness`` takes the best single connection (max). Used for
  group and issue-impact measurement.
- ``independent_union_connectedness`` combines connections as a probabilistic
  OR, ``1 - prod(1 - C(A,s))``. Used when helping several people counts as
  independent acts (credit earning).

Responsibility ripples outward with geometric decay: a path through n hops is
weighted ``decay_factor ** n`` (1/3 per hop by default). Multiple paths add
up, capped at 1.0, and their overlap is reported separately as diversity so a
single chokepoint of trust is surfaced rather than hidden inside the score.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Collection, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from ..core.aggregation import clamp_unit, probabilistic_union, variance
from ..core.defaults import (
    CONFIDENCE_CONSISTENCY_WEIGHT,
    CONFIDENCE_DIVERSITY_WEIGHT,
    CONFIDENCE_PATH_COUNT_WEIGHT,
    CONFIDENCE_SATURATION_PATHS,
    DEFAULT_CONFIDENCE_THRESHOLD,
    DEFAULT_DECAY_FACTOR,
    DEFAULT_MAX_DEPTH,
    DEFAULT_MIN_PATH_DIVERSITY,
)
from ..core.exceptions import ConfigException

logger = logging.getLogger(__name__)

Graph = Mapping[str, Collection[str]]
Path = tuple[str, ...]


# =============================================================================
# OPTIONS AND RESULT
# =============================================================================


@dataclass(frozen=True)
class ConnectednessOptions:
    """Tuning for path search and union filtering."""

    max_depth: int = DEFAULT_MAX_DEPTH  # maximum hops per path
    decay_factor: float = DEFAULT_DECAY_FACTOR
    min_path_diversity: float = DEFAULT_MIN_PATH_DIVERSITY
    confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD  # union filter

    def __post_init__(self) -> None:
        errors = self.errors()
        if errors:
            raise ConfigException.from_errors("connectedness options", errors)

    def errors(self) -> list[str]:
        errors = []
        if self.max_depth < 1:
            errors.append("max_depth must be at least 1")
        if not (0.0 < self.decay_factor <= 1.0):
            errors.append("decay_factor must be in (0, 1]")
        if not (0.0 <= self.min_path_diversity <= 1.0):
            errors.append("min_path_diversity must be in [0, 1]")
        if not (0.0 <= self.confidence_threshold <= 1.0):
            errors.append("confidence_threshold must be in [0, 1]")
        return errors


DEFAULT_CONNECTEDNESS_OPTIONS = ConnectednessOptions()


@dataclass(frozen=True)
class ConnectednessResult:
    """Connectedness measurement between a source and a target (or set)."""

    score: float  # [0, 1]
    path_count: int
    shortest_path: float  # hops; math.inf when unreachable
    diversity_score: float  # [0, 1]
    confidence: float  # [0, 1]

    @classmethod
    def direct(cls) -> ConnectednessResult:
        """Direct sponsorship is maximal trust."""
        return cls(score=1.0, path_count=1, shortest_path=1, diversity_score=1.0, confidence=1.0)

    @classmethod
    def absent(cls) -> ConnectednessResult:
        """No path within the search bound: certain absence."""
        return cls(score=0.0, path_count=0, shortest_path=math.inf, diversity_score=0.0, confidence=1.0)

    @classmethod
    def unknown(cls) -> ConnectednessResult:
        """Nothing measured with enough confidence."""
        return cls(score=0.0, path_count=0, shortest_path=math.inf, diversity_score=0.0, confidence=0.0)

    @property
    def is_reachable(self) -> bool:
        return self.path_count > 0

    def meets_diversity(self, options: ConnectednessOptions = DEFAULT_CONNECTEDNESS_OPTIONS) -> bool:
        """Whether the paths are independent enough to rule out a chokepoint."""
        return self.diversity_score >= options.min_path_diversity

    def to_dict(self) -> dict[str, Any]:
        return {
            "score": self.score,
            "path_count": self.path_count,
            "shortest_path": None if math.isinf(self.shortest_path) else self.shortest_path,
            "diversity_score": self.diversity_score,
            "confidence": self.confidence,
        }


# =============================================================================
# PATH SEARCH
# =============================================================================


def find_paths(source: str, target: str, graph: Graph, max_depth: int = DEFAULT_MAX_DEPTH) -> list[Path]:
    """Enumerate every simple path from *source* to *target*.

    Depth-first, bounded to ``max_depth`` hops. The visited set is local to
    each path, so a node may appear on several different paths but never
    twice on the same one. Paths stop at the target.

    Returns:
        Paths as node tuples (source first), shortest first.
    """
    if source == target:
        return []

    paths: list[Path] = []

    def walk(node: str, path: Path, on_path: frozenset[str]) -> None:
        if node == target:
            paths.append(path)
            return
        if len(path) - 1 >= max_depth:
            return
        for neighbor in sorted(graph.get(node, ())):
            if neighbor in on_path:
                continue
            walk(neighbor, path + (neighbor,), on_path | {neighbor})

    walk(source, (source,), frozenset({source}))
    paths.sort(key=lambda p: (len(p), p))
    return paths


def path_weight(path: Sequence[str], decay_factor: float = DEFAULT_DECAY_FACTOR) -> float:
    """Geometric weight ``decay_factor ** (len(path) - 1)``."""
    return decay_factor ** (len(path) - 1)


def path_diversity(paths: Sequence[Sequence[str]]) -> float:
    """Independence of a path set in [0, 1].

    For every pair of paths, count the interior nodes of the first that also
    lie on the second, normalised by the longer path. Diversity is one minus
    the mean pairwise overlap; a single path (or none) is fully diverse.
    """
    if len(paths) <= 1:
        return 1.0

    total_overlap = 0.0
    for i, path_a in enumerate(paths):
        interior = path_a[1:-1]
        for path_b in paths[i + 1 :]:
            nodes_b = set(path_b)
            overlap = sum(1 for node in interior if node in nodes_b)
            total_overlap += overlap / max(len(path_a), len(path_b))

    pair_count = len(paths) * (len(paths) - 1) / 2
    return max(0.0, 1.0 - total_overlap / pair_count)


def path_confidence(paths: Sequence[Sequence[str]], diversity: float) -> float:
    """Confidence rises with more, more diverse, more length-consistent paths."""
    if not paths:
        return 0.0
    count_factor = min(1.0, len(paths) / CONFIDENCE_SATURATION_PATHS)
    consistency = 1.0 / (1.0 + variance([len(p) for p in paths]))
    return (
        CONFIDENCE_PATH_COUNT_WEIGHT * count_factor
        + CONFIDENCE_DIVERSITY_WEIGHT * diversity
        + CONFIDENCE_CONSISTENCY_WEIGHT * consistency
    )


# =============================================================================
# CONNECTEDNESS
# =============================================================================


def pairwise_connectedness(
    source: str,
    target: str,
    graph: Graph,
    options: ConnectednessOptions = DEFAULT_CONNECTEDNESS_OPTIONS,
) -> ConnectednessResult:
    """Pairwise connectedness C(source, target).

    Args:
        source: Participant id the measurement starts from.
        target: Participant id to reach.
        graph: Symmetric sponsor adjacency.
        options: Search and weighting options.

    Returns:
        ConnectednessResult. Direct neighbours short-circuit to 1.0; no path
        within ``max_depth`` gives score 0 with full confidence.
    """
    if target in graph.get(source, ()):
        return ConnectednessResult.direct()

    paths = find_paths(source, target, graph, options.max_depth)
    if not paths:
        logger.debug("No path from %s to %s within %d hops", source, target, options.max_depth)
        return ConnectednessResult.absent()

    total_weight = sum(path_weight(p, options.decay_factor) for p in paths)
    diversity = path_diversity(paths)

    result = ConnectednessResult(
        score=min(1.0, total_weight),
        path_count=len(paths),
        shortest_path=len(paths[0]) - 1,
        diversity_score=diversity,
        confidence=path_confidence(paths, diversity),
    )
    logger.debug(
        "C(%s,%s)=%.4f over %d paths (diversity=%.3f)",
        source,
        target,
        result.score,
        result.path_count,
        result.diversity_score,
    )
    return result


def union_connectedness(
    source: str,
    targets: Collection[str],
    graph: Graph,
    options: ConnectednessOptions = DEFAULT_CONNECTEDNESS_OPTIONS,
) -> ConnectednessResult:
    """Best-connection union C(source, S) for group and issue impact.

    Pairwise results below ``confidence_threshold`` are discarded. The set is
    reached as strongly as its best-reached member.
    """
    results = [pairwise_connectedness(source, t, graph, options) for t in targets]
    valid = [r for r in results if r.confidence >= options.confidence_threshold]
    if not valid:
        return ConnectednessResult.unknown()

    total_confidence = sum(r.confidence for r in valid)
    weighted_diversity = sum(r.diversity_score * r.confidence for r in valid)

    return ConnectednessResult(
        score=max(r.score for r in valid),
        path_count=sum(r.path_count for r in valid),
        shortest_path=min(r.shortest_path for r in valid),
        diversity_score=weighted_diversity / total_confidence if total_confidence > 0 else 0.0,
        confidence=total_confidence / len(valid),
    )


def independent_union_connectedness(
    source: str,
    targets: Collection[str],
    graph: Graph,
    options: ConnectednessOptions = DEFAULT_CONNECTEDNESS_OPTIONS,
) -> float:
    """Probabilistic-OR union ``1 - prod(1 - C(source, s))``.

    Assumes the connections to each target are independent, which is the
    contract for multi-person credit earning.
    """
    return probabilistic_union(
        pairwise_connectedness(source, t, graph, options).score for t in targets
    )


def batch_connectedness(
    queries: Collection[tuple[str, str | Collection[str]]],
    graph: Graph,
    options: ConnectednessOptions = DEFAULT_CONNECTEDNESS_OPTIONS,
) -> dict[tuple[str, str | tuple[str, ...]], ConnectednessResult]:
    """Evaluate many connectedness queries against one graph snapshot.

    A string target is a pairwise query keyed ``(source, target)``; a
    collection target is a max-based union keyed ``(source, tuple(targets))``.
    """
    results: dict[tuple[str, str | tuple[str, ...]], ConnectednessResult] = {}
    for source, target in queries:
        if isinstance(target, str):
            results[(source, target)] = pairwise_connectedness(source, target, graph, options)
        else:
            members = tuple(target)
            results[(source, members)] = union_connectedness(source, members, graph, options)
    return results


def connectedness_map(
    sources: Collection[str],
    targets: Collection[str],
    graph: Graph,
    options: ConnectednessOptions = DEFAULT_CONNECTEDNESS_OPTIONS,
) -> dict[tuple[str, str], float]:
    """Pairwise scores for every (source, target) pair.

    Produces the precomputed map consumed by the escalation and credit
    engines.
    """
    return {
        (s, t): clamp_unit(pairwise_connectedness(s, t, graph, options).score)
        for s in sources
        for t in targets
    }
