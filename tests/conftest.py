"""Shared fixtures for Trustweave tests."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from trustweave.escalation import Branch, Issue
from trustweave.graph import build_sponsor_graph


@pytest.fixture
def now() -> datetime:
    return datetime(2025, 3, 1, 12, 0, tzinfo=UTC)


@pytest.fixture
def chain_graph():
    """a - b - c - d"""
    return build_sponsor_graph({"b": ["a"], "c": ["b"], "d": ["c"]})


@pytest.fixture
def diamond_graph():
    """Two disjoint two-hop routes from a to d: a-b-d and a-c-d."""
    return build_sponsor_graph({"b": ["a"], "c": ["a"], "d": ["b", "c"]})


@pytest.fixture
def focal_branch() -> Branch:
    """Ten-member echo chamber with five open needs."""
    return Branch(
        id="branch_b0",
        members=tuple(f"member_{i}" for i in range(10)),
        avg_credits=8,
        diversity_score=0.3,
        open_needs_count=5,
        current_load=2,
    )


@pytest.fixture
def issue() -> Issue:
    return Issue(
        id="issue_x",
        subject_set=("subject_1", "subject_2"),
        severity=0.7,
        confidence=0.8,
        reporter="reporter_1",
        focal_branch="branch_b0",
    )


@pytest.fixture
def member_connectedness(focal_branch, issue) -> dict[tuple[str, str], float]:
    """Every member connected to every subject at 0.4."""
    return {(m, s): 0.4 for m in focal_branch.members for s in issue.subject_set}


@pytest.fixture
def neighbor_branches() -> list[Branch]:
    return [
        Branch(
            id="neighbor_1",
            members=("n1_m1", "n1_m2"),
            avg_credits=12,
            diversity_score=0.8,
            open_needs_count=2,
            current_load=1,
        ),
        Branch(
            id="neighbor_2",
            members=("n2_m1", "n2_m2"),
            avg_credits=6,
            diversity_score=0.6,
            open_needs_count=3,
            current_load=4,
        ),
    ]
