"""
Tests for comment thread reconstruction.

Covers ordering at every level, orphan promotion, duplicate ids,
parent cycles and very deep reply chains.
"""

import random
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Optional

from audiopub.threads import ThreadNode, build_threads, count_nodes, iter_nodes


@dataclass
class Comment:
    id: str
    parent_id: Optional[str]
    created_at: Any
    content: str = ""


def shape(nodes):
    """(id, replies) tuples, recursively."""
    return [(n.id, shape(n.replies)) for n in nodes]


# =============================================================================
# Basic Ordering
# =============================================================================

class TestOrdering:
    """Sibling groups are sorted by created_at at every level."""

    def test_replies_sorted_chronologically(self):
        roots = build_threads([
            Comment("A", None, 10),
            Comment("B", "A", 20),
            Comment("C", "A", 15),
        ])
        assert shape(roots) == [("A", [("C", []), ("B", [])])]

    def test_roots_sorted_chronologically(self):
        roots = build_threads([
            Comment("late", None, 30),
            Comment("early", None, 10),
            Comment("middle", None, 20),
        ])
        assert [r.id for r in roots] == ["early", "middle", "late"]

    def test_equal_timestamps_keep_input_order(self):
        roots = build_threads([
            Comment("first", None, 5),
            Comment("second", None, 5),
            Comment("third", None, 5),
        ])
        assert [r.id for r in roots] == ["first", "second", "third"]

    def test_nested_levels_sorted(self):
        roots = build_threads([
            Comment("root", None, 1),
            Comment("r2", "root", 3),
            Comment("r1", "root", 2),
            Comment("r1b", "r1", 9),
            Comment("r1a", "r1", 4),
        ])
        assert shape(roots) == [
            ("root", [("r1", [("r1a", []), ("r1b", [])]), ("r2", [])]),
        ]

    def test_datetime_timestamps(self):
        t0 = datetime(2024, 5, 1, 8, 0, 0)
        roots = build_threads([
            Comment("b", None, t0 + timedelta(seconds=1)),
            Comment("a", None, t0),
        ])
        assert [r.id for r in roots] == ["a", "b"]

    def test_payload_passes_through(self):
        original = Comment("A", None, 1, content="hello there")
        roots = build_threads([original])
        assert roots[0].comment is original
        assert roots[0].replies == []

    def test_empty_input(self):
        assert build_threads([]) == []


# =============================================================================
# Orphans and Odd Parents
# =============================================================================

class TestOrphans:
    """Unresolvable parents make a comment a root instead of dropping it."""

    def test_missing_parent_becomes_root(self):
        roots = build_threads([
            Comment("A", None, 5),
            Comment("B", "missing", 1),
        ])
        assert [r.id for r in roots] == ["B", "A"]

    def test_orphan_keeps_its_own_replies(self):
        roots = build_threads([
            Comment("orphan", "gone", 2),
            Comment("reply", "orphan", 3),
        ])
        assert shape(roots) == [("orphan", [("reply", [])])]

    def test_self_parent_is_root(self):
        roots = build_threads([Comment("A", "A", 1)])
        assert shape(roots) == [("A", [])]

    def test_duplicate_ids_first_occurrence_owns_replies(self):
        first = Comment("X", None, 1, content="first")
        second = Comment("X", None, 2, content="second")
        reply = Comment("R", "X", 3)
        roots = build_threads([first, second, reply])

        assert count_nodes(roots) == 3
        assert roots[0].comment is first
        assert [r.comment for r in roots[0].replies] == [reply]
        assert roots[1].comment is second
        assert roots[1].replies == []


# =============================================================================
# Cycles
# =============================================================================

class TestCycles:
    """Parent cycles never hang the builder and never lose comments."""

    def test_two_comment_cycle(self):
        roots = build_threads([
            Comment("A", "B", 1),
            Comment("B", "A", 2),
        ])
        assert shape(roots) == [("A", [("B", [])])]

    def test_three_comment_cycle_with_hanging_reply(self):
        roots = build_threads([
            Comment("A", "C", 3),
            Comment("B", "A", 1),
            Comment("C", "B", 2),
            Comment("D", "B", 4),
        ])
        assert shape(roots) == [("B", [("C", [("A", [])]), ("D", [])])]

    def test_cycle_next_to_regular_thread(self):
        roots = build_threads([
            Comment("R", None, 0),
            Comment("R1", "R", 5),
            Comment("A", "B", 2),
            Comment("B", "A", 1),
        ])
        assert shape(roots) == [("R", [("R1", [])]), ("B", [("A", [])])]

    def test_cycle_tie_broken_by_input_order(self):
        roots = build_threads([
            Comment("x", "y", 7),
            Comment("y", "x", 7),
        ])
        assert shape(roots) == [("x", [("y", [])])]
        assert count_nodes(roots) == 2


# =============================================================================
# Whole-forest Properties
# =============================================================================

class TestProperties:
    """Completeness, shuffle independence and unbounded depth."""

    def _sample(self):
        comments = [Comment("root0", None, 0)]
        rng = random.Random(7)
        for i in range(1, 200):
            parent = rng.choice(comments).id if rng.random() < 0.8 else None
            comments.append(Comment(f"c{i}", parent, i))
        comments.append(Comment("lost", "not-here", 500))
        return comments

    def test_every_comment_emitted_once(self):
        comments = self._sample()
        roots = build_threads(comments)
        ids = [n.id for n in iter_nodes(roots)]
        assert sorted(ids) == sorted(c.id for c in comments)

    def test_every_sibling_group_non_decreasing(self):
        roots = build_threads(self._sample())
        groups = [roots] + [n.replies for n in iter_nodes(roots)]
        for group in groups:
            stamps = [n.comment.created_at for n in group]
            assert stamps == sorted(stamps)

    def test_shuffle_does_not_change_structure(self):
        comments = self._sample()
        expected = shape(build_threads(comments))
        rng = random.Random(42)
        for _ in range(5):
            shuffled = list(comments)
            rng.shuffle(shuffled)
            assert shape(build_threads(shuffled)) == expected

    def test_deep_chain_does_not_recurse(self):
        depth = 5000
        comments = [Comment("c0", None, 0)]
        comments += [Comment(f"c{i}", f"c{i - 1}", i) for i in range(1, depth)]
        roots = build_threads(list(reversed(comments)))

        assert len(roots) == 1
        node = roots[0]
        levels = 1
        while node.replies:
            assert len(node.replies) == 1
            node = node.replies[0]
            levels += 1
        assert levels == depth
        assert count_nodes(roots) == depth


class TestIterNodes:

    def test_pre_order(self):
        roots = build_threads([
            Comment("A", None, 1),
            Comment("A1", "A", 2),
            Comment("A1a", "A1", 3),
            Comment("A2", "A", 4),
            Comment("B", None, 5),
        ])
        assert [n.id for n in iter_nodes(roots)] == ["A", "A1", "A1a", "A2", "B"]

    def test_node_repr_and_id(self):
        node = ThreadNode(comment=Comment("A", None, 1))
        assert node.id == "A"
        assert "A" in repr(node)
