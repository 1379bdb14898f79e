"""
Comment thread reconstruction.

Turns the flat list of comments stored for one audio into a forest of reply
trees ordered chronologically at every level.

Rules:
- A comment whose parent_id is missing, unknown, or its own id is a root
  (orphans are promoted, never dropped).
- When several comments share an id, the first one is the one replies attach to.
- Every sibling group is sorted ascending by created_at (stable).
- Parent cycles are broken at their earliest member so every comment is
  emitted exactly once and the output is always a finite forest.

Usage:
    from audiopub.threads import build_threads

    roots = build_threads(db.query(DBComment).filter_by(audio_id=audio_id).all())
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Sequence


@dataclass(eq=False)
class ThreadNode:
    """One comment plus its ordered direct replies."""
    comment: Any
    replies: List["ThreadNode"] = field(default_factory=list)

    @property
    def id(self):
        return self.comment.id

    def __repr__(self):
        return f"<ThreadNode(id={self.comment.id}, replies={len(self.replies)})>"


def build_threads(comments: Sequence[Any]) -> List[ThreadNode]:
    """
    Build a chronologically ordered reply forest from flat comments.

    Args:
        comments: Objects exposing ``id``, ``parent_id`` and ``created_at``.
                  Input order does not matter.

    Returns:
        Root nodes, each carrying its replies recursively.

    Examples:
        A(t10) <- B(t20), A <- C(t15)      => [A[C, B]]
        A(t5), B(parent="missing", t1)     => [B, A]
        A(parent=B, t1), B(parent=A, t2)   => [A[B]]
    """
    nodes = [ThreadNode(comment=c) for c in comments]
    if not nodes:
        return []

    # Phase 1: index. The first occurrence of an id owns it.
    by_id: Dict[Any, ThreadNode] = {}
    for node in nodes:
        by_id.setdefault(node.comment.id, node)

    # Phase 2: attach
    roots: List[ThreadNode] = []
    parent_of: Dict[int, ThreadNode] = {}
    for node in nodes:
        parent_id = getattr(node.comment, "parent_id", None)
        parent = by_id.get(parent_id) if parent_id is not None else None
        if parent is None or parent is node:
            roots.append(node)
        else:
            parent.replies.append(node)
            parent_of[id(node)] = parent

    position = {id(node): i for i, node in enumerate(nodes)}
    _promote_cycles(nodes, roots, parent_of, position)

    # Phase 3: order every sibling group
    def sort_key(n: ThreadNode):
        return n.comment.created_at

    roots.sort(key=sort_key)
    stack = list(roots)
    while stack:
        node = stack.pop()
        if node.replies:
            node.replies.sort(key=sort_key)
            stack.extend(node.replies)

    return roots


def _promote_cycles(
    nodes: List[ThreadNode],
    roots: List[ThreadNode],
    parent_of: Dict[int, ThreadNode],
    position: Dict[int, int],
) -> None:
    """Detach one member of every parent cycle that no root can reach."""
    reached = set()
    for node in iter_nodes(roots):
        reached.add(id(node))
    if len(reached) == len(nodes):
        return

    def order_key(n: ThreadNode):
        return (n.comment.created_at, position[id(n)])

    for start in sorted((n for n in nodes if id(n) not in reached), key=order_key):
        if id(start) in reached:
            continue

        # Every unreached node has a parent, so walking up must revisit a node
        chain: List[ThreadNode] = []
        seen: Dict[int, int] = {}
        current = start
        while id(current) not in seen:
            seen[id(current)] = len(chain)
            chain.append(current)
            current = parent_of[id(current)]
        cycle = chain[seen[id(current)]:]

        head = min(cycle, key=order_key)
        parent = parent_of.pop(id(head))
        parent.replies = [r for r in parent.replies if r is not head]
        roots.append(head)
        for node in iter_nodes([head]):
            reached.add(id(node))


def iter_nodes(roots: Sequence[ThreadNode]) -> Iterator[ThreadNode]:
    """Depth-first, pre-order walk over a forest."""
    stack = list(reversed(roots))
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.replies))


def count_nodes(roots: Sequence[ThreadNode]) -> int:
    return sum(1 for _ in iter_nodes(roots))
