"""A compact prefix-search structure keyed by reduced ASCII strings."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from typing import Generic, TypeVar

__all__ = ["AsciiHeap"]

T = TypeVar("T")

_ALLOWED = frozenset(b"abcdefghijklmnopqrstuvwxyz0123456789")


def _reduce(s: str) -> bytes:
    """Lowercase ASCII letters and keep only ``[a-z0-9]``."""
    return bytes(b for b in s.encode("utf-8").lower() if b in _ALLOWED)


@dataclass(slots=True)
class _Pending(Generic[T]):
    letter: int
    children: dict[int, _Pending[T]] = field(default_factory=dict)
    payloads: list[T] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class _Node(Generic[T]):
    letter: int
    first_child: int
    num_children: int
    payloads: tuple[T, ...]

    @property
    def children(self) -> range:
        return range(self.first_child, self.first_child + self.num_children)


class AsciiHeap(Generic[T]):
    """Prefix tree over ``[a-z0-9]`` keys laid out as a flat array of nodes.

    Node 0 is the root. The children of a node occupy a contiguous block of
    higher indices, ordered by letter. Each node carries the payloads whose
    reduced key equals the node's key, in insertion order.
    """

    def __init__(self, items: Iterable[tuple[str, T]]) -> None:
        root: _Pending[T] = _Pending(0)
        total = 1
        for text, payload in items:
            key = _reduce(text)
            if not key:
                continue
            node = root
            for letter in key:
                child = node.children.get(letter)
                if child is None:
                    child = _Pending(letter)
                    node.children[letter] = child
                    total += 1
                node = child
            node.payloads.append(payload)

        nodes: list[_Node[T] | None] = [None] * total
        next_free = 1
        stack: list[tuple[_Pending[T], int]] = [(root, 0)]
        while stack:
            pending, pos = stack.pop()
            letters = sorted(pending.children)
            start = next_free
            next_free += len(letters)
            nodes[pos] = _Node(pending.letter, start, len(letters), tuple(pending.payloads))
            stack.extend(
                (pending.children[letter], start + rank)
                for rank, letter in reversed(list(enumerate(letters)))
            )
        self._nodes: list[_Node[T]] = nodes  # type: ignore[assignment]

    def find(self, s: str) -> int:
        """Return the index of the node whose key is the longest prefix of ``s``.

        Characters outside ``[a-z0-9]`` (including upper case) are skipped.
        """
        idx = 0
        for letter in s.encode("utf-8"):
            if letter not in _ALLOWED:
                continue
            child = next(
                (c for c in self._nodes[idx].children if self._nodes[c].letter == letter),
                None,
            )
            if child is None:
                break
            idx = child
        return idx

    def iter(self, idx: int) -> Iterator[T]:
        """Yield every payload stored at or below the node at ``idx``."""
        nodes = self._nodes
        current: range = range(idx, idx + 1)
        todo: list[range] = []
        while True:
            for pos in current:
                node = nodes[pos]
                if node.num_children:
                    todo.append(node.children)
                yield from node.payloads
            if not todo:
                return
            current = todo.pop()