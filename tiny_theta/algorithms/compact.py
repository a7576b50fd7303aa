"""
Compact tuple sketch.

The compact form is the read-only result of compacting an updatable sketch
or of an intersection: dense arrays of keys and summaries with no empty
slots and no keys at or above theta, plus theta and the empty flag.
"""

import array
import sys
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple, TypeVar

from tiny_theta.core.base import TupleSketch
from tiny_theta.core.summary import Summary

S = TypeVar("S", bound=Summary)  # Type of the per-key summary


def _entry_key(entry: Tuple[int, Any]) -> int:
    return entry[0]


class CompactTupleSketch(TupleSketch[S]):
    """
    Immutable tuple sketch backed by dense arrays.

    The sketch owns its storage: the key and summary sequences handed to the
    constructor are copied, so later changes to them (or to the object that
    produced them) do not affect the sketch. The summary objects themselves
    are not copied; callers that keep mutating them must pass copies.

    Example:
        sketch = CompactTupleSketch([10, 15], [s1, s2], MAX_THETA, False)
        for key, summary in sketch:
            ...
    """

    def __init__(
        self,
        keys: Optional[Sequence[int]],
        summaries: Optional[Sequence[S]],
        theta_long: int,
        empty: bool,
        memory_limit_bytes: Optional[int] = None,
    ):
        """
        Initialize a compact sketch.

        Args:
            keys: Retained sampling keys, or None for no entries.
            summaries: Summaries parallel to keys, or None for no entries.
            theta_long: The sampling threshold.
            empty: Whether the sketch represents the empty set.
            memory_limit_bytes: Optional maximum memory usage in bytes.

        Raises:
            ValueError: If keys and summaries differ in length.
        """
        super().__init__(memory_limit_bytes)

        self._keys = array.array("q", keys if keys is not None else [])
        self._summaries: List[S] = list(summaries) if summaries is not None else []
        if len(self._keys) != len(self._summaries):
            raise ValueError(
                f"Keys and summaries must have the same length: "
                f"{len(self._keys)} and {len(self._summaries)}"
            )
        self._theta_long = theta_long
        self._empty = empty

    @property
    def theta_long(self) -> int:
        return self._theta_long

    @property
    def retained_entries(self) -> int:
        return len(self._keys)

    def is_empty(self) -> bool:
        return self._empty

    def __iter__(self) -> Iterator[Tuple[int, S]]:
        return zip(self._keys, self._summaries)

    def get_keys(self) -> List[int]:
        """
        Get the retained keys.

        Returns:
            A new list of keys, in storage order.
        """
        return list(self._keys)

    def estimate_size(self) -> int:
        size = super().estimate_size()
        size += sys.getsizeof(self._keys)
        size += sys.getsizeof(self._summaries)
        for summary in self._summaries:
            size += sys.getsizeof(summary)
        return size

    def get_stats(self) -> Dict[str, Any]:
        stats = super().get_stats()
        stats["compact"] = True
        return stats

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CompactTupleSketch):
            return NotImplemented
        # Keys are unique, so ordering by key lines the entries up
        return (
            self._theta_long == other._theta_long
            and self._empty == other._empty
            and sorted(self, key=_entry_key) == sorted(other, key=_entry_key)
        )

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return (
            f"CompactTupleSketch(retained_entries={self.retained_entries}, "
            f"theta_long={self._theta_long}, empty={self._empty})"
        )
