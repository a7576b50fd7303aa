"""
Intersection of tuple sketches.

A new TupleIntersection represents the universal set. Every update
intersects the internal state with one more sketch, so the retained keys can
only shrink, and theta can only go down. The result is extracted on demand as
a CompactTupleSketch.

Rules applied on every update, whatever the input type:

1. Theta rule: theta = min(theta, theta of the input). The result never
   claims a higher sampling probability than any sketch it was built from.
2. Empty rule: an input with no retained entries *and* theta == MAX_THETA
   is the true empty set and makes the result empty for good. An input with
   no entries but a lower theta was merely sampled down to nothing and does
   not set the flag.
3. An input with no retained entries clears the table.

The first non-degenerate input seeds the table; later ones keep only the keys
found in both the table and the input (and below theta), merging their
summaries with the caller's SummarySetOperations. The table is rebuilt from
scratch after every such pass, sized for the surviving keys.
"""

import logging
import sys
from typing import Any, Callable, Dict, Generic, Iterable, List, Optional, Tuple, TypeVar

from tiny_theta.algorithms.compact import CompactTupleSketch
from tiny_theta.core.base import ThetaSampledSketch, ThetaSketch, TupleSketch
from tiny_theta.core.constants import MAX_THETA
from tiny_theta.core.errors import InvalidStateError
from tiny_theta.core.hash_table import (
    insert_only,
    lg_table_size_for,
    new_key_array,
    search,
)
from tiny_theta.core.summary import Summary, SummarySetOperations

S = TypeVar("S", bound=Summary)  # Type of the per-key summary

log = logging.getLogger(__name__)


class _HashTables(Generic[S]):
    """
    The retained keys of an intersection and their summaries.

    keys is an open-addressing table (0 = empty slot); summaries is a list
    indexed like it. Both are replaced wholesale on every rebuild, never
    resized in place.
    """

    def __init__(self):
        self.clear()

    def clear(self) -> None:
        self.keys = None
        self.summaries: Optional[List[Optional[S]]] = None
        self.lg_table_size = 0
        self.count = 0

    def from_entries(self, entries: Iterable[Tuple[int, S]], count: int) -> None:
        """
        Rebuild the table from (key, summary) pairs with distinct keys.

        Args:
            entries: The pairs to store; summaries are stored as given.
            count: Number of pairs, used to size the table.
        """
        lg_table_size = lg_table_size_for(count)
        keys = new_key_array(lg_table_size)
        summaries: List[Optional[S]] = [None] * (1 << lg_table_size)
        inserted = 0
        for key, summary in entries:
            index = insert_only(keys, lg_table_size, key)
            summaries[index] = summary
            inserted += 1

        self.keys = keys
        self.summaries = summaries
        self.lg_table_size = lg_table_size
        self.count = inserted


class TupleIntersection(Generic[S]):
    """
    Computes the intersection of two or more tuple sketches.

    Theta sketches can take part too, through update_theta(), which pairs
    every key with a caller-supplied summary.

    Not thread-safe: an instance is mutable state with no locking.

    Example:
        intersection = TupleIntersection(DoubleSummarySetOperations(Mode.MIN))
        intersection.update(sketch_a)
        intersection.update(sketch_b)
        result = intersection.get_result()
        print(result.get_estimate())
    """

    def __init__(self, summary_set_operations: SummarySetOperations[S]):
        """
        Initialize an intersection in the universal-set state.

        Args:
            summary_set_operations: Combines the summaries of a key found in
                                    both the current state and an input.
        """
        self._set_ops = summary_set_operations
        self._tables: _HashTables[S] = _HashTables()
        self._init_state()

    def _init_state(self) -> None:
        self._empty = False  # universal set at the start
        self._theta_long = MAX_THETA
        self._tables.clear()
        self._first_call = True
        self._updates = 0

    @property
    def theta_long(self) -> int:
        """The current sampling threshold."""
        return self._theta_long

    @property
    def retained_entries(self) -> int:
        """Number of keys currently held by the intersection."""
        return self._tables.count

    def is_empty(self) -> bool:
        """Whether an input has proven the intersection to be the empty set."""
        return self._empty

    def has_result(self) -> bool:
        """Whether get_result() can be called, i.e. any update has happened."""
        return not self._first_call

    def update(self, sketch_in: Optional[TupleSketch[S]]) -> None:
        """
        Intersect the internal state with a tuple sketch.

        Args:
            sketch_in: The sketch to intersect with. None stands for "no
                       sketch" and collapses the state to the empty set.

        Raises:
            TypeError: If sketch_in is not a TupleSketch.
        """
        if sketch_in is not None and not isinstance(sketch_in, TupleSketch):
            raise TypeError(
                f"update() expects a TupleSketch, got {sketch_in.__class__.__name__}; "
                f"use update_theta() for theta sketches"
            )

        first_call = self._consume_first_call()
        if not self._apply_input_rules(sketch_in):
            return

        if first_call:
            self._tables.from_entries(
                ((key, summary.copy()) for key, summary in sketch_in),
                sketch_in.retained_entries,
            )
            log.debug("Seeded intersection with %d entries", self._tables.count)
        else:
            self._intersect_next(iter(sketch_in), self._set_ops.intersection)

    def update_theta(self, sketch_in: Optional[ThetaSketch], summary: S) -> None:
        """
        Intersect the internal state with a theta sketch.

        A theta sketch has no summaries. On the first call every retained key
        is paired with the given summary object itself (not a copy). On later
        calls the given summary is not used: each matched key's summary is
        combined with a copy of itself.

        Args:
            sketch_in: The theta sketch to intersect with. None collapses the
                       state to the empty set.
            summary: Summary paired with the keys of a first-call input.

        Raises:
            TypeError: If sketch_in is not a ThetaSketch.
        """
        if sketch_in is not None and not isinstance(sketch_in, ThetaSketch):
            raise TypeError(
                f"update_theta() expects a ThetaSketch, got {sketch_in.__class__.__name__}"
            )

        first_call = self._consume_first_call()
        if not self._apply_input_rules(sketch_in):
            return

        if first_call:
            self._tables.from_entries(
                ((key, summary) for key in sketch_in), sketch_in.retained_entries
            )
            log.debug("Seeded intersection with %d entries", self._tables.count)
        else:
            self._intersect_next(
                ((key, None) for key in sketch_in),
                lambda mine, _: self._set_ops.intersection(mine, mine.copy()),
            )

    def _consume_first_call(self) -> bool:
        first_call = self._first_call
        self._first_call = False
        self._updates += 1
        return first_call

    def _apply_input_rules(self, sketch_in: Optional[ThetaSampledSketch]) -> bool:
        # Returns False when the input leaves nothing to match against
        if sketch_in is None:
            self._empty = True
            self._theta_long = MAX_THETA
            self._tables.clear()
            log.debug("Intersection with no sketch: state is now the empty set")
            return False

        theta_in = sketch_in.theta_long
        count_in = sketch_in.retained_entries
        self._theta_long = min(self._theta_long, theta_in)
        self._empty |= count_in == 0 and theta_in == MAX_THETA
        if count_in == 0:
            self._tables.clear()
            log.debug(
                "Input has no retained entries: theta=%d empty=%s",
                self._theta_long,
                self._empty,
            )
            return False
        return True

    def _intersect_next(
        self,
        entries: Iterable[Tuple[int, Any]],
        combine: Callable[[S, Any], S],
    ) -> None:
        tables = self._tables
        if tables.count == 0:
            return

        theta_long = self._theta_long
        matches: List[Tuple[int, S]] = []
        for key, summary_in in entries:
            if key >= theta_long:
                continue
            index = search(tables.keys, tables.lg_table_size, key)
            if index < 0:
                continue
            matches.append((key, combine(tables.summaries[index], summary_in)))

        tables.from_entries(matches, len(matches))
        log.debug(
            "Rebuilt intersection table: %d matches, %d slots",
            len(matches),
            1 << tables.lg_table_size,
        )

    def get_result(self) -> CompactTupleSketch[S]:
        """
        Get the intersection computed so far.

        Does not change the state, so it can be called repeatedly and
        interleaved with further updates. The result owns copies of the keys
        and summaries.

        Returns:
            A CompactTupleSketch with the retained keys, theta and empty flag.

        Raises:
            InvalidStateError: If no update has happened yet.
        """
        if self._first_call:
            raise InvalidStateError(
                "get_result() with no intervening intersections is not a legal result"
            )

        tables = self._tables
        if tables.count == 0:
            return CompactTupleSketch(None, None, self._theta_long, self._empty)

        keys: List[int] = []
        summaries: List[S] = []
        for index, key in enumerate(tables.keys):
            if key == 0 or key > self._theta_long:
                continue
            keys.append(key)
            summaries.append(tables.summaries[index].copy())
        assert len(keys) == tables.count, (
            f"Compacted {len(keys)} entries but tracked {tables.count}"
        )
        return CompactTupleSketch(keys, summaries, self._theta_long, self._empty)

    def reset(self) -> None:
        """
        Reset to the universal set, as if freshly constructed.
        """
        self._init_state()
        log.debug("Intersection reset to the universal set")

    def estimate_size(self) -> int:
        """
        Estimate the current memory usage of the intersection in bytes.

        Returns:
            Estimated memory usage in bytes.
        """
        size = sys.getsizeof(self) + sys.getsizeof(self.__dict__)
        tables = self._tables
        if tables.keys is not None:
            size += sys.getsizeof(tables.keys)
            size += sys.getsizeof(tables.summaries)
            for summary in tables.summaries:
                if summary is not None:
                    size += sys.getsizeof(summary)
        return size

    def get_stats(self) -> Dict[str, Any]:
        """
        Get statistics about the current state of the intersection.

        Returns:
            A dictionary with theta, empty flag, retained entries, table size,
            load factor and the number of updates seen.
        """
        tables = self._tables
        table_size = len(tables.keys) if tables.keys is not None else 0
        return {
            "type": self.__class__.__name__,
            "theta_long": self._theta_long,
            "theta": self._theta_long / MAX_THETA,
            "is_empty": self._empty,
            "has_result": self.has_result(),
            "retained_entries": tables.count,
            "table_size": table_size,
            "load_factor": tables.count / table_size if table_size else 0.0,
            "updates": self._updates,
            "memory_bytes": self.estimate_size(),
        }


def intersect(
    sketches: Iterable[Optional[TupleSketch[S]]],
    summary_set_operations: SummarySetOperations[S],
) -> CompactTupleSketch[S]:
    """
    Intersect a sequence of tuple sketches in one call.

    Args:
        sketches: The sketches to intersect, in order. None entries count as
                  the empty set.
        summary_set_operations: Combines summaries of matched keys.

    Returns:
        The intersection as a CompactTupleSketch.

    Raises:
        InvalidStateError: If sketches is empty.
    """
    intersection = TupleIntersection(summary_set_operations)
    for sketch in sketches:
        intersection.update(sketch)
    return intersection.get_result()
