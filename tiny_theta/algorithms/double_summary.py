"""
Numeric summary for tuple sketches.

DoubleSummary attaches a single float to each retained key. The mode decides
how update values are folded in and how two summaries for the same key are
combined by an intersection:

- SUM: values are added (e.g. total revenue per user)
- MIN / MAX: the smallest / largest value is kept
- ALWAYS_ONE: the value is pinned to 1.0 (pure distinct counting)
"""

from enum import Enum
from typing import Any, Optional

from tiny_theta.core.summary import Summary, SummaryFactory, SummarySetOperations


class Mode(Enum):
    """How DoubleSummary folds values together."""

    SUM = "sum"
    MIN = "min"
    MAX = "max"
    ALWAYS_ONE = "always_one"


def _fold(mode: Mode, a: float, b: float) -> float:
    if mode is Mode.SUM:
        return a + b
    if mode is Mode.MIN:
        return min(a, b)
    if mode is Mode.MAX:
        return max(a, b)
    return 1.0


class DoubleSummary(Summary):
    """
    A float value attached to a sampling key.

    A fresh summary starts at 0.0 for SUM, at +inf for MIN, at -inf for MAX
    and at 1.0 for ALWAYS_ONE, so the first update sets the value in every
    mode.
    """

    __slots__ = ["_value", "_mode"]

    def __init__(self, value: Optional[float] = None, mode: Mode = Mode.SUM):
        """
        Initialize a summary.

        Args:
            value: Initial value. None picks the mode's neutral starting value.
            mode: How update values are folded in.
        """
        self._mode = mode
        if value is None:
            if mode is Mode.MIN:
                value = float("inf")
            elif mode is Mode.MAX:
                value = float("-inf")
            elif mode is Mode.ALWAYS_ONE:
                value = 1.0
            else:
                value = 0.0
        self._value = float(value)

    @property
    def value(self) -> float:
        """The current value."""
        return self._value

    @property
    def mode(self) -> Mode:
        """The fold mode."""
        return self._mode

    def update(self, value: Any) -> None:
        self._value = _fold(self._mode, self._value, float(value))

    def copy(self) -> "DoubleSummary":
        return DoubleSummary(self._value, self._mode)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DoubleSummary):
            return False
        return self._value == other._value and self._mode is other._mode

    def __hash__(self) -> int:
        return hash((self._value, self._mode))

    def __repr__(self) -> str:
        return f"DoubleSummary(value={self._value}, mode={self._mode.name})"


class DoubleSummaryFactory(SummaryFactory[DoubleSummary]):
    """Creates DoubleSummary objects with a fixed mode."""

    def __init__(self, mode: Mode = Mode.SUM):
        self._mode = mode

    @property
    def mode(self) -> Mode:
        return self._mode

    def new_summary(self) -> DoubleSummary:
        return DoubleSummary(mode=self._mode)


class DoubleSummarySetOperations(SummarySetOperations[DoubleSummary]):
    """
    Combines DoubleSummary objects during an intersection.

    The two values are folded with this object's mode, which need not match
    the mode the summaries were built with: an intersection of SUM sketches
    can, for example, keep the MIN of the per-sketch totals.
    """

    def __init__(self, mode: Mode = Mode.SUM):
        self._mode = mode

    @property
    def mode(self) -> Mode:
        return self._mode

    def intersection(self, a: DoubleSummary, b: DoubleSummary) -> DoubleSummary:
        return DoubleSummary(_fold(self._mode, a.value, b.value), self._mode)
