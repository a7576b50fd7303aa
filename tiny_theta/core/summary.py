"""
Summary interfaces for tuple sketches.

A tuple sketch carries one summary object per retained sampling key. The
library never looks inside a summary; it only needs to copy it, feed it
update values, create new ones, and merge two summaries that belong to
the same key. Those capabilities are the three abstract classes below.
"""

import abc
from typing import Any, Generic, TypeVar

S = TypeVar("S", bound="Summary")  # Type of the per-key summary


class Summary(abc.ABC):
    """
    Abstract base class for the value attached to each retained key.
    """

    @abc.abstractmethod
    def copy(self) -> "Summary":
        """
        Create an independent deep copy of this summary.

        Called whenever a summary crosses from one sketch into another, so
        that the two never share mutable state.

        Returns:
            A new summary equal to this one.
        """
        pass

    @abc.abstractmethod
    def update(self, value: Any) -> None:
        """
        Fold an update value into the summary.

        Args:
            value: The value passed to the sketch along with the item.
        """
        pass


class SummaryFactory(Generic[S], abc.ABC):
    """Creates the initial summary for a key seen for the first time."""

    @abc.abstractmethod
    def new_summary(self) -> S:
        """
        Create a fresh summary.

        Returns:
            A new summary in its initial state.
        """
        pass


class SummarySetOperations(Generic[S], abc.ABC):
    """
    The policy used to combine summaries during set operations.

    Only intersection is defined. The intersection engine calls it exactly
    once per matched key per update; whether it is commutative or
    associative is up to the implementation.
    """

    @abc.abstractmethod
    def intersection(self, a: S, b: S) -> S:
        """
        Combine two summaries that belong to the same key.

        Args:
            a: The summary currently retained by the intersection.
            b: The summary from the incoming sketch.

        Returns:
            The combined summary. Implementations should return a new object
            rather than mutating either argument.
        """
        pass
