"""
Base classes and interfaces for tiny-theta sketches.

Every sketch in the library keeps a uniform random sample of the hashed key
space: the keys below a threshold called theta. This module defines the
read-only interface all such sketches share (theta, retained entries, key
iteration) and derives the cardinality estimate, its error bounds, and the
introspection hooks (memory estimate, statistics) from it.
"""

import abc
import math
import sys
from typing import Any, Dict, Generic, Iterator, List, Optional, Tuple, TypeVar

from tiny_theta.core.constants import MAX_THETA
from tiny_theta.core.summary import Summary

S = TypeVar("S", bound=Summary)  # Type of the per-key summary


def _check_num_std_dev(num_std_dev: int) -> None:
    if num_std_dev not in (1, 2, 3):
        raise ValueError("num_std_dev must be 1, 2 or 3")


class ThetaSampledSketch(abc.ABC):
    """
    Abstract base class for all theta-sampled sketches.

    A sketch retains the sampling keys that are strictly below theta_long.
    Subclasses supply the state; this class turns it into estimates.
    """

    def __init__(self, memory_limit_bytes: Optional[int] = None):
        """
        Initialize the sketch base.

        Args:
            memory_limit_bytes: Optional maximum memory usage in bytes.
                                None means no explicit limit.
        """
        self._memory_limit_bytes = memory_limit_bytes

    @property
    @abc.abstractmethod
    def theta_long(self) -> int:
        """The sampling threshold as an integer in [0, MAX_THETA]."""
        pass

    @property
    @abc.abstractmethod
    def retained_entries(self) -> int:
        """Number of keys currently retained (all below theta_long)."""
        pass

    @abc.abstractmethod
    def is_empty(self) -> bool:
        """
        Whether the sketch represents the empty set.

        A sketch can retain zero entries without being empty: that happens
        when sampling discarded everything it saw.
        """
        pass

    @abc.abstractmethod
    def iter_keys(self) -> Iterator[int]:
        """Iterate over the retained sampling keys."""
        pass

    def get_theta(self) -> float:
        """
        Get theta as a sampling probability.

        Returns:
            theta_long / MAX_THETA, between 0.0 and 1.0.
        """
        return self.theta_long / MAX_THETA

    def is_estimation_mode(self) -> bool:
        """Whether sampling is active, i.e. the estimate is not exact."""
        return self.theta_long < MAX_THETA and not self.is_empty()

    def get_estimate(self) -> float:
        """
        Estimate the number of distinct items the sketch represents.

        Returns:
            retained_entries / theta, or 0.0 for an empty sketch.
        """
        if self.is_empty():
            return 0.0
        theta = self.get_theta()
        if theta == 0.0:
            return 0.0
        return self.retained_entries / theta

    def _standard_deviation(self) -> float:
        # Binomial sampling error of retained_entries / theta. With no
        # retained entries, one entry stands in so the upper bound stays open.
        theta = self.get_theta()
        if theta == 0.0:
            return 0.0
        count = max(self.retained_entries, 1)
        return math.sqrt(count * (1.0 - theta)) / theta

    def get_lower_bound(self, num_std_dev: int) -> float:
        """
        Approximate lower bound of the estimate.

        Args:
            num_std_dev: Confidence expressed in standard deviations (1, 2 or 3).

        Returns:
            The lower bound, never below the number of retained entries.

        Raises:
            ValueError: If num_std_dev is not 1, 2 or 3.
        """
        _check_num_std_dev(num_std_dev)
        if not self.is_estimation_mode():
            return float(self.retained_entries)
        bound = self.get_estimate() - num_std_dev * self._standard_deviation()
        return max(float(self.retained_entries), bound)

    def get_upper_bound(self, num_std_dev: int) -> float:
        """
        Approximate upper bound of the estimate.

        Args:
            num_std_dev: Confidence expressed in standard deviations (1, 2 or 3).

        Returns:
            The upper bound.

        Raises:
            ValueError: If num_std_dev is not 1, 2 or 3.
        """
        _check_num_std_dev(num_std_dev)
        if not self.is_estimation_mode():
            return float(self.retained_entries)
        return self.get_estimate() + num_std_dev * self._standard_deviation()

    def error_bounds(self) -> Dict[str, float]:
        """
        Get the error bounds of the current estimate.

        Returns:
            A dictionary with the estimate and its 1, 2 and 3 sigma bounds.
        """
        bounds = {"estimate": self.get_estimate()}
        for sigma in (1, 2, 3):
            bounds[f"lower_bound_{sigma}sd"] = self.get_lower_bound(sigma)
            bounds[f"upper_bound_{sigma}sd"] = self.get_upper_bound(sigma)
        return bounds

    def estimate_size(self) -> int:
        """
        Estimate the current memory usage of this sketch in bytes.

        Covers the object and its instance dictionary. Subclasses add the
        size of their key and summary storage.

        Returns:
            Estimated memory usage in bytes.
        """
        size = sys.getsizeof(self)
        if hasattr(self, "__dict__"):
            size += sys.getsizeof(self.__dict__)
        return size

    def check_memory_limit(self) -> bool:
        """
        Check if the current memory usage exceeds the limit.

        Returns:
            True if the memory usage is within limits, False otherwise.
        """
        if self._memory_limit_bytes is None:
            return True

        return self.estimate_size() <= self._memory_limit_bytes

    def get_stats(self) -> Dict[str, Any]:
        """
        Get detailed statistics about the current state of the sketch.

        Derived classes extend this with their own fields while calling
        super().get_stats().

        Returns:
            A dictionary containing statistics about the sketch.
        """
        stats: Dict[str, Any] = {
            "type": self.__class__.__name__,
            "theta_long": self.theta_long,
            "theta": self.get_theta(),
            "retained_entries": self.retained_entries,
            "is_empty": self.is_empty(),
            "estimation_mode": self.is_estimation_mode(),
            "memory_bytes": self.estimate_size(),
        }

        if self._memory_limit_bytes is not None:
            stats["memory_limit_bytes"] = self._memory_limit_bytes
            stats["memory_usage_pct"] = (
                self.estimate_size() / self._memory_limit_bytes
            ) * 100

        stats.update(self.error_bounds())
        return stats

    def __len__(self) -> int:
        return self.retained_entries


class TupleSketch(ThetaSampledSketch, Generic[S], abc.ABC):
    """
    Abstract base class for sketches that carry a summary per retained key.

    Iterating a tuple sketch yields (key, summary) pairs.
    """

    @abc.abstractmethod
    def __iter__(self) -> Iterator[Tuple[int, S]]:
        pass

    def iter_keys(self) -> Iterator[int]:
        for key, _ in self:
            yield key

    def get_summaries(self) -> List[S]:
        """
        Get the retained summaries, in iteration order.

        Returns:
            A list of the summary objects (not copies).
        """
        return [summary for _, summary in self]


class ThetaSketch(ThetaSampledSketch, abc.ABC):
    """
    Abstract base class for sketches that retain keys only.

    Iterating a theta sketch yields keys.
    """

    @abc.abstractmethod
    def __iter__(self) -> Iterator[int]:
        pass

    def iter_keys(self) -> Iterator[int]:
        return iter(self)
