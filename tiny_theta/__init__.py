"""
tiny-theta - Theta and Tuple Sketch Intersection

tiny-theta is a Python library for approximate distinct counting with theta
sketches, tuple sketches that carry a summary per retained key, and the
intersection of any number of them.
"""

__version__ = "0.1.0"

# Import main classes to make them available at the top level
from tiny_theta.algorithms.compact import CompactTupleSketch
from tiny_theta.algorithms.double_summary import (
    DoubleSummary,
    DoubleSummaryFactory,
    DoubleSummarySetOperations,
    Mode,
)
from tiny_theta.algorithms.intersection import TupleIntersection, intersect
from tiny_theta.algorithms.update_sketch import (
    UpdatableThetaSketch,
    UpdatableTupleSketch,
)
from tiny_theta.core.base import ThetaSampledSketch, ThetaSketch, TupleSketch
from tiny_theta.core.constants import MAX_THETA
from tiny_theta.core.errors import InvalidStateError
from tiny_theta.core.summary import Summary, SummaryFactory, SummarySetOperations

__all__ = [
    # Core base classes
    "ThetaSampledSketch",
    "TupleSketch",
    "ThetaSketch",
    "Summary",
    "SummaryFactory",
    "SummarySetOperations",
    "InvalidStateError",
    "MAX_THETA",
    # Algorithm implementations
    "UpdatableThetaSketch",
    "UpdatableTupleSketch",
    "CompactTupleSketch",
    "TupleIntersection",
    "intersect",
    "DoubleSummary",
    "DoubleSummaryFactory",
    "DoubleSummarySetOperations",
    "Mode",
]
