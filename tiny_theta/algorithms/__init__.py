"""
Algorithm implementations for tiny-theta.
"""

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

__all__ = [
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
