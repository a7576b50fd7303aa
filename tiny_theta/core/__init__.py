"""
Core functionality for tiny-theta.
"""

from tiny_theta.core.base import ThetaSampledSketch, ThetaSketch, TupleSketch
from tiny_theta.core.errors import InvalidStateError
from tiny_theta.core.hash import murmurhash3_64, murmurhash3_x64_128, sampling_key
from tiny_theta.core.hash_table import (
    ceiling_power_of_2,
    insert_only,
    lg_table_size_for,
    search,
)
from tiny_theta.core.summary import Summary, SummaryFactory, SummarySetOperations

__all__ = [
    # Base classes
    "ThetaSampledSketch",
    "TupleSketch",
    "ThetaSketch",
    "Summary",
    "SummaryFactory",
    "SummarySetOperations",
    "InvalidStateError",
    # Utility functions
    "murmurhash3_x64_128",
    "murmurhash3_64",
    "sampling_key",
    "ceiling_power_of_2",
    "lg_table_size_for",
    "insert_only",
    "search",
]
