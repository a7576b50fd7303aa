"""
Sketch Intersection Example for tiny-theta.

This example demonstrates how to intersect tuple and theta sketches to
estimate the size of the overlap between streams, and how summaries are
combined for the keys found in every sketch.
"""

import random

from tiny_theta.algorithms.double_summary import (
    DoubleSummary,
    DoubleSummaryFactory,
    DoubleSummarySetOperations,
    Mode,
)
from tiny_theta.algorithms.intersection import TupleIntersection, intersect
from tiny_theta.algorithms.update_sketch import UpdatableThetaSketch, UpdatableTupleSketch


def demonstrate_basic_intersection():
    """Estimate how many users bought something on both days."""
    print("\n=== Basic Intersection Demo ===")

    monday = UpdatableTupleSketch(DoubleSummaryFactory(Mode.SUM), nominal_entries=1024)
    tuesday = UpdatableTupleSketch(DoubleSummaryFactory(Mode.SUM), nominal_entries=1024)

    rng = random.Random(42)
    monday_users = set()
    tuesday_users = set()

    print("Processing 40,000 purchases per day...")
    for _ in range(40000):
        user = f"user-{rng.randint(0, 30000)}"
        monday.update(user, rng.uniform(1, 50))
        monday_users.add(user)
    for _ in range(40000):
        user = f"user-{rng.randint(15000, 45000)}"
        tuesday.update(user, rng.uniform(1, 50))
        tuesday_users.add(user)

    print(f"  Monday:  estimate {monday.get_estimate():,.0f} (true {len(monday_users):,})")
    print(f"  Tuesday: estimate {tuesday.get_estimate():,.0f} (true {len(tuesday_users):,})")

    # Keep the smaller of the two daily totals for each returning user
    result = intersect([monday, tuesday], DoubleSummarySetOperations(Mode.MIN))
    true_overlap = len(monday_users & tuesday_users)

    print(f"\nUsers on both days: estimate {result.get_estimate():,.0f} (true {true_overlap:,})")
    print(
        f"  95% interval: [{result.get_lower_bound(2):,.0f}, {result.get_upper_bound(2):,.0f}]"
    )
    print(f"  Retained entries: {result.retained_entries}, theta: {result.get_theta():.4f}")

    if result.retained_entries:
        mean_min_spend = sum(s.value for s in result.get_summaries()) / result.retained_entries
        print(f"  Mean of the smaller daily spend: {mean_min_spend:.2f}")


def demonstrate_theta_sketch_filter():
    """Restrict a tuple sketch to the users present in a theta sketch."""
    print("\n=== Theta Sketch Filter Demo ===")

    spend = UpdatableTupleSketch(DoubleSummaryFactory(Mode.SUM))
    for i in range(5000):
        spend.update(f"user-{i}", 10.0)

    premium = UpdatableThetaSketch()
    for i in range(0, 5000, 5):
        premium.update(f"user-{i}")

    intersection = TupleIntersection(DoubleSummarySetOperations(Mode.SUM))
    intersection.update(spend)
    # The theta sketch has no summaries; the placeholder is only used when
    # the theta sketch is the first input.
    intersection.update_theta(premium, DoubleSummary(0.0))

    result = intersection.get_result()
    print(f"Premium users with purchases: {result.get_estimate():,.0f} (true 1,000)")
    print(f"Intersection stats: {intersection.get_stats()}")


def demonstrate_empty_handling():
    """Show the difference between the empty set and a sampled-out result."""
    print("\n=== Empty vs Sampled-Out Demo ===")

    ops = DoubleSummarySetOperations(Mode.SUM)

    intersection = TupleIntersection(ops)
    intersection.update(None)
    result = intersection.get_result()
    print(f"Intersect with nothing: empty={result.is_empty()}, estimate={result.get_estimate()}")

    sampled = UpdatableTupleSketch(DoubleSummaryFactory(), sampling_probability=0.001)
    for i in range(100):
        sampled.update(i, 1.0)

    intersection.reset()
    intersection.update(sampled)
    result = intersection.get_result()
    print(
        f"Sampled to {result.retained_entries} entries: empty={result.is_empty()}, "
        f"upper bound={result.get_upper_bound(2):,.0f}"
    )


if __name__ == "__main__":
    demonstrate_basic_intersection()
    demonstrate_theta_sketch_filter()
    demonstrate_empty_handling()
