"""
Unit tests for TupleIntersection.
"""

import random
import unittest

from tiny_theta.algorithms.compact import CompactTupleSketch
from tiny_theta.algorithms.double_summary import (
    DoubleSummary,
    DoubleSummaryFactory,
    DoubleSummarySetOperations,
    Mode,
)
from tiny_theta.algorithms.intersection import TupleIntersection, intersect
from tiny_theta.algorithms.update_sketch import UpdatableThetaSketch, UpdatableTupleSketch
from tiny_theta.core.constants import MAX_THETA
from tiny_theta.core.errors import InvalidStateError
from tiny_theta.core.summary import SummarySetOperations


def make_sketch(keys, theta=MAX_THETA, values=None):
    """Build a compact tuple sketch from explicit keys."""
    if values is None:
        values = [1.0] * len(keys)
    summaries = [DoubleSummary(v) for v in values]
    empty = not keys and theta == MAX_THETA
    return CompactTupleSketch(keys, summaries, theta, empty)


def result_values(sketch):
    """Map each key of a sketch to its summary value."""
    return {key: summary.value for key, summary in sketch}


class CountingSetOperations(SummarySetOperations[DoubleSummary]):
    """Sums values and records every call."""

    def __init__(self):
        self.calls = []

    def intersection(self, a, b):
        self.calls.append((a.value, b.value))
        return DoubleSummary(a.value + b.value)


class _KeyOnlySketch(UpdatableThetaSketch):
    """Theta sketch with hand-picked keys, bypassing hashing."""

    def __init__(self, keys, theta=MAX_THETA):
        super().__init__()
        self._fixed_keys = list(keys)
        self._theta_long = theta
        self._count = len(self._fixed_keys)
        self._empty = not keys and theta == MAX_THETA

    def __iter__(self):
        return iter(self._fixed_keys)


class TestIntersectionBasics(unittest.TestCase):
    """Test cases for the core intersection rules."""

    def setUp(self):
        self.intersection = TupleIntersection(DoubleSummarySetOperations(Mode.SUM))

    def test_result_before_update(self):
        """Test that the universal set cannot be materialized."""
        self.assertFalse(self.intersection.has_result())
        with self.assertRaises(InvalidStateError):
            self.intersection.get_result()

    def test_two_overlapping_sketches(self):
        """Test {5, 10, 15} intersected with {10, 15, 20}."""
        self.intersection.update(make_sketch([5, 10, 15]))
        self.intersection.update(make_sketch([10, 15, 20]))

        result = self.intersection.get_result()
        self.assertEqual(sorted(result.get_keys()), [10, 15])
        self.assertEqual(result.theta_long, MAX_THETA)
        self.assertFalse(result.is_empty())
        self.assertEqual(result_values(result), {10: 2.0, 15: 2.0})

    def test_zero_entries_with_lower_theta(self):
        """Test that an input sampled down to nothing is not the empty set."""
        self.intersection.update(make_sketch([5, 10], theta=1000))
        self.intersection.update(make_sketch([], theta=500))

        result = self.intersection.get_result()
        self.assertEqual(result.retained_entries, 0)
        self.assertEqual(result.theta_long, 500)
        self.assertFalse(result.is_empty())

    def test_true_empty_input(self):
        """Test that a zero-entry input at full theta sets the empty flag."""
        self.intersection.update(make_sketch([5, 10]))
        self.intersection.update(make_sketch([]))

        result = self.intersection.get_result()
        self.assertTrue(result.is_empty())
        self.assertEqual(result.retained_entries, 0)
        self.assertEqual(result.theta_long, MAX_THETA)
        self.assertEqual(result.get_estimate(), 0.0)

    def test_empty_first_input(self):
        """Test a canonically empty sketch as the first input."""
        self.intersection.update(make_sketch([]))
        self.assertTrue(self.intersection.has_result())
        result = self.intersection.get_result()
        self.assertTrue(result.is_empty())
        self.assertEqual(result.retained_entries, 0)

    def test_empty_flag_is_sticky(self):
        """Test that later inputs cannot clear the empty flag."""
        self.intersection.update(make_sketch([]))
        self.intersection.update(make_sketch([1, 2, 3]))
        self.intersection.update(make_sketch([1, 2, 3], theta=100))
        result = self.intersection.get_result()
        self.assertTrue(result.is_empty())
        self.assertEqual(result.retained_entries, 0)

    def test_input_empty_flag_is_not_trusted(self):
        """Test that only count and theta of the input decide emptiness."""
        flagged = CompactTupleSketch([1, 2], [DoubleSummary(), DoubleSummary()], MAX_THETA, True)
        self.intersection.update(flagged)
        self.assertFalse(self.intersection.get_result().is_empty())

    def test_theta_filters_matches(self):
        """Test that keys at or above the new theta are dropped on matching."""
        self.intersection.update(make_sketch([100, 200, 250, 300]))
        self.intersection.update(make_sketch([100, 200, 250, 300], theta=250))

        result = self.intersection.get_result()
        self.assertEqual(sorted(result.get_keys()), [100, 200])
        self.assertEqual(result.theta_long, 250)
        for key in result.iter_keys():
            self.assertLess(key, result.theta_long)

    def test_disjoint_sketches(self):
        """Test that disjoint inputs leave nothing, without setting empty."""
        self.intersection.update(make_sketch([1, 2, 3]))
        self.intersection.update(make_sketch([4, 5, 6]))
        result = self.intersection.get_result()
        self.assertEqual(result.retained_entries, 0)
        self.assertFalse(result.is_empty())
        self.assertEqual(result.theta_long, MAX_THETA)

    def test_wrong_input_type(self):
        """Test that each update method checks its input type."""
        with self.assertRaises(TypeError):
            self.intersection.update([1, 2, 3])
        with self.assertRaises(TypeError):
            self.intersection.update(UpdatableThetaSketch())
        with self.assertRaises(TypeError):
            self.intersection.update_theta(make_sketch([1]), DoubleSummary())
        # Nothing was consumed by the rejected calls
        self.assertFalse(self.intersection.has_result())


class TestIntersectionProperties(unittest.TestCase):
    """Test cases for the invariants of a sequence of intersections."""

    def test_universal_set_identity(self):
        """Test that one update yields the input sketch unchanged."""
        sketch = UpdatableTupleSketch(DoubleSummaryFactory(Mode.SUM))
        for i in range(300):
            sketch.update(i, float(i % 7))
        compact = sketch.compact()

        intersection = TupleIntersection(DoubleSummarySetOperations(Mode.SUM))
        intersection.update(compact)
        self.assertEqual(intersection.get_result(), compact)

        # Also in estimation mode
        sampled = UpdatableTupleSketch(DoubleSummaryFactory(Mode.SUM), nominal_entries=64)
        for i in range(1000):
            sampled.update(i, 1.0)
        intersection = TupleIntersection(DoubleSummarySetOperations(Mode.SUM))
        intersection.update(sampled)
        result = intersection.get_result()
        self.assertEqual(result, sampled.compact())
        self.assertAlmostEqual(result.get_estimate(), sampled.get_estimate())

    def test_theta_monotonic(self):
        """Test that theta never increases across updates."""
        intersection = TupleIntersection(DoubleSummarySetOperations(Mode.SUM))
        thetas = [900, 1200, 700, 800, MAX_THETA, 650]
        previous = MAX_THETA
        for theta in thetas:
            intersection.update(make_sketch([10, 20, 30, 600], theta=theta))
            current = intersection.get_result().theta_long
            self.assertLessEqual(current, previous)
            self.assertEqual(current, intersection.theta_long)
            previous = current
        self.assertEqual(previous, 650)

    def test_none_input_absorbs(self):
        """Test that a missing sketch collapses the state to the empty set."""
        intersection = TupleIntersection(DoubleSummarySetOperations(Mode.SUM))
        intersection.update(make_sketch([1, 2, 3], theta=1000))
        intersection.update(None)

        result = intersection.get_result()
        self.assertTrue(result.is_empty())
        self.assertEqual(result.theta_long, MAX_THETA)
        self.assertEqual(result.retained_entries, 0)

        for keys in ([1, 2, 3], [2, 3], [7]):
            intersection.update(make_sketch(keys))
            result = intersection.get_result()
            self.assertTrue(result.is_empty())
            self.assertEqual(result.theta_long, MAX_THETA)
            self.assertEqual(result.retained_entries, 0)

    def test_none_as_first_input(self):
        """Test that a missing first sketch still produces a result."""
        intersection = TupleIntersection(DoubleSummarySetOperations(Mode.SUM))
        intersection.update(None)
        self.assertTrue(intersection.has_result())
        result = intersection.get_result()
        self.assertTrue(result.is_empty())
        self.assertEqual(result.retained_entries, 0)

    def test_zero_collapse_is_final(self):
        """Test that entries cannot come back once the state holds none."""
        intersection = TupleIntersection(DoubleSummarySetOperations(Mode.SUM))
        intersection.update(make_sketch([5, 10], theta=1000))
        intersection.update(make_sketch([], theta=500))
        self.assertEqual(intersection.retained_entries, 0)

        intersection.update(make_sketch([5, 10]))
        self.assertEqual(intersection.get_result().retained_entries, 0)
        self.assertEqual(intersection.theta_long, 500)

        intersection.update(make_sketch([5, 10], theta=300))
        result = intersection.get_result()
        self.assertEqual(result.retained_entries, 0)
        self.assertEqual(result.theta_long, 300)
        self.assertFalse(result.is_empty())

    def test_order_does_not_matter(self):
        """Test that a commutative policy gives order-independent results."""
        rng = random.Random(7)
        universe = list(range(1, 400))
        sketches = []
        for theta in (MAX_THETA, 350, 300):
            keys = sorted(k for k in rng.sample(universe, 250) if k < theta)
            values = [float(rng.randint(1, 100)) for _ in keys]
            sketches.append(make_sketch(keys, theta=theta, values=values))

        a, b, c = sketches
        ops = DoubleSummarySetOperations(Mode.MIN)
        first = intersect([a, b, c], ops)
        second = intersect([b, a, c], ops)
        third = intersect([c, b, a], ops)

        self.assertEqual(set(first.iter_keys()), set(second.iter_keys()))
        self.assertEqual(set(first.iter_keys()), set(third.iter_keys()))
        self.assertEqual(first.theta_long, 300)
        self.assertEqual(first.theta_long, second.theta_long)
        self.assertEqual(result_values(first), result_values(second))
        self.assertEqual(result_values(first), result_values(third))

        expected = {k for k in a.iter_keys() if k < 300}
        expected &= set(b.iter_keys()) & set(c.iter_keys())
        self.assertEqual(set(first.iter_keys()), expected)

    def test_reset_equivalence(self):
        """Test that reset gives the state of a fresh instance."""
        intersection = TupleIntersection(DoubleSummarySetOperations(Mode.SUM))
        intersection.update(make_sketch([1, 2, 3], theta=1000))
        intersection.update(None)
        intersection.reset()

        self.assertFalse(intersection.has_result())
        self.assertEqual(intersection.theta_long, MAX_THETA)
        self.assertFalse(intersection.is_empty())
        self.assertEqual(intersection.retained_entries, 0)
        with self.assertRaises(InvalidStateError):
            intersection.get_result()

        fresh = TupleIntersection(DoubleSummarySetOperations(Mode.SUM))
        sketch = make_sketch([4, 5, 6], theta=2000)
        intersection.update(sketch)
        fresh.update(sketch)
        self.assertEqual(intersection.get_result(), fresh.get_result())
        self.assertEqual(intersection.get_result(), sketch)


class TestIntersectionSummaries(unittest.TestCase):
    """Test cases for summary handling."""

    def test_policy_called_once_per_match(self):
        """Test that the combination policy runs once for each matched key."""
        ops = CountingSetOperations()
        intersection = TupleIntersection(ops)
        intersection.update(make_sketch([1, 2, 3, 4], values=[1.0, 2.0, 3.0, 4.0]))
        self.assertEqual(ops.calls, [])

        intersection.update(make_sketch([2, 4, 6], values=[10.0, 20.0, 30.0]))
        self.assertEqual(sorted(ops.calls), [(2.0, 10.0), (4.0, 20.0)])
        self.assertEqual(result_values(intersection.get_result()), {2: 12.0, 4: 24.0})

    def test_seeding_copies_summaries(self):
        """Test that the first input's summaries are not shared."""
        sketch = make_sketch([1, 2], values=[1.0, 2.0])
        intersection = TupleIntersection(DoubleSummarySetOperations(Mode.SUM))
        intersection.update(sketch)

        for summary in sketch.get_summaries():
            summary.update(100.0)
        self.assertEqual(result_values(intersection.get_result()), {1: 1.0, 2: 2.0})

    def test_result_is_independent(self):
        """Test that continued use of the engine leaves earlier results alone."""
        intersection = TupleIntersection(DoubleSummarySetOperations(Mode.SUM))
        intersection.update(make_sketch([1, 2, 3]))
        first = intersection.get_result()
        again = intersection.get_result()
        self.assertEqual(first, again)

        intersection.update(make_sketch([2], theta=1000))
        self.assertEqual(sorted(first.get_keys()), [1, 2, 3])
        self.assertEqual(result_values(first), {1: 1.0, 2: 1.0, 3: 1.0})
        self.assertEqual(first.theta_long, MAX_THETA)

        for summary in first.get_summaries():
            summary.update(50.0)
        self.assertEqual(result_values(intersection.get_result()), {2: 2.0})


class TestThetaSketchInputs(unittest.TestCase):
    """Test cases for update_theta()."""

    def test_placeholder_seeds_every_key(self):
        """Test that a first theta input pairs every key with the placeholder."""
        intersection = TupleIntersection(DoubleSummarySetOperations(Mode.SUM))
        intersection.update_theta(_KeyOnlySketch([3, 6, 9]), DoubleSummary(7.0))

        result = intersection.get_result()
        self.assertEqual(result_values(result), {3: 7.0, 6: 7.0, 9: 7.0})

    def test_later_calls_combine_with_own_copy(self):
        """Test that later theta inputs combine each summary with itself.

        The placeholder given on later calls is ignored; each retained
        summary is merged with a copy of itself.
        """
        intersection = TupleIntersection(DoubleSummarySetOperations(Mode.SUM))
        intersection.update_theta(_KeyOnlySketch([3, 6, 9]), DoubleSummary(1.0))
        intersection.update_theta(_KeyOnlySketch([6, 9, 12]), DoubleSummary(5.0))

        self.assertEqual(result_values(intersection.get_result()), {6: 2.0, 9: 2.0})

    def test_mixed_inputs(self):
        """Test a tuple sketch followed by a theta sketch."""
        ops = CountingSetOperations()
        intersection = TupleIntersection(ops)
        intersection.update(make_sketch([1, 2, 3], values=[1.0, 2.0, 3.0]))
        intersection.update_theta(_KeyOnlySketch([2, 3, 4], theta=1000), DoubleSummary(9.0))

        self.assertEqual(sorted(ops.calls), [(2.0, 2.0), (3.0, 3.0)])
        result = intersection.get_result()
        self.assertEqual(result_values(result), {2: 4.0, 3: 6.0})
        self.assertEqual(result.theta_long, 1000)

    def test_theta_then_tuple(self):
        """Test a theta sketch followed by a tuple sketch."""
        intersection = TupleIntersection(DoubleSummarySetOperations(Mode.MAX))
        intersection.update_theta(_KeyOnlySketch([1, 2, 3]), DoubleSummary(4.0))
        intersection.update(make_sketch([2, 3], values=[1.0, 10.0]))
        self.assertEqual(result_values(intersection.get_result()), {2: 4.0, 3: 10.0})

    def test_theta_none_and_empty(self):
        """Test the degenerate theta inputs."""
        intersection = TupleIntersection(DoubleSummarySetOperations(Mode.SUM))
        intersection.update_theta(None, DoubleSummary())
        self.assertTrue(intersection.get_result().is_empty())

        intersection.reset()
        intersection.update_theta(UpdatableThetaSketch(), DoubleSummary())
        result = intersection.get_result()
        self.assertTrue(result.is_empty())
        self.assertEqual(result.retained_entries, 0)

    def test_updatable_theta_sketch(self):
        """Test real theta sketches against a tuple sketch."""
        tuple_sketch = UpdatableTupleSketch(DoubleSummaryFactory(Mode.SUM))
        theta_sketch = UpdatableThetaSketch()
        for i in range(200):
            tuple_sketch.update(f"user-{i}", 2.0)
        for i in range(100, 400):
            theta_sketch.update(f"user-{i}")

        intersection = TupleIntersection(DoubleSummarySetOperations(Mode.SUM))
        intersection.update(tuple_sketch)
        intersection.update_theta(theta_sketch, DoubleSummary(1.0))
        result = intersection.get_result()

        self.assertEqual(result.retained_entries, 100)
        self.assertEqual(result.get_estimate(), 100.0)
        self.assertEqual({s.value for s in result.get_summaries()}, {4.0})


class TestIntersectionWithUpdatableSketches(unittest.TestCase):
    """End-to-end cases built from streams."""

    def test_exact_overlap(self):
        """Test exact mode: the overlap is counted exactly."""
        a = UpdatableTupleSketch(DoubleSummaryFactory(Mode.SUM))
        b = UpdatableTupleSketch(DoubleSummaryFactory(Mode.SUM))
        for i in range(2000):
            a.update(i, 1.0)
        for i in range(1000, 3000):
            b.update(i, 2.0)

        result = intersect([a, b], DoubleSummarySetOperations(Mode.SUM))
        self.assertEqual(result.get_estimate(), 1000.0)
        self.assertFalse(result.is_estimation_mode())
        self.assertEqual({s.value for s in result.get_summaries()}, {3.0})

    def test_estimated_overlap(self):
        """Test estimation mode: the overlap estimate is close."""
        a = UpdatableThetaSketch(nominal_entries=1024)
        b = UpdatableTupleSketch(DoubleSummaryFactory(Mode.SUM), nominal_entries=1024)
        for i in range(10000):
            a.update(i)
        for i in range(5000, 15000):
            b.update(i, 1.0)

        intersection = TupleIntersection(DoubleSummarySetOperations(Mode.SUM))
        intersection.update(b)
        intersection.update_theta(a, DoubleSummary())
        result = intersection.get_result()

        self.assertTrue(result.is_estimation_mode())
        self.assertEqual(result.theta_long, min(a.theta_long, b.theta_long))
        estimate = result.get_estimate()
        self.assertLess(abs(estimate - 5000) / 5000, 0.35)
        self.assertLessEqual(result.get_lower_bound(3), estimate)
        self.assertGreaterEqual(result.get_upper_bound(3), estimate)

    def test_intersect_helper(self):
        """Test the one-shot helper against the engine."""
        sketches = [make_sketch([1, 2, 3, 4]), make_sketch([2, 3, 4]), make_sketch([3, 4, 5])]
        ops = DoubleSummarySetOperations(Mode.SUM)

        engine = TupleIntersection(ops)
        for sketch in sketches:
            engine.update(sketch)
        self.assertEqual(intersect(sketches, ops), engine.get_result())
        self.assertEqual(result_values(intersect(sketches, ops)), {3: 3.0, 4: 3.0})

        with self.assertRaises(InvalidStateError):
            intersect([], ops)


if __name__ == "__main__":
    unittest.main()
