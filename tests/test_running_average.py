"""
Tests cho RunningAverage / RunningAverageAndStdDev và inverted views.
"""

import math
import statistics

import pytest

from cfrec.recommender.exceptions import UnsupportedOperationError
from cfrec.recommender.running_average import RunningAverage, RunningAverageAndStdDev


class TestRunningAverage:
    """Incremental mean."""

    def test_empty_average_is_nan(self):
        average = RunningAverage()
        assert average.count == 0
        assert math.isnan(average.average)

    def test_add_and_remove(self):
        average = RunningAverage()
        for datum in (1.0, 2.0, 6.0):
            average.add_datum(datum)
        assert average.count == 3
        assert average.average == pytest.approx(3.0)

        average.remove_datum(6.0)
        assert average.count == 2
        assert average.average == pytest.approx(1.5)

    def test_remove_last_datum_gives_nan(self):
        average = RunningAverage()
        average.add_datum(4.0)
        average.remove_datum(4.0)
        assert average.count == 0
        assert math.isnan(average.average)

    def test_remove_from_empty_raises(self):
        with pytest.raises(ValueError):
            RunningAverage().remove_datum(1.0)

    def test_adjust_shifts_mean_keeps_count(self):
        average = RunningAverage()
        average.add_datum(1.0)
        average.add_datum(3.0)
        average.adjust(0.5)
        assert average.count == 2
        assert average.average == pytest.approx(2.5)


class TestRunningAverageAndStdDev:
    """Welford mean + stddev."""

    def test_stddev_matches_sample_stddev(self):
        data = [2.0, 4.0, 4.0, 5.0, 7.0]
        average = RunningAverageAndStdDev()
        for datum in data:
            average.add_datum(datum)
        assert average.average == pytest.approx(statistics.mean(data))
        assert average.stddev == pytest.approx(statistics.stdev(data))

    def test_stddev_undefined_below_two_points(self):
        average = RunningAverageAndStdDev()
        assert math.isnan(average.stddev)
        average.add_datum(3.0)
        assert math.isnan(average.stddev)

    def test_remove_reverses_add(self):
        average = RunningAverageAndStdDev()
        for datum in (1.0, 5.0, 9.0, 2.0):
            average.add_datum(datum)
        average.remove_datum(2.0)
        assert average.count == 3
        assert average.average == pytest.approx(5.0)
        assert average.stddev == pytest.approx(statistics.stdev([1.0, 5.0, 9.0]))

    def test_adjust_keeps_variance(self):
        average = RunningAverageAndStdDev()
        for datum in (1.0, 3.0):
            average.add_datum(datum)
        before = average.stddev
        average.adjust(10.0)
        assert average.average == pytest.approx(12.0)
        assert average.stddev == pytest.approx(before)


class TestInvertedRunningAverage:
    """Read-only view đảo dấu."""

    def test_inverse_negates_mean(self):
        average = RunningAverageAndStdDev()
        average.add_datum(1.0)
        average.add_datum(3.0)
        inverted = average.inverse()
        assert inverted.count == 2
        assert inverted.average == pytest.approx(-2.0)
        assert inverted.stddev == pytest.approx(average.stddev)
        assert inverted.inverse() is average

    def test_inverse_is_read_only(self):
        average = RunningAverage()
        average.add_datum(1.0)
        inverted = average.inverse()
        with pytest.raises(UnsupportedOperationError):
            inverted.add_datum(1.0)
        with pytest.raises(UnsupportedOperationError):
            inverted.remove_datum(1.0)
        with pytest.raises(UnsupportedOperationError):
            inverted.adjust(1.0)
