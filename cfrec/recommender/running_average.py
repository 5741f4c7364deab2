"""
Running Average
===============

Thống kê incremental (mean và optional stddev) trên một stream các giá trị.

Hỗ trợ:
1. add_datum: thêm một data point, O(1)
2. remove_datum: đảo ngược add_datum (cần biết đúng giá trị đã add)
3. adjust: dịch TẤT CẢ data points một lượng delta, count không đổi
4. Inverted view: read-only, đảo dấu mean, không copy storage
"""

import math

from cfrec.recommender.exceptions import UnsupportedOperationError


class RunningAverage:
    """
    Incremental mean.

    count == 0 thì average là NaN.
    """

    __slots__ = ("_count", "_average")

    def __init__(self):
        self._count = 0
        self._average = math.nan

    @property
    def count(self) -> int:
        return self._count

    @property
    def average(self) -> float:
        return self._average

    def add_datum(self, datum: float) -> None:
        """
        Thêm một data point.

        Args:
            datum: Giá trị mới
        """
        self._count += 1
        if self._count == 1:
            self._average = datum
        else:
            self._average += (datum - self._average) / self._count

    def remove_datum(self, datum: float) -> None:
        """
        Bỏ một data point đã add trước đó.

        Args:
            datum: Đúng giá trị đã add

        Raises:
            ValueError: Nếu statistic đang rỗng
        """
        if self._count == 0:
            raise ValueError("Cannot remove datum from an empty running average")
        self._count -= 1
        if self._count == 0:
            self._average = math.nan
        else:
            self._average = (self._average * (self._count + 1) - datum) / self._count

    def adjust(self, delta: float) -> None:
        """Dịch mọi data point một lượng delta; count giữ nguyên."""
        self._average += delta

    def inverse(self) -> "RunningAverage":
        """View đảo dấu (read-only) của statistic này."""
        return InvertedRunningAverage(self)

    def __repr__(self):
        return f"{type(self).__name__}(count={self._count}, average={self._average})"


class RunningAverageAndStdDev(RunningAverage):
    """
    Incremental mean + standard deviation (Welford).

    stddev = sqrt(M2 / (count - 1)), NaN khi count < 2.
    """

    __slots__ = ("_m2",)

    def __init__(self):
        super().__init__()
        self._m2 = 0.0

    @property
    def stddev(self) -> float:
        if self._count < 2:
            return math.nan
        return math.sqrt(self._m2 / (self._count - 1))

    def add_datum(self, datum: float) -> None:
        self._count += 1
        if self._count == 1:
            self._average = datum
            self._m2 = 0.0
        else:
            delta = datum - self._average
            self._average += delta / self._count
            self._m2 += delta * (datum - self._average)

    def remove_datum(self, datum: float) -> None:
        if self._count == 0:
            raise ValueError("Cannot remove datum from an empty running average")
        if self._count == 1:
            self._count = 0
            self._average = math.nan
            self._m2 = 0.0
            return
        old_average = self._average
        self._count -= 1
        self._average = (old_average * (self._count + 1) - datum) / self._count
        self._m2 -= (datum - old_average) * (datum - self._average)
        # rounding
        if self._m2 < 0.0:
            self._m2 = 0.0

    def inverse(self) -> "RunningAverageAndStdDev":
        return InvertedRunningAverageAndStdDev(self)

    def __repr__(self):
        return (
            f"{type(self).__name__}(count={self._count}, "
            f"average={self._average}, stddev={self.stddev})"
        )


class InvertedRunningAverage:
    """
    Read-only view đảo dấu của một RunningAverage.

    Dùng cho lookup theo chiều ngược (B, A) khi storage chỉ lưu (A, B).
    """

    __slots__ = ("_delegate",)

    def __init__(self, delegate: RunningAverage):
        self._delegate = delegate

    @property
    def count(self) -> int:
        return self._delegate.count

    @property
    def average(self) -> float:
        return -self._delegate.average

    def add_datum(self, datum: float) -> None:
        raise UnsupportedOperationError("Inverted running average is read-only")

    def remove_datum(self, datum: float) -> None:
        raise UnsupportedOperationError("Inverted running average is read-only")

    def adjust(self, delta: float) -> None:
        raise UnsupportedOperationError("Inverted running average is read-only")

    def inverse(self) -> RunningAverage:
        return self._delegate

    def __repr__(self):
        return f"Inverted({self._delegate!r})"


class InvertedRunningAverageAndStdDev(InvertedRunningAverage):
    """Như InvertedRunningAverage, stddev giữ nguyên (đảo dấu không đổi độ phân tán)."""

    __slots__ = ()

    @property
    def stddev(self) -> float:
        return self._delegate.stddev
