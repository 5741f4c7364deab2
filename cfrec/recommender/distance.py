"""
Distance Measures
=================

Distance giữa hai sparse vectors dạng {feature_index: value}.

Hiện có TanimotoDistanceMeasure (Jaccard mở rộng cho giá trị thực, có weights).
"""

import math
from typing import Hashable, Mapping, Optional

SparseVector = Mapping[Hashable, float]


class TanimotoDistanceMeasure:
    """
    Tanimoto distance: ((a.a + b.b - a.b) / a.b) - 1.

    0 khi hai vector trùng nhau, > 0 khi càng khác. NaN khi a.b == 0
    (không có feature chung nào khác 0).
    """

    def __init__(self, weights: Optional[SparseVector] = None):
        """
        Args:
            weights: Weight cho từng feature index; feature không có trong weights
                có weight 1.0. None = không weight.
        """
        self.weights = weights

    def _weight(self, index: Hashable) -> float:
        if self.weights is None:
            return 1.0
        return self.weights.get(index, 1.0)

    def distance(self, vector_a: SparseVector, vector_b: SparseVector) -> float:
        """
        Tính Tanimoto distance trên union các features.

        Mỗi feature index chỉ được tính một lần (lần gặp đầu tiên).

        Args:
            vector_a: Vector thứ nhất
            vector_b: Vector thứ hai

        Returns:
            Distance, hoặc NaN nếu dot product bằng 0
        """
        seen = set()
        ab = 0.0
        a2 = 0.0
        b2 = 0.0

        for index, a in vector_a.items():
            if index in seen:
                continue
            seen.add(index)
            b = vector_b.get(index, 0.0)
            weight = self._weight(index)
            ab += a * b * weight
            a2 += a * a * weight
            b2 += b * b * weight

        for index, b in vector_b.items():
            if index in seen:
                continue
            seen.add(index)
            a = vector_a.get(index, 0.0)
            weight = self._weight(index)
            ab += a * b * weight
            a2 += a * a * weight
            b2 += b * b * weight

        if ab == 0.0:
            return math.nan
        return ((a2 + b2 - ab) / ab) - 1.0
