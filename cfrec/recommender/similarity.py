"""
Similarity Metrics
==================

Các thuật toán similarity có thể thay thế cho nhau, inject vào neighborhood /
recommender lúc khởi tạo.

- PearsonCorrelationSimilarity: covariance / variance trên items chung
- EuclideanDistanceSimilarity: 1 / (1 + distance) trên items chung
- SpearmanCorrelationSimilarity: Pearson trên rank thay vì giá trị
- TanimotoCoefficientSimilarity: overlap của tập items (bỏ qua giá trị)

NaN = similarity không xác định (ít overlap, variance bằng 0, ...).
Caller phải LOẠI candidate đó, không được coi là 0.
"""

import logging
import math
from abc import ABC, abstractmethod
from enum import Enum
from typing import Hashable, List, Mapping, Optional

import numpy as np

from cfrec.recommender.data_model import DataModel, Preference, User
from cfrec.recommender.distance import TanimotoDistanceMeasure
from cfrec.recommender.refresh import RefreshHelper, Refreshable

logger = logging.getLogger(__name__)


class Weighting(Enum):
    """Có kéo similarity về phía ±1 theo số items chung hay không."""
    WEIGHTED = "weighted"
    UNWEIGHTED = "unweighted"


class UserSimilarity(Refreshable, ABC):
    """Similarity giữa hai users."""

    @abstractmethod
    def user_similarity(self, user1: User, user2: User) -> float:
        """
        Returns:
            Similarity (thường trong [-1, 1]), NaN nếu không xác định
        """


class ItemSimilarity(Refreshable, ABC):
    """Similarity giữa hai items, dựa trên ratings users đã cho."""

    @abstractmethod
    def item_similarity(self, item_id1: Hashable, item_id2: Hashable) -> float:
        """
        Returns:
            Similarity (thường trong [-1, 1]), NaN nếu không xác định
        """


class AbstractSimilarity(UserSimilarity, ItemSimilarity):
    """
    Base cho các similarity dựa trên các tổng (sum) trên ratings chung.

    Subclass chỉ cần implement compute_result().
    """

    def __init__(
        self,
        data_model: DataModel,
        weighting: Weighting = Weighting.UNWEIGHTED,
        center_data: bool = True
    ):
        """
        Args:
            data_model: Rating store
            weighting: WEIGHTED để tăng độ tin cậy khi nhiều items chung
            center_data: Trừ mean trước khi tính ΣXY, ΣX², ΣY²
        """
        if data_model is None:
            raise ValueError("data_model is None")
        self.data_model = data_model
        self.weighted = weighting == Weighting.WEIGHTED
        self.center_data = center_data

        self._cached_num_items = 0
        self._cached_num_users = 0
        self._refresh_helper = RefreshHelper(self._cache_counts)
        self._refresh_helper.add_dependency(data_model)
        self._cache_counts()

    def _cache_counts(self) -> None:
        self._cached_num_items = self.data_model.get_num_items()
        self._cached_num_users = self.data_model.get_num_users()

    @abstractmethod
    def compute_result(
        self,
        n: int,
        sum_xy: float,
        sum_x2: float,
        sum_y2: float,
        sum_xy_diff2: float
    ) -> float:
        """
        Tính similarity từ các tổng.

        Args:
            n: Số data points chung
            sum_xy: ΣXY (centered nếu center_data)
            sum_x2: ΣX² (centered nếu center_data)
            sum_y2: ΣY² (centered nếu center_data)
            sum_xy_diff2: Σ(X-Y)² trên giá trị gốc
        """

    def user_similarity(self, user1: User, user2: User) -> float:
        if user1 is None or user2 is None:
            raise ValueError("user1 or user2 is None")
        xs: List[float] = []
        ys: List[float] = []
        for pref in user1.preferences:
            other = user2.get_preference_for(pref.item_id)
            if other is not None:
                xs.append(pref.value)
                ys.append(other.value)
        return self._similarity(xs, ys, self._cached_num_items)

    def item_similarity(self, item_id1: Hashable, item_id2: Hashable) -> float:
        if item_id1 is None or item_id2 is None:
            raise ValueError("item_id1 or item_id2 is None")
        prefs2 = {
            pref.user_id: pref.value
            for pref in self.data_model.get_preferences_for_item(item_id2)
        }
        xs: List[float] = []
        ys: List[float] = []
        for pref in self.data_model.get_preferences_for_item(item_id1):
            if pref.user_id in prefs2:
                xs.append(pref.value)
                ys.append(prefs2[pref.user_id])
        return self._similarity(xs, ys, self._cached_num_users)

    def _similarity(self, xs: List[float], ys: List[float], num: int) -> float:
        n = len(xs)
        if n == 0:
            return math.nan

        x = np.asarray(xs, dtype=float)
        y = np.asarray(ys, dtype=float)
        diff = x - y
        sum_xy_diff2 = float(np.dot(diff, diff))

        if self.center_data:
            x = x - x.mean()
            y = y - y.mean()
        sum_xy = float(np.dot(x, y))
        sum_x2 = float(np.dot(x, x))
        sum_y2 = float(np.dot(y, y))

        result = self.compute_result(n, sum_xy, sum_x2, sum_y2, sum_xy_diff2)
        if math.isnan(result):
            return result
        return self.normalize_weight_result(result, n, num)

    def normalize_weight_result(self, result: float, count: int, num: int) -> float:
        """
        Weighted: kéo result về phía ±1 khi count (số điểm chung) gần num.

        Luôn clamp về [-1, 1] để bỏ sai số làm tròn.
        """
        if self.weighted:
            scale_factor = 1.0 - count / (num + 1)
            if result < 0.0:
                result = -1.0 + scale_factor * (1.0 + result)
            else:
                result = 1.0 - scale_factor * (1.0 - result)
        return min(1.0, max(-1.0, result))

    def refresh(self, already_refreshed=None) -> None:
        self._refresh_helper.refresh(already_refreshed)

    def __repr__(self):
        return f"{type(self).__name__}[data_model:{self.data_model!r}, weighted:{self.weighted}]"


class PearsonCorrelationSimilarity(AbstractSimilarity):
    """Pearson correlation: ΣXY / sqrt(ΣX² · ΣY²) trên dữ liệu đã center."""

    def __init__(self, data_model: DataModel, weighting: Weighting = Weighting.UNWEIGHTED):
        super().__init__(data_model, weighting, center_data=True)

    def compute_result(self, n, sum_xy, sum_x2, sum_y2, sum_xy_diff2) -> float:
        denominator = math.sqrt(sum_x2) * math.sqrt(sum_y2)
        if denominator == 0.0:
            # Một bên rate tất cả items như nhau: không nói được gì
            return math.nan
        return sum_xy / denominator


class EuclideanDistanceSimilarity(AbstractSimilarity):
    """
    Similarity dựa trên Euclidean distance trên items chung: 1 / (1 + distance).

    distance = sqrt(Σ(X-Y)² / (sqrt(ΣX²) + sqrt(ΣY²))) / n, với ΣX², ΣY² đã center.
    Kết quả trong (0, 1]; NaN khi cả hai bên đều không có variance.
    """

    def __init__(self, data_model: DataModel, weighting: Weighting = Weighting.UNWEIGHTED):
        super().__init__(data_model, weighting, center_data=True)

    def compute_result(self, n, sum_xy, sum_x2, sum_y2, sum_xy_diff2) -> float:
        denominator = math.sqrt(sum_x2) + math.sqrt(sum_y2)
        if denominator == 0.0:
            return math.nan
        radicand = sum_xy_diff2 / denominator
        if not radicand >= 0.0:
            return math.nan
        distance = math.sqrt(radicand) / n
        if not math.isfinite(distance):
            return math.nan
        return 1.0 / (1.0 + distance)


class SpearmanCorrelationSimilarity(UserSimilarity):
    """
    Như Pearson nhưng so sánh THỨ HẠNG của ratings.

    Mỗi user được thay bằng một User mới có value = rank (1 = item ít thích nhất),
    rồi delegate cho ranking similarity (mặc định Pearson).
    """

    def __init__(
        self,
        data_model: Optional[DataModel] = None,
        ranking_similarity: Optional[UserSimilarity] = None
    ):
        """
        Args:
            data_model: Dùng để tạo Pearson mặc định nếu không có ranking_similarity
            ranking_similarity: Similarity áp dụng trên ranked users
        """
        if ranking_similarity is None:
            if data_model is None:
                raise ValueError("data_model and ranking_similarity are both None")
            ranking_similarity = PearsonCorrelationSimilarity(data_model)
        self.ranking_similarity = ranking_similarity
        self._refresh_helper = RefreshHelper()
        self._refresh_helper.add_dependency(ranking_similarity)

    def user_similarity(self, user1: User, user2: User) -> float:
        if user1 is None or user2 is None:
            raise ValueError("user1 or user2 is None")
        return self.ranking_similarity.user_similarity(rank_user(user1), rank_user(user2))

    def refresh(self, already_refreshed=None) -> None:
        self._refresh_helper.refresh(already_refreshed)

    def __repr__(self):
        return f"SpearmanCorrelationSimilarity[ranking_similarity:{self.ranking_similarity!r}]"


def rank_user(user: User) -> User:
    """
    Snapshot mới của user với value thay bằng rank.

    Sort ổn định theo value; preferences đã theo thứ tự item_id nên tie giữ
    thứ tự item_id. Rank bắt đầu từ 1.
    """
    by_value = sorted(user.preferences, key=lambda pref: pref.value)
    ranked = tuple(
        Preference(user.user_id, pref.item_id, float(rank))
        for rank, pref in enumerate(by_value, start=1)
    )
    return User(user.user_id, ranked)


class TanimotoCoefficientSimilarity(UserSimilarity, ItemSimilarity):
    """
    Tanimoto / Jaccard trên TẬP items (user similarity) hoặc tập users (item similarity).

    similarity = 1 / (1 + tanimoto_distance); với weight 1 chính là |A ∩ B| / |A ∪ B|.
    NaN khi hai tập không giao nhau.
    """

    def __init__(
        self,
        data_model: DataModel,
        feature_weights: Optional[Mapping[Hashable, float]] = None
    ):
        """
        Args:
            data_model: Rating store
            feature_weights: Weight theo item_id, chỉ dùng cho user_similarity
        """
        if data_model is None:
            raise ValueError("data_model is None")
        self.data_model = data_model
        self._user_measure = TanimotoDistanceMeasure(feature_weights)
        self._item_measure = TanimotoDistanceMeasure()
        self._refresh_helper = RefreshHelper()
        self._refresh_helper.add_dependency(data_model)

    @staticmethod
    def _to_similarity(distance: float) -> float:
        if math.isnan(distance):
            return math.nan
        return 1.0 / (1.0 + distance)

    def user_similarity(self, user1: User, user2: User) -> float:
        if user1 is None or user2 is None:
            raise ValueError("user1 or user2 is None")
        vector1 = {item_id: 1.0 for item_id in user1.item_ids()}
        vector2 = {item_id: 1.0 for item_id in user2.item_ids()}
        return self._to_similarity(self._user_measure.distance(vector1, vector2))

    def item_similarity(self, item_id1: Hashable, item_id2: Hashable) -> float:
        if item_id1 is None or item_id2 is None:
            raise ValueError("item_id1 or item_id2 is None")
        vector1 = {pref.user_id: 1.0 for pref in self.data_model.get_preferences_for_item(item_id1)}
        vector2 = {pref.user_id: 1.0 for pref in self.data_model.get_preferences_for_item(item_id2)}
        return self._to_similarity(self._item_measure.distance(vector1, vector2))

    def refresh(self, already_refreshed=None) -> None:
        self._refresh_helper.refresh(already_refreshed)

    def __repr__(self):
        return f"TanimotoCoefficientSimilarity[data_model:{self.data_model!r}]"
