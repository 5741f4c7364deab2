"""
Slope One Recommender
=====================

Estimate preference từ diff trung bình giữa các cặp items (MemoryDiffStorage).

estimate(u, i) = Σ w_j * (r_uj + diff(j -> i)) / Σ w_j trên các item j user đã rate

- weighted: w_j = số users đã co-rate (j, i)
- stddev_weighted: chia thêm cho (1 + stddev) để bớt tin diff dao động mạnh
"""

import logging
import math
import threading
from typing import Hashable, List, Optional

from cfrec.recommender.base import Recommender
from cfrec.recommender.data_model import DataModel, User
from cfrec.recommender.diff_storage import MemoryDiffStorage
from cfrec.recommender.exceptions import NoSuchUserError, UnsupportedOperationError
from cfrec.recommender.refresh import RefreshHelper
from cfrec.recommender.top_items import RecommendedItem, Rescorer, get_top_items

logger = logging.getLogger(__name__)


class SlopeOneRecommender(Recommender):
    """Weighted slope-one recommender trên MemoryDiffStorage."""

    def __init__(
        self,
        data_model: DataModel,
        weighted: bool = True,
        stddev_weighted: bool = False,
        diff_storage: Optional[MemoryDiffStorage] = None
    ):
        """
        Khởi tạo SlopeOneRecommender.

        Args:
            data_model: Rating store
            weighted: Weight diff theo số co-ratings
            stddev_weighted: Weight thêm theo stddev (cần diff storage track stddev)
            diff_storage: Nếu None, tạo MemoryDiffStorage mới

        Raises:
            ValueError: stddev_weighted mà không weighted, hoặc diff storage không track stddev
        """
        super().__init__(data_model)
        if stddev_weighted and not weighted:
            raise ValueError("stddev_weighted requires weighted")
        if diff_storage is None:
            diff_storage = MemoryDiffStorage(data_model, stddev_weighted=stddev_weighted)
        elif stddev_weighted and not diff_storage.stddev_weighted:
            raise ValueError("stddev_weighted requires a diff storage that tracks stddev")

        self.weighted = weighted
        self.stddev_weighted = stddev_weighted
        self.diff_storage = diff_storage
        self._update_lock = threading.RLock()

        self._refresh_helper = RefreshHelper()
        self._refresh_helper.add_dependency(data_model)
        self._refresh_helper.add_dependency(diff_storage)

        logger.info(
            f"SlopeOneRecommender initialized: weighted={weighted}, "
            f"stddev_weighted={stddev_weighted}"
        )

    def recommend(
        self,
        user_id: Hashable,
        how_many: int,
        rescorer: Optional[Rescorer[Hashable]] = None
    ) -> List[RecommendedItem]:
        self.check_recommend_args(user_id, how_many)
        logger.debug(f"Recommending items for user {user_id!r}")

        the_user = self.data_model.get_user(user_id)
        # sorted(): thứ tự candidates ổn định -> kết quả reproducible
        candidates = sorted(self.diff_storage.recommendable_items(user_id))
        logger.debug(f"{len(candidates)} recommendable items for user {user_id!r}")

        top_items = get_top_items(
            how_many,
            candidates,
            rescorer,
            lambda item_id: self._do_estimate_preference(the_user, item_id),
        )
        logger.debug(f"Recommendations for {user_id!r}: {top_items}")
        return top_items

    def estimate_preference(self, user_id: Hashable, item_id: Hashable) -> float:
        the_user = self.data_model.get_user(user_id)
        actual_pref = the_user.get_preference_for(item_id)
        if actual_pref is not None:
            return actual_pref.value
        self.data_model.get_item(item_id)
        return self._do_estimate_preference(the_user, item_id)

    def _do_estimate_preference(self, the_user: User, item_id: Hashable) -> float:
        count = 0.0
        total_preference = 0.0
        prefs = the_user.preferences
        averages = self.diff_storage.get_diffs(item_id, prefs)
        for pref, average in zip(prefs, averages):
            if average is None:
                continue
            average_diff = average.average
            if math.isnan(average_diff):
                continue
            if self.weighted:
                weight = float(average.count)
                if self.stddev_weighted:
                    stddev = average.stddev
                    if not math.isnan(stddev):
                        weight /= 1.0 + stddev
                    # stddev NaN (ít hơn 2 điểm): giữ nguyên weight
                total_preference += weight * (pref.value + average_diff)
                count += weight
            else:
                total_preference += pref.value + average_diff
                count += 1.0
        if count <= 0.0:
            return math.nan
        return total_preference / count

    def set_preference(self, user_id: Hashable, item_id: Hashable, value: float) -> None:
        """
        Ghi rating rồi chỉnh diffs incrementally trên các cặp user đã co-rate.

        Rating mới: thêm data points (add_rating). Rating đã có: dịch datum của user
        (adjust_for_rating_change). Đọc snapshot, ghi và chỉnh diffs chạy dưới một lock.

        Raises:
            UnsupportedOperationError: Nếu diff storage track stddev (data model không bị đổi)
        """
        self._check_incremental_update()
        with self._update_lock:
            try:
                prefs = self.data_model.get_user(user_id).preferences
            except NoSuchUserError:
                prefs = []
            old_pref = next((pref for pref in prefs if pref.item_id == item_id), None)
            other_prefs = [pref for pref in prefs if pref.item_id != item_id]

            super().set_preference(user_id, item_id, value)
            if old_pref is None:
                self.diff_storage.add_rating(item_id, float(value), other_prefs)
            else:
                self.diff_storage.adjust_for_rating_change(
                    item_id, float(value) - old_pref.value, False, other_prefs
                )

    def remove_preference(self, user_id: Hashable, item_id: Hashable) -> None:
        """Xóa rating rồi bỏ đúng các data points của nó khỏi diffs."""
        self._check_incremental_update()
        with self._update_lock:
            prefs = self.data_model.get_user(user_id).preferences
            old_pref = next((pref for pref in prefs if pref.item_id == item_id), None)
            other_prefs = [pref for pref in prefs if pref.item_id != item_id]

            super().remove_preference(user_id, item_id)
            if old_pref is not None:
                self.diff_storage.adjust_for_rating_change(
                    item_id, old_pref.value, True, other_prefs
                )

    def _check_incremental_update(self) -> None:
        if self.diff_storage.stddev_weighted:
            raise UnsupportedOperationError(
                "Incremental updates are not supported when stddev is tracked; refresh instead"
            )

    def refresh(self, already_refreshed=None) -> None:
        # Không rebuild giữa lúc ghi data model và lúc chỉnh diffs
        with self._update_lock:
            self._refresh_helper.refresh(already_refreshed)

    def __repr__(self):
        return (
            f"SlopeOneRecommender[weighted:{self.weighted}, "
            f"stddev_weighted:{self.stddev_weighted}, diff_storage:{self.diff_storage!r}]"
        )
