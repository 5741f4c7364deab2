"""
Diff Storage
============

Lưu, cho mỗi cặp item được cùng một user rate, RunningAverage của hiệu rating
(rating_later - rating_earlier). Dùng bởi SlopeOneRecommender.

Logic rebuild:
1. Scan tất cả users; với mỗi cặp (i < j) trong rating list đã sort theo item,
   add (value_j - value_i) vào entry (item_i, item_j)
2. Entry mới chỉ được tạo khi chưa vượt max_entries
3. Prune entries có count <= 1 (một co-rating duy nhất thì không đáng tin)
4. Tính lại recommendable item set

Known limitation: khi chạm max_entries, storage giữ các cặp được phát hiện TRƯỚC
(phụ thuộc thứ tự duyệt users), không phải các cặp mạnh nhất.
"""

import logging
from typing import Dict, Hashable, List, Optional, Sequence, Set, Tuple

from cfrec.recommender.data_model import DataModel, Preference
from cfrec.recommender.exceptions import UnsupportedOperationError
from cfrec.recommender.refresh import RefreshHelper, Refreshable
from cfrec.recommender.running_average import RunningAverage, RunningAverageAndStdDev
from cfrec.recommender.rw_lock import ReadWriteLock

logger = logging.getLogger(__name__)

# Mặc định đủ lớn cho dataset vừa; dataset lớn nên set nhỏ hơn để giới hạn memory
DEFAULT_MAX_ENTRIES = 10_000_000


class MemoryDiffStorage(Refreshable):
    """
    Diff storage in-memory, bảo vệ bởi một ReadWriteLock.

    - Reader (get_diffs, recommendable_items, num_entries): read lock
    - rebuild(): write lock, thay toàn bộ table một lần
    - adjust_for_rating_change(), add_rating(): read lock (chỉ sửa statistic tại chỗ, không đổi key set)
    """

    def __init__(
        self,
        data_model: DataModel,
        stddev_weighted: bool = False,
        max_entries: int = DEFAULT_MAX_ENTRIES
    ):
        """
        Khởi tạo MemoryDiffStorage và build diffs ngay.

        Args:
            data_model: Rating store
            stddev_weighted: Nếu True, track cả stddev (RunningAverageAndStdDev);
                khi đó adjust_for_rating_change bị cấm
            max_entries: Số cặp item tối đa được track
        """
        if data_model is None:
            raise ValueError("data_model is None")
        if max_entries <= 0:
            raise ValueError(f"max_entries must be positive, got {max_entries}")

        self.data_model = data_model
        self.stddev_weighted = stddev_weighted
        self.max_entries = max_entries

        # averageDiffs[item_a][item_b] = RunningAverage của (rating_b - rating_a)
        self._average_diffs: Dict[Hashable, Dict[Hashable, RunningAverage]] = {}
        self._average_item_pref: Dict[Hashable, RunningAverage] = {}
        self._recommendable_item_ids: Set[Hashable] = set()
        self._lock = ReadWriteLock()

        self._refresh_helper = RefreshHelper(self.rebuild)
        self._refresh_helper.add_dependency(data_model)

        logger.info(
            f"MemoryDiffStorage initialized: stddev_weighted={stddev_weighted}, "
            f"max_entries={max_entries}"
        )
        self.rebuild()

    def _build_running_average(self) -> RunningAverage:
        return RunningAverageAndStdDev() if self.stddev_weighted else RunningAverage()

    def _get_diff_unlocked(self, item_a: Hashable, item_b: Hashable) -> Optional[RunningAverage]:
        level2 = self._average_diffs.get(item_a)
        if level2 is not None:
            average = level2.get(item_b)
            if average is not None:
                return average
        level2 = self._average_diffs.get(item_b)
        if level2 is not None:
            average = level2.get(item_a)
            if average is not None:
                return average.inverse()
        return None

    def get_diff(self, item_a: Hashable, item_b: Hashable) -> Optional[RunningAverage]:
        """
        Diff trung bình (rating_b - rating_a).

        Args:
            item_a: Item thứ nhất
            item_b: Item thứ hai

        Returns:
            RunningAverage, inverted view nếu chỉ lưu chiều ngược,
            None nếu cặp chưa từng được co-rate (hoặc đã bị prune / drop)
        """
        with self._lock.read_locked():
            return self._get_diff_unlocked(item_a, item_b)

    def get_diffs(
        self,
        item_id: Hashable,
        prefs: Sequence[Preference]
    ) -> List[Optional[RunningAverage]]:
        """
        Batch get_diff: với mỗi pref, diff (item_id - pref.item_id). Một read lock cho cả batch.

        Args:
            item_id: Item cần estimate
            prefs: Ratings của user

        Returns:
            List cùng độ dài với prefs
        """
        with self._lock.read_locked():
            return [self._get_diff_unlocked(pref.item_id, item_id) for pref in prefs]

    def get_average_item_pref(self, item_id: Hashable) -> Optional[RunningAverage]:
        """RunningAverage của mọi rating cho item (không phải pairwise)."""
        with self._lock.read_locked():
            return self._average_item_pref.get(item_id)

    def _check_incremental_update(self) -> None:
        if self.stddev_weighted:
            raise UnsupportedOperationError(
                "Incremental updates are not supported when stddev is tracked; rebuild instead"
            )

    def _find_pair(
        self,
        item_id: Hashable,
        other_item_id: Hashable
    ) -> Tuple[Optional[RunningAverage], bool]:
        # (entry, True nếu item_id là phần tử SAU của cặp đã lưu)
        level2 = self._average_diffs.get(other_item_id)
        if level2 is not None and item_id in level2:
            return level2[item_id], True
        level2 = self._average_diffs.get(item_id)
        if level2 is not None and other_item_id in level2:
            return level2[other_item_id], False
        return None, False

    def adjust_for_rating_change(
        self,
        item_id: Hashable,
        delta: float,
        is_removal: bool,
        other_prefs: Optional[Sequence[Preference]] = None
    ) -> None:
        """
        Sửa diffs tại chỗ khi một rating ĐÃ CÓ của item đổi giá trị hoặc bị xóa, không rebuild.

        Chỉ các cặp user đó đã co-rate (item_id, pref.item_id) bị động tới; key set không đổi.
        - Đổi giá trị: datum của user dịch delta -> mean dịch ±delta / count (adjust)
        - Xóa: bỏ đúng datum (rating_later - rating_earlier) của user (remove_datum)
        Entry đã về count 0 được bỏ qua.

        Args:
            item_id: Item có rating thay đổi
            delta: new_value - old_value, hoặc giá trị rating bị xóa nếu is_removal
            is_removal: True nếu rating bị xóa
            other_prefs: Các rating KHÁC của user (trước thay đổi). None: chỉ sửa
                average của item, diffs giữ nguyên tới lần refresh() sau

        Raises:
            UnsupportedOperationError: Nếu storage track stddev
        """
        self._check_incremental_update()

        with self._lock.read_locked():
            for pref in other_prefs or ():
                if pref.item_id == item_id:
                    continue
                average, item_is_later = self._find_pair(item_id, pref.item_id)
                if average is None or average.count == 0:
                    continue
                if is_removal:
                    datum = delta - pref.value if item_is_later else pref.value - delta
                    average.remove_datum(datum)
                else:
                    shift = delta / average.count
                    average.adjust(shift if item_is_later else -shift)

            item_average = self._average_item_pref.get(item_id)
            if item_average is not None and item_average.count > 0:
                if is_removal:
                    item_average.remove_datum(delta)
                else:
                    item_average.adjust(delta / item_average.count)

        logger.debug(
            f"Adjusted diffs for item {item_id!r}: delta={delta}, is_removal={is_removal}"
        )

    def add_rating(
        self,
        item_id: Hashable,
        value: float,
        other_prefs: Sequence[Preference]
    ) -> None:
        """
        Thêm data points cho một rating MỚI của item, không rebuild.

        Chỉ cập nhật các entry đã có; cặp chưa được track chờ tới lần refresh() sau
        (key set không đổi dưới read lock).

        Args:
            item_id: Item vừa được rate
            value: Giá trị rating
            other_prefs: Các rating khác của user

        Raises:
            UnsupportedOperationError: Nếu storage track stddev
        """
        self._check_incremental_update()

        with self._lock.read_locked():
            for pref in other_prefs:
                if pref.item_id == item_id:
                    continue
                average, item_is_later = self._find_pair(item_id, pref.item_id)
                if average is None:
                    continue
                average.add_datum(value - pref.value if item_is_later else pref.value - value)

            item_average = self._average_item_pref.get(item_id)
            if item_average is not None:
                item_average.add_datum(value)

        logger.debug(f"Added rating for item {item_id!r}: value={value}")

    def recommendable_items(self, user_id: Hashable) -> Set[Hashable]:
        """
        Items có ít nhất một diff entry, trừ các item user đã rate.

        Raises:
            NoSuchUserError: Nếu user không tồn tại
        """
        user = self.data_model.get_user(user_id)
        with self._lock.read_locked():
            result = set(self._recommendable_item_ids)
        return {item_id for item_id in result if user.get_preference_for(item_id) is None}

    @property
    def num_entries(self) -> int:
        """Số cặp item đang được track."""
        with self._lock.read_locked():
            return sum(len(level2) for level2 in self._average_diffs.values())

    def rebuild(self) -> None:
        """Full rebuild từ data model (write lock)."""
        logger.info("Building average diffs...")
        users = self.data_model.get_users()

        with self._lock.write_locked():
            self._average_diffs = {}
            self._average_item_pref = {}
            entry_count = 0
            for user in users:
                entry_count = self._process_one_user(entry_count, user.preferences)

            if entry_count >= self.max_entries:
                logger.info(
                    f"Reached max_entries={self.max_entries}; "
                    f"later item pairs were not tracked"
                )

            pruned = self._prune_inconsequential_diffs()
            self._update_all_recommendable_items()

            logger.info(
                f"Built average diffs: {entry_count - pruned} entries kept, "
                f"{pruned} pruned, {len(self._recommendable_item_ids)} recommendable items"
            )

    def _process_one_user(self, entry_count: int, prefs: Sequence[Preference]) -> int:
        length = len(prefs)
        for i in range(length):
            pref_a = prefs[i]
            item_a = pref_a.item_id
            value_a = pref_a.value
            a_map = self._average_diffs.get(item_a)
            if a_map is None:
                a_map = {}
                self._average_diffs[item_a] = a_map
            for j in range(i + 1, length):
                pref_b = prefs[j]
                average = a_map.get(pref_b.item_id)
                if average is None and entry_count < self.max_entries:
                    average = self._build_running_average()
                    a_map[pref_b.item_id] = average
                    entry_count += 1
                if average is not None:
                    average.add_datum(pref_b.value - value_a)

            item_average = self._average_item_pref.get(item_a)
            if item_average is None:
                item_average = self._build_running_average()
                self._average_item_pref[item_a] = item_average
            item_average.add_datum(value_a)
        return entry_count

    def _prune_inconsequential_diffs(self) -> int:
        # "Inconsequential": chỉ có một data point, không đáng tin
        pruned = 0
        for item_a in list(self._average_diffs):
            level2 = self._average_diffs[item_a]
            for item_b in [key for key, average in level2.items() if average.count <= 1]:
                del level2[item_b]
                pruned += 1
            if not level2:
                del self._average_diffs[item_a]
        return pruned

    def _update_all_recommendable_items(self) -> None:
        item_ids: Set[Hashable] = set()
        for item_a, level2 in self._average_diffs.items():
            item_ids.add(item_a)
            item_ids.update(level2.keys())
        self._recommendable_item_ids = item_ids

    def refresh(self, already_refreshed=None) -> None:
        self._refresh_helper.refresh(already_refreshed)

    def __repr__(self):
        return "MemoryDiffStorage"
