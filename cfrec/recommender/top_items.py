"""
Top-K Selection
===============

Chọn K candidates có score cao nhất.

Logic:
1. Bỏ candidate bị rescorer filter
2. Tính score bằng estimator (estimator có thể raise data-access error -> propagate)
3. Bỏ score không hữu hạn: NaN, ±inf (trước và sau rescore)
4. Giữ một min-heap kích thước tối đa K: O(N log K) thay vì sort toàn bộ
5. Trả về theo score giảm dần; score bằng nhau giữ thứ tự gặp trước
"""

import heapq
import logging
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Generic, Hashable, Iterable, List, Optional, Tuple, TypeVar

from cfrec.recommender.data_model import User

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Rescorer(ABC, Generic[T]):
    """
    Hook của caller để loại hoặc chỉnh score của candidate trước khi rank.

    Ví dụ: bỏ items hết hàng, boost items đang khuyến mãi.
    """

    @abstractmethod
    def is_filtered(self, thing: T) -> bool:
        """True nếu candidate phải bị loại hoàn toàn."""

    @abstractmethod
    def rescore(self, thing: T, original_score: float) -> float:
        """Score mới; trả NaN (hoặc ±inf) để loại candidate."""


@dataclass(frozen=True)
class RecommendedItem:
    """
    Item được recommend.

    Attributes:
        item_id: Item ID
        value: Estimated preference / score
    """
    item_id: Hashable
    value: float


def _select_top(
    how_many: int,
    candidates: Iterable[T],
    rescorer: Optional[Rescorer[T]],
    estimator: Callable[[T], float]
) -> List[Tuple[T, float]]:
    if how_many < 1:
        raise ValueError(f"how_many must be at least 1, got {how_many}")

    # Heap entry: (score, -seq, seq, candidate). Phần tử "tệ nhất" nằm ở đỉnh:
    # score thấp nhất, score bằng nhau thì candidate gặp SAU CÙNG.
    heap: List[Tuple[float, int, int, T]] = []
    considered = 0
    for seq, candidate in enumerate(candidates):
        if rescorer is not None and rescorer.is_filtered(candidate):
            continue
        score = estimator(candidate)
        if not math.isfinite(score):
            continue
        if rescorer is not None:
            score = rescorer.rescore(candidate, score)
            if not math.isfinite(score):
                continue
        considered += 1

        entry = (score, -seq, seq, candidate)
        if len(heap) < how_many:
            heapq.heappush(heap, entry)
        elif score > heap[0][0]:
            heapq.heapreplace(heap, entry)

    ordered = sorted(heap, key=lambda entry: (-entry[0], entry[2]))
    logger.debug(f"Top-K: kept {len(ordered)} of {considered} scored candidates")
    return [(entry[3], entry[0]) for entry in ordered]


def get_top_items(
    how_many: int,
    item_ids: Iterable[Hashable],
    rescorer: Optional[Rescorer[Hashable]],
    estimator: Callable[[Hashable], float]
) -> List[RecommendedItem]:
    """
    Top items theo estimator.

    Args:
        how_many: K
        item_ids: Candidate item IDs
        rescorer: Optional rescorer trên item_id
        estimator: item_id -> score (NaN, ±inf = loại)

    Returns:
        Tối đa how_many RecommendedItem, score giảm dần
    """
    return [
        RecommendedItem(item_id, score)
        for item_id, score in _select_top(how_many, item_ids, rescorer, estimator)
    ]


def get_top_users(
    how_many: int,
    users: Iterable[User],
    rescorer: Optional[Rescorer[User]],
    estimator: Callable[[User], float]
) -> List[User]:
    """
    Top users theo estimator (thường là similarity với một user cho trước).

    Returns:
        Tối đa how_many User, score giảm dần
    """
    return [user for user, _ in _select_top(how_many, users, rescorer, estimator)]
