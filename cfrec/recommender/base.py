"""
Recommender Base
================

Interface chung của các recommenders và phần dùng chung (data model, validate args).
"""

import logging
from abc import abstractmethod
from typing import Hashable, List, Optional

from cfrec.recommender.data_model import DataModel
from cfrec.recommender.refresh import Refreshable
from cfrec.recommender.top_items import RecommendedItem, Rescorer

logger = logging.getLogger(__name__)


class Recommender(Refreshable):
    """
    Base class cho recommenders.

    Subclass implement recommend() và estimate_preference().
    """

    def __init__(self, data_model: DataModel):
        if data_model is None:
            raise ValueError("data_model is None")
        self.data_model = data_model

    @abstractmethod
    def recommend(
        self,
        user_id: Hashable,
        how_many: int,
        rescorer: Optional[Rescorer[Hashable]] = None
    ) -> List[RecommendedItem]:
        """
        Recommend items cho user.

        Args:
            user_id: User ID
            how_many: Số items tối đa
            rescorer: Optional rescorer trên item_id

        Returns:
            List RecommendedItem, score giảm dần

        Raises:
            ValueError: user_id None hoặc how_many < 1
            NoSuchUserError: User không tồn tại
        """

    @abstractmethod
    def estimate_preference(self, user_id: Hashable, item_id: Hashable) -> float:
        """
        Returns:
            Estimated preference, NaN nếu không estimate được

        Raises:
            NoSuchUserError: User không tồn tại
            NoSuchItemError: Item không tồn tại
        """

    def set_preference(self, user_id: Hashable, item_id: Hashable, value: float) -> None:
        """Ghi rating vào data model."""
        self.data_model.set_preference(user_id, item_id, value)

    def remove_preference(self, user_id: Hashable, item_id: Hashable) -> None:
        """Xóa rating khỏi data model."""
        self.data_model.remove_preference(user_id, item_id)

    @staticmethod
    def check_recommend_args(user_id: Hashable, how_many: int) -> None:
        if user_id is None:
            raise ValueError("user_id is None")
        if how_many < 1:
            raise ValueError(f"how_many must be at least 1, got {how_many}")
