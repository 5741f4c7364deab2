"""
User Neighborhood
=================

Tập users "đủ giống" user mục tiêu, dùng để sinh recommendations.

- NearestNUserNeighborhood: N users có similarity cao nhất
- ThresholdUserNeighborhood: mọi user có similarity >= threshold
"""

import logging
import math
from abc import abstractmethod
from typing import Hashable, List

from cfrec.recommender.data_model import DataModel, User
from cfrec.recommender.refresh import RefreshHelper, Refreshable
from cfrec.recommender.similarity import UserSimilarity
from cfrec.recommender.top_items import get_top_users

logger = logging.getLogger(__name__)


class UserNeighborhood(Refreshable):
    """Interface: user_id -> neighborhood."""

    @abstractmethod
    def get_user_neighborhood(self, user_id: Hashable) -> List[User]:
        """
        Args:
            user_id: User mục tiêu

        Returns:
            Users trong neighborhood (không gồm chính user đó)

        Raises:
            NoSuchUserError: Nếu user không tồn tại
        """


class AbstractUserNeighborhood(UserNeighborhood):
    """Giữ similarity + data model và refresh chúng."""

    def __init__(self, user_similarity: UserSimilarity, data_model: DataModel):
        if user_similarity is None or data_model is None:
            raise ValueError("user_similarity or data_model is None")
        self.user_similarity = user_similarity
        self.data_model = data_model
        self._refresh_helper = RefreshHelper()
        self._refresh_helper.add_dependency(data_model)
        self._refresh_helper.add_dependency(user_similarity)

    def refresh(self, already_refreshed=None) -> None:
        self._refresh_helper.refresh(already_refreshed)


class NearestNUserNeighborhood(AbstractUserNeighborhood):
    """N users gần nhất theo similarity (bỏ similarity NaN và dưới min_similarity)."""

    def __init__(
        self,
        n: int,
        user_similarity: UserSimilarity,
        data_model: DataModel,
        min_similarity: float = -math.inf
    ):
        """
        Args:
            n: Kích thước neighborhood tối đa
            user_similarity: Similarity dùng để xếp hạng
            data_model: Rating store
            min_similarity: Ngưỡng dưới (mặc định không giới hạn)
        """
        super().__init__(user_similarity, data_model)
        if n < 1:
            raise ValueError(f"n must be at least 1, got {n}")
        self.n = n
        self.min_similarity = min_similarity

    def get_user_neighborhood(self, user_id: Hashable) -> List[User]:
        the_user = self.data_model.get_user(user_id)

        def estimator(user: User) -> float:
            if user == the_user:
                return math.nan
            similarity = self.user_similarity.user_similarity(the_user, user)
            return similarity if similarity >= self.min_similarity else math.nan

        neighborhood = get_top_users(self.n, self.data_model.get_users(), None, estimator)
        logger.debug(f"Nearest-{self.n} neighborhood of {user_id!r}: {len(neighborhood)} users")
        return neighborhood

    def __repr__(self):
        return f"NearestNUserNeighborhood[n:{self.n}]"


class ThresholdUserNeighborhood(AbstractUserNeighborhood):
    """Mọi user có similarity >= threshold."""

    def __init__(self, threshold: float, user_similarity: UserSimilarity, data_model: DataModel):
        super().__init__(user_similarity, data_model)
        if threshold is None or math.isnan(threshold):
            raise ValueError(f"threshold must be a number, got {threshold}")
        self.threshold = threshold

    def get_user_neighborhood(self, user_id: Hashable) -> List[User]:
        the_user = self.data_model.get_user(user_id)
        neighborhood = []
        for user in self.data_model.get_users():
            if user == the_user:
                continue
            similarity = self.user_similarity.user_similarity(the_user, user)
            # NaN >= threshold luôn False
            if similarity >= self.threshold:
                neighborhood.append(user)
        logger.debug(
            f"Threshold({self.threshold}) neighborhood of {user_id!r}: {len(neighborhood)} users"
        )
        return neighborhood

    def __repr__(self):
        return f"ThresholdUserNeighborhood[threshold:{self.threshold}]"
