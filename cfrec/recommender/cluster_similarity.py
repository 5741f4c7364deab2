"""
Cluster Similarity
==================

Similarity giữa hai cụm users, dựa trên một UserSimilarity.

NearestNeighborClusterSimilarity: hai cụm gần nhau khi CÓ MỘT cặp thành viên
giống nhau nhiều. Có thể sample một phần users để nhanh hơn (kém chính xác hơn).
"""

import logging
import math
from abc import abstractmethod
from typing import Optional, Sequence

import numpy as np

from cfrec.recommender.data_model import User
from cfrec.recommender.refresh import RefreshHelper, Refreshable
from cfrec.recommender.similarity import UserSimilarity

logger = logging.getLogger(__name__)


class ClusterSimilarity(Refreshable):
    """Interface: similarity giữa hai collections of users."""

    @abstractmethod
    def get_similarity(self, cluster1: Sequence[User], cluster2: Sequence[User]) -> float:
        """
        Returns:
            Similarity, NaN nếu một trong hai cụm rỗng
        """


class NearestNeighborClusterSimilarity(ClusterSimilarity):
    """Similarity của cụm = similarity LỚN NHẤT giữa hai thành viên bất kỳ."""

    def __init__(
        self,
        similarity: UserSimilarity,
        sampling_rate: float = 1.0,
        random_seed: Optional[int] = None
    ):
        """
        Khởi tạo NearestNeighborClusterSimilarity.

        Args:
            similarity: UserSimilarity giữa hai users
            sampling_rate: Tỉ lệ users của cluster1 được xét, trong (0, 1]
            random_seed: Seed cho sampling (reproducible)
        """
        if similarity is None:
            raise ValueError("similarity is None")
        if sampling_rate is None or math.isnan(sampling_rate) or not 0.0 < sampling_rate <= 1.0:
            raise ValueError(f"sampling_rate is invalid: {sampling_rate}")
        self.similarity = similarity
        self.sampling_rate = sampling_rate
        self._rng = np.random.default_rng(random_seed)
        self._refresh_helper = RefreshHelper()
        self._refresh_helper.add_dependency(similarity)

    def get_similarity(self, cluster1: Sequence[User], cluster2: Sequence[User]) -> float:
        if not cluster1 or not cluster2:
            return math.nan

        greatest = -math.inf
        for user1 in cluster1:
            if self.sampling_rate >= 1.0 or self._rng.random() < self.sampling_rate:
                for user2 in cluster2:
                    similarity = self.similarity.user_similarity(user1, user2)
                    if similarity > greatest:
                        greatest = similarity

        # Sample không trúng ai: ít nhất so sánh hai thành viên đầu tiên
        if greatest == -math.inf:
            logger.debug("Sampling skipped every user; comparing first members")
            return self.similarity.user_similarity(cluster1[0], cluster2[0])
        return greatest

    def refresh(self, already_refreshed=None) -> None:
        self._refresh_helper.refresh(already_refreshed)

    def __repr__(self):
        return f"NearestNeighborClusterSimilarity[similarity:{self.similarity!r}]"
