"""
User-Based Recommender
======================

Recommend dựa trên neighborhood của user.

Logic:
1. Tính neighborhood của user (rỗng -> trả [] ngay)
2. Candidates = items neighbors đã rate, trừ items user đã rate
3. Estimate mỗi candidate: Σ((sim + 1) * rating) / Σ(sim + 1) trên neighbors đã rate item
4. Rank bằng Top-K selector
"""

import logging
import math
from typing import Hashable, List, Optional, Sequence, Tuple

from cfrec.recommender.base import Recommender
from cfrec.recommender.data_model import DataModel, User
from cfrec.recommender.neighborhood import UserNeighborhood
from cfrec.recommender.refresh import RefreshHelper
from cfrec.recommender.similarity import UserSimilarity
from cfrec.recommender.top_items import (
    RecommendedItem,
    Rescorer,
    get_top_items,
    get_top_users,
)

logger = logging.getLogger(__name__)


class GenericUserBasedRecommender(Recommender):
    """Recommender dùng DataModel + UserNeighborhood + UserSimilarity."""

    def __init__(
        self,
        data_model: DataModel,
        neighborhood: UserNeighborhood,
        similarity: UserSimilarity
    ):
        """
        Khởi tạo GenericUserBasedRecommender.

        Args:
            data_model: Rating store
            neighborhood: Neighborhood selector
            similarity: Similarity dùng để weight ratings của neighbors
        """
        super().__init__(data_model)
        if neighborhood is None:
            raise ValueError("neighborhood is None")
        if similarity is None:
            raise ValueError("similarity is None")
        self.neighborhood = neighborhood
        self.similarity = similarity

        self._refresh_helper = RefreshHelper()
        self._refresh_helper.add_dependency(data_model)
        self._refresh_helper.add_dependency(similarity)
        self._refresh_helper.add_dependency(neighborhood)

        logger.info(f"GenericUserBasedRecommender initialized: neighborhood={neighborhood!r}")

    def recommend(
        self,
        user_id: Hashable,
        how_many: int,
        rescorer: Optional[Rescorer[Hashable]] = None
    ) -> List[RecommendedItem]:
        self.check_recommend_args(user_id, how_many)
        logger.debug(f"Recommending items for user {user_id!r}")

        the_user = self.data_model.get_user(user_id)
        the_neighborhood = self.neighborhood.get_user_neighborhood(user_id)
        if not the_neighborhood:
            logger.debug(f"Empty neighborhood for user {user_id!r}, no recommendations")
            return []

        candidates = self._get_all_other_items(the_neighborhood, the_user)
        logger.debug(f"{len(candidates)} candidate items for user {user_id!r}")

        top_items = get_top_items(
            how_many,
            candidates,
            rescorer,
            lambda item_id: self._do_estimate_preference(the_user, the_neighborhood, item_id),
        )
        logger.debug(f"Recommendations for {user_id!r}: {top_items}")
        return top_items

    def estimate_preference(self, user_id: Hashable, item_id: Hashable) -> float:
        the_user = self.data_model.get_user(user_id)
        actual_pref = the_user.get_preference_for(item_id)
        if actual_pref is not None:
            return actual_pref.value
        self.data_model.get_item(item_id)
        the_neighborhood = self.neighborhood.get_user_neighborhood(user_id)
        return self._do_estimate_preference(the_user, the_neighborhood, item_id)

    def most_similar_users(
        self,
        user_id: Hashable,
        how_many: int,
        rescorer: Optional[Rescorer[Tuple[User, User]]] = None
    ) -> List[User]:
        """
        Users giống user_id nhất (không gồm chính user đó).

        Args:
            user_id: User ID
            how_many: Số users tối đa
            rescorer: Optional rescorer trên cặp (user, other_user)

        Returns:
            List User, similarity giảm dần
        """
        self.check_recommend_args(user_id, how_many)
        to_user = self.data_model.get_user(user_id)

        def estimator(user: User) -> float:
            if user == to_user:
                return math.nan
            pair = (to_user, user)
            if rescorer is not None and rescorer.is_filtered(pair):
                return math.nan
            original = self.similarity.user_similarity(to_user, user)
            return original if rescorer is None else rescorer.rescore(pair, original)

        return get_top_users(how_many, self.data_model.get_users(), None, estimator)

    def _do_estimate_preference(
        self,
        the_user: User,
        the_neighborhood: Sequence[User],
        item_id: Hashable
    ) -> float:
        if not the_neighborhood:
            return math.nan
        preference = 0.0
        total_similarity = 0.0
        for user in the_neighborhood:
            if user == the_user:
                continue
            pref = user.get_preference_for(item_id)
            if pref is None:
                continue
            # +1 để weight luôn không âm
            the_similarity = self.similarity.user_similarity(the_user, user) + 1.0
            if not math.isnan(the_similarity):
                preference += the_similarity * pref.value
                total_similarity += the_similarity
        if total_similarity == 0.0:
            return math.nan
        return preference / total_similarity

    @staticmethod
    def _get_all_other_items(the_neighborhood: Sequence[User], the_user: User) -> List[Hashable]:
        # List giữ thứ tự gặp đầu tiên để tie-break ổn định
        seen = set()
        items = []
        for user in the_neighborhood:
            for pref in user.preferences:
                if pref.item_id in seen or the_user.get_preference_for(pref.item_id) is not None:
                    continue
                seen.add(pref.item_id)
                items.append(pref.item_id)
        return items

    def refresh(self, already_refreshed=None) -> None:
        self._refresh_helper.refresh(already_refreshed)

    def __repr__(self):
        return f"GenericUserBasedRecommender[neighborhood:{self.neighborhood!r}]"
