"""
Recommendation Service
======================

Service nối Settings -> DataModel -> Recommender cho API.

Logic:
1. Load ratings CSV (user_id, item_id, rating) bằng pandas -> GenericDataModel
2. build_recommender(): wire similarity / neighborhood / diff storage theo Settings
3. Expose recommend, estimate, similar users, refresh cho routes
"""

import logging
import math
from pathlib import Path
from typing import Hashable, List, Optional

import pandas as pd

from cfrec.config import Settings, settings as default_settings
from cfrec.recommender.base import Recommender
from cfrec.recommender.data_model import DataModel, GenericDataModel
from cfrec.recommender.diff_storage import MemoryDiffStorage
from cfrec.recommender.exceptions import UnsupportedOperationError
from cfrec.recommender.neighborhood import NearestNUserNeighborhood, ThresholdUserNeighborhood
from cfrec.recommender.similarity import (
    EuclideanDistanceSimilarity,
    PearsonCorrelationSimilarity,
    SpearmanCorrelationSimilarity,
    TanimotoCoefficientSimilarity,
    UserSimilarity,
    Weighting,
)
from cfrec.recommender.slope_one import SlopeOneRecommender
from cfrec.recommender.user_based import GenericUserBasedRecommender
from cfrec.web.schemas.recommend import RecommendedItemResponse

logger = logging.getLogger(__name__)


def parse_id(raw: str) -> Hashable:
    """
    ID từ URL path luôn là string; CSV với ID số được pandas đọc thành int.

    Returns:
        int nếu raw là số nguyên, ngược lại giữ nguyên string
    """
    try:
        return int(raw)
    except ValueError:
        return raw


def load_data_model(ratings_path: Path) -> GenericDataModel:
    """
    Load ratings CSV thành GenericDataModel.

    Raises:
        FileNotFoundError: Nếu file không tồn tại
        ValueError: Nếu thiếu cột
    """
    if not ratings_path.exists():
        raise FileNotFoundError(f"Ratings file not found: {ratings_path}")
    logger.info(f"Loading ratings from {ratings_path}")
    df = pd.read_csv(ratings_path)
    return GenericDataModel.from_dataframe(df)


def build_similarity(data_model: DataModel, settings: Settings) -> UserSimilarity:
    weighting = Weighting.WEIGHTED if settings.weighted else Weighting.UNWEIGHTED
    if settings.similarity == "pearson":
        return PearsonCorrelationSimilarity(data_model, weighting)
    if settings.similarity == "euclidean":
        return EuclideanDistanceSimilarity(data_model, weighting)
    if settings.similarity == "spearman":
        return SpearmanCorrelationSimilarity(
            ranking_similarity=PearsonCorrelationSimilarity(data_model, weighting)
        )
    if settings.similarity == "tanimoto":
        return TanimotoCoefficientSimilarity(data_model)
    raise ValueError(f"Unknown similarity: {settings.similarity!r}")


def build_recommender(data_model: DataModel, settings: Settings) -> Recommender:
    """
    Tạo recommender theo Settings.

    Args:
        data_model: Rating store
        settings: Config (đã validate hoặc sẽ được validate ở đây)

    Returns:
        GenericUserBasedRecommender hoặc SlopeOneRecommender
    """
    settings.validate()

    if settings.recommender == "slope_one":
        diff_storage = MemoryDiffStorage(
            data_model,
            stddev_weighted=settings.stddev_weighted,
            max_entries=settings.diff_max_entries
        )
        return SlopeOneRecommender(
            data_model,
            weighted=settings.weighted,
            stddev_weighted=settings.stddev_weighted,
            diff_storage=diff_storage
        )

    similarity = build_similarity(data_model, settings)
    if settings.neighborhood_threshold is not None:
        neighborhood = ThresholdUserNeighborhood(
            settings.neighborhood_threshold, similarity, data_model
        )
    else:
        neighborhood = NearestNUserNeighborhood(
            settings.neighborhood_size, similarity, data_model
        )
    return GenericUserBasedRecommender(data_model, neighborhood, similarity)


class RecommendationService:
    """
    Service để generate recommendations.

    Giữ một Recommender; mọi lỗi của engine được propagate cho routes map sang HTTP.
    """

    def __init__(self, recommender: Recommender, top_n: int = 10):
        """
        Khởi tạo RecommendationService.

        Args:
            recommender: Recommender đã wire xong
            top_n: Số recommendations mặc định
        """
        self.recommender = recommender
        self.top_n = top_n
        logger.info(f"RecommendationService initialized: recommender={recommender!r}, top_n={top_n}")

    @classmethod
    def from_settings(cls, settings: Settings) -> "RecommendationService":
        data_model = load_data_model(settings.ratings_path)
        logger.info(
            f"Loaded {data_model.get_num_users()} users, {data_model.get_num_items()} items"
        )
        return cls(build_recommender(data_model, settings), top_n=settings.top_n)

    def recommend(self, user_id: Hashable, top_n: Optional[int] = None) -> List[RecommendedItemResponse]:
        """
        Recommend items cho user.

        Args:
            user_id: User ID
            top_n: Số items; None -> self.top_n

        Returns:
            List RecommendedItemResponse (rank từ 1)
        """
        how_many = self.top_n if top_n is None else top_n
        items = self.recommender.recommend(user_id, how_many)
        return [
            RecommendedItemResponse(item_id=item.item_id, score=item.value, rank=rank)
            for rank, item in enumerate(items, start=1)
        ]

    def estimate(self, user_id: Hashable, item_id: Hashable) -> Optional[float]:
        """Estimated preference, None nếu không estimate được (NaN)."""
        value = self.recommender.estimate_preference(user_id, item_id)
        return None if math.isnan(value) else value

    def similar_users(self, user_id: Hashable, top_n: Optional[int] = None) -> List[Hashable]:
        """
        Users giống user_id nhất.

        Raises:
            UnsupportedOperationError: Nếu recommender không phải user-based
        """
        if not isinstance(self.recommender, GenericUserBasedRecommender):
            raise UnsupportedOperationError(
                f"{type(self.recommender).__name__} does not support similar users"
            )
        how_many = self.top_n if top_n is None else top_n
        users = self.recommender.most_similar_users(user_id, how_many)
        return [user.user_id for user in users]

    def refresh(self) -> None:
        logger.info("Refreshing recommender")
        self.recommender.refresh()


# Singleton instance
_recommendation_service_instance: Optional[RecommendationService] = None


def get_recommendation_service() -> RecommendationService:
    """
    Get singleton instance của RecommendationService (build từ settings lần đầu).

    Returns:
        RecommendationService instance
    """
    global _recommendation_service_instance

    if _recommendation_service_instance is None:
        _recommendation_service_instance = RecommendationService.from_settings(default_settings)

    return _recommendation_service_instance
