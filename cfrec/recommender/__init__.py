"""
Core recommender logic package.

Cấu trúc:
- data_model.py: rating store (User, Preference, GenericDataModel)
- similarity.py, distance.py: user / item similarity metrics
- neighborhood.py, cluster_similarity.py: chọn users tương tự
- diff_storage.py, running_average.py: diffs cho slope one
- user_based.py, slope_one.py: recommenders
- top_items.py: Top-K selection + rescorer
- refresh.py, rw_lock.py: refresh protocol và reader/writer lock
"""

from cfrec.recommender.data_model import GenericDataModel, Item, Preference, User
from cfrec.recommender.exceptions import (
    DataAccessError,
    NoSuchItemError,
    NoSuchUserError,
    RecommenderError,
    UnsupportedOperationError,
)
from cfrec.recommender.slope_one import SlopeOneRecommender
from cfrec.recommender.top_items import RecommendedItem, Rescorer
from cfrec.recommender.user_based import GenericUserBasedRecommender

__all__ = [
    "DataAccessError",
    "GenericDataModel",
    "GenericUserBasedRecommender",
    "Item",
    "NoSuchItemError",
    "NoSuchUserError",
    "Preference",
    "RecommendedItem",
    "RecommenderError",
    "Rescorer",
    "SlopeOneRecommender",
    "UnsupportedOperationError",
    "User",
]
