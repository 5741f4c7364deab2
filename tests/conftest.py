"""
Shared fixtures cho recommender tests.
"""

import pytest

from cfrec.recommender.data_model import DataModel, GenericDataModel
from cfrec.recommender.exceptions import DataAccessError


# Ba users, overlap vừa đủ để tính Tanimoto bằng tay:
# J(u1, u2) = 2/3, J(u1, u3) = 1/3
NEIGHBOR_RATINGS = {
    "u1": {1: 5.0, 2: 3.0},
    "u2": {1: 4.0, 2: 2.0, 3: 4.0},
    "u3": {1: 1.0, 3: 2.0},
}

# Diffs: (1,2) mean 5/3 count 3, (1,3) mean 7/3 count 3, (2,3) mean 1 count 2
SLOPE_ONE_RATINGS = {
    "A": {1: 1.0, 2: 2.0, 3: 3.0},
    "B": {1: 2.0, 2: 4.0, 3: 5.0},
    "C": {1: 3.0, 2: 5.0},
    "D": {1: 2.0, 3: 4.0},
}


@pytest.fixture
def neighbor_model():
    return GenericDataModel(NEIGHBOR_RATINGS)


@pytest.fixture
def slope_one_model():
    return GenericDataModel(SLOPE_ONE_RATINGS)


@pytest.fixture
def two_user_model():
    """Factory: data model với hai users rate cùng items 1..n."""
    def build(values1, values2):
        return GenericDataModel({
            1: {item_id: value for item_id, value in enumerate(values1, start=1)},
            2: {item_id: value for item_id, value in enumerate(values2, start=1)},
        })
    return build


class FailingDataModel(DataModel):
    """
    DataModel bọc GenericDataModel; khi failing=True mọi lần đọc raise DataAccessError
    (mô phỏng backing store mất kết nối).
    """

    def __init__(self, ratings):
        self.delegate = GenericDataModel(ratings)
        self.failing = False

    def _target(self):
        if self.failing:
            raise DataAccessError("backing store unavailable")
        return self.delegate

    def get_users(self):
        return self._target().get_users()

    def get_user(self, user_id):
        return self._target().get_user(user_id)

    def get_items(self):
        return self._target().get_items()

    def get_item(self, item_id):
        return self._target().get_item(item_id)

    def get_preferences_for_item(self, item_id):
        return self._target().get_preferences_for_item(item_id)

    def get_num_items(self):
        return self._target().get_num_items()

    def get_num_users(self):
        return self._target().get_num_users()

    def set_preference(self, user_id, item_id, value):
        self._target().set_preference(user_id, item_id, value)

    def remove_preference(self, user_id, item_id):
        self._target().remove_preference(user_id, item_id)

    def refresh(self, already_refreshed=None):
        self._target().refresh(already_refreshed)


@pytest.fixture
def failing_model():
    """Factory: FailingDataModel trên ratings cho trước (mặc định SLOPE_ONE_RATINGS)."""
    def build(ratings=None):
        return FailingDataModel(SLOPE_ONE_RATINGS if ratings is None else ratings)
    return build
