"""
Tests cho GenericUserBasedRecommender và SlopeOneRecommender.
"""

import math
import threading

import pytest

from cfrec.recommender.data_model import GenericDataModel
from cfrec.recommender.diff_storage import MemoryDiffStorage
from cfrec.recommender.exceptions import (
    DataAccessError,
    NoSuchItemError,
    NoSuchUserError,
    UnsupportedOperationError,
)
from cfrec.recommender.neighborhood import NearestNUserNeighborhood, ThresholdUserNeighborhood
from cfrec.recommender.similarity import TanimotoCoefficientSimilarity
from cfrec.recommender.slope_one import SlopeOneRecommender
from cfrec.recommender.top_items import RecommendedItem, Rescorer
from cfrec.recommender.user_based import GenericUserBasedRecommender


@pytest.fixture
def user_based(neighbor_model):
    similarity = TanimotoCoefficientSimilarity(neighbor_model)
    neighborhood = NearestNUserNeighborhood(2, similarity, neighbor_model)
    return GenericUserBasedRecommender(neighbor_model, neighborhood, similarity)


def assert_matches_refreshed(recommender, data_model, pairs=((1, 2), (1, 3), (2, 3))):
    """Diffs sau incremental updates phải khớp một storage build lại từ đầu."""
    rebuilt = MemoryDiffStorage(data_model)
    for item_a, item_b in pairs:
        incremental = recommender.diff_storage.get_diff(item_a, item_b)
        expected = rebuilt.get_diff(item_a, item_b)
        assert incremental.count == expected.count
        assert incremental.average == pytest.approx(expected.average)


class ExcludeUserRescorer(Rescorer):
    """Rescorer trên cặp (user, other_user): bỏ một user."""

    def __init__(self, excluded):
        self.excluded = excluded

    def is_filtered(self, thing):
        return thing[1].user_id == self.excluded

    def rescore(self, thing, original_score):
        return original_score


class TestGenericUserBasedRecommender:
    """Recommend từ neighborhood."""

    def test_recommend(self, user_based):
        # ((2/3 + 1) * 4 + (1/3 + 1) * 2) / ((2/3 + 1) + (1/3 + 1)) = 28/9
        recommendations = user_based.recommend("u1", 5)
        assert len(recommendations) == 1
        assert recommendations[0].item_id == 3
        assert recommendations[0].value == pytest.approx(28.0 / 9.0)

    def test_recommend_excludes_own_items(self, user_based):
        for user_id in ("u1", "u2", "u3"):
            own = set(user_based.data_model.get_user(user_id).item_ids())
            recommended = {item.item_id for item in user_based.recommend(user_id, 10)}
            assert not own & recommended

    def test_estimate_preference(self, user_based):
        # Neighbors của u3 rate item 2: u1 (3.0, sim 1/3), u2 (2.0, sim 2/3)
        assert user_based.estimate_preference("u3", 2) == pytest.approx(22.0 / 9.0)

    def test_estimate_returns_own_rating(self, user_based):
        assert user_based.estimate_preference("u1", 1) == 5.0

    def test_estimate_unknown_item_raises(self, user_based):
        with pytest.raises(NoSuchItemError):
            user_based.estimate_preference("u1", 99)
        with pytest.raises(NoSuchUserError):
            user_based.estimate_preference("nobody", 1)

    def test_empty_neighborhood(self, neighbor_model):
        similarity = TanimotoCoefficientSimilarity(neighbor_model)
        neighborhood = ThresholdUserNeighborhood(1.1, similarity, neighbor_model)
        recommender = GenericUserBasedRecommender(neighbor_model, neighborhood, similarity)
        assert recommender.recommend("u1", 5) == []
        assert math.isnan(recommender.estimate_preference("u1", 3))

    def test_most_similar_users(self, user_based):
        similar = user_based.most_similar_users("u1", 5)
        assert [user.user_id for user in similar] == ["u2", "u3"]

    def test_most_similar_users_rescorer(self, user_based):
        similar = user_based.most_similar_users("u1", 5, ExcludeUserRescorer("u2"))
        assert [user.user_id for user in similar] == ["u3"]

    def test_invalid_arguments(self, user_based):
        with pytest.raises(ValueError):
            user_based.recommend("u1", 0)
        with pytest.raises(ValueError):
            user_based.recommend(None, 5)
        with pytest.raises(NoSuchUserError):
            user_based.recommend("nobody", 5)

    def test_set_preference_delegates_to_model(self, user_based):
        user_based.set_preference("u1", 3, 1.0)
        assert user_based.estimate_preference("u1", 3) == 1.0
        user_based.remove_preference("u1", 3)
        assert user_based.data_model.get_user("u1").get_preference_for(3) is None

    def test_refresh(self, user_based):
        user_based.refresh()
        assert user_based.recommend("u1", 1)[0].item_id == 3


class TestSlopeOneRecommender:
    """Slope one trên diffs."""

    def test_weighted_estimate(self, slope_one_model):
        recommender = SlopeOneRecommender(slope_one_model)
        # ((3 + 7/3) * 3 + (5 + 1) * 2) / (3 + 2)
        assert recommender.estimate_preference("C", 3) == pytest.approx(5.6)

    def test_unweighted_estimate(self, slope_one_model):
        recommender = SlopeOneRecommender(slope_one_model, weighted=False)
        assert recommender.estimate_preference("C", 3) == pytest.approx(34.0 / 6.0)

    def test_stddev_weighted_estimate(self, slope_one_model):
        recommender = SlopeOneRecommender(slope_one_model, stddev_weighted=True)
        assert recommender.estimate_preference("C", 3) == pytest.approx(5.6750451159193736)

    def test_recommend(self, slope_one_model):
        recommender = SlopeOneRecommender(slope_one_model)
        top = recommender.recommend("C", 5)
        assert len(top) == 1
        assert isinstance(top[0], RecommendedItem)
        assert top[0].item_id == 3
        assert top[0].value == pytest.approx(5.6)
        top = recommender.recommend("D", 5)
        assert [item.item_id for item in top] == [2]
        assert top[0].value == pytest.approx(3.4)

    def test_recommend_nothing_left(self, slope_one_model):
        recommender = SlopeOneRecommender(slope_one_model)
        assert recommender.recommend("A", 5) == []

    def test_estimate_returns_own_rating(self, slope_one_model):
        recommender = SlopeOneRecommender(slope_one_model)
        assert recommender.estimate_preference("A", 1) == 1.0

    def test_estimate_without_diffs_is_nan(self, slope_one_model):
        slope_one_model.set_preference("E", 4, 1.0)
        recommender = SlopeOneRecommender(slope_one_model)
        assert math.isnan(recommender.estimate_preference("C", 4))

    def test_estimate_unknown_item_raises(self, slope_one_model):
        recommender = SlopeOneRecommender(slope_one_model)
        with pytest.raises(NoSuchItemError):
            recommender.estimate_preference("C", 99)

    def test_set_preference_shifts_user_datum(self, slope_one_model):
        recommender = SlopeOneRecommender(slope_one_model)
        recommender.set_preference("A", 3, 4.0)
        assert slope_one_model.get_user("A").get_preference_for(3).value == 4.0
        # Datum (1,3) của A: 2 -> 3
        assert recommender.diff_storage.get_diff(1, 3).average == pytest.approx(8.0 / 3.0)
        assert_matches_refreshed(recommender, slope_one_model)

    def test_new_rating_matches_refresh(self, slope_one_model):
        recommender = SlopeOneRecommender(slope_one_model)
        recommender.set_preference("C", 3, 4.0)
        storage = recommender.diff_storage
        assert storage.get_diff(1, 3).average == pytest.approx(2.0)
        assert storage.get_diff(2, 3).average == pytest.approx(1.0 / 3.0)
        assert recommender.estimate_preference("D", 2) == pytest.approx(11.0 / 3.0)
        assert_matches_refreshed(recommender, slope_one_model)

    def test_set_preference_for_new_user(self, slope_one_model):
        recommender = SlopeOneRecommender(slope_one_model)
        recommender.set_preference("E", 1, 4.0)
        assert recommender.diff_storage.get_average_item_pref(1).count == 5
        assert recommender.diff_storage.get_diff(1, 2).count == 3

    def test_remove_preference_drops_user_datum(self, slope_one_model):
        recommender = SlopeOneRecommender(slope_one_model)
        recommender.remove_preference("C", 2)
        assert slope_one_model.get_user("C").get_preference_for(2) is None
        storage = recommender.diff_storage
        assert storage.get_average_item_pref(2).count == 2
        assert storage.get_diff(1, 2).count == 2
        assert storage.get_diff(1, 2).average == pytest.approx(1.5)
        assert storage.get_diff(2, 3).count == 2
        assert_matches_refreshed(recommender, slope_one_model)

    def test_remove_until_pair_exhausted(self):
        model = GenericDataModel({
            "A": {1: 1.0, 2: 2.0},
            "B": {1: 2.0, 2: 4.0},
            "C": {1: 5.0, 3: 1.0},
        })
        recommender = SlopeOneRecommender(model)
        recommender.remove_preference("C", 1)
        assert recommender.diff_storage.get_diff(1, 2).count == 2
        assert recommender.diff_storage.get_diff(1, 2).average == pytest.approx(1.5)
        recommender.remove_preference("A", 1)
        assert recommender.diff_storage.get_diff(1, 2).count == 1
        assert recommender.diff_storage.get_diff(1, 2).average == pytest.approx(2.0)
        recommender.remove_preference("B", 1)
        assert recommender.diff_storage.get_diff(1, 2).count == 0
        assert model.get_user("B").get_preference_for(1) is None
        assert math.isnan(recommender.estimate_preference("C", 2))

    def test_concurrent_updates_stay_consistent(self, slope_one_model):
        recommender = SlopeOneRecommender(slope_one_model)
        errors = []

        def update(offset):
            try:
                for step in range(20):
                    value = float((offset + step) % 5 + 1)
                    recommender.set_preference("A", 3, value)
                    recommender.set_preference("B", 2, value)
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=update, args=(offset,)) for offset in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=10)

        assert errors == []
        assert_matches_refreshed(recommender, slope_one_model)

    def test_incremental_update_forbidden_with_stddev(self, slope_one_model):
        recommender = SlopeOneRecommender(slope_one_model, stddev_weighted=True)
        with pytest.raises(UnsupportedOperationError):
            recommender.set_preference("A", 3, 4.0)
        # Data model không bị đổi
        assert slope_one_model.get_user("A").get_preference_for(3).value == 3.0

    def test_stddev_requires_tracking_storage(self, slope_one_model):
        storage = MemoryDiffStorage(slope_one_model)
        with pytest.raises(ValueError):
            SlopeOneRecommender(slope_one_model, stddev_weighted=True, diff_storage=storage)
        with pytest.raises(ValueError):
            SlopeOneRecommender(slope_one_model, weighted=False, stddev_weighted=True)

    def test_refresh_picks_up_new_ratings(self, slope_one_model):
        recommender = SlopeOneRecommender(slope_one_model)
        slope_one_model.set_preference("C", 3, 9.0)
        recommender.refresh()
        assert recommender.diff_storage.get_diff(2, 3).count == 3
        assert recommender.recommend("C", 5) == []


class TestDataAccessFailure:
    """DataAccessError từ backing store propagate qua recommenders."""

    def test_user_based_propagates(self, failing_model):
        model = failing_model({
            "u1": {1: 5.0, 2: 3.0},
            "u2": {1: 4.0, 2: 2.0, 3: 4.0},
            "u3": {1: 1.0, 3: 2.0},
        })
        similarity = TanimotoCoefficientSimilarity(model)
        neighborhood = NearestNUserNeighborhood(2, similarity, model)
        recommender = GenericUserBasedRecommender(model, neighborhood, similarity)
        model.failing = True
        with pytest.raises(DataAccessError):
            recommender.recommend("u1", 5)
        with pytest.raises(DataAccessError):
            recommender.estimate_preference("u3", 2)

    def test_slope_one_propagates(self, failing_model):
        model = failing_model()
        recommender = SlopeOneRecommender(model)
        model.failing = True
        with pytest.raises(DataAccessError):
            recommender.recommend("C", 5)
        with pytest.raises(DataAccessError):
            recommender.estimate_preference("C", 3)
        with pytest.raises(DataAccessError):
            recommender.refresh()
        model.failing = False
        assert recommender.estimate_preference("C", 3) == pytest.approx(5.6)
