"""
Data Model
==========

Rating store mà recommender core đọc từ đó.

- DataModel: interface (users, items, preferences, mutate)
- GenericDataModel: implementation in-memory, load từ dict hoặc pandas DataFrame

User là immutable snapshot: mỗi lần preference thay đổi, store tạo snapshot mới.
"""

import logging
import math
import threading
from abc import abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Hashable, List, Mapping, Optional, Set, Tuple

import pandas as pd

from cfrec.recommender.exceptions import (
    NoSuchItemError,
    NoSuchUserError,
    UnsupportedOperationError,
)
from cfrec.recommender.refresh import Refreshable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Preference:
    """Một rating: (user_id, item_id, value)."""
    user_id: Hashable
    item_id: Hashable
    value: float


@dataclass(frozen=True)
class Item:
    """Item chỉ cần ID cho core algorithms."""
    item_id: Hashable


@dataclass(frozen=True)
class User:
    """
    Snapshot của một user.

    Attributes:
        user_id: User ID
        preferences: Ratings của user, sort theo item_id, mỗi item tối đa một rating
    """
    user_id: Hashable
    preferences: Tuple[Preference, ...] = field(default=(), compare=False, repr=False)
    _by_item: Dict[Hashable, Preference] = field(
        default=None, init=False, compare=False, repr=False
    )

    def __post_init__(self):
        ordered = tuple(sorted(self.preferences, key=lambda pref: pref.item_id))
        by_item: Dict[Hashable, Preference] = {}
        for pref in ordered:
            if pref.item_id in by_item:
                raise ValueError(
                    f"User {self.user_id!r} has more than one preference for item {pref.item_id!r}"
                )
            by_item[pref.item_id] = pref
        object.__setattr__(self, "preferences", ordered)
        object.__setattr__(self, "_by_item", by_item)

    @classmethod
    def from_ratings(cls, user_id: Hashable, ratings: Mapping[Hashable, float]) -> "User":
        """Tạo User từ dict {item_id: value}."""
        return cls(
            user_id,
            tuple(Preference(user_id, item_id, float(value)) for item_id, value in ratings.items()),
        )

    def get_preference_for(self, item_id: Hashable) -> Optional[Preference]:
        return self._by_item.get(item_id)

    def item_ids(self) -> List[Hashable]:
        return [pref.item_id for pref in self.preferences]

    def __len__(self):
        return len(self.preferences)


class DataModel(Refreshable):
    """
    Interface của rating store.

    Implementation có thể là file / database; core chỉ dùng các method dưới đây.
    """

    @abstractmethod
    def get_users(self) -> List[User]:
        """Tất cả users, thứ tự ổn định."""

    @abstractmethod
    def get_user(self, user_id: Hashable) -> User:
        """
        Raises:
            NoSuchUserError: Nếu user không tồn tại
        """

    @abstractmethod
    def get_items(self) -> List[Item]:
        """Tất cả items, thứ tự ổn định."""

    @abstractmethod
    def get_item(self, item_id: Hashable) -> Item:
        """
        Raises:
            NoSuchItemError: Nếu item không tồn tại
        """

    @abstractmethod
    def get_preferences_for_item(self, item_id: Hashable) -> List[Preference]:
        """Mọi rating của item, sort theo user_id."""

    @abstractmethod
    def get_num_items(self) -> int:
        ...

    @abstractmethod
    def get_num_users(self) -> int:
        ...

    @abstractmethod
    def set_preference(self, user_id: Hashable, item_id: Hashable, value: float) -> None:
        """
        Raises:
            UnsupportedOperationError: Nếu store read-only
        """

    @abstractmethod
    def remove_preference(self, user_id: Hashable, item_id: Hashable) -> None:
        """
        Raises:
            UnsupportedOperationError: Nếu store read-only
        """


class GenericDataModel(DataModel):
    """
    Rating store in-memory.

    Thread-safe với một RLock quanh các index; User trả ra là snapshot immutable.
    """

    def __init__(
        self,
        ratings: Mapping[Hashable, Mapping[Hashable, float]],
        read_only: bool = False
    ):
        """
        Khởi tạo GenericDataModel.

        Args:
            ratings: {user_id: {item_id: value}}
            read_only: Nếu True, set/remove preference sẽ raise UnsupportedOperationError
        """
        self.read_only = read_only
        self._lock = threading.RLock()
        self._users: Dict[Hashable, User] = {}
        self._item_ids: Set[Hashable] = set()

        for user_id, user_ratings in ratings.items():
            for item_id, value in user_ratings.items():
                _check_value(value)
            self._users[user_id] = User.from_ratings(user_id, user_ratings)
            self._item_ids.update(user_ratings.keys())

        self._preferences_for_item: Dict[Hashable, List[Preference]] = {}
        self._rebuild_item_index()

        logger.info(
            f"GenericDataModel initialized: users={len(self._users)}, "
            f"items={len(self._item_ids)}, read_only={read_only}"
        )

    @classmethod
    def from_dataframe(
        cls,
        df: pd.DataFrame,
        user_col: str = "user_id",
        item_col: str = "item_id",
        rating_col: str = "rating",
        read_only: bool = False
    ) -> "GenericDataModel":
        """
        Load ratings từ DataFrame (mỗi dòng một rating).

        Rating NaN bị bỏ; nếu một (user, item) xuất hiện nhiều lần thì giữ dòng cuối.

        Args:
            df: DataFrame chứa ratings
            user_col: Tên column user ID
            item_col: Tên column item ID
            rating_col: Tên column rating
            read_only: Xem __init__

        Returns:
            GenericDataModel
        """
        missing = [col for col in (user_col, item_col, rating_col) if col not in df.columns]
        if missing:
            raise ValueError(f"Thiếu columns trong ratings DataFrame: {missing}")

        clean_df = df[[user_col, item_col, rating_col]].dropna(subset=[rating_col])
        clean_df = clean_df.drop_duplicates(subset=[user_col, item_col], keep="last")
        dropped = len(df) - len(clean_df)
        if dropped > 0:
            logger.warning(f"Dropped {dropped} rows (NaN rating hoặc duplicate user/item)")

        ratings: Dict[Hashable, Dict[Hashable, float]] = {}
        for user_id, group in clean_df.groupby(user_col, sort=True):
            ratings[_to_python(user_id)] = {
                _to_python(item_id): float(value)
                for item_id, value in zip(group[item_col], group[rating_col])
            }
        return cls(ratings, read_only=read_only)

    def _rebuild_item_index(self) -> None:
        by_item: Dict[Hashable, List[Preference]] = {}
        for user in self._users.values():
            for pref in user.preferences:
                by_item.setdefault(pref.item_id, []).append(pref)
        for prefs in by_item.values():
            prefs.sort(key=lambda pref: pref.user_id)
        self._preferences_for_item = by_item

    def get_users(self) -> List[User]:
        with self._lock:
            return [self._users[user_id] for user_id in sorted(self._users)]

    def get_user(self, user_id: Hashable) -> User:
        with self._lock:
            user = self._users.get(user_id)
        if user is None:
            raise NoSuchUserError(user_id)
        return user

    def get_items(self) -> List[Item]:
        with self._lock:
            return [Item(item_id) for item_id in sorted(self._item_ids)]

    def get_item(self, item_id: Hashable) -> Item:
        with self._lock:
            if item_id not in self._item_ids:
                raise NoSuchItemError(item_id)
        return Item(item_id)

    def get_preferences_for_item(self, item_id: Hashable) -> List[Preference]:
        with self._lock:
            if item_id not in self._item_ids:
                raise NoSuchItemError(item_id)
            return list(self._preferences_for_item.get(item_id, []))

    def get_num_items(self) -> int:
        with self._lock:
            return len(self._item_ids)

    def get_num_users(self) -> int:
        with self._lock:
            return len(self._users)

    def set_preference(self, user_id: Hashable, item_id: Hashable, value: float) -> None:
        if self.read_only:
            raise UnsupportedOperationError("GenericDataModel is read-only")
        if user_id is None or item_id is None:
            raise ValueError("user_id or item_id is None")
        _check_value(value)

        with self._lock:
            old_user = self._users.get(user_id)
            ratings = {pref.item_id: pref.value for pref in old_user.preferences} if old_user else {}
            ratings[item_id] = float(value)
            self._users[user_id] = User.from_ratings(user_id, ratings)
            self._item_ids.add(item_id)
            self._reindex_item(item_id)

        logger.debug(f"Set preference user={user_id!r} item={item_id!r} value={value}")

    def remove_preference(self, user_id: Hashable, item_id: Hashable) -> None:
        if self.read_only:
            raise UnsupportedOperationError("GenericDataModel is read-only")

        with self._lock:
            old_user = self._users.get(user_id)
            if old_user is None:
                raise NoSuchUserError(user_id)
            if old_user.get_preference_for(item_id) is None:
                logger.debug(f"User {user_id!r} has no preference for item {item_id!r}, nothing to remove")
                return
            ratings = {
                pref.item_id: pref.value
                for pref in old_user.preferences
                if pref.item_id != item_id
            }
            self._users[user_id] = User.from_ratings(user_id, ratings)
            self._reindex_item(item_id)
            if not self._preferences_for_item.get(item_id):
                self._item_ids.discard(item_id)
                self._preferences_for_item.pop(item_id, None)

        logger.debug(f"Removed preference user={user_id!r} item={item_id!r}")

    def _reindex_item(self, item_id: Hashable) -> None:
        prefs = [
            user.get_preference_for(item_id)
            for user in self._users.values()
            if user.get_preference_for(item_id) is not None
        ]
        prefs.sort(key=lambda pref: pref.user_id)
        self._preferences_for_item[item_id] = prefs

    def refresh(self, already_refreshed=None) -> None:
        # In-memory: không có gì để reload
        logger.debug("GenericDataModel.refresh(): nothing to reload")

    def __repr__(self):
        return f"GenericDataModel[users:{self.get_num_users()}, items:{self.get_num_items()}]"


def _check_value(value: Any) -> None:
    if value is None or math.isnan(float(value)):
        raise ValueError(f"Invalid preference value: {value!r}")


def _to_python(value: Any) -> Hashable:
    """numpy scalar -> Python scalar (để ID so sánh / hash nhất quán)."""
    return value.item() if hasattr(value, "item") else value
