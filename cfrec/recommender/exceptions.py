"""
Recommender Exceptions
======================

Các loại lỗi của recommender core.

- Invalid argument: dùng ValueError có sẵn, raise ngay tại call boundary
- Data-access failure: DataAccessError, propagate nguyên vẹn (không retry)
- Unsupported operation: UnsupportedOperationError (store read-only, update bị cấm)
- User / item không tồn tại: NoSuchUserError / NoSuchItemError

NaN từ similarity hoặc estimator KHÔNG phải lỗi: nghĩa là "không có ý kiến".
"""


class RecommenderError(Exception):
    """Base class cho mọi lỗi của recommender core."""


class DataAccessError(RecommenderError):
    """Rating store không trả lời được (I/O error, backend down, ...)."""


class NoSuchUserError(RecommenderError, KeyError):
    """User không tồn tại trong data model."""

    def __init__(self, user_id):
        super().__init__(user_id)
        self.user_id = user_id

    def __str__(self):
        return f"No such user: {self.user_id!r}"


class NoSuchItemError(RecommenderError, KeyError):
    """Item không tồn tại trong data model."""

    def __init__(self, item_id):
        super().__init__(item_id)
        self.item_id = item_id

    def __str__(self):
        return f"No such item: {self.item_id!r}"


class UnsupportedOperationError(RecommenderError, NotImplementedError):
    """Component không hỗ trợ operation này (ví dụ: store read-only)."""
