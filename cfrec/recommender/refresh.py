"""
Refresh Protocol
================

Mọi component có dependency (data model, similarity, neighborhood, diff storage)
đều là Refreshable. Một lần refresh top-level đi depth-first qua dependency graph,
mỗi dependency chỉ được refresh MỘT lần nhờ visited set truyền by reference.
"""

import logging
from abc import ABC, abstractmethod
from typing import Callable, List, Optional, Set

logger = logging.getLogger(__name__)


class Refreshable(ABC):
    """Component có thể reload / rebuild state từ dependencies."""

    @abstractmethod
    def refresh(self, already_refreshed: Optional[Set["Refreshable"]] = None) -> None:
        """
        Refresh component và dependencies của nó.

        Args:
            already_refreshed: Các component đã refresh trong lần gọi top-level này.
                None nghĩa là đây là lần gọi top-level.
        """


class RefreshHelper:
    """
    Quản lý dependencies và refresh chúng đúng một lần.

    Owner khai báo dependencies qua add_dependency() và (optional) một callable
    để rebuild state của chính nó sau khi dependencies đã refresh xong.
    """

    def __init__(self, refresh_runnable: Optional[Callable[[], None]] = None):
        self._dependencies: List[Refreshable] = []
        self._refresh_runnable = refresh_runnable

    def add_dependency(self, dependency: Optional[Refreshable]) -> None:
        if dependency is not None and dependency not in self._dependencies:
            self._dependencies.append(dependency)

    def remove_dependency(self, dependency: Refreshable) -> None:
        if dependency in self._dependencies:
            self._dependencies.remove(dependency)

    @property
    def dependencies(self) -> List[Refreshable]:
        return list(self._dependencies)

    def refresh(self, already_refreshed: Optional[Set[Refreshable]] = None) -> None:
        """
        Refresh dependencies (depth-first) rồi chạy refresh_runnable.

        Args:
            already_refreshed: Visited set dùng chung cho cả call tree
        """
        already_refreshed = build_refreshed(already_refreshed)
        for dependency in self._dependencies:
            maybe_refresh(already_refreshed, dependency)
        if self._refresh_runnable is not None:
            self._refresh_runnable()


def build_refreshed(already_refreshed: Optional[Set[Refreshable]]) -> Set[Refreshable]:
    """Tạo visited set mới nếu đây là lần gọi top-level."""
    if already_refreshed is None:
        return set()
    return already_refreshed


def maybe_refresh(already_refreshed: Set[Refreshable], dependency: Refreshable) -> None:
    """Refresh dependency nếu chưa được visit trong call tree này."""
    if dependency in already_refreshed:
        logger.debug(f"Skipping already refreshed dependency {dependency!r}")
        return
    # Đánh dấu TRƯỚC khi đi xuống để cắt vòng lặp (cyclic graph)
    already_refreshed.add(dependency)
    logger.debug(f"Refreshing {dependency!r}")
    dependency.refresh(already_refreshed)
