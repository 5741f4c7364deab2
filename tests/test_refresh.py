"""
Tests cho refresh protocol và ReadWriteLock.
"""

import threading

import pytest

from cfrec.recommender.refresh import RefreshHelper, Refreshable
from cfrec.recommender.rw_lock import ReadWriteLock


class CountingRefreshable(Refreshable):
    """Node trong dependency graph, đếm số lần refresh."""

    def __init__(self, name):
        self.name = name
        self.count = 0
        self.helper = RefreshHelper(self._on_refresh)

    def _on_refresh(self):
        self.count += 1

    def refresh(self, already_refreshed=None):
        self.helper.refresh(already_refreshed)

    def __repr__(self):
        return f"CountingRefreshable({self.name})"


class TestRefreshHelper:
    """Mỗi dependency được refresh đúng một lần mỗi call tree."""

    def test_shared_dependency_refreshed_once(self):
        shared = CountingRefreshable("shared")
        left = CountingRefreshable("left")
        right = CountingRefreshable("right")
        root = CountingRefreshable("root")
        left.helper.add_dependency(shared)
        right.helper.add_dependency(shared)
        root.helper.add_dependency(left)
        root.helper.add_dependency(right)

        root.refresh()

        assert shared.count == 1
        assert left.count == 1
        assert right.count == 1
        assert root.count == 1

    def test_cycle_terminates(self):
        a = CountingRefreshable("a")
        b = CountingRefreshable("b")
        a.helper.add_dependency(b)
        b.helper.add_dependency(a)

        a.refresh()

        assert a.count == 1
        assert b.count == 1

    def test_dependencies_refreshed_before_owner(self):
        order = []

        class Recording(Refreshable):
            def refresh(self, already_refreshed=None):
                order.append("dependency")

        helper = RefreshHelper(lambda: order.append("owner"))
        helper.add_dependency(Recording())
        helper.refresh()

        assert order == ["dependency", "owner"]

    def test_add_dependency_ignores_none_and_duplicates(self):
        node = CountingRefreshable("node")
        helper = RefreshHelper()
        helper.add_dependency(None)
        helper.add_dependency(node)
        helper.add_dependency(node)
        assert helper.dependencies == [node]
        helper.remove_dependency(node)
        assert helper.dependencies == []

    def test_each_top_level_call_refreshes_again(self):
        node = CountingRefreshable("node")
        node.refresh()
        node.refresh()
        assert node.count == 2


class TestReadWriteLock:
    """Shared readers, exclusive writer."""

    def test_readers_share(self):
        lock = ReadWriteLock()
        with lock.read_locked():
            with lock.read_locked():
                pass

    def test_unmatched_release_raises(self):
        lock = ReadWriteLock()
        with pytest.raises(RuntimeError):
            lock.release_read()
        with pytest.raises(RuntimeError):
            lock.release_write()

    def test_writer_waits_for_reader(self):
        lock = ReadWriteLock()
        events = []
        lock.acquire_read()

        def writer():
            with lock.write_locked():
                events.append("write")

        thread = threading.Thread(target=writer)
        thread.start()
        thread.join(timeout=0.1)
        assert events == []

        lock.release_read()
        thread.join(timeout=5)
        assert events == ["write"]
