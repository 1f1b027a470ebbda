"""Tests for heroes.utils.store.PageStore."""

from heroes.models.comic import Beat, ComicPage
from heroes.utils.store import PageStore


def page(index, page_type="story", narrative=None):
    return ComicPage(id=f"page-{index}", page_index=index, type=page_type, narrative=narrative)


class TestAppend:
    """Tests for append / append_many."""

    def test_pages_sorted_by_index(self):
        store = PageStore()
        store.append_many([page(3), page(1)])
        store.append(page(2))
        assert [p.page_index for p in store.all_pages()] == [1, 2, 3]

    def test_one_record_per_index(self):
        store = PageStore()
        assert store.append(page(1)) is True
        assert store.append(ComicPage(id="other", page_index=1)) is False
        assert len(store) == 1
        assert store.get(1).id == "page-1"


class TestUpdate:
    """Tests for update."""

    def test_merges_fields(self):
        store = PageStore()
        store.append(page(1))
        store.update("page-1", narrative=Beat(scene="x"))
        updated = store.update("page-1", image_url="data:image/png;base64,AA", is_loading=False)

        assert updated.narrative == Beat(scene="x")
        assert updated.image_url == "data:image/png;base64,AA"
        assert store.get(1).is_loading is False

    def test_unknown_id_is_ignored(self):
        store = PageStore()
        assert store.update("page-9", is_loading=False) is None
        assert len(store) == 0

    def test_snapshot_unaffected_by_later_update(self):
        store = PageStore()
        store.append(page(1))
        before = store.all_pages()
        store.update("page-1", is_loading=False)
        assert before[0].is_loading is True


class TestQueries:
    """Tests for pages_before and max_page_index."""

    def test_pages_before_only_completed_story_pages(self):
        store = PageStore()
        store.append_many([
            page(0, "cover", Beat()),
            page(2, narrative=Beat(scene="b")),
            page(1, narrative=Beat(scene="a")),
            page(3),
            page(5, narrative=Beat(scene="c")),
        ])

        assert [p.page_index for p in store.pages_before(5)] == [1, 2]

    def test_max_page_index(self):
        store = PageStore()
        assert store.max_page_index() == 0
        store.append_many([page(4), page(2)])
        assert store.max_page_index() == 4


class TestSubscribe:
    """Tests for subscribe / notifications."""

    def test_listener_receives_events(self):
        store = PageStore()
        events = []
        store.subscribe(lambda event, pages: events.append((event, [p.page_index for p in pages])))

        store.append_many([page(1), page(2)])
        store.update("page-2", is_loading=False)
        store.clear()

        assert events == [("append", [1, 2]), ("update", [2]), ("clear", [])]

    def test_unsubscribe(self):
        store = PageStore()
        events = []
        unsubscribe = store.subscribe(lambda event, pages: events.append(event))
        unsubscribe()
        store.append(page(1))
        assert events == []

    def test_failing_listener_does_not_break_writes(self):
        store = PageStore()

        def broken(event, pages):
            raise RuntimeError("listener bug")

        store.subscribe(broken)
        store.append(page(1))
        assert store.update("page-1", is_loading=False) is not None
