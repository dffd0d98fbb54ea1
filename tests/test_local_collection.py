"""Tests for the ordered local bookmark collection."""

from marksync.sync.collection import LocalCollection


def _ids(collection: LocalCollection) -> list[str]:
    return [record.id for record in collection.snapshot()]


class TestLocalCollection:
    def test_newest_first(self, make_bookmark):
        collection = LocalCollection()
        collection.replace_all(
            [make_bookmark("old", minutes=0), make_bookmark("new", minutes=10)]
        )
        assert _ids(collection) == ["new", "old"]

    def test_ties_keep_arrival_order(self, make_bookmark):
        collection = LocalCollection()
        collection.insert_if_absent(make_bookmark("first", minutes=5))
        collection.insert_if_absent(make_bookmark("second", minutes=5))
        collection.insert_if_absent(make_bookmark("newest", minutes=6))
        assert _ids(collection) == ["newest", "first", "second"]

    def test_insert_if_absent_is_idempotent(self, make_bookmark):
        collection = LocalCollection()
        record = make_bookmark("b1")

        assert collection.insert_if_absent(record) is True
        assert collection.insert_if_absent(record) is False
        assert collection.insert_if_absent(make_bookmark("b1", title="Other")) is False
        assert len(collection) == 1
        assert collection.get("b1") == record

    def test_update_if_present_replaces_whole_record(self, make_bookmark):
        collection = LocalCollection()
        collection.insert_if_absent(make_bookmark("b1", minutes=1))
        collection.insert_if_absent(make_bookmark("b2", minutes=1))

        replacement = make_bookmark("b1", title="Renamed", minutes=1)
        assert collection.update_if_present(replacement) is True
        assert collection.get("b1").title == "Renamed"
        assert _ids(collection) == ["b1", "b2"]

    def test_update_if_present_ignores_unknown_and_unchanged(self, make_bookmark):
        collection = LocalCollection()
        record = make_bookmark("b1")
        collection.insert_if_absent(record)

        assert collection.update_if_present(make_bookmark("missing")) is False
        assert collection.update_if_present(record) is False
        assert "missing" not in collection

    def test_update_moves_record_when_timestamp_changes(self, make_bookmark):
        collection = LocalCollection()
        collection.replace_all([make_bookmark("a", minutes=2), make_bookmark("b", minutes=1)])

        collection.update_if_present(make_bookmark("b", minutes=3))
        assert _ids(collection) == ["b", "a"]

    def test_remove_by_id(self, make_bookmark):
        collection = LocalCollection()
        collection.replace_all([make_bookmark("a"), make_bookmark("b", minutes=1)])

        assert collection.remove_by_id("a") is True
        assert collection.remove_by_id("a") is False
        assert _ids(collection) == ["b"]

    def test_replace_all_reports_change_and_drops_duplicates(self, make_bookmark):
        collection = LocalCollection()
        records = [
            make_bookmark("a", minutes=1),
            make_bookmark("a", title="Duplicate", minutes=2),
            make_bookmark("b"),
        ]

        assert collection.replace_all(records) is True
        assert _ids(collection) == ["a", "b"]
        assert collection.get("a").title == "Bookmark a"
        assert collection.replace_all(records) is False
        assert collection.ids() == frozenset({"a", "b"})

    def test_clear(self, make_bookmark):
        collection = LocalCollection()
        collection.insert_if_absent(make_bookmark("a"))
        collection.clear()

        assert len(collection) == 0
        assert collection.snapshot() == ()
