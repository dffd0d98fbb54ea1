"""Tests for duplicate-submission admission control."""

from marksync.sync.gate import MutationGate


class TestMutationGate:
    def test_single_add_in_flight(self):
        gate = MutationGate()

        assert gate.begin_add() is True
        assert gate.begin_add() is False
        assert gate.adding is True

        gate.end_add()
        assert gate.adding is False
        assert gate.begin_add() is True

    def test_deletes_admitted_once_per_id(self):
        gate = MutationGate()

        assert gate.begin_delete("a") is True
        assert gate.begin_delete("b") is True
        assert gate.begin_delete("a") is False
        assert gate.deleting_ids == frozenset({"a", "b"})

        gate.end_delete("a")
        assert gate.deleting_ids == frozenset({"b"})
        assert gate.begin_delete("a") is True

    def test_end_delete_unknown_id_is_harmless(self):
        gate = MutationGate()
        gate.end_delete("never-started")
        assert gate.busy is False

    def test_busy(self):
        gate = MutationGate()
        assert gate.busy is False
        gate.begin_delete("a")
        assert gate.busy is True
        gate.end_delete("a")
        gate.begin_add()
        assert gate.busy is True
