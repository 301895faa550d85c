"""
Tests for the bounded recency set, the update deduplicator and the once-gate.
"""
import pytest

from coffee_bot.idempotency import Deduplicator, LRUSet, OnceGate, key_from_parts


class TestLRUSet:
    """Bounded set with least-recently-used eviction."""

    def test_rejects_non_positive_capacity(self):
        with pytest.raises(ValueError):
            LRUSet(0)
        with pytest.raises(ValueError):
            LRUSet(-5)

    def test_rejects_non_integer_capacity(self):
        with pytest.raises(ValueError):
            LRUSet("10")

    def test_evicts_oldest_when_full(self):
        s = LRUSet(2)
        s.add("a")
        s.add("b")
        s.add("c")
        assert "a" not in s
        assert "b" in s and "c" in s
        assert len(s) == 2

    def test_add_if_absent_refreshes_existing_key(self):
        """A repeated key is not re-inserted but becomes most recent."""
        s = LRUSet(2)
        assert s.add_if_absent("a") is True
        assert s.add_if_absent("b") is True
        assert s.add_if_absent("a") is False
        s.add("c")
        assert "a" in s
        assert "b" not in s

    def test_discard(self):
        s = LRUSet(3)
        s.add("a")
        assert s.discard("a") is True
        assert s.discard("a") is False
        assert len(s) == 0


class TestDeduplicator:
    """Update deduplication by update_id."""

    def test_first_delivery_admitted_retry_rejected(self):
        d = Deduplicator(1000)
        assert d.admit(42) is True
        assert d.admit(42) is False
        assert d.admit(43) is True

    def test_evicted_id_is_admitted_again(self):
        """Only the most recent `capacity` ids are remembered."""
        d = Deduplicator(3)
        for i in range(4):
            assert d.admit(i)
        assert len(d) == 3
        assert d.admit(0) is True

    def test_default_capacity_holds_a_thousand_ids(self):
        d = Deduplicator()
        for i in range(1000):
            d.admit(i)
        assert d.admit(0) is False


class TestOnceGate:
    """Single-fire latch with reset."""

    def test_fires_once_per_key(self):
        gate = OnceGate(10)
        assert gate.fire_once("k") is True
        assert gate.fire_once("k") is False
        assert gate.fire_once("other") is True

    def test_reset_rearms(self):
        gate = OnceGate(10)
        gate.fire_once("k")
        assert gate.reset("k") is True
        assert gate.fire_once("k") is True

    def test_reset_unknown_key(self):
        assert OnceGate(10).reset("never") is False


class TestKeyFromParts:
    def test_joins_with_colon(self):
        assert key_from_parts("qty", 100, 555, 2) == "qty:100:555:2"

    def test_booleans_and_none(self):
        assert key_from_parts(1, None, True, False, "x") == "1:1:0:x"
