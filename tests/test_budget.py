"""Tests for the metered gas budget."""

import time

import pytest

from replica.core.errors import OutOfGas
from replica.engine.budget import GasMeter, consume, current_meter, metered


class TestGasMeter:
    def test_consume_within_limit(self):
        meter = GasMeter(100)
        meter.consume(40)
        assert meter.used == 40
        assert meter.remaining == 60
        assert not meter.exhausted

    def test_exhaustion_pins_meter(self):
        meter = GasMeter(100)
        meter.consume(30)
        with pytest.raises(OutOfGas):
            meter.consume(71)
        assert meter.used == 100
        assert meter.exhausted
        assert meter.tripped
        with pytest.raises(OutOfGas):
            meter.consume(1)

    def test_consume_exact_limit(self):
        meter = GasMeter(100)
        meter.consume(100)
        assert meter.remaining == 0
        assert not meter.tripped

    def test_negative_amounts_rejected(self):
        with pytest.raises(ValueError):
            GasMeter(-1)
        with pytest.raises(ValueError):
            GasMeter(10).consume(-1)

    def test_child_charges_parent(self):
        parent = GasMeter(1_000)
        child = parent.child(300)
        child.consume(200)
        assert parent.used == 200
        with pytest.raises(OutOfGas):
            child.consume(200)
        assert child.used == 300
        assert parent.remaining == 700

    def test_child_cannot_exceed_parent(self):
        parent = GasMeter(100)
        with pytest.raises(ValueError):
            parent.child(101)

    def test_deadline(self):
        meter = GasMeter(1_000_000, deadline=0.01)
        time.sleep(0.02)
        with pytest.raises(OutOfGas, match="Deadline"):
            meter.consume(1)
        assert meter.exhausted

    def test_expired_without_consume(self):
        meter = GasMeter(1_000, deadline=0.01)
        assert not meter.expired
        time.sleep(0.02)
        assert meter.expired
        assert GasMeter(1_000).expired is False


class TestCurrentMeter:
    def test_no_meter_outside_block(self):
        assert current_meter() is None
        consume(10**9)  # no-op

    def test_metered_installs_and_restores(self):
        outer, inner = GasMeter(100), GasMeter(50)
        with metered(outer):
            consume(10)
            with metered(inner):
                assert current_meter() is inner
                consume(5)
            assert current_meter() is outer
        assert current_meter() is None
        assert (outer.used, inner.used) == (10, 5)

    def test_restored_after_exception(self):
        meter = GasMeter(1)
        with pytest.raises(OutOfGas):
            with metered(meter):
                consume(2)
        assert current_meter() is None
