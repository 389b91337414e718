"""
Tests for vehicle capacity evaluation.
"""
from uuid import uuid4

import pytest

from fleet_planner.core.exceptions import (
    CapacityExceededException,
    DeliveryNotAssignableException,
)
from fleet_planner.models.delivery import DeliveryStatus
from fleet_planner.services.capacity import (
    CandidateDelivery,
    VehicleCapacity,
    assess,
    evaluate,
)


def candidate(weight: float, volume: float = 0.0, status: DeliveryStatus = DeliveryStatus.PENDING):
    return CandidateDelivery(id=uuid4(), weight=weight, volume=volume, status=status)


class TestEvaluate:

    def test_within_bounds_returns_totals(self):
        verdict = evaluate(
            VehicleCapacity(weight=100.0, volume=5.0),
            [candidate(30.0, 1.0), candidate(45.5, 2.5)],
        )
        assert verdict.ok is True
        assert verdict.total_weight == pytest.approx(75.5, abs=1e-6)
        assert verdict.total_volume == pytest.approx(3.5, abs=1e-6)
        assert verdict.exceeded is None

    def test_exact_capacity_is_accepted(self):
        verdict = evaluate(
            VehicleCapacity(weight=50.0, volume=1.0),
            [candidate(20.0, 0.5), candidate(30.0, 0.5)],
        )
        assert verdict.ok is True
        assert verdict.total_weight == 50.0

    def test_float_accumulation(self):
        verdict = evaluate(
            VehicleCapacity(weight=1.0, volume=1.0),
            [candidate(0.1, 0.1) for _ in range(10)],
        )
        assert verdict.total_weight == pytest.approx(1.0, abs=1e-6)

    def test_weight_exceeded(self):
        with pytest.raises(CapacityExceededException) as exc_info:
            evaluate(VehicleCapacity(weight=50.0, volume=10.0), [candidate(40.0), candidate(20.0)])

        assert exc_info.value.kind == "weight"
        assert exc_info.value.total == pytest.approx(60.0)
        assert exc_info.value.capacity == 50.0

    def test_volume_exceeded(self):
        with pytest.raises(CapacityExceededException) as exc_info:
            evaluate(VehicleCapacity(weight=100.0, volume=1.0), [candidate(10.0, 0.6), candidate(10.0, 0.6)])

        assert exc_info.value.kind == "volume"
        assert exc_info.value.total == pytest.approx(1.2)

    def test_weight_reported_before_volume(self):
        with pytest.raises(CapacityExceededException) as exc_info:
            evaluate(VehicleCapacity(weight=1.0, volume=1.0), [candidate(5.0, 5.0)])

        assert exc_info.value.kind == "weight"

    @pytest.mark.parametrize("status", [DeliveryStatus.IN_TRANSIT, DeliveryStatus.DELIVERED])
    def test_moving_delivery_rejected(self, status):
        moving = candidate(1.0, status=status)
        with pytest.raises(DeliveryNotAssignableException) as exc_info:
            evaluate(VehicleCapacity(weight=100.0, volume=100.0), [candidate(1.0), moving])

        assert exc_info.value.details["delivery_id"] == str(moving.id)

    def test_moving_delivery_checked_before_capacity(self):
        moving = candidate(500.0, status=DeliveryStatus.DELIVERED)
        with pytest.raises(DeliveryNotAssignableException):
            evaluate(VehicleCapacity(weight=1.0, volume=1.0), [moving])

    def test_empty_set(self):
        verdict = evaluate(VehicleCapacity(weight=0.0, volume=0.0), [])
        assert verdict.ok is True
        assert verdict.total_weight == 0.0


class TestAssess:

    def test_overload_does_not_raise(self):
        verdict = assess(VehicleCapacity(weight=50.0, volume=10.0), [candidate(40.0), candidate(20.0)])
        assert verdict.ok is False
        assert verdict.exceeded == "weight"
        assert verdict.total_weight == pytest.approx(60.0)

    def test_volume_overload(self):
        verdict = assess(VehicleCapacity(weight=50.0, volume=1.0), [candidate(1.0, 2.0)])
        assert verdict.ok is False
        assert verdict.exceeded == "volume"
