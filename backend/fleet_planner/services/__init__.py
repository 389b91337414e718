"""
Services module.

Business logic for trip planning:
- Capacity evaluation of a delivery set against a vehicle
- Status transition rules for deliveries, vehicles and trips
- Trip store bound to the caller's session
- Trip assignment engine orchestrating the above
"""
from fleet_planner.services.capacity import (
    CandidateDelivery,
    CapacityVerdict,
    VehicleCapacity,
    assess,
    evaluate,
)
from fleet_planner.services.trip_store import TripStore
from fleet_planner.services.trip_assignment import (
    StopAssignment,
    TripAssignmentEngine,
    TripAssignmentResult,
)

__all__ = [
    "CandidateDelivery",
    "CapacityVerdict",
    "VehicleCapacity",
    "assess",
    "evaluate",
    "TripStore",
    "StopAssignment",
    "TripAssignmentEngine",
    "TripAssignmentResult",
]
