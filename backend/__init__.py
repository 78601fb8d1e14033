"""Seat inventory services"""
from .allocation import AllocationPolicy
from .inventory import InventoryCounter
from .seat_pool import SeatPool
from .booking_service import BookingService, TRANSITIONS
from .flight_service import FlightService
from .customer_service import CustomerService
from .consistency import ConsistencyChecker, ConsistencyMismatch, ConsistencyReport, MismatchKind

__all__ = [
    'AllocationPolicy', 'InventoryCounter', 'SeatPool', 'BookingService', 'TRANSITIONS',
    'FlightService', 'CustomerService',
    'ConsistencyChecker', 'ConsistencyMismatch', 'ConsistencyReport', 'MismatchKind'
]
