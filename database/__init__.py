"""Database package initialization"""
from .models import (
    Customer, Flight, Seat, Booking,
    BookingStatus, SeatState,
    row_to_customer, row_to_flight, row_to_seat, row_to_booking
)
from .exceptions import (
    ReservationError, InvalidArgument, NotFound, InsufficientCapacity,
    CapacityExceeded, TerminalStateViolation, Busy, RetryableConflict
)
from .config import Settings, get_settings, set_settings
from .database import DatabaseManager, create_db_manager, get_db_manager, set_db_manager
from .memory import InMemoryDatabase

__all__ = [
    'Customer', 'Flight', 'Seat', 'Booking',
    'BookingStatus', 'SeatState',
    'row_to_customer', 'row_to_flight', 'row_to_seat', 'row_to_booking',
    'ReservationError', 'InvalidArgument', 'NotFound', 'InsufficientCapacity',
    'CapacityExceeded', 'TerminalStateViolation', 'Busy', 'RetryableConflict',
    'Settings', 'get_settings', 'set_settings',
    'DatabaseManager', 'InMemoryDatabase', 'create_db_manager', 'get_db_manager', 'set_db_manager'
]
