"""
Flight management service
Creates flights together with their seat pool and exposes read access
"""
import logging
from datetime import datetime
from typing import List, Optional

from database import Flight, InvalidArgument, NotFound, Seat, get_db_manager
from .seat_pool import SeatPool
from .validation import require_amount, require_count, require_id, require_text

logger = logging.getLogger(__name__)


class FlightService:
    """Service for flight management operations"""

    @staticmethod
    def create_flight(flight_number: str, origin: str, destination: str,
                      departure_time: datetime, arrival_time: datetime,
                      total_seats: int, price: float = 0.0,
                      provision_seats: bool = True) -> Flight:
        """
        Create a new flight and provision its seats in the same transaction

        Args:
            flight_number: Unique flight number (at most 10 characters)
            origin: Origin airport/city
            destination: Destination airport/city
            departure_time: Departure datetime
            arrival_time: Arrival datetime
            total_seats: Seat capacity
            price: Fare per passenger (informational)
            provision_seats: Create the seat records now (default) or later
                through provision_seats()

        Returns:
            Created flight object
        """
        require_text(flight_number, 'flight_number', 10)
        require_text(origin, 'origin', 50)
        require_text(destination, 'destination', 50)
        require_count(total_seats, 'total_seats')
        if departure_time >= arrival_time:
            raise InvalidArgument("Departure time must be before arrival time")
        require_amount(price, 'price')

        db_manager = get_db_manager()

        with db_manager.create_flight_scope(
            flight_number=flight_number,
            origin=origin,
            destination=destination,
            departure_time=departure_time,
            arrival_time=arrival_time,
            total_seats=total_seats,
            price=price
        ) as scope:
            if provision_seats:
                SeatPool.provision(scope, total_seats)
            flight = scope.flight

        logger.info("Created flight %s (%s -> %s, %d seats)",
                    flight.flight_number, origin, destination, total_seats)
        return flight

    @staticmethod
    def provision_seats(flight_id: int, capacity: Optional[int] = None) -> int:
        """
        Create the seats of a flight created with ``provision_seats=False``

        Fails if the flight already has seats.
        """
        db_manager = get_db_manager()

        with db_manager.flight_scope(require_id(flight_id, 'flight_id')) as scope:
            if capacity is None:
                capacity = scope.flight.total_seats
            return SeatPool.provision(scope, capacity)

    @staticmethod
    def get_flight(flight_id: int) -> Optional[Flight]:
        """Get flight by ID"""
        return get_db_manager().get_flight(require_id(flight_id, 'flight_id'))

    @staticmethod
    def get_flight_by_number(flight_number: str) -> Optional[Flight]:
        """Get flight by flight number"""
        return get_db_manager().get_flight_by_number(flight_number)

    @staticmethod
    def list_flights() -> List[Flight]:
        """List all flights"""
        return get_db_manager().list_flights()

    @staticmethod
    def get_seats(flight_id: int) -> List[Seat]:
        """All seats of a flight in label order"""
        if not get_db_manager().get_flight(require_id(flight_id, 'flight_id')):
            raise NotFound(f"Flight with ID {flight_id} not found")
        return get_db_manager().list_seats(flight_id)

    @staticmethod
    def get_available_seats(flight_id: int) -> int:
        """Current value of the flight's available-seat counter"""
        flight = get_db_manager().get_flight(require_id(flight_id, 'flight_id'))
        if not flight:
            raise NotFound(f"Flight with ID {flight_id} not found")
        return flight.available_seats
