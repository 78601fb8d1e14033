"""
Seat pool: per-flight seat records with all-or-nothing claim and release
"""
import logging
from dataclasses import replace
from typing import List, Optional

from database import (
    CapacityExceeded, InsufficientCapacity, InvalidArgument, Seat, get_settings
)
from .allocation import AllocationPolicy
from .inventory import InventoryCounter

logger = logging.getLogger(__name__)


class SeatPool:
    """Seat provisioning, claiming and releasing for one flight scope"""

    @staticmethod
    def seat_label(ordinal: int, capacity: int, prefix: Optional[str] = None) -> str:
        """
        Build the label of the ``ordinal``-th seat (1-based), e.g. ``A001``

        The number is zero-padded to at least three digits, wider when the
        capacity needs it, so that label order is seat order.
        """
        if prefix is None:
            prefix = get_settings().seat_label_prefix
        width = max(3, len(str(capacity)))
        return f"{prefix}{ordinal:0{width}d}"

    @staticmethod
    def provision(scope, capacity: int, prefix: Optional[str] = None) -> int:
        """
        Create one FREE seat per capacity unit

        Args:
            scope: Open flight scope
            capacity: Number of seats; must match the flight's total_seats
            prefix: Label prefix (defaults to SEAT_LABEL_PREFIX)

        Returns:
            Number of seats created
        """
        if isinstance(capacity, bool) or not isinstance(capacity, int) or capacity <= 0:
            raise InvalidArgument(f"Capacity must be a positive integer, got {capacity!r}")

        flight = scope.flight
        if capacity != flight.total_seats:
            raise InvalidArgument(
                f"Capacity {capacity} does not match total_seats {flight.total_seats} "
                f"of flight {flight.flight_number}"
            )
        if scope.seat_count() > 0:
            raise InvalidArgument(f"Flight {flight.flight_number} already has seats")

        labels = [SeatPool.seat_label(i, capacity, prefix) for i in range(1, capacity + 1)]
        created = scope.insert_seats(labels)
        logger.info("Provisioned %d seats for flight %s", created, flight.flight_number)
        return created

    @staticmethod
    def claim(scope, booking_id: int, count: int) -> List[Seat]:
        """
        Occupy ``count`` FREE seats for a booking and take them off the counter

        Either every seat is claimed and the counter decremented, or the call
        raises and the enclosing scope rolls everything back.

        Raises:
            InsufficientCapacity: Fewer than ``count`` seats are FREE
            CapacityExceeded: The counter disagrees with the seat pool
        """
        if isinstance(count, bool) or not isinstance(count, int) or count <= 0:
            raise InvalidArgument(f"Seat count must be a positive integer, got {count!r}")

        free = scope.count_free_seats()
        if free < count:
            raise InsufficientCapacity(scope.flight_id, count, free)

        InventoryCounter.decrement(scope, count)

        seats = AllocationPolicy.select(scope, count)
        changed = scope.occupy_seats([seat.id for seat in seats], booking_id)
        if changed != count:
            logger.error(
                "Seat claim on flight %s marked %d of %d seats for booking %s",
                scope.flight_id, changed, count, booking_id
            )
            raise CapacityExceeded(
                f"Claimed {changed} of {count} seats on flight {scope.flight_id}"
            )

        return [replace(seat, is_available=False, booking_id=booking_id) for seat in seats]

    @staticmethod
    def release(scope, booking_id: int) -> List[Seat]:
        """
        Free every seat linked to a booking and clear the link

        Releasing a booking that holds no seats is a no-op. The counter is
        left to the caller, which knows how many seats the booking was
        entitled to.

        Returns:
            Seats released (now FREE)
        """
        released = scope.release_seats(booking_id)
        if released:
            logger.debug("Released %d seats of booking %s", len(released), booking_id)
        return released
