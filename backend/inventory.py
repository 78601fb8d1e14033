"""
Per-flight available-seat counter
"""
import logging

from database import CapacityExceeded, InvalidArgument

logger = logging.getLogger(__name__)


def _require_positive(n) -> int:
    if isinstance(n, bool) or not isinstance(n, int) or n <= 0:
        raise InvalidArgument(f"Seat delta must be a positive integer, got {n!r}")
    return n


class InventoryCounter:
    """
    Keeps ``flights.available_seats`` in lockstep with the seat pool

    Both operations must run inside a flight scope so they commit or roll back
    together with the seat changes they accompany.
    """

    @staticmethod
    def decrement(scope, n: int) -> int:
        """
        Take ``n`` seats off the counter

        This is the guard the seat pool consults before marking seats occupied.

        Returns:
            New available_seats value

        Raises:
            CapacityExceeded: If the counter would go negative or fewer than
                ``n`` seats are actually FREE
        """
        _require_positive(n)
        flight = scope.flight
        free = scope.count_free_seats()

        if flight.available_seats - n < 0 or free < n:
            logger.error(
                "Inventory guard tripped on flight %s: decrement %d with available_seats=%d, free=%d",
                flight.id, n, flight.available_seats, free
            )
            raise CapacityExceeded(
                f"Cannot take {n} seat(s) from flight {flight.flight_number}: "
                f"available_seats={flight.available_seats}, free seats={free}"
            )

        return scope.adjust_available(-n)

    @staticmethod
    def increment(scope, n: int) -> int:
        """
        Return ``n`` seats to the counter

        Raises:
            CapacityExceeded: If the counter would exceed total_seats
        """
        _require_positive(n)
        flight = scope.flight

        if flight.available_seats + n > flight.total_seats:
            logger.error(
                "Inventory guard tripped on flight %s: increment %d with available_seats=%d, total=%d",
                flight.id, n, flight.available_seats, flight.total_seats
            )
            raise CapacityExceeded(
                f"Cannot return {n} seat(s) to flight {flight.flight_number}: "
                f"available_seats={flight.available_seats}, total_seats={flight.total_seats}"
            )

        return scope.adjust_available(n)
