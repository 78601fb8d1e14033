"""
Seat allocation policy: first fit by ascending seat label
"""
from typing import Iterable, List

from database import InsufficientCapacity, InvalidArgument, Seat


class AllocationPolicy:
    """Choose which FREE seats a booking receives"""

    @staticmethod
    def first_fit(seats: Iterable[Seat], count: int) -> List[Seat]:
        """
        Pick the ``count`` lowest-labelled FREE seats

        Args:
            seats: Candidate seats of one flight, in any order
            count: Number of seats wanted

        Returns:
            Chosen seats in ascending label order

        Raises:
            InvalidArgument: If count is not positive
            InsufficientCapacity: If fewer than count candidates are FREE
        """
        if count <= 0:
            raise InvalidArgument(f"Seat count must be positive, got {count}")

        free = sorted((seat for seat in seats if seat.is_available),
                      key=lambda seat: seat.seat_number)
        if len(free) < count:
            flight_id = free[0].flight_id if free else None
            raise InsufficientCapacity(flight_id, count, len(free))

        chosen = free[:count]
        if len({seat.id for seat in chosen}) != count:
            raise InvalidArgument("Candidate seats contain duplicates")
        return chosen

    @staticmethod
    def select(scope, count: int) -> List[Seat]:
        """Select seats for a claim from the flight held by ``scope``"""
        if count <= 0:
            raise InvalidArgument(f"Seat count must be positive, got {count}")
        candidates = scope.free_seats(limit=count)
        if len(candidates) < count:
            raise InsufficientCapacity(scope.flight_id, count, len(candidates))
        return AllocationPolicy.first_fit(candidates, count)
