"""
Consistency checker for flight inventory

Recomputes what ``available_seats`` should be from the seat pool and from the
confirmed bookings and reports every disagreement. It never raises for a
mismatch and never runs as part of a booking transition.
"""
import enum
import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from database import Booking, BookingStatus, Flight, Seat, get_db_manager
from .validation import require_id

logger = logging.getLogger(__name__)


class MismatchKind(enum.Enum):
    """Kinds of inventory drift"""
    COUNTER_OUT_OF_RANGE = "counter_out_of_range"
    COUNTER_VS_FREE_SEATS = "counter_vs_free_seats"
    COUNTER_VS_CONFIRMED = "counter_vs_confirmed_bookings"
    SEAT_COUNT_VS_CAPACITY = "seat_count_vs_capacity"
    BOOKING_SEAT_COUNT = "booking_seat_count"
    SEAT_HELD_BY_INACTIVE_BOOKING = "seat_held_by_inactive_booking"
    SEAT_LINK = "seat_link"


@dataclass(frozen=True)
class ConsistencyMismatch:
    """One detected disagreement"""
    kind: MismatchKind
    expected: Optional[int]
    actual: Optional[int]
    detail: str

    def __str__(self):
        return f"[{self.kind.value}] {self.detail} (expected={self.expected}, actual={self.actual})"


@dataclass
class ConsistencyReport:
    """Result of auditing one flight"""
    flight_id: int
    flight_number: str
    total_seats: int
    available_seats: int
    seat_count: int
    free_seats: int
    confirmed_passengers: int
    mismatches: List[ConsistencyMismatch] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.mismatches

    @property
    def occupied_seats(self) -> int:
        return self.seat_count - self.free_seats

    def summary(self) -> str:
        status = "OK" if self.ok else f"{len(self.mismatches)} mismatch(es)"
        lines = [
            f"Flight {self.flight_number} (id={self.flight_id}): {status}",
            f"  total={self.total_seats} available={self.available_seats} "
            f"free={self.free_seats} occupied={self.occupied_seats} "
            f"confirmed_passengers={self.confirmed_passengers}",
        ]
        lines.extend(f"  {mismatch}" for mismatch in self.mismatches)
        return "\n".join(lines)


class ConsistencyChecker:
    """Audit (and, on explicit request, repair) flight inventory"""

    @staticmethod
    def evaluate(flight: Flight, seats: Iterable[Seat], bookings: Iterable[Booking]) -> ConsistencyReport:
        """Compare a flight snapshot against its seats and bookings"""
        seats = list(seats)
        bookings_by_id = {booking.id: booking for booking in bookings}
        confirmed = [b for b in bookings_by_id.values() if b.status == BookingStatus.CONFIRMED]

        free = sum(1 for seat in seats if seat.is_available)
        confirmed_passengers = sum(b.passenger_count for b in confirmed)
        mismatches = []

        if not 0 <= flight.available_seats <= flight.total_seats:
            mismatches.append(ConsistencyMismatch(
                MismatchKind.COUNTER_OUT_OF_RANGE, None, flight.available_seats,
                f"available_seats outside [0, {flight.total_seats}]"
            ))

        if len(seats) != flight.total_seats:
            mismatches.append(ConsistencyMismatch(
                MismatchKind.SEAT_COUNT_VS_CAPACITY, flight.total_seats, len(seats),
                "seat records do not match total_seats"
            ))

        if flight.available_seats != free:
            mismatches.append(ConsistencyMismatch(
                MismatchKind.COUNTER_VS_FREE_SEATS, free, flight.available_seats,
                "available_seats differs from the number of FREE seats"
            ))

        if flight.total_seats - flight.available_seats != confirmed_passengers:
            mismatches.append(ConsistencyMismatch(
                MismatchKind.COUNTER_VS_CONFIRMED, flight.total_seats - confirmed_passengers,
                flight.available_seats,
                "available_seats differs from total_seats minus confirmed passengers"
            ))

        held = {}
        for seat in seats:
            if seat.is_available != (seat.booking_id is None):
                mismatches.append(ConsistencyMismatch(
                    MismatchKind.SEAT_LINK, None, seat.booking_id,
                    f"seat {seat.seat_number} is_available={seat.is_available} "
                    f"but booking_id={seat.booking_id}"
                ))
            if seat.booking_id is None:
                continue
            held[seat.booking_id] = held.get(seat.booking_id, 0) + 1
            owner = bookings_by_id.get(seat.booking_id)
            if owner is None or owner.status != BookingStatus.CONFIRMED:
                state = owner.status.value if owner else "missing"
                mismatches.append(ConsistencyMismatch(
                    MismatchKind.SEAT_HELD_BY_INACTIVE_BOOKING, None, seat.booking_id,
                    f"seat {seat.seat_number} is linked to a {state} booking"
                ))

        for booking in confirmed:
            count = held.get(booking.id, 0)
            if count != booking.passenger_count:
                mismatches.append(ConsistencyMismatch(
                    MismatchKind.BOOKING_SEAT_COUNT, booking.passenger_count, count,
                    f"confirmed booking {booking.booking_reference} holds {count} seat(s)"
                ))

        return ConsistencyReport(
            flight_id=flight.id,
            flight_number=flight.flight_number,
            total_seats=flight.total_seats,
            available_seats=flight.available_seats,
            seat_count=len(seats),
            free_seats=free,
            confirmed_passengers=confirmed_passengers,
            mismatches=mismatches
        )

    @staticmethod
    def _evaluate_scope(scope) -> ConsistencyReport:
        return ConsistencyChecker.evaluate(scope.flight, scope.seats(), scope.bookings())

    @staticmethod
    def check_flight(flight_id: int) -> ConsistencyReport:
        """Audit one flight from a consistent snapshot"""
        with get_db_manager().flight_scope(require_id(flight_id, 'flight_id'), read_only=True) as scope:
            report = ConsistencyChecker._evaluate_scope(scope)

        if not report.ok:
            logger.warning("Inventory drift on flight %s: %s", report.flight_number,
                           "; ".join(str(m) for m in report.mismatches))
        return report

    @staticmethod
    def check_all() -> List[ConsistencyReport]:
        """Audit every flight"""
        return [ConsistencyChecker.check_flight(flight.id)
                for flight in get_db_manager().list_flights()]

    @staticmethod
    def reconcile_flight(flight_id: int) -> ConsistencyReport:
        """
        Operator repair: reset available_seats to the FREE seat count

        Only the counter is touched; seat links and booking states that
        disagree are left for manual investigation.

        Returns:
            The report taken before the repair
        """
        with get_db_manager().flight_scope(require_id(flight_id, 'flight_id')) as scope:
            report = ConsistencyChecker._evaluate_scope(scope)
            if report.available_seats != report.free_seats and report.free_seats <= report.total_seats:
                scope.set_available(report.free_seats)
                logger.warning("Reset available_seats on flight %s from %d to %d",
                               report.flight_number, report.available_seats, report.free_seats)
        return report
