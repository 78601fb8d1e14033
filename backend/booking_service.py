"""
Booking service: the booking lifecycle state machine
Every transition runs in one flight-scoped atomic unit together with the seat
pool and inventory counter changes it causes
"""
import logging
import random
import string
import time
from typing import Callable, List, Optional, TypeVar, Union

from database import (
    Booking, BookingStatus, Busy, InvalidArgument, NotFound, RetryableConflict,
    TerminalStateViolation, get_db_manager, get_settings
)
from .inventory import InventoryCounter
from .seat_pool import SeatPool
from .validation import require_amount, require_count, require_id

logger = logging.getLogger(__name__)

T = TypeVar('T')

# Allowed edges; None is "booking does not exist yet".
# CONFIRMED -> CONFIRMED is handled separately as an idempotent no-op.
TRANSITIONS = {
    None: {BookingStatus.PENDING, BookingStatus.CONFIRMED},
    BookingStatus.PENDING: {BookingStatus.CONFIRMED, BookingStatus.CANCELLED},
    BookingStatus.CONFIRMED: {BookingStatus.CANCELLED},
    BookingStatus.CANCELLED: set(),
}


class BookingService:
    """Service for booking operations with transaction safety"""

    @staticmethod
    def _generate_booking_reference() -> str:
        """Generate a booking reference"""
        # Format: 6 random alphanumeric characters
        return ''.join(random.choices(string.ascii_uppercase + string.digits, k=6))

    @staticmethod
    def _with_retry(operation: Callable[[], T]) -> T:
        """Run ``operation``, retrying transient database conflicts with backoff"""
        settings = get_settings()
        max_retries = max(1, settings.booking_max_retries)
        retry_delay = settings.booking_retry_delay

        for attempt in range(max_retries):
            try:
                return operation()
            except RetryableConflict as e:
                if attempt < max_retries - 1:
                    logger.warning("Transient conflict (attempt %d/%d): %s", attempt + 1, max_retries, e)
                    time.sleep(retry_delay * (2 ** attempt))  # Exponential backoff
                    continue
                raise Busy("Unable to complete booking due to high concurrency. Please try again.") from e

    @staticmethod
    def _apply_transition(scope, booking: Booking, target: BookingStatus) -> bool:
        """
        Apply one lifecycle edge inside an open flight scope

        Returns:
            True if anything changed, False for an idempotent no-op
        """
        current = booking.status

        if current == BookingStatus.CANCELLED:
            raise TerminalStateViolation(
                f"Booking {booking.booking_reference} is cancelled and cannot become {target.value}"
            )

        if target == current:
            logger.debug("Booking %s is already %s", booking.booking_reference, current.value)
            return False

        if target not in TRANSITIONS[current]:
            raise InvalidArgument(
                f"Invalid booking transition: {current.value} -> {target.value}"
            )

        if target == BookingStatus.CONFIRMED:
            seats = SeatPool.claim(scope, booking.id, booking.passenger_count)
            logger.info("Booking %s confirmed on flight %s with seats %s",
                        booking.booking_reference, booking.flight_id,
                        ', '.join(seat.seat_number for seat in seats))

        elif target == BookingStatus.CANCELLED:
            released = SeatPool.release(scope, booking.id)
            # Entitlement comes from the booking itself, not from what was linked
            if current == BookingStatus.CONFIRMED:
                if len(released) != booking.passenger_count:
                    logger.warning(
                        "Booking %s held %d seat(s) but was confirmed for %d",
                        booking.booking_reference, len(released), booking.passenger_count
                    )
                InventoryCounter.increment(scope, booking.passenger_count)
            logger.info("Booking %s cancelled (was %s)", booking.booking_reference, current.value)

        scope.set_booking_status(booking.id, target)
        return True

    @staticmethod
    def create_booking(customer_id: int, flight_id: int, passenger_count: int,
                       total_amount: float = 0.0,
                       status: BookingStatus = BookingStatus.PENDING) -> Booking:
        """
        Create a booking, either PENDING or directly CONFIRMED

        Args:
            customer_id: Customer ID
            flight_id: Flight ID
            passenger_count: Number of seats requested
            total_amount: Amount charged (informational)
            status: Initial status, PENDING or CONFIRMED

        Returns:
            Created booking object

        Raises:
            InvalidArgument: Bad ids, passenger count, amount or status
            NotFound: Unknown customer or flight
            InsufficientCapacity: Creating CONFIRMED without enough free seats
        """
        require_id(customer_id, 'customer_id')
        require_id(flight_id, 'flight_id')
        require_count(passenger_count, 'passenger_count')
        require_amount(total_amount, 'total_amount')

        status = BookingService._coerce_status(status)
        if status not in TRANSITIONS[None]:
            raise InvalidArgument(f"A booking cannot be created as {status.value}")

        return BookingService._with_retry(
            lambda: BookingService._create_booking_transaction(
                get_db_manager(), customer_id, flight_id, passenger_count, total_amount, status
            )
        )

    @staticmethod
    def _create_booking_transaction(db_manager, customer_id: int, flight_id: int,
                                    passenger_count: int, total_amount: float,
                                    status: BookingStatus) -> Booking:
        """Internal method to perform the actual booking transaction"""
        with db_manager.flight_scope(flight_id) as scope:
            if not scope.customer_exists(customer_id):
                raise NotFound(f"Customer with ID {customer_id} not found")

            # Generate unique booking reference
            booking_reference = BookingService._generate_booking_reference()
            while scope.reference_exists(booking_reference):
                booking_reference = BookingService._generate_booking_reference()

            booking = scope.insert_booking(
                booking_reference, customer_id, passenger_count,
                total_amount, BookingStatus.PENDING
            )
            logger.info("Booking %s created for customer %s on flight %s (%d passenger(s))",
                        booking_reference, customer_id, flight_id, passenger_count)

            if status == BookingStatus.CONFIRMED:
                BookingService._apply_transition(scope, booking, BookingStatus.CONFIRMED)

            return scope.get_booking(booking.id)

    @staticmethod
    def _coerce_status(status: Union[BookingStatus, str]) -> BookingStatus:
        if isinstance(status, BookingStatus):
            return status
        try:
            return BookingStatus(str(status).lower())
        except ValueError:
            raise InvalidArgument(f"Unknown booking status {status!r}") from None

    @staticmethod
    def transition(booking_id: int, target_status: Union[BookingStatus, str]) -> Booking:
        """
        Move a booking to ``target_status``

        Args:
            booking_id: Booking ID
            target_status: CONFIRMED or CANCELLED

        Returns:
            Updated booking object

        Raises:
            NotFound: Unknown booking
            TerminalStateViolation: The booking is cancelled
            InsufficientCapacity: Not enough free seats to confirm
            Busy: The flight stayed locked past the lock timeout
        """
        require_id(booking_id, 'booking_id')
        target = BookingService._coerce_status(target_status)

        return BookingService._with_retry(
            lambda: BookingService._transition_transaction(get_db_manager(), booking_id, target)
        )

    @staticmethod
    def _transition_transaction(db_manager, booking_id: int, target: BookingStatus) -> Booking:
        existing = db_manager.get_booking(booking_id)
        if not existing:
            raise NotFound(f"Booking with ID {booking_id} not found")

        with db_manager.flight_scope(existing.flight_id) as scope:
            # Re-read under the flight lock; the unlocked read may be stale
            booking = scope.get_booking(booking_id)
            BookingService._apply_transition(scope, booking, target)
            return scope.get_booking(booking_id)

    @staticmethod
    def confirm_booking(booking_id: int) -> Booking:
        """
        Confirm a booking, claiming its seats

        Confirming an already confirmed booking changes nothing.
        """
        return BookingService.transition(booking_id, BookingStatus.CONFIRMED)

    @staticmethod
    def cancel_booking(booking_id: int) -> Booking:
        """
        Cancel a booking, releasing any seats it holds

        Raises:
            TerminalStateViolation: If the booking is already cancelled
        """
        return BookingService.transition(booking_id, BookingStatus.CANCELLED)

    @staticmethod
    def cancel_bookings_for_flight(flight_id: int) -> int:
        """Cancel all active bookings tied to the given flight in one atomic unit"""
        require_id(flight_id, 'flight_id')

        def cancel_all() -> int:
            with get_db_manager().flight_scope(flight_id) as scope:
                cancelled = 0
                for booking in scope.bookings([BookingStatus.PENDING, BookingStatus.CONFIRMED]):
                    if BookingService._apply_transition(scope, booking, BookingStatus.CANCELLED):
                        cancelled += 1
                return cancelled

        cancelled = BookingService._with_retry(cancel_all)
        logger.info("Cancelled %d booking(s) on flight %s", cancelled, flight_id)
        return cancelled

    @staticmethod
    def get_booking(booking_id: int) -> Optional[Booking]:
        """Get booking by ID"""
        return get_db_manager().get_booking(require_id(booking_id, 'booking_id'))

    @staticmethod
    def get_booking_by_reference(booking_reference: str) -> Optional[Booking]:
        """Get booking by its reference code"""
        if not booking_reference or not isinstance(booking_reference, str):
            raise InvalidArgument(f"Malformed booking reference: {booking_reference!r}")
        return get_db_manager().get_booking_by_reference(booking_reference.strip().upper())

    @staticmethod
    def list_bookings(customer_id: Optional[int] = None, flight_id: Optional[int] = None,
                      status: Optional[BookingStatus] = None, limit: int = 100,
                      offset: int = 0) -> List[Booking]:
        """
        List bookings with filters

        Args:
            customer_id: Filter by customer ID (optional)
            flight_id: Filter by flight ID (optional)
            status: Filter by status (optional)
            limit: Maximum number of results
            offset: Offset for pagination

        Returns:
            List of bookings ordered by ID
        """
        if customer_id is not None:
            require_id(customer_id, 'customer_id')
        if flight_id is not None:
            require_id(flight_id, 'flight_id')
        if status is not None:
            status = BookingService._coerce_status(status)
        return get_db_manager().list_bookings(
            customer_id=customer_id, flight_id=flight_id, status=status,
            limit=limit, offset=offset
        )
