"""
In-process store with the same contract as DatabaseManager

Each flight has its own re-entrant lock. A flight scope holds that lock for
its whole duration and records an undo entry before every write, so a failed
unit is rolled back before the lock is released. Readers take the same lock,
so they never observe a half-applied unit. The registry lock only guards
id allocation and the unique indexes; it is never held while waiting for a
flight lock.
"""
import itertools
import logging
import threading
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional

from .config import Settings, get_settings
from .exceptions import Busy, CapacityExceeded, InvalidArgument, NotFound
from .models import Booking, BookingStatus, Customer, Flight, Seat

logger = logging.getLogger(__name__)

_MISSING = object()


class MemoryFlightScope:
    """Operations on one flight's inventory while its lock is held"""

    def __init__(self, db: "InMemoryDatabase", flight_id: int):
        self.db = db
        self.flight_id = flight_id
        self._undo: List[Callable[[], None]] = []

    def _record(self, table: dict, key):
        old = table.get(key, _MISSING)

        def undo():
            if old is _MISSING:
                table.pop(key, None)
            else:
                table[key] = old

        self._undo.append(undo)

    def rollback(self):
        while self._undo:
            self._undo.pop()()

    def _seat_ids(self) -> List[int]:
        # Index values are kept in label order
        return list(self.db._seat_index.get(self.flight_id, {}).values())

    @property
    def flight(self) -> Flight:
        return replace(self.db._flights[self.flight_id])

    def customer_exists(self, customer_id: int) -> bool:
        return customer_id in self.db._customers

    def seat_count(self) -> int:
        return len(self.db._seat_index.get(self.flight_id, {}))

    def count_free_seats(self) -> int:
        return sum(1 for seat_id in self._seat_ids() if self.db._seats[seat_id].is_available)

    def free_seats(self, limit: Optional[int] = None) -> List[Seat]:
        free = (self.db._seats[seat_id] for seat_id in self._seat_ids()
                if self.db._seats[seat_id].is_available)
        return [replace(seat) for seat in itertools.islice(free, limit)]

    def seats(self) -> List[Seat]:
        return [replace(self.db._seats[seat_id]) for seat_id in self._seat_ids()]

    def seats_for_booking(self, booking_id: int) -> List[Seat]:
        return [seat for seat in self.seats() if seat.booking_id == booking_id]

    def insert_seats(self, labels: Iterable[str]) -> int:
        index = dict(self.db._seat_index.get(self.flight_id, {}))
        new_ids = []
        for label in labels:
            if label in index:
                raise InvalidArgument(f"Seat {label} already exists on flight {self.flight_id}")
            seat_id = self.db._next_id('seats')
            index[label] = seat_id
            new_ids.append((seat_id, label))

        for seat_id, label in new_ids:
            self._record(self.db._seats, seat_id)
            self.db._seats[seat_id] = Seat(id=seat_id, flight_id=self.flight_id,
                                           seat_number=label, is_available=True)

        self._record(self.db._seat_index, self.flight_id)
        self.db._seat_index[self.flight_id] = dict(sorted(index.items()))
        return len(new_ids)

    def occupy_seats(self, seat_ids: List[int], booking_id: int) -> int:
        changed = 0
        for seat_id in seat_ids:
            seat = self.db._seats.get(seat_id)
            if seat is None or seat.flight_id != self.flight_id or not seat.is_available:
                continue
            self._record(self.db._seats, seat_id)
            self.db._seats[seat_id] = replace(seat, is_available=False, booking_id=booking_id)
            changed += 1
        return changed

    def release_seats(self, booking_id: int) -> List[Seat]:
        released = []
        for seat_id in self._seat_ids():
            seat = self.db._seats[seat_id]
            if seat.booking_id != booking_id:
                continue
            self._record(self.db._seats, seat_id)
            self.db._seats[seat_id] = replace(seat, is_available=True, booking_id=None)
            released.append(replace(self.db._seats[seat_id]))
        return released

    def _write_available(self, value: int) -> int:
        flight = self.db._flights[self.flight_id]
        if not 0 <= value <= flight.total_seats:
            raise CapacityExceeded(
                f"available_seats={value} outside [0, {flight.total_seats}] on flight {self.flight_id}"
            )
        self._record(self.db._flights, self.flight_id)
        self.db._flights[self.flight_id] = replace(flight, available_seats=value,
                                                   updated_at=datetime.now())
        return value

    def adjust_available(self, delta: int) -> int:
        return self._write_available(self.db._flights[self.flight_id].available_seats + delta)

    def set_available(self, value: int) -> int:
        return self._write_available(value)

    def reference_exists(self, booking_reference: str) -> bool:
        return booking_reference in self.db._references

    def insert_booking(self, booking_reference: str, customer_id: int, passenger_count: int,
                       total_amount: float, status: BookingStatus) -> Booking:
        if customer_id not in self.db._customers:
            raise NotFound(f"Customer with ID {customer_id} not found")
        if passenger_count is None or passenger_count <= 0:
            raise InvalidArgument("passenger_count must be positive")
        if total_amount < 0:
            raise InvalidArgument("total_amount must not be negative")

        now = datetime.now()
        with self.db._registry_lock:
            if booking_reference in self.db._references:
                raise InvalidArgument(f"Duplicate booking reference {booking_reference}")
            booking_id = self.db._next_id('bookings')
            self._record(self.db._references, booking_reference)
            self.db._references[booking_reference] = booking_id
            self._record(self.db._bookings, booking_id)
            self.db._bookings[booking_id] = Booking(
                id=booking_id,
                booking_reference=booking_reference,
                customer_id=customer_id,
                flight_id=self.flight_id,
                passenger_count=passenger_count,
                total_amount=total_amount,
                status=status,
                booking_date=now,
                updated_at=now
            )
        return self.get_booking(booking_id)

    def get_booking(self, booking_id: int) -> Optional[Booking]:
        booking = self.db._bookings.get(booking_id)
        if booking is None or booking.flight_id != self.flight_id:
            return None
        labels = [seat.seat_number for seat in self.seats_for_booking(booking_id)]
        return replace(booking, seat_numbers=labels)

    def set_booking_status(self, booking_id: int, status: BookingStatus):
        booking = self.db._bookings[booking_id]
        self._record(self.db._bookings, booking_id)
        self.db._bookings[booking_id] = replace(booking, status=status, updated_at=datetime.now())

    def bookings(self, statuses: Optional[Iterable[BookingStatus]] = None) -> List[Booking]:
        wanted = set(statuses) if statuses is not None else None
        booking_ids = sorted(
            booking.id for booking in list(self.db._bookings.values())
            if booking.flight_id == self.flight_id
            and (wanted is None or booking.status in wanted)
        )
        return [self.get_booking(booking_id) for booking_id in booking_ids]


class InMemoryDatabase:
    """
    Thread-safe in-process store

    Offers the same operations as DatabaseManager so the services run
    unchanged against either one.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.echo = self.settings.db_echo
        self._registry_lock = threading.RLock()
        self.drop_tables()

    def _next_id(self, table: str) -> int:
        with self._registry_lock:
            return next(self._counters[table])

    def create_tables(self):
        """Nothing to create; kept for parity with DatabaseManager"""

    def drop_tables(self):
        with self._registry_lock:
            self._counters = {name: itertools.count(1)
                              for name in ('customers', 'flights', 'seats', 'bookings')}
            self._customers: Dict[int, Customer] = {}
            self._emails: Dict[str, int] = {}
            self._flights: Dict[int, Flight] = {}
            self._flight_numbers: Dict[str, int] = {}
            self._flight_locks: Dict[int, threading.RLock] = {}
            self._seats: Dict[int, Seat] = {}
            self._seat_index: Dict[int, Dict[str, int]] = {}
            self._bookings: Dict[int, Booking] = {}
            self._references: Dict[str, int] = {}

    def close_all_connections(self):
        """No connections to close"""

    def _flight_lock(self, flight_id: int) -> threading.RLock:
        with self._registry_lock:
            lock = self._flight_locks.get(flight_id)
        if lock is None:
            raise NotFound(f"Flight with ID {flight_id} not found")
        return lock

    @contextmanager
    def _locked(self, flight_id: int, lock_timeout_ms: Optional[int] = None):
        lock = self._flight_lock(flight_id)
        timeout = self.settings.lock_timeout_ms if lock_timeout_ms is None else lock_timeout_ms
        if not lock.acquire(timeout=max(timeout, 0) / 1000):
            raise Busy(f"Flight {flight_id} inventory is locked by another transaction; retry later")
        try:
            # The flight may have been rolled back while we waited
            if flight_id not in self._flights:
                raise NotFound(f"Flight with ID {flight_id} not found")
            yield
        finally:
            lock.release()

    @contextmanager
    def flight_scope(self, flight_id: int, lock_timeout_ms: Optional[int] = None,
                     read_only: bool = False):
        """Open an atomic unit over one flight; rolled back if the block raises"""
        with self._locked(flight_id, lock_timeout_ms):
            scope = MemoryFlightScope(self, flight_id)
            try:
                yield scope
            except BaseException:
                scope.rollback()
                raise

    @contextmanager
    def create_flight_scope(self, flight_number: str, origin: str, destination: str,
                            departure_time, arrival_time, total_seats: int, price: float):
        """Insert a flight and open a scope on it; the insert is undone on failure"""
        if total_seats is None or total_seats <= 0:
            raise InvalidArgument("total_seats must be positive")
        if departure_time >= arrival_time:
            raise InvalidArgument("departure_time must be before arrival_time")

        lock = threading.RLock()
        now = datetime.now()
        with self._registry_lock:
            if flight_number in self._flight_numbers:
                raise InvalidArgument(f"Flight number {flight_number} already exists")
            flight_id = next(self._counters['flights'])
            self._flights[flight_id] = Flight(
                id=flight_id,
                flight_number=flight_number,
                origin=origin,
                destination=destination,
                departure_time=departure_time,
                arrival_time=arrival_time,
                total_seats=total_seats,
                available_seats=total_seats,
                price=price,
                created_at=now,
                updated_at=now
            )
            self._flight_numbers[flight_number] = flight_id
            # Not yet visible to anyone else, so this never blocks
            lock.acquire()
            self._flight_locks[flight_id] = lock

        scope = MemoryFlightScope(self, flight_id)
        try:
            yield scope
        except BaseException:
            scope.rollback()
            with self._registry_lock:
                self._flights.pop(flight_id, None)
                self._flight_numbers.pop(flight_number, None)
                self._flight_locks.pop(flight_id, None)
                self._seat_index.pop(flight_id, None)
            raise
        finally:
            lock.release()

    def insert_customer(self, first_name: str, last_name: str, email: str,
                        phone_number: Optional[str] = None) -> Customer:
        with self._registry_lock:
            if email in self._emails:
                raise InvalidArgument(f"Customer with email {email} already exists")
            customer_id = next(self._counters['customers'])
            customer = Customer(id=customer_id, first_name=first_name, last_name=last_name,
                                email=email, phone_number=phone_number,
                                created_at=datetime.now())
            self._customers[customer_id] = customer
            self._emails[email] = customer_id
            return replace(customer)

    def get_customer(self, customer_id: int) -> Optional[Customer]:
        customer = self._customers.get(customer_id)
        return replace(customer) if customer else None

    def get_customer_by_email(self, email: str) -> Optional[Customer]:
        with self._registry_lock:
            customer_id = self._emails.get(email)
        return self.get_customer(customer_id) if customer_id else None

    def get_flight(self, flight_id: int) -> Optional[Flight]:
        if flight_id not in self._flights:
            return None
        try:
            with self._locked(flight_id):
                return replace(self._flights[flight_id])
        except NotFound:
            return None

    def get_flight_by_number(self, flight_number: str) -> Optional[Flight]:
        with self._registry_lock:
            flight_id = self._flight_numbers.get(flight_number)
        return self.get_flight(flight_id) if flight_id else None

    def list_flights(self) -> List[Flight]:
        with self._registry_lock:
            flight_ids = sorted(self._flights)
        # Flights whose creation rolled back while we waited come back as None
        flights = (self.get_flight(flight_id) for flight_id in flight_ids)
        return [flight for flight in flights if flight is not None]

    def list_seats(self, flight_id: int) -> List[Seat]:
        if flight_id not in self._flights:
            return []
        with self._locked(flight_id):
            return MemoryFlightScope(self, flight_id).seats()

    def get_booking(self, booking_id: int) -> Optional[Booking]:
        booking = self._bookings.get(booking_id)
        if booking is None:
            return None
        with self._locked(booking.flight_id):
            return MemoryFlightScope(self, booking.flight_id).get_booking(booking_id)

    def get_booking_by_reference(self, booking_reference: str) -> Optional[Booking]:
        with self._registry_lock:
            booking_id = self._references.get(booking_reference)
        return self.get_booking(booking_id) if booking_id else None

    def list_bookings(self, customer_id: Optional[int] = None, flight_id: Optional[int] = None,
                      status: Optional[BookingStatus] = None, limit: int = 100,
                      offset: int = 0) -> List[Booking]:
        with self._registry_lock:
            candidates = sorted(self._bookings.values(), key=lambda booking: booking.id)

        results = []
        for candidate in candidates:
            booking = self.get_booking(candidate.id)
            if booking is None:
                continue
            if customer_id is not None and booking.customer_id != customer_id:
                continue
            if flight_id is not None and booking.flight_id != flight_id:
                continue
            if status is not None and booking.status != status:
                continue
            results.append(booking)
        return results[offset:offset + limit]
