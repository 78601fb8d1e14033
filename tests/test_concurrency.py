"""
Concurrency tests for simultaneous booking scenarios
Tests atomicity of transitions and that seats are never double-assigned
"""
from __future__ import annotations

import sys
from pathlib import Path

import pytest
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from backend.booking_service import BookingService
from backend.consistency import ConsistencyChecker
from backend.flight_service import FlightService
from database import (
    BookingStatus, Busy, InsufficientCapacity, InvalidArgument, ReservationError, RetryableConflict
)
from tests.conftest import make_customers, make_flight


def run_concurrently(func, args_list, max_workers=None):
    """Start every call at the same time; return (successes, failures)"""
    barrier = threading.Barrier(len(args_list))

    def call(args):
        barrier.wait()
        try:
            return ('success', func(*args))
        except ReservationError as e:
            return ('failed', e)

    successes, failures = [], []
    with ThreadPoolExecutor(max_workers=max_workers or len(args_list)) as executor:
        futures = [executor.submit(call, args) for args in args_list]
        for future in as_completed(futures):
            status, result = future.result()
            (successes if status == 'success' else failures).append(result)
    return successes, failures


class TestConcurrentBooking:
    """Test concurrent booking operations"""

    def test_last_seat_race(self, db_manager, single_seat_flight):
        """Two customers race for the only seat: exactly one wins"""
        customers = make_customers(2)
        bookings = [BookingService.create_booking(c.id, single_seat_flight.id, 1) for c in customers]

        successes, failures = run_concurrently(
            BookingService.confirm_booking, [(b.id,) for b in bookings]
        )

        assert len(successes) == 1
        assert len(failures) == 1
        assert isinstance(failures[0], InsufficientCapacity)
        assert successes[0].seat_numbers == ['A001']
        assert FlightService.get_available_seats(single_seat_flight.id) == 0
        assert ConsistencyChecker.check_flight(single_seat_flight.id).ok

    def test_no_overbooking(self, db_manager):
        """20 customers book directly confirmed onto 10 seats"""
        flight = make_flight('TEST001', 10)
        customers = make_customers(20)

        successes, failures = run_concurrently(
            lambda customer_id: BookingService.create_booking(
                customer_id, flight.id, 1, status=BookingStatus.CONFIRMED
            ),
            [(c.id,) for c in customers]
        )

        assert len(successes) == 10  # Only 10 seats available
        assert len(failures) == 10
        assert all(isinstance(e, InsufficientCapacity) for e in failures)

        # Verify no double booking
        seat_numbers = [seat for b in successes for seat in b.seat_numbers]
        assert len(seat_numbers) == len(set(seat_numbers)) == 10

        assert FlightService.get_available_seats(flight.id) == 0
        # Failed creations left nothing behind
        assert len(BookingService.list_bookings(flight_id=flight.id)) == 10
        assert ConsistencyChecker.check_flight(flight.id).ok

    def test_multi_seat_requests(self, db_manager):
        """Group bookings are seated whole or not at all"""
        flight = make_flight('TEST002', 10)
        customers = make_customers(6)
        bookings = [BookingService.create_booking(c.id, flight.id, 3) for c in customers]

        successes, failures = run_concurrently(
            BookingService.confirm_booking, [(b.id,) for b in bookings]
        )

        assert len(successes) == 3
        assert len(failures) == 3
        for booking in successes:
            assert len(booking.seat_numbers) == 3
        assert FlightService.get_available_seats(flight.id) == 1
        assert ConsistencyChecker.check_flight(flight.id).ok

    def test_concurrent_booking_and_cancellation(self, db_manager, test_flight):
        """Confirms and cancels interleave without drifting the counter"""
        customers = make_customers(10)
        confirmed = [
            BookingService.create_booking(c.id, test_flight.id, 2, status=BookingStatus.CONFIRMED)
            for c in customers[:5]
        ]
        pending = [BookingService.create_booking(c.id, test_flight.id, 2) for c in customers[5:]]
        assert FlightService.get_available_seats(test_flight.id) == 140

        calls = ([(BookingService.cancel_booking, b.id) for b in confirmed] +
                 [(BookingService.confirm_booking, b.id) for b in pending])
        successes, failures = run_concurrently(lambda func, booking_id: func(booking_id), calls)

        assert failures == []
        assert len(successes) == 10
        assert FlightService.get_available_seats(test_flight.id) == 140
        assert ConsistencyChecker.check_flight(test_flight.id).ok

    def test_double_cancel_race(self, db_manager, test_flight, test_customer):
        """Only one of two simultaneous cancels returns the seats"""
        booking = BookingService.create_booking(test_customer.id, test_flight.id, 4,
                                                status=BookingStatus.CONFIRMED)

        successes, failures = run_concurrently(
            BookingService.cancel_booking, [(booking.id,), (booking.id,)]
        )

        assert len(successes) == 1
        assert len(failures) == 1
        assert FlightService.get_available_seats(test_flight.id) == 150
        assert ConsistencyChecker.check_flight(test_flight.id).ok


class TestLocking:
    """Test lock timeouts and transient conflict retries"""

    def test_busy_when_flight_locked(self, db_manager, test_flight, test_customer, monkeypatch):
        """A writer that cannot get the flight lock in time raises Busy"""
        monkeypatch.setattr(db_manager.settings, 'lock_timeout_ms', 50)
        holding = threading.Event()
        release = threading.Event()

        def hold_lock():
            with db_manager.flight_scope(test_flight.id):
                holding.set()
                release.wait(timeout=10)

        holder = threading.Thread(target=hold_lock)
        holder.start()
        try:
            assert holding.wait(timeout=10)
            with pytest.raises(Busy):
                BookingService.create_booking(test_customer.id, test_flight.id, 1)
        finally:
            release.set()
            holder.join()

        # Once the lock is free the same request goes through
        booking = BookingService.create_booking(test_customer.id, test_flight.id, 1)
        assert booking.status == BookingStatus.PENDING

    def test_retries_transient_conflicts(self, db_manager, test_flight, test_customer, monkeypatch):
        """Serialization failures are retried and then succeed"""
        monkeypatch.setattr(db_manager.settings, 'booking_retry_delay', 0)
        original = BookingService._create_booking_transaction
        attempts = []

        def flaky(*args):
            attempts.append(1)
            if len(attempts) < 3:
                raise RetryableConflict("could not serialize access")
            return original(*args)

        monkeypatch.setattr(BookingService, '_create_booking_transaction', staticmethod(flaky))

        booking = BookingService.create_booking(test_customer.id, test_flight.id, 2,
                                                status=BookingStatus.CONFIRMED)
        assert len(attempts) == 3
        assert booking.status == BookingStatus.CONFIRMED
        assert FlightService.get_available_seats(test_flight.id) == 148

    def test_gives_up_after_max_retries(self, db_manager, test_flight, test_customer, monkeypatch):
        """Persistent conflicts surface as Busy"""
        monkeypatch.setattr(db_manager.settings, 'booking_retry_delay', 0)
        monkeypatch.setattr(db_manager.settings, 'booking_max_retries', 3)
        attempts = []

        def always_conflict(*args):
            attempts.append(1)
            raise RetryableConflict("deadlock detected")

        monkeypatch.setattr(BookingService, '_transition_transaction', staticmethod(always_conflict))
        booking = BookingService.create_booking(test_customer.id, test_flight.id, 1)

        with pytest.raises(Busy) as excinfo:
            BookingService.confirm_booking(booking.id)
        assert not isinstance(excinfo.value, RetryableConflict)
        assert len(attempts) == 3
        assert BookingService.get_booking(booking.id).status == BookingStatus.PENDING


class TestFlightCreationVisibility:
    """Readers never see a flight whose creation is rolled back"""

    def test_list_flights_during_failed_creation(self, db_manager, monkeypatch):
        """Listing while a creation fails returns only committed flights"""
        from backend.seat_pool import SeatPool

        make_flight('OK001', 3)
        provisioning = threading.Event()
        errors = []

        def failing_provision(scope, capacity, prefix=None):
            provisioning.set()
            time.sleep(0.3)
            raise InvalidArgument("provisioning failed")

        monkeypatch.setattr(SeatPool, 'provision', staticmethod(failing_provision))

        def create():
            try:
                make_flight('RB001', 5)
            except InvalidArgument as e:
                errors.append(e)

        creator = threading.Thread(target=create)
        creator.start()
        try:
            assert provisioning.wait(timeout=10)
            flights = FlightService.list_flights()
            reports = ConsistencyChecker.check_all()
        finally:
            creator.join()

        assert len(errors) == 1
        assert None not in flights
        assert [f.flight_number for f in flights] == ['OK001']
        assert [r.flight_number for r in reports] == ['OK001']
        assert FlightService.get_flight_by_number('RB001') is None
