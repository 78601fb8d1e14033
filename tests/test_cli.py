"""
Command-line interface tests
"""
from __future__ import annotations

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from backend.booking_service import BookingService
from backend.customer_service import CustomerService
from backend.flight_service import FlightService
from database import BookingStatus
from main import main


class TestCommands:
    """Run subcommands against the fixture store"""

    def test_booking_walkthrough(self, db_manager, capsys):
        """Create a flight and customer, book, show and cancel"""
        assert main(['create-flight', 'CL100', '--origin', 'Boston', '--destination', 'Miami',
                     '--departure', '2030-05-01T08:00', '--arrival', '2030-05-01T11:00',
                     '--seats', '10', '--price', '99.5']) == 0
        assert 'Created flight CL100' in capsys.readouterr().out

        assert main(['create-customer', 'Dana', 'Lee', 'dana@example.com']) == 0
        flight = FlightService.get_flight_by_number('CL100')
        customer = CustomerService.get_customer_by_email('dana@example.com')

        assert main(['book', str(customer.id), str(flight.id), '--passengers', '2', '--confirm']) == 0
        out = capsys.readouterr().out
        assert 'status=confirmed' in out
        assert 'seats=A001, A002' in out

        booking = BookingService.list_bookings(flight_id=flight.id)[0]
        assert main(['show-booking', str(booking.id)]) == 0
        assert booking.booking_reference in capsys.readouterr().out

        assert main(['cancel', str(booking.id)]) == 0
        assert 'status=cancelled' in capsys.readouterr().out
        assert FlightService.get_available_seats(flight.id) == 10

    def test_pending_then_confirm(self, db_manager, test_flight, test_customer, capsys):
        """Book without --confirm, then confirm"""
        assert main(['book', str(test_customer.id), str(test_flight.id)]) == 0
        assert 'status=pending' in capsys.readouterr().out

        booking = BookingService.list_bookings(flight_id=test_flight.id)[0]
        assert main(['confirm', str(booking.id)]) == 0
        assert BookingService.get_booking(booking.id).status == BookingStatus.CONFIRMED

    def test_errors_exit_non_zero(self, db_manager, test_flight, test_customer, capsys):
        """Rejected requests print the error and return 1"""
        assert main(['confirm', '999']) == 1
        assert 'Error' in capsys.readouterr().err

        assert main(['show-booking', '999']) == 1
        assert 'not found' in capsys.readouterr().err

        booking = BookingService.create_booking(test_customer.id, test_flight.id, 1)
        BookingService.cancel_booking(booking.id)
        assert main(['cancel', str(booking.id)]) == 1

    def test_over_length_input_exits_non_zero(self, db_manager, capsys):
        """Values too long for their columns are rejected, not raised"""
        assert main(['create-customer', 'x' * 60, 'Lee', 'long@example.com']) == 1
        assert 'first_name' in capsys.readouterr().err
        assert main(['create-flight', 'CL200', '--origin', 'x' * 60, '--destination', 'Miami',
                     '--departure', '2030-05-01T08:00', '--arrival', '2030-05-01T11:00',
                     '--seats', '10']) == 1
        assert 'origin' in capsys.readouterr().err
        assert CustomerService.get_customer_by_email('long@example.com') is None
        assert FlightService.get_flight_by_number('CL200') is None

    def test_audit_and_reconcile(self, db_manager, test_flight, capsys):
        """Audit returns 2 on drift; reconcile repairs the counter"""
        assert main(['audit']) == 0
        assert 'OK' in capsys.readouterr().out

        with db_manager.flight_scope(test_flight.id) as scope:
            scope.adjust_available(-3)

        assert main(['audit', '--flight-id', str(test_flight.id)]) == 2
        assert 'counter_vs_free_seats' in capsys.readouterr().out

        assert main(['reconcile', str(test_flight.id)]) == 0
        assert 'After repair' in capsys.readouterr().out
        assert FlightService.get_available_seats(test_flight.id) == 150

    def test_init_db_is_repeatable(self, db_manager, capsys):
        """Creating tables over an existing schema is harmless"""
        assert main(['init-db']) == 0
        assert main(['init-db']) == 0
        assert 'Database ready!' in capsys.readouterr().out

    def test_generate(self, db_manager, capsys):
        """Random data generation reports what it created"""
        assert main(['generate', '--customers', '5', '--flights', '2', '--bookings', '10',
                     '--seed', '3']) == 0
        assert 'Generated 5 customers' in capsys.readouterr().out
        assert main(['audit']) == 0

    def test_load_sample(self, db_manager, capsys):
        """The reference dataset loads through the CLI"""
        assert main(['load-sample']) == 0
        assert 'Reference dataset loaded' in capsys.readouterr().out
        assert main(['audit']) == 0
