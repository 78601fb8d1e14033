"""
Command-line entry point for the flight seat inventory
"""
import argparse
import logging
import sys
from datetime import datetime

from backend.booking_service import BookingService
from backend.consistency import ConsistencyChecker
from backend.customer_service import CustomerService
from backend.flight_service import FlightService
from database import BookingStatus, ReservationError, get_settings
from database.database import init_db

logger = logging.getLogger(__name__)


def _parse_datetime(value: str) -> datetime:
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Expected ISO datetime (YYYY-MM-DDTHH:MM), got {value!r}")


def _print_booking(booking):
    seats = ', '.join(booking.seat_numbers) or '-'
    print(f"Booking {booking.booking_reference} (id={booking.id}) "
          f"flight={booking.flight_id} customer={booking.customer_id} "
          f"passengers={booking.passenger_count} status={booking.status.value} seats={seats}")


def cmd_init_db(args):
    init_db()
    print("Database ready!")
    return 0


def cmd_create_flight(args):
    flight = FlightService.create_flight(
        flight_number=args.flight_number,
        origin=args.origin,
        destination=args.destination,
        departure_time=args.departure,
        arrival_time=args.arrival,
        total_seats=args.seats,
        price=args.price
    )
    print(f"Created flight {flight.flight_number} (id={flight.id}) with {flight.total_seats} seats")
    return 0


def cmd_create_customer(args):
    customer = CustomerService.create_customer(args.first_name, args.last_name, args.email, args.phone)
    print(f"Created customer {customer.first_name} {customer.last_name} (id={customer.id})")
    return 0


def cmd_book(args):
    status = BookingStatus.CONFIRMED if args.confirm else BookingStatus.PENDING
    booking = BookingService.create_booking(
        customer_id=args.customer_id,
        flight_id=args.flight_id,
        passenger_count=args.passengers,
        total_amount=args.amount,
        status=status
    )
    _print_booking(booking)
    return 0


def cmd_confirm(args):
    _print_booking(BookingService.confirm_booking(args.booking_id))
    return 0


def cmd_cancel(args):
    _print_booking(BookingService.cancel_booking(args.booking_id))
    return 0


def cmd_show_booking(args):
    booking = BookingService.get_booking(args.booking_id)
    if not booking:
        print(f"Booking {args.booking_id} not found", file=sys.stderr)
        return 1
    _print_booking(booking)
    return 0


def cmd_audit(args):
    if args.flight_id:
        reports = [ConsistencyChecker.check_flight(args.flight_id)]
    else:
        reports = ConsistencyChecker.check_all()

    for report in reports:
        print(report.summary())
    return 0 if all(report.ok for report in reports) else 2


def cmd_reconcile(args):
    report = ConsistencyChecker.reconcile_flight(args.flight_id)
    print(report.summary())
    after = ConsistencyChecker.check_flight(args.flight_id)
    print("After repair:")
    print(after.summary())
    return 0 if after.ok else 2


def cmd_load_sample(args):
    from data.data_generator import DataGenerator
    DataGenerator().load_reference_dataset()
    print("Reference dataset loaded")
    return 0


def cmd_generate(args):
    from data.data_generator import DataGenerator
    result = DataGenerator(seed=args.seed).generate_sample_dataset(
        customers=args.customers, flights=args.flights, bookings=args.bookings
    )
    print(f"Generated {len(result['customers'])} customers, {len(result['flights'])} flights, "
          f"{len(result['booking_ids'])} bookings")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Flight seat inventory and booking engine")
    subparsers = parser.add_subparsers(dest='command', required=True)

    sub = subparsers.add_parser('init-db', help="Create the database tables")
    sub.set_defaults(func=cmd_init_db)

    sub = subparsers.add_parser('create-flight', help="Create a flight and its seats")
    sub.add_argument('flight_number')
    sub.add_argument('--origin', required=True)
    sub.add_argument('--destination', required=True)
    sub.add_argument('--departure', type=_parse_datetime, required=True)
    sub.add_argument('--arrival', type=_parse_datetime, required=True)
    sub.add_argument('--seats', type=int, required=True)
    sub.add_argument('--price', type=float, default=0.0)
    sub.set_defaults(func=cmd_create_flight)

    sub = subparsers.add_parser('create-customer', help="Create a customer")
    sub.add_argument('first_name')
    sub.add_argument('last_name')
    sub.add_argument('email')
    sub.add_argument('--phone')
    sub.set_defaults(func=cmd_create_customer)

    sub = subparsers.add_parser('book', help="Create a booking")
    sub.add_argument('customer_id', type=int)
    sub.add_argument('flight_id', type=int)
    sub.add_argument('--passengers', type=int, default=1)
    sub.add_argument('--amount', type=float, default=0.0)
    sub.add_argument('--confirm', action='store_true', help="Create the booking already confirmed")
    sub.set_defaults(func=cmd_book)

    for name, func, help_text in (
        ('confirm', cmd_confirm, "Confirm a pending booking"),
        ('cancel', cmd_cancel, "Cancel a booking"),
        ('show-booking', cmd_show_booking, "Show a booking"),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument('booking_id', type=int)
        sub.set_defaults(func=func)

    sub = subparsers.add_parser('audit', help="Check inventory invariants")
    sub.add_argument('--flight-id', type=int)
    sub.set_defaults(func=cmd_audit)

    sub = subparsers.add_parser('reconcile', help="Reset a flight's counter to its free seat count")
    sub.add_argument('flight_id', type=int)
    sub.set_defaults(func=cmd_reconcile)

    sub = subparsers.add_parser('load-sample', help="Load the reference dataset")
    sub.set_defaults(func=cmd_load_sample)

    sub = subparsers.add_parser('generate', help="Generate a random dataset")
    sub.add_argument('--customers', type=int, default=50)
    sub.add_argument('--flights', type=int, default=10)
    sub.add_argument('--bookings', type=int, default=200)
    sub.add_argument('--seed', type=int, help="Seed for reproducible data")
    sub.set_defaults(func=cmd_generate)

    return parser


def main(argv=None) -> int:
    """Main entry point"""
    logging.basicConfig(
        level=get_settings().log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )
    args = build_parser().parse_args(argv)

    try:
        return args.func(args)
    except ReservationError as e:
        logger.debug("Command failed", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except RuntimeError as e:
        # Pool creation failures
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
