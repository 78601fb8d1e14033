"""
Records of the flight seat inventory: customers, flights, seats and bookings
Dataclasses filled from RealDictCursor rows by the row_to_* helpers
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional
import enum


class BookingStatus(enum.Enum):
    """Booking status enumeration"""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class SeatState(enum.Enum):
    """Seat occupancy enumeration"""
    FREE = "free"
    OCCUPIED = "occupied"


@dataclass
class Customer:
    """Customer contact record"""
    id: Optional[int] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone_number: Optional[str] = None
    created_at: Optional[datetime] = None

    def __repr__(self):
        return f"<Customer(id={self.id}, name='{self.first_name} {self.last_name}', email='{self.email}')>"


@dataclass
class Flight:
    """Flight model with schedule and seat capacity"""
    id: Optional[int] = None
    flight_number: Optional[str] = None
    origin: Optional[str] = None
    destination: Optional[str] = None
    departure_time: Optional[datetime] = None
    arrival_time: Optional[datetime] = None
    total_seats: Optional[int] = None
    available_seats: Optional[int] = None
    price: Optional[float] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def booked_seats(self) -> int:
        return self.total_seats - self.available_seats

    def __repr__(self):
        return (f"<Flight(id={self.id}, number='{self.flight_number}', "
                f"available={self.available_seats}/{self.total_seats})>")


@dataclass
class Seat:
    """One allocatable unit of a flight's capacity"""
    id: Optional[int] = None
    flight_id: Optional[int] = None
    seat_number: Optional[str] = None
    is_available: bool = True
    # Lookup only; the booking owns the relationship
    booking_id: Optional[int] = None

    @property
    def state(self) -> SeatState:
        return SeatState.FREE if self.is_available else SeatState.OCCUPIED

    def __repr__(self):
        return (f"<Seat(id={self.id}, flight_id={self.flight_id}, number='{self.seat_number}', "
                f"state={self.state.value}, booking_id={self.booking_id})>")


@dataclass
class Booking:
    """Booking of N seats on one flight for one customer"""
    id: Optional[int] = None
    booking_reference: Optional[str] = None
    customer_id: Optional[int] = None
    flight_id: Optional[int] = None
    passenger_count: Optional[int] = None
    total_amount: Optional[float] = None
    status: Optional[BookingStatus] = None
    booking_date: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    # Labels of the seats currently linked to this booking
    seat_numbers: List[str] = field(default_factory=list)

    @property
    def is_active(self) -> bool:
        return self.status in (BookingStatus.PENDING, BookingStatus.CONFIRMED)

    def __repr__(self):
        return (f"<Booking(id={self.id}, ref='{self.booking_reference}', "
                f"passengers={self.passenger_count}, status={self.status.value if self.status else None})>")


def row_to_customer(row) -> Customer:
    """Convert database row to Customer object"""
    if not row:
        return None
    return Customer(
        id=row['id'],
        first_name=row['first_name'],
        last_name=row['last_name'],
        email=row['email'],
        phone_number=row.get('phone_number'),
        created_at=row.get('created_at')
    )


def row_to_flight(row) -> Flight:
    """Convert database row to Flight object"""
    if not row:
        return None
    return Flight(
        id=row['id'],
        flight_number=row['flight_number'],
        origin=row['origin'],
        destination=row['destination'],
        departure_time=row['departure_time'],
        arrival_time=row['arrival_time'],
        total_seats=row['total_seats'],
        available_seats=row['available_seats'],
        price=float(row['price']) if row.get('price') is not None else None,
        created_at=row.get('created_at'),
        updated_at=row.get('updated_at')
    )


def row_to_seat(row) -> Seat:
    """Convert database row to Seat object"""
    if not row:
        return None
    return Seat(
        id=row['id'],
        flight_id=row['flight_id'],
        seat_number=row['seat_number'],
        is_available=row['is_available'],
        booking_id=row.get('booking_id')
    )


def row_to_booking(row) -> Booking:
    """Convert database row to Booking object"""
    if not row:
        return None
    return Booking(
        id=row['id'],
        booking_reference=row['booking_reference'],
        customer_id=row['customer_id'],
        flight_id=row['flight_id'],
        passenger_count=row['passenger_count'],
        total_amount=float(row['total_amount']) if row.get('total_amount') is not None else None,
        status=BookingStatus(row['status']) if row['status'] else None,
        booking_date=row.get('booking_date'),
        updated_at=row.get('updated_at'),
        seat_numbers=list(row.get('seat_numbers') or [])
    )
