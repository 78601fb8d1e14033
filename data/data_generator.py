"""
Sample data loader for the seat inventory
Loads the reference dataset and generates random datasets for load testing
"""
import logging
import random
from datetime import datetime, timedelta
from typing import List, Optional

from faker import Faker

from backend.booking_service import BookingService
from backend.customer_service import CustomerService
from backend.flight_service import FlightService
from database import BookingStatus, ReservationError

logger = logging.getLogger(__name__)

REFERENCE_CUSTOMERS = [
    ('Alice', 'Smith', 'alice.smith@example.com', '123-456-7890'),
    ('Bob', 'Johnson', 'bob.johnson@example.com', '987-654-3210'),
    ('Charlie', 'Brown', 'charlie.brown@example.com', '555-123-4567'),
]

REFERENCE_FLIGHTS = [
    ('AA101', 'New York', 'Los Angeles', datetime(2025, 8, 1, 8, 0), datetime(2025, 8, 1, 11, 0), 150, 250.00),
    ('BA202', 'London', 'Paris', datetime(2025, 8, 5, 10, 30), datetime(2025, 8, 5, 11, 30), 100, 120.50),
    ('CA303', 'Tokyo', 'Seoul', datetime(2025, 8, 10, 14, 0), datetime(2025, 8, 10, 16, 0), 200, 300.00),
    ('AA102', 'Los Angeles', 'New York', datetime(2025, 8, 1, 12, 0), datetime(2025, 8, 1, 15, 0), 150, 240.00),
]

# (customer index, flight number, passengers, amount)
REFERENCE_BOOKINGS = [
    (0, 'AA101', 2, 500.00),
    (1, 'BA202', 1, 120.50),
]


class DataGenerator:
    """Generate sample data for the seat inventory"""

    def __init__(self, seed: Optional[int] = None):
        """
        Initialize data generator

        Args:
            seed: Random seed for reproducibility
        """
        if seed is not None:
            random.seed(seed)
            Faker.seed(seed)

        self.faker = Faker()

        # Common airports
        self.airports = [
            ('JFK', 'New York'),
            ('LAX', 'Los Angeles'),
            ('ORD', 'Chicago'),
            ('DFW', 'Dallas'),
            ('DEN', 'Denver'),
            ('SFO', 'San Francisco'),
            ('SEA', 'Seattle'),
            ('LAS', 'Las Vegas'),
            ('MIA', 'Miami'),
            ('ATL', 'Atlanta'),
            ('BOS', 'Boston'),
            ('LHR', 'London'),
            ('CDG', 'Paris'),
            ('HND', 'Tokyo'),
            ('ICN', 'Seoul'),
        ]

        # Typical cabin sizes
        self.capacities = [50, 100, 150, 180, 200, 300]

    def load_reference_dataset(self) -> dict:
        """
        Load the fixed reference dataset: 3 customers, flights AA101, BA202, CA303, AA102 and
        two bookings that are created pending and then confirmed

        Returns:
            Mapping with the created customers, flights and bookings
        """
        customers = [
            CustomerService.create_customer(first, last, email, phone)
            for first, last, email, phone in REFERENCE_CUSTOMERS
        ]

        flights = {}
        for number, origin, destination, departure, arrival, seats, price in REFERENCE_FLIGHTS:
            flights[number] = FlightService.create_flight(
                flight_number=number,
                origin=origin,
                destination=destination,
                departure_time=departure,
                arrival_time=arrival,
                total_seats=seats,
                price=price
            )

        bookings = []
        for customer_index, flight_number, passengers, amount in REFERENCE_BOOKINGS:
            booking = BookingService.create_booking(
                customer_id=customers[customer_index].id,
                flight_id=flights[flight_number].id,
                passenger_count=passengers,
                total_amount=amount
            )
            bookings.append(BookingService.confirm_booking(booking.id))

        logger.info("Loaded reference dataset: %d customers, %d flights, %d bookings",
                    len(customers), len(flights), len(bookings))
        return {'customers': customers, 'flights': list(flights.values()), 'bookings': bookings}

    def generate_customers(self, count: int = 100) -> List:
        """
        Generate customers

        Args:
            count: Number of customers to generate

        Returns:
            List of created customers
        """
        customers = []
        logger.info("Generating %d customers...", count)

        for _ in range(count):
            try:
                customer = CustomerService.create_customer(
                    first_name=self.faker.first_name(),
                    last_name=self.faker.last_name(),
                    email=self.faker.unique.email(),
                    phone_number=self.faker.bothify(text='+1-###-###-####')[:20]
                )
                customers.append(customer)
            except ReservationError as e:
                logger.warning("Error creating customer: %s", e)

        logger.info("Generated %d customers", len(customers))
        return customers

    def generate_flights(self, count: int = 20, days_ahead: int = 30) -> List:
        """
        Generate flights with provisioned seat pools

        Args:
            count: Number of flights to generate
            days_ahead: Number of days ahead to schedule flights

        Returns:
            List of created flights
        """
        flights = []
        logger.info("Generating %d flights...", count)

        for _ in range(count):
            origin_code, origin_city = random.choice(self.airports)
            dest_code, dest_city = random.choice(self.airports)
            while dest_code == origin_code:
                dest_code, dest_city = random.choice(self.airports)

            departure = datetime.now().replace(second=0, microsecond=0) + timedelta(
                days=random.randint(0, days_ahead),
                hours=random.randint(0, 23),
                minutes=random.choice([0, 15, 30, 45])
            )
            arrival = departure + timedelta(hours=random.randint(1, 12))
            flight_number = f"{random.choice(['AA', 'UA', 'DL', 'BA', 'LH'])}{random.randint(100, 99999)}"

            try:
                flight = FlightService.create_flight(
                    flight_number=flight_number,
                    origin=f"{origin_city} ({origin_code})",
                    destination=f"{dest_city} ({dest_code})",
                    departure_time=departure,
                    arrival_time=arrival,
                    total_seats=random.choice(self.capacities),
                    price=round(random.uniform(80, 900), 2)
                )
                flights.append(flight)
            except ReservationError as e:
                logger.warning("Error creating flight %s: %s", flight_number, e)

        logger.info("Generated %d flights", len(flights))
        return flights

    def generate_bookings(self, customer_ids: list, flight_ids: list, count: int = 200,
                          confirm_rate: float = 0.8, cancel_rate: float = 0.1) -> List[int]:
        """
        Generate bookings and walk them through the lifecycle

        Args:
            customer_ids: Customer IDs to book for
            flight_ids: Flight IDs to book on
            count: Number of bookings to create
            confirm_rate: Share of bookings that get confirmed
            cancel_rate: Share of bookings that get cancelled afterwards

        Returns:
            IDs of the created bookings
        """
        booking_ids = []
        logger.info("Generating %d bookings...", count)

        for _ in range(count):
            try:
                booking = BookingService.create_booking(
                    customer_id=random.choice(customer_ids),
                    flight_id=random.choice(flight_ids),
                    passenger_count=random.choices([1, 2, 3, 4], weights=[50, 30, 12, 8])[0],
                    total_amount=round(random.uniform(80, 2000), 2)
                )
                booking_ids.append(booking.id)

                if random.random() < confirm_rate:
                    booking = BookingService.confirm_booking(booking.id)
                if random.random() < cancel_rate:
                    BookingService.cancel_booking(booking.id)
            except ReservationError as e:
                # Sold-out flights are expected with random demand
                logger.debug("Booking skipped: %s", e)

        logger.info("Generated %d bookings", len(booking_ids))
        return booking_ids

    def generate_sample_dataset(self, customers: int = 50, flights: int = 10,
                                bookings: int = 200) -> dict:
        """Generate a complete random dataset"""
        created_customers = self.generate_customers(customers)
        created_flights = self.generate_flights(flights)

        booking_ids = []
        if created_customers and created_flights:
            booking_ids = self.generate_bookings(
                [c.id for c in created_customers],
                [f.id for f in created_flights],
                count=bookings
            )

        confirmed = len(BookingService.list_bookings(status=BookingStatus.CONFIRMED, limit=bookings))
        logger.info("Dataset ready: %d confirmed of %d bookings", confirmed, len(booking_ids))
        return {
            'customers': created_customers,
            'flights': created_flights,
            'booking_ids': booking_ids,
        }
