"""Pytest configuration and fixtures."""
import os
import sys
from datetime import datetime, timedelta

import pytest

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from database import DatabaseManager, InMemoryDatabase, get_settings, set_db_manager
from backend.customer_service import CustomerService
from backend.flight_service import FlightService


def make_flight(flight_number: str, total_seats: int, price: float = 100.0):
    """Create a flight a week from now with ``total_seats`` provisioned seats."""
    departure = datetime.now().replace(microsecond=0) + timedelta(days=7)
    return FlightService.create_flight(
        flight_number=flight_number,
        origin='New York (JFK)',
        destination='Los Angeles (LAX)',
        departure_time=departure,
        arrival_time=departure + timedelta(hours=3),
        total_seats=total_seats,
        price=price
    )


def make_customers(count: int, prefix: str = 'user'):
    """Create ``count`` customers with distinct e-mail addresses."""
    return [
        CustomerService.create_customer(
            first_name=f'User{i}',
            last_name='Test',
            email=f'{prefix}{i}@test.com',
            phone_number=f'+1{i:010d}'
        )
        for i in range(count)
    ]


def pytest_addoption(parser):
    """Register custom CLI options for the test suite."""
    parser.addoption(
        "--performance",
        action="store_true",
        default=False,
        help="Run the performance test suite",
    )
    parser.addoption(
        "--performance-bookings",
        type=int,
        default=2000,
        help="Number of booking attempts for performance tests",
    )


def pytest_configure(config):
    """Declare custom markers to avoid pytest warnings."""
    config.addinivalue_line(
        "markers",
        "performance: marks performance tests that only run when --performance is supplied",
    )


def pytest_collection_modifyitems(config, items):
    """Skip performance tests unless the dedicated flag is present."""
    if config.getoption("--performance"):
        return

    skip_marker = pytest.mark.skip(
        reason="Performance tests only run when --performance flag is provided",
    )
    for item in items:
        if "performance" in item.keywords:
            item.add_marker(skip_marker)


def _postgres_manager():
    test_db_url = os.getenv('TEST_DATABASE_URL', get_settings().test_database_url)
    try:
        return DatabaseManager(database_url=test_db_url, echo=False)
    except RuntimeError as e:
        pytest.skip(f"PostgreSQL test database unavailable: {e}")


@pytest.fixture(scope='function', params=['memory', 'postgres'])
def db_manager(request):
    """Create a clean store; every test runs against both backends."""
    if request.param == 'memory':
        db = InMemoryDatabase()
    else:
        db = _postgres_manager()

    db.drop_tables()  # Clean slate for each test
    db.create_tables()
    set_db_manager(db)
    yield db
    set_db_manager(None)
    db.drop_tables()  # Cleanup after test
    db.close_all_connections()


@pytest.fixture(scope='function')
def test_customer(db_manager):
    """Create a test customer"""
    return CustomerService.create_customer(
        first_name='Alice',
        last_name='Smith',
        email='alice.smith@example.com',
        phone_number='123-456-7890'
    )


@pytest.fixture(scope='function')
def test_flight(db_manager):
    """Create a 150-seat test flight"""
    return make_flight('AA101', 150, price=250.0)


@pytest.fixture(scope='function')
def single_seat_flight(db_manager):
    """Create a flight with exactly one seat"""
    return make_flight('XS001', 1)
