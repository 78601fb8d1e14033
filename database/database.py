"""
Database connection and transaction management using raw PostgreSQL
Seat pool and counter mutations run inside flight-scoped transactions that
hold the flight row lock (SELECT ... FOR UPDATE) for their whole duration
"""
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterable, List, Optional

import psycopg2
from psycopg2 import errors, extras, pool, sql
from psycopg2.extensions import (
    ISOLATION_LEVEL_READ_COMMITTED,
    ISOLATION_LEVEL_REPEATABLE_READ,
    TransactionRollbackError,
)
from psycopg2.extras import RealDictCursor

from .config import Settings, get_settings
from .exceptions import Busy, CapacityExceeded, InvalidArgument, NotFound, RetryableConflict
from .models import (
    Booking, BookingStatus, Customer, Flight, Seat,
    row_to_booking, row_to_customer, row_to_flight, row_to_seat,
)

logger = logging.getLogger(__name__)

_FLIGHT_COLS = """id, flight_number, origin, destination, departure_time, arrival_time,
    total_seats, available_seats, price, created_at, updated_at"""

_SEAT_COLS = "id, flight_id, seat_number, is_available, booking_id"

_CUSTOMER_COLS = "id, first_name, last_name, email, phone_number, created_at"

# Booking columns with the labels of the seats currently linked to it
_BOOKING_COLS = """b.id, b.booking_reference, b.customer_id, b.flight_id, b.passenger_count,
    b.total_amount, b.status, b.booking_date, b.updated_at,
    ARRAY(SELECT s.seat_number FROM seats s
          WHERE s.booking_id = b.id ORDER BY s.seat_number) AS seat_numbers"""


def _translate_error(exc: Exception) -> Optional[Exception]:
    """Map driver errors onto the reservation error taxonomy"""
    if isinstance(exc, (errors.LockNotAvailable, errors.QueryCanceled)):
        return Busy("Flight inventory is locked by another transaction; retry later")
    if isinstance(exc, TransactionRollbackError):
        return RetryableConflict(f"Transient database conflict: {exc.pgerror or exc}")
    if isinstance(exc, errors.ForeignKeyViolation):
        return NotFound(f"Referenced record does not exist ({exc.diag.constraint_name})")
    if isinstance(exc, errors.UniqueViolation):
        return InvalidArgument(f"Duplicate value violates {exc.diag.constraint_name}")
    if isinstance(exc, errors.CheckViolation):
        if exc.diag.constraint_name == 'flights_available_seats_check':
            return CapacityExceeded("available_seats would leave [0, total_seats]")
        return InvalidArgument(f"Value violates {exc.diag.constraint_name}")
    if isinstance(exc, psycopg2.DataError):
        # Values the column types cannot hold
        return InvalidArgument(f"Invalid value: {exc.pgerror or exc}")
    return None


class PostgresFlightScope:
    """
    Operations on one flight's inventory inside an open transaction

    Instances are only handed out by DatabaseManager.flight_scope(), after the
    flight row has been locked.
    """

    def __init__(self, conn, flight_id: int, echo: bool = False):
        self.conn = conn
        self.flight_id = flight_id
        self.echo = echo
        self.cursor = conn.cursor(cursor_factory=RealDictCursor)

    def _execute(self, query, params=()):
        if self.echo:
            logger.debug(self.cursor.mogrify(query, params).decode())
        self.cursor.execute(query, params)

    def close(self):
        self.cursor.close()

    def lock(self, lock_timeout_ms: int, read_only: bool = False):
        """Lock the flight row, waiting at most ``lock_timeout_ms``"""
        self._execute("SET LOCAL lock_timeout = %s", (f"{int(lock_timeout_ms)}ms",))
        query = "SELECT id FROM flights WHERE id = %s"
        if not read_only:
            query += " FOR UPDATE"
        self._execute(query, (self.flight_id,))
        if not self.cursor.fetchone():
            raise NotFound(f"Flight with ID {self.flight_id} not found")

    @property
    def flight(self) -> Flight:
        self._execute(f"SELECT {_FLIGHT_COLS} FROM flights WHERE id = %s", (self.flight_id,))
        return row_to_flight(self.cursor.fetchone())

    def customer_exists(self, customer_id: int) -> bool:
        self._execute("SELECT 1 FROM customers WHERE id = %s", (customer_id,))
        return self.cursor.fetchone() is not None

    def seat_count(self) -> int:
        self._execute("SELECT COUNT(*) AS n FROM seats WHERE flight_id = %s", (self.flight_id,))
        return self.cursor.fetchone()['n']

    def count_free_seats(self) -> int:
        self._execute("""
            SELECT COUNT(*) AS n FROM seats
            WHERE flight_id = %s AND is_available = TRUE
        """, (self.flight_id,))
        return self.cursor.fetchone()['n']

    def free_seats(self, limit: Optional[int] = None) -> List[Seat]:
        """FREE seats in ascending label order"""
        self._execute(f"""
            SELECT {_SEAT_COLS} FROM seats
            WHERE flight_id = %s AND is_available = TRUE
            ORDER BY seat_number ASC
            LIMIT %s
        """, (self.flight_id, limit))
        return [row_to_seat(row) for row in self.cursor.fetchall()]

    def seats(self) -> List[Seat]:
        self._execute(f"""
            SELECT {_SEAT_COLS} FROM seats
            WHERE flight_id = %s
            ORDER BY seat_number ASC
        """, (self.flight_id,))
        return [row_to_seat(row) for row in self.cursor.fetchall()]

    def seats_for_booking(self, booking_id: int) -> List[Seat]:
        self._execute(f"""
            SELECT {_SEAT_COLS} FROM seats
            WHERE flight_id = %s AND booking_id = %s
            ORDER BY seat_number ASC
        """, (self.flight_id, booking_id))
        return [row_to_seat(row) for row in self.cursor.fetchall()]

    def insert_seats(self, labels: Iterable[str]) -> int:
        rows = [(self.flight_id, label, True) for label in labels]
        if not rows:
            return 0
        extras.execute_values(
            self.cursor,
            "INSERT INTO seats (flight_id, seat_number, is_available) VALUES %s",
            rows,
            page_size=500
        )
        return len(rows)

    def occupy_seats(self, seat_ids: List[int], booking_id: int) -> int:
        """Mark the given FREE seats occupied by ``booking_id``; returns rows changed"""
        self._execute("""
            UPDATE seats
            SET is_available = FALSE, booking_id = %s
            WHERE flight_id = %s AND id = ANY(%s) AND is_available = TRUE
        """, (booking_id, self.flight_id, list(seat_ids)))
        return self.cursor.rowcount

    def release_seats(self, booking_id: int) -> List[Seat]:
        self._execute(f"""
            UPDATE seats
            SET is_available = TRUE, booking_id = NULL
            WHERE flight_id = %s AND booking_id = %s
            RETURNING {_SEAT_COLS}
        """, (self.flight_id, booking_id))
        released = [row_to_seat(row) for row in self.cursor.fetchall()]
        return sorted(released, key=lambda seat: seat.seat_number)

    def adjust_available(self, delta: int) -> int:
        self._execute("""
            UPDATE flights
            SET available_seats = available_seats + %s, updated_at = NOW()
            WHERE id = %s
            RETURNING available_seats
        """, (delta, self.flight_id))
        return self.cursor.fetchone()['available_seats']

    def set_available(self, value: int) -> int:
        self._execute("""
            UPDATE flights
            SET available_seats = %s, updated_at = NOW()
            WHERE id = %s
            RETURNING available_seats
        """, (value, self.flight_id))
        return self.cursor.fetchone()['available_seats']

    def reference_exists(self, booking_reference: str) -> bool:
        self._execute("SELECT 1 FROM bookings WHERE booking_reference = %s", (booking_reference,))
        return self.cursor.fetchone() is not None

    def insert_booking(self, booking_reference: str, customer_id: int, passenger_count: int,
                       total_amount: float, status: BookingStatus) -> Booking:
        self._execute("""
            INSERT INTO bookings
            (booking_reference, customer_id, flight_id, passenger_count, total_amount,
             status, booking_date, updated_at)
            VALUES (%s, %s, %s, %s, %s, %s, NOW(), NOW())
            RETURNING id
        """, (booking_reference, customer_id, self.flight_id, passenger_count,
              total_amount, status.value))
        booking_id = self.cursor.fetchone()['id']
        return self.get_booking(booking_id)

    def get_booking(self, booking_id: int) -> Optional[Booking]:
        """Load (and row-lock) a booking belonging to this flight"""
        self._execute(f"""
            SELECT {_BOOKING_COLS}
            FROM bookings b
            WHERE b.id = %s AND b.flight_id = %s
            FOR UPDATE OF b
        """, (booking_id, self.flight_id))
        return row_to_booking(self.cursor.fetchone())

    def set_booking_status(self, booking_id: int, status: BookingStatus):
        self._execute("""
            UPDATE bookings
            SET status = %s, updated_at = NOW()
            WHERE id = %s AND flight_id = %s
        """, (status.value, booking_id, self.flight_id))

    def bookings(self, statuses: Optional[Iterable[BookingStatus]] = None) -> List[Booking]:
        query = f"SELECT {_BOOKING_COLS} FROM bookings b WHERE b.flight_id = %s"
        params = [self.flight_id]
        if statuses is not None:
            query += " AND b.status = ANY(%s)"
            params.append([status.value for status in statuses])
        self._execute(query + " ORDER BY b.id", params)
        return [row_to_booking(row) for row in self.cursor.fetchall()]


class DatabaseManager:
    """
    Database manager with transaction support and connection pooling
    """

    def __init__(self, database_url=None, echo=False, settings: Optional[Settings] = None):
        """
        Initialize database manager

        Args:
            database_url: Database connection URL (defaults to DATABASE_URL)
            echo: Whether to log SQL statements at debug level
            settings: Settings override (defaults to the environment)
        """
        self.settings = settings or get_settings()
        self.database_url = database_url or self.settings.database_url
        self.echo = echo or self.settings.db_echo

        try:
            self.connection_pool = pool.ThreadedConnectionPool(
                minconn=self.settings.db_pool_min,
                maxconn=self.settings.db_pool_max,
                dsn=self.database_url
            )
        except psycopg2.Error as e:
            raise RuntimeError(f"Failed to create database connection pool: {e}") from e

    def get_connection(self):
        """Get a connection from the pool"""
        return self.connection_pool.getconn()

    def return_connection(self, conn):
        """Return a connection to the pool"""
        self.connection_pool.putconn(conn)

    def close_all_connections(self):
        """Close all connections in the pool"""
        if self.connection_pool:
            self.connection_pool.closeall()

    def create_tables(self):
        """Create all database tables from schema"""
        schema_file = Path(__file__).parent / 'schema.sql'

        if not schema_file.exists():
            raise FileNotFoundError(f"Schema file not found: {schema_file}")

        schema_sql = schema_file.read_text()

        conn = self.get_connection()
        try:
            with conn.cursor() as cursor:
                cursor.execute(schema_sql)
            conn.commit()
        finally:
            self.return_connection(conn)

    def drop_tables(self):
        """Drop all inventory tables (use with caution!)"""
        conn = self.get_connection()
        try:
            with conn.cursor() as cursor:
                for table in ('seats', 'bookings', 'flights', 'customers'):
                    cursor.execute(sql.SQL("DROP TABLE IF EXISTS {} CASCADE").format(
                        sql.Identifier(table)
                    ))
            conn.commit()
        finally:
            self.return_connection(conn)

    @contextmanager
    def transaction(self, isolation_level=None):
        """
        Provide a transactional scope with a connection

        Driver errors are rolled back and re-raised as reservation errors.

        Usage:
            with db.transaction() as conn:
                with conn.cursor() as cursor:
                    cursor.execute("INSERT INTO customers ...")
        """
        conn = self.get_connection()
        conn.set_isolation_level(isolation_level or ISOLATION_LEVEL_READ_COMMITTED)

        try:
            yield conn
            conn.commit()
        except Exception as e:
            conn.rollback()
            translated = _translate_error(e)
            if translated is not None:
                raise translated from e
            raise
        finally:
            self.return_connection(conn)

    @contextmanager
    def get_cursor(self, isolation_level=None, cursor_factory=None):
        """
        Get a cursor with automatic connection management

        Usage:
            with db.get_cursor() as cursor:
                cursor.execute("SELECT * FROM flights")
                results = cursor.fetchall()
        """
        with self.transaction(isolation_level=isolation_level) as conn:
            cursor = conn.cursor(cursor_factory=cursor_factory or RealDictCursor)
            try:
                yield cursor
            finally:
                cursor.close()

    @contextmanager
    def flight_scope(self, flight_id: int, lock_timeout_ms: Optional[int] = None,
                     read_only: bool = False):
        """
        Open an atomic unit over one flight's seats, counter and bookings

        Writers lock the flight row; concurrent writers on the same flight
        queue behind it for at most ``lock_timeout_ms`` before Busy is raised.
        Read-only scopes take a REPEATABLE READ snapshot instead of the lock.
        """
        timeout = self.settings.lock_timeout_ms if lock_timeout_ms is None else lock_timeout_ms
        isolation = ISOLATION_LEVEL_REPEATABLE_READ if read_only else ISOLATION_LEVEL_READ_COMMITTED

        with self.transaction(isolation_level=isolation) as conn:
            scope = PostgresFlightScope(conn, flight_id, echo=self.echo)
            try:
                scope.lock(timeout, read_only=read_only)
                yield scope
            finally:
                scope.close()

    @contextmanager
    def create_flight_scope(self, flight_number: str, origin: str, destination: str,
                            departure_time, arrival_time, total_seats: int, price: float):
        """Insert a flight and open a scope on it within the same transaction"""
        with self.transaction() as conn:
            with conn.cursor(cursor_factory=RealDictCursor) as cursor:
                cursor.execute("""
                    INSERT INTO flights (flight_number, origin, destination, departure_time,
                                         arrival_time, total_seats, available_seats, price)
                    VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
                    RETURNING id
                """, (flight_number, origin, destination, departure_time, arrival_time,
                      total_seats, total_seats, price))
                flight_id = cursor.fetchone()['id']

            scope = PostgresFlightScope(conn, flight_id, echo=self.echo)
            try:
                yield scope
            finally:
                scope.close()

    def insert_customer(self, first_name: str, last_name: str, email: str,
                        phone_number: Optional[str] = None) -> Customer:
        with self.get_cursor() as cursor:
            cursor.execute(f"""
                INSERT INTO customers (first_name, last_name, email, phone_number)
                VALUES (%s, %s, %s, %s)
                RETURNING {_CUSTOMER_COLS}
            """, (first_name, last_name, email, phone_number))
            return row_to_customer(cursor.fetchone())

    def get_customer(self, customer_id: int) -> Optional[Customer]:
        with self.get_cursor() as cursor:
            cursor.execute(f"SELECT {_CUSTOMER_COLS} FROM customers WHERE id = %s", (customer_id,))
            return row_to_customer(cursor.fetchone())

    def get_customer_by_email(self, email: str) -> Optional[Customer]:
        with self.get_cursor() as cursor:
            cursor.execute(f"SELECT {_CUSTOMER_COLS} FROM customers WHERE email = %s", (email,))
            return row_to_customer(cursor.fetchone())

    def get_flight(self, flight_id: int) -> Optional[Flight]:
        with self.get_cursor() as cursor:
            cursor.execute(f"SELECT {_FLIGHT_COLS} FROM flights WHERE id = %s", (flight_id,))
            return row_to_flight(cursor.fetchone())

    def get_flight_by_number(self, flight_number: str) -> Optional[Flight]:
        with self.get_cursor() as cursor:
            cursor.execute(f"SELECT {_FLIGHT_COLS} FROM flights WHERE flight_number = %s",
                           (flight_number,))
            return row_to_flight(cursor.fetchone())

    def list_flights(self) -> List[Flight]:
        with self.get_cursor() as cursor:
            cursor.execute(f"SELECT {_FLIGHT_COLS} FROM flights ORDER BY id")
            return [row_to_flight(row) for row in cursor.fetchall()]

    def list_seats(self, flight_id: int) -> List[Seat]:
        with self.get_cursor() as cursor:
            cursor.execute(f"""
                SELECT {_SEAT_COLS} FROM seats
                WHERE flight_id = %s
                ORDER BY seat_number ASC
            """, (flight_id,))
            return [row_to_seat(row) for row in cursor.fetchall()]

    def get_booking(self, booking_id: int) -> Optional[Booking]:
        with self.get_cursor() as cursor:
            cursor.execute(f"SELECT {_BOOKING_COLS} FROM bookings b WHERE b.id = %s", (booking_id,))
            return row_to_booking(cursor.fetchone())

    def get_booking_by_reference(self, booking_reference: str) -> Optional[Booking]:
        with self.get_cursor() as cursor:
            cursor.execute(f"SELECT {_BOOKING_COLS} FROM bookings b WHERE b.booking_reference = %s",
                           (booking_reference,))
            return row_to_booking(cursor.fetchone())

    def list_bookings(self, customer_id: Optional[int] = None, flight_id: Optional[int] = None,
                      status: Optional[BookingStatus] = None, limit: int = 100,
                      offset: int = 0) -> List[Booking]:
        conditions = []
        params = []

        if customer_id is not None:
            conditions.append("b.customer_id = %s")
            params.append(customer_id)
        if flight_id is not None:
            conditions.append("b.flight_id = %s")
            params.append(flight_id)
        if status is not None:
            conditions.append("b.status = %s")
            params.append(status.value)

        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        params.extend([limit, offset])

        with self.get_cursor() as cursor:
            cursor.execute(f"""
                SELECT {_BOOKING_COLS}
                FROM bookings b
                {where}
                ORDER BY b.id
                LIMIT %s OFFSET %s
            """, params)
            return [row_to_booking(row) for row in cursor.fetchall()]


# Global database manager instance
_db_manager = None


def create_db_manager(database_url: Optional[str] = None, settings: Optional[Settings] = None):
    """Build the store named by ``database_url`` (``memory://`` selects the in-process store)"""
    settings = settings or get_settings()
    url = database_url or settings.database_url
    if url.startswith('memory://'):
        from .memory import InMemoryDatabase
        return InMemoryDatabase(settings=settings)
    return DatabaseManager(database_url=url, settings=settings)


def get_db_manager():
    """Get or create global database manager instance"""
    global _db_manager
    if _db_manager is None:
        _db_manager = create_db_manager()
    return _db_manager


def set_db_manager(db_manager) -> None:
    """Override the global database manager instance.

    This is primarily used in test fixtures so that the service layer operates on
    the test store instead of the default production database.
    Passing ``None`` resets the singleton so the next
    ``get_db_manager`` call recreates it with default settings.
    """
    global _db_manager
    _db_manager = db_manager


def init_db():
    """Initialize database with tables"""
    db_manager = get_db_manager()
    db_manager.create_tables()
    logger.info("Database initialized")
