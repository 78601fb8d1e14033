"""
Error taxonomy for the seat inventory engine

Every rejected request raises a ReservationError. It subclasses ValueError so
callers that only care about "the request was refused" can keep catching that.
"""


class ReservationError(ValueError):
    """Base class for all inventory and booking errors"""


class InvalidArgument(ReservationError):
    """Bad input: non-positive counts, malformed ids, constraint violations"""


class NotFound(InvalidArgument):
    """A referenced flight, customer or booking does not exist"""


class InsufficientCapacity(ReservationError):
    """Fewer FREE seats than requested at claim time"""

    def __init__(self, flight_id, requested: int, free: int):
        self.flight_id = flight_id
        self.requested = requested
        self.free = free
        super().__init__(
            f"Flight {flight_id} has {free} free seat(s), {requested} requested"
        )


class CapacityExceeded(ReservationError):
    """An inventory guard tripped; the counter would leave its valid range"""


class TerminalStateViolation(ReservationError):
    """Attempted transition out of CANCELLED"""


class Busy(ReservationError):
    """The flight's inventory lock could not be obtained in time"""


class RetryableConflict(Busy):
    """Transient database conflict (serialization failure or deadlock)"""
