"""
Input checks shared by the services

Limits follow the column types in database/schema.sql so that both stores
reject the same requests before anything is written.
"""
from database import InvalidArgument

# PostgreSQL INTEGER
MAX_INT = 2 ** 31 - 1
# NUMERIC(10, 2)
MAX_AMOUNT = 10 ** 8


def require_id(value, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or not 0 < value <= MAX_INT:
        raise InvalidArgument(f"Malformed {name}: {value!r}")
    return value


def require_count(value, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or not 0 < value <= MAX_INT:
        raise InvalidArgument(f"{name} must be a positive integer, got {value!r}")
    return value


def require_amount(value, name: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not 0 <= value < MAX_AMOUNT:
        raise InvalidArgument(f"{name} must be between 0 and {MAX_AMOUNT}, got {value!r}")
    return value


def require_text(value, name: str, max_length: int) -> str:
    if not value or not isinstance(value, str):
        raise InvalidArgument(f"{name} is required")
    if len(value) > max_length:
        raise InvalidArgument(f"{name} must be at most {max_length} characters")
    return value
