"""
Runtime settings loaded from environment variables (and an optional .env file)
"""
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: str = 'false') -> bool:
    return os.getenv(name, default).lower() in ('1', 'true', 'yes')


@dataclass
class Settings:
    """Engine and storage settings"""
    database_url: str = 'postgresql://localhost/airline_reservation'
    test_database_url: str = 'postgresql://localhost/airline_reservation_test'
    db_echo: bool = False
    db_pool_min: int = 1
    db_pool_max: int = 20
    lock_timeout_ms: int = 2000
    booking_max_retries: int = 5
    booking_retry_delay: float = 0.01
    seat_label_prefix: str = 'A'
    log_level: str = 'INFO'

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from the current environment"""
        return cls(
            database_url=os.getenv('DATABASE_URL', cls.database_url),
            test_database_url=os.getenv('TEST_DATABASE_URL', cls.test_database_url),
            db_echo=_env_bool('DB_ECHO'),
            db_pool_min=int(os.getenv('DB_POOL_MIN', str(cls.db_pool_min))),
            db_pool_max=int(os.getenv('DB_POOL_MAX', str(cls.db_pool_max))),
            lock_timeout_ms=int(os.getenv('LOCK_TIMEOUT_MS', str(cls.lock_timeout_ms))),
            booking_max_retries=int(os.getenv('BOOKING_MAX_RETRIES', str(cls.booking_max_retries))),
            booking_retry_delay=float(os.getenv('BOOKING_RETRY_DELAY', str(cls.booking_retry_delay))),
            seat_label_prefix=os.getenv('SEAT_LABEL_PREFIX', cls.seat_label_prefix),
            log_level=os.getenv('LOG_LEVEL', cls.log_level).upper(),
        )


_settings = None


def get_settings() -> Settings:
    """Get (and cache) the process-wide settings"""
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings


def set_settings(settings: Optional[Settings]) -> None:
    """Override the cached settings; ``None`` re-reads the environment next time"""
    global _settings
    _settings = settings
