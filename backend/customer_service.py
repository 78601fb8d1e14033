"""
Customer records referenced by bookings
"""
from typing import Optional

from database import Customer, InvalidArgument, get_db_manager
from .validation import require_id, require_text


class CustomerService:
    """Service for customer contact records"""

    @staticmethod
    def create_customer(first_name: str, last_name: str, email: str,
                        phone_number: Optional[str] = None) -> Customer:
        """
        Create a new customer

        Args:
            first_name: First name
            last_name: Last name
            email: E-mail address (unique)
            phone_number: Phone number (optional)

        Returns:
            Created customer object
        """
        require_text(first_name, 'first_name', 50)
        require_text(last_name, 'last_name', 50)
        if not isinstance(email, str) or '@' not in email or len(email) > 100:
            raise InvalidArgument(f"Malformed email address: {email!r}")
        if phone_number is not None and len(phone_number) > 20:
            raise InvalidArgument("Phone number must be at most 20 characters")

        return get_db_manager().insert_customer(first_name, last_name, email.lower(), phone_number)

    @staticmethod
    def get_customer(customer_id: int) -> Optional[Customer]:
        """Get customer by ID"""
        return get_db_manager().get_customer(require_id(customer_id, 'customer_id'))

    @staticmethod
    def get_customer_by_email(email: str) -> Optional[Customer]:
        """Get customer by e-mail address"""
        return get_db_manager().get_customer_by_email(email.lower())
