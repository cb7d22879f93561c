"""
Transaction Helper Service

Wraps service writes in a single commit/rollback boundary:
- Commit when the service reports success
- Rollback when it reports failure or raises
- Store unique violations surface as CONFLICT results instead of exceptions
"""

from functools import wraps
from typing import Callable, Any, Optional
import logging
from sqlalchemy.exc import IntegrityError
from app import db
from services.errors import ServiceError, ErrorKind

logger = logging.getLogger(__name__)

# Column fragments of unique constraints and the message shown for each
UNIQUE_FIELD_MESSAGES = {
    'phone': 'A record with this phone number already exists',
    'vehicle_no': 'An ambulance with this vehicle number already exists',
    'email': 'An account with this email already exists',
    'uq_assignment_ambulance_slot': 'Ambulance is already assigned for this date and shift',
}


def describe_integrity_error(error: IntegrityError) -> str:
    """Map a store unique violation onto a readable message"""
    text = str(getattr(error, 'orig', error)).lower()
    for fragment, message in UNIQUE_FIELD_MESSAGES.items():
        if fragment in text:
            return message
    return 'Record conflicts with existing data'


def _session_for(args):
    # Bound service methods carry their store handle; plain functions use the app db
    if args:
        store = getattr(args[0], 'store', None)
        if store is not None:
            return store.session
    return db.session


class TransactionHelper:
    """Helper class for managing database transactions safely"""

    @staticmethod
    def with_transaction(func: Callable) -> Callable:
        """
        Decorator that wraps a service call in a database transaction.

        Usage:
            @TransactionHelper.with_transaction
            def update_driver(self, driver_id, data):
                ...
                return True, None, driver
        """
        @wraps(func)
        def wrapper(*args, **kwargs):
            session = _session_for(args)
            try:
                result = func(*args, **kwargs)

                # Handle service result pattern: (success: bool, error, data)
                if isinstance(result, tuple) and len(result) >= 2 and isinstance(result[0], bool):
                    if result[0]:
                        session.commit()
                    else:
                        session.rollback()
                    return result

                # Non-service pattern, commit normally
                session.commit()
                return result

            except IntegrityError as e:
                session.rollback()
                message = describe_integrity_error(e)
                logger.warning(f"Integrity error in {func.__name__}: {message}")
                return False, ServiceError(ErrorKind.CONFLICT, message), None
            except Exception as e:
                session.rollback()
                logger.error(f"Transaction error in {func.__name__}: {str(e)}")
                raise
        return wrapper

    @staticmethod
    def execute_with_rollback(operation: Callable, *args, **kwargs) -> tuple[bool, Optional[Any], Optional[str]]:
        """
        Execute a database operation with automatic rollback on failure.

        Returns:
            tuple: (success: bool, result: Any, error_message: str)
        """
        try:
            result = operation(*args, **kwargs)
            db.session.commit()
            return True, result, None
        except Exception as e:
            db.session.rollback()
            error_msg = str(e)
            logger.error(f"Database operation failed: {error_msg}")
            return False, None, error_msg
