"""
Driver Service

Driver roster management: registration, profile edits, status changes and
removal. Phone numbers are unique across drivers.
"""

from typing import Optional, Dict, Any, List, Tuple
import logging
from models import Driver, DriverStatus, Assignment, Booking
from utils.twilio_otp import format_phone_number
from .errors import ServiceError, validation_error, not_found, conflict
from .transaction_helper import TransactionHelper

logger = logging.getLogger(__name__)

DRIVER_FIELDS = ('name', 'phone', 'email', 'license_no', 'aadhar_no', 'address', 'status')


def parse_driver_status(value) -> DriverStatus:
    if isinstance(value, DriverStatus):
        return value
    try:
        return DriverStatus(str(value).strip().lower())
    except ValueError:
        raise validation_error(f'Invalid driver status: {value}')


class DriverService:
    """Service class for driver management operations"""

    def __init__(self, store=None):
        if store is None:
            from app import db as store
        self.store = store

    @property
    def session(self):
        return self.store.session

    def _apply(self, driver: Driver, data: Dict[str, Any]) -> None:
        for name in DRIVER_FIELDS:
            if name not in data:
                continue
            value = data[name]
            if name == 'status':
                value = parse_driver_status(value)
            elif name == 'phone':
                if not value:
                    raise validation_error('phone cannot be empty')
                value = format_phone_number(str(value))
            elif name == 'name' and not value:
                raise validation_error('name cannot be empty')
            setattr(driver, name, value)

    @TransactionHelper.with_transaction
    def create_driver(self, data: Dict[str, Any]) -> Tuple[bool, Optional[ServiceError], Optional[Driver]]:
        """
        Register a driver.

        Args:
            data: name and phone required; email, license_no, aadhar_no,
                address and status optional (status defaults to available)

        Returns:
            tuple: (success, error, driver)
        """
        if not data.get('name') or not data.get('phone'):
            return False, validation_error('Name and phone are required'), None

        driver = Driver(status=DriverStatus.AVAILABLE)
        try:
            self._apply(driver, data)
        except ServiceError as e:
            return False, e, None

        if self.get_driver_by_phone(driver.phone):
            return False, conflict('Driver with this phone number already exists'), None

        self.session.add(driver)
        self.session.flush()
        logger.info(f"Driver created: {driver.name} ({driver.id})")
        return True, None, driver

    @TransactionHelper.with_transaction
    def update_driver(self, driver_id: int, data: Dict[str, Any]) -> Tuple[bool, Optional[ServiceError], Optional[Driver]]:
        driver = self.session.get(Driver, driver_id)
        if not driver:
            return False, not_found('Driver'), None

        try:
            self._apply(driver, data)
        except ServiceError as e:
            return False, e, None

        logger.info(f"Driver {driver_id} updated")
        return True, None, driver

    @TransactionHelper.with_transaction
    def delete_driver(self, driver_id: int) -> Tuple[bool, Optional[ServiceError], None]:
        driver = self.session.get(Driver, driver_id)
        if not driver:
            return False, not_found('Driver'), None

        in_use = (self.session.query(Assignment).filter_by(driver_id=driver_id).first()
                  or self.session.query(Booking).filter_by(assigned_driver_id=driver_id).first())
        if in_use:
            return False, conflict('Driver has assignments or bookings and cannot be deleted'), None

        self.session.delete(driver)
        logger.info(f"Driver {driver_id} deleted")
        return True, None, None

    def get_driver(self, driver_id: int) -> Optional[Driver]:
        return self.session.get(Driver, driver_id)

    def get_driver_by_phone(self, phone: str) -> Optional[Driver]:
        if not phone:
            return None
        return self.session.query(Driver).filter_by(phone=format_phone_number(phone)).first()

    def list_drivers(self, status=None) -> List[Driver]:
        query = self.session.query(Driver)
        if status:
            query = query.filter(Driver.status == parse_driver_status(status))
        return query.order_by(Driver.created_at.desc(), Driver.id.desc()).all()
