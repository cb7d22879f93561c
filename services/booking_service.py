"""
Booking Service

Patient booking lifecycle: creation behind the OTP gate, edits, status
changes, resource assignment and deletion. Every change appends exactly one
booking event inside the same transaction.
"""

from typing import Optional, Dict, Any, List, Tuple
import logging
from datetime import datetime
from models import (Booking, BookingEvent, BookingStatus, Driver, Ambulance, DriverStatus,
                    AmbulanceStatus)
from utils.scheduling import normalize_calendar_date
from utils.twilio_otp import format_phone_number
from .booking_events import (BookingCreated, BookingUpdated, StatusChanged, AmbulanceAssigned,
                             append_event)
from .errors import ServiceError, ErrorKind, validation_error, not_found
from .otp_service import OtpService
from .transaction_helper import TransactionHelper

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ('patient_name', 'phone', 'from_address', 'to_address', 'from_date')

# Fields an edit may touch; status and assignment have their own operations
EDITABLE_FIELDS = ('patient_name', 'phone', 'from_address', 'from_latitude', 'from_longitude',
                   'to_address', 'to_latitude', 'to_longitude', 'from_date', 'to_date',
                   'time', 'notes')

DATE_FIELDS = ('from_date', 'to_date')
COORDINATE_FIELDS = ('from_latitude', 'from_longitude', 'to_latitude', 'to_longitude')


def parse_booking_status(value) -> BookingStatus:
    if isinstance(value, BookingStatus):
        return value
    try:
        return BookingStatus(str(value).strip().lower())
    except ValueError:
        raise validation_error(f'Invalid booking status: {value}')


class PermissiveTransitionPolicy:
    """Any status may follow any other"""

    def check(self, current: BookingStatus, target: BookingStatus) -> Optional[ServiceError]:
        return None


class StrictTransitionPolicy:
    """Conventional lifecycle: pending -> confirmed -> assigned -> in_progress -> completed"""

    TRANSITIONS = {
        BookingStatus.PENDING: {BookingStatus.CONFIRMED, BookingStatus.ASSIGNED, BookingStatus.CANCELLED},
        BookingStatus.CONFIRMED: {BookingStatus.ASSIGNED, BookingStatus.CANCELLED},
        BookingStatus.ASSIGNED: {BookingStatus.IN_PROGRESS, BookingStatus.ACTIVE, BookingStatus.CANCELLED},
        BookingStatus.ACTIVE: {BookingStatus.IN_PROGRESS, BookingStatus.COMPLETED, BookingStatus.CANCELLED},
        BookingStatus.IN_PROGRESS: {BookingStatus.COMPLETED, BookingStatus.CANCELLED},
        BookingStatus.COMPLETED: set(),
        BookingStatus.CANCELLED: set(),
    }

    def check(self, current: BookingStatus, target: BookingStatus) -> Optional[ServiceError]:
        if target in self.TRANSITIONS.get(current, set()):
            return None
        return ServiceError(ErrorKind.CONFLICT,
                            f'Cannot change booking status from {current.value} to {target.value}')


class BookingService:
    """Service class for booking lifecycle operations"""

    def __init__(self, store=None, otp_service: Optional[OtpService] = None,
                 transition_policy=None):
        if store is None:
            from app import db as store
        self.store = store
        self.otp_service = otp_service or OtpService(store)
        self.transition_policy = transition_policy or PermissiveTransitionPolicy()

    @property
    def session(self):
        return self.store.session

    @staticmethod
    def _clean_fields(data: Dict[str, Any], fields) -> Dict[str, Any]:
        """Coerce incoming values for the given fields (dates, coordinates, phone)"""
        cleaned = {}
        for name in fields:
            if name not in data:
                continue
            value = data[name]
            if name in DATE_FIELDS:
                value = normalize_calendar_date(value) if value else None
            elif name in COORDINATE_FIELDS:
                if value in (None, ''):
                    value = None
                else:
                    try:
                        value = float(value)
                    except (TypeError, ValueError):
                        raise validation_error(f'{name} must be a number')
            elif name == 'phone':
                value = format_phone_number(str(value)) if value else value
            elif isinstance(value, str):
                value = value.strip()
            cleaned[name] = value
        return cleaned

    @TransactionHelper.with_transaction
    def create_booking(self, data: Dict[str, Any],
                       now: Optional[datetime] = None) -> Tuple[bool, Optional[ServiceError], Optional[Booking]]:
        """
        Create a pending booking for a phone verified within the last 24 hours.

        Args:
            data: patient_name, phone, from_address, to_address, from_date and
                optional coordinates, to_date, time, notes
            now: evaluation time for the verification window

        Returns:
            tuple: (success, error, booking)
        """
        missing = [name for name in REQUIRED_FIELDS if not data.get(name)]
        if missing:
            return False, validation_error(f"Missing required fields: {', '.join(missing)}"), None

        gate_error = self.otp_service.verification_error(data['phone'], now)
        if gate_error:
            return False, gate_error, None

        try:
            fields = self._clean_fields(data, EDITABLE_FIELDS)
        except ServiceError as e:
            return False, e, None

        booking = Booking(status=BookingStatus.PENDING, phone_verified=True, **fields)
        self.session.add(booking)
        self.session.flush()

        append_event(self.session, booking, BookingCreated(
            patient_name=booking.patient_name,
            phone=booking.phone,
            from_address=booking.from_address,
            to_address=booking.to_address,
        ), timestamp=now)

        logger.info(f"Booking {booking.id} created for {booking.patient_name}")
        return True, None, booking

    @TransactionHelper.with_transaction
    def update_booking(self, booking_id: int, data: Dict[str, Any],
                       updated_by: str) -> Tuple[bool, Optional[ServiceError], Optional[Booking]]:
        """Edit booking details; status is left untouched"""
        booking = self.session.get(Booking, booking_id)
        if not booking:
            return False, not_found('Booking'), None

        try:
            fields = self._clean_fields(data, EDITABLE_FIELDS)
        except ServiceError as e:
            return False, e, None

        for name in REQUIRED_FIELDS:
            if name in fields and not fields[name]:
                return False, validation_error(f'{name} cannot be empty'), None

        changed = []
        for name, value in fields.items():
            if getattr(booking, name) != value:
                setattr(booking, name, value)
                changed.append(name)

        append_event(self.session, booking, BookingUpdated(updated_by=updated_by, changed_fields=changed))

        logger.info(f"Booking {booking_id} updated by {updated_by}: {changed}")
        return True, None, booking

    @TransactionHelper.with_transaction
    def change_status(self, booking_id: int, status,
                      changed_by: str) -> Tuple[bool, Optional[ServiceError], Optional[Booking]]:
        booking = self.session.get(Booking, booking_id)
        if not booking:
            return False, not_found('Booking'), None

        try:
            new_status = parse_booking_status(status)
        except ServiceError as e:
            return False, e, None

        old_status = booking.status
        error = self.transition_policy.check(old_status, new_status)
        if error:
            return False, error, None

        booking.status = new_status
        append_event(self.session, booking, StatusChanged(
            old_status=old_status.value,
            new_status=new_status.value,
            changed_by=changed_by,
        ))

        logger.info(f"Booking {booking_id} status {old_status.value} -> {new_status.value} by {changed_by}")
        return True, None, booking

    @TransactionHelper.with_transaction
    def assign(self, booking_id: int, ambulance_id, driver_id,
               assigned_by: str) -> Tuple[bool, Optional[ServiceError], Optional[Booking]]:
        """
        Attach an available ambulance and driver to a booking.

        The ambulance is checked before the driver. On failure the booking is
        left untouched; on success its status becomes assigned.
        """
        booking = self.session.get(Booking, booking_id)
        if not booking:
            return False, not_found('Booking'), None
        if not ambulance_id or not driver_id:
            return False, validation_error('ambulance_id and driver_id are required'), None
        try:
            ambulance_id, driver_id = int(ambulance_id), int(driver_id)
        except (TypeError, ValueError):
            return False, validation_error('ambulance_id and driver_id must be integers'), None

        ambulance = self.session.get(Ambulance, ambulance_id)
        if not ambulance:
            return False, not_found('Ambulance'), None
        if ambulance.status != AmbulanceStatus.AVAILABLE:
            return False, ServiceError(ErrorKind.AMBULANCE_UNAVAILABLE, 'Ambulance is not available'), None

        driver = self.session.get(Driver, driver_id)
        if not driver:
            return False, not_found('Driver'), None
        if driver.status != DriverStatus.AVAILABLE:
            return False, ServiceError(ErrorKind.DRIVER_UNAVAILABLE, 'Driver is not available'), None

        booking.assigned_ambulance_id = ambulance.id
        booking.assigned_driver_id = driver.id
        booking.status = BookingStatus.ASSIGNED

        append_event(self.session, booking, AmbulanceAssigned(
            ambulance_id=ambulance.id,
            driver_id=driver.id,
            ambulance_vehicle_no=ambulance.vehicle_no,
            driver_name=driver.name,
            assigned_by=assigned_by,
        ))

        logger.info(f"Booking {booking_id} assigned ambulance {ambulance.vehicle_no} driver {driver.name}")
        return True, None, booking

    @TransactionHelper.with_transaction
    def delete_booking(self, booking_id: int) -> Tuple[bool, Optional[ServiceError], None]:
        booking = self.session.get(Booking, booking_id)
        if not booking:
            return False, not_found('Booking'), None

        # Events go first, then the booking they reference
        self.session.query(BookingEvent).filter_by(booking_id=booking.id).delete()
        self.session.delete(booking)

        logger.info(f"Booking {booking_id} deleted")
        return True, None, None

    def get_booking(self, booking_id: int) -> Optional[Booking]:
        return self.session.get(Booking, booking_id)

    def list_bookings(self, status=None) -> List[Booking]:
        query = self.session.query(Booking)
        if status:
            query = query.filter(Booking.status == parse_booking_status(status))
        return query.order_by(Booking.created_at.desc(), Booking.id.desc()).all()

    def get_events(self, booking_id: int) -> Optional[List[BookingEvent]]:
        """Events oldest first, or None for an unknown booking"""
        if not self.session.get(Booking, booking_id):
            return None
        return self.session.query(BookingEvent).filter_by(
            booking_id=booking_id
        ).order_by(BookingEvent.id).all()

    def list_assignable_ambulances(self) -> List[Ambulance]:
        return self.session.query(Ambulance).filter(
            Ambulance.status == AmbulanceStatus.AVAILABLE
        ).order_by(Ambulance.vehicle_no).all()

    def list_assignable_drivers(self) -> List[Driver]:
        return self.session.query(Driver).filter(
            Driver.status == DriverStatus.AVAILABLE
        ).order_by(Driver.name).all()
