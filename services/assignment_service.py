"""
Assignment Service

Shift roster management: places a driver and an ambulance into a
(date, shift) slot, with the conflict checks that keep one ambulance per
slot. Multi-day requests are committed entry by entry.
"""

from typing import Optional, Dict, Any, List, Tuple
import logging
from flask import current_app, has_app_context
from sqlalchemy.exc import IntegrityError
from models import Assignment, AssignmentStatus, Driver, Ambulance, DriverStatus, AmbulanceStatus
from utils.scheduling import (normalize_calendar_date, parse_shift, generate_date_range,
                              assignment_sort_key)
from .availability_service import AvailabilityChecker
from .errors import ServiceError, ErrorKind, validation_error, not_found
from .transaction_helper import TransactionHelper

logger = logging.getLogger(__name__)

# Marks an argument the caller did not pass, so None can still mean "clear"
UNSET = object()


def _require_id(value, field):
    if value is None or value == '':
        raise validation_error(f'{field} is required')
    try:
        return int(value)
    except (TypeError, ValueError):
        raise validation_error(f'{field} must be an integer')


class AssignmentService:
    """Service class for shift assignment operations"""

    def __init__(self, store=None, strict_driver_conflicts: Optional[bool] = None):
        if store is None:
            from app import db as store
        self.store = store
        self.availability = AvailabilityChecker(store)
        if strict_driver_conflicts is None:
            strict_driver_conflicts = bool(has_app_context()
                                           and current_app.config.get('STRICT_DRIVER_CONFLICTS'))
        self.strict_driver_conflicts = strict_driver_conflicts

    @property
    def session(self):
        return self.store.session

    @TransactionHelper.with_transaction
    def create_assignment(self, date, shift, driver_id, ambulance_id,
                          notes: Optional[str] = None) -> Tuple[bool, Optional[ServiceError], Optional[Assignment]]:
        """
        Place a driver and an ambulance into a (date, shift) slot.

        Checks run in a fixed order: slot taken, driver, ambulance, then the
        driver's own slot when strict conflicts are enabled.

        Returns:
            tuple: (success, error, assignment)
        """
        try:
            if date is None or date == '':
                raise validation_error('date is required')
            if shift is None or shift == '':
                raise validation_error('shift is required')
            day = normalize_calendar_date(date)
            shift = parse_shift(shift)
            driver_id = _require_id(driver_id, 'driver_id')
            ambulance_id = _require_id(ambulance_id, 'ambulance_id')
        except ServiceError as e:
            return False, e, None

        if self.availability.find_ambulance_slot(day, shift, ambulance_id):
            return False, ServiceError(ErrorKind.SLOT_TAKEN,
                                       'Ambulance is already assigned for this date and shift'), None

        driver = self.session.get(Driver, driver_id)
        if not driver:
            return False, not_found('Driver'), None
        if driver.status != DriverStatus.AVAILABLE:
            return False, ServiceError(ErrorKind.DRIVER_UNAVAILABLE, 'Driver is not available'), None

        ambulance = self.session.get(Ambulance, ambulance_id)
        if not ambulance:
            return False, not_found('Ambulance'), None
        if ambulance.status != AmbulanceStatus.AVAILABLE:
            return False, ServiceError(ErrorKind.AMBULANCE_UNAVAILABLE, 'Ambulance is not available'), None

        if self.strict_driver_conflicts and self.availability.find_driver_slot(day, shift, driver_id):
            return False, ServiceError(ErrorKind.DRIVER_UNAVAILABLE,
                                       'Driver is already assigned for this date and shift'), None

        assignment = Assignment(
            date=day,
            shift=shift,
            driver_id=driver_id,
            ambulance_id=ambulance_id,
            notes=notes,
            status=AssignmentStatus.SCHEDULED
        )
        self.session.add(assignment)
        try:
            self.session.flush()
        except IntegrityError:
            # Another writer took the slot between the check and the insert
            self.session.rollback()
            logger.warning(f"Slot race on {day} {shift.value} for ambulance {ambulance_id}")
            return False, ServiceError(ErrorKind.SLOT_TAKEN,
                                       'Ambulance is already assigned for this date and shift'), None

        logger.info(f"Assignment created: {day} {shift.value} driver {driver_id} ambulance {ambulance_id}")
        return True, None, assignment

    def create_assignment_batch(self, entries: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """
        Create several assignments, each committed on its own.

        A failing entry never undoes an earlier success.

        Returns:
            list of {index, date, success, assignment | error}
        """
        results = []
        for index, entry in enumerate(entries):
            if not isinstance(entry, dict):
                error = validation_error('Each assignment must be an object')
                results.append({'index': index, 'date': None, 'success': False,
                                'error': {'code': error.code, 'message': error.message}})
                continue
            success, error, assignment = self.create_assignment(
                entry.get('date'),
                entry.get('shift'),
                entry.get('driver_id'),
                entry.get('ambulance_id'),
                entry.get('notes')
            )
            result = {'index': index, 'date': str(entry.get('date'))[:10], 'success': success}
            if success:
                result['assignment'] = assignment.to_dict()
            else:
                result['error'] = {'code': error.code, 'message': error.message}
            results.append(result)

        created = sum(1 for result in results if result['success'])
        logger.info(f"Assignment batch: {created}/{len(results)} created")
        return results

    def create_assignment_range(self, start_date, end_date, shift, driver_id, ambulance_id,
                                notes: Optional[str] = None) -> Tuple[bool, Optional[ServiceError], Optional[List[Dict[str, Any]]]]:
        """Create one assignment per day of an inclusive range of at most 30 days"""
        try:
            days = generate_date_range(start_date, end_date)
        except ServiceError as e:
            return False, e, None
        return self.create_assignment_days(days, shift, driver_id, ambulance_id, notes)

    def create_assignment_days(self, dates, shift, driver_id, ambulance_id,
                               notes: Optional[str] = None) -> Tuple[bool, Optional[ServiceError], Optional[List[Dict[str, Any]]]]:
        """Create one assignment per listed day"""
        if not dates:
            return False, validation_error('At least one date is required'), None
        entries = [
            {'date': day, 'shift': shift, 'driver_id': driver_id,
             'ambulance_id': ambulance_id, 'notes': notes}
            for day in dates
        ]
        return True, None, self.create_assignment_batch(entries)

    @TransactionHelper.with_transaction
    def update_assignment(self, assignment_id: int, driver_id=None, status=None,
                          notes=UNSET) -> Tuple[bool, Optional[ServiceError], Optional[Assignment]]:
        """
        Change the driver, status or notes of an assignment.

        A new driver must be available; the slot itself is never re-checked,
        so editing notes cannot conflict with the assignment being edited.
        """
        assignment = self.session.get(Assignment, assignment_id)
        if not assignment:
            return False, not_found('Assignment'), None

        if driver_id is not None and driver_id != '':
            try:
                driver_id = _require_id(driver_id, 'driver_id')
            except ServiceError as e:
                return False, e, None

            if driver_id != assignment.driver_id:
                driver = self.session.get(Driver, driver_id)
                if not driver:
                    return False, not_found('Driver'), None
                if driver.status != DriverStatus.AVAILABLE:
                    return False, ServiceError(ErrorKind.DRIVER_UNAVAILABLE, 'Driver is not available'), None
                if self.strict_driver_conflicts and self.availability.find_driver_slot(
                        assignment.date, assignment.shift, driver_id,
                        exclude_assignment_id=assignment.id):
                    return False, ServiceError(ErrorKind.DRIVER_UNAVAILABLE,
                                               'Driver is already assigned for this date and shift'), None
                assignment.driver_id = driver_id

        if status is not None and status != '':
            try:
                assignment.status = AssignmentStatus(status) if not isinstance(status, AssignmentStatus) else status
            except ValueError:
                return False, validation_error(f'Invalid assignment status: {status}'), None

        if notes is not UNSET:
            assignment.notes = notes

        logger.info(f"Assignment {assignment_id} updated")
        return True, None, assignment

    @TransactionHelper.with_transaction
    def delete_assignment(self, assignment_id: int) -> Tuple[bool, Optional[ServiceError], None]:
        assignment = self.session.get(Assignment, assignment_id)
        if not assignment:
            return False, not_found('Assignment'), None
        self.session.delete(assignment)
        logger.info(f"Assignment {assignment_id} deleted")
        return True, None, None

    def get_assignment(self, assignment_id: int) -> Optional[Assignment]:
        return self.session.get(Assignment, assignment_id)

    def list_assignments(self, start_date=None, end_date=None, ambulance_id=None) -> List[Assignment]:
        """
        Roster listing ordered by date, then shift in chronological order.

        Raises:
            ServiceError: on a malformed date filter
        """
        query = self.session.query(Assignment)
        if start_date:
            query = query.filter(Assignment.date >= normalize_calendar_date(start_date))
        if end_date:
            query = query.filter(Assignment.date <= normalize_calendar_date(end_date))
        if ambulance_id:
            query = query.filter(Assignment.ambulance_id == _require_id(ambulance_id, 'ambulance_id'))
        return sorted(query.all(), key=assignment_sort_key)

    def list_assignments_for_date(self, on_date) -> List[Assignment]:
        day = normalize_calendar_date(on_date)
        return sorted(self.session.query(Assignment).filter(Assignment.date == day).all(),
                      key=assignment_sort_key)

    def list_available_drivers(self, on_date, shift) -> List[Driver]:
        return self.availability.available_drivers(on_date, shift)

    def list_available_ambulances(self, on_date, shift) -> List[Ambulance]:
        return self.availability.available_ambulances(on_date, shift)

    def check_availability(self, driver_id, ambulance_id, shift, dates,
                           exclude_assignment_id=None) -> Dict[str, Any]:
        """
        Eligibility of a driver and/or ambulance over a set of days.

        Either id may be omitted; its key is then None.
        """
        days = [normalize_calendar_date(day) for day in dates]
        if not days:
            raise validation_error('At least one date is required')
        shift = parse_shift(shift)

        driver_available = None
        if driver_id:
            driver_available = self.availability.is_driver_eligible(
                _require_id(driver_id, 'driver_id'), days, shift, exclude_assignment_id)

        ambulance_available = None
        if ambulance_id:
            ambulance_available = self.availability.is_ambulance_eligible(
                _require_id(ambulance_id, 'ambulance_id'), days, shift, exclude_assignment_id)

        return {
            'dates': [day.isoformat() for day in days],
            'shift': shift.value,
            'driver_available': driver_available,
            'ambulance_available': ambulance_available,
            'available': driver_available is not False and ambulance_available is not False,
        }
