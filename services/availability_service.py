"""
Availability Service

Read-only roster queries answering "who can take this slot". Never writes.
"""

from typing import Iterable, List, Optional
import logging
from datetime import date
from models import Assignment, Driver, Ambulance, DriverStatus, AmbulanceStatus
from utils.scheduling import (normalize_calendar_date, parse_shift, is_entity_eligible,
                              is_eligible_for_dates)

logger = logging.getLogger(__name__)


class AvailabilityChecker:
    """Evaluates driver/ambulance eligibility against the stored roster"""

    def __init__(self, store=None):
        if store is None:
            from app import db as store
        self.store = store

    @property
    def session(self):
        return self.store.session

    def slot_assignments(self, days: Iterable[date], shift) -> List[Assignment]:
        """All assignments occupying the given shift on any of the given days"""
        days = [normalize_calendar_date(day) for day in days]
        shift = parse_shift(shift)
        return self.session.query(Assignment).filter(
            Assignment.date.in_(days),
            Assignment.shift == shift
        ).all()

    def find_ambulance_slot(self, on_date, shift, ambulance_id: int) -> Optional[Assignment]:
        return self.session.query(Assignment).filter(
            Assignment.date == normalize_calendar_date(on_date),
            Assignment.shift == parse_shift(shift),
            Assignment.ambulance_id == ambulance_id
        ).first()

    def find_driver_slot(self, on_date, shift, driver_id: int,
                         exclude_assignment_id: Optional[int] = None) -> Optional[Assignment]:
        query = self.session.query(Assignment).filter(
            Assignment.date == normalize_calendar_date(on_date),
            Assignment.shift == parse_shift(shift),
            Assignment.driver_id == driver_id
        )
        if exclude_assignment_id is not None:
            query = query.filter(Assignment.id != exclude_assignment_id)
        return query.first()

    def is_driver_eligible(self, driver_id: int, dates, shift,
                           exclude_assignment_id: Optional[int] = None) -> bool:
        driver = self.session.get(Driver, driver_id)
        return is_eligible_for_dates(driver, 'driver_id', self.slot_assignments(dates, shift),
                                     dates, shift, exclude_assignment_id)

    def is_ambulance_eligible(self, ambulance_id: int, dates, shift,
                              exclude_assignment_id: Optional[int] = None) -> bool:
        ambulance = self.session.get(Ambulance, ambulance_id)
        return is_eligible_for_dates(ambulance, 'ambulance_id', self.slot_assignments(dates, shift),
                                     dates, shift, exclude_assignment_id)

    def available_drivers(self, on_date, shift) -> List[Driver]:
        """Drivers with status available and no assignment in the slot"""
        taken = self.slot_assignments([on_date], shift)
        candidates = self.session.query(Driver).filter(
            Driver.status == DriverStatus.AVAILABLE
        ).order_by(Driver.name).all()
        return [driver for driver in candidates
                if is_entity_eligible(driver, 'driver_id', taken, on_date, shift)]

    def available_ambulances(self, on_date, shift) -> List[Ambulance]:
        """Ambulances with status available and no assignment in the slot"""
        taken = self.slot_assignments([on_date], shift)
        candidates = self.session.query(Ambulance).filter(
            Ambulance.status == AmbulanceStatus.AVAILABLE
        ).order_by(Ambulance.vehicle_no).all()
        return [ambulance for ambulance in candidates
                if is_entity_eligible(ambulance, 'ambulance_id', taken, on_date, shift)]
