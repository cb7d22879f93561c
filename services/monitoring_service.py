"""
Monitoring Service

Live fleet view: last known ambulance positions, location history, rides
en route and a utilisation overview.
"""

from typing import Optional, Dict, Any, List, Tuple
import logging
from datetime import datetime
from models import Ambulance, AmbulanceLocation, AmbulanceStatus, Booking, BookingStatus
from timezone_utils import get_ist_time_naive
from .errors import ServiceError, validation_error, not_found
from .transaction_helper import TransactionHelper

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 100


def _optional_float(data: Dict[str, Any], name: str) -> Optional[float]:
    value = data.get(name)
    if value in (None, ''):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        raise validation_error(f'{name} must be a number')


class MonitoringService:
    """Service class for ambulance location tracking"""

    def __init__(self, store=None):
        if store is None:
            from app import db as store
        self.store = store

    @property
    def session(self):
        return self.store.session

    def list_tracked_ambulances(self) -> List[Dict[str, Any]]:
        """Ambulances with a known position, their roster and rides en route"""
        ambulances = self.session.query(Ambulance).filter(
            Ambulance.current_latitude.isnot(None),
            Ambulance.current_longitude.isnot(None)
        ).order_by(Ambulance.vehicle_no).all()

        tracked = []
        for ambulance in ambulances:
            data = ambulance.to_dict()
            data['assignments'] = [assignment.to_dict() for assignment in ambulance.assignments]
            data['active_bookings'] = [booking.to_dict() for booking in ambulance.bookings
                                       if booking.status == BookingStatus.ACTIVE]
            tracked.append(data)
        return tracked

    @TransactionHelper.with_transaction
    def update_location(self, ambulance_id: int, data: Dict[str, Any],
                        now: Optional[datetime] = None) -> Tuple[bool, Optional[ServiceError], Optional[Ambulance]]:
        """
        Record a GPS fix: moves the ambulance's last known position and
        appends a location sample.

        Args:
            data: latitude and longitude required; speed, heading, accuracy optional
        """
        ambulance = self.session.get(Ambulance, ambulance_id)
        if not ambulance:
            return False, not_found('Ambulance'), None

        try:
            latitude = _optional_float(data, 'latitude')
            longitude = _optional_float(data, 'longitude')
            if latitude is None or longitude is None:
                raise validation_error('latitude and longitude are required')
            if not (-90 <= latitude <= 90 and -180 <= longitude <= 180):
                raise validation_error('Coordinates out of range')
            speed = _optional_float(data, 'speed')
            heading = _optional_float(data, 'heading')
            accuracy = _optional_float(data, 'accuracy')
        except ServiceError as e:
            return False, e, None

        now = now or get_ist_time_naive()
        ambulance.current_latitude = latitude
        ambulance.current_longitude = longitude
        ambulance.last_location_update = now

        self.session.add(AmbulanceLocation(
            ambulance_id=ambulance.id,
            latitude=latitude,
            longitude=longitude,
            speed=speed,
            heading=heading,
            accuracy=accuracy,
            recorded_at=now
        ))

        logger.debug(f"Location update for ambulance {ambulance.vehicle_no}: {latitude},{longitude}")
        return True, None, ambulance

    def location_history(self, ambulance_id: int, limit: int = DEFAULT_HISTORY_LIMIT) -> Optional[List[AmbulanceLocation]]:
        """Newest samples first, or None for an unknown ambulance"""
        if not self.session.get(Ambulance, ambulance_id):
            return None
        return self.session.query(AmbulanceLocation).filter_by(
            ambulance_id=ambulance_id
        ).order_by(AmbulanceLocation.recorded_at.desc(), AmbulanceLocation.id.desc()).limit(limit).all()

    def active_rides(self) -> List[Booking]:
        return self.session.query(Booking).filter(
            Booking.status == BookingStatus.ACTIVE,
            Booking.assigned_ambulance_id.isnot(None)
        ).order_by(Booking.updated_at.desc()).all()

    def status_overview(self) -> Dict[str, Any]:
        total = self.session.query(Ambulance).count()
        available = self.session.query(Ambulance).filter(Ambulance.status == AmbulanceStatus.AVAILABLE).count()
        on_duty = self.session.query(Ambulance).filter(Ambulance.status == AmbulanceStatus.ON_DUTY).count()
        active_rides = self.session.query(Booking).filter(Booking.status == BookingStatus.ACTIVE).count()

        utilization = (active_rides / total) * 100 if total else 0
        return {
            'total_ambulances': total,
            'available_ambulances': available,
            'on_duty_ambulances': on_duty,
            'active_rides': active_rides,
            # Half-up rounding to a whole percent
            'utilization_rate': int(utilization + 0.5),
        }
