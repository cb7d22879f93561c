"""
Ambulance Service

Fleet management for ambulances: registration, edits, status changes and
removal. Vehicle numbers are unique across the fleet.
"""

from typing import Optional, Dict, Any, List, Tuple
import logging
from models import Ambulance, AmbulanceStatus, Assignment, Booking
from .errors import ServiceError, validation_error, not_found, conflict
from .transaction_helper import TransactionHelper

logger = logging.getLogger(__name__)

AMBULANCE_FIELDS = ('model_name', 'type', 'vehicle_no', 'equipment_details', 'status')
REQUIRED_FIELDS = ('model_name', 'type', 'vehicle_no')


def parse_ambulance_status(value) -> AmbulanceStatus:
    if isinstance(value, AmbulanceStatus):
        return value
    try:
        return AmbulanceStatus(str(value).strip().lower())
    except ValueError:
        raise validation_error(f'Invalid ambulance status: {value}')


def normalize_vehicle_no(value: str) -> str:
    return str(value).strip().upper()


class AmbulanceService:
    """Service class for ambulance fleet operations"""

    def __init__(self, store=None):
        if store is None:
            from app import db as store
        self.store = store

    @property
    def session(self):
        return self.store.session

    def _apply(self, ambulance: Ambulance, data: Dict[str, Any]) -> None:
        for name in AMBULANCE_FIELDS:
            if name not in data:
                continue
            value = data[name]
            if name in REQUIRED_FIELDS and not value:
                raise validation_error(f'{name} cannot be empty')
            if name == 'status':
                value = parse_ambulance_status(value)
            elif name == 'vehicle_no':
                value = normalize_vehicle_no(value)
            setattr(ambulance, name, value)

    @TransactionHelper.with_transaction
    def create_ambulance(self, data: Dict[str, Any]) -> Tuple[bool, Optional[ServiceError], Optional[Ambulance]]:
        missing = [name for name in REQUIRED_FIELDS if not data.get(name)]
        if missing:
            return False, validation_error(f"Missing required fields: {', '.join(missing)}"), None

        ambulance = Ambulance(status=AmbulanceStatus.AVAILABLE)
        try:
            self._apply(ambulance, data)
        except ServiceError as e:
            return False, e, None

        if self.session.query(Ambulance).filter_by(vehicle_no=ambulance.vehicle_no).first():
            return False, conflict('Ambulance with this vehicle number already exists'), None

        self.session.add(ambulance)
        self.session.flush()
        logger.info(f"Ambulance created: {ambulance.vehicle_no} ({ambulance.id})")
        return True, None, ambulance

    @TransactionHelper.with_transaction
    def update_ambulance(self, ambulance_id: int, data: Dict[str, Any]) -> Tuple[bool, Optional[ServiceError], Optional[Ambulance]]:
        ambulance = self.session.get(Ambulance, ambulance_id)
        if not ambulance:
            return False, not_found('Ambulance'), None

        try:
            self._apply(ambulance, data)
        except ServiceError as e:
            return False, e, None

        logger.info(f"Ambulance {ambulance_id} updated")
        return True, None, ambulance

    @TransactionHelper.with_transaction
    def delete_ambulance(self, ambulance_id: int) -> Tuple[bool, Optional[ServiceError], None]:
        ambulance = self.session.get(Ambulance, ambulance_id)
        if not ambulance:
            return False, not_found('Ambulance'), None

        in_use = (self.session.query(Assignment).filter_by(ambulance_id=ambulance_id).first()
                  or self.session.query(Booking).filter_by(assigned_ambulance_id=ambulance_id).first())
        if in_use:
            return False, conflict('Ambulance has assignments or bookings and cannot be deleted'), None

        # Location samples go with the vehicle
        self.session.delete(ambulance)
        logger.info(f"Ambulance {ambulance_id} deleted")
        return True, None, None

    def get_ambulance(self, ambulance_id: int) -> Optional[Ambulance]:
        return self.session.get(Ambulance, ambulance_id)

    def list_ambulances(self, status=None) -> List[Ambulance]:
        query = self.session.query(Ambulance)
        if status:
            query = query.filter(Ambulance.status == parse_ambulance_status(status))
        return query.order_by(Ambulance.created_at.desc(), Ambulance.id.desc()).all()
