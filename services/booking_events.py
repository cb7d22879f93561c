"""
Booking Events

Typed payloads for the append-only booking audit trail. Each event type has
exactly one payload shape; payloads are stored as JSON with a timestamp.
"""

from dataclasses import dataclass, asdict, field
from typing import Optional, Dict, Any, List, Type
import json
import logging
from models import BookingEvent, BookingEventType
from timezone_utils import get_ist_time_naive

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BookingCreated:
    patient_name: str
    phone: str
    from_address: str
    to_address: str

    event_type = BookingEventType.BOOKING_CREATED


@dataclass(frozen=True)
class BookingUpdated:
    updated_by: str
    changed_fields: List[str] = field(default_factory=list)

    event_type = BookingEventType.BOOKING_UPDATED


@dataclass(frozen=True)
class StatusChanged:
    old_status: str
    new_status: str
    changed_by: str

    event_type = BookingEventType.STATUS_CHANGED


@dataclass(frozen=True)
class AmbulanceAssigned:
    ambulance_id: int
    driver_id: int
    ambulance_vehicle_no: str
    driver_name: str
    assigned_by: str

    event_type = BookingEventType.AMBULANCE_ASSIGNED


PAYLOAD_TYPES: Dict[BookingEventType, Type] = {
    BookingCreated.event_type: BookingCreated,
    BookingUpdated.event_type: BookingUpdated,
    StatusChanged.event_type: StatusChanged,
    AmbulanceAssigned.event_type: AmbulanceAssigned,
}


def serialize_payload(payload, timestamp=None) -> str:
    data = asdict(payload)
    data['timestamp'] = (timestamp or get_ist_time_naive()).isoformat()
    return json.dumps(data)


def parse_payload(event: BookingEvent):
    """Rebuild the typed payload of a stored event (timestamp dropped)"""
    payload_type = PAYLOAD_TYPES[event.type]
    data = event.get_payload()
    data.pop('timestamp', None)
    return payload_type(**data)


def append_event(session, booking, payload, timestamp=None) -> BookingEvent:
    """
    Append an event for a booking.

    The caller's transaction owns the commit, so the event lands atomically
    with the change it describes.
    """
    event = BookingEvent(
        booking_id=booking.id,
        type=payload.event_type,
        payload=serialize_payload(payload, timestamp),
    )
    if timestamp is not None:
        event.created_at = timestamp
    session.add(event)
    logger.debug(f"Booking event {payload.event_type.value} queued for booking {booking.id}")
    return event
