"""
Unit tests for booking event payloads, transition policies and the error taxonomy
"""

import json
import pytest
from dataclasses import FrozenInstanceError
from datetime import datetime
from types import SimpleNamespace

from models import BookingStatus, BookingEventType
from services.booking_events import (BookingCreated, BookingUpdated, StatusChanged, AmbulanceAssigned,
                                     serialize_payload, parse_payload)
from services.booking_service import (PermissiveTransitionPolicy, StrictTransitionPolicy,
                                      parse_booking_status)
from services.errors import ServiceError, ErrorKind
from utils.twilio_otp import format_phone_number, generate_otp, mask_phone


@pytest.mark.unit
class TestBookingEventPayloads:
    """Each event type carries exactly one payload shape"""

    def test_payload_types_map_to_event_types(self):
        assert BookingCreated.event_type == BookingEventType.BOOKING_CREATED
        assert BookingUpdated.event_type == BookingEventType.BOOKING_UPDATED
        assert StatusChanged.event_type == BookingEventType.STATUS_CHANGED
        assert AmbulanceAssigned.event_type == BookingEventType.AMBULANCE_ASSIGNED

    def test_payloads_are_immutable(self):
        payload = StatusChanged(old_status='pending', new_status='confirmed', changed_by='ops@test.com')
        with pytest.raises(FrozenInstanceError):
            payload.new_status = 'cancelled'

    def test_serialized_payload_has_timestamp(self):
        payload = AmbulanceAssigned(ambulance_id=3, driver_id=4, ambulance_vehicle_no='KA-01-AB-1234',
                                    driver_name='Rajesh Kumar', assigned_by='ops@test.com')
        data = json.loads(serialize_payload(payload, datetime(2024, 3, 15, 9, 30)))
        assert data['timestamp'] == '2024-03-15T09:30:00'
        assert data['ambulance_vehicle_no'] == 'KA-01-AB-1234'
        assert data['assigned_by'] == 'ops@test.com'

    def test_parse_payload_rebuilds_dataclass(self):
        payload = BookingUpdated(updated_by='ops@test.com', changed_fields=['notes'])
        event = SimpleNamespace(type=BookingEventType.BOOKING_UPDATED,
                                get_payload=lambda: json.loads(serialize_payload(payload)))
        assert parse_payload(event) == payload


@pytest.mark.unit
class TestTransitionPolicies:

    def test_permissive_allows_anything(self):
        policy = PermissiveTransitionPolicy()
        assert policy.check(BookingStatus.COMPLETED, BookingStatus.PENDING) is None
        assert policy.check(BookingStatus.CANCELLED, BookingStatus.ACTIVE) is None

    def test_strict_follows_lifecycle(self):
        policy = StrictTransitionPolicy()
        assert policy.check(BookingStatus.PENDING, BookingStatus.CONFIRMED) is None
        assert policy.check(BookingStatus.ASSIGNED, BookingStatus.IN_PROGRESS) is None
        assert policy.check(BookingStatus.IN_PROGRESS, BookingStatus.CANCELLED) is None

    def test_strict_rejects_leaving_terminal_states(self):
        policy = StrictTransitionPolicy()
        error = policy.check(BookingStatus.COMPLETED, BookingStatus.PENDING)
        assert error.kind == ErrorKind.CONFLICT
        assert policy.check(BookingStatus.CANCELLED, BookingStatus.CONFIRMED) is not None

    def test_status_parsing(self):
        assert parse_booking_status('In_Progress') is BookingStatus.IN_PROGRESS
        with pytest.raises(ServiceError):
            parse_booking_status('lost')


@pytest.mark.unit
class TestErrorTaxonomy:

    @pytest.mark.parametrize('kind, code, status', [
        (ErrorKind.VALIDATION, 'VALIDATION_ERROR', 400),
        (ErrorKind.SLOT_TAKEN, 'SLOT_TAKEN', 409),
        (ErrorKind.DRIVER_UNAVAILABLE, 'DRIVER_UNAVAILABLE', 409),
        (ErrorKind.AMBULANCE_UNAVAILABLE, 'AMBULANCE_UNAVAILABLE', 409),
        (ErrorKind.INVALID_RANGE, 'INVALID_RANGE', 400),
        (ErrorKind.NOT_FOUND, 'NOT_FOUND', 404),
        (ErrorKind.EXPIRED, 'EXPIRED', 400),
        (ErrorKind.MISMATCH, 'MISMATCH', 400),
        (ErrorKind.CONFLICT, 'CONFLICT', 409),
        (ErrorKind.UNAUTHORIZED, 'UNAUTHORIZED', 401),
    ])
    def test_codes_and_statuses(self, kind, code, status):
        error = ServiceError(kind, 'message')
        assert error.code == code
        assert error.http_status == status

    def test_response_envelope(self):
        body, status = ServiceError(ErrorKind.SLOT_TAKEN, 'Ambulance is already assigned').to_response()
        assert status == 409
        assert body == {'success': False, 'error': 'SLOT_TAKEN', 'message': 'Ambulance is already assigned'}


@pytest.mark.unit
class TestOtpHelpers:

    def test_phone_formatting(self):
        assert format_phone_number('98765 43210') == '+919876543210'
        assert format_phone_number('+91-9876543210') == '+919876543210'
        assert format_phone_number('+1 (415) 555-0100') == '+14155550100'

    def test_generated_codes_are_six_digits(self):
        for _ in range(20):
            code = generate_otp()
            assert len(code) == 6
            assert code.isdigit()

    def test_mask_phone(self):
        assert mask_phone('+919876543210') == '*********3210'
