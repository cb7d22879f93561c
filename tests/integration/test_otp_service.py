"""
Integration tests for OTP issuance, verification and the booking gate
"""

import pytest
from datetime import datetime, timedelta

from models import OtpVerification
from services.otp_service import OtpService
from conftest import FakeSmsSender, OtpVerificationFactory

ISSUED_AT = datetime(2024, 3, 15, 10, 0, 0)
PHONE = '+919000000001'


def issue(sms_sender, now=ISSUED_AT, test_mode=True):
    service = OtpService(sms_sender=sms_sender, test_mode=test_mode)
    success, error, data = service.send('+91-9000000001', now=now)
    assert success is True, error
    return service, data


@pytest.mark.integration
class TestSend:

    def test_send_stores_code_and_hands_it_to_sms(self, db_session, sms_sender):
        _, data = issue(sms_sender)

        record = OtpVerification.query.filter_by(phone=PHONE).one()
        assert data['phone'] == PHONE
        assert data['expires_in_minutes'] == 5
        assert data['sms_sent'] is True
        assert data['otp'] == record.otp
        assert record.verified is False
        assert record.expires_at == ISSUED_AT + timedelta(minutes=5)
        assert sms_sender.sent == [(PHONE, record.otp)]

    def test_code_hidden_outside_test_mode(self, db_session, sms_sender):
        _, data = issue(sms_sender, test_mode=False)
        assert 'otp' not in data

    def test_resend_replaces_previous_record(self, db_session, sms_sender):
        service, first = issue(sms_sender)
        service.send(PHONE, now=ISSUED_AT + timedelta(minutes=1))

        records = OtpVerification.query.filter_by(phone=PHONE).all()
        assert len(records) == 1
        assert records[0].expires_at == ISSUED_AT + timedelta(minutes=6)
        assert len(sms_sender.sent) == 2

    def test_resend_clears_verified_flag(self, db_session, sms_sender):
        OtpVerificationFactory(phone=PHONE, verified=True, updated_at=ISSUED_AT)
        issue(sms_sender, now=ISSUED_AT + timedelta(hours=1))
        assert OtpVerification.query.filter_by(phone=PHONE).one().verified is False

    def test_failed_delivery_keeps_stored_code(self, db_session):
        _, data = issue(FakeSmsSender(succeed=False))
        assert data['sms_sent'] is False
        assert OtpVerification.query.filter_by(phone=PHONE).count() == 1

    def test_raising_sender_keeps_stored_code(self, db_session):
        def broken_sender(phone, code):
            raise ConnectionError('SMS gateway unreachable')

        _, data = issue(broken_sender)
        assert data['sms_sent'] is False
        assert OtpVerification.query.filter_by(phone=PHONE).count() == 1

    @pytest.mark.parametrize('phone', [None, '', '12345', 'call me maybe'])
    def test_invalid_phone(self, db_session, sms_sender, phone):
        success, error, _ = OtpService(sms_sender=sms_sender).send(phone)
        assert success is False
        assert error.code == 'VALIDATION_ERROR'
        assert sms_sender.sent == []


@pytest.mark.integration
class TestVerify:

    def test_correct_code_inside_expiry(self, db_session, sms_sender):
        service, data = issue(sms_sender)
        now = ISSUED_AT + timedelta(minutes=4, seconds=59)

        success, error, result = service.verify(PHONE, data['otp'], now=now)

        assert success is True
        assert result == {'phone': PHONE, 'verified': True}
        record = OtpVerification.query.filter_by(phone=PHONE).one()
        assert record.verified is True
        assert record.updated_at == now

    def test_code_usable_up_to_expiry_instant(self, db_session, sms_sender):
        service, data = issue(sms_sender)
        success, _, _ = service.verify(PHONE, data['otp'], now=ISSUED_AT + timedelta(minutes=5))
        assert success is True

    def test_expired_code_is_rejected_and_removed(self, db_session, sms_sender):
        service, data = issue(sms_sender)

        success, error, _ = service.verify(PHONE, data['otp'], now=ISSUED_AT + timedelta(minutes=5, seconds=1))

        assert success is False
        assert error.code == 'EXPIRED'
        assert OtpVerification.query.filter_by(phone=PHONE).count() == 0

        # Nothing left to verify against afterwards
        success, error, _ = service.verify(PHONE, data['otp'], now=ISSUED_AT + timedelta(minutes=6))
        assert error.code == 'NOT_FOUND'

    def test_wrong_code(self, db_session, sms_sender):
        service, data = issue(sms_sender)
        wrong = '000000' if data['otp'] != '000000' else '111111'

        success, error, _ = service.verify(PHONE, wrong, now=ISSUED_AT + timedelta(minutes=1))

        assert success is False
        assert error.code == 'MISMATCH'
        record = OtpVerification.query.filter_by(phone=PHONE).one()
        assert record.verified is False

    def test_unknown_phone(self, db_session):
        success, error, _ = OtpService().verify('+919111111111', '123456')
        assert error.code == 'NOT_FOUND'
        assert error.http_status == 404

    def test_missing_code(self, db_session):
        success, error, _ = OtpService().verify(PHONE, '')
        assert error.code == 'VALIDATION_ERROR'


@pytest.mark.integration
class TestVerificationWindow:
    """A verified phone can book for 24 hours after verification"""

    @pytest.fixture
    def verified_record(self, db_session):
        return OtpVerificationFactory(phone=PHONE, verified=True,
                                      expires_at=ISSUED_AT + timedelta(minutes=5),
                                      updated_at=ISSUED_AT)

    def test_status_inside_and_outside_window(self, verified_record):
        service = OtpService()
        assert service.check_status(PHONE, now=ISSUED_AT + timedelta(hours=23, minutes=59))['verified'] is True
        assert service.check_status(PHONE, now=ISSUED_AT + timedelta(hours=24, minutes=1))['verified'] is False

    def test_gate_errors(self, verified_record):
        service = OtpService()
        assert service.verification_error(PHONE, now=ISSUED_AT + timedelta(hours=23, minutes=59)) is None

        lapsed = service.verification_error(PHONE, now=ISSUED_AT + timedelta(hours=24, minutes=1))
        assert lapsed.code == 'EXPIRED'

        never = service.verification_error('+919222222222', now=ISSUED_AT)
        assert never.code == 'VALIDATION_ERROR'

    def test_status_for_unknown_phone(self, db_session):
        assert OtpService().check_status('9333333333') == {'phone': '+919333333333', 'verified': False}
