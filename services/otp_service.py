"""
OTP Service

Phone verification gate for public bookings. One live code per phone,
usable for 5 minutes; a verified phone may book for 24 hours afterwards.
SMS delivery is best effort and never changes the stored state.
"""

from typing import Optional, Dict, Any, Tuple, Callable
import logging
from datetime import datetime, timedelta
from flask import current_app, has_app_context
from models import OtpVerification
from timezone_utils import get_ist_time_naive
from utils.twilio_otp import (generate_otp, format_phone_number, is_valid_phone_number,
                              send_otp_sms, mask_phone, OTP_EXPIRY_MINUTES)
from .errors import ServiceError, ErrorKind, validation_error
from .transaction_helper import TransactionHelper

logger = logging.getLogger(__name__)

VERIFICATION_WINDOW = timedelta(hours=24)


class OtpService:
    """Service class for OTP issuance and verification"""

    def __init__(self, store=None, sms_sender: Callable[[str, str], Dict[str, Any]] = send_otp_sms,
                 test_mode: Optional[bool] = None):
        if store is None:
            from app import db as store
        self.store = store
        self.sms_sender = sms_sender
        if test_mode is None:
            test_mode = bool(has_app_context() and current_app.config.get('OTP_TEST_MODE'))
        self.test_mode = test_mode

    @property
    def session(self):
        return self.store.session

    def _find(self, phone: str) -> Optional[OtpVerification]:
        return self.session.query(OtpVerification).filter_by(phone=phone).first()

    @staticmethod
    def normalize(phone) -> str:
        if not phone or not is_valid_phone_number(str(phone)):
            raise validation_error('A valid phone number is required')
        return format_phone_number(str(phone))

    @TransactionHelper.with_transaction
    def _issue_code(self, phone: str, now: datetime) -> Tuple[bool, None, OtpVerification]:
        # Replaces any earlier code for the phone
        self.session.query(OtpVerification).filter_by(phone=phone).delete()
        record = OtpVerification(
            phone=phone,
            otp=generate_otp(),
            expires_at=now + timedelta(minutes=OTP_EXPIRY_MINUTES),
            verified=False,
            created_at=now,
            updated_at=now
        )
        self.session.add(record)
        return True, None, record

    def send(self, phone, now: Optional[datetime] = None) -> Tuple[bool, Optional[ServiceError], Optional[Dict[str, Any]]]:
        """
        Issue a fresh code for a phone and hand it to the SMS channel.

        Returns:
            tuple: (success, error, {phone, expires_in_minutes, sms_sent[, otp]})
        """
        try:
            phone = self.normalize(phone)
        except ServiceError as e:
            return False, e, None

        now = now or get_ist_time_naive()
        success, error, record = self._issue_code(phone, now)
        if not success:
            return False, error, None
        code = record.otp

        try:
            delivery = self.sms_sender(phone, code)
        except Exception as e:
            logger.error(f"SMS delivery raised for {mask_phone(phone)}: {str(e)}")
            delivery = {'success': False, 'message': str(e)}

        if not delivery.get('success'):
            logger.warning(f"OTP for {mask_phone(phone)} stored but not delivered: {delivery.get('message')}")

        data = {
            'phone': phone,
            'expires_in_minutes': OTP_EXPIRY_MINUTES,
            'sms_sent': bool(delivery.get('success')),
        }
        if self.test_mode:
            logger.info(f"TEST MODE: OTP issued for {mask_phone(phone)}")
            data['otp'] = code
        return True, None, data

    @TransactionHelper.with_transaction
    def verify(self, phone, code, now: Optional[datetime] = None) -> Tuple[bool, Optional[ServiceError], Optional[Dict[str, Any]]]:
        """
        Check a submitted code.

        Order: missing record, expired code (record removed), wrong code.
        """
        try:
            phone = self.normalize(phone)
        except ServiceError as e:
            return False, e, None
        if not code:
            return False, validation_error('OTP code is required'), None

        now = now or get_ist_time_naive()
        record = self._find(phone)
        if not record:
            return False, ServiceError(ErrorKind.NOT_FOUND, 'OTP not found or expired'), None

        if record.is_expired(now):
            self.session.delete(record)
            # Commit here so the removal survives the failed result
            self.session.commit()
            logger.info(f"Expired OTP removed for {mask_phone(phone)}")
            return False, ServiceError(ErrorKind.EXPIRED, 'OTP has expired'), None

        if record.otp != str(code).strip():
            logger.warning(f"OTP mismatch for {mask_phone(phone)}")
            return False, ServiceError(ErrorKind.MISMATCH, 'Invalid OTP'), None

        record.verified = True
        record.updated_at = now
        logger.info(f"OTP verified for {mask_phone(phone)}")
        return True, None, {'phone': phone, 'verified': True}

    def check_status(self, phone, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Verified and still inside the 24 hour window"""
        phone = self.normalize(phone)
        now = now or get_ist_time_naive()
        record = self._find(phone)
        verified = bool(record and record.verified and now - record.updated_at < VERIFICATION_WINDOW)
        return {'phone': phone, 'verified': verified}

    def verification_error(self, phone, now: Optional[datetime] = None) -> Optional[ServiceError]:
        """
        Why a phone may not book right now, or None when it may.

        Never verified -> VALIDATION_ERROR; window lapsed -> EXPIRED.
        """
        try:
            phone = self.normalize(phone)
        except ServiceError as e:
            return e
        now = now or get_ist_time_naive()
        record = self._find(phone)
        if not record or not record.verified:
            return validation_error('Phone number not verified')
        if now - record.updated_at >= VERIFICATION_WINDOW:
            return ServiceError(ErrorKind.EXPIRED, 'Phone verification has expired, please verify again')
        return None
