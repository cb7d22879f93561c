import secrets
import string
import re
import os
import logging
from typing import Dict, Any

logger = logging.getLogger(__name__)

OTP_LENGTH = 6
OTP_EXPIRY_MINUTES = 5

def generate_otp(length: int = OTP_LENGTH) -> str:
    """Generate a cryptographically secure OTP code with specified length"""
    return ''.join(secrets.choice(string.digits) for _ in range(length))

def format_phone_number(phone: str) -> str:
    """Format phone number for international use (E.164 format)"""
    # Remove all non-digit characters
    phone = re.sub(r'\D', '', phone or '')

    # Add country code if not present (assuming India +91 for 10-digit numbers)
    if len(phone) == 10:
        phone = '91' + phone

    return '+' + phone

def is_valid_phone_number(phone: str) -> bool:
    """Validate phone number format (E.164 compatible, 10-15 digits)"""
    digits_only = re.sub(r'\D', '', phone or '')
    return 10 <= len(digits_only) <= 15

def mask_phone(phone: str) -> str:
    """Keep only the last four digits visible in logs"""
    if not phone or len(phone) <= 4:
        return '****'
    return '*' * (len(phone) - 4) + phone[-4:]

def twilio_configured() -> bool:
    return all([
        os.environ.get('TWILIO_ACCOUNT_SID'),
        os.environ.get('TWILIO_AUTH_TOKEN'),
        os.environ.get('TWILIO_PHONE_NUMBER'),
    ])

def send_otp_sms(phone_number: str, otp_code: str) -> Dict[str, Any]:
    """
    Send OTP via SMS using Twilio integration
    Returns: {'success': bool, 'message': str, 'sid': str (optional)}
    """
    formatted_phone = format_phone_number(phone_number)

    if not twilio_configured():
        logger.warning(f"Twilio credentials not configured, SMS to {mask_phone(formatted_phone)} skipped")
        return {
            'success': False,
            'message': 'SMS service not configured'
        }

    try:
        from twilio.rest import Client

        client = Client(os.environ['TWILIO_ACCOUNT_SID'], os.environ['TWILIO_AUTH_TOKEN'])

        message_body = (f"Your ambulance booking verification code is: {otp_code}. "
                        f"Valid for {OTP_EXPIRY_MINUTES} minutes. Do not share this code.")

        message = client.messages.create(
            body=message_body,
            from_=os.environ['TWILIO_PHONE_NUMBER'],
            to=formatted_phone
        )

        logger.info(f"OTP sent successfully to {mask_phone(formatted_phone)}, SID: {message.sid}")

        return {
            'success': True,
            'message': 'OTP sent successfully',
            'sid': message.sid
        }

    except Exception as e:
        logger.error(f"Failed to send OTP to {mask_phone(formatted_phone)}: {str(e)}")
        return {
            'success': False,
            'message': f'Failed to send OTP: {str(e)}'
        }
