"""
Production configuration validation
Reports whether SMS delivery, secrets and the database are set up for deployment
"""
import os
import logging
from typing import Dict, List, Tuple, Any

logger = logging.getLogger(__name__)

class ConfigValidationError(Exception):
    """Raised when critical configuration is missing or invalid"""
    pass

def _flag(name: str) -> bool:
    return os.getenv(name, 'false').lower() in ('true', '1', 'yes')

def validate_twilio_config() -> Tuple[bool, List[str]]:
    """
    Validate Twilio configuration for OTP delivery.

    Returns:
        tuple: (is_valid: bool, issues: List[str])
    """
    issues = []

    required_vars = {
        'TWILIO_ACCOUNT_SID': 'Twilio Account SID',
        'TWILIO_AUTH_TOKEN': 'Twilio Auth Token',
        'TWILIO_PHONE_NUMBER': 'Twilio Phone Number'
    }

    for var_name, description in required_vars.items():
        value = os.getenv(var_name)
        if value is None:
            issues.append(f"Missing {description} ({var_name})")
        elif len(value.strip()) == 0:
            issues.append(f"Empty {description} ({var_name})")

    phone_number = os.getenv('TWILIO_PHONE_NUMBER', '').strip()
    if phone_number and not phone_number.startswith('+'):
        issues.append("TWILIO_PHONE_NUMBER must start with '+' (e.g., +1234567890)")

    return len(issues) == 0, issues

def validate_flask_config() -> Tuple[bool, List[str]]:
    """
    Validate secrets and database settings for production.

    Returns:
        tuple: (is_valid: bool, issues: List[str])
    """
    issues = []

    session_secret = os.getenv('SESSION_SECRET')
    if not session_secret:
        issues.append("Missing SESSION_SECRET environment variable")
    elif len(session_secret) < 32:
        issues.append("SESSION_SECRET should be at least 32 characters for security")

    if not os.getenv('JWT_SECRET_KEY'):
        issues.append("JWT_SECRET_KEY not set - tokens are signed with SESSION_SECRET")

    database_url = os.getenv('DATABASE_URL', '')
    if not database_url or database_url.startswith('sqlite'):
        issues.append("DATABASE_URL points at SQLite - use PostgreSQL in production")

    if _flag('OTP_TEST_MODE'):
        issues.append("OTP_TEST_MODE is enabled - OTP codes are returned in API responses")

    return len(issues) == 0, issues

def check_production_readiness() -> Dict[str, Any]:
    """
    Comprehensive check of production readiness.

    Returns:
        dict: Status information including issues and recommendations
    """
    test_mode = _flag('OTP_TEST_MODE')

    twilio_valid, twilio_issues = validate_twilio_config()
    flask_valid, flask_issues = validate_flask_config()

    all_issues = twilio_issues + flask_issues
    is_production_ready = bool(len(all_issues) == 0)

    result = {
        'production_ready': is_production_ready,
        'otp_test_mode': test_mode,
        'twilio_configured': twilio_valid,
        'issues': all_issues,
        'recommendations': []
    }

    if test_mode:
        result['recommendations'].append("Disable OTP_TEST_MODE for production deployment")

    if not twilio_valid:
        result['recommendations'].append("Configure Twilio credentials for SMS functionality")

    if not is_production_ready:
        result['recommendations'].append("Address configuration issues before deploying to production")

    if is_production_ready:
        logger.info("CONFIG: Production readiness check PASSED")
    else:
        logger.warning(f"CONFIG: Production readiness check FAILED - Issues: {len(all_issues)}")
        for issue in all_issues:
            logger.warning(f"CONFIG: Issue - {issue}")

    return result

def require_production_config() -> None:
    """
    Refuse to start a production deployment with missing essentials.

    Raises:
        ConfigValidationError: when secrets or SMS delivery are not configured
    """
    twilio_valid, twilio_issues = validate_twilio_config()
    blocking = list(twilio_issues)
    if not os.getenv('SESSION_SECRET'):
        blocking.append("Missing SESSION_SECRET environment variable")
    if _flag('OTP_TEST_MODE'):
        blocking.append("OTP_TEST_MODE must be disabled in production")
    if blocking:
        raise ConfigValidationError('; '.join(blocking))

def get_otp_config_status() -> str:
    """
    Get a human-readable status of OTP configuration.

    Returns:
        str: Configuration status message
    """
    status = check_production_readiness()

    if status['twilio_configured'] and not status['otp_test_mode']:
        return "OTP delivery via Twilio SMS"
    elif status['otp_test_mode']:
        return "OTP test mode: codes are returned in responses (development only)"
    else:
        return "OTP codes are stored but not delivered: Twilio is not configured"
