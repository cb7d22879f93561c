"""
Unit tests for deployment checks and structured logging
"""

import json
import logging
import pytest

from utils.config_validator import (ConfigValidationError, validate_twilio_config, validate_flask_config,
                                    require_production_config, get_otp_config_status)
from utils.logging_config import JSONFormatter

TWILIO_ENV = {
    'TWILIO_ACCOUNT_SID': 'AC00000000000000000000000000000000',
    'TWILIO_AUTH_TOKEN': 'token',
    'TWILIO_PHONE_NUMBER': '+15005550006',
}


@pytest.fixture
def twilio_env(monkeypatch):
    for name, value in TWILIO_ENV.items():
        monkeypatch.setenv(name, value)


@pytest.mark.unit
class TestConfigValidation:

    def test_missing_twilio(self, monkeypatch):
        for name in TWILIO_ENV:
            monkeypatch.delenv(name, raising=False)
        valid, issues = validate_twilio_config()
        assert valid is False
        assert len(issues) == 3

    def test_sender_number_needs_plus(self, twilio_env, monkeypatch):
        monkeypatch.setenv('TWILIO_PHONE_NUMBER', '15005550006')
        valid, issues = validate_twilio_config()
        assert valid is False
        assert any("must start with '+'" in issue for issue in issues)

    def test_flask_config_flags_sqlite_and_test_mode(self, monkeypatch):
        monkeypatch.setenv('DATABASE_URL', 'sqlite:///dispatch.db')
        monkeypatch.setenv('OTP_TEST_MODE', 'true')
        valid, issues = validate_flask_config()
        assert valid is False
        assert any('SQLite' in issue for issue in issues)
        assert any('OTP_TEST_MODE' in issue for issue in issues)

    def test_production_refuses_test_mode(self, twilio_env, monkeypatch):
        monkeypatch.setenv('OTP_TEST_MODE', 'true')
        with pytest.raises(ConfigValidationError):
            require_production_config()

    def test_production_accepts_complete_config(self, twilio_env, monkeypatch):
        monkeypatch.setenv('OTP_TEST_MODE', 'false')
        require_production_config()

    def test_otp_status_messages(self, twilio_env, monkeypatch):
        monkeypatch.setenv('OTP_TEST_MODE', 'false')
        assert get_otp_config_status() == 'OTP delivery via Twilio SMS'
        monkeypatch.setenv('OTP_TEST_MODE', 'true')
        assert get_otp_config_status().startswith('OTP test mode')


@pytest.mark.unit
def test_json_formatter_carries_extras():
    record = logging.LogRecord('http', logging.WARNING, __file__, 10, 'Request completed: %s',
                               ('GET /admin/stats',), None)
    record.status_code = 401
    data = json.loads(JSONFormatter().format(record))
    assert data['level'] == 'WARNING'
    assert data['message'] == 'Request completed: GET /admin/stats'
    assert data['application'] == 'ambulance_dispatch'
    assert data['extra'] == {'status_code': 401}
