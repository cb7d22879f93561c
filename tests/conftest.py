"""
Pytest configuration and fixtures for the dispatch back office
"""

import os
from datetime import date, datetime

import pytest

# Set test environment before importing app
os.environ.update({
    'FLASK_ENV': 'testing',
    'SESSION_SECRET': 'test_secret_key_for_testing_only_0123456789',
    'JWT_SECRET_KEY': 'test_jwt_secret_for_testing_only',
    'DATABASE_URL': 'sqlite:///:memory:',
    'OTP_TEST_MODE': 'false',
    'STRICT_DRIVER_CONFLICTS': 'false',
    'DEMO_SEED': 'false',
})
# SMS must never leave the test run
for _name in ('TWILIO_ACCOUNT_SID', 'TWILIO_AUTH_TOKEN', 'TWILIO_PHONE_NUMBER'):
    os.environ.pop(_name, None)

from app import create_app, db
from models import (Admin, Driver, DriverStatus, Ambulance, AmbulanceStatus, Assignment, Shift,
                    AssignmentStatus, Booking, BookingStatus, OtpVerification, Expense,
                    ExpenseCategory, ExpenseStatus)
import factory
from factory import Faker
from werkzeug.security import generate_password_hash

ADMIN_PASSWORD = 'testpass123'


@pytest.fixture(scope='function')
def app():
    """Create application for testing"""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_ENGINE_OPTIONS': {},
        'OTP_TEST_MODE': True,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client"""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Database session for testing"""
    yield db.session
    db.session.rollback()


# Factory classes for test data generation
class BaseFactory(factory.alchemy.SQLAlchemyModelFactory):
    class Meta:
        abstract = True
        sqlalchemy_session_factory = lambda: db.session
        sqlalchemy_session_persistence = "commit"


class AdminFactory(BaseFactory):
    class Meta:
        model = Admin

    email = factory.Sequence(lambda n: f"admin{n}@test.com")
    password_hash = factory.LazyFunction(lambda: generate_password_hash(ADMIN_PASSWORD))
    role = 'admin'


class DriverFactory(BaseFactory):
    class Meta:
        model = Driver

    name = Faker('name')
    phone = factory.Sequence(lambda n: f"+9198000{n:05d}")
    email = Faker('email')
    license_no = factory.Sequence(lambda n: f"DL-01-{n:010d}")
    aadhar_no = factory.Sequence(lambda n: f"1234-5678-{n:04d}")
    address = Faker('address')
    status = DriverStatus.AVAILABLE


class AmbulanceFactory(BaseFactory):
    class Meta:
        model = Ambulance

    model_name = 'Tata Winger'
    type = 'Basic Life Support'
    vehicle_no = factory.Sequence(lambda n: f"KA-01-AB-{n:04d}")
    equipment_details = 'Oxygen cylinder, Stretcher'
    status = AmbulanceStatus.AVAILABLE


class AssignmentFactory(BaseFactory):
    class Meta:
        model = Assignment

    date = date(2024, 3, 15)
    shift = Shift.MORNING
    driver = factory.SubFactory(DriverFactory)
    ambulance = factory.SubFactory(AmbulanceFactory)
    status = AssignmentStatus.SCHEDULED


class BookingFactory(BaseFactory):
    class Meta:
        model = Booking

    patient_name = Faker('name')
    phone = factory.Sequence(lambda n: f"+9197000{n:05d}")
    phone_verified = True
    from_address = Faker('address')
    to_address = 'City Hospital, MG Road'
    from_date = date(2024, 3, 20)
    time = '09:00'
    status = BookingStatus.PENDING


class OtpVerificationFactory(BaseFactory):
    class Meta:
        model = OtpVerification

    phone = factory.Sequence(lambda n: f"+9196000{n:05d}")
    otp = '123456'
    expires_at = datetime(2024, 1, 1, 10, 5)
    verified = False
    updated_at = datetime(2024, 1, 1, 10, 0)


class ExpenseFactory(BaseFactory):
    class Meta:
        model = Expense

    title = factory.Sequence(lambda n: f"Expense {n}")
    description = Faker('sentence')
    category = ExpenseCategory.FUEL
    amount = 1500.0
    currency = 'INR'
    date = date(2024, 3, 10)
    vendor = 'Indian Oil'
    status = ExpenseStatus.PENDING
    creator = factory.SubFactory(AdminFactory)


# Fixtures for test data
@pytest.fixture
def admin(db_session):
    """Create admin account"""
    return AdminFactory()


@pytest.fixture
def admin_headers(admin):
    """Bearer token headers for the admin"""
    from auth import issue_admin_token
    return {'Authorization': f'Bearer {issue_admin_token(admin)}'}


@pytest.fixture
def driver(db_session):
    return DriverFactory()


@pytest.fixture
def ambulance(db_session):
    return AmbulanceFactory()


@pytest.fixture
def verified_phone(db_session):
    """Phone verified moments ago, usable for booking"""
    from timezone_utils import get_ist_time_naive
    now = get_ist_time_naive()
    record = OtpVerificationFactory(
        phone='+919876500001',
        verified=True,
        expires_at=now,
        updated_at=now
    )
    return record.phone


class FakeSmsSender:
    """Records SMS hand-offs instead of calling Twilio"""

    def __init__(self, succeed=True):
        self.succeed = succeed
        self.sent = []

    def __call__(self, phone, code):
        self.sent.append((phone, code))
        if self.succeed:
            return {'success': True, 'message': 'OTP sent successfully', 'sid': 'SM_test'}
        return {'success': False, 'message': 'Failed to send OTP: carrier rejected'}


@pytest.fixture
def sms_sender():
    return FakeSmsSender()
