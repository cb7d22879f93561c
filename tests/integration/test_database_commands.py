"""
Integration tests for demo seeding and admin provisioning
"""

import pytest
from werkzeug.security import check_password_hash

from models import Admin, Driver, Ambulance, Booking
from database_commands import (seed_demo_data, create_admin, DEMO_ADMIN_EMAIL, DEMO_DRIVERS,
                               DEMO_AMBULANCES, DEMO_BOOKINGS)


@pytest.mark.integration
class TestSeeding:

    def test_seed_is_idempotent(self, db_session, monkeypatch):
        monkeypatch.setenv('ADMIN_INITIAL_PASSWORD', 'seeded-password')

        assert seed_demo_data() is True
        assert seed_demo_data() is True

        assert Driver.query.count() == len(DEMO_DRIVERS)
        assert Ambulance.query.count() == len(DEMO_AMBULANCES)
        assert Booking.query.count() == len(DEMO_BOOKINGS)

        admin = Admin.query.filter_by(email=DEMO_ADMIN_EMAIL).one()
        assert admin.role == 'super_admin'
        assert check_password_hash(admin.password_hash, 'seeded-password')

    def test_seeded_phones_are_normalized(self, db_session, monkeypatch):
        monkeypatch.setenv('ADMIN_INITIAL_PASSWORD', 'seeded-password')
        seed_demo_data()
        assert Driver.query.filter_by(phone='+919876543210').one().name == 'Rajesh Kumar'

    def test_create_admin_returns_existing(self, db_session):
        admin, created = create_admin(' Ops@Example.com ', 'first-password')
        db_session.commit()
        again, created_again = create_admin('ops@example.com', 'other-password')

        assert created is True
        assert created_again is False
        assert again.id == admin.id
        assert admin.email == 'ops@example.com'
