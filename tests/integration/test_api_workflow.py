"""
End-to-end workflows through the HTTP API
"""

import pytest

from models import Booking, BookingEvent, BookingEventType
from conftest import ADMIN_PASSWORD, BookingFactory, DriverFactory, AmbulanceFactory


@pytest.mark.workflow
class TestPublicBookingFlow:
    """OTP send -> verify -> booking -> admin assignment"""

    def test_verified_phone_books_and_admin_assigns(self, client, admin_headers):
        response = client.post('/otp/send', json={'phone': '+91-9000000001'})
        assert response.status_code == 200
        sent = response.get_json()
        assert sent['success'] is True
        assert sent['expires_in_minutes'] == 5

        response = client.post('/otp/verify', json={'phone': '+91-9000000001', 'otp': sent['otp']})
        assert response.status_code == 200
        assert response.get_json()['verified'] is True

        assert client.get('/otp/status/+919000000001').get_json()['verified'] is True

        response = client.post('/bookings', json={
            'patient_name': 'Lakshmi Rao',
            'phone': '+91-9000000001',
            'from_address': '22 Jayanagar 4th Block, Bangalore',
            'to_address': 'Manipal Hospital, HAL Airport Road',
            'from_date': '2024-06-01',
            'time': '14:30',
        })
        assert response.status_code == 201
        booking = response.get_json()['booking']
        assert booking['status'] == 'pending'
        assert booking['phone'] == '+919000000001'
        assert BookingEvent.query.filter_by(booking_id=booking['id'],
                                            type=BookingEventType.BOOKING_CREATED).count() == 1

        driver = DriverFactory(name='Vikram Reddy')
        ambulance = AmbulanceFactory(vehicle_no='KA-01-AB-1235')
        response = client.patch(f"/admin/bookings/{booking['id']}/assign",
                                json={'ambulance_id': ambulance.id, 'driver_id': driver.id},
                                headers=admin_headers)
        assert response.status_code == 200
        assigned = response.get_json()['booking']
        assert assigned['status'] == 'assigned'
        assert assigned['assigned_driver']['name'] == 'Vikram Reddy'
        assert assigned['assigned_ambulance']['vehicle_no'] == 'KA-01-AB-1235'

        events = client.get(f"/admin/bookings/{booking['id']}/events", headers=admin_headers).get_json()['events']
        assert [event['type'] for event in events] == ['BookingCreated', 'AmbulanceAssigned']
        assert events[1]['payload']['driver_name'] == 'Vikram Reddy'

    def test_unverified_phone_cannot_book(self, client):
        response = client.post('/bookings', json={
            'patient_name': 'Walk In',
            'phone': '+919000000002',
            'from_address': 'Somewhere',
            'to_address': 'Hospital',
            'from_date': '2024-06-01',
        })
        assert response.status_code == 400
        assert response.get_json()['error'] == 'VALIDATION_ERROR'
        assert Booking.query.count() == 0

    @pytest.mark.parametrize('body', [[1, 2], 'text', 7])
    def test_booking_body_must_be_an_object(self, client, body):
        response = client.post('/bookings', json=body)
        assert response.status_code == 400
        assert response.get_json()['error'] == 'VALIDATION_ERROR'
        assert Booking.query.count() == 0

    def test_otp_send_body_must_be_an_object(self, client):
        response = client.post('/otp/send', json=['+919000000005'])
        assert response.status_code == 400
        assert response.get_json()['error'] == 'VALIDATION_ERROR'

    def test_wrong_code(self, client):
        client.post('/otp/send', json={'phone': '9000000003'})
        response = client.post('/otp/verify', json={'phone': '9000000003', 'otp': 'abcdef'})
        assert response.status_code == 400
        assert response.get_json()['error'] == 'MISMATCH'

    def test_verify_without_send(self, client):
        response = client.post('/otp/verify', json={'phone': '9000000004', 'otp': '123456'})
        assert response.status_code == 404
        assert response.get_json()['error'] == 'NOT_FOUND'


@pytest.mark.workflow
class TestAdminAccess:

    def test_login_issues_token(self, client, admin):
        response = client.post('/admin/login', json={'email': admin.email, 'password': ADMIN_PASSWORD})
        assert response.status_code == 200
        data = response.get_json()
        assert data['admin']['email'] == admin.email

        me = client.get('/admin/me', headers={'Authorization': f"Bearer {data['token']}"})
        assert me.status_code == 200
        assert me.get_json()['admin']['id'] == admin.id

    def test_bad_password(self, client, admin):
        response = client.post('/admin/login', json={'email': admin.email, 'password': 'nope'})
        assert response.status_code == 401
        assert response.get_json()['error'] == 'UNAUTHORIZED'

    def test_login_body_must_be_an_object(self, client, admin):
        response = client.post('/admin/login', json=[admin.email, ADMIN_PASSWORD])
        assert response.status_code == 400
        assert response.get_json()['error'] == 'VALIDATION_ERROR'

    @pytest.mark.parametrize('method, path', [
        ('get', '/admin/stats'),
        ('get', '/admin/bookings'),
        ('post', '/admin/assignments'),
        ('get', '/admin/expenses'),
        ('get', '/admin/monitoring/status-overview'),
    ])
    def test_admin_routes_need_token(self, client, method, path):
        response = getattr(client, method)(path)
        assert response.status_code == 401
        assert response.get_json()['error'] == 'UNAUTHORIZED'

    def test_garbage_token(self, client):
        response = client.get('/admin/stats', headers={'Authorization': 'Bearer not.a.token'})
        assert response.status_code == 401


@pytest.mark.workflow
class TestRosterApi:

    def test_slot_conflict_over_http(self, client, admin_headers):
        ambulance = AmbulanceFactory()
        first, second = DriverFactory(), DriverFactory()

        response = client.post('/admin/assignments', headers=admin_headers, json={
            'date': '2024-06-01', 'shift': 'morning', 'driver_id': first.id, 'ambulance_id': ambulance.id,
        })
        assert response.status_code == 201

        response = client.post('/admin/assignments', headers=admin_headers, json={
            'date': '2024-06-01', 'shift': 'morning', 'driver_id': second.id, 'ambulance_id': ambulance.id,
        })
        assert response.status_code == 409
        assert response.get_json()['error'] == 'SLOT_TAKEN'

    def test_range_request(self, client, admin_headers, driver, ambulance):
        response = client.post('/admin/assignments', headers=admin_headers, json={
            'start_date': '2024-06-01', 'end_date': '2024-06-03', 'shift': 'night',
            'driver_id': driver.id, 'ambulance_id': ambulance.id,
        })
        assert response.status_code == 200
        data = response.get_json()
        assert data['created'] == 3
        assert data['failed'] == 0

        listed = client.get('/admin/assignments?start_date=2024-06-02', headers=admin_headers).get_json()
        assert [a['date'] for a in listed['assignments']] == ['2024-06-02', '2024-06-03']

    def test_range_too_long(self, client, admin_headers, driver, ambulance):
        response = client.post('/admin/assignments', headers=admin_headers, json={
            'start_date': '2024-01-01', 'end_date': '2024-02-15', 'shift': 'morning',
            'driver_id': driver.id, 'ambulance_id': ambulance.id,
        })
        assert response.status_code == 400
        assert response.get_json()['error'] == 'INVALID_RANGE'

    def test_batch_reports_non_object_entries(self, client, admin_headers, driver, ambulance):
        response = client.post('/admin/assignments/batch', headers=admin_headers, json={'assignments': [
            1,
            {'date': '2024-06-01', 'shift': 'morning', 'driver_id': driver.id, 'ambulance_id': ambulance.id},
        ]})
        assert response.status_code == 200
        data = response.get_json()
        assert data['created'] == 1
        assert data['failed'] == 1
        assert data['results'][0]['error']['code'] == 'VALIDATION_ERROR'
        assert data['results'][1]['assignment']['date'] == '2024-06-01'

    def test_batch_body_that_is_a_list(self, client, admin_headers):
        response = client.post('/admin/assignments/batch', headers=admin_headers, json=[1, 2])
        assert response.status_code == 400
        assert response.get_json()['error'] == 'VALIDATION_ERROR'

    def test_availability_query(self, client, admin_headers, driver, ambulance):
        response = client.get(
            f'/admin/assignments/availability?driver_id={driver.id}&ambulance_id={ambulance.id}'
            '&shift=morning&dates=2024-06-01,2024-06-02',
            headers=admin_headers)
        assert response.status_code == 200
        data = response.get_json()
        assert data['available'] is True
        assert data['dates'] == ['2024-06-01', '2024-06-02']

    def test_delete_booking_over_http(self, client, admin_headers):
        booking = BookingFactory()
        client.patch(f'/admin/bookings/{booking.id}/status', json={'status': 'confirmed'}, headers=admin_headers)

        response = client.delete(f'/admin/bookings/{booking.id}', headers=admin_headers)
        assert response.status_code == 200
        assert client.get(f'/admin/bookings/{booking.id}', headers=admin_headers).status_code == 404


@pytest.mark.workflow
class TestExpenseAndMonitoringApi:

    def test_expense_lifecycle(self, client, admin, admin_headers):
        response = client.post('/admin/expenses', headers=admin_headers, json={
            'title': 'Oxygen cylinders', 'category': 'equipment', 'amount': 12000, 'date': '2024-03-05',
        })
        assert response.status_code == 201
        expense = response.get_json()['expense']
        assert expense['admin']['email'] == admin.email

        response = client.patch(f"/admin/expenses/{expense['id']}", headers=admin_headers,
                                json={'status': 'approved'})
        assert response.get_json()['expense']['approved_by'] == admin.id

        summary = client.get('/admin/expenses/stats/summary', headers=admin_headers).get_json()
        assert summary['approved'] == {'amount': 12000.0, 'count': 1}

    def test_location_and_overview(self, client, admin_headers, ambulance):
        response = client.post(f'/admin/monitoring/ambulances/{ambulance.id}/location', headers=admin_headers,
                               json={'latitude': 12.9716, 'longitude': 77.5946})
        assert response.status_code == 200

        history = client.get(f'/admin/monitoring/ambulances/{ambulance.id}/location-history',
                             headers=admin_headers).get_json()
        assert len(history['locations']) == 1

        overview = client.get('/admin/monitoring/status-overview', headers=admin_headers).get_json()
        assert overview['total_ambulances'] == 1
        assert overview['utilization_rate'] == 0


def test_health(client):
    assert client.get('/health').get_json()['status'] == 'ok'
