#!/usr/bin/env python3
"""
Database Management Commands for the dispatch back office

Usage:
    python database_commands.py --help
    python database_commands.py init
    python database_commands.py seed
    python database_commands.py create-admin --email ops@example.com --password secret
    python database_commands.py status
"""

import os
import sys
import argparse
import logging
import secrets
from datetime import timedelta
from app import create_app, db
from models import (Admin, Driver, DriverStatus, Ambulance, AmbulanceStatus, Assignment, Booking,
                    BookingStatus, Expense)
from services.transaction_helper import TransactionHelper
from timezone_utils import get_ist_today
from utils.twilio_otp import format_phone_number

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

DEMO_ADMIN_EMAIL = 'admin@medadmin.com'

DEMO_DRIVERS = [
    {'name': 'Rajesh Kumar', 'phone': '+91-9876543210', 'email': 'rajesh.kumar@email.com',
     'license_no': 'DL-01-1234567890', 'aadhar_no': '1234-5678-9012',
     'address': '123 MG Road, Bangalore, Karnataka 560001', 'status': DriverStatus.AVAILABLE},
    {'name': 'Suresh Patel', 'phone': '+91-9876543211', 'email': 'suresh.patel@email.com',
     'license_no': 'DL-01-1234567891', 'aadhar_no': '1234-5678-9013',
     'address': '456 Brigade Road, Bangalore, Karnataka 560025', 'status': DriverStatus.AVAILABLE},
    {'name': 'Amit Singh', 'phone': '+91-9876543212', 'email': 'amit.singh@email.com',
     'license_no': 'DL-01-1234567892', 'aadhar_no': '1234-5678-9014',
     'address': '789 Koramangala, Bangalore, Karnataka 560034', 'status': DriverStatus.BUSY},
    {'name': 'Vikram Reddy', 'phone': '+91-9876543213', 'email': 'vikram.reddy@email.com',
     'license_no': 'DL-01-1234567893', 'aadhar_no': '1234-5678-9015',
     'address': '321 Indiranagar, Bangalore, Karnataka 560038', 'status': DriverStatus.AVAILABLE},
    {'name': 'Kumar Swamy', 'phone': '+91-9876543214', 'email': 'kumar.swamy@email.com',
     'license_no': 'DL-01-1234567894', 'aadhar_no': '1234-5678-9016',
     'address': '654 Whitefield, Bangalore, Karnataka 560066', 'status': DriverStatus.OFFLINE},
]

DEMO_AMBULANCES = [
    {'model_name': 'Tata Winger', 'type': 'Basic Life Support', 'vehicle_no': 'KA-01-AB-1234',
     'equipment_details': 'Oxygen cylinder, First aid kit, Stretcher, Basic monitoring equipment, Defibrillator',
     'status': AmbulanceStatus.AVAILABLE},
    {'model_name': 'Mahindra Bolero', 'type': 'Advanced Life Support', 'vehicle_no': 'KA-01-AB-1235',
     'equipment_details': 'Advanced cardiac monitoring, Ventilator, IV pumps, Emergency medications',
     'status': AmbulanceStatus.AVAILABLE},
    {'model_name': 'Force Traveller', 'type': 'Critical Care', 'vehicle_no': 'KA-01-AB-1236',
     'equipment_details': 'ICU-grade monitoring, Advanced life support, Specialized medical equipment',
     'status': AmbulanceStatus.IN_USE},
    {'model_name': 'Toyota Innova', 'type': 'Neonatal', 'vehicle_no': 'KA-01-AB-1237',
     'equipment_details': 'Neonatal incubator, Pediatric monitoring, Temperature control',
     'status': AmbulanceStatus.AVAILABLE},
    {'model_name': 'Maruti Eeco', 'type': 'Basic Life Support', 'vehicle_no': 'KA-01-AB-1238',
     'equipment_details': 'Basic first aid, Oxygen supply, Stretcher, Emergency medications',
     'status': AmbulanceStatus.MAINTENANCE},
]

DEMO_BOOKINGS = [
    {'patient_name': 'Priya Sharma', 'phone': '+91-9876543201',
     'from_address': '123 MG Road, Bangalore, Karnataka 560001', 'from_latitude': 12.9716, 'from_longitude': 77.5946,
     'to_address': 'Apollo Hospital, Bannerghatta Road, Bangalore', 'to_latitude': 12.8446, 'to_longitude': 77.6602,
     'days_ahead': 1, 'time': '09:00', 'notes': 'Patient has diabetes, needs regular monitoring'},
    {'patient_name': 'Ravi Menon', 'phone': '+91-9876543202',
     'from_address': '22 Jayanagar 4th Block, Bangalore', 'from_latitude': 12.9250, 'from_longitude': 77.5938,
     'to_address': 'Manipal Hospital, HAL Airport Road, Bangalore', 'to_latitude': 12.9592, 'to_longitude': 77.6482,
     'days_ahead': 2, 'time': '14:30', 'notes': 'Wheelchair required'},
]

def setup_app_context():
    """Setup Flask application context for database operations."""
    # Set a temporary SESSION_SECRET for CLI operations if not set
    if not os.environ.get('SESSION_SECRET'):
        os.environ['SESSION_SECRET'] = 'cli_temp_secret_not_for_production'

    app = create_app()
    return app.app_context()

def create_admin(email, password, role='admin'):
    """Create an admin account, or return the existing one for the email."""
    from auth import hash_password

    email = email.strip().lower()
    admin = Admin.query.filter_by(email=email).first()
    if admin:
        return admin, False
    admin = Admin(email=email, password_hash=hash_password(password), role=role)
    db.session.add(admin)
    return admin, True

def _seed_records():
    password = os.environ.get('ADMIN_INITIAL_PASSWORD')
    if not password:
        password = secrets.token_urlsafe(12)
        logger.warning(f"ADMIN_INITIAL_PASSWORD not set, generated password for {DEMO_ADMIN_EMAIL}: {password}")
    admin, created = create_admin(DEMO_ADMIN_EMAIL, password, role='super_admin')
    if created:
        logger.info(f"Admin user created: {DEMO_ADMIN_EMAIL}")

    for driver_data in DEMO_DRIVERS:
        phone = format_phone_number(driver_data['phone'])
        if not Driver.query.filter_by(phone=phone).first():
            db.session.add(Driver(**{**driver_data, 'phone': phone}))
            logger.info(f"Driver created: {driver_data['name']}")

    for ambulance_data in DEMO_AMBULANCES:
        if not Ambulance.query.filter_by(vehicle_no=ambulance_data['vehicle_no']).first():
            db.session.add(Ambulance(**ambulance_data))
            logger.info(f"Ambulance created: {ambulance_data['vehicle_no']}")

    if not Booking.query.first():
        today = get_ist_today()
        for booking_data in DEMO_BOOKINGS:
            data = dict(booking_data)
            days_ahead = data.pop('days_ahead')
            db.session.add(Booking(
                **{**data, 'phone': format_phone_number(data['phone'])},
                phone_verified=True,
                from_date=today + timedelta(days=days_ahead),
                status=BookingStatus.PENDING
            ))
        logger.info(f"{len(DEMO_BOOKINGS)} sample bookings created")

def seed_demo_data():
    """Insert the demo admin, drivers, ambulances and bookings; safe to re-run."""
    success, _, error = TransactionHelper.execute_with_rollback(_seed_records)
    if not success:
        logger.error(f"Demo seeding failed: {error}")
    return success

def cmd_init(args):
    """Create all tables."""
    with setup_app_context():
        db.create_all()
        print("Database tables created")

def cmd_seed(args):
    """Load demo data."""
    with setup_app_context():
        if not seed_demo_data():
            sys.exit(1)
        print("Demo data loaded")

def cmd_create_admin(args):
    """Create an admin account."""
    with setup_app_context():
        success, admin, error = TransactionHelper.execute_with_rollback(
            lambda: create_admin(args.email, args.password, role=args.role)[0]
        )
        if not success:
            print(f"Failed to create admin: {error}")
            sys.exit(1)
        print(f"Admin ready: {admin.email} ({admin.role})")

def cmd_status(args):
    """Display record counts per table."""
    with setup_app_context():
        print("=" * 40)
        print("DATABASE STATUS")
        print("=" * 40)
        for model in (Admin, Driver, Ambulance, Assignment, Booking, Expense):
            print(f"  {model.__tablename__}: {model.query.count()} records")

def main():
    """Main command line interface."""
    parser = argparse.ArgumentParser(
        description="Database Management Commands for the dispatch back office",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    subparsers.add_parser('init', help='Create database tables')
    subparsers.add_parser('seed', help='Load demo admin, drivers, ambulances and bookings')
    subparsers.add_parser('status', help='Display record counts')

    admin_parser = subparsers.add_parser('create-admin', help='Create an admin account')
    admin_parser.add_argument('--email', required=True, help='Admin email')
    admin_parser.add_argument('--password', required=True, help='Admin password')
    admin_parser.add_argument('--role', choices=['admin', 'super_admin'], default='admin')

    args = parser.parse_args()

    commands = {
        'init': cmd_init,
        'seed': cmd_seed,
        'status': cmd_status,
        'create-admin': cmd_create_admin,
    }

    if not args.command:
        parser.print_help()
        sys.exit(1)

    try:
        commands[args.command](args)
    except KeyboardInterrupt:
        print("\nOperation cancelled by user")
        sys.exit(1)
    except Exception as e:
        logger.exception("Unexpected error occurred")
        print(f"Unexpected error: {str(e)}")
        sys.exit(1)

if __name__ == "__main__":
    main()
