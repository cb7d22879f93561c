import json
import uuid
from app import db
from sqlalchemy import Index, UniqueConstraint
from enum import Enum
from timezone_utils import get_ist_time_naive

# Enums for better data integrity
class DriverStatus(Enum):
    AVAILABLE = 'available'
    BUSY = 'busy'
    OFFLINE = 'offline'

class AmbulanceStatus(Enum):
    AVAILABLE = 'available'
    IN_USE = 'in_use'
    MAINTENANCE = 'maintenance'
    OUT_OF_SERVICE = 'out_of_service'
    ON_DUTY = 'on_duty'

class Shift(Enum):
    MORNING = 'morning'      # 06:00-14:00
    AFTERNOON = 'afternoon'  # 14:00-22:00
    NIGHT = 'night'          # 22:00-06:00

class AssignmentStatus(Enum):
    SCHEDULED = 'scheduled'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'

class BookingStatus(Enum):
    PENDING = 'pending'
    CONFIRMED = 'confirmed'
    ASSIGNED = 'assigned'
    IN_PROGRESS = 'in_progress'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'
    ACTIVE = 'active'  # en route, shown on the monitoring map

class BookingEventType(Enum):
    BOOKING_CREATED = 'BookingCreated'
    BOOKING_UPDATED = 'BookingUpdated'
    STATUS_CHANGED = 'StatusChanged'
    AMBULANCE_ASSIGNED = 'AmbulanceAssigned'

class ExpenseStatus(Enum):
    PENDING = 'pending'
    APPROVED = 'approved'
    REJECTED = 'rejected'

class ExpenseCategory(Enum):
    MAINTENANCE = 'maintenance'
    FUEL = 'fuel'
    EQUIPMENT = 'equipment'
    DRIVER = 'driver'
    INSURANCE = 'insurance'
    OTHER = 'other'


def _iso(value):
    return value.isoformat() if value else None


class Admin(db.Model):
    __tablename__ = 'admins'

    id = db.Column(db.Integer, primary_key=True)
    uuid = db.Column(db.String(36), unique=True, nullable=False, default=lambda: str(uuid.uuid4()))
    email = db.Column(db.String(120), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(256), nullable=False)
    role = db.Column(db.String(30), nullable=False, default='admin')

    created_at = db.Column(db.DateTime, default=get_ist_time_naive, nullable=False)
    updated_at = db.Column(db.DateTime, default=get_ist_time_naive, onupdate=get_ist_time_naive)

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'role': self.role,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at),
        }

    def __repr__(self):
        return f'<Admin {self.email}>'

class Driver(db.Model):
    __tablename__ = 'drivers'

    id = db.Column(db.Integer, primary_key=True)
    uuid = db.Column(db.String(36), unique=True, nullable=False, default=lambda: str(uuid.uuid4()))

    # Personal Information
    name = db.Column(db.String(100), nullable=False, index=True)
    phone = db.Column(db.String(20), unique=True, nullable=False, index=True)
    email = db.Column(db.String(120))
    address = db.Column(db.Text)

    # Documents
    license_no = db.Column(db.String(50))
    aadhar_no = db.Column(db.String(20))

    status = db.Column(db.Enum(DriverStatus), nullable=False, default=DriverStatus.AVAILABLE, index=True)

    created_at = db.Column(db.DateTime, default=get_ist_time_naive, nullable=False)
    updated_at = db.Column(db.DateTime, default=get_ist_time_naive, onupdate=get_ist_time_naive)

    def to_summary(self):
        return {
            'id': self.id,
            'name': self.name,
            'phone': self.phone,
            'status': self.status.value,
        }

    def to_dict(self):
        data = self.to_summary()
        data.update({
            'email': self.email,
            'address': self.address,
            'license_no': self.license_no,
            'aadhar_no': self.aadhar_no,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at),
        })
        return data

    def __repr__(self):
        return f'<Driver {self.name}>'

class Ambulance(db.Model):
    __tablename__ = 'ambulances'

    id = db.Column(db.Integer, primary_key=True)
    uuid = db.Column(db.String(36), unique=True, nullable=False, default=lambda: str(uuid.uuid4()))

    # Vehicle identification
    vehicle_no = db.Column(db.String(20), unique=True, nullable=False, index=True)
    model_name = db.Column(db.String(100), nullable=False)
    type = db.Column(db.String(50), nullable=False)  # Basic Life Support, Critical Care, etc.
    equipment_details = db.Column(db.Text)

    # Operational status
    status = db.Column(db.Enum(AmbulanceStatus), nullable=False, default=AmbulanceStatus.AVAILABLE, index=True)

    # Last known position
    current_latitude = db.Column(db.Float)
    current_longitude = db.Column(db.Float)
    last_location_update = db.Column(db.DateTime)

    created_at = db.Column(db.DateTime, default=get_ist_time_naive, nullable=False)
    updated_at = db.Column(db.DateTime, default=get_ist_time_naive, onupdate=get_ist_time_naive)

    # Relationships
    locations = db.relationship('AmbulanceLocation', backref='ambulance', lazy='dynamic',
                                cascade='all, delete-orphan')

    def to_summary(self):
        return {
            'id': self.id,
            'vehicle_no': self.vehicle_no,
            'model_name': self.model_name,
            'type': self.type,
            'status': self.status.value,
        }

    def to_dict(self):
        data = self.to_summary()
        data.update({
            'equipment_details': self.equipment_details,
            'current_latitude': self.current_latitude,
            'current_longitude': self.current_longitude,
            'last_location_update': _iso(self.last_location_update),
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at),
        })
        return data

    def __repr__(self):
        return f'<Ambulance {self.vehicle_no}>'

class AmbulanceLocation(db.Model):
    """
    Append-only GPS samples reported for an ambulance
    """
    __tablename__ = 'ambulance_locations'

    id = db.Column(db.Integer, primary_key=True)
    ambulance_id = db.Column(db.Integer, db.ForeignKey('ambulances.id'), nullable=False, index=True)

    latitude = db.Column(db.Float, nullable=False)
    longitude = db.Column(db.Float, nullable=False)
    speed = db.Column(db.Float)
    heading = db.Column(db.Float)
    accuracy = db.Column(db.Float)

    recorded_at = db.Column(db.DateTime, nullable=False, default=get_ist_time_naive, index=True)

    __table_args__ = (
        Index('idx_ambulance_location_time', 'ambulance_id', 'recorded_at'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'ambulance_id': self.ambulance_id,
            'latitude': self.latitude,
            'longitude': self.longitude,
            'speed': self.speed,
            'heading': self.heading,
            'accuracy': self.accuracy,
            'recorded_at': _iso(self.recorded_at),
        }

    def __repr__(self):
        return f'<AmbulanceLocation Ambulance:{self.ambulance_id} {self.latitude},{self.longitude}>'

class Assignment(db.Model):
    __tablename__ = 'assignments'

    id = db.Column(db.Integer, primary_key=True)
    uuid = db.Column(db.String(36), unique=True, nullable=False, default=lambda: str(uuid.uuid4()))

    # Roster slot
    date = db.Column(db.Date, nullable=False, index=True)
    shift = db.Column(db.Enum(Shift), nullable=False)

    driver_id = db.Column(db.Integer, db.ForeignKey('drivers.id'), nullable=False, index=True)
    ambulance_id = db.Column(db.Integer, db.ForeignKey('ambulances.id'), nullable=False, index=True)

    notes = db.Column(db.Text)
    status = db.Column(db.Enum(AssignmentStatus), nullable=False, default=AssignmentStatus.SCHEDULED, index=True)

    created_at = db.Column(db.DateTime, default=get_ist_time_naive)
    updated_at = db.Column(db.DateTime, default=get_ist_time_naive, onupdate=get_ist_time_naive)

    # Relationships
    driver = db.relationship('Driver', backref='assignments')
    ambulance = db.relationship('Ambulance', backref='assignments')

    # One ambulance per (date, shift)
    __table_args__ = (
        UniqueConstraint('date', 'shift', 'ambulance_id', name='uq_assignment_ambulance_slot'),
        Index('idx_assignment_date_shift', 'date', 'shift'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'date': self.date.isoformat(),
            'shift': self.shift.value,
            'driver_id': self.driver_id,
            'ambulance_id': self.ambulance_id,
            'notes': self.notes,
            'status': self.status.value,
            'driver': self.driver.to_summary() if self.driver else None,
            'ambulance': self.ambulance.to_summary() if self.ambulance else None,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at),
        }

    def __repr__(self):
        return f'<Assignment {self.date} {self.shift.value} Ambulance:{self.ambulance_id}>'

class Booking(db.Model):
    __tablename__ = 'bookings'

    id = db.Column(db.Integer, primary_key=True)
    uuid = db.Column(db.String(36), unique=True, nullable=False, default=lambda: str(uuid.uuid4()))

    # Patient
    patient_name = db.Column(db.String(100), nullable=False)
    phone = db.Column(db.String(20), nullable=False, index=True)
    phone_verified = db.Column(db.Boolean, default=False, nullable=False)

    # Route
    from_address = db.Column(db.Text, nullable=False)
    from_latitude = db.Column(db.Float)
    from_longitude = db.Column(db.Float)
    to_address = db.Column(db.Text, nullable=False)
    to_latitude = db.Column(db.Float)
    to_longitude = db.Column(db.Float)

    # Schedule
    from_date = db.Column(db.Date, nullable=False)
    to_date = db.Column(db.Date)
    time = db.Column(db.String(20))
    notes = db.Column(db.Text)

    status = db.Column(db.Enum(BookingStatus), nullable=False, default=BookingStatus.PENDING, index=True)
    assigned_ambulance_id = db.Column(db.Integer, db.ForeignKey('ambulances.id'), index=True)
    assigned_driver_id = db.Column(db.Integer, db.ForeignKey('drivers.id'), index=True)

    created_at = db.Column(db.DateTime, default=get_ist_time_naive, nullable=False)
    updated_at = db.Column(db.DateTime, default=get_ist_time_naive, onupdate=get_ist_time_naive)

    # Relationships
    assigned_ambulance = db.relationship('Ambulance', backref='bookings')
    assigned_driver = db.relationship('Driver', backref='bookings')
    events = db.relationship('BookingEvent', backref='booking', lazy='dynamic',
                             order_by='BookingEvent.id')

    def to_dict(self, include_events=False):
        data = {
            'id': self.id,
            'patient_name': self.patient_name,
            'phone': self.phone,
            'phone_verified': self.phone_verified,
            'from_address': self.from_address,
            'from_latitude': self.from_latitude,
            'from_longitude': self.from_longitude,
            'to_address': self.to_address,
            'to_latitude': self.to_latitude,
            'to_longitude': self.to_longitude,
            'from_date': _iso(self.from_date),
            'to_date': _iso(self.to_date),
            'time': self.time,
            'notes': self.notes,
            'status': self.status.value,
            'assigned_ambulance_id': self.assigned_ambulance_id,
            'assigned_driver_id': self.assigned_driver_id,
            'assigned_ambulance': self.assigned_ambulance.to_summary() if self.assigned_ambulance else None,
            'assigned_driver': self.assigned_driver.to_summary() if self.assigned_driver else None,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at),
        }
        if include_events:
            data['events'] = [event.to_dict() for event in
                              self.events.order_by(None).order_by(BookingEvent.id.desc()).all()]
        return data

    def __repr__(self):
        return f'<Booking {self.id} {self.patient_name}>'

class BookingEvent(db.Model):
    """
    Append-only audit trail entry for a booking
    """
    __tablename__ = 'booking_events'

    id = db.Column(db.Integer, primary_key=True)
    booking_id = db.Column(db.Integer, db.ForeignKey('bookings.id'), nullable=False, index=True)
    type = db.Column(db.Enum(BookingEventType), nullable=False, index=True)
    payload = db.Column(db.Text, nullable=False)  # JSON

    created_at = db.Column(db.DateTime, default=get_ist_time_naive, nullable=False, index=True)

    def get_payload(self):
        return json.loads(self.payload) if self.payload else {}

    def to_dict(self):
        return {
            'id': self.id,
            'booking_id': self.booking_id,
            'type': self.type.value,
            'payload': self.get_payload(),
            'created_at': _iso(self.created_at),
        }

    def __repr__(self):
        return f'<BookingEvent {self.type.value} Booking:{self.booking_id}>'

class OtpVerification(db.Model):
    __tablename__ = 'otp_verifications'

    id = db.Column(db.Integer, primary_key=True)
    phone = db.Column(db.String(20), unique=True, nullable=False, index=True)
    otp = db.Column(db.String(6), nullable=False)
    expires_at = db.Column(db.DateTime, nullable=False)
    verified = db.Column(db.Boolean, default=False, nullable=False)

    created_at = db.Column(db.DateTime, default=get_ist_time_naive, nullable=False)
    updated_at = db.Column(db.DateTime, default=get_ist_time_naive, nullable=False)

    def is_expired(self, now):
        return now > self.expires_at

    def __repr__(self):
        return f'<OtpVerification {self.phone[-4:].rjust(len(self.phone), "*")}>'

class Expense(db.Model):
    __tablename__ = 'expenses'

    id = db.Column(db.Integer, primary_key=True)
    uuid = db.Column(db.String(36), unique=True, nullable=False, default=lambda: str(uuid.uuid4()))

    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text)
    category = db.Column(db.Enum(ExpenseCategory), nullable=False, index=True)
    amount = db.Column(db.Float, nullable=False)
    currency = db.Column(db.String(3), nullable=False, default='INR')
    date = db.Column(db.Date, nullable=False, index=True)
    vendor = db.Column(db.String(200))
    receipt_url = db.Column(db.String(500))

    status = db.Column(db.Enum(ExpenseStatus), nullable=False, default=ExpenseStatus.PENDING, index=True)

    # Workflow
    created_by = db.Column(db.Integer, db.ForeignKey('admins.id'), nullable=False)
    approved_by = db.Column(db.Integer, db.ForeignKey('admins.id'))
    approved_at = db.Column(db.DateTime)

    created_at = db.Column(db.DateTime, default=get_ist_time_naive, nullable=False)
    updated_at = db.Column(db.DateTime, default=get_ist_time_naive, onupdate=get_ist_time_naive)

    # Relationships
    creator = db.relationship('Admin', foreign_keys=[created_by])
    approver = db.relationship('Admin', foreign_keys=[approved_by])

    __table_args__ = (
        Index('idx_expense_status_date', 'status', 'date'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'category': self.category.value,
            'amount': self.amount,
            'currency': self.currency,
            'date': _iso(self.date),
            'vendor': self.vendor,
            'receipt_url': self.receipt_url,
            'status': self.status.value,
            'created_by': self.created_by,
            'approved_by': self.approved_by,
            'approved_at': _iso(self.approved_at),
            'admin': {'id': self.creator.id, 'email': self.creator.email} if self.creator else None,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at),
        }

    def __repr__(self):
        return f'<Expense {self.title} {self.amount}>'
