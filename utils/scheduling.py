from datetime import datetime, timedelta, date
from models import Shift, DriverStatus, AmbulanceStatus
from services.errors import ServiceError, ErrorKind

MAX_RANGE_DAYS = 30

# Chronological order inside a day
SHIFT_ORDER = {Shift.MORNING: 0, Shift.AFTERNOON: 1, Shift.NIGHT: 2}

AVAILABLE_STATUSES = (DriverStatus.AVAILABLE, AmbulanceStatus.AVAILABLE)


def parse_shift(value):
    """
    Resolve a shift given as enum or name
    """
    if isinstance(value, Shift):
        return value
    try:
        return Shift(str(value).strip().lower())
    except ValueError:
        raise ServiceError(ErrorKind.VALIDATION, f"Invalid shift: {value}")


def normalize_calendar_date(value):
    """
    Reduce a date, datetime or ISO string to its calendar day.

    Time-of-day and UTC offsets are dropped, never converted:
    '2024-03-15T23:30:00-05:00' is 2024-03-15.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and len(value.strip()) >= 10:
        try:
            return datetime.strptime(value.strip()[:10], '%Y-%m-%d').date()
        except ValueError:
            pass
    raise ServiceError(ErrorKind.VALIDATION, f"Invalid date: {value}")


def generate_date_range(start, end, max_days=MAX_RANGE_DAYS):
    """
    Expand an inclusive date range into ascending YYYY-MM-DD strings
    """
    start_date = normalize_calendar_date(start)
    end_date = normalize_calendar_date(end)

    if start_date > end_date:
        raise ServiceError(ErrorKind.INVALID_RANGE, 'Start date must be before end date')

    total_days = (end_date - start_date).days + 1
    if total_days > max_days:
        raise ServiceError(ErrorKind.INVALID_RANGE, f'Date range cannot exceed {max_days} days')

    return [(start_date + timedelta(days=offset)).strftime('%Y-%m-%d') for offset in range(total_days)]


def is_entity_eligible(entity, entity_field, assignments, on_date, shift, exclude_assignment_id=None):
    """
    An entity is eligible for a slot when its status is available and no
    assignment other than the excluded one already holds it for that
    date and shift.

    ``entity_field`` is the assignment attribute that references the entity
    ('driver_id' or 'ambulance_id').
    """
    if entity is None or entity.status not in AVAILABLE_STATUSES:
        return False

    day = normalize_calendar_date(on_date)
    shift = parse_shift(shift)
    for assignment in assignments:
        if exclude_assignment_id is not None and assignment.id == exclude_assignment_id:
            continue
        if (assignment.date == day and assignment.shift == shift
                and getattr(assignment, entity_field) == entity.id):
            return False
    return True


def is_eligible_for_dates(entity, entity_field, assignments, dates, shift, exclude_assignment_id=None):
    """Eligibility over several days is the AND of each day"""
    assignments = list(assignments)
    return all(
        is_entity_eligible(entity, entity_field, assignments, day, shift, exclude_assignment_id)
        for day in dates
    )


def assignment_sort_key(assignment):
    return (assignment.date, SHIFT_ORDER.get(assignment.shift, len(SHIFT_ORDER)))
