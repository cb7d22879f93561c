from flask import Blueprint, request, jsonify
import logging
from app import db
from auth import admin_required, get_current_admin
from models import Booking, BookingStatus, Driver, DriverStatus, Ambulance, AmbulanceStatus
from services.errors import ServiceError
from services.assignment_service import AssignmentService, UNSET
from services.driver_service import DriverService
from services.ambulance_service import AmbulanceService
from services.expense_service import ExpenseService
from utils.scheduling import generate_date_range

logger = logging.getLogger(__name__)

admin_bp = Blueprint('admin', __name__)

OPEN_BOOKING_STATUSES = (BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingStatus.ASSIGNED,
                         BookingStatus.IN_PROGRESS, BookingStatus.ACTIVE)


def _internal_error(action, error):
    logger.error(f"Error trying to {action}: {str(error)}")
    db.session.rollback()
    return jsonify({
        'success': False,
        'error': 'INTERNAL_ERROR',
        'message': f'Failed to {action}'
    }), 500


def _not_found(entity):
    return jsonify({'success': False, 'error': 'NOT_FOUND', 'message': f'{entity} not found'}), 404


def _json_body():
    # Object bodies only; arrays and scalars read as empty
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _batch_response(results):
    created = sum(1 for result in results if result['success'])
    return jsonify({
        'success': True,
        'created': created,
        'failed': len(results) - created,
        'results': results
    })


# Dashboard

@admin_bp.route('/stats', methods=['GET'])
@admin_required
def stats():
    """Headline counts for the dashboard"""
    try:
        return jsonify({
            'success': True,
            'stats': {
                'total_bookings': Booking.query.count(),
                'open_bookings': Booking.query.filter(Booking.status.in_(OPEN_BOOKING_STATUSES)).count(),
                'total_drivers': Driver.query.count(),
                'available_drivers': Driver.query.filter_by(status=DriverStatus.AVAILABLE).count(),
                'total_ambulances': Ambulance.query.count(),
                'available_ambulances': Ambulance.query.filter_by(status=AmbulanceStatus.AVAILABLE).count()
            }
        })
    except Exception as e:
        return _internal_error('load dashboard stats', e)


# Drivers

@admin_bp.route('/drivers', methods=['GET'])
@admin_required
def list_drivers():
    try:
        drivers = DriverService().list_drivers(status=request.args.get('status'))
        return jsonify({'success': True, 'drivers': [driver.to_dict() for driver in drivers]})
    except ServiceError as e:
        return e.to_response()
    except Exception as e:
        return _internal_error('fetch drivers', e)


@admin_bp.route('/drivers', methods=['POST'])
@admin_required
def create_driver():
    try:
        success, error, driver = DriverService().create_driver(_json_body())
        if not success:
            return error.to_response()
        return jsonify({'success': True, 'driver': driver.to_dict()}), 201
    except Exception as e:
        return _internal_error('create driver', e)


@admin_bp.route('/drivers/<int:driver_id>', methods=['GET'])
@admin_required
def get_driver(driver_id):
    try:
        driver = DriverService().get_driver(driver_id)
        if not driver:
            return _not_found('Driver')
        return jsonify({'success': True, 'driver': driver.to_dict()})
    except Exception as e:
        return _internal_error('fetch driver', e)


@admin_bp.route('/drivers/phone/<phone>', methods=['GET'])
@admin_required
def get_driver_by_phone(phone):
    try:
        driver = DriverService().get_driver_by_phone(phone)
        if not driver:
            return _not_found('Driver')
        return jsonify({'success': True, 'driver': driver.to_dict()})
    except Exception as e:
        return _internal_error('fetch driver', e)


@admin_bp.route('/drivers/<int:driver_id>', methods=['PATCH'])
@admin_required
def update_driver(driver_id):
    try:
        success, error, driver = DriverService().update_driver(driver_id, _json_body())
        if not success:
            return error.to_response()
        return jsonify({'success': True, 'driver': driver.to_dict()})
    except Exception as e:
        return _internal_error('update driver', e)


@admin_bp.route('/drivers/<int:driver_id>', methods=['DELETE'])
@admin_required
def delete_driver(driver_id):
    try:
        success, error, _ = DriverService().delete_driver(driver_id)
        if not success:
            return error.to_response()
        return jsonify({'success': True, 'message': 'Driver deleted successfully'})
    except Exception as e:
        return _internal_error('delete driver', e)


# Ambulances

@admin_bp.route('/ambulances', methods=['GET'])
@admin_required
def list_ambulances():
    try:
        ambulances = AmbulanceService().list_ambulances(status=request.args.get('status'))
        return jsonify({'success': True, 'ambulances': [ambulance.to_dict() for ambulance in ambulances]})
    except ServiceError as e:
        return e.to_response()
    except Exception as e:
        return _internal_error('fetch ambulances', e)


@admin_bp.route('/ambulances', methods=['POST'])
@admin_required
def create_ambulance():
    try:
        success, error, ambulance = AmbulanceService().create_ambulance(_json_body())
        if not success:
            return error.to_response()
        return jsonify({'success': True, 'ambulance': ambulance.to_dict()}), 201
    except Exception as e:
        return _internal_error('create ambulance', e)


@admin_bp.route('/ambulances/<int:ambulance_id>', methods=['GET'])
@admin_required
def get_ambulance(ambulance_id):
    try:
        ambulance = AmbulanceService().get_ambulance(ambulance_id)
        if not ambulance:
            return _not_found('Ambulance')
        return jsonify({'success': True, 'ambulance': ambulance.to_dict()})
    except Exception as e:
        return _internal_error('fetch ambulance', e)


@admin_bp.route('/ambulances/<int:ambulance_id>', methods=['PATCH'])
@admin_required
def update_ambulance(ambulance_id):
    try:
        success, error, ambulance = AmbulanceService().update_ambulance(ambulance_id, _json_body())
        if not success:
            return error.to_response()
        return jsonify({'success': True, 'ambulance': ambulance.to_dict()})
    except Exception as e:
        return _internal_error('update ambulance', e)


@admin_bp.route('/ambulances/<int:ambulance_id>', methods=['DELETE'])
@admin_required
def delete_ambulance(ambulance_id):
    try:
        success, error, _ = AmbulanceService().delete_ambulance(ambulance_id)
        if not success:
            return error.to_response()
        return jsonify({'success': True, 'message': 'Ambulance deleted successfully'})
    except Exception as e:
        return _internal_error('delete ambulance', e)


# Assignments

@admin_bp.route('/assignments', methods=['GET'])
@admin_required
def list_assignments():
    try:
        assignments = AssignmentService().list_assignments(
            start_date=request.args.get('start_date'),
            end_date=request.args.get('end_date'),
            ambulance_id=request.args.get('ambulance_id')
        )
        return jsonify({'success': True, 'assignments': [a.to_dict() for a in assignments]})
    except ServiceError as e:
        return e.to_response()
    except Exception as e:
        return _internal_error('fetch assignments', e)


@admin_bp.route('/assignments', methods=['POST'])
@admin_required
def create_assignment():
    """
    Create assignments for one day, a list of days ("dates") or an
    inclusive range ("start_date"/"end_date", at most 30 days).
    """
    try:
        data = _json_body()
        service = AssignmentService()
        common = (data.get('shift'), data.get('driver_id'), data.get('ambulance_id'), data.get('notes'))

        if data.get('start_date') or data.get('end_date'):
            success, error, results = service.create_assignment_range(
                data.get('start_date'), data.get('end_date'), *common)
            if not success:
                return error.to_response()
            return _batch_response(results)

        if data.get('dates'):
            success, error, results = service.create_assignment_days(data['dates'], *common)
            if not success:
                return error.to_response()
            return _batch_response(results)

        success, error, assignment = service.create_assignment(data.get('date'), *common)
        if not success:
            return error.to_response()
        return jsonify({'success': True, 'assignment': assignment.to_dict()}), 201
    except Exception as e:
        return _internal_error('create assignment', e)


@admin_bp.route('/assignments/batch', methods=['POST'])
@admin_required
def create_assignment_batch():
    try:
        entries = _json_body().get('assignments')
        if not isinstance(entries, list) or not entries:
            return jsonify({
                'success': False,
                'error': 'VALIDATION_ERROR',
                'message': 'assignments must be a non-empty list'
            }), 400
        return _batch_response(AssignmentService().create_assignment_batch(entries))
    except Exception as e:
        return _internal_error('create assignments', e)


@admin_bp.route('/assignments/date/<date>', methods=['GET'])
@admin_required
def assignments_for_date(date):
    try:
        assignments = AssignmentService().list_assignments_for_date(date)
        return jsonify({'success': True, 'assignments': [a.to_dict() for a in assignments]})
    except ServiceError as e:
        return e.to_response()
    except Exception as e:
        return _internal_error('fetch assignments', e)


@admin_bp.route('/assignments/available-drivers', methods=['GET'])
@admin_required
def available_drivers():
    try:
        drivers = AssignmentService().list_available_drivers(request.args.get('date'), request.args.get('shift'))
        return jsonify({'success': True, 'drivers': [driver.to_dict() for driver in drivers]})
    except ServiceError as e:
        return e.to_response()
    except Exception as e:
        return _internal_error('fetch available drivers', e)


@admin_bp.route('/assignments/available-ambulances', methods=['GET'])
@admin_required
def available_ambulances():
    try:
        ambulances = AssignmentService().list_available_ambulances(request.args.get('date'), request.args.get('shift'))
        return jsonify({'success': True, 'ambulances': [ambulance.to_dict() for ambulance in ambulances]})
    except ServiceError as e:
        return e.to_response()
    except Exception as e:
        return _internal_error('fetch available ambulances', e)


@admin_bp.route('/assignments/availability', methods=['GET'])
@admin_required
def check_availability():
    """Eligibility of a driver and/or ambulance over a day, list of days or range"""
    try:
        args = request.args
        if args.get('start_date') or args.get('end_date'):
            dates = generate_date_range(args.get('start_date'), args.get('end_date'))
        elif args.get('dates'):
            dates = [day for day in args.get('dates').split(',') if day.strip()]
        else:
            dates = [args.get('date')]

        result = AssignmentService().check_availability(
            args.get('driver_id'),
            args.get('ambulance_id'),
            args.get('shift'),
            dates,
            exclude_assignment_id=args.get('exclude_assignment_id', type=int)
        )
        return jsonify({'success': True, **result})
    except ServiceError as e:
        return e.to_response()
    except Exception as e:
        return _internal_error('check availability', e)


@admin_bp.route('/assignments/<int:assignment_id>', methods=['PATCH'])
@admin_required
def update_assignment(assignment_id):
    try:
        data = _json_body()
        success, error, assignment = AssignmentService().update_assignment(
            assignment_id,
            driver_id=data.get('driver_id'),
            status=data.get('status'),
            notes=data['notes'] if 'notes' in data else UNSET
        )
        if not success:
            return error.to_response()
        return jsonify({'success': True, 'assignment': assignment.to_dict()})
    except Exception as e:
        return _internal_error('update assignment', e)


@admin_bp.route('/assignments/<int:assignment_id>', methods=['DELETE'])
@admin_required
def delete_assignment(assignment_id):
    try:
        success, error, _ = AssignmentService().delete_assignment(assignment_id)
        if not success:
            return error.to_response()
        return jsonify({'success': True, 'message': 'Assignment deleted successfully'})
    except Exception as e:
        return _internal_error('delete assignment', e)


# Expenses

@admin_bp.route('/expenses', methods=['GET'])
@admin_required
def list_expenses():
    try:
        args = request.args
        result = ExpenseService().list_expenses(
            page=args.get('page', 1),
            limit=args.get('limit', 10),
            category=args.get('category'),
            status=args.get('status'),
            start_date=args.get('start_date'),
            end_date=args.get('end_date'),
            search=args.get('search')
        )
        return jsonify({
            'success': True,
            'expenses': [expense.to_dict() for expense in result['expenses']],
            'pagination': result['pagination']
        })
    except ServiceError as e:
        return e.to_response()
    except Exception as e:
        return _internal_error('fetch expenses', e)


@admin_bp.route('/expenses', methods=['POST'])
@admin_required
def create_expense():
    try:
        success, error, expense = ExpenseService().create_expense(_json_body(), get_current_admin().id)
        if not success:
            return error.to_response()
        return jsonify({'success': True, 'expense': expense.to_dict()}), 201
    except Exception as e:
        return _internal_error('create expense', e)


@admin_bp.route('/expenses/stats/summary', methods=['GET'])
@admin_required
def expense_summary():
    try:
        summary = ExpenseService().summary(request.args.get('start_date'), request.args.get('end_date'))
        return jsonify({'success': True, **summary})
    except ServiceError as e:
        return e.to_response()
    except Exception as e:
        return _internal_error('fetch expense statistics', e)


@admin_bp.route('/expenses/<int:expense_id>', methods=['GET'])
@admin_required
def get_expense(expense_id):
    try:
        expense = ExpenseService().get_expense(expense_id)
        if not expense:
            return _not_found('Expense')
        return jsonify({'success': True, 'expense': expense.to_dict()})
    except Exception as e:
        return _internal_error('fetch expense', e)


@admin_bp.route('/expenses/<int:expense_id>', methods=['PATCH'])
@admin_required
def update_expense(expense_id):
    try:
        success, error, expense = ExpenseService().update_expense(
            expense_id, _json_body(), get_current_admin().id)
        if not success:
            return error.to_response()
        return jsonify({'success': True, 'expense': expense.to_dict()})
    except Exception as e:
        return _internal_error('update expense', e)


@admin_bp.route('/expenses/<int:expense_id>', methods=['DELETE'])
@admin_required
def delete_expense(expense_id):
    try:
        success, error, _ = ExpenseService().delete_expense(expense_id)
        if not success:
            return error.to_response()
        return jsonify({'success': True, 'message': 'Expense deleted successfully'})
    except Exception as e:
        return _internal_error('delete expense', e)
