"""
Expense Service

Operating expense ledger with an approval workflow and summary statistics.
"""

from typing import Optional, Dict, Any, List, Tuple
import logging
import math
from datetime import datetime
from sqlalchemy import func, or_
from models import Expense, ExpenseCategory, ExpenseStatus
from timezone_utils import get_ist_time_naive
from utils.scheduling import normalize_calendar_date
from .errors import ServiceError, validation_error, not_found
from .transaction_helper import TransactionHelper

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ('title', 'category', 'amount', 'date')
EXPENSE_FIELDS = ('title', 'description', 'category', 'amount', 'currency', 'date', 'vendor', 'receipt_url')

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


def parse_category(value) -> ExpenseCategory:
    try:
        return value if isinstance(value, ExpenseCategory) else ExpenseCategory(str(value).strip().lower())
    except ValueError:
        raise validation_error(f'Invalid expense category: {value}')


def parse_expense_status(value) -> ExpenseStatus:
    try:
        return value if isinstance(value, ExpenseStatus) else ExpenseStatus(str(value).strip().lower())
    except ValueError:
        raise validation_error(f'Invalid expense status: {value}')


def _parse_amount(value) -> float:
    try:
        amount = float(value)
    except (TypeError, ValueError):
        raise validation_error('amount must be a number')
    if amount <= 0:
        raise validation_error('amount must be greater than zero')
    return amount


class ExpenseService:
    """Service class for the expense ledger"""

    def __init__(self, store=None):
        if store is None:
            from app import db as store
        self.store = store

    @property
    def session(self):
        return self.store.session

    def _apply(self, expense: Expense, data: Dict[str, Any]) -> None:
        for name in EXPENSE_FIELDS:
            if name not in data:
                continue
            value = data[name]
            if name in REQUIRED_FIELDS and value in (None, ''):
                raise validation_error(f'{name} cannot be empty')
            if name == 'category':
                value = parse_category(value)
            elif name == 'amount':
                value = _parse_amount(value)
            elif name == 'date':
                value = normalize_calendar_date(value)
            elif name == 'currency':
                value = (value or 'INR').upper()
            setattr(expense, name, value)

    def _date_filtered(self, query, start_date=None, end_date=None):
        if start_date:
            query = query.filter(Expense.date >= normalize_calendar_date(start_date))
        if end_date:
            query = query.filter(Expense.date <= normalize_calendar_date(end_date))
        return query

    @TransactionHelper.with_transaction
    def create_expense(self, data: Dict[str, Any],
                       created_by: int) -> Tuple[bool, Optional[ServiceError], Optional[Expense]]:
        """
        Record a pending expense.

        Args:
            data: title, category, amount and date required
            created_by: id of the admin recording it
        """
        missing = [name for name in REQUIRED_FIELDS if data.get(name) in (None, '')]
        if missing:
            return False, validation_error(f"Missing required fields: {', '.join(missing)}"), None

        expense = Expense(status=ExpenseStatus.PENDING, currency='INR', created_by=created_by)
        try:
            self._apply(expense, data)
        except ServiceError as e:
            return False, e, None

        self.session.add(expense)
        self.session.flush()
        logger.info(f"Expense {expense.id} recorded: {expense.title} {expense.amount} {expense.currency}")
        return True, None, expense

    @TransactionHelper.with_transaction
    def update_expense(self, expense_id: int, data: Dict[str, Any], updated_by: int,
                       now: Optional[datetime] = None) -> Tuple[bool, Optional[ServiceError], Optional[Expense]]:
        """Edit an expense; moving it to approved stamps the approver and time"""
        expense = self.session.get(Expense, expense_id)
        if not expense:
            return False, not_found('Expense'), None

        try:
            self._apply(expense, data)
            if data.get('status'):
                status = parse_expense_status(data['status'])
                expense.status = status
                if status == ExpenseStatus.APPROVED:
                    expense.approved_by = updated_by
                    expense.approved_at = now or get_ist_time_naive()
        except ServiceError as e:
            return False, e, None

        logger.info(f"Expense {expense_id} updated by admin {updated_by}")
        return True, None, expense

    @TransactionHelper.with_transaction
    def delete_expense(self, expense_id: int) -> Tuple[bool, Optional[ServiceError], None]:
        expense = self.session.get(Expense, expense_id)
        if not expense:
            return False, not_found('Expense'), None
        self.session.delete(expense)
        logger.info(f"Expense {expense_id} deleted")
        return True, None, None

    def get_expense(self, expense_id: int) -> Optional[Expense]:
        return self.session.get(Expense, expense_id)

    def list_expenses(self, page=1, limit=DEFAULT_PAGE_SIZE, category=None, status=None,
                      start_date=None, end_date=None, search=None) -> Dict[str, Any]:
        """
        Filtered, paginated listing, most recent expense date first.

        Returns:
            dict: {'expenses': [Expense], 'pagination': {total, page, limit, pages}}
        """
        try:
            page = max(int(page or 1), 1)
            limit = min(max(int(limit or DEFAULT_PAGE_SIZE), 1), MAX_PAGE_SIZE)
        except (TypeError, ValueError):
            raise validation_error('page and limit must be integers')

        query = self.session.query(Expense)
        if category:
            query = query.filter(Expense.category == parse_category(category))
        if status:
            query = query.filter(Expense.status == parse_expense_status(status))
        query = self._date_filtered(query, start_date, end_date)
        if search:
            pattern = f'%{search}%'
            query = query.filter(or_(
                Expense.title.ilike(pattern),
                Expense.description.ilike(pattern),
                Expense.vendor.ilike(pattern)
            ))

        total = query.count()
        expenses = query.order_by(Expense.date.desc(), Expense.id.desc()).offset(
            (page - 1) * limit
        ).limit(limit).all()

        return {
            'expenses': expenses,
            'pagination': {
                'total': total,
                'page': page,
                'limit': limit,
                'pages': math.ceil(total / limit),
            }
        }

    def summary(self, start_date=None, end_date=None) -> Dict[str, Any]:
        """Totals overall, by workflow status and by category"""
        def aggregate(status=None):
            query = self._date_filtered(
                self.session.query(func.coalesce(func.sum(Expense.amount), 0), func.count(Expense.id)),
                start_date, end_date
            )
            if status:
                query = query.filter(Expense.status == status)
            amount, count = query.one()
            return {'amount': float(amount or 0), 'count': count or 0}

        by_category = self._date_filtered(
            self.session.query(Expense.category, func.sum(Expense.amount), func.count(Expense.id)),
            start_date, end_date
        ).group_by(Expense.category).all()

        return {
            'total': aggregate(),
            'pending': aggregate(ExpenseStatus.PENDING),
            'approved': aggregate(ExpenseStatus.APPROVED),
            'by_category': [
                {'category': category.value, 'amount': float(amount or 0), 'count': count}
                for category, amount, count in by_category
            ],
        }
