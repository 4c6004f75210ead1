from minicrm import db
from minicrm.models import Payment, User, PAYMENT_STATUSES, PAYMENT_METHODS
from minicrm.errors import ValidationError, NotFound, InternalError
from minicrm.utils.logging_utils import log_action
from minicrm.utils.date_utils import isoformat, parse_date, months_ago
from minicrm.utils.pagination import paginate
from minicrm.utils.stats import to_number, totals_by, monthly_series
from minicrm.utils.validators import is_blank, check_text_fields
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import joinedload
from decimal import Decimal, InvalidOperation
import logging

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ('amount', 'receiver', 'status', 'payment_method')
TEXT_FIELDS = ('receiver', 'status', 'payment_method', 'description', 'transaction_date')


def _row_to_dict(payment: Payment, with_user=False):
    row = {
        'id': payment.id,
        'user_id': payment.user_id,
        'amount': to_number(payment.amount),
        'receiver': payment.receiver,
        'status': payment.status,
        'payment_method': payment.payment_method,
        'description': payment.description,
        'transaction_date': isoformat(payment.transaction_date),
    }
    if with_user:
        row['user_name'] = payment.user.name if payment.user else None
        row['user_email'] = payment.user.email if payment.user else None
    return row


def _filtered_query(scope, filters):
    q = scope.apply(Payment.query, Payment.user_id)
    if filters.get('status'):
        q = q.filter(Payment.status == filters['status'])
    if filters.get('payment_method'):
        q = q.filter(Payment.payment_method == filters['payment_method'])
    try:
        if filters.get('startDate'):
            q = q.filter(Payment.transaction_date >= parse_date(filters['startDate']))
        if filters.get('endDate'):
            q = q.filter(Payment.transaction_date <= parse_date(filters['endDate'], end_of_day=True))
    except ValueError as e:
        raise ValidationError(str(e))
    return q.order_by(Payment.transaction_date.desc(), Payment.id.desc())


def list_payments_paginated(scope, page, limit, filters=None):
    q = _filtered_query(scope, filters or {})
    try:
        rows, pagination = paginate(q, page, limit)
    except SQLAlchemyError as e:
        logger.error(f"Error fetching payments: {str(e)}")
        raise InternalError('Failed to fetch payments', details=str(e))
    return [_row_to_dict(p) for p in rows], pagination


def get_payment(payment_id, scope):
    q = Payment.query.options(joinedload(Payment.user)).filter(Payment.id == payment_id)
    payment = scope.apply(q, Payment.user_id).first()
    if not payment:
        raise NotFound('Payment not found')
    return _row_to_dict(payment, with_user=True)


def _parse_amount(value):
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(errors={'amount': 'Amount must be a number'})
    if not amount.is_finite():
        raise ValidationError(errors={'amount': 'Amount must be a number'})
    return amount


def _resolve_owner(data, scope):
    # Admins may record a payment on behalf of another user
    if scope.is_admin and data.get('user_id') not in (None, ''):
        try:
            user = db.session.get(User, int(data['user_id']))
        except (TypeError, ValueError):
            user = None
        if not user:
            raise ValidationError(errors={'user_id': 'User not found'})
        return user.id
    return scope.owner_id


def add_payment(data, scope, ip_address=None, user_agent=None):
    check_text_fields(data, TEXT_FIELDS)
    missing = [f for f in REQUIRED_FIELDS if is_blank(data.get(f))]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")
    if data['status'] not in PAYMENT_STATUSES:
        raise ValidationError(f"Status must be one of: {', '.join(PAYMENT_STATUSES)}")

    amount = _parse_amount(data['amount'])
    owner_id = _resolve_owner(data, scope)

    try:
        payment = Payment(
            user_id=owner_id,
            amount=amount,
            receiver=str(data['receiver']).strip(),
            status=data['status'],
            payment_method=str(data['payment_method']).strip(),
            description=data.get('description'),
        )
        if data.get('transaction_date'):
            payment.transaction_date = parse_date(data['transaction_date'])
        db.session.add(payment)
        db.session.commit()
    except ValueError as e:
        db.session.rollback()
        raise ValidationError(errors={'transaction_date': str(e)})
    except SQLAlchemyError as e:
        logger.error(f"Error adding payment: {str(e)}")
        db.session.rollback()
        raise InternalError('Failed to create payment', details=str(e))

    log_action(scope.caller.id, 'CREATE', 'payments', payment.id, None, _row_to_dict(payment),
               ip_address, user_agent)
    return _row_to_dict(payment)


def update_payment_status(payment_id, status, scope, ip_address=None, user_agent=None):
    if not status or status not in PAYMENT_STATUSES:
        raise ValidationError('Valid status is required (success, failed, or pending)')

    payment = scope.apply(Payment.query.filter(Payment.id == payment_id), Payment.user_id).first()
    if not payment:
        raise NotFound('Payment not found')

    old_status = payment.status
    try:
        payment.status = status
        db.session.commit()
    except SQLAlchemyError as e:
        logger.error(f"Error updating payment {payment_id}: {str(e)}")
        db.session.rollback()
        raise InternalError('Failed to update payment status', details=str(e))

    log_action(scope.caller.id, 'UPDATE', 'payments', payment.id, {'status': old_status},
               {'status': status}, ip_address, user_agent)
    return _row_to_dict(payment)


def get_payment_stats(scope, now=None):
    try:
        payments = scope.apply(Payment.query, Payment.user_id).all()
    except SQLAlchemyError as e:
        logger.error(f"Error fetching payment statistics: {str(e)}")
        raise InternalError('Failed to fetch payment statistics', details=str(e))

    return {
        'by_status': totals_by(payments, 'status', PAYMENT_STATUSES),
        'by_method': totals_by(payments, 'payment_method', PAYMENT_METHODS),
        'monthly': monthly_series(payments, 'transaction_date', amount_attr='amount',
                                  since=months_ago(6, now)),
    }


def stream_payments(scope, filters=None):
    q = _filtered_query(scope, filters or {}).options(joinedload(Payment.user))
    for payment in q.yield_per(500):
        yield _row_to_dict(payment, with_user=True)
