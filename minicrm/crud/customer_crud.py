from minicrm import db
from minicrm.models import Customer
from minicrm.errors import ValidationError, NotFound, InternalError
from minicrm.utils.logging_utils import log_action
from minicrm.utils.date_utils import isoformat, get_utc_now
from minicrm.utils.pagination import paginate, like_pattern
from minicrm.utils.stats import lead_summary, conversion_rate, monthly_series, to_number
from minicrm.utils.validators import is_blank, validate_email, check_text_fields
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import selectinload
import logging

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ('name', 'email', 'phone', 'company', 'address')


def _base_scope(scope):
    q = Customer.query.options(selectinload(Customer.leads))
    return scope.apply(q, Customer.user_id)


def _apply_search(q, search):
    if search:
        like = like_pattern(search)
        q = q.filter(or_(
            Customer.name.ilike(like, escape='\\'),
            Customer.email.ilike(like, escape='\\'),
            Customer.company.ilike(like, escape='\\'),
        ))
    return q


def _row_to_dict(c):
    return {
        'id': c.id,
        'name': c.name,
        'email': c.email,
        'phone': c.phone,
        'company': c.company,
        'address': c.address,
        'user_id': c.user_id,
        'created_at': isoformat(c.created_at),
        'updated_at': isoformat(c.updated_at),
    }


def _lead_to_dict(lead):
    return {
        'id': lead.id,
        'title': lead.title,
        'description': lead.description,
        'status': lead.status,
        'value': to_number(lead.value),
        'created_at': isoformat(lead.created_at),
    }


def _with_summary(c):
    row = _row_to_dict(c)
    row.update(lead_summary(c.leads))
    return row


def _get_scoped(customer_id, scope):
    customer = _base_scope(scope).filter(Customer.id == customer_id).first()
    if not customer:
        raise NotFound('Customer not found')
    return customer


def list_customers(scope, page, limit, search=None):
    try:
        q = _apply_search(_base_scope(scope), search)
        q = q.order_by(Customer.created_at.desc(), Customer.id.desc())
        rows, pagination = paginate(q, page, limit)
    except SQLAlchemyError as e:
        logger.error(f"Error fetching customers: {str(e)}")
        raise InternalError('Failed to fetch customers', details=str(e))
    return [_with_summary(c) for c in rows], pagination


def get_customer(customer_id, scope):
    customer = _get_scoped(customer_id, scope)
    result = _with_summary(customer)
    result['leads'] = [_lead_to_dict(lead) for lead in sorted(customer.leads, key=lambda l: l.id)]
    return result


def add_customer(data, scope, ip_address=None, user_agent=None):
    check_text_fields(data, EDITABLE_FIELDS)
    if is_blank(data.get('name')) or is_blank(data.get('email')):
        raise ValidationError('Name and email are required')
    if not validate_email(data['email']):
        raise ValidationError(errors={'email': 'Invalid email format'})

    owner_id = scope.owner_id
    existing = Customer.query.filter_by(email=data['email'], user_id=owner_id).first()
    if existing:
        raise ValidationError('Customer with this email already exists')

    try:
        customer = Customer(
            name=data['name'],
            email=data['email'],
            phone=data.get('phone'),
            company=data.get('company'),
            address=data.get('address'),
            user_id=owner_id,
        )
        db.session.add(customer)
        db.session.commit()
    except SQLAlchemyError as e:
        logger.error(f"Error adding customer: {str(e)}")
        db.session.rollback()
        raise InternalError('Failed to create customer', details=str(e))

    log_action(scope.caller.id, 'CREATE', 'customers', customer.id, None,
               {k: data.get(k) for k in EDITABLE_FIELDS}, ip_address, user_agent)
    return _row_to_dict(customer)


def update_customer(customer_id, data, scope, ip_address=None, user_agent=None):
    customer = Customer.query.filter(Customer.id == customer_id)
    customer = scope.apply(customer, Customer.user_id).first()
    if not customer:
        raise NotFound('Customer not found or access denied')

    check_text_fields(data, EDITABLE_FIELDS)
    if 'email' in data and not validate_email(data['email']):
        raise ValidationError(errors={'email': 'Invalid email format'})
    if 'email' in data and Customer.query.filter(
            Customer.email == data['email'],
            Customer.user_id == customer.user_id,
            Customer.id != customer.id,
    ).first():
        raise ValidationError('Customer with this email already exists')
    if 'name' in data and is_blank(data['name']):
        raise ValidationError(errors={'name': 'Name cannot be empty'})

    old_values = {k: getattr(customer, k) for k in EDITABLE_FIELDS}
    try:
        for field in EDITABLE_FIELDS:
            if field in data:
                setattr(customer, field, data[field])
        customer.updated_at = get_utc_now()
        db.session.commit()
    except SQLAlchemyError as e:
        logger.error(f"Error updating customer {customer_id}: {str(e)}")
        db.session.rollback()
        raise InternalError('Failed to update customer', details=str(e))

    log_action(scope.caller.id, 'UPDATE', 'customers', customer.id, old_values,
               {k: data[k] for k in EDITABLE_FIELDS if k in data}, ip_address, user_agent)
    return _row_to_dict(customer)


def delete_customer(customer_id, scope, ip_address=None, user_agent=None):
    customer = scope.apply(Customer.query.filter(Customer.id == customer_id), Customer.user_id).first()
    # Absent or out-of-scope rows are reported the same as a completed delete
    if not customer:
        return False

    old_values = _row_to_dict(customer)
    try:
        db.session.delete(customer)
        db.session.commit()
    except SQLAlchemyError as e:
        logger.error(f"Error deleting customer {customer_id}: {str(e)}")
        db.session.rollback()
        raise InternalError('Failed to delete customer', details=str(e))

    log_action(scope.caller.id, 'DELETE', 'customers', customer_id, old_values, None, ip_address, user_agent)
    return True


def get_customer_stats(scope):
    try:
        customers = _base_scope(scope).all()
    except SQLAlchemyError as e:
        logger.error(f"Error fetching customer statistics: {str(e)}")
        raise InternalError('Failed to fetch customer statistics', details=str(e))

    leads = [lead for c in customers for lead in c.leads]
    summary = lead_summary(leads)
    return {
        'total_customers': len(customers),
        'total_leads': summary['total_leads'],
        'total_value': summary['total_value'],
        'converted_leads': summary['converted_leads'],
        'conversion_rate': conversion_rate(summary['converted_leads'], summary['total_leads']),
        'monthly_growth': monthly_series(customers, 'created_at'),
    }


def export_rows(scope, search=None):
    q = _apply_search(_base_scope(scope), search).order_by(Customer.created_at.desc(), Customer.id.desc())
    for c in q.all():
        row = _with_summary(c)
        row['total_value'] = float(row['total_value'])
        yield row
