from minicrm import db
from minicrm.models import Lead, Customer, User, LEAD_STATUSES, LEAD_PRIORITIES
from minicrm.errors import ValidationError, NotFound, InternalError
from minicrm.utils.logging_utils import log_action
from minicrm.utils.date_utils import isoformat, get_utc_now, locale_date_string
from minicrm.utils.pagination import paginate, like_pattern
from minicrm.utils.stats import to_number, money, count_by, monthly_series, conversion_rate
from minicrm.utils.validators import is_blank, check_text_fields
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from datetime import date
import logging

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ('title', 'description', 'status', 'value', 'priority', 'source',
                   'customer_id', 'expected_close_date')
TEXT_FIELDS = ('title', 'description', 'source')


def _row_to_dict(lead: Lead):
    return {
        'id': lead.id,
        'title': lead.title,
        'description': lead.description,
        'status': lead.status,
        'value': to_number(lead.value),
        'priority': lead.priority,
        'source': lead.source,
        'customer_id': lead.customer_id,
        'assigned_to': lead.assigned_to,
        'created_by': lead.created_by,
        'user_id': lead.user_id,
        'expected_close_date': lead.expected_close_date.isoformat() if lead.expected_close_date else None,
        'created_at': isoformat(lead.created_at),
        'updated_at': isoformat(lead.updated_at),
    }


def _apply_filters(q, search=None, status=None):
    if search:
        like = like_pattern(search)
        q = q.filter(or_(
            Lead.title.ilike(like, escape='\\'),
            Lead.description.ilike(like, escape='\\'),
        ))
    if status:
        q = q.filter(Lead.status == status)
    return q


def _parse_close_date(value):
    if value in (None, ''):
        return None
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        raise ValidationError(errors={'expected_close_date': 'Expected close date must be YYYY-MM-DD'})


def _check_enums(data):
    errors = {}
    if data.get('status') is not None and data['status'] not in LEAD_STATUSES:
        errors['status'] = f"Status must be one of: {', '.join(LEAD_STATUSES)}"
    if data.get('priority') is not None and data['priority'] not in LEAD_PRIORITIES:
        errors['priority'] = f"Priority must be one of: {', '.join(LEAD_PRIORITIES)}"
    if errors:
        raise ValidationError(errors=errors)


def _check_customer(customer_id, scope):
    if customer_id in (None, ''):
        return None
    customer = scope.apply(Customer.query.filter(Customer.id == customer_id), Customer.user_id).first()
    if not customer:
        raise ValidationError(errors={'customer_id': 'Customer not found'})
    return customer.id


def list_leads(scope, page, limit, search=None, status=None):
    try:
        q = scope.apply(Lead.query, Lead.user_id)
        q = _apply_filters(q, search, status).order_by(Lead.created_at.desc(), Lead.id.desc())
        rows, pagination = paginate(q, page, limit)
    except SQLAlchemyError as e:
        logger.error(f"Error fetching leads: {str(e)}")
        raise InternalError('Failed to fetch leads', details=str(e))
    return [_row_to_dict(lead) for lead in rows], pagination


def get_lead(lead_id, scope):
    lead = scope.apply(Lead.query.filter(Lead.id == lead_id), Lead.user_id).first()
    if not lead:
        raise NotFound('Lead not found or access denied')
    return _row_to_dict(lead)


def add_lead(data, scope, ip_address=None, user_agent=None):
    check_text_fields(data, TEXT_FIELDS)
    if is_blank(data.get('description')):
        raise ValidationError('Description is required')
    _check_enums(data)

    title = data.get('title')
    title = title.strip() if isinstance(title, str) and title.strip() else f"Lead - {locale_date_string()}"

    try:
        lead = Lead(
            title=title,
            description=data['description'].strip(),
            status=data.get('status') or 'New',
            value=to_number(data.get('value')),
            priority=data.get('priority') or 'Medium',
            source=data.get('source'),
            customer_id=_check_customer(data.get('customer_id'), scope),
            expected_close_date=_parse_close_date(data.get('expected_close_date')),
            user_id=scope.owner_id,
            created_by=scope.caller.id,
        )
        db.session.add(lead)
        db.session.commit()
    except SQLAlchemyError as e:
        logger.error(f"Error creating lead: {str(e)}")
        db.session.rollback()
        raise InternalError('Failed to create lead', details=str(e))

    log_action(scope.caller.id, 'CREATE', 'leads', lead.id, None, _row_to_dict(lead), ip_address, user_agent)
    return _row_to_dict(lead)


def update_lead(lead_id, data, scope, ip_address=None, user_agent=None):
    lead = scope.apply(Lead.query.filter(Lead.id == lead_id), Lead.user_id).first()
    if not lead:
        raise NotFound('Lead not found or access denied')
    check_text_fields(data, TEXT_FIELDS)
    _check_enums(data)
    if 'title' in data and is_blank(data['title']):
        raise ValidationError(errors={'title': 'Title cannot be empty'})

    old_values = _row_to_dict(lead)
    changes = {k: data[k] for k in EDITABLE_FIELDS if k in data}
    for key in ('status', 'priority'):
        if key in changes and changes[key] is None:
            del changes[key]
    if 'value' in changes:
        changes['value'] = to_number(changes['value'])
    if 'customer_id' in changes:
        changes['customer_id'] = _check_customer(changes['customer_id'], scope)
    if 'expected_close_date' in changes:
        changes['expected_close_date'] = _parse_close_date(changes['expected_close_date'])

    try:
        for field, value in changes.items():
            setattr(lead, field, value)
        lead.updated_at = get_utc_now()
        db.session.commit()
    except SQLAlchemyError as e:
        logger.error(f"Error updating lead {lead_id}: {str(e)}")
        db.session.rollback()
        raise InternalError('Failed to update lead', details=str(e))

    log_action(scope.caller.id, 'UPDATE', 'leads', lead.id, old_values, changes, ip_address, user_agent)
    return _row_to_dict(lead)


def assign_lead(lead_id, assignee_id, caller_id, ip_address=None, user_agent=None):
    lead = db.session.get(Lead, lead_id)
    if not lead:
        raise NotFound('Lead not found or access denied')
    old_assignee = lead.assigned_to
    if assignee_id in (None, ''):
        lead.assigned_to = None
    else:
        try:
            assignee = db.session.get(User, int(assignee_id))
        except (TypeError, ValueError):
            assignee = None
        if not assignee:
            raise ValidationError(errors={'assigned_to': 'User not found'})
        lead.assigned_to = assignee.id

    try:
        lead.updated_at = get_utc_now()
        db.session.commit()
    except SQLAlchemyError as e:
        logger.error(f"Error assigning lead {lead_id}: {str(e)}")
        db.session.rollback()
        raise InternalError('Failed to assign lead', details=str(e))

    log_action(caller_id, 'UPDATE', 'leads', lead.id, {'assigned_to': old_assignee},
               {'assigned_to': lead.assigned_to}, ip_address, user_agent)
    return _row_to_dict(lead)


def delete_lead(lead_id, scope, ip_address=None, user_agent=None):
    lead = scope.apply(Lead.query.filter(Lead.id == lead_id), Lead.user_id).first()
    if not lead:
        return False

    old_values = _row_to_dict(lead)
    try:
        db.session.delete(lead)
        db.session.commit()
    except SQLAlchemyError as e:
        logger.error(f"Error deleting lead {lead_id}: {str(e)}")
        db.session.rollback()
        raise InternalError('Failed to delete lead', details=str(e))

    log_action(scope.caller.id, 'DELETE', 'leads', lead_id, old_values, None, ip_address, user_agent)
    return True


def get_leads_stats(scope):
    try:
        leads = scope.apply(Lead.query, Lead.user_id).all()
    except SQLAlchemyError as e:
        logger.error(f"Error fetching leads statistics: {str(e)}")
        raise InternalError('Failed to fetch leads statistics', details=str(e))

    status_breakdown = count_by(leads, 'status', LEAD_STATUSES)
    converted = status_breakdown['Converted']
    return {
        'total_leads': len(leads),
        'total_value': money(sum(to_number(lead.value) for lead in leads)),
        'converted_leads': converted,
        'conversion_rate': conversion_rate(converted, len(leads)),
        'status_breakdown': status_breakdown,
        'monthly_growth': monthly_series(leads, 'created_at'),
    }
