from minicrm import db
from minicrm.models import Company, Application, User
from minicrm.errors import ValidationError, NotFound, InternalError
from minicrm.utils.logging_utils import log_action
from minicrm.utils.date_utils import isoformat, get_utc_now
from minicrm.utils.pagination import paginate, like_pattern
from minicrm.utils.stats import rating_summary, average_rating, number_string
from minicrm.utils.validators import is_blank, is_valid_rating, check_text_fields
from sqlalchemy import or_
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import selectinload
import logging

logger = logging.getLogger(__name__)

UPSERT_DIALECTS = {
    'postgresql': postgresql.insert,
    'sqlite': sqlite.insert,
}


def _company_dict(company: Company):
    row = {
        'id': company.id,
        'name': company.name,
        'email': company.email,
        'address': company.address,
        'owner_user_id': company.owner_user_id,
        'created_at': isoformat(company.created_at),
    }
    row.update(rating_summary(company.applications))
    return row


def list_companies_paginated(page, limit, search=None):
    q = Company.query.options(selectinload(Company.applications))
    if search:
        like = like_pattern(search)
        q = q.filter(or_(
            Company.name.ilike(like, escape='\\'),
            Company.email.ilike(like, escape='\\'),
            Company.address.ilike(like, escape='\\'),
        ))
    try:
        rows, pagination = paginate(q.order_by(Company.name.asc(), Company.id.asc()), page, limit)
    except SQLAlchemyError as e:
        logger.error(f"Error fetching companies: {str(e)}")
        raise InternalError('Failed to fetch companies', details=str(e))
    return [_company_dict(c) for c in rows], pagination


def create_company(data, current_user_id, ip_address=None, user_agent=None):
    check_text_fields(data, ('name', 'email', 'address'))
    if is_blank(data.get('name')):
        raise ValidationError(errors={'name': 'Company name is required'})

    try:
        owner_id = int(data.get('owner_user_id'))
    except (TypeError, ValueError):
        owner_id = None
    owner = db.session.get(User, owner_id) if owner_id is not None else None
    if not owner or owner.role != 'contractor':
        raise ValidationError('Invalid company owner ID or user is not a contractor')
    if Company.query.filter_by(owner_user_id=owner.id).first():
        raise ValidationError('This contractor already owns a company')

    try:
        company = Company(
            name=data['name'].strip(),
            email=data.get('email'),
            address=data.get('address'),
            owner_user_id=owner.id,
        )
        db.session.add(company)
        db.session.commit()
    except SQLAlchemyError as e:
        logger.error(f"Error creating company: {str(e)}")
        db.session.rollback()
        raise InternalError('Failed to create company', details=str(e))

    log_action(current_user_id, 'CREATE', 'companies', company.id, None,
               {'name': company.name, 'owner_user_id': owner.id}, ip_address, user_agent)
    return {
        'id': company.id,
        'name': company.name,
        'email': company.email,
        'address': company.address,
        'owner_user_id': company.owner_user_id,
        'items': data.get('items') or [],
    }


def get_company_by_owner(owner_id):
    company = Company.query.options(selectinload(Company.applications)).filter_by(owner_user_id=owner_id).first()
    if not company:
        raise NotFound('Company not found for this owner')
    return _company_dict(company)


def get_company_owner_id(company_id):
    company = db.session.get(Company, company_id)
    if not company:
        raise NotFound('Company not found')
    return company.owner_user_id


def get_company_rating_users(company_id):
    if not db.session.get(Company, company_id):
        raise NotFound('Company not found')

    applications = (Application.query
                    .options(selectinload(Application.user))
                    .filter(Application.company_id == company_id)
                    .order_by(Application.created_at.desc(), Application.id.desc())
                    .all())
    return [{
        'id': app.user.id,
        'name': app.user.name,
        'email': app.user.email,
        'rating': app.rating,
        'proposal': app.proposal,
        'application_date': isoformat(app.created_at),
    } for app in applications]


def list_companies_for_user(user_id, name=None, address=None):
    q = Company.query.options(selectinload(Company.applications))
    if name:
        q = q.filter(Company.name.ilike(like_pattern(name), escape='\\'))
    if address:
        q = q.filter(Company.address.ilike(like_pattern(address), escape='\\'))

    try:
        companies = q.order_by(Company.name.asc(), Company.id.asc()).all()
    except SQLAlchemyError as e:
        logger.error(f"Error fetching companies: {str(e)}")
        raise InternalError('Failed to fetch companies', details=str(e))

    result = []
    for company in companies:
        own = next((a for a in company.applications if a.user_id == user_id), None)
        result.append({
            'id': company.id,
            'name': company.name,
            'address': company.address,
            'averagerating': number_string(average_rating([a.rating for a in company.applications])),
            'userrating': own.rating if own else None,
        })
    return result


def _upsert_application(user_id, company_id, rating, proposal):
    """Single INSERT ... ON CONFLICT (user_id, company_id) DO UPDATE statement."""
    dialect = db.engine.dialect.name
    if dialect not in UPSERT_DIALECTS:
        raise InternalError(f"Upsert is not supported on {dialect}")
    insert = UPSERT_DIALECTS[dialect]

    stmt = insert(Application.__table__).values(
        user_id=user_id,
        company_id=company_id,
        rating=rating,
        proposal=proposal,
        created_at=get_utc_now(),
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=['user_id', 'company_id'],
        set_={'rating': stmt.excluded.rating, 'proposal': stmt.excluded.proposal},
    )
    db.session.execute(stmt)


def submit_rating(user_id, company_id, data, ip_address=None, user_agent=None):
    check_text_fields(data, ('proposal',))
    rating = data.get('rating')
    if rating is None:
        raise ValidationError('Rating is required')
    if not is_valid_rating(rating):
        raise ValidationError('Rating must be an integer between 1 and 5')
    if not db.session.get(Company, company_id):
        raise NotFound('Company not found')

    rating = int(float(rating))
    proposal = data.get('proposal')
    try:
        _upsert_application(user_id, company_id, rating, proposal)
        db.session.commit()
    except SQLAlchemyError as e:
        logger.error(f"Error submitting application: {str(e)}")
        db.session.rollback()
        raise InternalError('Failed to submit application', details=str(e))

    log_action(user_id, 'UPSERT', 'applications', company_id, None,
               {'rating': rating, 'proposal': proposal}, ip_address, user_agent)

    # Re-read both rows; the session may still hold the pre-upsert collection
    db.session.expire_all()
    company = Company.query.options(selectinload(Company.applications)).filter_by(id=company_id).first()
    own = Application.query.filter_by(user_id=user_id, company_id=company_id).first()
    return {
        'id': company.id,
        'name': company.name,
        'address': company.address,
        'averagerating': number_string(average_rating([a.rating for a in company.applications])),
        'userrating': own.rating if own else None,
        'userproposal': own.proposal if own else None,
    }
