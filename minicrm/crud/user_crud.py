from minicrm import db
from minicrm.models import User, Company
from minicrm.errors import ValidationError, NotFound, InternalError
from minicrm.utils.logging_utils import log_action
from minicrm.utils.date_utils import isoformat, get_utc_now
from minicrm.utils.stats import rating_summary
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import selectinload
import base64
import binascii
import logging
import os

logger = logging.getLogger(__name__)

PROFILE_IMAGE_DIR = 'profile-images'


def _profile_dict(user):
    return {
        'id': user.id,
        'name': user.name,
        'email': user.email,
        'role': user.role,
        'profile_image_url': user.profile_image_url,
    }


def get_user_by_email(email):
    return User.query.filter_by(email=email).first()


def get_user_profile(user_id):
    user = db.session.get(User, user_id)
    if not user:
        raise NotFound('User not found')
    return _profile_dict(user)


def get_user_by_id(user_id):
    user = db.session.get(User, user_id)
    if not user:
        raise NotFound('User not found')
    return {
        'id': user.id,
        'name': user.name,
        'email': user.email,
        'role': user.role,
        'address': user.address,
        'created_at': isoformat(user.created_at),
    }


def create_user(data, role, current_user_id=None, ip_address=None, user_agent=None):
    if get_user_by_email(data['email']):
        raise ValidationError('Email already in use')

    try:
        user = User(
            name=data['name'].strip(),
            email=data['email'].strip(),
            address=data.get('address'),
            role=role,
        )
        user.set_password(data['password'])
        db.session.add(user)
        db.session.commit()
    except SQLAlchemyError as e:
        logger.error(f"Database error creating user: {str(e)}")
        db.session.rollback()
        raise InternalError('Failed to register user', details=str(e))

    log_action(current_user_id or user.id, 'CREATE', 'users', user.id, None,
               {'email': user.email, 'role': user.role}, ip_address, user_agent)
    return user


def authenticate(email, password):
    user = get_user_by_email(email)
    # Same message for unknown email and wrong password
    if not user or not user.check_password(password):
        raise ValidationError('Invalid email or password')
    return user


def change_password(user_id, current_password, new_password, ip_address=None, user_agent=None):
    """
    Change user's password after verifying current password.

    Args:
        user_id: id of the user taken from the verified token
        current_password: Current password for verification
        new_password: New password to set
    """
    user = db.session.get(User, user_id)
    if not user:
        raise NotFound('User not found')

    if not user.check_password(current_password):
        raise ValidationError('Current password is incorrect')

    try:
        user.set_password(new_password)
        db.session.commit()
    except SQLAlchemyError as e:
        logger.error(f"Database error changing password: {str(e)}")
        db.session.rollback()
        raise InternalError('Failed to update password', details=str(e))

    log_action(user_id, 'UPDATE', 'users', user.id, {'action': 'password_change'},
               {'action': 'password_changed'}, ip_address, user_agent)
    logger.info(f"Password changed successfully for user {user_id}")


def update_profile_image(user_id, image_base64, upload_folder, base_url, ip_address=None, user_agent=None):
    """
    Decode a data-URL image and store it as the user's profile picture.

    Returns:
        str: public URL of the stored image
    """
    user = db.session.get(User, user_id)
    if not user:
        raise NotFound('User not found')

    payload = image_base64.split(',', 1)[1] if ',' in image_base64 else image_base64
    try:
        image_bytes = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError):
        raise ValidationError('Image must be base64 encoded')
    if not image_bytes:
        raise ValidationError('Image is empty')

    upload_dir = os.path.join(upload_folder, PROFILE_IMAGE_DIR)
    os.makedirs(upload_dir, exist_ok=True)

    filename = f"profile-{user_id}-{int(get_utc_now().timestamp() * 1000)}.png"
    with open(os.path.join(upload_dir, filename), 'wb') as fh:
        fh.write(image_bytes)

    old_picture = user.profile_image_url
    user.profile_image_url = f"{base_url.rstrip('/')}/api/auth/profile-images/{filename}"
    try:
        db.session.commit()
    except SQLAlchemyError as e:
        logger.error(f"Database error updating profile picture: {str(e)}")
        db.session.rollback()
        raise InternalError('Failed to upload profile image', details=str(e))

    log_action(user_id, 'UPDATE', 'users', user.id, {'profile_image_url': old_picture},
               {'profile_image_url': user.profile_image_url}, ip_address, user_agent)
    logger.info(f"Profile picture updated for user {user_id}")
    return user.profile_image_url


def list_users_with_companies():
    users = User.query.order_by(User.name).all()
    companies = Company.query.options(selectinload(Company.applications)).filter(
        Company.owner_user_id.isnot(None)
    ).all()

    by_owner = {}
    for company in companies:
        summary = rating_summary(company.applications)
        by_owner[company.owner_user_id] = {
            'companyid': company.id,
            'companyaveragerating': summary['averagerating'],
            'applicationscount': summary['applicationscount'],
        }

    result = []
    for user in users:
        company = by_owner.get(user.id, {})
        result.append({
            'id': user.id,
            'name': user.name,
            'email': user.email,
            'address': user.address,
            'role': user.role,
            'profile_image_url': user.profile_image_url,
            'created_at': isoformat(user.created_at),
            'companyid': company.get('companyid'),
            'companyaveragerating': company.get('companyaveragerating', '0'),
            'applicationscount': company.get('applicationscount', '0'),
        })
    return result
