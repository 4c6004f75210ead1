import re

from minicrm.errors import ValidationError
from minicrm.models import USER_ROLES

EMAIL_PATTERN = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
SPECIAL_CHARACTERS = re.compile(r"[!@#$%^&*()_+\-=\[\]{};':\"\\|,.<>/?]")


def is_blank(value):
    return value is None or str(value).strip() == ''


def json_object(data):
    """Request body as a dict; anything but a JSON object is rejected."""
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object')
    return data


def check_text_fields(data, fields):
    errors = {
        field: f"{field} must be a string"
        for field in fields
        if data.get(field) is not None and not isinstance(data[field], str)
    }
    if errors:
        raise ValidationError(errors=errors)


def validate_email(email):
    return isinstance(email, str) and bool(EMAIL_PATTERN.match(email))


def validate_name(name):
    return isinstance(name, str) and 20 <= len(name.strip()) <= 60


def validate_address(address):
    if not isinstance(address, str):
        return address is None
    return len(address.strip()) <= 400


def validate_password(password):
    """8-16 characters with at least one uppercase letter and one special character"""
    if not isinstance(password, str) or len(password) < 8 or len(password) > 16:
        return False
    if not re.search(r'[A-Z]', password):
        return False
    return bool(SPECIAL_CHARACTERS.search(password))


def is_valid_rating(rating):
    if isinstance(rating, bool):
        return False
    try:
        number = float(rating)
    except (TypeError, ValueError):
        return False
    return number.is_integer() and 1 <= number <= 5


def validate_registration(data):
    errors = {}

    if is_blank(data.get('name')):
        errors['name'] = 'Name is required'
    elif not validate_name(data['name']):
        errors['name'] = 'Name must be between 20 and 60 characters'

    if is_blank(data.get('email')):
        errors['email'] = 'Email is required'
    elif not validate_email(data['email']):
        errors['email'] = 'Invalid email format'

    if is_blank(data.get('password')):
        errors['password'] = 'Password is required'
    elif not validate_password(data['password']):
        errors['password'] = 'Password must be 8-16 characters with at least one uppercase letter and one special character'

    if is_blank(data.get('address')):
        errors['address'] = 'Address is required'
    elif not validate_address(data['address']):
        errors['address'] = 'Address cannot exceed 400 characters'

    if is_blank(data.get('role')):
        errors['role'] = 'Role is required'
    elif data['role'] not in USER_ROLES:
        errors['role'] = 'Invalid role'

    return errors


def validate_login(data):
    errors = {}

    if is_blank(data.get('email')):
        errors['email'] = 'Email is required'
    elif not validate_email(data['email']):
        errors['email'] = 'Invalid email format'

    if is_blank(data.get('password')):
        errors['password'] = 'Password is required'
    elif not isinstance(data['password'], str):
        errors['password'] = 'Password must be a string'

    return errors


def validate_password_update(data):
    errors = {}

    if is_blank(data.get('oldPassword')):
        errors['oldPassword'] = 'Old password is required'
    elif not isinstance(data['oldPassword'], str):
        errors['oldPassword'] = 'Old password must be a string'

    if is_blank(data.get('newPassword')):
        errors['newPassword'] = 'New password is required'
    elif not isinstance(data['newPassword'], str):
        errors['newPassword'] = 'New password must be a string'
    elif len(data['newPassword']) < 4:
        errors['newPassword'] = 'Password must be at least 4 characters'

    return errors
