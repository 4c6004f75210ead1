import os
from functools import wraps

from flask import Blueprint, request, jsonify, current_app, send_from_directory
from flask_jwt_extended import create_access_token, jwt_required, get_jwt_identity, get_jwt
from minicrm import jwt
from minicrm.crud import user_crud
from minicrm.errors import ValidationError, Forbidden
from minicrm.utils.scope import Caller, resolve_scope
from minicrm.utils.validators import (
    validate_registration, validate_login, validate_password_update, is_blank, json_object, check_text_fields,
)

auth = Blueprint('auth', __name__)


def current_caller():
    claims = get_jwt()
    return Caller(int(get_jwt_identity()), claims.get('role', 'user'))


def current_scope(requested_user_id=None):
    return resolve_scope(current_caller(), requested_user_id)


def roles_required(*roles):
    """jwt_required plus a role check on the verified claims."""
    def decorator(fn):
        @wraps(fn)
        @jwt_required()
        def wrapper(*args, **kwargs):
            if get_jwt().get('role') not in roles:
                raise Forbidden('Admin access required' if roles == ('admin',) else 'Access denied')
            return fn(*args, **kwargs)
        return wrapper
    return decorator


admin_required = roles_required('admin')


@jwt.unauthorized_loader
def missing_token_callback(reason):
    return jsonify({'error': 'Access token required'}), 401


@jwt.invalid_token_loader
def invalid_token_callback(reason):
    return jsonify({'error': 'Invalid token'}), 401


@jwt.expired_token_loader
def expired_token_callback(jwt_header, jwt_payload):
    return jsonify({'error': 'Invalid token'}), 401


@auth.route('/register', methods=['POST'])
def register():
    data = json_object(request.get_json(silent=True))
    errors = validate_registration(data)
    if errors:
        raise ValidationError(errors=errors)

    # Self-registration never creates contractors
    wants_admin = data.get('role') == 'admin' and current_app.config.get('ALLOW_ADMIN_REGISTRATION', True)
    role = 'admin' if wants_admin else 'user'
    user = user_crud.create_user(data, role, ip_address=request.remote_addr,
                                 user_agent=request.headers.get('User-Agent'))
    return jsonify({'id': user.id, 'name': user.name, 'email': user.email, 'role': user.role}), 201


@auth.route('/login', methods=['POST'])
def login():
    data = json_object(request.get_json(silent=True))
    errors = validate_login(data)
    if errors:
        raise ValidationError(errors=errors)

    user = user_crud.authenticate(data['email'], data['password'])
    access_token = create_access_token(
        identity=str(user.id),
        additional_claims={'role': user.role, 'name': user.name},
    )
    current_app.logger.info(f"User {user.id} logged in")
    return jsonify(
        id=user.id,
        name=user.name,
        email=user.email,
        role=user.role,
        profile_image_url=user.profile_image_url,
        token=access_token,
    ), 200


@auth.route('/password', methods=['PUT'])
@jwt_required()
def update_password():
    data = json_object(request.get_json(silent=True))
    errors = validate_password_update(data)
    if errors:
        raise ValidationError(errors=errors)

    user_crud.change_password(
        current_caller().id, data['oldPassword'], data['newPassword'],
        request.remote_addr, request.headers.get('User-Agent'),
    )
    return jsonify({'message': 'Password updated successfully'}), 200


@auth.route('/profile-image', methods=['POST'])
@jwt_required()
def upload_profile_image():
    data = json_object(request.get_json(silent=True))
    check_text_fields(data, ('imageBase64',))
    if is_blank(data.get('imageBase64')):
        raise ValidationError('Image is required')

    image_url = user_crud.update_profile_image(
        current_caller().id,
        data['imageBase64'],
        current_app.config['UPLOAD_FOLDER'],
        current_app.config.get('PUBLIC_BASE_URL') or request.host_url,
        request.remote_addr,
        request.headers.get('User-Agent'),
    )
    return jsonify({'imageUrl': image_url}), 200


@auth.route('/profile-images/<path:filename>', methods=['GET'])
def get_profile_image(filename):
    upload_dir = os.path.abspath(os.path.join(current_app.config["UPLOAD_FOLDER"], user_crud.PROFILE_IMAGE_DIR))
    return send_from_directory(upload_dir, filename, mimetype='image/png')


@auth.route('/profile/<int:user_id>', methods=['GET'])
def get_user_profile(user_id):
    return jsonify(user_crud.get_user_profile(user_id)), 200
