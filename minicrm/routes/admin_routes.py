from flask import jsonify, request
from . import main
from ..auth import admin_required, roles_required, current_caller
from ..crud import user_crud, company_crud
from ..errors import ValidationError, Forbidden
from ..utils.pagination import parse_pagination
from ..utils.validators import validate_registration, json_object


def _ensure_company_owner(owner_id):
    # Contractors may only read their own company's dashboard data
    caller = current_caller()
    if not caller.is_admin and caller.id != owner_id:
        raise Forbidden('Access denied')


@main.route('/admin/users', methods=['GET'])
@admin_required
def admin_get_users():
    return jsonify(user_crud.list_users_with_companies()), 200


@main.route('/admin/users/<int:user_id>', methods=['GET'])
@admin_required
def admin_get_user(user_id):
    return jsonify(user_crud.get_user_by_id(user_id)), 200


@main.route('/admin/users', methods=['POST'])
@admin_required
def admin_create_user():
    data = json_object(request.get_json(silent=True))
    errors = validate_registration(data)
    if errors:
        raise ValidationError(errors=errors)

    user = user_crud.create_user(data, data['role'], current_caller().id, request.remote_addr,
                                 request.headers.get('User-Agent'))
    return jsonify({
        'id': user.id,
        'name': user.name,
        'email': user.email,
        'role': user.role,
        'address': user.address,
    }), 201


@main.route('/admin/stores', methods=['GET'])
@admin_required
def admin_get_companies():
    page, limit = parse_pagination(request.args)
    companies, pagination = company_crud.list_companies_paginated(page, limit, request.args.get('search'))
    return jsonify({'companies': companies, 'pagination': pagination}), 200


@main.route('/admin/stores', methods=['POST'])
@admin_required
def admin_create_company():
    data = json_object(request.get_json(silent=True))
    company = company_crud.create_company(data, current_caller().id, request.remote_addr,
                                          request.headers.get('User-Agent'))
    return jsonify(company), 201


@main.route('/admin/stores/owner/<int:owner_id>', methods=['GET'])
@roles_required('admin', 'contractor')
def get_company_by_owner(owner_id):
    _ensure_company_owner(owner_id)
    return jsonify(company_crud.get_company_by_owner(owner_id)), 200


@main.route('/admin/stores/<int:company_id>/ratings/users', methods=['GET'])
@roles_required('admin', 'contractor')
def get_company_rating_users(company_id):
    _ensure_company_owner(company_crud.get_company_owner_id(company_id))
    return jsonify(company_crud.get_company_rating_users(company_id)), 200
