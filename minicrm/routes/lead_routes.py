from flask import jsonify, request
from flask_jwt_extended import jwt_required
from . import main
from ..auth import current_caller, current_scope, admin_required
from ..crud import lead_crud
from ..utils.pagination import parse_pagination
from ..utils.validators import json_object
from ..utils.scope import AdminAs


@main.route('/leads', methods=['GET'])
@jwt_required()
def get_leads():
    scope = current_scope(request.args.get('userId'))
    page, limit = parse_pagination(request.args)
    leads, pagination = lead_crud.list_leads(
        scope, page, limit,
        search=request.args.get('search'),
        status=request.args.get('status'),
    )
    return jsonify({'leads': leads, 'pagination': pagination}), 200


@main.route('/leads/stats', methods=['GET'])
@jwt_required()
def get_leads_stats():
    scope = current_scope(request.args.get('userId'))
    return jsonify(lead_crud.get_leads_stats(scope)), 200


@main.route('/leads/user/<int:user_id>', methods=['GET'])
@admin_required
def get_leads_for_user(user_id):
    scope = AdminAs(current_caller().id, user_id)
    page, limit = parse_pagination(request.args)
    leads, pagination = lead_crud.list_leads(
        scope, page, limit,
        search=request.args.get('search'),
        status=request.args.get('status'),
    )
    return jsonify({'leads': leads, 'pagination': pagination}), 200


@main.route('/leads/<int:id>', methods=['GET'])
@jwt_required()
def get_lead(id):
    return jsonify(lead_crud.get_lead(id, current_scope())), 200


@main.route('/leads', methods=['POST'])
@jwt_required()
def add_lead():
    data = json_object(request.get_json(silent=True))
    scope = current_scope(data.get('userId'))
    lead = lead_crud.add_lead(data, scope, request.remote_addr, request.headers.get('User-Agent'))
    return jsonify(lead), 201


@main.route('/leads/<int:id>', methods=['PUT'])
@jwt_required()
def update_lead(id):
    data = json_object(request.get_json(silent=True))
    lead = lead_crud.update_lead(id, data, current_scope(), request.remote_addr,
                                 request.headers.get('User-Agent'))
    return jsonify(lead), 200


@main.route('/leads/<int:id>/assign', methods=['PUT'])
@admin_required
def assign_lead(id):
    data = json_object(request.get_json(silent=True))
    lead = lead_crud.assign_lead(id, data.get('assigned_to'), current_caller().id,
                                 request.remote_addr, request.headers.get('User-Agent'))
    return jsonify(lead), 200


@main.route('/leads/<int:id>', methods=['DELETE'])
@jwt_required()
def delete_lead(id):
    lead_crud.delete_lead(id, current_scope(), request.remote_addr, request.headers.get('User-Agent'))
    return jsonify({'message': 'Lead deleted successfully'}), 200
