from flask import jsonify, request
from flask_jwt_extended import jwt_required
from . import main
from ..auth import current_caller
from ..crud import company_crud
from ..utils.validators import json_object


@main.route('/user/stores', methods=['GET'])
@jwt_required()
def get_companies_for_user():
    companies = company_crud.list_companies_for_user(
        current_caller().id,
        name=request.args.get('name'),
        address=request.args.get('address'),
    )
    return jsonify(companies), 200


@main.route('/user/stores/<int:company_id>/rate', methods=['POST'])
@jwt_required()
def submit_rating(company_id):
    """
    Create or replace the caller's application for a company.
    The caller is taken from the token, never from the body.
    """
    data = json_object(request.get_json(silent=True))
    company = company_crud.submit_rating(current_caller().id, company_id, data,
                                         request.remote_addr, request.headers.get('User-Agent'))
    return jsonify(company), 200
