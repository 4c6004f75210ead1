from flask import jsonify, request, send_file
from flask_jwt_extended import jwt_required
from . import main
from ..auth import current_scope
from ..crud import customer_crud
from ..utils.pagination import parse_pagination
from ..utils.validators import json_object
import io
import openpyxl
from openpyxl.styles import Font, PatternFill, Alignment
import logging

logger = logging.getLogger(__name__)

EXPORT_COLUMNS = [
    ('id', 'ID'),
    ('name', 'Name'),
    ('email', 'Email'),
    ('phone', 'Phone'),
    ('company', 'Company'),
    ('address', 'Address'),
    ('total_leads', 'Total Leads'),
    ('total_value', 'Total Value'),
    ('converted_leads', 'Converted Leads'),
    ('created_at', 'Created At'),
]


@main.route('/customers', methods=['GET'])
@jwt_required()
def get_customers():
    scope = current_scope(request.args.get('userId'))
    page, limit = parse_pagination(request.args)
    customers, pagination = customer_crud.list_customers(scope, page, limit, request.args.get('search'))
    return jsonify({'customers': customers, 'pagination': pagination}), 200


@main.route('/customers/stats', methods=['GET'])
@jwt_required()
def get_customer_stats():
    scope = current_scope(request.args.get('userId'))
    return jsonify(customer_crud.get_customer_stats(scope)), 200


@main.route('/customers/export', methods=['GET'])
@jwt_required()
def export_customers():
    scope = current_scope(request.args.get('userId'))

    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = "Customers"

    header_font = Font(bold=True, color="FFFFFF")
    header_fill = PatternFill(start_color="366092", end_color="366092", fill_type="solid")
    for col_idx, (_, label) in enumerate(EXPORT_COLUMNS, 1):
        ws.column_dimensions[openpyxl.utils.get_column_letter(col_idx)].width = 20
        cell = ws.cell(row=1, column=col_idx, value=label)
        cell.font = header_font
        cell.fill = header_fill
        cell.alignment = Alignment(horizontal='center', vertical='center')

    for row_idx, row in enumerate(customer_crud.export_rows(scope, request.args.get('search')), 2):
        for col_idx, (key, _) in enumerate(EXPORT_COLUMNS, 1):
            ws.cell(row=row_idx, column=col_idx, value=row.get(key))

    buffer = io.BytesIO()
    wb.save(buffer)
    buffer.seek(0)
    return send_file(
        buffer,
        as_attachment=True,
        download_name='customers.xlsx',
        mimetype='application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'
    )


@main.route('/customers/<int:id>', methods=['GET'])
@jwt_required()
def get_customer(id):
    scope = current_scope()
    return jsonify(customer_crud.get_customer(id, scope)), 200


@main.route('/customers', methods=['POST'])
@jwt_required()
def add_customer():
    data = json_object(request.get_json(silent=True))
    scope = current_scope(data.get('userId'))
    customer = customer_crud.add_customer(data, scope, request.remote_addr, request.headers.get('User-Agent'))
    return jsonify(customer), 201


@main.route('/customers/<int:id>', methods=['PUT'])
@jwt_required()
def update_customer(id):
    data = json_object(request.get_json(silent=True))
    scope = current_scope()
    customer = customer_crud.update_customer(id, data, scope, request.remote_addr,
                                             request.headers.get('User-Agent'))
    return jsonify(customer), 200


@main.route('/customers/<int:id>', methods=['DELETE'])
@jwt_required()
def delete_customer(id):
    scope = current_scope()
    customer_crud.delete_customer(id, scope, request.remote_addr, request.headers.get('User-Agent'))
    return jsonify({'message': 'Customer deleted successfully'}), 200
