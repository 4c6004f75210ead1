from flask import jsonify, request, Response, stream_with_context
from flask_jwt_extended import jwt_required
from . import main
from ..auth import current_scope
from ..crud import payment_crud
from ..utils.pagination import parse_pagination
from ..utils.validators import json_object
import csv
import io

FILTER_KEYS = ('status', 'payment_method', 'startDate', 'endDate')
CSV_COLUMNS = ['id', 'transaction_date', 'amount', 'receiver', 'status', 'payment_method',
               'description', 'user_name', 'user_email']


def _filters():
    return {k: request.args.get(k) for k in FILTER_KEYS if request.args.get(k)}


@main.route('/payments', methods=['GET'])
@jwt_required()
def get_payments():
    scope = current_scope(request.args.get('userId'))
    page, limit = parse_pagination(request.args)
    payments, pagination = payment_crud.list_payments_paginated(scope, page, limit, _filters())
    return jsonify({'payments': payments, 'pagination': pagination}), 200


@main.route('/payments/stats', methods=['GET'])
@jwt_required()
def get_payment_stats():
    scope = current_scope(request.args.get('userId'))
    return jsonify(payment_crud.get_payment_stats(scope)), 200


@main.route('/payments/export', methods=['GET'])
@jwt_required()
def export_payments_csv():
    scope = current_scope(request.args.get('userId'))
    # Resolve the row iterator up front so bad filters fail before streaming starts
    rows = payment_crud.stream_payments(scope, _filters())
    first = next(rows, None)

    def generate():
        buffer = io.StringIO()
        writer = csv.DictWriter(buffer, fieldnames=CSV_COLUMNS, extrasaction='ignore')
        writer.writeheader()
        if first is not None:
            writer.writerow(first)
            for row in rows:
                yield buffer.getvalue()
                buffer.seek(0)
                buffer.truncate(0)
                writer.writerow(row)
        yield buffer.getvalue()

    return Response(stream_with_context(generate()), mimetype='text/csv',
                    headers={"Content-Disposition": "attachment; filename=payments.csv"})


@main.route('/payments/<int:id>', methods=['GET'])
@jwt_required()
def get_payment(id):
    return jsonify(payment_crud.get_payment(id, current_scope())), 200


@main.route('/payments', methods=['POST'])
@jwt_required()
def add_payment():
    data = json_object(request.get_json(silent=True))
    payment = payment_crud.add_payment(data, current_scope(), request.remote_addr,
                                       request.headers.get('User-Agent'))
    return jsonify(payment), 201


@main.route('/payments/<int:id>/status', methods=['PUT'])
@jwt_required()
def update_payment_status(id):
    data = json_object(request.get_json(silent=True))
    payment = payment_crud.update_payment_status(id, data.get('status'), current_scope(),
                                                 request.remote_addr, request.headers.get('User-Agent'))
    return jsonify(payment), 200
