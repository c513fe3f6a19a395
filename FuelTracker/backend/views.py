"""Records REST endpoints.

Every response is a JSON envelope with a ``success`` flag. Successful responses carry
``data`` (or ``message``), failures carry a human-readable ``error``.
"""
import logging

from flask import Blueprint, current_app, jsonify, request

from ..status import status

records_bp = Blueprint('records', __name__)

CREATE_REQUIRED = ('id', 'date', 'pricePerGallon', 'gallons', 'odometerReading')
UPDATE_REQUIRED = ('date', 'pricePerGallon', 'gallons', 'odometerReading')


def get_store():
    """Return the record store of the current application."""
    return current_app.extensions['fuel_records_store']


def error_response(message, code):
    return jsonify({'success': False, 'error': message}), code


def _missing_fields(record, required):
    if not isinstance(record, dict):
        return True
    return any(not record.get(key) for key in required)


@records_bp.route('/records', methods=['GET', 'POST', 'OPTIONS'])
def records():
    """List all records, or add one."""
    if request.method == 'OPTIONS':
        return '', 200

    try:
        if request.method == 'GET':
            return jsonify({'success': True, 'data': get_store().get_all_records()}), 200

        record = request.get_json(silent=True)
        if _missing_fields(record, CREATE_REQUIRED):
            return error_response('Missing required fields', 400)
        return jsonify({'success': True, 'data': get_store().add_record(record)}), 201
    except status.BaseStatusException as ex:
        logging.error(f'Records API error: {ex}')
        return error_response(str(ex), 500)


@records_bp.route('/records/<record_id>', methods=['PUT', 'DELETE', 'OPTIONS'])
def record(record_id):
    """Update or delete one record."""
    if request.method == 'OPTIONS':
        return '', 200

    try:
        if request.method == 'PUT':
            body = request.get_json(silent=True)
            if _missing_fields(body, UPDATE_REQUIRED):
                return error_response('Missing required fields', 400)
            return jsonify({'success': True, 'data': get_store().update_record(record_id, body)}), 200

        get_store().delete_record(record_id)
        return jsonify({'success': True, 'message': 'Record deleted'}), 200
    except status.RecordNotFoundException:
        return error_response('Record not found', 404)
    except status.BaseStatusException as ex:
        logging.error(f'Records API error: {ex}')
        return error_response(str(ex), 500)
