# taxi_backend\api\app.py
# Main Flask application: defines the REST endpoints for passengers, taxi requests, imports and exports.
# Services are built (or injected) in create_app and kept in app.extensions["taxi"].

import io
import os
import uuid
import logging

from flask import Flask, Blueprint, current_app, jsonify, request, send_file
from flask_cors import CORS
from werkzeug.exceptions import RequestEntityTooLarge
from werkzeug.utils import secure_filename

from taxi_backend.config import get_settings
from taxi_backend.dal.taxi_dal import TaxiDAL
from taxi_backend.etl.pipeline import import_passengers, load_passenger_file
from taxi_backend.etl.processing.passenger_normalizer import PassengerNormalizer
from taxi_backend.logic.dates import format_timestamp
from taxi_backend.logic.report_builder import RequestReportBuilder, XLSX_MIMETYPE
from taxi_backend.notifications.email_dispatcher import (
    EmailDispatcher, EmailNotConfiguredError, EmailAuthenticationError, APP_PASSWORD_HINT
)
from taxi_backend.security.validator import RequestValidator

logger = logging.getLogger("TaxiAPI")

api = Blueprint('api', __name__)


def services():
    return current_app.extensions['taxi']


def with_formatted_date(records):
    return [{**r, "created_at_formatted": format_timestamp(r.get('created_at'))} for r in records]


def error(message, status):
    return jsonify({"error": message}), status


@api.before_app_request
def log_request():
    logger.info(f"API Request: {request.method} {request.path} {dict(request.args)}")


@api.route('/', methods=['GET'])
def home():
    return jsonify({"message": "API do Sistema de Solicitação de Táxi funcionando!"})


@api.route('/health', methods=['GET'])
def health_check():
    return jsonify({"status": "healthy", "service": "Taxi Request API"})


@api.route('/stats', methods=['GET'])
def get_stats():
    """Dashboard counters, cancelled requests included"""
    try:
        return jsonify(services()['dal'].get_stats())
    except Exception as e:
        logger.exception("Error computing stats")
        return error(str(e), 500)


# --- Passengers ---

@api.route('/passengers', methods=['GET'])
def list_passengers():
    try:
        passengers = services()['dal'].list_passengers()
        return jsonify(with_formatted_date(passengers))
    except Exception as e:
        logger.exception("Error listing passengers")
        return error(str(e), 500)


@api.route('/passengers/<int:passenger_id>', methods=['GET'])
def get_passenger(passenger_id):
    try:
        passenger = services()['dal'].get_passenger(passenger_id)
        if not passenger:
            return error("Passageiro não encontrado", 404)
        return jsonify(passenger)
    except Exception as e:
        logger.exception("Error fetching passenger")
        return error(str(e), 500)


@api.route('/passengers', methods=['POST'])
def create_passenger():
    data = request.get_json(silent=True)
    ok, message = RequestValidator.validate_passenger(data)
    if not ok:
        return error(message, 400)
    try:
        passenger = services()['dal'].create_passenger(data)
        return jsonify(passenger), 201
    except Exception as e:
        logger.exception("Error creating passenger")
        return error(str(e), 500)


@api.route('/passengers/<int:passenger_id>', methods=['PUT'])
def update_passenger(passenger_id):
    data = request.get_json(silent=True)
    ok, message = RequestValidator.validate_passenger(data)
    if not ok:
        return error(message, 400)
    try:
        passenger = services()['dal'].update_passenger(passenger_id, data)
        if not passenger:
            return error("Passageiro não encontrado", 404)
        return jsonify(passenger)
    except Exception as e:
        logger.exception("Error updating passenger")
        return error(str(e), 500)


@api.route('/passengers/<int:passenger_id>', methods=['DELETE'])
def delete_passenger(passenger_id):
    try:
        return jsonify(services()['dal'].delete_passenger(passenger_id))
    except Exception as e:
        logger.exception("Error deleting passenger")
        return error(str(e), 500)


# --- Taxi requests ---

@api.route('/requests', methods=['GET'])
def list_requests():
    try:
        filters = {
            "status": request.args.get('status', 'all'),
            "dateFrom": request.args.get('dateFrom'),
            "dateTo": request.args.get('dateTo')
        }
        requests = services()['dal'].list_requests(filters)
        return jsonify(with_formatted_date(requests))
    except Exception as e:
        logger.exception("Error listing requests")
        return error(str(e), 500)


@api.route('/requests', methods=['POST'])
def create_request():
    data = request.get_json(silent=True)
    ok, message = RequestValidator.validate_taxi_request(data)
    if not ok:
        return error(message, 400)
    try:
        payload = {**data, "passengerIds": [int(pid) for pid in data.get('passengerIds', data.get('passenger_ids')) or []]}
        taxi_request = services()['dal'].create_request(payload)
        return jsonify(taxi_request), 201
    except Exception as e:
        logger.exception("Error creating request")
        return error(str(e), 500)


@api.route('/requests/<int:request_id>/status', methods=['PUT'])
def update_request_status(request_id):
    data = request.get_json(silent=True) or {}
    status = data.get('status')
    ok, message = RequestValidator.validate_status(status)
    if not ok:
        return error(message, 400)
    try:
        return jsonify(services()['dal'].update_request_status(request_id, status))
    except Exception as e:
        logger.exception("Error updating request status")
        return error(str(e), 500)


@api.route('/requests/<int:request_id>', methods=['DELETE'])
def delete_request(request_id):
    try:
        return jsonify(services()['dal'].delete_request(request_id))
    except Exception as e:
        logger.exception("Error deleting request")
        return error(str(e), 500)


# --- Imports ---

@api.route('/import/passengers', methods=['POST'])
def import_passenger_records():
    """Imports passengers sent as JSON (a list, or {"passengers": [...]})"""
    data = request.get_json(silent=True)
    records = data.get('passengers') if isinstance(data, dict) else data
    if not isinstance(records, list):
        return error("O corpo deve ser uma lista de passageiros", 400)
    try:
        passengers = [PassengerNormalizer.prepare_record(r) for r in records if isinstance(r, dict)]
        result = import_passengers(services()['dal'], passengers, commit=True)
        return jsonify({
            "message": f"{len(result['imported'])} passageiros importados com sucesso",
            "imported": result['imported'],
            "duplicates": result['duplicates'],
            "invalid": result['invalid'],
            "summary": result['summary']
        })
    except Exception as e:
        logger.exception("Error importing passengers")
        return error(str(e), 500)


def handle_upload(commit):
    upload = request.files.get('file')
    ok, message = RequestValidator.validate_upload(upload.filename if upload else None)
    if not ok:
        return error(message, 400)

    uploads_dir = current_app.config['UPLOADS_DIR']
    os.makedirs(uploads_dir, exist_ok=True)
    ext = os.path.splitext(upload.filename)[1].lower()
    name = secure_filename(upload.filename) or f"upload{ext}"
    file_path = os.path.join(uploads_dir, f"{uuid.uuid4().hex}_{name}")
    if not file_path.lower().endswith(ext):
        file_path += ext

    upload.save(file_path)
    try:
        passengers = load_passenger_file(file_path)
        result = import_passengers(services()['dal'], passengers, commit=commit)
    except ValueError as e:
        return error(str(e), 400)
    except Exception as e:
        logger.exception("Error processing uploaded file")
        return error(str(e), 500)
    finally:
        if os.path.exists(file_path):
            os.remove(file_path)

    body = {
        "summary": result['summary'],
        "passengers": result['unique'],
        "duplicates": result['duplicates'],
        "invalid": result['invalid']
    }
    if commit:
        body["message"] = f"{len(result['imported'])} passageiros importados com sucesso"
        body["imported"] = result['imported']
    else:
        body["message"] = f"{result['summary']['unique']} passageiros prontos para importar"
    return jsonify(body)


@api.route('/import/passengers/file', methods=['POST'])
def import_passenger_file():
    return handle_upload(commit=True)


@api.route('/import/passengers/preview', methods=['POST'])
def preview_passenger_file():
    return handle_upload(commit=False)


# --- Exports and email ---

@api.route('/export/requests', methods=['POST'])
def export_requests():
    data = request.get_json(silent=True) or {}
    email = data.get('email')
    ok, message = RequestValidator.validate_email(email)
    if not ok:
        return error(message, 400)

    try:
        requests = services()['dal'].list_requests(data.get('filters') or {})
        result = services()['dispatcher'].export_and_send(requests, email, services()['report_builder'])
        return jsonify(result)
    except EmailNotConfiguredError as e:
        return jsonify({
            "error": "Email não configurado",
            "message": str(e),
            "suggestion": "Configure as variáveis EMAIL_USER e EMAIL_PASS no arquivo .env. " + APP_PASSWORD_HINT
        }), 400
    except EmailAuthenticationError as e:
        return jsonify({
            "error": "Erro de autenticação de email",
            "message": str(e),
            "suggestion": "Gere uma senha de aplicativo do Gmail e atualize o arquivo .env"
        }), 400
    except Exception as e:
        logger.exception("Error exporting and sending requests")
        return jsonify({"error": "Erro interno do servidor", "message": str(e)}), 500


@api.route('/export/download', methods=['POST'])
def download_requests():
    data = request.get_json(silent=True) or {}
    try:
        requests = services()['dal'].list_requests(data.get('filters') or {})
        builder = services()['report_builder']
        content = builder.generate_buffer(requests)
        return send_file(
            io.BytesIO(content),
            mimetype=XLSX_MIMETYPE,
            as_attachment=True,
            download_name=builder.report_filename()
        )
    except Exception as e:
        logger.exception("Error generating Excel for download")
        return jsonify({"error": "Erro interno do servidor", "message": str(e)}), 500


@api.route('/test-email', methods=['GET'])
def test_email_configuration():
    try:
        return jsonify(services()['dispatcher'].verify_configuration())
    except Exception as e:
        logger.exception("Error testing email configuration")
        return jsonify({"error": "Erro ao testar configuração de email", "message": str(e)}), 500


@api.route('/test-email/send', methods=['POST'])
def send_test_email():
    data = request.get_json(silent=True) or {}
    email = data.get('email')
    ok, message = RequestValidator.validate_email(email)
    if not ok:
        return error(message, 400)

    try:
        result = services()['dispatcher'].send_test_email(email)
        return jsonify({
            "success": True,
            "message": f"Email de teste enviado com sucesso para {email}",
            "messageId": result['messageId']
        })
    except (EmailNotConfiguredError, EmailAuthenticationError) as e:
        return jsonify({
            "error": "Erro ao enviar email de teste",
            "message": str(e),
            "suggestion": APP_PASSWORD_HINT
        }), 400
    except Exception as e:
        logger.exception("Error sending test email")
        return jsonify({"error": "Erro ao enviar email de teste", "message": str(e)}), 500


def file_too_large(e):
    limit_mb = current_app.config['MAX_CONTENT_LENGTH'] // (1024 * 1024)
    return error(f"Arquivo muito grande. O tamanho máximo é {limit_mb}MB", 413)


def create_app(settings=None, dal=None, dispatcher=None, report_builder=None):
    """Builds the Flask app; any service not given is created from the settings"""
    app = Flask(__name__)
    app.config.update(get_settings())
    if settings:
        app.config.update(settings)

    CORS(app, origins=app.config['CORS_ORIGINS'], expose_headers=['Content-Disposition'])

    if dal is None:
        dal = TaxiDAL(app.config['DATABASE_PATH']).open()
    app.extensions['taxi'] = {
        "dal": dal,
        "dispatcher": dispatcher if dispatcher is not None else EmailDispatcher(),
        "report_builder": report_builder or RequestReportBuilder(app.config['EXPORTS_DIR'])
    }

    app.register_blueprint(api)
    app.register_error_handler(RequestEntityTooLarge, file_too_large)
    return app


def close_app(app):
    """Closes the services created for the app"""
    taxi = app.extensions.get('taxi', {})
    if taxi.get('dal'):
        taxi['dal'].close()
    if taxi.get('dispatcher'):
        taxi['dispatcher'].close()
