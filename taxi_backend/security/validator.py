# taxi_backend\security\validator.py
# Request Validation Layer: Validates incoming API payloads and uploads before they reach the services.

import os
import re

from taxi_backend.config import ALLOWED_UPLOAD_EXTENSIONS
from taxi_backend.dal.taxi_dal import REQUEST_STATUSES

EMAIL_REGEX = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
MAX_PASSENGERS_PER_REQUEST = 4


class RequestValidator:
    """Validation helpers; each returns (is_valid, error_message)"""

    @staticmethod
    def validate_email(email):
        if not email:
            return False, "Email de destino é obrigatório"
        if not isinstance(email, str) or not EMAIL_REGEX.match(email):
            return False, "Formato de email inválido"
        return True, ""

    @staticmethod
    def validate_required(data, fields):
        if not isinstance(data, dict):
            return False, "O corpo da requisição deve ser um objeto JSON"
        missing = [f for f in fields if data.get(f) is None or (isinstance(data.get(f), str) and not data.get(f).strip())]
        if missing:
            return False, f"Campos obrigatórios ausentes: {', '.join(missing)}"
        return True, ""

    @staticmethod
    def validate_passenger(data):
        return RequestValidator.validate_required(data, ['name'])

    @staticmethod
    def validate_taxi_request(data):
        """
        Expected: date, requester, origin, destination, time (required),
        car_number, cost_center (optional), passengerIds (up to 4 ids)
        """
        ok, message = RequestValidator.validate_required(data, ['date', 'requester', 'origin', 'destination', 'time'])
        if not ok:
            return ok, message

        passenger_ids = data.get('passengerIds', data.get('passenger_ids')) or []
        if not isinstance(passenger_ids, list):
            return False, "'passengerIds' deve ser uma lista"
        if len(passenger_ids) > MAX_PASSENGERS_PER_REQUEST:
            return False, f"Uma solicitação pode ter no máximo {MAX_PASSENGERS_PER_REQUEST} passageiros"
        for pid in passenger_ids:
            if isinstance(pid, bool) or (isinstance(pid, float) and not pid.is_integer()):
                return False, "'passengerIds' deve conter apenas números inteiros"
            try:
                int(pid)
            except (TypeError, ValueError):
                return False, "'passengerIds' deve conter apenas números inteiros"
        return True, ""

    @staticmethod
    def validate_status(status):
        if status not in REQUEST_STATUSES:
            return False, f"Status inválido. Use um dos seguintes: {', '.join(REQUEST_STATUSES)}"
        return True, ""

    @staticmethod
    def validate_upload(filename):
        if not filename:
            return False, "Nenhum arquivo enviado"
        ext = os.path.splitext(filename)[1].lower()
        if ext not in ALLOWED_UPLOAD_EXTENSIONS:
            return False, "Formato de arquivo não suportado. Use CSV, XLS ou XLSX"
        return True, ""
