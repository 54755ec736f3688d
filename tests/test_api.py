import io

import pytest
from unittest.mock import MagicMock

from taxi_backend.api.app import create_app, close_app
from taxi_backend.notifications.email_dispatcher import EmailAuthenticationError


@pytest.fixture
def app(tmp_path, dal, report_builder, unconfigured_dispatcher):
    app = create_app(
        settings={
            "TESTING": True,
            "UPLOADS_DIR": str(tmp_path / 'uploads'),
            "EXPORTS_DIR": str(tmp_path / 'exports'),
        },
        dal=dal,
        dispatcher=unconfigured_dispatcher,
        report_builder=report_builder
    )
    yield app
    close_app(app)


@pytest.fixture
def client(app):
    return app.test_client()


def upload(client, url, content, filename):
    return client.post(url, data={"file": (io.BytesIO(content), filename)}, content_type='multipart/form-data')


CSV_CONTENT = "nome;cidade;area\nAna Souza;Jacareí;SAR\nBruno Lima;Taubaté;producao\nJ;Caçapava;RCB\n".encode('utf-8')


def test_home_and_health(client):
    assert client.get('/').status_code == 200
    assert client.get('/health').get_json()['status'] == "healthy"


# --- Passengers ---

def test_passenger_crud(client, passenger_data):
    response = client.post('/passengers', json=passenger_data)
    assert response.status_code == 201
    passenger_id = response.get_json()['id']

    fetched = client.get(f'/passengers/{passenger_id}').get_json()
    assert fetched['name'] == passenger_data['name']

    listed = client.get('/passengers').get_json()
    assert listed[0]['created_at_formatted'] is not None

    response = client.put(f'/passengers/{passenger_id}', json={**passenger_data, "city": "Jacareí"})
    assert response.get_json()['city'] == "Jacareí"

    assert client.delete(f'/passengers/{passenger_id}').get_json() == {"deleted": 1}
    assert client.get(f'/passengers/{passenger_id}').status_code == 404


def test_create_passenger_requires_name(client):
    response = client.post('/passengers', json={"city": "Jacareí"})
    assert response.status_code == 400
    assert "name" in response.get_json()['error']


def test_edit_form_without_area_keeps_area(client):
    passenger_id = client.post('/passengers', json={"name": "Ana", "area": "SAR"}).get_json()['id']

    response = client.put(f'/passengers/{passenger_id}', json={"name": "Ana", "phone": "123"})

    assert response.status_code == 200
    assert response.get_json()['area'] == "SAR"


def test_update_unknown_passenger(client, passenger_data):
    assert client.put('/passengers/999', json=passenger_data).status_code == 404


# --- Requests ---

def test_request_lifecycle(client, dal, request_data):
    ids = [dal.create_passenger({"name": name})['id'] for name in ["Ana", "Bruno"]]

    response = client.post('/requests', json={**request_data, "passengerIds": [str(i) for i in ids]})
    assert response.status_code == 201
    request_id = response.get_json()['id']

    [listed] = client.get('/requests').get_json()
    assert sorted(listed['passengerIds']) == sorted(ids)
    assert {p['name'] for p in listed['passengersDetails']} == {"Ana", "Bruno"}
    assert listed['created_at_formatted'] is not None

    response = client.put(f'/requests/{request_id}/status', json={"status": "completed"})
    assert response.get_json()['status'] == "completed"
    assert client.get('/requests?status=pending').get_json() == []

    assert client.delete(f'/requests/{request_id}').get_json() == {"deleted": 1}


def test_request_with_too_many_passengers(client, request_data):
    response = client.post('/requests', json={**request_data, "passengerIds": [1, 2, 3, 4, 5]})
    assert response.status_code == 400


@pytest.mark.parametrize("passenger_ids", [[2.9], ["2.9"], [True], ["abc"]])
def test_request_rejects_non_integer_passenger_ids(client, dal, request_data, passenger_ids):
    dal.create_passenger({"name": "Ana"})
    dal.create_passenger({"name": "Bruno"})

    response = client.post('/requests', json={**request_data, "passengerIds": passenger_ids})

    assert response.status_code == 400
    assert client.get('/requests').get_json() == []


def test_request_accepts_integral_float_ids(client, dal, request_data):
    passenger_id = dal.create_passenger({"name": "Ana"})['id']

    response = client.post('/requests', json={**request_data, "passengerIds": [float(passenger_id)]})

    assert response.status_code == 201
    assert response.get_json()['passengerIds'] == [passenger_id]


def test_request_missing_fields(client):
    response = client.post('/requests', json={"requester": "FABIO"})
    assert response.status_code == 400
    assert "date" in response.get_json()['error']


def test_invalid_status(client, request_data):
    request_id = client.post('/requests', json=request_data).get_json()['id']
    assert client.put(f'/requests/{request_id}/status', json={"status": "done"}).status_code == 400


def test_stats(client, dal, request_data):
    dal.create_passenger({"name": "Ana"})
    created = dal.create_request(request_data)
    dal.update_request_status(created['id'], 'cancelled')

    stats = client.get('/stats').get_json()
    assert stats['totalPassengers'] == 1
    assert stats['cancelledRequests'] == 1


def test_storage_errors_become_500(app, client):
    app.extensions['taxi']['dal'] = MagicMock()
    app.extensions['taxi']['dal'].list_passengers.side_effect = RuntimeError("disk I/O error")

    response = client.get('/passengers')
    assert response.status_code == 500
    assert response.get_json() == {"error": "disk I/O error"}


# --- Imports ---

def test_import_json_records(client, dal):
    dal.create_passenger({"name": "Ana", "area": "RCB"})

    response = client.post('/import/passengers', json={"passengers": [
        {"name": "ana"}, {"name": "Carla", "area": "armazem"}, {"name": "Dora", "area": "Marketing"}
    ]})
    body = response.get_json()

    assert response.status_code == 200
    assert [p['name'] for p in body['imported']] == ["Carla"]
    assert body['imported'][0]['area'] == "Warehouse"
    assert len(body['duplicates']) == 1
    assert len(body['invalid']) == 1


def test_import_json_requires_list(client):
    assert client.post('/import/passengers', json={"name": "Ana"}).status_code == 400


def test_preview_file_does_not_write(client, dal):
    response = upload(client, '/import/passengers/preview', CSV_CONTENT, 'passageiros.csv')
    body = response.get_json()

    assert response.status_code == 200
    assert body['summary']['unique'] == 2
    assert body['summary']['invalid'] == 1
    assert dal.list_passengers() == []


def test_import_file_writes_unique_passengers(client, dal, app):
    response = upload(client, '/import/passengers/file', CSV_CONTENT, 'passageiros.csv')

    assert response.status_code == 200
    assert [p['name'] for p in dal.list_passengers()] == ["Ana Souza", "Bruno Lima"]

    # Same file again: everything is a duplicate
    again = upload(client, '/import/passengers/file', CSV_CONTENT, 'passageiros.csv').get_json()
    assert again['imported'] == []
    assert len(again['duplicates']) == 2


def test_upload_rejects_other_extensions(client):
    response = upload(client, '/import/passengers/file', b'hello', 'passageiros.txt')
    assert response.status_code == 400


def test_upload_requires_file(client):
    assert client.post('/import/passengers/preview', data={}, content_type='multipart/form-data').status_code == 400


def test_upload_size_limit(app, client):
    app.config['MAX_CONTENT_LENGTH'] = 1024 * 1024
    response = upload(client, '/import/passengers/file', b'x' * (2 * 1024 * 1024), 'big.csv')

    assert response.status_code == 413
    assert "Arquivo muito grande" in response.get_json()['error']


# --- Export and email ---

@pytest.mark.parametrize("payload", [{}, {"email": "not-an-email"}, {"email": "a@b"}])
def test_export_requires_valid_email(client, payload):
    assert client.post('/export/requests', json=payload).status_code == 400


def test_validation_messages_are_portuguese(client):
    assert client.post('/export/requests', json={}).get_json()['error'] == "Email de destino é obrigatório"
    assert client.post('/export/requests', json={"email": "x"}).get_json()['error'] == "Formato de email inválido"
    assert client.get('/passengers/999').get_json()['error'] == "Passageiro não encontrado"


def test_export_without_email_config(client, smtp_factory):
    response = client.post('/export/requests', json={"email": "boss@example.com", "filters": {"status": "all"}})
    body = response.get_json()

    assert response.status_code == 400
    assert body['error'] == "Email não configurado"
    assert 'suggestion' in body
    smtp_factory.assert_not_called()


def test_export_auth_failure_is_client_error(app, client):
    dispatcher = MagicMock()
    dispatcher.export_and_send.side_effect = EmailAuthenticationError("Erro de autenticação de email: 535")
    app.extensions['taxi']['dispatcher'] = dispatcher

    response = client.post('/export/requests', json={"email": "boss@example.com"})
    assert response.status_code == 400
    assert response.get_json()['error'] == "Erro de autenticação de email"


def test_export_sends_filtered_requests(app, client, dal, request_data):
    done = dal.create_request(request_data)
    dal.create_request(request_data)
    dal.update_request_status(done['id'], 'completed')
    dispatcher = MagicMock()
    dispatcher.export_and_send.return_value = {"success": True, "recordsCount": 1}
    app.extensions['taxi']['dispatcher'] = dispatcher

    response = client.post('/export/requests', json={"email": "boss@example.com", "filters": {"status": "completed"}})

    assert response.status_code == 200
    sent_requests = dispatcher.export_and_send.call_args[0][0]
    assert [r['id'] for r in sent_requests] == [done['id']]


def test_download_returns_spreadsheet(client, dal, request_data):
    dal.create_request(request_data)

    response = client.post('/export/download', json={"filters": {}})

    assert response.status_code == 200
    assert response.mimetype == 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'
    disposition = response.headers['Content-Disposition']
    assert disposition.startswith('attachment')
    assert 'solicitacoes_taxi_' in disposition
    assert response.data[:2] == b'PK'


def test_test_email_endpoints_without_config(client):
    assert client.get('/test-email').get_json()['success'] is False

    response = client.post('/test-email/send', json={"email": "boss@example.com"})
    assert response.status_code == 400
    assert client.post('/test-email/send', json={"email": "bad"}).status_code == 400
