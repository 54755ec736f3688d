import pytest
from unittest.mock import MagicMock

from taxi_backend.dal.taxi_dal import TaxiDAL
from taxi_backend.logic.report_builder import RequestReportBuilder
from taxi_backend.notifications.email_dispatcher import EmailDispatcher


# --- Fixtures ---

@pytest.fixture
def dal(tmp_path):
    """A gateway over a fresh database file, closed after the test."""
    gateway = TaxiDAL(str(tmp_path / 'db' / 'taxi_test.db')).open()
    yield gateway
    gateway.close()


@pytest.fixture
def passenger_data():
    return {
        "name": "Maria Silva",
        "address": "Rua das Flores, 10",
        "neighborhood": "Centro",
        "city": "São José dos Campos",
        "phone": "12 99999-0000",
        "cost_center": "4088",
        "shift": "Manhã",
        "area": "Produção"
    }


@pytest.fixture
def request_data():
    return {
        "date": "2024-01-15",
        "requester": "FABIO ARAUJO",
        "origin": "CASA",
        "destination": "ERICSSON",
        "time": "14:00",
        "car_number": "Carro 1",
        "cost_center": "4088"
    }


@pytest.fixture
def report_builder(tmp_path):
    return RequestReportBuilder(str(tmp_path / 'exports'))


@pytest.fixture
def smtp_factory():
    """Stands in for smtplib.SMTP; no network is touched."""
    return MagicMock()


@pytest.fixture
def email_settings():
    return {
        "user": "reports@example.com",
        "password": "app-password",
        "host": "smtp.example.com",
        "port": 587,
        "timeout": 5,
        "sender": "reports@example.com"
    }


@pytest.fixture
def unconfigured_dispatcher(smtp_factory):
    return EmailDispatcher(settings_loader=lambda: {"host": "smtp.example.com", "port": 587}, smtp_factory=smtp_factory)
