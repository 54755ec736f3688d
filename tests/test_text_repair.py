import pytest

from taxi_backend.logic.text_repair import repair_text, repair_record
from taxi_backend.dal.repair_encoding import repair_stored_value, repair_database
from taxi_backend.dal.taxi_dal import TaxiDAL


@pytest.mark.parametrize("broken, fixed", [
    ("SÃ£o JosÃ© dos Campos", "São José dos Campos"),
    ("CaÃ§apava", "Caçapava"),
    ("ConceiÃ§Ã£o", "Conceição"),
    ("JOSÃ‰", "JOSÉ"),
])
def test_repairs_utf8_read_as_cp1252(broken, fixed):
    assert repair_text(broken) == fixed


@pytest.mark.parametrize("clean", ["São José", "SÃO PAULO", "Rua A, 10", "", "Ação"])
def test_clean_text_is_left_alone(clean):
    assert repair_text(clean) == clean


def test_non_strings_pass_through():
    assert repair_text(None) is None
    assert repair_text(42) == 42


def test_repair_record_walks_nested_structures():
    record = {"name": "JoÃ£o", "id": 3, "passengersDetails": [{"city": "TaubatÃ©"}], "tags": ("Ã§",)}

    assert repair_record(record) == {"name": "João", "id": 3, "passengersDetails": [{"city": "Taubaté"}], "tags": ["ç"]}


def test_stored_value_fixes_known_replacement_char_words():
    assert repair_stored_value("JD. COL�NIA") == "JD. COLÔNIA"
    assert repair_stored_value("S�O GON�ALO") == "SÃO GONÇALO"
    assert repair_stored_value("Vila S�o Geraldo") == "Vila São Geraldo"


def test_repair_database_rewrites_only_broken_rows(tmp_path):
    dal = TaxiDAL(str(tmp_path / 'taxi.db')).open()
    dal.create_passenger({"name": "Ana", "neighborhood": "BOSQUE DOS IP�S"})
    dal.create_passenger({"name": "Bruno", "neighborhood": "Centro"})

    changed = repair_database(dal.db_path)

    assert changed == {"passengers": 1, "taxi_requests": 0}
    assert [p['neighborhood'] for p in dal.list_passengers()] == ["BOSQUE DOS IPÊS", "Centro"]
