# tests/dentist_kpis/domain/test_entities.py

from datetime import datetime, timezone

from src.dentist_kpis.domain.dentist_factory import bairros_display, cro_valido, novo_dentista_automatico
from src.dentist_kpis.domain.entities import RecalculationSummary, RequestEvent, parse_ano_mes


def test_parse_ano_mes():
    assert parse_ano_mes("2025-03-14") == ("2025", "03")
    assert parse_ano_mes(" 2024-12-01 ") == ("2024", "12")
    assert parse_ano_mes("2025-13-01") is None
    assert parse_ano_mes("14/03/2025") is None
    assert parse_ano_mes("") is None
    assert parse_ano_mes(None) is None


def test_request_event_from_record():
    evento = RequestEvent.from_record({
        "request_id": 555,
        "dentist": {"dentist_id": 101.0, "dentist_cro": "  RJ-1 "},
        "clinic": {"id": "5778"},
        "total_value": "123.45",
        "creation_date_inv": "2025-03-14",
    })
    assert evento.request_id == "555"
    assert evento.dentist_id == "101"
    assert evento.dentist_cro == "RJ-1"
    assert evento.clinic_id == 5778
    assert evento.total_value == 123.45
    assert evento.identificador == "RJ-1"


def test_request_event_valores_invalidos():
    evento = RequestEvent.from_record({"request_id": "9", "dentist": {"dentist_id": "7", "dentist_cro": "  "}, "total_value": "R$ 10"})
    assert evento.dentist_cro is None
    assert evento.clinic_id is None
    assert evento.total_value == 0.0
    assert evento.identificador == "ID:7"


def test_novo_dentista_automatico():
    agora = datetime(2025, 3, 1, tzinfo=timezone.utc)
    novo = novo_dentista_automatico(42, None, {"dentist_name": "Dr. Beto"}, agora=agora)

    assert novo["dentist_id"] == "42"
    assert novo["dentist_name"] == "Dr. Beto"
    assert novo["actual_partnership_status"] == "Parceria em teste"
    assert novo["auto_created"] is True
    assert novo["KPIs"] == {"expectedMonthlyRevenue": 0, "expectedMonthlyQtd": 0, "periodKPIs": {}}
    assert novo["created_at"] == agora.isoformat()
    assert novo_dentista_automatico("1", None)["dentist_name"] == "Nome não informado"


def test_cro_e_bairros():
    assert cro_valido("") is None
    assert cro_valido(" RJ-9 ") == "RJ-9"
    assert bairros_display({"dental_clinics": [{"neighborhood": "Icaraí"}, {}, {"neighborhood": "Centro"}, {"neighborhood": "Ingá"}]}) == "Icaraí / Centro"
    assert bairros_display({"dental_clinics": [{"neighborhood": "Ingá"}]}) == "Ingá"
    assert bairros_display({}) == "-"


def test_resumo_to_dict():
    assert RecalculationSummary(dentists_updated=2, requests_processed=5).to_dict() == {
        "dentistsUpdated": 2,
        "requestsProcessed": 5,
        "requestsSkipped": 0,
        "dentistsCreated": 0,
        "cancelled": False,
    }
