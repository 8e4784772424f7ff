# tests/dentist_kpis/application/test_full_recalculation_service.py

import json

import pytest

from src.database.document_store import StoreResult
from src.database.exceptions import StoreError
from src.dentist_kpis.application.full_recalculation_service import FullRecalculationService
from tests.factories import dentista, requisicao


def _kpis(store, dentist_id):
    return store.get("dentists", dentist_id).unwrap()["KPIs"]


@pytest.fixture
def base(store, salvar):
    salvar(
        store,
        dentistas=[
            dentista("101", "RJ-1234", KPIs={"expectedMonthlyRevenue": 1, "expectedMonthlyQtd": 1, "periodKPIs": {"1999": {}}}),
            dentista("202", ""),
        ],
        requisicoes=[
            requisicao("1", "101", "RJ-1234", 5778, 300.0, "2025-01-10"),
            requisicao("2", "999", "RJ-1234", 1754, 400.0, "2025-01-20"),   # CRO vence o ID
            requisicao("3", "202", None, 999, 50.0, "2025-02-01"),         # sem CRO, clínica desconhecida
            requisicao("4", "303", "RJ-3030", 5543, 80.0, "2025-02-02"),   # dentista novo
            requisicao("5", "303", "RJ-3030", 5543, 20.0, "2025-02-03"),   # reutiliza o novo
            requisicao("6", None, None, 5778, 10.0, "2025-02-04"),         # sem identificação
            requisicao("7", "101", "RJ-1234", 5778, 10.0, ""),             # sem data
        ],
    )
    return store


def test_recalculo_reconstroi_kpis(base):
    resumo = FullRecalculationService(base).recalculate_all()

    assert resumo.dentists_updated == 3
    assert resumo.dentists_created == 1
    assert resumo.requests_processed == 5
    assert resumo.requests_skipped == 2
    assert not resumo.cancelled

    ana = _kpis(base, "101")
    assert list(ana["periodKPIs"]) == ["2025"]          # estado antigo descartado
    janeiro = ana["periodKPIs"]["2025"]["01"]
    assert janeiro["faturamentoTotalMes"] == 700.0
    assert janeiro["totalPedidos"] == 2
    assert janeiro["faturamentoIcarai"] == 300.0
    assert janeiro["faturamentoMarica"] == 400.0
    assert janeiro["avgTicket"] == 350.0
    assert ana["expectedMonthlyRevenue"] == 700.0

    sem_cro = _kpis(base, "202")["periodKPIs"]["2025"]["02"]
    assert sem_cro["faturamentoTotalMes"] == 50.0
    assert sem_cro["faturamentoIcarai"] == 0

    novo = base.get("dentists", "303").unwrap()
    assert novo["auto_created"] is True
    assert novo["KPIs"]["periodKPIs"]["2025"]["02"]["totalPedidosNiteroi"] == 2
    assert base.get("dentists", "999").status.value == "not_found"


def test_recalculo_e_idempotente(base):
    servico = FullRecalculationService(base)
    servico.recalculate_all()
    primeira = {d: json.dumps(_kpis(base, d), sort_keys=True) for d in ("101", "202", "303")}

    resumo = servico.recalculate_all()
    segunda = {d: json.dumps(_kpis(base, d), sort_keys=True) for d in ("101", "202", "303")}

    assert primeira == segunda
    assert resumo.dentists_created == 0


def test_put_preserva_campos_e_incrementa_revisao(base):
    base.update("dentists", "101", {"kpis_revision": 4}).unwrap()
    FullRecalculationService(base).recalculate_all()

    ana = base.get("dentists", "101").unwrap()
    assert ana["actual_partnership_status"] == "Parceria exclusiva"
    assert ana["kpis_revision"] == 5


def test_unidade_desabilitada_ignorada_no_recalculo(store, salvar):
    salvar(store, requisicoes=[requisicao("1", clinic_id=-2, valor=60.0)])
    FullRecalculationService(store).recalculate_all()

    mes = _kpis(store, "101")["periodKPIs"]["2025"]["03"]
    assert mes["faturamentoTotalMes"] == 60.0
    assert mes["faturamentoAlcantara"] == 0


def test_scan_cancelado(scripted, base):
    scripted.programar("scan", StoreResult.cancelled())
    resumo = FullRecalculationService(scripted).recalculate_all()
    assert resumo.cancelled
    assert resumo.dentists_updated == 0


def test_falha_no_meio_nao_desfaz_e_rodar_de_novo_recupera(scripted, base):
    servico = FullRecalculationService(scripted)
    scripted.programar("put", lambda *a: scripted.inner.put(*a))
    scripted.programar("put", StoreResult.failed(StoreError("limite")))

    with pytest.raises(StoreError):
        servico.recalculate_all()
    assert _kpis(base, "101")["periodKPIs"]["2025"]["01"]["totalPedidos"] == 2

    resumo = servico.recalculate_all()
    assert resumo.dentists_updated == 3
    assert _kpis(base, "202")["periodKPIs"]["2025"]["02"]["totalPedidos"] == 1


def test_cro_com_espacos_e_gravado_sem_espacos(store, salvar):
    salvar(
        store,
        dentistas=[dentista("303", " RJ-3 ")],
        requisicoes=[requisicao("1", "999", "RJ-3", data="2025-04-02")],
    )
    resumo = FullRecalculationService(store).recalculate_all()

    assert resumo.dentists_created == 0
    assert store.get("dentists", "303").unwrap()["dentist_cro"] == "RJ-3"
    assert _kpis(store, "303")["periodKPIs"]["2025"]["04"]["totalPedidos"] == 1
