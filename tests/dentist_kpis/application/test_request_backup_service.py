# tests/dentist_kpis/application/test_request_backup_service.py

import pytest

from src.database.document_store import StoreResult
from src.database.exceptions import StoreError
from src.database.session_cache import CacheWithTTL
from src.dentist_kpis.application.incremental_kpi_updater import IncrementalKPIUpdater, UpdateOutcome
from src.dentist_kpis.application.request_backup_service import RequestBackupService
from tests.factories import dentista, requisicao


@pytest.fixture
def verificados(clock):
    c = CacheWithTTL(ttl=600, cleanup_interval=None, clock=clock)
    yield c
    c.destroy()


def _servico(store, cache, verificados):
    updater = IncrementalKPIUpdater(store, processed_cache=cache, conflict_delay=0)
    return RequestBackupService(store, updater, dentist_check_cache=verificados)


def test_salva_requisicao_cria_dentista_e_atualiza_kpis(store, cache, verificados):
    servico = _servico(store, cache, verificados)

    resultado = servico.save_request(requisicao("r-1", dentist_id="555", cro="RJ-555", valor=120.0))

    assert resultado.salvo
    assert resultado.dentista_garantido
    assert resultado.kpi == UpdateOutcome.UPDATED
    assert store.get("requests", "r-1").unwrap()["total_value"] == 120.0

    criado = store.get("dentists", "555").unwrap()
    assert criado["auto_created"] is True
    assert criado["dentist_cro"] == "RJ-555"
    assert criado["KPIs"]["periodKPIs"]["2025"]["03"]["faturamentoTotalMes"] == 120.0
    assert resultado.to_dict()["kpi"] == "updated"


def test_dentista_existente_nao_e_sobrescrito(store, cache, verificados, salvar):
    salvar(store, dentistas=[dentista(dentist_status="ativo")])
    servico = _servico(store, cache, verificados)

    servico.save_request(requisicao("r-1"))

    gravado = store.get("dentists", "101").unwrap()
    assert gravado["dentist_status"] == "ativo"
    assert "auto_created" not in gravado
    assert verificados.has("dentist_101")


def test_verificacao_de_dentista_usa_cache(scripted, cache, verificados, salvar):
    salvar(scripted.inner, dentistas=[dentista()])
    servico = _servico(scripted, cache, verificados)

    servico.ensure_dentist_exists({"dentist_id": "101"})
    servico.ensure_dentist_exists({"dentist_id": "101"})

    leituras = [c for c in scripted.chamadas if c[0] == "get" and c[1][0] == "dentists"]
    assert len(leituras) == 1


def test_sem_dentist_id_nao_verifica(store, cache, verificados):
    servico = _servico(store, cache, verificados)
    assert servico.ensure_dentist_exists({"dentist_cro": "RJ-1"}) is False
    assert servico.ensure_dentist_exists({}) is False


def test_request_id_obrigatorio(store, cache, verificados):
    servico = _servico(store, cache, verificados)
    with pytest.raises(ValueError):
        servico.save_request({"dentist": {"dentist_id": "1"}})


def test_backup_cancelado_nao_segue(scripted, cache, verificados):
    servico = _servico(scripted, cache, verificados)
    scripted.programar("put", StoreResult.cancelled())

    resultado = servico.save_request(requisicao("r-1"))

    assert resultado.cancelado
    assert not resultado.salvo
    assert resultado.kpi is None
    assert scripted.inner.get("dentists", "101").status.value == "not_found"


def test_falha_no_backup_propaga(scripted, cache, verificados):
    servico = _servico(scripted, cache, verificados)
    scripted.programar("put", StoreResult.failed(StoreError("sem conexão")))

    with pytest.raises(StoreError):
        servico.save_request(requisicao("r-1"))


def test_falha_nos_kpis_so_gera_log(scripted, cache, verificados, salvar):
    salvar(scripted.inner, dentistas=[dentista()])
    servico = _servico(scripted, cache, verificados)
    scripted.programar("update", StoreResult.failed(StoreError("limite excedido")))

    resultado = servico.save_request(requisicao("r-1"))

    assert resultado.salvo
    assert resultado.dentista_garantido
    assert resultado.kpi is None
    assert not cache.has("r-1")
    assert scripted.inner.get("requests", "r-1").ok
