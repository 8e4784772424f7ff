# tests/dentist_kpis/api/test_kpis_api.py

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import jwt
import pytest
from fastapi.testclient import TestClient

from src.database.document_store import StoreResult
from src.database.exceptions import StoreError
from src.dentist_kpis.api import dependencies, routes
from src.dentist_kpis.api.main_kpis_api import app
from src.dentist_kpis.infrastructure.service_container import montar_servicos
from tests.factories import requisicao


def _token(**payload):
    dados = {"user_id": 1, "role": "admin", "email": "ops@cirod.com.br"}
    dados.update(payload)
    return jwt.encode(dados, dependencies.JWT_SECRET_KEY, algorithm=dependencies.JWT_ALGORITHM)


def _auth(**payload):
    return {"Authorization": f"Bearer {_token(**payload)}"}


@pytest.fixture
def svc(scripted):
    return montar_servicos(scripted, sweep_interval=None)


@pytest.fixture
def client(svc):
    app.dependency_overrides[dependencies.servicos] = lambda: svc
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health_sem_token(client):
    resp = client.get("/kpis/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


def test_rotas_exigem_token(client):
    assert client.get("/kpis/unidades").status_code == 401
    assert client.get("/kpis/unidades", headers={"Authorization": "Token abc"}).status_code == 401
    assert client.get("/kpis/unidades", headers={"Authorization": "Bearer nao-e-jwt"}).status_code == 401


def test_token_expirado(client):
    expirado = datetime.now(timezone.utc) - timedelta(minutes=5)
    resp = client.get("/kpis/unidades", headers=_auth(exp=expirado))
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Token expirado."


def test_token_sem_campo_obrigatorio(client):
    token = jwt.encode({"user_id": 1, "role": "admin"}, dependencies.JWT_SECRET_KEY, algorithm="HS256")
    resp = client.get("/kpis/unidades", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 401
    assert "email" in resp.json()["detail"]


def test_unidades_e_status(client):
    unidades = client.get("/kpis/unidades", headers=_auth()).json()
    assert unidades[0]["name"] == "Geral"
    assert {"id": 5778, "field_suffix": "Icarai"}.items() <= unidades[1].items()

    status = client.get("/kpis/status-parceria", headers=_auth()).json()
    assert status[0]["text"] == "Parceria exclusiva"
    assert len(status) == 7


def test_salvar_requisicao(client, svc):
    resp = client.post("/kpis/requisicoes", json=requisicao("r-1", valor=250.0, origem="coletor"), headers=_auth())

    assert resp.status_code == 200
    corpo = resp.json()
    assert corpo["salvo"] is True
    assert corpo["kpi"] == "updated"

    salvo = svc.store.get("requests", "r-1").unwrap()
    assert salvo["origem"] == "coletor"
    dentista = svc.store.get("dentists", "101").unwrap()
    assert dentista["KPIs"]["periodKPIs"]["2025"]["03"]["faturamentoIcarai"] == 250.0


def test_salvar_requisicao_sem_id_e_422(client):
    resp = client.post("/kpis/requisicoes", json={"dentist": {}}, headers=_auth())
    assert resp.status_code == 422


def test_erro_do_store_vira_502(client, scripted):
    scripted.programar("put", StoreResult.failed(StoreError("rede indisponível", "requests")))
    resp = client.post("/kpis/requisicoes", json=requisicao("r-1"), headers=_auth())
    assert resp.status_code == 502
    assert "rede indisponível" in resp.json()["detail"]


def test_recalculo_enfileirado(client, monkeypatch):
    enfileirados = []

    class FilaFake:
        def enqueue(self, func, **kwargs):
            enfileirados.append((func, kwargs))
            return SimpleNamespace(id="job-123")

    monkeypatch.setattr(routes, "fila_kpis", lambda: FilaFake())
    resp = client.post("/kpis/recalcular", headers=_auth())

    assert resp.status_code == 200
    assert resp.json() == {"status": "queued", "job_id": "job-123"}
    assert enfileirados[0][0] is routes.processar_recalculo_kpis


def test_falha_ao_enfileirar_e_500(client, monkeypatch):
    def fila_quebrada():
        raise ConnectionError("redis fora do ar")

    monkeypatch.setattr(routes, "fila_kpis", fila_quebrada)
    resp = client.post("/kpis/recalcular", headers=_auth())
    assert resp.status_code == 500


def test_recalculo_diario(client, svc):
    svc.store.put("requests", "r-1", requisicao("r-1"))

    primeiro = client.post("/kpis/recalcular/diario", headers=_auth()).json()
    segundo = client.post("/kpis/recalcular/diario", headers=_auth()).json()
    forcado = client.post("/kpis/recalcular/diario?forcar=true", headers=_auth()).json()

    assert primeiro["recalculado"] is True
    assert primeiro["resumo"]["dentistsCreated"] == 1
    assert segundo["recalculado"] is False
    assert segundo["totalDentistas"] == 1
    assert forcado["recalculado"] is True


def test_diagnostico(client, svc):
    svc.store.put("requests", "r-1", requisicao("r-1"))
    resp = client.get("/kpis/diagnostico", headers=_auth())
    assert resp.status_code == 200
    assert resp.json()["totalRequests"] == 1
    assert resp.json()["orphanCROs"] == ["RJ-1234"]


def test_saude_parcerias(client):
    resp = client.get("/kpis/parcerias/saude?ano=2024", headers=_auth())
    assert resp.status_code == 200
    corpo = resp.json()
    assert corpo["ano"] == 2024
    assert corpo["doCache"] is False
    assert corpo["healthData"] == []

    assert client.get("/kpis/parcerias/saude?ano=1800", headers=_auth()).status_code == 422


def test_saude_parcerias_enfileirada(client, monkeypatch):
    enfileirados = []

    class FilaFake:
        def enqueue(self, func, **kwargs):
            enfileirados.append((func, kwargs))
            return SimpleNamespace(id="job-456")

    monkeypatch.setattr(routes, "fila_kpis", lambda: FilaFake())
    resp = client.post("/kpis/parcerias/saude/recalcular?ano=2024", headers=_auth())

    assert resp.status_code == 200
    assert resp.json() == {"status": "queued", "job_id": "job-456", "ano": 2024}
    func, kwargs = enfileirados[0]
    assert func is routes.processar_saude_parcerias
    assert kwargs["ano"] == 2024
    assert kwargs["forcar"] is True


def test_falha_ao_enfileirar_saude_e_500(client, monkeypatch):
    def fila_quebrada():
        raise ConnectionError("redis fora do ar")

    monkeypatch.setattr(routes, "fila_kpis", fila_quebrada)
    assert client.post("/kpis/parcerias/saude/recalcular", headers=_auth()).status_code == 500
