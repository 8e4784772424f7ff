# tests/conftest.py

import os

# precisa estar no ambiente antes de importar a API
os.environ.setdefault("JWT_SECRET_KEY", "segredo-de-teste")
os.environ.setdefault("KPI_STORE_BACKEND", "memoria")

from datetime import datetime, timezone

import pytest

from src.database.document_store import InMemoryDocumentStore
from src.database.session_cache import CacheWithTTL
from src.dentist_kpis.application.incremental_kpi_updater import IncrementalKPIUpdater
from src.dentist_kpis.domain.dentist_factory import COLECAO_DENTISTAS, COLECAO_REQUISICOES
from tests.factories import FakeClock, ScriptedStore


@pytest.fixture
def store():
    return InMemoryDocumentStore()


@pytest.fixture
def scripted(store):
    return ScriptedStore(store)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    c = CacheWithTTL(ttl=600, cleanup_interval=None, clock=clock)
    yield c
    c.destroy()


@pytest.fixture
def updater(store, cache):
    return IncrementalKPIUpdater(store, processed_cache=cache, conflict_delay=0)


@pytest.fixture
def agora():
    return datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def salvar():
    """Grava requisições/dentistas direto no store."""
    def _salvar(store, requisicoes=(), dentistas=()):
        for r in requisicoes:
            store.put(COLECAO_REQUISICOES, str(r["request_id"]), r).unwrap()
        for d in dentistas:
            store.put(COLECAO_DENTISTAS, str(d["dentist_id"]), d).unwrap()
    return _salvar
