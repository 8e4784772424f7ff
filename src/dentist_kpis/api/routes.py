# ============================================================
# 📦 src/dentist_kpis/api/routes.py
# ============================================================

from dataclasses import asdict
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from loguru import logger
from pydantic import BaseModel, ConfigDict

from src.database.document_store import KPI_STORE_BACKEND
from src.database.exceptions import StoreError
from src.dentist_kpis.api.dependencies import servicos, verify_token
from src.dentist_kpis.config.business_units import CIROD_UNITS, PARTNERSHIP_STATUS_OPTIONS
from src.dentist_kpis.infrastructure.queue_factory import fila_kpis
from src.dentist_kpis.infrastructure.service_container import KPIServices
from src.dentist_kpis.jobs import processar_recalculo_kpis, processar_saude_parcerias

router = APIRouter()


# ============================================================
# 📌 Requisição enviada pelo coletor
# ============================================================
class RequisicaoPayload(BaseModel):
    model_config = ConfigDict(extra="allow")

    request_id: str | int
    dentist: Dict[str, Any] = {}
    clinic: Dict[str, Any] | None = None
    total_value: float | str | None = None
    creation_date_inv: str | None = None


def _erro_store(acao: str, e: StoreError):
    logger.error(f"❌ Erro no store ao {acao}: {e}")
    return HTTPException(status_code=502, detail=f"Erro no store ao {acao}: {e}")


# ============================================================
# 🧪 Health check
# ============================================================
@router.get("/health")
def health_check():
    banco = "n/a"
    if KPI_STORE_BACKEND == "postgres":
        from src.database.db_connection import test_db_connection

        banco = "ok" if test_db_connection() else "erro"
    return {"status": "ok", "service": "dentist_kpis", "store": KPI_STORE_BACKEND, "banco": banco}


# ============================================================
# 🏥 Configuração estática
# ============================================================
@router.get("/unidades", dependencies=[Depends(verify_token)])
def listar_unidades():
    return [asdict(u) for u in CIROD_UNITS]


@router.get("/status-parceria", dependencies=[Depends(verify_token)])
def listar_status_parceria():
    return [asdict(o) for o in PARTNERSHIP_STATUS_OPTIONS]


# ============================================================
# 💾 POST /kpis/requisicoes
# ============================================================
@router.post("/requisicoes", dependencies=[Depends(verify_token)])
def salvar_requisicao(payload: RequisicaoPayload, request: Request, svc: KPIServices = Depends(servicos)):
    logger.info(f"📥 Requisição {payload.request_id} recebida de {request.state.user['email']}")
    try:
        resultado = svc.backup.save_request(payload.model_dump())
    except StoreError as e:
        raise _erro_store("salvar a requisição", e)
    return resultado.to_dict()


# ============================================================
# 🔁 POST /kpis/recalcular (assíncrono via RQ)
# ============================================================
@router.post("/recalcular", dependencies=[Depends(verify_token)])
def enfileirar_recalculo(request: Request):
    try:
        job = fila_kpis().enqueue(processar_recalculo_kpis, job_timeout=3600)
    except Exception as e:
        logger.error(f"❌ Erro ao enfileirar recálculo: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Erro ao enfileirar job: {e}")

    logger.info(f"📤 Recálculo de KPIs enfileirado | job={job.id} | usuário={request.state.user['email']}")
    return {"status": "queued", "job_id": job.id}


# ============================================================
# 📅 POST /kpis/recalcular/diario (síncrono)
# ============================================================
@router.post("/recalcular/diario", dependencies=[Depends(verify_token)])
def recalculo_diario(
    forcar: bool = Query(False, description="Ignora o cache do dia"),
    svc: KPIServices = Depends(servicos),
):
    try:
        resultado = svc.daily.ensure_daily_recalculation(force=forcar)
    except StoreError as e:
        raise _erro_store("recalcular os KPIs", e)
    return resultado.to_dict()


# ============================================================
# 🩺 GET /kpis/diagnostico
# ============================================================
@router.get("/diagnostico", dependencies=[Depends(verify_token)])
def diagnostico(svc: KPIServices = Depends(servicos)):
    try:
        resultado = svc.diagnostic.run_diagnostic()
    except StoreError as e:
        raise _erro_store("gerar o diagnóstico", e)
    if resultado is None:
        return {"status": "cancelled"}
    return resultado


# ============================================================
# 🤝 GET /kpis/parcerias/saude
# ============================================================
@router.get("/parcerias/saude", dependencies=[Depends(verify_token)])
def saude_parcerias(
    ano: int | None = Query(None, ge=2000, le=2100),
    forcar: bool = Query(False),
    svc: KPIServices = Depends(servicos),
):
    try:
        resultado = svc.health.load_health_data(year=ano, force=forcar)
    except StoreError as e:
        raise _erro_store("calcular a saúde das parcerias", e)
    return resultado.to_dict()


# ============================================================
# 🔁 POST /kpis/parcerias/saude/recalcular (assíncrono via RQ)
# ============================================================
@router.post("/parcerias/saude/recalcular", dependencies=[Depends(verify_token)])
def enfileirar_saude_parcerias(
    request: Request,
    ano: int | None = Query(None, ge=2000, le=2100),
    forcar: bool = Query(True, description="Ignora o cache do dia"),
):
    try:
        job = fila_kpis().enqueue(processar_saude_parcerias, ano=ano, forcar=forcar, job_timeout=1800)
    except Exception as e:
        logger.error(f"❌ Erro ao enfileirar saúde das parcerias: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Erro ao enfileirar job: {e}")

    logger.info(f"📤 Saúde das parcerias enfileirada | ano={ano} | job={job.id} | usuário={request.state.user['email']}")
    return {"status": "queued", "job_id": job.id, "ano": ano}
