#src/dentist_kpis/jobs.py

from datetime import datetime
from rq import get_current_job
from loguru import logger

from src.dentist_kpis.infrastructure.service_container import get_services


def _marcar(etapa: str):
    job = get_current_job()
    if job is None:
        return None
    job.meta["etapa"] = etapa
    job.meta["atualizado_em"] = datetime.now().isoformat()
    job.save_meta()
    return job.id


# ============================================================
# 🚀 Recálculo de KPIs (completo ou diário)
# ============================================================
def processar_recalculo_kpis(diario: bool = False, forcar: bool = False):
    job_id = _marcar("recalculo_kpis")
    logger.info(f"🚀 Job de recálculo de KPIs ({job_id}) | diario={diario} | forcar={forcar}")
    servicos = get_services()

    try:
        if diario:
            resultado = servicos.daily.ensure_daily_recalculation(force=forcar).to_dict()
        else:
            resultado = servicos.recalculation.recalculate_all().to_dict()
    except Exception as e:
        logger.error(f"❌ Job {job_id} falhou: {e}")
        _marcar("erro")
        raise

    _marcar("concluido")
    logger.success(f"✅ Job {job_id} concluído: {resultado}")
    return {"status": "done", "job_id": job_id, "resultado": resultado}


# ============================================================
# 🩺 Saúde das parcerias
# ============================================================
def processar_saude_parcerias(ano: int = None, forcar: bool = False):
    job_id = _marcar("saude_parcerias")
    logger.info(f"🩺 Job de saúde das parcerias ({job_id}) | ano={ano} | forcar={forcar}")

    try:
        resultado = get_services().health.load_health_data(year=ano, force=forcar)
    except Exception as e:
        logger.error(f"❌ Job {job_id} falhou: {e}")
        _marcar("erro")
        raise

    _marcar("concluido")
    return {
        "status": "done",
        "job_id": job_id,
        "ano": resultado.ano,
        "dentistas": len(resultado.linhas),
        "doCache": resultado.do_cache,
    }
