# ============================================================
# 📦 src/dentist_kpis/application/diagnostic_service.py
# ============================================================

from collections import Counter
from typing import Any, Dict, List, Optional, Sequence
from loguru import logger

from src.database.document_store import DocumentStore
from src.dentist_kpis.config.business_units import CIROD_UNITS, BusinessUnit, buscar_unidade
from src.dentist_kpis.domain.dentist_factory import COLECAO_DENTISTAS, COLECAO_REQUISICOES, cro_valido
from src.dentist_kpis.domain.entities import RequestEvent

TAMANHO_AMOSTRA = 5


class DiagnosticService:
    """Resumo somente-leitura do estado de dentistas e requisições no store."""

    def __init__(self, store: DocumentStore, unidades: Sequence[BusinessUnit] = CIROD_UNITS):
        self.store = store
        self.unidades = tuple(unidades)

    def _resumo_requisicao(self, registro: Dict[str, Any]) -> Dict[str, Any]:
        evento = RequestEvent.from_record(registro)
        unidade = buscar_unidade(evento.clinic_id, self.unidades)
        return {
            "id": evento.request_id,
            "date": evento.creation_date_inv,
            "dentist_cro": evento.dentist_cro,
            "dentist_id": evento.dentist_id,
            "dentist_name": evento.dentist.get("dentist_name"),
            "total_value": registro.get("total_value"),
            "clinic_id": evento.clinic_id,
            "clinic_name": (registro.get("clinic") or {}).get("name"),
            "unidade": unidade.name if unidade else None,
        }

    def run_diagnostic(self) -> Optional[Dict[str, Any]]:
        logger.info("🩺 Executando diagnóstico de KPIs...")

        resultado = self.store.scan(COLECAO_REQUISICOES)
        if resultado.cancelado:
            return None
        requisicoes: List[Dict[str, Any]] = resultado.unwrap() or []

        resultado = self.store.scan(COLECAO_DENTISTAS)
        if resultado.cancelado:
            return None
        dentistas: List[Dict[str, Any]] = resultado.unwrap() or []

        com_kpis = [d for d in dentistas if ((d.get("KPIs") or {}).get("periodKPIs") or {})]
        cros_dentistas = {cro_valido(d.get("dentist_cro")) for d in dentistas} - {None}
        cros_requisicoes = {
            cro_valido((r.get("dentist") or {}).get("dentist_cro")) for r in requisicoes
        } - {None}

        por_mes = Counter()
        for registro in requisicoes:
            data = registro.get("creation_date_inv")
            if isinstance(data, str) and len(data) >= 7:
                por_mes[data[:7]] += 1

        amostra = [self._resumo_requisicao(r) for r in requisicoes[:TAMANHO_AMOSTRA]]
        nao_mapeadas = sum(
            1 for r in requisicoes
            if buscar_unidade(RequestEvent.from_record(r).clinic_id, self.unidades) is None
        )

        diagnostico = {
            "totalDentists": len(dentistas),
            "dentistsWithKPIs": len(com_kpis),
            "dentistsWithoutCro": sum(1 for d in dentistas if not cro_valido(d.get("dentist_cro"))),
            "totalRequests": len(requisicoes),
            "uniqueRequestCROs": sorted(cros_requisicoes),
            "orphanCROs": sorted(cros_requisicoes - cros_dentistas),
            "dentistsWithRequests": sorted(cros_dentistas & cros_requisicoes),
            "requestsByMonth": dict(sorted(por_mes.items())),
            "requestsUnmappedUnit": nao_mapeadas,
            "sampleRequests": amostra,
        }

        logger.info(
            f"📋 Diagnóstico: {diagnostico['totalDentists']} dentistas | "
            f"{diagnostico['totalRequests']} requisições | {len(diagnostico['orphanCROs'])} CROs órfãos"
        )
        return diagnostico
