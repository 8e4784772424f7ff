# ============================================================
# 📦 src/dentist_kpis/application/daily_recalculation_service.py
# ============================================================

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional
from loguru import logger

from src.database.document_store import DocumentStore, StoreStatus
from src.dentist_kpis.application.full_recalculation_service import FullRecalculationService
from src.dentist_kpis.domain.dentist_factory import COLECAO_CONFIG, COLECAO_DENTISTAS
from src.dentist_kpis.domain.entities import RecalculationSummary

CONFIG_KPI_ID = "kpi"

CAMPOS_CACHE_DENTISTA = (
    "dentist_id",
    "dentist_name",
    "dentist_cro",
    "dentist_email",
    "mobile_phone",
    "commercial_phone",
    "dental_clinics",
    "KPIs",
)


@dataclass
class DailyRecalculationResult:
    recalculado: bool = False
    cancelado: bool = False
    ultima_data: Optional[str] = None
    ultima_hora: Optional[str] = None
    dentistas: List[Dict[str, Any]] = field(default_factory=list)
    resumo: Optional[RecalculationSummary] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "recalculado": self.recalculado,
            "cancelado": self.cancelado,
            "lastFullRecalculation": self.ultima_data,
            "lastRecalculationTime": self.ultima_hora,
            "totalDentistas": len(self.dentistas),
            "resumo": self.resumo.to_dict() if self.resumo else None,
        }


def projetar_dentista(dentista: Dict[str, Any]) -> Dict[str, Any]:
    """Só os campos usados pelas telas de produtividade."""
    return {campo: dentista.get(campo) for campo in CAMPOS_CACHE_DENTISTA}


class DailyRecalculationService:
    """
    Garante no máximo um recálculo completo por dia.
    O registro config/kpi guarda a data, a hora e a lista de dentistas já
    projetada; quando a data é hoje (e não há --forcar) devolve o cache.
    """

    def __init__(self, store: DocumentStore, recalculation: Optional[FullRecalculationService] = None):
        self.store = store
        self.recalculation = recalculation or FullRecalculationService(store)

    def _ler_config(self) -> Optional[Dict[str, Any]]:
        resultado = self.store.get(COLECAO_CONFIG, CONFIG_KPI_ID)
        if resultado.cancelado:
            return None
        if resultado.status == StoreStatus.NOT_FOUND:
            logger.info("ℹ️ Configuração de KPIs não encontrada, primeiro acesso")
            return {}
        return resultado.unwrap() or {}

    def _listar_dentistas(self) -> Optional[List[Dict[str, Any]]]:
        resultado = self.store.scan(COLECAO_DENTISTAS)
        if resultado.cancelado:
            return None
        return [projetar_dentista(d) for d in resultado.unwrap() or []]

    def ensure_daily_recalculation(self, force: bool = False, agora: Optional[datetime] = None) -> DailyRecalculationResult:
        agora = agora or datetime.now()
        hoje = agora.date().isoformat()

        config = self._ler_config()
        if config is None:
            return DailyRecalculationResult(cancelado=True)

        ultima_data = config.get("lastFullRecalculation")
        ultima_hora = config.get("lastRecalculationTime")

        if ultima_data == hoje and not force:
            logger.info(f"📅 KPIs já calculados hoje ({ultima_data} às {ultima_hora})")
            cache = config.get("cachedDentists") or []
            if not cache:
                logger.info("🔄 Sem dentistas em cache, buscando do banco...")
                cache = self._listar_dentistas()
                if cache is None:
                    return DailyRecalculationResult(cancelado=True)
            return DailyRecalculationResult(
                recalculado=False, ultima_data=ultima_data, ultima_hora=ultima_hora, dentistas=cache
            )

        motivo = "forçado" if force else f"último cálculo: {ultima_data or 'nunca'}"
        logger.info(f"🔁 Primeira atualização do dia, recalculando KPIs ({motivo})...")

        resumo = self.recalculation.recalculate_all()
        if resumo.cancelled:
            return DailyRecalculationResult(cancelado=True, resumo=resumo)

        dentistas = self._listar_dentistas()
        if dentistas is None:
            return DailyRecalculationResult(cancelado=True, resumo=resumo)

        hora = agora.strftime("%H:%M")
        resultado = self.store.put(
            COLECAO_CONFIG,
            CONFIG_KPI_ID,
            {
                "config_id": CONFIG_KPI_ID,
                "lastFullRecalculation": hoje,
                "lastRecalculationTime": hora,
                "cachedDentists": dentistas,
            },
        )
        if resultado.cancelado:
            return DailyRecalculationResult(cancelado=True, resumo=resumo)
        resultado.unwrap()

        logger.success(f"💾 Config de KPIs salva: {len(dentistas)} dentistas em cache ({hoje} {hora})")
        return DailyRecalculationResult(
            recalculado=True, ultima_data=hoje, ultima_hora=hora, dentistas=dentistas, resumo=resumo
        )
