# ============================================================
# 📦 src/dentist_kpis/infrastructure/service_container.py
# Serviços construídos uma vez por processo (API, CLIs e jobs)
# ============================================================

from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from src.database.document_store import DocumentStore, criar_store
from src.database.session_cache import CacheWithTTL
from src.dentist_kpis.application.daily_recalculation_service import DailyRecalculationService
from src.dentist_kpis.application.diagnostic_service import DiagnosticService
from src.dentist_kpis.application.full_recalculation_service import FullRecalculationService
from src.dentist_kpis.application.incremental_kpi_updater import (
    TTL_REQUISICOES_PROCESSADAS,
    IncrementalKPIUpdater,
)
from src.dentist_kpis.application.request_backup_service import (
    TTL_DENTISTAS_VERIFICADOS,
    RequestBackupService,
)
from src.dentist_kpis.domain.kpi_accumulator import MonthlyKPIAccumulator
from src.dentist_kpis.domain.kpi_serializer import KPISerializer
from src.partnership_health.application.partnership_health_service import PartnershipHealthService


@dataclass
class KPIServices:
    store: DocumentStore
    updater: IncrementalKPIUpdater
    recalculation: FullRecalculationService
    daily: DailyRecalculationService
    backup: RequestBackupService
    diagnostic: DiagnosticService
    health: PartnershipHealthService


def montar_servicos(store: DocumentStore, sweep_interval: Optional[float] = 60) -> KPIServices:
    accumulator = MonthlyKPIAccumulator()
    serializer = KPISerializer(accumulator.unidades)

    updater = IncrementalKPIUpdater(
        store,
        accumulator,
        serializer,
        processed_cache=CacheWithTTL(ttl=TTL_REQUISICOES_PROCESSADAS, cleanup_interval=sweep_interval),
    )
    recalculation = FullRecalculationService(store, accumulator, serializer)

    return KPIServices(
        store=store,
        updater=updater,
        recalculation=recalculation,
        daily=DailyRecalculationService(store, recalculation),
        backup=RequestBackupService(
            store,
            updater,
            dentist_check_cache=CacheWithTTL(ttl=TTL_DENTISTAS_VERIFICADOS, cleanup_interval=sweep_interval),
        ),
        diagnostic=DiagnosticService(store, accumulator.unidades),
        health=PartnershipHealthService(store),
    )


@lru_cache(maxsize=1)
def get_services() -> KPIServices:
    return montar_servicos(criar_store())
