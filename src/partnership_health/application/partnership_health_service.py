# ============================================================
# 📦 src/partnership_health/application/partnership_health_service.py
# ============================================================

from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple
from loguru import logger

from src.database.document_store import DocumentStore, Filtro, StoreStatus
from src.database.exceptions import StoreError
from src.dentist_kpis.domain.dentist_factory import (
    COLECAO_CONFIG,
    COLECAO_DENTISTAS,
    COLECAO_REQUISICOES,
    bairros_display,
    cro_valido,
)
from src.partnership_health.domain.health_engine import compute_metrics

CONFIG_SAUDE_ID = "health"
CONCORRENCIA_PADRAO = 10

_CANCELADO = object()


@dataclass
class HealthLoadResult:
    ano: int
    linhas: List[Dict[str, Any]] = field(default_factory=list)
    do_cache: bool = False
    cancelado: bool = False
    ultima_data: Optional[str] = None
    ultima_hora: Optional[str] = None
    falhas: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ano": self.ano,
            "doCache": self.do_cache,
            "cancelado": self.cancelado,
            "lastHealthCalculation": self.ultima_data,
            "lastHealthCalculationTime": self.ultima_hora,
            "falhas": self.falhas,
            "healthData": self.linhas,
        }


def intervalo_do_ano(ano: int, agora: datetime) -> Tuple[str, str]:
    """[inicio, fim) em YYYY-MM-DD; no ano corrente o fim é amanhã (inclui hoje)."""
    inicio = f"{ano}-01-01"
    if ano == agora.year:
        fim = (agora.date() + timedelta(days=1)).isoformat()
    else:
        fim = f"{ano + 1}-01-01"
    return inicio, fim


class PartnershipHealthService:
    """
    Tabela de saúde das parcerias de um ano.

    - cache diário em config/health (mesmo dia + mesmo ano + dados → cache)
    - datas de cada dentista consultadas em lotes de 10 em paralelo
    - busca por dentist.dentist_id, com fallback para dentist.dentist_cro
    """

    def __init__(self, store: DocumentStore, concorrencia: int = CONCORRENCIA_PADRAO):
        self.store = store
        self.concorrencia = concorrencia

    # =========================================================
    # 1️⃣ Datas de um dentista
    # =========================================================
    def _consultar(self, campo: str, valor: Any, inicio: str, fim: str) -> Optional[List[str]]:
        resultado = self.store.query(
            COLECAO_REQUISICOES,
            [
                Filtro(campo, "=", valor),
                Filtro("creation_date_inv", ">=", inicio),
                Filtro("creation_date_inv", "<", fim),
            ],
        )
        if resultado.cancelado:
            return None
        return [r.get("creation_date_inv") for r in resultado.unwrap() or [] if r.get("creation_date_inv")]

    def datas_do_dentista(self, dentist_id: str, dentist_cro: Optional[str], inicio: str, fim: str) -> Optional[List[str]]:
        """Datas no intervalo; None quando a consulta foi cancelada (sem fallback)."""
        datas = self._consultar("dentist.dentist_id", dentist_id, inicio, fim)
        if datas == [] and dentist_cro:
            datas = self._consultar("dentist.dentist_cro", dentist_cro, inicio, fim)
        return datas

    # =========================================================
    # 2️⃣ Config/cache diário
    # =========================================================
    def _ler_config(self) -> Optional[Dict[str, Any]]:
        resultado = self.store.get(COLECAO_CONFIG, CONFIG_SAUDE_ID)
        if resultado.cancelado:
            return None
        if resultado.status == StoreStatus.NOT_FOUND:
            return {}
        return resultado.unwrap() or {}

    def _carregar_dentistas(self) -> Optional[List[Dict[str, Any]]]:
        resultado = self.store.scan(COLECAO_DENTISTAS)
        if resultado.cancelado:
            return None
        dentistas = []
        for d in resultado.unwrap() or []:
            dentist_id = d.get("dentist_id")
            if dentist_id in (None, ""):
                continue
            dentistas.append({
                "id": str(dentist_id),
                "cro": cro_valido(d.get("dentist_cro")),
                "name": d.get("dentist_name"),
                "areasDisplay": bairros_display(d),
            })
        return dentistas

    # =========================================================
    # 3️⃣ Cálculo
    # =========================================================
    def _calcular_linha(self, dentista: Dict[str, Any], inicio: str, fim: str, agora: datetime):
        datas = self.datas_do_dentista(dentista["id"], dentista["cro"], inicio, fim)
        if datas is None:
            return _CANCELADO
        if not datas:
            return None
        metricas = compute_metrics(datas, now=agora)
        return {
            "dentistId": dentista["id"],
            "dentistName": dentista["name"],
            "areasDisplay": dentista["areasDisplay"],
            **metricas.to_dict(),
        }

    def load_health_data(self, year: Optional[int] = None, force: bool = False, agora: Optional[datetime] = None) -> HealthLoadResult:
        agora = agora or datetime.now(timezone.utc)
        # um único instante UTC para "hoje", o intervalo do ano e o gap
        agora = agora.replace(tzinfo=timezone.utc) if agora.tzinfo is None else agora.astimezone(timezone.utc)
        year = year or agora.year
        hoje = agora.date().isoformat()

        config = self._ler_config()
        if config is None:
            return HealthLoadResult(ano=year, cancelado=True)

        cache = config.get("healthData")
        if (
            not force
            and config.get("lastHealthCalculation") == hoje
            and config.get("cacheYear") == year
            and cache
        ):
            logger.info(f"📦 Saúde das parcerias {year} carregada do cache ({len(cache)} dentistas)")
            return HealthLoadResult(
                ano=year,
                linhas=cache,
                do_cache=True,
                ultima_data=config.get("lastHealthCalculation"),
                ultima_hora=config.get("lastHealthCalculationTime"),
            )

        logger.info(f"🩺 Calculando saúde das parcerias de {year}...")
        dentistas = self._carregar_dentistas()
        if dentistas is None:
            return HealthLoadResult(ano=year, cancelado=True)
        logger.info(f"🦷 Dentistas válidos para análise: {len(dentistas)}")

        inicio, fim = intervalo_do_ano(year, agora)
        resultado = HealthLoadResult(ano=year)

        for i in range(0, len(dentistas), self.concorrencia):
            lote = dentistas[i:i + self.concorrencia]
            linhas_lote: Dict[int, Dict[str, Any]] = {}
            cancelado = False

            with ThreadPoolExecutor(max_workers=self.concorrencia) as executor:
                futuros = {
                    executor.submit(self._calcular_linha, d, inicio, fim, agora): idx
                    for idx, d in enumerate(lote)
                }
                for futuro in as_completed(futuros):
                    idx = futuros[futuro]
                    try:
                        linha = futuro.result()
                    except StoreError as e:
                        logger.error(f"❌ Erro ao consultar requisições do dentista {lote[idx]['id']}: {e}")
                        resultado.falhas += 1
                        continue
                    if linha is _CANCELADO:
                        cancelado = True
                    elif linha is not None:
                        linhas_lote[idx] = linha

            if cancelado:
                # tabela parcial não vira cache do dia
                logger.warning(f"⏹️ Consulta de requisições cancelada, saúde das parcerias {year} não foi salva")
                return HealthLoadResult(ano=year, cancelado=True)

            resultado.linhas.extend(linhas_lote[idx] for idx in sorted(linhas_lote))
            logger.debug(f"🔄 Dentistas analisados: {min(i + self.concorrencia, len(dentistas))}/{len(dentistas)}")

        hora = agora.strftime("%H:%M")
        salvo = self.store.put(
            COLECAO_CONFIG,
            CONFIG_SAUDE_ID,
            {
                "config_id": CONFIG_SAUDE_ID,
                "lastHealthCalculation": hoje,
                "lastHealthCalculationTime": hora,
                "cacheYear": year,
                "healthData": resultado.linhas,
            },
        )
        if salvo.cancelado:
            resultado.cancelado = True
            return resultado
        salvo.unwrap()

        resultado.ultima_data = hoje
        resultado.ultima_hora = hora
        logger.success(
            f"✅ Saúde das parcerias {year}: {len(resultado.linhas)} dentistas | {resultado.falhas} falhas"
        )
        return resultado
