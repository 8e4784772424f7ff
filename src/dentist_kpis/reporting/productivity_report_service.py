# ============================================================
# 📦 src/dentist_kpis/reporting/productivity_report_service.py
# ============================================================

from datetime import date
from typing import Any, Dict, Iterable, Optional, Sequence, Tuple

import pandas as pd
from loguru import logger

from src.dentist_kpis.config.business_units import CIROD_UNITS, GERAL_ID, BusinessUnit, buscar_unidade
from src.dentist_kpis.domain.dentist_factory import bairros_display
from src.dentist_kpis.domain.entities import MonthKPI, UnitTotals
from src.dentist_kpis.domain.kpi_serializer import KPISerializer

COLUNAS_RELATORIO = [
    "dentist_id",
    "dentist_name",
    "dentist_cro",
    "bairros",
    "faturamento_mes_atual",
    "faturamento_mes_anterior",
    "diferenca",
    "pedidos_mes_atual",
    "pedidos_mes_anterior",
    "expected_monthly_revenue",
    "expected_monthly_qtd",
]


def mes_atual_e_anterior(hoje: date) -> Tuple[Tuple[str, str], Tuple[str, str]]:
    """((ano, mes) atual, (ano, mes) anterior) no formato do periodKPIs."""
    atual = (str(hoje.year), f"{hoje.month:02d}")
    if hoje.month == 1:
        anterior = (str(hoje.year - 1), "12")
    else:
        anterior = (str(hoje.year), f"{hoje.month - 1:02d}")
    return atual, anterior


class ProductivityReportService:
    """
    Produtividade por dentista para uma unidade (0 = Geral):
    faturamento/pedidos do mês atual (em andamento) e do anterior, e a diferença.
    """

    def __init__(self, unidades: Sequence[BusinessUnit] = CIROD_UNITS):
        self.unidades = tuple(unidades)
        self.serializer = KPISerializer(self.unidades)

    def _totais(self, month_kpi: Optional[MonthKPI], unidade: BusinessUnit) -> UnitTotals:
        if month_kpi is None:
            return UnitTotals()
        if unidade.agregada:
            return UnitTotals(month_kpi.faturamento_total, month_kpi.total_pedidos)
        return month_kpi.unidades.get(unidade.id, UnitTotals())

    def linha(self, dentista: Dict[str, Any], unidade: BusinessUnit, hoje: date) -> Dict[str, Any]:
        kpis = self.serializer.from_wire(dentista.get("KPIs"))
        (ano_atual, mes_atual), (ano_ant, mes_ant) = mes_atual_e_anterior(hoje)

        atual = self._totais(kpis.period_kpis.get(ano_atual, {}).get(mes_atual), unidade)
        anterior = self._totais(kpis.period_kpis.get(ano_ant, {}).get(mes_ant), unidade)

        return {
            "dentist_id": dentista.get("dentist_id"),
            "dentist_name": dentista.get("dentist_name"),
            "dentist_cro": dentista.get("dentist_cro"),
            "bairros": bairros_display(dentista),
            "faturamento_mes_atual": atual.faturamento,
            "faturamento_mes_anterior": anterior.faturamento,
            "diferenca": atual.faturamento - anterior.faturamento,
            "pedidos_mes_atual": atual.pedidos,
            "pedidos_mes_anterior": anterior.pedidos,
            "expected_monthly_revenue": kpis.expected_monthly_revenue,
            "expected_monthly_qtd": kpis.expected_monthly_qtd,
        }

    def gerar(
        self,
        dentistas: Iterable[Dict[str, Any]],
        unidade_id: int = GERAL_ID,
        hoje: Optional[date] = None,
    ) -> pd.DataFrame:
        unidade = buscar_unidade(unidade_id, self.unidades)
        if unidade is None:
            raise ValueError(f"Unidade desconhecida: {unidade_id}")
        hoje = hoje or date.today()

        linhas = [self.linha(d, unidade, hoje) for d in dentistas]
        df = pd.DataFrame(linhas, columns=COLUNAS_RELATORIO)
        if not df.empty:
            df = df.sort_values(
                by=["faturamento_mes_atual", "dentist_name"], ascending=[False, True]
            ).reset_index(drop=True)

        logger.info(f"📈 Relatório de produtividade ({unidade.name}): {len(df)} dentistas")
        return df
