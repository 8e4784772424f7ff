# ==========================================================
# 📦 src/dentist_kpis/domain/entities.py
# ==========================================================

import re
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

_DATA_INV = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")


@dataclass
class UnitTotals:
    """Faturamento e pedidos de uma unidade dentro do mês."""
    faturamento: float = 0.0
    pedidos: int = 0


@dataclass
class MonthKPI:
    """Contadores de um dentista em um mês (globais + por unidade)."""
    faturamento_total: float = 0.0
    total_pedidos: int = 0
    avg_ticket: float = 0.0
    unidades: Dict[int, UnitTotals] = field(default_factory=dict)


@dataclass
class DentistKPIs:
    """KPIs do dentista: expectativas + períodos (ano "YYYY" → mês "MM")."""
    expected_monthly_revenue: float = 0.0
    expected_monthly_qtd: float = 0.0
    period_kpis: Dict[str, Dict[str, MonthKPI]] = field(default_factory=dict)

    def meses(self):
        for ano, meses in self.period_kpis.items():
            for mes, month_kpi in meses.items():
                yield ano, mes, month_kpi


def _parse_float(valor: Any) -> float:
    try:
        numero = float(valor)
    except (TypeError, ValueError):
        return 0.0
    if numero != numero or numero in (float("inf"), float("-inf")):
        return 0.0
    return numero


def _parse_int(valor: Any) -> Optional[int]:
    if valor is None or valor == "":
        return None
    try:
        return int(float(valor))
    except (TypeError, ValueError):
        return None


def parse_ano_mes(creation_date_inv: Optional[str]) -> Optional[Tuple[str, str]]:
    """'2025-03-14' → ('2025', '03'); None quando ausente ou malformada."""
    if not creation_date_inv or not isinstance(creation_date_inv, str):
        return None
    m = _DATA_INV.match(creation_date_inv.strip())
    if not m:
        return None
    ano, mes, dia = m.groups()
    if not (1 <= int(mes) <= 12 and 1 <= int(dia) <= 31):
        return None
    return ano, mes


@dataclass
class RequestEvent:
    """
    Requisição salva (evento efêmero consumido pelo cálculo de KPIs).
    `dentist` guarda o bloco bruto do dentista para criação automática.
    """
    request_id: Optional[str]
    dentist_id: Optional[str]
    dentist_cro: Optional[str]
    clinic_id: Optional[int]
    total_value: float
    creation_date_inv: Optional[str]
    dentist: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_record(cls, registro: Dict[str, Any]) -> "RequestEvent":
        dentist = registro.get("dentist") or {}
        clinic = registro.get("clinic") or {}

        cro = dentist.get("dentist_cro")
        cro = cro.strip() if isinstance(cro, str) else cro
        dentist_id = dentist.get("dentist_id")
        request_id = registro.get("request_id")

        return cls(
            request_id=str(request_id) if request_id is not None else None,
            dentist_id=_normalizar_id(dentist_id),
            dentist_cro=cro or None,
            clinic_id=_parse_int(clinic.get("id")),
            total_value=_parse_float(registro.get("total_value")),
            creation_date_inv=registro.get("creation_date_inv"),
            dentist=dentist,
        )

    @property
    def identificador(self) -> str:
        return self.dentist_cro or f"ID:{self.dentist_id}"


def _normalizar_id(valor: Any) -> Optional[str]:
    if valor is None or valor == "":
        return None
    if isinstance(valor, float) and valor.is_integer():
        valor = int(valor)
    return str(valor)


@dataclass
class RecalculationSummary:
    dentists_updated: int = 0
    requests_processed: int = 0
    requests_skipped: int = 0
    dentists_created: int = 0
    cancelled: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "dentistsUpdated": self.dentists_updated,
            "requestsProcessed": self.requests_processed,
            "requestsSkipped": self.requests_skipped,
            "dentistsCreated": self.dentists_created,
            "cancelled": self.cancelled,
        }
