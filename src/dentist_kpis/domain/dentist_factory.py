# ==========================================================
# 📦 src/dentist_kpis/domain/dentist_factory.py
# ==========================================================

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from src.dentist_kpis.config.business_units import STATUS_PARCERIA_PADRAO
from src.dentist_kpis.domain.kpi_serializer import kpis_vazios

COLECAO_DENTISTAS = "dentists"
COLECAO_REQUISICOES = "requests"
COLECAO_CONFIG = "config"


def novo_dentista_automatico(
    dentist_id: str,
    dentist_cro: Optional[str],
    dados: Optional[Dict[str, Any]] = None,
    agora: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Registro de dentista criado a partir do bloco `dentist` de uma requisição."""
    dados = dados or {}
    agora = agora or datetime.now(timezone.utc)
    return {
        "dentist_id": str(dentist_id),
        "dentist_name": dados.get("dentist_name") or "Nome não informado",
        "dentist_cro": dentist_cro or None,
        "dentist_email": dados.get("dentist_email") or [],
        "commercial_phone": dados.get("commercial_phone") or None,
        "mobile_phone": dados.get("mobile_phone") or None,
        "home_phone": dados.get("home_phone") or None,
        "comment": dados.get("comment") or None,
        "dental_clinics": dados.get("dental_clinics") or [],
        "actual_partnership_status": STATUS_PARCERIA_PADRAO,
        "KPIs": kpis_vazios(),
        "created_at": agora.isoformat(),
        "auto_created": True,
    }


def cro_valido(cro: Any) -> Optional[str]:
    """CRO vazio ("" ou só espaços) conta como ausente."""
    if isinstance(cro, str) and cro.strip():
        return cro.strip()
    return None


def bairros(dentista: Dict[str, Any], limite: Optional[int] = None) -> List[str]:
    clinicas = dentista.get("dental_clinics")
    if not isinstance(clinicas, list):
        return []
    encontrados = [c.get("neighborhood") for c in clinicas if isinstance(c, dict) and c.get("neighborhood")]
    return encontrados[:limite] if limite else encontrados


def bairros_display(dentista: Dict[str, Any]) -> str:
    """Até dois bairros: "Icaraí / Centro"; "-" quando não há nenhum."""
    dois = bairros(dentista, limite=2)
    if not dois:
        return "-"
    return " / ".join(dois)
