# src/dentist_kpis/config/business_units.py

# ============================================================
# 🏥 Unidades CIROD e status de parceria (configuração estática)
# ============================================================

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple


@dataclass(frozen=True)
class BusinessUnit:
    """
    Unidade CIROD.
    - id corresponde ao clinic.id do Cfaz (0 = Geral, agregado de todas)
    - enabled=True só depois que o id foi confirmado no Cfaz
    """
    id: int
    city: Optional[str]
    name: str
    field_suffix: str
    color: str
    enabled: bool

    @property
    def agregada(self) -> bool:
        return self.id == GERAL_ID

    @property
    def campo_faturamento(self) -> str:
        return f"faturamento{self.field_suffix}"

    @property
    def campo_pedidos(self) -> str:
        return f"totalPedidos{self.field_suffix}"


GERAL_ID = 0

CIROD_UNITS: Tuple[BusinessUnit, ...] = (
    BusinessUnit(0, None, "Geral", "TotalMes", "#333", True),
    BusinessUnit(5778, "Niterói", "Icaraí", "Icarai", "#1565c0", True),
    BusinessUnit(1754, "Maricá", "Maricá", "Marica", "#e65100", True),
    BusinessUnit(5543, "Niterói", "Niterói", "Niteroi", "#1e88e5", True),
    BusinessUnit(2950, "Maricá", "Itaipuaçu", "Itaipuacu", "#ef6c00", True),
    BusinessUnit(5189, "Itaboraí", "Itaboraí", "Itaborai", "#7b1fa2", True),
    # ids provisórios negativos: unidades ainda não mapeadas no Cfaz
    BusinessUnit(-1, "São Gonçalo", "São Gonçalo", "SaoGoncalo", "#1a5f1a", False),
    BusinessUnit(-2, "São Gonçalo", "Alcântara", "Alcantara", "#2e7d32", False),
    BusinessUnit(-3, "São Gonçalo", "Raul Veiga", "RaulVeiga", "#388e3c", False),
    BusinessUnit(-4, "São Gonçalo", "Parque das Águas", "ParqueAguas", "#43a047", False),
    BusinessUnit(-5, "Niterói", "Jardim Icaraí", "JardimIcarai", "#1976d2", False),
    BusinessUnit(-6, "Niterói", "Centro Niterói", "CentroNiteroi", "#1976d2", False),
    BusinessUnit(-7, "Niterói", "Itaipú", "Itaipu", "#2196f3", False),
    BusinessUnit(-8, "Niterói", "Fonseca", "Fonseca", "#42a5f5", False),
    BusinessUnit(-9, "Rio de Janeiro", "Centro do Rio", "CentroRio", "#c62828", False),
)


def buscar_unidade(unit_id, unidades: Sequence[BusinessUnit] = CIROD_UNITS) -> Optional[BusinessUnit]:
    """Busca por id, sem filtrar `enabled` (uso em relatórios/diagnóstico)."""
    for unidade in unidades:
        if unidade.id == unit_id:
            return unidade
    return None


# ============================================================
# 🤝 Status de parceria
# ============================================================
@dataclass(frozen=True)
class PartnershipStatusOption:
    text: str
    tooltip: str
    color: str
    bg_color: str


PARTNERSHIP_STATUS_OPTIONS: Tuple[PartnershipStatusOption, ...] = (
    PartnershipStatusOption("Parceria exclusiva", "parceria com mais de um ano e exclusiva", "#1b5e20", "#e8f5e9"),
    PartnershipStatusOption("Parceria em consolidação", "de a partir de 6 indicações", "#2e7d32", "#c8e6c9"),
    PartnershipStatusOption("Parceria em teste", "de 1 a 5 indicações", "#558b2f", "#dcedc8"),
    PartnershipStatusOption("Oportunidade de prospecção", "dentista potencial ainda não prospectado", "#1565c0", "#e3f2fd"),
    PartnershipStatusOption("Fragilidade detectada", "algum problema foi detectado na parceria", "#e65100", "#fff3e0"),
    PartnershipStatusOption("Parceria perdida", "problema grave detectado. Redução do volume de indicação a 0", "#c62828", "#ffebee"),
    PartnershipStatusOption("Prospecção em andamento", "prospecção iniciada mas o dentista ainda não fez a primeira indicação", "#0277bd", "#e1f5fe"),
)

STATUS_PARCERIA_PADRAO = "Parceria em teste"
