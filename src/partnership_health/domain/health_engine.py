# ==========================================================
# 📦 src/partnership_health/domain/health_engine.py
# Saúde da parceria: classificação a partir das datas de indicação
# ==========================================================

import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional, Union

ALPHA_EWMA = 0.3
JANELA_MELHOR_HISTORICO_DIAS = 60
LIMITE_INATIVA_DIAS = 60
LIMITE_OPORTUNIDADE_DIAS = 20
FATOR_GAP = 1.8
FATOR_ACELERACAO = 1.3
JANELA_RECENTE_DIAS = 30
MIN_DATAS_TENDENCIA = 3

PESO_CONFIANCA = {"Alta": 1.0, "Média": 0.75, "Baixa": 0.5}

SEGUNDOS_DIA = 86400


@dataclass
class PartnershipHealthMetrics:
    freq_current: Optional[float] = None
    gap_days: Optional[int] = None
    best_history: Optional[float] = None
    percent_potential: Optional[float] = None
    score_churn: Optional[int] = None
    confidence: str = "Baixa"
    status: str = "Oportunidade"
    trend: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            "freqCurrent": self.freq_current,
            "gapDays": self.gap_days,
            "bestHistory": self.best_history,
            "percentPotential": self.percent_potential,
            "scoreChurn": self.score_churn,
            "confidence": self.confidence,
            "status": self.status,
        }


# =========================================================
# 🧹 Normalização de datas
# =========================================================
def _para_datetime(valor: Union[str, datetime, None]) -> Optional[datetime]:
    if isinstance(valor, datetime):
        dt = valor
    elif isinstance(valor, str) and valor.strip():
        texto = valor.strip()
        if texto.endswith("Z"):
            texto = texto[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(texto)
        except ValueError:
            return None
    else:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_dates(valores: Iterable[Union[str, datetime, None]]) -> List[datetime]:
    """Descarta datas inválidas e devolve a lista em ordem crescente (UTC)."""
    datas = [d for d in (_para_datetime(v) for v in valores) if d is not None]
    return sorted(datas)


def _dias(delta: timedelta) -> float:
    return delta.total_seconds() / SEGUNDOS_DIA


def _ewma(intervalos: List[float]) -> float:
    media = intervalos[0]
    for valor in intervalos[1:]:
        media = ALPHA_EWMA * valor + (1 - ALPHA_EWMA) * media
    return media


def _melhor_historico(datas: List[datetime], padrao: float) -> float:
    """Menor intervalo médio entre indicações dentro de qualquer janela de 60 dias."""
    melhor = padrao
    limite = timedelta(days=JANELA_MELHOR_HISTORICO_DIAS)
    for i, inicio in enumerate(datas):
        janela = [d for d in datas[i:] if d - inicio <= limite]
        if len(janela) < 2:
            continue
        intervalos = [_dias(b - a) for a, b in zip(janela, janela[1:])]
        media = sum(intervalos) / len(intervalos)
        if media < melhor:
            melhor = media
    return melhor


# =========================================================
# 🩺 Métricas
# =========================================================
def compute_metrics(
    datas: Iterable[Union[str, datetime, None]],
    now: Optional[datetime] = None,
) -> PartnershipHealthMetrics:
    """
    Classifica a parceria de um dentista a partir do histórico de indicações.

    Árvore de decisão:
        sem datas        → Oportunidade (Baixa)
        gap > 60 dias    → Inativa (Baixa)
        < 3 datas        → Oportunidade (gap ≤ 20) ou Atenção
        caso contrário   → EWMA dos intervalos + gap, melhor janela de 60 dias,
                           score de churn e status final
                           (Acelerando > Inativa > Queda > Atenção > Estável)
    """
    now = _para_datetime(now) or datetime.now(timezone.utc)
    dd = parse_dates(datas)

    if not dd:
        return PartnershipHealthMetrics(confidence="Baixa", status="Oportunidade")

    gap_days = math.floor(_dias(now - dd[-1]))

    if gap_days > LIMITE_INATIVA_DIAS:
        return PartnershipHealthMetrics(gap_days=gap_days, confidence="Baixa", status="Inativa")

    if len(dd) < MIN_DATAS_TENDENCIA:
        status = "Oportunidade" if gap_days <= LIMITE_OPORTUNIDADE_DIAS else "Atenção"
        return PartnershipHealthMetrics(gap_days=gap_days, confidence="Baixa", status=status)

    # intervalos entre indicações + gap atual como último intervalo
    intervalos = [_dias(b - a) for a, b in zip(dd, dd[1:])]
    intervalos.append(float(gap_days))

    freq_current = _ewma(intervalos)
    ewma_prev = _ewma(intervalos[:-1])
    best_history = _melhor_historico(dd, freq_current)

    if best_history > 0:
        percent_potential = 100 * freq_current / best_history
        queda_rel = 0.0 if percent_potential >= 100 else (100 - percent_potential) / 100
    else:
        percent_potential = None
        queda_rel = 0.0

    confidence = "Alta" if len(dd) >= 6 else "Média"
    peso = PESO_CONFIANCA[confidence]

    base_gap = freq_current * FATOR_GAP
    gap_rel = min(gap_days / base_gap, 1.0) if base_gap > 0 else 1.0
    score_churn = int(math.floor(100 * peso * (gap_rel + queda_rel) / 2 + 0.5))

    if ewma_prev > 0:
        trend = (freq_current - ewma_prev) / ewma_prev
    else:
        trend = 0.0 if freq_current == 0 else 1.0

    corte_recente = now - timedelta(days=JANELA_RECENTE_DIAS)
    taxa_recente = sum(1 for d in dd if d >= corte_recente) / JANELA_RECENTE_DIAS
    taxa_atual = 1 / freq_current if freq_current else 0.0

    if taxa_recente > taxa_atual * FATOR_ACELERACAO:
        status = "Acelerando"
    elif gap_days > LIMITE_INATIVA_DIAS:
        status = "Inativa"
    elif trend >= 0.2 and gap_days >= 15:
        status = "Queda"
    elif trend >= 0.1:
        status = "Atenção"
    else:
        status = "Estável"

    return PartnershipHealthMetrics(
        freq_current=freq_current,
        gap_days=gap_days,
        best_history=best_history,
        percent_potential=percent_potential,
        score_churn=score_churn,
        confidence=confidence,
        status=status,
        trend=trend,
    )


def format_gap(gap_days: Optional[int]) -> str:
    """12 → "12 dias"; 45 → "1 mês e 15 dias"; None → "Histórico insuficiente"."""
    if gap_days is None:
        return "Histórico insuficiente"
    meses, dias = divmod(int(gap_days), 30)
    texto_dias = f"{dias} dia{'s' if dias > 1 else ''}"
    if meses > 0:
        texto_meses = "1 mês" if meses == 1 else f"{meses} meses"
        return f"{texto_meses} e {texto_dias}" if dias > 0 else texto_meses
    return texto_dias
