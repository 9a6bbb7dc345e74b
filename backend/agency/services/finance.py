"""
# `agency/services/finance.py` - Cachê and payment-status helpers

## calculate_cache(valor_total, dj_percentual)
DJ's estimated share of an event: `valor_total * dj_percentual` when the
percentage is a number in `[0, 1]`. Anything else (missing, out of range,
NaN, bool) gives `CacheEstimate(0, known=False)`; callers must show it as
unknown rather than as zero earned. No rounding happens here.

The estimate does not look at `conta_que_recebeu` (who received the deposit);
that reconciliation is not modelled.

## classify_payment_status(status)
Total lookup from `status_pagamento` to a badge `(variant, label)`.

## format_currency(amount)
pt-BR money rendering, `R$ 1.200,00`. Rounding to cents happens only here.
"""
import math
from typing import Iterable, NamedTuple, Optional

from agency.schemas.event import DJFinancialSummary, Event, ScheduleRow, StatusBadge


class CacheEstimate(NamedTuple):
    amount: float
    known: bool


def calculate_cache(valor_total: float, dj_percentual: Optional[float]) -> CacheEstimate:
    if (
        dj_percentual is None
        or isinstance(dj_percentual, bool)
        or not isinstance(dj_percentual, (int, float))
        or math.isnan(dj_percentual)
        or not 0 <= dj_percentual <= 1
    ):
        return CacheEstimate(0.0, False)
    return CacheEstimate(valor_total * dj_percentual, True)


_STATUS_BADGES = {
    "pago": StatusBadge(variant="default", label="Pago"),
    "parcial": StatusBadge(variant="secondary", label="Parcial"),
    "pendente": StatusBadge(variant="outline", label="Pendente"),
    "vencido": StatusBadge(variant="destructive", label="Vencido"),
    "cancelado": StatusBadge(variant="destructive", label="Cancelado"),
}


def classify_payment_status(status: Optional[str]) -> StatusBadge:
    badge = _STATUS_BADGES.get(status) if isinstance(status, str) else None
    if badge is not None:
        return badge
    return StatusBadge(variant="outline", label=str(status) if status else "N/A")


def format_currency(amount: float, symbol: str = "R$") -> str:
    negative = amount < 0
    text = f"{abs(amount):,.2f}"  # 1,234.50
    text = text.replace(",", "_").replace(".", ",").replace("_", ".")
    return f"{'-' if negative else ''}{symbol} {text}"


def _horario(event: Event) -> str:
    if not event.horario_inicio:
        return "N/A"
    if event.horario_fim:
        return f"{event.horario_inicio} - {event.horario_fim}"
    return event.horario_inicio


def build_schedule_rows(
    events: Iterable[Event],
    dj_percentual: Optional[float] = None,
    show_cache: bool = False,
) -> list[ScheduleRow]:
    """Rows of the schedule list. The cachê column is only filled for DJ viewers."""
    rows = []
    for event in events:
        cache = {}
        if show_cache:
            estimate = calculate_cache(event.valor_total, dj_percentual)
            cache = {
                "cache_conhecido": estimate.known,
                "cache_estimado": format_currency(estimate.amount) if estimate.known else None,
            }
        rows.append(ScheduleRow(
            id=event.id,
            nome_evento=event.nome_evento,
            data_evento=event.data_evento,
            horario=_horario(event),
            local=event.local,
            contratante_nome=event.contratante_nome,
            status=classify_payment_status(event.status_pagamento),
            valor_total=format_currency(event.valor_total),
            dj_nome=event.dj_nome,
            **cache,
        ))
    return rows


def summarize_dj_events(dj_id: str, events: Iterable[Event], dj_percentual: Optional[float]) -> DJFinancialSummary:
    """Totals over one DJ's events, skipping cancelled ones."""
    count = 0
    gross = 0.0
    costs = 0.0
    cache = 0.0
    for event in events:
        if event.deleted or event.status_pagamento == "cancelado":
            continue
        count += 1
        gross += event.valor_total
        costs += event.dj_costs
        cache += calculate_cache(event.valor_total, dj_percentual).amount
    known = calculate_cache(0.0, dj_percentual).known
    return DJFinancialSummary(
        dj_id=dj_id,
        total_eventos=count,
        soma_valor_total=gross,
        soma_custos=costs,
        soma_cache_estimado=cache,
        cache_conhecido=known,
        soma_cache_formatado=format_currency(cache) if known else "N/A",
    )
