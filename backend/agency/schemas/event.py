# agency/schemas/event.py
from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, List, Literal, Optional

from pydantic import AfterValidator, BaseModel, Field, model_validator

# Status do pagamento do contratante
PaymentStatus = Literal["pendente", "parcial", "pago", "vencido", "cancelado"]
ReceivingAccount = Literal["agencia", "dj"]

Money = Annotated[float, Field(ge=0)]


def _aware(v: Optional[datetime]) -> Optional[datetime]:
    # Firestore returns UTC-aware timestamps; naive input is read as UTC.
    if isinstance(v, datetime) and v.tzinfo is None:
        return v.replace(tzinfo=timezone.utc)
    return v


UtcDatetime = Annotated[datetime, AfterValidator(_aware)]


class PaymentProof(BaseModel):
    id: str
    url: str
    name: str
    uploadedAt: UtcDatetime


class EventBase(BaseModel):
    nome_evento: Annotated[str, Field(min_length=3)]
    data_evento: UtcDatetime
    horario_inicio: Optional[str] = None
    horario_fim: Optional[str] = None
    local: Annotated[str, Field(min_length=3)]
    contratante_nome: Annotated[str, Field(min_length=3)]
    contratante_contato: Optional[str] = None
    valor_total: Money
    valor_sinal: Money = 0
    dj_costs: Money = 0
    conta_que_recebeu: ReceivingAccount
    status_pagamento: PaymentStatus = "pendente"
    dj_id: Annotated[str, Field(min_length=1)]
    observacoes: Optional[str] = None

    @model_validator(mode="after")
    def _deposit_within_total(self):
        if self.valor_sinal > self.valor_total:
            raise ValueError("valor_sinal não pode ser maior que valor_total")
        return self


class EventCreate(EventBase):
    model_config = {"extra": "forbid"}


_REQUIRED_ON_EDIT = frozenset({
    "nome_evento", "data_evento", "local", "contratante_nome", "valor_total", "valor_sinal",
    "dj_costs", "conta_que_recebeu", "status_pagamento", "dj_id",
})


class EventUpdate(BaseModel):
    """Partial edit / payment update. Cross-field rules are checked against the stored event."""
    nome_evento: Optional[Annotated[str, Field(min_length=3)]] = None
    data_evento: Optional[UtcDatetime] = None
    horario_inicio: Optional[str] = None
    horario_fim: Optional[str] = None
    local: Optional[Annotated[str, Field(min_length=3)]] = None
    contratante_nome: Optional[Annotated[str, Field(min_length=3)]] = None
    contratante_contato: Optional[str] = None
    valor_total: Optional[Money] = None
    valor_sinal: Optional[Money] = None
    dj_costs: Optional[Money] = None
    conta_que_recebeu: Optional[ReceivingAccount] = None
    status_pagamento: Optional[PaymentStatus] = None
    dj_id: Optional[Annotated[str, Field(min_length=1)]] = None
    observacoes: Optional[str] = None

    model_config = {"extra": "forbid"}

    @model_validator(mode="before")
    @classmethod
    def _no_explicit_nulls(cls, data):
        # Omitted means unchanged; null would erase a required field.
        if isinstance(data, dict):
            nulls = sorted(k for k in _REQUIRED_ON_EDIT if k in data and data[k] is None)
            if nulls:
                raise ValueError(f"campos obrigatórios não podem ser nulos: {', '.join(nulls)}")
        return data

    def to_patch(self) -> dict:
        return self.model_dump(exclude_unset=True)


class Event(BaseModel):
    """Event as read from Firestore. Lenient: stored documents may predate validation."""
    id: str
    nome_evento: Optional[str] = None
    data_evento: Optional[UtcDatetime] = None
    horario_inicio: Optional[str] = None
    horario_fim: Optional[str] = None
    local: Optional[str] = None
    contratante_nome: Optional[str] = None
    contratante_contato: Optional[str] = None
    valor_total: float = 0
    valor_sinal: float = 0
    dj_costs: float = 0
    conta_que_recebeu: Optional[str] = None
    status_pagamento: Optional[str] = None
    dj_id: Optional[str] = None
    dj_nome: Optional[str] = None
    payment_proofs: List[PaymentProof] = Field(default_factory=list)
    observacoes: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[UtcDatetime] = None
    updated_at: Optional[UtcDatetime] = None
    deleted: bool = False

    @classmethod
    def from_doc(cls, doc_id: str, data: dict) -> "Event":
        data = {k: v for k, v in (data or {}).items() if v is not None}
        return cls(**{**data, "id": doc_id})


class EventFilter(BaseModel):
    dj_id: Optional[str] = None
    status_pagamento: Optional[PaymentStatus] = None
    start: Optional[UtcDatetime] = None
    end: Optional[UtcDatetime] = None
    include_cancelled: bool = True


class StatusBadge(BaseModel):
    variant: Literal["default", "secondary", "outline", "destructive"]
    label: str


class ScheduleRow(BaseModel):
    """One line of the schedule list view."""
    id: str
    nome_evento: Optional[str]
    data_evento: Optional[UtcDatetime]
    horario: str
    local: Optional[str]
    contratante_nome: Optional[str]
    status: StatusBadge
    valor_total: str
    cache_estimado: Optional[str] = None
    cache_conhecido: Optional[bool] = None
    dj_nome: Optional[str]


class DJFinancialSummary(BaseModel):
    dj_id: str
    total_eventos: int
    soma_valor_total: float
    soma_custos: float
    soma_cache_estimado: float
    cache_conhecido: bool
    soma_cache_formatado: str
