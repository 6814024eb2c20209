# app/api/freight.py
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.orm import Session

from app.core import clock
from app.db.deps import get_db
from app.services import freight_service
from app.services.freight_service import SolicitacaoAgendamento

router = APIRouter(prefix="/freight", tags=["freight"])


class QuoteRequest(BaseModel):
    pedido_item_id: int
    endereco_destino_id: int
    endereco_origem_id: int | None = None
    quantidade: Decimal | None = Field(None, gt=0)
    peso: Decimal | None = Field(None, ge=0)
    volume: Decimal | None = Field(None, ge=0)


class ConsolidatedItem(BaseModel):
    pedido_item_id: int
    quantidade: Decimal | None = Field(None, gt=0)


class ConsolidatedQuoteRequest(BaseModel):
    itens: List[ConsolidatedItem] = Field(..., min_length=1)
    endereco_destino_id: int
    endereco_origem_id: int | None = None


class CotacaoOut(BaseModel):
    pedido_item_id: int | None
    quantidade: float
    endereco_origem_id: int
    endereco_destino_id: int
    distancia_km: float
    peso_total: float
    volume_total: float
    peso_cubado_total: float | None
    peso_para_frete: float
    tipo_calculo: str
    valor_por_kg_km: float
    valor_calculado: float
    valor_frete: float
    minimo_aplicado: bool

    class Config:
        from_attributes = True


class GrupoOut(BaseModel):
    endereco_origem_id: int
    distancia_km: float
    valor_por_kg_km: float
    pedido_item_ids: List[int]
    peso_para_frete: float
    volume_total: float
    valor_frete: float
    minimo_aplicado: bool
    desconto_consolidacao_pct: float
    valor_desconto: float

    class Config:
        from_attributes = True


class CotacaoConsolidadaOut(BaseModel):
    endereco_destino_id: int
    grupos: List[GrupoOut]
    cotacoes_individuais: List[CotacaoOut]
    peso_total: float
    volume_total: float
    valor_sem_consolidacao: float
    subtotal_consolidado: float
    desconto_consolidacao_pct: float
    valor_desconto: float
    valor_frete_consolidado: float
    economia: float

    class Config:
        from_attributes = True


class BookingCreate(BaseModel):
    pedido_item_id: int
    quantidade: Decimal = Field(..., gt=0)
    data_agendamento: datetime
    endereco_origem_id: int | None = None
    endereco_destino_id: int | None = None
    valor_frete: Decimal | None = Field(None, ge=0)
    observacoes: str | None = None

    @field_validator("data_agendamento")
    @classmethod
    def normalize_data(cls, v: datetime) -> datetime:
        return clock.to_utc_naive(v)


class BookingReschedule(BaseModel):
    nova_data: datetime
    observacoes: str | None = None

    @field_validator("nova_data")
    @classmethod
    def normalize_data(cls, v: datetime) -> datetime:
        return clock.to_utc_naive(v)


class BookingValueUpdate(BaseModel):
    valor_frete: Decimal = Field(..., ge=0)
    motivo: str | None = None


class BookingCancel(BaseModel):
    motivo: str | None = None


class BatchRequestItem(BaseModel):
    pedido_item_id: int
    # Sem gt=0: quantidade inválida aparece no resultado da simulação
    quantidade: Decimal
    data_agendamento: datetime

    @field_validator("data_agendamento")
    @classmethod
    def normalize_data(cls, v: datetime) -> datetime:
        return clock.to_utc_naive(v)


class BatchRequest(BaseModel):
    solicitacoes: List[BatchRequestItem]


class BatchResultItem(BaseModel):
    indice: int
    pedido_item_id: int
    valido: bool
    erro: str | None

    class Config:
        from_attributes = True


class BatchResult(BaseModel):
    valido: bool
    resultados: List[BatchResultItem]
    erros: List[str]

    class Config:
        from_attributes = True


class BookingOut(BaseModel):
    id: int
    pedido_item_id: int
    quantidade: float
    data_agendamento: datetime
    valor_frete: float
    peso_total: float | None
    volume_total: float | None
    endereco_origem_id: int | None
    endereco_destino_id: int | None
    observacoes: str | None
    informacoes_transporte: dict | None
    cancelado: bool
    motivo_cancelamento: str | None
    cancelado_em: datetime | None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ResumoOut(BaseModel):
    pedido_id: int
    total_itens: int
    itens_com_transporte: int
    total_transportes: int
    transportes_agendados: int
    quantidade_total_agendada: float
    peso_total: float
    volume_total: float
    valor_frete_total: float
    proximo_agendamento: datetime | None

    class Config:
        from_attributes = True


@router.post("/quote", response_model=CotacaoOut)
def quote(data: QuoteRequest, db: Session = Depends(get_db)):
    return freight_service.calculate_freight(
        db,
        pedido_item_id=data.pedido_item_id,
        endereco_destino_id=data.endereco_destino_id,
        endereco_origem_id=data.endereco_origem_id,
        quantidade=data.quantidade,
        peso=data.peso,
        volume=data.volume,
    )


@router.post("/quote-consolidated", response_model=CotacaoConsolidadaOut)
def quote_consolidated(data: ConsolidatedQuoteRequest, db: Session = Depends(get_db)):
    return freight_service.calculate_consolidated_freight(
        db,
        itens=[(i.pedido_item_id, i.quantidade) for i in data.itens],
        endereco_destino_id=data.endereco_destino_id,
        endereco_origem_id=data.endereco_origem_id,
    )


@router.post("/bookings", response_model=BookingOut, status_code=201)
def schedule(data: BookingCreate, db: Session = Depends(get_db)):
    return freight_service.schedule(
        db,
        pedido_item_id=data.pedido_item_id,
        quantidade=data.quantidade,
        data_agendamento=data.data_agendamento,
        endereco_origem_id=data.endereco_origem_id,
        endereco_destino_id=data.endereco_destino_id,
        valor_frete=data.valor_frete,
        observacoes=data.observacoes,
    )


@router.post("/bookings/validate-batch", response_model=BatchResult)
def validate_batch(data: BatchRequest, db: Session = Depends(get_db)):
    return freight_service.validate_batch(
        db,
        [
            SolicitacaoAgendamento(
                pedido_item_id=s.pedido_item_id,
                quantidade=s.quantidade,
                data_agendamento=s.data_agendamento,
            )
            for s in data.solicitacoes
        ],
    )


@router.get("/bookings/{transporte_id}", response_model=BookingOut)
def get_booking(transporte_id: int, db: Session = Depends(get_db)):
    return freight_service.get_booking(db, transporte_id)


@router.put("/bookings/{transporte_id}/reschedule", response_model=BookingOut)
def reschedule(transporte_id: int, data: BookingReschedule, db: Session = Depends(get_db)):
    return freight_service.reschedule(
        db,
        transporte_id,
        nova_data=data.nova_data,
        observacoes=data.observacoes,
    )


@router.put("/bookings/{transporte_id}/value", response_model=BookingOut)
def update_freight_value(transporte_id: int, data: BookingValueUpdate, db: Session = Depends(get_db)):
    return freight_service.update_freight_value(
        db,
        transporte_id,
        novo_valor=data.valor_frete,
        motivo=data.motivo,
    )


@router.delete("/bookings/{transporte_id}", response_model=BookingOut)
def cancel(
    transporte_id: int,
    motivo: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    return freight_service.cancel(db, transporte_id, motivo=motivo)


@router.get("/orders/{pedido_id}/bookings", response_model=List[BookingOut])
def list_order_bookings(
    pedido_id: int,
    incluir_cancelados: bool = Query(False),
    db: Session = Depends(get_db),
):
    return freight_service.list_order_bookings(db, pedido_id, incluir_cancelados=incluir_cancelados)


@router.get("/orders/{pedido_id}/summary", response_model=ResumoOut)
def transport_summary(pedido_id: int, db: Session = Depends(get_db)):
    return freight_service.transport_summary(db, pedido_id)
