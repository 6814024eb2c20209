# app/api/carts.py
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.db.deps import get_db
from app.models import StatusCarrinho
from app.services import cart_service

router = APIRouter(prefix="/carts", tags=["carts"])


class CartCreate(BaseModel):
    produtor_id: int
    fornecedor_id: int
    negociar_pedido: bool = True
    permite_contato: bool = True
    dias_limite: int | None = Field(None, gt=0)


class ItemAdd(BaseModel):
    produto_id: int
    catalogo_id: int
    quantidade: Decimal = Field(..., gt=0)
    observacoes: str | None = None
    versao_esperada: int | None = None


class QuantityUpdate(BaseModel):
    quantidade: Decimal = Field(..., gt=0)
    versao_esperada: int | None = None


class DeadlineUpdate(BaseModel):
    # Sem validação aqui: dias <= 0 é INVALID_ARGUMENT no serviço
    dias: int


class CartSubmit(BaseModel):
    versao_esperada: int | None = None


class CartCancel(BaseModel):
    motivo: str | None = None


class PedidoItemOut(BaseModel):
    id: int
    produto_id: int
    catalogo_id: int
    quantidade: float
    preco_unitario: float
    percentual_desconto: float
    valor_desconto: float
    valor_total: float
    valor_final: float
    quantidade_agendada: float
    dados_desconto: dict | None
    observacoes: str | None
    versao: int

    class Config:
        from_attributes = True


class PedidoOut(BaseModel):
    id: int
    produtor_id: int
    fornecedor_id: int
    status: StatusCarrinho
    quantidade_itens: int
    valor_bruto: float
    valor_desconto: float
    valor_total: float
    data_limite_interacao: datetime
    negociar_pedido: bool
    permite_contato: bool
    motivo_cancelamento: str | None
    versao: int
    created_at: datetime
    updated_at: datetime

    itens: List[PedidoItemOut]

    class Config:
        from_attributes = True


@router.post("/", response_model=PedidoOut, status_code=201)
def open_cart(data: CartCreate, db: Session = Depends(get_db)):
    return cart_service.open_cart(
        db,
        produtor_id=data.produtor_id,
        fornecedor_id=data.fornecedor_id,
        negociar_pedido=data.negociar_pedido,
        permite_contato=data.permite_contato,
        dias_limite=data.dias_limite,
    )


@router.get("/{pedido_id}", response_model=PedidoOut)
def get_cart(pedido_id: int, db: Session = Depends(get_db)):
    return cart_service.get_cart(db, pedido_id)


@router.post("/{pedido_id}/items", response_model=PedidoOut, status_code=201)
def add_item(pedido_id: int, data: ItemAdd, db: Session = Depends(get_db)):
    item = cart_service.add_item(
        db,
        pedido_id,
        produto_id=data.produto_id,
        quantidade=data.quantidade,
        catalogo_id=data.catalogo_id,
        observacoes=data.observacoes,
        versao_esperada=data.versao_esperada,
    )
    return item.pedido


@router.delete("/{pedido_id}/items/{item_id}", response_model=PedidoOut)
def remove_item(
    pedido_id: int,
    item_id: int,
    versao_esperada: Optional[int] = Query(None),
    db: Session = Depends(get_db),
):
    return cart_service.remove_item(db, pedido_id, item_id, versao_esperada=versao_esperada)


@router.put("/{pedido_id}/items/{item_id}/quantity", response_model=PedidoOut)
def update_quantity(pedido_id: int, item_id: int, data: QuantityUpdate, db: Session = Depends(get_db)):
    item = cart_service.update_quantity(
        db,
        pedido_id,
        item_id,
        nova_quantidade=data.quantidade,
        versao_esperada=data.versao_esperada,
    )
    return item.pedido


@router.post("/{pedido_id}/recalculate-totals", response_model=PedidoOut)
def recalculate_totals(pedido_id: int, db: Session = Depends(get_db)):
    return cart_service.recalculate_totals(db, pedido_id)


@router.put("/{pedido_id}/deadline", response_model=PedidoOut)
def extend_deadline(pedido_id: int, data: DeadlineUpdate, db: Session = Depends(get_db)):
    return cart_service.extend_deadline(db, pedido_id, dias=data.dias)


@router.post("/{pedido_id}/submit", response_model=PedidoOut)
def submit_cart(pedido_id: int, data: CartSubmit | None = None, db: Session = Depends(get_db)):
    versao = data.versao_esperada if data else None
    return cart_service.submit_cart(db, pedido_id, versao_esperada=versao)


@router.post("/{pedido_id}/cancel", response_model=PedidoOut)
def cancel_cart(pedido_id: int, data: CartCancel | None = None, db: Session = Depends(get_db)):
    return cart_service.cancel_cart(db, pedido_id, motivo=data.motivo if data else None)
