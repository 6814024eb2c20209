# app/api/proposals.py
from datetime import datetime
from typing import List, Literal

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.db.deps import get_db
from app.models import AcaoProposta, LadoAutor, StatusCarrinho
from app.services import proposal_service

router = APIRouter(prefix="/orders", tags=["proposals"])


class PropostaCreate(BaseModel):
    lado_autor: LadoAutor
    usuario_id: int
    acao: AcaoProposta
    observacao: str | None = Field(None, max_length=2000)
    versao_esperada: int | None = None


class PropostaListRequest(BaseModel):
    page: int = Field(1, ge=1)
    page_size: int = Field(20, ge=1, le=100)
    ordem: Literal["asc", "desc"] = "desc"


class PropostaOut(BaseModel):
    id: int
    pedido_id: int
    sequencia: int
    acao: AcaoProposta
    status_resultante: StatusCarrinho
    lado_autor: LadoAutor
    observacao: str | None
    usuario_produtor_id: int | None
    usuario_fornecedor_id: int | None
    created_at: datetime

    class Config:
        from_attributes = True


class PropostaPage(BaseModel):
    items: List[PropostaOut]
    total: int
    page: int
    page_size: int


@router.post("/{pedido_id}/proposals", response_model=PropostaOut, status_code=201)
def submit_proposal(pedido_id: int, data: PropostaCreate, db: Session = Depends(get_db)):
    return proposal_service.submit_proposal(
        db,
        pedido_id,
        lado_autor=data.lado_autor,
        usuario_id=data.usuario_id,
        acao=data.acao,
        observacao=data.observacao,
        versao_esperada=data.versao_esperada,
    )


@router.post("/{pedido_id}/proposals/list", response_model=PropostaPage)
def list_proposals(pedido_id: int, data: PropostaListRequest, db: Session = Depends(get_db)):
    items, total = proposal_service.list_proposals(
        db,
        pedido_id,
        page=data.page,
        page_size=data.page_size,
        ordem=data.ordem,
    )
    return PropostaPage(
        items=[PropostaOut.model_validate(p) for p in items],
        total=total,
        page=data.page,
        page_size=data.page_size,
    )


@router.get("/{pedido_id}/proposals/latest", response_model=PropostaOut | None)
def get_latest_proposal(pedido_id: int, db: Session = Depends(get_db)):
    return proposal_service.get_latest_proposal(db, pedido_id)
