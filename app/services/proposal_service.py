# app/services/proposal_service.py
import logging
from datetime import datetime

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core import clock
from app.core.errors import DomainError, ErrorKind
from app.db.transaction import run_in_transaction
from app.models import (
    STATUS_NEGOCIAVEIS,
    AcaoProposta,
    LadoAutor,
    Pedido,
    Proposta,
    StatusCarrinho,
)
from app.services.cart_service import ensure_version, get_pedido, observe_expiry
from app.services.notifications import get_notifier

logger = logging.getLogger(__name__)

STATUS_POR_ACAO = {
    AcaoProposta.contraproposta: StatusCarrinho.em_negociacao,
    AcaoProposta.aceite: StatusCarrinho.aceito,
    AcaoProposta.rejeicao: StatusCarrinho.rejeitado,
}


def _check_preconditions(
    pedido: Pedido,
    lado: LadoAutor,
    acao: AcaoProposta,
    observacao: str | None,
    now: datetime,
) -> None:
    vencido = pedido.status in STATUS_NEGOCIAVEIS and now >= pedido.data_limite_interacao
    if pedido.status == StatusCarrinho.expirado or vencido:
        raise DomainError(
            ErrorKind.expired,
            f"Prazo de interação do pedido {pedido.id} encerrado em {pedido.data_limite_interacao:%d/%m/%Y %H:%M}.",
        )
    if pedido.status not in STATUS_NEGOCIAVEIS:
        raise DomainError(
            ErrorKind.invalid_operation,
            f"Pedido {pedido.id} está {pedido.status.value}; não aceita novas propostas.",
        )
    if lado == LadoAutor.fornecedor and pedido.status == StatusCarrinho.em_aberto:
        raise DomainError(
            ErrorKind.invalid_operation,
            "Fornecedor só pode responder depois que o produtor enviar o carrinho.",
        )
    # Em aberto, o primeiro turno do produtor só pode iniciar a negociação
    if pedido.status == StatusCarrinho.em_aberto and acao != AcaoProposta.contraproposta:
        raise DomainError(
            ErrorKind.invalid_operation,
            f"Pedido {pedido.id} ainda está em aberto; envie o carrinho ou inicie a negociação com uma contraproposta.",
        )
    if acao == AcaoProposta.contraproposta:
        if not pedido.negociar_pedido:
            raise DomainError(
                ErrorKind.invalid_operation,
                f"Pedido {pedido.id} não permite negociação; apenas aceite ou rejeição.",
            )
        if lado == LadoAutor.fornecedor and not observacao:
            raise DomainError(
                ErrorKind.validation_error,
                "Contraproposta do fornecedor exige observação.",
            )
    if acao == AcaoProposta.aceite and not pedido.itens:
        raise DomainError(ErrorKind.invalid_operation, "Não é possível aceitar um pedido sem itens.")


def _next_sequence(db: Session, pedido_id: int) -> int:
    atual = (
        db.query(func.max(Proposta.sequencia))
        .filter(Proposta.pedido_id == pedido_id)
        .scalar()
    )
    return (atual or 0) + 1


def submit_proposal(
    db: Session,
    pedido_id: int,
    *,
    lado_autor: LadoAutor,
    usuario_id: int,
    acao: AcaoProposta,
    observacao: str | None = None,
    versao_esperada: int | None = None,
) -> Proposta:
    """
    Acrescenta um turno à negociação e move o status do pedido.
    A leitura do status, o incremento de versão do pedido e a inserção da
    proposta acontecem na mesma transação.
    """
    observacao = (observacao or "").strip() or None

    def operation() -> Proposta:
        now = clock.utcnow()
        pedido = get_pedido(db, pedido_id)
        ensure_version(pedido, versao_esperada)
        observe_expiry(pedido, now)
        _check_preconditions(pedido, lado_autor, acao, observacao, now)

        pedido.status = STATUS_POR_ACAO[acao]
        pedido.updated_at = now
        # Confere a versão do pedido antes de gravar a proposta
        db.flush()

        proposta = Proposta(
            pedido_id=pedido.id,
            sequencia=_next_sequence(db, pedido.id),
            acao=acao,
            status_resultante=pedido.status,
            observacao=observacao,
            usuario_produtor_id=usuario_id if lado_autor == LadoAutor.produtor else None,
            usuario_fornecedor_id=usuario_id if lado_autor == LadoAutor.fornecedor else None,
            created_at=now,
        )
        db.add(proposta)
        db.flush()
        return proposta

    proposta = run_in_transaction(db, operation, description=f"proposta no pedido {pedido_id}")
    db.refresh(proposta)

    get_notifier().notify(
        "PROPOSTA_REGISTRADA",
        pedido_id=pedido_id,
        acao=acao.value,
        lado=lado_autor.value,
        status=proposta.status_resultante.value,
    )
    return proposta


def list_proposals(
    db: Session,
    pedido_id: int,
    *,
    page: int = 1,
    page_size: int = 20,
    ordem: str = "desc",
) -> tuple[list[Proposta], int]:
    """Histórico paginado; (created_at, sequencia) é a chave de ordenação estável."""
    if page < 1 or page_size < 1:
        raise DomainError(ErrorKind.invalid_argument, "Página e tamanho de página devem ser positivos.")
    if ordem not in ("asc", "desc"):
        raise DomainError(ErrorKind.invalid_argument, "Ordem deve ser 'asc' ou 'desc'.")
    get_pedido(db, pedido_id)

    q = db.query(Proposta).filter(Proposta.pedido_id == pedido_id)
    total = q.count()
    if ordem == "asc":
        q = q.order_by(Proposta.created_at.asc(), Proposta.sequencia.asc())
    else:
        q = q.order_by(Proposta.created_at.desc(), Proposta.sequencia.desc())
    itens = q.offset((page - 1) * page_size).limit(page_size).all()
    return itens, total


def get_latest_proposal(db: Session, pedido_id: int) -> Proposta | None:
    get_pedido(db, pedido_id)
    return (
        db.query(Proposta)
        .filter(Proposta.pedido_id == pedido_id)
        .order_by(Proposta.created_at.desc(), Proposta.sequencia.desc())
        .first()
    )
