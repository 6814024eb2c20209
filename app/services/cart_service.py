# app/services/cart_service.py
import logging
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Iterable

from sqlalchemy.orm import Session

from app.core import clock
from app.core.config import get_settings
from app.core.errors import DomainError, ErrorKind, not_found
from app.db.transaction import run_in_transaction
from app.models import (
    STATUS_NEGOCIAVEIS,
    STATUS_TERMINAIS,
    Catalogo,
    CatalogoItem,
    Fornecedor,
    Pedido,
    PedidoItem,
    Produto,
    Produtor,
    StatusCarrinho,
)
from app.services import combo_service
from app.services.pricing_service import (
    PriceResolution,
    ProdutorContexto,
    money,
    resolve_price,
)

logger = logging.getLogger(__name__)


def _sum_decimal(values: Iterable[Decimal | float | int | None]) -> Decimal:
    total = Decimal("0")
    for v in values:
        total += Decimal(str(v or 0))
    return total


def recalc_totals(pedido: Pedido) -> None:
    """
    Totais do pedido a partir dos itens. Não persiste nem faz flush; o caller
    decide o momento. Duas chamadas seguidas produzem os mesmos valores.
    """
    pedido.valor_bruto = money(_sum_decimal(i.valor_total for i in pedido.itens))
    pedido.valor_desconto = money(_sum_decimal(i.valor_desconto for i in pedido.itens))
    pedido.valor_total = money(_sum_decimal(i.valor_final for i in pedido.itens))
    pedido.quantidade_itens = len(pedido.itens)


def observe_expiry(pedido: Pedido, now: datetime) -> bool:
    """Pedido negociável com prazo vencido passa a EXPIRADO. Retorna True se mudou."""
    if pedido.status in STATUS_NEGOCIAVEIS and now > pedido.data_limite_interacao:
        pedido.status = StatusCarrinho.expirado
        pedido.updated_at = now
        logger.info("Pedido %s expirado (prazo %s)", pedido.id, pedido.data_limite_interacao)
        return True
    return False


def get_pedido(db: Session, pedido_id: int) -> Pedido:
    pedido = db.get(Pedido, pedido_id)
    if not pedido:
        raise not_found("Pedido", pedido_id)
    return pedido


def ensure_version(pedido: Pedido, versao_esperada: int | None) -> None:
    if versao_esperada is not None and pedido.versao != versao_esperada:
        raise DomainError(
            ErrorKind.concurrency_conflict,
            f"Pedido {pedido.id} está na versão {pedido.versao}, esperada {versao_esperada}; "
            "recarregue o carrinho e tente novamente.",
        )


def ensure_items_mutable(pedido: Pedido, now: datetime) -> None:
    if observe_expiry(pedido, now) or pedido.status == StatusCarrinho.expirado:
        raise DomainError(
            ErrorKind.expired,
            f"Prazo de interação do pedido {pedido.id} encerrado em {pedido.data_limite_interacao:%d/%m/%Y %H:%M}.",
        )
    if pedido.status not in STATUS_NEGOCIAVEIS:
        raise DomainError(
            ErrorKind.invalid_operation,
            f"Pedido {pedido.id} está {pedido.status.value}; itens não podem ser alterados.",
        )


def _find_item(pedido: Pedido, item_id: int) -> PedidoItem:
    for item in pedido.itens:
        if item.id == item_id:
            return item
    raise not_found("Item de pedido", item_id)


def _produtor_contexto(db: Session, pedido: Pedido) -> ProdutorContexto:
    produtor = db.get(Produtor, pedido.produtor_id)
    if not produtor:
        raise not_found("Produtor", pedido.produtor_id)
    return ProdutorContexto(
        produtor_id=produtor.id,
        hectares=Decimal(str(produtor.area_plantio_ha or 0)),
        municipio_id=produtor.municipio_id,
    )


def _load_catalog(db: Session, pedido: Pedido, catalogo_id: int) -> Catalogo:
    catalogo = db.get(Catalogo, catalogo_id)
    if not catalogo:
        raise not_found("Catálogo", catalogo_id)
    ponto = catalogo.ponto_distribuicao
    if ponto is None or ponto.fornecedor_id != pedido.fornecedor_id:
        raise DomainError(
            ErrorKind.invalid_operation,
            f"Catálogo {catalogo_id} não pertence ao fornecedor {pedido.fornecedor_id} do pedido.",
        )
    return catalogo


def _resolve(
    db: Session,
    pedido: Pedido,
    *,
    produto_id: int,
    catalogo_id: int,
    quantidade: Decimal,
    now: datetime,
) -> tuple[PriceResolution, ProdutorContexto, Produto]:
    catalogo = _load_catalog(db, pedido, catalogo_id)
    produto = db.get(Produto, produto_id)
    if not produto:
        raise not_found("Produto", produto_id)

    cat_item = (
        db.query(CatalogoItem)
        .filter(
            CatalogoItem.catalogo_id == catalogo.id,
            CatalogoItem.produto_id == produto_id,
        )
        .first()
    )
    if not cat_item:
        raise DomainError(
            ErrorKind.price_not_found,
            f"Produto {produto_id} não consta no catálogo {catalogo_id}.",
        )

    contexto = _produtor_contexto(db, pedido)
    descontos = combo_service.applicable_discounts(
        db,
        fornecedor_id=pedido.fornecedor_id,
        categoria_id=produto.categoria_id,
        contexto=contexto,
        at=now,
    )
    resolution = resolve_price(catalogo, cat_item, quantidade, contexto, descontos, now)
    return resolution, contexto, produto


def _apply_resolution(
    item: PedidoItem,
    resolution: PriceResolution,
    quantidade: Decimal,
    contexto: ProdutorContexto,
    produto: Produto,
) -> None:
    valor_total, valor_desconto, valor_final = resolution.valores(quantidade)
    aplicado = resolution.applied_discount

    item.quantidade = quantidade
    item.preco_unitario = resolution.unit_price
    item.valor_total = valor_total
    item.valor_desconto = valor_desconto
    item.valor_final = valor_final
    item.percentual_desconto = aplicado.percentual_efetivo if aplicado else Decimal("0")
    item.dados_desconto = {
        "faixa": resolution.faixa,
        "combo_id": aplicado.combo_id if aplicado else None,
        "desconto_id": aplicado.desconto_id if aplicado else None,
        "tipo_desconto": aplicado.tipo if aplicado else None,
        "area_produtor": str(contexto.hectares),
        "municipio_id": contexto.municipio_id,
        "categoria_id": produto.categoria_id,
    }


def _validate_quantity(quantidade) -> Decimal:
    quantidade = Decimal(str(quantidade))
    if quantidade <= 0:
        raise DomainError(ErrorKind.validation_error, "Quantidade deve ser maior que zero.")
    return quantidade


def open_cart(
    db: Session,
    *,
    produtor_id: int,
    fornecedor_id: int,
    negociar_pedido: bool = True,
    permite_contato: bool = True,
    dias_limite: int | None = None,
) -> Pedido:
    """
    Retorna o carrinho aberto do par (produtor, fornecedor) ou cria um novo.
    Só existe um pedido negociável por par.
    """
    if dias_limite is None:
        dias_limite = get_settings().PEDIDO_DIAS_LIMITE_PADRAO
    if dias_limite <= 0:
        raise DomainError(ErrorKind.invalid_argument, "Dias limite deve ser maior que zero.")

    def operation() -> Pedido:
        now = clock.utcnow()
        if not db.get(Produtor, produtor_id):
            raise not_found("Produtor", produtor_id)
        if not db.get(Fornecedor, fornecedor_id):
            raise not_found("Fornecedor", fornecedor_id)

        abertos = (
            db.query(Pedido)
            .filter(
                Pedido.produtor_id == produtor_id,
                Pedido.fornecedor_id == fornecedor_id,
                Pedido.status.in_(list(STATUS_NEGOCIAVEIS)),
            )
            .order_by(Pedido.id)
            .all()
        )
        for pedido in abertos:
            if not observe_expiry(pedido, now):
                return pedido

        pedido = Pedido(
            produtor_id=produtor_id,
            fornecedor_id=fornecedor_id,
            status=StatusCarrinho.em_aberto,
            negociar_pedido=negociar_pedido,
            permite_contato=permite_contato,
            data_limite_interacao=now + timedelta(days=dias_limite),
            quantidade_itens=0,
            valor_bruto=Decimal("0"),
            valor_desconto=Decimal("0"),
            valor_total=Decimal("0"),
            created_at=now,
            updated_at=now,
        )
        db.add(pedido)
        db.flush()
        logger.info("Carrinho %s aberto para produtor %s / fornecedor %s", pedido.id, produtor_id, fornecedor_id)
        return pedido

    pedido = run_in_transaction(db, operation, description="abertura de carrinho")
    db.refresh(pedido)
    return pedido


def get_cart(db: Session, pedido_id: int) -> Pedido:
    """Snapshot do carrinho; expiração é observada (e persistida) na leitura."""

    def operation() -> Pedido:
        pedido = get_pedido(db, pedido_id)
        observe_expiry(pedido, clock.utcnow())
        return pedido

    pedido = run_in_transaction(db, operation, description=f"leitura do pedido {pedido_id}")
    db.refresh(pedido)
    return pedido


def add_item(
    db: Session,
    pedido_id: int,
    *,
    produto_id: int,
    quantidade: Decimal,
    catalogo_id: int,
    observacoes: str | None = None,
    versao_esperada: int | None = None,
) -> PedidoItem:
    """
    Adiciona (ou soma a um item existente do mesmo produto/catálogo) com
    preço resolvido pela tabela de faixas e desconto de combo.
    """
    quantidade = _validate_quantity(quantidade)

    def operation() -> PedidoItem:
        now = clock.utcnow()
        pedido = get_pedido(db, pedido_id)
        ensure_version(pedido, versao_esperada)
        ensure_items_mutable(pedido, now)

        item = next(
            (
                i
                for i in pedido.itens
                if i.produto_id == produto_id and i.catalogo_id == catalogo_id
            ),
            None,
        )
        nova_quantidade = quantidade + (Decimal(str(item.quantidade)) if item else Decimal("0"))

        resolution, contexto, produto = _resolve(
            db,
            pedido,
            produto_id=produto_id,
            catalogo_id=catalogo_id,
            quantidade=nova_quantidade,
            now=now,
        )

        if item is None:
            item = PedidoItem(
                produto_id=produto_id,
                catalogo_id=catalogo_id,
                quantidade_agendada=Decimal("0"),
                created_at=now,
            )
            pedido.itens.append(item)
        _apply_resolution(item, resolution, nova_quantidade, contexto, produto)
        if observacoes is not None:
            item.observacoes = observacoes.strip() or None
        item.updated_at = now

        recalc_totals(pedido)
        pedido.updated_at = now
        db.flush()
        return item

    item = run_in_transaction(db, operation, description=f"inclusão de item no pedido {pedido_id}")
    db.refresh(item)
    return item


def remove_item(
    db: Session,
    pedido_id: int,
    item_id: int,
    *,
    versao_esperada: int | None = None,
) -> Pedido:
    def operation() -> Pedido:
        now = clock.utcnow()
        pedido = get_pedido(db, pedido_id)
        ensure_version(pedido, versao_esperada)
        item = _find_item(pedido, item_id)
        ensure_items_mutable(pedido, now)

        pedido.itens.remove(item)
        recalc_totals(pedido)
        pedido.updated_at = now
        db.flush()
        return pedido

    pedido = run_in_transaction(db, operation, description=f"remoção do item {item_id}")
    db.refresh(pedido)
    return pedido


def update_quantity(
    db: Session,
    pedido_id: int,
    item_id: int,
    *,
    nova_quantidade: Decimal,
    versao_esperada: int | None = None,
) -> PedidoItem:
    """Nova quantidade pode mudar a faixa de preço e o desconto: tudo é re-resolvido."""
    nova_quantidade = _validate_quantity(nova_quantidade)

    def operation() -> PedidoItem:
        now = clock.utcnow()
        pedido = get_pedido(db, pedido_id)
        ensure_version(pedido, versao_esperada)
        item = _find_item(pedido, item_id)
        ensure_items_mutable(pedido, now)

        resolution, contexto, produto = _resolve(
            db,
            pedido,
            produto_id=item.produto_id,
            catalogo_id=item.catalogo_id,
            quantidade=nova_quantidade,
            now=now,
        )
        _apply_resolution(item, resolution, nova_quantidade, contexto, produto)
        item.updated_at = now

        recalc_totals(pedido)
        pedido.updated_at = now
        db.flush()
        return item

    item = run_in_transaction(db, operation, description=f"alteração de quantidade do item {item_id}")
    db.refresh(item)
    return item


def recalculate_totals(db: Session, pedido_id: int) -> Pedido:
    def operation() -> Pedido:
        pedido = get_pedido(db, pedido_id)
        antes = (pedido.valor_bruto, pedido.valor_desconto, pedido.valor_total, pedido.quantidade_itens)
        recalc_totals(pedido)
        depois = (pedido.valor_bruto, pedido.valor_desconto, pedido.valor_total, pedido.quantidade_itens)
        if antes != depois:
            logger.warning("Totais do pedido %s estavam divergentes: %s -> %s", pedido_id, antes, depois)
            pedido.updated_at = clock.utcnow()
        return pedido

    pedido = run_in_transaction(db, operation, description=f"recálculo de totais do pedido {pedido_id}")
    db.refresh(pedido)
    return pedido


def extend_deadline(db: Session, pedido_id: int, *, dias: int) -> Pedido:
    """
    Novo prazo = agora + dias, sem nunca encurtar o prazo atual.
    Pedido já encerrado (terminal ou vencido) não é alterado.
    """
    if dias <= 0:
        raise DomainError(ErrorKind.invalid_argument, "Dias deve ser maior que zero.")

    def operation() -> Pedido:
        now = clock.utcnow()
        pedido = get_pedido(db, pedido_id)
        if observe_expiry(pedido, now) or pedido.status in STATUS_TERMINAIS:
            return pedido

        novo_prazo = now + timedelta(days=dias)
        if novo_prazo > pedido.data_limite_interacao:
            pedido.data_limite_interacao = novo_prazo
            pedido.updated_at = now
        return pedido

    pedido = run_in_transaction(db, operation, description=f"prorrogação do pedido {pedido_id}")
    db.refresh(pedido)
    return pedido


def submit_cart(db: Session, pedido_id: int, *, versao_esperada: int | None = None) -> Pedido:
    """EM_ABERTO -> ENVIADO. Só com itens."""

    def operation() -> Pedido:
        now = clock.utcnow()
        pedido = get_pedido(db, pedido_id)
        ensure_version(pedido, versao_esperada)
        ensure_items_mutable(pedido, now)
        if pedido.status != StatusCarrinho.em_aberto:
            raise DomainError(
                ErrorKind.invalid_operation,
                f"Somente carrinhos em aberto podem ser enviados (atual: {pedido.status.value}).",
            )
        if not pedido.itens:
            raise DomainError(ErrorKind.invalid_operation, "Não é possível enviar um carrinho sem itens.")
        pedido.status = StatusCarrinho.enviado
        pedido.updated_at = now
        return pedido

    pedido = run_in_transaction(db, operation, description=f"envio do pedido {pedido_id}")
    db.refresh(pedido)
    return pedido


def cancel_cart(db: Session, pedido_id: int, *, motivo: str | None = None) -> Pedido:
    def operation() -> Pedido:
        now = clock.utcnow()
        pedido = get_pedido(db, pedido_id)
        ensure_items_mutable(pedido, now)
        pedido.status = StatusCarrinho.cancelado
        pedido.motivo_cancelamento = (motivo or "").strip() or None
        pedido.updated_at = now
        return pedido

    pedido = run_in_transaction(db, operation, description=f"cancelamento do pedido {pedido_id}")
    db.refresh(pedido)
    logger.info("Pedido %s cancelado pelo comprador", pedido_id)
    return pedido
