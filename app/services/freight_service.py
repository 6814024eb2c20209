# app/services/freight_service.py
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Sequence

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core import clock
from app.core.config import get_settings
from app.core.errors import DomainError, ErrorKind, not_found
from app.db.transaction import run_in_transaction
from app.models import (
    Endereco,
    Pedido,
    PedidoItem,
    PedidoItemTransporte,
    Produto,
    StatusCarrinho,
    TipoCalculoPeso,
)
from app.services.cart_service import get_pedido
from app.services.notifications import get_notifier
from app.services.pricing_service import money

logger = logging.getLogger(__name__)

RAIO_TERRA_KM = 6371.0088
TRES_CASAS = Decimal("0.001")


# ---------------------------------------------------------------------------
# Tarifas
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TarifaFrete:
    valor_por_kg_km: Decimal
    valor_minimo: Decimal
    desconto_consolidacao_pct: Decimal


class FreightRateProvider:
    """Tabela de tarifas de frete. A implementação padrão lê as settings."""

    def get_rate(self, origem: Endereco | None = None, destino: Endereco | None = None) -> TarifaFrete:
        settings = get_settings()
        return TarifaFrete(
            valor_por_kg_km=Decimal(str(settings.FRETE_VALOR_POR_KG_KM)),
            valor_minimo=Decimal(str(settings.FRETE_VALOR_MINIMO)),
            desconto_consolidacao_pct=Decimal(str(settings.FRETE_DESCONTO_CONSOLIDACAO_PCT)),
        )


_RATE_PROVIDER: FreightRateProvider | None = None


def get_rate_provider() -> FreightRateProvider:
    global _RATE_PROVIDER
    if _RATE_PROVIDER is None:
        _RATE_PROVIDER = FreightRateProvider()
    return _RATE_PROVIDER


def set_rate_provider(provider: FreightRateProvider | None) -> None:
    global _RATE_PROVIDER
    _RATE_PROVIDER = provider


# ---------------------------------------------------------------------------
# Cálculo
# ---------------------------------------------------------------------------

@dataclass
class CotacaoFrete:
    pedido_item_id: int | None
    quantidade: Decimal
    endereco_origem_id: int
    endereco_destino_id: int
    distancia_km: Decimal
    peso_total: Decimal
    volume_total: Decimal
    peso_cubado_total: Decimal | None
    peso_para_frete: Decimal
    tipo_calculo: str
    valor_por_kg_km: Decimal
    valor_calculado: Decimal
    valor_frete: Decimal
    minimo_aplicado: bool

    def detalhe(self) -> dict:
        """Versão JSON-safe gravada em `informacoes_transporte`."""
        return {
            "distancia_km": str(self.distancia_km),
            "peso_total": str(self.peso_total),
            "volume_total": str(self.volume_total),
            "peso_cubado_total": str(self.peso_cubado_total) if self.peso_cubado_total is not None else None,
            "peso_para_frete": str(self.peso_para_frete),
            "tipo_calculo": self.tipo_calculo,
            "valor_por_kg_km": str(self.valor_por_kg_km),
            "valor_calculado": str(self.valor_calculado),
            "valor_frete": str(self.valor_frete),
            "minimo_aplicado": self.minimo_aplicado,
        }


@dataclass
class GrupoFrete:
    endereco_origem_id: int
    distancia_km: Decimal
    tarifa: TarifaFrete
    pedido_item_ids: list[int]
    peso_para_frete: Decimal
    volume_total: Decimal
    valor_frete: Decimal
    minimo_aplicado: bool
    valor_desconto: Decimal = Decimal("0")

    @property
    def valor_por_kg_km(self) -> Decimal:
        return self.tarifa.valor_por_kg_km

    @property
    def desconto_consolidacao_pct(self) -> Decimal:
        return self.tarifa.desconto_consolidacao_pct


@dataclass
class CotacaoConsolidada:
    endereco_destino_id: int
    grupos: list[GrupoFrete]
    cotacoes_individuais: list[CotacaoFrete]
    peso_total: Decimal
    volume_total: Decimal
    valor_sem_consolidacao: Decimal
    subtotal_consolidado: Decimal
    desconto_consolidacao_pct: Decimal
    valor_desconto: Decimal
    valor_frete_consolidado: Decimal
    economia: Decimal


@dataclass
class PesoVolume:
    peso_total: Decimal
    volume_total: Decimal
    peso_cubado_total: Decimal | None
    peso_para_frete: Decimal
    tipo_calculo: str


def distancia_km(origem: Endereco, destino: Endereco) -> Decimal:
    """Distância de grande círculo (haversine) entre dois endereços geocodificados."""
    if not origem.geocodificado or not destino.geocodificado:
        sem_geo = origem.id if not origem.geocodificado else destino.id
        raise DomainError(
            ErrorKind.calculation_error,
            f"Endereço {sem_geo} sem geocodificação; não é possível calcular a distância.",
        )
    lat1, lon1 = math.radians(float(origem.latitude)), math.radians(float(origem.longitude))
    lat2, lon2 = math.radians(float(destino.latitude)), math.radians(float(destino.longitude))
    a = (
        math.sin((lat2 - lat1) / 2) ** 2
        + math.cos(lat1) * math.cos(lat2) * math.sin((lon2 - lon1) / 2) ** 2
    )
    km = 2 * RAIO_TERRA_KM * math.asin(math.sqrt(a))
    return Decimal(str(km)).quantize(TRES_CASAS, rounding=ROUND_HALF_UP)


def peso_volume(produto: Produto, quantidade: Decimal) -> PesoVolume:
    """
    Peso nominal ou cubado (volume × densidade) conforme o produto.
    Produto cubado sem densidade cai no peso nominal.
    """
    quantidade = Decimal(str(quantidade))
    peso_total = Decimal(str(produto.peso_nominal or 0)) * quantidade
    volume_total = Decimal(str(produto.volume_unitario or 0)) * quantidade

    peso_cubado = None
    if produto.densidade is not None:
        peso_cubado = volume_total * Decimal(str(produto.densidade))

    if produto.tipo_calculo_peso == TipoCalculoPeso.peso_cubado and peso_cubado is not None:
        peso_para_frete = peso_cubado
    else:
        peso_para_frete = peso_total

    return PesoVolume(
        peso_total=peso_total.quantize(TRES_CASAS, rounding=ROUND_HALF_UP),
        volume_total=volume_total,
        peso_cubado_total=peso_cubado.quantize(TRES_CASAS, rounding=ROUND_HALF_UP) if peso_cubado is not None else None,
        peso_para_frete=peso_para_frete.quantize(TRES_CASAS, rounding=ROUND_HALF_UP),
        tipo_calculo=produto.tipo_calculo_peso.value,
    )


def valor_frete(peso: Decimal, distancia: Decimal, tarifa: TarifaFrete) -> tuple[Decimal, Decimal, bool]:
    """(valor_calculado, valor_frete, minimo_aplicado)."""
    calculado = money(peso * distancia * tarifa.valor_por_kg_km)
    if calculado < tarifa.valor_minimo:
        return calculado, money(tarifa.valor_minimo), True
    return calculado, calculado, False


def _load_item(db: Session, pedido_item_id: int, *, for_update: bool = False) -> PedidoItem:
    q = db.query(PedidoItem).filter(PedidoItem.id == pedido_item_id)
    if for_update:
        q = q.with_for_update()
    item = q.first()
    if not item:
        raise not_found("Item de pedido", pedido_item_id)
    return item


def _load_endereco(db: Session, endereco_id: int) -> Endereco:
    endereco = db.get(Endereco, endereco_id)
    if not endereco:
        raise not_found("Endereço", endereco_id)
    return endereco


def _origem_padrao(item: PedidoItem) -> int:
    ponto = item.catalogo.ponto_distribuicao if item.catalogo else None
    if ponto is None or ponto.endereco_id is None:
        raise DomainError(
            ErrorKind.calculation_error,
            f"Item {item.id}: ponto de distribuição sem endereço de origem.",
        )
    return ponto.endereco_id


def _cotar(
    item: PedidoItem,
    quantidade: Decimal,
    origem: Endereco,
    destino: Endereco,
    tarifa: TarifaFrete,
    peso: Decimal | None = None,
    volume: Decimal | None = None,
) -> CotacaoFrete:
    if quantidade <= 0:
        raise DomainError(ErrorKind.calculation_error, "Quantidade deve ser maior que zero.")
    distancia = distancia_km(origem, destino)
    if distancia <= 0:
        raise DomainError(
            ErrorKind.calculation_error,
            f"Distância nula entre os endereços {origem.id} e {destino.id}.",
        )

    pv = peso_volume(item.produto, quantidade)
    if peso is not None:
        pv.peso_para_frete = Decimal(str(peso))
    if volume is not None:
        pv.volume_total = Decimal(str(volume))
    if pv.peso_para_frete <= 0:
        raise DomainError(
            ErrorKind.calculation_error,
            f"Item {item.id}: peso para frete igual a zero.",
        )

    calculado, valor, minimo = valor_frete(pv.peso_para_frete, distancia, tarifa)
    return CotacaoFrete(
        pedido_item_id=item.id,
        quantidade=quantidade,
        endereco_origem_id=origem.id,
        endereco_destino_id=destino.id,
        distancia_km=distancia,
        peso_total=pv.peso_total,
        volume_total=pv.volume_total,
        peso_cubado_total=pv.peso_cubado_total,
        peso_para_frete=pv.peso_para_frete,
        tipo_calculo=pv.tipo_calculo,
        valor_por_kg_km=tarifa.valor_por_kg_km,
        valor_calculado=calculado,
        valor_frete=valor,
        minimo_aplicado=minimo,
    )


def calculate_freight(
    db: Session,
    *,
    pedido_item_id: int,
    endereco_destino_id: int,
    endereco_origem_id: int | None = None,
    quantidade: Decimal | None = None,
    peso: Decimal | None = None,
    volume: Decimal | None = None,
) -> CotacaoFrete:
    """
    Cotação de frete de um item. Sem origem explícita usa o endereço do ponto
    de distribuição do catálogo; sem quantidade usa a do item.
    """
    item = _load_item(db, pedido_item_id)
    origem = _load_endereco(db, endereco_origem_id or _origem_padrao(item))
    destino = _load_endereco(db, endereco_destino_id)
    tarifa = get_rate_provider().get_rate(origem, destino)
    qtd = Decimal(str(quantidade)) if quantidade is not None else Decimal(str(item.quantidade))
    return _cotar(item, qtd, origem, destino, tarifa, peso=peso, volume=volume)


def calculate_consolidated_freight(
    db: Session,
    *,
    itens: Sequence[tuple[int, Decimal | None]],
    endereco_destino_id: int,
    endereco_origem_id: int | None = None,
) -> CotacaoConsolidada:
    """
    Agrupa os itens por origem e cobra o peso somado de cada grupo pela
    tarifa da rota, com o mínimo aplicado uma vez por grupo e o desconto de
    consolidação dessa mesma tarifa.
    Devolve também a soma item a item que a cotação substitui.
    """
    if not itens:
        raise DomainError(ErrorKind.calculation_error, "Lista de itens não pode ser vazia.")

    destino = _load_endereco(db, endereco_destino_id)
    provider = get_rate_provider()

    grupos: dict[int, GrupoFrete] = {}
    individuais: list[CotacaoFrete] = []
    for pedido_item_id, quantidade in itens:
        item = _load_item(db, pedido_item_id)
        origem = _load_endereco(db, endereco_origem_id or _origem_padrao(item))
        tarifa = provider.get_rate(origem, destino)
        qtd = Decimal(str(quantidade)) if quantidade is not None else Decimal(str(item.quantidade))
        cotacao = _cotar(item, qtd, origem, destino, tarifa)
        individuais.append(cotacao)

        grupo = grupos.get(origem.id)
        if grupo is None:
            grupo = GrupoFrete(
                endereco_origem_id=origem.id,
                distancia_km=cotacao.distancia_km,
                tarifa=tarifa,
                pedido_item_ids=[],
                peso_para_frete=Decimal("0"),
                volume_total=Decimal("0"),
                valor_frete=Decimal("0"),
                minimo_aplicado=False,
            )
            grupos[origem.id] = grupo
        grupo.pedido_item_ids.append(item.id)
        grupo.peso_para_frete += cotacao.peso_para_frete
        grupo.volume_total += cotacao.volume_total

    # Cada grupo usa a tarifa da sua rota, inclusive mínimo e desconto
    for grupo in grupos.values():
        _, grupo.valor_frete, grupo.minimo_aplicado = valor_frete(
            grupo.peso_para_frete, grupo.distancia_km, grupo.tarifa
        )
        grupo.valor_desconto = money(grupo.valor_frete * grupo.desconto_consolidacao_pct / Decimal("100"))

    sem_consolidacao = money(sum((c.valor_frete for c in individuais), Decimal("0")))
    subtotal = money(sum((g.valor_frete for g in grupos.values()), Decimal("0")))
    desconto = money(sum((g.valor_desconto for g in grupos.values()), Decimal("0")))
    percentuais = {g.desconto_consolidacao_pct for g in grupos.values()}
    if len(percentuais) == 1:
        pct = percentuais.pop()
    else:
        # Rotas com descontos diferentes: percentual efetivo sobre o subtotal
        pct = money(desconto * Decimal("100") / subtotal) if subtotal else Decimal("0")
    consolidado = subtotal - desconto

    return CotacaoConsolidada(
        endereco_destino_id=destino.id,
        grupos=list(grupos.values()),
        cotacoes_individuais=individuais,
        peso_total=sum((g.peso_para_frete for g in grupos.values()), Decimal("0")),
        volume_total=sum((g.volume_total for g in grupos.values()), Decimal("0")),
        valor_sem_consolidacao=sem_consolidacao,
        subtotal_consolidado=subtotal,
        desconto_consolidacao_pct=pct,
        valor_desconto=desconto,
        valor_frete_consolidado=consolidado,
        economia=sem_consolidacao - consolidado,
    )


# ---------------------------------------------------------------------------
# Agendamentos
# ---------------------------------------------------------------------------

@dataclass
class SolicitacaoAgendamento:
    pedido_item_id: int
    quantidade: Decimal
    data_agendamento: datetime


@dataclass
class ResultadoSolicitacao:
    indice: int
    pedido_item_id: int
    valido: bool
    erro: str | None = None


@dataclass
class ValidacaoAgendamentos:
    valido: bool
    resultados: list[ResultadoSolicitacao] = field(default_factory=list)
    erros: list[str] = field(default_factory=list)


@dataclass
class ResumoTransporte:
    pedido_id: int
    total_itens: int
    itens_com_transporte: int
    total_transportes: int
    transportes_agendados: int
    quantidade_total_agendada: Decimal
    peso_total: Decimal
    volume_total: Decimal
    valor_frete_total: Decimal
    proximo_agendamento: datetime | None


def _validate_data(data: datetime, now: datetime) -> None:
    data = clock.to_utc_naive(data)
    if data <= now:
        raise DomainError(ErrorKind.scheduling_error, "Data de agendamento deve ser futura.")
    horizonte = get_settings().TRANSPORTE_HORIZONTE_DIAS
    if data > now + timedelta(days=horizonte):
        raise DomainError(
            ErrorKind.scheduling_error,
            f"Data de agendamento não pode ser superior a {horizonte} dias.",
        )


def _ensure_pedido_aceito(pedido: Pedido) -> None:
    if pedido.status != StatusCarrinho.aceito:
        raise DomainError(
            ErrorKind.invalid_operation,
            f"Pedido {pedido.id} está {pedido.status.value}; transporte exige pedido aceito.",
        )


def _quantidade_ativa(db: Session, pedido_item_id: int) -> Decimal:
    total = (
        db.query(func.coalesce(func.sum(PedidoItemTransporte.quantidade), 0))
        .filter(
            PedidoItemTransporte.pedido_item_id == pedido_item_id,
            PedidoItemTransporte.cancelado.is_(False),
        )
        .scalar()
    )
    return Decimal(str(total or 0))


def _ensure_disponivel(item: PedidoItem, ocupado: Decimal, quantidade: Decimal) -> None:
    limite = Decimal(str(item.quantidade))
    if ocupado + quantidade > limite:
        excesso = ocupado + quantidade - limite
        disponivel = max(limite - ocupado, Decimal("0"))
        raise DomainError(
            ErrorKind.scheduling_error,
            f"Item {item.id}: quantidade solicitada ({quantidade}) excede a disponível "
            f"({disponivel}) em {excesso}.",
        )


def _append_observacao(booking: PedidoItemTransporte, texto: str) -> None:
    atuais = (booking.observacoes or "").strip()
    booking.observacoes = f"{atuais}\n{texto}" if atuais else texto


def _get_booking(db: Session, transporte_id: int) -> PedidoItemTransporte:
    booking = db.get(PedidoItemTransporte, transporte_id)
    if not booking:
        raise not_found("Transporte", transporte_id)
    return booking


def schedule(
    db: Session,
    *,
    pedido_item_id: int,
    quantidade: Decimal,
    data_agendamento: datetime,
    endereco_origem_id: int | None = None,
    endereco_destino_id: int | None = None,
    valor_frete: Decimal | None = None,
    observacoes: str | None = None,
) -> PedidoItemTransporte:
    """
    Agenda transporte de parte de um item. A soma dos agendamentos ativos
    nunca passa da quantidade do item: a linha do item fica travada
    (FOR UPDATE) e sua versão é incrementada junto com a inserção.
    """
    data_agendamento = clock.to_utc_naive(data_agendamento)
    quantidade = Decimal(str(quantidade))
    if quantidade <= 0:
        raise DomainError(ErrorKind.validation_error, "Quantidade deve ser maior que zero.")
    if valor_frete is not None and Decimal(str(valor_frete)) < 0:
        raise DomainError(ErrorKind.validation_error, "Valor do frete não pode ser negativo.")

    def operation() -> PedidoItemTransporte:
        now = clock.utcnow()
        item = _load_item(db, pedido_item_id, for_update=True)
        _ensure_pedido_aceito(item.pedido)
        _validate_data(data_agendamento, now)

        ocupado = _quantidade_ativa(db, item.id)
        _ensure_disponivel(item, ocupado, quantidade)

        pv = peso_volume(item.produto, quantidade)
        informacoes: dict = {
            "agendamento": {
                "data_criacao": now.isoformat(),
                "data_agendamento": data_agendamento.isoformat(),
                "endereco_origem_id": endereco_origem_id,
                "endereco_destino_id": endereco_destino_id,
            },
        }

        valor = Decimal(str(valor_frete)) if valor_frete is not None else Decimal("0")
        if valor_frete is None and endereco_destino_id is not None:
            origem = _load_endereco(db, endereco_origem_id or _origem_padrao(item))
            destino = _load_endereco(db, endereco_destino_id)
            cotacao = _cotar(item, quantidade, origem, destino, get_rate_provider().get_rate(origem, destino))
            valor = cotacao.valor_frete
            informacoes["calculo_frete"] = cotacao.detalhe()
            informacoes["agendamento"]["endereco_origem_id"] = origem.id

        booking = PedidoItemTransporte(
            pedido_item_id=item.id,
            quantidade=quantidade,
            data_agendamento=data_agendamento,
            valor_frete=money(valor),
            peso_total=pv.peso_total,
            volume_total=pv.volume_total,
            endereco_origem_id=informacoes["agendamento"]["endereco_origem_id"],
            endereco_destino_id=endereco_destino_id,
            observacoes=(observacoes or "").strip() or None,
            informacoes_transporte=informacoes,
            cancelado=False,
            created_at=now,
            updated_at=now,
        )
        db.add(booking)

        item.quantidade_agendada = ocupado + quantidade
        item.updated_at = now
        db.flush()
        return booking

    booking = run_in_transaction(db, operation, description=f"agendamento do item {pedido_item_id}")
    db.refresh(booking)
    logger.info(
        "Transporte %s agendado: item %s, quantidade %s em %s",
        booking.id,
        pedido_item_id,
        quantidade,
        data_agendamento,
    )
    get_notifier().notify(
        "TRANSPORTE_AGENDADO",
        pedido_id=booking.pedido_item.pedido_id,
        transporte_id=booking.id,
        data=data_agendamento.isoformat(),
    )
    return booking


def reschedule(
    db: Session,
    transporte_id: int,
    *,
    nova_data: datetime,
    observacoes: str | None = None,
) -> PedidoItemTransporte:
    nova_data = clock.to_utc_naive(nova_data)

    def operation() -> PedidoItemTransporte:
        now = clock.utcnow()
        booking = _get_booking(db, transporte_id)
        if booking.cancelado:
            raise DomainError(
                ErrorKind.invalid_operation,
                f"Transporte {transporte_id} está cancelado e não pode ser reagendado.",
            )
        _ensure_pedido_aceito(booking.pedido_item.pedido)
        _validate_data(nova_data, now)

        nota = f"Reagendado para {nova_data:%d/%m/%Y %H:%M}"
        if observacoes:
            nota += f" - {observacoes.strip()}"
        _append_observacao(booking, nota)

        # Coluna JSON: reatribuir para o ORM detectar a mudança
        informacoes = dict(booking.informacoes_transporte or {})
        historico = list(informacoes.get("historico_reagendamentos", []))
        historico.append(
            {
                "data_reagendamento": now.isoformat(),
                "data_anterior": booking.data_agendamento.isoformat(),
                "nova_data_agendamento": nova_data.isoformat(),
                "observacoes": observacoes,
            }
        )
        informacoes["historico_reagendamentos"] = historico
        booking.informacoes_transporte = informacoes

        booking.data_agendamento = nova_data
        booking.updated_at = now
        return booking

    booking = run_in_transaction(db, operation, description=f"reagendamento do transporte {transporte_id}")
    db.refresh(booking)
    return booking


def update_freight_value(
    db: Session,
    transporte_id: int,
    *,
    novo_valor: Decimal,
    motivo: str | None = None,
) -> PedidoItemTransporte:
    novo_valor = money(novo_valor)
    if novo_valor < 0:
        raise DomainError(ErrorKind.validation_error, "Valor do frete não pode ser negativo.")

    def operation() -> PedidoItemTransporte:
        booking = _get_booking(db, transporte_id)
        if booking.cancelado:
            raise DomainError(
                ErrorKind.invalid_operation,
                f"Transporte {transporte_id} está cancelado.",
            )
        anterior = money(booking.valor_frete)
        nota = f"Valor do frete alterado de R$ {anterior:.2f} para R$ {novo_valor:.2f}"
        if motivo:
            nota += f" - Motivo: {motivo.strip()}"
        _append_observacao(booking, nota)
        booking.valor_frete = novo_valor
        booking.updated_at = clock.utcnow()
        return booking

    booking = run_in_transaction(db, operation, description=f"valor de frete do transporte {transporte_id}")
    db.refresh(booking)
    return booking


def cancel(db: Session, transporte_id: int, *, motivo: str | None = None) -> PedidoItemTransporte:
    """Cancelamento lógico; libera a quantidade para novos agendamentos."""

    def operation() -> PedidoItemTransporte:
        now = clock.utcnow()
        booking = _get_booking(db, transporte_id)
        if booking.cancelado:
            raise DomainError(
                ErrorKind.invalid_operation,
                f"Transporte {transporte_id} já está cancelado.",
            )
        item = _load_item(db, booking.pedido_item_id, for_update=True)

        booking.cancelado = True
        booking.cancelado_em = now
        booking.motivo_cancelamento = (motivo or "").strip() or None
        booking.updated_at = now
        db.flush()

        item.quantidade_agendada = _quantidade_ativa(db, item.id)
        item.updated_at = now
        return booking

    booking = run_in_transaction(db, operation, description=f"cancelamento do transporte {transporte_id}")
    db.refresh(booking)
    logger.info("Transporte %s cancelado", transporte_id)
    return booking


def validate_batch(db: Session, solicitacoes: Iterable[SolicitacaoAgendamento]) -> ValidacaoAgendamentos:
    """
    Simula todas as solicitações, cumulativamente, contra os agendamentos
    atuais. Trava os itens em ordem de id e não grava nada.
    """
    solicitacoes = list(solicitacoes)
    if not solicitacoes:
        return ValidacaoAgendamentos(valido=True)

    now = clock.utcnow()
    resultados: list[ResultadoSolicitacao] = []
    try:
        itens: dict[int, PedidoItem | None] = {}
        ocupado: dict[int, Decimal] = {}
        for item_id in sorted({s.pedido_item_id for s in solicitacoes}):
            item = (
                db.query(PedidoItem)
                .filter(PedidoItem.id == item_id)
                .with_for_update()
                .first()
            )
            itens[item_id] = item
            if item is not None:
                ocupado[item_id] = _quantidade_ativa(db, item_id)

        for indice, s in enumerate(solicitacoes):
            item = itens[s.pedido_item_id]
            try:
                if item is None:
                    raise not_found("Item de pedido", s.pedido_item_id)
                quantidade = Decimal(str(s.quantidade))
                if quantidade <= 0:
                    raise DomainError(ErrorKind.validation_error, "Quantidade deve ser maior que zero.")
                _ensure_pedido_aceito(item.pedido)
                _validate_data(s.data_agendamento, now)
                _ensure_disponivel(item, ocupado[item.id], quantidade)
            except DomainError as e:
                resultados.append(ResultadoSolicitacao(indice, s.pedido_item_id, False, e.description))
                continue
            ocupado[item.id] += quantidade
            resultados.append(ResultadoSolicitacao(indice, s.pedido_item_id, True))
    finally:
        db.rollback()

    erros = [f"Solicitação {r.indice} (item {r.pedido_item_id}): {r.erro}" for r in resultados if not r.valido]
    return ValidacaoAgendamentos(valido=not erros, resultados=resultados, erros=erros)


def get_booking(db: Session, transporte_id: int) -> PedidoItemTransporte:
    return _get_booking(db, transporte_id)


def list_order_bookings(
    db: Session,
    pedido_id: int,
    *,
    incluir_cancelados: bool = False,
) -> list[PedidoItemTransporte]:
    get_pedido(db, pedido_id)
    q = (
        db.query(PedidoItemTransporte)
        .join(PedidoItem, PedidoItem.id == PedidoItemTransporte.pedido_item_id)
        .filter(PedidoItem.pedido_id == pedido_id)
    )
    if not incluir_cancelados:
        q = q.filter(PedidoItemTransporte.cancelado.is_(False))
    return q.order_by(PedidoItemTransporte.data_agendamento, PedidoItemTransporte.id).all()


def transport_summary(db: Session, pedido_id: int) -> ResumoTransporte:
    """Totais de transporte do pedido; cancelados ficam fora."""
    pedido = get_pedido(db, pedido_id)
    now = clock.utcnow()

    ativos = [t for item in pedido.itens for t in item.transportes if not t.cancelado]
    futuros = sorted(t.data_agendamento for t in ativos if t.data_agendamento > now)

    return ResumoTransporte(
        pedido_id=pedido.id,
        total_itens=len(pedido.itens),
        itens_com_transporte=sum(1 for item in pedido.itens if any(not t.cancelado for t in item.transportes)),
        total_transportes=len(ativos),
        transportes_agendados=len(futuros),
        quantidade_total_agendada=sum((Decimal(str(t.quantidade)) for t in ativos), Decimal("0")),
        peso_total=sum((Decimal(str(t.peso_total or 0)) for t in ativos), Decimal("0")),
        volume_total=sum((Decimal(str(t.volume_total or 0)) for t in ativos), Decimal("0")),
        valor_frete_total=money(sum((Decimal(str(t.valor_frete or 0)) for t in ativos), Decimal("0"))),
        proximo_agendamento=futuros[0] if futuros else None,
    )
