# app/services/pricing_service.py
from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Sequence

from app.core.errors import DomainError, ErrorKind
from app.models import Catalogo, CatalogoItem, ComboCategoriaDesconto

CENTAVOS = Decimal("0.01")


def money(value) -> Decimal:
    return Decimal(str(value or 0)).quantize(CENTAVOS, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class ProdutorContexto:
    produtor_id: int
    hectares: Decimal
    municipio_id: int | None = None


@dataclass(frozen=True)
class DescontoAplicado:
    combo_id: int
    desconto_id: int
    tipo: str  # PERCENTUAL | VALOR_FIXO | POR_HECTARE
    valor: Decimal
    percentual_efetivo: Decimal


@dataclass(frozen=True)
class PriceResolution:
    unit_price: Decimal
    applied_discount: DescontoAplicado | None = None
    faixa: dict | None = field(default=None)

    def valores(self, quantidade: Decimal) -> tuple[Decimal, Decimal, Decimal]:
        """(valor_total, valor_desconto, valor_final) já arredondados."""
        valor_total = money(Decimal(str(quantidade)) * self.unit_price)
        desconto = money(self.applied_discount.valor) if self.applied_discount else Decimal("0.00")
        return valor_total, desconto, valor_total - desconto


def catalog_is_current(catalogo: Catalogo, at: datetime) -> bool:
    if not catalogo.ativo:
        return False
    if at < catalogo.data_inicio:
        return False
    return catalogo.data_fim is None or at <= catalogo.data_fim


def ensure_catalog_current(catalogo: Catalogo, at: datetime) -> None:
    if catalogo.data_fim is not None and catalogo.data_fim < catalogo.data_inicio:
        raise DomainError(
            ErrorKind.price_not_found,
            f"Catálogo {catalogo.id} com vigência inválida (fim antes do início).",
        )
    if not catalog_is_current(catalogo, at):
        raise DomainError(
            ErrorKind.price_not_found,
            f"Catálogo {catalogo.id} não está vigente em {at:%Y-%m-%d %H:%M}.",
        )


def resolve_unit_price(item: CatalogoItem, quantidade: Decimal) -> tuple[Decimal, dict | None]:
    """
    Escolhe a faixa [min, max) que contém a quantidade. Quantidade acima de
    todos os máximos finitos cai na faixa aberta do topo (se houver).
    Sem faixas, vale o preço base.
    """
    estrutura = item.estrutura_precos
    faixas = estrutura.faixas if estrutura is not None else []

    if not faixas:
        if item.preco_base is not None:
            return Decimal(str(item.preco_base)), None
        raise DomainError(
            ErrorKind.price_not_found,
            f"Produto {item.produto_id} sem faixas de preço nem preço base no catálogo {item.catalogo_id}.",
        )

    faixa = estrutura.faixa_para(quantidade)
    if faixa is None:
        raise DomainError(
            ErrorKind.price_not_found,
            f"Nenhuma faixa de preço cobre a quantidade {quantidade} do produto {item.produto_id}.",
        )
    return faixa.preco, faixa.model_dump(mode="json")


def _candidate_amounts(
    desconto: ComboCategoriaDesconto,
    valor_bruto: Decimal,
    hectares: Decimal,
) -> list[tuple[str, Decimal]]:
    pct = Decimal(str(desconto.percentual_desconto or 0))
    fixo = Decimal(str(desconto.valor_desconto_fixo or 0))
    por_ha = Decimal(str(desconto.desconto_por_hectare or 0))
    return [
        ("PERCENTUAL", valor_bruto * pct / Decimal("100")),
        ("VALOR_FIXO", fixo),
        ("POR_HECTARE", por_ha * hectares),
    ]


def pick_discount(
    descontos: Sequence[ComboCategoriaDesconto],
) -> ComboCategoriaDesconto | None:
    """
    Mais específico vence: menor sub-faixa de hectares. Empate pela ordem de
    declaração (ordem, id).
    """
    if not descontos:
        return None
    return min(
        descontos,
        key=lambda d: (
            Decimal(str(d.hectare_maximo)) - Decimal(str(d.hectare_minimo)),
            d.ordem or 0,
            d.id or 0,
        ),
    )


def apply_discount(
    desconto: ComboCategoriaDesconto | None,
    valor_bruto: Decimal,
    hectares: Decimal,
) -> DescontoAplicado | None:
    if desconto is None:
        return None
    tipo, valor = max(
        _candidate_amounts(desconto, valor_bruto, hectares),
        key=lambda candidate: candidate[1],
    )
    if valor <= 0:
        return None
    # Desconto nunca deixa a linha negativa
    valor = min(money(valor), money(valor_bruto))
    percentual = (valor / valor_bruto * Decimal("100")) if valor_bruto > 0 else Decimal("0")
    return DescontoAplicado(
        combo_id=desconto.combo_id,
        desconto_id=desconto.id,
        tipo=tipo,
        valor=valor,
        percentual_efetivo=percentual.quantize(Decimal("0.0001"), rounding=ROUND_HALF_UP),
    )


def resolve_price(
    catalogo: Catalogo,
    item: CatalogoItem,
    quantidade: Decimal,
    contexto: ProdutorContexto,
    descontos: Sequence[ComboCategoriaDesconto],
    at: datetime,
) -> PriceResolution:
    """
    Preço unitário + desconto de combo para `quantidade` do item.
    Função pura: `descontos` já vem filtrado pela elegibilidade do produtor.
    """
    quantidade = Decimal(str(quantidade))
    if quantidade <= 0:
        raise DomainError(ErrorKind.validation_error, "Quantidade deve ser maior que zero.")

    ensure_catalog_current(catalogo, at)
    if not item.ativo:
        raise DomainError(
            ErrorKind.price_not_found,
            f"Produto {item.produto_id} inativo no catálogo {catalogo.id}.",
        )

    unit_price, faixa = resolve_unit_price(item, quantidade)
    valor_bruto = money(quantidade * unit_price)
    aplicado = apply_discount(pick_discount(descontos), valor_bruto, contexto.hectares)
    return PriceResolution(unit_price=unit_price, applied_discount=aplicado, faixa=faixa)
