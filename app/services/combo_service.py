# app/services/combo_service.py
import logging
from datetime import datetime
from decimal import Decimal

from sqlalchemy.orm import Session, selectinload

from app.core.errors import DomainError, ErrorKind
from app.db.types import parse_restricao
from app.models import Combo, ComboCategoriaDesconto, StatusCombo
from app.services.pricing_service import ProdutorContexto

logger = logging.getLogger(__name__)


def _dec(value) -> Decimal:
    return Decimal(str(value or 0))


def check_combo_invariants(combo: Combo) -> None:
    """Faixa de hectares, vigência e sub-faixas dos descontos dentro da faixa do combo."""
    if _dec(combo.hectare_minimo) > _dec(combo.hectare_maximo):
        raise DomainError(
            ErrorKind.validation_error,
            f"Combo {combo.id}: hectare mínimo maior que o máximo.",
        )
    if combo.data_fim < combo.data_inicio:
        raise DomainError(
            ErrorKind.validation_error,
            f"Combo {combo.id}: data fim anterior à data início.",
        )
    for desconto in combo.descontos:
        if _dec(desconto.hectare_minimo) > _dec(desconto.hectare_maximo):
            raise DomainError(
                ErrorKind.validation_error,
                f"Desconto {desconto.id} do combo {combo.id}: faixa de hectares invertida.",
            )
        if (
            _dec(desconto.hectare_minimo) < _dec(combo.hectare_minimo)
            or _dec(desconto.hectare_maximo) > _dec(combo.hectare_maximo)
        ):
            raise DomainError(
                ErrorKind.validation_error,
                f"Desconto {desconto.id} fora da faixa de hectares do combo {combo.id}.",
            )


def is_eligible(
    combo: Combo,
    produtor_id: int,
    hectare_produtor: Decimal,
    municipio_id: int | None,
    at: datetime,
) -> bool:
    if combo.status != StatusCombo.ativo:
        return False
    if not (combo.data_inicio <= at <= combo.data_fim):
        return False
    hectares = _dec(hectare_produtor)
    if not (_dec(combo.hectare_minimo) <= hectares <= _dec(combo.hectare_maximo)):
        return False
    return parse_restricao(combo.restricoes_municipios).permite(municipio_id)


def applicable_discounts(
    db: Session,
    *,
    fornecedor_id: int,
    categoria_id: int,
    contexto: ProdutorContexto,
    at: datetime,
) -> list[ComboCategoriaDesconto]:
    """
    Descontos ativos da categoria, em combos do fornecedor elegíveis para o
    produtor, cuja sub-faixa de hectares contém a área do produtor.
    """
    combos = (
        db.query(Combo)
        .options(selectinload(Combo.descontos))
        .filter(
            Combo.fornecedor_id == fornecedor_id,
            Combo.status == StatusCombo.ativo,
            Combo.data_inicio <= at,
            Combo.data_fim >= at,
        )
        .order_by(Combo.id)
        .all()
    )

    out: list[ComboCategoriaDesconto] = []
    for combo in combos:
        try:
            check_combo_invariants(combo)
        except DomainError as e:
            # Combo malformado não derruba a precificação; fica fora da disputa
            logger.warning("Combo %s ignorado: %s", combo.id, e.description)
            continue
        if not is_eligible(combo, contexto.produtor_id, contexto.hectares, contexto.municipio_id, at):
            continue
        for desconto in combo.descontos:
            if not desconto.ativo or desconto.categoria_id != categoria_id:
                continue
            if _dec(desconto.hectare_minimo) <= contexto.hectares <= _dec(desconto.hectare_maximo):
                out.append(desconto)
    return out
