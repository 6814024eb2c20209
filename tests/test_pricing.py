from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from app.core.errors import DomainError, ErrorKind
from app.db.types import EstruturaPrecos, EstruturaPrecosType, RestricaoMunicipios, parse_restricao
from app.models import Catalogo, CatalogoItem, Combo, ComboCategoriaDesconto, StatusCombo
from app.services import combo_service, pricing_service
from app.services.pricing_service import ProdutorContexto

AGORA = datetime(2026, 3, 1, 12, 0, 0)


def _catalogo(**kw):
    defaults = dict(
        id=1,
        ativo=True,
        data_inicio=AGORA - timedelta(days=10),
        data_fim=AGORA + timedelta(days=10),
    )
    defaults.update(kw)
    return Catalogo(**defaults)


def _item(faixas=None, preco_base=None, ativo=True):
    estrutura = EstruturaPrecos(faixas=faixas) if faixas is not None else EstruturaPrecos()
    return CatalogoItem(
        catalogo_id=1,
        produto_id=7,
        estrutura_precos=estrutura,
        preco_base=preco_base,
        ativo=ativo,
    )


FAIXAS = [
    {"minimo": "1", "maximo": "10", "preco": "100"},
    {"minimo": "10", "maximo": "50", "preco": "90"},
    {"minimo": "50", "maximo": None, "preco": "80"},
]

CONTEXTO = ProdutorContexto(produtor_id=1, hectares=Decimal("80"), municipio_id=123)


def _combo(**kw):
    defaults = dict(
        id=1,
        fornecedor_id=1,
        nome="Combo",
        hectare_minimo=Decimal("50"),
        hectare_maximo=Decimal("500"),
        data_inicio=AGORA - timedelta(days=1),
        data_fim=AGORA + timedelta(days=30),
        status=StatusCombo.ativo,
        restricoes_municipios=RestricaoMunicipios(municipios=[123]),
    )
    defaults.update(kw)
    return Combo(**defaults)


def _desconto(id, hmin, hmax, pct="0", fixo="0", por_ha="0", ordem=0, combo_id=1):
    return ComboCategoriaDesconto(
        id=id,
        combo_id=combo_id,
        categoria_id=10,
        percentual_desconto=Decimal(pct),
        valor_desconto_fixo=Decimal(fixo),
        desconto_por_hectare=Decimal(por_ha),
        hectare_minimo=Decimal(hmin),
        hectare_maximo=Decimal(hmax),
        ativo=True,
        ordem=ordem,
    )


def test_quantidade_no_limite_da_faixa_usa_faixa_seguinte():
    res = pricing_service.resolve_price(_catalogo(), _item(FAIXAS), Decimal("10"), CONTEXTO, [], AGORA)
    assert res.unit_price == Decimal("90")
    assert res.applied_discount is None


@pytest.mark.parametrize(
    "quantidade, preco",
    [("1", "100"), ("9.999", "100"), ("10", "90"), ("49", "90"), ("50", "80"), ("10000", "80")],
)
def test_exatamente_uma_faixa_por_quantidade(quantidade, preco):
    unit, faixa = pricing_service.resolve_unit_price(_item(FAIXAS), Decimal(quantidade))
    assert unit == Decimal(preco)
    assert faixa is not None


def test_preco_nao_aumenta_ao_cruzar_faixas():
    item = _item(FAIXAS)
    precos = [pricing_service.resolve_unit_price(item, Decimal(q))[0] for q in range(1, 120)]
    assert all(a >= b for a, b in zip(precos, precos[1:]))


def test_quantidade_abaixo_da_primeira_faixa_sem_preco():
    with pytest.raises(DomainError) as exc:
        pricing_service.resolve_unit_price(_item(FAIXAS), Decimal("0.5"))
    assert exc.value.kind == ErrorKind.price_not_found


def test_sem_faixas_usa_preco_base():
    unit, faixa = pricing_service.resolve_unit_price(_item(preco_base=Decimal("42.5")), Decimal("3"))
    assert unit == Decimal("42.5")
    assert faixa is None


def test_sem_faixas_nem_preco_base():
    with pytest.raises(DomainError) as exc:
        pricing_service.resolve_unit_price(_item(), Decimal("3"))
    assert exc.value.kind == ErrorKind.price_not_found


@pytest.mark.parametrize(
    "catalogo",
    [
        _catalogo(ativo=False),
        _catalogo(data_inicio=AGORA + timedelta(days=1)),
        _catalogo(data_fim=AGORA - timedelta(seconds=1)),
    ],
)
def test_catalogo_fora_de_vigencia(catalogo):
    with pytest.raises(DomainError) as exc:
        pricing_service.resolve_price(catalogo, _item(FAIXAS), Decimal("5"), CONTEXTO, [], AGORA)
    assert exc.value.kind == ErrorKind.price_not_found


def test_catalogo_sem_data_fim_continua_vigente():
    assert pricing_service.catalog_is_current(_catalogo(data_fim=None), AGORA + timedelta(days=3650))


def test_item_inativo():
    with pytest.raises(DomainError) as exc:
        pricing_service.resolve_price(_catalogo(), _item(FAIXAS, ativo=False), Decimal("5"), CONTEXTO, [], AGORA)
    assert exc.value.kind == ErrorKind.price_not_found


def test_quantidade_nao_positiva():
    with pytest.raises(DomainError) as exc:
        pricing_service.resolve_price(_catalogo(), _item(FAIXAS), Decimal("0"), CONTEXTO, [], AGORA)
    assert exc.value.kind == ErrorKind.validation_error


def test_desconto_mais_rico_entre_percentual_e_fixo():
    # 20 x 90 = 1800; 10% = 180 < fixo 250
    d = _desconto(1, "50", "500", pct="10", fixo="250")
    res = pricing_service.resolve_price(_catalogo(), _item(FAIXAS), Decimal("20"), CONTEXTO, [d], AGORA)
    assert res.applied_discount.tipo == "VALOR_FIXO"
    assert res.valores(Decimal("20")) == (Decimal("1800.00"), Decimal("250.00"), Decimal("1550.00"))


def test_desconto_nunca_maior_que_valor_bruto():
    d = _desconto(1, "50", "500", fixo="99999")
    res = pricing_service.resolve_price(_catalogo(), _item(FAIXAS), Decimal("2"), CONTEXTO, [d], AGORA)
    total, desconto, final = res.valores(Decimal("2"))
    assert desconto == total
    assert final == Decimal("0.00")


def test_desconto_mais_especifico_vence():
    amplo = _desconto(1, "50", "500", pct="20", ordem=0)
    estreito = _desconto(2, "60", "100", pct="5", ordem=1)
    assert pricing_service.pick_discount([amplo, estreito]) is estreito


def test_empate_de_faixa_decide_pela_ordem_de_declaracao():
    primeiro = _desconto(5, "50", "100", pct="5", ordem=0)
    segundo = _desconto(3, "50", "100", pct="15", ordem=1)
    assert pricing_service.pick_discount([segundo, primeiro]) is primeiro


def test_combo_elegivel_por_area_e_municipio():
    combo = _combo()
    assert combo_service.is_eligible(combo, 1, Decimal("80"), 123, AGORA) is True
    assert combo_service.is_eligible(combo, 1, Decimal("40"), 123, AGORA) is False


def test_combo_fora_do_territorio():
    assert combo_service.is_eligible(_combo(), 1, Decimal("80"), 999, AGORA) is False
    assert combo_service.is_eligible(_combo(), 1, Decimal("80"), None, AGORA) is False


def test_combo_sem_restricao_de_territorio():
    combo = _combo(restricoes_municipios=None)
    assert combo_service.is_eligible(combo, 1, Decimal("80"), None, AGORA) is True


def test_combo_inativo_ou_fora_da_vigencia():
    assert not combo_service.is_eligible(_combo(status=StatusCombo.inativo), 1, Decimal("80"), 123, AGORA)
    assert not combo_service.is_eligible(_combo(), 1, Decimal("80"), 123, AGORA + timedelta(days=31))


def test_limites_da_faixa_de_hectares_sao_inclusivos():
    combo = _combo()
    assert combo_service.is_eligible(combo, 1, Decimal("50"), 123, AGORA)
    assert combo_service.is_eligible(combo, 1, Decimal("500"), 123, AGORA)


def test_desconto_fora_da_faixa_do_combo_e_invalido():
    combo = _combo()
    combo.descontos.append(_desconto(1, "10", "600", pct="5"))
    with pytest.raises(DomainError) as exc:
        combo_service.check_combo_invariants(combo)
    assert exc.value.kind == ErrorKind.validation_error


@pytest.mark.parametrize(
    "faixas",
    [
        [{"minimo": "0", "maximo": "10", "preco": "1"}, {"minimo": "5", "maximo": "20", "preco": "1"}],
        [{"minimo": "0", "maximo": None, "preco": "1"}, {"minimo": "10", "maximo": "20", "preco": "1"}],
        [{"minimo": "10", "maximo": "5", "preco": "1"}],
    ],
)
def test_tabela_de_faixas_malformada_rejeitada_na_leitura(faixas):
    tipo = EstruturaPrecosType()
    with pytest.raises(DomainError) as exc:
        tipo.process_result_value({"faixas": faixas}, None)
    assert exc.value.kind == ErrorKind.price_not_found


def test_tabela_de_faixas_nula_vira_estrutura_vazia():
    assert EstruturaPrecosType().process_result_value(None, None).faixas == []


@pytest.mark.parametrize("valor", [None, [], {"tipo": "irrestrito"}])
def test_formas_de_territorio_irrestrito(valor):
    assert parse_restricao(valor).permite(None)
