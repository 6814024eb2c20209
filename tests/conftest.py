import os
from datetime import timedelta
from decimal import Decimal
from types import SimpleNamespace

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core import clock
from app.db.base import Base
from app.db.deps import get_db
from app.main import app
from app.models import (
    Catalogo,
    CatalogoItem,
    Combo,
    ComboCategoriaDesconto,
    Endereco,
    Fornecedor,
    PontoDistribuicao,
    Produto,
    Produtor,
    StatusCombo,
    TipoCalculoPeso,
)

CATEGORIA_FERTILIZANTES = 10
CATEGORIA_SEMENTES = 20


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def ref(db):
    """Fornecedor com ponto de distribuição, produtor, produtos, catálogo vigente e combo."""
    agora = clock.utcnow()

    origem = Endereco(logradouro="CD Rio Verde", municipio_id=5218805,
                      latitude=Decimal("-17.797900"), longitude=Decimal("-50.926400"))
    destino = Endereco(logradouro="Fazenda Boa Esperança", municipio_id=5211909,
                       latitude=Decimal("-17.881400"), longitude=Decimal("-51.714400"))
    sem_geo = Endereco(logradouro="Endereço sem coordenadas", municipio_id=5211909)

    fornecedor = Fornecedor(nome="AgroInsumos Cerrado")
    ponto = PontoDistribuicao(nome="CD Rio Verde", endereco=origem)
    fornecedor.pontos_distribuicao.append(ponto)

    outro_fornecedor = Fornecedor(nome="Outro Fornecedor")
    outro_ponto = PontoDistribuicao(nome="CD Outro", endereco=origem)
    outro_fornecedor.pontos_distribuicao.append(outro_ponto)

    produtor = Produtor(nome="Fazenda Boa Esperança", area_plantio_ha=Decimal("350"), municipio_id=5218805)
    produtor_pequeno = Produtor(nome="Sítio São João", area_plantio_ha=Decimal("40"), municipio_id=5218805)

    npk = Produto(
        nome="NPK 04-14-08",
        categoria_id=CATEGORIA_FERTILIZANTES,
        unidade_medida="saco",
        peso_nominal=Decimal("50"),
        volume_unitario=Decimal("0.040"),
        tipo_calculo_peso=TipoCalculoPeso.peso_nominal,
    )
    semente = Produto(
        nome="Semente de soja",
        categoria_id=CATEGORIA_SEMENTES,
        unidade_medida="bag",
        peso_nominal=Decimal("1000"),
        volume_unitario=Decimal("1.5"),
        densidade=Decimal("750"),
        tipo_calculo_peso=TipoCalculoPeso.peso_cubado,
    )

    catalogo = Catalogo(
        safra_id=2026,
        ponto_distribuicao=ponto,
        cultura_id=1,
        categoria_id=CATEGORIA_FERTILIZANTES,
        data_inicio=agora - timedelta(days=1),
        data_fim=agora + timedelta(days=180),
    )
    catalogo.itens.append(
        CatalogoItem(
            produto=npk,
            estrutura_precos={
                "faixas": [
                    {"minimo": "1", "maximo": "10", "preco": "100"},
                    {"minimo": "10", "maximo": "50", "preco": "90"},
                    {"minimo": "50", "maximo": None, "preco": "80"},
                ]
            },
        )
    )
    catalogo.itens.append(CatalogoItem(produto=semente, preco_base=Decimal("4200.00")))

    catalogo_outro = Catalogo(
        safra_id=2026,
        ponto_distribuicao=outro_ponto,
        cultura_id=1,
        categoria_id=CATEGORIA_FERTILIZANTES,
        data_inicio=agora - timedelta(days=1),
        data_fim=agora + timedelta(days=180),
    )
    catalogo_outro.itens.append(CatalogoItem(produto=npk, preco_base=Decimal("95")))

    catalogo_vencido = Catalogo(
        safra_id=2025,
        ponto_distribuicao=ponto,
        cultura_id=1,
        categoria_id=CATEGORIA_FERTILIZANTES,
        data_inicio=agora - timedelta(days=200),
        data_fim=agora - timedelta(days=20),
    )
    catalogo_vencido.itens.append(CatalogoItem(produto=npk, preco_base=Decimal("70")))

    db.add_all([
        sem_geo, destino, fornecedor, outro_fornecedor, produtor, produtor_pequeno,
        catalogo, catalogo_outro, catalogo_vencido,
    ])
    db.flush()

    combo = Combo(
        fornecedor_id=fornecedor.id,
        nome="Combo Safra Grande",
        hectare_minimo=Decimal("50"),
        hectare_maximo=Decimal("500"),
        data_inicio=agora - timedelta(days=1),
        data_fim=agora + timedelta(days=90),
        status=StatusCombo.ativo,
    )
    combo.descontos.append(
        ComboCategoriaDesconto(
            categoria_id=CATEGORIA_FERTILIZANTES,
            percentual_desconto=Decimal("10"),
            hectare_minimo=Decimal("50"),
            hectare_maximo=Decimal("500"),
        )
    )
    db.add(combo)
    db.flush()

    ids = SimpleNamespace(
        fornecedor_id=fornecedor.id,
        outro_fornecedor_id=outro_fornecedor.id,
        produtor_id=produtor.id,
        produtor_pequeno_id=produtor_pequeno.id,
        npk_id=npk.id,
        semente_id=semente.id,
        catalogo_id=catalogo.id,
        catalogo_outro_id=catalogo_outro.id,
        catalogo_vencido_id=catalogo_vencido.id,
        combo_id=combo.id,
        origem_id=origem.id,
        destino_id=destino.id,
        sem_geo_id=sem_geo.id,
    )
    db.commit()
    return ids


@pytest.fixture()
def open_cart(client, ref):
    def _open(produtor_id=None, **extra):
        payload = {
            "produtor_id": produtor_id or ref.produtor_id,
            "fornecedor_id": ref.fornecedor_id,
            **extra,
        }
        resp = client.post("/api/carts/", json=payload)
        assert resp.status_code == 201, resp.text
        return resp.json()

    return _open


@pytest.fixture()
def accepted_item(client, ref, open_cart):
    """Pedido aceito com um item de NPK; retorna (pedido_id, item_id)."""

    def _make(quantidade="100", produtor_id=None):
        pedido = open_cart(produtor_id=produtor_id)
        resp = client.post(
            f"/api/carts/{pedido['id']}/items",
            json={"produto_id": ref.npk_id, "catalogo_id": ref.catalogo_id, "quantidade": quantidade},
        )
        assert resp.status_code == 201, resp.text
        item_id = resp.json()["itens"][0]["id"]

        assert client.post(f"/api/carts/{pedido['id']}/submit").status_code == 200
        resp = client.post(
            f"/api/orders/{pedido['id']}/proposals",
            json={"lado_autor": "FORNECEDOR", "usuario_id": 900, "acao": "ACEITE"},
        )
        assert resp.status_code == 201, resp.text
        return pedido["id"], item_id

    return _make
