# scripts/seed_reference_data.py
from datetime import timedelta
from decimal import Decimal

from sqlalchemy.orm import Session

from app.core import clock
from app.db.session import SessionLocal
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

"""
Seed de dados de referência para rodar a API localmente.

Edite as listas abaixo para ajustar:
- fornecedores e seus pontos de distribuição (com coordenadas)
- produtos com dados logísticos
- faixas de preço do catálogo e o combo de desconto
"""

CATEGORIA_FERTILIZANTES = 10
CATEGORIA_SEMENTES = 20

FORNECEDORES_CONFIG = [
    {
        "nome": "AgroInsumos Cerrado",
        "pontos": [
            # (nome, logradouro, municipio_id, lat, lon)
            ("CD Rio Verde", "Rod. BR-060 km 390", 5218805, "-17.797900", "-50.926400"),
        ],
    },
]

PRODUTOS_CONFIG = [
    {
        "nome": "Fertilizante NPK 04-14-08 (saco 50kg)",
        "categoria_id": CATEGORIA_FERTILIZANTES,
        "unidade_medida": "saco",
        "peso_nominal": "50",
        "volume_unitario": "0.040",
        "densidade": None,
        "tipo_calculo_peso": TipoCalculoPeso.peso_nominal,
        "faixas": [
            {"minimo": "0", "maximo": "100", "preco": "150.00"},
            {"minimo": "100", "maximo": "500", "preco": "142.00"},
            {"minimo": "500", "maximo": None, "preco": "135.00"},
        ],
    },
    {
        "nome": "Semente de soja (big bag)",
        "categoria_id": CATEGORIA_SEMENTES,
        "unidade_medida": "bag",
        "peso_nominal": "1000",
        "volume_unitario": "1.500",
        "densidade": "750",
        "tipo_calculo_peso": TipoCalculoPeso.peso_cubado,
        "faixas": [],
        "preco_base": "4200.00",
    },
]

PRODUTORES_CONFIG = [
    # (nome, hectares, municipio_id)
    ("Fazenda Boa Esperança", "350", 5218805),
    ("Sítio São João", "40", 5208707),
]


def _get_or_create_fornecedor(db: Session, config: dict) -> Fornecedor:
    fornecedor = db.query(Fornecedor).filter(Fornecedor.nome == config["nome"]).first()
    if fornecedor:
        print(f"[INFO] Já existe o fornecedor '{fornecedor.nome}' (id={fornecedor.id}), será reutilizado.")
        return fornecedor

    fornecedor = Fornecedor(nome=config["nome"], ativo=True)
    db.add(fornecedor)
    for nome, logradouro, municipio_id, lat, lon in config["pontos"]:
        endereco = Endereco(
            logradouro=logradouro,
            municipio_id=municipio_id,
            latitude=Decimal(lat),
            longitude=Decimal(lon),
        )
        fornecedor.pontos_distribuicao.append(PontoDistribuicao(nome=nome, endereco=endereco, ativo=True))
    db.flush()
    print(f"[OK] Criado fornecedor '{fornecedor.nome}'.")
    return fornecedor


def main() -> None:
    print("=== Seed de dados de referência ===")
    db: Session = SessionLocal()
    agora = clock.utcnow()
    try:
        for config in FORNECEDORES_CONFIG:
            fornecedor = _get_or_create_fornecedor(db, config)
            ponto = fornecedor.pontos_distribuicao[0]

            catalogos: dict[int, Catalogo] = {}
            for pconf in PRODUTOS_CONFIG:
                produto = db.query(Produto).filter(Produto.nome == pconf["nome"]).first()
                if produto:
                    print(f"[INFO] Já existe o produto '{produto.nome}', será omitido.")
                    continue

                produto = Produto(
                    nome=pconf["nome"],
                    categoria_id=pconf["categoria_id"],
                    unidade_medida=pconf["unidade_medida"],
                    peso_nominal=Decimal(pconf["peso_nominal"]),
                    volume_unitario=Decimal(pconf["volume_unitario"]),
                    densidade=Decimal(pconf["densidade"]) if pconf["densidade"] else None,
                    tipo_calculo_peso=pconf["tipo_calculo_peso"],
                    ativo=True,
                )
                db.add(produto)

                categoria_id = pconf["categoria_id"]
                if categoria_id not in catalogos:
                    catalogos[categoria_id] = Catalogo(
                        safra_id=2026,
                        ponto_distribuicao=ponto,
                        cultura_id=1,
                        categoria_id=categoria_id,
                        data_inicio=agora - timedelta(days=1),
                        data_fim=agora + timedelta(days=180),
                        ativo=True,
                    )
                    db.add(catalogos[categoria_id])

                db.add(
                    CatalogoItem(
                        catalogo=catalogos[categoria_id],
                        produto=produto,
                        estrutura_precos={"faixas": pconf["faixas"]} if pconf["faixas"] else None,
                        preco_base=Decimal(pconf["preco_base"]) if pconf.get("preco_base") else None,
                        ativo=True,
                    )
                )
                print(f"[OK] Criado produto '{produto.nome}' no catálogo da categoria {categoria_id}.")

            if not db.query(Combo).filter(Combo.fornecedor_id == fornecedor.id).first():
                combo = Combo(
                    fornecedor_id=fornecedor.id,
                    safra_id=2026,
                    nome="Combo Safra Grande",
                    descricao="Desconto em fertilizantes para áreas entre 100 e 1000 ha.",
                    hectare_minimo=Decimal("100"),
                    hectare_maximo=Decimal("1000"),
                    data_inicio=agora - timedelta(days=1),
                    data_fim=agora + timedelta(days=180),
                    status=StatusCombo.ativo,
                    restricoes_municipios=None,
                )
                combo.descontos.append(
                    ComboCategoriaDesconto(
                        categoria_id=CATEGORIA_FERTILIZANTES,
                        percentual_desconto=Decimal("10"),
                        hectare_minimo=Decimal("100"),
                        hectare_maximo=Decimal("1000"),
                        ativo=True,
                        ordem=0,
                    )
                )
                db.add(combo)
                print(f"[OK] Criado combo '{combo.nome}'.")

        for nome, hectares, municipio_id in PRODUTORES_CONFIG:
            if db.query(Produtor).filter(Produtor.nome == nome).first():
                print(f"[INFO] Já existe o produtor '{nome}', será omitido.")
                continue
            db.add(Produtor(nome=nome, area_plantio_ha=Decimal(hectares), municipio_id=municipio_id, ativo=True))
            print(f"[OK] Criado produtor '{nome}'.")

        db.commit()
        print("\nSeed de dados de referência concluído.\n")
    finally:
        db.close()


if __name__ == "__main__":
    main()
