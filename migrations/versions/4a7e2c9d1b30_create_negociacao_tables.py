"""create cadastros, catalogos, combos, pedidos, propostas e transportes

Revision ID: 4a7e2c9d1b30
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = "4a7e2c9d1b30"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


STATUS_CARRINHO = (
    "EM_ABERTO",
    "ENVIADO",
    "EM_NEGOCIACAO",
    "ACEITO",
    "REJEITADO",
    "EXPIRADO",
    "CANCELADO",
)


def _enum(bind, *values: str, name: str):
    """No Postgres o tipo é criado uma vez e reaproveitado entre tabelas."""
    if bind.dialect.name == "postgresql":
        tipo = postgresql.ENUM(*values, name=name, create_type=False)
        tipo.create(bind, checkfirst=True)
        return tipo
    return sa.Enum(*values, name=name)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    ]


def upgrade() -> None:
    """Create negotiation schema."""
    bind = op.get_bind()
    inspector = sa.inspect(bind)

    status_carrinho = _enum(bind, *STATUS_CARRINHO, name="status_carrinho")
    status_combo = _enum(bind, "ATIVO", "INATIVO", name="status_combo")
    tipo_calculo_peso = _enum(bind, "PESO_NOMINAL", "PESO_CUBADO", name="tipo_calculo_peso")
    acao_proposta = _enum(bind, "CONTRAPROPOSTA", "ACEITE", "REJEICAO", name="acao_proposta")

    if not inspector.has_table("produtos"):
        op.create_table(
            "produtos",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("nome", sa.String(length=200), nullable=False),
            sa.Column("categoria_id", sa.Integer(), nullable=False),
            sa.Column("unidade_medida", sa.String(length=20), nullable=False, server_default="un"),
            sa.Column("peso_nominal", sa.Numeric(12, 4), nullable=False, server_default=sa.text("0")),
            sa.Column("volume_unitario", sa.Numeric(12, 6), nullable=False, server_default=sa.text("0")),
            sa.Column("densidade", sa.Numeric(12, 4), nullable=True),
            sa.Column("tipo_calculo_peso", tipo_calculo_peso, nullable=False, server_default="PESO_NOMINAL"),
            sa.Column("ativo", sa.Boolean(), nullable=False, server_default=sa.true()),
        )
        op.create_index("ix_produtos_nome", "produtos", ["nome"])
        op.create_index("ix_produtos_categoria_id", "produtos", ["categoria_id"])

    if not inspector.has_table("fornecedores"):
        op.create_table(
            "fornecedores",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("nome", sa.String(length=200), nullable=False),
            sa.Column("ativo", sa.Boolean(), nullable=False, server_default=sa.true()),
        )
        op.create_index("ix_fornecedores_nome", "fornecedores", ["nome"])

    if not inspector.has_table("produtores"):
        op.create_table(
            "produtores",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("nome", sa.String(length=200), nullable=False),
            sa.Column("area_plantio_ha", sa.Numeric(12, 2), nullable=False, server_default=sa.text("0")),
            sa.Column("municipio_id", sa.Integer(), nullable=True),
            sa.Column("ativo", sa.Boolean(), nullable=False, server_default=sa.true()),
        )
        op.create_index("ix_produtores_nome", "produtores", ["nome"])
        op.create_index("ix_produtores_municipio_id", "produtores", ["municipio_id"])

    if not inspector.has_table("enderecos"):
        op.create_table(
            "enderecos",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("logradouro", sa.String(length=255), nullable=True),
            sa.Column("municipio_id", sa.Integer(), nullable=True),
            sa.Column("latitude", sa.Numeric(9, 6), nullable=True),
            sa.Column("longitude", sa.Numeric(9, 6), nullable=True),
        )
        op.create_index("ix_enderecos_municipio_id", "enderecos", ["municipio_id"])

    if not inspector.has_table("pontos_distribuicao"):
        op.create_table(
            "pontos_distribuicao",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("fornecedor_id", sa.Integer(), sa.ForeignKey("fornecedores.id"), nullable=False),
            sa.Column("nome", sa.String(length=100), nullable=False),
            sa.Column("endereco_id", sa.Integer(), sa.ForeignKey("enderecos.id"), nullable=True),
            sa.Column("ativo", sa.Boolean(), nullable=False, server_default=sa.true()),
        )
        op.create_index("ix_pontos_distribuicao_fornecedor_id", "pontos_distribuicao", ["fornecedor_id"])

    if not inspector.has_table("catalogos"):
        op.create_table(
            "catalogos",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("safra_id", sa.Integer(), nullable=False),
            sa.Column(
                "ponto_distribuicao_id",
                sa.Integer(),
                sa.ForeignKey("pontos_distribuicao.id"),
                nullable=False,
            ),
            sa.Column("cultura_id", sa.Integer(), nullable=False),
            sa.Column("categoria_id", sa.Integer(), nullable=False),
            sa.Column("moeda", sa.String(length=3), nullable=False, server_default="BRL"),
            sa.Column("data_inicio", sa.DateTime(), nullable=False),
            sa.Column("data_fim", sa.DateTime(), nullable=True),
            sa.Column("ativo", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.UniqueConstraint(
                "safra_id",
                "ponto_distribuicao_id",
                "cultura_id",
                "categoria_id",
                name="uq_catalogo_safra_ponto_cultura_categoria",
            ),
            sa.CheckConstraint("data_fim IS NULL OR data_fim >= data_inicio", name="ck_catalogo_vigencia"),
        )
        for col in ("safra_id", "ponto_distribuicao_id", "cultura_id", "categoria_id"):
            op.create_index(f"ix_catalogos_{col}", "catalogos", [col])

    if not inspector.has_table("catalogo_itens"):
        op.create_table(
            "catalogo_itens",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("catalogo_id", sa.Integer(), sa.ForeignKey("catalogos.id"), nullable=False),
            sa.Column("produto_id", sa.Integer(), sa.ForeignKey("produtos.id"), nullable=False),
            sa.Column("estrutura_precos", sa.JSON(), nullable=True),
            sa.Column("preco_base", sa.Numeric(14, 4), nullable=True),
            sa.Column("ativo", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.UniqueConstraint("catalogo_id", "produto_id", name="uq_catalogo_item_produto"),
        )
        op.create_index("ix_catalogo_itens_catalogo_id", "catalogo_itens", ["catalogo_id"])
        op.create_index("ix_catalogo_itens_produto_id", "catalogo_itens", ["produto_id"])

    if not inspector.has_table("combos"):
        op.create_table(
            "combos",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("fornecedor_id", sa.Integer(), sa.ForeignKey("fornecedores.id"), nullable=False),
            sa.Column("safra_id", sa.Integer(), nullable=True),
            sa.Column("nome", sa.String(length=200), nullable=False),
            sa.Column("descricao", sa.Text(), nullable=True),
            sa.Column("hectare_minimo", sa.Numeric(12, 2), nullable=False, server_default=sa.text("0")),
            sa.Column("hectare_maximo", sa.Numeric(12, 2), nullable=False),
            sa.Column("data_inicio", sa.DateTime(), nullable=False),
            sa.Column("data_fim", sa.DateTime(), nullable=False),
            sa.Column("status", status_combo, nullable=False, server_default="ATIVO"),
            sa.Column("restricoes_municipios", sa.JSON(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
            sa.CheckConstraint("hectare_minimo <= hectare_maximo", name="ck_combo_faixa_hectare"),
            sa.CheckConstraint("data_fim >= data_inicio", name="ck_combo_vigencia"),
        )
        op.create_index("ix_combos_fornecedor_id", "combos", ["fornecedor_id"])
        op.create_index("ix_combos_safra_id", "combos", ["safra_id"])
        op.create_index("ix_combos_status", "combos", ["status"])

    if not inspector.has_table("combo_categoria_descontos"):
        op.create_table(
            "combo_categoria_descontos",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("combo_id", sa.Integer(), sa.ForeignKey("combos.id"), nullable=False),
            sa.Column("categoria_id", sa.Integer(), nullable=False),
            sa.Column("percentual_desconto", sa.Numeric(7, 4), nullable=False, server_default=sa.text("0")),
            sa.Column("valor_desconto_fixo", sa.Numeric(14, 2), nullable=False, server_default=sa.text("0")),
            sa.Column("desconto_por_hectare", sa.Numeric(14, 4), nullable=False, server_default=sa.text("0")),
            sa.Column("hectare_minimo", sa.Numeric(12, 2), nullable=False, server_default=sa.text("0")),
            sa.Column("hectare_maximo", sa.Numeric(12, 2), nullable=False),
            sa.Column("ativo", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("ordem", sa.Integer(), nullable=False, server_default=sa.text("0")),
        )
        op.create_index("ix_combo_categoria_descontos_combo_id", "combo_categoria_descontos", ["combo_id"])
        op.create_index("ix_combo_categoria_descontos_categoria_id", "combo_categoria_descontos", ["categoria_id"])

    if not inspector.has_table("pedidos"):
        op.create_table(
            "pedidos",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("produtor_id", sa.Integer(), sa.ForeignKey("produtores.id"), nullable=False),
            sa.Column("fornecedor_id", sa.Integer(), sa.ForeignKey("fornecedores.id"), nullable=False),
            sa.Column("status", status_carrinho, nullable=False, server_default="EM_ABERTO"),
            sa.Column("quantidade_itens", sa.Integer(), nullable=False, server_default=sa.text("0")),
            sa.Column("valor_bruto", sa.Numeric(14, 2), nullable=False, server_default=sa.text("0")),
            sa.Column("valor_desconto", sa.Numeric(14, 2), nullable=False, server_default=sa.text("0")),
            sa.Column("valor_total", sa.Numeric(14, 2), nullable=False, server_default=sa.text("0")),
            sa.Column("data_limite_interacao", sa.DateTime(), nullable=False),
            sa.Column("negociar_pedido", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("permite_contato", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("motivo_cancelamento", sa.Text(), nullable=True),
            sa.Column("versao", sa.Integer(), nullable=False, server_default=sa.text("1")),
            *_timestamps(),
        )
        op.create_index("ix_pedidos_produtor_id", "pedidos", ["produtor_id"])
        op.create_index("ix_pedidos_fornecedor_id", "pedidos", ["fornecedor_id"])
        op.create_index("ix_pedidos_status", "pedidos", ["status"])

    if not inspector.has_table("pedido_itens"):
        op.create_table(
            "pedido_itens",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("pedido_id", sa.Integer(), sa.ForeignKey("pedidos.id"), nullable=False),
            sa.Column("produto_id", sa.Integer(), sa.ForeignKey("produtos.id"), nullable=False),
            sa.Column("catalogo_id", sa.Integer(), sa.ForeignKey("catalogos.id"), nullable=False),
            sa.Column("quantidade", sa.Numeric(14, 3), nullable=False),
            sa.Column("preco_unitario", sa.Numeric(14, 4), nullable=False),
            sa.Column("percentual_desconto", sa.Numeric(7, 4), nullable=False, server_default=sa.text("0")),
            sa.Column("valor_desconto", sa.Numeric(14, 2), nullable=False, server_default=sa.text("0")),
            sa.Column("valor_total", sa.Numeric(14, 2), nullable=False, server_default=sa.text("0")),
            sa.Column("valor_final", sa.Numeric(14, 2), nullable=False, server_default=sa.text("0")),
            sa.Column("quantidade_agendada", sa.Numeric(14, 3), nullable=False, server_default=sa.text("0")),
            sa.Column("dados_desconto", sa.JSON(), nullable=True),
            sa.Column("observacoes", sa.Text(), nullable=True),
            sa.Column("versao", sa.Integer(), nullable=False, server_default=sa.text("1")),
            *_timestamps(),
        )
        op.create_index("ix_pedido_itens_pedido_id", "pedido_itens", ["pedido_id"])
        op.create_index("ix_pedido_itens_produto_id", "pedido_itens", ["produto_id"])
        op.create_index("ix_pedido_itens_catalogo_id", "pedido_itens", ["catalogo_id"])

    if not inspector.has_table("propostas"):
        op.create_table(
            "propostas",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("pedido_id", sa.Integer(), sa.ForeignKey("pedidos.id"), nullable=False),
            sa.Column("sequencia", sa.Integer(), nullable=False),
            sa.Column("acao", acao_proposta, nullable=False),
            sa.Column("status_resultante", status_carrinho, nullable=False),
            sa.Column("observacao", sa.Text(), nullable=True),
            sa.Column("usuario_produtor_id", sa.Integer(), nullable=True),
            sa.Column("usuario_fornecedor_id", sa.Integer(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
            sa.UniqueConstraint("pedido_id", "sequencia", name="uq_proposta_pedido_sequencia"),
            sa.CheckConstraint(
                "(usuario_produtor_id IS NULL) <> (usuario_fornecedor_id IS NULL)",
                name="ck_proposta_um_autor",
            ),
        )
        op.create_index("ix_propostas_pedido_id", "propostas", ["pedido_id"])
        op.create_index("ix_propostas_created_at", "propostas", ["created_at"])
        op.create_index("ix_propostas_usuario_produtor_id", "propostas", ["usuario_produtor_id"])
        op.create_index("ix_propostas_usuario_fornecedor_id", "propostas", ["usuario_fornecedor_id"])

    if not inspector.has_table("pedido_item_transportes"):
        op.create_table(
            "pedido_item_transportes",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("pedido_item_id", sa.Integer(), sa.ForeignKey("pedido_itens.id"), nullable=False),
            sa.Column("quantidade", sa.Numeric(14, 3), nullable=False),
            sa.Column("data_agendamento", sa.DateTime(), nullable=False),
            sa.Column("valor_frete", sa.Numeric(14, 2), nullable=False, server_default=sa.text("0")),
            sa.Column("peso_total", sa.Numeric(14, 3), nullable=True),
            sa.Column("volume_total", sa.Numeric(14, 6), nullable=True),
            sa.Column("endereco_origem_id", sa.Integer(), sa.ForeignKey("enderecos.id"), nullable=True),
            sa.Column("endereco_destino_id", sa.Integer(), sa.ForeignKey("enderecos.id"), nullable=True),
            sa.Column("observacoes", sa.Text(), nullable=True),
            sa.Column("informacoes_transporte", sa.JSON(), nullable=True),
            sa.Column("cancelado", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("motivo_cancelamento", sa.Text(), nullable=True),
            sa.Column("cancelado_em", sa.DateTime(), nullable=True),
            *_timestamps(),
        )
        op.create_index("ix_pedido_item_transportes_pedido_item_id", "pedido_item_transportes", ["pedido_item_id"])
        op.create_index("ix_pedido_item_transportes_cancelado", "pedido_item_transportes", ["cancelado"])


def downgrade() -> None:
    """Drop negotiation schema."""
    for table in (
        "pedido_item_transportes",
        "propostas",
        "pedido_itens",
        "pedidos",
        "combo_categoria_descontos",
        "combos",
        "catalogo_itens",
        "catalogos",
        "pontos_distribuicao",
        "enderecos",
        "produtores",
        "fornecedores",
        "produtos",
    ):
        op.drop_table(table)

    bind = op.get_bind()
    if bind.dialect.name != "postgresql":
        return
    for enum_name in ("acao_proposta", "status_carrinho", "status_combo", "tipo_calculo_peso"):
        postgresql.ENUM(name=enum_name).drop(bind, checkfirst=True)
