# app/models/order.py
import enum
from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    Text,
)
from sqlalchemy.orm import relationship

from app.db.base import Base


class StatusCarrinho(str, enum.Enum):
    em_aberto = "EM_ABERTO"
    enviado = "ENVIADO"
    em_negociacao = "EM_NEGOCIACAO"
    aceito = "ACEITO"
    rejeitado = "REJEITADO"
    expirado = "EXPIRADO"
    cancelado = "CANCELADO"


STATUS_NEGOCIAVEIS = frozenset(
    {StatusCarrinho.em_aberto, StatusCarrinho.enviado, StatusCarrinho.em_negociacao}
)
STATUS_TERMINAIS = frozenset(
    {
        StatusCarrinho.aceito,
        StatusCarrinho.rejeitado,
        StatusCarrinho.expirado,
        StatusCarrinho.cancelado,
    }
)


class Pedido(Base):
    """
    Carrinho / negociação entre um produtor e um fornecedor.
    `versao` é o token de concorrência otimista: todo UPDATE confere e incrementa.
    """
    __tablename__ = "pedidos"

    id = Column(Integer, primary_key=True, index=True)

    produtor_id = Column(Integer, ForeignKey("produtores.id"), nullable=False, index=True)
    fornecedor_id = Column(Integer, ForeignKey("fornecedores.id"), nullable=False, index=True)

    status = Column(
        Enum(
            StatusCarrinho,
            name="status_carrinho",
            values_callable=lambda enum_cls: [member.value for member in enum_cls],
        ),
        nullable=False,
        default=StatusCarrinho.em_aberto,
        index=True,
    )

    quantidade_itens = Column(Integer, nullable=False, default=0)
    valor_bruto = Column(Numeric(14, 2), nullable=False, default=0)
    valor_desconto = Column(Numeric(14, 2), nullable=False, default=0)
    valor_total = Column(Numeric(14, 2), nullable=False, default=0)

    data_limite_interacao = Column(DateTime, nullable=False)
    negociar_pedido = Column(Boolean, nullable=False, default=True)
    permite_contato = Column(Boolean, nullable=False, default=True)
    motivo_cancelamento = Column(Text, nullable=True)

    versao = Column(Integer, nullable=False)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    itens = relationship(
        "PedidoItem",
        back_populates="pedido",
        cascade="all, delete-orphan",
        order_by="PedidoItem.id",
    )
    propostas = relationship(
        "Proposta",
        back_populates="pedido",
        cascade="all, delete-orphan",
        order_by="[Proposta.created_at, Proposta.sequencia]",
    )
    produtor = relationship("Produtor")
    fornecedor = relationship("Fornecedor")

    __mapper_args__ = {"version_id_col": versao}


class PedidoItem(Base):
    __tablename__ = "pedido_itens"

    id = Column(Integer, primary_key=True, index=True)
    pedido_id = Column(Integer, ForeignKey("pedidos.id"), nullable=False, index=True)
    produto_id = Column(Integer, ForeignKey("produtos.id"), nullable=False, index=True)
    catalogo_id = Column(Integer, ForeignKey("catalogos.id"), nullable=False, index=True)

    quantidade = Column(Numeric(14, 3), nullable=False)
    preco_unitario = Column(Numeric(14, 4), nullable=False)
    percentual_desconto = Column(Numeric(7, 4), nullable=False, default=0)
    valor_desconto = Column(Numeric(14, 2), nullable=False, default=0)
    valor_total = Column(Numeric(14, 2), nullable=False, default=0)
    valor_final = Column(Numeric(14, 2), nullable=False, default=0)

    # Σ das quantidades em transportes ativos (cache; fonte de verdade são os agendamentos)
    quantidade_agendada = Column(Numeric(14, 3), nullable=False, default=0)

    # Qual combo/desconto foi aplicado e com que dados do produtor
    dados_desconto = Column(JSON, nullable=True)
    observacoes = Column(Text, nullable=True)

    versao = Column(Integer, nullable=False)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    pedido = relationship("Pedido", back_populates="itens")
    produto = relationship("Produto")
    catalogo = relationship("Catalogo")
    transportes = relationship(
        "PedidoItemTransporte",
        back_populates="pedido_item",
        cascade="all, delete-orphan",
        order_by="PedidoItemTransporte.id",
    )

    __mapper_args__ = {"version_id_col": versao}
