# app/models/catalog.py
from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from app.db.base import Base
from app.db.types import EstruturaPrecosType


class Catalogo(Base):
    """Lista de preços com vigência para (safra, ponto de distribuição, cultura, categoria)."""

    __tablename__ = "catalogos"
    __table_args__ = (
        UniqueConstraint(
            "safra_id",
            "ponto_distribuicao_id",
            "cultura_id",
            "categoria_id",
            name="uq_catalogo_safra_ponto_cultura_categoria",
        ),
        CheckConstraint(
            "data_fim IS NULL OR data_fim >= data_inicio",
            name="ck_catalogo_vigencia",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)

    safra_id = Column(Integer, nullable=False, index=True)
    ponto_distribuicao_id = Column(
        Integer, ForeignKey("pontos_distribuicao.id"), nullable=False, index=True
    )
    cultura_id = Column(Integer, nullable=False, index=True)
    categoria_id = Column(Integer, nullable=False, index=True)
    moeda = Column(String(3), nullable=False, default="BRL")

    data_inicio = Column(DateTime, nullable=False, default=datetime.utcnow)
    data_fim = Column(DateTime, nullable=True)

    ativo = Column(Boolean, nullable=False, default=True)

    ponto_distribuicao = relationship("PontoDistribuicao")
    itens = relationship("CatalogoItem", back_populates="catalogo", cascade="all, delete-orphan")


class CatalogoItem(Base):
    __tablename__ = "catalogo_itens"
    __table_args__ = (
        UniqueConstraint("catalogo_id", "produto_id", name="uq_catalogo_item_produto"),
    )

    id = Column(Integer, primary_key=True, index=True)
    catalogo_id = Column(Integer, ForeignKey("catalogos.id"), nullable=False, index=True)
    produto_id = Column(Integer, ForeignKey("produtos.id"), nullable=False, index=True)

    # Faixas de quantidade ordenadas; validadas ao ler do banco
    estrutura_precos = Column(EstruturaPrecosType, nullable=True)
    preco_base = Column(Numeric(14, 4), nullable=True)

    ativo = Column(Boolean, nullable=False, default=True)

    catalogo = relationship("Catalogo", back_populates="itens")
    produto = relationship("Produto")
