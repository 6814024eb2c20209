# app/models/combo.py
import enum
from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from app.db.base import Base
from app.db.types import RestricaoTerritorioType


class StatusCombo(str, enum.Enum):
    ativo = "ATIVO"
    inativo = "INATIVO"


class Combo(Base):
    __tablename__ = "combos"
    __table_args__ = (
        CheckConstraint("hectare_minimo <= hectare_maximo", name="ck_combo_faixa_hectare"),
        CheckConstraint("data_fim >= data_inicio", name="ck_combo_vigencia"),
    )

    id = Column(Integer, primary_key=True, index=True)
    fornecedor_id = Column(Integer, ForeignKey("fornecedores.id"), nullable=False, index=True)
    safra_id = Column(Integer, nullable=True, index=True)

    nome = Column(String(200), nullable=False)
    descricao = Column(Text, nullable=True)

    hectare_minimo = Column(Numeric(12, 2), nullable=False, default=0)
    hectare_maximo = Column(Numeric(12, 2), nullable=False)

    data_inicio = Column(DateTime, nullable=False)
    data_fim = Column(DateTime, nullable=False)

    status = Column(
        Enum(
            StatusCombo,
            name="status_combo",
            values_callable=lambda enum_cls: [member.value for member in enum_cls],
        ),
        nullable=False,
        default=StatusCombo.ativo,
        index=True,
    )

    # NULL = sem restrição de território
    restricoes_municipios = Column(RestricaoTerritorioType, nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    descontos = relationship(
        "ComboCategoriaDesconto",
        back_populates="combo",
        cascade="all, delete-orphan",
        order_by="[ComboCategoriaDesconto.ordem, ComboCategoriaDesconto.id]",
    )


class ComboCategoriaDesconto(Base):
    __tablename__ = "combo_categoria_descontos"

    id = Column(Integer, primary_key=True, index=True)
    combo_id = Column(Integer, ForeignKey("combos.id"), nullable=False, index=True)
    categoria_id = Column(Integer, nullable=False, index=True)

    percentual_desconto = Column(Numeric(7, 4), nullable=False, default=0)
    valor_desconto_fixo = Column(Numeric(14, 2), nullable=False, default=0)
    desconto_por_hectare = Column(Numeric(14, 4), nullable=False, default=0)

    # Sub-faixa de hectares; deve caber na faixa do combo
    hectare_minimo = Column(Numeric(12, 2), nullable=False, default=0)
    hectare_maximo = Column(Numeric(12, 2), nullable=False)

    ativo = Column(Boolean, nullable=False, default=True)
    ordem = Column(Integer, nullable=False, default=0)

    combo = relationship("Combo", back_populates="descontos")
