# app/models/proposal.py
import enum
from datetime import datetime

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from app.db.base import Base
from app.models.order import StatusCarrinho


class AcaoProposta(str, enum.Enum):
    contraproposta = "CONTRAPROPOSTA"
    aceite = "ACEITE"
    rejeicao = "REJEICAO"


class LadoAutor(str, enum.Enum):
    produtor = "PRODUTOR"
    fornecedor = "FORNECEDOR"


class Proposta(Base):
    """
    Turno imutável da negociação. Ordem do histórico: (created_at, sequencia).
    """
    __tablename__ = "propostas"
    __table_args__ = (
        UniqueConstraint("pedido_id", "sequencia", name="uq_proposta_pedido_sequencia"),
        CheckConstraint(
            "(usuario_produtor_id IS NULL) <> (usuario_fornecedor_id IS NULL)",
            name="ck_proposta_um_autor",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    pedido_id = Column(Integer, ForeignKey("pedidos.id"), nullable=False, index=True)
    sequencia = Column(Integer, nullable=False)

    acao = Column(
        Enum(
            AcaoProposta,
            name="acao_proposta",
            values_callable=lambda enum_cls: [member.value for member in enum_cls],
        ),
        nullable=False,
    )
    status_resultante = Column(
        Enum(
            StatusCarrinho,
            name="status_carrinho",
            values_callable=lambda enum_cls: [member.value for member in enum_cls],
        ),
        nullable=False,
    )
    observacao = Column(Text, nullable=True)

    usuario_produtor_id = Column(Integer, nullable=True, index=True)
    usuario_fornecedor_id = Column(Integer, nullable=True, index=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)

    pedido = relationship("Pedido", back_populates="propostas")

    @property
    def lado_autor(self) -> LadoAutor:
        return LadoAutor.produtor if self.usuario_produtor_id is not None else LadoAutor.fornecedor
