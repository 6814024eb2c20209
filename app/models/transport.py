# app/models/transport.py
from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    Text,
)
from sqlalchemy.orm import relationship

from app.db.base import Base


class PedidoItemTransporte(Base):
    """
    Agendamento de transporte para (parte de) um item de pedido.
    Cancelamento é lógico: a linha fica para auditoria e sai da soma de ocupação.
    """
    __tablename__ = "pedido_item_transportes"

    id = Column(Integer, primary_key=True, index=True)
    pedido_item_id = Column(Integer, ForeignKey("pedido_itens.id"), nullable=False, index=True)

    quantidade = Column(Numeric(14, 3), nullable=False)
    data_agendamento = Column(DateTime, nullable=False)
    valor_frete = Column(Numeric(14, 2), nullable=False, default=0)

    peso_total = Column(Numeric(14, 3), nullable=True)
    volume_total = Column(Numeric(14, 6), nullable=True)

    endereco_origem_id = Column(Integer, ForeignKey("enderecos.id"), nullable=True)
    endereco_destino_id = Column(Integer, ForeignKey("enderecos.id"), nullable=True)

    observacoes = Column(Text, nullable=True)
    # Detalhe do cálculo de frete + histórico de reagendamentos
    informacoes_transporte = Column(JSON, nullable=True)

    cancelado = Column(Boolean, nullable=False, default=False, index=True)
    motivo_cancelamento = Column(Text, nullable=True)
    cancelado_em = Column(DateTime, nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    pedido_item = relationship("PedidoItem", back_populates="transportes")
    endereco_origem = relationship("Endereco", foreign_keys=[endereco_origem_id])
    endereco_destino = relationship("Endereco", foreign_keys=[endereco_destino_id])
