# app/models/ponto_distribuicao.py
from sqlalchemy import Boolean, Column, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import relationship

from app.db.base import Base


class Endereco(Base):
    __tablename__ = "enderecos"

    id = Column(Integer, primary_key=True, index=True)
    logradouro = Column(String(255), nullable=True)
    municipio_id = Column(Integer, nullable=True, index=True)

    # Geocodificação; sem ela não há cálculo de frete
    latitude = Column(Numeric(9, 6), nullable=True)
    longitude = Column(Numeric(9, 6), nullable=True)

    @property
    def geocodificado(self) -> bool:
        return self.latitude is not None and self.longitude is not None


class PontoDistribuicao(Base):
    __tablename__ = "pontos_distribuicao"

    id = Column(Integer, primary_key=True, index=True)
    fornecedor_id = Column(Integer, ForeignKey("fornecedores.id"), nullable=False, index=True)
    nome = Column(String(100), nullable=False)
    endereco_id = Column(Integer, ForeignKey("enderecos.id"), nullable=True)
    ativo = Column(Boolean, nullable=False, default=True)

    fornecedor = relationship("Fornecedor", back_populates="pontos_distribuicao")
    endereco = relationship("Endereco")
