# app/models/partner.py
from sqlalchemy import Boolean, Column, Integer, Numeric, String
from sqlalchemy.orm import relationship

from app.db.base import Base


class Fornecedor(Base):
    __tablename__ = "fornecedores"

    id = Column(Integer, primary_key=True, index=True)
    nome = Column(String(200), nullable=False, index=True)
    ativo = Column(Boolean, nullable=False, default=True)

    pontos_distribuicao = relationship("PontoDistribuicao", back_populates="fornecedor")


class Produtor(Base):
    __tablename__ = "produtores"

    id = Column(Integer, primary_key=True, index=True)
    nome = Column(String(200), nullable=False, index=True)

    # Área de plantio em hectares: base para elegibilidade de combos
    area_plantio_ha = Column(Numeric(12, 2), nullable=False, default=0)
    municipio_id = Column(Integer, nullable=True, index=True)

    ativo = Column(Boolean, nullable=False, default=True)
