# app/models/produto.py
import enum

from sqlalchemy import Boolean, Column, Enum, Integer, Numeric, String

from app.db.base import Base


class TipoCalculoPeso(str, enum.Enum):
    peso_nominal = "PESO_NOMINAL"
    peso_cubado = "PESO_CUBADO"


class Produto(Base):
    __tablename__ = "produtos"

    id = Column(Integer, primary_key=True, index=True)
    nome = Column(String(200), nullable=False, index=True)
    categoria_id = Column(Integer, nullable=False, index=True)
    unidade_medida = Column(String(20), nullable=False, default="un")

    # Dados logísticos por unidade vendida (kg, m³, kg/m³)
    peso_nominal = Column(Numeric(12, 4), nullable=False, default=0)
    volume_unitario = Column(Numeric(12, 6), nullable=False, default=0)
    densidade = Column(Numeric(12, 4), nullable=True)
    tipo_calculo_peso = Column(
        Enum(
            TipoCalculoPeso,
            name="tipo_calculo_peso",
            values_callable=lambda enum_cls: [member.value for member in enum_cls],
        ),
        nullable=False,
        default=TipoCalculoPeso.peso_nominal,
    )

    ativo = Column(Boolean, nullable=False, default=True)
