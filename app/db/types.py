# app/db/types.py
"""
Tipos de coluna para os documentos estruturados persistidos como JSON.

A tabela de faixas de preço e as restrições de território são validadas
tanto ao gravar quanto ao LER do banco: um documento malformado nunca chega
às regras de negócio como estrutura válida.
"""
from decimal import Decimal
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator
from sqlalchemy.types import JSON, TypeDecorator

from app.core.errors import DomainError, ErrorKind


class FaixaPreco(BaseModel):
    """Faixa de quantidade [minimo, maximo) com preço unitário. maximo=None é aberta."""

    minimo: Decimal = Field(..., ge=0)
    maximo: Optional[Decimal] = None
    preco: Decimal = Field(..., ge=0)

    @model_validator(mode="after")
    def check_range(self):
        if self.maximo is not None and self.maximo <= self.minimo:
            raise ValueError(f"Faixa inválida: máximo {self.maximo} deve ser maior que mínimo {self.minimo}.")
        return self

    def contem(self, quantidade: Decimal) -> bool:
        if quantidade < self.minimo:
            return False
        return self.maximo is None or quantidade < self.maximo


class EstruturaPrecos(BaseModel):
    faixas: List[FaixaPreco] = []

    @field_validator("faixas")
    @classmethod
    def check_order(cls, faixas: List[FaixaPreco]) -> List[FaixaPreco]:
        for idx, faixa in enumerate(faixas):
            is_last = idx == len(faixas) - 1
            if faixa.maximo is None and not is_last:
                raise ValueError("Somente a última faixa pode ser aberta (sem máximo).")
            if idx > 0:
                anterior = faixas[idx - 1]
                # anterior.maximo não é None aqui (só a última pode ser aberta)
                if faixa.minimo < anterior.maximo:
                    raise ValueError(
                        f"Faixas sobrepostas ou fora de ordem: [{anterior.minimo},{anterior.maximo}) "
                        f"e [{faixa.minimo},{faixa.maximo})."
                    )
        return faixas

    def faixa_para(self, quantidade: Decimal) -> FaixaPreco | None:
        matches = [f for f in self.faixas if f.contem(quantidade)]
        # Faixas não sobrepostas: no máximo uma contém a quantidade
        return matches[0] if matches else None


class SemRestricao(BaseModel):
    tipo: Literal["irrestrito"] = "irrestrito"

    def permite(self, municipio_id: int | None) -> bool:
        return True


class RestricaoMunicipios(BaseModel):
    tipo: Literal["municipios"] = "municipios"
    municipios: List[int] = Field(..., min_length=1)

    def permite(self, municipio_id: int | None) -> bool:
        return municipio_id is not None and municipio_id in self.municipios


RestricaoTerritorio = Union[SemRestricao, RestricaoMunicipios]


def parse_restricao(value) -> RestricaoTerritorio:
    """null / lista vazia / {"tipo": "irrestrito"} significam sem restrição."""
    if value is None:
        return SemRestricao()
    if isinstance(value, (SemRestricao, RestricaoMunicipios)):
        return value
    if isinstance(value, list):
        return RestricaoMunicipios(municipios=value) if value else SemRestricao()
    if isinstance(value, dict):
        if value.get("tipo", "municipios") == "irrestrito":
            return SemRestricao()
        municipios = value.get("municipios") or []
        return RestricaoMunicipios(municipios=municipios) if municipios else SemRestricao()
    raise ValueError(f"Restrição de território não reconhecida: {value!r}")


class EstruturaPrecosType(TypeDecorator):
    impl = JSON
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if not isinstance(value, EstruturaPrecos):
            value = _load_estrutura(value)
        return value.model_dump(mode="json")

    def process_result_value(self, value, dialect):
        if value is None:
            return EstruturaPrecos()
        # Documento gravado fora das regras: o item fica sem preço resolvível
        return _load_estrutura(value, kind=ErrorKind.price_not_found)


class RestricaoTerritorioType(TypeDecorator):
    impl = JSON
    cache_ok = True

    def process_bind_param(self, value, dialect):
        restricao = _load_restricao(value)
        if isinstance(restricao, SemRestricao):
            return None
        return restricao.model_dump(mode="json")

    def process_result_value(self, value, dialect):
        return _load_restricao(value)


def _load_estrutura(value, kind: ErrorKind = ErrorKind.validation_error) -> EstruturaPrecos:
    if isinstance(value, EstruturaPrecos):
        return value
    try:
        if isinstance(value, list):
            return EstruturaPrecos(faixas=value)
        return EstruturaPrecos.model_validate(value)
    except ValidationError as e:
        raise DomainError(kind, f"Tabela de faixas de preço inválida: {e}") from e


def _load_restricao(value) -> RestricaoTerritorio:
    try:
        return parse_restricao(value)
    except (ValidationError, ValueError) as e:
        raise DomainError(ErrorKind.validation_error, f"Restrição de território inválida: {e}") from e
