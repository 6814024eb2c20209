# app/core/errors.py
import enum


class ErrorKind(str, enum.Enum):
    validation_error = "VALIDATION_ERROR"
    invalid_argument = "INVALID_ARGUMENT"
    invalid_operation = "INVALID_OPERATION"
    expired = "EXPIRED"
    concurrency_conflict = "CONCURRENCY_CONFLICT"
    price_not_found = "PRICE_NOT_FOUND"
    calculation_error = "CALCULATION_ERROR"
    scheduling_error = "SCHEDULING_ERROR"
    entity_not_found = "ENTITY_NOT_FOUND"
    internal_error = "INTERNAL_ERROR"


HTTP_STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.validation_error: 422,
    ErrorKind.invalid_argument: 400,
    ErrorKind.invalid_operation: 400,
    ErrorKind.expired: 409,
    ErrorKind.concurrency_conflict: 409,
    ErrorKind.price_not_found: 422,
    ErrorKind.calculation_error: 422,
    ErrorKind.scheduling_error: 409,
    ErrorKind.entity_not_found: 404,
    ErrorKind.internal_error: 500,
}


class DomainError(Exception):
    """
    Violação de regra de negócio. Carrega um código estável (ErrorKind)
    e uma descrição legível; a camada HTTP traduz para {error_code, error_description}.
    """

    def __init__(self, kind: ErrorKind, description: str):
        super().__init__(description)
        self.kind = kind
        self.description = description

    @property
    def status_code(self) -> int:
        return HTTP_STATUS_BY_KIND.get(self.kind, 500)

    def to_dict(self) -> dict:
        return {"error_code": self.kind.value, "error_description": self.description}

    def __repr__(self) -> str:
        return f"DomainError({self.kind.value!r}, {self.description!r})"


def not_found(entity: str, entity_id) -> DomainError:
    return DomainError(ErrorKind.entity_not_found, f"{entity} {entity_id} não encontrado.")
