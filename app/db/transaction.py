# app/db/transaction.py
import logging
from typing import Callable, TypeVar

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from app.core.config import get_settings
from app.core.errors import DomainError, ErrorKind

logger = logging.getLogger(__name__)

T = TypeVar("T")


def run_in_transaction(
    db: Session,
    operation: Callable[[], T],
    *,
    description: str,
    attempts: int | None = None,
) -> T:
    """
    Executa `operation` e faz commit. Em conflito de versão otimista
    (StaleDataError) faz rollback e repete a operação a partir de uma leitura
    nova, até `attempts` vezes; depois disso vira CONCURRENCY_CONFLICT.

    Qualquer outra exceção (inclusive cancelamento) desfaz a transação inteira
    e é propagada sem retry.
    """
    if attempts is None:
        attempts = get_settings().PEDIDO_MAX_TENTATIVAS_CONCORRENCIA

    for attempt in range(1, attempts + 1):
        try:
            result = operation()
            db.commit()
        except StaleDataError:
            db.rollback()
            logger.warning(
                "Conflito de versão em %s (tentativa %s/%s)",
                description,
                attempt,
                attempts,
            )
            continue
        except BaseException:
            db.rollback()
            raise
        return result

    raise DomainError(
        ErrorKind.concurrency_conflict,
        f"Conflito de concorrência em {description}; recarregue o pedido e tente novamente.",
    )
