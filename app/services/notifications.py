# app/services/notifications.py
import logging
from typing import Any

logger = logging.getLogger(__name__)


class Notifier:
    """
    Saída de eventos de negociação/transporte. A entrega (e-mail, push) fica
    fora deste serviço; aqui o evento é apenas registrado em log.
    """

    def notify(self, evento: str, *, pedido_id: int, **dados: Any) -> None:
        extras = " ".join(f"{k}={v}" for k, v in sorted(dados.items()) if v is not None)
        logger.info("Evento %s pedido=%s %s", evento, pedido_id, extras)


_NOTIFIER: Notifier | None = None


def get_notifier() -> Notifier:
    global _NOTIFIER
    if _NOTIFIER is None:
        _NOTIFIER = Notifier()
    return _NOTIFIER


def set_notifier(notifier: Notifier | None) -> None:
    global _NOTIFIER
    _NOTIFIER = notifier
