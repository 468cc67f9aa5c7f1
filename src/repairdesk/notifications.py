from __future__ import annotations

import logging

from .domain import ServiceOrder

logger = logging.getLogger(__name__)

DEFAULT_RECIPIENT = "notificaciones@misterservicerd.com"


def new_order_message(order: ServiceOrder) -> tuple[str, str]:
    subject = f"Nueva Orden de Servicio {order.service_order_number}: {order.title}"
    when = order.start.strftime("%d/%m/%Y %H:%M") if order.start else "Por definir"
    body = "\n".join(
        [
            "NUEVA ORDEN DE SERVICIO CREADA",
            "",
            f"Orden: {order.service_order_number}",
            f"Cliente: {order.customer_name}",
            f"Teléfono: {order.customer_phone}",
            f"Dirección: {order.customer_address}",
            f"Servicio: {order.appliance_type}",
            f"Descripción de la Falla: {order.issue_description}",
            f"Estado: {order.status.value}",
            f"Fecha y Hora: {when}",
        ]
    )
    return subject, body


class OrderNotifier:
    """Announces new service orders to the office mailbox.

    There is no mail transport wired in; the message is written to the log.
    """

    def __init__(self, recipient: str = DEFAULT_RECIPIENT) -> None:
        self.recipient = recipient

    def new_order(self, order: ServiceOrder) -> None:
        subject, body = new_order_message(order)
        logger.info("Notify %s: %s\n%s", self.recipient, subject, body)
