# mailslot/services/delivery.py

import logging
from dataclasses import dataclass
from typing import Optional

from mailslot.core.message import MessageStore
from mailslot.errors import RelayError
from mailslot.models.message import Message
from mailslot.services.relay_service import RelayClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeliveryResult:
    message: Optional[Message] = None
    relayed: Optional[bool] = None


class DeliveryService:
    """Hands out the next pending message, removing it from the store."""

    def __init__(self, store: MessageStore, relay: Optional[RelayClient] = None):
        self.store = store
        self.relay = relay

    def take_next(self) -> DeliveryResult:
        message = self.store.take_random()
        if message is None:
            return DeliveryResult()

        if self.relay is None:
            return DeliveryResult(message=message)

        try:
            self.relay.send(message)
        except RelayError:
            # The message is already gone from the store; it only survives in this response
            logger.warning("Message %s taken but not relayed", message.id)
            return DeliveryResult(message=message, relayed=False)
        return DeliveryResult(message=message, relayed=True)
