# mailslot/services/relay_service.py

import logging

import requests

from mailslot.errors import RelayError
from mailslot.models.message import Message

logger = logging.getLogger(__name__)


class RelayClient:
    """Forwards a message to the configured email/SMS relay endpoint."""

    def __init__(self, endpoint: str, api_key: str, http=requests, timeout: float = 10):
        self.endpoint = endpoint
        self.api_key = api_key
        self._http = http
        self._timeout = timeout

    def send(self, message: Message) -> None:
        try:
            response = self._http.post(
                self.endpoint,
                params={"key": self.api_key},
                json={"title": message.title, "content": message.content},
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            logger.error("Relay unreachable for message %s: %s", message.id, e)
            raise RelayError(str(e)) from e

        if not 200 <= response.status_code < 300:
            logger.error(
                "Relay refused message %s (HTTP %s): %s",
                message.id, response.status_code, response.text[:200],
            )
            raise RelayError(f"HTTP {response.status_code}")

        logger.info("Relayed message %s", message.id)
