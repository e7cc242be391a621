# mailslot/services/ingestion.py

import logging
from dataclasses import dataclass
from typing import Optional

from mailslot.clients.turnstile import TurnstileVerifier
from mailslot.core.message import MessageStore
from mailslot.core.moderation import ContentModerator, ModerationVerdict
from mailslot.core.rate_limiter import RateLimiter
from mailslot.core.security import hash_origin
from mailslot.core.validation import validate
from mailslot.errors import (
    ModerationError,
    ModerationRejectedError,
    ModerationUnavailableError,
    RelayError,
    ThrottledError,
    VerificationFailedError,
)
from mailslot.models.message import Message
from mailslot.services.relay_service import RelayClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SubmissionReceipt:
    id: str
    # None when no relay notification was attempted
    relayed: Optional[bool] = None


class IngestionPipeline:
    """
    Gates an untrusted submission and stores it.

    Order: bot check, validation, rate limit, moderation, store. The first
    failing step raises and nothing after it runs. The origin's rate-limit
    window only starts once the message is stored.
    """

    def __init__(
        self,
        verifier: TurnstileVerifier,
        rate_limiter: RateLimiter,
        moderator: ContentModerator,
        store: MessageStore,
        relay: Optional[RelayClient] = None,
        moderation_auth_retries: int = 1,
    ):
        self.verifier = verifier
        self.rate_limiter = rate_limiter
        self.moderator = moderator
        self.store = store
        self.relay = relay
        self.moderation_auth_retries = moderation_auth_retries

    def submit(self, raw, verification_token: Optional[str], origin_id: str) -> SubmissionReceipt:
        result = self.verifier.verify(verification_token, origin_id)
        if not result.success:
            raise VerificationFailedError()
        return self._ingest(raw, origin_id)

    def submit_trusted(self, raw, origin_id: str) -> SubmissionReceipt:
        """Same as submit for callers already authenticated by the access key."""
        return self._ingest(raw, origin_id)

    def _ingest(self, raw, origin_id: str) -> SubmissionReceipt:
        text = validate(raw)

        decision = self.rate_limiter.check(origin_id)
        if not decision.allowed:
            logger.info("Throttled origin %s for %ds", hash_origin(origin_id), decision.retry_after_seconds)
            raise ThrottledError(decision.retry_after_seconds)

        verdict = self._moderate(text)
        if verdict.sensitive:
            logger.info("Rejected submission from %s: %s", hash_origin(origin_id), verdict.reasons)
            raise ModerationRejectedError(verdict.reasons)

        message = Message.from_content(text).stamped()
        message_id = self.store.enqueue(message)
        self.rate_limiter.mark(origin_id)
        logger.info("Accepted message %s from %s", message_id, hash_origin(origin_id))

        return SubmissionReceipt(id=message_id, relayed=self._notify(message))

    def _moderate(self, text: str) -> ModerationVerdict:
        attempts = 1 + max(0, self.moderation_auth_retries)
        for attempt in range(1, attempts + 1):
            try:
                return self.moderator.check(text)
            except ModerationError as e:
                if e.auth_failure and attempt < attempts:
                    logger.warning("Moderation session rejected, retrying with a fresh one")
                    continue
                logger.error("Moderation unavailable (attempt %d): %s", attempt, e)
                raise ModerationUnavailableError() from e

    def _notify(self, message: Message) -> Optional[bool]:
        if self.relay is None:
            return None
        try:
            self.relay.send(message)
        except RelayError:
            # Already stored; the caller is told the notification did not go out
            return False
        return True
