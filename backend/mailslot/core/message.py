# mailslot/core/message.py

"""Pending-message store with randomized, at-most-once consumption.

Neither backend offers an atomic "pick a random entry and remove it", so
``take_random`` picks a candidate, then claims it with a delete whose result
says whether *this* caller removed it. A lost claim means a concurrent caller
got there first; the whole pick-and-claim cycle is retried a bounded number of
times and then reported as empty.
"""

import logging
import random
from abc import ABC, abstractmethod
from typing import Optional

import pydantic
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from mailslot.errors import StorageError
from mailslot.infra.database import db_session
from mailslot.infra.kv import KeyValueStore
from mailslot.models.message import Message, StoredMessage

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 3


class MessageStore(ABC):

    def __init__(self, max_attempts: int = DEFAULT_MAX_ATTEMPTS):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts

    @abstractmethod
    def enqueue(self, message: Message) -> str:
        """Durably store ``message``; returns its id (generated when missing)."""

    @abstractmethod
    def take_random(self) -> Optional[Message]:
        """Remove and return one uniformly chosen pending message, or None."""

    @abstractmethod
    def count(self) -> int:
        ...


# =========================
# RELATIONAL BACKEND
# =========================

class SqlMessageStore(MessageStore):

    def __init__(self, session_factory, max_attempts: int = DEFAULT_MAX_ATTEMPTS):
        super().__init__(max_attempts)
        self._session_factory = session_factory

    def enqueue(self, message: Message) -> str:
        message = message.stamped()
        try:
            with db_session(self._session_factory) as db:
                db.add(StoredMessage.from_message(message))
        except SQLAlchemyError as e:
            logger.error("Failed to store message %s: %s", message.id, e)
            raise StorageError() from e
        return message.id

    def _pick_candidate(self, db) -> Optional[Message]:
        row = db.query(StoredMessage).order_by(func.random()).limit(1).first()
        return row.to_message() if row is not None else None

    def _claim(self, db, message_id: str) -> bool:
        deleted = (
            db.query(StoredMessage)
            .filter(StoredMessage.id == message_id)
            .delete(synchronize_session=False)
        )
        return deleted == 1

    def take_random(self) -> Optional[Message]:
        for attempt in range(1, self.max_attempts + 1):
            try:
                with db_session(self._session_factory) as db:
                    candidate = self._pick_candidate(db)
                    if candidate is None:
                        return None
                    claimed = self._claim(db, candidate.id)
            except SQLAlchemyError as e:
                logger.error("take_random failed on attempt %d: %s", attempt, e)
                raise StorageError() from e

            if claimed:
                return candidate
            logger.debug("Message %s consumed concurrently (attempt %d)", candidate.id, attempt)

        logger.warning("take_random gave up after %d contended attempts", self.max_attempts)
        return None

    def count(self) -> int:
        try:
            with db_session(self._session_factory) as db:
                return db.query(func.count(StoredMessage.id)).scalar() or 0
        except SQLAlchemyError as e:
            logger.error("Failed to count messages: %s", e)
            raise StorageError() from e


# =========================
# KEY/VALUE BACKEND
# =========================

class KeyValueMessageStore(MessageStore):
    """
    Messages stored as ``message:<id>`` JSON values.
    Selection lists the keys first, so its cost grows with the number of
    pending messages; the listing is capped at ``list_limit``.
    """

    KEY_PREFIX = "message:"

    def __init__(self, kv: KeyValueStore, max_attempts: int = DEFAULT_MAX_ATTEMPTS, list_limit: int = 1000):
        super().__init__(max_attempts)
        self.kv = kv
        self.list_limit = list_limit

    def enqueue(self, message: Message) -> str:
        message = message.stamped()
        key = self.KEY_PREFIX + message.id
        if not self.kv.put_if_absent(key, message.model_dump_json(by_alias=True)):
            logger.error("Refusing to overwrite pending message %s", message.id)
            raise StorageError()
        return message.id

    def take_random(self) -> Optional[Message]:
        for attempt in range(1, self.max_attempts + 1):
            keys = self.kv.list_keys(self.KEY_PREFIX, self.list_limit)
            if not keys:
                return None

            key = random.choice(keys)
            raw = self.kv.get(key)
            # Missing value or lost delete: a concurrent caller took it
            if raw is None or not self.kv.delete(key):
                logger.debug("Message key %s consumed concurrently (attempt %d)", key, attempt)
                continue

            try:
                return Message.model_validate_json(raw)
            except pydantic.ValidationError as e:
                logger.error("Discarded unreadable message %s: %s", key, e)
                raise StorageError() from e

        logger.warning("take_random gave up after %d contended attempts", self.max_attempts)
        return None

    def count(self) -> int:
        """Pending messages, capped at ``list_limit`` like the listing itself."""
        return len(self.kv.list_keys(self.KEY_PREFIX, self.list_limit))
