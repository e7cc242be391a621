# mailslot/api/deps.py

"""Process-wide collaborators, built from config on first use.

Routes receive these through ``Depends``; tests swap them with
``app.dependency_overrides``.
"""

import logging
from functools import lru_cache
from typing import Optional

from mailslot import config
from mailslot.clients.turnstile import TurnstileVerifier
from mailslot.core.message import KeyValueMessageStore, MessageStore, SqlMessageStore
from mailslot.core.moderation import ContentModerator, ModerationSessionCache
from mailslot.core.rate_limiter import RateLimiter
from mailslot.infra.database import get_session_factory, init_db
from mailslot.infra.kv import InMemoryKeyValueStore, KeyValueStore, RedisKeyValueStore
from mailslot.services.delivery import DeliveryService
from mailslot.services.ingestion import IngestionPipeline
from mailslot.services.relay_service import RelayClient

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_kv_store() -> KeyValueStore:
    if config.REDIS_URL:
        return RedisKeyValueStore.from_url(config.REDIS_URL)
    logger.warning("REDIS_URL not set, using in-process key/value store (single worker only)")
    return InMemoryKeyValueStore()


@lru_cache(maxsize=1)
def get_message_store() -> MessageStore:
    if config.STORE_BACKEND == "kv":
        return KeyValueMessageStore(
            get_kv_store(),
            max_attempts=config.TAKE_RANDOM_MAX_ATTEMPTS,
            list_limit=config.KV_LIST_LIMIT,
        )
    if config.STORE_BACKEND != "sql":
        raise ValueError(f"Unknown STORE_BACKEND: {config.STORE_BACKEND!r}")

    init_db()
    return SqlMessageStore(get_session_factory(), max_attempts=config.TAKE_RANDOM_MAX_ATTEMPTS)


@lru_cache(maxsize=1)
def get_relay() -> Optional[RelayClient]:
    if not config.RELAY_API_URL:
        return None
    return RelayClient(config.RELAY_API_URL, config.RELAY_API_KEY, timeout=config.HTTP_TIMEOUT_SECONDS)


@lru_cache(maxsize=1)
def get_pipeline() -> IngestionPipeline:
    kv = get_kv_store()
    sessions = ModerationSessionCache(
        kv,
        config.MODERATION_PAGE_URL,
        ttl_seconds=config.MODERATION_SESSION_TTL_SECONDS,
        timeout=config.HTTP_TIMEOUT_SECONDS,
    )
    return IngestionPipeline(
        verifier=TurnstileVerifier(
            config.TURNSTILE_SECRET_KEY,
            config.TURNSTILE_VERIFY_URL,
            timeout=config.HTTP_TIMEOUT_SECONDS,
        ),
        rate_limiter=RateLimiter(kv, config.RATE_LIMIT_WINDOW_SECONDS),
        moderator=ContentModerator(
            sessions,
            config.MODERATION_CHECK_URL,
            check_type=config.MODERATION_CHECK_TYPE,
            timeout=config.HTTP_TIMEOUT_SECONDS,
        ),
        store=get_message_store(),
        relay=get_relay() if config.RELAY_ON_SUBMIT else None,
        moderation_auth_retries=config.MODERATION_AUTH_RETRIES,
    )


@lru_cache(maxsize=1)
def get_delivery_service() -> DeliveryService:
    return DeliveryService(get_message_store(), relay=get_relay())
