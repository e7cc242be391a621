# mailslot/core/moderation.py

"""Content moderation against an external, session-authenticated service.

The service has no API keys: a caller first loads its front page to obtain
session cookies plus an anti-forgery token, then posts candidate text with
both. The session is cached in the shared key/value store so that concurrent
requests reuse it; whichever request refreshes last wins.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import requests

from mailslot.errors import ModerationError, SessionAcquisitionFailed
from mailslot.infra.kv import KeyValueStore

logger = logging.getLogger(__name__)

SESSION_KEY = "moderation:session"

# =========================
# TOKEN EXTRACTION
# =========================

# <meta name="csrf-token" content="...">
_PRIMARY_TOKEN_PATTERN = re.compile(
    r"""<meta\s+name=["']csrf-token["']\s+content=["']([^"']+)["']""",
    re.IGNORECASE,
)
# csrfToken: "..." / csrf_token = '...' inside an inline script
_FALLBACK_TOKEN_PATTERN = re.compile(
    r"""csrf[_-]?token["']?\s*[:=]\s*["']([^"']+)["']""",
    re.IGNORECASE,
)


def extract_token(html: str) -> Optional[str]:
    """Pull the anti-forgery token out of the moderation front page."""
    for pattern in (_PRIMARY_TOKEN_PATTERN, _FALLBACK_TOKEN_PATTERN):
        match = pattern.search(html or "")
        if match:
            return match.group(1)
    return None


# =========================
# SESSION CACHE
# =========================

@dataclass(frozen=True)
class ModerationSession:
    cookies: Dict[str, str]
    csrf_token: str

    def to_json(self) -> str:
        return json.dumps({"cookies": self.cookies, "csrfToken": self.csrf_token})

    @classmethod
    def from_json(cls, raw: str) -> "ModerationSession":
        data = json.loads(raw)
        return cls(cookies=dict(data["cookies"]), csrf_token=data["csrfToken"])


class ModerationSessionCache:

    def __init__(
        self,
        kv: KeyValueStore,
        page_url: str,
        ttl_seconds: int = 1800,
        http=requests,
        timeout: float = 10,
    ):
        self.kv = kv
        self.page_url = page_url
        self.ttl_seconds = ttl_seconds
        self._http = http
        self._timeout = timeout

    def get_session(self) -> ModerationSession:
        raw = self.kv.get(SESSION_KEY)
        if raw is not None:
            try:
                return ModerationSession.from_json(raw)
            except (ValueError, KeyError, TypeError):
                logger.warning("Cached moderation session is unreadable, reacquiring")

        session = self._acquire()
        self.kv.put(SESSION_KEY, session.to_json(), ttl_seconds=self.ttl_seconds)
        return session

    def invalidate(self) -> None:
        if self.kv.delete(SESSION_KEY):
            logger.info("Moderation session invalidated")

    def _acquire(self) -> ModerationSession:
        if not self.page_url:
            raise SessionAcquisitionFailed("MODERATION_PAGE_URL is not configured")

        try:
            response = self._http.get(self.page_url, timeout=self._timeout)
        except requests.RequestException as e:
            raise SessionAcquisitionFailed(f"session page unreachable: {e}") from e

        if not 200 <= response.status_code < 300:
            raise SessionAcquisitionFailed(f"session page returned HTTP {response.status_code}")

        token = extract_token(response.text)
        if not token:
            raise SessionAcquisitionFailed("anti-forgery token not found in session page")

        cookies = requests.utils.dict_from_cookiejar(response.cookies)
        if not cookies:
            raise SessionAcquisitionFailed("session page set no cookies")

        logger.info("Acquired moderation session (%d cookies)", len(cookies))
        return ModerationSession(cookies=cookies, csrf_token=token)


# =========================
# MODERATOR
# =========================

@dataclass(frozen=True)
class ModerationVerdict:
    sensitive: bool
    reasons: List[str] = field(default_factory=list)


class ContentModerator:
    """Submits text to the moderation service and classifies the answer."""

    SUCCESS_CODES = (0, 200)

    def __init__(
        self,
        sessions: ModerationSessionCache,
        check_url: str,
        check_type: str = "text",
        reference_url: Optional[str] = None,
        http=requests,
        timeout: float = 10,
    ):
        self.sessions = sessions
        self.check_url = check_url
        self.check_type = check_type
        self.reference_url = reference_url or sessions.page_url
        self._http = http
        self._timeout = timeout

    def check(self, text: str) -> ModerationVerdict:
        """
        Raise ModerationError when no trustworthy verdict could be obtained.
        A 401/403 drops the cached session and sets ``auth_failure`` so the
        caller may retry once with a fresh one.
        """
        session = self.sessions.get_session()

        form = {
            "type": self.check_type,
            "url": self.reference_url,
            "word": text,
            "csrfToken": session.csrf_token,
        }
        try:
            response = self._http.post(
                self.check_url,
                data=form,
                cookies=session.cookies,
                headers={"X-CSRF-Token": session.csrf_token},
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            raise ModerationError(f"moderation request failed: {e}") from e

        if response.status_code in (401, 403):
            self.sessions.invalidate()
            raise ModerationError(
                f"moderation service rejected session (HTTP {response.status_code})",
                auth_failure=True,
            )
        if not 200 <= response.status_code < 300:
            raise ModerationError(f"moderation service returned HTTP {response.status_code}")

        try:
            payload = response.json()
        except ValueError as e:
            raise ModerationError("moderation response is not JSON") from e

        return self._verdict(payload)

    def _verdict(self, payload) -> ModerationVerdict:
        if not isinstance(payload, dict):
            raise ModerationError(f"unexpected moderation response: {str(payload)[:200]}")

        data = payload.get("data")
        terms = data.get("matchedTerms") if isinstance(data, dict) else None
        if payload.get("code") not in self.SUCCESS_CODES or not isinstance(terms, list):
            raise ModerationError(f"unexpected moderation response: {str(payload)[:200]}")

        reasons = []
        for term in terms:
            word = term.get("word") if isinstance(term, dict) else term
            if word:
                reasons.append(str(word))

        return ModerationVerdict(sensitive=bool(terms), reasons=reasons)
