# mailslot/clients/turnstile.py

import logging
from dataclasses import dataclass, field
from typing import List, Optional

import requests

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VerificationResult:
    success: bool
    error_codes: List[str] = field(default_factory=list)


class TurnstileVerifier:
    """Cloudflare Turnstile siteverify client (the pipeline's bot check)."""

    def __init__(self, secret_key: str, verify_url: str, http=requests, timeout: float = 10):
        self.secret_key = secret_key
        self.verify_url = verify_url
        self._http = http
        self._timeout = timeout

    def verify(self, token: Optional[str], origin_id: Optional[str] = None) -> VerificationResult:
        if not self.secret_key:
            logger.error("TURNSTILE_SECRET_KEY is not set; every submission will be rejected")
            return VerificationResult(False, ["missing-input-secret"])
        if not token:
            return VerificationResult(False, ["missing-input-response"])

        form = {"secret": self.secret_key, "response": token}
        if origin_id:
            form["remoteip"] = origin_id

        try:
            response = self._http.post(self.verify_url, data=form, timeout=self._timeout)
            outcome = response.json()
        except (requests.RequestException, ValueError) as e:
            logger.warning("Turnstile verification request failed: %s", e)
            return VerificationResult(False, ["verifier-unreachable"])

        if not isinstance(outcome, dict):
            logger.warning("Unexpected Turnstile response: %r", outcome)
            return VerificationResult(False, ["verifier-bad-response"])

        result = VerificationResult(
            success=outcome.get("success") is True,
            error_codes=list(outcome.get("error-codes") or []),
        )
        if not result.success:
            logger.info("Turnstile rejected token: %s", result.error_codes)
        return result
