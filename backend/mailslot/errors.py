# mailslot/errors.py

from typing import List, Optional


class MailslotError(Exception):
    """Base for every failure that may reach a caller.

    ``public_message`` is the only text ever rendered into a response;
    diagnostic detail stays in the exception chain and the server log.
    """

    status_code = 500
    public_message = "Internal server error."

    def __init__(self, public_message: Optional[str] = None):
        if public_message is not None:
            self.public_message = public_message
        super().__init__(self.public_message)

    def extras(self) -> dict:
        return {}


# ---------- CLIENT-SIDE (4xx) ----------

class ClientInputError(MailslotError):
    status_code = 400
    public_message = "Invalid message."


class ValidationError(ClientInputError):
    EMPTY_OR_NOT_TEXT = "EmptyOrNotText"
    TOO_SHORT = "TooShort"
    TOO_LONG = "TooLong"
    TOO_SHORT_AFTER_SANITIZATION = "TooShortAfterSanitization"

    def __init__(self, code: str, public_message: str):
        self.code = code
        super().__init__(public_message)

    def extras(self) -> dict:
        return {"code": self.code}


class ThrottledError(MailslotError):
    status_code = 429

    def __init__(self, retry_after_seconds: int):
        self.retry_after_seconds = retry_after_seconds
        minutes = max(1, -(-retry_after_seconds // 60))
        super().__init__(f"Too many submissions. Please try again in {minutes} minute(s).")

    def extras(self) -> dict:
        return {"retryAfterSeconds": self.retry_after_seconds}


class VerificationFailedError(MailslotError):
    status_code = 403
    public_message = "Human verification failed, please retry."


class ModerationRejectedError(MailslotError):
    status_code = 422
    public_message = "Message contains disallowed content."

    def __init__(self, reasons: List[str]):
        self.reasons = list(reasons)
        super().__init__()

    def extras(self) -> dict:
        return {"reasons": self.reasons}


class AccessDeniedError(MailslotError):
    status_code = 401
    public_message = "Missing or invalid access key."


# ---------- SERVER-SIDE (5xx) ----------

class ModerationUnavailableError(MailslotError):
    status_code = 503
    public_message = "Content check is temporarily unavailable, please try again later."


class StorageError(MailslotError):
    status_code = 500
    public_message = "Could not access message storage."


# ---------- INTERNAL (never rendered directly) ----------

class ModerationError(Exception):
    """Failure talking to the moderation service."""

    def __init__(self, detail: str, critical: bool = True, auth_failure: bool = False):
        super().__init__(detail)
        self.critical = critical
        self.auth_failure = auth_failure


class SessionAcquisitionFailed(ModerationError):
    pass


class RelayError(Exception):
    """Relay endpoint refused or could not be reached."""
