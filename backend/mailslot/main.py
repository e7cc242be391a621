# mailslot/main.py

import logging

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded

from mailslot import __version__
from mailslot.api import messages, submit
from mailslot.api.deps import get_message_store
from mailslot.api.limits import limiter
from mailslot.config import CORS_ORIGINS
from mailslot.core.message import MessageStore
from mailslot.errors import ClientInputError, MailslotError, ThrottledError
from mailslot.utils.logger import setup_logger

setup_logger()
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Mailslot Backend",
    version=__version__,
    description="Anonymous single-use mailbox: moderated submission, random one-shot retrieval",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=False,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)

# Request throttling
app.state.limiter = limiter


@app.exception_handler(MailslotError)
def mailslot_error_handler(request: Request, exc: MailslotError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %r", request.method, request.url.path, exc.__cause__ or exc)
    headers = None
    if isinstance(exc, ThrottledError):
        headers = {"Retry-After": str(exc.retry_after_seconds)}
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.public_message, **exc.extras()},
        headers=headers,
    )


@app.exception_handler(RequestValidationError)
def request_validation_handler(request: Request, exc: RequestValidationError):
    # Malformed body or wrong field types; the details echo caller input, so they stay in the log
    logger.info("Rejected malformed request to %s: %s", request.url.path, exc.errors())
    return mailslot_error_handler(request, ClientInputError())


@app.exception_handler(RateLimitExceeded)
def request_limit_handler(request: Request, exc: RateLimitExceeded):
    retry_after = exc.limit.limit.get_expiry()
    return JSONResponse(
        status_code=429,
        content={"success": False, "message": "Too many requests, please slow down."},
        headers={"Retry-After": str(retry_after)},
    )


@app.exception_handler(Exception)
def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"success": False, "message": "Internal server error."},
    )


# Register routers
app.include_router(submit.router, tags=["Submit"])
app.include_router(messages.router, tags=["Messages"])


@app.get("/health")
def health_check(store: MessageStore = Depends(get_message_store)):
    return {"status": "ok", "pending": store.count()}
