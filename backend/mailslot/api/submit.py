# mailslot/api/submit.py

from typing import Any, Optional

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, ConfigDict, Field

from mailslot.api.deps import get_pipeline
from mailslot.api.limits import client_origin, limiter, require_access_key
from mailslot.config import SUBMIT_REQUEST_LIMIT
from mailslot.services.ingestion import IngestionPipeline, SubmissionReceipt

router = APIRouter(prefix="/api")


class SubmitSchema(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    # Left untyped so a non-string reaches the validator and gets its error code
    message: Any = None
    verification_token: Optional[str] = Field(default=None, alias="verificationToken")
    turnstile_response: Optional[str] = Field(default=None, alias="cf-turnstile-response")

    @property
    def token(self) -> Optional[str]:
        return self.verification_token or self.turnstile_response


class TrustedSubmitSchema(BaseModel):
    message: Any = None


def _receipt_response(receipt: SubmissionReceipt) -> dict:
    body = {"success": True, "message": "Message received.", "id": receipt.id}
    if receipt.relayed is not None:
        body["relayed"] = receipt.relayed
        if not receipt.relayed:
            body["message"] = "Message received, but the notification could not be sent."
    return body


@router.post("/submit")
@limiter.limit(SUBMIT_REQUEST_LIMIT)
def submit_message(
    request: Request,
    payload: SubmitSchema,
    pipeline: IngestionPipeline = Depends(get_pipeline),
):
    receipt = pipeline.submit(payload.message, payload.token, client_origin(request))
    return _receipt_response(receipt)


@router.post("/openapi", dependencies=[Depends(require_access_key)])
@limiter.limit(SUBMIT_REQUEST_LIMIT)
def submit_message_with_key(
    request: Request,
    payload: TrustedSubmitSchema,
    pipeline: IngestionPipeline = Depends(get_pipeline),
):
    """Keyed submission for scripts; skips the human check, nothing else."""
    receipt = pipeline.submit_trusted(payload.message, client_origin(request))
    return _receipt_response(receipt)
