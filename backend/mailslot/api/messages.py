# mailslot/api/messages.py

from fastapi import APIRouter, Depends, Request

from mailslot.api.deps import get_delivery_service
from mailslot.api.limits import limiter, require_access_key
from mailslot.config import TAKE_NEXT_REQUEST_LIMIT
from mailslot.services.delivery import DeliveryService

router = APIRouter(prefix="/api")


@router.get("/message", dependencies=[Depends(require_access_key)])
@limiter.limit(TAKE_NEXT_REQUEST_LIMIT)
def take_next_message(
    request: Request,
    delivery: DeliveryService = Depends(get_delivery_service),
):
    """Remove one random pending message and return it (never the same one twice)."""
    result = delivery.take_next()

    if result.message is None:
        return {"success": True, "message": "No message available.", "data": None}

    body = {
        "success": True,
        "data": result.message.model_dump(mode="json", by_alias=True),
    }
    if result.relayed is not None:
        body["relayed"] = result.relayed
    return body
