from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError as SchemaValidationError
from typing import Optional
import hmac, hashlib, json
import logging

from ..core.config import Settings
from ..core.errors import MalformedWebhook
from ..schemas.pydantic_schemas import WebhookEvent
from ..services.webhook_handler import handle_webhook
from .deps import get_app_settings, get_generator, get_store

# Set up logger
logger = logging.getLogger(__name__)

router = APIRouter()


def verify_signature(request_body: bytes, signature: str, secret: Optional[str]) -> bool:
    if not secret:
        return True  # allow in local dev
    digest = hmac.new(secret.encode(), request_body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(digest, signature or "")


def parse_event(body: bytes) -> WebhookEvent:
    try:
        return WebhookEvent.model_validate(json.loads(body.decode("utf-8")))
    except (ValueError, SchemaValidationError) as e:
        raise MalformedWebhook(f"Malformed webhook body: {e}") from e


@router.post("/webhook")
async def retell_webhook(
    request: Request,
    store=Depends(get_store),
    generator=Depends(get_generator),
    settings: Settings = Depends(get_app_settings),
):
    body = await request.body()
    sig = request.headers.get("x-retell-signature", "")

    if not verify_signature(body, sig, settings.RETELL_WEBHOOK_SECRET):
        logger.warning("Webhook signature verification failed")
        raise HTTPException(status_code=401, detail="Invalid signature")

    try:
        event = parse_event(body)
    except MalformedWebhook as e:
        logger.error(f"Failed to parse webhook: {e}")
        return JSONResponse(status_code=500, content={"error": str(e)})

    call_id = event.call.call_id if event.call else None
    logger.info(f"Retell webhook received: {event.interaction_type} for call {call_id}")
    return await handle_webhook(event, store=store, generator=generator)
