import logging
from typing import Any, Dict, Optional

from ..core.errors import RecordStoreError
from ..db import utc_now
from ..schemas.pydantic_schemas import TERMINAL_STATUSES, CallStatus, WebhookCall, WebhookEvent
from .extraction import extract_structured_data, format_transcript
from .responder import generate_agent_response

logger = logging.getLogger(__name__)

CALL_ENDED = "call_ended"
UPDATE_ONLY = "update_only"
WEBHOOK_ACK = {"response": "Webhook received successfully"}


def _resolve_scenario_type(store, call_log: Dict[str, Any], call: WebhookCall) -> Optional[str]:
    agent_config = store.get_agent_config(call_log["agent_config_id"]) if call_log.get("agent_config_id") else None
    if agent_config and agent_config.get("scenario_type"):
        return agent_config["scenario_type"]
    # Configuration gone; fall back to what the call carried in its metadata
    if call.metadata and call.metadata.scenario_type:
        logger.warning(f"Agent config {call_log.get('agent_config_id')} not found; using scenario from call metadata")
        return call.metadata.scenario_type
    return None


def _find_call_log(store, call: WebhookCall) -> Optional[Dict[str, Any]]:
    call_log = store.get_call_log_by_provider_id(call.call_id)
    if call_log:
        return call_log
    # The in_progress update may have been late or lost; correlate through our own id
    call_log_id = call.metadata.call_log_id if call.metadata else None
    if not call_log_id:
        return None
    call_log = store.get_call_log(call_log_id)
    if not call_log:
        return None
    if call_log.get("provider_call_id") not in (None, call.call_id):
        logger.error(f"Call log {call_log_id} belongs to provider call {call_log['provider_call_id']}, not {call.call_id}")
        return None
    logger.warning(f"Matched provider call {call.call_id} to call log {call_log_id} through call metadata")
    return call_log


async def handle_call_ended(event: WebhookEvent, *, store, generator) -> None:
    """Complete the Call Log matching a finished provider call.

    Best effort: unmatched calls are dropped and store failures are logged,
    nothing is raised to the webhook sender.
    """
    call = event.call
    if call is None:
        logger.error("call_ended webhook without a call object; dropping event")
        return

    logger.info(f"Processing completed call: {call.call_id}")
    call_log = _find_call_log(store, call)
    if not call_log:
        logger.error(f"No call log found for provider call {call.call_id}; dropping event")
        return

    if call_log.get("call_status") in TERMINAL_STATUSES:
        logger.info(f"Call log {call_log['id']} already {call_log['call_status']}; ignoring duplicate call_ended")
        return

    full_transcript = format_transcript(event.transcript)
    scenario_type = _resolve_scenario_type(store, call_log, call)
    structured_data = await extract_structured_data(generator, full_transcript, scenario_type)

    fields = {
        "call_status": CallStatus.COMPLETED,
        "completed_at": utc_now(),
        "call_duration": call.call_length_seconds or 0,
        "full_transcript": full_transcript,
        "structured_data": structured_data,
    }
    if not call_log.get("provider_call_id"):
        fields["provider_call_id"] = call.call_id
    try:
        store.update_call_log(call_log["id"], fields)
    except RecordStoreError as e:
        logger.error(f"Error updating call log {call_log['id']}: {e}")
        return
    logger.info(f"Call log {call_log['id']} completed")


async def handle_webhook(event: WebhookEvent, *, store, generator) -> Dict[str, Any]:
    """Dispatch one provider event and build the synchronous reply."""
    if event.interaction_type == CALL_ENDED:
        try:
            await handle_call_ended(event, store=store, generator=generator)
        except Exception:
            logger.exception("Error in call-ended handling")
    elif event.interaction_type == UPDATE_ONLY:
        logger.info("Real-time update received")
    else:
        logger.info(f"Unhandled interaction type {event.interaction_type!r}")

    if event.call and event.call.metadata and event.call.metadata.scenario_type:
        return await generate_agent_response(generator, event)
    return dict(WEBHOOK_ACK)
