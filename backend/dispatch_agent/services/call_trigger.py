import logging
from typing import Any, Dict

from ..core.config import Settings
from ..core.errors import ConfigNotFound, ProviderError, RecordStoreError, ValidationError
from ..db import utc_now
from ..schemas.pydantic_schemas import CallStatus, CallTriggerRequest

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("agent_config_id", "driver_name", "driver_phone", "load_number")


def render_script(template: str, driver_name: str, load_number: str) -> str:
    # Literal token replacement; any other placeholder is left untouched
    return (template or "").replace("{driver_name}", driver_name).replace("{load_number}", load_number)


def validate_trigger_request(payload: CallTriggerRequest) -> None:
    missing = [f for f in REQUIRED_FIELDS if not (getattr(payload, f) or "").strip()]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")


async def trigger_call(payload: CallTriggerRequest, *, store, provider, settings: Settings) -> Dict[str, Any]:
    """Create a Call Log and place exactly one outbound call for it.

    The log is written in ``initiated`` before the provider is contacted so an
    early webhook can already be correlated through ``call_log_id`` metadata.
    """
    validate_trigger_request(payload)
    logger.info(f"Triggering call for driver {payload.driver_name} about load {payload.load_number}")

    agent_config = store.get_agent_config(payload.agent_config_id)
    if not agent_config:
        raise ConfigNotFound(payload.agent_config_id)

    call_log = store.create_call_log({
        "agent_config_id": payload.agent_config_id,
        "driver_name": payload.driver_name,
        "driver_phone": payload.driver_phone,
        "load_number": payload.load_number,
        "call_status": CallStatus.INITIATED,
        "started_at": utc_now(),
    })
    call_log_id = str(call_log["id"])
    logger.info(f"Created call log {call_log_id}")

    scenario_type = agent_config.get("scenario_type")
    script = render_script(agent_config.get("system_prompt"), payload.driver_name, payload.load_number)

    try:
        provider_call_id = await provider.create_phone_call(
            from_number=settings.RETELL_FROM_NUMBER,
            to_number=payload.driver_phone,
            override_agent_id=settings.RETELL_AGENT_ID,
            metadata={
                "call_log_id": call_log_id,
                "driver_name": payload.driver_name,
                "load_number": payload.load_number,
                "scenario_type": scenario_type,
            },
            dynamic_variables={
                "driver_name": payload.driver_name,
                "load_number": payload.load_number,
                "agent_prompt": script,
            },
        )
    except ProviderError:
        logger.error(f"Provider rejected call for call log {call_log_id}")
        if settings.MARK_FAILED_ON_PROVIDER_ERROR:
            try:
                store.update_call_log(call_log_id, {"call_status": CallStatus.FAILED, "completed_at": utc_now()})
            except RecordStoreError as e:
                logger.error(f"Could not mark call log {call_log_id} as failed: {e}")
        raise

    try:
        store.update_call_log(call_log_id, {
            "provider_call_id": provider_call_id,
            "call_status": CallStatus.IN_PROGRESS,
        })
    except RecordStoreError as e:
        # The call is already placed, so the trigger still reports success
        logger.error(f"Call {provider_call_id} placed but call log {call_log_id} was not updated: {e}")

    return {
        "success": True,
        "call_id": provider_call_id,
        "call_log_id": call_log_id,
        "message": f"Call initiated to {payload.driver_name} about Load #{payload.load_number}",
    }
