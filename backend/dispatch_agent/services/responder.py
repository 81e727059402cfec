import logging
import time
from typing import Any, Dict, List, Optional

from ..schemas.pydantic_schemas import ScenarioType, TranscriptTurn, WebhookEvent
from .escalation import detect_emergency_keywords
from .extraction import format_transcript
from .scenarios import SCENARIOS, Scenario, get_scenario

logger = logging.getLogger(__name__)

CONTEXT_TURNS = 5
FALLBACK_RESPONSE = "I'm having technical difficulties. Let me transfer you to a human dispatcher."


def new_response_id() -> int:
    return int(time.time() * 1000)


def _driver_reported_emergency(turns: List[TranscriptTurn]) -> bool:
    return any(detect_emergency_keywords(turn.content) for turn in turns if turn.role == "user")


def select_scenario(scenario_type: Optional[str], turns: List[TranscriptTurn]) -> Optional[Scenario]:
    """Pick the script for this turn.

    A check-in stays escalated for the rest of the call once any driver turn reports an emergency.
    """
    scenario = get_scenario(scenario_type)
    if scenario is not None and scenario.scenario_type == ScenarioType.DRIVER_CHECKIN:
        if _driver_reported_emergency(turns):
            logger.warning("Emergency keywords detected during check-in; switching to emergency protocol")
            return SCENARIOS[ScenarioType.EMERGENCY_PROTOCOL]
    return scenario


async def generate_agent_response(generator, event: WebhookEvent) -> Dict[str, Any]:
    """Produce the next agent utterance for a live call.

    Never raises. Any generation problem yields the hand-off fallback.
    """
    metadata = event.call.metadata if event.call and event.call.metadata else None
    scenario_type = metadata.scenario_type if metadata else None
    transcript = list(event.transcript or [])
    recent = transcript[-CONTEXT_TURNS:]

    scenario = select_scenario(scenario_type, transcript)
    if scenario is None:
        logger.error(f"No live-response script for scenario type {scenario_type!r}; handing off")
        return {"response": FALLBACK_RESPONSE, "response_id": new_response_id()}

    system_prompt = scenario.render_live_prompt(metadata.driver_name, metadata.load_number)
    user_message = (
        f"Current conversation context:\n{format_transcript(recent)}\n\n"
        "Generate the next appropriate response."
    )
    try:
        text = await generator.generate(system_prompt, user_message, temperature=0.7, max_tokens=150)
    except Exception as e:
        logger.error(f"Error generating agent response: {type(e).__name__}: {e}")
        return {"response": FALLBACK_RESPONSE, "response_id": new_response_id()}

    text = (text or "").strip()
    if not text:
        logger.error("Generated agent response was empty; handing off")
        text = FALLBACK_RESPONSE
    return {"response": text, "response_id": new_response_id()}
