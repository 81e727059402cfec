"""Per-scenario call scripts and extraction schemas.

Each scenario owns its live-response instruction, its extraction instruction
and the pydantic model the extracted JSON must satisfy. Adding a scenario
means adding one entry to ``SCENARIOS``.
"""
from dataclasses import dataclass
from typing import Dict, Optional, Type

from pydantic import BaseModel

from ..schemas.pydantic_schemas import DriverCheckinData, EmergencyData, ScenarioType


@dataclass(frozen=True)
class Scenario:
    scenario_type: ScenarioType
    live_prompt: str
    extraction_prompt: str
    result_model: Type[BaseModel]

    def render_live_prompt(self, driver_name: Optional[str], load_number: Optional[str]) -> str:
        return self.live_prompt.format(driver_name=driver_name or "there", load_number=load_number or "unknown")

    def render_extraction_prompt(self, transcript: str) -> str:
        return self.extraction_prompt.replace("{transcript}", transcript)


DRIVER_CHECKIN = Scenario(
    scenario_type=ScenarioType.DRIVER_CHECKIN,
    live_prompt=(
        "You are a professional dispatch agent calling driver {driver_name} about Load #{load_number}.\n\n"
        "Your goal is to get a status update. Start with: \"Hi {driver_name}, this is Dispatch with a check call "
        "on load {load_number}. Can you give me an update on your status?\"\n\n"
        "Based on their response:\n"
        "- If driving: Ask about current location and ETA\n"
        "- If delayed: Ask about reason and new ETA\n"
        "- If arrived: Confirm arrival and get details\n\n"
        "Handle special cases:\n"
        "- Uncooperative drivers: Probe gently, end call if no response\n"
        "- Noisy environments: Ask to repeat up to 2 times\n"
        "- Emergency keywords: Immediately switch to emergency protocol\n\n"
        "Keep responses brief and professional. Use natural speech patterns."
    ),
    extraction_prompt=(
        "Analyze the following conversation transcript from a logistics check-in call and extract structured data.\n\n"
        "Return ONLY a JSON object with these exact fields:\n"
        "{\n"
        "  \"call_outcome\": \"In-Transit Update\" or \"Arrival Confirmation\",\n"
        "  \"driver_status\": \"Driving\" or \"Delayed\" or \"Arrived\",\n"
        "  \"current_location\": \"location string or null\",\n"
        "  \"eta\": \"estimated time string or null\"\n"
        "}\n\n"
        "Transcript:\n{transcript}"
    ),
    result_model=DriverCheckinData,
)

EMERGENCY_PROTOCOL = Scenario(
    scenario_type=ScenarioType.EMERGENCY_PROTOCOL,
    live_prompt=(
        "You are a dispatch agent handling an EMERGENCY call with driver {driver_name} on Load #{load_number}.\n\n"
        "Emergency detected! Immediately:\n"
        "1. Stay calm and professional\n"
        "2. Ask \"What's your exact location?\"\n"
        "3. Ask \"What type of emergency is this?\"\n"
        "4. Get essential details quickly\n"
        "5. End with \"A human dispatcher will call you back immediately. Stay safe.\"\n\n"
        "Do NOT follow normal check-in procedures. This is urgent."
    ),
    extraction_prompt=(
        "Analyze the following conversation transcript from a logistics emergency call and extract structured data.\n\n"
        "Return ONLY a JSON object with these exact fields:\n"
        "{\n"
        "  \"call_outcome\": \"Emergency Detected\" or \"Normal Call\",\n"
        "  \"emergency_type\": \"Accident\" or \"Breakdown\" or \"Medical\" or \"Other\" or null,\n"
        "  \"emergency_location\": \"location string or null\",\n"
        "  \"escalation_status\": \"Escalation Flagged\" or \"No Escalation\"\n"
        "}\n\n"
        "Transcript:\n{transcript}"
    ),
    result_model=EmergencyData,
)

SCENARIOS: Dict[ScenarioType, Scenario] = {
    DRIVER_CHECKIN.scenario_type: DRIVER_CHECKIN,
    EMERGENCY_PROTOCOL.scenario_type: EMERGENCY_PROTOCOL,
}


def get_scenario(scenario_type: Optional[str]) -> Optional[Scenario]:
    """Resolve a scenario by its wire value; unknown values resolve to None."""
    if not scenario_type:
        return None
    try:
        return SCENARIOS[ScenarioType(scenario_type)]
    except ValueError:
        return None
