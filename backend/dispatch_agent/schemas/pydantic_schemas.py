from enum import Enum
from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any, Literal


class ScenarioType(str, Enum):
    DRIVER_CHECKIN = "driver_checkin"
    EMERGENCY_PROTOCOL = "emergency_protocol"


class CallStatus(str, Enum):
    INITIATED = "initiated"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATUSES = (CallStatus.COMPLETED.value, CallStatus.FAILED.value)


def default_voice_settings() -> Dict[str, Any]:
    return {
        "backchanneling_enabled": True,
        "filler_words_enabled": True,
        "interruption_sensitivity": 0.7,
        "response_delay_ms": 300,
    }


# Agent configurations

class AgentConfigBase(BaseModel):
    name: str = Field(min_length=1)
    system_prompt: str = Field(min_length=1)
    scenario_type: ScenarioType = ScenarioType.DRIVER_CHECKIN
    settings: Dict[str, Any] = Field(default_factory=default_voice_settings)


class AgentConfigCreate(AgentConfigBase):
    pass


class AgentConfigUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    system_prompt: Optional[str] = Field(default=None, min_length=1)
    scenario_type: Optional[ScenarioType] = None
    settings: Optional[Dict[str, Any]] = None


class AgentConfigRead(AgentConfigBase):
    id: str
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


# Call trigger

class CallTriggerRequest(BaseModel):
    # Presence is checked by the trigger service so a missing field
    # surfaces as a ValidationError rather than a framework 422.
    agent_config_id: Optional[str] = None
    driver_name: Optional[str] = None
    driver_phone: Optional[str] = None
    load_number: Optional[str] = None


class CallTriggerResponse(BaseModel):
    success: bool = True
    call_id: str
    call_log_id: str
    message: str


class CallLogRead(BaseModel):
    id: str
    agent_config_id: str
    provider_call_id: Optional[str] = None
    driver_name: str
    driver_phone: str
    load_number: str
    call_status: CallStatus
    started_at: Optional[str] = None
    completed_at: Optional[str] = None
    call_duration: Optional[int] = None
    full_transcript: Optional[str] = None
    structured_data: Optional[Dict[str, Any]] = None
    created_at: Optional[str] = None


class CallLogListResponse(BaseModel):
    items: List[CallLogRead]
    total: int
    page: int
    page_size: int


# Provider webhooks

class TranscriptTurn(BaseModel):
    role: str
    content: str = ""


class CallMetadata(BaseModel):
    call_log_id: Optional[str] = None
    scenario_type: Optional[str] = None
    driver_name: Optional[str] = None
    load_number: Optional[str] = None


class WebhookCall(BaseModel):
    call_id: str
    call_length_seconds: Optional[int] = Field(default=None, ge=0)
    metadata: Optional[CallMetadata] = None


class WebhookEvent(BaseModel):
    interaction_type: str
    call: Optional[WebhookCall] = None
    transcript: Optional[List[TranscriptTurn]] = None


class AgentResponse(BaseModel):
    response: str
    response_id: int


# Structured extraction results

class DriverCheckinData(BaseModel):
    call_outcome: Literal["In-Transit Update", "Arrival Confirmation"]
    driver_status: Literal["Driving", "Delayed", "Arrived"]
    current_location: Optional[str] = None
    eta: Optional[str] = None


class EmergencyData(BaseModel):
    call_outcome: Literal["Emergency Detected", "Normal Call"]
    emergency_type: Optional[Literal["Accident", "Breakdown", "Medical", "Other"]] = None
    emergency_location: Optional[str] = None
    escalation_status: Literal["Escalation Flagged", "No Escalation"]
