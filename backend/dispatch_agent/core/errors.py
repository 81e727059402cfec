from typing import Optional


class DispatchError(Exception):
    """Base class for errors raised by the call pipeline."""


class ValidationError(DispatchError):
    """A call trigger request is missing a required field."""


class ConfigNotFound(DispatchError):
    def __init__(self, agent_config_id: str) -> None:
        super().__init__(f"Agent configuration not found: {agent_config_id}")
        self.agent_config_id = agent_config_id


class ProviderError(DispatchError):
    """The voice-call provider rejected the call or could not be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: Optional[str] = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class MalformedWebhook(DispatchError):
    pass


class ExtractionFailure(DispatchError):
    pass


class GenerationFailure(DispatchError):
    pass


class RecordStoreError(DispatchError):
    pass


class RecordInUse(RecordStoreError):
    """The record is still referenced by other records and cannot be deleted."""
