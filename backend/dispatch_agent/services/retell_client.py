import httpx
from typing import Dict, Any, Optional
from uuid import uuid4
import json
import logging

from ..core.config import Settings
from ..core.errors import ProviderError

# Set up logger
logger = logging.getLogger(__name__)


class RetellClient:
    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self.api_key = settings.RETELL_API_KEY
        self.base_url = settings.RETELL_BASE_URL
        self.timeout = settings.HTTP_TIMEOUT_SECONDS
        self.transport = transport
        self.simulated = not self.api_key

        if self.simulated:
            logger.info("RetellClient initialized in simulation mode (no API key provided)")
        else:
            logger.info("RetellClient initialized with API key")

    async def create_phone_call(
        self,
        from_number: Optional[str],
        to_number: str,
        override_agent_id: Optional[str],
        metadata: Dict[str, Any],
        dynamic_variables: Dict[str, str],
    ) -> str:
        """Place an outbound call through Retell AI and return its call_id.

        Exactly one attempt is made. Non-2xx responses and transport errors
        raise ProviderError carrying the status and response body.
        """
        logger.info(f"Attempting to place call to {to_number} for call log {metadata.get('call_log_id')}")

        if self.simulated:
            call_id = f"call_simulated_{uuid4().hex}"
            logger.info(f"[SIMULATED] Call queued as {call_id}")
            return call_id

        # Validate from_number early to avoid opaque Retell 400s
        if not from_number:
            logger.error("RETELL_FROM_NUMBER is missing or empty. Set it to your Retell-assigned E.164 number (e.g., +14155550123)")
            raise ProviderError("RETELL_FROM_NUMBER missing. Set RETELL_FROM_NUMBER to your Retell phone number (E.164)")

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json"
        }
        payload: Dict[str, Any] = {
            "from_number": from_number,
            "to_number": to_number,
            "metadata": metadata,
            "retell_llm_dynamic_variables": dynamic_variables,
        }
        if override_agent_id:
            payload["override_agent_id"] = override_agent_id

        logger.debug(f"Retell API payload: {json.dumps(payload, indent=2)}")

        try:
            async with httpx.AsyncClient(transport=self.transport) as client:
                response = await client.post(
                    f"{self.base_url}/v2/create-phone-call",
                    headers=headers,
                    json=payload,
                    timeout=self.timeout
                )
        except httpx.RequestError as e:
            logger.error(f"Retell API request error: {str(e)}")
            raise ProviderError(f"Retell API request error: {str(e)}") from e

        logger.info(f"Retell API response: {response.status_code}")
        if not response.is_success:
            logger.error(f"Retell API HTTP error: {response.status_code} - {response.text}")
            raise ProviderError(
                f"Retell API error ({response.status_code}): {response.text}",
                status_code=response.status_code,
                body=response.text,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise ProviderError("Retell API returned a non-JSON body", status_code=response.status_code, body=response.text) from e
        call_id = data.get("call_id") if isinstance(data, dict) else None
        if not call_id:
            raise ProviderError("Retell API response did not include a call_id", status_code=response.status_code, body=response.text)

        logger.info(f"Retell call created: {call_id}")
        return call_id
