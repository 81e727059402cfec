import json
import logging
from typing import Any, Dict, Iterable, Optional

from pydantic import ValidationError as SchemaValidationError

from ..core.errors import ExtractionFailure, GenerationFailure
from ..schemas.pydantic_schemas import TranscriptTurn
from .scenarios import get_scenario

logger = logging.getLogger(__name__)

EXTRACTION_SYSTEM_PROMPT = "You are a data extraction specialist. Return only valid JSON objects as requested."
EXTRACTION_ERROR = "Failed to extract structured data"


def format_transcript(turns: Optional[Iterable[TranscriptTurn]]) -> str:
    return "\n".join(f"{t.role}: {t.content}" for t in (turns or []))


def _strip_code_fence(text: str) -> str:
    text = text.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else ""
        if text.rstrip().endswith("```"):
            text = text.rstrip()[:-3]
    return text.strip()


def parse_structured_output(raw: str, scenario_type: Optional[str]) -> Dict[str, Any]:
    """Parse model output into the scenario's schema or raise ExtractionFailure."""
    scenario = get_scenario(scenario_type)
    if scenario is None:
        raise ExtractionFailure(f"Unknown scenario type: {scenario_type!r}")
    try:
        payload = json.loads(_strip_code_fence(raw))
    except ValueError as e:
        raise ExtractionFailure(f"Model output is not valid JSON: {e}") from e
    if not isinstance(payload, dict):
        raise ExtractionFailure("Model output is not a JSON object")
    try:
        return scenario.result_model.model_validate(payload).model_dump()
    except SchemaValidationError as e:
        raise ExtractionFailure(f"Model output does not match the {scenario.scenario_type.value} schema: {e}") from e


def extraction_error_marker(transcript: str) -> Dict[str, Any]:
    return {"error": EXTRACTION_ERROR, "raw_transcript": transcript}


async def extract_structured_data(generator, transcript: str, scenario_type: Optional[str]) -> Dict[str, Any]:
    """Reduce a finished call's transcript to the scenario's structured record.

    Never raises: any provider error or unusable output yields the error
    marker so the completion path always has a value to store.
    """
    scenario = get_scenario(scenario_type)
    if scenario is None:
        logger.error(f"Cannot extract structured data for unknown scenario type {scenario_type!r}")
        return extraction_error_marker(transcript)

    try:
        raw = await generator.extract_json(
            EXTRACTION_SYSTEM_PROMPT,
            scenario.render_extraction_prompt(transcript),
            temperature=0.1,
        )
        structured = parse_structured_output(raw, scenario_type)
    except (GenerationFailure, ExtractionFailure) as e:
        logger.error(f"Error extracting structured data ({scenario_type}): {e}")
        return extraction_error_marker(transcript)
    except Exception:
        logger.exception(f"Unexpected error extracting structured data ({scenario_type})")
        return extraction_error_marker(transcript)

    logger.info(f"Extracted structured data: {structured}")
    return structured
