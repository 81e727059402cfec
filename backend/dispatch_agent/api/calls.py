from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from typing import Optional
from pydantic import ValidationError as SchemaValidationError
import json
import logging

from ..core.config import Settings
from ..core.errors import ConfigNotFound, ProviderError, RecordStoreError, ValidationError
from ..schemas.pydantic_schemas import CallLogListResponse, CallLogRead, CallStatus, CallTriggerRequest, CallTriggerResponse
from ..services.call_trigger import trigger_call
from .deps import get_app_settings, get_provider, get_store

# Set up logger
logger = logging.getLogger(__name__)

router = APIRouter()


def _failure(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


@router.post("/trigger", response_model=CallTriggerResponse)
async def trigger(
    request: Request,
    store=Depends(get_store),
    provider=Depends(get_provider),
    settings: Settings = Depends(get_app_settings),
):
    try:
        body = json.loads(await request.body())
    except ValueError as e:
        logger.error(f"JSON parsing failed: {e}")
        return _failure(400, "Invalid JSON in request body")

    try:
        payload = CallTriggerRequest.model_validate(body)
    except SchemaValidationError as e:
        return _failure(400, f"Invalid call request: {e.errors()[0].get('msg', 'invalid field')}")

    try:
        return await trigger_call(payload, store=store, provider=provider, settings=settings)
    except ValidationError as e:
        return _failure(400, str(e))
    except ConfigNotFound as e:
        return _failure(404, str(e))
    except ProviderError as e:
        return _failure(502, str(e))
    except RecordStoreError as e:
        logger.error(f"Record store error while triggering call: {e}")
        return _failure(500, str(e))
    except Exception:
        logger.exception("Error in trigger-call")
        return _failure(500, "Internal server error")


@router.get("/", response_model=CallLogListResponse)
async def list_calls(
    status: Optional[CallStatus] = None,
    driver_name: Optional[str] = None,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
    store=Depends(get_store),
):
    items, total = store.list_call_logs(
        status=status.value if status else None,
        driver_name=driver_name,
        page=page,
        page_size=page_size,
    )
    return {"items": items, "total": total, "page": page, "page_size": page_size}


@router.get("/{call_log_id}", response_model=CallLogRead)
async def get_call(call_log_id: str, store=Depends(get_store)):
    call_log = store.get_call_log(call_log_id)
    if not call_log:
        raise HTTPException(status_code=404, detail="Call not found")
    return call_log
