from fastapi import APIRouter, Depends, HTTPException
from typing import List
from ..schemas.pydantic_schemas import AgentConfigCreate, AgentConfigRead, AgentConfigUpdate
from .deps import get_store

router = APIRouter()

@router.get("/", response_model=List[AgentConfigRead])
async def list_configs(store=Depends(get_store)):
    return store.list_agent_configs()

@router.get("/{config_id}", response_model=AgentConfigRead)
async def get_config(config_id: str, store=Depends(get_store)):
    cfg = store.get_agent_config(config_id)
    if not cfg:
        raise HTTPException(status_code=404, detail="Agent config not found")
    return cfg

@router.post("/", response_model=AgentConfigRead, status_code=201)
async def create_config(body: AgentConfigCreate, store=Depends(get_store)):
    return store.create_agent_config(body)

@router.put("/{config_id}", response_model=AgentConfigRead)
async def update_config(config_id: str, body: AgentConfigUpdate, store=Depends(get_store)):
    updated = store.update_agent_config(config_id, body)
    if not updated:
        raise HTTPException(status_code=404, detail="Agent config not found")
    return updated

@router.delete("/{config_id}")
async def delete_config(config_id: str, store=Depends(get_store)):
    ok = store.delete_agent_config(config_id)
    if not ok:
        raise HTTPException(status_code=404, detail="Agent config not found")
    return {"deleted": True}
