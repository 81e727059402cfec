import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock

import pytest
from fastapi.testclient import TestClient
from postgrest.exceptions import APIError

from dispatch_agent.core.config import Settings
from dispatch_agent.db import InMemoryDB, SupabaseDB
from dispatch_agent.main import create_app


CHECKIN_JSON = json.dumps({
    "call_outcome": "Arrival Confirmation",
    "driver_status": "Arrived",
    "current_location": None,
    "eta": None,
})


@pytest.fixture
def settings():
    return Settings(RETELL_FROM_NUMBER="+15550001111", RETELL_AGENT_ID="agent_override")


@pytest.fixture
def store():
    return InMemoryDB()


@pytest.fixture
def checkin_config(store):
    return store.create_agent_config({
        "name": "Check-in",
        "system_prompt": "Hi {driver_name}, re load {load_number}",
        "scenario_type": "driver_checkin",
        "settings": {},
    })


@pytest.fixture
def emergency_config(store):
    return store.create_agent_config({
        "name": "Emergency",
        "system_prompt": "Emergency line for {driver_name}",
        "scenario_type": "emergency_protocol",
        "settings": {},
    })


@pytest.fixture
def generator():
    gen = Mock()
    gen.generate = AsyncMock(return_value="Got it. Where are you right now?")
    gen.extract_json = AsyncMock(return_value=CHECKIN_JSON)
    return gen


@pytest.fixture
def provider():
    prov = Mock()
    prov.create_phone_call = AsyncMock(return_value="rc-1")
    return prov


@pytest.fixture
def client(settings, store, generator, provider):
    app = create_app(settings=settings, store=store, generator=generator, provider=provider)
    return TestClient(app)


class FakeQuery:
    """Chainable stand-in for a postgrest request builder."""

    def __init__(self, data=None, count=None, error=None):
        self.data = data
        self.count = count
        self.error = error

    def __getattr__(self, name):
        # select/eq/limit/order/insert/update/delete/range/ilike all chain
        return lambda *args, **kwargs: self

    def execute(self):
        if self.error is not None:
            raise self.error
        return SimpleNamespace(data=self.data, count=self.count)


class FakeSupabase:
    def __init__(self, **query_kwargs):
        self.query_kwargs = query_kwargs
        self.tables = []

    def table(self, name):
        self.tables.append(name)
        return FakeQuery(**self.query_kwargs)


@pytest.fixture
def postgrest_error():
    def build(code, message):
        return APIError({"code": code, "message": message, "hint": None, "details": None})
    return build


@pytest.fixture
def supabase_store():
    def build(data=None, count=None, error=None):
        return SupabaseDB(FakeSupabase(data=data, count=count, error=error))
    return build
