"""HTTP-level tests for the FastAPI routes.

Run with:  pytest backend/tests/test_api.py -v
"""
import hashlib
import hmac
import json

from fastapi.testclient import TestClient

from dispatch_agent.core.config import Settings
from dispatch_agent.core.errors import ProviderError
from dispatch_agent.main import create_app


TRIGGER_BODY = {"driver_name": "Sam", "driver_phone": "+15551234567", "load_number": "789-B"}


def test_health(client):
    assert client.get("/").json() == {"status": "ok"}


# ── Call trigger ──────────────────────────────────────────────────────────────

def test_trigger_success(client, store, checkin_config):
    r = client.post("/api/calls/trigger", json={**TRIGGER_BODY, "agent_config_id": checkin_config["id"]})
    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    assert body["call_id"] == "rc-1"
    assert store.get_call_log(body["call_log_id"])["call_status"] == "in_progress"


def test_trigger_missing_field(client, store, checkin_config):
    r = client.post("/api/calls/trigger", json={"agent_config_id": checkin_config["id"], "driver_name": "Sam"})
    assert r.status_code == 400
    assert r.json()["success"] is False
    assert "driver_phone" in r.json()["error"]
    assert store.list_call_logs(None, None, 1, 20)[1] == 0


def test_trigger_invalid_json(client):
    r = client.post("/api/calls/trigger", content=b"{not json", headers={"Content-Type": "application/json"})
    assert r.status_code == 400
    assert r.json() == {"success": False, "error": "Invalid JSON in request body"}


def test_trigger_wrong_field_type(client, checkin_config):
    r = client.post("/api/calls/trigger", json={**TRIGGER_BODY, "agent_config_id": checkin_config["id"], "load_number": 789})
    assert r.status_code == 400
    assert r.json()["success"] is False


def test_trigger_unknown_config(client):
    r = client.post("/api/calls/trigger", json={**TRIGGER_BODY, "agent_config_id": "cfg-missing"})
    assert r.status_code == 404
    assert r.json()["success"] is False


def test_trigger_non_uuid_config_id_against_supabase(settings, generator, provider, supabase_store, postgrest_error):
    store = supabase_store(error=postgrest_error("22P02", 'invalid input syntax for type uuid: "cfg-1"'))
    client = TestClient(create_app(settings=settings, store=store, generator=generator, provider=provider))

    r = client.post("/api/calls/trigger", json={**TRIGGER_BODY, "agent_config_id": "cfg-1"})

    assert r.status_code == 404
    assert r.json() == {"success": False, "error": "Agent configuration not found: cfg-1"}
    provider.create_phone_call.assert_not_awaited()


def test_trigger_provider_failure(client, store, provider, checkin_config):
    provider.create_phone_call.side_effect = ProviderError("Retell API error (422): invalid to_number", status_code=422, body="invalid to_number")
    r = client.post("/api/calls/trigger", json={**TRIGGER_BODY, "agent_config_id": checkin_config["id"]})
    assert r.status_code == 502
    assert "invalid to_number" in r.json()["error"]
    logs, total = store.list_call_logs(None, None, 1, 20)
    assert total == 1
    assert logs[0]["call_status"] == "initiated"


# ── Call history ──────────────────────────────────────────────────────────────

def test_list_and_get_calls(client, checkin_config):
    created = client.post("/api/calls/trigger", json={**TRIGGER_BODY, "agent_config_id": checkin_config["id"]}).json()

    listing = client.get("/api/calls/", params={"status": "in_progress"}).json()
    assert listing["total"] == 1
    assert listing["items"][0]["id"] == created["call_log_id"]

    one = client.get(f"/api/calls/{created['call_log_id']}")
    assert one.status_code == 200
    assert one.json()["provider_call_id"] == "rc-1"

    assert client.get("/api/calls/does-not-exist").status_code == 404


# ── Webhook ───────────────────────────────────────────────────────────────────

def test_webhook_call_ended_end_to_end(client, store, checkin_config):
    created = client.post("/api/calls/trigger", json={**TRIGGER_BODY, "agent_config_id": checkin_config["id"]}).json()
    event = {
        "interaction_type": "call_ended",
        "call": {"call_id": "rc-1", "call_length_seconds": 95},
        "transcript": [{"role": "agent", "content": "Hi"}, {"role": "user", "content": "Arrived"}],
    }

    r = client.post("/api/retell/webhook", json=event)

    assert r.status_code == 200
    assert r.json() == {"response": "Webhook received successfully"}
    log = store.get_call_log(created["call_log_id"])
    assert log["call_status"] == "completed"
    assert log["call_duration"] == 95
    assert log["full_transcript"] == "agent: Hi\nuser: Arrived"


def test_webhook_unmatched_call_is_acknowledged(client):
    r = client.post("/api/retell/webhook", json={"interaction_type": "call_ended", "call": {"call_id": "rc-404"}, "transcript": []})
    assert r.status_code == 200
    assert r.json() == {"response": "Webhook received successfully"}


def test_webhook_live_reply(client):
    event = {
        "interaction_type": "update_only",
        "call": {"call_id": "rc-1", "metadata": {"scenario_type": "driver_checkin", "driver_name": "Sam", "load_number": "789-B"}},
        "transcript": [{"role": "user", "content": "I'm driving"}],
    }
    body = client.post("/api/retell/webhook", json=event).json()
    assert body["response"] == "Got it. Where are you right now?"
    assert isinstance(body["response_id"], int)


def test_webhook_malformed(client):
    r = client.post("/api/retell/webhook", content=b"<xml/>")
    assert r.status_code == 500
    assert "error" in r.json()

    r = client.post("/api/retell/webhook", json={"call": {"call_id": "rc-1"}})
    assert r.status_code == 500


def test_webhook_signature(store, generator, provider):
    settings = Settings(RETELL_WEBHOOK_SECRET="shh")
    client = TestClient(create_app(settings=settings, store=store, generator=generator, provider=provider))
    raw = json.dumps({"interaction_type": "update_only"}).encode()

    bad = client.post("/api/retell/webhook", content=raw, headers={"x-retell-signature": "nope"})
    assert bad.status_code == 401

    sig = hmac.new(b"shh", raw, hashlib.sha256).hexdigest()
    good = client.post("/api/retell/webhook", content=raw, headers={"x-retell-signature": sig})
    assert good.status_code == 200


# ── Agent configurations ──────────────────────────────────────────────────────

def test_agent_config_crud(client):
    r = client.post("/api/agent-configs/", json={"name": "Check-in", "system_prompt": "Hi {driver_name}"})
    assert r.status_code == 201
    cfg = r.json()
    assert cfg["scenario_type"] == "driver_checkin"
    assert cfg["settings"]["backchanneling_enabled"] is True

    assert client.get(f"/api/agent-configs/{cfg['id']}").json()["name"] == "Check-in"
    assert len(client.get("/api/agent-configs/").json()) == 1

    updated = client.put(f"/api/agent-configs/{cfg['id']}", json={"scenario_type": "emergency_protocol"}).json()
    assert updated["scenario_type"] == "emergency_protocol"
    assert updated["name"] == "Check-in"

    assert client.delete(f"/api/agent-configs/{cfg['id']}").json() == {"deleted": True}
    assert client.get(f"/api/agent-configs/{cfg['id']}").status_code == 404


def test_agent_config_requires_name_and_prompt(client):
    assert client.post("/api/agent-configs/", json={"name": "", "system_prompt": "x"}).status_code == 422
    assert client.post("/api/agent-configs/", json={"name": "x"}).status_code == 422
    assert client.post("/api/agent-configs/", json={"name": "x", "system_prompt": "y", "scenario_type": "sales"}).status_code == 422


def test_delete_referenced_agent_config_conflicts(client, store, checkin_config):
    client.post("/api/calls/trigger", json={**TRIGGER_BODY, "agent_config_id": checkin_config["id"]})

    r = client.delete(f"/api/agent-configs/{checkin_config['id']}")

    assert r.status_code == 409
    assert store.get_agent_config(checkin_config["id"]) is not None


# ── Record store failures ─────────────────────────────────────────────────────

def test_non_uuid_ids_are_not_found_against_supabase(settings, generator, provider, supabase_store, postgrest_error):
    store = supabase_store(error=postgrest_error("22P02", 'invalid input syntax for type uuid: "cfg-1"'))
    client = TestClient(create_app(settings=settings, store=store, generator=generator, provider=provider))

    assert client.get("/api/calls/cfg-1").status_code == 404
    assert client.get("/api/agent-configs/cfg-1").status_code == 404
    assert client.put("/api/agent-configs/cfg-1", json={"name": "B"}).status_code == 404
    assert client.delete("/api/agent-configs/cfg-1").status_code == 404


def test_supabase_foreign_key_violation_on_delete_conflicts(settings, generator, provider, supabase_store, postgrest_error):
    store = supabase_store(error=postgrest_error("23503", 'update or delete on table "agent_configurations" violates foreign key constraint'))
    client = TestClient(create_app(settings=settings, store=store, generator=generator, provider=provider))

    r = client.delete("/api/agent-configs/4b0f1f8e-2f7c-4c43-9a55-0d5f0f3b8a11")

    assert r.status_code == 409
    assert r.json() == {"detail": "Agent config is still referenced by call logs"}


def test_store_outage_returns_500(settings, generator, provider, supabase_store):
    store = supabase_store(error=ConnectionError("connection reset by peer"))
    client = TestClient(create_app(settings=settings, store=store, generator=generator, provider=provider))

    r = client.get("/api/calls/")

    assert r.status_code == 500
    assert r.json() == {"detail": "Record store error"}

    r = client.post("/api/calls/trigger", json={**TRIGGER_BODY, "agent_config_id": "4b0f1f8e-2f7c-4c43-9a55-0d5f0f3b8a11"})
    assert r.status_code == 500
    assert r.json()["success"] is False
