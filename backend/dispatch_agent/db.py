from typing import Any, Dict, List, Optional, Tuple
from uuid import uuid4
from datetime import datetime, timezone
import copy
import logging

# Lightweight adapter over Supabase client. Keeps an in-memory fallback when SUPABASE_URL is missing.
from postgrest.exceptions import APIError
from supabase import create_client, Client

from .core.config import Settings
from .core.errors import RecordInUse, RecordStoreError

logger = logging.getLogger(__name__)

# Postgres error codes surfaced by PostgREST
INVALID_TEXT_REPRESENTATION = "22P02"
FOREIGN_KEY_VIOLATION = "23503"

AGENT_CONFIG_FIELDS = ["name", "system_prompt", "scenario_type", "settings"]
CALL_LOG_FIELDS = [
    "agent_config_id",
    "provider_call_id",
    "driver_name",
    "driver_phone",
    "load_number",
    "call_status",
    "started_at",
    "completed_at",
    "call_duration",
    "full_transcript",
    "structured_data",
]


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _field(body: Any, key: str) -> Any:
    if isinstance(body, dict):
        return body.get(key)
    return getattr(body, key, None)


def _plain(value: Any) -> Any:
    # Enums are stored by value
    return getattr(value, "value", value)


class InMemoryDB:
    def __init__(self) -> None:
        self.agent_configs: Dict[str, Dict[str, Any]] = {}
        self.call_logs: Dict[str, Dict[str, Any]] = {}

    # Agent configs
    def list_agent_configs(self) -> List[Dict[str, Any]]:
        rows = sorted(self.agent_configs.values(), key=lambda r: r["created_at"], reverse=True)
        return [copy.deepcopy(r) for r in rows]

    def get_agent_config(self, rid: str) -> Optional[Dict[str, Any]]:
        row = self.agent_configs.get(str(rid))
        return copy.deepcopy(row) if row else None

    def create_agent_config(self, body) -> Dict[str, Any]:
        rid = str(uuid4())
        now = utc_now()
        obj = {
            "id": rid,
            "name": _field(body, "name"),
            "system_prompt": _field(body, "system_prompt"),
            "scenario_type": _plain(_field(body, "scenario_type")),
            "settings": _field(body, "settings") or {},
            "created_at": now,
            "updated_at": now,
        }
        self.agent_configs[rid] = obj
        return copy.deepcopy(obj)

    def update_agent_config(self, rid: str, body) -> Optional[Dict[str, Any]]:
        rid = str(rid)
        if rid not in self.agent_configs:
            return None
        obj = self.agent_configs[rid]
        for k in AGENT_CONFIG_FIELDS:
            v = _field(body, k)
            if v is not None:
                obj[k] = _plain(v)
        obj["updated_at"] = utc_now()
        return copy.deepcopy(obj)

    def delete_agent_config(self, rid: str) -> bool:
        rid = str(rid)
        if rid not in self.agent_configs:
            return False
        if any(c.get("agent_config_id") == rid for c in self.call_logs.values()):
            raise RecordInUse(f"Agent config {rid} is referenced by call logs")
        del self.agent_configs[rid]
        return True

    # Call logs
    def create_call_log(self, row: Dict[str, Any]) -> Dict[str, Any]:
        cid = str(uuid4())
        obj: Dict[str, Any] = {k: None for k in CALL_LOG_FIELDS}
        obj.update({k: _plain(v) for k, v in row.items() if k in CALL_LOG_FIELDS})
        obj["id"] = cid
        obj["created_at"] = utc_now()
        self.call_logs[cid] = obj
        return copy.deepcopy(obj)

    def get_call_log(self, call_log_id: str) -> Optional[Dict[str, Any]]:
        row = self.call_logs.get(str(call_log_id))
        return copy.deepcopy(row) if row else None

    def get_call_log_by_provider_id(self, provider_call_id: str) -> Optional[Dict[str, Any]]:
        for row in self.call_logs.values():
            if row.get("provider_call_id") == provider_call_id:
                return copy.deepcopy(row)
        return None

    def update_call_log(self, call_log_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        cid = str(call_log_id)
        if cid not in self.call_logs:
            raise RecordStoreError(f"Call log not found: {cid}")
        obj = self.call_logs[cid]
        new_provider_id = fields.get("provider_call_id")
        if new_provider_id is not None:
            current = obj.get("provider_call_id")
            if current is not None and current != new_provider_id:
                raise RecordStoreError(f"provider_call_id already set on call log {cid}")
            owner = self.get_call_log_by_provider_id(new_provider_id)
            if owner and owner["id"] != cid:
                raise RecordStoreError(f"provider_call_id {new_provider_id} already belongs to call log {owner['id']}")
        for k, v in fields.items():
            if k in CALL_LOG_FIELDS:
                obj[k] = copy.deepcopy(_plain(v))
        return copy.deepcopy(obj)

    def list_call_logs(self, status: Optional[str], driver_name: Optional[str], page: int, page_size: int) -> Tuple[List[Dict[str, Any]], int]:
        items = sorted(self.call_logs.values(), key=lambda r: r["created_at"], reverse=True)
        if status:
            items = [c for c in items if c.get("call_status") == status]
        if driver_name:
            items = [c for c in items if driver_name.lower() in (c.get("driver_name") or "").lower()]
        total = len(items)
        start = (page - 1) * page_size
        end = start + page_size
        return [copy.deepcopy(c) for c in items[start:end]], total


class SupabaseDB:
    def __init__(self, client: Client) -> None:
        self.client = client

    def _execute(self, query, action: str, by_id: bool = False, deleting: bool = False):
        """Run a PostgREST query, translating failures into RecordStoreError.

        With ``by_id`` a malformed id means no such row and None is returned.
        With ``deleting`` a foreign-key violation raises RecordInUse.
        """
        try:
            return query.execute()
        except APIError as e:
            if by_id and e.code == INVALID_TEXT_REPRESENTATION:
                logger.info(f"{action}: malformed id ({e.message})")
                return None
            if deleting and e.code == FOREIGN_KEY_VIOLATION:
                raise RecordInUse(f"Failed to {action}: {e.message}") from e
            raise RecordStoreError(f"Failed to {action}: {e.message}") from e
        except Exception as e:
            raise RecordStoreError(f"Failed to {action}: {e}") from e

    def _first(self, res) -> Optional[Dict[str, Any]]:
        if res is None:
            return None
        return (res.data or [None])[0]

    # Agent configs
    def list_agent_configs(self) -> List[Dict[str, Any]]:
        query = self.client.table("agent_configurations").select("*").order("created_at", desc=True)
        return self._execute(query, "list agent configs").data or []

    def get_agent_config(self, rid: str) -> Optional[Dict[str, Any]]:
        query = self.client.table("agent_configurations").select("*").eq("id", str(rid)).limit(1)
        return self._first(self._execute(query, f"get agent config {rid}", by_id=True))

    def create_agent_config(self, body) -> Dict[str, Any]:
        payload = {
            "name": _field(body, "name"),
            "system_prompt": _field(body, "system_prompt"),
            "scenario_type": _plain(_field(body, "scenario_type")),
            "settings": _field(body, "settings") or {},
        }
        res = self._execute(self.client.table("agent_configurations").insert(payload), "create agent config")
        data = self._first(res)
        if not data:
            raise RecordStoreError("Failed to create agent config: no row returned")
        return data

    def update_agent_config(self, rid: str, body) -> Optional[Dict[str, Any]]:
        payload: Dict[str, Any] = {}
        for k in AGENT_CONFIG_FIELDS:
            v = _field(body, k)
            if v is not None:
                payload[k] = _plain(v)
        if not payload:
            return self.get_agent_config(rid)
        payload["updated_at"] = utc_now()
        query = self.client.table("agent_configurations").update(payload).eq("id", str(rid))
        return self._first(self._execute(query, f"update agent config {rid}", by_id=True))

    def delete_agent_config(self, rid: str) -> bool:
        query = self.client.table("agent_configurations").delete().eq("id", str(rid))
        res = self._execute(query, f"delete agent config {rid}", by_id=True, deleting=True)
        return bool(res is not None and res.data)

    # Call logs
    def create_call_log(self, row: Dict[str, Any]) -> Dict[str, Any]:
        payload = {k: _plain(v) for k, v in row.items() if k in CALL_LOG_FIELDS}
        res = self._execute(self.client.table("call_logs").insert(payload), "create call log")
        data = self._first(res)
        if not data:
            raise RecordStoreError("Failed to create call log: no row returned")
        return data

    def get_call_log(self, call_log_id: str) -> Optional[Dict[str, Any]]:
        query = self.client.table("call_logs").select("*").eq("id", str(call_log_id)).limit(1)
        return self._first(self._execute(query, f"get call log {call_log_id}", by_id=True))

    def get_call_log_by_provider_id(self, provider_call_id: str) -> Optional[Dict[str, Any]]:
        query = self.client.table("call_logs").select("*").eq("provider_call_id", provider_call_id).limit(1)
        return self._first(self._execute(query, f"look up provider call {provider_call_id}"))

    def update_call_log(self, call_log_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        payload = {k: _plain(v) for k, v in fields.items() if k in CALL_LOG_FIELDS}
        query = self.client.table("call_logs").update(payload).eq("id", str(call_log_id))
        data = self._first(self._execute(query, f"update call log {call_log_id}"))
        if not data:
            raise RecordStoreError(f"Call log not found: {call_log_id}")
        return data

    def list_call_logs(self, status: Optional[str], driver_name: Optional[str], page: int, page_size: int) -> Tuple[List[Dict[str, Any]], int]:
        query = self.client.table("call_logs").select("*", count="exact")
        if status:
            query = query.eq("call_status", status)
        if driver_name:
            query = query.ilike("driver_name", f"%{driver_name}%")
        start = (page - 1) * page_size
        end = start + page_size - 1
        res = self._execute(query.order("created_at", desc=True).range(start, end), "list call logs")
        items = res.data or []
        total = res.count if res.count is not None else len(items)
        return items, total


def build_store(settings: Settings):
    if settings.supabase_enabled:
        logger.info("Using Supabase record store")
        return SupabaseDB(create_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY))
    logger.info("SUPABASE_URL not set; using in-memory record store")
    return InMemoryDB()
