import os
import pathlib
from functools import lru_cache
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel


def _load_env_file() -> None:
    # Try to load from the project root first, then current directory
    project_root = pathlib.Path(__file__).resolve().parents[3]
    env_path = project_root / ".env"
    if env_path.exists():
        load_dotenv(env_path)
    else:
        load_dotenv()


def _flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes")


def _optional(name: str) -> Optional[str]:
    value = os.getenv(name)
    if value is None or len(value.strip()) == 0:
        return None
    return value.strip()


class Settings(BaseModel):
    """Application settings."""
    APP_NAME: str = "Dispatch Voice Agent"

    # Record store
    SUPABASE_URL: Optional[str] = None
    SUPABASE_SERVICE_ROLE_KEY: Optional[str] = None

    # Voice-call provider
    RETELL_API_KEY: Optional[str] = None
    RETELL_BASE_URL: str = "https://api.retellai.com"
    RETELL_AGENT_ID: Optional[str] = None
    RETELL_FROM_NUMBER: Optional[str] = None
    RETELL_WEBHOOK_SECRET: Optional[str] = None

    # Text generation
    OPENAI_API_KEY: Optional[str] = None
    OPENAI_MODEL: str = "gpt-4o-mini"
    GROQ_API_KEY: Optional[str] = None
    GROQ_MODEL: str = "llama-3.1-8b-instant"

    HTTP_TIMEOUT_SECONDS: float = 20.0
    MARK_FAILED_ON_PROVIDER_ERROR: bool = False
    LOG_LEVEL: str = "INFO"
    CORS_ALLOW_ORIGINS: List[str] = ["*"]

    @property
    def supabase_enabled(self) -> bool:
        return bool(self.SUPABASE_URL and self.SUPABASE_SERVICE_ROLE_KEY)


def load_settings() -> Settings:
    _load_env_file()
    origins = os.getenv("CORS_ALLOW_ORIGINS", "*")
    return Settings(
        SUPABASE_URL=_optional("SUPABASE_URL"),
        SUPABASE_SERVICE_ROLE_KEY=_optional("SUPABASE_SERVICE_ROLE_KEY"),
        RETELL_API_KEY=_optional("RETELL_API_KEY"),
        RETELL_BASE_URL=os.getenv("RETELL_BASE_URL", "https://api.retellai.com").rstrip("/"),
        RETELL_AGENT_ID=_optional("RETELL_AGENT_ID"),
        RETELL_FROM_NUMBER=_optional("RETELL_FROM_NUMBER"),
        RETELL_WEBHOOK_SECRET=_optional("RETELL_WEBHOOK_SECRET"),
        OPENAI_API_KEY=_optional("OPENAI_API_KEY"),
        OPENAI_MODEL=os.getenv("OPENAI_MODEL", "gpt-4o-mini"),
        GROQ_API_KEY=_optional("GROQ_API_KEY"),
        GROQ_MODEL=os.getenv("GROQ_MODEL", "llama-3.1-8b-instant"),
        HTTP_TIMEOUT_SECONDS=float(os.getenv("HTTP_TIMEOUT_SECONDS", "20")),
        MARK_FAILED_ON_PROVIDER_ERROR=_flag("MARK_FAILED_ON_PROVIDER_ERROR"),
        LOG_LEVEL=os.getenv("LOG_LEVEL", "INFO").upper(),
        CORS_ALLOW_ORIGINS=[o.strip() for o in origins.split(",") if o.strip()],
    )


@lru_cache()
def get_settings() -> Settings:
    return load_settings()
