from __future__ import annotations

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv


@dataclass
class Config:
    database_url: str = "sqlite:///./harvests.db"
    supabase_url: str = ""
    supabase_anon_key: str = ""
    supabase_service_role_key: str = ""
    auth_api_timeout: int = 10
    oauth_redirect_url: str = ""
    cors_allow_origins: list[str] = field(default_factory=lambda: ["*"])
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> Config:
        load_dotenv()
        cors = os.getenv("CORS_ALLOW_ORIGINS", "*")
        return cls(
            database_url=os.getenv("DATABASE_URL", "sqlite:///./harvests.db"),
            supabase_url=(os.getenv("SUPABASE_URL", "") or "").rstrip("/"),
            supabase_anon_key=os.getenv("SUPABASE_ANON_KEY", ""),
            supabase_service_role_key=os.getenv("SUPABASE_SERVICE_ROLE_KEY", ""),
            auth_api_timeout=int(os.getenv("AUTH_API_TIMEOUT", "10")),
            oauth_redirect_url=os.getenv("OAUTH_REDIRECT_URL", ""),
            cors_allow_origins=[o for o in [c.strip() for c in cors.split(",")] if o],
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )


settings = Config.from_env()
