"""Environment-driven settings for the gateway and the Streamlit client.

Values are read once from the process environment (after loading a local
``.env`` file) into a ``Settings`` model. Tests build ``Settings`` directly.
"""

from __future__ import annotations

import os
import re

from dotenv import load_dotenv
from pydantic import BaseModel, field_validator

load_dotenv()

# Dotted Snowflake identifier: DB.SCHEMA.TABLE, SCHEMA.TABLE or TABLE
_TABLE_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_$]*(\.[A-Za-z_][A-Za-z0-9_$]*){0,2}$")


class IdentitySettings(BaseModel):
    client_id: str = ""
    tenant_id: str = ""
    client_secret: str = ""
    authority_host: str = "login.microsoftonline.com"
    jwks_cache_ttl_hours: int = 12

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.tenant_id and self.client_secret)

    @property
    def issuer(self) -> str:
        return f"https://{self.authority_host}/{self.tenant_id}/v2.0"

    @property
    def jwks_uri(self) -> str:
        return f"https://{self.authority_host}/{self.tenant_id}/discovery/v2.0/keys"


class WarehouseSettings(BaseModel):
    account: str = ""
    username: str = ""
    password: str = ""
    database: str = ""
    schema_name: str = ""
    warehouse: str = ""
    role: str = ""
    table: str = "YOUR_TABLE_NAME"

    @field_validator("table")
    @classmethod
    def _check_table(cls, value: str) -> str:
        if not _TABLE_NAME_RE.match(value):
            raise ValueError(f"Invalid warehouse table identifier: {value!r}")
        return value

    @property
    def configured(self) -> bool:
        return bool(self.account and self.username)

    def connect_kwargs(self) -> dict[str, str]:
        """Keyword arguments for ``snowflake.connector.connect`` (empty values dropped)."""
        kwargs = {
            "account": self.account,
            "user": self.username,
            "password": self.password,
            "database": self.database,
            "schema": self.schema_name,
            "warehouse": self.warehouse,
            "role": self.role,
        }
        return {k: v for k, v in kwargs.items() if v}


class SessionSettings(BaseModel):
    cookie_name: str = "sankey_session"
    cookie_secure: bool = False
    idle_timeout_seconds: int = 8 * 60 * 60


class Settings(BaseModel):
    identity: IdentitySettings = IdentitySettings()
    warehouse: WarehouseSettings = WarehouseSettings()
    session: SessionSettings = SessionSettings()
    cors_origins: list[str] = ["http://localhost:8501"]


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None or value == "":
        return default
    return value.lower() in ("1", "true", "yes", "on")


def settings_from_env() -> Settings:
    """Build Settings from environment variables."""
    cors_env = os.environ.get("CORS_ORIGINS", "http://localhost:8501")
    return Settings(
        identity=IdentitySettings(
            client_id=os.environ.get("AZURE_AD_CLIENT_ID", ""),
            tenant_id=os.environ.get("AZURE_AD_TENANT_ID", ""),
            client_secret=os.environ.get("AZURE_AD_CLIENT_SECRET", ""),
            authority_host=os.environ.get("AZURE_AD_AUTHORITY_HOST", "login.microsoftonline.com"),
        ),
        warehouse=WarehouseSettings(
            account=os.environ.get("SNOWFLAKE_ACCOUNT", ""),
            username=os.environ.get("SNOWFLAKE_USERNAME", ""),
            password=os.environ.get("SNOWFLAKE_PASSWORD", ""),
            database=os.environ.get("SNOWFLAKE_DATABASE", ""),
            schema_name=os.environ.get("SNOWFLAKE_SCHEMA", ""),
            warehouse=os.environ.get("SNOWFLAKE_WAREHOUSE", ""),
            role=os.environ.get("SNOWFLAKE_ROLE", ""),
            table=os.environ.get("SNOWFLAKE_TABLE", "YOUR_TABLE_NAME"),
        ),
        session=SessionSettings(
            cookie_name=os.environ.get("SESSION_COOKIE_NAME", "sankey_session"),
            cookie_secure=_env_flag("SESSION_COOKIE_SECURE"),
            idle_timeout_seconds=int(os.environ.get("SESSION_IDLE_TIMEOUT_SECONDS", str(8 * 60 * 60))),
        ),
        cors_origins=[o.strip() for o in cors_env.split(",") if o.strip()],
    )


def api_base_url() -> str:
    """Base URL the Streamlit client uses to reach the gateway."""
    return os.environ.get("SANKEY_API_BASE_URL", "http://localhost:3000/api").rstrip("/")
