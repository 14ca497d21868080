"""Application-wide configuration loading and validation."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Centralized environment configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    log_level: str = Field(default="WARNING")

    # Asterisk manager interface (AMI over the built-in HTTP server)
    ami_host: str = Field(default="127.0.0.1")
    ami_port: int = Field(default=8088, description="Port of the Asterisk HTTP server (http.conf).")
    ami_http_prefix: str = Field(
        default="",
        description="http.conf 'prefix' setting, e.g. 'asterisk' for /asterisk/rawman.",
    )
    ami_use_tls: bool = Field(default=False)
    ami_username: str | None = Field(default=None)
    ami_password: str | None = Field(default=None)
    ami_timeout: float = Field(default=10.0, gt=0)
    ami_event_timeout: int = Field(
        default=30,
        ge=1,
        description="Seconds a WaitEvent long-poll may block before Asterisk returns.",
    )
    manager_conf_path: Path = Field(
        default=Path("/etc/asterisk/manager.conf"),
        description="Read to autodetect the password for local connections.",
    )

    # Lines on the server under test
    channel_technology: str = Field(default="PJSIP")
    peer_prefix: str = Field(default="autotest", description="Device name prefix of the provisioned lines.")
    plar_code: str = Field(default="01", description="PLAR code dialled on the remote device.")

    # Local dialplan target for originated calls (should answer and wait)
    dialplan_context: str = Field(default="idle")
    dialplan_exten: str = Field(default="9999")
    dialplan_priority: int = Field(default=1, ge=1)
    originate_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Seconds Asterisk waits for the remote device to answer an origination.",
    )

    hangup_cause: int = Field(default=16, description="Q.850 cause code (16 = normal clearing).")

    @field_validator("ami_http_prefix")
    @classmethod
    def strip_prefix_slashes(cls, value: str) -> str:
        return value.strip("/")

    def manager_url(self, host: str | None = None) -> str:
        """Return the rawman endpoint for ``host`` (defaults to ``ami_host``)."""

        scheme = "https" if self.ami_use_tls else "http"
        path = f"/{self.ami_http_prefix}/rawman" if self.ami_http_prefix else "/rawman"
        host = host or self.ami_host
        if ":" in host and not host.startswith("["):
            host = f"[{host}]"
        return f"{scheme}://{host}:{self.ami_port}{path}"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached Settings instance."""

    return Settings()
