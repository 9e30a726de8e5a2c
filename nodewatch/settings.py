from __future__ import annotations

import json
import os
from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field, SecretStr, ValidationError, model_validator

from .errors import ConfigError


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    # Core
    chains_file: str = os.getenv("NWD_CHAINS_FILE", "chains.json")
    log_level: str = os.getenv("NWD_LOG_LEVEL", "INFO")
    event_buffer: int = _env_int("NWD_EVENT_BUFFER", 500)
    verify_chain_id: bool = _env_bool("NWD_VERIFY_CHAIN_ID", True)
    disable_watchdogs: bool = _env_bool("NWD_DISABLE_WATCHDOGS", False)

    # Email alerting (optional)
    enable_email: bool = _env_bool("NWD_ENABLE_EMAIL", False)
    smtp_host: str = os.getenv("NWD_SMTP_HOST", "smtp.gmail.com")
    smtp_port: int = _env_int("NWD_SMTP_PORT", 587)
    smtp_user: str | None = os.getenv("NWD_SMTP_USER")
    smtp_password: str | None = os.getenv("NWD_SMTP_PASSWORD")
    email_from: str | None = os.getenv("NWD_EMAIL_FROM")
    email_to: str | None = os.getenv("NWD_EMAIL_TO")


settings = Settings()


class ChainConfig(BaseModel):
    """One chain to watch. Immutable for the lifetime of the process."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(..., min_length=1, description="Label used in logs and the status API")
    chain_id: str = Field(..., pattern=r"^[0-9a-f]{64}$", description="Chain identifier reported by get_info")
    contract: str = Field(..., min_length=1, max_length=12, description="Registry contract account")
    watchdog_account: str = Field(..., min_length=1, max_length=12)
    watchdog_permission: str = "active"
    rpc_url: str = Field(..., pattern=r"^https?://", description="Chain API endpoint")
    signing_key: SecretStr | None = None
    signing_key_env: str | None = Field(None, description="Environment variable holding the signing key")

    # Tunables
    row_limit: int = Field(1000, ge=1, le=10000)
    churn_threshold: int = Field(10, ge=0)
    steady_interval_s: float = Field(30 * 60, ge=0)
    churn_interval_s: float = Field(0, ge=0)
    error_backoff_s: float = Field(10, ge=0)
    backoff_multiplier: float = Field(1.0, ge=1.0, le=10.0)
    max_backoff_s: float = Field(300, ge=0)
    probe_timeout_s: float = Field(5, gt=0)
    rpc_timeout_s: float = Field(10, gt=0)
    expire_seconds: int = Field(30, ge=1, le=3600)

    @model_validator(mode="after")
    def _one_key_source(self) -> "ChainConfig":
        if (self.signing_key is None) == (self.signing_key_env is None):
            raise ValueError("exactly one of signing_key / signing_key_env must be set")
        return self

    def private_key(self) -> str:
        if self.signing_key is not None:
            return self.signing_key.get_secret_value()
        raw = os.getenv(self.signing_key_env or "")
        if not raw:
            raise ConfigError(f"{self.name}: environment variable {self.signing_key_env} is not set")
        return raw.strip()


class ChainsFile(BaseModel):
    chains: list[ChainConfig] = Field(..., min_length=1)

    @model_validator(mode="after")
    def _unique_names(self) -> "ChainsFile":
        names = [c.name for c in self.chains]
        if len(names) != len(set(names)):
            raise ValueError("chain names must be unique")
        return self


def parse_chains(raw: dict) -> list[ChainConfig]:
    try:
        return ChainsFile.model_validate(raw).chains
    except ValidationError as e:
        raise ConfigError(f"Invalid chain configuration: {e}") from e


def load_chains(path: str | None = None) -> list[ChainConfig]:
    """Read and validate the chain list (JSON: {"chains": [...]})."""
    path = path or settings.chains_file
    try:
        with open(path, encoding="utf-8") as f:
            raw = json.load(f)
    except OSError as e:
        raise ConfigError(f"Cannot read chain configuration {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"Chain configuration {path} is not valid JSON: {e}") from e
    if not isinstance(raw, dict):
        raise ConfigError(f"Chain configuration {path} must be a JSON object")
    return parse_chains(raw)
