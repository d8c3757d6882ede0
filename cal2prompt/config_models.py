from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from cal2prompt import DEFAULT_CONFIG_PATH, DEFAULT_OAUTH2_DIR
from cal2prompt.errors import ConfigError

logger = logging.getLogger(__name__)

CONFIG_PATH_ENV = "CAL2PROMPT_CONFIG_FILE_PATH"

DEFAULT_REDIRECT_URL = "http://127.0.0.1:9004"
DEFAULT_SCOPES = ["https://www.googleapis.com/auth/calendar.events"]


# =============================================================================
# source.google
# =============================================================================

class OAuth2Config(BaseModel):
    model_config = ConfigDict(extra="allow")
    client_id: str = Field(
        default_factory=lambda: os.environ.get("GOOGLE_CLIENT_ID", ""), validate_default=True
    )
    client_secret: str = Field(
        default_factory=lambda: os.environ.get("GOOGLE_CLIENT_SECRET", ""), validate_default=True
    )
    redirect_url: str = Field(default=DEFAULT_REDIRECT_URL)
    scopes: list[str] = Field(default_factory=lambda: list(DEFAULT_SCOPES))
    # None waits for the browser redirect indefinitely
    timeout_seconds: Optional[float] = Field(default=None, gt=0)

    @field_validator("client_id", "client_secret")
    @classmethod
    def _required(cls, value: str) -> str:
        if not value:
            raise ValueError("must be set (or provide GOOGLE_CLIENT_ID / GOOGLE_CLIENT_SECRET)")
        return value

    @field_validator("redirect_url")
    @classmethod
    def _loopback_http(cls, value: str) -> str:
        if not value.startswith("http://"):
            raise ValueError("must be a loopback http:// URL, e.g. http://127.0.0.1:9004")
        return value


class AccountConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    name: str
    authorize_account: str
    calendar_ids: list[str] = Field(default_factory=list)
    credential_path: Optional[str] = None


class GoogleSourceConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    oauth2: OAuth2Config
    accounts: list[AccountConfig] = Field(min_length=1)

    @field_validator("accounts")
    @classmethod
    def _unique_names(cls, accounts: list[AccountConfig]) -> list[AccountConfig]:
        seen: set[str] = set()
        for account in accounts:
            if account.name in seen:
                raise ValueError(f"duplicate account name '{account.name}'")
            seen.add(account.name)
        return accounts


class SourceConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    google: GoogleSourceConfig


# =============================================================================
# settings / prompt
# =============================================================================

class SettingsConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    tz: str = Field(default="UTC")
    oauth2_path: str = Field(default=str(DEFAULT_OAUTH2_DIR))
    default_account: Optional[str] = None

    @field_validator("tz")
    @classmethod
    def _known_zone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"unknown time zone '{value}'") from e
        return value

    @property
    def zone(self) -> ZoneInfo:
        return ZoneInfo(self.tz)


class PromptConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    # Either a built-in template name ("standard") or a Jinja2 template body
    template: str = Field(default="standard")


# =============================================================================
# Config (root)
# =============================================================================

class Config(BaseModel):
    model_config = ConfigDict(extra="allow")
    source: SourceConfig
    settings: SettingsConfig = Field(default_factory=SettingsConfig)
    prompt: PromptConfig = Field(default_factory=PromptConfig)

    @model_validator(mode="after")
    def _default_account_exists(self) -> "Config":
        default = self.settings.default_account
        if default and default not in {a.name for a in self.source.google.accounts}:
            raise ValueError(f"settings.default_account '{default}' is not a configured account")
        return self

    @property
    def accounts(self) -> list[AccountConfig]:
        return self.source.google.accounts

    @property
    def oauth2(self) -> OAuth2Config:
        return self.source.google.oauth2

    def credential_path_for(self, account: AccountConfig) -> Path:
        """Credential file for an account: explicit path, else ``<oauth2_path>/<name>.json``."""
        if account.credential_path:
            return Path(account.credential_path).expanduser()
        return Path(self.settings.oauth2_path).expanduser() / f"{account.name}.json"


# =============================================================================
# Loading
# =============================================================================

def get_config_file_path() -> Path:
    raw = os.environ.get(CONFIG_PATH_ENV, "").strip()
    path = Path(raw) if raw else DEFAULT_CONFIG_PATH
    return path.expanduser()


def _format_validation_error(error: ValidationError) -> str:
    problems = []
    for item in error.errors():
        loc = ".".join(str(part) for part in item["loc"]) or "<root>"
        if item["type"] == "missing":
            problems.append(f"required field '{loc}' is not set")
        else:
            problems.append(f"'{loc}': {item['msg']}")
    return "; ".join(problems)


def load_config(path: Path | None = None) -> Config:
    """
    Load and validate the YAML configuration.

    Args:
        path: Config file path (default: $CAL2PROMPT_CONFIG_FILE_PATH or
              ~/.config/cal2prompt/config.yaml)

    Returns:
        Validated Config

    Raises:
        ConfigError: File missing, YAML invalid, or validation failed
    """
    config_path = path.expanduser() if path else get_config_file_path()

    if not config_path.is_file():
        raise ConfigError(
            f"Config file not found; please check if '{config_path}' exists.",
            path=str(config_path),
        )

    try:
        with open(config_path, encoding="utf-8") as f:
            raw: Any = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse '{config_path}': {e}", path=str(config_path)) from e

    if not isinstance(raw, dict):
        raise ConfigError(
            f"'{config_path}' must contain a mapping at the top level", path=str(config_path)
        )

    try:
        config = Config.model_validate(raw)
    except ValidationError as e:
        raise ConfigError(
            f"Invalid configuration in '{config_path}': {_format_validation_error(e)}",
            path=str(config_path),
        ) from e

    logger.debug(
        "Loaded config from %s (%d account(s), tz=%s)",
        config_path,
        len(config.accounts),
        config.settings.tz,
    )
    return config
