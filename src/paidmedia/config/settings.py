"""
config/settings.py — Paid Media Runtime Settings

Merges config.yaml (defaults/structure) with .env (secrets).
Pydantic-powered — all fields are validated and typed.

  - ProxySection rejects non-http(s) upstream URLs at parse time
  - SessionSection rejects non-positive stall timeouts
  - validate_all() performs full startup validation and raises ConfigError
    with a clear, human-readable message listing every problem found
  - load_settings() respects PAIDMEDIA_CONFIG env var as a fallback
    when no explicit config_path argument is given
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# ─────────────────────────────────────────────────────────────────────────────
# Errors
# ─────────────────────────────────────────────────────────────────────────────

class ConfigError(Exception):
    """Raised by validate_all() when one or more config problems are found."""


_VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}

DEFAULT_LLM_PROXY_URL = "https://llm-proxy.us01.treasuredata.com"

DEFAULT_ALLOWED_TOOLS = [
    "Read", "Glob", "Grep", "Bash",
    "WebFetch", "WebSearch",
    "ListMcpResourcesTool", "ReadMcpResourceTool",
]


# ─────────────────────────────────────────────────────────────────────────────
# Sub-models
# ─────────────────────────────────────────────────────────────────────────────

class AgentSection(BaseModel):
    model: Optional[str] = None
    working_directory: Optional[str] = None
    max_turns: int = 100
    max_thinking_tokens: int = 1024
    allowed_tools: list[str] = Field(default_factory=lambda: list(DEFAULT_ALLOWED_TOOLS))
    connection_test_timeout_seconds: float = 15.0

    @field_validator("max_turns")
    @classmethod
    def _positive_turns(cls, v: int) -> int:
        if v < 1:
            raise ValueError("agent.max_turns must be >= 1")
        return v

    @field_validator("max_thinking_tokens")
    @classmethod
    def _non_negative_thinking(cls, v: int) -> int:
        if v < 0:
            raise ValueError("agent.max_thinking_tokens must be >= 0")
        return v


class ProxySection(BaseModel):
    llm_proxy_url: str = DEFAULT_LLM_PROXY_URL
    auth_scheme: str = "Bearer"
    api_key_header: str = "x-api-key"
    upstream_timeout_seconds: float = 600.0

    @field_validator("llm_proxy_url")
    @classmethod
    def _http_url(cls, v: str) -> str:
        v = v.strip().rstrip("/")
        if not v.startswith(("https://", "http://")):
            raise ValueError(
                f"proxy.llm_proxy_url must start with https:// (got '{v}')"
            )
        return v

    @field_validator("auth_scheme")
    @classmethod
    def _single_token_scheme(cls, v: str) -> str:
        v = v.strip()
        if not v or " " in v:
            raise ValueError(
                "proxy.auth_scheme must be a single token such as 'Bearer' or 'TD1'"
            )
        return v

    @field_validator("api_key_header")
    @classmethod
    def _lower_header(cls, v: str) -> str:
        return v.strip().lower()


class SessionSection(BaseModel):
    stall_timeout_seconds: float = 60.0

    @field_validator("stall_timeout_seconds")
    @classmethod
    def _positive_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("session.stall_timeout_seconds must be > 0")
        return v


class LoggingConfig(BaseModel):
    level: str = "INFO"
    log_dir: str = "./data/logs"
    max_file_size_mb: int = 20
    backup_count: int = 5
    console_output: bool = False
    json_format: bool = True

    @field_validator("level")
    @classmethod
    def _valid_log_level(cls, v: str) -> str:
        upper = v.upper()
        if upper not in _VALID_LOG_LEVELS:
            raise ValueError(
                f"logging.level '{v}' is not valid. "
                f"Must be one of: {sorted(_VALID_LOG_LEVELS)}"
            )
        return upper


# ─────────────────────────────────────────────────────────────────────────────
# Root Settings
# ─────────────────────────────────────────────────────────────────────────────

class Settings(BaseSettings):
    """
    Paid media runtime settings.

    Priority (highest to lowest):
      1. Environment variables
      2. .env file
      3. config.yaml
      4. Field defaults
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
        case_sensitive=False,
    )

    # -- Secrets from .env ---------------------------------------------------
    api_key: Optional[str] = Field(default=None, alias="PAIDMEDIA_API_KEY")

    # -- Structured config (from config.yaml) --------------------------------
    agent: AgentSection = Field(default_factory=AgentSection)
    proxy: ProxySection = Field(default_factory=ProxySection)
    session: SessionSection = Field(default_factory=SessionSection)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @field_validator("api_key", mode="before")
    @classmethod
    def _blank_key_is_none(cls, v: Any) -> Optional[str]:
        if v is None:
            return None
        v = str(v).strip()
        return v or None

    @field_validator("agent", mode="before")
    @classmethod
    def _coerce_agent(cls, v: Any) -> Any:
        return AgentSection(**v) if isinstance(v, dict) else v

    @field_validator("proxy", mode="before")
    @classmethod
    def _coerce_proxy(cls, v: Any) -> Any:
        return ProxySection(**v) if isinstance(v, dict) else v

    @field_validator("session", mode="before")
    @classmethod
    def _coerce_session(cls, v: Any) -> Any:
        return SessionSection(**v) if isinstance(v, dict) else v

    @field_validator("logging", mode="before")
    @classmethod
    def _coerce_logging(cls, v: Any) -> Any:
        return LoggingConfig(**v) if isinstance(v, dict) else v

    # -- Convenience properties ----------------------------------------------

    @property
    def log_level(self) -> str:
        return self.logging.level.upper()

    @property
    def log_dir(self) -> Path:
        return Path(self.logging.log_dir)

    @property
    def stall_timeout(self) -> float:
        return self.session.stall_timeout_seconds

    def validate_all(self) -> None:
        """
        Full startup validation. Raises ConfigError listing every problem found.

        Pydantic field validators catch type/value errors at parse time;
        this catches cross-field problems it can't see (API key presence,
        plain-http upstreams, a working directory that does not exist).
        """
        errors: list[str] = []

        if not self.api_key:
            errors.append(
                "PAIDMEDIA_API_KEY is not set. Configure your API key in "
                "Settings or add it to your .env file."
            )

        if self.proxy.llm_proxy_url.startswith("http://"):
            errors.append(
                f"proxy.llm_proxy_url '{self.proxy.llm_proxy_url}' is plain http. "
                f"The upstream LLM proxy must be reached over https://."
            )

        wd = self.agent.working_directory
        if wd and not Path(wd).expanduser().is_dir():
            errors.append(
                f"agent.working_directory '{wd}' does not exist. Create it or "
                f"remove the setting to use the current directory."
            )

        if errors:
            numbered = "\n".join(f"  {i+1}. {e}" for i, e in enumerate(errors))
            raise ConfigError(
                f"\n\nPaid media startup failed — {len(errors)} configuration "
                f"problem(s) found:\n\n{numbered}\n\n"
                f"Fix the issues above in config/config.yaml or your .env file "
                f"and restart.\n"
            )


# ─────────────────────────────────────────────────────────────────────────────
# Loader
# ─────────────────────────────────────────────────────────────────────────────

_KNOWN_SECTIONS = {"agent", "proxy", "session", "logging"}


def _load_yaml(path: Path) -> dict:
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _resolve_config_path(config_path: str | Path | None) -> Path:
    """
    Resolve the config file path with this priority:
      1. Explicit config_path argument (from --config CLI flag)
      2. PAIDMEDIA_CONFIG environment variable
      3. Default: config/config.yaml
    """
    if config_path is not None:
        return Path(config_path)
    env_path = os.environ.get("PAIDMEDIA_CONFIG")
    if env_path:
        return Path(env_path)
    return Path("config/config.yaml")


def load_settings(config_path: str | Path | None = None) -> Settings:
    """Load settings by merging config.yaml with environment variables."""
    resolved_path = _resolve_config_path(config_path)
    yaml_data = _load_yaml(resolved_path)

    init_kwargs = {k: v for k, v in yaml_data.items() if k in _KNOWN_SECTIONS}

    return Settings(**init_kwargs)
