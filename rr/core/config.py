"""Typed configuration loading and access.

This module provides dataclasses for the rr.toml structure. Every section is
optional; missing keys fall back to the defaults declared here.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from .result import Err, Ok, Result
from .structured import StrDict, as_str_dict, get_float, get_int, get_str, get_table

__all__ = [
    "Config",
    "ConfigError",
    "PollingConfig",
    "JenkinsConfig",
    "GitHubActionsConfig",
    "ProvidersConfig",
    "StoresConfig",
    "CallbacksConfig",
    "StateConfig",
    "JenkinsCredentialsConfig",
    "GitHubCredentialsConfig",
    "TenantConfig",
    "load_config",
    "load_config_or_default",
    "DEFAULT_CONFIG_FILE",
]

DEFAULT_CONFIG_FILE = "rr.toml"

# -----------------------------------------------------------------------------
# Defaults
# -----------------------------------------------------------------------------

DEFAULT_MAX_WORKERS = 4
DEFAULT_CHECK_TIMEOUT_SECONDS = 30.0

# Jenkins queue/build checks are cheap JSON reads.
DEFAULT_JENKINS_QUEUE_TIMEOUT_SECONDS = 5.0
DEFAULT_JENKINS_BUILD_TIMEOUT_SECONDS = 5.0

DEFAULT_GITHUB_API_BASE = "https://api.github.com"
DEFAULT_GITHUB_STATUS_TIMEOUT_SECONDS = 8.0

DEFAULT_STORE_TOKEN_ENV = "RR_STORE_TOKEN"
DEFAULT_STORE_TIMEOUT_SECONDS = 15.0

DEFAULT_CALLBACK_TIMEOUT_SECONDS = 10.0

DEFAULT_STATE_PATH = ".rr/state.json"


@dataclass(frozen=True, slots=True)
class ConfigError:
    """Error when config cannot be loaded or parsed."""

    message: str
    path: Path | None = None


@dataclass(frozen=True, slots=True)
class PollingConfig:
    """Reconciliation pass tuning."""

    max_workers: int = DEFAULT_MAX_WORKERS
    check_timeout_seconds: float = DEFAULT_CHECK_TIMEOUT_SECONDS


@dataclass(frozen=True, slots=True)
class JenkinsConfig:
    queue_timeout_seconds: float = DEFAULT_JENKINS_QUEUE_TIMEOUT_SECONDS
    build_timeout_seconds: float = DEFAULT_JENKINS_BUILD_TIMEOUT_SECONDS


@dataclass(frozen=True, slots=True)
class GitHubActionsConfig:
    api_base: str = DEFAULT_GITHUB_API_BASE
    status_timeout_seconds: float = DEFAULT_GITHUB_STATUS_TIMEOUT_SECONDS


@dataclass(frozen=True, slots=True)
class ProvidersConfig:
    jenkins: JenkinsConfig = field(default_factory=JenkinsConfig)
    github_actions: GitHubActionsConfig = field(default_factory=GitHubActionsConfig)


@dataclass(frozen=True, slots=True)
class StoresConfig:
    """Store submission gateway.

    ``gateway_url`` unset means store calls cannot be made; rollout commands
    then fail with a store error instead of silently mutating local state.
    """

    gateway_url: str | None = None
    token_env: str = DEFAULT_STORE_TOKEN_ENV
    timeout_seconds: float = DEFAULT_STORE_TIMEOUT_SECONDS


@dataclass(frozen=True, slots=True)
class CallbacksConfig:
    """Task callback sink. ``url`` is a template with a ``{task_id}`` field."""

    url: str | None = None
    timeout_seconds: float = DEFAULT_CALLBACK_TIMEOUT_SECONDS


@dataclass(frozen=True, slots=True)
class StateConfig:
    path: str = DEFAULT_STATE_PATH


@dataclass(frozen=True, slots=True)
class JenkinsCredentialsConfig:
    host_url: str
    username: str
    api_token_env: str


@dataclass(frozen=True, slots=True)
class GitHubCredentialsConfig:
    api_token_env: str


@dataclass(frozen=True, slots=True)
class TenantConfig:
    """Per-tenant CI/CD credential references (secrets stay in the environment)."""

    jenkins: JenkinsCredentialsConfig | None = None
    github_actions: GitHubCredentialsConfig | None = None


def _empty_tenants() -> dict[str, TenantConfig]:
    return {}


@dataclass(frozen=True, slots=True)
class Config:
    """Main configuration container."""

    polling: PollingConfig = field(default_factory=PollingConfig)
    providers: ProvidersConfig = field(default_factory=ProvidersConfig)
    stores: StoresConfig = field(default_factory=StoresConfig)
    callbacks: CallbacksConfig = field(default_factory=CallbacksConfig)
    state: StateConfig = field(default_factory=StateConfig)
    tenants: dict[str, TenantConfig] = field(default_factory=_empty_tenants)

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> Config:
        """Create Config from a mapping (parsed TOML)."""
        polling: StrDict = get_table(data, "polling") or {}
        providers: StrDict = get_table(data, "providers") or {}
        jenkins: StrDict = get_table(providers, "jenkins") or {}
        gha: StrDict = get_table(providers, "github_actions") or {}
        stores: StrDict = get_table(data, "stores") or {}
        callbacks: StrDict = get_table(data, "callbacks") or {}
        state: StrDict = get_table(data, "state") or {}
        tenants: StrDict = get_table(data, "tenants") or {}

        max_workers = get_int(polling, "max_workers") or DEFAULT_MAX_WORKERS
        if max_workers < 1:
            raise ValueError(f"polling.max_workers must be >= 1 (got {max_workers})")

        return cls(
            polling=PollingConfig(
                max_workers=max_workers,
                check_timeout_seconds=get_float(polling, "check_timeout_seconds")
                or DEFAULT_CHECK_TIMEOUT_SECONDS,
            ),
            providers=ProvidersConfig(
                jenkins=JenkinsConfig(
                    queue_timeout_seconds=get_float(jenkins, "queue_timeout_seconds")
                    or DEFAULT_JENKINS_QUEUE_TIMEOUT_SECONDS,
                    build_timeout_seconds=get_float(jenkins, "build_timeout_seconds")
                    or DEFAULT_JENKINS_BUILD_TIMEOUT_SECONDS,
                ),
                github_actions=GitHubActionsConfig(
                    api_base=(get_str(gha, "api_base") or DEFAULT_GITHUB_API_BASE).rstrip("/"),
                    status_timeout_seconds=get_float(gha, "status_timeout_seconds")
                    or DEFAULT_GITHUB_STATUS_TIMEOUT_SECONDS,
                ),
            ),
            stores=StoresConfig(
                gateway_url=get_str(stores, "gateway_url"),
                token_env=get_str(stores, "token_env") or DEFAULT_STORE_TOKEN_ENV,
                timeout_seconds=get_float(stores, "timeout_seconds")
                or DEFAULT_STORE_TIMEOUT_SECONDS,
            ),
            callbacks=CallbacksConfig(
                url=get_str(callbacks, "url"),
                timeout_seconds=get_float(callbacks, "timeout_seconds")
                or DEFAULT_CALLBACK_TIMEOUT_SECONDS,
            ),
            state=StateConfig(path=get_str(state, "path") or DEFAULT_STATE_PATH),
            tenants={
                tenant_id: _parse_tenant(tenant_id, table)
                for tenant_id, table in tenants.items()
                if as_str_dict(table) is not None
            },
        )


def _parse_tenant(tenant_id: str, raw: object) -> TenantConfig:
    table = as_str_dict(raw) or {}
    jenkins_tbl = get_table(table, "jenkins")
    gha_tbl = get_table(table, "github_actions")

    jenkins: JenkinsCredentialsConfig | None = None
    if jenkins_tbl is not None:
        host_url = get_str(jenkins_tbl, "host_url")
        username = get_str(jenkins_tbl, "username")
        token_env = get_str(jenkins_tbl, "api_token_env")
        if host_url is None or username is None or token_env is None:
            raise ValueError(
                f"tenants.{tenant_id}.jenkins requires host_url, username and api_token_env"
            )
        jenkins = JenkinsCredentialsConfig(
            host_url=host_url, username=username, api_token_env=token_env
        )

    github: GitHubCredentialsConfig | None = None
    if gha_tbl is not None:
        token_env = get_str(gha_tbl, "api_token_env")
        if token_env is None:
            raise ValueError(f"tenants.{tenant_id}.github_actions requires api_token_env")
        github = GitHubCredentialsConfig(api_token_env=token_env)

    return TenantConfig(jenkins=jenkins, github_actions=github)


def _parse_toml(path: Path) -> Result[StrDict, ConfigError]:
    """Parse a TOML file, handling read and parse errors."""
    import tomllib

    try:
        content = path.read_bytes()
        data_obj: object = tomllib.loads(content.decode("utf-8"))
        data = as_str_dict(data_obj)
        if data is None:
            return Err(ConfigError("Config root must be a TOML table", path=path))
        return Ok(data)
    except FileNotFoundError:
        return Err(ConfigError(f"Config file not found: {path}", path=path))
    except PermissionError:
        return Err(ConfigError(f"Permission denied reading: {path}", path=path))
    except tomllib.TOMLDecodeError as e:
        return Err(ConfigError(f"Invalid TOML syntax: {e}", path=path))
    except UnicodeDecodeError as e:
        return Err(ConfigError(f"Error reading config: {e}", path=path))


def load_config(path: Path) -> Result[Config, ConfigError]:
    """Load and parse configuration from a TOML file.

    Args:
        path: Path to rr.toml

    Returns:
        Ok(Config) on success, Err(ConfigError) on failure
    """
    result = _parse_toml(path)
    if isinstance(result, Err):
        return result

    try:
        return Ok(Config.from_dict(result.value))
    except (KeyError, TypeError, ValueError) as e:
        return Err(ConfigError(f"Invalid config structure: {e}", path=path))


def load_config_or_default(path: Path) -> Result[Config, ConfigError]:
    """Load config, or return defaults when the file does not exist.

    A file that exists but cannot be parsed is still an error.
    """
    if not path.exists():
        return Ok(Config())
    return load_config(path)
