"""Tenant credential lookup for CI/CD providers.

The config file names environment variables; tokens are read at lookup time
and never persisted.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Protocol

from rr.core.config import TenantConfig
from rr.core.result import Err, Ok, Result
from rr.domain.errors import ProviderRequestFailed
from rr.domain.models import ProviderType

__all__ = [
    "JenkinsCredentials",
    "GitHubCredentials",
    "ProviderCredentials",
    "CredentialStore",
    "ConfigCredentialStore",
    "StaticCredentialStore",
]


@dataclass(frozen=True, slots=True)
class JenkinsCredentials:
    host_url: str
    username: str
    api_token: str = field(repr=False)


@dataclass(frozen=True, slots=True)
class GitHubCredentials:
    api_token: str = field(repr=False)


ProviderCredentials = JenkinsCredentials | GitHubCredentials


class CredentialStore(Protocol):
    def get_credentials(
        self, tenant_id: str, provider_type: ProviderType
    ) -> Result[ProviderCredentials, ProviderRequestFailed]: ...


class ConfigCredentialStore:
    """Resolve credentials from ``[tenants.<id>.*]`` config plus the environment."""

    def __init__(
        self,
        tenants: Mapping[str, TenantConfig],
        env: Mapping[str, str] | None = None,
    ) -> None:
        self._tenants = tenants
        self._env = env if env is not None else os.environ

    def _secret(
        self, provider_type: ProviderType, tenant_id: str, env_name: str
    ) -> Result[str, ProviderRequestFailed]:
        value = self._env.get(env_name, "").strip()
        if not value:
            return Err(
                ProviderRequestFailed(
                    provider=str(provider_type),
                    message=f"tenant {tenant_id}: environment variable {env_name} is not set",
                )
            )
        return Ok(value)

    def get_credentials(
        self, tenant_id: str, provider_type: ProviderType
    ) -> Result[ProviderCredentials, ProviderRequestFailed]:
        tenant = self._tenants.get(tenant_id)
        missing = Err(
            ProviderRequestFailed(
                provider=str(provider_type),
                message=f"no {provider_type} integration configured for tenant {tenant_id}",
            )
        )
        if tenant is None:
            return missing

        match provider_type:
            case ProviderType.JENKINS:
                if tenant.jenkins is None:
                    return missing
                token = self._secret(provider_type, tenant_id, tenant.jenkins.api_token_env)
                if isinstance(token, Err):
                    return token
                return Ok(
                    JenkinsCredentials(
                        host_url=tenant.jenkins.host_url,
                        username=tenant.jenkins.username,
                        api_token=token.value,
                    )
                )
            case ProviderType.GITHUB_ACTIONS:
                if tenant.github_actions is None:
                    return missing
                token = self._secret(provider_type, tenant_id, tenant.github_actions.api_token_env)
                if isinstance(token, Err):
                    return token
                return Ok(GitHubCredentials(api_token=token.value))
            case ProviderType.CIRCLE_CI | ProviderType.GITLAB_CI:
                return missing


class StaticCredentialStore:
    """In-memory credentials keyed by (tenant, provider). Useful in tests."""

    def __init__(
        self, entries: Mapping[tuple[str, ProviderType], ProviderCredentials] | None = None
    ) -> None:
        self._entries = dict(entries or {})

    def get_credentials(
        self, tenant_id: str, provider_type: ProviderType
    ) -> Result[ProviderCredentials, ProviderRequestFailed]:
        creds = self._entries.get((tenant_id, provider_type))
        if creds is None:
            return Err(
                ProviderRequestFailed(
                    provider=str(provider_type),
                    message=f"no {provider_type} integration configured for tenant {tenant_id}",
                )
            )
        return Ok(creds)
