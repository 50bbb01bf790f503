"""Provider registry: maps a build's provider type to its status adapter.

Built once at process start and passed to the reconciler.
"""

from __future__ import annotations

from rr.core.config import ProvidersConfig
from rr.core.result import Err, Result
from rr.domain.errors import ProviderError, UnsupportedProvider
from rr.domain.models import ProviderType
from rr.providers.base import BuildCheck, ProviderStatusAdapter, QueueCheck
from rr.providers.credentials import CredentialStore
from rr.providers.github_actions import GitHubActionsAdapter
from rr.providers.http import HttpClient
from rr.providers.jenkins import JenkinsAdapter

__all__ = ["ProviderRegistry", "UnsupportedAdapter"]


class UnsupportedAdapter:
    """Adapter for a recognized provider that has no status integration yet."""

    def __init__(self, provider_type: ProviderType) -> None:
        self.provider_type = provider_type

    def check_queue_status(
        self, tenant_id: str, queue_location: str
    ) -> Result[QueueCheck, ProviderError]:
        return Err(UnsupportedProvider(str(self.provider_type)))

    def check_build_status(
        self, tenant_id: str, run_id: str
    ) -> Result[BuildCheck, ProviderError]:
        return Err(UnsupportedProvider(str(self.provider_type)))


class ProviderRegistry:
    def __init__(
        self,
        *,
        jenkins: ProviderStatusAdapter,
        github_actions: ProviderStatusAdapter,
    ) -> None:
        self._jenkins = jenkins
        self._github_actions = github_actions
        self._circle_ci = UnsupportedAdapter(ProviderType.CIRCLE_CI)
        self._gitlab_ci = UnsupportedAdapter(ProviderType.GITLAB_CI)

    @classmethod
    def create(
        cls, http: HttpClient, credentials: CredentialStore, config: ProvidersConfig
    ) -> ProviderRegistry:
        return cls(
            jenkins=JenkinsAdapter(http, credentials, config.jenkins),
            github_actions=GitHubActionsAdapter(http, credentials, config.github_actions),
        )

    def adapter_for(self, provider_type: ProviderType) -> ProviderStatusAdapter:
        match provider_type:
            case ProviderType.JENKINS:
                return self._jenkins
            case ProviderType.GITHUB_ACTIONS:
                return self._github_actions
            case ProviderType.CIRCLE_CI:
                return self._circle_ci
            case ProviderType.GITLAB_CI:
                return self._gitlab_ci
        # Fallback for exhaustiveness
        return UnsupportedAdapter(provider_type)
