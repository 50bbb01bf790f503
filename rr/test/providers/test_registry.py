"""Tests for rr.providers.registry."""

from __future__ import annotations

import pytest

from rr.core.config import ProvidersConfig
from rr.core.result import Err
from rr.domain.errors import UnsupportedProvider
from rr.domain.models import ProviderType
from rr.providers.credentials import StaticCredentialStore
from rr.providers.github_actions import GitHubActionsAdapter
from rr.providers.http import MockHttpClient
from rr.providers.jenkins import JenkinsAdapter
from rr.providers.registry import ProviderRegistry, UnsupportedAdapter


@pytest.fixture
def registry() -> ProviderRegistry:
    return ProviderRegistry.create(MockHttpClient(), StaticCredentialStore(), ProvidersConfig())


def test_known_providers(registry: ProviderRegistry) -> None:
    assert isinstance(registry.adapter_for(ProviderType.JENKINS), JenkinsAdapter)
    assert isinstance(registry.adapter_for(ProviderType.GITHUB_ACTIONS), GitHubActionsAdapter)


@pytest.mark.parametrize("provider", [ProviderType.CIRCLE_CI, ProviderType.GITLAB_CI])
def test_unsupported_providers(registry: ProviderRegistry, provider: ProviderType) -> None:
    adapter = registry.adapter_for(provider)

    assert isinstance(adapter, UnsupportedAdapter)
    assert adapter.check_queue_status("t", "q") == Err(UnsupportedProvider(str(provider)))
    assert adapter.check_build_status("t", "r") == Err(UnsupportedProvider(str(provider)))


def test_same_adapter_instance_every_lookup(registry: ProviderRegistry) -> None:
    assert registry.adapter_for(ProviderType.JENKINS) is registry.adapter_for(ProviderType.JENKINS)
