"""Tests for tenant credential lookup."""

from __future__ import annotations

import pytest

from rr.core.config import GitHubCredentialsConfig, JenkinsCredentialsConfig, TenantConfig
from rr.core.result import Err, Ok
from rr.domain.models import ProviderType
from rr.providers.credentials import (
    ConfigCredentialStore,
    GitHubCredentials,
    JenkinsCredentials,
    StaticCredentialStore,
)

TENANTS = {
    "acme": TenantConfig(
        jenkins=JenkinsCredentialsConfig(
            host_url="https://ci.acme.dev", username="bot", api_token_env="ACME_JENKINS"
        ),
        github_actions=GitHubCredentialsConfig(api_token_env="ACME_GH"),
    ),
    "bare": TenantConfig(),
}


class TestConfigCredentialStore:
    def test_jenkins(self) -> None:
        store = ConfigCredentialStore(TENANTS, env={"ACME_JENKINS": " tok \n"})
        assert store.get_credentials("acme", ProviderType.JENKINS) == Ok(
            JenkinsCredentials("https://ci.acme.dev", "bot", "tok")
        )

    def test_github(self) -> None:
        store = ConfigCredentialStore(TENANTS, env={"ACME_GH": "ghp"})
        assert store.get_credentials("acme", ProviderType.GITHUB_ACTIONS) == Ok(
            GitHubCredentials("ghp")
        )

    def test_env_var_missing(self) -> None:
        result = ConfigCredentialStore(TENANTS, env={}).get_credentials(
            "acme", ProviderType.JENKINS
        )
        assert isinstance(result, Err)
        assert "ACME_JENKINS is not set" in result.error.message

    def test_unknown_tenant(self) -> None:
        result = ConfigCredentialStore(TENANTS, env={}).get_credentials(
            "nobody", ProviderType.JENKINS
        )
        assert isinstance(result, Err)
        assert result.error.provider == "jenkins"

    def test_tenant_without_integration(self) -> None:
        result = ConfigCredentialStore(TENANTS, env={"ACME_GH": "x"}).get_credentials(
            "bare", ProviderType.GITHUB_ACTIONS
        )
        assert isinstance(result, Err)
        assert "tenant bare" in result.error.message

    def test_unsupported_provider_has_no_credentials(self) -> None:
        result = ConfigCredentialStore(TENANTS, env={}).get_credentials(
            "acme", ProviderType.CIRCLE_CI
        )
        assert isinstance(result, Err)

    def test_reads_process_environment_by_default(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ACME_GH", "from-env")
        assert ConfigCredentialStore(TENANTS).get_credentials(
            "acme", ProviderType.GITHUB_ACTIONS
        ) == Ok(GitHubCredentials("from-env"))


def test_token_not_in_repr() -> None:
    assert "secret" not in repr(JenkinsCredentials("https://ci", "bot", "secret"))
    assert "secret" not in repr(GitHubCredentials("secret"))


def test_static_store() -> None:
    store = StaticCredentialStore({("t", ProviderType.GITHUB_ACTIONS): GitHubCredentials("x")})
    assert isinstance(store.get_credentials("t", ProviderType.GITHUB_ACTIONS), Ok)
    assert isinstance(store.get_credentials("t", ProviderType.JENKINS), Err)
