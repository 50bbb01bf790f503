"""Tests for the GitHub Actions status adapter."""

from __future__ import annotations

import pytest

from rr.core.config import GitHubActionsConfig
from rr.core.result import Err, Ok
from rr.domain.errors import ProviderRequestFailed, ProviderTransientFailure
from rr.domain.models import ProviderType
from rr.providers.base import BuildCheck, CanonicalStatus, QueueCheck
from rr.providers.credentials import GitHubCredentials, StaticCredentialStore
from rr.providers.github_actions import GitHubActionsAdapter, RunRef, map_run_status, parse_run_url
from rr.providers.http import HttpError, MockHttpClient

RUN_URL = "https://github.com/acme/app/actions/runs/9001"
API_URL = "https://api.github.com/repos/acme/app/actions/runs/9001"


def _adapter(http: MockHttpClient) -> GitHubActionsAdapter:
    creds = StaticCredentialStore(
        {("acme", ProviderType.GITHUB_ACTIONS): GitHubCredentials("ghp_token")}
    )
    return GitHubActionsAdapter(http, creds, GitHubActionsConfig())


# =============================================================================
# URL parsing
# =============================================================================


class TestParseRunUrl:
    def test_valid(self) -> None:
        assert parse_run_url(RUN_URL) == RunRef("acme", "app", "9001")

    def test_trailing_segments_are_ignored(self) -> None:
        assert parse_run_url(RUN_URL + "/attempts/2") == RunRef("acme", "app", "9001")

    @pytest.mark.parametrize(
        "url",
        [
            "https://gitlab.com/acme/app/actions/runs/9001",
            "https://github.com/acme/app/pull/12",
            "https://github.com/acme/app/actions/runs/latest",
            "https://github.com/acme",
            "not a url",
        ],
    )
    def test_invalid(self, url: str) -> None:
        assert parse_run_url(url) is None


# =============================================================================
# Status mapping
# =============================================================================


class TestMapRunStatus:
    @pytest.mark.parametrize("status", ["queued", "waiting", "requested", "pending"])
    def test_queued_states_are_pending(self, status: str) -> None:
        assert map_run_status(status, None) is CanonicalStatus.PENDING

    def test_in_progress(self) -> None:
        assert map_run_status("in_progress", None) is CanonicalStatus.RUNNING

    @pytest.mark.parametrize(
        ("conclusion", "expected"),
        [
            ("success", CanonicalStatus.COMPLETED),
            ("neutral", CanonicalStatus.COMPLETED),
            ("skipped", CanonicalStatus.COMPLETED),
            (None, CanonicalStatus.COMPLETED),
            ("failure", CanonicalStatus.FAILED),
            ("timed_out", CanonicalStatus.FAILED),
            ("startup_failure", CanonicalStatus.FAILED),
            ("cancelled", CanonicalStatus.CANCELLED),
            ("action_required", CanonicalStatus.PENDING),
        ],
    )
    def test_completed_conclusions(self, conclusion: str | None, expected: CanonicalStatus) -> None:
        assert map_run_status("completed", conclusion) is expected

    def test_case_insensitive(self) -> None:
        assert map_run_status("COMPLETED", "Success") is CanonicalStatus.COMPLETED

    def test_unknown_status_is_pending(self) -> None:
        assert map_run_status(None, None) is CanonicalStatus.PENDING


# =============================================================================
# Adapter
# =============================================================================


class TestAdapter:
    def test_queue_check_reuses_run_url(self) -> None:
        http = MockHttpClient()
        http.set_json(API_URL, {"status": "in_progress"})

        assert _adapter(http).check_queue_status("acme", RUN_URL) == Ok(
            QueueCheck(CanonicalStatus.RUNNING, run_id=RUN_URL)
        )

    def test_bearer_token(self) -> None:
        http = MockHttpClient()
        http.set_json(API_URL, {"status": "queued"})
        _adapter(http).check_queue_status("acme", RUN_URL)

        assert http.calls[0].url == API_URL
        assert http.calls[0].headers["Authorization"] == "Bearer ghp_token"

    def test_build_check_completed(self) -> None:
        http = MockHttpClient()
        http.set_json(API_URL, {"status": "completed", "conclusion": "success"})

        assert _adapter(http).check_build_status("acme", RUN_URL) == Ok(
            BuildCheck(CanonicalStatus.COMPLETED)
        )

    def test_build_check_treats_cancelled_as_failed(self) -> None:
        http = MockHttpClient()
        http.set_json(API_URL, {"status": "completed", "conclusion": "cancelled"})

        assert _adapter(http).check_build_status("acme", RUN_URL) == Ok(
            BuildCheck(CanonicalStatus.FAILED)
        )

    def test_queue_check_keeps_cancelled(self) -> None:
        http = MockHttpClient()
        http.set_json(API_URL, {"status": "completed", "conclusion": "cancelled"})

        result = _adapter(http).check_queue_status("acme", RUN_URL)

        assert isinstance(result, Ok)
        assert result.value.status is CanonicalStatus.CANCELLED

    def test_bad_url_is_request_failure(self) -> None:
        http = MockHttpClient()
        result = _adapter(http).check_build_status("acme", "https://example.com/run/1")

        assert isinstance(result, Err)
        assert isinstance(result.error, ProviderRequestFailed)
        assert http.calls == []

    def test_rate_limited_is_transient(self) -> None:
        http = MockHttpClient()
        http.set_json(API_URL, HttpError(API_URL, 429, "Too Many Requests"))

        result = _adapter(http).check_build_status("acme", RUN_URL)

        assert isinstance(result, Err)
        assert isinstance(result.error, ProviderTransientFailure)

    def test_missing_run_is_request_failure(self) -> None:
        result = _adapter(MockHttpClient()).check_build_status("acme", RUN_URL)

        assert isinstance(result, Err)
        assert isinstance(result.error, ProviderRequestFailed)
        assert result.error.status == 404

    def test_custom_api_base(self) -> None:
        http = MockHttpClient()
        url = "https://ghe.acme.dev/api/v3/repos/acme/app/actions/runs/9001"
        http.set_json(url, {"status": "queued"})
        creds = StaticCredentialStore(
            {("acme", ProviderType.GITHUB_ACTIONS): GitHubCredentials("t")}
        )
        adapter = GitHubActionsAdapter(
            http, creds, GitHubActionsConfig(api_base="https://ghe.acme.dev/api/v3")
        )

        assert adapter.check_queue_status("acme", RUN_URL) == Ok(
            QueueCheck(CanonicalStatus.PENDING, run_id=RUN_URL)
        )
