"""Tests for the Jenkins status adapter."""

from __future__ import annotations

import base64

from rr.core.config import JenkinsConfig
from rr.core.result import Err, Ok
from rr.domain.errors import ProviderRequestFailed, ProviderTransientFailure
from rr.domain.models import ProviderType
from rr.providers.base import BuildCheck, CanonicalStatus, QueueCheck
from rr.providers.credentials import JenkinsCredentials, StaticCredentialStore
from rr.providers.http import HttpError, MockHttpClient
from rr.providers.jenkins import JenkinsAdapter, api_json_url

HOST = "https://ci.acme.dev"
QUEUE = f"{HOST}/queue/item/42/"
RUN = f"{HOST}/job/app/7/"


def _adapter(http: MockHttpClient) -> JenkinsAdapter:
    creds = StaticCredentialStore(
        {("acme", ProviderType.JENKINS): JenkinsCredentials(HOST, "bot", "s3cret")}
    )
    return JenkinsAdapter(http, creds, JenkinsConfig())


def test_api_json_url_adds_slash() -> None:
    assert api_json_url(f"{HOST}/queue/item/42") == f"{HOST}/queue/item/42/api/json"
    assert api_json_url(QUEUE) == f"{HOST}/queue/item/42/api/json"


class TestQueueStatus:
    def test_waiting_item_is_pending(self) -> None:
        http = MockHttpClient()
        http.set_json(api_json_url(QUEUE), {"blocked": False, "why": "Waiting for executor"})

        assert _adapter(http).check_queue_status("acme", QUEUE) == Ok(
            QueueCheck(CanonicalStatus.PENDING)
        )

    def test_uses_basic_auth(self) -> None:
        http = MockHttpClient()
        http.set_json(api_json_url(QUEUE), {})
        _adapter(http).check_queue_status("acme", QUEUE)

        expected = "Basic " + base64.b64encode(b"bot:s3cret").decode("ascii")
        assert http.calls[0].headers["Authorization"] == expected

    def test_cancelled_item(self) -> None:
        http = MockHttpClient()
        http.set_json(api_json_url(QUEUE), {"cancelled": True})
        assert _adapter(http).check_queue_status("acme", QUEUE) == Ok(
            QueueCheck(CanonicalStatus.CANCELLED)
        )

    def test_purged_item_is_cancelled(self) -> None:
        # MockHttpClient answers 404 for unregistered URLs.
        assert _adapter(MockHttpClient()).check_queue_status("acme", QUEUE) == Ok(
            QueueCheck(CanonicalStatus.CANCELLED)
        )

    def test_executable_means_started(self) -> None:
        http = MockHttpClient()
        http.set_json(api_json_url(QUEUE), {"executable": {"url": f"{HOST}/job/app/7"}})
        http.set_json(api_json_url(RUN), {"building": True, "result": None})

        assert _adapter(http).check_queue_status("acme", QUEUE) == Ok(
            QueueCheck(CanonicalStatus.RUNNING, run_id=RUN)
        )

    def test_already_successful_build_reports_completed(self) -> None:
        http = MockHttpClient()
        http.set_json(api_json_url(QUEUE), {"executable": {"url": RUN}})
        http.set_json(api_json_url(RUN), {"building": False, "result": "SUCCESS"})

        assert _adapter(http).check_queue_status("acme", QUEUE) == Ok(
            QueueCheck(CanonicalStatus.COMPLETED, run_id=RUN)
        )

    def test_failed_build_is_left_to_run_check(self) -> None:
        http = MockHttpClient()
        http.set_json(api_json_url(QUEUE), {"executable": {"url": RUN}})
        http.set_json(api_json_url(RUN), {"building": False, "result": "FAILURE"})

        assert _adapter(http).check_queue_status("acme", QUEUE) == Ok(
            QueueCheck(CanonicalStatus.RUNNING, run_id=RUN)
        )

    def test_server_error_is_transient(self) -> None:
        http = MockHttpClient()
        http.set_json(api_json_url(QUEUE), HttpError(api_json_url(QUEUE), 503, "Unavailable"))

        result = _adapter(http).check_queue_status("acme", QUEUE)

        assert isinstance(result, Err)
        assert isinstance(result.error, ProviderTransientFailure)
        assert result.error.status == 503

    def test_forbidden_is_request_failure(self) -> None:
        http = MockHttpClient()
        http.set_json(api_json_url(QUEUE), HttpError(api_json_url(QUEUE), 403, "Forbidden"))

        result = _adapter(http).check_queue_status("acme", QUEUE)

        assert isinstance(result, Err)
        assert isinstance(result.error, ProviderRequestFailed)

    def test_foreign_host_is_refused_without_a_request(self) -> None:
        http = MockHttpClient()
        result = _adapter(http).check_queue_status("acme", "https://evil.example/queue/item/1/")

        assert isinstance(result, Err)
        assert isinstance(result.error, ProviderRequestFailed)
        assert http.calls == []

    def test_unknown_tenant(self) -> None:
        result = _adapter(MockHttpClient()).check_queue_status("other", QUEUE)
        assert isinstance(result, Err)
        assert "tenant other" in result.error.message


class TestBuildStatus:
    def test_building(self) -> None:
        http = MockHttpClient()
        http.set_json(api_json_url(RUN), {"building": True})
        assert _adapter(http).check_build_status("acme", RUN) == Ok(
            BuildCheck(CanonicalStatus.RUNNING)
        )

    def test_success(self) -> None:
        http = MockHttpClient()
        http.set_json(api_json_url(RUN), {"building": False, "result": "SUCCESS"})
        assert _adapter(http).check_build_status("acme", RUN) == Ok(
            BuildCheck(CanonicalStatus.COMPLETED)
        )

    def test_any_other_result_is_failed(self) -> None:
        http = MockHttpClient()
        http.set_json(api_json_url(RUN), {"building": False, "result": "ABORTED"})
        assert _adapter(http).check_build_status("acme", RUN) == Ok(
            BuildCheck(CanonicalStatus.FAILED)
        )

    def test_timeout_is_transient(self) -> None:
        http = MockHttpClient()
        http.set_json(api_json_url(RUN), HttpError(api_json_url(RUN), 0, "Request timed out"))

        result = _adapter(http).check_build_status("acme", RUN)

        assert isinstance(result, Err)
        assert isinstance(result.error, ProviderTransientFailure)
