"""Tests for rr.services.stores - store gateway client."""

from __future__ import annotations

from collections.abc import Callable

import pytest

from rr.core.config import StoresConfig
from rr.core.result import Err, Ok, Result
from rr.domain.errors import StoreCallFailed
from rr.domain.models import Platform, Submission
from rr.providers.http import HttpError, MockHttpClient
from rr.services.stores import StoreGatewayClient, UnconfiguredStoreClient

GATEWAY = "https://stores.acme.dev/api/"
SUB = Submission("sub_1", "r1", Platform.IOS, "5.0.0", phased_release=True)


def _client(http: MockHttpClient, env: dict[str, str] | None = None) -> StoreGatewayClient:
    return StoreGatewayClient(
        http,
        StoresConfig(gateway_url=GATEWAY),
        env={"RR_STORE_TOKEN": "tkn"} if env is None else env,
    )


class TestGatewayClient:
    def test_submit(self) -> None:
        http = MockHttpClient()
        url = "https://stores.acme.dev/api/ios/submissions/sub_1/submit"
        http.set_post(url, {})

        assert _client(http).submit(SUB) == Ok(None)

        call = http.calls[0]
        assert call.url == url
        assert call.payload == {"versionName": "5.0.0", "phasedRelease": True}
        assert call.headers == {"Authorization": "Bearer tkn"}

    @pytest.mark.parametrize(
        ("action", "invoke", "extra"),
        [
            ("rollout", lambda c: c.set_exposure(SUB, 30.0), {"exposurePercent": 30.0}),
            ("pause", lambda c: c.pause(SUB, "crash"), {"reason": "crash"}),
            ("resume", lambda c: c.resume(SUB, 10.0), {"exposurePercent": 10.0}),
            ("halt", lambda c: c.halt(SUB, "bad"), {"reason": "bad"}),
            ("complete-phased-release", lambda c: c.complete_phased_release(SUB), {}),
        ],
    )
    def test_actions(
        self,
        action: str,
        invoke: Callable[[StoreGatewayClient], Result[None, StoreCallFailed]],
        extra: dict[str, object],
    ) -> None:
        http = MockHttpClient()
        url = f"https://stores.acme.dev/api/ios/submissions/sub_1/{action}"
        http.set_post(url, {})

        assert invoke(_client(http)) == Ok(None)
        assert http.calls[0].payload == {"versionName": "5.0.0", **extra}

    def test_http_error(self) -> None:
        http = MockHttpClient()
        url = "https://stores.acme.dev/api/ios/submissions/sub_1/halt"
        http.set_post(url, HttpError(url, 409, "Conflict"))

        result = _client(http).halt(SUB, "bad")

        assert isinstance(result, Err)
        assert (result.error.platform, result.error.operation) == (Platform.IOS, "halt")
        assert "HTTP 409" in result.error.message

    def test_missing_token(self) -> None:
        http = MockHttpClient()
        result = _client(http, env={}).submit(SUB)

        assert isinstance(result, Err)
        assert "RR_STORE_TOKEN" in result.error.message
        assert http.calls == []

    def test_requires_gateway(self) -> None:
        with pytest.raises(ValueError, match="gateway_url"):
            StoreGatewayClient(MockHttpClient(), StoresConfig())


def test_unconfigured_client_refuses() -> None:
    result = UnconfiguredStoreClient().pause(SUB, "x")
    assert isinstance(result, Err)
    assert result.error.operation == "pause"
