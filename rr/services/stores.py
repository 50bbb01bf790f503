"""Store submission clients (App Store Connect / Play Console via a gateway).

Rollout operations mirror a remote effect locally, so the remote call is
made first and local state is committed only when it succeeds.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Protocol
from urllib.parse import quote

from rr.core.config import StoresConfig
from rr.core.result import Err, Ok, Result
from rr.domain.errors import StoreCallFailed
from rr.domain.models import Submission
from rr.providers.http import HttpClient

__all__ = ["StoreClient", "StoreGatewayClient", "UnconfiguredStoreClient"]


class StoreClient(Protocol):
    def submit(self, submission: Submission) -> Result[None, StoreCallFailed]: ...

    def set_exposure(
        self, submission: Submission, percent: float
    ) -> Result[None, StoreCallFailed]: ...

    def pause(self, submission: Submission, reason: str) -> Result[None, StoreCallFailed]: ...

    def resume(self, submission: Submission, percent: float) -> Result[None, StoreCallFailed]: ...

    def halt(self, submission: Submission, reason: str) -> Result[None, StoreCallFailed]: ...

    def complete_phased_release(self, submission: Submission) -> Result[None, StoreCallFailed]: ...


class StoreGatewayClient:
    """JSON-over-HTTP client for the store submission gateway.

    Each operation is ``POST <gateway>/<platform>/submissions/<id>/<action>``.
    """

    def __init__(
        self, http: HttpClient, config: StoresConfig, env: Mapping[str, str] | None = None
    ) -> None:
        if not config.gateway_url:
            raise ValueError("stores.gateway_url is not configured")
        self._http = http
        self._base = config.gateway_url.rstrip("/")
        self._timeout = config.timeout_seconds
        self._token_env = config.token_env
        self._env = env if env is not None else os.environ

    def _call(
        self, submission: Submission, action: str, payload: Mapping[str, object]
    ) -> Result[None, StoreCallFailed]:
        token = self._env.get(self._token_env, "").strip()
        if not token:
            return Err(
                StoreCallFailed(
                    submission.platform,
                    action,
                    f"environment variable {self._token_env} is not set",
                )
            )
        url = (
            f"{self._base}/{submission.platform.value.lower()}"
            f"/submissions/{quote(submission.id, safe='')}/{action}"
        )
        result = self._http.post_json(
            url,
            {"versionName": submission.version_name, **payload},
            headers={"Authorization": f"Bearer {token}"},
            timeout=self._timeout,
        )
        if isinstance(result, Err):
            return Err(StoreCallFailed(submission.platform, action, str(result.error)))
        return Ok(None)

    def submit(self, submission: Submission) -> Result[None, StoreCallFailed]:
        return self._call(submission, "submit", {"phasedRelease": submission.phased_release})

    def set_exposure(self, submission: Submission, percent: float) -> Result[None, StoreCallFailed]:
        return self._call(submission, "rollout", {"exposurePercent": percent})

    def pause(self, submission: Submission, reason: str) -> Result[None, StoreCallFailed]:
        return self._call(submission, "pause", {"reason": reason})

    def resume(self, submission: Submission, percent: float) -> Result[None, StoreCallFailed]:
        return self._call(submission, "resume", {"exposurePercent": percent})

    def halt(self, submission: Submission, reason: str) -> Result[None, StoreCallFailed]:
        return self._call(submission, "halt", {"reason": reason})

    def complete_phased_release(self, submission: Submission) -> Result[None, StoreCallFailed]:
        return self._call(submission, "complete-phased-release", {})


class UnconfiguredStoreClient:
    """Refuses every call; used when no gateway is configured."""

    def _refuse(self, submission: Submission, action: str) -> Result[None, StoreCallFailed]:
        return Err(
            StoreCallFailed(submission.platform, action, "stores.gateway_url is not configured")
        )

    def submit(self, submission: Submission) -> Result[None, StoreCallFailed]:
        return self._refuse(submission, "submit")

    def set_exposure(self, submission: Submission, percent: float) -> Result[None, StoreCallFailed]:
        return self._refuse(submission, "rollout")

    def pause(self, submission: Submission, reason: str) -> Result[None, StoreCallFailed]:
        return self._refuse(submission, "pause")

    def resume(self, submission: Submission, percent: float) -> Result[None, StoreCallFailed]:
        return self._refuse(submission, "resume")

    def halt(self, submission: Submission, reason: str) -> Result[None, StoreCallFailed]:
        return self._refuse(submission, "halt")

    def complete_phased_release(self, submission: Submission) -> Result[None, StoreCallFailed]:
        return self._refuse(submission, "complete-phased-release")
