"""GitHub Actions status adapter.

A workflow dispatch is recorded with the run's HTML URL, which doubles as the
run identifier: queue and build checks both read the same run resource.
"""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import urlsplit

from rr.core.config import GitHubActionsConfig
from rr.core.result import Err, Ok, Result
from rr.core.structured import get_str
from rr.domain.errors import ProviderError, ProviderRequestFailed
from rr.domain.models import ProviderType
from rr.providers.base import BuildCheck, CanonicalStatus, QueueCheck, http_failure
from rr.providers.credentials import CredentialStore, GitHubCredentials
from rr.providers.http import HttpClient

__all__ = ["GitHubActionsAdapter", "RunRef", "parse_run_url", "map_run_status"]

_PROVIDER = str(ProviderType.GITHUB_ACTIONS)

_QUEUED = frozenset({"queued", "waiting", "requested", "pending"})
_FAILED_CONCLUSIONS = frozenset({"failure", "timed_out"})
_SUCCESS_CONCLUSIONS = frozenset({"success", "neutral", "skipped", "stale", ""})


@dataclass(frozen=True, slots=True)
class RunRef:
    owner: str
    repo: str
    run_id: str


def parse_run_url(url: str) -> RunRef | None:
    """Parse ``https://github.com/<owner>/<repo>/actions/runs/<id>``."""
    try:
        parts = urlsplit(url.strip())
    except ValueError:
        return None
    if (parts.hostname or "").lower() != "github.com":
        return None
    segments = [s for s in parts.path.split("/") if s]
    if len(segments) < 5 or segments[2] != "actions" or segments[3] != "runs":
        return None
    run_id = segments[4]
    if not run_id.isdigit():
        return None
    return RunRef(owner=segments[0], repo=segments[1], run_id=run_id)


def map_run_status(status: str | None, conclusion: str | None) -> CanonicalStatus:
    """Map a run's ``status``/``conclusion`` pair onto the canonical status."""
    normalized = (status or "").lower()
    if normalized in _QUEUED:
        return CanonicalStatus.PENDING
    if normalized == "in_progress":
        return CanonicalStatus.RUNNING
    if normalized != "completed":
        return CanonicalStatus.PENDING

    outcome = (conclusion or "").lower()
    if outcome == "cancelled":
        return CanonicalStatus.CANCELLED
    if outcome == "action_required":
        return CanonicalStatus.PENDING
    if outcome in _FAILED_CONCLUSIONS:
        return CanonicalStatus.FAILED
    if outcome in _SUCCESS_CONCLUSIONS:
        return CanonicalStatus.COMPLETED
    return CanonicalStatus.FAILED


class GitHubActionsAdapter:
    def __init__(
        self, http: HttpClient, credentials: CredentialStore, config: GitHubActionsConfig
    ) -> None:
        self._http = http
        self._credentials = credentials
        self._config = config

    def _run_status(self, tenant_id: str, run_url: str) -> Result[CanonicalStatus, ProviderError]:
        ref = parse_run_url(run_url)
        if ref is None:
            return Err(ProviderRequestFailed(_PROVIDER, f"not a GitHub Actions run URL: {run_url}"))

        creds = self._credentials.get_credentials(tenant_id, ProviderType.GITHUB_ACTIONS)
        if isinstance(creds, Err):
            return creds
        if not isinstance(creds.value, GitHubCredentials):
            return Err(ProviderRequestFailed(_PROVIDER, "credentials are not GitHub credentials"))

        url = f"{self._config.api_base}/repos/{ref.owner}/{ref.repo}/actions/runs/{ref.run_id}"
        result = self._http.get_json(
            url,
            headers={
                "Authorization": f"Bearer {creds.value.api_token}",
                "Accept": "application/vnd.github+json",
            },
            timeout=self._config.status_timeout_seconds,
        )
        if isinstance(result, Err):
            return Err(http_failure(_PROVIDER, result.error))

        data = result.value
        return Ok(map_run_status(get_str(data, "status"), get_str(data, "conclusion")))

    def check_queue_status(
        self, tenant_id: str, queue_location: str
    ) -> Result[QueueCheck, ProviderError]:
        status = self._run_status(tenant_id, queue_location)
        if isinstance(status, Err):
            return status
        return Ok(QueueCheck(status.value, run_id=queue_location))

    def check_build_status(
        self, tenant_id: str, run_id: str
    ) -> Result[BuildCheck, ProviderError]:
        status = self._run_status(tenant_id, run_id)
        if isinstance(status, Err):
            return status
        if status.value is CanonicalStatus.CANCELLED:
            return Ok(BuildCheck(CanonicalStatus.FAILED))
        return Ok(BuildCheck(status.value))
