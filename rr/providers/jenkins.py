"""Jenkins status adapter.

A Jenkins trigger hands back a queue item URL. The queue item gains an
``executable`` once an executor picks the job up; that executable URL is the
run identifier used by later build checks.
"""

from __future__ import annotations

import base64
from urllib.parse import urlsplit

from rr.core.config import JenkinsConfig
from rr.core.result import Err, Ok, Result
from rr.core.structured import StrDict, get_bool, get_str, get_table
from rr.domain.errors import ProviderError, ProviderRequestFailed
from rr.domain.models import ProviderType
from rr.providers.base import BuildCheck, CanonicalStatus, QueueCheck, http_failure
from rr.providers.credentials import CredentialStore, JenkinsCredentials
from rr.providers.http import HttpClient

__all__ = ["JenkinsAdapter", "api_json_url"]

_PROVIDER = str(ProviderType.JENKINS)
_RESULT_SUCCESS = "SUCCESS"


def _with_slash(url: str) -> str:
    return url if url.endswith("/") else url + "/"


def api_json_url(resource_url: str) -> str:
    """Jenkins JSON API endpoint for a queue item or build URL."""
    return _with_slash(resource_url) + "api/json"


def _same_host(url: str, host_url: str) -> bool:
    a, b = urlsplit(url), urlsplit(host_url)
    return (a.hostname or "").lower() == (b.hostname or "").lower() and a.port == b.port


class JenkinsAdapter:
    """Queue and build status for Jenkins, over the JSON API with basic auth."""

    def __init__(
        self, http: HttpClient, credentials: CredentialStore, config: JenkinsConfig
    ) -> None:
        self._http = http
        self._credentials = credentials
        self._config = config

    def _credentials_for(
        self, tenant_id: str, url: str
    ) -> Result[JenkinsCredentials, ProviderError]:
        result = self._credentials.get_credentials(tenant_id, ProviderType.JENKINS)
        if isinstance(result, Err):
            return result
        creds = result.value
        if not isinstance(creds, JenkinsCredentials):
            return Err(ProviderRequestFailed(_PROVIDER, "credentials are not Jenkins credentials"))
        # Never send tenant credentials to a host other than the tenant's Jenkins.
        if not _same_host(url, creds.host_url):
            return Err(
                ProviderRequestFailed(
                    _PROVIDER, f"{url} is not on the configured Jenkins host {creds.host_url}"
                )
            )
        return Ok(creds)

    def _headers(self, creds: JenkinsCredentials) -> dict[str, str]:
        pair = f"{creds.username}:{creds.api_token}".encode()
        return {"Authorization": "Basic " + base64.b64encode(pair).decode("ascii")}

    def _fetch(
        self, url: str, creds: JenkinsCredentials, timeout: float
    ) -> Result[StrDict, ProviderError]:
        result = self._http.get_json(
            api_json_url(url), headers=self._headers(creds), timeout=timeout
        )
        if isinstance(result, Err):
            return Err(http_failure(_PROVIDER, result.error))
        return Ok(result.value)

    def check_queue_status(
        self, tenant_id: str, queue_location: str
    ) -> Result[QueueCheck, ProviderError]:
        creds = self._credentials_for(tenant_id, queue_location)
        if isinstance(creds, Err):
            return creds

        timeout = self._config.queue_timeout_seconds
        item = self._http.get_json(
            api_json_url(queue_location), headers=self._headers(creds.value), timeout=timeout
        )
        if isinstance(item, Err):
            # Queue items are purged once they leave the queue; we can no longer
            # tell whether the job ran, so stop polling it.
            if item.error.status == 404:
                return Ok(QueueCheck(CanonicalStatus.CANCELLED))
            return Err(http_failure(_PROVIDER, item.error))

        data = item.value
        if get_bool(data, "cancelled"):
            return Ok(QueueCheck(CanonicalStatus.CANCELLED))

        executable = get_table(data, "executable") or {}
        executable_url = get_str(executable, "url")
        if executable_url is None:
            return Ok(QueueCheck(CanonicalStatus.PENDING))

        run_id = _with_slash(executable_url)
        build = self._fetch(run_id, creds.value, timeout)
        if isinstance(build, Ok) and get_str(build.value, "result") == _RESULT_SUCCESS:
            return Ok(QueueCheck(CanonicalStatus.COMPLETED, run_id=run_id))
        # Started; whether it failed is for the build check to decide.
        return Ok(QueueCheck(CanonicalStatus.RUNNING, run_id=run_id))

    def check_build_status(
        self, tenant_id: str, run_id: str
    ) -> Result[BuildCheck, ProviderError]:
        creds = self._credentials_for(tenant_id, run_id)
        if isinstance(creds, Err):
            return creds

        result = self._http.get_json(
            api_json_url(run_id),
            headers=self._headers(creds.value),
            timeout=self._config.build_timeout_seconds,
        )
        if isinstance(result, Err):
            if result.error.status == 404:
                return Ok(BuildCheck(CanonicalStatus.FAILED))
            return Err(http_failure(_PROVIDER, result.error))

        data = result.value
        if get_bool(data, "building"):
            return Ok(BuildCheck(CanonicalStatus.RUNNING))
        if get_str(data, "result") == _RESULT_SUCCESS:
            return Ok(BuildCheck(CanonicalStatus.COMPLETED))
        return Ok(BuildCheck(CanonicalStatus.FAILED))
