"""Task callback fan-out.

After a poll batch settles, every task with at least one changed build is
notified exactly once. The consumer re-reads build records itself, so the
notification carries only the task id.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Protocol
from urllib.parse import quote

from rr.core.config import CallbacksConfig
from rr.core.result import Err, Ok, Result
from rr.domain.errors import CallbackFailed
from rr.output.console import ConsoleProtocol
from rr.providers.http import HttpClient

__all__ = [
    "TaskCallbackSink",
    "HttpTaskCallbackSink",
    "NullCallbackSink",
    "CallbackDispatcher",
    "CallbackReport",
]


class TaskCallbackSink(Protocol):
    def process_callback(self, task_id: str) -> Result[None, CallbackFailed]: ...


class HttpTaskCallbackSink:
    """POST to ``[callbacks].url`` with ``{task_id}`` substituted."""

    def __init__(self, http: HttpClient, config: CallbacksConfig) -> None:
        if not config.url:
            raise ValueError("callbacks.url is not configured")
        self._http = http
        self._url = config.url
        self._timeout = config.timeout_seconds

    def process_callback(self, task_id: str) -> Result[None, CallbackFailed]:
        url = self._url.format(task_id=quote(task_id, safe=""))
        result = self._http.post_json(url, {"taskId": task_id}, timeout=self._timeout)
        if isinstance(result, Err):
            return Err(CallbackFailed(task_id=task_id, message=str(result.error)))
        return Ok(None)


class NullCallbackSink:
    """Sink used when no callback URL is configured: accepts and drops."""

    def process_callback(self, task_id: str) -> Result[None, CallbackFailed]:
        return Ok(None)


def _empty_ids() -> list[str]:
    return []


def _empty_failures() -> list[CallbackFailed]:
    return []


@dataclass
class CallbackReport:
    sent: list[str] = field(default_factory=_empty_ids)
    failed: list[CallbackFailed] = field(default_factory=_empty_failures)


class CallbackDispatcher:
    def __init__(self, sink: TaskCallbackSink, console: ConsoleProtocol) -> None:
        self._sink = sink
        self._console = console

    def dispatch(self, task_ids: Iterable[str]) -> CallbackReport:
        """Notify each distinct task once, in first-seen order.

        A failing callback is reported and does not stop the others.
        """
        report = CallbackReport()
        for task_id in dict.fromkeys(task_ids):
            match self._sink.process_callback(task_id):
                case Ok():
                    report.sent.append(task_id)
                case Err(error):
                    self._console.warning(f"callback for task {task_id} failed: {error.message}")
                    report.failed.append(error)
        return report
