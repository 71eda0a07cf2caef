"""
Result sinks receiving tally reports.

A sink only has to accept a TallyReport; how it is rendered (log line,
chat message, web page) is up to the sink.
"""
import logging
from typing import Optional, Protocol

import httpx

from app.core.config import settings
from app.core.exceptions import SinkUnavailable
from app.schemas.tally import ReportSeverity, TallyReport


logger = logging.getLogger(__name__)

_LOG_LEVELS = {
    ReportSeverity.INFO: logging.INFO,
    ReportSeverity.SUCCESS: logging.INFO,
    ReportSeverity.WARNING: logging.WARNING,
    ReportSeverity.ERROR: logging.ERROR,
}


class ResultSink(Protocol):
    """Anything reports can be posted to, in order."""

    async def post(self, report: TallyReport) -> None:
        ...


class LogSink:
    """Writes reports to the application log."""

    def __init__(self, name: str = "app.results"):
        self.logger = logging.getLogger(name)

    async def post(self, report: TallyReport) -> None:
        self.logger.log(
            _LOG_LEVELS[report.severity],
            "%s\n%s",
            report.title,
            report.body,
        )


class WebhookSink:
    """
    Posts each report as JSON to an HTTP endpoint.

    Any transport error or non-2xx response raises SinkUnavailable so the
    caller can stop emitting.
    """

    def __init__(
        self,
        url: str,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.url = url
        self.transport = transport
        self.timeout = timeout if timeout is not None else settings.WEBHOOK_TIMEOUT_SECONDS

    async def post(self, report: TallyReport) -> None:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(self.url, json=report.to_payload())
                response.raise_for_status()
        except httpx.HTTPError as e:
            raise SinkUnavailable(f"Webhook {self.url} rejected report: {e}") from e


def resolve_sink(sink_ref: Optional[str]) -> ResultSink:
    """Build the sink an election's sink_ref points at."""
    if not sink_ref or sink_ref == "log":
        return LogSink()
    if sink_ref.startswith(("http://", "https://")):
        return WebhookSink(sink_ref)
    raise ValueError(f"Unsupported result sink reference: {sink_ref}")
