"""Reporting unexpected failures of the program to the server."""

from __future__ import annotations

import traceback
from dataclasses import dataclass
from typing import Any, Protocol

PANIC_ERROR_URI = "/report-cli-panic-error"
UNEXPECTED_ERROR_URI = "/report-cli-unexpected-error"
UNKNOWN = "unknown"


@dataclass(frozen=True)
class ErrorReport:
    """What is sent to the server about one failure."""

    client_id: str
    token: str
    cli_version: str
    error_message: str
    stack_trace: str


class LocalConfigSource(Protocol):
    def get_local_configuration(self) -> Any: ...


class ErrorReportClient(Protocol):
    def report_cli_error(self, report: ErrorReport, uri: str) -> Any: ...


class ErrorReporter:
    """Sends error reports; reporting never raises."""

    def __init__(
        self,
        client: ErrorReportClient,
        local_config: LocalConfigSource,
        cli_version: str = "",
    ) -> None:
        self.client = client
        self.local_config = local_config
        self.cli_version = cli_version

    def report_panic_error(self, error: Any) -> None:
        self.report_error(error, PANIC_ERROR_URI)

    def report_unexpected_error(self, error: Any) -> None:
        self.report_error(error, UNEXPECTED_ERROR_URI)

    def report_error(self, error: Any, uri: str) -> None:
        """Send a report of the error to the given endpoint."""
        client_id, token = self._identity()
        report = ErrorReport(
            client_id=client_id,
            token=token,
            cli_version=self.cli_version,
            error_message=str(error),
            stack_trace="".join(traceback.format_stack()),
        )
        try:
            self.client.report_cli_error(report, uri)
        except Exception:
            # A failed report must not hide the error being reported.
            pass

    def _identity(self) -> tuple[str, str]:
        try:
            config = self.local_config.get_local_configuration()
            return config.client_id, config.token
        except Exception:
            return UNKNOWN, UNKNOWN