"""
Health check module for CF-DDNS.

This module provides health check endpoints for monitoring the application.
"""

import json
import logging
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from threading import Thread
from typing import Any, Callable, Dict, Optional

from cf_ddns.models.models import CycleReport

ReportGetter = Callable[[], Optional[CycleReport]]


def health_status(report: Optional[CycleReport]) -> Dict[str, Any]:
    """
    Summarize the last cycle for the /health endpoint.

    Args:
        report: Most recent cycle report, if any

    Returns:
        Dict[str, Any]: JSON-serialisable status document
    """
    if report is None:
        return {"status": "starting", "last_cycle": None}

    healthy = report.resolved and not (report.summary and report.summary.has_failures())
    return {
        "status": "healthy" if healthy else "degraded",
        "last_cycle": report.to_dict(),
    }


def render_metrics(report: Optional[CycleReport]) -> str:
    """
    Render a few plain-text gauges for the /metrics endpoint.

    Args:
        report: Most recent cycle report, if any

    Returns:
        str: Metrics in Prometheus text format
    """
    lines = [
        "# HELP cf_ddns_up Whether the CF-DDNS service is up",
        "# TYPE cf_ddns_up gauge",
        "cf_ddns_up 1",
    ]
    if report is not None:
        failed = len(report.summary.failed) if report.summary else 0
        lines += [
            "# HELP cf_ddns_last_cycle_seconds Duration of the last cycle",
            "# TYPE cf_ddns_last_cycle_seconds gauge",
            f"cf_ddns_last_cycle_seconds {report.duration:.3f}",
            "# HELP cf_ddns_consensus Whether the last cycle agreed on an IP",
            "# TYPE cf_ddns_consensus gauge",
            f"cf_ddns_consensus {1 if report.resolved else 0}",
            "# HELP cf_ddns_records_failed Records that failed in the last cycle",
            "# TYPE cf_ddns_records_failed gauge",
            f"cf_ddns_records_failed {failed}",
        ]
    return "\n".join(lines) + "\n"


class HealthCheckHandler(BaseHTTPRequestHandler):
    """
    HTTP request handler for health check endpoints.
    """

    # Set on the subclass built by HealthCheckServer
    get_report: ReportGetter = staticmethod(lambda: None)

    def __init__(self, *args, **kwargs):
        self.logger = logging.getLogger("cf-ddns.health")
        super().__init__(*args, **kwargs)

    def do_GET(self):
        if self.path == "/health":
            self._handle_health_check()
        elif self.path == "/metrics":
            self._handle_metrics()
        else:
            self.send_response(404)
            self.end_headers()
            self.wfile.write(b"Not Found")

    def _handle_health_check(self):
        status = health_status(self.get_report())
        # Degraded still answers 200: the process itself is running
        self.send_response(200)
        self.send_header("Content-type", "application/json")
        self.end_headers()
        self.wfile.write(json.dumps(status).encode())

    def _handle_metrics(self):
        self.send_response(200)
        self.send_header("Content-type", "text/plain")
        self.end_headers()
        self.wfile.write(render_metrics(self.get_report()).encode())

    def log_message(self, format, *args):
        """
        Override log_message to use the application logger.
        """
        self.logger.debug(format % args)


class HealthCheckServer:
    """
    HTTP server for health check endpoints.
    """

    def __init__(
        self, get_report: ReportGetter, host: str = "0.0.0.0", port: int = 8080
    ):
        """
        Initialize a HealthCheckServer.

        Args:
            get_report: Returns the most recent cycle report
            host: Host to bind to
            port: Port to bind to; 0 picks a free port
        """
        self.host = host
        self.port = port
        self.get_report = get_report
        self.server = None
        self.thread = None
        self.logger = logging.getLogger("cf-ddns.health")

    def start(self):
        """
        Start the health check server.
        """
        handler = type(
            "BoundHealthCheckHandler",
            (HealthCheckHandler,),
            {"get_report": staticmethod(self.get_report)},
        )
        self.server = ThreadingHTTPServer((self.host, self.port), handler)
        self.port = self.server.server_address[1]
        self.thread = Thread(target=self.server.serve_forever, daemon=True)
        self.thread.start()
        self.logger.info(f"Health check: {self.host}:{self.port}/health")

    def stop(self):
        """
        Stop the health check server.
        """
        if self.server:
            self.server.shutdown()
            self.server.server_close()
            self.server = None
            self.logger.info("Health check server stopped")
