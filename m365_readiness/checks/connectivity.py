"""
Connectivity Check
Verifies the session can reach every probed endpoint, reconnecting if the
token has aged out or been rejected.
"""

from __future__ import annotations

from ..resilience.health import TokenHealthMonitor
from .base import BaseCheck, CheckResult


class ConnectivityCheck(BaseCheck):
    name = "connectivity"
    description = "Directory API reachability and token health"

    def __init__(self, monitor: TokenHealthMonitor):
        self.monitor = monitor

    async def run(self, result: CheckResult):
        reconnects_before = self.monitor.reconnect_count
        healthy = await self.monitor.check_and_refresh()

        result.add_data("healthy", healthy)
        result.add_data("endpoints", list(self.monitor.config.probe_endpoints))
        result.add_data("session_established_at", self.monitor.session.established_at.isoformat())
        reconnected = self.monitor.reconnect_count - reconnects_before
        result.add_data("reconnections", reconnected)

        if not healthy:
            result.add_error("Directory API is not reachable with the current session.")
        elif reconnected:
            result.add_warning("Session had to be re-established before the API answered.")
