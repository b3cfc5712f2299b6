"""
Strata Backend: Health Service
==============================

What:  Aggregates the health of every bound adapter.
How:   Asks AdapterBindings to probe each adapter's health_check() and reduces
       the results to one status.

Status levels:
    healthy:   every adapter reports available     (HTTP 200)
    unhealthy: at least one adapter is unavailable (HTTP 503)
"""

import time
from typing import Any, Dict

from strata import __version__
from strata.bindings import AdapterBindings


class HealthService:
    def __init__(self, bindings: AdapterBindings):
        self.bindings = bindings
        self._started_at = time.monotonic()

    async def check(self) -> Dict[str, Any]:
        probes = await self.bindings.health()
        healthy = all(probes.values())
        return {
            "status": "healthy" if healthy else "unhealthy",
            "version": __version__,
            "adapters": {
                name: "available" if ok else "unavailable" for name, ok in probes.items()
            },
            "uptime_seconds": round(time.monotonic() - self._started_at, 1),
        }
