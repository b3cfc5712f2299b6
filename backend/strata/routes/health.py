"""
Strata Backend: Health Check Route
==================================

What:  GET /health for Docker health checks and load balancer probes.
How:   Delegates to HealthService, which probes every bound adapter.

Status levels:
    healthy:   all adapters reachable     (HTTP 200)
    unhealthy: an adapter is unreachable  (HTTP 503, stop routing traffic)
"""

from strata.dispatch import RequestContext
from strata.routing import RouteGroup
from strata.schemas.envelope import ResultEnvelope

router = RouteGroup(name="health")

# Short deadline so a hung backend probe cannot stall the prober
HEALTH_TIMEOUT_SECONDS = 5.0


@router.get("/health", timeout=HEALTH_TIMEOUT_SECONDS)
async def health_check(ctx: RequestContext) -> ResultEnvelope:
    report = await ctx.services.health.check()
    status_code = 200 if report["status"] == "healthy" else 503
    return ResultEnvelope.success(report, status_code=status_code)
