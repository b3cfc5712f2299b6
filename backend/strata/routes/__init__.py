# Routes package init
"""
Strata Backend: Controllers
===========================

What:  Controllers that translate between envelopes and services.
How:   Each module declares a RouteGroup; register_routes() includes them all
       into a RouteRegistry.

Route Inventory:
    - health.py:  GET  /health
    - users.py:   POST/GET /users, GET/PATCH/DELETE /users/{user_id},
                  PUT/GET /users/{user_id}/avatar
    - files.py:   PUT/GET/DELETE /files/{key}

Controllers stay thin: read ValidatedInput, call one service method, shape
the result. Business rules belong in strata.services.
"""

from strata.routing import RouteRegistry
from strata.routes import files, health, users

ROUTE_GROUPS = (health.router, users.router, files.router)


def register_routes(registry: RouteRegistry) -> RouteRegistry:
    for group in ROUTE_GROUPS:
        registry.include(group)
    return registry
