"""
Strata Backend: Route Registry Unit Tests
=========================================

Test Strategy:
    ✅ Literal and parameterised resolution, trailing slashes
    ✅ Unregistered (method, path) → NotFoundError
    ✅ Ambiguous registrations fail immediately
    ✅ Resolution does not depend on registration order
    ✅ RouteGroup prefixes and the frozen registry
"""

import pytest

from strata.exceptions import NotFoundError
from strata.routes import register_routes
from strata.routing import RouteConflictError, RouteGroup, RouteRegistry
from strata.schemas.user import USER_ID_PARAMS_SCHEMA


async def handler(ctx):
    return None


async def other_handler(ctx):
    return None


class TestResolve:
    def setup_method(self):
        self.registry = RouteRegistry()
        self.registry.register("GET", "/users", handler)
        self.registry.register("GET", "/users/{user_id}", other_handler)

    def test_literal_path(self):
        match = self.registry.resolve("GET", "/users")
        assert match.route.handler is handler
        assert match.params == {}

    def test_path_parameter_extracted(self):
        match = self.registry.resolve("GET", "/users/abc123")
        assert match.route.handler is other_handler
        assert match.params == {"user_id": "abc123"}

    def test_trailing_slash_ignored(self):
        assert self.registry.resolve("GET", "/users/").route.handler is handler

    def test_method_is_case_insensitive(self):
        assert self.registry.resolve("get", "/users").route.handler is handler

    def test_unknown_path_is_not_found(self):
        with pytest.raises(NotFoundError):
            self.registry.resolve("GET", "/accounts")

    def test_unknown_method_is_not_found(self):
        with pytest.raises(NotFoundError):
            self.registry.resolve("DELETE", "/users")

    def test_extra_segments_are_not_found(self):
        with pytest.raises(NotFoundError):
            self.registry.resolve("GET", "/users/abc/extra")

    def test_head_falls_back_to_get(self):
        match = self.registry.resolve("HEAD", "/users/abc123")
        assert match.route.handler is other_handler
        assert match.params == {"user_id": "abc123"}

    def test_explicit_head_route_wins(self):
        self.registry.register("HEAD", "/users", other_handler)
        assert self.registry.resolve("HEAD", "/users").route.handler is other_handler

    def test_head_without_get_is_not_found(self):
        with pytest.raises(NotFoundError):
            self.registry.resolve("HEAD", "/accounts")


class TestRegistration:
    def test_literal_overlapping_parameter_conflicts(self):
        registry = RouteRegistry()
        registry.register("GET", "/users/{user_id}", handler)
        with pytest.raises(RouteConflictError):
            registry.register("GET", "/users/me", other_handler)

    def test_same_pattern_different_param_name_conflicts(self):
        registry = RouteRegistry()
        registry.register("GET", "/files/{key}", handler)
        with pytest.raises(RouteConflictError):
            registry.register("GET", "/files/{name}", other_handler)

    def test_conflict_is_a_value_error(self):
        assert issubclass(RouteConflictError, ValueError)

    def test_same_path_different_methods_coexist(self):
        registry = RouteRegistry()
        registry.register("GET", "/files/{key}", handler)
        registry.register("PUT", "/files/{key}", other_handler)
        assert len(registry) == 2

    def test_resolution_independent_of_registration_order(self):
        forward = RouteRegistry()
        forward.register("GET", "/users", handler)
        forward.register("GET", "/users/{user_id}/avatar", other_handler)

        backward = RouteRegistry()
        backward.register("GET", "/users/{user_id}/avatar", other_handler)
        backward.register("GET", "/users", handler)

        for registry in (forward, backward):
            assert registry.resolve("GET", "/users").route.handler is handler
            assert registry.resolve("GET", "/users/u1/avatar").route.handler is other_handler

    def test_unsupported_method(self):
        with pytest.raises(ValueError):
            RouteRegistry().register("TRACE", "/users", handler)

    def test_malformed_segment(self):
        with pytest.raises(ValueError):
            RouteRegistry().register("GET", "/users/{user-id}", handler)

    def test_duplicate_parameter_name(self):
        with pytest.raises(ValueError):
            RouteRegistry().register("GET", "/{id}/{id}", handler)

    def test_params_schema_must_match_pattern(self):
        with pytest.raises(ValueError):
            RouteRegistry().register("GET", "/users/{id}", handler, params=USER_ID_PARAMS_SCHEMA)

    def test_frozen_registry_rejects_registration(self):
        registry = RouteRegistry()
        registry.freeze()
        with pytest.raises(RuntimeError):
            registry.register("GET", "/users", handler)


class TestRouteGroup:
    def test_prefix_applied(self):
        group = RouteGroup("/users/")

        @group.get()
        async def list_users(ctx):
            return None

        @group.delete("/{user_id}", status_code=204)
        async def delete_user(ctx):
            return None

        registry = RouteRegistry()
        registry.include(group)

        assert registry.resolve("GET", "/users").route.name == "list_users"
        route = registry.resolve("DELETE", "/users/u1").route
        assert route.status_code == 204
        assert route.path == "/users/{user_id}"

    def test_decorator_returns_the_handler(self):
        group = RouteGroup("/x")
        assert group.post()(handler) is handler

    def test_application_routes_register_without_conflicts(self):
        registry = register_routes(RouteRegistry())
        paths = {(route.method, route.path) for route in registry}
        assert ("GET", "/health") in paths
        assert ("POST", "/users") in paths
        assert ("PUT", "/users/{user_id}/avatar") in paths
        assert ("DELETE", "/files/{key}") in paths
        assert len(registry) == 11
