"""
Strata Backend: Dispatcher Tests
================================

What:  The full pipeline driven with hand-built RequestEnvelopes, no HTTP.
How:   A real RouteRegistry with the application routes and services on
       in-memory adapters; small ad-hoc registries for deadline and error
       mapping cases.

Test Strategy:
    ✅ Invalid input → 400 ValidationError, service layer never reached
    ✅ Valid input → 2xx with generated id and submitted fields
    ✅ Unregistered route → 404 without invoking any controller
    ✅ Deadline expiry → 504 TimeoutError and the controller is cancelled
    ✅ Unexpected exceptions → opaque 500, logged with traceback
    ✅ Status table overrides from settings
"""

import asyncio
import logging
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from strata.bindings import build_bindings
from strata.dispatch import Dispatcher
from strata.exceptions import ConflictError, InternalError
from strata.routes import register_routes
from strata.routing import RouteRegistry
from strata.schemas.envelope import RequestEnvelope
from strata.schemas.user import CREATE_USER_SCHEMA
from strata.services import ServiceContainer


@pytest_asyncio.fixture
async def dispatcher(test_settings):
    bindings = build_bindings(test_settings)
    await bindings.start()
    services = ServiceContainer.build(bindings, test_settings)
    registry = register_routes(RouteRegistry())
    registry.freeze()
    yield Dispatcher(registry, services, test_settings)
    await bindings.close()


def request(method, path, body=None, query=None):
    return RequestEnvelope(method=method, path=path, body=body, query=query or {})


class TestUserPipeline:
    @pytest.mark.asyncio
    async def test_invalid_create_is_rejected_before_the_service(self, dispatcher):
        dispatcher.services.users.register_user = AsyncMock()

        result = await dispatcher.dispatch(request("POST", "/users", {"name": "", "email": "a@b.com"}))

        assert result.status_code == 400
        assert result.body["kind"] == "ValidationError"
        assert set(result.body["details"]) == {"name"}
        dispatcher.services.users.register_user.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_valid_create(self, dispatcher):
        result = await dispatcher.dispatch(
            request("POST", "/users", {"name": "Ada", "email": "ada@x.com"})
        )

        assert result.status_code == 201
        assert result.body["id"]
        assert result.body["name"] == "Ada"
        assert result.body["email"] == "ada@x.com"
        assert result.headers["Location"] == f"/users/{result.body['id']}"

    @pytest.mark.asyncio
    async def test_duplicate_create_is_conflict(self, dispatcher):
        body = {"name": "Ada", "email": "ada@x.com"}
        await dispatcher.dispatch(request("POST", "/users", body))
        result = await dispatcher.dispatch(request("POST", "/users", body))

        assert result.status_code == 409
        assert result.body == {
            "kind": "ConflictAlreadyExists",
            "message": "Email is already registered",
        }

    @pytest.mark.asyncio
    async def test_get_update_delete(self, dispatcher):
        created = await dispatcher.dispatch(
            request("POST", "/users", {"name": "Ada", "email": "ada@x.com"})
        )
        user_id = created.body["id"]

        fetched = await dispatcher.dispatch(request("GET", f"/users/{user_id}"))
        assert fetched.status_code == 200
        assert fetched.body == created.body

        patched = await dispatcher.dispatch(request("PATCH", f"/users/{user_id}", {"name": "Ada L."}))
        assert patched.status_code == 200
        assert patched.body["name"] == "Ada L."

        deleted = await dispatcher.dispatch(request("DELETE", f"/users/{user_id}"))
        assert deleted.status_code == 204
        assert deleted.body is None

        gone = await dispatcher.dispatch(request("GET", f"/users/{user_id}"))
        assert gone.status_code == 404
        assert gone.body["kind"] == "NotFound"

    @pytest.mark.asyncio
    async def test_errors_from_every_part_are_collected(self, dispatcher):
        result = await dispatcher.dispatch(request("PATCH", "/users/not-a-uuid", {}))

        assert result.status_code == 400
        assert set(result.body["details"]) == {"path.user_id", "body"}

    @pytest.mark.asyncio
    async def test_query_errors_are_prefixed(self, dispatcher):
        result = await dispatcher.dispatch(request("GET", "/users", query={"limit": "1000"}))
        assert result.status_code == 400
        assert set(result.body["details"]) == {"query.limit"}

    @pytest.mark.asyncio
    async def test_list_users(self, dispatcher):
        for i in range(3):
            await dispatcher.dispatch(request("POST", "/users", {"name": f"U{i}", "email": f"u{i}@x.com"}))

        result = await dispatcher.dispatch(request("GET", "/users", query={"limit": "2", "offset": "1"}))

        assert result.status_code == 200
        assert result.body["total"] == 3
        assert result.body["limit"] == 2
        assert result.body["offset"] == 1
        assert [u["name"] for u in result.body["items"]] == ["U1", "U2"]
        assert result.headers["X-Total-Count"] == "3"


class TestRouting:
    @pytest.mark.asyncio
    async def test_unregistered_route_never_calls_a_controller(self, test_settings):
        controller = AsyncMock()
        registry = RouteRegistry()
        registry.register("GET", "/users", controller)
        dispatcher = Dispatcher(registry, services=None, settings=test_settings)

        for method, path in [("GET", "/accounts"), ("POST", "/users"), ("GET", "/users/x/y")]:
            result = await dispatcher.dispatch(request(method, path))
            assert result.status_code == 404
            assert result.body["kind"] == "NotFound"

        controller.assert_not_called()


class TestDeadline:
    @pytest.mark.asyncio
    async def test_slow_controller_times_out(self, test_settings):
        cancelled = asyncio.Event()

        async def slow(ctx):
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.set()
                raise

        registry = RouteRegistry()
        registry.register("GET", "/slow", slow, timeout=0.05)
        dispatcher = Dispatcher(registry, services=None, settings=test_settings)

        result = await dispatcher.dispatch(request("GET", "/slow"))

        assert result.status_code == 504
        assert result.body["kind"] == "TimeoutError"
        assert cancelled.is_set()

    @pytest.mark.asyncio
    async def test_default_deadline_from_settings(self, settings_factory):
        async def slow(ctx):
            await asyncio.sleep(10)

        registry = RouteRegistry()
        registry.register("GET", "/slow", slow)
        dispatcher = Dispatcher(registry, None, settings_factory(request_timeout_seconds=0.05))

        result = await dispatcher.dispatch(request("GET", "/slow"))
        assert result.status_code == 504


class TestErrorMapping:
    @pytest.mark.asyncio
    async def test_unexpected_exception_is_opaque_and_logged(self, test_settings, caplog):
        async def broken(ctx):
            raise KeyError("secret_column")

        registry = RouteRegistry()
        registry.register("GET", "/broken", broken)
        dispatcher = Dispatcher(registry, None, test_settings)

        with caplog.at_level(logging.ERROR, logger="strata.dispatch"):
            result = await dispatcher.dispatch(request("GET", "/broken"))

        assert result.status_code == 500
        assert result.body == {
            "kind": "InternalError",
            "message": InternalError.OPAQUE_MESSAGE,
        }
        assert "secret_column" not in str(result.body)

        record = next(r for r in caplog.records if r.name == "strata.dispatch")
        assert record.exc_info is not None
        assert "secret_column" in caplog.text

    @pytest.mark.asyncio
    async def test_internal_error_message_is_never_returned(self, test_settings):
        async def broken(ctx):
            raise InternalError("pool exhausted on db-2")

        registry = RouteRegistry()
        registry.register("GET", "/broken", broken)
        result = await Dispatcher(registry, None, test_settings).dispatch(request("GET", "/broken"))

        assert result.status_code == 500
        assert result.body["message"] == InternalError.OPAQUE_MESSAGE

    @pytest.mark.asyncio
    async def test_status_override(self, settings_factory):
        async def conflict(ctx):
            raise ConflictError("taken")

        registry = RouteRegistry()
        registry.register("POST", "/things", conflict)
        dispatcher = Dispatcher(
            registry,
            None,
            settings_factory(error_status_overrides={"ConflictAlreadyExists": 422}),
        )

        result = await dispatcher.dispatch(request("POST", "/things"))
        assert result.status_code == 422
        assert result.body["kind"] == "ConflictAlreadyExists"

    @pytest.mark.asyncio
    async def test_plain_return_value_uses_route_status(self, test_settings):
        async def create(ctx):
            return {"echo": ctx.body["name"]}

        registry = RouteRegistry()
        registry.register("POST", "/echo", create, body=CREATE_USER_SCHEMA, status_code=201)
        result = await Dispatcher(registry, None, test_settings).dispatch(
            request("POST", "/echo", {"name": "Ada", "email": "ada@x.com"})
        )

        assert result.status_code == 201
        assert result.body == {"echo": "Ada"}
