"""
Strata Backend: User Route Handlers
===================================

What:  Controllers for the /users resource and the user avatar.
How:   Each handler reads ValidatedInput from the RequestContext, calls
       UserService and shapes the ResultEnvelope. No business rules here.

Routes:
    POST   /users                    → 201 user
    GET    /users?limit&offset       → 200 {items, total, limit, offset}
    GET    /users/{user_id}          → 200 user
    PATCH  /users/{user_id}          → 200 user
    DELETE /users/{user_id}          → 204
    PUT    /users/{user_id}/avatar   → 200 user
    GET    /users/{user_id}/avatar   → 200 file (base64 content)
"""

from strata.dispatch import RequestContext
from strata.routing import RouteGroup
from strata.schemas.envelope import ResultEnvelope
from strata.schemas.files import UPLOAD_SCHEMA
from strata.schemas.user import (
    CREATE_USER_SCHEMA,
    LIST_USERS_QUERY_SCHEMA,
    UPDATE_USER_SCHEMA,
    USER_ID_PARAMS_SCHEMA,
)

router = RouteGroup("/users", name="users")


@router.post(body=CREATE_USER_SCHEMA, status_code=201)
async def create_user(ctx: RequestContext) -> ResultEnvelope:
    user = await ctx.services.users.register_user(ctx.body)
    return ResultEnvelope.success(user.to_public(), status_code=201, Location=f"/users/{user.id}")


@router.get(query=LIST_USERS_QUERY_SCHEMA)
async def list_users(ctx: RequestContext) -> ResultEnvelope:
    """
    One page of users, oldest first.

    The total is also sent as X-Total-Count for pagination UIs.
    """
    limit, offset = ctx.query["limit"], ctx.query["offset"]
    users, total = await ctx.services.users.list_users(limit=limit, offset=offset)
    body = {
        "items": [user.to_public() for user in users],
        "total": total,
        "limit": limit,
        "offset": offset,
    }
    return ResultEnvelope.success(body, **{"X-Total-Count": str(total)})


@router.get("/{user_id}", params=USER_ID_PARAMS_SCHEMA)
async def get_user(ctx: RequestContext) -> dict:
    user = await ctx.services.users.get_user(ctx.params["user_id"])
    return user.to_public()


@router.patch("/{user_id}", params=USER_ID_PARAMS_SCHEMA, body=UPDATE_USER_SCHEMA)
async def update_user(ctx: RequestContext) -> dict:
    user = await ctx.services.users.update_user(ctx.params["user_id"], ctx.body)
    return user.to_public()


@router.delete("/{user_id}", params=USER_ID_PARAMS_SCHEMA, status_code=204)
async def delete_user(ctx: RequestContext) -> None:
    await ctx.services.users.delete_user(ctx.params["user_id"])


@router.put("/{user_id}/avatar", params=USER_ID_PARAMS_SCHEMA, body=UPLOAD_SCHEMA)
async def set_avatar(ctx: RequestContext) -> dict:
    user = await ctx.services.users.set_avatar(ctx.params["user_id"], ctx.body)
    return user.to_public()


@router.get("/{user_id}/avatar", params=USER_ID_PARAMS_SCHEMA)
async def get_avatar(ctx: RequestContext) -> dict:
    stored = await ctx.services.users.get_avatar(ctx.params["user_id"])
    return stored.to_public()
