"""
Strata Backend: File Route Handlers
===================================

What:  Keyed file storage over JSON: PUT/GET/DELETE /files/{key}.
How:   Content travels base64-encoded. PUT answers with metadata only; GET
       returns the metadata plus the content.
"""

from strata.dispatch import RequestContext
from strata.routing import RouteGroup
from strata.schemas.files import FILE_KEY_PARAMS_SCHEMA, UPLOAD_SCHEMA

router = RouteGroup("/files", name="files")


@router.put("/{key}", params=FILE_KEY_PARAMS_SCHEMA, body=UPLOAD_SCHEMA)
async def upload_file(ctx: RequestContext) -> dict:
    stored = await ctx.services.files.upload(ctx.params["key"], ctx.body)
    return stored.metadata()


@router.get("/{key}", params=FILE_KEY_PARAMS_SCHEMA)
async def download_file(ctx: RequestContext) -> dict:
    stored = await ctx.services.files.download(ctx.params["key"])
    return stored.to_public()


@router.delete("/{key}", params=FILE_KEY_PARAMS_SCHEMA, status_code=204)
async def delete_file(ctx: RequestContext) -> None:
    await ctx.services.files.remove(ctx.params["key"])
