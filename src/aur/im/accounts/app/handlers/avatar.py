import asyncio
import logging
from typing import Optional

from aiohttp import web

from aur.im.accounts.app.config import (
    AccountServiceAppKey,
    AvatarResolverAppKey,
    SettingsAppKey,
)
from aur.im.accounts.app.handlers.helpers import error_response, success_response
from aur.im.accounts.errors import ValidationError
from aur.im.accounts.image.codec import MEDIA_TYPES, ImageFormat

logger = logging.getLogger(__name__)

AVATAR_FIELD = "avatar"
TOKEN_FIELD = "token"
CLIENT_ID_FIELD = "clientId"


def session_value(request: web.Request, form, name: str) -> Optional[str]:
    value = request.cookies.get(name)
    if value:
        return value
    value = form.get(name)
    if isinstance(value, str) and value:
        return value
    return None


async def handle_get_avatar(request: web.Request) -> web.Response:
    avatar_resolver = request.app[AvatarResolverAppKey]
    user_id = request.match_info["user_id"]

    try:
        data = await asyncio.to_thread(avatar_resolver.load, user_id)
    except Exception as e:
        return error_response(e)

    if data is None:
        return web.Response(status=404)

    return web.Response(body=data, content_type=MEDIA_TYPES[ImageFormat.WEBP])


async def handle_upload_avatar(request: web.Request) -> web.Response:
    settings = request.app[SettingsAppKey]
    account_service = request.app[AccountServiceAppKey]
    avatar_resolver = request.app[AvatarResolverAppKey]

    try:
        form = await request.post()

        upload = form.get(AVATAR_FIELD)
        raw = upload.file.read() if isinstance(upload, web.FileField) else b""
        token = session_value(request, form, TOKEN_FIELD)
        client_id = session_value(request, form, CLIENT_ID_FIELD)

        missing = [
            name
            for name, value in (
                (AVATAR_FIELD, raw),
                (TOKEN_FIELD, token),
                (CLIENT_ID_FIELD, client_id),
            )
            if not value
        ]
        if missing:
            raise ValidationError.missing_fields(*missing)

        user = await account_service.authenticated_user(token, client_id)  # type: ignore
        owner_id = str(user.user_id)
        await asyncio.to_thread(avatar_resolver.replace, owner_id, raw)
    except web.HTTPException:
        # Oversized bodies surface as 413 from request.post().
        raise
    except Exception as e:
        return error_response(e)

    url = f"{settings.external_scheme}://{settings.external_hostname}/avatar/get/{owner_id}"
    return success_response(url=url)
