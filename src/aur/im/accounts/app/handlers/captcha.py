import logging

from aiohttp import web

from aur.im.accounts.app.config import CaptchaCounterAppKey, RequestCounterAppKey
from aur.im.accounts.app.handlers.helpers import (
    client_ip,
    error_response,
    success_response,
)

logger = logging.getLogger(__name__)


async def handle_get_captcha(request: web.Request) -> web.Response:
    """
    Issue a verification code to the calling address.

    The first call within the window returns the new code. Repeat calls do not
    return the code again; they return the address's request count instead.
    """
    captcha_counter = request.app[CaptchaCounterAppKey]
    request_counter = request.app[RequestCounterAppKey]
    ip = client_ip(request)

    try:
        if await captcha_counter.has_entry(ip):
            count = await request_counter.increment(ip)
            logger.info("Repeat verification code request %s from %s", count, ip)
            return success_response(code=count)

        code = await captcha_counter.issue_code(ip)
    except Exception as e:
        return error_response(e)

    return success_response(code=code)
