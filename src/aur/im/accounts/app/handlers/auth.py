import logging

from aiohttp import web
from pydantic import ValidationError as PayloadValidationError

from aur.im.accounts.app.config import AccountServiceAppKey, RequestCounterAppKey
from aur.im.accounts.app.handlers.helpers import (
    INVALID_JSON_REASON,
    LoginRequest,
    RegisterRequest,
    client_ip,
    error_response,
    failure_response,
    success_response,
)

logger = logging.getLogger(__name__)


async def count_account_request(request: web.Request) -> None:
    request_counter = request.app[RequestCounterAppKey]
    ip = client_ip(request)
    count = await request_counter.increment(ip)
    logger.debug("Account request %s from %s", count, ip)


async def handle_login(request: web.Request) -> web.Response:
    account_service = request.app[AccountServiceAppKey]

    try:
        data = await request.read()
        login_request = LoginRequest.model_validate_json(data)
    except (OSError, PayloadValidationError):
        return failure_response(INVALID_JSON_REASON, 400)

    try:
        await count_account_request(request)
        issued = await account_service.login(
            login_request.input_type or "",
            login_request.input or "",
            login_request.password or "",
        )
    except Exception as e:
        return error_response(e)

    return success_response(token=issued.token, clientId=issued.client_id)


async def handle_register(request: web.Request) -> web.Response:
    account_service = request.app[AccountServiceAppKey]

    try:
        data = await request.read()
        register_request = RegisterRequest.model_validate_json(data)
    except (OSError, PayloadValidationError):
        return failure_response(INVALID_JSON_REASON, 400)

    try:
        await count_account_request(request)
        issued = await account_service.register(
            register_request.username or "",
            register_request.email or "",
            register_request.password or "",
        )
    except Exception as e:
        return error_response(e)

    return success_response(token=issued.token, clientId=issued.client_id)
