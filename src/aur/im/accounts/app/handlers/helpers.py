import logging
from typing import Any, Optional

from aiohttp import web
from pydantic import BaseModel, ConfigDict, Field
import sentry_sdk

from aur.im.accounts.errors import AccountError, ErrorKind, ImageError

logger = logging.getLogger(__name__)

INTERNAL_ERROR_REASON = "internal_error"
INVALID_JSON_REASON = "invalid_json"

KIND_STATUS = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.AUTH: 401,
    ErrorKind.CONFLICT: 409,
    ErrorKind.IMAGE: 400,
    ErrorKind.INVALID_IDENTIFIER: 400,
    ErrorKind.STORAGE: 500,
    ErrorKind.INTERNAL: 500,
}

# Image failures on the server side of the transcode, not the client's upload.
SERVER_SIDE_IMAGE_REASONS = {ImageError.ENCODE_ERROR, ImageError.WRITER_UNAVAILABLE}


class LoginRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    input_type: Optional[str] = Field(default=None, alias="inputType")
    input: Optional[str] = None
    password: Optional[str] = None


class RegisterRequest(BaseModel):
    username: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None


def success_response(**fields: Any) -> web.Response:
    return web.json_response({"status": "success", **fields})


def failure_response(reason: str, status: int) -> web.Response:
    return web.json_response(
        status=status, data={"status": "error", "reason": reason}
    )


def status_for(error: AccountError) -> int:
    if error.kind is ErrorKind.IMAGE and error.reason in SERVER_SIDE_IMAGE_REASONS:
        return 500
    return KIND_STATUS.get(error.kind, 500)


def error_response(error: Exception) -> web.Response:
    """
    Convert an exception raised by the account core into a JSON error response.

    Catalogued ``AccountError``s are returned with their reason. Anything else
    is reported to Sentry and flattened to a generic internal error so that no
    internal detail reaches the client.
    """
    if isinstance(error, AccountError):
        status = status_for(error)
        if status >= 500:
            logger.error("Request failed: %s", error)
            sentry_sdk.capture_exception(error)
        else:
            logger.info("Request rejected: %s", error)
        return failure_response(error.reason, status)

    logger.exception("Unexpected error: %s", type(error).__name__, exc_info=error)
    sentry_sdk.capture_exception(error)
    return failure_response(INTERNAL_ERROR_REASON, 500)


def is_valid_ip(value: Optional[str]) -> bool:
    return bool(value) and value.lower() != "unknown"  # type: ignore


def client_ip(request: web.Request) -> str:
    """
    Resolve the client address behind any proxies.

    The first valid entry of ``X-Forwarded-For`` wins, then ``X-Real-IP``,
    then the peer address. Empty and ``unknown`` entries are skipped.
    """
    forwarded_for = request.headers.get("X-Forwarded-For", "")
    for candidate in forwarded_for.split(","):
        candidate = candidate.strip()
        if is_valid_ip(candidate):
            return candidate

    real_ip = request.headers.get("X-Real-IP", "").strip()
    if is_valid_ip(real_ip):
        return real_ip

    return request.remote or "unknown"
