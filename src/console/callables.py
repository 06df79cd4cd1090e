"""
Callable protocol and error mapping for the console web layer.

Callables take POST {"data": {...}} and answer {"result": {...}}.
Failures answer {"error": {"status": "<CODE>", "message": "..."}}.
"""
import hmac
import logging
from functools import wraps
from typing import Any, Dict, Optional, Tuple

from pydantic import ValidationError
from quart import current_app, jsonify, request

from ingestion.base import FeedError
from processing.llm_json import LLMResponseError
from services.drafts import DraftNotFoundError, InvalidTimelineOperation, TimelineIndexError
from services.llm import LLMError

logger = logging.getLogger(__name__)

HTTP_STATUS = {
    "INVALID_ARGUMENT": 400,
    "FAILED_PRECONDITION": 400,
    "UNAUTHENTICATED": 401,
    "PERMISSION_DENIED": 403,
    "NOT_FOUND": 404,
    "INTERNAL": 500,
}


class CallableError(Exception):
    def __init__(self, status: str, message: str):
        super().__init__(message)
        self.status = status
        self.message = message

    @property
    def http_status(self) -> int:
        return HTTP_STATUS.get(self.status, 500)

    def to_dict(self) -> Dict[str, Any]:
        return {"error": {"status": self.status, "message": self.message}}


def _describe_validation(e: ValidationError) -> str:
    fields = sorted({".".join(str(p) for p in err["loc"]) or "data" for err in e.errors()})
    return f"Invalid or missing argument(s): {', '.join(fields)}"


def to_callable_error(e: Exception) -> CallableError:
    """
    Map an exception to a callable error. Upstream detail is logged,
    never returned to the client.
    """
    if isinstance(e, CallableError):
        return e
    if isinstance(e, ValidationError):
        return CallableError("INVALID_ARGUMENT", _describe_validation(e))
    if isinstance(e, (DraftNotFoundError, TimelineIndexError)):
        return CallableError("NOT_FOUND", str(e))
    if isinstance(e, InvalidTimelineOperation):
        return CallableError("FAILED_PRECONDITION", str(e))
    if isinstance(e, (LLMError, LLMResponseError, FeedError)):
        logger.error(f"Upstream failure: {type(e).__name__}: {e}")
        return CallableError("INTERNAL", "Upstream service failed")

    logger.exception(f"Unhandled error: {e}")
    return CallableError("INTERNAL", "Internal error")


def _error_response(e: Exception) -> Tuple[Any, int]:
    error = to_callable_error(e)
    return jsonify(error.to_dict()), error.http_status


async def _json_body() -> Dict[str, Any]:
    body = await request.get_json(silent=True)
    if body is None:
        return {}
    if not isinstance(body, dict):
        raise CallableError("INVALID_ARGUMENT", "Request body must be a JSON object")
    return body


def check_admin(token: Optional[str]) -> None:
    """
    Require `Authorization: Bearer <token>` when an admin token is configured.
    """
    if not token:
        return

    header = request.headers.get("Authorization", "")
    if not header.startswith("Bearer "):
        raise CallableError("UNAUTHENTICATED", "Authentication required.")
    if not hmac.compare_digest(header[len("Bearer "):], token):
        raise CallableError("PERMISSION_DENIED", "Admin only.")


def callable_endpoint(f):
    """Decorator for callables: unwraps "data", wraps "result", maps errors."""
    @wraps(f)
    async def decorated_function(*args, **kwargs):
        try:
            check_admin(current_app.config.get("ADMIN_TOKEN"))
            body = await _json_body()
            data = body.get("data", {})
            if data is None:
                data = {}
            if not isinstance(data, dict):
                raise CallableError("INVALID_ARGUMENT", "'data' must be an object")
            result = await f(data, *args, **kwargs)
        except Exception as e:
            return _error_response(e)
        return jsonify({"result": result})
    return decorated_function


def api_endpoint(f):
    """Decorator for JSON API routes: passes the body, maps errors."""
    @wraps(f)
    async def decorated_function(*args, **kwargs):
        try:
            check_admin(current_app.config.get("ADMIN_TOKEN"))
            body = await _json_body()
            return await f(body, *args, **kwargs)
        except Exception as e:
            return _error_response(e)
    return decorated_function
