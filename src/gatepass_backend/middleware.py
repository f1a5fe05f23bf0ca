import logging

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs every request with the calling user.

    The front end identifies the signed-in user through the X-User header;
    requests without it are logged as Anonymous. Bodies are not logged since
    gate passes carry phone numbers.
    """

    async def dispatch(self, request: Request, call_next):
        user = request.headers.get("x-user") or "Anonymous"
        logger.info(f"Request {request.method} {request.url.path}, User: {user}")
        response = await call_next(request)
        logger.debug(f"Response {response.status_code} for {request.method} {request.url.path}")
        return response
