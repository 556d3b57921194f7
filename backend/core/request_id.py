# backend/core/request_id.py
import logging
import uuid
from contextvars import ContextVar
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp
from typing import Callable, Optional

HEADER = "X-Request-ID"

# correlation id for the current HTTP request or websocket connection worker
request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)


def new_request_id() -> str:
    return uuid.uuid4().hex


class RequestIDFilter(logging.Filter):
    """Stamp the current correlation id onto every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get()
        return True


class RequestIDMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: ASGIApp, header_name: str = HEADER):
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(self, request, call_next: Callable):
        req_id = request.headers.get(self.header_name) or new_request_id()
        # stash on scope so handlers/loggers can use it
        request.state.request_id = req_id
        token = request_id_var.set(req_id)
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)
        response.headers[self.header_name] = req_id
        return response
