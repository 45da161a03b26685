"""Envelope every endpoint answers with.

    {"code": 0, "message": "success", "data": {...},
     "timestamp": "...", "request_id": "req_..."}

A non-zero code is an AppError code and `data` is null. The request id is the
one RequestLogMiddleware put on `request.state`, so the envelope and the
access log line can be matched up.
"""

import uuid
from datetime import datetime, timezone
from typing import Any

from fastapi import Request
from pydantic import BaseModel, Field


def new_request_id() -> str:
    return f"req_{uuid.uuid4().hex[:12]}"


class ApiResponse(BaseModel):
    code: int = 0
    message: str = "success"
    data: Any = None
    timestamp: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    request_id: str = Field(default_factory=new_request_id)


def request_id_of(request: Request) -> str:
    return getattr(request.state, "request_id", None) or new_request_id()


def respond(request: Request, data: Any = None, message: str = "success") -> ApiResponse:
    return ApiResponse(data=data, message=message, request_id=request_id_of(request))


def error_response(request: Request, code: int, message: str) -> ApiResponse:
    return ApiResponse(code=code, message=message, request_id=request_id_of(request))
