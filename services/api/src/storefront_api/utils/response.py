"""统一响应包裹。

成功：``{request_id, data, meta}``；失败：``{request_id, error: {code, message, details}}``。
"""

from datetime import datetime, timezone
from time import perf_counter
from typing import Any

from fastapi import Request

DEFAULT_ERROR_MESSAGE = "internal server error"


def _now_z() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def _request_id(request: Request) -> str:
    # 异常可能早于中间件写入 request_id 抛出。
    return getattr(request.state, "request_id", None) or ""


def _elapsed_ms(request: Request) -> int | None:
    started_at = getattr(request.state, "request_started_at", None)
    if not isinstance(started_at, float):
        return None
    return int((perf_counter() - started_at) * 1000)


def success(request: Request, data: Any, meta: dict[str, Any] | None = None) -> dict[str, Any]:
    """构造统一成功响应结构。"""
    merged = {"path": request.url.path, "timestamp": _now_z(), "process_ms": _elapsed_ms(request)}
    merged.update(meta or {})
    return {"request_id": _request_id(request), "data": data, "meta": merged}


def error_payload(
    request: Request,
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """构造统一错误响应结构，details 中固定带上请求方法与路径。"""
    merged = {"method": request.method.upper(), "path": request.url.path, "timestamp": _now_z()}
    merged.update(details or {})
    return {
        "request_id": _request_id(request),
        "error": {"code": code, "message": message, "details": merged},
    }
