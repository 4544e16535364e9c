"""应用异常处理注册。

所有错误统一输出 ``{request_id, error: {code, message, details}}``。
"""

import logging

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from storefront_api.core import errors
from storefront_api.utils.response import DEFAULT_ERROR_MESSAGE, error_payload

logger = logging.getLogger(__name__)

# 状态码 -> (默认错误码, 默认提示, 处理建议)
_HTTP_DEFAULTS: dict[int, tuple[str, str, str]] = {
    status.HTTP_400_BAD_REQUEST: ("BAD_REQUEST", "请求参数不合法。", "请检查请求内容后重试。"),
    status.HTTP_401_UNAUTHORIZED: ("UNAUTHORIZED", "未登录或登录状态已失效。", "请重新登录并携带有效会话令牌。"),
    status.HTTP_404_NOT_FOUND: ("NOT_FOUND", "请求资源不存在。", "请确认邮箱或用户是否存在。"),
    status.HTTP_409_CONFLICT: ("CONFLICT", "请求与当前数据状态冲突。", "请刷新当前数据后重试。"),
    status.HTTP_410_GONE: ("GONE", "请求资源已失效。", "请重新获取验证码后重试。"),
    status.HTTP_422_UNPROCESSABLE_CONTENT: (
        "VALIDATION_ERROR",
        "请求参数校验失败。",
        "请根据错误字段提示修正请求参数后重试。",
    ),
    status.HTTP_429_TOO_MANY_REQUESTS: ("RATE_LIMITED", "请求过于频繁。", "请稍后再试。"),
    status.HTTP_503_SERVICE_UNAVAILABLE: ("SERVICE_UNAVAILABLE", "依赖服务暂不可用。", "请稍后重试。"),
}
_FALLBACK = ("HTTP_ERROR", "请求处理失败。", "请稍后重试，若持续失败请联系管理员。")

# 领域异常 -> 状态码，按继承链就近匹配。
_STATUS_BY_ERROR: dict[type[errors.StorefrontError], int] = {
    errors.InvalidCredential: status.HTTP_401_UNAUTHORIZED,
    errors.TokenInvalid: status.HTTP_401_UNAUTHORIZED,
    errors.SessionNotFound: status.HTTP_401_UNAUTHORIZED,
    errors.UserNotFoundInContext: status.HTTP_401_UNAUTHORIZED,
    errors.UserNotFound: status.HTTP_404_NOT_FOUND,
    errors.UserAlreadyExists: status.HTTP_409_CONFLICT,
    errors.EmailNotConfirmed: status.HTTP_409_CONFLICT,
    errors.EmailAlreadyConfirmed: status.HTTP_409_CONFLICT,
    errors.NameIsSame: status.HTTP_409_CONFLICT,
    errors.PasswordIsSame: status.HTTP_409_CONFLICT,
    errors.OTPInvalid: status.HTTP_400_BAD_REQUEST,
    errors.OTPExpired: status.HTTP_410_GONE,
    errors.RateLimited: status.HTTP_429_TOO_MANY_REQUESTS,
    errors.SessionStoreError: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def _details_for(status_code: int, code: str) -> dict[str, object]:
    return {
        "status_code": status_code,
        "reason": code.lower(),
        "suggestion": _HTTP_DEFAULTS.get(status_code, _FALLBACK)[2],
    }


def _split_http_detail(detail: object, status_code: int) -> tuple[str, str, dict[str, object]]:
    """兼容字符串与 ``{code, message, details}`` 两种 HTTPException.detail 写法。"""
    code, message, _ = _HTTP_DEFAULTS.get(status_code, _FALLBACK)
    if isinstance(detail, str):
        return code, detail, _details_for(status_code, code)
    if not isinstance(detail, dict):
        details = _details_for(status_code, code)
        if detail is not None:
            details["detail"] = detail
        return code, message, details

    code = str(detail.get("code") or code)
    message = str(detail.get("message") or message)
    details = _details_for(status_code, code)
    extra = detail.get("details")
    if isinstance(extra, dict):
        details.update(extra)
    elif extra is not None:
        details["details"] = extra
    return code, message, details


def status_for_error(exc: errors.StorefrontError) -> int:
    """未登记的领域异常视为服务端错误。"""
    for klass in type(exc).__mro__:
        if klass in _STATUS_BY_ERROR:
            return _STATUS_BY_ERROR[klass]
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def http_exception_handler(request: Request, exc: HTTPException):
    code, message, details = _split_http_detail(exc.detail, exc.status_code)
    return JSONResponse(
        status_code=exc.status_code,
        content=error_payload(request, code=code, message=message, details=details),
        headers=exc.headers,
    )


async def storefront_exception_handler(request: Request, exc: errors.StorefrontError):
    """将服务层领域异常翻译为标准错误结构。"""
    status_code = status_for_error(exc)
    details = _details_for(status_code, exc.code)
    if isinstance(exc, errors.EmailNotConfirmed) and exc.token:
        # 会话已创建，客户端需要该令牌完成邮箱确认。
        details["token"] = exc.token

    if status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        logger.error("storefront error code=%s: %s", exc.code, exc)
    return JSONResponse(
        status_code=status_code,
        content=error_payload(request, code=exc.code, message=str(exc), details=details),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    details = _details_for(status.HTTP_422_UNPROCESSABLE_CONTENT, "VALIDATION_ERROR")
    details["errors"] = [
        {
            "field": ".".join(str(part) for part in err.get("loc", ()) if part != "body"),
            "message": err.get("msg"),
            "type": err.get("type"),
        }
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
        content=error_payload(request, code="VALIDATION_ERROR", message="请求参数校验失败。", details=details),
    )


async def unexpected_exception_handler(request: Request, exc: Exception):
    """兜底处理，不向客户端暴露内部细节。"""
    logger.exception("unexpected error", exc_info=exc)
    details = _details_for(status.HTTP_500_INTERNAL_SERVER_ERROR, "INTERNAL_ERROR")
    details["suggestion"] = "请稍后重试，若持续失败请联系管理员并提供 request_id。"
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_payload(request, code="INTERNAL_ERROR", message=DEFAULT_ERROR_MESSAGE, details=details),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.exception_handler(HTTPException)(http_exception_handler)
    app.exception_handler(errors.StorefrontError)(storefront_exception_handler)
    app.exception_handler(RequestValidationError)(validation_exception_handler)
    app.exception_handler(Exception)(unexpected_exception_handler)
