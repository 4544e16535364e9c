"""应用中间件注册。"""

from time import perf_counter
import uuid

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from storefront_api.core.config import Settings

REQUEST_ID_HEADER = "X-Request-Id"


async def request_id_middleware(request: Request, call_next):
    """沿用上游网关传入的请求 ID，没有则生成，并在响应头回写处理耗时。"""
    inbound = request.headers.get(REQUEST_ID_HEADER, "").strip()
    request.state.request_id = inbound[:64] or uuid.uuid4().hex
    request.state.request_started_at = perf_counter()

    response = await call_next(request)

    response.headers[REQUEST_ID_HEADER] = request.state.request_id
    response.headers["X-Process-Time-Ms"] = f"{(perf_counter() - request.state.request_started_at) * 1000:.2f}"
    return response


def register_middlewares(app: FastAPI, settings: Settings) -> None:
    app.middleware("http")(request_id_middleware)
    if settings.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins,
            allow_credentials=True,
            allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
            allow_headers=["Authorization", "Content-Type", REQUEST_ID_HEADER],
            expose_headers=[REQUEST_ID_HEADER],
        )
