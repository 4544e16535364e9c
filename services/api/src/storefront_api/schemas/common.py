"""统一响应包裹结构，用于在线接口文档展示。"""

from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field


class BaseSchema(BaseModel):
    """基础结构，允许直接从对象映射实例构造。"""

    model_config = ConfigDict(from_attributes=True)


class ErrorPayload(BaseSchema):
    code: str = Field(description="机器可识别错误码，例如 AUTH_SESSION_EXPIRED。")
    message: str = Field(description="人类可读错误信息。")
    details: dict[str, Any] = Field(default_factory=dict, description="错误细节；登录未确认邮箱时包含 token。")


class ErrorResponse(BaseSchema):
    """统一错误响应。"""

    request_id: str = Field(description="请求追踪 ID，同时通过 X-Request-Id 头返回。")
    error: ErrorPayload


T = TypeVar("T")


class SuccessResponse(BaseSchema, Generic[T]):
    """统一成功响应。"""

    request_id: str = Field(description="请求追踪 ID。")
    data: T = Field(description="业务数据。")
    meta: dict[str, Any] = Field(default_factory=dict, description="路径、时间戳与处理耗时。")
