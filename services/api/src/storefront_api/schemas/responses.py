"""接口成功响应 `data` 字段结构定义。

所有业务接口统一返回 `SuccessResponse[data=...]`，字段描述直接用于 Swagger 展示。
"""

from uuid import UUID

from pydantic import Field

from storefront_api.schemas.common import BaseSchema


class HealthStatusData(BaseSchema):
    """健康检查返回结构。"""

    status: str = Field(description="健康状态值，常见为 ok 或 ready。")


class UserCreatedData(BaseSchema):
    """注册结果结构。"""

    id: UUID = Field(description="用户 ID。")
    name: str = Field(description="用户名称。")
    email: str = Field(description="登录邮箱。")
    email_confirmed: bool = Field(description="邮箱是否已确认。")


class SessionTokenData(BaseSchema):
    """登录结果结构。"""

    token: str = Field(description="会话令牌，请求时放入 Authorization: Bearer 头。")


class UserInfoData(BaseSchema):
    """`/users/me` 返回的数据结构，取自当前会话。"""

    id: UUID = Field(description="用户 ID。")
    name: str = Field(description="用户名称。")
    email: str = Field(description="用户邮箱。")
    avatar_url: str = Field(description="头像地址。")


class ActionResultData(BaseSchema):
    """无返回主体的操作结果。"""

    ok: bool = Field(default=True, description="操作是否完成。")
