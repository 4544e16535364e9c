"""登录会话结构。"""

from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class UserSession(BaseModel):
    """服务端会话记录。

    以 user_id 为键保存在会话存储中，token 字段必须与客户端出示的令牌逐字节一致才视为有效。
    该对象同时作为已认证请求的主体注入路由。
    """

    model_config = ConfigDict(frozen=True)

    token: str = Field(description="当前有效的会话令牌。")
    user_id: UUID = Field(description="用户 ID。")
    name: str = Field(description="用户名称。")
    email: str = Field(description="用户邮箱。")
    avatar_url: str = Field(default="", description="头像地址。")

    def to_json(self) -> str:
        return self.model_dump_json()

    @classmethod
    def from_json(cls, raw: str | bytes) -> "UserSession":
        return cls.model_validate_json(raw)
