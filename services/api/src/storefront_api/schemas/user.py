"""用户账号相关请求结构。"""

from pydantic import BaseModel, Field, field_validator, model_validator

_EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
_PASSWORD_SPECIALS = "!@#&?"


def _check_password_strength(value: str) -> str:
    if not any(ch in _PASSWORD_SPECIALS for ch in value):
        raise ValueError(f"password must contain at least one of {_PASSWORD_SPECIALS}")
    return value


class UserCreateRequest(BaseModel):
    """注册请求体，邮箱与密码均需二次确认。"""

    name: str = Field(min_length=1, max_length=100, description="用户名称。", examples=["Alice"])
    email: str = Field(
        min_length=5,
        max_length=256,
        pattern=_EMAIL_PATTERN,
        description="登录邮箱。",
        examples=["alice@example.com"],
    )
    confirm_email: str = Field(min_length=5, max_length=256, description="再次输入的邮箱。")
    password: str = Field(min_length=8, max_length=128, description="登录密码。", examples=["Passw0rd!"])
    confirm_password: str = Field(min_length=8, max_length=128, description="再次输入的密码。")

    @field_validator("password")
    @classmethod
    def check_password(cls, value: str) -> str:
        return _check_password_strength(value)

    @model_validator(mode="after")
    def check_confirmations(self) -> "UserCreateRequest":
        if self.email.strip().lower() != self.confirm_email.strip().lower():
            raise ValueError("confirm_email must match email")
        if self.password != self.confirm_password:
            raise ValueError("confirm_password must match password")
        return self


class SignInRequest(BaseModel):
    """登录请求体。"""

    email: str = Field(
        min_length=5,
        max_length=256,
        pattern=_EMAIL_PATTERN,
        description="登录邮箱。",
        examples=["alice@example.com"],
    )
    password: str = Field(min_length=1, max_length=128, description="登录密码。", examples=["Passw0rd!"])


class UpdateNameRequest(BaseModel):
    """修改名称请求体。"""

    name: str = Field(min_length=1, max_length=100, description="新的用户名称。", examples=["Alice Chen"])


class UpdatePasswordRequest(BaseModel):
    """修改密码请求体。"""

    old_password: str = Field(min_length=1, max_length=128, description="当前密码。")
    new_password: str = Field(min_length=8, max_length=128, description="新密码。")
    confirm_password: str = Field(min_length=8, max_length=128, description="再次输入的新密码。")

    @field_validator("new_password")
    @classmethod
    def check_new_password(cls, value: str) -> str:
        return _check_password_strength(value)

    @model_validator(mode="after")
    def check_confirmation(self) -> "UpdatePasswordRequest":
        if self.new_password != self.confirm_password:
            raise ValueError("confirm_password must match new_password")
        return self


class ResendCodeRequest(BaseModel):
    """重发验证码请求体；已登录时可省略邮箱。"""

    email: str | None = Field(
        default=None,
        min_length=5,
        max_length=256,
        pattern=_EMAIL_PATTERN,
        description="接收验证码的邮箱。",
        examples=["alice@example.com"],
    )


class ConfirmEmailRequest(BaseModel):
    """邮箱确认请求体。"""

    otp: str = Field(pattern=r"^\d{6}$", description="6 位数字验证码。", examples=["123456"])
