"""领域异常定义。

所有服务层异常都继承 StorefrontError，并携带稳定的机器可识别错误码，
由 exceptions.py 中的处理器统一翻译为标准错误响应。
"""


class StorefrontError(Exception):
    """服务层异常基类。"""

    code = "STOREFRONT_ERROR"
    message = "请求处理失败。"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)


# 凭据与口令。
class InvalidCredential(StorefrontError):
    code = "INVALID_CREDENTIAL"
    message = "凭据不匹配。"


class HashingError(StorefrontError):
    code = "HASHING_ERROR"
    message = "口令哈希失败。"


# 令牌签发与校验。
class SigningError(StorefrontError):
    code = "SIGNING_ERROR"
    message = "令牌签名失败。"


class TokenInvalid(StorefrontError):
    code = "TOKEN_INVALID"
    message = "令牌无效。"


class UnexpectedSigningMethod(TokenInvalid):
    code = "UNEXPECTED_SIGNING_METHOD"
    message = "令牌签名算法不受支持。"


# 会话存储。
class SessionNotFound(StorefrontError):
    code = "SESSION_NOT_FOUND"
    message = "会话不存在或已过期。"


class SessionStoreError(StorefrontError):
    code = "SESSION_STORE_ERROR"
    message = "会话存储不可用。"


class SessionStoreTimeout(SessionStoreError):
    code = "SESSION_STORE_TIMEOUT"
    message = "会话存储请求超时。"


# 一次性验证码。
class OTPNotFound(StorefrontError):
    code = "OTP_NOT_FOUND"
    message = "验证码不存在或已过期。"


class OTPInvalid(StorefrontError):
    code = "OTP_INVALID"
    message = "验证码不正确。"


class OTPExpired(StorefrontError):
    code = "OTP_EXPIRED"
    message = "验证码已过期，请重新获取。"


class OTPGenerationError(StorefrontError):
    code = "OTP_GENERATION_ERROR"
    message = "验证码生成失败。"


# 用户与请求上下文。
class UserNotFoundInContext(StorefrontError):
    code = "USER_NOT_FOUND_IN_CONTEXT"
    message = "请求上下文中缺少登录用户。"


class UserNotFound(StorefrontError):
    code = "USER_NOT_FOUND"
    message = "用户不存在。"


class UserAlreadyExists(StorefrontError):
    code = "USER_ALREADY_EXISTS"
    message = "用户已存在。"


class EmailNotConfirmed(StorefrontError):
    """邮箱未确认。

    登录流程在会话已创建后抛出，附带新签发的令牌，调用方仍可用它完成邮箱确认。
    """

    code = "EMAIL_NOT_CONFIRMED"
    message = "邮箱尚未确认。"

    def __init__(self, token: str | None = None) -> None:
        super().__init__()
        self.token = token


class EmailAlreadyConfirmed(StorefrontError):
    code = "EMAIL_ALREADY_CONFIRMED"
    message = "邮箱已确认。"


class NameIsSame(StorefrontError):
    code = "NAME_IS_SAME"
    message = "新名称与当前名称相同。"


class PasswordIsSame(StorefrontError):
    code = "PASSWORD_IS_SAME"
    message = "新口令与旧口令相同。"


class RateLimited(StorefrontError):
    code = "RATE_LIMITED"
    message = "请求过于频繁，请稍后再试。"
