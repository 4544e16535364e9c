"""用户模型。"""

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from storefront_api.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class User(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """商城用户账号。"""

    __tablename__ = "users"

    # 展示名，会话中冗余保存一份。
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    # 登录名，注册时与邮箱一致。
    username: Mapped[str] = mapped_column(String(256), nullable=False, unique=True)
    # 登录与通知邮箱，全局唯一。
    email: Mapped[str] = mapped_column(String(256), nullable=False, unique=True)
    # 口令哈希，不存明文。
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    # 邮箱是否已通过验证码确认。
    email_confirmed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    # 头像地址，未上传时为空串。
    avatar_url: Mapped[str] = mapped_column(String(255), nullable=False, default="")
