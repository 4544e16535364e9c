"""用户数据访问。"""

import logging
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from storefront_api.models.user import User

logger = logging.getLogger(__name__)


def normalize_email(value: str) -> str:
    """标准化邮箱字段（去空格 + 小写）。"""
    return value.strip().lower()


class UserRepository:
    """用户读写，查不到时返回 None 而不是抛异常。"""

    def __init__(self, db: Session) -> None:
        self.db = db

    def get_by_email(self, email: str) -> User | None:
        return self.db.execute(select(User).where(User.email == normalize_email(email))).scalar_one_or_none()

    def get_by_id(self, user_id: UUID) -> User | None:
        return self.db.get(User, user_id)

    def create(self, user: User) -> User:
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        logger.info("user created user_id=%s", user.id)
        return user

    def update_name(self, user_id: UUID, name: str) -> None:
        self.db.execute(update(User).where(User.id == user_id).values(name=name))
        self.db.commit()

    def update_password(self, user_id: UUID, password_hash: str) -> None:
        self.db.execute(update(User).where(User.id == user_id).values(password_hash=password_hash))
        self.db.commit()

    def mark_email_confirmed(self, user_id: UUID) -> None:
        self.db.execute(update(User).where(User.id == user_id).values(email_confirmed=True))
        self.db.commit()
