"""数据库会话管理。"""

from collections.abc import Generator

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker


def build_engine(database_url: str) -> Engine:
    """创建数据库引擎，开启连接预检查以减少僵尸连接影响。"""
    return create_engine(database_url, future=True, pool_pre_ping=True)


def build_session_factory(engine: Engine) -> sessionmaker[Session]:
    """统一会话工厂，路由层通过依赖注入获取短生命周期会话。"""
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, class_=Session)


def get_db(request: Request) -> Generator[Session, None, None]:
    """为每个请求提供独立数据库会话。"""
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()
