"""健康检查接口。"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy import text
from sqlalchemy.orm import Session

from storefront_api.db.session import get_db
from storefront_api.schemas.common import ErrorResponse, SuccessResponse
from storefront_api.schemas.responses import HealthStatusData
from storefront_api.utils.response import success

router = APIRouter(prefix="/health", tags=["health"])


@router.get("/live", summary="存活探针", response_model=SuccessResponse[HealthStatusData])
def live(request: Request):
    return success(request, {"status": "ok"})


@router.get(
    "/ready",
    summary="就绪探针",
    description="数据库可执行查询即视为就绪；会话存储在首次认证请求时按需连接。",
    response_model=SuccessResponse[HealthStatusData],
    responses={500: {"model": ErrorResponse}},
)
def ready(request: Request, db: Session = Depends(get_db)):
    db.execute(text("select 1"))
    return success(request, {"status": "ready"})
