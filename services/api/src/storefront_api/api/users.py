"""用户账号接口。"""

from fastapi import APIRouter, Depends, HTTPException, Request, status

from storefront_api.dependencies import get_current_session, get_optional_session, get_user_service
from storefront_api.schemas.common import ErrorResponse, SuccessResponse
from storefront_api.schemas.responses import ActionResultData, SessionTokenData, UserCreatedData, UserInfoData
from storefront_api.schemas.session import UserSession
from storefront_api.schemas.user import (
    ConfirmEmailRequest,
    ResendCodeRequest,
    SignInRequest,
    UpdateNameRequest,
    UpdatePasswordRequest,
    UserCreateRequest,
)
from storefront_api.services.user_service import UserService
from storefront_api.utils.response import success

router = APIRouter(prefix="/users", tags=["users"])


@router.post(
    "",
    summary="注册账号",
    description="使用邮箱和密码注册账号，注册后需登录并完成邮箱确认。",
    status_code=status.HTTP_201_CREATED,
    response_model=SuccessResponse[UserCreatedData],
    responses={409: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
def register(
    payload: UserCreateRequest,
    request: Request,
    service: UserService = Depends(get_user_service),
):
    user = service.register(name=payload.name, email=payload.email, password=payload.password)
    return success(request, UserCreatedData.model_validate(user).model_dump(mode="json"))


@router.post(
    "/sign-in",
    summary="登录",
    description=(
        "校验邮箱与密码并创建会话，同一用户旧会话随即失效。"
        "邮箱未确认时返回 409，错误详情中仍携带新令牌，用于完成邮箱确认。"
    ),
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[SessionTokenData],
    responses={401: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
def sign_in(
    payload: SignInRequest,
    request: Request,
    service: UserService = Depends(get_user_service),
):
    token = service.sign_in(email=payload.email, password=payload.password)
    return success(request, {"token": token})


@router.get(
    "/me",
    summary="当前用户信息",
    description="返回当前会话中的用户资料，不访问数据库。",
    response_model=SuccessResponse[UserInfoData],
    responses={401: {"model": ErrorResponse}},
)
def me(
    request: Request,
    session: UserSession = Depends(get_current_session),
    service: UserService = Depends(get_user_service),
):
    info = service.get_user_info(session)
    return success(
        request,
        {"id": str(info.user_id), "name": info.name, "email": info.email, "avatar_url": info.avatar_url},
    )


@router.patch(
    "/name",
    summary="修改名称",
    description="修改成功后刷新当前会话，令牌与剩余有效期不变。",
    response_model=SuccessResponse[ActionResultData],
    responses={401: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
def update_name(
    payload: UpdateNameRequest,
    request: Request,
    session: UserSession = Depends(get_current_session),
    service: UserService = Depends(get_user_service),
):
    service.update_name(session, payload.name)
    return success(request, {"ok": True})


@router.patch(
    "/password",
    summary="修改密码",
    description="需要提供当前密码，新密码不能与当前密码相同。",
    response_model=SuccessResponse[ActionResultData],
    responses={401: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
def update_password(
    payload: UpdatePasswordRequest,
    request: Request,
    session: UserSession = Depends(get_current_session),
    service: UserService = Depends(get_user_service),
):
    service.update_password(session, payload.old_password, payload.new_password)
    return success(request, {"ok": True})


@router.post(
    "/resend-code",
    summary="重发邮箱验证码",
    description=(
        "已登录时发送到会话邮箱；未登录时发送到请求体中的邮箱，邮箱未注册或已确认时同样返回成功。"
        "按邮箱与客户端 IP 限流，超限返回 429。"
    ),
    response_model=SuccessResponse[ActionResultData],
    responses={
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
        429: {"model": ErrorResponse},
    },
)
def resend_code(
    request: Request,
    payload: ResendCodeRequest | None = None,
    session: UserSession | None = Depends(get_optional_session),
    service: UserService = Depends(get_user_service),
):
    email = payload.email if payload is not None else None
    if session is None and not email:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
            detail={"code": "EMAIL_REQUIRED", "message": "未登录时必须提供邮箱。"},
        )
    client_ip = request.client.host if request.client else None
    service.resend_code(session, email, client_ip)
    return success(request, {"ok": True})


@router.patch(
    "/email/confirm",
    summary="确认邮箱",
    description="校验邮箱验证码，成功后验证码立即失效。",
    response_model=SuccessResponse[ActionResultData],
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        410: {"model": ErrorResponse},
    },
)
def confirm_email(
    payload: ConfirmEmailRequest,
    request: Request,
    session: UserSession = Depends(get_current_session),
    service: UserService = Depends(get_user_service),
):
    service.confirm_email(session, payload.otp)
    return success(request, {"ok": True})
