"""
User, Session and Channel Endpoints.

All routes live under `/api/v1/users`.

Endpoints Provided:
- `/register`, `/login`, `/logout`, `/refresh-token`: the session lifecycle.
  Login and refresh return both credentials in the body and also set them as
  `httponly`, `secure` cookies; logout clears the cookies and the stored
  refresh credential.
- `/change-password`, `/current-user`, `/update-account`, `/avatar`,
  `/cover-image`: account management for the authenticated caller.
- `/c/{username}`: a channel's public profile with subscriber counts.
- `/history`: the caller's watch history with video owners.

Services raise `ChannelAPIException` subclasses; each handler converts them
with `to_http_exception`, which hides credential failure reasons and internal
error details from the client.
"""

from typing import Optional
from fastapi import APIRouter, Depends, Request, Response
from pydantic import BaseModel

from api.dependencies import (
    get_current_account,
    get_graph_engine,
    get_session_authority,
)
from core.exceptions import ChannelAPIException, to_http_exception
from core.logging_config import get_logger, log_function_call
from core.models import AccountPublic, ApiResponse
from services.auth_gate import ACCESS_COOKIE, REFRESH_COOKIE
from services.relationship_graph import RelationshipGraphEngine
from services.session_authority import SessionAuthority, TokenPair

logger = get_logger(__name__)
router = APIRouter(prefix="/api/v1/users", tags=["Users"])

COOKIE_OPTIONS = {"httponly": True, "secure": True}


# Request Models
class RegisterRequest(BaseModel):
    full_name: Optional[str] = None
    email: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    avatar: Optional[str] = None
    cover_image: Optional[str] = None


class LoginRequest(BaseModel):
    username: Optional[str] = None
    email: Optional[str] = None
    password: str = ""


class RefreshTokenRequest(BaseModel):
    refresh_token: Optional[str] = None


class ChangePasswordRequest(BaseModel):
    old_password: Optional[str] = None
    new_password: Optional[str] = None


class UpdateAccountRequest(BaseModel):
    full_name: Optional[str] = None
    email: Optional[str] = None


class AvatarRequest(BaseModel):
    avatar: Optional[str] = None


class CoverImageRequest(BaseModel):
    cover_image: Optional[str] = None


def set_token_cookies(response: Response, tokens: TokenPair):
    response.set_cookie(ACCESS_COOKIE, tokens.access_token, **COOKIE_OPTIONS)
    response.set_cookie(REFRESH_COOKIE, tokens.refresh_token, **COOKIE_OPTIONS)


def clear_token_cookies(response: Response):
    response.delete_cookie(ACCESS_COOKIE, **COOKIE_OPTIONS)
    response.delete_cookie(REFRESH_COOKIE, **COOKIE_OPTIONS)


@router.post("/register", response_model=ApiResponse, status_code=201)
@log_function_call(logger)
async def register_user(
    request: RegisterRequest,
    authority: SessionAuthority = Depends(get_session_authority),
):
    """Register a new account"""
    try:
        account = await authority.register(
            full_name=request.full_name,
            email=request.email,
            username=request.username,
            password=request.password,
            avatar=request.avatar,
            cover_image=request.cover_image,
        )
    except ChannelAPIException as e:
        raise to_http_exception(e)

    return ApiResponse.ok(account, "User registered successfully", status_code=201)


@router.post("/login", response_model=ApiResponse)
@log_function_call(logger)
async def login_user(
    request: LoginRequest,
    response: Response,
    authority: SessionAuthority = Depends(get_session_authority),
):
    """Authenticate with username or email and return both credentials"""
    try:
        result = await authority.login(
            password=request.password,
            username=request.username,
            email=request.email,
        )
    except ChannelAPIException as e:
        raise to_http_exception(e)

    set_token_cookies(response, result.tokens)
    return ApiResponse.ok(
        {
            "user": result.account,
            "access_token": result.tokens.access_token,
            "refresh_token": result.tokens.refresh_token,
        },
        "User logged In Successfully",
    )


@router.post("/logout", response_model=ApiResponse)
@log_function_call(logger)
async def logout_user(
    response: Response,
    current_account: AccountPublic = Depends(get_current_account),
    authority: SessionAuthority = Depends(get_session_authority),
):
    """Revoke the stored refresh credential and clear cookies"""
    try:
        await authority.logout(current_account.id)
    except ChannelAPIException as e:
        raise to_http_exception(e)

    clear_token_cookies(response)
    return ApiResponse.ok({}, "User logged Out")


@router.post("/refresh-token", response_model=ApiResponse)
@log_function_call(logger)
async def refresh_access_token(
    request: Request,
    response: Response,
    payload: Optional[RefreshTokenRequest] = None,
    authority: SessionAuthority = Depends(get_session_authority),
):
    """Rotate the refresh credential (cookie first, then request body)"""
    incoming = request.cookies.get(REFRESH_COOKIE) or (
        payload.refresh_token if payload else None
    )
    try:
        tokens = await authority.refresh(incoming)
    except ChannelAPIException as e:
        raise to_http_exception(e)

    set_token_cookies(response, tokens)
    return ApiResponse.ok(
        {"access_token": tokens.access_token, "refresh_token": tokens.refresh_token},
        "Access token refreshed",
    )


@router.post("/change-password", response_model=ApiResponse)
@log_function_call(logger)
async def change_current_password(
    request: ChangePasswordRequest,
    response: Response,
    current_account: AccountPublic = Depends(get_current_account),
    authority: SessionAuthority = Depends(get_session_authority),
):
    """Change password; every session of the account has to log in again"""
    try:
        await authority.change_password(
            current_account.id, request.old_password, request.new_password
        )
    except ChannelAPIException as e:
        raise to_http_exception(e)

    clear_token_cookies(response)
    return ApiResponse.ok({}, "Password changed successfully")


@router.get("/current-user", response_model=ApiResponse)
async def get_current_user(
    current_account: AccountPublic = Depends(get_current_account),
):
    return ApiResponse.ok(current_account, "User fetched successfully")


@router.patch("/update-account", response_model=ApiResponse)
@log_function_call(logger)
async def update_account_details(
    request: UpdateAccountRequest,
    current_account: AccountPublic = Depends(get_current_account),
    authority: SessionAuthority = Depends(get_session_authority),
):
    try:
        account = await authority.update_account_details(
            current_account.id, request.full_name, request.email
        )
    except ChannelAPIException as e:
        raise to_http_exception(e)

    return ApiResponse.ok(account, "Account details updated successfully")


@router.patch("/avatar", response_model=ApiResponse)
@log_function_call(logger)
async def update_user_avatar(
    request: AvatarRequest,
    current_account: AccountPublic = Depends(get_current_account),
    authority: SessionAuthority = Depends(get_session_authority),
):
    try:
        account = await authority.update_avatar(current_account.id, request.avatar)
    except ChannelAPIException as e:
        raise to_http_exception(e)

    return ApiResponse.ok(account, "Avatar image updated successfully")


@router.patch("/cover-image", response_model=ApiResponse)
@log_function_call(logger)
async def update_user_cover_image(
    request: CoverImageRequest,
    current_account: AccountPublic = Depends(get_current_account),
    authority: SessionAuthority = Depends(get_session_authority),
):
    try:
        account = await authority.update_cover_image(
            current_account.id, request.cover_image
        )
    except ChannelAPIException as e:
        raise to_http_exception(e)

    return ApiResponse.ok(account, "Cover image updated successfully")


@router.get("/c/{username}", response_model=ApiResponse)
@log_function_call(logger)
async def get_user_channel_profile(
    username: str,
    current_account: AccountPublic = Depends(get_current_account),
    graph: RelationshipGraphEngine = Depends(get_graph_engine),
):
    """Channel profile with subscriber counts as seen by the caller"""
    try:
        profile = await graph.channel_profile(current_account.id, username)
    except ChannelAPIException as e:
        raise to_http_exception(e)

    return ApiResponse.ok(profile, "User channel fetched successfully")


@router.get("/history", response_model=ApiResponse)
@log_function_call(logger)
async def get_watch_history(
    current_account: AccountPublic = Depends(get_current_account),
    graph: RelationshipGraphEngine = Depends(get_graph_engine),
):
    try:
        history = await graph.watch_history(current_account.id)
    except ChannelAPIException as e:
        raise to_http_exception(e)

    return ApiResponse.ok(history, "Watch history fetched successfully")
