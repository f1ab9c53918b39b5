from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse

from shared.core import get_logger, set_request_context

from app.application.schemas import Notification, SessionInfo, SignInRequest
from app.application.service import ProfileService
from app.auth_local import create_session_token, decode_session_token
from app.core_settings import Settings, get_settings
from app.infrastructure.gateway import AuthError, GatewayClient, GatewayError

logger = get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

BEARER_PREFIX = "Bearer "


def get_gateway(request: Request) -> GatewayClient:
    """The application-wide gateway client (anonymous key only)."""
    return request.app.state.gateway


def _session_token(request: Request, settings: Settings) -> Optional[str]:
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith(BEARER_PREFIX):
        return auth_header.split(" ", 1)[1]
    return request.cookies.get(settings.SESSION_COOKIE_NAME)


async def get_optional_session(request: Request, settings: Settings = Depends(get_settings)) -> Optional[SessionInfo]:
    token = _session_token(request, settings)
    return decode_session_token(token) if token else None


async def get_current_session(session: Optional[SessionInfo] = Depends(get_optional_session)) -> SessionInfo:
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    set_request_context(user_id=session.user_id)
    return session


def get_user_gateway(
    session: SessionInfo = Depends(get_current_session),
    gateway: GatewayClient = Depends(get_gateway),
) -> GatewayClient:
    """Gateway client acting as the signed-in staff member."""
    return gateway.authorized(session.access_token)


def _failure(status_code: int, description: str) -> JSONResponse:
    notification = Notification(variant="destructive", title="Sign-in failed", description=description)
    return JSONResponse(status_code=status_code, content={"success": False, "notification": notification.model_dump()})


@router.post("/login")
async def login(
    payload: SignInRequest,
    gateway: GatewayClient = Depends(get_gateway),
    settings: Settings = Depends(get_settings),
):
    """Email/password sign-in; issues the panel session cookie."""
    try:
        grant = await gateway.sign_in(payload.email, payload.password)
    except AuthError as e:
        logger.info(f"Sign-in refused for {payload.email}: {e.message}")
        return _failure(status.HTTP_401_UNAUTHORIZED, e.message)
    except GatewayError as e:
        logger.error(f"Sign-in failed for {payload.email}: {e}")
        return _failure(status.HTTP_502_BAD_GATEWAY, e.message)

    user = grant.get("user") or {}
    access_token = grant.get("access_token")
    if not user.get("id") or not access_token:
        logger.error("Sign-in response is missing the user or access token")
        return _failure(status.HTTP_502_BAD_GATEWAY, "Unexpected response from the authentication service")

    profile = await ProfileService(gateway.authorized(access_token)).get(user["id"])
    session = SessionInfo(
        user_id=user["id"],
        email=user.get("email") or payload.email,
        full_name=profile.full_name if profile else None,
        role=profile.role if profile else None,
        access_token=access_token,
    )

    ttl_minutes = settings.SESSION_TTL_MINUTES
    if grant.get("expires_in"):
        ttl_minutes = min(ttl_minutes, max(1, int(grant["expires_in"]) // 60))
    token = create_session_token(session, expires_minutes=ttl_minutes)

    logger.info(f"Staff member {session.user_id} signed in")
    response = JSONResponse(content={
        "success": True,
        "notification": Notification(title="Welcome", description="Signed in successfully").model_dump(),
        "redirect": "/dashboard",
        "token": token,
    })
    response.set_cookie(
        settings.SESSION_COOKIE_NAME,
        token,
        max_age=ttl_minutes * 60,
        httponly=True,
        samesite="lax",
        secure=settings.SESSION_COOKIE_SECURE,
    )
    return response


@router.post("/logout")
async def logout(
    session: Optional[SessionInfo] = Depends(get_optional_session),
    gateway: GatewayClient = Depends(get_gateway),
    settings: Settings = Depends(get_settings),
):
    if session is not None:
        try:
            await gateway.authorized(session.access_token).sign_out()
        except GatewayError as e:
            logger.warning(f"Gateway sign-out failed for {session.user_id}: {e}")
    response = JSONResponse(content={"success": True, "redirect": "/login"})
    response.delete_cookie(settings.SESSION_COOKIE_NAME)
    return response


@router.get("/me")
async def me(session: SessionInfo = Depends(get_current_session)):
    return session.model_dump(exclude={"access_token"})
