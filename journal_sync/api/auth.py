"""
PR Journal Sync - Authentication API
=====================================

Signup, login, token verification, refresh-token rotation and logout.

Login additionally returns the submitted email and password encrypted with
the deployment cipher. Clients present these blobs back when syncing, so the
journal password is never stored server-side.
"""

from datetime import datetime, timezone
from uuid import UUID

import structlog
from fastapi import APIRouter, status

from journal_sync.api.deps import (
    CipherDep,
    ClientIp,
    CurrentUser,
    DbSession,
    Issuer,
    RefreshStore,
)
from journal_sync.core.config import settings
from journal_sync.core.errors import InvalidOrExpiredToken, Unauthorized
from journal_sync.core.models import User
from journal_sync.core.schemas import (
    AuthResponse,
    EncryptedCredentialsSchema,
    LoginRequest,
    MessageResponse,
    RefreshTokenRequest,
    SignupRequest,
    TokenVerifyRequest,
    TokenVerifyResponse,
    UserResponse,
)
from journal_sync.core.users import (
    create_user,
    get_user_by_email,
    get_user_by_id,
    normalize_email,
    verify_password,
)

logger = structlog.get_logger()

router = APIRouter(prefix="/auth", tags=["Authentication"])


# ==========================================================================
# Helper Functions
# ==========================================================================

def is_demo_login(email: str, password: str) -> bool:
    """Demo accounts: any address on the demo domain with a long enough password."""
    return (
        settings.DEMO_LOGIN_ENABLED
        and normalize_email(email).endswith(f"@{settings.DEMO_LOGIN_DOMAIN}")
        and len(password) >= settings.DEMO_PASSWORD_MIN_LENGTH
    )


async def issue_session(
    store: RefreshStore,
    issuer: Issuer,
    user: User,
    ip: str,
) -> AuthResponse:
    """Issue an access/refresh pair and persist the refresh token. Does not commit."""
    access_token = issuer.issue_access_token(user.id, user.email)
    refresh_token = issuer.issue_refresh_token(user.id)
    await store.save(user.id, refresh_token, ip)

    return AuthResponse(
        access_token=access_token,
        refresh_token=refresh_token,
        expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        user=UserResponse.model_validate(user),
    )


# ==========================================================================
# Registration
# ==========================================================================

@router.post(
    "/signup",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a new user",
    responses={
        201: {"description": "User created successfully"},
        409: {"description": "Email already exists"},
        422: {"description": "Validation error"},
    },
)
async def signup(
    data: SignupRequest,
    db: DbSession,
    store: RefreshStore,
    issuer: Issuer,
    ip: ClientIp,
) -> AuthResponse:
    """
    Register a new user account and start a session.

    The user starts unverified; verification happens on the first journal
    hand-off that proves GitHub ownership of the email.
    """
    user = await create_user(db, data.email, data.password)
    response = await issue_session(store, issuer, user, ip)
    await db.commit()

    logger.info("user_signed_up", user_id=str(user.id))
    return response


# ==========================================================================
# Login / Logout
# ==========================================================================

@router.post(
    "/login",
    response_model=AuthResponse,
    summary="Login and get tokens",
    responses={
        200: {"description": "Login successful"},
        401: {"description": "Invalid credentials"},
    },
)
async def login(
    data: LoginRequest,
    db: DbSession,
    store: RefreshStore,
    issuer: Issuer,
    cipher: CipherDep,
    ip: ClientIp,
) -> AuthResponse:
    """
    Authenticate user and return tokens plus encrypted credentials.

    Unknown email and wrong password return the same 401.
    """
    user = await get_user_by_email(db, data.email)

    if user is None or not verify_password(data.password, user.password_hash):
        if not is_demo_login(data.email, data.password):
            raise Unauthorized("Invalid credentials")
        if user is None:
            user = await create_user(db, data.email, data.password)
            logger.info("demo_user_created", user_id=str(user.id))

    user.last_login = datetime.now(timezone.utc)
    response = await issue_session(store, issuer, user, ip)
    response.encrypted_credentials = EncryptedCredentialsSchema(
        email=cipher.encrypt(normalize_email(data.email)),
        password=cipher.encrypt(data.password),
    )
    await db.commit()

    logger.info("user_logged_in", user_id=str(user.id))
    return response


@router.post(
    "/logout",
    response_model=MessageResponse,
    summary="Logout and revoke refresh tokens",
    responses={
        200: {"description": "Logout successful"},
        401: {"description": "Not authenticated"},
    },
)
async def logout(
    current_user: CurrentUser,
    store: RefreshStore,
    ip: ClientIp,
) -> MessageResponse:
    """
    Revoke every active refresh token of the user.

    Access tokens are stateless and expire on their own.
    """
    revoked = await store.revoke_all(current_user.id, ip)
    logger.info("user_logged_out", user_id=str(current_user.id), revoked=revoked)
    return MessageResponse(message="Logged out successfully", success=True)


# ==========================================================================
# Token Management
# ==========================================================================

@router.post(
    "/verify",
    response_model=TokenVerifyResponse,
    summary="Verify an access token",
    responses={
        200: {"description": "Token is valid"},
        401: {"description": "Invalid or expired token"},
    },
)
async def verify_token(
    data: TokenVerifyRequest,
    db: DbSession,
    issuer: Issuer,
) -> TokenVerifyResponse:
    claims = issuer.verify_access(data.token)

    try:
        user = await get_user_by_id(db, UUID(claims["sub"]))
    except ValueError as e:
        raise InvalidOrExpiredToken() from e
    if user is None:
        raise InvalidOrExpiredToken()

    return TokenVerifyResponse(valid=True, user=UserResponse.model_validate(user))


@router.post(
    "/refresh-token",
    response_model=AuthResponse,
    summary="Rotate refresh token",
    responses={
        200: {"description": "Token refreshed"},
        401: {"description": "Invalid, reused or expired refresh token"},
    },
)
async def refresh_token(
    data: RefreshTokenRequest,
    store: RefreshStore,
    issuer: Issuer,
    ip: ClientIp,
) -> AuthResponse:
    """
    Exchange a refresh token for a new access/refresh pair.

    Each refresh token works once. Presenting it again, or presenting any
    earlier token of the same lineage, fails with 401.
    """
    claims = issuer.verify_refresh(data.refresh_token)

    try:
        user_id = UUID(claims["sub"])
    except ValueError as e:
        raise InvalidOrExpiredToken() from e

    rotation = await store.rotate(user_id, data.refresh_token, ip)

    return AuthResponse(
        access_token=rotation.access_token,
        refresh_token=rotation.refresh_token,
        expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        user=UserResponse.model_validate(rotation.user),
    )


# ==========================================================================
# Profile
# ==========================================================================

@router.get(
    "/profile",
    response_model=UserResponse,
    summary="Get current user",
)
async def get_profile(
    current_user: CurrentUser,
) -> UserResponse:
    return UserResponse.model_validate(current_user)
