"""Auth API — signup, login, logout, profile.

Learn: Routes for the user account lifecycle:
- POST /auth/signup → create account, set the `jwt` cookie, queue welcome email
- POST /auth/login → email/password → `jwt` cookie
- POST /auth/logout → clear the cookie
- PUT /auth/update-profile → upload a new profile picture
- GET /auth/check → who am I (used by the frontend on page load)

The cookie name comes from settings.auth_cookie_name — the WebSocket gate
reads the same name out of the handshake.
"""

import structlog
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Response
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from chatify.auth.dependencies import get_current_user
from chatify.auth.identity import UserIdentity
from chatify.auth.jwt import create_access_token, token_max_age_seconds
from chatify.auth.password import hash_password, verify_password
from chatify.config import settings
from chatify.db.engine import get_db
from chatify.db.models import User
from chatify.schemas.user import LoginRequest, ProfileUpdate, SignupRequest, UserRead
from chatify.services.email_service import send_welcome_email_in_background
from chatify.services.media_service import ImageHost, ImageUploadError, get_image_host

logger = structlog.get_logger()
router = APIRouter(prefix="/auth")


def _set_auth_cookie(response: Response, user: User) -> None:
    response.set_cookie(
        key=settings.auth_cookie_name,
        value=create_access_token(str(user.id)),
        max_age=token_max_age_seconds(),
        httponly=True,  # not readable from JS
        samesite="strict",
        secure=settings.is_production,
    )


# ─── Signup ──────────────────────────────────────────────


@router.post("/signup", response_model=UserRead, status_code=201)
async def signup(
    body: SignupRequest,
    response: Response,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
):
    """Create a new account and log it in."""
    q = select(User).where(User.email == body.email)
    result = await db.execute(q)
    if result.scalars().first():
        raise HTTPException(status_code=409, detail="Email already exists")

    user = User(
        email=body.email,
        full_name=body.full_name,
        password_hash=hash_password(body.password),
    )
    db.add(user)
    await db.commit()

    _set_auth_cookie(response, user)
    logger.info("auth.signup", user_id=str(user.id))

    # Runs after the response is sent; failures are logged only.
    background_tasks.add_task(
        send_welcome_email_in_background, user.email, user.full_name, settings.client_url
    )
    return user


# ─── Login / logout ─────────────────────────────────────


@router.post("/login", response_model=UserRead)
async def login(
    body: LoginRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
):
    """Login with email and password. Same error for unknown email and bad password."""
    q = select(User).where(User.email == body.email)
    result = await db.execute(q)
    user = result.scalars().first()

    if not user or not verify_password(body.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid credentials")

    _set_auth_cookie(response, user)
    logger.info("auth.login", user_id=str(user.id))
    return user


@router.post("/logout")
async def logout(response: Response):
    """Clear the auth cookie."""
    response.delete_cookie(
        key=settings.auth_cookie_name,
        httponly=True,
        samesite="strict",
        secure=settings.is_production,
    )
    return {"message": "Logged out successfully"}


# ─── Current user ───────────────────────────────────────


async def _load_user(identity: UserIdentity, db: AsyncSession) -> User:
    user = await db.get(User, identity.uuid)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.get("/check", response_model=UserRead)
async def check(
    identity: UserIdentity = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Return the authenticated user."""
    return await _load_user(identity, db)


@router.put("/update-profile", response_model=UserRead)
async def update_profile(
    body: ProfileUpdate,
    identity: UserIdentity = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    images: ImageHost = Depends(get_image_host),
):
    """Upload a new profile picture and store its hosted URL."""
    user = await _load_user(identity, db)

    try:
        user.profile_pic = await images.upload(body.profile_pic)
    except ImageUploadError as e:
        logger.warning("auth.profile_upload_failed", user_id=identity.id, error=str(e))
        raise HTTPException(status_code=502, detail="Image upload failed")

    await db.commit()
    return user
