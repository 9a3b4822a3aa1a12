import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy.orm import Session

import accounts, auth, models, schemas
from config import settings
from database import get_db
from rate_limiter import limiter
from responses import success

router = APIRouter(prefix="/auth", tags=["auth"])
logger = logging.getLogger(__name__)


def _dev_only(**values) -> dict:
    """Echo one-time tokens back to the caller outside production."""
    if settings.is_production:
        return {}
    return values


@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(user: schemas.UserCreate, db: Session = Depends(get_db)):
    db_user, verify_token = accounts.register_user(db, user)
    data = {"user": schemas.UserPublic.model_validate(db_user)}
    data.update(_dev_only(verify_token=verify_token))
    return success("User registered successfully", data)


@router.get("/verify-email")
def verify_email(id: int | None = None, token: str | None = None, db: Session = Depends(get_db)):
    if id is None or not token:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing parameters")

    user = accounts.verify_email(db, id, token)
    return success("Email verified successfully", schemas.UserPublic.model_validate(user))


@router.post("/resend-verification")
def resend_verification(payload: schemas.EmailRequest, db: Session = Depends(get_db)):
    token = accounts.resend_verification(db, payload.email)
    data = _dev_only(verify_token=token) if token else None
    return success("If the account exists and is unverified, a new link has been sent.", data or None)


@router.post("/login")
@limiter.limit("5/minute")
def login(
    request: Request,
    response: Response,
    user: schemas.UserLogin,
    db: Session = Depends(get_db),
):
    db_user = accounts.authenticate_user(db, user.email, user.password)
    if not db_user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")

    tokens = accounts.issue_session(db, db_user.id)
    auth.set_auth_cookies(response, tokens["access_token"], tokens["refresh_token"])
    logger.info(f"User {db_user.id} logged in")

    return success(
        "Login successful",
        {**tokens, "user": schemas.UserPublic.model_validate(db_user)},
    )


def _refresh_token_from(request: Request, payload: schemas.RefreshTokenRequest | None) -> str | None:
    if payload and payload.refresh_token:
        return payload.refresh_token
    return request.cookies.get(auth.REFRESH_COOKIE)


@router.post("/refresh-token")
def refresh_token(
    request: Request,
    response: Response,
    payload: schemas.RefreshTokenRequest | None = None,
    db: Session = Depends(get_db),
):
    token = _refresh_token_from(request, payload)
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing refresh token")

    tokens = accounts.rotate_refresh_token(db, token)
    auth.set_auth_cookies(response, tokens["access_token"], tokens["refresh_token"])
    return success("Token refreshed", tokens)


@router.post("/logout")
def logout(
    request: Request,
    response: Response,
    payload: schemas.RefreshTokenRequest | None = None,
    db: Session = Depends(get_db),
):
    token = _refresh_token_from(request, payload)
    if token:
        accounts.revoke_refresh_token(db, token)

    auth.clear_auth_cookies(response)
    return success("Logged out")


@router.post("/logout-all")
def logout_all(
    response: Response,
    current_user: models.User = Depends(auth.get_current_user),
    db: Session = Depends(get_db),
):
    revoked = accounts.revoke_all_refresh_tokens(db, current_user.id)
    auth.clear_auth_cookies(response)
    return success("Logged out from all sessions", {"revoked": revoked})


@router.post("/forgot-password")
@limiter.limit("5/minute")
def forgot_password(request: Request, payload: schemas.EmailRequest, db: Session = Depends(get_db)):
    token = accounts.request_password_reset(db, payload.email)
    data = _dev_only(reset_token=token) if token else None
    return success("If the email is registered, a reset link has been sent.", data or None)


@router.post("/reset-password")
def reset_password(payload: schemas.ResetPasswordRequest, db: Session = Depends(get_db)):
    if payload.id is None or not payload.token or not payload.password:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing parameters")

    accounts.reset_password(db, payload.id, payload.token, payload.password)
    return success("Password reset successful")
