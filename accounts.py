"""Registration, email verification, password reset and refresh-token sessions.

Every one-time or session secret handed to a user is stored only as its
SHA-256 digest. Lookups hash the presented value and match on the digest.
"""
import logging
from datetime import datetime, timedelta

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

import auth, mailer, models, schemas, tasks
from config import settings

logger = logging.getLogger(__name__)

REFRESH_TOKEN_BYTES = 40
ONE_TIME_TOKEN_BYTES = 32


def _bad_request(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


def get_user_by_email(db: Session, email: str) -> models.User | None:
    return db.query(models.User).filter(models.User.email == email).first()


def authenticate_user(db: Session, email: str, password: str) -> models.User | None:
    user = get_user_by_email(db, email)
    if not user or not auth.verify_password(password, user.password):
        return None
    return user


# Refresh tokens

def issue_refresh_token(db: Session, user_id: int) -> str:
    token = auth.generate_token(REFRESH_TOKEN_BYTES)
    db.add(
        models.RefreshToken(
            user_id=user_id,
            token_hash=auth.hash_token(token),
            expires_at=datetime.utcnow() + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
        )
    )
    db.commit()
    return token


def verify_refresh_token(db: Session, token: str) -> models.RefreshToken | None:
    record = (
        db.query(models.RefreshToken)
        .filter(models.RefreshToken.token_hash == auth.hash_token(token))
        .first()
    )
    if not record:
        return None

    if record.expires_at < datetime.utcnow():
        db.delete(record)
        db.commit()
        return None

    return record


def issue_session(db: Session, user_id: int) -> dict:
    return {
        "access_token": auth.create_access_token(user_id),
        "refresh_token": issue_refresh_token(db, user_id),
        "token_type": "bearer",
    }


def rotate_refresh_token(db: Session, token: str) -> dict:
    record = verify_refresh_token(db, token)
    if not record:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid refresh token")

    user_id = record.user_id
    db.delete(record)
    db.commit()
    return issue_session(db, user_id)


def revoke_refresh_token(db: Session, token: str) -> None:
    db.query(models.RefreshToken).filter(
        models.RefreshToken.token_hash == auth.hash_token(token)
    ).delete(synchronize_session=False)
    db.commit()


def revoke_all_refresh_tokens(db: Session, user_id: int) -> int:
    count = (
        db.query(models.RefreshToken)
        .filter(models.RefreshToken.user_id == user_id)
        .delete(synchronize_session=False)
    )
    db.commit()
    logger.info(f"Revoked {count} refresh token(s) for user {user_id}")
    return count


# Registration and email verification

def _send_verification_email(user: models.User, token: str) -> None:
    verify_url = f"{settings.APP_BASE_URL}/auth/verify-email?id={user.id}&token={token}"
    tasks.queue_email(
        user.email,
        "Please verify your email",
        f"Click to verify: {verify_url}",
        mailer.render_email(
            title="Please verify your email",
            greeting=f"Hi {user.name}!",
            message="Thank you for signing up. Please verify your email to activate your account.",
            button_text="Verify Email",
            button_url=verify_url,
        ),
    )


def issue_email_verification(db: Session, user: models.User) -> str:
    db.query(models.EmailVerification).filter(
        models.EmailVerification.user_id == user.id
    ).delete(synchronize_session=False)

    token = auth.generate_token(ONE_TIME_TOKEN_BYTES)
    db.add(
        models.EmailVerification(
            user_id=user.id,
            token_hash=auth.hash_token(token),
            expires_at=datetime.utcnow() + timedelta(hours=settings.EMAIL_VERIFICATION_EXPIRE_HOURS),
        )
    )
    db.commit()

    _send_verification_email(user, token)
    return token


def register_user(db: Session, user_create: schemas.UserCreate) -> tuple[models.User, str]:
    """Create the account and send its verification link.

    Returns the new user and the plaintext verification token.
    """
    if get_user_by_email(db, user_create.email):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already exists")

    user = models.User(
        name=user_create.name,
        email=user_create.email,
        password=auth.hash_password(user_create.password),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info(f"Registered user {user.id}")

    token = issue_email_verification(db, user)
    return user, token


def verify_email(db: Session, user_id: int, token: str) -> models.User:
    record = (
        db.query(models.EmailVerification)
        .filter(
            models.EmailVerification.user_id == user_id,
            models.EmailVerification.token_hash == auth.hash_token(token),
        )
        .first()
    )
    if not record:
        raise _bad_request("Invalid verification token")
    if record.expires_at < datetime.utcnow():
        raise _bad_request("Verification token expired")

    user = db.query(models.User).filter(models.User.id == user_id).first()
    if not user:
        raise _bad_request("Invalid verification token")

    user.email_verified_at = datetime.utcnow()
    db.delete(record)
    db.commit()
    db.refresh(user)
    return user


def resend_verification(db: Session, email: str) -> str | None:
    user = get_user_by_email(db, email)
    if not user or user.is_verified:
        return None
    return issue_email_verification(db, user)


# Password reset

def request_password_reset(db: Session, email: str) -> str | None:
    """Issue a reset token for ``email``. Unknown addresses return None quietly."""
    user = get_user_by_email(db, email)
    if not user:
        return None

    db.query(models.PasswordReset).filter(
        models.PasswordReset.user_id == user.id
    ).delete(synchronize_session=False)

    token = auth.generate_token(ONE_TIME_TOKEN_BYTES)
    db.add(
        models.PasswordReset(
            user_id=user.id,
            token_hash=auth.hash_token(token),
            expires_at=datetime.utcnow() + timedelta(minutes=settings.PASSWORD_RESET_EXPIRE_MINUTES),
        )
    )
    db.commit()

    reset_url = f"{settings.FRONTEND_URL}/reset-password?token={token}&id={user.id}"
    tasks.queue_email(
        user.email,
        "Reset Your Password",
        f"Click to reset your password: {reset_url}",
        mailer.render_email(
            title="Reset Your Password",
            greeting=f"Hi {user.name}!",
            message="We received a request to reset your password. The link expires in one hour.",
            button_text="Reset Password",
            button_url=reset_url,
        ),
    )
    return token


def reset_password(db: Session, user_id: int, token: str, new_password: str) -> None:
    record = (
        db.query(models.PasswordReset)
        .filter(
            models.PasswordReset.user_id == user_id,
            models.PasswordReset.token_hash == auth.hash_token(token),
        )
        .first()
    )
    if not record:
        raise _bad_request("Invalid or expired token")
    if record.expires_at < datetime.utcnow():
        raise _bad_request("Token expired")

    user = db.query(models.User).filter(models.User.id == user_id).first()
    if not user:
        raise _bad_request("Invalid or expired token")

    user.password = auth.hash_password(new_password)
    db.delete(record)
    db.commit()
    revoke_all_refresh_tokens(db, user_id)
