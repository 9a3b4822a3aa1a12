import logging

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status
from sqlalchemy import or_
from sqlalchemy.orm import Session

import accounts, auth, models, schemas, storage
from database import get_db
from pagination import paginate
from responses import success

router = APIRouter(prefix="/users", tags=["users"])
logger = logging.getLogger(__name__)


@router.get("")
def list_users(
    search: str | None = Query(default=None),
    is_verified: bool | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    db: Session = Depends(get_db),
    user_id: int = Depends(auth.get_current_user_id),
):
    query = db.query(models.User)

    if is_verified is True:
        query = query.filter(models.User.email_verified_at.isnot(None))
    elif is_verified is False:
        query = query.filter(models.User.email_verified_at.is_(None))

    if search:
        query = query.filter(
            or_(models.User.name.ilike(f"%{search}%"), models.User.email.ilike(f"%{search}%"))
        )

    result = paginate(query.order_by(models.User.id.asc()), page, limit)
    payload = schemas.UserListResponse(
        total=result["total"],
        page=result["page"],
        limit=result["limit"],
        total_pages=result["total_pages"],
        users=[schemas.UserPublic.model_validate(u) for u in result["items"]],
    )
    return success("Users fetched successfully", payload)


@router.get("/profile")
def get_profile(current_user: models.User = Depends(auth.get_current_user)):
    return success("Profile fetched successfully", schemas.UserPublic.model_validate(current_user))


@router.put("/profile")
def update_profile(
    payload: schemas.UserUpdate,
    current_user: models.User = Depends(auth.get_current_user),
    db: Session = Depends(get_db),
):
    update_data = payload.model_dump(exclude_unset=True, exclude_none=True)

    new_email = update_data.get("email")
    if new_email and new_email != current_user.email:
        taken = accounts.get_user_by_email(db, new_email)
        if taken:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already exists")

    password_changed = "password" in update_data
    if password_changed:
        update_data["password"] = auth.hash_password(update_data["password"])

    for field, value in update_data.items():
        setattr(current_user, field, value)

    db.commit()
    db.refresh(current_user)

    if password_changed:
        accounts.revoke_all_refresh_tokens(db, current_user.id)

    return success("Profile updated successfully", schemas.UserPublic.model_validate(current_user))


@router.put("/avatar")
def upload_avatar(
    avatar: UploadFile | None = File(default=None),
    current_user: models.User = Depends(auth.get_current_user),
    db: Session = Depends(get_db),
):
    if avatar is None or not avatar.filename:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Avatar file is required")

    old_path = current_user.avatar
    current_user.avatar = storage.save_upload(avatar, prefix="avatar")
    storage.commit_upload_change(db, new_path=current_user.avatar, old_path=old_path)
    db.refresh(current_user)
    logger.info(f"User {current_user.id} replaced avatar")

    return success("Avatar uploaded successfully", schemas.UserPublic.model_validate(current_user))


@router.delete("/avatar")
def delete_avatar(
    current_user: models.User = Depends(auth.get_current_user),
    db: Session = Depends(get_db),
):
    old_path = current_user.avatar
    current_user.avatar = None
    storage.commit_upload_change(db, old_path=old_path)
    db.refresh(current_user)

    return success("Avatar removed successfully", schemas.UserPublic.model_validate(current_user))
