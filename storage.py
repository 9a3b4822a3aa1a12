import logging
import uuid
from pathlib import Path

from fastapi import HTTPException, UploadFile, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config import settings

logger = logging.getLogger(__name__)

PUBLIC_PREFIX = "/uploads/"
ALLOWED_EXTENSIONS = {".jpg", ".jpeg", ".png", ".webp", ".gif"}


def upload_root() -> Path:
    root = Path(settings.UPLOAD_DIR)
    root.mkdir(parents=True, exist_ok=True)
    return root


def _local_path(public_path: str | None) -> Path | None:
    if not public_path or not public_path.startswith(PUBLIC_PREFIX):
        return None
    name = Path(public_path[len(PUBLIC_PREFIX):]).name
    return upload_root() / name if name else None


def delete_upload(public_path: str | None) -> None:
    path = _local_path(public_path)
    if path is None:
        return
    try:
        path.unlink()
        logger.info(f"Deleted upload {path}")
    except FileNotFoundError:
        # already gone
        pass


def save_upload(image: UploadFile, prefix: str) -> str:
    if not image.filename:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid image file")

    ext = Path(image.filename).suffix.lower()
    if ext not in ALLOWED_EXTENSIONS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Unsupported image format. Use jpg, jpeg, png, webp, or gif.",
        )

    name = f"{prefix}-{uuid.uuid4().hex}{ext}"
    (upload_root() / name).write_bytes(image.file.read())
    return f"{PUBLIC_PREFIX}{name}"


def commit_upload_change(db: Session, new_path: str | None = None, old_path: str | None = None) -> None:
    """Commit the row change, then drop the file it no longer references.

    On a failed commit the freshly saved file is removed instead and the old
    one is left in place for the row that still points at it.
    """
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        delete_upload(new_path)
        raise
    delete_upload(old_path)
