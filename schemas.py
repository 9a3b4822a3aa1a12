from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field


# Auth
class UserCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(min_length=6, max_length=128)


class UserLogin(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6, max_length=128)


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class RefreshTokenRequest(BaseModel):
    refresh_token: str | None = None


class EmailRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    # Checked by hand so a missing field reads "Missing parameters"
    id: int | None = None
    token: str | None = None
    password: str | None = Field(default=None, min_length=6, max_length=128)


# Users
class UserPublic(BaseModel):
    id: int
    name: str
    email: EmailStr
    avatar: str | None = None
    email_verified_at: datetime | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class UserUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    email: EmailStr | None = None
    password: str | None = Field(default=None, min_length=6, max_length=128)


class UserListResponse(BaseModel):
    total: int
    page: int
    limit: int
    total_pages: int
    users: list[UserPublic]


# Books
class BookBase(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    author: str = Field(min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=2000)
    rating: int = Field(default=0, ge=0, le=5)


class BookCreate(BookBase):
    pass


class BookUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=255)
    author: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=2000)
    rating: int | None = Field(default=None, ge=0, le=5)


class Uploader(BaseModel):
    id: int
    name: str
    email: EmailStr

    model_config = ConfigDict(from_attributes=True)


class BookOut(BaseModel):
    id: int
    title: str
    author: str
    description: str | None
    thumbnail: str | None
    rating: int
    uploaded_at: datetime
    uploader_id: int
    uploader: Uploader

    model_config = ConfigDict(from_attributes=True)


class BookListResponse(BaseModel):
    total: int
    page: int
    limit: int
    total_pages: int
    books: list[BookOut]
