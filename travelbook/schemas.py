"""
Pydantic schemas for the Travel Book API.

Request fields are optional at the schema level so that missing values are
reported with the service's own messages instead of a generic 422.
"""

from __future__ import annotations

from typing import Optional, Union

from pydantic import BaseModel, Field


class CreateAccountRequest(BaseModel):
    fullName: Optional[str] = Field(default=None, max_length=200)
    email: Optional[str] = Field(default=None, max_length=320)
    password: Optional[str] = Field(default=None, max_length=1024)


class LoginRequest(BaseModel):
    email: Optional[str] = Field(default=None, max_length=320)
    password: Optional[str] = Field(default=None, max_length=1024)


class OAuthLoginRequest(BaseModel):
    """Accepts both the provider-widget payload and the legacy Firebase one."""

    email: Optional[str] = None
    fullName: Optional[str] = None
    profileImageUrl: Optional[str] = None
    photoURL: Optional[str] = None
    clerkId: Optional[str] = None
    uid: Optional[str] = None

    @property
    def avatar_url(self) -> Optional[str]:
        return self.profileImageUrl or self.photoURL

    @property
    def external_id(self) -> Optional[str]:
        return self.clerkId or self.uid


class StoryPayload(BaseModel):
    title: Optional[str] = None
    story: Optional[str] = None
    visitedLocation: Optional[list[str]] = None
    imageUrl: Optional[str] = None
    visitedDate: Optional[Union[int, float, str]] = None


class FavouriteRequest(BaseModel):
    isFavourite: Optional[bool] = None


class ChangePasswordRequest(BaseModel):
    currentPassword: Optional[str] = None
    newPassword: Optional[str] = Field(default=None, max_length=1024)


class UpdateProfileRequest(BaseModel):
    fullName: Optional[str] = Field(default=None, max_length=200)


class AuthResponse(BaseModel):
    error: bool = False
    user: dict
    accessToken: str
    message: str


class UserResponse(BaseModel):
    user: dict
    message: str = ""


class StoryResponse(BaseModel):
    story: dict
    message: str


class StoryListResponse(BaseModel):
    stories: list[dict]


class ImageUploadResponse(BaseModel):
    imageUrl: str


class ProfileImageResponse(BaseModel):
    profileImage: str
    message: str


class MessageResponse(BaseModel):
    message: str


class PingResponse(BaseModel):
    status: str = "ok"
