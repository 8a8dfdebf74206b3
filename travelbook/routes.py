"""
HTTP routes for the Travel Book API.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, File, Query, UploadFile

from travelbook.accounts import CredentialStore, IdentityReconciler
from travelbook.db import AccountRecord, DbClient, StoryRecord
from travelbook.dependencies import (
    get_credential_store,
    get_current_account_id,
    get_db_client,
    get_identity_reconciler,
    get_image_manager,
    get_session_issuer,
    get_story_repository,
)
from travelbook.errors import InvalidCredentials, NotFound, Unauthenticated, ValidationError
from travelbook.images import ImageManager
from travelbook.schemas import (
    AuthResponse,
    ChangePasswordRequest,
    CreateAccountRequest,
    FavouriteRequest,
    ImageUploadResponse,
    LoginRequest,
    MessageResponse,
    OAuthLoginRequest,
    PingResponse,
    ProfileImageResponse,
    StoryListResponse,
    StoryPayload,
    StoryResponse,
    UpdateProfileRequest,
    UserResponse,
)
from travelbook.security import SessionIssuer
from travelbook.stories import StoryRepository

logger = logging.getLogger(__name__)

router = APIRouter()

OAUTH_PROVIDERS = ("google", "github", "twitter")


def _account_summary(account: AccountRecord) -> dict:
    return {
        "fullName": account.full_name,
        "email": account.email,
        "profileImageUrl": account.profile_image_url,
    }


def _story_list(stories: list[StoryRecord]) -> StoryListResponse:
    return StoryListResponse(stories=[story.as_dict() for story in stories])


def _read_image(image: UploadFile | None) -> bytes:
    if image is None:
        raise ValidationError("No image uploaded")
    data = image.file.read()
    if not data:
        raise ValidationError("No image uploaded")
    return data


def _release_image(url: str | None, db: DbClient, images: ImageManager) -> bool:
    """Delete ``url`` once no story or profile references it any more."""
    if not url:
        return False
    if db.count_image_references(url) > 0:
        logger.info("Image %s is still referenced; keeping it", url)
        return False
    return images.delete(url)


@router.get("/ping", response_model=PingResponse)
def ping():
    return PingResponse()


@router.post("/create-account", response_model=AuthResponse, status_code=201)
def create_account(
    payload: CreateAccountRequest,
    accounts: CredentialStore = Depends(get_credential_store),
    sessions: SessionIssuer = Depends(get_session_issuer),
):
    account = accounts.create_account(payload.fullName, payload.email, payload.password)
    return AuthResponse(
        user=_account_summary(account),
        accessToken=sessions.issue(account.account_id),
        message="Successfully Registered for a Travel Book!",
    )


@router.post("/login", response_model=AuthResponse)
def login(
    payload: LoginRequest,
    accounts: CredentialStore = Depends(get_credential_store),
    sessions: SessionIssuer = Depends(get_session_issuer),
):
    try:
        account = accounts.verify_password(payload.email, payload.password)
    except NotFound as exc:
        # Unknown email is a login failure, not a missing resource.
        raise InvalidCredentials(exc.message) from exc
    return AuthResponse(
        user=_account_summary(account),
        accessToken=sessions.issue(account.account_id),
        message="Login Successful",
    )


def _oauth_login(
    provider: str, payload: OAuthLoginRequest, reconciler: IdentityReconciler
) -> AuthResponse:
    if provider not in OAUTH_PROVIDERS:
        raise NotFound(f"Unsupported provider: {provider}")
    account, token = reconciler.reconcile(
        payload.email,
        display_name=payload.fullName,
        avatar_url=payload.avatar_url,
        external_id=payload.external_id,
    )
    logger.info("OAuth sign-in via %s for account %s", provider, account.account_id)
    return AuthResponse(
        user=_account_summary(account),
        accessToken=token,
        message=f"{provider.capitalize()} authentication successful",
    )


@router.post("/oauth/{provider}", response_model=AuthResponse)
def oauth_login(
    provider: str,
    payload: OAuthLoginRequest,
    reconciler: IdentityReconciler = Depends(get_identity_reconciler),
):
    return _oauth_login(provider.lower(), payload, reconciler)


@router.post("/{provider}-auth", response_model=AuthResponse)
def legacy_oauth_login(
    provider: str,
    payload: OAuthLoginRequest,
    reconciler: IdentityReconciler = Depends(get_identity_reconciler),
):
    return _oauth_login(provider.lower(), payload, reconciler)


@router.get("/get-user", response_model=UserResponse)
def get_user(
    account_id: str = Depends(get_current_account_id),
    accounts: CredentialStore = Depends(get_credential_store),
):
    try:
        account = accounts.get_account(account_id)
    except NotFound as exc:
        raise Unauthenticated("Account no longer exists") from exc
    return UserResponse(user=account.as_dict())


@router.put("/update-profile", response_model=UserResponse)
def update_profile(
    payload: UpdateProfileRequest,
    account_id: str = Depends(get_current_account_id),
    accounts: CredentialStore = Depends(get_credential_store),
):
    account = accounts.update_profile(account_id, payload.fullName)
    return UserResponse(user=account.as_dict(), message="Profile updated")


@router.put("/update-profile-image", response_model=ProfileImageResponse)
def update_profile_image(
    image: UploadFile | None = File(None),
    account_id: str = Depends(get_current_account_id),
    accounts: CredentialStore = Depends(get_credential_store),
    db: DbClient = Depends(get_db_client),
    images: ImageManager = Depends(get_image_manager),
):
    data = _read_image(image)
    url = images.upload(data, filename=image.filename, content_type=image.content_type)
    previous = accounts.set_profile_image(account_id, url)
    if previous and previous != url:
        _release_image(previous, db, images)
    return ProfileImageResponse(profileImage=url, message="Profile image updated")


@router.post("/change-password", response_model=MessageResponse)
def change_password(
    payload: ChangePasswordRequest,
    account_id: str = Depends(get_current_account_id),
    accounts: CredentialStore = Depends(get_credential_store),
):
    accounts.change_password(account_id, payload.currentPassword, payload.newPassword)
    return MessageResponse(message="Password changed successfully")


@router.post("/image-upload", response_model=ImageUploadResponse)
def image_upload(
    image: UploadFile | None = File(None),
    images: ImageManager = Depends(get_image_manager),
):
    # TODO: require a bearer token once the web client sends one on uploads.
    data = _read_image(image)
    url = images.upload(data, filename=image.filename, content_type=image.content_type)
    return ImageUploadResponse(imageUrl=url)


@router.delete("/delete-image", response_model=MessageResponse)
def delete_image(
    imageUrl: str = Query(..., min_length=1),
    account_id: str = Depends(get_current_account_id),
    stories: StoryRepository = Depends(get_story_repository),
    db: DbClient = Depends(get_db_client),
    images: ImageManager = Depends(get_image_manager),
):
    """Remove a photo that one of the caller's stories is about to drop."""
    if not any(s.image_url == imageUrl for s in stories.list_stories(account_id)):
        raise NotFound("Image not found")
    # The story being detached still holds one reference.
    if db.count_image_references(imageUrl) > 1:
        logger.info("Image %s is still referenced; keeping it", imageUrl)
        return MessageResponse(message="Image is still in use")
    images.delete(imageUrl)
    return MessageResponse(message="Image deleted successfully")


@router.post("/add-travel-story", response_model=StoryResponse, status_code=201)
def add_travel_story(
    payload: StoryPayload,
    account_id: str = Depends(get_current_account_id),
    stories: StoryRepository = Depends(get_story_repository),
):
    story = stories.create(
        account_id,
        payload.title,
        payload.story,
        payload.visitedLocation,
        payload.imageUrl,
        payload.visitedDate,
    )
    return StoryResponse(story=story.as_dict(), message="Added Successfully")


@router.get("/get-all-stories", response_model=StoryListResponse)
def get_all_stories(
    account_id: str = Depends(get_current_account_id),
    stories: StoryRepository = Depends(get_story_repository),
):
    return _story_list(stories.list_stories(account_id))


@router.put("/edit-story/{story_id}", response_model=StoryResponse)
def edit_story(
    story_id: str,
    payload: StoryPayload,
    account_id: str = Depends(get_current_account_id),
    stories: StoryRepository = Depends(get_story_repository),
):
    story = stories.update(
        account_id,
        story_id,
        payload.title,
        payload.story,
        payload.visitedLocation,
        payload.imageUrl,
        payload.visitedDate,
    )
    return StoryResponse(story=story.as_dict(), message="Update Successful")


@router.put("/update-is-favourite/{story_id}", response_model=StoryResponse)
def update_is_favourite(
    story_id: str,
    payload: FavouriteRequest,
    account_id: str = Depends(get_current_account_id),
    stories: StoryRepository = Depends(get_story_repository),
):
    if payload.isFavourite is None:
        raise ValidationError("isFavourite is required")
    story = stories.set_favourite(account_id, story_id, payload.isFavourite)
    return StoryResponse(story=story.as_dict(), message="Update Successful")


@router.delete("/delete-story/{story_id}", response_model=MessageResponse)
def delete_story(
    story_id: str,
    account_id: str = Depends(get_current_account_id),
    stories: StoryRepository = Depends(get_story_repository),
    db: DbClient = Depends(get_db_client),
    images: ImageManager = Depends(get_image_manager),
):
    image_url = stories.delete(account_id, story_id)
    _release_image(image_url, db, images)
    return MessageResponse(message="Travel Story deleted successfully!")


@router.get("/search", response_model=StoryListResponse)
def search_stories(
    query: str | None = Query(None),
    account_id: str = Depends(get_current_account_id),
    stories: StoryRepository = Depends(get_story_repository),
):
    return _story_list(stories.search(account_id, query))


@router.get("/travel-stories-filter", response_model=StoryListResponse)
def filter_stories(
    startDate: str | None = Query(None),
    endDate: str | None = Query(None),
    account_id: str = Depends(get_current_account_id),
    stories: StoryRepository = Depends(get_story_repository),
):
    return _story_list(stories.filter_by_date_range(account_id, startDate, endDate))


@router.get("/api/story/{story_id}", response_model=dict)
def get_shared_story(
    story_id: str,
    stories: StoryRepository = Depends(get_story_repository),
):
    return stories.get_public(story_id).as_dict()
