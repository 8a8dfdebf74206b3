"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

import logging
import secrets
import threading

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from travelbook.accounts import CredentialStore, IdentityReconciler
from travelbook.config import get_settings
from travelbook.db import DbClient, InMemoryDbClient, PostgresDbClient
from travelbook.errors import Unauthenticated
from travelbook.images import ImageManager
from travelbook.security import SessionIssuer
from travelbook.stories import StoryRepository
from travelbook.storage import CosStorageClient, InMemoryStorageClient, StorageClient

logger = logging.getLogger(__name__)

_db_client: DbClient | None = None
_storage_client: StorageClient | None = None
_session_issuer: SessionIssuer | None = None

bearer = HTTPBearer(auto_error=False)

# Sync endpoints run in a threadpool, so first use of a singleton can race.
_singleton_lock = threading.Lock()


def get_db_client() -> DbClient:
    """
    Return a singleton DB client so accounts and stories persist across requests.
    """
    global _db_client
    if _db_client:
        return _db_client

    with _singleton_lock:
        if _db_client is None:
            settings = get_settings()
            if settings.use_in_memory_backends or not settings.database_url:
                _db_client = InMemoryDbClient()
            else:
                _db_client = PostgresDbClient(settings.database_url)
    return _db_client


def _build_storage_client() -> StorageClient:
    settings = get_settings()
    if settings.use_in_memory_backends or not settings.cos_bucket:
        return InMemoryStorageClient()
    return CosStorageClient(
        bucket=settings.cos_bucket,
        region=settings.cos_region or "",
        endpoint=settings.cos_endpoint or "",
        access_key_id=settings.aws_access_key_id or "",
        secret_access_key=settings.aws_secret_access_key or "",
        public_base_url=settings.storage_public_base_url or "",
    )


def get_storage_client() -> StorageClient:
    global _storage_client
    if _storage_client:
        return _storage_client

    with _singleton_lock:
        if _storage_client is None:
            _storage_client = _build_storage_client()
    return _storage_client


def get_session_issuer() -> SessionIssuer:
    """
    Return the process-wide token issuer. The signing secret is read once.
    """
    global _session_issuer
    if _session_issuer:
        return _session_issuer

    with _singleton_lock:
        if _session_issuer is None:
            settings = get_settings()
            secret = settings.access_token_secret
            if not secret:
                if not settings.is_development:
                    raise RuntimeError("ACCESS_TOKEN_SECRET must be set")
                logger.warning(
                    "ACCESS_TOKEN_SECRET is not set; using a random secret for this process"
                )
                secret = secrets.token_urlsafe(48)
            _session_issuer = SessionIssuer(
                secret, ttl_hours=settings.access_token_ttl_hours
            )
    return _session_issuer


def get_image_manager(
    storage: StorageClient = Depends(get_storage_client),
) -> ImageManager:
    settings = get_settings()
    return ImageManager(
        storage,
        folder=settings.image_folder,
        uploads_dir=settings.uploads_dir,
        placeholder_url=settings.placeholder_image_url,
    )


def get_credential_store(db: DbClient = Depends(get_db_client)) -> CredentialStore:
    return CredentialStore(db)


def get_identity_reconciler(
    db: DbClient = Depends(get_db_client),
    sessions: SessionIssuer = Depends(get_session_issuer),
) -> IdentityReconciler:
    return IdentityReconciler(db, sessions)


def get_story_repository(db: DbClient = Depends(get_db_client)) -> StoryRepository:
    return StoryRepository(db, get_settings().placeholder_image_url)


def get_current_account_id(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer),
    sessions: SessionIssuer = Depends(get_session_issuer),
) -> str:
    if credentials is None:
        raise Unauthenticated("Missing bearer token")
    return sessions.verify(credentials.credentials)
