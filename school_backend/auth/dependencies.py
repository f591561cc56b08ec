import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from school_backend.auth.sessions import SessionStore, utc_now
from school_backend.core import config
from school_backend.core.errors import Forbidden, Internal, NotFound, Unauthorized
from school_backend.document_store import DocumentStore, StorageError, get_store

logger = logging.getLogger(__name__)

# auto_error is off so a missing header is a 401 rather than FastAPI's default 403.
security = HTTPBearer(auto_error=False)

ROLE_FIELD = 'user_role'


@dataclass(frozen=True)
class CurrentIdentity:
    """The authenticated user attached to a request."""

    user_id: str
    user: dict[str, Any]
    token: str

    @property
    def role(self) -> str | None:
        return self.user.get(ROLE_FIELD)

    @property
    def school_id(self) -> str | None:
        return self.user.get('school_id')


def authenticate_token(store: DocumentStore, token: str | None, now: datetime | None = None) -> CurrentIdentity:
    if not token:
        raise Unauthorized('Authorization token required.')

    try:
        return _resolve_identity(store, token, now or utc_now())
    except StorageError as exc:
        logger.exception('Authentication error')
        raise Internal('Internal server error during authentication.') from exc


def _resolve_identity(store: DocumentStore, token: str, now: datetime) -> CurrentIdentity:
    sessions = SessionStore(store)
    session = sessions.get(token)
    if session is None:
        raise Forbidden('Invalid token.')

    if session.data.get('isActive') is False:
        raise Forbidden('Session expired or invalidated.')

    expires_at = session.data.get('expiresAt')
    if isinstance(expires_at, datetime):
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        if now > expires_at:
            try:
                sessions.mark_expired(token)
            except StorageError:
                logger.warning('Could not mark expired session inactive', exc_info=True)
            raise Forbidden('Session expired due to inactivity.')

    user_id = session.data.get('userId')
    user = None
    if isinstance(user_id, str) and user_id:
        user = store.get_document(config.USERS_COLLECTION, user_id)
    if user is None:
        raise NotFound('User not found.')

    return CurrentIdentity(user_id=user.id, user=user.data, token=token)


def get_bearer_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> str | None:
    if credentials is None:
        return None
    return credentials.credentials


def get_current_identity(
    token: str | None = Depends(get_bearer_token),
    store: DocumentStore = Depends(get_store),
) -> CurrentIdentity:
    return authenticate_token(store, token)


def ensure_role(identity: CurrentIdentity, allowed_roles: set[str], detail: str) -> None:
    if identity.role not in allowed_roles:
        raise Forbidden(detail)
