"""Session storage and the login/logout/password-reset lifecycle."""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable

from school_backend.auth.credentials import CredentialVerifier, get_credential_verifier
from school_backend.core import config
from school_backend.document_store import (
    SERVER_TIMESTAMP,
    DocumentSnapshot,
    DocumentStore,
    StorageError,
    WriteBatch,
    join_path,
)

logger = logging.getLogger(__name__)

PASSWORD_FIELD = 'password_hash'


class InvalidCredentialsError(Exception):
    """Raised when the email is unknown or the password does not match."""


@dataclass(frozen=True)
class LoginResult:
    token: str
    expires_at: datetime
    user_id: str
    is_new: bool | None


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SessionStore:
    def __init__(self, store: DocumentStore, collection: str = config.SESSIONS_COLLECTION) -> None:
        self.store = store
        self.collection = collection

    def path_for(self, token: str) -> str:
        return join_path(self.collection, token)

    def get(self, token: str) -> DocumentSnapshot | None:
        return self.store.get_document(self.collection, token)

    def active_sessions_for(self, user_id: str) -> list[DocumentSnapshot]:
        return self.store.query(self.collection, {'userId': user_id, 'isActive': True})

    def deactivate(self, token: str) -> None:
        self.store.update_fields(self.collection, token, {
            'isActive': False,
            'logoutTime': SERVER_TIMESTAMP,
        })

    def mark_expired(self, token: str) -> None:
        self.store.update_fields(self.collection, token, {'isActive': False})

    def add_deactivations(self, batch: WriteBatch, sessions: list[DocumentSnapshot]) -> None:
        for session in sessions:
            batch.update(session.reference, {
                'isActive': False,
                'logoutTime': SERVER_TIMESTAMP,
            })

    def add_new_session(self, batch: WriteBatch, token: str, user_id: str, expires_at: datetime) -> None:
        batch.set(self.path_for(token), {
            'userId': user_id,
            'loginTime': SERVER_TIMESTAMP,
            'expiresAt': expires_at,
            'isActive': True,
        })


class SessionManager:
    def __init__(
        self,
        store: DocumentStore,
        verifier: CredentialVerifier | None = None,
        session_duration: timedelta | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.sessions = SessionStore(store)
        self.verifier = verifier or get_credential_verifier()
        self.session_duration = session_duration or timedelta(hours=config.SESSION_DURATION_HOURS)
        self.clock = clock

    def login(self, email: str, password: str) -> LoginResult:
        matches = self.store.query_equals(config.USERS_COLLECTION, 'email', email, limit=1)
        if not matches:
            raise InvalidCredentialsError('Invalid email or password.')

        user = matches[0]
        if not self.verifier.verify(user.data.get(PASSWORD_FIELD), password):
            raise InvalidCredentialsError('Invalid email or password.')

        token = str(uuid.uuid4())
        expires_at = self.clock() + self.session_duration

        def replace_sessions(batch: WriteBatch) -> list[DocumentSnapshot]:
            previous = self.sessions.active_sessions_for(user.id)
            self.sessions.add_deactivations(batch, previous)
            self.sessions.add_new_session(batch, token, user.id, expires_at)
            return previous

        # Locking the user row serializes concurrent logins for the same user.
        previous_sessions = self.store.run_transaction(
            replace_sessions,
            lock_target=user.reference,
        )

        if previous_sessions:
            logger.info(
                'Cleaned up %d previous active sessions for user %s.',
                len(previous_sessions),
                user.id,
            )

        return LoginResult(
            token=token,
            expires_at=expires_at,
            user_id=user.id,
            is_new=user.data.get('is_new'),
        )

    def logout(self, token: str | None) -> bool:
        """Deactivate a session. Never raises; returns whether a session was updated."""
        if not token:
            return False
        try:
            self.sessions.deactivate(token)
        except StorageError as exc:
            logger.warning('Logout for token ending %s failed: %s', token[-4:], exc)
            return False
        return True

    def reset_password(self, user_id: str, new_password: str) -> None:
        # Existing sessions stay active after a password change.
        self.store.update_fields(config.USERS_COLLECTION, user_id, {
            PASSWORD_FIELD: self.verifier.hash(new_password),
            'updatedAt': SERVER_TIMESTAMP,
            'is_new': False,
        })
