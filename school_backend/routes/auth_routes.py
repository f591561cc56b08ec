import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from school_backend.auth.dependencies import CurrentIdentity, get_bearer_token, get_current_identity
from school_backend.auth.sessions import PASSWORD_FIELD, InvalidCredentialsError, SessionManager
from school_backend.core.errors import BadRequest, Internal, NotFound, Unauthorized
from school_backend.document_store import DocumentNotFoundError, DocumentStore, StorageError, get_store, serialize_value

router = APIRouter(tags=['auth'])

logger = logging.getLogger(__name__)


class LoginRequest(BaseModel):
    email: str | None = None
    password: str | None = None


class ResetPasswordRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    new_password: str | None = Field(default=None, alias='newPassword')


def get_session_manager(store: DocumentStore = Depends(get_store)) -> SessionManager:
    return SessionManager(store)


@router.post('/login')
def login(data: LoginRequest, sessions: SessionManager = Depends(get_session_manager)):
    if not data.email or not data.password:
        raise BadRequest('Email and password are required.')

    try:
        result = sessions.login(data.email, data.password)
    except InvalidCredentialsError as exc:
        raise Unauthorized(str(exc)) from exc
    except StorageError as exc:
        logger.exception('Login error')
        raise Internal('An unexpected server error occurred.') from exc

    return {
        'message': 'Login successful',
        'token': result.token,
        'expiresAt': result.expires_at.isoformat(),
        'user': {
            'id': result.user_id,
            'is_new': result.is_new,
        },
    }


@router.post('/logout')
def logout(
    token: str | None = Depends(get_bearer_token),
    sessions: SessionManager = Depends(get_session_manager),
):
    if sessions.logout(token):
        return {'message': 'Logout successful. Session invalidated.'}
    return {'message': 'Logout process complete.'}


@router.get('/profile')
def profile(identity: CurrentIdentity = Depends(get_current_identity)):
    safe_user = {key: value for key, value in identity.user.items() if key != PASSWORD_FIELD}
    return {
        'message': 'Authenticated profile data',
        'user': serialize_value(safe_user),
        'userId': identity.user_id,
    }


@router.post('/reset-password')
def reset_password(
    data: ResetPasswordRequest,
    identity: CurrentIdentity = Depends(get_current_identity),
    sessions: SessionManager = Depends(get_session_manager),
):
    if not data.new_password:
        raise BadRequest('newPassword is required.')

    try:
        sessions.reset_password(identity.user_id, data.new_password)
    except DocumentNotFoundError as exc:
        raise NotFound('User not found.') from exc
    except StorageError as exc:
        logger.exception('Reset password error')
        raise Internal('An unexpected server error occurred during password reset.') from exc

    return {
        'message': 'Password successfully updated for the authenticated user.',
        'userId': identity.user_id,
    }
