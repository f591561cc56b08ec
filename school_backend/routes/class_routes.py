import logging

from fastapi import APIRouter, Depends

from school_backend.auth.dependencies import CurrentIdentity, get_current_identity
from school_backend.core import config
from school_backend.core.errors import Internal, NotFound
from school_backend.document_store import DocumentStore, StorageError, get_store, serialize_value
from school_backend.services.enrollment import UserNotFoundError, fetch_enrolled_subjects_with_parents

router = APIRouter(tags=['classes'])

logger = logging.getLogger(__name__)


@router.get('/classes')
def list_enrolled_classes(
    identity: CurrentIdentity = Depends(get_current_identity),
    store: DocumentStore = Depends(get_store),
):
    try:
        result = fetch_enrolled_subjects_with_parents(store, identity.user_id)
    except UserNotFoundError as exc:
        raise NotFound(str(exc)) from exc
    except StorageError as exc:
        logger.exception('Fetching enrolled classes failed')
        raise Internal('An unexpected server error occurred while fetching class data.') from exc

    if not result.subjects:
        if result.reference_count == 0:
            message = 'User is not currently enrolled in any subjects.'
        else:
            message = 'User is enrolled, but no valid subject data was retrieved.'
        return {'message': message, 'subjects': []}

    return {
        'message': (
            f'Successfully retrieved {len(result.subjects)} enrolled subject(s) '
            'with parent class data.'
        ),
        'subjects': serialize_value(result.subjects),
    }


@router.get('/user-role-config')
def get_user_role_config(
    identity: CurrentIdentity = Depends(get_current_identity),
    store: DocumentStore = Depends(get_store),
):
    user_role = identity.role
    if not isinstance(user_role, str) or not user_role:
        raise NotFound('User role (user_role) is missing in the user profile.')

    try:
        role_doc = store.get_document(config.ROLES_COLLECTION, user_role)
    except StorageError as exc:
        logger.exception('Fetching role configuration failed')
        raise Internal('An unexpected server error occurred while fetching role configuration.') from exc

    if role_doc is None:
        logger.warning('Role configuration not found for role: %s', user_role)
        raise NotFound(f'Configuration not found for user role: {user_role}.')

    return {
        'message': f'Configuration retrieved for role: {user_role}',
        'role_config': serialize_value(role_doc.data),
    }
