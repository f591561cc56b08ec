import logging
from typing import Any

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from school_backend.auth.dependencies import CurrentIdentity, ensure_role, get_current_identity
from school_backend.core import config
from school_backend.core.errors import BadRequest, Internal
from school_backend.document_store import SERVER_TIMESTAMP, DocumentStore, StorageError, get_store, join_path, serialize_value

router = APIRouter(tags=['timetable'])

logger = logging.getLogger(__name__)

MISSING_SCHOOL_DETAIL = (
    'School ID missing from authenticated user profile. Cannot determine timetable location.'
)


class TimetableRequest(BaseModel):
    class_id: str | None = None
    weekdays: Any = None


def timetable_path(school_id: str, class_id: str) -> str:
    return join_path(
        config.SCHOOLS_COLLECTION,
        school_id,
        'classes',
        class_id,
        'timetable',
        config.TIMETABLE_DOCUMENT_ID,
    )


def is_valid_segment(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip()) and '/' not in value


@router.post('/timetable')
def upsert_timetable(
    data: TimetableRequest,
    identity: CurrentIdentity = Depends(get_current_identity),
    store: DocumentStore = Depends(get_store),
):
    ensure_role(
        identity,
        config.TIMETABLE_WRITER_ROLES,
        'Forbidden: Only administrators and teachers can update the timetable.',
    )

    if not is_valid_segment(data.class_id) or not isinstance(data.weekdays, dict):
        raise BadRequest(
            'Missing or invalid data: class_id and weekdays object are required in the request body.'
        )
    if not is_valid_segment(identity.school_id):
        raise BadRequest(MISSING_SCHOOL_DETAIL)

    path = timetable_path(identity.school_id, data.class_id)

    try:
        store.batch().set(path, {
            'weekdays': data.weekdays,
            'updatedBy': identity.user_id,
            'updatedAt': SERVER_TIMESTAMP,
        }).commit()
    except StorageError as exc:
        logger.exception('Timetable update failed')
        raise Internal('An unexpected server error occurred while processing the timetable request.') from exc

    return {
        'message': (
            f'Timetable successfully updated for class {data.class_id} '
            f'in school {identity.school_id}.'
        ),
        'timetablePath': path,
    }


@router.get('/timetable')
def get_timetable(
    class_id: str | None = Query(default=None),
    identity: CurrentIdentity = Depends(get_current_identity),
    store: DocumentStore = Depends(get_store),
):
    if not is_valid_segment(class_id):
        raise BadRequest('Missing parameter: class_id is required as a query parameter.')
    if not is_valid_segment(identity.school_id):
        raise BadRequest(MISSING_SCHOOL_DETAIL)

    path = timetable_path(identity.school_id, class_id)

    try:
        timetable = store.get(path)
    except StorageError as exc:
        logger.exception('Timetable read failed')
        raise Internal('An unexpected server error occurred while retrieving the timetable.') from exc

    if timetable is None:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={
                'message': f'Timetable not found for class {class_id}.',
                'timetablePath': path,
                'weekdays': {},
            },
        )

    return {
        'message': f'Timetable successfully retrieved for class {class_id}.',
        'timetablePath': path,
        **serialize_value(timetable.data),
    }
