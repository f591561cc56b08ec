import json

import pytest
from fastapi import HTTPException

from school_backend.auth.dependencies import CurrentIdentity
from school_backend.routes.timetable_routes import TimetableRequest, get_timetable, upsert_timetable

WEEKDAYS = {'monday': ['maths', 'art'], 'tuesday': ['science']}


def _identity(role: str | None = 'teacher', school_id: str | None = 'school1') -> CurrentIdentity:
    return CurrentIdentity(
        user_id='t1',
        user={'user_role': role, 'school_id': school_id},
        token='token',
    )


@pytest.mark.parametrize('role', ['student', 'parent', None])
def test_timetable_write_by_other_roles_is_forbidden(store, role) -> None:
    with pytest.raises(HTTPException) as exception_info:
        upsert_timetable(TimetableRequest(class_id='FirstA', weekdays=WEEKDAYS), identity=_identity(role), store=store)

    assert exception_info.value.status_code == 403
    assert store.get('school/school1/classes/FirstA/timetable/current_schedule') is None


@pytest.mark.parametrize('role', ['admin', 'teacher'])
def test_timetable_write_by_admin_or_teacher(store, role) -> None:
    response = upsert_timetable(
        TimetableRequest(class_id='FirstA', weekdays=WEEKDAYS),
        identity=_identity(role),
        store=store,
    )

    assert response == {
        'message': 'Timetable successfully updated for class FirstA in school school1.',
        'timetablePath': 'school/school1/classes/FirstA/timetable/current_schedule',
    }
    saved = store.get('school/school1/classes/FirstA/timetable/current_schedule').data
    assert saved['weekdays'] == WEEKDAYS
    assert saved['updatedBy'] == 't1'
    assert 'updatedAt' in saved


def test_timetable_write_overwrites_previous_document(store, seed) -> None:
    seed('school/school1/classes/FirstA/timetable/current_schedule', {'weekdays': {}, 'legacy': True})

    upsert_timetable(TimetableRequest(class_id='FirstA', weekdays=WEEKDAYS), identity=_identity(), store=store)

    saved = store.get('school/school1/classes/FirstA/timetable/current_schedule').data
    assert 'legacy' not in saved


@pytest.mark.parametrize(
    'payload',
    [
        {'weekdays': WEEKDAYS},
        {'class_id': 'FirstA'},
        {'class_id': 'FirstA', 'weekdays': ['monday']},
        {'class_id': 'First/A', 'weekdays': WEEKDAYS},
    ],
)
def test_timetable_write_rejects_invalid_body(store, payload) -> None:
    with pytest.raises(HTTPException) as exception_info:
        upsert_timetable(TimetableRequest(**payload), identity=_identity(), store=store)

    assert exception_info.value.status_code == 400


def test_timetable_write_requires_school_id(store) -> None:
    with pytest.raises(HTTPException) as exception_info:
        upsert_timetable(
            TimetableRequest(class_id='FirstA', weekdays=WEEKDAYS),
            identity=_identity(school_id=None),
            store=store,
        )

    assert exception_info.value.status_code == 400
    assert 'School ID missing' in exception_info.value.detail


def test_get_timetable_returns_document(store) -> None:
    upsert_timetable(TimetableRequest(class_id='FirstA', weekdays=WEEKDAYS), identity=_identity(), store=store)

    response = get_timetable(class_id='FirstA', identity=_identity('student'), store=store)

    assert response['message'] == 'Timetable successfully retrieved for class FirstA.'
    assert response['timetablePath'] == 'school/school1/classes/FirstA/timetable/current_schedule'
    assert response['weekdays'] == WEEKDAYS
    assert isinstance(response['updatedAt'], str)


def test_get_timetable_missing_returns_404_with_empty_weekdays(store) -> None:
    response = get_timetable(class_id='SecondB', identity=_identity('student'), store=store)

    assert response.status_code == 404
    assert json.loads(response.body) == {
        'message': 'Timetable not found for class SecondB.',
        'timetablePath': 'school/school1/classes/SecondB/timetable/current_schedule',
        'weekdays': {},
    }


@pytest.mark.parametrize('class_id', [None, ''])
def test_get_timetable_requires_class_id(store, class_id) -> None:
    with pytest.raises(HTTPException) as exception_info:
        get_timetable(class_id=class_id, identity=_identity(), store=store)

    assert exception_info.value.status_code == 400


@pytest.mark.parametrize(
    'weekdays',
    [
        {'monday': {'$ref': 'room/12'}},
        {'monday': {'$timestamp': 'period 1'}},
        {'monday': {'$literal': {'$ref': 'room/12'}}},
    ],
)
def test_timetable_keeps_tag_shaped_weekdays_as_plain_data(store, weekdays) -> None:
    upsert_timetable(TimetableRequest(class_id='FirstA', weekdays=weekdays), identity=_identity(), store=store)

    response = get_timetable(class_id='FirstA', identity=_identity('student'), store=store)

    assert response['weekdays'] == weekdays
