import pytest
from fastapi import HTTPException
from sqlalchemy.exc import OperationalError

from tutorhub.routes import availability_routes
from tutorhub.routes.availability_routes import CreateAvailabilityWindowRequest, ensure_database_ready

MONDAY = '2030-01-07'


def add_window(client, headers, day='monday', start='09:00', end='12:00'):
    return client.post(
        '/availability/windows',
        json={'day_of_week': day, 'start_time': start, 'end_time': end},
        headers=headers,
    )


def test_create_window_request_rejects_inverted_range() -> None:
    with pytest.raises(ValueError):
        CreateAvailabilityWindowRequest(day_of_week='monday', start_time='12:00', end_time='09:00')


def test_teacher_adds_window(client, as_teacher, market) -> None:
    response = add_window(client, as_teacher)

    assert response.status_code == 201
    body = response.json()
    assert body['teacher_id'] == market.teacher_id
    assert body['day_of_week'] == 'monday'
    assert body['day_name'] == 'Monday'
    assert body['formatted_time_range'] == '09:00-12:00'
    assert body['is_available'] is True


def test_overlapping_window_returns_conflict(client, as_teacher) -> None:
    add_window(client, as_teacher)

    response = add_window(client, as_teacher, start='11:30', end='12:30')

    assert response.status_code == 409
    assert response.json()['detail']['code'] == 'AVAILABILITY_OVERLAP'


def test_student_cannot_add_window(client, as_student) -> None:
    response = add_window(client, as_student)

    assert response.status_code == 403


def test_missing_token_is_rejected(client) -> None:
    response = add_window(client, {})

    assert response.status_code in (401, 403)


def test_unknown_day_is_rejected(client, as_teacher) -> None:
    response = add_window(client, as_teacher, day='funday')

    assert response.status_code == 422


def test_list_teacher_availability(client, as_teacher, market) -> None:
    add_window(client, as_teacher, day='wednesday', start='14:00', end='16:00')
    add_window(client, as_teacher)

    response = client.get(f'/availability/teachers/{market.teacher_id}')

    assert response.status_code == 200
    assert [(item['day_of_week'], item['start_time']) for item in response.json()] == [
        ('monday', '09:00:00'),
        ('wednesday', '14:00:00'),
    ]


def test_list_slots_for_date(client, as_teacher, market) -> None:
    add_window(client, as_teacher)

    response = client.get(f'/availability/teachers/{market.teacher_id}/slots', params={'date': MONDAY})

    assert response.status_code == 200
    assert [slot['formatted_time'] for slot in response.json()] == [
        '09:00 - 10:00',
        '10:00 - 11:00',
        '11:00 - 12:00',
    ]


def test_list_slots_with_custom_duration(client, as_teacher, market) -> None:
    add_window(client, as_teacher)

    response = client.get(
        f'/availability/teachers/{market.teacher_id}/slots',
        params={'date': MONDAY, 'duration': 90},
    )

    assert [slot['duration_minutes'] for slot in response.json()] == [90, 90]


def test_list_slots_for_unknown_teacher(client) -> None:
    response = client.get('/availability/teachers/9999/slots', params={'date': MONDAY})

    assert response.status_code == 404
    assert response.json()['detail']['code'] == 'TEACHER_NOT_FOUND'


def test_update_window(client, as_teacher) -> None:
    window_id = add_window(client, as_teacher).json()['id']

    response = client.put(f'/availability/windows/{window_id}', json={'end_time': '13:00'}, headers=as_teacher)

    assert response.status_code == 200
    assert response.json()['formatted_time_range'] == '09:00-13:00'


def test_update_window_of_other_teacher_is_forbidden(client, as_teacher, as_other_teacher) -> None:
    window_id = add_window(client, as_teacher).json()['id']

    response = client.put(f'/availability/windows/{window_id}', json={'end_time': '13:00'}, headers=as_other_teacher)

    assert response.status_code == 403
    assert response.json()['detail']['code'] == 'FORBIDDEN'


def test_update_window_with_inverted_range_is_rejected(client, as_teacher) -> None:
    window_id = add_window(client, as_teacher).json()['id']

    response = client.put(f'/availability/windows/{window_id}', json={'end_time': '08:00'}, headers=as_teacher)

    assert response.status_code == 400
    assert response.json()['detail']['code'] == 'INVALID_RANGE'


def test_remove_window(client, as_teacher, market) -> None:
    window_id = add_window(client, as_teacher).json()['id']

    response = client.delete(f'/availability/windows/{window_id}', headers=as_teacher)

    assert response.status_code == 204
    assert client.get(f'/availability/teachers/{market.teacher_id}').json() == []


def test_remove_unknown_window(client, as_teacher) -> None:
    response = client.delete('/availability/windows/4242', headers=as_teacher)

    assert response.status_code == 404
    assert response.json()['detail']['code'] == 'AVAILABILITY_WINDOW_NOT_FOUND'


def test_ensure_database_ready_maps_schema_errors_to_503(monkeypatch) -> None:
    def broken_schema() -> None:
        raise OperationalError('SELECT 1', {}, Exception('connection refused'))

    monkeypatch.setattr(availability_routes, 'ensure_availability_schema', broken_schema)

    with pytest.raises(HTTPException) as exception_info:
        ensure_database_ready()

    assert exception_info.value.status_code == 503
