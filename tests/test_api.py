import pytest
from datetime import datetime, timezone

from nlschedule.utils import to_epoch_ms

# Wednesday
NOW_MS = to_epoch_ms(datetime(2024, 6, 12, 12, 0, tzinfo=timezone.utc))


def ms(*args) -> int:
    return to_epoch_ms(datetime(*args, tzinfo=timezone.utc))


@pytest.mark.asyncio
async def test_api_parse(client):
    resp = await client.post('/parse', json={'text': 'Call mom next Friday #family', 'timezone': 'UTC', 'now': NOW_MS})
    assert resp.status_code == 200
    j = resp.json()
    assert j['title'] == 'Call mom next Friday'
    assert j['due'] == ms(2024, 6, 14, 17)
    assert j['isRecurring'] is False
    assert j['hashtags'] == ['#family']


@pytest.mark.asyncio
async def test_api_parse_accepts_iso_now(client):
    resp = await client.post('/parse', json={'text': 'tomorrow', 'timezone': 'UTC', 'now': '2024-06-12T12:00:00Z'})
    assert resp.status_code == 200
    assert resp.json()['due'] == ms(2024, 6, 13, 17)


@pytest.mark.asyncio
async def test_api_parse_default_to_today(client):
    resp = await client.post('/parse', json={'text': 'buy milk', 'timezone': 'UTC', 'now': NOW_MS, 'default_to_today': True})
    assert resp.json()['due'] == ms(2024, 6, 12, 17)


@pytest.mark.asyncio
async def test_api_parse_requires_text(client):
    resp = await client.post('/parse', json={'timezone': 'UTC'})
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_api_parse_text_to_rrule_with_recurrence(client):
    resp = await client.post('/parse_text_to_rrule', json={
        'text': 'every 2 weeks', 'timezone': 'UTC', 'now': ms(2024, 1, 1, 9),
    })
    assert resp.status_code == 200
    j = resp.json()
    assert j['dtstart'] == datetime(2024, 1, 1, 17, tzinfo=timezone.utc).isoformat()
    assert j['rrule'] == 'FREQ=WEEKLY;INTERVAL=2'
    assert j['rule']['kind'] == 'weekly'
    assert j['rule']['interval'] == 2


@pytest.mark.asyncio
async def test_api_parse_text_to_rrule_date_only(client):
    resp = await client.post('/parse_text_to_rrule', json={'text': '2024-08-25', 'timezone': 'UTC', 'now': NOW_MS})
    j = resp.json()
    assert j['dtstart'] == datetime(2024, 8, 25, 17, tzinfo=timezone.utc).isoformat()
    assert j['rrule'] == ''
    assert j['rule'] is None


@pytest.mark.asyncio
async def test_api_parse_text_to_rrule_nothing(client):
    resp = await client.post('/parse_text_to_rrule', json={'text': 'buy milk', 'now': NOW_MS})
    j = resp.json()
    assert j == {'dtstart': None, 'rrule': '', 'rule': None}


@pytest.mark.asyncio
async def test_api_complete(client):
    parsed = (await client.post('/parse', json={'text': 'Gym every monday', 'timezone': 'UTC', 'now': NOW_MS})).json()
    resp = await client.post('/complete', json={
        'schedule': parsed, 'completed_at': ms(2024, 6, 17, 18), 'timezone': 'UTC',
    })
    assert resp.status_code == 200
    j = resp.json()
    assert j['due'] == ms(2024, 6, 24, 17)
    assert j['nextDueDate'] == j['due']


@pytest.mark.asyncio
async def test_api_complete_non_recurring(client):
    resp = await client.post('/complete', json={'schedule': {'title': 'once', 'due': NOW_MS}})
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_api_highlight(client):
    resp = await client.post('/highlight', json={'text': 'Standup every monday 9am'})
    assert resp.status_code == 200
    assert resp.json()['matches'] == [
        {'start': 8, 'length': 12, 'category': 'recurrence', 'text': 'every monday'},
        {'start': 21, 'length': 3, 'category': 'date', 'text': '9am'},
    ]


@pytest.mark.asyncio
async def test_api_timezone_offset(client):
    resp = await client.get('/timezone/offset', params={'timezone': '+05:30'})
    assert resp.json() == {'minutes': 330, 'timezone': '+05:30'}
    resp = await client.get('/timezone/offset', params={'timezone': 'Mars/OlympusMons'})
    assert resp.status_code == 200
    assert resp.json() == {'minutes': 0, 'timezone': 'UTC'}


@pytest.mark.asyncio
async def test_api_today_range(client):
    resp = await client.get('/today_range', params={'timezone': 'UTC', 'now': NOW_MS})
    j = resp.json()
    assert j['start'] == ms(2024, 6, 12)
    assert j['end'] == ms(2024, 6, 13) - 1


@pytest.mark.asyncio
async def test_api_capture_normalize(client):
    resp = await client.post('/capture/normalize', json={
        'tasks': [{'title': 'Send report', 'project_hint': 'Work', 'labels': ['urgent'], 'due': '2024-06-20'}],
        'project_catalog': [{'id': 'p1', 'name': 'work'}],
        'label_catalog': [{'id': 'l1', 'name': 'Urgent'}],
        'timezone': 'UTC',
        'now': NOW_MS,
    })
    assert resp.status_code == 200
    [task] = resp.json()['tasks']
    assert task['project_id'] == 'p1'
    assert task['label_ids'] == ['l1']
    assert task['schedule']['due'] == ms(2024, 6, 20, 17)


@pytest.mark.asyncio
async def test_api_capture_bad_due(client):
    resp = await client.post('/capture/normalize', json={'tasks': [{'title': 'x', 'due': 'not a date'}], 'now': NOW_MS})
    assert resp.status_code == 422
    assert 'Invalid date string' in resp.json()['detail']


@pytest.mark.asyncio
async def test_api_capture_title_too_long(client):
    resp = await client.post('/capture/normalize', json={'tasks': [{'title': 'x' * 301}]})
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_api_complete_invalid_stored_rule(client):
    resp = await client.post('/complete', json={'schedule': {
        'title': 'rent', 'isRecurring': True, 'recurringPattern': 'monthly', 'recurringDayOfMonth': 0, 'due': NOW_MS,
    }})
    assert resp.status_code == 409
