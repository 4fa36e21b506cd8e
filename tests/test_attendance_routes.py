import pytest

from tests.conftest import bearer

VENUE = {'latitude': 12.9716, 'longitude': 77.5946}


def scan(client, token, ip='203.0.113.10', **payload):
    return client.post('/api/attendance', headers={**bearer(token), 'X-Forwarded-For': ip}, json=payload)


def test_mark_attendance(client, make_member, login, make_meeting):
    member = make_member('asha@example.org')
    token = login('asha@example.org')
    meeting = make_meeting()

    response = scan(client, token, scan_code=meeting['scan_code'])

    assert response.status_code == 201
    record = response.get_json()['attendance']
    assert record['member_id'] == member['id']
    assert record['meeting_id'] == meeting['id']
    assert record['device_ip'] == '203.0.113.10'
    assert record['location'] == 'Resolved 203.0.113.10'


def test_qr_token_alias(client, make_member, login, make_meeting):
    make_member('asha@example.org')
    token = login('asha@example.org')
    meeting = make_meeting()

    response = scan(client, token, qr_token=meeting['scan_code'])
    assert response.status_code == 201


def test_requires_authentication(client, make_meeting):
    meeting = make_meeting()

    response = client.post('/api/attendance', json={'scan_code': meeting['scan_code']})
    assert response.status_code == 401


def test_unknown_code(client, make_member, login):
    make_member('asha@example.org')
    token = login('asha@example.org')

    response = scan(client, token, scan_code='123456')
    assert response.status_code == 404
    assert response.get_json()['message'] == 'Invalid QR code'


def test_location_required(client, make_member, login, make_meeting):
    make_member('asha@example.org')
    token = login('asha@example.org')
    meeting = make_meeting(**VENUE)

    response = scan(client, token, scan_code=meeting['scan_code'])

    body = response.get_json()
    assert response.status_code == 400
    assert body['code'] == 'LOCATION_REQUIRED'
    assert 'status_code' not in body


def test_out_of_range(client, make_member, login, make_meeting):
    make_member('asha@example.org')
    token = login('asha@example.org')
    meeting = make_meeting(allowed_radius=100, **VENUE)

    response = scan(client, token, scan_code=meeting['scan_code'], latitude=12.9816, longitude=77.5946)

    body = response.get_json()
    assert response.status_code == 403
    assert body['code'] == 'OUT_OF_RANGE'
    assert body['distance'] > 1000
    assert body['allowed_radius'] == 100


def test_inside_geofence(client, make_member, login, make_meeting):
    make_member('asha@example.org')
    token = login('asha@example.org')
    meeting = make_meeting(allowed_radius=100, **VENUE)

    response = scan(client, token, scan_code=meeting['scan_code'], latitude='12.9717', longitude='77.5946')
    assert response.status_code == 201


def test_shared_device(client, make_member, login, make_meeting):
    make_member('asha@example.org')
    make_member('ravi@example.org')
    meeting = make_meeting()

    first = scan(client, login('asha@example.org'), ip='203.0.113.10', scan_code=meeting['scan_code'])
    second = scan(client, login('ravi@example.org'), ip='203.0.113.10', scan_code=meeting['scan_code'])

    assert first.status_code == 201
    assert second.status_code == 400
    assert second.get_json()['error_type'] == 'duplicate_device'


def test_history_count_and_stats(client, admin_token, make_member, login, make_meeting):
    make_member('asha@example.org')
    token = login('asha@example.org')
    meeting = make_meeting(title='Quarterly Review')
    scan(client, token, scan_code=meeting['scan_code'])

    history = client.get('/api/attendance/my', headers=bearer(token)).get_json()
    assert [record['meeting_title'] for record in history] == ['Quarterly Review']

    count = client.get(f"/api/attendance/count/{meeting['id']}", headers=bearer(token)).get_json()
    assert count == {'count': 1}

    stats = client.get('/api/attendance/stats', headers=bearer(admin_token)).get_json()
    assert stats == [{'meeting_id': meeting['id'], 'count': 1}]

    records = client.get(f"/api/attendance/meeting/{meeting['id']}", headers=bearer(admin_token)).get_json()
    assert records[0]['member_email'] == 'asha@example.org'


def test_member_cannot_read_stats(client, make_member, login):
    make_member('asha@example.org')
    token = login('asha@example.org')

    response = client.get('/api/attendance/stats', headers=bearer(token))
    assert response.status_code == 403


def raw_scan(client, token, body):
    return client.post('/api/attendance', data=body, content_type='application/json',
                       headers={**bearer(token), 'X-Forwarded-For': '203.0.113.10'})


@pytest.mark.parametrize('latitude, longitude', [('NaN', 'NaN'), ('Infinity', '0'), ('0', '-Infinity')])
def test_non_finite_coordinates_rejected(client, managers, make_member, login, make_meeting, latitude, longitude):
    make_member('asha@example.org')
    token = login('asha@example.org')
    meeting = make_meeting(allowed_radius=100, **VENUE)

    body = f'{{"scan_code": "{meeting["scan_code"]}", "latitude": {latitude}, "longitude": {longitude}}}'
    response = raw_scan(client, token, body)

    assert response.status_code == 400
    assert response.get_json()['error_type'] == 'validation_error'
    assert managers['attendance_manager'].get_attendance_count(meeting['id']) == 0


@pytest.mark.parametrize('latitude, longitude', [(91, 0), (0, 180.5), (True, True)])
def test_invalid_coordinates_rejected(client, make_member, login, make_meeting, latitude, longitude):
    make_member('asha@example.org')
    token = login('asha@example.org')
    meeting = make_meeting(allowed_radius=100, **VENUE)

    response = scan(client, token, scan_code=meeting['scan_code'], latitude=latitude, longitude=longitude)

    assert response.status_code == 400
    assert response.get_json()['error_type'] == 'validation_error'


@pytest.mark.parametrize('body', ['[1, 2]', '42', '"482913"'])
def test_non_object_body(client, make_member, login, body):
    make_member('asha@example.org')
    token = login('asha@example.org')

    response = raw_scan(client, token, body)

    assert response.status_code == 400
    assert response.get_json()['message'] == 'QR token missing'
