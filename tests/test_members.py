from tests.conftest import ADMIN_EMAIL, MEMBER_PASSWORD, bearer


def test_list_members(client, admin_token, make_member):
    make_member('asha@example.org')

    response = client.get('/api/members', headers=bearer(admin_token))

    emails = [member['email'] for member in response.get_json()]
    assert sorted(emails) == ['admin@example.org', 'asha@example.org']
    assert all('password_hash' not in member for member in response.get_json())


def test_create_member_with_role(client, admin_token, login):
    response = client.post('/api/members', headers=bearer(admin_token), json={
        'name': 'Ravi', 'email': 'ravi@example.org', 'password': MEMBER_PASSWORD, 'role': 'pr'
    })

    assert response.status_code == 201
    assert response.get_json()['member']['role'] == 'pr'
    assert login('ravi@example.org')


def test_create_member_unknown_role(client, admin_token):
    response = client.post('/api/members', headers=bearer(admin_token), json={
        'name': 'Ravi', 'email': 'ravi@example.org', 'password': MEMBER_PASSWORD, 'role': 'owner'
    })
    assert response.status_code == 400


def test_get_member_with_attendance_count(client, managers, admin_token, make_member, make_meeting):
    member = make_member('asha@example.org')
    meeting = make_meeting()
    managers['attendance_manager'].mark_attendance(meeting['scan_code'], member['id'], '10.0.0.1')

    response = client.get(f"/api/members/{member['id']}", headers=bearer(admin_token))

    body = response.get_json()
    assert body['member']['email'] == 'asha@example.org'
    assert body['attendance_count'] == 1


def test_get_unknown_member(client, admin_token):
    response = client.get('/api/members/999', headers=bearer(admin_token))
    assert response.status_code == 404


def test_update_member(client, admin_token, make_member, login):
    member = make_member('asha@example.org')

    response = client.put(f"/api/members/{member['id']}", headers=bearer(admin_token), json={
        'name': 'Asha R', 'role': 'pr', 'password': 'new-password'
    })

    updated = response.get_json()['member']
    assert updated['name'] == 'Asha R'
    assert updated['role'] == 'pr'
    assert login('asha@example.org', password='new-password')


def test_update_to_taken_email(client, admin_token, make_member):
    member = make_member('asha@example.org')

    response = client.put(f"/api/members/{member['id']}", headers=bearer(admin_token),
                          json={'email': ADMIN_EMAIL.upper()})

    assert response.status_code == 400
    assert response.get_json()['error_type'] == 'conflict'


def test_admin_cannot_delete_self(client, managers, admin_token):
    admin = managers['auth_manager'].find_member_by_email(ADMIN_EMAIL)

    response = client.delete(f"/api/members/{admin['id']}", headers=bearer(admin_token))

    assert response.status_code == 400
    assert managers['auth_manager'].find_member_by_id(admin['id']) is not None


def test_delete_member_removes_attendance(client, managers, admin_token, make_member, make_meeting):
    member = make_member('asha@example.org')
    meeting = make_meeting()
    managers['attendance_manager'].mark_attendance(meeting['scan_code'], member['id'], '10.0.0.1')

    response = client.delete(f"/api/members/{member['id']}", headers=bearer(admin_token))

    assert response.status_code == 200
    assert managers['auth_manager'].find_member_by_id(member['id']) is None
    assert managers['attendance_manager'].get_attendance_count(meeting['id']) == 0


def test_member_stats(client, admin_token, make_member):
    make_member('asha@example.org')
    make_member('ravi@example.org')
    make_member('pr@example.org', role='pr')

    response = client.get('/api/members/admin/stats', headers=bearer(admin_token))

    stats = response.get_json()
    assert stats['total_members'] == 4
    assert {row['role']: row['count'] for row in stats['by_role']} == {'admin': 1, 'member': 2, 'pr': 1}
