import io

import pytest
from openpyxl import load_workbook

from tests.conftest import bearer


@pytest.fixture
def attended_meeting(managers, make_member, make_meeting):
    meeting = make_meeting(title='Quarterly Review')
    for index, email in enumerate(['asha@example.org', 'ravi@example.org'], start=1):
        member = make_member(email)
        result = managers['attendance_manager'].mark_attendance(
            meeting['scan_code'], member['id'], f'203.0.113.{index}'
        )
        assert result['success']
    return meeting


def test_csv_export(client, admin_token, attended_meeting):
    response = client.get(f"/api/attendance/export/{attended_meeting['id']}", headers=bearer(admin_token))

    assert response.status_code == 200
    assert response.mimetype == 'text/csv'
    assert f"attendance-{attended_meeting['id']}.csv" in response.headers['Content-Disposition']

    lines = response.data.decode('utf-8').splitlines()
    assert lines[0] == 'S.No,Name,Email,Meeting,Location,Time'
    assert len(lines) == 3
    assert 'Quarterly Review' in lines[1]
    assert 'Resolved 203.0.113.' in lines[1]


def test_excel_export(client, admin_token, attended_meeting):
    response = client.get(f"/api/attendance/export-excel/{attended_meeting['id']}", headers=bearer(admin_token))

    assert response.status_code == 200
    assert 'Quarterly Review-attendance.xlsx' in response.headers['Content-Disposition']

    workbook = load_workbook(io.BytesIO(response.data))
    sheet = workbook['Attendance']
    header = [cell.value for cell in sheet[1]]
    assert header == ['S.No', 'Name', 'Email', 'Location', 'Time']
    assert sheet['A1'].font.bold
    assert sheet.max_row == 3


def test_unresolved_location_shows_placeholder(managers, make_member, make_meeting):
    meeting = make_meeting()
    member = make_member('asha@example.org')
    managers['attendance_manager'].location_resolver = lambda ip: None
    managers['attendance_manager'].mark_attendance(meeting['scan_code'], member['id'], '10.0.0.1')

    result = managers['report_generator'].export_csv(meeting['id'])

    assert result['success']
    assert ',N/A,' in result['content'].decode('utf-8').splitlines()[1]


@pytest.mark.parametrize('path', ['export', 'export-excel'])
def test_export_without_attendance(client, admin_token, make_meeting, path):
    meeting = make_meeting()

    response = client.get(f"/api/attendance/{path}/{meeting['id']}", headers=bearer(admin_token))

    assert response.status_code == 404
    assert response.get_json()['message'] == 'No attendance data'


def test_export_requires_admin(client, make_member, login, attended_meeting):
    make_member('pr@example.org', role='pr')
    token = login('pr@example.org')

    response = client.get(f"/api/attendance/export/{attended_meeting['id']}", headers=bearer(token))
    assert response.status_code == 403
