import base64
import re

import pytest

from meeting_attendance.modules.qr_generator import QRGenerator, ScanCodeExhausted

PNG_SIGNATURE = b'\x89PNG'


@pytest.fixture
def generator():
    return QRGenerator()


def test_scan_code_shape(generator):
    for _ in range(200):
        assert re.fullmatch(r'[1-9]\d{5}', generator.generate_scan_code())


def test_unique_code_skips_taken_codes(monkeypatch, generator):
    codes = iter(['111111', '222222', '333333'])
    monkeypatch.setattr(generator, 'generate_scan_code', lambda: next(codes))
    taken = {'111111', '222222'}

    assert generator.generate_unique_scan_code(lambda code: code in taken) == '333333'


def test_unique_code_gives_up(monkeypatch):
    generator = QRGenerator(max_attempts=5)
    calls = []

    def always_taken(code):
        calls.append(code)
        return True

    with pytest.raises(ScanCodeExhausted):
        generator.generate_unique_scan_code(always_taken)
    assert len(calls) == 5


def test_meeting_creation_regenerates_on_collision(monkeypatch, managers, make_meeting):
    existing = make_meeting()
    codes = iter([existing['scan_code'], '654321'])
    monkeypatch.setattr(managers['qr_generator'], 'generate_scan_code', lambda: next(codes))

    meeting = make_meeting(title='Second')

    assert meeting['scan_code'] == '654321'


def test_meeting_creation_when_codes_exhausted(monkeypatch, managers, make_meeting):
    existing = make_meeting()
    monkeypatch.setattr(managers['qr_generator'], 'generate_scan_code', lambda: existing['scan_code'])

    result = managers['meeting_manager'].create_meeting({
        'title': 'Second', 'type': 'online',
        'start_time': existing['start_time'], 'end_time': existing['end_time']
    })

    assert result['error_type'] == 'system_error'
    assert len(managers['meeting_manager'].get_all_meetings()) == 1


def test_png(generator):
    assert generator.generate_qr_png('482913').startswith(PNG_SIGNATURE)


def test_png_without_caption(generator):
    assert generator.generate_qr_png('482913', with_caption=False).startswith(PNG_SIGNATURE)


def test_data_url(generator):
    data_url = generator.generate_qr_data_url('482913')

    prefix = 'data:image/png;base64,'
    assert data_url.startswith(prefix)
    assert base64.b64decode(data_url[len(prefix):]).startswith(PNG_SIGNATURE)


def test_qr_endpoint(client):
    response = client.get('/api/qr/482913')

    assert response.status_code == 200
    assert response.mimetype == 'image/png'
    assert response.data.startswith(PNG_SIGNATURE)
