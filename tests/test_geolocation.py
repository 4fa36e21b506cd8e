import pytest
import requests
from flask import request

from meeting_attendance.modules import geolocation
from meeting_attendance.modules.geolocation import (
    LocationResolver, distance_meters, get_client_ip, is_local_address
)


class FakeResponse:
    def __init__(self, payload, status_error=None):
        self.payload = payload
        self.status_error = status_error

    def raise_for_status(self):
        if self.status_error:
            raise self.status_error

    def json(self):
        return self.payload


class TestDistance:

    def test_same_point_is_zero(self):
        assert distance_meters(12.9716, 77.5946, 12.9716, 77.5946) == 0

    def test_symmetric(self):
        a = (28.6139, 77.2090)
        b = (19.0760, 72.8777)
        assert distance_meters(*a, *b) == pytest.approx(distance_meters(*b, *a))

    def test_one_degree_of_longitude_at_equator(self):
        assert distance_meters(0, 0, 0, 1) == pytest.approx(111195, rel=0.01)

    def test_accepts_numeric_strings(self):
        assert distance_meters('0', '0', '1', '0') == pytest.approx(111195, rel=0.01)


class TestClientAddress:

    def test_forwarded_for_first_hop_wins(self, app):
        with app.test_request_context(headers={'X-Forwarded-For': '203.0.113.9, 10.0.0.1'}):
            assert get_client_ip(request) == '203.0.113.9'

    def test_falls_back_to_remote_address(self, app):
        with app.test_request_context(environ_base={'REMOTE_ADDR': '198.51.100.7'}):
            assert get_client_ip(request) == '198.51.100.7'

    @pytest.mark.parametrize('ip', ['127.0.0.1', '::1', '::ffff:127.0.0.1', '192.168.1.4',
                                    '10.2.3.4', 'unknown', 'not-an-ip'])
    def test_local_addresses(self, ip):
        assert is_local_address(ip)

    def test_public_address(self):
        assert not is_local_address('8.8.8.8')


class TestLocationResolver:

    def test_local_address_does_not_hit_network(self, monkeypatch):
        def fail(*args, **kwargs):
            raise AssertionError('network lookup attempted')
        monkeypatch.setattr(geolocation.requests, 'get', fail)

        assert LocationResolver().resolve('192.168.0.10') == 'Local Network'

    def test_formats_city_region_country(self, monkeypatch):
        calls = []

        def fake_get(url, timeout):
            calls.append((url, timeout))
            return FakeResponse({'city': 'Pune', 'regionName': 'Maharashtra', 'country': 'India'})
        monkeypatch.setattr(geolocation.requests, 'get', fake_get)

        resolver = LocationResolver(timeout=2)
        assert resolver('8.8.8.8') == 'Pune, Maharashtra, India'
        assert calls == [('http://ip-api.com/json/8.8.8.8?fields=city,regionName,country', 2)]

    def test_timeout_yields_no_location(self, monkeypatch):
        def fake_get(url, timeout):
            raise requests.exceptions.Timeout('slow')
        monkeypatch.setattr(geolocation.requests, 'get', fake_get)

        assert LocationResolver().resolve('8.8.8.8') is None

    def test_incomplete_payload_yields_no_location(self, monkeypatch):
        monkeypatch.setattr(geolocation.requests, 'get',
                            lambda url, timeout: FakeResponse({'status': 'fail'}))

        assert LocationResolver().resolve('8.8.8.8') is None

    def test_disabled_lookup(self):
        assert LocationResolver(enabled=False).resolve('8.8.8.8') is None
