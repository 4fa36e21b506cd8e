"""
Geolocation Module - QR Meeting Attendance

Distance and network-origin helpers used by the attendance evaluator and the
authentication flow:

- great-circle distance between two GPS points (haversine, spherical Earth)
- client address extraction from a request
- best-effort resolution of a client address to a human-readable place
"""

import ipaddress
import logging
from math import radians, sin, cos, sqrt, atan2
from typing import Optional

import requests

logger = logging.getLogger(__name__)

EARTH_RADIUS_METERS = 6371000.0
UNKNOWN_ADDRESS = 'unknown'
LOCAL_NETWORK = 'Local Network'
DEFAULT_LOOKUP_URL = 'http://ip-api.com/json/{ip}?fields=city,regionName,country'


def distance_meters(lat1, lon1, lat2, lon2) -> float:
    """
    Great-circle distance between two points given in degrees.

    Args:
        lat1, lon1: First point
        lat2, lon2: Second point

    Returns:
        float: Distance in meters
    """
    lat1, lon1, lat2, lon2 = map(radians, [float(lat1), float(lon1), float(lat2), float(lon2)])
    dlat = lat2 - lat1
    dlon = lon2 - lon1
    a = sin(dlat / 2) ** 2 + cos(lat1) * cos(lat2) * sin(dlon / 2) ** 2
    c = 2 * atan2(sqrt(a), sqrt(1 - a))
    return EARTH_RADIUS_METERS * c


def get_client_ip(request) -> str:
    """Return the originating address of a Flask request."""
    forwarded = request.headers.get('X-Forwarded-For')
    if forwarded:
        first_hop = forwarded.split(',')[0].strip()
        if first_hop:
            return first_hop
    return request.remote_addr or UNKNOWN_ADDRESS


def is_local_address(ip: str) -> bool:
    """True for loopback, private, link-local and unparseable addresses."""
    if not ip or ip == UNKNOWN_ADDRESS:
        return True
    try:
        address = ipaddress.ip_address(ip)
    except ValueError:
        return True
    if getattr(address, 'ipv4_mapped', None):
        address = address.ipv4_mapped
    return address.is_loopback or address.is_private or address.is_link_local


class LocationResolver:
    """
    Resolves a client address to ``"city, region, country"``.

    Lookups are time-bounded and never raise: any failure yields ``None`` so that
    attendance marking is not held up by the lookup service.
    """

    def __init__(self, lookup_url: str = DEFAULT_LOOKUP_URL, timeout: float = 3,
                 enabled: bool = True, local_label: str = LOCAL_NETWORK):
        self.lookup_url = lookup_url
        self.timeout = timeout
        self.enabled = enabled
        self.local_label = local_label

    def __call__(self, ip: str) -> Optional[str]:
        return self.resolve(ip)

    def resolve(self, ip: str) -> Optional[str]:
        if is_local_address(ip):
            return self.local_label

        if not self.enabled:
            return None

        try:
            response = requests.get(self.lookup_url.format(ip=ip), timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except (requests.exceptions.RequestException, ValueError) as e:
            logger.warning(f"Location lookup failed for {ip}: {str(e)}")
            return None

        if not isinstance(data, dict) or not data.get('city') or not data.get('country'):
            return None

        parts = [data['city'], data.get('regionName'), data['country']]
        return ', '.join(part for part in parts if part)
