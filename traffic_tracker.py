import logging
from dataclasses import dataclass, asdict
from typing import Optional

from models import Visitor

logger = logging.getLogger(__name__)


@dataclass
class VisitObservation:
    """A single raw visit, before it is merged into a Visitor row."""

    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    referrer: Optional[str] = None
    language: Optional[str] = None
    country: Optional[str] = None
    city: Optional[str] = None
    device: Optional[str] = None
    browser: Optional[str] = None
    os: Optional[str] = None

    def to_dict(self):
        return asdict(self)


def clean_value(value, max_length=None):
    """Strip a text value, turning blanks into None and clipping to max_length"""
    if value is None:
        return None
    value = str(value).strip()
    if not value:
        return None
    if max_length:
        value = value[:max_length]
    return value


def parse_user_agent(user_agent):
    """Coarse device, browser and OS classification of a User-Agent string.

    Anything not recognised comes back as None.
    """
    if not user_agent:
        return {'device': None, 'browser': None, 'os': None}

    ua = user_agent.lower()

    if 'edg' in ua:
        browser = 'Edge'
    elif 'opr/' in ua or 'opera' in ua:
        browser = 'Opera'
    elif 'firefox' in ua:
        browser = 'Firefox'
    elif 'chrome' in ua or 'crios' in ua:
        browser = 'Chrome'
    elif 'safari' in ua:
        browser = 'Safari'
    else:
        browser = None

    if 'windows' in ua:
        os_name = 'Windows'
    elif 'iphone' in ua or 'ipad' in ua:
        os_name = 'iOS'
    elif 'android' in ua:
        os_name = 'Android'
    elif 'mac os x' in ua or 'macintosh' in ua:
        os_name = 'macOS'
    elif 'linux' in ua:
        os_name = 'Linux'
    else:
        os_name = None

    if 'ipad' in ua or 'tablet' in ua:
        device = 'Tablet'
    elif 'mobile' in ua or 'iphone' in ua or 'android' in ua:
        device = 'Mobile'
    elif os_name in ('Windows', 'macOS', 'Linux'):
        device = 'Desktop'
    else:
        device = None

    return {'device': device, 'browser': browser, 'os': os_name}


class TrafficTracker:
    def __init__(self, storage):
        self.storage = storage

    def record_visit(self, observation):
        """Merge an observation into the visitor table and return the row"""
        visitor = self.storage.record_visit(**observation.to_dict())
        logger.debug("Recorded visit from %s (count=%s)",
                     visitor.ip_address, visitor.visit_count)
        return visitor

    def observation_from_request(self, request, payload=None):
        payload = payload or {}
        user_agent = payload.get('userAgent') or request.headers.get('User-Agent')
        parsed = parse_user_agent(user_agent)

        values = {
            'ip_address': self.get_real_ip(request),
            'user_agent': user_agent,
            'referrer': payload.get('referrer') or request.headers.get('Referer'),
            'language': payload.get('language') or self.get_language(request),
            'country': payload.get('country'),
            'city': payload.get('city'),
            'device': payload.get('device') or parsed['device'],
            'browser': payload.get('browser') or parsed['browser'],
            'os': payload.get('os') or parsed['os'],
        }
        return VisitObservation(**{
            key: clean_value(value, Visitor.DESCRIPTIVE_FIELDS[key])
            for key, value in values.items()
        })

    def get_real_ip(self, request):
        if request.headers.get('X-Forwarded-For'):
            return request.headers.get('X-Forwarded-For').split(',')[0].strip()
        elif request.headers.get('X-Real-IP'):
            return request.headers.get('X-Real-IP')
        return request.remote_addr

    def get_language(self, request):
        header = request.headers.get('Accept-Language')
        if not header:
            return None
        return header.split(',')[0].split(';')[0].strip() or None
