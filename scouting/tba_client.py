"""
Client for The Blue Alliance read API.

Every call uses a fixed timeout and a bounded body read. Failures are raised
to the caller; there are no retries here.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
import json
import logging
import time

import requests

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10
# About 4x the size of a typical /events/{year} response.
DEFAULT_MAX_RESPONSE_BYTES = 1_200_000

WEBCAST_URLS = {
    'twitch': 'https://www.twitch.tv/{channel}',
    'youtube': 'https://www.youtube.com/watch?v={channel}',
}


class TBAError(Exception):
    pass


@dataclass
class EventData:
    key: str
    name: str
    district: Optional[str]
    week: Optional[int]
    start_date: datetime
    end_date: datetime
    location_name: Optional[str]
    lat: Optional[float]
    lon: Optional[float]
    webcasts: List[dict] = field(default_factory=list)


@dataclass
class MatchData:
    key: str
    event_key: str
    predicted_time: Optional[datetime]
    actual_time: Optional[datetime]
    red_score: Optional[int]
    blue_score: Optional[int]
    red_alliance: List[str] = field(default_factory=list)
    blue_alliance: List[str] = field(default_factory=list)


def webcast_url(webcast_type: str, channel: str) -> Optional[str]:
    template = WEBCAST_URLS.get(webcast_type)
    if template is None:
        return None
    return template.format(channel=channel)


def _local_date(value: str, tz_name: Optional[str]) -> datetime:
    try:
        tz = ZoneInfo(tz_name) if tz_name else timezone.utc
    except ZoneInfoNotFoundError:
        raise TBAError(f"Unknown timezone '{tz_name}'")
    try:
        parsed = datetime.strptime(value, '%Y-%m-%d')
    except (TypeError, ValueError):
        raise TBAError(f"Invalid date '{value}'")
    # Stored as naive UTC
    return parsed.replace(tzinfo=tz).astimezone(timezone.utc).replace(tzinfo=None)


def _timestamp(value) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromtimestamp(value, timezone.utc).replace(tzinfo=None)


def _score(alliance: dict) -> Optional[int]:
    score = alliance.get('score')
    if score is None or score == -1:
        return None
    return score


class TBAClient:
    def __init__(self, base_url: str, api_key: str,
                 timeout: float = DEFAULT_TIMEOUT,
                 max_response_bytes: int = DEFAULT_MAX_RESPONSE_BYTES,
                 session: requests.Session = None):
        self.base_url = base_url.rstrip('/')
        self.api_key = api_key
        self.timeout = timeout
        self.max_response_bytes = max_response_bytes
        self.session = session or requests.Session()
        self.clock = time.monotonic

    @classmethod
    def from_config(cls, config) -> "TBAClient":
        return cls(
            base_url=config['TBA_URL'],
            api_key=config['TBA_API_KEY'],
            timeout=config.get('TBA_TIMEOUT_SECONDS', DEFAULT_TIMEOUT),
            max_response_bytes=config.get('TBA_MAX_RESPONSE_BYTES', DEFAULT_MAX_RESPONSE_BYTES)
        )

    def _get(self, path: str):
        """
        GET and decode one resource. requests applies the timeout per socket
        read, so the whole call is also held to a deadline here.
        """
        url = f"{self.base_url}{path}"
        deadline = self.clock() + self.timeout
        try:
            response = self.session.get(
                url,
                headers={'X-TBA-Auth-Key': self.api_key},
                timeout=self.timeout,
                stream=True
            )
        except requests.exceptions.RequestException as e:
            raise TBAError(f"TBA request to {path} failed: {e}")

        try:
            if response.status_code != 200:
                raise TBAError(f"TBA request to {path} failed with status code: {response.status_code}")

            body = b''
            for chunk in response.iter_content(chunk_size=64 * 1024):
                body += chunk
                if len(body) > self.max_response_bytes:
                    raise TBAError(f"TBA response from {path} exceeded {self.max_response_bytes} bytes")
                if self.clock() > deadline:
                    raise TBAError(f"TBA request to {path} took longer than {self.timeout}s")
        except requests.exceptions.RequestException as e:
            raise TBAError(f"TBA response from {path} was interrupted: {e}")
        finally:
            response.close()

        try:
            return json.loads(body)
        except ValueError as e:
            raise TBAError(f"TBA response from {path} is not valid JSON: {e}")

    def get_events(self, year: int) -> List[EventData]:
        """Retrieve all events from the given year (e.g. 2018)."""
        events = []
        for raw in self._get(f"/events/{year}"):
            district = raw.get('district') or {}
            tz_name = raw.get('timezone')

            webcasts = []
            for webcast in raw.get('webcasts') or []:
                url = webcast_url(webcast.get('type'), webcast.get('channel'))
                if url:
                    webcasts.append({'type': webcast['type'], 'url': url})

            events.append(EventData(
                key=raw['key'],
                name=raw.get('short_name') or raw.get('name') or raw['key'],
                district=district.get('abbreviation'),
                week=raw.get('week'),
                start_date=_local_date(raw.get('start_date'), tz_name),
                end_date=_local_date(raw.get('end_date'), tz_name),
                location_name=raw.get('location_name'),
                lat=raw.get('lat'),
                lon=raw.get('lng'),
                webcasts=webcasts
            ))

        logger.info(f"Fetched {len(events)} events for {year}")
        return events

    def get_matches(self, event_key: str) -> List[MatchData]:
        """Retrieve all matches from a specific event."""
        matches = []
        for raw in self._get(f"/event/{event_key}/matches/simple"):
            alliances = raw.get('alliances') or {}
            red = alliances.get('red') or {}
            blue = alliances.get('blue') or {}

            matches.append(MatchData(
                key=raw['key'],
                event_key=event_key,
                predicted_time=_timestamp(raw.get('predicted_time')),
                actual_time=_timestamp(raw.get('actual_time')),
                red_score=_score(red),
                blue_score=_score(blue),
                red_alliance=list(red.get('team_keys') or []),
                blue_alliance=list(blue.get('team_keys') or [])
            ))

        logger.info(f"Fetched {len(matches)} matches for {event_key}")
        return matches
