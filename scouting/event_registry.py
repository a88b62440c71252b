from typing import List, Tuple
import logging

from shared.errors import NotFound
from .models import db, Event, Match
from .tba_client import TBAClient, EventData, MatchData
from .upsert import UpsertEngine, UpsertResult, ALLIANCE_KEY

logger = logging.getLogger(__name__)


class EventRegistry:
    """
    Keeps competition events, matches and alliance rosters in sync with TBA.

    Events and matches are public, realm-less data.
    """

    def __init__(self, tba: TBAClient = None, engine: UpsertEngine = None):
        self.tba = tba
        self.engine = engine or UpsertEngine()

    def get_event(self, event_key: str) -> Event:
        event = db.session.get(Event, event_key)
        if event is None:
            raise NotFound(f"Event {event_key} does not exist")
        return event

    def list_events(self) -> List[Event]:
        return Event.query.order_by(Event.start_date, Event.key).all()

    def list_matches(self, event_key: str) -> List[Match]:
        self.get_event(event_key)
        return (Match.query
                .filter_by(event_key=event_key)
                .order_by(Match.predicted_time, Match.key)
                .all())

    def save_event(self, data: EventData) -> Event:
        event = db.session.get(Event, data.key) or Event(key=data.key)
        event.name = data.name
        event.district = data.district
        event.week = data.week
        event.start_date = data.start_date
        event.end_date = data.end_date
        event.location_name = data.location_name
        event.lat = data.lat
        event.lon = data.lon
        event.webcasts = data.webcasts
        db.session.add(event)
        return event

    def save_match(self, data: MatchData) -> Tuple[UpsertResult, UpsertResult]:
        """Save a match and upsert both of its alliance rosters in one transaction."""
        match = db.session.get(Match, data.key) or Match(key=data.key, event_key=data.event_key)
        match.predicted_time = data.predicted_time
        match.actual_time = data.actual_time
        match.red_score = data.red_score
        match.blue_score = data.blue_score
        db.session.add(match)
        db.session.flush()

        blue = self.engine.upsert(ALLIANCE_KEY, {
            'match_key': data.key, 'is_blue': True, 'team_keys': data.blue_alliance
        }, commit=False)
        red = self.engine.upsert(ALLIANCE_KEY, {
            'match_key': data.key, 'is_blue': False, 'team_keys': data.red_alliance
        }, commit=False)
        return blue, red

    def import_year(self, year: int) -> Tuple[int, int]:
        """Pull every event of a year and its matches. Returns (events, matches)."""
        if self.tba is None:
            raise RuntimeError("No TBA client configured")

        events = self.tba.get_events(year)
        match_count = 0
        for event_data in events:
            self.save_event(event_data)
            db.session.commit()
            match_count += self.import_matches(event_data.key)

        logger.info(f"Imported {len(events)} events and {match_count} matches for {year}")
        return len(events), match_count

    def import_matches(self, event_key: str) -> int:
        matches = self.tba.get_matches(event_key)
        try:
            for match_data in matches:
                self.save_match(match_data)
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
        return len(matches)
