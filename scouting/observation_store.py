from typing import Any, List, Mapping

from sqlalchemy.exc import IntegrityError

from shared.errors import Unauthenticated
from shared.visibility import RealmFilter
from .models import db, is_foreign_key_violation, Match, Report, Comment
from .scoping import realm_clause
from .upsert import NaturalKey, UpsertEngine, UpsertResult, REPORT_KEY, COMMENT_KEY


def full_match_key(event_key: str, match_key: str) -> str:
    """Prefix with the event key so match keys are globally unique, as TBA's are."""
    return f"{event_key}_{match_key}"


class ObservationStore:
    """Storage collaborator for reports and comments."""

    def __init__(self, engine: UpsertEngine = None):
        self.engine = engine or UpsertEngine()

    def match_exists(self, match_key: str) -> bool:
        return db.session.query(Match.key).filter_by(key=match_key).first() is not None

    # ==================== Writes ====================

    def upsert_report(self, values: Mapping[str, Any]) -> UpsertResult:
        return self._upsert(REPORT_KEY, values)

    def upsert_comment(self, values: Mapping[str, Any]) -> UpsertResult:
        return self._upsert(COMMENT_KEY, values)

    def _upsert(self, natural_key: NaturalKey, values: Mapping[str, Any]) -> UpsertResult:
        # The match is checked before the write, so a dangling reference here
        # is the writer's own identity or realm.
        try:
            return self.engine.upsert(natural_key, values)
        except IntegrityError as e:
            db.session.rollback()
            if is_foreign_key_violation(e):
                raise Unauthenticated("Token identity no longer exists", reason="unknown_subject")
            raise

    # ==================== Reads ====================

    def match_team_reports(self, match_key: str, team_key: str, realm_filter: RealmFilter) -> List[Report]:
        return (Report.query
                .filter(Report.match_key == match_key,
                        Report.team_key == team_key,
                        realm_clause(Report.realm_id, realm_filter))
                .order_by(Report.id)
                .all())

    def event_team_reports(self, event_key: str, team_key: str, realm_filter: RealmFilter) -> List[Report]:
        return (Report.query
                .join(Match, Match.key == Report.match_key)
                .filter(Match.event_key == event_key,
                        Report.team_key == team_key,
                        realm_clause(Report.realm_id, realm_filter))
                .order_by(Report.id)
                .all())

    def event_reports(self, event_key: str, realm_filter: RealmFilter) -> List[Report]:
        return (Report.query
                .join(Match, Match.key == Report.match_key)
                .filter(Match.event_key == event_key,
                        realm_clause(Report.realm_id, realm_filter))
                .order_by(Report.id)
                .all())

    def match_team_comments(self, match_key: str, team_key: str, realm_filter: RealmFilter) -> List[Comment]:
        return (Comment.query
                .filter(Comment.match_key == match_key,
                        Comment.team_key == team_key,
                        realm_clause(Comment.realm_id, realm_filter))
                .order_by(Comment.id)
                .all())

    def event_team_comments(self, event_key: str, team_key: str, realm_filter: RealmFilter) -> List[Comment]:
        return (Comment.query
                .filter(Comment.event_key == event_key,
                        Comment.team_key == team_key,
                        realm_clause(Comment.realm_id, realm_filter))
                .order_by(Comment.id)
                .all())
