from datetime import datetime
import sqlite3

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from shared.roles import Roles

db = SQLAlchemy()


@event.listens_for(Engine, 'connect')
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    """SQLite only enforces foreign keys when asked to."""
    if isinstance(dbapi_connection, sqlite3.Connection):
        cursor = dbapi_connection.cursor()
        cursor.execute('PRAGMA foreign_keys=ON')
        cursor.close()


PG_FK_VIOLATION = '23503'


def is_foreign_key_violation(error: IntegrityError) -> bool:
    orig = error.orig
    if getattr(orig, 'pgcode', None) == PG_FK_VIOLATION:
        return True
    return 'FOREIGN KEY constraint failed' in str(orig)


def trim_match_key(key: str) -> str:
    """Match keys are stored as '<event>_<match>'; clients only see '<match>'."""
    parts = key.split('_')
    if len(parts) != 2:
        return ''
    return parts[1]


class Realm(db.Model):
    __tablename__ = 'realms'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), unique=True, nullable=False)
    share_reports = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'shareReports': self.share_reports,
        }


class User(db.Model):
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(32), unique=True, nullable=False, index=True)
    hashed_password = db.Column(db.String(256), nullable=False)
    realm_id = db.Column(db.Integer, db.ForeignKey('realms.id'), nullable=False, index=True)
    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=False)
    is_verified = db.Column(db.Boolean, nullable=False, default=False)
    is_admin = db.Column(db.Boolean, nullable=False, default=False)
    is_super_admin = db.Column(db.Boolean, nullable=False, default=False)
    stars = db.Column(db.JSON, nullable=False, default=list)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    realm = db.relationship('Realm')

    @property
    def roles(self) -> Roles:
        return Roles(
            is_verified=self.is_verified,
            is_admin=self.is_admin,
            is_super_admin=self.is_super_admin
        )

    @roles.setter
    def roles(self, roles: Roles):
        self.is_verified = roles.is_verified
        self.is_admin = roles.is_admin
        self.is_super_admin = roles.is_super_admin

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
            'realmId': self.realm_id,
            'firstName': self.first_name,
            'lastName': self.last_name,
            'roles': self.roles.to_dict(),
            'stars': list(self.stars or []),
        }


class Event(db.Model):
    __tablename__ = 'events'

    key = db.Column(db.String(32), primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    district = db.Column(db.String(20), nullable=True)
    week = db.Column(db.Integer, nullable=True)
    start_date = db.Column(db.DateTime, nullable=False)
    end_date = db.Column(db.DateTime, nullable=False)
    location_name = db.Column(db.String(200), nullable=True)
    lat = db.Column(db.Float, nullable=True)
    lon = db.Column(db.Float, nullable=True)
    webcasts = db.Column(db.JSON, nullable=False, default=list)

    matches = db.relationship('Match', back_populates='event', cascade='all, delete-orphan')

    def to_dict(self):
        return {
            'key': self.key,
            'name': self.name,
            'district': self.district,
            'week': self.week,
            'startDate': self.start_date.isoformat() if self.start_date else None,
            'endDate': self.end_date.isoformat() if self.end_date else None,
            'location': {
                'name': self.location_name,
                'lat': self.lat,
                'lon': self.lon,
            },
            'webcasts': list(self.webcasts or []),
        }


class Match(db.Model):
    __tablename__ = 'matches'

    key = db.Column(db.String(64), primary_key=True)
    event_key = db.Column(db.String(32), db.ForeignKey('events.key'), nullable=False, index=True)
    predicted_time = db.Column(db.DateTime, nullable=True)
    actual_time = db.Column(db.DateTime, nullable=True)
    red_score = db.Column(db.Integer, nullable=True)
    blue_score = db.Column(db.Integer, nullable=True)

    event = db.relationship('Event', back_populates='matches')
    alliances = db.relationship('Alliance', cascade='all, delete-orphan')

    def alliance(self, is_blue: bool):
        for a in self.alliances:
            if a.is_blue == is_blue:
                return list(a.team_keys)
        return []

    def to_dict(self):
        return {
            'key': trim_match_key(self.key),
            'predictedTime': self.predicted_time.isoformat() if self.predicted_time else None,
            'actualTime': self.actual_time.isoformat() if self.actual_time else None,
            'redScore': self.red_score,
            'blueScore': self.blue_score,
            'redAlliance': self.alliance(False),
            'blueAlliance': self.alliance(True),
        }


class Alliance(db.Model):
    """Realm-less roster fed from the external data source."""
    __tablename__ = 'alliances'

    id = db.Column(db.Integer, primary_key=True)
    match_key = db.Column(db.String(64), db.ForeignKey('matches.key', ondelete='CASCADE'), nullable=False)
    is_blue = db.Column(db.Boolean, nullable=False)
    team_keys = db.Column(db.JSON, nullable=False, default=list)
    revision = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint('match_key', 'is_blue', name='unique_alliance_per_side'),
    )


class Report(db.Model):
    __tablename__ = 'reports'

    id = db.Column(db.Integer, primary_key=True)
    match_key = db.Column(db.String(64), db.ForeignKey('matches.key'), nullable=False, index=True)
    team_key = db.Column(db.String(16), nullable=False)
    reporter_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    realm_id = db.Column(db.Integer, db.ForeignKey('realms.id'), nullable=False, index=True)
    auto_name = db.Column(db.String(100), nullable=False, default='')
    data = db.Column(db.JSON, nullable=False)
    revision = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint('match_key', 'team_key', 'reporter_id', name='unique_report_per_reporter'),
    )

    def to_dict(self):
        return {
            'matchKey': trim_match_key(self.match_key),
            'teamKey': self.team_key,
            'reporterId': self.reporter_id,
            'autoName': self.auto_name,
            'data': self.data,
        }


class Comment(db.Model):
    __tablename__ = 'comments'

    id = db.Column(db.Integer, primary_key=True)
    event_key = db.Column(db.String(32), db.ForeignKey('events.key'), nullable=False, index=True)
    match_key = db.Column(db.String(64), db.ForeignKey('matches.key'), nullable=False, index=True)
    team_key = db.Column(db.String(16), nullable=False)
    reporter_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    realm_id = db.Column(db.Integer, db.ForeignKey('realms.id'), nullable=False, index=True)
    comment = db.Column(db.Text, nullable=False, default='')
    revision = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint('match_key', 'team_key', 'reporter_id', name='unique_comment_per_reporter'),
    )

    def to_dict(self):
        return {
            'matchKey': trim_match_key(self.match_key),
            'teamKey': self.team_key,
            'reporterId': self.reporter_id,
            'comment': self.comment,
        }


class Schema(db.Model):
    """
    Describes the statistics a report should contain.

    Standard schemas have no realm and one per year; realm schemas belong
    to exactly one realm.
    """
    __tablename__ = 'schemas'

    id = db.Column(db.Integer, primary_key=True)
    year = db.Column(db.Integer, nullable=True)
    realm_id = db.Column(db.Integer, db.ForeignKey('realms.id'), nullable=True, index=True)
    auto = db.Column(db.JSON, nullable=False, default=list)
    teleop = db.Column(db.JSON, nullable=False, default=list)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    __table_args__ = (
        db.Index(
            'unique_standard_schema_year', 'year',
            unique=True,
            sqlite_where=db.text('realm_id IS NULL'),
            postgresql_where=db.text('realm_id IS NULL')
        ),
    )

    def to_dict(self):
        body = {
            'id': self.id,
            'auto': self.auto,
            'teleop': self.teleop,
        }
        if self.year is not None:
            body['year'] = self.year
        if self.realm_id is not None:
            body['realmId'] = self.realm_id
        return body
