from flask import Blueprint, current_app, jsonify, request

from shared import policy
from shared.errors import NotFound
from shared.notifications import ObservationKind, ObservationNotice
from shared.visibility import filter_for
from ..auth import optional_auth_context, require_auth_context
from ..observation_store import full_match_key
from ..payloads import parse_comment, parse_report

bp = Blueprint('events', __name__, url_prefix='/api/v1/events')


def _upserted(result):
    return ('', 201) if result.created else ('', 204)


def _publish(kind, result, ctx, event_key, match_key, team_key):
    if current_app.publisher is not None:
        current_app.publisher.submit(ObservationNotice(
            kind=kind,
            created=result.created,
            realm_id=ctx.realm_id,
            event_key=event_key,
            match_key=match_key,
            team_key=team_key,
            reporter_id=ctx.subject_id
        ))


def _require_match(event_key: str, match_key: str) -> str:
    key = full_match_key(event_key, match_key)
    if not current_app.observations.match_exists(key):
        raise NotFound(f"Match {match_key} does not exist at {event_key}")
    return key


# ==================== Events & Matches ====================

@bp.route('', methods=['GET'])
def list_events():
    return jsonify([e.to_dict() for e in current_app.events.list_events()])


@bp.route('/<event_key>', methods=['GET'])
def get_event(event_key: str):
    return jsonify(current_app.events.get_event(event_key).to_dict())


@bp.route('/<event_key>/matches', methods=['GET'])
def list_matches(event_key: str):
    return jsonify([m.to_dict() for m in current_app.events.list_matches(event_key)])


# ==================== Reports ====================

@bp.route('/<event_key>/matches/<match_key>/teams/<team_key>/reports', methods=['PUT'])
def put_report(event_key: str, match_key: str, team_key: str):
    """Create or replace the caller's report for this match and team."""
    ctx = require_auth_context(request)
    policy.can_write_observation(ctx).enforce()

    key = _require_match(event_key, match_key)
    values = parse_report(request.get_json(silent=True))
    values.update({'match_key': key, 'team_key': team_key})
    values = policy.stamp_observation(ctx, values)

    result = current_app.observations.upsert_report(values)
    _publish(ObservationKind.REPORT, result, ctx, event_key, match_key, team_key)
    return _upserted(result)


@bp.route('/<event_key>/matches/<match_key>/teams/<team_key>/reports', methods=['GET'])
def get_match_team_reports(event_key: str, match_key: str, team_key: str):
    ctx = optional_auth_context(request)
    reports = current_app.observations.match_team_reports(
        full_match_key(event_key, match_key), team_key, filter_for(ctx))
    return jsonify([r.to_dict() for r in reports])


@bp.route('/<event_key>/teams/<team_key>/reports', methods=['GET'])
def get_event_team_reports(event_key: str, team_key: str):
    ctx = optional_auth_context(request)
    reports = current_app.observations.event_team_reports(event_key, team_key, filter_for(ctx))
    return jsonify([r.to_dict() for r in reports])


@bp.route('/<event_key>/reports', methods=['GET'])
def get_event_reports(event_key: str):
    ctx = optional_auth_context(request)
    reports = current_app.observations.event_reports(event_key, filter_for(ctx))
    return jsonify([r.to_dict() for r in reports])


# ==================== Comments ====================

@bp.route('/<event_key>/matches/<match_key>/teams/<team_key>/comments', methods=['PUT'])
def put_comment(event_key: str, match_key: str, team_key: str):
    ctx = require_auth_context(request)
    policy.can_write_observation(ctx).enforce()

    key = _require_match(event_key, match_key)
    values = parse_comment(request.get_json(silent=True))
    values.update({'event_key': event_key, 'match_key': key, 'team_key': team_key})
    values = policy.stamp_observation(ctx, values)

    result = current_app.observations.upsert_comment(values)
    _publish(ObservationKind.COMMENT, result, ctx, event_key, match_key, team_key)
    return _upserted(result)


@bp.route('/<event_key>/matches/<match_key>/teams/<team_key>/comments', methods=['GET'])
def get_match_team_comments(event_key: str, match_key: str, team_key: str):
    ctx = optional_auth_context(request)
    comments = current_app.observations.match_team_comments(
        full_match_key(event_key, match_key), team_key, filter_for(ctx))
    return jsonify([c.to_dict() for c in comments])


@bp.route('/<event_key>/teams/<team_key>/comments', methods=['GET'])
def get_event_team_comments(event_key: str, team_key: str):
    ctx = optional_auth_context(request)
    comments = current_app.observations.event_team_comments(event_key, team_key, filter_for(ctx))
    return jsonify([c.to_dict() for c in comments])
