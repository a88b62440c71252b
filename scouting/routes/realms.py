from flask import Blueprint, current_app, jsonify, request

from shared import policy
from shared.policy import RealmTarget
from shared.visibility import filter_for
from ..auth import optional_auth_context, require_auth_context
from ..payloads import parse_new_realm, parse_realm_changes, parse_new_schema

bp = Blueprint('realms', __name__, url_prefix='/api/v1')


# ==================== Realms ====================

@bp.route('/realms', methods=['GET'])
def list_realms():
    """Realms the caller can see data from."""
    ctx = optional_auth_context(request)
    realms = current_app.realms.list_realms(filter_for(ctx))
    return jsonify([r.to_dict() for r in realms])


@bp.route('/realms', methods=['POST'])
def create_realm():
    ctx = require_auth_context(request)
    policy.can_create_realm(ctx).enforce()

    data = parse_new_realm(request.get_json(silent=True))
    realm = current_app.realms.create_realm(data.name, data.share_reports)
    return jsonify(realm.to_dict()), 201


@bp.route('/realms/<int:realm_id>', methods=['PATCH'])
def patch_realm(realm_id: int):
    ctx = require_auth_context(request)
    policy.can_manage_realm(ctx, RealmTarget(realm_id)).enforce()

    changes = parse_realm_changes(request.get_json(silent=True))
    current_app.realms.update_realm(realm_id, changes.name, changes.share_reports)
    return '', 204


# ==================== Schemas ====================

@bp.route('/schemas', methods=['GET'])
def list_schemas():
    ctx = optional_auth_context(request)
    schemas = current_app.realms.list_schemas(filter_for(ctx))
    return jsonify([s.to_dict() for s in schemas])


@bp.route('/schemas/<int:schema_id>', methods=['GET'])
def get_schema(schema_id: int):
    ctx = optional_auth_context(request)
    schema = current_app.realms.get_schema(schema_id, filter_for(ctx))
    return jsonify(schema.to_dict())


@bp.route('/schemas/year/<int:year>', methods=['GET'])
def get_standard_schema(year: int):
    return jsonify(current_app.realms.get_standard_schema(year).to_dict())


@bp.route('/schemas', methods=['POST'])
def create_schema():
    """
    A body with a year and no realmId creates the standard schema for that
    year; anything else creates a schema for a realm (the caller's own unless
    realmId names another).
    """
    ctx = require_auth_context(request)
    data = parse_new_schema(request.get_json(silent=True))

    realm_id = data.realm_id
    if realm_id is None and data.year is None:
        realm_id = ctx.realm_id
    policy.can_create_schema(ctx, realm_id).enforce()

    schema = current_app.realms.create_schema(data.year, realm_id, data.auto, data.teleop)
    return jsonify(schema.to_dict()), 201
