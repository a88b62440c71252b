from flask import Blueprint, current_app, jsonify, request

from shared import policy
from shared.errors import Unauthenticated
from shared.policy import IdentityTarget
from shared.visibility import identity_filter_for
from ..auth import (check_password, hash_password, issue_token,
                    optional_auth_context, require_auth_context)
from ..identity_store import IdentityPatch
from ..models import User
from ..payloads import parse_credentials, parse_new_user, parse_user_changes

bp = Blueprint('users', __name__, url_prefix='/api/v1')


def _requested_roles(body):
    return body.get('roles') if isinstance(body, dict) else None


def _target(user_id: int) -> IdentityTarget:
    user = current_app.identities.get_identity(user_id)
    return IdentityTarget(identity_id=user.id, realm_id=user.realm_id)


@bp.route('/authenticate', methods=['POST'])
def authenticate():
    """Exchange username/password for a signed token."""
    credentials = parse_credentials(request.get_json(silent=True))

    user = current_app.identities.get_by_username(credentials.username)
    if user is None or not check_password(user, credentials.password):
        raise Unauthenticated("Invalid username or password", reason="bad_credentials")

    return jsonify({'jwt': issue_token(user)})


@bp.route('/users', methods=['POST'])
def create_user():
    """Register a user. Roles the caller may not grant are silently dropped."""
    ctx = optional_auth_context(request)
    body = request.get_json(silent=True)

    realm_id = body.get('realmId') if isinstance(body, dict) else None
    roles = policy.clamp_roles(ctx, realm_id, _requested_roles(body))
    new_user = parse_new_user(body, roles)
    policy.can_create_identity(ctx, new_user.realm_id).enforce()

    user = User(
        username=new_user.username,
        hashed_password=hash_password(new_user.password),
        realm_id=new_user.realm_id,
        first_name=new_user.first_name,
        last_name=new_user.last_name,
        stars=[]
    )
    user.roles = new_user.roles
    current_app.identities.create_identity(user)

    return jsonify(user.to_dict()), 201


@bp.route('/users', methods=['GET'])
def list_users():
    """Super-admins see every user, everyone else their own realm."""
    ctx = require_auth_context(request)
    policy.can_list_identities(ctx).enforce()

    users = current_app.identities.list_identities(identity_filter_for(ctx))
    return jsonify([u.to_dict() for u in users])


@bp.route('/users/<int:user_id>', methods=['GET'])
def get_user(user_id: int):
    ctx = require_auth_context(request)
    user = current_app.identities.get_identity(user_id)
    policy.can_read_identity(ctx, IdentityTarget(user.id, user.realm_id)).enforce()
    return jsonify(user.to_dict())


@bp.route('/users/<int:user_id>', methods=['PATCH'])
def patch_user(user_id: int):
    ctx = require_auth_context(request)
    target = _target(user_id)
    policy.can_patch_identity(ctx, target).enforce()

    body = request.get_json(silent=True)
    roles = policy.clamp_roles(ctx, target.realm_id, _requested_roles(body))
    changes = parse_user_changes(body, roles)

    current_app.identities.patch_identity(IdentityPatch(
        identity_id=user_id,
        username=changes.username,
        hashed_password=hash_password(changes.password) if changes.password else None,
        first_name=changes.first_name,
        last_name=changes.last_name,
        roles=changes.roles,
        stars=changes.stars
    ))
    return '', 204


@bp.route('/users/<int:user_id>', methods=['DELETE'])
def delete_user(user_id: int):
    ctx = require_auth_context(request)
    target = _target(user_id)
    policy.can_delete_identity(ctx, target).enforce()

    current_app.identities.delete_identity(user_id)
    return '', 204
