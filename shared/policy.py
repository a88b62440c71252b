"""
Authorization decisions for identity, realm, schema and observation operations.

Every function is pure: it takes the caller's AuthContext (or None for an
anonymous caller) plus a minimal description of the target and returns a
Decision. Role capability is always judged against the caller's own realm;
only super-admins are realm-unbounded.
"""
from enum import Enum
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Mapping, Optional

from .claims import AuthContext
from .errors import ErrorKind, error_for
from .roles import ROLE_FIELDS


class Reason(str, Enum):
    # allow
    SELF = "self"
    SUPER_ADMIN = "super_admin"
    REALM_ADMIN = "realm_admin"
    AUTHENTICATED = "authenticated"
    OPEN_REGISTRATION = "open_registration"
    # deny
    NO_IDENTITY = "no_identity"
    NOT_ADMIN = "not_admin"
    OTHER_REALM = "other_realm"
    NOT_SUPER_ADMIN = "not_super_admin"


DENIAL_KINDS = {
    Reason.NO_IDENTITY: ErrorKind.UNAUTHENTICATED,
    Reason.NOT_ADMIN: ErrorKind.FORBIDDEN,
    Reason.OTHER_REALM: ErrorKind.FORBIDDEN,
    Reason.NOT_SUPER_ADMIN: ErrorKind.FORBIDDEN,
}


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: Reason

    @classmethod
    def allow(cls, reason: Reason) -> "Decision":
        return cls(True, reason)

    @classmethod
    def deny(cls, reason: Reason) -> "Decision":
        return cls(False, reason)

    @property
    def kind(self) -> Optional[ErrorKind]:
        if self.allowed:
            return None
        return DENIAL_KINDS[self.reason]

    def enforce(self) -> "Decision":
        """Raise the typed error for a denial; return self when allowed."""
        if not self.allowed:
            raise error_for(self.kind, reason=self.reason.value)
        return self


@dataclass(frozen=True)
class IdentityTarget:
    identity_id: int
    realm_id: int


@dataclass(frozen=True)
class RealmTarget:
    realm_id: int


def _realm_admin(ctx: AuthContext, realm_id: Optional[int]) -> Decision:
    if ctx.roles.can_manage_realm(realm_id, ctx.realm_id):
        return Decision.allow(Reason.SUPER_ADMIN if ctx.roles.is_super_admin else Reason.REALM_ADMIN)
    if not ctx.roles.has_admin_power:
        return Decision.deny(Reason.NOT_ADMIN)
    return Decision.deny(Reason.OTHER_REALM)


def _identity_admin(ctx: Optional[AuthContext], target: IdentityTarget) -> Decision:
    if ctx is None:
        return Decision.deny(Reason.NO_IDENTITY)
    if ctx.owns(target.identity_id):
        return Decision.allow(Reason.SELF)
    return _realm_admin(ctx, target.realm_id)


def can_read_identity(ctx: Optional[AuthContext], target: IdentityTarget) -> Decision:
    return _identity_admin(ctx, target)


def can_patch_identity(ctx: Optional[AuthContext], target: IdentityTarget) -> Decision:
    """Self is always allowed; requested role changes are clamped separately."""
    return _identity_admin(ctx, target)


def can_delete_identity(ctx: Optional[AuthContext], target: IdentityTarget) -> Decision:
    return _identity_admin(ctx, target)


def can_list_identities(ctx: Optional[AuthContext]) -> Decision:
    if ctx is None:
        return Decision.deny(Reason.NO_IDENTITY)
    return Decision.allow(Reason.AUTHENTICATED)


def can_create_identity(ctx: Optional[AuthContext], realm_id: int) -> Decision:
    """Registration is open; elevated roles are clamped, never rejected."""
    return Decision.allow(Reason.OPEN_REGISTRATION)


def can_write_observation(ctx: Optional[AuthContext]) -> Decision:
    if ctx is None:
        return Decision.deny(Reason.NO_IDENTITY)
    return Decision.allow(Reason.AUTHENTICATED)


def can_create_realm(ctx: Optional[AuthContext]) -> Decision:
    if ctx is None:
        return Decision.deny(Reason.NO_IDENTITY)
    if not ctx.roles.is_super_admin:
        return Decision.deny(Reason.NOT_SUPER_ADMIN)
    return Decision.allow(Reason.SUPER_ADMIN)


def can_manage_realm(ctx: Optional[AuthContext], target: RealmTarget) -> Decision:
    if ctx is None:
        return Decision.deny(Reason.NO_IDENTITY)
    return _realm_admin(ctx, target.realm_id)


def can_create_schema(ctx: Optional[AuthContext], realm_id: Optional[int]) -> Decision:
    """Standard (realm-less) schemas belong to super-admins, realm schemas to realm admins."""
    if ctx is None:
        return Decision.deny(Reason.NO_IDENTITY)
    if realm_id is None:
        if ctx.roles.is_super_admin:
            return Decision.allow(Reason.SUPER_ADMIN)
        return Decision.deny(Reason.NOT_SUPER_ADMIN)
    return _realm_admin(ctx, realm_id)


# ==================== Role clamping ====================

def grantable_roles(ctx: Optional[AuthContext], target_realm_id: Optional[int]) -> FrozenSet[str]:
    """Role flags the caller may set on an identity living in target_realm_id."""
    if ctx is None or not ctx.roles.can_manage_realm(target_realm_id, ctx.realm_id):
        return frozenset()
    if ctx.roles.is_super_admin:
        return frozenset(ROLE_FIELDS)
    return frozenset({'isVerified', 'isAdmin'})


def clamp_roles(
    ctx: Optional[AuthContext],
    target_realm_id: Optional[int],
    requested: Optional[Mapping[str, Any]]
) -> Dict[str, Any]:
    """
    Drop every requested role flag the caller is not allowed to set.

    This runs before payload validation, so a dropped flag never causes a
    rejection. Callers creating identities treat missing flags as False;
    callers patching identities treat them as unchanged.
    """
    if not isinstance(requested, Mapping):
        return {}
    allowed = grantable_roles(ctx, target_realm_id)
    return {field: value for field, value in requested.items() if field in allowed}


def stamp_observation(ctx: AuthContext, values: Mapping[str, Any]) -> Dict[str, Any]:
    """Ownership of a crowd-sourced record always comes from the writer's identity."""
    stamped = dict(values)
    stamped['reporter_id'] = ctx.subject_id
    stamped['realm_id'] = ctx.realm_id
    return stamped
