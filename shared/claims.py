from dataclasses import dataclass
from typing import Any, Mapping

from .errors import Unauthenticated
from .roles import Roles

CLAIM_SUBJECT = 'sub'
CLAIM_REALM = 'scoutRealm'
CLAIM_ROLES = 'scoutRoles'


@dataclass(frozen=True)
class AuthContext:
    """Authenticated view of the caller for the lifetime of one request."""
    subject_id: int
    realm_id: int
    roles: Roles

    @property
    def is_super_admin(self) -> bool:
        return self.roles.is_super_admin

    def owns(self, identity_id: int) -> bool:
        return identity_id == self.subject_id


def _subject(payload: Mapping[str, Any]) -> int:
    sub = payload.get(CLAIM_SUBJECT)
    if not isinstance(sub, str):
        raise Unauthenticated("Missing or invalid subject claim", reason="bad_subject")
    try:
        return int(sub, 10)
    except ValueError:
        raise Unauthenticated("Subject claim is not an integer", reason="bad_subject")


def _realm(payload: Mapping[str, Any]) -> int:
    realm = payload.get(CLAIM_REALM)
    # bool is an int subclass; a flag is never a realm id
    if isinstance(realm, bool) or not isinstance(realm, int):
        raise Unauthenticated("Missing or invalid realm claim", reason="bad_realm")
    return realm


def _roles(payload: Mapping[str, Any]) -> Roles:
    roles = payload.get(CLAIM_ROLES)
    if not isinstance(roles, Mapping):
        raise Unauthenticated("Missing or invalid roles claim", reason="bad_roles")
    try:
        return Roles.from_dict(roles)
    except ValueError as e:
        raise Unauthenticated(str(e), reason="bad_roles")


def extract_auth_context(payload: Mapping[str, Any]) -> AuthContext:
    """
    Interpret an already-verified token payload.

    Signature and expiry checks happen before this point; this only checks
    that the subject, realm and roles claims are present and well-formed.
    """
    if not isinstance(payload, Mapping):
        raise Unauthenticated("Token payload is not an object", reason="bad_payload")

    return AuthContext(
        subject_id=_subject(payload),
        realm_id=_realm(payload),
        roles=_roles(payload),
    )


def build_claims(subject_id: int, realm_id: int, roles: Roles) -> dict:
    """Inverse of extract_auth_context, used when issuing tokens."""
    return {
        CLAIM_SUBJECT: str(subject_id),
        CLAIM_REALM: realm_id,
        CLAIM_ROLES: roles.to_dict(),
    }
