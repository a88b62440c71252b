from enum import Enum
from dataclasses import dataclass
from typing import Optional

from .claims import AuthContext


class Scope(str, Enum):
    ALL = "all"
    OWN = "own"
    OWN_AND_SHARED = "own_and_shared"
    SHARED = "shared"


@dataclass(frozen=True)
class RealmFilter:
    """
    Realm inclusion predicate for a read.

    The storage layer renders this into its query so rows outside the
    filter are never loaded.
    """
    scope: Scope
    realm_id: Optional[int] = None

    def admits(self, realm_id: Optional[int], shares: bool) -> bool:
        if self.scope is Scope.ALL:
            return True
        own = self.realm_id is not None and realm_id == self.realm_id
        if self.scope is Scope.OWN:
            return own
        if self.scope is Scope.OWN_AND_SHARED:
            return own or shares
        return shares


UNRESTRICTED = RealmFilter(Scope.ALL)
SHARED_ONLY = RealmFilter(Scope.SHARED)


def filter_for(ctx: Optional[AuthContext]) -> RealmFilter:
    """Visibility of crowd-sourced data (reports, comments, realm schemas)."""
    if ctx is None:
        return SHARED_ONLY
    if ctx.roles.is_super_admin:
        return UNRESTRICTED
    return RealmFilter(Scope.OWN_AND_SHARED, ctx.realm_id)


def identity_filter_for(ctx: AuthContext) -> RealmFilter:
    """Identities are never shared across realms."""
    if ctx.roles.is_super_admin:
        return UNRESTRICTED
    return RealmFilter(Scope.OWN, ctx.realm_id)
