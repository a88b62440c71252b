from sqlalchemy import or_, select, true

from shared.visibility import RealmFilter, Scope
from .models import Realm


def sharing_realms():
    return select(Realm.id).where(Realm.share_reports.is_(True))


def realm_clause(column, realm_filter: RealmFilter):
    """Render a RealmFilter as a SQL predicate on a realm id column."""
    if realm_filter.scope is Scope.ALL:
        return true()
    if realm_filter.scope is Scope.OWN:
        return column == realm_filter.realm_id
    if realm_filter.scope is Scope.OWN_AND_SHARED:
        return or_(column == realm_filter.realm_id, column.in_(sharing_realms()))
    return column.in_(sharing_realms())
