from dataclasses import dataclass, field
from typing import Dict, List, Optional
import logging

from sqlalchemy.exc import IntegrityError

from shared.errors import Conflict, NotFound, ValidationFailed
from shared.visibility import RealmFilter
from .models import db, is_foreign_key_violation, User
from .scoping import realm_clause

logger = logging.getLogger(__name__)


@dataclass
class IdentityPatch:
    """Partial update of an identity; None fields are left unchanged."""
    identity_id: int
    username: Optional[str] = None
    hashed_password: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    roles: Dict[str, bool] = field(default_factory=dict)
    stars: Optional[List[str]] = None


class IdentityStore:
    """Storage collaborator for identities."""

    def get_identity(self, identity_id: int) -> User:
        user = db.session.get(User, identity_id)
        if user is None:
            raise NotFound(f"User {identity_id} does not exist")
        return user

    def get_by_username(self, username: str) -> Optional[User]:
        return User.query.filter_by(username=username).first()

    def list_identities(self, realm_filter: RealmFilter) -> List[User]:
        return (User.query
                .filter(realm_clause(User.realm_id, realm_filter))
                .order_by(User.id)
                .all())

    def create_identity(self, user: User) -> User:
        db.session.add(user)
        self._commit(f"user {user.username}")
        return user

    def patch_identity(self, patch: IdentityPatch) -> User:
        user = self.get_identity(patch.identity_id)

        for attr in ('username', 'hashed_password', 'first_name', 'last_name', 'stars'):
            value = getattr(patch, attr)
            if value is not None:
                setattr(user, attr, value)
        if patch.roles:
            user.roles = user.roles.apply(patch.roles)

        self._commit(f"user {patch.identity_id}")
        return user

    def delete_identity(self, identity_id: int) -> None:
        user = self.get_identity(identity_id)
        db.session.delete(user)
        db.session.commit()

    def _commit(self, what: str) -> None:
        try:
            db.session.commit()
        except IntegrityError as e:
            db.session.rollback()
            if is_foreign_key_violation(e):
                raise ValidationFailed(f"Unknown reference for {what}", reason="foreign_key")
            raise Conflict(f"Conflicting {what} already exists", reason="unique")
