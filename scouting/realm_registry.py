from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from shared.errors import Conflict, NotFound, ValidationFailed
from shared.visibility import RealmFilter
from .models import db, is_foreign_key_violation, Realm, Schema
from .scoping import realm_clause


class RealmRegistry:
    """
    Manages realms and the report schemas they own.
    """

    # ==================== Realms ====================

    def get_realm(self, realm_id: int) -> Realm:
        realm = db.session.get(Realm, realm_id)
        if realm is None:
            raise NotFound(f"Realm {realm_id} does not exist")
        return realm

    def list_realms(self, realm_filter: RealmFilter) -> List[Realm]:
        return (Realm.query
                .filter(realm_clause(Realm.id, realm_filter))
                .order_by(Realm.id)
                .all())

    def create_realm(self, name: str, share_reports: bool = False) -> Realm:
        realm = Realm(name=name, share_reports=share_reports)
        db.session.add(realm)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise Conflict(f"Realm '{name}' already exists")
        return realm

    def update_realm(self, realm_id: int, name: Optional[str] = None,
                     share_reports: Optional[bool] = None) -> Realm:
        """Changing share_reports only affects reads made after the change."""
        realm = self.get_realm(realm_id)
        if name is not None:
            realm.name = name
        if share_reports is not None:
            realm.share_reports = share_reports
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise Conflict(f"Realm '{name}' already exists")
        return realm

    # ==================== Schemas ====================

    def create_schema(self, year: Optional[int], realm_id: Optional[int],
                      auto: list, teleop: list) -> Schema:
        schema = Schema(year=year, realm_id=realm_id, auto=auto, teleop=teleop)
        db.session.add(schema)
        try:
            db.session.commit()
        except IntegrityError as e:
            db.session.rollback()
            if is_foreign_key_violation(e):
                raise ValidationFailed(f"Realm {realm_id} does not exist", reason="foreign_key")
            raise Conflict(f"A standard schema for {year} already exists", reason="unique")
        return schema

    def _visible_schemas(self, realm_filter: RealmFilter):
        return Schema.query.filter(or_(
            Schema.realm_id.is_(None),
            realm_clause(Schema.realm_id, realm_filter)
        ))

    def list_schemas(self, realm_filter: RealmFilter) -> List[Schema]:
        return self._visible_schemas(realm_filter).order_by(Schema.id).all()

    def get_schema(self, schema_id: int, realm_filter: RealmFilter) -> Schema:
        schema = self._visible_schemas(realm_filter).filter(Schema.id == schema_id).first()
        if schema is None:
            raise NotFound(f"Schema {schema_id} does not exist")
        return schema

    def get_standard_schema(self, year: int) -> Schema:
        schema = Schema.query.filter(Schema.year == year, Schema.realm_id.is_(None)).first()
        if schema is None:
            raise NotFound(f"No schema for year {year} exists")
        return schema
