from dataclasses import dataclass
from typing import Mapping, Optional

ROLE_FIELDS = ('isVerified', 'isAdmin', 'isSuperAdmin')

_ATTRIBUTES = {
    'isVerified': 'is_verified',
    'isAdmin': 'is_admin',
    'isSuperAdmin': 'is_super_admin',
}


@dataclass(frozen=True)
class Roles:
    """
    Capability grants held by an identity.

    The flags are independent: admin does not imply verified. Super-admin
    dominates every other grant and is the only realm-unbounded role.
    """
    is_verified: bool = False
    is_admin: bool = False
    is_super_admin: bool = False

    @property
    def has_admin_power(self) -> bool:
        return self.is_admin or self.is_super_admin

    def can_manage_realm(self, realm_id: Optional[int], own_realm_id: Optional[int]) -> bool:
        """Administrative power over a realm is checked against the caller's own realm."""
        if self.is_super_admin:
            return True
        return self.is_admin and own_realm_id is not None and realm_id == own_realm_id

    def to_dict(self) -> dict:
        return {field: getattr(self, attr) for field, attr in _ATTRIBUTES.items()}

    @classmethod
    def from_dict(cls, data: Optional[Mapping]) -> "Roles":
        """Build roles from wire names; raises ValueError on non-boolean flags."""
        data = data or {}
        values = {}
        for field, attr in _ATTRIBUTES.items():
            value = data.get(field, False)
            if not isinstance(value, bool):
                raise ValueError(f"role flag '{field}' must be a boolean")
            values[attr] = value
        return cls(**values)

    def apply(self, changes: Mapping) -> "Roles":
        """Return a copy with the given wire-named flags replaced."""
        merged = self.to_dict()
        merged.update(changes)
        return Roles.from_dict(merged)
