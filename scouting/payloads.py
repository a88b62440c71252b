"""
Request payload parsing. Every failure raises ValidationFailed.
"""
from dataclasses import dataclass
from typing import Any, List, Optional

from shared.errors import ValidationFailed
from shared.roles import Roles

STAT_TYPES = ('number', 'boolean')


def _object(data: Any) -> dict:
    if not isinstance(data, dict):
        raise ValidationFailed("Request body must be a JSON object")
    return data


def _string(data: dict, name: str, min_len: int = 0, max_len: int = None,
            required: bool = True) -> Optional[str]:
    value = data.get(name)
    if value is None:
        if required:
            raise ValidationFailed(f"'{name}' is required")
        return None
    if not isinstance(value, str):
        raise ValidationFailed(f"'{name}' must be a string")
    if len(value) < min_len or (max_len is not None and len(value) > max_len):
        bound = f"{min_len}-{max_len}" if max_len is not None else f"at least {min_len}"
        raise ValidationFailed(f"'{name}' must be {bound} characters")
    return value


def _int(data: dict, name: str, required: bool = True) -> Optional[int]:
    value = data.get(name)
    if value is None:
        if required:
            raise ValidationFailed(f"'{name}' is required")
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationFailed(f"'{name}' must be an integer")
    return value


def _bool(data: dict, name: str) -> Optional[bool]:
    value = data.get(name)
    if value is not None and not isinstance(value, bool):
        raise ValidationFailed(f"'{name}' must be a boolean")
    return value


def _roles(value: Any) -> dict:
    if not isinstance(value, dict):
        return {}
    try:
        Roles.from_dict(value)
    except ValueError as e:
        raise ValidationFailed(str(e))
    return value


# ==================== Users ====================

@dataclass
class Credentials:
    username: str
    password: str


@dataclass
class NewUser:
    username: str
    password: str
    realm_id: int
    first_name: str
    last_name: str
    roles: Roles


@dataclass
class UserChanges:
    username: Optional[str]
    password: Optional[str]
    first_name: Optional[str]
    last_name: Optional[str]
    roles: dict
    stars: Optional[List[str]]


def parse_credentials(data: Any) -> Credentials:
    data = _object(data)
    return Credentials(
        username=_string(data, 'username', 4, 32),
        password=_string(data, 'password', 8, 128)
    )


def parse_new_user(data: Any, roles: dict) -> NewUser:
    """roles must already be clamped to what the caller may grant."""
    data = _object(data)
    return NewUser(
        username=_string(data, 'username', 4, 32),
        password=_string(data, 'password', 8, 128),
        realm_id=_int(data, 'realmId'),
        first_name=_string(data, 'firstName', 1),
        last_name=_string(data, 'lastName', 1),
        roles=Roles.from_dict(_roles(roles))
    )


def parse_user_changes(data: Any, roles: dict) -> UserChanges:
    """roles must already be clamped to what the caller may grant."""
    data = _object(data)
    stars = data.get('stars')
    if stars is not None and (not isinstance(stars, list) or
                              not all(isinstance(s, str) for s in stars)):
        raise ValidationFailed("'stars' must be a list of event keys")

    return UserChanges(
        username=_string(data, 'username', 4, 32, required=False),
        password=_string(data, 'password', 8, 128, required=False),
        first_name=_string(data, 'firstName', required=False),
        last_name=_string(data, 'lastName', required=False),
        roles=_roles(roles),
        stars=stars
    )


# ==================== Realms ====================

@dataclass
class RealmChanges:
    name: Optional[str]
    share_reports: Optional[bool]


def parse_new_realm(data: Any) -> RealmChanges:
    data = _object(data)
    return RealmChanges(
        name=_string(data, 'name', 1, 100),
        share_reports=bool(_bool(data, 'shareReports'))
    )


def parse_realm_changes(data: Any) -> RealmChanges:
    data = _object(data)
    return RealmChanges(
        name=_string(data, 'name', 1, 100, required=False),
        share_reports=_bool(data, 'shareReports')
    )


# ==================== Observations ====================

def _count(stat: dict, name: str) -> Optional[int]:
    value = stat.get(name)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValidationFailed(f"'{name}' must be a non-negative integer")
    return value


def _stat(stat: Any) -> dict:
    if not isinstance(stat, dict):
        raise ValidationFailed("Each stat must be an object")
    name = stat.get('statName')
    if not isinstance(name, str) or not name:
        raise ValidationFailed("Each stat needs a 'statName'")

    parsed = {'statName': name}
    for field in ('attempts', 'successes'):
        value = _count(stat, field)
        if value is not None:
            parsed[field] = value
    for field in ('attempted', 'succeeded'):
        value = _bool(stat, field)
        if value is not None:
            parsed[field] = value
    if 'successes' in parsed and 'attempts' in parsed and parsed['successes'] > parsed['attempts']:
        raise ValidationFailed(f"'{name}' has more successes than attempts")
    return parsed


def _stats(data: dict, name: str) -> List[dict]:
    stats = data.get(name, [])
    if not isinstance(stats, list):
        raise ValidationFailed(f"'{name}' must be a list of stats")
    return [_stat(s) for s in stats]


def parse_report(data: Any) -> dict:
    """Mutable portion of a report. Ownership fields in the body are ignored."""
    data = _object(data)
    report_data = _object(data.get('data', {}))
    return {
        'auto_name': _string(data, 'autoName', 0, 100, required=False) or '',
        'data': {
            'auto': _stats(report_data, 'auto'),
            'teleop': _stats(report_data, 'teleop'),
        },
    }


def parse_comment(data: Any) -> dict:
    data = _object(data)
    return {'comment': _string(data, 'comment', 0, 10000)}


# ==================== Schemas ====================

def _descriptions(data: dict, name: str) -> List[dict]:
    items = data.get(name, [])
    if not isinstance(items, list):
        raise ValidationFailed(f"'{name}' must be a list")
    parsed = []
    for item in items:
        if not isinstance(item, dict):
            raise ValidationFailed(f"Entries of '{name}' must be objects")
        stat_name = item.get('name')
        stat_type = item.get('type')
        if not isinstance(stat_name, str) or not stat_name:
            raise ValidationFailed(f"Entries of '{name}' need a 'name'")
        if stat_type not in STAT_TYPES:
            raise ValidationFailed(f"'type' must be one of {', '.join(STAT_TYPES)}")
        parsed.append({'name': stat_name, 'type': stat_type})
    return parsed


@dataclass
class NewSchema:
    year: Optional[int]
    realm_id: Optional[int]
    auto: List[dict]
    teleop: List[dict]


def parse_new_schema(data: Any) -> NewSchema:
    data = _object(data)
    return NewSchema(
        year=_int(data, 'year', required=False),
        realm_id=_int(data, 'realmId', required=False),
        auto=_descriptions(data, 'auto'),
        teleop=_descriptions(data, 'teleop')
    )
