"""
Change notices for crowd-sourced observations.

A notice goes out after a report or comment upsert succeeds so that members
of the writer's realm can refresh. It names the observation slot only and
never carries the payload.
"""
from enum import Enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional
import json


class ObservationKind(str, Enum):
    REPORT = "report"
    COMMENT = "comment"


@dataclass(frozen=True)
class ObservationNotice:
    kind: ObservationKind
    created: bool
    realm_id: int
    event_key: str
    match_key: str
    team_key: str
    reporter_id: Optional[int]
    occurred_at: datetime = field(default_factory=datetime.utcnow)

    @property
    def type(self) -> str:
        """e.g. 'report.created' or 'comment.updated'"""
        return f"{self.kind.value}.{'created' if self.created else 'updated'}"

    def to_json(self) -> str:
        return json.dumps({
            'type': self.type,
            'realmId': self.realm_id,
            'eventKey': self.event_key,
            'matchKey': self.match_key,
            'teamKey': self.team_key,
            'reporterId': self.reporter_id,
            'occurredAt': self.occurred_at.isoformat() + 'Z',
        })
