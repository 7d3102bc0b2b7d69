# spin_harvester/domain/events/harvest_events.py
from enum import Enum, auto
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Any


class HarvestEventType(Enum):
    """Lifecycle events of a harvesting instance."""
    SESSION_INITIALIZED = auto()
    ROUND_PERSISTED = auto()
    DUPLICATE_DISCARDED = auto()     # provider replayed an already stored round
    SESSION_DEGRADED = auto()
    VARIANT_SKIPPED = auto()         # bonus purchase not honoured or not offered
    HARVEST_COMPLETED = auto()


@dataclass
class HarvestEvent:
    """
    Event published by a harvest session.

    The identifiers are mirrored into ``data`` so handlers that only look at
    the payload (loggers, JSON sinks) see where the event came from.
    """
    type: HarvestEventType
    game_id: str = ""
    instance: int = 0
    round_type: int = 0
    data: Dict[str, Any] = None
    timestamp: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        self.data = dict(self.data) if self.data else {}
        self.data["game_id"] = self.game_id
        self.data["instance"] = self.instance
        self.data["round_type"] = self.round_type

    def __str__(self) -> str:
        return f"HarvestEvent({self.type.name}, game={self.game_id}/{self.instance}, round_type={self.round_type})"
