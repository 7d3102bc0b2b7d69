# spin_harvester/domain/spin/entities/round.py
from dataclasses import dataclass, field
from typing import Dict, List, Any, Optional, Tuple

from spin_harvester.domain.spin.entities.spin import Spin


NORMAL_ROUND_TYPE = 0


@dataclass(frozen=True)
class Round:
    """
    An ordered sequence of spins sharing one parent round id.

    Produced by the round client once the last spin reports the terminal
    state; immutable from then on.
    """
    spins: Tuple[Spin, ...]
    round_type: int = NORMAL_ROUND_TYPE

    @property
    def parent_round_id(self) -> Optional[str]:
        return self.spins[0].parent_round_id if self.spins else None

    @property
    def next_chaining_id(self) -> Any:
        """Chaining id to send with the first request of the next round."""
        return self.spins[-1].spin_id if self.spins else None

    @property
    def first_spin(self) -> Optional[Spin]:
        return self.spins[0] if self.spins else None

    @property
    def last_spin(self) -> Optional[Spin]:
        return self.spins[-1] if self.spins else None

    @property
    def raw_spins(self) -> List[Dict[str, Any]]:
        return [spin.raw for spin in self.spins]

    def __len__(self) -> int:
        return len(self.spins)


@dataclass
class SessionRecord:
    """
    The persisted unit, one JSON object per archive line.

    ``spins`` holds the raw provider responses; the wire keys are
    ``contentHash``, ``roundType``, ``multiplier`` and ``spins``.
    """
    content_hash: str
    round_type: int
    spins: List[Dict[str, Any]] = field(default_factory=list)
    multiplier: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "contentHash": self.content_hash,
            "roundType": self.round_type,
        }
        if self.multiplier is not None:
            data["multiplier"] = self.multiplier
        data["spins"] = self.spins
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any], default_round_type: int = NORMAL_ROUND_TYPE) -> "SessionRecord":
        spins = data.get("spins")
        return cls(
            content_hash=str(data.get("contentHash", "")),
            round_type=int(data.get("roundType", default_round_type)),
            spins=spins if isinstance(spins, list) else [],
            multiplier=data.get("multiplier"),
        )

    def parse_spins(self) -> List[Spin]:
        """Parse the raw spins, silently dropping entries without spin info."""
        parsed = (Spin.from_raw(raw) for raw in self.spins)
        return [spin for spin in parsed if spin is not None]
