# spin_harvester/domain/session/entities/harvest_progress.py
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Any, Optional


@dataclass
class HarvestProgress:
    """Counters of one harvesting instance, one entry per round type."""
    game_id: str
    instance: int = 0
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    duration: float = 0.0

    # round type -> persisted record count (existing lines included)
    round_counts: Dict[int, int] = field(default_factory=dict)

    persisted_rounds: int = 0      # rounds appended in this run
    duplicate_rounds: int = 0
    degraded_rounds: int = 0
    total_spins: int = 0
    skipped_variants: int = 0

    _started_at: float = field(default=0.0, repr=False)

    def start(self):
        self.start_time = datetime.now()
        self._started_at = time.time()

    def finish(self):
        self.end_time = datetime.now()
        self.duration = time.time() - self._started_at if self._started_at else 0.0

    def count_for(self, round_type: int) -> int:
        return self.round_counts.get(round_type, 0)

    def resume(self, round_type: int, existing: int):
        """Seed the counter of a round type from the archive line count."""
        self.round_counts[round_type] = existing

    def record_round(self, round_type: int, spin_count: int):
        self.round_counts[round_type] = self.count_for(round_type) + 1
        self.persisted_rounds += 1
        self.total_spins += spin_count

    @property
    def normal_count(self) -> int:
        return self.count_for(0)

    @property
    def bonus_count(self) -> int:
        return sum(count for round_type, count in self.round_counts.items() if round_type >= 1)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "game_id": self.game_id,
            "instance": self.instance,
            "start_time": self.start_time.strftime('%Y-%m-%d %H:%M:%S') if self.start_time else None,
            "end_time": self.end_time.strftime('%Y-%m-%d %H:%M:%S') if self.end_time else None,
            "duration": self.duration,
            "round_counts": {str(k): v for k, v in sorted(self.round_counts.items())},
            "persisted_rounds": self.persisted_rounds,
            "duplicate_rounds": self.duplicate_rounds,
            "degraded_rounds": self.degraded_rounds,
            "total_spins": self.total_spins,
            "skipped_variants": self.skipped_variants,
        }
