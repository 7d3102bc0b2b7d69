# spin_harvester/domain/game/entities/session_grant.py
from dataclasses import dataclass, field
from typing import Dict, List, Any, Optional


DEFAULT_WORK_KEY = "0_C"


@dataclass(frozen=True)
class BetParams:
    """Bet-size parameters sent with every spin request."""
    coin_size: str
    multiplier_level: str
    work_key: str = DEFAULT_WORK_KEY
    lines: int = 0


@dataclass(frozen=True)
class BonusOption:
    """A feature-buy variant the game offers; ``selector`` is sent as ``fb``."""
    selector: str
    raw: Any = None


@dataclass
class SessionGrant:
    """Result of session acquisition."""
    token: str
    bet_params: BetParams
    chaining_seed: Any = 0
    has_buy_feature: bool = False
    bonus_options: List[BonusOption] = field(default_factory=list)
    game_info: Optional[Dict[str, Any]] = None

    @property
    def lines(self) -> int:
        return self.bet_params.lines
