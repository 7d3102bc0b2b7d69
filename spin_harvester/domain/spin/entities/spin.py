# spin_harvester/domain/spin/entities/spin.py
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Dict, Any, Optional


COLLECT_MARKER = "C"
TERMINAL_STATE = 1


def to_decimal(value: Any) -> Optional[Decimal]:
    """
    Convert a provider amount to Decimal.

    Amounts arrive as numbers or as strings that may contain thousands
    separators. Missing or unparseable values become None.
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        return Decimal(str(value).replace(",", ""))
    except (InvalidOperation, ValueError):
        return None


def to_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class FreeSpinBlock:
    """Bonus-mode metadata attached to the first spin of a bonus round."""
    declared_spin_count: Optional[int] = None
    declared_total_win: Optional[Decimal] = None

    @classmethod
    def from_raw(cls, raw: Any) -> Optional["FreeSpinBlock"]:
        if not isinstance(raw, dict):
            return None
        return cls(
            declared_spin_count=to_int(raw.get("ts")),
            declared_total_win=to_decimal(raw.get("aw")),
        )


@dataclass(frozen=True)
class Spin:
    """
    One wheel-spin outcome within a round.

    Built from a raw provider response of the form
    ``{"dt": {"si": {...}}, "err": null}``. The raw response is kept so
    that records can be persisted without losing provider fields.
    """
    state: Optional[int]
    next_state: Optional[int]
    parent_round_id: Optional[str]
    spin_id: Any
    bet_total: Optional[Decimal] = None
    total_win: Optional[Decimal] = None
    net_profit: Optional[Decimal] = None
    accumulated_win: Optional[Decimal] = None
    win_type_tag: Optional[str] = None
    free_spin_block: Optional[FreeSpinBlock] = None
    coin_size: Optional[Decimal] = None
    multiplier_level: Optional[Decimal] = None
    feature_buy: Any = None

    # Provider bookkeeping, excluded from identity comparisons
    balance_before: Optional[Decimal] = field(default=None, compare=False)
    balance_after: Optional[Decimal] = field(default=None, compare=False)
    balance_label: Any = field(default=None, compare=False)

    raw: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @staticmethod
    def extract_spin_info(raw: Any) -> Optional[Dict[str, Any]]:
        """Return the ``dt.si`` dictionary of a raw response, or None."""
        if not isinstance(raw, dict):
            return None
        dt = raw.get("dt")
        if not isinstance(dt, dict):
            return None
        si = dt.get("si")
        return si if isinstance(si, dict) else None

    @classmethod
    def from_raw(cls, raw: Dict[str, Any]) -> Optional["Spin"]:
        """
        Parse a raw provider response.

        Returns:
            Spin instance, or None when the response carries no spin info
        """
        si = cls.extract_spin_info(raw)
        if si is None:
            return None

        psid = si.get("psid")
        return cls(
            state=to_int(si.get("st")),
            next_state=to_int(si.get("nst")),
            parent_round_id=str(psid) if psid is not None else None,
            spin_id=si.get("sid"),
            bet_total=to_decimal(si.get("tb")),
            total_win=to_decimal(si.get("tw")),
            net_profit=to_decimal(si.get("np")),
            accumulated_win=to_decimal(si.get("aw")),
            win_type_tag=si.get("wt"),
            free_spin_block=FreeSpinBlock.from_raw(si.get("fs")),
            coin_size=to_decimal(si.get("cs")),
            multiplier_level=to_decimal(si.get("ml")),
            feature_buy=si.get("fb"),
            balance_before=to_decimal(si.get("blb")),
            balance_after=to_decimal(si.get("bl")),
            balance_label=si.get("blab"),
            raw=raw,
        )

    @property
    def is_collect(self) -> bool:
        return self.win_type_tag == COLLECT_MARKER
