# spin_harvester/infrastructure/transport/game_info.py
from decimal import Decimal, InvalidOperation
from typing import Dict, List, Any, Optional, Tuple

from spin_harvester.domain.game.entities.session_grant import BetParams, BonusOption, DEFAULT_WORK_KEY


DEFAULT_COIN_SIZE = "0.02"
DEFAULT_MULTIPLIER_LEVEL = "1"


def _smallest(values: Any, default: str) -> str:
    """Smallest entry of a numeric list, as a plain string."""
    if not isinstance(values, list) or not values:
        return default
    numbers = []
    for value in values:
        try:
            numbers.append(Decimal(str(value)))
        except (InvalidOperation, ValueError):
            continue
    if not numbers:
        return default
    smallest = min(numbers)
    # 0.30 -> "0.3", 2.0 -> "2"
    return format(smallest.normalize(), "f")


def parse_bonus_options(feature_buy: Any) -> List[BonusOption]:
    """
    Bonus variants from the ``fb`` block of the game info.

    ``fb.bm`` is either a list of options or a single scalar. An option's
    selector is its ``si`` value; options without one fall back to the
    provider's positional numbering starting at "2".
    """
    if not isinstance(feature_buy, dict) or not feature_buy.get("is"):
        return []

    bm = feature_buy.get("bm")
    if isinstance(bm, list):
        raw_options = bm
    elif bm is not None:
        raw_options = [{"si": bm}]
    else:
        raw_options = []

    options = []
    for index, raw in enumerate(raw_options):
        selector = raw.get("si") if isinstance(raw, dict) else None
        options.append(BonusOption(selector=str(selector) if selector else str(index + 2), raw=raw))
    return options


def parse_game_info(game_info: Dict[str, Any],
                    work_key: str = DEFAULT_WORK_KEY) -> Tuple[BetParams, bool, List[BonusOption]]:
    """
    Parse the ``dt`` block of a GameInfo response.

    Returns:
        Tuple of (bet_params, has_buy_feature, bonus_options). Bets use the
        smallest coin size and multiplier level the game offers; ``mxl``
        gives the line count.
    """
    try:
        lines = int(game_info.get("mxl") or 0)
    except (TypeError, ValueError):
        lines = 0

    bet_params = BetParams(
        coin_size=_smallest(game_info.get("cs"), DEFAULT_COIN_SIZE),
        multiplier_level=_smallest(game_info.get("ml"), DEFAULT_MULTIPLIER_LEVEL),
        work_key=work_key,
        lines=lines,
    )
    feature_buy: Optional[Dict[str, Any]] = game_info.get("fb")
    has_buy_feature = bool(isinstance(feature_buy, dict) and feature_buy.get("is"))
    return bet_params, has_buy_feature, parse_bonus_options(feature_buy)
