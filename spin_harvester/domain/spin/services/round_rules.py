# spin_harvester/domain/spin/services/round_rules.py
"""
Pure consistency rules shared by the live round client and the archive validator.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional, Sequence

from spin_harvester.domain.spin.entities.spin import Spin, FreeSpinBlock, TERMINAL_STATE


NET_PROFIT_TOLERANCE = Decimal("0.01")
FREE_SPIN_WIN_TOLERANCE = Decimal("0.1")


def is_round_complete(spin: Spin) -> bool:
    """True iff the spin reports the terminal next state."""
    return spin.next_state == TERMINAL_STATE


def check_net_profit(spin: Spin) -> bool:
    """
    Check ``net_profit == total_win - bet_total`` within tolerance.

    The check is skipped (returns True) when any operand is missing.
    """
    if spin.net_profit is None or spin.total_win is None or spin.bet_total is None:
        return True
    expected = spin.total_win - spin.bet_total
    return abs(expected - spin.net_profit) <= NET_PROFIT_TOLERANCE


def expected_net_profit(spin: Spin) -> Optional[Decimal]:
    if spin.total_win is None or spin.bet_total is None:
        return None
    return spin.total_win - spin.bet_total


def check_state_chain(spins: Sequence[Spin]) -> List[int]:
    """
    Verify ``spins[i].next_state == spins[i + 1].state``.

    Returns:
        Index i of every broken link i -> i+1. Links where either side is
        missing are not judged.
    """
    broken = []
    for i in range(len(spins) - 1):
        current, following = spins[i], spins[i + 1]
        if current.next_state is None or following.state is None:
            continue
        if current.next_state != following.state:
            broken.append(i)
    return broken


def aggregate_free_spin_win(spins: Sequence[Spin]) -> Decimal:
    """Sum of ``accumulated_win`` over spins where it is positive."""
    total = Decimal("0")
    for spin in spins:
        if spin.accumulated_win is not None and spin.accumulated_win > 0:
            total += spin.accumulated_win
    return total


def count_non_collect_spins(spins: Sequence[Spin]) -> int:
    return sum(1 for spin in spins if not spin.is_collect)


def free_spin_count_matches(spins: Sequence[Spin], block: FreeSpinBlock) -> bool:
    if block.declared_spin_count is None:
        return True
    return count_non_collect_spins(spins) == block.declared_spin_count


def free_spin_win_matches(spins: Sequence[Spin], block: FreeSpinBlock) -> bool:
    if block.declared_total_win is None:
        return True
    difference = block.declared_total_win - aggregate_free_spin_win(spins)
    return abs(difference) <= FREE_SPIN_WIN_TOLERANCE


def compute_multiplier(spins: Sequence[Spin], lines: int) -> float:
    """
    Win multiplier of a purchased round.

    ``total_win / (coin_size * multiplier_level * lines)`` of the last spin,
    rounded to 2 places. Returns 0 when the bet is not positive.
    """
    if not spins:
        return 0.0
    last = spins[-1]
    if last.coin_size is None or last.multiplier_level is None or last.total_win is None:
        return 0.0
    bet = last.coin_size * last.multiplier_level * Decimal(lines)
    if bet <= 0:
        return 0.0
    multiplier = (last.total_win / bet).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return float(multiplier)
