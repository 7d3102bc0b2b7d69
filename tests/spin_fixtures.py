# tests/spin_fixtures.py
"""Builders for raw spin responses, archive lines and a scripted transport."""
import json
import os
from typing import Dict, List, Any, Optional

from spin_harvester.domain.game.entities.game_definition import GameDefinition
from spin_harvester.domain.game.entities.session_grant import BetParams, BonusOption, SessionGrant
from spin_harvester.domain.spin.errors import SessionAcquisitionError
from spin_harvester.domain.spin.services.content_hash import compute_content_hash


GAME = GameDefinition(game_id=126, name="Fortune Tiger", api="fortune-tiger", name_en="Fortune Tiger")


def make_spin_info(st=1, nst=1, psid="1000", sid=1, tb=2.0, tw=0.0, np=None, aw=None,
                   wt=None, fs=None, fb=None, **extra) -> Dict[str, Any]:
    info = {
        "st": st,
        "nst": nst,
        "psid": psid,
        "sid": sid,
        "tb": tb,
        "tw": tw,
        "np": round(tw - tb, 2) if np is None else np,
        "aw": tw if aw is None else aw,
        "cs": 0.02,
        "ml": 1,
        "bl": 1000.0,
        "blab": 1002.0,
        "blb": 1002.0,
    }
    if wt is not None:
        info["wt"] = wt
    if fs is not None:
        info["fs"] = fs
    if fb is not None:
        info["fb"] = fb
    info.update(extra)
    return info


def make_response(**kwargs) -> Dict[str, Any]:
    return {"dt": {"si": make_spin_info(**kwargs)}, "err": None}


def make_round(psid="1000", first_sid=1, tw=0.0, spins=2) -> List[Dict[str, Any]]:
    """A valid normal round: states 1 -> 2 -> ... -> 1."""
    responses = []
    for i in range(spins):
        state = 1 if i == 0 else i + 1
        next_state = 1 if i == spins - 1 else i + 2
        win = tw if i == 0 else 0.0
        responses.append(make_response(
            st=state, nst=next_state, psid=psid, sid=first_sid + i,
            tb=2.0 if i == 0 else 0.0, tw=win, aw=tw,
        ))
    return responses


def make_bonus_round(psid="2000", first_sid=1, collect=True, fb=2,
                     free_spins=3, win_per_spin=1.5) -> List[Dict[str, Any]]:
    """A purchased round: a trigger spin declaring the block, free spins, then the collect spin."""
    total = round(free_spins * win_per_spin, 2)
    responses = [make_response(
        st=1, nst=22, psid=psid, sid=first_sid, tb=100.0, tw=0.0, aw=0.0, fb=fb,
        fs={"ts": free_spins + 1, "aw": total},
    )]
    accumulated = 0.0
    for i in range(free_spins):
        accumulated = round(accumulated + win_per_spin, 2)
        responses.append(make_response(
            st=22, nst=22 if i < free_spins - 1 else 21, psid=psid, sid=first_sid + 1 + i,
            tb=0.0, tw=win_per_spin, aw=win_per_spin,
        ))
    responses.append(make_response(
        st=21, nst=1, psid=psid, sid=first_sid + 1 + free_spins,
        tb=0.0, tw=0.0, aw=0.0, wt="C" if collect else "N",
    ))
    return responses


def make_record_line(responses: List[Dict[str, Any]], round_type: int = 0,
                     multiplier: Optional[float] = None, **overrides) -> str:
    record = {"contentHash": compute_content_hash(responses), "roundType": round_type}
    if multiplier is not None:
        record["multiplier"] = multiplier
    record["spins"] = responses
    record.update(overrides)
    return json.dumps(record)


def write_archive(base_dir: str, game: str, round_type: int, lines: List[str]) -> str:
    game_dir = os.path.join(base_dir, str(game))
    os.makedirs(game_dir, exist_ok=True)
    path = os.path.join(game_dir, f"Spin.{round_type}.jsonl")
    with open(path, "w", encoding="utf-8") as f:
        f.write("".join(line + "\n" for line in lines))
    return path


def read_lines(path: str) -> List[str]:
    if not os.path.exists(path):
        return []
    with open(path, "r", encoding="utf-8") as f:
        return [line for line in f.read().split("\n") if line.strip()]


def make_grant(token="token-1", bonus_selectors=(), lines=20) -> SessionGrant:
    return SessionGrant(
        token=token,
        bet_params=BetParams(coin_size="0.02", multiplier_level="1", work_key="0_C", lines=lines),
        chaining_seed=0,
        has_buy_feature=bool(bonus_selectors),
        bonus_options=[BonusOption(selector=s) for s in bonus_selectors],
        game_info={"mxl": lines},
    )


class ScriptedTransport:
    """
    Plays back a script of spin responses.

    ``script`` items are raw responses or exceptions; an exception is raised
    in place of a response. ``grants`` are handed out by successive
    acquire_session calls (the last one repeats); exceptions are raised.
    """
    def __init__(self, script: List[Any], grants: Optional[List[Any]] = None):
        self.script = list(script)
        self.grants = list(grants) if grants else [make_grant()]
        self.spin_calls: List[Dict[str, Any]] = []
        self.acquire_calls = 0

    async def acquire_session(self, rtp_control=None) -> SessionGrant:
        index = min(self.acquire_calls, len(self.grants) - 1)
        self.acquire_calls += 1
        grant = self.grants[index]
        if isinstance(grant, Exception):
            raise grant
        return grant

    async def perform_spin(self, session_token, chaining_id, bet_params, bonus_selector=None):
        self.spin_calls.append({
            "token": session_token,
            "chaining_id": chaining_id,
            "bonus_selector": bonus_selector,
        })
        if not self.script:
            raise AssertionError("spin script exhausted")
        item = self.script.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


def failing_acquisition(message="unreachable") -> SessionAcquisitionError:
    return SessionAcquisitionError(GAME.game_id, message)
