# spin_harvester/application/harvest/round_client.py
import logging
from dataclasses import dataclass, replace
from typing import Dict, List, Any, Optional, Callable, Awaitable

from spin_harvester.domain.game.entities.session_grant import BetParams
from spin_harvester.domain.spin.entities.round import Round, NORMAL_ROUND_TYPE
from spin_harvester.domain.spin.entities.spin import Spin
from spin_harvester.domain.spin.errors import (
    AUTHORIZATION_EXPIRED_CODES, AuthorizationExpired, MalformedResponse,
    RemoteRejected, RoundIdentityMismatch, RoundTooLong
)
from spin_harvester.domain.spin.services.round_rules import is_round_complete


PerformSpin = Callable[[str, Any, BetParams, Optional[str]], Awaitable[Dict[str, Any]]]

DEFAULT_MAX_SPINS_PER_ROUND = 500


@dataclass(frozen=True)
class RoundRequest:
    """Initial request descriptor of one round."""
    session_token: str
    bet_params: BetParams
    chaining_id: Any = 0
    bonus_selector: Optional[str] = None
    round_type: int = NORMAL_ROUND_TYPE


def check_response_error(response: Any):
    """
    Raise for an explicit error block in a raw response.

    Raises:
        MalformedResponse: The response is empty
        AuthorizationExpired: Error code 1200 or 1201
        RemoteRejected: Any other error code
    """
    if not response or not isinstance(response, dict):
        raise MalformedResponse("Empty response")
    error = response.get("err")
    if error:
        code = str(error.get("cd")) if isinstance(error, dict) else str(error)
        message = error.get("msg") if isinstance(error, dict) else None
        if code in AUTHORIZATION_EXPIRED_CODES:
            raise AuthorizationExpired(code, message or "Token expired")
        raise RemoteRejected(code, message)


class RoundClient:
    """
    Drives one round against the spin service.

    Requests are strictly sequential: each one chains to the ``sid`` of the
    previous response. The client never retries and never persists; every
    failure surfaces to the caller.
    """
    def __init__(self, perform_spin: PerformSpin, max_spins_per_round: int = DEFAULT_MAX_SPINS_PER_ROUND,
                 logger_name: str = "application.harvest.round_client"):
        """
        Args:
            perform_spin: Coroutine issuing one spin request, raising TransportError on failure
            max_spins_per_round: Spins after which an open round is abandoned
        """
        self.logger = logging.getLogger(logger_name)
        self.perform_spin = perform_spin
        self.max_spins_per_round = max_spins_per_round

    async def run_round(self, request: RoundRequest) -> Round:
        """
        Run a round until a spin reports the terminal next state.

        Args:
            request: Token, bet parameters, starting chaining id and optional bonus selector

        Returns:
            The completed Round

        Raises:
            TransportError: The remote call failed (MalformedResponse for empty or spinless bodies)
            RemoteRejected: The service returned an error code (AuthorizationExpired for 1200/1201)
            RoundIdentityMismatch: The parent round id changed mid-round
            RoundTooLong: The round stayed open past ``max_spins_per_round`` spins
        """
        spins: List[Spin] = []
        parent_round_id: Optional[str] = None
        current = request

        while True:
            if len(spins) >= self.max_spins_per_round:
                raise RoundTooLong(len(spins), self.max_spins_per_round)

            response = await self.perform_spin(
                current.session_token, current.chaining_id, current.bet_params, current.bonus_selector
            )
            check_response_error(response)

            spin = Spin.from_raw(response)
            if spin is None:
                raise MalformedResponse("Spin info missing")

            if not spins:
                parent_round_id = spin.parent_round_id
            elif spin.parent_round_id != parent_round_id:
                raise RoundIdentityMismatch(parent_round_id, spin.parent_round_id, len(spins))

            spins.append(spin)

            if is_round_complete(spin):
                self.logger.debug(f"Round {parent_round_id} complete after {len(spins)} spins")
                return Round(spins=tuple(spins), round_type=request.round_type)

            # 购买参数只在回合第一次请求中携带
            current = replace(current, chaining_id=spin.spin_id, bonus_selector=None)
