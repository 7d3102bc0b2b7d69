# spin_harvester/infrastructure/transport/pg_transport.py
import logging
import secrets
from typing import Dict, Any, Optional
from urllib.parse import urlencode

import httpx

from spin_harvester.domain.game.entities.game_definition import GameDefinition
from spin_harvester.domain.game.entities.session_grant import BetParams, SessionGrant
from spin_harvester.domain.spin.errors import TransportError, MalformedResponse, SessionAcquisitionError
from spin_harvester.infrastructure.config.settings import TransportSettings
from spin_harvester.infrastructure.transport.game_info import parse_game_info


FORM_HEADERS = {
    "accept": "*/*",
    "content-type": "application/x-www-form-urlencoded",
}


def create_client(settings: TransportSettings, transport: Optional[httpx.AsyncBaseTransport] = None) -> httpx.AsyncClient:
    """Shared AsyncClient for every game of a run."""
    return httpx.AsyncClient(
        base_url=settings.base_url,
        timeout=settings.timeout_seconds,
        headers=dict(settings.headers),
        transport=transport,
    )


def trace_id() -> str:
    return secrets.token_hex(4)


class PgTransport:
    """
    HTTP calls of the spin service for one game.

    Only transport-level problems are handled here: connection errors,
    timeouts, non-200 statuses and bodies that are not JSON objects become
    TransportError. Spin responses are returned raw; interpreting their
    ``err`` block belongs to the round client.
    """
    def __init__(self, client: httpx.AsyncClient, game: GameDefinition, settings: TransportSettings):
        self.logger = logging.getLogger("infrastructure.transport")
        self.client = client
        self.game = game
        self.settings = settings

    async def acquire_session(self, rtp_control: Optional[int] = None) -> SessionGrant:
        """
        Obtain a fresh token and the game's bet parameters.

        Raises:
            SessionAcquisitionError: Any step failed
        """
        game_id = self.game.game_id
        try:
            token = await self._verify_session()
            if rtp_control is not None:
                await self._set_rtp_control(rtp_control)
            game_info = await self._get_game_info(token)
        except TransportError as e:
            raise SessionAcquisitionError(game_id, str(e)) from e

        bet_params, has_buy_feature, bonus_options = parse_game_info(game_info, self.settings.work_key)
        self.logger.debug(
            f"Session acquired for {game_id}: lines={bet_params.lines}, cs={bet_params.coin_size}, "
            f"ml={bet_params.multiplier_level}, bonus options={len(bonus_options)}"
        )
        return SessionGrant(
            token=token,
            bet_params=bet_params,
            chaining_seed=0,
            has_buy_feature=has_buy_feature,
            bonus_options=bonus_options,
            game_info=game_info,
        )

    async def perform_spin(self, session_token: str, chaining_id: Any, bet_params: BetParams,
                           bonus_selector: Optional[str] = None) -> Dict[str, Any]:
        """
        Issue one spin request.

        Returns:
            The raw response object

        Raises:
            TransportError: Network failure, timeout or non-200 status
            MalformedResponse: The body is empty or not a JSON object
        """
        form = {
            "id": chaining_id,
            "cs": bet_params.coin_size,
            "ml": bet_params.multiplier_level,
            "wk": bet_params.work_key,
            "btt": 2,
            "atk": session_token,
            "pf": 2,
        }
        if bonus_selector:
            form["fb"] = bonus_selector
        return await self._post_form(f"/game-api/{self.game.api}/v2/Spin", form)

    async def _verify_session(self) -> str:
        form = {"btt": 2, "vc": 2, "pf": 2, "l": "en", "gi": self.game.game_id, "tk": "null"}
        if self.settings.operator_token:
            form["otk"] = self.settings.operator_token
        data = await self._post_form("/web-api/auth/session/v2/verifySession", form)
        dt = data.get("dt")
        token = dt.get("tk") if isinstance(dt, dict) else None
        if not token or not str(token).strip():
            raise TransportError("Token missing in response")
        return str(token)

    async def _get_game_info(self, token: str) -> Dict[str, Any]:
        form = {"btt": 2, "atk": token, "pf": 2, "vc": 0}
        data = await self._post_form(f"/game-api/{self.game.api}/v2/GameInfo/Get", form)
        game_info = data.get("dt")
        if not isinstance(game_info, dict):
            raise TransportError("GameInfo missing in response")
        return game_info

    async def _set_rtp_control(self, value: int):
        """Ask a test environment to steer RTP; failures never block the session."""
        payload = {"GameID": f"pg_{self.game.game_id}", "ControlRTP": value}
        try:
            response = await self.client.post(self.settings.rtp_path, json=payload)
            body = response.json()
            if response.status_code != 200 or body.get("code") != 0:
                self.logger.warning(f"RTP control rejected for {self.game.game_id}: {body}")
        except (httpx.HTTPError, ValueError, AttributeError) as e:
            self.logger.warning(f"RTP control failed for {self.game.game_id}: {e}")

    async def _post_form(self, path: str, form: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{path}?traceId={trace_id()}"
        try:
            response = await self.client.post(url, content=urlencode(form), headers=FORM_HEADERS)
        except httpx.TimeoutException as e:
            raise TransportError(f"Timeout calling {path}: {e}") from e
        except httpx.HTTPError as e:
            raise TransportError(f"Request to {path} failed: {e}") from e

        self.logger.debug(f"POST {path} -> {response.status_code} ({len(response.content)} bytes)")
        if response.status_code != 200:
            raise TransportError(f"HTTP {response.status_code}", status_code=response.status_code)

        if not response.content:
            raise MalformedResponse("Empty response", status_code=response.status_code)
        try:
            data = response.json()
        except ValueError as e:
            raise MalformedResponse(f"Response is not JSON: {e}", status_code=response.status_code) from e
        if not isinstance(data, dict):
            raise MalformedResponse("Response is not a JSON object", status_code=response.status_code)
        return data
