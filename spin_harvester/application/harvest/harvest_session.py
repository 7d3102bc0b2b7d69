# spin_harvester/application/harvest/harvest_session.py
import asyncio
import json
import logging
from enum import Enum, auto
from typing import Any, Optional, Set

from spin_harvester.application.harvest.round_client import RoundClient, RoundRequest
from spin_harvester.domain.events.event_dispatcher import EventDispatcher
from spin_harvester.domain.events.harvest_events import HarvestEvent, HarvestEventType
from spin_harvester.domain.game.entities.game_definition import GameDefinition
from spin_harvester.domain.game.entities.session_grant import SessionGrant
from spin_harvester.domain.session.entities.harvest_progress import HarvestProgress
from spin_harvester.domain.spin.entities.round import Round, SessionRecord, NORMAL_ROUND_TYPE
from spin_harvester.domain.spin.errors import (
    AuthorizationExpired, HarvestAborted, RemoteRejected, RoundIdentityMismatch,
    SessionAcquisitionError, TransportError
)
from spin_harvester.domain.spin.services.content_hash import compute_content_hash
from spin_harvester.domain.spin.services.round_rules import compute_multiplier
from spin_harvester.infrastructure.config.settings import HarvestSettings
from spin_harvester.infrastructure.output.archive_store import ArchiveStore


# Failures after which the session is re-initialized instead of giving up
RECOVERABLE_ERRORS = (RoundIdentityMismatch, TransportError, RemoteRejected)


class SessionState(Enum):
    UNINITIALIZED = auto()
    READY = auto()
    HARVESTING = auto()
    DEGRADED = auto()
    DONE = auto()


class HarvestSession:
    """
    One harvesting instance for one game.

    Runs rounds until the normal-round target and every bonus variant's
    target are met, deduplicating by content hash and appending one
    Session Record per new round. Any protocol or transport failure
    degrades the session: the partial round is dropped, a fresh session is
    acquired and the chaining id returns to the session seed.
    """
    def __init__(self, game: GameDefinition, settings: HarvestSettings, transport,
                 store: ArchiveStore, event_dispatcher: Optional[EventDispatcher] = None,
                 instance: int = 0):
        """
        Args:
            game: Game to harvest
            settings: Targets, retry policy and delays
            transport: Provides ``acquire_session(rtp_control)`` and ``perform_spin(...)``
            store: Archive store the records are appended to
            event_dispatcher: Optional dispatcher for lifecycle events
            instance: Index of this instance among the game's concurrent instances
        """
        self.logger = logging.getLogger(f"application.harvest.session.{game.game_id}.{instance}")
        self.game = game
        self.settings = settings
        self.transport = transport
        self.store = store
        self.event_dispatcher = event_dispatcher
        self.instance = instance

        self.round_client = RoundClient(
            transport.perform_spin,
            max_spins_per_round=settings.max_spins_per_round,
            logger_name=f"application.harvest.round_client.{game.game_id}.{instance}"
        )

        self.state = SessionState.UNINITIALIZED
        self.grant: Optional[SessionGrant] = None
        self.chaining_id: Any = 0
        self.progress = HarvestProgress(game_id=str(game.game_id), instance=instance)
        self._game_info_saved = False

    async def initialize(self):
        """
        Acquire a session, retrying ``retry_attempts`` times.

        Raises:
            SessionAcquisitionError: Every attempt failed
        """
        last_error: Optional[SessionAcquisitionError] = None
        for attempt in range(1, self.settings.retry_attempts + 1):
            try:
                self.grant = await self.transport.acquire_session(self.settings.rtp_control)
                break
            except SessionAcquisitionError as e:
                last_error = e
                self.logger.warning(
                    f"Session acquisition attempt {attempt}/{self.settings.retry_attempts} failed: {e.message}"
                )
                if attempt < self.settings.retry_attempts:
                    await asyncio.sleep(self.settings.retry_delay)
        else:
            raise last_error

        self.chaining_id = self.grant.chaining_seed
        self.state = SessionState.READY

        if not self._game_info_saved and self.grant.game_info is not None:
            await self.store.write_game_info(self.game.game_id, self.grant.game_info)
            self._game_info_saved = True

        self.logger.debug(f"Session ready (bonus options: {len(self.grant.bonus_options)})")
        self._publish(HarvestEventType.SESSION_INITIALIZED)

    async def run(self) -> HarvestProgress:
        """
        Harvest normal rounds, then each bonus variant in declared order.

        Returns:
            Final progress of this instance

        Raises:
            SessionAcquisitionError: A (re-)initialization exhausted its attempts
            HarvestAborted: Too many consecutive degraded rounds
        """
        if self.state == SessionState.UNINITIALIZED:
            await self.initialize()

        self.progress.start()
        self.logger.info(f"Harvesting {self.game.label}")

        await self._harvest_round_type(NORMAL_ROUND_TYPE, None, self.settings.normal_round_target)

        options = self.grant.bonus_options if self.grant.has_buy_feature else []
        if not options:
            self.logger.info(f"{self.game.game_id}: no bonus options declared, skipping bonus harvest")
            self._publish(HarvestEventType.VARIANT_SKIPPED)

        for index, option in enumerate(options):
            round_type = index + 1
            self.chaining_id = self.grant.chaining_seed
            await self._harvest_round_type(round_type, option.selector, self.settings.bonus_round_target)

        self.state = SessionState.DONE
        self.progress.finish()
        self.logger.info(
            f"Harvest finished for {self.game.game_id}: normal={self.progress.normal_count}, "
            f"bonus={self.progress.bonus_count}, duplicates={self.progress.duplicate_rounds}, "
            f"degraded={self.progress.degraded_rounds}"
        )
        self._publish(HarvestEventType.HARVEST_COMPLETED, data=self.progress.to_dict())
        return self.progress

    async def _harvest_round_type(self, round_type: int, bonus_selector: Optional[str], target: int):
        path = self.store.spin_path(self.game.game_id, round_type)
        self.progress.resume(round_type, await self.store.count_lines(path))

        seen_hashes: Set[str] = set()
        consecutive_failures = 0
        label = "NORMAL" if round_type == NORMAL_ROUND_TYPE else f"BONUS {round_type}"

        while self.progress.count_for(round_type) < target:
            self.state = SessionState.HARVESTING
            request = RoundRequest(
                session_token=self.grant.token,
                bet_params=self.grant.bet_params,
                chaining_id=self.chaining_id,
                bonus_selector=bonus_selector,
                round_type=round_type,
            )
            try:
                completed = await self.round_client.run_round(request)
            except RECOVERABLE_ERRORS as e:
                consecutive_failures += 1
                await self._degrade(e, consecutive_failures, round_type)
                continue

            consecutive_failures = 0
            self.state = SessionState.READY
            self.chaining_id = completed.next_chaining_id

            if bonus_selector and not completed.first_spin.feature_buy:
                self.logger.warning(
                    f"{self.game.game_id}: bonus purchase '{bonus_selector}' not honoured, "
                    f"stopping variant {round_type}"
                )
                self.progress.skipped_variants += 1
                self._publish(HarvestEventType.VARIANT_SKIPPED, round_type, {"selector": bonus_selector})
                return

            record = self._build_record(completed)
            if record.content_hash in seen_hashes:
                self.progress.duplicate_rounds += 1
                self.logger.debug(f"Discarding duplicate round {record.content_hash}")
                self._publish(HarvestEventType.DUPLICATE_DISCARDED, round_type,
                              {"content_hash": record.content_hash})
                continue
            seen_hashes.add(record.content_hash)

            line = json.dumps(record.to_dict(), ensure_ascii=False, separators=(",", ":"))
            await self.store.append_line(path, line)
            self.progress.record_round(round_type, len(completed))
            self._publish(HarvestEventType.ROUND_PERSISTED, round_type,
                          {"content_hash": record.content_hash, "spins": len(completed)})

            count = self.progress.count_for(round_type)
            if count % self.settings.log_interval == 0:
                self.logger.info(f"Progress[{label}]: {self.game.game_id} -> {count}/{target}")

            if self.settings.inter_round_delay_ms > 0:
                await asyncio.sleep(self.settings.inter_round_delay)

        self.logger.info(f"{label} harvest complete for {self.game.game_id}: "
                         f"{self.progress.count_for(round_type)} records")

    async def _degrade(self, error: Exception, consecutive_failures: int, round_type: int):
        self.state = SessionState.DEGRADED
        self.progress.degraded_rounds += 1
        self.logger.warning(
            f"Round failed ({type(error).__name__}: {error}); "
            f"re-initializing [{consecutive_failures}/{self.settings.retry_attempts}]"
        )
        self._publish(HarvestEventType.SESSION_DEGRADED, round_type,
                      {"error": type(error).__name__, "message": str(error)})

        if consecutive_failures >= self.settings.retry_attempts:
            raise HarvestAborted(
                f"{self.game.game_id}: {consecutive_failures} consecutive failed rounds, last error: {error}"
            ) from error

        # An expired token needs a new session, not a pause
        if not isinstance(error, AuthorizationExpired):
            await asyncio.sleep(self.settings.retry_delay)
        await self.initialize()

    def _build_record(self, completed: Round) -> SessionRecord:
        multiplier = None
        if completed.round_type != NORMAL_ROUND_TYPE:
            multiplier = compute_multiplier(completed.spins, self.grant.lines)
        return SessionRecord(
            content_hash=compute_content_hash(completed.spins),
            round_type=completed.round_type,
            spins=completed.raw_spins,
            multiplier=multiplier,
        )

    def _publish(self, event_type: HarvestEventType, round_type: int = NORMAL_ROUND_TYPE, data=None):
        if self.event_dispatcher is None:
            return
        self.event_dispatcher.dispatch(HarvestEvent(
            type=event_type,
            data=dict(data) if data else None,
            game_id=str(self.game.game_id),
            instance=self.instance,
            round_type=round_type,
        ))
