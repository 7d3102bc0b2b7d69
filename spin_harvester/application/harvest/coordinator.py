# spin_harvester/application/harvest/coordinator.py
import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Dict, List, Any, Optional, Callable

from spin_harvester.application.harvest.harvest_session import HarvestSession
from spin_harvester.domain.events.event_dispatcher import EventDispatcher
from spin_harvester.domain.game.entities.game_definition import GameDefinition
from spin_harvester.infrastructure.concurrency.task_executor import TaskExecutor, ExecutionMode
from spin_harvester.infrastructure.config.settings import HarvestSettings
from spin_harvester.infrastructure.output.archive_store import ArchiveStore


STATUS_COMPLETED = "completed"
STATUS_SKIPPED = "skipped"
STATUS_FAILED = "failed"
STATUS_INCOMPLETE = "incomplete"


@dataclass
class GameHarvestResult:
    game_id: int
    status: str
    normal_count: int = 0
    bonus_count: int = 0
    errors: List[str] = field(default_factory=list)
    instances: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "game_id": self.game_id,
            "status": self.status,
            "normal_count": self.normal_count,
            "bonus_count": self.bonus_count,
            "errors": list(self.errors),
            "instances": list(self.instances),
        }


class HarvestCoordinator:
    """
    Schedules harvesting across games.

    At most ``concurrent_games`` games run at once; each game runs
    ``concurrent_per_game`` instances side by side. The coordinator owns the
    completion marker: it is checked before a game starts and rewritten from
    the archive line counts once every instance of the game succeeded and
    every declared bonus variant was harvested. Only games that declare no
    bonus options get a marker with zero bonus records.
    """
    def __init__(self, settings: HarvestSettings, store: ArchiveStore,
                 transport_factory: Callable[[GameDefinition], Any],
                 event_dispatcher: Optional[EventDispatcher] = None,
                 task_executor: Optional[TaskExecutor] = None):
        """
        Args:
            settings: Harvest limits
            store: Archive store shared by every instance
            transport_factory: Builds the transport used by one instance of a game
            event_dispatcher: Optional dispatcher handed to every session
            task_executor: Optional executor; defaults to one bounded by ``concurrent_games``
        """
        self.logger = logging.getLogger("application.harvest.coordinator")
        self.settings = settings
        self.store = store
        self.transport_factory = transport_factory
        self.event_dispatcher = event_dispatcher
        self.task_executor = task_executor or TaskExecutor(ExecutionMode.CONCURRENT, settings.concurrent_games)

    async def is_complete(self, game: GameDefinition) -> bool:
        """
        True when the completion marker already meets the targets.

        A zero bonus count only appears in markers of games that declare no
        bonus options, so those games only need the normal target.
        """
        marker = await self.store.read_completion_marker(game.game_id)
        if marker is None:
            return False
        normal, bonus = marker
        return (normal >= self.settings.normal_round_target
                and (bonus == 0 or bonus >= self.settings.bonus_round_target))

    async def run_game(self, game: GameDefinition) -> GameHarvestResult:
        """Harvest one game with ``concurrent_per_game`` instances."""
        if await self.is_complete(game):
            self.logger.info(f"Skipping completed game {game.label}")
            normal, bonus = await self.store.read_completion_marker(game.game_id)
            return GameHarvestResult(game.game_id, STATUS_SKIPPED, normal, bonus)

        self.logger.info(f"Harvesting {game.label} with {self.settings.concurrent_per_game} instance(s)")
        sessions = [
            HarvestSession(game, self.settings, self.transport_factory(game), self.store,
                           self.event_dispatcher, instance=i)
            for i in range(self.settings.concurrent_per_game)
        ]
        outcomes = await asyncio.gather(*(session.run() for session in sessions), return_exceptions=True)

        result = GameHarvestResult(game.game_id, STATUS_COMPLETED)
        for session, outcome in zip(sessions, outcomes):
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome
            if isinstance(outcome, Exception):
                self.logger.error(f"Harvest failed: {game.game_id} instance {session.instance}: {outcome}")
                result.errors.append(f"instance {session.instance}: {type(outcome).__name__}: {outcome}")
            result.instances.append(session.progress.to_dict())

        result.normal_count, result.bonus_count = await self.store.count_by_kind(game.game_id)
        if result.errors:
            result.status = STATUS_FAILED
            return result

        skipped = sum(session.progress.skipped_variants for session in sessions)
        if skipped:
            self.logger.warning(
                f"{game.game_id}: {skipped} bonus variant(s) not honoured, leaving game without completion marker"
            )
            result.status = STATUS_INCOMPLETE
            return result

        await self.store.write_completion_marker(game.game_id, result.normal_count, result.bonus_count)
        self.logger.info(
            f"Harvest complete: {game.game_id}, normal {result.normal_count}, bonus {result.bonus_count}"
        )
        return result

    async def run_single(self, catalog, key: str) -> Optional[GameHarvestResult]:
        """
        Harvest one catalog game looked up by id, name, English name or api slug.

        Returns:
            The game's result, or None when no game matches
        """
        game = catalog.find(key)
        if game is None:
            self.logger.error(f"No game matches '{key}'")
            return None
        return await self.run_game(game)

    async def run(self, games: List[GameDefinition]) -> List[GameHarvestResult]:
        """
        Harvest a batch of games. A failed game never stops the batch.

        Returns:
            One result per game, in input order
        """
        start_time = time.time()
        self.logger.info(f"Starting batch harvest of {len(games)} games "
                         f"(concurrent games: {self.settings.concurrent_games})")

        def report_progress(completed: int, total: int):
            self.logger.info(f"Games finished: {completed}/{total}")

        tasks = [lambda game=game: self.run_game(game) for game in games]
        outcomes = await self.task_executor.execute_with_progress(tasks, report_progress)

        results = []
        for game, outcome in zip(games, outcomes):
            if isinstance(outcome, Exception):
                results.append(GameHarvestResult(game.game_id, STATUS_FAILED,
                                                 errors=[f"{type(outcome).__name__}: {outcome}"]))
            else:
                results.append(outcome)

        failed = sum(1 for r in results if r.status == STATUS_FAILED)
        self.logger.info(f"Batch harvest finished in {time.time() - start_time:.2f} seconds "
                         f"({len(results) - failed} ok, {failed} failed)")
        return results
