"""Periodic removal of expired temporary modifiers."""

from __future__ import annotations

from collections.abc import Callable

from modkeeper.core.config import ModifierSettings
from modkeeper.core.logging import get_logger
from modkeeper.engine.scheduler import ScheduledTask, TickScheduler
from modkeeper.engine.stats import ModifierReloader, ReloadableIdentifier
from modkeeper.engine.users import UserManager
from modkeeper.models.modifiers import now_millis
from modkeeper.models.player import PlayerRecord
from modkeeper.models.registry import Registries


logger = get_logger(__name__)


class ModifierExpiryTask:
    """Sweeps online records for expired modifiers and reloads their targets."""

    def __init__(
        self,
        user_manager: UserManager,
        registries: Registries,
        reloader: ModifierReloader,
        settings: ModifierSettings,
        clock: Callable[[], int] = now_millis,
    ) -> None:
        self.user_manager = user_manager
        self.registries = registries
        self.reloader = reloader
        self.settings = settings
        self._clock = clock
        self._task: ScheduledTask | None = None

    def start(self, scheduler: TickScheduler) -> None:
        if self._task is None:
            self._task = scheduler.schedule_repeating(
                self.run, self.settings.expiry_check_period, name="modifiers.expiry"
            )

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    def run(self) -> None:
        now = self._clock()
        for session in self.user_manager.sessions():
            self.sweep(session.record, now)

    def sweep(self, record: PlayerRecord, now: int | None = None) -> set[ReloadableIdentifier]:
        """Drop expired modifiers from one record.

        Returns:
            The stats and traits that were reloaded.
        """
        now = self._clock() if now is None else now
        affected: set[ReloadableIdentifier] = set()
        for modifier in record.stat_modifiers.pop_expired(now):
            stat = self.registries.stats.get_or_none(modifier.target)
            if stat is not None:
                affected.add(stat)
        for modifier in record.trait_modifiers.pop_expired(now):
            trait = self.registries.traits.get_or_none(modifier.target)
            if trait is not None:
                affected.add(trait)
        for identifier in affected:
            self.reloader.reload(record, identifier)
        if affected:
            logger.debug(
                "Expired modifiers removed",
                player_uuid=str(record.uuid),
                targets=sorted(identifier.id for identifier in affected),
            )
        return affected


__all__ = ["ModifierExpiryTask"]
