"""Wiring of the modifier engine and the storage layer.

A host builds one ModkeeperRuntime at startup, forwards player joins,
leaves and actions to it, and calls ``runtime.scheduler.tick()`` from its
main loop.

Example:
    >>> runtime = build_runtime(registries)
    >>> runtime.start()
    >>> record = runtime.on_join(OnlinePlayer(uuid=uuid))
    >>> runtime.scheduler.tick()
    >>> runtime.on_leave(uuid).result()
    >>> runtime.stop()
"""

from __future__ import annotations

from concurrent.futures import Future
from dataclasses import dataclass
from uuid import UUID

from modkeeper.core.config import Settings, get_settings
from modkeeper.core.logging import configure_logging, get_logger, player_context
from modkeeper.engine.consumption import ConsumptionHandler
from modkeeper.engine.events import ItemConsumeEvent, SwapHandItemsEvent
from modkeeper.engine.expiry import ModifierExpiryTask
from modkeeper.engine.item_state import ItemStateManager
from modkeeper.engine.reconciler import EquipmentReconciler
from modkeeper.engine.scheduler import TickScheduler
from modkeeper.engine.stats import ReloadableIdentifier, StatManager
from modkeeper.engine.users import OnlinePlayer, UserManager
from modkeeper.models.enums import EquipmentSlot
from modkeeper.models.player import PlayerRecord
from modkeeper.models.registry import Registries
from modkeeper.storage.repository import StateRepository
from modkeeper.storage.worker import StorageWorker


logger = get_logger(__name__)


@dataclass
class ModkeeperRuntime:
    """Every long-lived component, wired together."""

    settings: Settings
    registries: Registries
    scheduler: TickScheduler
    user_manager: UserManager
    reloader: StatManager
    item_state: ItemStateManager
    reconciler: EquipmentReconciler
    consumption: ConsumptionHandler
    expiry: ModifierExpiryTask
    repository: StateRepository
    worker: StorageWorker

    def start(self) -> None:
        self.reconciler.start()
        self.expiry.start(self.scheduler)

    def stop(self) -> None:
        """Cancel scheduled tasks, drain the storage worker, close the pool."""
        self.reconciler.stop()
        self.expiry.stop()
        self.worker.shutdown()
        self.repository.pool.close()

    def on_join(self, player: OnlinePlayer) -> PlayerRecord:
        """Load a joining player's record and open their session.

        Blocks on storage; hosts call this from their login phase, not the
        simulation loop. Equip-sourced modifiers are derived from the held
        items right away and every stat and trait is reloaded.

        Raises:
            StorageError: If the record cannot be loaded. The player must not
                enter gameplay.
        """
        with player_context(player.uuid):
            record = self.repository.load_raw(player.uuid)
            self.user_manager.add_user(player, record)
            self.item_state.change_item_in_slot(
                record, player.main_hand, EquipmentSlot.HAND, reload=False
            )
            if self.settings.modifier.enable_off_hand:
                self.item_state.change_item_in_slot(
                    record, player.off_hand, EquipmentSlot.OFF_HAND, reload=False
                )
            self.reloader.reload_all(record, self._all_identifiers())
            logger.info("Player joined", name=player.name)
            return record

    def on_leave(self, uuid: UUID) -> Future[None] | None:
        """Close a session and save its record off-thread.

        Returns:
            The pending save, or None when the player had no session.
        """
        session = self.user_manager.remove_user(uuid)
        self.item_state.forget(uuid)
        if session is None:
            return None
        logger.info("Player left", player_uuid=str(uuid))
        return self.worker.save(session.record)

    def on_swap(self, event: SwapHandItemsEvent) -> set[ReloadableIdentifier]:
        return self.reconciler.on_swap(event)

    def on_consume(self, event: ItemConsumeEvent) -> set[ReloadableIdentifier]:
        return self.consumption.on_consume(event)

    def save_all(self) -> list[Future[None]]:
        """Queue a save of a snapshot of every connected player."""
        return [
            self.worker.save(session.record.snapshot())
            for session in self.user_manager.sessions()
        ]

    def _all_identifiers(self) -> list[ReloadableIdentifier]:
        return [*self.registries.stats, *self.registries.traits]


def build_runtime(
    registries: Registries,
    settings: Settings | None = None,
    scheduler: TickScheduler | None = None,
    repository: StateRepository | None = None,
) -> ModkeeperRuntime:
    """Wire the default components.

    Args:
        registries: Stat, trait and skill registries.
        settings: Settings to use; defaults to :func:`get_settings`.
        scheduler: Host scheduler; a fresh one is created when omitted.
        repository: Prebuilt repository; otherwise one is opened from
            ``settings.storage``.

    Returns:
        A runtime whose tasks are not started yet.
    """
    settings = settings or get_settings()
    configure_logging(level=settings.log_level, json_format=settings.log_json)

    scheduler = scheduler or TickScheduler()
    user_manager = repository.user_manager if repository else UserManager()
    reloader = StatManager()
    item_state = ItemStateManager(registries, reloader)
    if repository is None:
        repository = StateRepository.from_settings(settings.storage, registries, user_manager)

    return ModkeeperRuntime(
        settings=settings,
        registries=registries,
        scheduler=scheduler,
        user_manager=user_manager,
        reloader=reloader,
        item_state=item_state,
        reconciler=EquipmentReconciler(user_manager, item_state, settings.modifier, scheduler),
        consumption=ConsumptionHandler(user_manager, registries, reloader, settings.modifier),
        expiry=ModifierExpiryTask(user_manager, registries, reloader, settings.modifier),
        repository=repository,
        worker=StorageWorker(repository, settings.storage),
    )


__all__ = ["ModkeeperRuntime", "build_runtime"]
