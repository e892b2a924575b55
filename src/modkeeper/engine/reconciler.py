"""Periodic held-item reconciliation and hand-swap handling.

The reconciler owns no modifier logic. It drives the polling cadence and
picks the slot; the slot differ decides what changed and the reloader
recomputes values.

Example:
    >>> scheduler = TickScheduler()
    >>> reconciler = EquipmentReconciler(users, differ, settings.modifier, scheduler)
    >>> reconciler.start()
    >>> scheduler.run_ticks(5)
"""

from __future__ import annotations

from modkeeper.core.config import ModifierSettings
from modkeeper.core.logging import get_logger
from modkeeper.engine.events import SwapHandItemsEvent
from modkeeper.engine.item_state import SlotDiffer
from modkeeper.engine.scheduler import ScheduledTask, TickScheduler
from modkeeper.engine.stats import ReloadableIdentifier
from modkeeper.engine.users import UserManager
from modkeeper.models.enums import EquipmentSlot


logger = get_logger(__name__)


class EquipmentReconciler:
    """Keeps equip-sourced modifiers in sync with what players hold.

    Attributes:
        user_manager: Source of the connected sessions.
        differ: Slot differ applying item changes to a record.
        settings: Modifier settings (poll period, off-hand toggle).
        scheduler: Host-owned scheduler the poll tasks are registered with.
    """

    def __init__(
        self,
        user_manager: UserManager,
        differ: SlotDiffer,
        settings: ModifierSettings,
        scheduler: TickScheduler,
    ) -> None:
        self.user_manager = user_manager
        self.differ = differ
        self.settings = settings
        self.scheduler = scheduler
        self._tasks: list[ScheduledTask] = []

    @property
    def running(self) -> bool:
        return bool(self._tasks)

    def start(self) -> None:
        """Register the main-hand poll, and the off-hand poll when enabled."""
        if self._tasks:
            return
        period = self.settings.item_check_period
        self._tasks.append(
            self.scheduler.schedule_repeating(
                self.poll_main_hand, period, name="equipment.main_hand"
            )
        )
        if self.settings.enable_off_hand:
            self._tasks.append(
                self.scheduler.schedule_repeating(
                    self.poll_off_hand, period, name="equipment.off_hand"
                )
            )
        logger.info(
            "Equipment reconciler started",
            period=period,
            off_hand=self.settings.enable_off_hand,
        )

    def stop(self) -> None:
        for task in self._tasks:
            task.cancel()
        self._tasks.clear()

    def poll_main_hand(self) -> None:
        self._poll(EquipmentSlot.HAND)

    def poll_off_hand(self) -> None:
        if not self.settings.enable_off_hand:
            return
        self._poll(EquipmentSlot.OFF_HAND)

    def _poll(self, slot: EquipmentSlot) -> None:
        for session in self.user_manager.sessions():
            item = session.player.get_item(slot)
            self.differ.change_item_in_slot(session.record, item, slot)

    def on_swap(self, event: SwapHandItemsEvent) -> set[ReloadableIdentifier]:
        """Re-diff both hands after a swap and reload the union once.

        Returns:
            The identifiers that were reloaded; empty when swap handling is
            disabled, the event was cancelled, or the player has no session.
        """
        if not self.settings.enable_off_hand or event.cancelled:
            return set()
        record = self.user_manager.get_user(event.player.uuid)
        if record is None:
            return set()

        changed = self.differ.change_item_in_slot(
            record, event.off_hand_item, EquipmentSlot.OFF_HAND, reload=False
        )
        changed |= self.differ.change_item_in_slot(
            record, event.main_hand_item, EquipmentSlot.HAND, reload=False
        )
        self.differ.reload_identifiers(record, changed)
        return changed


__all__ = ["EquipmentReconciler"]
