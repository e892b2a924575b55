"""Modifier lifecycle engine.

Submodules:
    scheduler: Host-driven tick scheduler
    users: Active sessions and online player handles
    stats: Effective value reloading
    item_state: Keyed last-seen item store and slot diff
    reconciler: Periodic held-item polling and hand swaps
    consumption: Consumed-item modifier merging
    expiry: Expired modifier sweeps
"""

from __future__ import annotations

from modkeeper.engine.consumption import ConsumptionHandler, consumed_name
from modkeeper.engine.events import ItemConsumeEvent, PlayerEvent, SwapHandItemsEvent
from modkeeper.engine.expiry import ModifierExpiryTask
from modkeeper.engine.item_state import ItemStateManager, SlotDiffer, slot_modifier_name
from modkeeper.engine.reconciler import EquipmentReconciler
from modkeeper.engine.scheduler import ScheduledTask, TickScheduler
from modkeeper.engine.stats import (
    ModifierReloader,
    ReloadableIdentifier,
    StatManager,
    combine_modifiers,
)
from modkeeper.engine.users import OnlinePlayer, Session, UserManager


__all__ = [
    "ConsumptionHandler",
    "consumed_name",
    "ItemConsumeEvent",
    "PlayerEvent",
    "SwapHandItemsEvent",
    "ModifierExpiryTask",
    "ItemStateManager",
    "SlotDiffer",
    "slot_modifier_name",
    "EquipmentReconciler",
    "ScheduledTask",
    "TickScheduler",
    "ModifierReloader",
    "ReloadableIdentifier",
    "StatManager",
    "combine_modifiers",
    "OnlinePlayer",
    "Session",
    "UserManager",
]
