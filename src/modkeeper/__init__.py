"""modkeeper - item modifier lifecycle and player state persistence.

Tracks the stat and trait modifiers granted by held and consumed items,
keeps them in sync while players are online, and stores full player
progression in a prefixed relational schema.

Example:
    >>> from modkeeper import Registries, Registry, Stat, build_runtime
    >>>
    >>> registries = Registries(stats=Registry([Stat(id="core:strength")]))
    >>> runtime = build_runtime(registries)
    >>> runtime.start()
    >>> record = runtime.on_join(OnlinePlayer(uuid=player_uuid))
    >>> runtime.scheduler.tick()

Modules:
    core: Configuration, logging, and base exceptions.
    models: Pydantic V2 models for modifiers, items and player records.
    engine: Scheduler, equipment reconciler, consumption and expiry.
    storage: Connection pool, schema and StateRepository.
"""

from __future__ import annotations

# Core
from modkeeper.core.config import Settings, get_settings
from modkeeper.core.exceptions import ModkeeperError, StorageError
from modkeeper.core.logging import configure_logging, get_logger

# Engine
from modkeeper.engine import (
    ConsumptionHandler,
    EquipmentReconciler,
    ItemConsumeEvent,
    ItemStateManager,
    ModifierExpiryTask,
    OnlinePlayer,
    StatManager,
    SwapHandItemsEvent,
    TickScheduler,
    UserManager,
)

# Models
from modkeeper.models import (
    ItemStack,
    PlayerRecord,
    Registries,
    Registry,
    Skill,
    Stat,
    StatModifier,
    Trait,
    TraitModifier,
    UserState,
)
from modkeeper.runtime import ModkeeperRuntime, build_runtime

# Storage
from modkeeper.storage import ConnectionPool, StateRepository, StorageWorker


__version__ = "0.1.0"
__all__ = [
    "__version__",
    # Core
    "ModkeeperError",
    "StorageError",
    "Settings",
    "get_settings",
    "configure_logging",
    "get_logger",
    # Engine
    "ConsumptionHandler",
    "EquipmentReconciler",
    "ItemConsumeEvent",
    "ItemStateManager",
    "ModifierExpiryTask",
    "OnlinePlayer",
    "StatManager",
    "SwapHandItemsEvent",
    "TickScheduler",
    "UserManager",
    # Models
    "ItemStack",
    "PlayerRecord",
    "Registries",
    "Registry",
    "Skill",
    "Stat",
    "StatModifier",
    "Trait",
    "TraitModifier",
    "UserState",
    # Runtime
    "ModkeeperRuntime",
    "build_runtime",
    # Storage
    "ConnectionPool",
    "StateRepository",
    "StorageWorker",
]
