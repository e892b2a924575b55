"""Pydantic V2 models for modkeeper.

Submodules:
    enums: ModifierType, Operation, EquipmentSlot, ActionBarType, ModifierSource
    registry: Namespaced identifiers and stat/trait/skill registries
    modifiers: Temporal modifiers, multipliers, and the modifier cache
    items: Item stacks and the item metadata resolver
    player: PlayerRecord and UserState

Example:
    >>> from modkeeper.models import PlayerRecord, StatModifier
    >>> record = PlayerRecord(uuid=uuid4())
    >>> record.add_stat_modifier(StatModifier(name="Ring", target="strength", value=2))
"""

from __future__ import annotations

from modkeeper.models.enums import (
    ActionBarType,
    EquipmentSlot,
    ModifierSource,
    ModifierType,
    Operation,
)
from modkeeper.models.items import (
    ItemMeta,
    ItemMetadataResolver,
    ItemModifier,
    ItemMultiplier,
    ItemStack,
    Requirement,
    SkillsItem,
)
from modkeeper.models.modifiers import (
    ModifierStateCache,
    Multiplier,
    StatModifier,
    TemporalModifier,
    TraitModifier,
    now_millis,
)
from modkeeper.models.player import (
    AntiAfkLog,
    BlockPosition,
    PlayerRecord,
    UnclaimedItem,
    UserState,
)
from modkeeper.models.registry import (
    NamespacedId,
    Registries,
    Registry,
    Skill,
    Stat,
    Trait,
    parse_namespaced_id,
)


__all__ = [
    # Enums
    "ActionBarType",
    "EquipmentSlot",
    "ModifierSource",
    "ModifierType",
    "Operation",
    # Registry
    "NamespacedId",
    "Registries",
    "Registry",
    "Skill",
    "Stat",
    "Trait",
    "parse_namespaced_id",
    # Modifiers
    "ModifierStateCache",
    "Multiplier",
    "StatModifier",
    "TemporalModifier",
    "TraitModifier",
    "now_millis",
    # Items
    "ItemMeta",
    "ItemMetadataResolver",
    "ItemModifier",
    "ItemMultiplier",
    "ItemStack",
    "Requirement",
    "SkillsItem",
    # Player
    "AntiAfkLog",
    "BlockPosition",
    "PlayerRecord",
    "UnclaimedItem",
    "UserState",
]
