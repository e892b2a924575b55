"""Held-item tracking and the slot diff.

ItemStateManager remembers the last item observed in each
``(player uuid, slot)`` pair and compares it with the current one by
content signature. When the signature changes, the modifiers granted by
the old item are removed, the new item's modifiers are added (if the
player meets its requirements), and the affected stats and traits are
returned so the caller can reload them.

Equip-sourced modifiers replace each other: two items granting
``core:strength`` in the same slot never stack. They are also flagged
non-persistent, since they are derived again from the held item after
the next join.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Protocol
from uuid import UUID

from modkeeper.core.constants import OFF_HAND_MODIFIER_SUFFIX
from modkeeper.core.logging import get_logger
from modkeeper.engine.stats import ModifierReloader, ReloadableIdentifier
from modkeeper.models.enums import EquipmentSlot, ModifierSource, ModifierType
from modkeeper.models.items import ItemMetadataResolver, ItemStack, SkillsItem
from modkeeper.models.modifiers import TemporalModifier
from modkeeper.models.player import PlayerRecord
from modkeeper.models.registry import Registries


logger = get_logger(__name__)

ResolverFactory = Callable[[ItemStack, Registries], ItemMetadataResolver]


class SlotDiffer(Protocol):
    """Contract consumed by the equipment reconciler."""

    def change_item_in_slot(
        self,
        record: PlayerRecord,
        item: ItemStack | None,
        slot: EquipmentSlot,
        *,
        reload: bool = True,
    ) -> set[ReloadableIdentifier]: ...

    def reload_identifiers(
        self, record: PlayerRecord, identifiers: set[ReloadableIdentifier]
    ) -> None: ...


def slot_modifier_name(base_name: str, slot: EquipmentSlot) -> str:
    """Name of an equip-sourced modifier for ``slot``."""
    if slot is EquipmentSlot.OFF_HAND:
        return base_name + OFF_HAND_MODIFIER_SUFFIX
    return base_name


class ItemStateManager:
    """Default slot differ backed by a keyed last-seen item store."""

    def __init__(
        self,
        registries: Registries,
        reloader: ModifierReloader,
        resolver_factory: ResolverFactory = SkillsItem,
    ) -> None:
        self.registries = registries
        self.reloader = reloader
        self.resolver_factory = resolver_factory
        self._last_seen: dict[tuple[UUID, EquipmentSlot], ItemStack] = {}

    def last_seen(self, uuid: UUID, slot: EquipmentSlot) -> ItemStack:
        return self._last_seen.get((uuid, slot), ItemStack.air())

    def change_item_in_slot(
        self,
        record: PlayerRecord,
        item: ItemStack | None,
        slot: EquipmentSlot,
        *,
        reload: bool = True,
    ) -> set[ReloadableIdentifier]:
        """Apply an item swap in ``slot`` and return the changed identifiers.

        Args:
            record: The player's record.
            item: Item now in the slot; None is treated as air.
            slot: Slot being diffed.
            reload: Reload the changed identifiers before returning.

        Returns:
            Stats and traits whose modifiers changed; empty when the item
            has the same signature as the last one seen in the slot.
        """
        current = item or ItemStack.air()
        key = (record.uuid, slot)
        previous = self._last_seen.get(key, ItemStack.air())
        if previous.signature() == current.signature():
            return set()

        changed: set[ReloadableIdentifier] = set()
        changed |= self._remove_item_modifiers(record, previous, slot)
        changed |= self._add_item_modifiers(record, current, slot)
        self._last_seen[key] = current

        logger.debug(
            "Held item changed",
            player_uuid=str(record.uuid),
            slot=slot.value,
            material=current.material,
            changed=sorted(identifier.id for identifier in changed),
        )
        if reload:
            self.reload_identifiers(record, changed)
        return changed

    def reload_identifiers(
        self, record: PlayerRecord, identifiers: set[ReloadableIdentifier]
    ) -> None:
        for identifier in identifiers:
            self.reloader.reload(record, identifier)

    def forget(self, uuid: UUID) -> None:
        """Drop every slot entry for a player who left."""
        for key in [key for key in self._last_seen if key[0] == uuid]:
            del self._last_seen[key]

    def _remove_item_modifiers(
        self, record: PlayerRecord, item: ItemStack, slot: EquipmentSlot
    ) -> set[ReloadableIdentifier]:
        changed: set[ReloadableIdentifier] = set()
        if item.is_air:
            return changed
        resolver = self.resolver_factory(item, self.registries)
        for modifier in resolver.get_stat_modifiers(ModifierSource.ITEM):
            if record.remove_stat_modifier(slot_modifier_name(modifier.name, slot)) is not None:
                changed.add(self._identifier(modifier))
        for modifier in resolver.get_trait_modifiers(ModifierSource.ITEM):
            if record.remove_trait_modifier(slot_modifier_name(modifier.name, slot)) is not None:
                changed.add(self._identifier(modifier))
        for multiplier in resolver.get_multipliers(ModifierSource.ITEM):
            record.remove_multiplier(slot_modifier_name(multiplier.name, slot))
        return changed

    def _add_item_modifiers(
        self, record: PlayerRecord, item: ItemStack, slot: EquipmentSlot
    ) -> set[ReloadableIdentifier]:
        changed: set[ReloadableIdentifier] = set()
        if item.is_air:
            return changed
        resolver = self.resolver_factory(item, self.registries)
        if not resolver.meets_requirements(ModifierSource.ITEM, record.skill_levels):
            return changed
        for modifier in resolver.get_stat_modifiers(ModifierSource.ITEM):
            record.add_stat_modifier(self._equip_variant(modifier, slot))
            changed.add(self._identifier(modifier))
        for modifier in resolver.get_trait_modifiers(ModifierSource.ITEM):
            record.add_trait_modifier(self._equip_variant(modifier, slot))
            changed.add(self._identifier(modifier))
        for multiplier in resolver.get_multipliers(ModifierSource.ITEM):
            name = slot_modifier_name(multiplier.name, slot)
            record.add_multiplier(multiplier.model_copy(update={"name": name}))
        return changed

    @staticmethod
    def _equip_variant(modifier: TemporalModifier, slot: EquipmentSlot) -> TemporalModifier:
        return modifier.model_copy(
            update={"name": slot_modifier_name(modifier.name, slot), "non_persistent": True}
        )

    def _identifier(self, modifier: TemporalModifier) -> ReloadableIdentifier:
        if modifier.modifier_type is ModifierType.STAT:
            return self.registries.stats.get_or_none(modifier.target)
        return self.registries.traits.get_or_none(modifier.target)


__all__ = [
    "SlotDiffer",
    "ItemStateManager",
    "slot_modifier_name",
]
