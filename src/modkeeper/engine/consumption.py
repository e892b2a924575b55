"""Consumed-item modifiers.

Eating or drinking an item converts its modifiers into "consumed"
modifiers named ``<target name>.Consumed``. Consuming the same kind of
item again stacks onto the existing consumed modifier up to a hard cap.
The equip-sourced modifier of the same name is always removed.

Example:
    Two potions granting ``core:strength +40`` and ``+30`` leave a single
    ``STRENGTH.Consumed`` modifier worth exactly 50.
"""

from __future__ import annotations

from modkeeper.core.config import ModifierSettings
from modkeeper.core.constants import CONSUMED_MODIFIER_SUFFIX
from modkeeper.core.logging import get_logger
from modkeeper.engine.events import ItemConsumeEvent
from modkeeper.engine.item_state import ResolverFactory
from modkeeper.engine.stats import ModifierReloader, ReloadableIdentifier
from modkeeper.engine.users import UserManager
from modkeeper.models.enums import ModifierSource
from modkeeper.models.items import SkillsItem
from modkeeper.models.modifiers import ModifierStateCache, TemporalModifier
from modkeeper.models.player import PlayerRecord
from modkeeper.models.registry import Registries


logger = get_logger(__name__)


def consumed_name(base_name: str) -> str:
    return base_name + CONSUMED_MODIFIER_SUFFIX


class ConsumptionHandler:
    """Applies consumed-item modifiers to the consuming player's record."""

    def __init__(
        self,
        user_manager: UserManager,
        registries: Registries,
        reloader: ModifierReloader,
        settings: ModifierSettings,
        resolver_factory: ResolverFactory = SkillsItem,
    ) -> None:
        self.user_manager = user_manager
        self.registries = registries
        self.reloader = reloader
        self.settings = settings
        self.resolver_factory = resolver_factory

    def on_consume(self, event: ItemConsumeEvent) -> set[ReloadableIdentifier]:
        """Merge the consumed item's modifiers into the player's record.

        Args:
            event: The consume action. Cancelled events are ignored.

        Returns:
            Stats and traits that were reloaded, each exactly once.
        """
        if event.cancelled:
            return set()
        record = self.user_manager.get_user(event.player.uuid)
        if record is None:
            return set()
        return self.apply(record, event)

    def apply(self, record: PlayerRecord, event: ItemConsumeEvent) -> set[ReloadableIdentifier]:
        resolver = self.resolver_factory(event.item, self.registries)
        meets_requirements = resolver.meets_requirements(ModifierSource.ITEM, record.skill_levels)

        affected: set[ReloadableIdentifier] = set()
        for modifier in resolver.get_stat_modifiers(ModifierSource.ITEM):
            self._merge(record.stat_modifiers, modifier, meets_requirements)
            affected.add(self.registries.stats.get_or_none(modifier.target))
        for modifier in resolver.get_trait_modifiers(ModifierSource.ITEM):
            self._merge(record.trait_modifiers, modifier, meets_requirements)
            affected.add(self.registries.traits.get_or_none(modifier.target))
        for multiplier in resolver.get_multipliers(ModifierSource.ITEM):
            name = consumed_name(multiplier.name)
            value = multiplier.value
            previous = record.remove_multiplier(name)
            if previous is not None:
                value += previous.value
            value = self._cap(value)
            record.remove_multiplier(multiplier.name)
            if meets_requirements:
                record.add_multiplier(multiplier.model_copy(update={"name": name, "value": value}))

        affected.discard(None)
        for identifier in affected:
            self.reloader.reload(record, identifier)

        logger.debug(
            "Item consumed",
            player_uuid=str(record.uuid),
            material=event.item.material,
            meets_requirements=meets_requirements,
            reloaded=sorted(identifier.id for identifier in affected),
        )
        return affected

    def _merge(
        self,
        cache: ModifierStateCache,
        modifier: TemporalModifier,
        meets_requirements: bool,
    ) -> None:
        name = consumed_name(modifier.name)
        value = modifier.value
        previous = cache.remove(name)
        if previous is not None:
            value += previous.value
        merged = modifier.model_copy(update={"name": name, "value": self._cap(value)})
        # The equip-sourced modifier goes even when the requirement check fails.
        cache.remove(modifier.name)
        if meets_requirements:
            cache.add(merged)

    def _cap(self, value: float) -> float:
        return min(value, self.settings.consume_cap)


__all__ = ["ConsumptionHandler", "consumed_name"]
