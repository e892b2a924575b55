"""Item stacks and the item metadata resolver.

Items carry their modifier definitions and usage requirements in
``ItemMeta``. :class:`SkillsItem` turns that metadata into concrete
StatModifier, TraitModifier and Multiplier instances, resolving target
identifiers through the registries. Anything the registries do not know
is skipped with a warning.
"""

from __future__ import annotations

import hashlib
from collections.abc import Mapping
from typing import Protocol

from pydantic import BaseModel, ConfigDict, Field

from modkeeper.core.logging import get_logger
from modkeeper.models.enums import ModifierSource, Operation
from modkeeper.models.modifiers import Multiplier, StatModifier, TraitModifier
from modkeeper.models.registry import NamespacedId, Registries


logger = get_logger(__name__)

AIR = "air"


# =============================================================================
# Item Models
# =============================================================================


class ItemModifier(BaseModel):
    """A modifier definition stored on an item."""

    model_config = ConfigDict(frozen=True)

    target: NamespacedId
    value: float
    operation: Operation = Operation.ADD
    source: ModifierSource = ModifierSource.ITEM


class ItemMultiplier(BaseModel):
    """A skill experience multiplier stored on an item."""

    model_config = ConfigDict(frozen=True)

    skill: NamespacedId | None = None
    value: float
    source: ModifierSource = ModifierSource.ITEM


class Requirement(BaseModel):
    """Minimum skill level needed for an item's modifiers to apply."""

    model_config = ConfigDict(frozen=True)

    skill: NamespacedId
    level: int = Field(ge=0)
    source: ModifierSource = ModifierSource.ITEM


class ItemMeta(BaseModel):
    """Modifier-bearing metadata attached to an item stack."""

    model_config = ConfigDict(frozen=True)

    stat_modifiers: tuple[ItemModifier, ...] = ()
    trait_modifiers: tuple[ItemModifier, ...] = ()
    multipliers: tuple[ItemMultiplier, ...] = ()
    requirements: tuple[Requirement, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not (self.stat_modifiers or self.trait_modifiers or self.multipliers)


class ItemStack(BaseModel):
    """A stack of items held by a player."""

    model_config = ConfigDict(frozen=True)

    material: str = Field(default=AIR, description="Material identifier")
    amount: int = Field(default=1, ge=0)
    display_name: str | None = None
    meta: ItemMeta = Field(default_factory=ItemMeta)

    @classmethod
    def air(cls) -> "ItemStack":
        return cls(material=AIR, amount=0)

    @property
    def is_air(self) -> bool:
        return self.material == AIR or self.amount <= 0

    def signature(self) -> str:
        """Content signature used to detect item swaps.

        Stack size is excluded: a stack shrinking by one does not change
        the modifiers it grants. All air stacks share one signature.
        """
        if self.is_air:
            return AIR
        payload = self.model_dump_json(exclude={"amount"})
        return hashlib.sha256(payload.encode()).hexdigest()


# =============================================================================
# Metadata Resolution
# =============================================================================


class ItemMetadataResolver(Protocol):
    """Produces base modifiers and the requirement check for an item."""

    def get_stat_modifiers(self, source: ModifierSource) -> list[StatModifier]: ...

    def get_trait_modifiers(self, source: ModifierSource) -> list[TraitModifier]: ...

    def get_multipliers(self, source: ModifierSource) -> list[Multiplier]: ...

    def meets_requirements(
        self, source: ModifierSource, skill_levels: Mapping[str, int]
    ) -> bool: ...


class SkillsItem:
    """Default metadata resolver reading :class:`ItemMeta`.

    Base modifiers are named after their target (``STRENGTH``) so that the
    equip-sourced and consumed variants of one target are easy to relate.
    """

    def __init__(self, item: ItemStack | None, registries: Registries) -> None:
        self.item = item or ItemStack.air()
        self.registries = registries

    def get_stat_modifiers(self, source: ModifierSource) -> list[StatModifier]:
        if self.item.is_air:
            return []
        modifiers = []
        for definition in self.item.meta.stat_modifiers:
            if definition.source is not source:
                continue
            stat = self.registries.stats.get_or_none(definition.target)
            if stat is None:
                logger.warning(
                    "Skipping item modifier for unregistered stat",
                    stat=definition.target,
                    material=self.item.material,
                )
                continue
            modifiers.append(
                StatModifier(
                    name=stat.name,
                    target=stat.id,
                    value=definition.value,
                    operation=definition.operation,
                )
            )
        return modifiers

    def get_trait_modifiers(self, source: ModifierSource) -> list[TraitModifier]:
        if self.item.is_air:
            return []
        modifiers = []
        for definition in self.item.meta.trait_modifiers:
            if definition.source is not source:
                continue
            trait = self.registries.traits.get_or_none(definition.target)
            if trait is None:
                logger.warning(
                    "Skipping item modifier for unregistered trait",
                    trait=definition.target,
                    material=self.item.material,
                )
                continue
            modifiers.append(
                TraitModifier(
                    name=trait.name,
                    target=trait.id,
                    value=definition.value,
                    operation=definition.operation,
                )
            )
        return modifiers

    def get_multipliers(self, source: ModifierSource) -> list[Multiplier]:
        if self.item.is_air:
            return []
        multipliers = []
        for definition in self.item.meta.multipliers:
            if definition.source is not source:
                continue
            if definition.skill is None:
                multipliers.append(Multiplier(name="GLOBAL", value=definition.value))
                continue
            skill = self.registries.skills.get_or_none(definition.skill)
            if skill is None:
                logger.warning(
                    "Skipping item multiplier for unregistered skill",
                    skill=definition.skill,
                    material=self.item.material,
                )
                continue
            multipliers.append(Multiplier(name=skill.name, skill=skill.id, value=definition.value))
        return multipliers

    def meets_requirements(self, source: ModifierSource, skill_levels: Mapping[str, int]) -> bool:
        """Check every requirement for ``source`` against the player's levels."""
        for requirement in self.item.meta.requirements:
            if requirement.source is not source:
                continue
            if skill_levels.get(requirement.skill, 0) < requirement.level:
                return False
        return True


__all__ = [
    "AIR",
    "ItemModifier",
    "ItemMultiplier",
    "Requirement",
    "ItemMeta",
    "ItemStack",
    "ItemMetadataResolver",
    "SkillsItem",
]
