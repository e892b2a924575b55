"""In-memory player records and offline state snapshots.

PlayerRecord is the full mutable state of one online session: progression,
both modifier caches, multipliers, and the auxiliary key/value data that
the storage layer writes to its untyped table. UserState is the light
snapshot used by offline and bulk contexts (leaderboards, migrations)
where only levels, xp, modifiers and mana matter.
"""

from __future__ import annotations

from typing import Any, Iterable
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from modkeeper.core.constants import STARTING_SKILL_LEVEL
from modkeeper.core.exceptions import ValidationError
from modkeeper.models.enums import ActionBarType, ModifierType
from modkeeper.models.modifiers import (
    ModifierStateCache,
    Multiplier,
    StatModifier,
    TraitModifier,
)


# =============================================================================
# Auxiliary Data
# =============================================================================


class BlockPosition(BaseModel):
    """Integer world coordinates."""

    model_config = ConfigDict(frozen=True)

    x: int = 0
    y: int = 0
    z: int = 0

    def to_comma_string(self) -> str:
        return f"{self.x},{self.y},{self.z}"

    @classmethod
    def from_comma_string(cls, raw: str | None) -> "BlockPosition":
        """Parse ``x,y,z``; an empty string maps to the origin.

        Raises:
            ValidationError: If the string is not three integers.
        """
        if not raw:
            return cls()
        parts = raw.split(",")
        try:
            x, y, z = (int(part.strip()) for part in parts)
        except ValueError as exc:
            raise ValidationError(
                "Coordinates must be three comma-separated integers",
                field_name="coords",
                invalid_value=raw,
            ) from exc
        return cls(x=x, y=y, z=z)


class AntiAfkLog(BaseModel):
    """One anti-idle warning raised during a session."""

    model_config = ConfigDict(frozen=True)

    timestamp: int = Field(description="Epoch milliseconds")
    message: str = ""
    coords: BlockPosition = Field(default_factory=BlockPosition)
    world: str | None = None


class UnclaimedItem(BaseModel):
    """An item reward waiting for the player to claim it."""

    model_config = ConfigDict(frozen=True)

    key: str
    amount: int = Field(ge=0)


# =============================================================================
# Player Record
# =============================================================================


def _default_action_bars() -> dict[ActionBarType, bool]:
    return {bar: True for bar in ActionBarType}


class PlayerRecord(BaseModel):
    """Mutable state of one online player.

    Mutation is not synchronized: everything touching one record must run
    on the thread that owns the player (the main simulation thread).
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    uuid: UUID
    locale: str | None = None
    mana: float = 0.0

    skill_levels: dict[str, int] = Field(default_factory=dict)
    skill_xp: dict[str, float] = Field(default_factory=dict)

    stat_modifiers: ModifierStateCache = Field(
        default_factory=lambda: ModifierStateCache(ModifierType.STAT),
        exclude=True,
    )
    trait_modifiers: ModifierStateCache = Field(
        default_factory=lambda: ModifierStateCache(ModifierType.TRAIT),
        exclude=True,
    )
    multipliers: dict[str, Multiplier] = Field(default_factory=dict)

    # ability id -> key -> value, stored as strings in key_values
    ability_data: dict[str, dict[str, Any]] = Field(default_factory=dict)
    # mana ability id -> remaining cooldown in ticks
    mana_ability_cooldowns: dict[str, int] = Field(default_factory=dict)
    unclaimed_items: list[UnclaimedItem] = Field(default_factory=list)
    action_bars: dict[ActionBarType, bool] = Field(default_factory=_default_action_bars)
    jobs: set[str] = Field(default_factory=set)
    last_job_select_time: int = 0

    session_anti_afk_logs: list[AntiAfkLog] = Field(default_factory=list)
    should_not_save: bool = False

    # Written by the reloader: target id -> effective value
    effective_values: dict[str, float] = Field(default_factory=dict)

    # -------------------------------------------------------------------------
    # Progression
    # -------------------------------------------------------------------------

    def get_skill_level(self, skill: str) -> int:
        return self.skill_levels.get(skill, STARTING_SKILL_LEVEL)

    def get_skill_xp(self, skill: str) -> float:
        return self.skill_xp.get(skill, 0.0)

    def set_skill(self, skill: str, level: int, xp: float = 0.0) -> None:
        self.skill_levels[skill] = level
        self.skill_xp[skill] = xp

    # -------------------------------------------------------------------------
    # Modifiers
    # -------------------------------------------------------------------------

    def get_stat_modifier(self, name: str) -> StatModifier | None:
        return self.stat_modifiers.get(name)

    def add_stat_modifier(self, modifier: StatModifier) -> None:
        self.stat_modifiers.add(modifier)

    def remove_stat_modifier(self, name: str) -> StatModifier | None:
        return self.stat_modifiers.remove(name)

    def get_trait_modifier(self, name: str) -> TraitModifier | None:
        return self.trait_modifiers.get(name)

    def add_trait_modifier(self, modifier: TraitModifier) -> None:
        self.trait_modifiers.add(modifier)

    def remove_trait_modifier(self, name: str) -> TraitModifier | None:
        return self.trait_modifiers.remove(name)

    def get_multiplier(self, name: str) -> Multiplier | None:
        return self.multipliers.get(name)

    def add_multiplier(self, multiplier: Multiplier) -> None:
        self.multipliers[multiplier.name] = multiplier

    def remove_multiplier(self, name: str) -> Multiplier | None:
        return self.multipliers.pop(name, None)

    def total_multiplier(self, skill: str) -> float:
        """Summed percent bonus applying to ``skill`` (global ones included)."""
        return sum(
            m.value for m in self.multipliers.values() if m.is_global or m.skill == skill
        )

    # -------------------------------------------------------------------------
    # Auxiliary state
    # -------------------------------------------------------------------------

    def is_action_bar_enabled(self, bar: ActionBarType) -> bool:
        return self.action_bars.get(bar, True)

    def set_action_bar_enabled(self, bar: ActionBarType, enabled: bool) -> None:
        self.action_bars[bar] = enabled

    def add_anti_afk_log(self, log: AntiAfkLog) -> None:
        self.session_anti_afk_logs.append(log)

    def is_blank_profile(self) -> bool:
        """True when the record holds nothing worth storing.

        Levels at or below the starting level with zero xp, no stored
        modifiers, no auxiliary data, and every action bar enabled. Equip
        modifiers and multipliers are rebuilt from held items on join.
        """
        for skill, level in self.skill_levels.items():
            if level > STARTING_SKILL_LEVEL or self.skill_xp.get(skill, 0.0) > 0:
                return False
        for cache in (self.stat_modifiers, self.trait_modifiers):
            if any(not modifier.non_persistent for modifier in cache):
                return False
        if self.ability_data or self.mana_ability_cooldowns or self.unclaimed_items:
            return False
        if self.jobs:
            return False
        return all(self.action_bars.get(bar, True) for bar in ActionBarType)

    def snapshot(self) -> "PlayerRecord":
        """Deep copy that another thread can read while this one keeps playing."""
        return self.model_copy(deep=True)

    def to_state(self) -> "UserState":
        return UserState(
            uuid=self.uuid,
            skill_levels=dict(self.skill_levels),
            skill_xp=dict(self.skill_xp),
            stat_modifiers=self.stat_modifiers.as_dict(),
            trait_modifiers=self.trait_modifiers.as_dict(),
            mana=self.mana,
        )


# =============================================================================
# Offline Snapshot
# =============================================================================


class UserState(BaseModel):
    """Lightweight progression snapshot for offline and bulk contexts."""

    model_config = ConfigDict(frozen=True)

    uuid: UUID
    skill_levels: dict[str, int] = Field(default_factory=dict)
    skill_xp: dict[str, float] = Field(default_factory=dict)
    stat_modifiers: dict[str, StatModifier] = Field(default_factory=dict)
    trait_modifiers: dict[str, TraitModifier] = Field(default_factory=dict)
    mana: float = 0.0

    @classmethod
    def create_empty(cls, uuid: UUID, skills: Iterable[str] = ()) -> "UserState":
        """Default state for a player with no stored data.

        Every skill in ``skills`` starts at the starting level with no xp.
        """
        skill_ids = list(skills)
        return cls(
            uuid=uuid,
            skill_levels={skill: STARTING_SKILL_LEVEL for skill in skill_ids},
            skill_xp={skill: 0.0 for skill in skill_ids},
        )


__all__ = [
    "BlockPosition",
    "AntiAfkLog",
    "UnclaimedItem",
    "PlayerRecord",
    "UserState",
]
