"""Temporal modifier models and the per-player modifier cache.

A modifier is a named numeric bonus on one stat or trait. Stat and trait
modifiers share a payload and differ only in their namespace tag, which
is also the storage discriminator. While a session is active the
ModifierStateCache is the source of truth; storage only mirrors it.

Expiry semantics:
    - ``expires_at is None``: permanent.
    - ``expires_at`` set, ``pause_offline`` False: expires at that instant
      whether or not the player is online.
    - ``expires_at`` set, ``pause_offline`` True: the remaining time is
      persisted instead of the instant, so the clock stops while offline.

Example:
    >>> mod = StatModifier(name="Sword", target="core:strength", value=5)
    >>> cache = ModifierStateCache(ModifierType.STAT)
    >>> cache.add(mod)
    >>> cache.get("Sword").value
    5.0
"""

from __future__ import annotations

import time
from typing import ClassVar, Generic, Iterator, Literal, Self, TypeVar

from pydantic import BaseModel, ConfigDict, Field, model_validator

from modkeeper.core.exceptions import ModifierError
from modkeeper.models.enums import ModifierType, Operation
from modkeeper.models.registry import NamespacedId


def now_millis() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


# =============================================================================
# Modifier Models
# =============================================================================


class TemporalModifier(BaseModel):
    """One named bonus with optional expiry.

    Instances are immutable; merging or re-timing a modifier produces a
    new instance via :meth:`with_value`.
    """

    model_config = ConfigDict(frozen=True)

    modifier_type: ClassVar[ModifierType]

    name: str = Field(min_length=1, description="Unique per player within the namespace")
    target: NamespacedId = Field(description="Stat or trait affected, e.g. core:strength")
    value: float = Field(description="Signed magnitude")
    operation: Operation = Field(default=Operation.ADD)
    expires_at: int | None = Field(default=None, description="Epoch ms; None is permanent")
    pause_offline: bool = Field(default=False, description="Clock stops while offline")
    non_persistent: bool = Field(default=False, description="Session-only, never stored")

    @model_validator(mode="after")
    def validate_pause_requires_expiry(self) -> Self:
        """A paused clock only makes sense for a temporary modifier."""
        if self.pause_offline and self.expires_at is None:
            raise ModifierError(
                "pause_offline requires an expiry",
                modifier_name=self.name,
            )
        return self

    @property
    def is_temporary(self) -> bool:
        return self.expires_at is not None

    def is_expired(self, now: int | None = None) -> bool:
        if self.expires_at is None:
            return False
        return (now_millis() if now is None else now) >= self.expires_at

    def remaining(self, now: int | None = None) -> int:
        """Milliseconds left before expiry, 0 for permanent or expired."""
        if self.expires_at is None:
            return 0
        return max(0, self.expires_at - (now_millis() if now is None else now))

    def with_value(self, value: float) -> Self:
        return self.model_copy(update={"value": value})


class StatModifier(TemporalModifier):
    """Modifier in the stat namespace."""

    modifier_type: ClassVar[ModifierType] = ModifierType.STAT
    kind: Literal["stat"] = "stat"


class TraitModifier(TemporalModifier):
    """Modifier in the trait namespace."""

    modifier_type: ClassVar[ModifierType] = ModifierType.TRAIT
    kind: Literal["trait"] = "trait"


MODIFIER_CLASSES: dict[ModifierType, type[TemporalModifier]] = {
    ModifierType.STAT: StatModifier,
    ModifierType.TRAIT: TraitModifier,
}


class Multiplier(BaseModel):
    """Skill experience multiplier granted by an item.

    A multiplier without a skill applies to every skill.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    skill: NamespacedId | None = Field(default=None, description="None means global")
    value: float = Field(description="Percent bonus to experience gain")

    @property
    def is_global(self) -> bool:
        return self.skill is None

    def with_value(self, value: float) -> Self:
        return self.model_copy(update={"value": value})


# =============================================================================
# Modifier State Cache
# =============================================================================


M = TypeVar("M", bound=TemporalModifier)


class ModifierStateCache(Generic[M]):
    """Per-player mapping of modifier name to modifier for one namespace.

    Adding a modifier whose name is already present replaces it. The cache
    does no locking; mutation for one player must be confined to a single
    thread by the caller.
    """

    def __init__(self, modifier_type: ModifierType) -> None:
        self.modifier_type = modifier_type
        self._modifiers: dict[str, M] = {}

    def add(self, modifier: M) -> M | None:
        """Insert or replace a modifier, returning the one it replaced.

        Raises:
            ModifierError: If the modifier belongs to the other namespace.
        """
        if modifier.modifier_type is not self.modifier_type:
            raise ModifierError(
                f"Cannot store a {modifier.modifier_type} modifier in the "
                f"{self.modifier_type} cache",
                modifier_name=modifier.name,
            )
        previous = self._modifiers.get(modifier.name)
        self._modifiers[modifier.name] = modifier
        return previous

    def get(self, name: str) -> M | None:
        return self._modifiers.get(name)

    def remove(self, name: str) -> M | None:
        return self._modifiers.pop(name, None)

    def values(self) -> list[M]:
        return list(self._modifiers.values())

    def for_target(self, target: str) -> list[M]:
        return [m for m in self._modifiers.values() if m.target == target]

    def targets(self) -> set[str]:
        return {m.target for m in self._modifiers.values()}

    def pop_expired(self, now: int | None = None) -> list[M]:
        """Remove and return every temporary modifier past its expiry."""
        now = now_millis() if now is None else now
        expired = [m for m in self._modifiers.values() if m.is_expired(now)]
        for modifier in expired:
            del self._modifiers[modifier.name]
        return expired

    def clear(self) -> None:
        self._modifiers.clear()

    def as_dict(self) -> dict[str, M]:
        return dict(self._modifiers)

    def __contains__(self, name: object) -> bool:
        return name in self._modifiers

    def __iter__(self) -> Iterator[M]:
        return iter(list(self._modifiers.values()))

    def __len__(self) -> int:
        return len(self._modifiers)

    def __repr__(self) -> str:
        return f"ModifierStateCache({self.modifier_type}, {sorted(self._modifiers)})"


__all__ = [
    "now_millis",
    "TemporalModifier",
    "StatModifier",
    "TraitModifier",
    "MODIFIER_CLASSES",
    "Multiplier",
    "ModifierStateCache",
]
