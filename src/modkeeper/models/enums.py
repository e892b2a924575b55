"""Enumeration types for modkeeper.

This module defines the enumerations shared by the modifier engine and
the storage layer: modifier namespaces, combination operations, equipment
slots, and action bar types.
"""

from __future__ import annotations

from enum import IntEnum, StrEnum


class ModifierType(StrEnum):
    """Disjoint modifier namespaces sharing one physical table.

    The value doubles as the ``modifier_type`` discriminator column.
    """

    STAT = "stat"
    TRAIT = "trait"


class Operation(IntEnum):
    """How a modifier combines into its target's effective value.

    The integer value is the ``modifier_operation`` code in storage.
    """

    ADD = 0
    """Flat addition to the base value."""

    MULTIPLY = 1
    """Multiplies the summed value by ``value``."""

    ADD_PERCENT = 2
    """Adds ``value`` percent of the summed value."""

    @classmethod
    def from_sql_id(cls, sql_id: int | None) -> "Operation":
        """Resolve a stored operation code, defaulting to ADD."""
        if sql_id is None:
            return cls.ADD
        try:
            return cls(int(sql_id))
        except ValueError:
            return cls.ADD

    @property
    def sql_id(self) -> int:
        return int(self.value)


class EquipmentSlot(StrEnum):
    """Equipment slots polled for modifier-bearing items."""

    HAND = "hand"
    OFF_HAND = "off_hand"


class ActionBarType(StrEnum):
    """Action bar categories a player may toggle off."""

    IDLE = "idle"
    XP = "xp"
    ABILITY = "ability"


class ModifierSource(StrEnum):
    """Where an item modifier takes effect."""

    ITEM = "item"
    """Active while the item is held or after it is consumed."""

    ARMOR = "armor"
    """Active while the item is worn."""


__all__ = [
    "ModifierType",
    "Operation",
    "EquipmentSlot",
    "ActionBarType",
    "ModifierSource",
]
