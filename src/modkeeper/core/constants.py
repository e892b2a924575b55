"""Library-wide constants for modkeeper.

This module defines the fixed values shared by the modifier engine and
the storage layer: consume merge rules, key-value category ids, and
log table codes.
"""

from __future__ import annotations

# =============================================================================
# Consumption
# =============================================================================

CONSUMED_MODIFIER_SUFFIX = ".Consumed"
"""Suffix distinguishing consumed modifiers from equip-sourced ones."""

CONSUMED_MODIFIER_CAP = 50.0
"""Hard ceiling for the merged value of a consumed modifier."""

OFF_HAND_MODIFIER_SUFFIX = ".Offhand"
"""Suffix of modifiers granted by an item held in the off hand."""

# =============================================================================
# Progression Defaults
# =============================================================================

STARTING_SKILL_LEVEL = 1
"""Level every skill starts at; levels at or below it count as blank."""

# =============================================================================
# Storage
# =============================================================================

DEFAULT_TABLE_PREFIX = "modkeeper_"
"""Prefix shared by all tables to support multi-tenant databases."""

# key_values.data_id categories (id 1 and 2 are retired)
ABILITY_DATA_ID = 3
UNCLAIMED_ITEMS_ID = 4
ACTION_BAR_ID = 5
JOBS_ID = 6

JOBS_KEY = "jobs"
JOBS_LAST_SELECT_TIME_KEY = "last_select_time"
MANA_ABILITY_COOLDOWN_KEY = "cooldown"

LOG_TYPE_ANTI_AFK = "anti_afk"
LOG_LEVEL_WARN = 2


__all__ = [
    "CONSUMED_MODIFIER_SUFFIX",
    "CONSUMED_MODIFIER_CAP",
    "OFF_HAND_MODIFIER_SUFFIX",
    "STARTING_SKILL_LEVEL",
    "DEFAULT_TABLE_PREFIX",
    "ABILITY_DATA_ID",
    "UNCLAIMED_ITEMS_ID",
    "ACTION_BAR_ID",
    "JOBS_ID",
    "JOBS_KEY",
    "JOBS_LAST_SELECT_TIME_KEY",
    "MANA_ABILITY_COOLDOWN_KEY",
    "LOG_TYPE_ANTI_AFK",
    "LOG_LEVEL_WARN",
]
