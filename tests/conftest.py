"""Pytest configuration and shared fixtures.

This module provides common fixtures and configuration for all tests
in the modkeeper test suite.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable
from uuid import UUID, uuid4

import pytest


if TYPE_CHECKING:
    from collections.abc import Generator
    from pathlib import Path


# =============================================================================
# Configuration Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def reset_settings_cache() -> Generator[None, None, None]:
    """Reset the settings cache before and after each test."""
    from modkeeper.core.config import clear_settings_cache

    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def mock_env_vars(monkeypatch: pytest.MonkeyPatch) -> dict[str, str]:
    """Set up mock environment variables for testing.

    Returns:
        Dictionary of environment variables that were set.
    """
    env_vars = {
        "MODKEEPER_LOG_LEVEL": "DEBUG",
        "MODKEEPER_MODIFIER_ITEM_CHECK_PERIOD": "10",
        "MODKEEPER_MODIFIER_ENABLE_OFF_HAND": "true",
        "MODKEEPER_STORAGE_TABLE_PREFIX": "test_",
        "MODKEEPER_STORAGE_SAVE_BLANK_PROFILES": "false",
    }
    for key, value in env_vars.items():
        monkeypatch.setenv(key, value)
    return env_vars


@pytest.fixture
def modifier_settings() -> Any:
    """Modifier settings with off-hand modifiers enabled."""
    from modkeeper.core.config import ModifierSettings

    return ModifierSettings(item_check_period=5, enable_off_hand=True)


@pytest.fixture
def storage_settings(tmp_path: Path) -> Any:
    """Storage settings pointing at a temporary database."""
    from modkeeper.core.config import StorageSettings

    return StorageSettings(
        database_path=tmp_path / "modkeeper.db",
        table_prefix="test_",
        pool_size=2,
        worker_threads=2,
    )


# =============================================================================
# Clock
# =============================================================================


class ManualClock:
    """Epoch-millisecond clock advanced explicitly by tests."""

    def __init__(self, now: int = 1_700_000_000_000) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, millis: int) -> None:
        self.now += millis


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


# =============================================================================
# Model Fixtures
# =============================================================================


@pytest.fixture
def registries() -> Any:
    """Registries with two stats, one trait, and two skills.

    Returns:
        Registries instance.
    """
    from modkeeper.models.registry import Registries, Registry, Skill, Stat, Trait

    return Registries(
        stats=Registry([
            Stat(id="core:strength"),
            Stat(id="core:health", base_value=20.0),
        ]),
        traits=Registry([Trait(id="core:attack_damage")]),
        skills=Registry([Skill(id="core:farming"), Skill(id="core:fighting")]),
    )


@pytest.fixture
def player_uuid() -> UUID:
    return uuid4()


@pytest.fixture
def record(player_uuid: UUID) -> Any:
    """Create an empty PlayerRecord."""
    from modkeeper.models.player import PlayerRecord

    return PlayerRecord(uuid=player_uuid)


@pytest.fixture
def make_item() -> Callable[..., Any]:
    """Factory building item stacks from compact modifier definitions.

    Returns:
        Callable taking a material and keyword lists of
        ``(target, value)`` pairs for ``stats`` and ``traits``,
        ``(skill, value)`` pairs for ``multipliers``, and
        ``(skill, level)`` pairs for ``requirements``.
    """
    from modkeeper.models.items import (
        ItemMeta,
        ItemModifier,
        ItemMultiplier,
        ItemStack,
        Requirement,
    )

    def _make(
        material: str,
        stats: list[tuple[str, float]] | None = None,
        traits: list[tuple[str, float]] | None = None,
        multipliers: list[tuple[str | None, float]] | None = None,
        requirements: list[tuple[str, int]] | None = None,
        amount: int = 1,
    ) -> ItemStack:
        meta = ItemMeta(
            stat_modifiers=tuple(ItemModifier(target=t, value=v) for t, v in stats or []),
            trait_modifiers=tuple(ItemModifier(target=t, value=v) for t, v in traits or []),
            multipliers=tuple(ItemMultiplier(skill=s, value=v) for s, v in multipliers or []),
            requirements=tuple(Requirement(skill=s, level=lvl) for s, lvl in requirements or []),
        )
        return ItemStack(material=material, amount=amount, meta=meta)

    return _make


# =============================================================================
# Engine Fixtures
# =============================================================================


@pytest.fixture
def scheduler() -> Any:
    from modkeeper.engine.scheduler import TickScheduler

    return TickScheduler()


@pytest.fixture
def user_manager() -> Any:
    from modkeeper.engine.users import UserManager

    return UserManager()


@pytest.fixture
def reloader(clock: ManualClock) -> Any:
    from modkeeper.engine.stats import StatManager

    return StatManager(clock=clock)


@pytest.fixture
def item_state(registries: Any, reloader: Any) -> Any:
    from modkeeper.engine.item_state import ItemStateManager

    return ItemStateManager(registries, reloader)


@pytest.fixture
def online_player(player_uuid: UUID) -> Any:
    from modkeeper.engine.users import OnlinePlayer

    return OnlinePlayer(uuid=player_uuid, name="Steve")


@pytest.fixture
def session(user_manager: Any, online_player: Any, record: Any) -> Any:
    """Register the online player with the user manager."""
    return user_manager.add_user(online_player, record)


# =============================================================================
# Storage Fixtures
# =============================================================================


@pytest.fixture
def pool(storage_settings: Any) -> Generator[Any, None, None]:
    """Connection pool over a temporary database, closed after the test."""
    from modkeeper.storage.pool import ConnectionPool

    pool = ConnectionPool(storage_settings.database_path, size=storage_settings.pool_size)
    yield pool
    pool.close()


@pytest.fixture
def repository(
    pool: Any,
    registries: Any,
    user_manager: Any,
    storage_settings: Any,
    clock: ManualClock,
) -> Any:
    """StateRepository over the temporary database with a manual clock."""
    from modkeeper.storage.repository import StateRepository

    return StateRepository(pool, registries, user_manager, storage_settings, clock=clock)
