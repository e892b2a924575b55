"""Integration tests for StateRepository against a temporary SQLite file.

Tests save/load round trips, blank-profile deletion, bulk scans and the
anti-idle log.
"""

from __future__ import annotations

import sqlite3
from typing import Any
from uuid import uuid4

import pytest
from structlog.testing import CapturingLogger

import modkeeper.storage.repository as repository_module
from modkeeper.core.config import StorageSettings
from modkeeper.core.exceptions import StorageError, UserIdResolutionError
from modkeeper.engine.users import OnlinePlayer
from modkeeper.models.enums import ActionBarType, EquipmentSlot, Operation
from modkeeper.models.modifiers import StatModifier, TraitModifier
from modkeeper.models.player import AntiAfkLog, BlockPosition, PlayerRecord, UnclaimedItem
from modkeeper.storage.repository import StateRepository


def count_rows(repository: StateRepository, table: str) -> int:
    with repository.pool.connection() as conn:
        return conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]


def populated_record(clock: Any) -> PlayerRecord:
    record = PlayerRecord(uuid=uuid4(), locale="en_US", mana=42.5)
    record.set_skill("core:farming", 12, 340.5)
    record.set_skill("core:fighting", 3, 0.0)
    record.add_stat_modifier(StatModifier(name="Ring", target="strength", value=4))
    record.add_stat_modifier(
        StatModifier(
            name="Potion",
            target="health",
            value=10,
            operation=Operation.ADD_PERCENT,
            expires_at=clock.now + 60_000,
            pause_offline=True,
        )
    )
    record.add_trait_modifier(
        TraitModifier(
            name="Blessing", target="attack_damage", value=2, expires_at=clock.now + 90_000
        )
    )
    return record


class TestRoundTrip:
    """Save-then-load reproduces the record."""

    def test_levels_and_modifiers(self, repository: StateRepository, clock: Any) -> None:
        record = populated_record(clock)
        repository.save(record)

        clock.advance(5_000)
        loaded = repository.load_raw(record.uuid)

        assert loaded.locale == "en_US"
        assert loaded.mana == 42.5
        assert loaded.skill_levels == {"core:farming": 12, "core:fighting": 3}
        assert loaded.skill_xp == {"core:farming": 340.5, "core:fighting": 0.0}

        assert set(loaded.stat_modifiers.as_dict()) == {"Ring", "Potion"}
        assert loaded.get_stat_modifier("Ring").expires_at is None

        potion = loaded.get_stat_modifier("Potion")
        assert potion.pause_offline is True
        assert potion.operation is Operation.ADD_PERCENT
        # Paused clock: the 5s spent offline are not deducted.
        assert potion.expires_at == clock.now + 60_000

        blessing = loaded.get_trait_modifier("Blessing")
        assert blessing.pause_offline is False
        assert blessing.expires_at == clock.now - 5_000 + 90_000

    def test_save_is_idempotent(self, repository: StateRepository, clock: Any) -> None:
        record = populated_record(clock)
        repository.save(record)
        repository.save(record)

        assert count_rows(repository, repository.tables.users) == 1
        assert count_rows(repository, repository.tables.skill_levels) == 2
        assert count_rows(repository, repository.tables.modifiers) == 3

    def test_removed_modifier_is_not_resurrected(
        self, repository: StateRepository, clock: Any
    ) -> None:
        record = populated_record(clock)
        repository.save(record)
        record.remove_stat_modifier("Ring")
        repository.save(record)

        assert repository.load_raw(record.uuid).get_stat_modifier("Ring") is None

    def test_non_persistent_modifiers_skipped(
        self, repository: StateRepository, clock: Any
    ) -> None:
        record = populated_record(clock)
        record.add_stat_modifier(
            StatModifier(name="STRENGTH", target="strength", value=5, non_persistent=True)
        )
        repository.save(record)

        assert repository.load_raw(record.uuid).get_stat_modifier("STRENGTH") is None

    def test_auxiliary_data(self, repository: StateRepository, record: PlayerRecord) -> None:
        record.ability_data["core:replenish"] = {"counter": 3, "ratio": 0.5}
        record.mana_ability_cooldowns["core:treecapitator"] = 200
        record.mana_ability_cooldowns["core:speed_mine"] = 0
        record.unclaimed_items.append(UnclaimedItem(key="diamond", amount=2))
        record.unclaimed_items.append(UnclaimedItem(key="diamond", amount=1))
        record.set_action_bar_enabled(ActionBarType.XP, False)
        record.jobs.update({"core:farming", "core:fighting"})
        record.last_job_select_time = 123456
        repository.save(record)

        loaded = repository.load_raw(record.uuid)

        assert loaded.ability_data == {"core:replenish": {"counter": 3, "ratio": 0.5}}
        assert loaded.mana_ability_cooldowns == {"core:treecapitator": 200}
        assert loaded.unclaimed_items == [UnclaimedItem(key="diamond", amount=3)]
        assert loaded.is_action_bar_enabled(ActionBarType.XP) is False
        assert loaded.is_action_bar_enabled(ActionBarType.IDLE) is True
        assert loaded.jobs == {"core:farming", "core:fighting"}
        assert loaded.last_job_select_time == 123456

    def test_default_action_bars_not_written(
        self, repository: StateRepository, record: PlayerRecord
    ) -> None:
        record.set_skill("core:farming", 5)
        repository.save(record)

        assert count_rows(repository, repository.tables.key_values) == 0

    def test_should_not_save(self, repository: StateRepository, clock: Any) -> None:
        record = populated_record(clock)
        record.should_not_save = True

        repository.save(record)

        assert count_rows(repository, repository.tables.users) == 0


class TestLoadEdgeCases:
    """Tests for absent players and stale identifiers."""

    def test_missing_player_gets_empty_state(self, repository: StateRepository) -> None:
        uuid = uuid4()

        state = repository.load_state(uuid)

        assert state.uuid == uuid
        assert state.skill_levels == {"core:farming": 1, "core:fighting": 1}
        assert state.stat_modifiers == {}

    def test_missing_player_gets_fresh_record(self, repository: StateRepository) -> None:
        record = repository.load_raw(uuid4())

        assert record.is_blank_profile() is True
        assert record.skill_levels == {"core:farming": 1, "core:fighting": 1}

    def test_unknown_ids_skipped(
        self, repository: StateRepository, registries: Any, clock: Any
    ) -> None:
        """Test that rows for unregistered skills and stats are skipped."""
        record = populated_record(clock)
        repository.save(record)
        with repository.pool.connection() as conn:
            user_id = repository.get_user_id(conn, record.uuid)
            conn.execute(
                f"INSERT INTO {repository.tables.skill_levels} VALUES (?, 'core:archery', 9, 1.0)",
                (user_id,),
            )
            conn.execute(
                f"UPDATE {repository.tables.modifiers} SET type_id = 'core:luck' "
                "WHERE modifier_name = 'Ring'",
            )

        loaded = repository.load_raw(record.uuid)

        assert "core:archery" not in loaded.skill_levels
        assert loaded.get_stat_modifier("Ring") is None
        assert loaded.get_stat_modifier("Potion") is not None

    def test_malformed_key_values_skipped(
        self, repository: StateRepository, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test a corrupt numeric value drops only its own row."""
        record = PlayerRecord(uuid=uuid4())
        record.unclaimed_items.append(UnclaimedItem(key="diamond", amount=3))
        repository.save(record)
        with repository.pool.connection() as conn:
            user_id = repository.get_user_id(conn, record.uuid)
            conn.executemany(
                f"INSERT OR REPLACE INTO {repository.tables.key_values} VALUES (?, ?, '', ?, ?)",
                [(user_id, 4, "emerald", "lots"), (user_id, 6, "last_select_time", "yesterday")],
            )
        captured = CapturingLogger()
        monkeypatch.setattr(repository_module, "logger", captured)

        loaded = repository.load_raw(record.uuid)

        assert loaded.unclaimed_items == [UnclaimedItem(key="diamond", amount=3)]
        assert loaded.last_job_select_time == 0
        skipped = {call.kwargs["key"] for call in captured.calls if call.method_name == "warning"}
        assert skipped == {"emerald", "last_select_time"}

    def test_connection_failure_propagates(self, repository: StateRepository) -> None:
        repository.pool.close()

        with pytest.raises(StorageError):
            repository.load_raw(uuid4())


class TestBlankProfiles:
    """Tests for blank-profile deletion."""

    @pytest.fixture
    def strict_repository(
        self, pool: Any, registries: Any, user_manager: Any, clock: Any
    ) -> StateRepository:
        settings = StorageSettings(table_prefix="strict_", save_blank_profiles=False)
        return StateRepository(pool, registries, user_manager, settings, clock=clock)

    def test_blank_profile_deleted(self, strict_repository: StateRepository) -> None:
        record = PlayerRecord(uuid=uuid4())
        record.set_skill("core:farming", 5)
        strict_repository.save(record)
        assert count_rows(strict_repository, strict_repository.tables.users) == 1

        record.set_skill("core:farming", 1, 0.0)
        strict_repository.save(record)

        assert count_rows(strict_repository, strict_repository.tables.users) == 0
        assert count_rows(strict_repository, strict_repository.tables.skill_levels) == 0

    def test_blank_profile_never_stored(self, strict_repository: StateRepository) -> None:
        strict_repository.save(PlayerRecord(uuid=uuid4()))

        assert count_rows(strict_repository, strict_repository.tables.users) == 0

    def test_holding_an_item_stays_blank(
        self, strict_repository: StateRepository, item_state: Any, make_item: Any
    ) -> None:
        record = PlayerRecord(uuid=uuid4())
        item_state.change_item_in_slot(
            record, make_item("sword", stats=[("strength", 5)]), EquipmentSlot.HAND
        )
        assert record.get_stat_modifier("STRENGTH") is not None

        strict_repository.save(record)

        assert count_rows(strict_repository, strict_repository.tables.users) == 0
        assert count_rows(strict_repository, strict_repository.tables.skill_levels) == 0

    def test_blank_profile_kept_by_default(
        self, repository: StateRepository, record: PlayerRecord
    ) -> None:
        repository.save(record)

        assert count_rows(repository, repository.tables.users) == 1


class TestDelete:
    """Tests for atomic user deletion."""

    def test_delete(self, repository: StateRepository, clock: Any) -> None:
        record = populated_record(clock)
        repository.save(record)

        repository.delete(record.uuid)

        assert count_rows(repository, repository.tables.users) == 0
        assert count_rows(repository, repository.tables.skill_levels) == 0
        assert count_rows(repository, repository.tables.modifiers) == 0

    def test_delete_unknown_user(self, repository: StateRepository) -> None:
        with pytest.raises(UserIdResolutionError):
            repository.delete(uuid4())

    def test_failure_rolls_back(
        self, repository: StateRepository, clock: Any, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test a failure after skill levels are deleted leaves every row in place."""
        record = populated_record(clock)
        repository.save(record)
        original_delete = repository._delete_rows

        def failing_delete(conn: sqlite3.Connection, table: str, user_id: int) -> None:
            if table == repository.tables.users:
                raise sqlite3.OperationalError("simulated failure")
            original_delete(conn, table, user_id)

        monkeypatch.setattr(repository, "_delete_rows", failing_delete)

        with pytest.raises(StorageError):
            repository.delete(record.uuid)

        assert count_rows(repository, repository.tables.users) == 1
        assert count_rows(repository, repository.tables.skill_levels) == 2
        assert count_rows(repository, repository.tables.modifiers) == 3


class TestBulkScan:
    """Tests for StateRepository.load_states."""

    def test_online_players_excluded(
        self, repository: StateRepository, user_manager: Any, clock: Any
    ) -> None:
        offline = populated_record(clock)
        online = populated_record(clock)
        repository.save(offline)
        repository.save(online)
        user_manager.add_user(OnlinePlayer(uuid=online.uuid), online)

        states = repository.load_states(ignore_online=True)

        assert [state.uuid for state in states] == [offline.uuid]
        assert states[0].skill_levels == {"core:farming": 12, "core:fighting": 3}
        assert set(states[0].stat_modifiers) == {"Ring", "Potion"}

    def test_unknown_skill_rows_logged(
        self, repository: StateRepository, monkeypatch: pytest.MonkeyPatch, clock: Any
    ) -> None:
        record = populated_record(clock)
        repository.save(record)
        with repository.pool.connection() as conn:
            user_id = repository.get_user_id(conn, record.uuid)
            conn.execute(
                f"INSERT INTO {repository.tables.skill_levels} VALUES (?, 'core:archery', 9, 1.0)",
                (user_id,),
            )
        captured = CapturingLogger()
        monkeypatch.setattr(repository_module, "logger", captured)

        [state] = repository.load_states()

        assert "core:archery" not in state.skill_levels
        assert any(
            call.method_name == "warning" and call.kwargs.get("skill") == "core:archery"
            for call in captured.calls
        )

    def test_include_online(
        self, repository: StateRepository, user_manager: Any, clock: Any
    ) -> None:
        online = populated_record(clock)
        repository.save(online)
        user_manager.add_user(OnlinePlayer(uuid=online.uuid), online)

        assert len(repository.load_states(ignore_online=False)) == 1

    def test_skip_modifiers(self, repository: StateRepository, clock: Any) -> None:
        repository.save(populated_record(clock))

        [state] = repository.load_states(skip_modifiers=True)

        assert state.stat_modifiers == {}
        assert state.trait_modifiers == {}
        assert state.mana == 42.5


class TestApplyState:
    """Tests for writing offline snapshots."""

    def test_apply_state(self, repository: StateRepository, clock: Any) -> None:
        record = populated_record(clock)
        repository.save(record)
        state = repository.load_state(record.uuid)
        edited = state.model_copy(
            update={"skill_levels": {**state.skill_levels, "core:farming": 20}, "mana": 1.0}
        )

        repository.apply_state(edited)
        loaded = repository.load_raw(record.uuid)

        assert loaded.skill_levels["core:farming"] == 20
        assert loaded.mana == 1.0
        assert loaded.locale == "en_US"
        assert set(loaded.stat_modifiers.as_dict()) == {"Ring", "Potion"}


class TestAntiAfkLogs:
    """Tests for the append-only anti-idle log."""

    def test_logs_round_trip_without_duplicates(
        self, repository: StateRepository, record: PlayerRecord, clock: Any
    ) -> None:
        record.add_anti_afk_log(
            AntiAfkLog(
                timestamp=clock.now,
                message="Idle fishing",
                coords=BlockPosition(x=1, y=64, z=-3),
                world="world",
            )
        )
        repository.save(record)
        repository.save(record)

        logs = repository.load_anti_afk_logs(record.uuid)

        assert len(logs) == 1
        assert logs[0].message == "Idle fishing"
        assert logs[0].coords == BlockPosition(x=1, y=64, z=-3)
        assert logs[0].world == "world"

    def test_log_failure_does_not_abort_save(
        self, repository: StateRepository, clock: Any
    ) -> None:
        record = populated_record(clock)
        record.add_anti_afk_log(AntiAfkLog(timestamp=clock.now, message="idle"))
        with repository.pool.connection() as conn:
            conn.execute(f"DROP TABLE {repository.tables.logs}")

        repository.save(record)

        assert repository.load_raw(record.uuid).skill_levels["core:farming"] == 12
        assert repository.load_anti_afk_logs(record.uuid) == []
