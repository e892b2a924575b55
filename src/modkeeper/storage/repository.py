"""Relational persistence of player records.

StateRepository maps a PlayerRecord onto five prefixed tables:

- ``users``: one row per player (uuid, locale, mana)
- ``skill_levels``: one row per (user, skill)
- ``modifiers``: stat and trait modifiers, split by ``modifier_type``
- ``key_values``: untyped auxiliary data grouped by ``data_id``
- ``logs``: append-only anti-idle warnings

Writes are idempotent upserts or delete-then-insert rewrites, so a save
that fails midway converges when retried. Deleting a user and appending
logs run in explicit transactions.

Example:
    >>> pool = ConnectionPool("data/modkeeper.db")
    >>> repository = StateRepository(pool, registries, user_manager)
    >>> record = repository.load_raw(uuid)
    >>> repository.save(record)
"""

from __future__ import annotations

import sqlite3
from collections.abc import Callable
from typing import Any
from uuid import UUID

from modkeeper.core.config import StorageSettings
from modkeeper.core.constants import (
    ABILITY_DATA_ID,
    ACTION_BAR_ID,
    JOBS_ID,
    JOBS_KEY,
    JOBS_LAST_SELECT_TIME_KEY,
    LOG_LEVEL_WARN,
    LOG_TYPE_ANTI_AFK,
    MANA_ABILITY_COOLDOWN_KEY,
    STARTING_SKILL_LEVEL,
    UNCLAIMED_ITEMS_ID,
)
from modkeeper.core.exceptions import StorageError, UserIdResolutionError, ValidationError
from modkeeper.core.logging import get_logger
from modkeeper.engine.users import UserManager
from modkeeper.models.enums import ActionBarType, ModifierType
from modkeeper.models.modifiers import TemporalModifier, now_millis
from modkeeper.models.player import (
    AntiAfkLog,
    BlockPosition,
    PlayerRecord,
    UnclaimedItem,
    UserState,
)
from modkeeper.models.registry import Registries
from modkeeper.storage.pool import ConnectionPool, transaction
from modkeeper.storage.rows import KeyValueRow, ModifierRow, parse_scalar
from modkeeper.storage.schema import TableCreator, Tables


logger = get_logger(__name__)


class StateRepository:
    """Loads and saves player state through a connection pool.

    Attributes:
        pool: Shared connection pool.
        registries: Stat, trait and skill lookups used to validate stored ids.
        user_manager: Active sessions, consulted by bulk scans.
        settings: Storage settings (table prefix, blank-profile retention).
        tables: Resolved table names.
    """

    def __init__(
        self,
        pool: ConnectionPool,
        registries: Registries,
        user_manager: UserManager,
        settings: StorageSettings | None = None,
        clock: Callable[[], int] = now_millis,
    ) -> None:
        self.pool = pool
        self.registries = registries
        self.user_manager = user_manager
        self.settings = settings or StorageSettings()
        self.tables = Tables(self.settings.table_prefix)
        self._clock = clock

        with self.pool.connection() as conn:
            TableCreator(self.tables).create(conn)

    @classmethod
    def from_settings(
        cls,
        settings: StorageSettings,
        registries: Registries,
        user_manager: UserManager,
    ) -> StateRepository:
        """Build a repository and its pool from storage settings."""
        pool = ConnectionPool(
            settings.database_path,
            size=settings.pool_size,
            acquire_timeout=settings.acquire_timeout_seconds,
        )
        return cls(pool, registries, user_manager, settings)

    # =========================================================================
    # Load
    # =========================================================================

    def load_raw(self, uuid: UUID) -> PlayerRecord:
        """Load the full record for ``uuid``.

        A player with no stored row gets a fresh record with every
        registered skill at the starting level.

        Args:
            uuid: Player identity.

        Returns:
            The reconstructed record.

        Raises:
            ConnectionAcquisitionError: If no connection can be borrowed.
            StorageError: If a query fails.
        """
        record = PlayerRecord(uuid=uuid)
        for skill in self.registries.skills:
            record.set_skill(skill.id, STARTING_SKILL_LEVEL)

        with self.pool.connection() as conn:
            try:
                row = self._fetch_user(conn, uuid)
                if row is None:
                    logger.debug("No stored data, using fresh record", player_uuid=str(uuid))
                    return record
                user_id = row["user_id"]
                record.locale = row["locale"]
                record.mana = float(row["mana"])

                levels, xp = self._load_skill_levels(conn, user_id, uuid)
                for skill_id, level in levels.items():
                    record.set_skill(skill_id, level, xp[skill_id])

                now = self._clock()
                for modifier in self._load_modifiers(conn, user_id, ModifierType.STAT, now):
                    record.add_stat_modifier(modifier)
                for modifier in self._load_modifiers(conn, user_id, ModifierType.TRAIT, now):
                    record.add_trait_modifier(modifier)

                self._load_key_values(conn, user_id, record)
            except sqlite3.Error as exc:
                raise StorageError(
                    f"Failed to load player data: {exc}", player_uuid=str(uuid)
                ) from exc

        logger.debug(
            "Loaded player",
            player_uuid=str(uuid),
            skills=len(record.skill_levels),
            stat_modifiers=len(record.stat_modifiers),
            trait_modifiers=len(record.trait_modifiers),
        )
        return record

    def load_state(self, uuid: UUID) -> UserState:
        """Load the lightweight snapshot for ``uuid``.

        Returns:
            The stored state, or an empty default state when the player has
            never been saved.

        Raises:
            ConnectionAcquisitionError: If no connection can be borrowed.
            StorageError: If a query fails.
        """
        with self.pool.connection() as conn:
            try:
                row = self._fetch_user(conn, uuid)
                if row is None:
                    return self._empty_state(uuid)
                user_id = row["user_id"]
                levels, xp = self._load_skill_levels(conn, user_id, uuid)
                return self._build_state(conn, uuid, row, levels, xp, skip_modifiers=False)
            except sqlite3.Error as exc:
                raise StorageError(
                    f"Failed to load player state: {exc}", player_uuid=str(uuid)
                ) from exc

    def load_states(
        self, ignore_online: bool = True, skip_modifiers: bool = False
    ) -> list[UserState]:
        """Load every stored player in two table scans.

        Args:
            ignore_online: Skip players with an active session; their live
                record is authoritative.
            skip_modifiers: Leave modifier maps empty.

        Returns:
            One state per stored user row that was not skipped.

        Raises:
            ConnectionAcquisitionError: If no connection can be borrowed.
            StorageError: If a query fails.
        """
        states: list[UserState] = []
        online = self.user_manager.online_uuids() if ignore_online else set()
        with self.pool.connection() as conn:
            try:
                levels_by_user: dict[int, dict[str, int]] = {}
                xp_by_user: dict[int, dict[str, float]] = {}
                for row in conn.execute(
                    f"SELECT user_id, skill_name, skill_level, skill_xp FROM {self.tables.skill_levels}"
                ):
                    skill = self.registries.skills.get_or_none(row["skill_name"])
                    if skill is None:
                        logger.warning(
                            "Skipping stored level for unregistered skill",
                            user_id=row["user_id"],
                            skill=row["skill_name"],
                        )
                        continue
                    levels_by_user.setdefault(row["user_id"], {})[skill.id] = int(row["skill_level"])
                    xp_by_user.setdefault(row["user_id"], {})[skill.id] = float(row["skill_xp"])

                for row in conn.execute(
                    f"SELECT user_id, player_uuid, locale, mana FROM {self.tables.users}"
                ).fetchall():
                    uuid = UUID(row["player_uuid"])
                    if uuid in online:
                        continue
                    user_id = row["user_id"]
                    states.append(
                        self._build_state(
                            conn,
                            uuid,
                            row,
                            levels_by_user.get(user_id, {}),
                            xp_by_user.get(user_id, {}),
                            skip_modifiers=skip_modifiers,
                        )
                    )
            except sqlite3.Error as exc:
                raise StorageError(f"Failed to scan player states: {exc}") from exc

        logger.info("Loaded player states", count=len(states), ignore_online=ignore_online)
        return states

    def load_anti_afk_logs(self, uuid: UUID) -> list[AntiAfkLog]:
        """Read back a player's stored anti-idle warnings, oldest first.

        Failures are logged and yield an empty list.
        """
        try:
            with self.pool.connection() as conn:
                rows = conn.execute(
                    f"""
                    SELECT log_time, log_message, player_coords, world_name
                    FROM {self.tables.logs}
                    WHERE player_uuid = ? AND log_type = ?
                    ORDER BY log_time ASC
                    """,
                    (str(uuid), LOG_TYPE_ANTI_AFK),
                ).fetchall()
        except (sqlite3.Error, StorageError) as exc:
            logger.warning("Failed to load anti-idle logs", player_uuid=str(uuid), error=str(exc))
            return []

        logs = []
        for row in rows:
            try:
                coords = BlockPosition.from_comma_string(row["player_coords"])
            except ValidationError:
                logger.warning(
                    "Skipping anti-idle log with malformed coordinates",
                    player_uuid=str(uuid),
                    coords=row["player_coords"],
                )
                continue
            logs.append(
                AntiAfkLog(
                    timestamp=int(row["log_time"]),
                    message=row["log_message"],
                    coords=coords,
                    world=row["world_name"],
                )
            )
        return logs

    # =========================================================================
    # Save
    # =========================================================================

    def save(self, record: PlayerRecord) -> None:
        """Persist ``record``.

        Does nothing for records flagged ``should_not_save``. A blank profile
        is deleted instead of written when blank-profile retention is off.

        Raises:
            ConnectionAcquisitionError: If no connection can be borrowed.
            UserIdResolutionError: If the user row vanished after its upsert.
            StorageError: If any other write fails.
        """
        if record.should_not_save:
            logger.debug("Skipping save for non-persistable record", player_uuid=str(record.uuid))
            return

        with self.pool.connection() as conn:
            if not self.settings.save_blank_profiles and record.is_blank_profile():
                self._delete_user(conn, record.uuid, missing_ok=True)
                return

            now = self._clock()
            try:
                self._upsert_user(conn, record.uuid, record.locale, record.mana)
                user_id = self.get_user_id(conn, record.uuid)
                self._upsert_skill_levels(conn, user_id, record.skill_levels, record.skill_xp)
                self._rewrite_key_values(conn, user_id, self._key_value_rows(record))
                self._rewrite_modifiers(
                    conn,
                    user_id,
                    [*record.stat_modifiers.values(), *record.trait_modifiers.values()],
                    now,
                )
            except sqlite3.Error as exc:
                raise StorageError(
                    f"Failed to save player data: {exc}", player_uuid=str(record.uuid)
                ) from exc

            if record.session_anti_afk_logs:
                self._append_anti_afk_logs(conn, record.uuid, record.session_anti_afk_logs)

        logger.debug("Saved player", player_uuid=str(record.uuid))

    def apply_state(self, state: UserState) -> None:
        """Write an offline snapshot (mana, levels, modifiers) in one transaction.

        Raises:
            ConnectionAcquisitionError: If no connection can be borrowed.
            StorageError: If any write fails.
        """
        now = self._clock()
        with self.pool.connection() as conn:
            try:
                with transaction(conn):
                    conn.execute(
                        f"""
                        INSERT INTO {self.tables.users} (player_uuid, mana) VALUES (?, ?)
                        ON CONFLICT(player_uuid) DO UPDATE SET mana = excluded.mana
                        """,
                        (str(state.uuid), state.mana),
                    )
                    user_id = self.get_user_id(conn, state.uuid)
                    self._upsert_skill_levels(conn, user_id, state.skill_levels, state.skill_xp, atomic=False)
                    self._rewrite_modifiers(
                        conn,
                        user_id,
                        [*state.stat_modifiers.values(), *state.trait_modifiers.values()],
                        now,
                        atomic=False,
                    )
            except sqlite3.Error as exc:
                raise StorageError(
                    f"Failed to apply player state: {exc}", player_uuid=str(state.uuid)
                ) from exc
        logger.debug("Applied player state", player_uuid=str(state.uuid))

    def delete(self, uuid: UUID) -> None:
        """Delete every row owned by ``uuid`` in one transaction.

        Raises:
            UserIdResolutionError: If the player has no stored row.
            StorageError: If the delete fails; nothing is removed.
        """
        with self.pool.connection() as conn:
            self._delete_user(conn, uuid, missing_ok=False)

    def get_user_id(self, conn: sqlite3.Connection, uuid: UUID) -> int:
        """Resolve the numeric user id for ``uuid``.

        Raises:
            UserIdResolutionError: If no users row exists.
        """
        row = conn.execute(
            f"SELECT user_id FROM {self.tables.users} WHERE player_uuid = ?",
            (str(uuid),),
        ).fetchone()
        if row is None:
            raise UserIdResolutionError(
                "No user id stored for player", player_uuid=str(uuid)
            )
        return int(row["user_id"])

    # =========================================================================
    # Load helpers
    # =========================================================================

    def _fetch_user(self, conn: sqlite3.Connection, uuid: UUID) -> sqlite3.Row | None:
        return conn.execute(
            f"SELECT user_id, player_uuid, locale, mana FROM {self.tables.users} WHERE player_uuid = ?",
            (str(uuid),),
        ).fetchone()

    def _empty_state(self, uuid: UUID) -> UserState:
        return UserState.create_empty(uuid, skills=[skill.id for skill in self.registries.skills])

    def _build_state(
        self,
        conn: sqlite3.Connection,
        uuid: UUID,
        user_row: sqlite3.Row,
        levels: dict[str, int],
        xp: dict[str, float],
        *,
        skip_modifiers: bool,
    ) -> UserState:
        stat_modifiers: dict[str, Any] = {}
        trait_modifiers: dict[str, Any] = {}
        if not skip_modifiers:
            now = self._clock()
            user_id = user_row["user_id"]
            for modifier in self._load_modifiers(conn, user_id, ModifierType.STAT, now):
                stat_modifiers[modifier.name] = modifier
            for modifier in self._load_modifiers(conn, user_id, ModifierType.TRAIT, now):
                trait_modifiers[modifier.name] = modifier
        return UserState(
            uuid=uuid,
            skill_levels=levels,
            skill_xp=xp,
            stat_modifiers=stat_modifiers,
            trait_modifiers=trait_modifiers,
            mana=float(user_row["mana"]),
        )

    def _load_skill_levels(
        self, conn: sqlite3.Connection, user_id: int, uuid: UUID
    ) -> tuple[dict[str, int], dict[str, float]]:
        levels: dict[str, int] = {}
        xp: dict[str, float] = {}
        rows = conn.execute(
            f"SELECT skill_name, skill_level, skill_xp FROM {self.tables.skill_levels} WHERE user_id = ?",
            (user_id,),
        )
        for row in rows:
            skill = self.registries.skills.get_or_none(row["skill_name"])
            if skill is None:
                logger.warning(
                    "Skipping stored level for unregistered skill",
                    player_uuid=str(uuid),
                    skill=row["skill_name"],
                )
                continue
            levels[skill.id] = int(row["skill_level"])
            xp[skill.id] = float(row["skill_xp"])
        return levels, xp

    def _load_modifiers(
        self,
        conn: sqlite3.Connection,
        user_id: int,
        modifier_type: ModifierType,
        now: int,
    ) -> list[TemporalModifier]:
        registry = (
            self.registries.stats if modifier_type is ModifierType.STAT else self.registries.traits
        )
        modifiers = []
        rows = conn.execute(
            f"""
            SELECT modifier_type, type_id, modifier_name, modifier_value, modifier_operation,
                   expiration_time, remaining_duration, metadata
            FROM {self.tables.modifiers}
            WHERE user_id = ? AND modifier_type = ?
            """,
            (user_id, modifier_type.value),
        )
        for row in rows:
            stored = ModifierRow.from_row(row)
            target = registry.get_or_none(stored.type_id)
            if target is None:
                logger.warning(
                    "Skipping stored modifier for unregistered target",
                    user_id=user_id,
                    modifier_type=modifier_type.value,
                    target=stored.type_id,
                    modifier_name=stored.name,
                )
                continue
            modifiers.append(stored.to_modifier(target.id, now))
        return modifiers

    def _load_key_values(
        self, conn: sqlite3.Connection, user_id: int, record: PlayerRecord
    ) -> None:
        rows = conn.execute(
            f"SELECT data_id, category_id, key_name, value FROM {self.tables.key_values} WHERE user_id = ?",
            (user_id,),
        )
        for row in rows:
            kv = KeyValueRow.from_row(row)
            try:
                self._apply_key_value(record, kv)
            except ValueError:
                logger.warning(
                    "Skipping malformed key value",
                    player_uuid=str(record.uuid),
                    data_id=kv.data_id,
                    key=kv.key_name,
                    value=kv.value,
                )

    def _apply_key_value(self, record: PlayerRecord, kv: KeyValueRow) -> None:
        if kv.data_id == ABILITY_DATA_ID:
            if kv.key_name == MANA_ABILITY_COOLDOWN_KEY:
                record.mana_ability_cooldowns[kv.category_id] = int(parse_scalar(kv.value) or 0)
            else:
                record.ability_data.setdefault(kv.category_id, {})[kv.key_name] = parse_scalar(
                    kv.value
                )
        elif kv.data_id == UNCLAIMED_ITEMS_ID:
            record.unclaimed_items.append(UnclaimedItem(key=kv.key_name, amount=int(kv.value)))
        elif kv.data_id == ACTION_BAR_ID:
            try:
                bar = ActionBarType(kv.key_name)
            except ValueError:
                logger.warning("Skipping unknown action bar type", bar=kv.key_name)
                return
            record.set_action_bar_enabled(bar, kv.value.lower() == "true")
        elif kv.data_id == JOBS_ID:
            if kv.key_name == JOBS_KEY:
                for job in filter(None, kv.value.split(",")):
                    skill = self.registries.skills.get_or_none(job)
                    if skill is None:
                        logger.warning("Skipping unregistered job", job=job)
                        continue
                    record.jobs.add(skill.id)
            elif kv.key_name == JOBS_LAST_SELECT_TIME_KEY:
                record.last_job_select_time = int(kv.value)

    # =========================================================================
    # Save helpers
    # =========================================================================

    def _upsert_user(
        self, conn: sqlite3.Connection, uuid: UUID, locale: str | None, mana: float
    ) -> None:
        conn.execute(
            f"""
            INSERT INTO {self.tables.users} (player_uuid, locale, mana) VALUES (?, ?, ?)
            ON CONFLICT(player_uuid) DO UPDATE SET locale = excluded.locale, mana = excluded.mana
            """,
            (str(uuid), locale, mana),
        )

    def _upsert_skill_levels(
        self,
        conn: sqlite3.Connection,
        user_id: int,
        levels: dict[str, int],
        xp: dict[str, float],
        *,
        atomic: bool = True,
    ) -> None:
        params = [(user_id, skill, level, xp.get(skill, 0.0)) for skill, level in levels.items()]
        if not params:
            return
        statement = f"""
            INSERT INTO {self.tables.skill_levels} (user_id, skill_name, skill_level, skill_xp)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(user_id, skill_name) DO UPDATE SET
                skill_level = excluded.skill_level, skill_xp = excluded.skill_xp
        """
        if atomic:
            with transaction(conn):
                conn.executemany(statement, params)
        else:
            conn.executemany(statement, params)

    def _key_value_rows(self, record: PlayerRecord) -> list[KeyValueRow]:
        rows = []
        for ability_id, data in record.ability_data.items():
            for key, value in data.items():
                rows.append(KeyValueRow(ABILITY_DATA_ID, key, str(value), category_id=ability_id))
        for mana_ability_id, cooldown in record.mana_ability_cooldowns.items():
            if cooldown > 0:
                rows.append(
                    KeyValueRow(
                        ABILITY_DATA_ID,
                        MANA_ABILITY_COOLDOWN_KEY,
                        str(cooldown),
                        category_id=mana_ability_id,
                    )
                )

        unclaimed: dict[str, int] = {}
        for item in record.unclaimed_items:
            unclaimed[item.key] = unclaimed.get(item.key, 0) + item.amount
        for key, amount in unclaimed.items():
            rows.append(KeyValueRow(UNCLAIMED_ITEMS_ID, key, str(amount)))

        # The all-enabled default is not stored so blank profiles stay blank.
        if not all(record.is_action_bar_enabled(bar) for bar in ActionBarType):
            for bar in ActionBarType:
                enabled = record.is_action_bar_enabled(bar)
                rows.append(KeyValueRow(ACTION_BAR_ID, bar.value, str(enabled).lower()))

        if record.jobs:
            rows.append(KeyValueRow(JOBS_ID, JOBS_KEY, ",".join(sorted(record.jobs))))
            rows.append(
                KeyValueRow(JOBS_ID, JOBS_LAST_SELECT_TIME_KEY, str(record.last_job_select_time))
            )
        return rows

    def _rewrite_key_values(
        self, conn: sqlite3.Connection, user_id: int, rows: list[KeyValueRow]
    ) -> None:
        with transaction(conn):
            self._delete_rows(conn, self.tables.key_values, user_id)
            conn.executemany(
                f"""
                INSERT OR REPLACE INTO {self.tables.key_values}
                    (user_id, data_id, category_id, key_name, value)
                VALUES (?, ?, ?, ?, ?)
                """,
                [row.to_params(user_id) for row in rows],
            )

    def _rewrite_modifiers(
        self,
        conn: sqlite3.Connection,
        user_id: int,
        modifiers: list[TemporalModifier],
        now: int,
        *,
        atomic: bool = True,
    ) -> None:
        params = [
            ModifierRow.from_modifier(modifier, now).to_params(user_id)
            for modifier in modifiers
            if not modifier.non_persistent
        ]
        statement = f"""
            INSERT OR REPLACE INTO {self.tables.modifiers}
                (user_id, modifier_type, type_id, modifier_name, modifier_value,
                 modifier_operation, expiration_time, remaining_duration, metadata)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """
        if atomic:
            with transaction(conn):
                self._delete_rows(conn, self.tables.modifiers, user_id)
                conn.executemany(statement, params)
        else:
            self._delete_rows(conn, self.tables.modifiers, user_id)
            conn.executemany(statement, params)

    def _append_anti_afk_logs(
        self, conn: sqlite3.Connection, uuid: UUID, logs: list[AntiAfkLog]
    ) -> None:
        """Insert the session's anti-idle logs all-or-nothing.

        A failure is logged and rolled back; it never fails the save.
        """
        params = [
            (
                LOG_TYPE_ANTI_AFK,
                log.timestamp,
                LOG_LEVEL_WARN,
                log.message,
                str(uuid),
                log.coords.to_comma_string(),
                log.world,
            )
            for log in logs
        ]
        try:
            with transaction(conn):
                conn.executemany(
                    f"""
                    INSERT OR IGNORE INTO {self.tables.logs}
                        (log_type, log_time, log_level, log_message, player_uuid,
                         player_coords, world_name)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    params,
                )
        except sqlite3.Error as exc:
            logger.warning(
                "Failed to save anti-idle logs",
                player_uuid=str(uuid),
                count=len(params),
                error=str(exc),
            )

    def _delete_user(self, conn: sqlite3.Connection, uuid: UUID, *, missing_ok: bool) -> None:
        try:
            with transaction(conn):
                try:
                    user_id = self.get_user_id(conn, uuid)
                except UserIdResolutionError:
                    if missing_ok:
                        return
                    raise
                for table in self.tables.user_owned():
                    self._delete_rows(conn, table, user_id)
        except sqlite3.Error as exc:
            logger.error("Failed to delete player data", player_uuid=str(uuid), error=str(exc))
            raise StorageError(
                f"Failed to delete player data: {exc}", player_uuid=str(uuid)
            ) from exc
        logger.info("Deleted player data", player_uuid=str(uuid))

    def _delete_rows(self, conn: sqlite3.Connection, table: str, user_id: int) -> None:
        conn.execute(f"DELETE FROM {table} WHERE user_id = ?", (user_id,))


__all__ = ["StateRepository"]
