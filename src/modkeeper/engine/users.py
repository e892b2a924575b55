"""Online players and the active-session set.

UserManager is the one place that knows which players are connected. The
main thread adds and removes sessions; storage workers only ask
:meth:`UserManager.has_user` during bulk scans, so the map is guarded by
a lock.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from uuid import UUID

from modkeeper.core.logging import get_logger
from modkeeper.models.enums import EquipmentSlot
from modkeeper.models.items import ItemStack
from modkeeper.models.player import PlayerRecord


logger = get_logger(__name__)


@dataclass
class OnlinePlayer:
    """Handle on a connected player's held items.

    Attributes:
        uuid: Stable player identity.
        name: Display name for logs.
        main_hand: Item currently held in the main hand.
        off_hand: Item currently held in the off hand.
    """

    uuid: UUID
    name: str = ""
    main_hand: ItemStack = field(default_factory=ItemStack.air)
    off_hand: ItemStack = field(default_factory=ItemStack.air)

    def get_item(self, slot: EquipmentSlot) -> ItemStack:
        if slot is EquipmentSlot.OFF_HAND:
            return self.off_hand
        return self.main_hand


@dataclass
class Session:
    """A connected player paired with its record."""

    player: OnlinePlayer
    record: PlayerRecord


class UserManager:
    """Thread-safe registry of active sessions keyed by player uuid."""

    def __init__(self) -> None:
        self._sessions: dict[UUID, Session] = {}
        self._lock = threading.Lock()

    def add_user(self, player: OnlinePlayer, record: PlayerRecord) -> Session:
        session = Session(player=player, record=record)
        with self._lock:
            self._sessions[player.uuid] = session
        logger.debug("Session opened", player_uuid=str(player.uuid))
        return session

    def remove_user(self, uuid: UUID) -> Session | None:
        with self._lock:
            session = self._sessions.pop(uuid, None)
        if session is not None:
            logger.debug("Session closed", player_uuid=str(uuid))
        return session

    def get_user(self, uuid: UUID) -> PlayerRecord | None:
        with self._lock:
            session = self._sessions.get(uuid)
        return session.record if session else None

    def has_user(self, uuid: UUID) -> bool:
        with self._lock:
            return uuid in self._sessions

    def sessions(self) -> list[Session]:
        """Snapshot of the connected sessions."""
        with self._lock:
            return list(self._sessions.values())

    def online_uuids(self) -> set[UUID]:
        """Snapshot of the connected player ids."""
        with self._lock:
            return set(self._sessions)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)


__all__ = ["OnlinePlayer", "Session", "UserManager"]
