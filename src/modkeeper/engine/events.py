"""Player action events delivered by the host's event dispatch."""

from __future__ import annotations

from dataclasses import dataclass, field

from modkeeper.engine.users import OnlinePlayer
from modkeeper.models.items import ItemStack


@dataclass
class PlayerEvent:
    """Base for events triggered by one player's action.

    Attributes:
        player: The acting player.
        cancelled: Set upstream when another handler vetoed the action.
    """

    player: OnlinePlayer
    cancelled: bool = field(default=False, kw_only=True)

    def cancel(self) -> None:
        self.cancelled = True


@dataclass
class SwapHandItemsEvent(PlayerEvent):
    """The player swapped the items in their main and off hands.

    Both items describe the hands after the swap.
    """

    main_hand_item: ItemStack = field(default_factory=ItemStack.air)
    off_hand_item: ItemStack = field(default_factory=ItemStack.air)


@dataclass
class ItemConsumeEvent(PlayerEvent):
    """The player consumed an item (ate or drank it)."""

    item: ItemStack = field(default_factory=ItemStack.air)


__all__ = ["PlayerEvent", "SwapHandItemsEvent", "ItemConsumeEvent"]
