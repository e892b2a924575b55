"""Reloading of effective stat and trait values.

The modifier engine only decides which identifiers changed; a reloader
recomputes what those changes mean. :class:`StatManager` is the default
reloader: it folds every active modifier on a target into one effective
value and stores it on the player record.

Combination order:
    1. base value plus every ADD modifier
    2. scaled by ``1 + sum(ADD_PERCENT) / 100``
    3. multiplied by every MULTIPLY modifier
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol, Union

from modkeeper.core.logging import get_logger
from modkeeper.models.enums import Operation
from modkeeper.models.modifiers import TemporalModifier, now_millis
from modkeeper.models.player import PlayerRecord
from modkeeper.models.registry import Stat, Trait


logger = get_logger(__name__)

ReloadableIdentifier = Union[Stat, Trait]


class ModifierReloader(Protocol):
    """Recomputes one target's effective value after its modifiers change."""

    def reload(self, record: PlayerRecord, identifier: ReloadableIdentifier) -> None: ...


def combine_modifiers(base: float, modifiers: Iterable[TemporalModifier]) -> float:
    """Fold modifiers into ``base`` following the combination order."""
    additive = 0.0
    percent = 0.0
    factor = 1.0
    for modifier in modifiers:
        if modifier.operation is Operation.ADD:
            additive += modifier.value
        elif modifier.operation is Operation.ADD_PERCENT:
            percent += modifier.value
        elif modifier.operation is Operation.MULTIPLY:
            factor *= modifier.value
    return (base + additive) * (1 + percent / 100) * factor


class StatManager:
    """Default reloader writing effective values into ``record.effective_values``."""

    def __init__(self, clock=now_millis) -> None:
        self._clock = clock

    def reload(self, record: PlayerRecord, identifier: ReloadableIdentifier) -> None:
        now = self._clock()
        if isinstance(identifier, Stat):
            cache = record.stat_modifiers
        else:
            cache = record.trait_modifiers
        active = [m for m in cache.for_target(identifier.id) if not m.is_expired(now)]
        value = combine_modifiers(identifier.base_value, active)
        record.effective_values[identifier.id] = value
        logger.debug(
            "Reloaded identifier",
            player_uuid=str(record.uuid),
            identifier=identifier.id,
            value=value,
            modifiers=len(active),
        )

    def reload_all(self, record: PlayerRecord, identifiers: Iterable[ReloadableIdentifier]) -> None:
        for identifier in identifiers:
            self.reload(record, identifier)


__all__ = [
    "ReloadableIdentifier",
    "ModifierReloader",
    "combine_modifiers",
    "StatManager",
]
