"""Tests for consumed-item modifier merging."""

from __future__ import annotations

from typing import Any, Callable

import pytest

from modkeeper.core.config import ModifierSettings
from modkeeper.engine.consumption import ConsumptionHandler
from modkeeper.engine.events import ItemConsumeEvent
from modkeeper.models.modifiers import StatModifier


class CountingReloader:
    """Reloader stub counting reloads per identifier."""

    def __init__(self) -> None:
        self.reloads: list[str] = []

    def reload(self, record, identifier) -> None:
        self.reloads.append(identifier.id)


@pytest.fixture
def counting_reloader() -> CountingReloader:
    return CountingReloader()


@pytest.fixture
def handler(
    user_manager: Any, registries: Any, counting_reloader: CountingReloader
) -> ConsumptionHandler:
    return ConsumptionHandler(user_manager, registries, counting_reloader, ModifierSettings())


class TestConsumption:
    """Tests for ConsumptionHandler.on_consume."""

    def test_first_consume(
        self, handler: ConsumptionHandler, session: Any, make_item: Callable[..., Any]
    ) -> None:
        handler.on_consume(
            ItemConsumeEvent(session.player, item=make_item("potion", stats=[("strength", 10)]))
        )

        modifier = session.record.get_stat_modifier("STRENGTH.Consumed")
        assert modifier.value == 10
        assert modifier.non_persistent is False

    def test_stacking_is_capped(
        self, handler: ConsumptionHandler, session: Any, make_item: Callable[..., Any]
    ) -> None:
        """Test 40 + 30 yields exactly 50, not 70."""
        handler.on_consume(
            ItemConsumeEvent(session.player, item=make_item("potion", stats=[("strength", 40)]))
        )
        handler.on_consume(
            ItemConsumeEvent(session.player, item=make_item("potion", stats=[("strength", 30)]))
        )

        assert session.record.get_stat_modifier("STRENGTH.Consumed").value == 50
        assert len(session.record.stat_modifiers) == 1

    @pytest.mark.parametrize("values", [[60], [49, 2], [25, 25, 25, 25]])
    def test_cap_never_exceeded(
        self,
        handler: ConsumptionHandler,
        session: Any,
        make_item: Callable[..., Any],
        values: list[float],
    ) -> None:
        for value in values:
            handler.on_consume(
                ItemConsumeEvent(
                    session.player, item=make_item("potion", stats=[("strength", value)])
                )
            )

        assert session.record.get_stat_modifier("STRENGTH.Consumed").value <= 50

    def test_removes_equip_modifier(
        self, handler: ConsumptionHandler, session: Any, make_item: Callable[..., Any]
    ) -> None:
        session.record.add_stat_modifier(
            StatModifier(name="STRENGTH", target="strength", value=5, non_persistent=True)
        )

        handler.on_consume(
            ItemConsumeEvent(session.player, item=make_item("potion", stats=[("strength", 10)]))
        )

        assert session.record.get_stat_modifier("STRENGTH") is None

    def test_requirements_not_met(
        self, handler: ConsumptionHandler, session: Any, make_item: Callable[..., Any]
    ) -> None:
        """Test nothing is granted, but the equip modifier is still removed."""
        session.record.add_stat_modifier(
            StatModifier(name="STRENGTH", target="strength", value=5, non_persistent=True)
        )
        item = make_item("potion", stats=[("strength", 10)], requirements=[("fighting", 5)])

        handler.on_consume(ItemConsumeEvent(session.player, item=item))

        assert len(session.record.stat_modifiers) == 0

    def test_traits_and_multipliers(
        self, handler: ConsumptionHandler, session: Any, make_item: Callable[..., Any]
    ) -> None:
        item = make_item(
            "stew", traits=[("attack_damage", 30)], multipliers=[("farming", 40)]
        )

        handler.on_consume(ItemConsumeEvent(session.player, item=item))
        handler.on_consume(ItemConsumeEvent(session.player, item=item))

        assert session.record.get_trait_modifier("ATTACK_DAMAGE.Consumed").value == 50
        assert session.record.get_multiplier("FARMING.Consumed").value == 50

    def test_reloads_each_identifier_once(
        self,
        handler: ConsumptionHandler,
        session: Any,
        counting_reloader: CountingReloader,
        make_item: Callable[..., Any],
    ) -> None:
        item = make_item(
            "feast",
            stats=[("strength", 1), ("health", 2)],
            traits=[("attack_damage", 3)],
        )

        handler.on_consume(ItemConsumeEvent(session.player, item=item))

        assert sorted(counting_reloader.reloads) == [
            "core:attack_damage",
            "core:health",
            "core:strength",
        ]

    def test_cancelled_event_ignored(
        self,
        handler: ConsumptionHandler,
        session: Any,
        counting_reloader: CountingReloader,
        make_item: Callable[..., Any],
    ) -> None:
        event = ItemConsumeEvent(
            session.player, item=make_item("potion", stats=[("strength", 10)]), cancelled=True
        )

        assert handler.on_consume(event) == set()
        assert len(session.record.stat_modifiers) == 0
        assert counting_reloader.reloads == []
