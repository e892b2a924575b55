"""Registries of stats, traits, and skills.

Identifiers are namespaced strings such as ``core:strength``. Storage rows
and item metadata carry identifiers only; the registries resolve them to
the registered objects. Lookups of unknown identifiers return None rather
than raising, so loaders can skip stale rows with a warning.
"""

from __future__ import annotations

from typing import Annotated, Generic, Iterator, TypeVar

from pydantic import AfterValidator, BaseModel, ConfigDict, Field

from modkeeper.core.exceptions import ValidationError


DEFAULT_NAMESPACE = "core"


def parse_namespaced_id(raw: str) -> str:
    """Normalize an identifier to ``namespace:path`` form.

    Identifiers without a namespace get the default ``core`` namespace.

    Raises:
        ValidationError: If either part is empty.
    """
    value = raw.strip().lower()
    namespace, sep, path = value.partition(":")
    if not sep:
        namespace, path = DEFAULT_NAMESPACE, namespace
    if not namespace or not path or ":" in path:
        raise ValidationError(
            "Identifier must have the form namespace:path",
            field_name="id",
            invalid_value=raw,
        )
    return f"{namespace}:{path}"


NamespacedId = Annotated[str, AfterValidator(parse_namespaced_id)]


class Registrable(BaseModel):
    """A registry entry identified by a namespaced id."""

    model_config = ConfigDict(frozen=True)

    id: NamespacedId = Field(description="Namespaced identifier, e.g. core:strength")

    @property
    def namespace(self) -> str:
        return self.id.split(":", 1)[0]

    @property
    def path(self) -> str:
        return self.id.split(":", 1)[1]

    @property
    def name(self) -> str:
        """Upper-case key used to derive modifier names (``STRENGTH``)."""
        return self.path.upper()


class Stat(Registrable):
    """A player stat that item modifiers raise or lower."""

    base_value: float = Field(default=0.0, description="Value with no modifiers")


class Trait(Registrable):
    """A derived trait that item modifiers may also affect directly."""

    base_value: float = Field(default=0.0, description="Value with no modifiers")


class Skill(Registrable):
    """A levelled skill; multipliers scale its experience gain."""


T = TypeVar("T", bound=Registrable)


class Registry(Generic[T]):
    """Identifier-keyed lookup of registered objects."""

    def __init__(self, entries: list[T] | None = None) -> None:
        self._entries: dict[str, T] = {}
        for entry in entries or []:
            self.register(entry)

    def register(self, entry: T) -> T:
        self._entries[entry.id] = entry
        return entry

    def get_or_none(self, identifier: str | None) -> T | None:
        """Resolve an identifier, returning None when unknown or malformed."""
        if identifier is None:
            return None
        try:
            key = parse_namespaced_id(identifier)
        except ValidationError:
            return None
        return self._entries.get(key)

    def __contains__(self, identifier: object) -> bool:
        return isinstance(identifier, str) and self.get_or_none(identifier) is not None

    def __iter__(self) -> Iterator[T]:
        return iter(self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)


class Registries:
    """Bundle of the stat, trait, and skill registries.

    Attributes:
        stats: Registered stats.
        traits: Registered traits.
        skills: Registered skills.
    """

    def __init__(
        self,
        stats: Registry[Stat] | None = None,
        traits: Registry[Trait] | None = None,
        skills: Registry[Skill] | None = None,
    ) -> None:
        self.stats: Registry[Stat] = stats if stats is not None else Registry()
        self.traits: Registry[Trait] = traits if traits is not None else Registry()
        self.skills: Registry[Skill] = skills if skills is not None else Registry()


__all__ = [
    "DEFAULT_NAMESPACE",
    "NamespacedId",
    "parse_namespaced_id",
    "Registrable",
    "Stat",
    "Trait",
    "Skill",
    "Registry",
    "Registries",
]
