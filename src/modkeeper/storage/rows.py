"""Row types mapping modifiers and auxiliary data onto table columns."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union

from modkeeper.models.enums import ModifierType, Operation
from modkeeper.models.modifiers import MODIFIER_CLASSES, TemporalModifier


# =============================================================================
# Stored Expiry
# =============================================================================


@dataclass(frozen=True)
class Permanent:
    """The modifier never expires."""

    def to_columns(self) -> tuple[int | None, int | None]:
        return None, None

    def resolve(self, now: int) -> tuple[int | None, bool]:
        return None, False


@dataclass(frozen=True)
class ExpiresAt:
    """The modifier expires at an absolute instant (epoch ms)."""

    timestamp: int

    def to_columns(self) -> tuple[int | None, int | None]:
        return self.timestamp, None

    def resolve(self, now: int) -> tuple[int | None, bool]:
        return self.timestamp, False


@dataclass(frozen=True)
class Remaining:
    """The modifier has ``duration`` ms left and its clock is paused."""

    duration: int

    def to_columns(self) -> tuple[int | None, int | None]:
        return None, self.duration

    def resolve(self, now: int) -> tuple[int | None, bool]:
        return now + self.duration, True


StoredExpiry = Union[Permanent, ExpiresAt, Remaining]


def expiry_for(modifier: TemporalModifier, now: int) -> StoredExpiry:
    """Pick the stored expiry form of a live modifier.

    A paused modifier stores its remaining time. One whose remaining time
    already reached zero stores its absolute expiry instead, so that it
    still loads as expired rather than permanent.
    """
    if modifier.expires_at is None:
        return Permanent()
    if modifier.pause_offline:
        remaining = modifier.remaining(now)
        if remaining > 0:
            return Remaining(remaining)
    return ExpiresAt(modifier.expires_at)


def expiry_from_columns(expiration_time: int | None, remaining_duration: int | None) -> StoredExpiry:
    """Read the stored expiry; a nonzero remaining duration wins."""
    if remaining_duration:
        return Remaining(int(remaining_duration))
    if expiration_time:
        return ExpiresAt(int(expiration_time))
    return Permanent()


# =============================================================================
# Rows
# =============================================================================


@dataclass
class ModifierRow:
    """One row of the modifiers table.

    Attributes:
        modifier_type: Namespace discriminator (stat or trait).
        type_id: Target stat or trait identifier.
        name: Modifier name, unique per user and namespace.
        value: Modifier magnitude.
        operation: Combination operation.
        expiry: Stored expiry form.
        metadata: Free-form metadata column, unused by the core.
    """

    modifier_type: ModifierType
    type_id: str
    name: str
    value: float
    operation: Operation = Operation.ADD
    expiry: StoredExpiry = Permanent()
    metadata: str | None = None

    @classmethod
    def from_row(cls, row: Any) -> ModifierRow:
        """Create from a database row (mapping or sequence in column order)."""
        return cls(
            modifier_type=ModifierType(row["modifier_type"]),
            type_id=row["type_id"],
            name=row["modifier_name"],
            value=float(row["modifier_value"]),
            operation=Operation.from_sql_id(row["modifier_operation"]),
            expiry=expiry_from_columns(row["expiration_time"], row["remaining_duration"]),
            metadata=row["metadata"],
        )

    @classmethod
    def from_modifier(cls, modifier: TemporalModifier, now: int) -> ModifierRow:
        return cls(
            modifier_type=modifier.modifier_type,
            type_id=modifier.target,
            name=modifier.name,
            value=modifier.value,
            operation=modifier.operation,
            expiry=expiry_for(modifier, now),
        )

    def to_modifier(self, target: str, now: int) -> TemporalModifier:
        """Rebuild the live modifier with ``target`` as its resolved identifier."""
        expires_at, pause_offline = self.expiry.resolve(now)
        return MODIFIER_CLASSES[self.modifier_type](
            name=self.name,
            target=target,
            value=self.value,
            operation=self.operation,
            expires_at=expires_at,
            pause_offline=pause_offline,
        )

    def to_params(self, user_id: int) -> tuple[Any, ...]:
        expiration_time, remaining_duration = self.expiry.to_columns()
        return (
            user_id,
            self.modifier_type.value,
            self.type_id,
            self.name,
            self.value,
            self.operation.sql_id,
            expiration_time,
            remaining_duration,
            self.metadata,
        )


@dataclass
class KeyValueRow:
    """One row of the untyped key_values table.

    ``category_id`` is an empty string when the category has no sub-key.
    """

    data_id: int
    key_name: str
    value: str
    category_id: str = ""

    @classmethod
    def from_row(cls, row: Any) -> KeyValueRow:
        return cls(
            data_id=int(row["data_id"]),
            key_name=row["key_name"],
            value=row["value"],
            category_id=row["category_id"] or "",
        )

    def to_params(self, user_id: int) -> tuple[Any, ...]:
        return (user_id, self.data_id, self.category_id, self.key_name, self.value)


def parse_scalar(raw: str | None) -> Any:
    """Decode a stored key-value string as int, then float, else as-is."""
    if raw is None:
        return None
    for cast in (int, float):
        try:
            return cast(raw)
        except ValueError:
            continue
    return raw


__all__ = [
    "Permanent",
    "ExpiresAt",
    "Remaining",
    "StoredExpiry",
    "expiry_for",
    "expiry_from_columns",
    "ModifierRow",
    "KeyValueRow",
    "parse_scalar",
]
