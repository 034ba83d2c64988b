"""
DecodedValue — the generic value tree produced from a property-list payload.

A tagged union of frozen dataclasses, one per property-list type. Consumers
dispatch with an exhaustive match/case:

    match value:
        case StringValue(text): ...
        case DictValue(entries): ...
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True, slots=True)
class StringValue:
    value: str


@dataclass(frozen=True, slots=True)
class IntegerValue:
    value: int


@dataclass(frozen=True, slots=True)
class RealValue:
    value: float


@dataclass(frozen=True, slots=True)
class BooleanValue:
    value: bool


@dataclass(frozen=True, slots=True)
class DateValue:
    """A point in time, always timezone-aware UTC."""

    value: datetime


@dataclass(frozen=True, slots=True)
class DataValue:
    value: bytes = field(repr=False)


@dataclass(frozen=True, slots=True)
class ArrayValue:
    items: tuple[DecodedValue, ...] = ()


@dataclass(frozen=True, slots=True)
class DictValue:
    """Mapping of unique string keys; key order carries no meaning."""

    entries: Mapping[str, DecodedValue] = field(default_factory=dict)


type DecodedValue = (
    StringValue
    | IntegerValue
    | RealValue
    | BooleanValue
    | DateValue
    | DataValue
    | ArrayValue
    | DictValue
)
