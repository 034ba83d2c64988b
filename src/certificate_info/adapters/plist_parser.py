"""
Property-list payload → DecodedValue.

plistlib detects the document format (XML or binary) on its own. The result
is converted into the DecodedValue union so nothing downstream has to deal
with plistlib's native types.
"""

from __future__ import annotations

import plistlib
from datetime import UTC, datetime
from xml.parsers.expat import ExpatError

import structlog

from railway import ErrorCode
from railway.result import Result

from certificate_info.domain.errors import ParseError, classify_failure
from certificate_info.domain.values import (
    ArrayValue,
    BooleanValue,
    DataValue,
    DateValue,
    DecodedValue,
    DictValue,
    IntegerValue,
    RealValue,
    StringValue,
)

log = structlog.get_logger()


def to_decoded_value(value: object) -> DecodedValue:
    """Convert a plistlib value tree, recursively. Raises ParseError on anything else."""
    match value:
        # bool is a subclass of int: test it first
        case bool():
            return BooleanValue(value)
        case int():
            return IntegerValue(value)
        case plistlib.UID():
            return IntegerValue(value.data)
        case float():
            return RealValue(value)
        case str():
            return StringValue(value)
        case bytes() | bytearray():
            return DataValue(bytes(value))
        case datetime():
            # plistlib hands back naive datetimes that are in UTC
            if value.tzinfo is None:
                value = value.replace(tzinfo=UTC)
            return DateValue(value.astimezone(UTC))
        case list() | tuple():
            return ArrayValue(tuple(to_decoded_value(item) for item in value))
        case dict():
            entries = {}
            for key, item in value.items():
                if not isinstance(key, str):
                    raise ParseError(f"dictionary key {key!r} is not a string", field="plist")
                entries[key] = to_decoded_value(item)
            return DictValue(entries)
    raise ParseError(f"unexpected value of type {type(value).__name__}", field="plist")


def _load(data: bytes) -> DecodedValue:
    if not data:
        raise ParseError("empty property list", field="plist")
    try:
        native = plistlib.loads(data)
    except (plistlib.InvalidFileException, ExpatError, ValueError, TypeError, KeyError) as exc:
        raise ParseError(str(exc) or type(exc).__name__, field="plist") from exc
    decoded = to_decoded_value(native)
    log.debug("plist.decoded", root=type(decoded).__name__, payload_bytes=len(data))
    return decoded


def parse_property_list(data: bytes) -> Result[DecodedValue]:
    """
    Parse a property-list document.

    Returns:
        Success(DecodedValue)
        Failure(PARSE_ERROR) — not a property list, or a malformed one
    """
    return Result.from_computation(
        lambda: _load(data),
        ErrorCode.PARSE_ERROR,
        "Failed to parse property list",
    ).map_failure(classify_failure)
