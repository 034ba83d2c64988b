"""
JSON rendering of decoder output.

Textual encodings:
  - binary data      → standard base64
  - dates            → RFC 3339 UTC, e.g. 2024-01-31T12:00:00Z
  - serial numbers   → JSON integers (arbitrary precision)
  - non-finite reals → "NaN", "Infinity", "-Infinity"
"""

from __future__ import annotations

import base64
import math
from datetime import UTC, datetime
from typing import Any

from certificate_info.domain.models import CertificateRecord, NameAttribute
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


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def _timestamp(value: datetime) -> str:
    value = value.astimezone(UTC)
    if value.microsecond:
        return value.strftime("%Y-%m-%dT%H:%M:%S.%fZ")
    return value.strftime("%Y-%m-%dT%H:%M:%SZ")


def _name(attributes: tuple[NameAttribute, ...]) -> list[dict[str, str]]:
    return [{"oid": a.oid, "name": a.name, "value": a.value} for a in attributes]


def certificate_to_json(record: CertificateRecord) -> dict[str, Any]:
    key = record.public_key
    return {
        "subject": _name(record.subject),
        "issuer": _name(record.issuer),
        "common_name": record.common_name,
        "serial_number": record.serial_number,
        "version": record.version,
        "not_before": _timestamp(record.validity.not_before),
        "not_after": _timestamp(record.validity.not_after),
        "signature_algorithm": record.signature_algorithm,
        "public_key": {
            "algorithm": key.algorithm,
            "bit_size": key.bit_size,
            "curve": key.curve,
            "der": _b64(key.der),
        },
        "extensions": {tag: list(values) for tag, values in record.extensions.items()},
        "sha1_fingerprint": record.sha1_fingerprint,
        "sha256_fingerprint": record.sha256_fingerprint,
        "friendly_name": record.friendly_name,
        "local_key_id": record.local_key_id,
        "self_issued": record.is_self_issued,
        "certificate": _b64(record.certificate),
    }


def certificates_to_json(records: list[CertificateRecord]) -> list[dict[str, Any]]:
    return [certificate_to_json(record) for record in records]


def _real(value: float) -> float | str:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    return value


def decoded_value_to_json(value: DecodedValue) -> Any:
    """Render a DecodedValue tree as plain JSON-compatible Python values."""
    match value:
        case StringValue(text):
            return text
        case BooleanValue(flag):
            return flag
        case IntegerValue(number):
            return number
        case RealValue(number):
            return _real(number)
        case DateValue(moment):
            return _timestamp(moment)
        case DataValue(data):
            return _b64(data)
        case ArrayValue(items):
            return [decoded_value_to_json(item) for item in items]
        case DictValue(entries):
            return {key: decoded_value_to_json(item) for key, item in entries.items()}
    raise TypeError(f"not a DecodedValue: {type(value).__name__}")
