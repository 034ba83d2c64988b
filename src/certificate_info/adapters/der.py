"""
Shared DER/ASN.1 helpers for the PKCS#12 and CMS decoders.

asn1crypto parses lazily: a malformed structure surfaces as a ValueError or
TypeError from whichever attribute access first touches it. `structure()`
turns those into a ParseError naming the field being decoded, so callers can
tell where a container stopped making sense.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import TypeVar

from asn1crypto import core
from cryptography.hazmat.primitives import hashes

from certificate_info.domain.errors import DecodeError, ParseError, UnsupportedAlgorithmError

A = TypeVar("A", bound=core.Asn1Value)

_MALFORMED = (ValueError, TypeError, KeyError, IndexError, OverflowError)

_HASHES: dict[str, type[hashes.HashAlgorithm]] = {
    "md5": hashes.MD5,
    "sha1": hashes.SHA1,
    "sha224": hashes.SHA224,
    "sha256": hashes.SHA256,
    "sha384": hashes.SHA384,
    "sha512": hashes.SHA512,
    "sha512_224": hashes.SHA512_224,
    "sha512_256": hashes.SHA512_256,
    "sha3_224": hashes.SHA3_224,
    "sha3_256": hashes.SHA3_256,
    "sha3_384": hashes.SHA3_384,
    "sha3_512": hashes.SHA3_512,
}


@contextmanager
def structure(field: str) -> Iterator[None]:
    """Convert asn1crypto/cryptography parsing exceptions into ParseError(field=...)."""
    try:
        yield
    except DecodeError:
        raise
    except _MALFORMED as exc:
        raise ParseError(str(exc) or type(exc).__name__, field=field) from exc


def load(spec: type[A], data: bytes, field: str) -> A:
    """Load `data` as `spec`, rejecting empty input and trailing bytes."""
    if not data:
        raise ParseError("no data", field=field)
    with structure(field):
        return spec.load(data, strict=True)


def octets(value: core.OctetString, field: str) -> bytes:
    """Raw content of a (possibly BER-constructed) OCTET STRING."""
    with structure(field):
        data = value.native
    if not isinstance(data, bytes):
        raise ParseError("expected an OCTET STRING", field=field)
    return data


def hash_algorithm(name: str) -> hashes.HashAlgorithm:
    """Instantiate the `cryptography` hash for an asn1crypto digest algorithm name."""
    try:
        return _HASHES[name]()
    except KeyError:
        raise UnsupportedAlgorithmError(f"unsupported digest algorithm {name!r}") from None


def digest(algorithm: hashes.HashAlgorithm, data: bytes) -> bytes:
    ctx = hashes.Hash(algorithm)
    ctx.update(data)
    return ctx.finalize()
