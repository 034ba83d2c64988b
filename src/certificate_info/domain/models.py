"""
Domain models — immutable records produced by the decoders.

These are pure value objects with no behavior beyond a few derived
properties. A CertificateRecord owns its DER bytes outright, so nothing
returned by a decoder aliases the caller's input buffer.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, unique


@dataclass(frozen=True, slots=True)
class NameAttribute:
    """One attribute-type/value pair of a distinguished name, e.g. CN=Example."""

    oid: str
    name: str
    value: str


@dataclass(frozen=True, slots=True)
class Validity:
    """Validity interval; both ends are timezone-aware UTC."""

    not_before: datetime
    not_after: datetime

    def is_ordered(self) -> bool:
        return self.not_before <= self.not_after


@dataclass(frozen=True, slots=True)
class PublicKeyInfo:
    """
    Subject public key of a certificate.

    `der` is the full SubjectPublicKeyInfo; `bit_size` and `curve` are
    filled in when the algorithm defines them.
    """

    algorithm: str
    der: bytes = field(repr=False)
    bit_size: int | None = None
    curve: str | None = None


@dataclass(frozen=True, slots=True)
class CertificateRecord:
    """
    One X.509 certificate extracted from a PKCS#12 bundle.

    `extensions` maps an extension tag (key_usage, subject_alt_names, ...) to
    its rendered values; absent extensions are simply missing from the map.
    """

    certificate: bytes = field(repr=False)
    subject: tuple[NameAttribute, ...]
    issuer: tuple[NameAttribute, ...]
    serial_number: int
    validity: Validity
    public_key: PublicKeyInfo
    version: int
    signature_algorithm: str
    sha1_fingerprint: str
    sha256_fingerprint: str
    extensions: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    friendly_name: str | None = None
    local_key_id: str | None = None

    @property
    def is_self_issued(self) -> bool:
        return self.subject == self.issuer

    @property
    def common_name(self) -> str | None:
        for attribute in self.subject:
            if attribute.name == "CN":
                return attribute.value
        return None


@dataclass(frozen=True, slots=True)
class MacData:
    """The integrity block of a PFX: HMAC over the authenticated safe."""

    digest_algorithm: str
    salt: bytes = field(repr=False)
    iterations: int
    digest: bytes = field(repr=False)


@unique
class BagKind(Enum):
    """
    Kinds of PKCS#12 SafeBag.

    UNRECOGNIZED covers every bag id this service does not know; such bags
    are skipped and never fail a decode.
    """

    CERTIFICATE = "certificate"
    KEY = "key"
    SHROUDED_KEY = "shrouded_key"
    CRL = "crl"
    SECRET = "secret"
    NESTED = "nested"
    UNRECOGNIZED = "unrecognized"


@dataclass(frozen=True, slots=True)
class SignerOutcome:
    """Verification result of a single SignerInfo."""

    index: int
    digest_algorithm: str
    signature_algorithm: str
    valid: bool
    reason: str | None = None
    unsupported: bool = False


@dataclass(frozen=True, slots=True)
class SignedPayload:
    """
    A verified and unwrapped CMS SignedData structure.

    `content` is the encapsulated content (the property-list document);
    `outcomes` holds one entry per SignerInfo, in structure order.
    """

    content: bytes = field(repr=False)
    content_type: str
    signer_certificates: tuple[bytes, ...] = field(default=(), repr=False)
    outcomes: tuple[SignerOutcome, ...] = ()

    @property
    def verified(self) -> bool:
        return any(outcome.valid for outcome in self.outcomes)
