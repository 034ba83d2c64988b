"""
Ports — Protocol-based interfaces for infrastructure adapters.

These define WHAT the service needs without specifying HOW it is done:

  Domain ← Ports (protocols) ← Adapters (implementations)

Adapters satisfy a port structurally, simply by implementing its methods.
Every port returns a Result; no exception crosses a port.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from railway.result import Result

from certificate_info.domain.models import CertificateRecord, SignedPayload
from certificate_info.domain.values import DecodedValue


@runtime_checkable
class ContentFetcher(Protocol):
    """Port: download the raw bytes behind a client-supplied URL."""

    def fetch(self, url: str) -> Result[bytes]: ...


@runtime_checkable
class CertificateBundleDecoder(Protocol):
    """
    Port: extract every X.509 certificate from a PKCS#12 container.

    The passphrase defaults to the empty string, which is the only one the
    service ever supplies.
    """

    def decode(self, data: bytes, passphrase: str = "") -> Result[list[CertificateRecord]]: ...


@runtime_checkable
class SignedProfileDecoder(Protocol):
    """
    Port: verify a CMS SignedData profile and decode its property-list payload.

    `verify` stops after signature verification; `decode_and_verify` also
    parses the payload, and only once at least one signer has verified.
    """

    def verify(self, data: bytes) -> Result[SignedPayload]: ...

    def decode_and_verify(self, data: bytes) -> Result[DecodedValue]: ...
