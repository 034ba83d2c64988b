"""
Shared test fixtures for the certificate-info test suite.

All binary fixtures (certificates, PKCS#12 containers, signed profiles) are
generated per session by tests/builders.py; key generation is the slow part,
so keys and certificates are session-scoped.
"""

from __future__ import annotations

from typing import Any

import pytest
from cryptography import x509
from cryptography.hazmat.primitives.asymmetric import ed448, ed25519

from certificate_info.adapters.pkcs12_decoder import Pkcs12CertificateDecoder
from certificate_info.adapters.profile_decoder import CmsProfileDecoder
from tests.builders import make_certificate, make_dsa_key, make_name, make_rsa_key

type CertAndKey = tuple[x509.Certificate, Any]


@pytest.fixture(scope="session")
def ec_identity() -> CertAndKey:
    """Self-signed EC P-256 certificate with serial 1."""
    return make_certificate(common_name="EC Signer", serial=1)


@pytest.fixture(scope="session")
def rsa_identity() -> CertAndKey:
    """Self-signed RSA-2048 certificate with serial 2."""
    return make_certificate(common_name="RSA Signer", serial=2, key=make_rsa_key())


@pytest.fixture(scope="session")
def dsa_identity() -> CertAndKey:
    return make_certificate(common_name="DSA Signer", serial=3, key=make_dsa_key())


@pytest.fixture(scope="session")
def ed25519_identity() -> CertAndKey:
    return make_certificate(
        common_name="Ed25519 Signer", serial=4, key=ed25519.Ed25519PrivateKey.generate()
    )


@pytest.fixture(scope="session")
def ed448_identity() -> CertAndKey:
    return make_certificate(common_name="Ed448 Signer", serial=5, key=ed448.Ed448PrivateKey.generate())


@pytest.fixture(scope="session")
def ca_chain() -> list[x509.Certificate]:
    """Root CA, intermediate CA and leaf — in that order."""
    root, root_key = make_certificate(common_name="Root CA", serial=10, ca=True)
    intermediate, intermediate_key = make_certificate(
        common_name="Intermediate CA",
        serial=11,
        issuer_name=make_name("Root CA"),
        issuer_key=root_key,
        ca=True,
    )
    leaf, _ = make_certificate(
        common_name="Leaf",
        serial=12,
        issuer_name=make_name("Intermediate CA"),
        issuer_key=intermediate_key,
    )
    return [root, intermediate, leaf]


@pytest.fixture()
def bundle_decoder() -> Pkcs12CertificateDecoder:
    return Pkcs12CertificateDecoder()


@pytest.fixture()
def profile_decoder() -> CmsProfileDecoder:
    return CmsProfileDecoder()
