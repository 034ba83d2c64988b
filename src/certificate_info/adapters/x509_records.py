"""
X.509 → CertificateRecord conversion.

Uses:
  - cryptography (PyCA): names, validity, serial, extensions, fingerprints
  - asn1crypto: SubjectPublicKeyInfo details, which it reads for any key
    algorithm, including ones cryptography refuses to load

Missing extensions are simply absent from the record; a malformed certificate
or an inverted validity interval raises ParseError.
"""

from __future__ import annotations

from asn1crypto import x509 as asn1_x509
from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.x509.extensions import ExtensionNotFound
from cryptography.x509.oid import ExtendedKeyUsageOID, SignatureAlgorithmOID

from certificate_info.adapters.der import structure
from certificate_info.domain.errors import ParseError
from certificate_info.domain.models import (
    CertificateRecord,
    NameAttribute,
    PublicKeyInfo,
    Validity,
)

_KEY_USAGE_FLAGS = (
    "digital_signature",
    "content_commitment",
    "key_encipherment",
    "data_encipherment",
    "key_agreement",
    "key_cert_sign",
    "crl_sign",
)


_OID_NAMES: dict[x509.ObjectIdentifier, str] = {
    ExtendedKeyUsageOID.SERVER_AUTH: "serverAuth",
    ExtendedKeyUsageOID.CLIENT_AUTH: "clientAuth",
    ExtendedKeyUsageOID.CODE_SIGNING: "codeSigning",
    ExtendedKeyUsageOID.EMAIL_PROTECTION: "emailProtection",
    ExtendedKeyUsageOID.TIME_STAMPING: "timeStamping",
    ExtendedKeyUsageOID.OCSP_SIGNING: "OCSPSigning",
    ExtendedKeyUsageOID.ANY_EXTENDED_KEY_USAGE: "anyExtendedKeyUsage",
    SignatureAlgorithmOID.RSA_WITH_SHA1: "sha1WithRSAEncryption",
    SignatureAlgorithmOID.RSA_WITH_SHA224: "sha224WithRSAEncryption",
    SignatureAlgorithmOID.RSA_WITH_SHA256: "sha256WithRSAEncryption",
    SignatureAlgorithmOID.RSA_WITH_SHA384: "sha384WithRSAEncryption",
    SignatureAlgorithmOID.RSA_WITH_SHA512: "sha512WithRSAEncryption",
    SignatureAlgorithmOID.RSASSA_PSS: "RSASSA-PSS",
    SignatureAlgorithmOID.ECDSA_WITH_SHA1: "ecdsa-with-SHA1",
    SignatureAlgorithmOID.ECDSA_WITH_SHA224: "ecdsa-with-SHA224",
    SignatureAlgorithmOID.ECDSA_WITH_SHA256: "ecdsa-with-SHA256",
    SignatureAlgorithmOID.ECDSA_WITH_SHA384: "ecdsa-with-SHA384",
    SignatureAlgorithmOID.ECDSA_WITH_SHA512: "ecdsa-with-SHA512",
    SignatureAlgorithmOID.DSA_WITH_SHA1: "dsa-with-sha1",
    SignatureAlgorithmOID.DSA_WITH_SHA256: "dsa-with-sha256",
    SignatureAlgorithmOID.ED25519: "ed25519",
    SignatureAlgorithmOID.ED448: "ed448",
}


def _oid_name(oid: x509.ObjectIdentifier) -> str:
    """Conventional short name of an EKU or signature algorithm OID, else its dotted form."""
    return _OID_NAMES.get(oid, oid.dotted_string)


def _name_attributes(name: x509.Name) -> tuple[NameAttribute, ...]:
    attributes = []
    for attribute in name:
        value = attribute.value
        if isinstance(value, bytes):
            value = value.hex()
        attributes.append(
            NameAttribute(
                oid=attribute.oid.dotted_string,
                name=attribute.rfc4514_attribute_name,
                value=value,
            )
        )
    return tuple(attributes)


def _key_usage(usage: x509.KeyUsage) -> tuple[str, ...]:
    flags = [flag for flag in _KEY_USAGE_FLAGS if getattr(usage, flag)]
    # encipher_only / decipher_only are only defined alongside key_agreement
    if usage.key_agreement:
        flags.extend(flag for flag in ("encipher_only", "decipher_only") if getattr(usage, flag))
    return tuple(flags)


def _general_name(name: x509.GeneralName) -> str:
    match name:
        case x509.DNSName(value=value):
            return f"DNS:{value}"
        case x509.RFC822Name(value=value):
            return f"email:{value}"
        case x509.UniformResourceIdentifier(value=value):
            return f"URI:{value}"
        case x509.IPAddress(value=value):
            return f"IP:{value}"
        case x509.DirectoryName(value=value):
            return f"DirName:{value.rfc4514_string()}"
        case x509.RegisteredID(value=value):
            return f"RID:{value.dotted_string}"
        case x509.OtherName(type_id=type_id):
            return f"othername:{type_id.dotted_string}"
    return str(name)


def _extensions(cert: x509.Certificate) -> dict[str, tuple[str, ...]]:
    """Render the extensions this service reports; unknown ones are ignored."""
    extensions: dict[str, tuple[str, ...]] = {}
    lookups = (
        ("key_usage", x509.KeyUsage, _key_usage),
        (
            "extended_key_usage",
            x509.ExtendedKeyUsage,
            lambda eku: tuple(_oid_name(oid) for oid in eku),
        ),
        (
            "subject_alt_names",
            x509.SubjectAlternativeName,
            lambda san: tuple(_general_name(name) for name in san),
        ),
        (
            "basic_constraints",
            x509.BasicConstraints,
            lambda bc: (f"CA:{str(bc.ca).upper()}",)
            + ((f"pathlen:{bc.path_length}",) if bc.path_length is not None else ()),
        ),
        ("subject_key_identifier", x509.SubjectKeyIdentifier, lambda ski: (ski.digest.hex(),)),
        (
            "authority_key_identifier",
            x509.AuthorityKeyIdentifier,
            lambda aki: (aki.key_identifier.hex(),) if aki.key_identifier is not None else (),
        ),
    )
    for tag, extension_class, render in lookups:
        try:
            ext = cert.extensions.get_extension_for_class(extension_class)
        except ExtensionNotFound:
            continue
        values = render(ext.value)
        if values:
            extensions[tag] = values
    return extensions


def _public_key_info(der_bytes: bytes) -> PublicKeyInfo:
    asn1_cert = asn1_x509.Certificate.load(der_bytes)
    key_info = asn1_cert.public_key
    algorithm = key_info.algorithm
    curve = None
    if algorithm == "ec":
        _, curve = key_info.curve
    bit_size = None
    # asn1crypto only sizes RSA, DSA and EC keys
    if algorithm in ("rsa", "dsa", "ec"):
        try:
            bit_size = key_info.bit_size
        except ValueError:
            bit_size = None
    return PublicKeyInfo(algorithm=algorithm, der=key_info.dump(), bit_size=bit_size, curve=curve)


def der_to_certificate_record(
    der_bytes: bytes,
    friendly_name: str | None = None,
    local_key_id: str | None = None,
) -> CertificateRecord:
    """Convert DER-encoded X.509 bytes into a CertificateRecord."""
    with structure("certificate"):
        cert = x509.load_der_x509_certificate(der_bytes)
        validity = Validity(
            not_before=cert.not_valid_before_utc,
            not_after=cert.not_valid_after_utc,
        )
        record = CertificateRecord(
            certificate=bytes(der_bytes),
            subject=_name_attributes(cert.subject),
            issuer=_name_attributes(cert.issuer),
            serial_number=cert.serial_number,
            validity=validity,
            public_key=_public_key_info(der_bytes),
            version=cert.version.value + 1,
            signature_algorithm=_oid_name(cert.signature_algorithm_oid),
            sha1_fingerprint=cert.fingerprint(hashes.SHA1()).hex(),
            sha256_fingerprint=cert.fingerprint(hashes.SHA256()).hex(),
            extensions=_extensions(cert),
            friendly_name=friendly_name,
            local_key_id=local_key_id,
        )

    if not validity.is_ordered():
        raise ParseError(
            f"validity interval is inverted ({validity.not_before.isoformat()} > "
            f"{validity.not_after.isoformat()})",
            field="certificate.validity",
        )
    return record
