"""
Signed profile decoder — CMS SignedData verification + property-list payload.

Uses:
  - asn1crypto: ContentInfo / SignedData / SignerInfo parsing
  - cryptography (PyCA): digests and public-key signature verification

Pipeline:
  raw bytes
    → asn1crypto: ContentInfo.load() → SignedData → eContent
    → per SignerInfo: locate signer certificate, check signed attributes,
      verify the signature with the certificate's public key
    → at least one valid signer → plist_parser.parse_property_list(eContent)

Verification checks the signature itself. It deliberately does not build or
validate a certificate chain, check revocation, or check validity periods.
"""

from __future__ import annotations

import structlog
from asn1crypto import cms, core
from asn1crypto import x509 as asn1_x509
from cryptography import exceptions as crypto_exceptions
from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import dsa, ec, ed448, ed25519, padding, rsa

from railway import ErrorCode
from railway.result import Result

from certificate_info.adapters.der import digest, hash_algorithm, load, octets, structure
from certificate_info.adapters.plist_parser import parse_property_list
from certificate_info.domain.errors import (
    InvalidSignatureError,
    UnsupportedAlgorithmError,
    UnsupportedContentTypeError,
    classify_failure,
)
from certificate_info.domain.models import SignedPayload, SignerOutcome
from certificate_info.domain.values import DecodedValue

log = structlog.get_logger()


# ─────────────────────── Signer certificates ───────────────────────


def _certificates(signed_data: cms.SignedData) -> list[asn1_x509.Certificate]:
    certificate_set = signed_data["certificates"]
    if isinstance(certificate_set, core.Void):
        return []
    with structure("signed_data.certificates"):
        return [choice.chosen for choice in certificate_set if choice.name == "certificate"]


def _find_signer_certificate(
    sid: cms.SignerIdentifier,
    certificates: list[asn1_x509.Certificate],
) -> asn1_x509.Certificate | None:
    """Match a SignerIdentifier by issuer+serial or by subject key identifier."""
    with structure("signer_info.sid"):
        if sid.name == "issuer_and_serial_number":
            issuer = sid.chosen["issuer"].hashable
            serial = sid.chosen["serial_number"].native
            for cert in certificates:
                if cert.serial_number == serial and cert.issuer.hashable == issuer:
                    return cert
        elif sid.name == "subject_key_identifier":
            key_id = sid.chosen.native
            for cert in certificates:
                if cert.key_identifier == key_id:
                    return cert
    return None


# ─────────────────────── Signature verification ───────────────────────


def _signed_bytes(
    signer_info: cms.SignerInfo,
    content: bytes,
    content_type: str,
    algorithm: hashes.HashAlgorithm,
) -> bytes:
    """
    The exact bytes the signature covers.

    Without signed attributes that is the content itself. With them, the
    message-digest attribute must match the content digest, a content-type
    attribute (when present) must match the encapsulated type, and the
    signature covers the attributes re-tagged as a SET OF.
    """
    signed_attrs = signer_info["signed_attrs"]
    if isinstance(signed_attrs, core.Void) or not len(signed_attrs):
        return content

    message_digest = None
    attr_content_type = None
    for attribute in signed_attrs:
        attr_type = attribute["type"].native
        if attr_type == "message_digest":
            message_digest = attribute["values"][0].native
        elif attr_type == "content_type":
            attr_content_type = attribute["values"][0].native

    if message_digest is None:
        raise InvalidSignatureError("signed attributes carry no message digest")
    if attr_content_type is not None and attr_content_type != content_type:
        raise InvalidSignatureError(
            f"content-type attribute {attr_content_type!r} does not match {content_type!r}"
        )
    if message_digest != digest(algorithm, content):
        raise InvalidSignatureError("message digest does not match the content")

    # IMPLICIT [0] → universal SET tag
    return b"\x31" + signed_attrs.dump()[1:]


def _pss_padding(signature_algorithm: cms.SignedDigestAlgorithm) -> tuple[padding.PSS, hashes.HashAlgorithm]:
    params = signature_algorithm["parameters"]
    pss_hash = hash_algorithm(params["hash_algorithm"]["algorithm"].native)
    mgf = params["mask_gen_algorithm"]
    if mgf["algorithm"].native != "mgf1":
        raise UnsupportedAlgorithmError(f"unsupported PSS mask generation {mgf['algorithm'].native!r}")
    mgf_hash = hash_algorithm(mgf["parameters"]["algorithm"].native)
    pss = padding.PSS(mgf=padding.MGF1(mgf_hash), salt_length=params["salt_length"].native)
    return pss, pss_hash


def _verify_signature(
    public_key: object,
    signature_algorithm: cms.SignedDigestAlgorithm,
    signature: bytes,
    data: bytes,
    algorithm: hashes.HashAlgorithm,
) -> None:
    """Raise InvalidSignature / UnsupportedAlgorithmError unless the signature holds."""
    try:
        family = signature_algorithm.signature_algo
    except ValueError:
        raise UnsupportedAlgorithmError(
            f"unsupported signature algorithm {signature_algorithm['algorithm'].native!r}"
        ) from None

    match public_key:
        case rsa.RSAPublicKey() if family == "rsassa_pss":
            with structure("signature_algorithm.parameters"):
                pss, pss_hash = _pss_padding(signature_algorithm)
            public_key.verify(signature, data, pss, pss_hash)
        case rsa.RSAPublicKey() if family == "rsassa_pkcs1v15":
            public_key.verify(signature, data, padding.PKCS1v15(), algorithm)
        case ec.EllipticCurvePublicKey() if family == "ecdsa":
            public_key.verify(signature, data, ec.ECDSA(algorithm))
        case dsa.DSAPublicKey() if family == "dsa":
            public_key.verify(signature, data, algorithm)
        case ed25519.Ed25519PublicKey() if family == "ed25519":
            public_key.verify(signature, data)
        case ed448.Ed448PublicKey() if family == "ed448":
            public_key.verify(signature, data)
        case _:
            raise UnsupportedAlgorithmError(
                f"signature algorithm {family!r} does not fit a {type(public_key).__name__}"
            )


def verify_signer(
    index: int,
    signer_info: cms.SignerInfo,
    certificates: list[asn1_x509.Certificate],
    content: bytes,
    content_type: str,
) -> SignerOutcome:
    """Verify one SignerInfo. Never raises for a bad signature; reports it instead."""
    field = f"signer_infos[{index}]"
    with structure(field):
        digest_name = signer_info["digest_algorithm"]["algorithm"].native
        signature_algorithm = signer_info["signature_algorithm"]
        signature_name = signature_algorithm["algorithm"].native
        signature = signer_info["signature"].native
        sid = signer_info["sid"]

    def outcome(valid: bool, reason: str | None = None, unsupported: bool = False) -> SignerOutcome:
        return SignerOutcome(
            index=index,
            digest_algorithm=digest_name,
            signature_algorithm=signature_name,
            valid=valid,
            reason=reason,
            unsupported=unsupported,
        )

    cert = _find_signer_certificate(sid, certificates)
    if cert is None:
        return outcome(False, "signer certificate not found")

    try:
        algorithm = hash_algorithm(digest_name)
        with structure(field):
            data = _signed_bytes(signer_info, content, content_type, algorithm)
            public_key = x509.load_der_x509_certificate(cert.dump()).public_key()
        _verify_signature(public_key, signature_algorithm, signature, data, algorithm)
    except (UnsupportedAlgorithmError, crypto_exceptions.UnsupportedAlgorithm) as exc:
        return outcome(False, str(exc), unsupported=True)
    except InvalidSignatureError as exc:
        return outcome(False, str(exc))
    except crypto_exceptions.InvalidSignature:
        return outcome(False, "signature does not verify")
    return outcome(True)


def aggregate_outcomes(outcomes: list[SignerOutcome]) -> None:
    """
    Accept when any signer verified.

    Otherwise fail with UNSUPPORTED_ALGORITHM when every signer was rejected
    only for lack of algorithm support, SIGNATURE_INVALID in every other case
    (including a structure with no signers at all).
    """
    if any(o.valid for o in outcomes):
        return
    if not outcomes:
        raise InvalidSignatureError("no signers")
    if all(o.unsupported for o in outcomes):
        raise UnsupportedAlgorithmError("; ".join(o.reason or "" for o in outcomes))
    raise InvalidSignatureError("; ".join(o.reason or "" for o in outcomes))


# ─────────────────────── Adapter ───────────────────────


class CmsProfileDecoder:
    """
    Adapter: signed profile bytes → DecodedValue.

    Satisfies the SignedProfileDecoder port. The payload is only parsed once
    at least one SignerInfo verifies.
    """

    def verify(self, data: bytes) -> Result[SignedPayload]:
        """
        Unwrap and verify a CMS SignedData structure.

        Returns:
            Success(SignedPayload) — at least one signer verified
            Failure(PARSE_ERROR | SIGNATURE_INVALID | UNSUPPORTED_ALGORITHM |
                    UNSUPPORTED_CONTENT_TYPE)
        """
        return Result.from_computation(
            lambda: self._do_verify(data),
            ErrorCode.PARSE_ERROR,
            "Failed to verify signed profile",
        ).map_failure(classify_failure)

    def decode_and_verify(self, data: bytes) -> Result[DecodedValue]:
        return self.verify(data).flat_map(lambda payload: parse_property_list(payload.content))

    def _do_verify(self, data: bytes) -> SignedPayload:
        content_info = load(cms.ContentInfo, data, "content_info")
        with structure("content_info"):
            outer_type = content_info["content_type"].native
        if outer_type != "signed_data":
            raise UnsupportedContentTypeError(f"expected signed data, got {outer_type!r}")

        with structure("signed_data"):
            signed_data = content_info["content"]
            encap = signed_data["encap_content_info"]
            content_type = encap["content_type"].native
            encap_content = encap["content"]
            signer_infos = list(signed_data["signer_infos"])
        if isinstance(encap_content, core.Void):
            raise UnsupportedContentTypeError("detached content is not supported")
        content = octets(encap_content, "signed_data.encap_content_info")

        certificates = _certificates(signed_data)
        outcomes = [
            verify_signer(index, signer_info, certificates, content, content_type)
            for index, signer_info in enumerate(signer_infos)
        ]
        for rejected in (o for o in outcomes if not o.valid):
            log.warning(
                "profile.signer_rejected",
                index=rejected.index,
                signature_algorithm=rejected.signature_algorithm,
                reason=rejected.reason,
            )
        aggregate_outcomes(outcomes)

        log.info(
            "profile.verified",
            signers=len(outcomes),
            valid_signers=sum(1 for o in outcomes if o.valid),
            content_bytes=len(content),
        )
        return SignedPayload(
            content=content,
            content_type=content_type,
            signer_certificates=tuple(cert.dump() for cert in certificates),
            outcomes=tuple(outcomes),
        )
